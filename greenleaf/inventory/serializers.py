from rest_framework import serializers
from .models import Inventory, InventoryTransaction


class InventorySerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)
    product_sku = serializers.CharField(source='product.sku', read_only=True)
    location_name = serializers.CharField(source='location.name', read_only=True)
    available_quantity = serializers.DecimalField(max_digits=12, decimal_places=3, read_only=True)
    is_low_stock = serializers.BooleanField(read_only=True)

    class Meta:
        model = Inventory
        fields = ['id', 'product', 'product_name', 'product_sku', 'location', 'location_name', 'quantity',
                  'reserved_quantity', 'available_quantity', 'reorder_point', 'is_low_stock', 'updated_at']
        read_only_fields = ['product', 'location', 'quantity', 'updated_at']


class InventoryTransactionSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)
    location_name = serializers.CharField(source='location.name', read_only=True)
    performed_by_username = serializers.CharField(source='performed_by.username', read_only=True, default=None)

    class Meta:
        model = InventoryTransaction
        fields = ['id', 'product', 'product_name', 'location', 'location_name', 'transaction_type',
                  'quantity_change', 'quantity_before', 'quantity_after', 'reason', 'reference_type',
                  'reference_id', 'performed_by_username', 'created_at']
