from rest_framework import serializers
from .models import Supplier, PurchaseOrder, PurchaseOrderItem, PurchaseReceipt


class SupplierSerializer(serializers.ModelSerializer):
    class Meta:
        model = Supplier
        fields = ['id', 'name', 'company', 'contact_name', 'email', 'phone', 'address', 'payment_terms', 'notes',
                  'is_active', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def validate_name(self, value):
        value = (value or '').strip()
        if not value:
            raise serializers.ValidationError('Supplier name is required')
        return value

    def validate_email(self, value):
        return (value or '').strip().lower()


class PurchaseReceiptSerializer(serializers.ModelSerializer):
    received_by_username = serializers.CharField(source='received_by.username', read_only=True, default=None)

    class Meta:
        model = PurchaseReceipt
        fields = ['id', 'item', 'quantity', 'condition', 'notes', 'received_by', 'received_by_username', 'created_at']
        read_only_fields = fields


class PurchaseOrderItemSerializer(serializers.ModelSerializer):
    quantity_remaining = serializers.DecimalField(max_digits=12, decimal_places=3, read_only=True)
    line_total = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)
    receipts = PurchaseReceiptSerializer(many=True, read_only=True)

    class Meta:
        model = PurchaseOrderItem
        fields = ['id', 'product', 'product_name', 'quantity_ordered', 'quantity_received', 'quantity_remaining',
                  'unit_cost', 'line_total', 'receipts']
        read_only_fields = fields


class PurchaseOrderListSerializer(serializers.ModelSerializer):
    supplier_name = serializers.CharField(source='supplier.name', read_only=True)
    location_name = serializers.CharField(source='location.name', read_only=True)
    item_count = serializers.SerializerMethodField()
    subtotal = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = PurchaseOrder
        fields = ['id', 'po_number', 'status', 'supplier', 'supplier_name', 'location', 'location_name',
                  'expected_delivery_date', 'item_count', 'subtotal', 'created_at', 'received_at']
        read_only_fields = fields

    def get_item_count(self, obj):
        return len(obj.items.all())


class PurchaseOrderSerializer(PurchaseOrderListSerializer):
    items = PurchaseOrderItemSerializer(many=True, read_only=True)
    created_by_username = serializers.CharField(source='created_by.username', read_only=True, default=None)

    class Meta(PurchaseOrderListSerializer.Meta):
        fields = PurchaseOrderListSerializer.Meta.fields + [
            'notes', 'items', 'created_by', 'created_by_username', 'submitted_at', 'updated_at',
        ]
        read_only_fields = fields
