from rest_framework import serializers
from .models import Order, OrderItem


class OrderItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderItem
        fields = ['id', 'product', 'product_name', 'sku', 'quantity', 'unit_price', 'line_total', 'location']


class OrderListSerializer(serializers.ModelSerializer):
    location_name = serializers.CharField(source='location.name', read_only=True, default=None)
    customer_name = serializers.CharField(source='customer.full_name', read_only=True, default=None)

    class Meta:
        model = Order
        fields = ['id', 'order_number', 'order_type', 'status', 'payment_status', 'payment_method',
                  'location', 'location_name', 'customer', 'customer_name', 'total_amount', 'created_at']


class OrderSerializer(serializers.ModelSerializer):
    items = OrderItemSerializer(many=True, read_only=True)
    location_name = serializers.CharField(source='location.name', read_only=True, default=None)
    customer_name = serializers.CharField(source='customer.full_name', read_only=True, default=None)
    created_by_username = serializers.CharField(source='created_by.username', read_only=True, default=None)

    class Meta:
        model = Order
        fields = ['id', 'order_number', 'order_type', 'status', 'payment_status', 'payment_method',
                  'location', 'location_name', 'customer', 'customer_name', 'subtotal', 'tax_amount',
                  'discount_amount', 'total_amount', 'notes', 'metadata', 'created_by_username',
                  'completed_at', 'created_at', 'updated_at', 'items']
