from rest_framework import serializers
from .models import POSRegister, POSSession, CashMovement, POSTransaction


class POSRegisterSerializer(serializers.ModelSerializer):
    location_name = serializers.CharField(source='location.name', read_only=True)
    has_open_session = serializers.SerializerMethodField()

    class Meta:
        model = POSRegister
        fields = ['id', 'location', 'location_name', 'name', 'register_number', 'is_active',
                  'has_open_session', 'created_at']
        read_only_fields = ['created_at']

    def get_has_open_session(self, obj):
        return obj.sessions.filter(status='open').exists()

    def validate_location(self, value):
        vendor = self.context.get('vendor')
        if vendor is not None and value.vendor_id != vendor.id:
            raise serializers.ValidationError('Location not found')
        if not value.pos_enabled:
            raise serializers.ValidationError('POS is not enabled for this location')
        return value


class CashMovementSerializer(serializers.ModelSerializer):
    performed_by_username = serializers.CharField(source='performed_by.username', read_only=True, default=None)

    class Meta:
        model = CashMovement
        fields = ['id', 'movement_type', 'amount', 'reason', 'performed_by_username', 'created_at']


class POSSessionSerializer(serializers.ModelSerializer):
    register_name = serializers.CharField(source='register.name', read_only=True)
    location_name = serializers.CharField(source='location.name', read_only=True)
    opened_by_username = serializers.CharField(source='opened_by.username', read_only=True)
    closed_by_username = serializers.CharField(source='closed_by.username', read_only=True, default=None)

    class Meta:
        model = POSSession
        fields = ['id', 'session_number', 'register', 'register_name', 'location', 'location_name', 'status',
                  'opening_cash', 'closing_cash', 'expected_cash', 'cash_difference', 'total_sales',
                  'total_cash', 'total_card', 'total_transactions', 'opening_notes', 'closing_notes',
                  'opened_by_username', 'closed_by_username', 'opened_at', 'closed_at']


class POSTransactionSerializer(serializers.ModelSerializer):
    order_number = serializers.CharField(source='order.order_number', read_only=True)
    customer_name = serializers.CharField(source='order.customer.full_name', read_only=True, default=None)
    created_by_username = serializers.CharField(source='created_by.username', read_only=True, default=None)

    class Meta:
        model = POSTransaction
        fields = ['id', 'transaction_number', 'order', 'order_number', 'customer_name', 'session', 'location',
                  'transaction_type', 'payment_method', 'subtotal', 'tax_amount', 'total_amount',
                  'cash_amount', 'card_amount', 'cash_tendered', 'change_given', 'status', 'void_reason',
                  'voided_at', 'created_by_username', 'created_at']
