from decimal import Decimal
from rest_framework import serializers
from .models import LoyaltyProgram, CustomerLoyalty, LoyaltyTransaction


class LoyaltyProgramSerializer(serializers.ModelSerializer):
    class Meta:
        model = LoyaltyProgram
        fields = ['id', 'name', 'points_per_dollar', 'point_value', 'min_redemption_points', 'points_expiry_days',
                  'tiers', 'is_active', 'updated_at']
        read_only_fields = ['updated_at']

    def validate_points_per_dollar(self, value):
        if value < 0:
            raise serializers.ValidationError('Must be zero or greater')
        return value

    def validate_point_value(self, value):
        if value < Decimal('0'):
            raise serializers.ValidationError('Must be zero or greater')
        return value

    def validate_tiers(self, value):
        if not isinstance(value, list) or not value:
            raise serializers.ValidationError('At least one tier is required')
        names = set()
        for tier in value:
            if not isinstance(tier, dict) or not tier.get('name'):
                raise serializers.ValidationError('Each tier needs a name')
            if not isinstance(tier.get('min_points', 0), int) or tier.get('min_points', 0) < 0:
                raise serializers.ValidationError('min_points must be a non-negative integer')
            if tier['name'] in names:
                raise serializers.ValidationError(f"Duplicate tier {tier['name']}")
            names.add(tier['name'])
        if not any(tier.get('min_points', 0) == 0 for tier in value):
            raise serializers.ValidationError('One tier must start at 0 points')
        return value


class CustomerLoyaltySerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source='customer.full_name', read_only=True)

    class Meta:
        model = CustomerLoyalty
        fields = ['customer', 'customer_name', 'points_balance', 'lifetime_points', 'points_redeemed', 'tier', 'updated_at']


class LoyaltyTransactionSerializer(serializers.ModelSerializer):
    order_number = serializers.CharField(source='order.order_number', read_only=True, default=None)

    class Meta:
        model = LoyaltyTransaction
        fields = ['id', 'transaction_type', 'points', 'balance_before', 'balance_after', 'order', 'order_number',
                  'description', 'expires_at', 'points_remaining', 'created_at']
