from datetime import date
from rest_framework import serializers
from .models import Customer

# Recreational cannabis purchases require customers to be 21 or older
MINIMUM_AGE = 21


class CustomerSerializer(serializers.ModelSerializer):
    full_name = serializers.CharField(read_only=True)
    loyalty_points = serializers.SerializerMethodField()

    class Meta:
        model = Customer
        fields = ['id', 'first_name', 'last_name', 'full_name', 'email', 'phone', 'date_of_birth', 'notes',
                  'is_active', 'loyalty_points', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def get_loyalty_points(self, obj):
        loyalty = getattr(obj, 'loyalty', None)
        return loyalty.points_balance if loyalty is not None else 0

    def validate_email(self, value):
        value = (value or '').strip().lower()
        vendor = self.context.get('vendor')
        if value and vendor is not None:
            duplicates = Customer.objects.filter(vendor=vendor, email=value)
            if self.instance is not None:
                duplicates = duplicates.exclude(pk=self.instance.pk)
            if duplicates.exists():
                raise serializers.ValidationError('A customer with this email already exists')
        return value

    def validate_date_of_birth(self, value):
        if value is None:
            return value
        today = date.today()
        age = today.year - value.year - ((today.month, today.day) < (value.month, value.day))
        if age < MINIMUM_AGE:
            raise serializers.ValidationError(f'Customer must be at least {MINIMUM_AGE} years old')
        return value
