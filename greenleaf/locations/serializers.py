from rest_framework import serializers
from .models import Location


class LocationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Location
        fields = ['id', 'name', 'code', 'location_type', 'address_line1', 'address_line2', 'city', 'state',
                  'postal_code', 'phone', 'email', 'is_primary', 'is_active', 'pos_enabled',
                  'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def validate_code(self, value):
        value = value.strip().upper()
        vendor = self.context.get('vendor')
        if vendor is not None:
            duplicates = Location.objects.filter(vendor=vendor, code=value)
            if self.instance is not None:
                duplicates = duplicates.exclude(pk=self.instance.pk)
            if duplicates.exists():
                raise serializers.ValidationError('A location with this code already exists')
        return value
