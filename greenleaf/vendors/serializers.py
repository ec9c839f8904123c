from decimal import Decimal, InvalidOperation
from rest_framework import serializers
from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from .models import Vendor

User = get_user_model()


class VendorSerializer(serializers.ModelSerializer):
    class Meta:
        model = Vendor
        fields = ['id', 'name', 'slug', 'email', 'phone', 'logo_url', 'status', 'settings', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']
        extra_kwargs = {'slug': {'required': False}}

    def validate_settings(self, value):
        if not isinstance(value, dict):
            raise serializers.ValidationError('settings must be an object')
        if 'tax_rate' in value:
            try:
                rate = Decimal(str(value['tax_rate']))
            except (InvalidOperation, TypeError):
                raise serializers.ValidationError({'tax_rate': 'Must be a number'})
            if rate < 0 or rate >= 1:
                raise serializers.ValidationError({'tax_rate': 'Must be a fraction between 0 and 1'})
        return value


class EmployeeSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, required=False, validators=[validate_password])

    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'first_name', 'last_name', 'phone', 'role',
                  'is_active', 'password', 'created_at', 'last_login']
        read_only_fields = ['created_at', 'last_login']

    def validate_role(self, value):
        if value not in ('vendor', 'employee'):
            raise serializers.ValidationError('Role must be vendor or employee')
        return value

    def validate(self, attrs):
        if self.instance is None and not attrs.get('password'):
            raise serializers.ValidationError({'password': 'This field is required.'})
        return attrs

    def create(self, validated_data):
        password = validated_data.pop('password')
        user = User(**validated_data)
        user.set_password(password)
        user.save()
        return user

    def update(self, instance, validated_data):
        password = validated_data.pop('password', None)
        for attr, value in validated_data.items():
            setattr(instance, attr, value)
        if password:
            instance.set_password(password)
        instance.save()
        return instance
