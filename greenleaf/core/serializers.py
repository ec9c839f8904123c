from rest_framework import serializers
from django.contrib.auth.password_validation import validate_password
from django.db import transaction
from .models import User, AuditLog


class UserSerializer(serializers.ModelSerializer):
    vendor_name = serializers.CharField(source='vendor.name', read_only=True, default=None)

    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'first_name', 'last_name', 'phone', 'role',
                  'vendor', 'vendor_name', 'is_active', 'created_at', 'updated_at']
        read_only_fields = ['vendor', 'created_at', 'updated_at']


class VendorRegistrationSerializer(serializers.Serializer):
    """Sign-up payload: creates a vendor, its primary location and the owner account"""
    business_name = serializers.CharField(max_length=255)
    business_email = serializers.EmailField(required=False, allow_blank=True)
    location_name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    username = serializers.CharField(max_length=150)
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, validators=[validate_password])
    password_confirm = serializers.CharField(write_only=True)
    first_name = serializers.CharField(max_length=150, required=False, allow_blank=True)
    last_name = serializers.CharField(max_length=150, required=False, allow_blank=True)

    def validate_username(self, value):
        if User.objects.filter(username=value).exists():
            raise serializers.ValidationError('A user with that username already exists.')
        return value

    def validate(self, attrs):
        if attrs['password'] != attrs['password_confirm']:
            raise serializers.ValidationError({"password": "Passwords don't match"})
        return attrs

    def create(self, validated_data):
        from greenleaf.vendors.models import Vendor
        from greenleaf.locations.models import Location
        from .utils import unique_slug

        with transaction.atomic():
            vendor = Vendor.objects.create(
                name=validated_data['business_name'],
                slug=unique_slug(Vendor.objects.all(), validated_data['business_name']),
                email=validated_data.get('business_email') or validated_data['email'],
                status='active',
            )
            Location.objects.create(
                vendor=vendor,
                name=validated_data.get('location_name') or f"{vendor.name} Main",
                code='MAIN',
                is_primary=True,
            )
            user = User(
                username=validated_data['username'],
                email=validated_data['email'],
                first_name=validated_data.get('first_name', ''),
                last_name=validated_data.get('last_name', ''),
                role='vendor',
                vendor=vendor,
                is_active=True,
            )
            user.set_password(validated_data['password'])
            user.save()
        return user


class AuditLogSerializer(serializers.ModelSerializer):
    username = serializers.CharField(source='user.username', read_only=True, default=None)

    class Meta:
        model = AuditLog
        fields = ['id', 'username', 'action', 'model_name', 'object_id', 'object_name',
                  'object_reference', 'changes', 'ip_address', 'created_at']
