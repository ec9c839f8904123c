from decimal import Decimal, InvalidOperation
from rest_framework import serializers
from .models import Category, Product, ProductCOA


class CategorySerializer(serializers.ModelSerializer):
    product_count = serializers.IntegerField(read_only=True, required=False)

    class Meta:
        model = Category
        fields = ['id', 'name', 'slug', 'parent', 'description', 'field_visibility', 'display_order',
                  'is_active', 'product_count', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']
        extra_kwargs = {'slug': {'required': False}}

    def validate_parent(self, value):
        vendor = self.context.get('vendor')
        if value is not None and vendor is not None and value.vendor_id != vendor.id:
            raise serializers.ValidationError('Parent category not found')
        if value is not None and self.instance is not None and value.pk == self.instance.pk:
            raise serializers.ValidationError('A category cannot be its own parent')
        return value

    def validate_field_visibility(self, value):
        if not isinstance(value, dict):
            raise serializers.ValidationError('field_visibility must be an object')
        for field_key, rules in value.items():
            if not isinstance(rules, dict):
                raise serializers.ValidationError({field_key: 'Visibility rules must be an object'})
            for context, visible in rules.items():
                if context not in Category.VISIBILITY_CONTEXTS:
                    raise serializers.ValidationError({field_key: f'Unknown context "{context}"'})
                if not isinstance(visible, bool):
                    raise serializers.ValidationError({field_key: f'"{context}" must be true or false'})
        return value


class ProductSerializer(serializers.ModelSerializer):
    category_name = serializers.CharField(source='category.name', read_only=True, default=None)

    class Meta:
        model = Product
        fields = ['id', 'name', 'slug', 'sku', 'category', 'category_name', 'description', 'price', 'cost_price',
                  'pricing_tiers', 'custom_fields', 'status', 'manage_stock', 'stock_quantity', 'stock_status',
                  'low_stock_threshold', 'featured_image', 'created_at', 'updated_at']
        read_only_fields = ['stock_quantity', 'stock_status', 'created_at', 'updated_at']
        extra_kwargs = {'slug': {'required': False}}

    def validate_price(self, value):
        if value < 0:
            raise serializers.ValidationError('Price cannot be negative')
        return value

    def validate_category(self, value):
        vendor = self.context.get('vendor')
        if value is not None and vendor is not None and value.vendor_id != vendor.id:
            raise serializers.ValidationError('Category not found')
        return value

    def validate_sku(self, value):
        value = (value or '').strip()
        vendor = self.context.get('vendor')
        if value and vendor is not None:
            duplicates = Product.objects.filter(vendor=vendor, sku=value)
            if self.instance is not None:
                duplicates = duplicates.exclude(pk=self.instance.pk)
            if duplicates.exists():
                raise serializers.ValidationError('A product with this SKU already exists')
        return value

    def validate_custom_fields(self, value):
        if not isinstance(value, dict):
            raise serializers.ValidationError('custom_fields must be an object')
        return value

    def validate_pricing_tiers(self, value):
        if not isinstance(value, list):
            raise serializers.ValidationError('pricing_tiers must be a list')
        for tier in value:
            if not isinstance(tier, dict) or 'price' not in tier:
                raise serializers.ValidationError('Each pricing tier needs a price')
            try:
                if Decimal(str(tier['price'])) < 0:
                    raise serializers.ValidationError('Tier prices cannot be negative')
            except (InvalidOperation, TypeError):
                raise serializers.ValidationError('Tier prices must be numbers')
        return value


class ProductListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for list views"""
    category_name = serializers.CharField(source='category.name', read_only=True, default=None)

    class Meta:
        model = Product
        fields = ['id', 'name', 'slug', 'sku', 'category', 'category_name', 'price', 'status',
                  'stock_quantity', 'stock_status', 'featured_image']


class ProductCOASerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)
    status = serializers.CharField(read_only=True)

    class Meta:
        model = ProductCOA
        fields = ['id', 'product', 'product_name', 'file_url', 'file_name', 'lab_name', 'batch_number',
                  'product_name_on_coa', 'test_date', 'expiry_date', 'test_results', 'status', 'is_verified',
                  'is_active', 'uploaded_by', 'created_at', 'updated_at']
        read_only_fields = ['is_verified', 'is_active', 'uploaded_by', 'created_at', 'updated_at']

    def validate_product(self, value):
        vendor = self.context.get('vendor')
        if vendor is not None and value.vendor_id != vendor.id:
            raise serializers.ValidationError('Product not found')
        return value

    def validate_test_results(self, value):
        if not isinstance(value, dict):
            raise serializers.ValidationError('test_results must be an object')
        return value

    def validate(self, attrs):
        test_date = attrs.get('test_date', getattr(self.instance, 'test_date', None))
        expiry_date = attrs.get('expiry_date', getattr(self.instance, 'expiry_date', None))
        if test_date and expiry_date and expiry_date < test_date:
            raise serializers.ValidationError({'expiry_date': 'Expiry date cannot be before the test date'})
        return attrs


class PublicCOASerializer(serializers.ModelSerializer):
    status = serializers.CharField(read_only=True)

    class Meta:
        model = ProductCOA
        fields = ['id', 'file_url', 'lab_name', 'batch_number', 'test_date', 'expiry_date', 'test_results', 'status']
