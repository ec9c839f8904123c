from rest_framework import serializers
from greenleaf.catalog.models import Product
from .models import StorefrontPage, AIConversation, AIMessage
from .section_library import normalize_sections


class StorefrontPageSerializer(serializers.ModelSerializer):
    slug = serializers.SlugField(max_length=100, required=False)

    class Meta:
        model = StorefrontPage
        fields = ['id', 'slug', 'title', 'page_type', 'sections', 'seo', 'is_published', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def validate_sections(self, value):
        try:
            return normalize_sections(value)
        except ValueError as e:
            raise serializers.ValidationError(str(e))

    def validate_seo(self, value):
        if not isinstance(value, dict):
            raise serializers.ValidationError('seo must be an object')
        return value

    def validate_slug(self, value):
        vendor = self.context.get('vendor')
        if vendor is not None:
            queryset = StorefrontPage.objects.filter(vendor=vendor, slug=value)
            if self.instance is not None:
                queryset = queryset.exclude(pk=self.instance.pk)
            if queryset.exists():
                raise serializers.ValidationError('A page with this slug already exists')
        return value


class PublicPageSerializer(serializers.ModelSerializer):
    class Meta:
        model = StorefrontPage
        fields = ['slug', 'title', 'page_type', 'sections', 'seo', 'updated_at']


class PublicProductSerializer(serializers.ModelSerializer):
    """Published product with custom fields filtered for a display context"""
    category_name = serializers.CharField(source='category.name', read_only=True, default=None)
    category_slug = serializers.CharField(source='category.slug', read_only=True, default=None)
    custom_fields = serializers.SerializerMethodField()

    class Meta:
        model = Product
        fields = ['id', 'name', 'slug', 'sku', 'category_name', 'category_slug', 'description', 'price',
                  'pricing_tiers', 'custom_fields', 'stock_status', 'featured_image']

    def get_custom_fields(self, obj):
        return obj.visible_custom_fields(self.context.get('visibility', 'shop'))


class AIMessageSerializer(serializers.ModelSerializer):
    class Meta:
        model = AIMessage
        fields = ['id', 'role', 'content', 'metadata', 'created_at']


class AIConversationSerializer(serializers.ModelSerializer):
    agent_key = serializers.CharField(source='agent.key', read_only=True)
    message_count = serializers.IntegerField(read_only=True, default=None)

    class Meta:
        model = AIConversation
        fields = ['id', 'title', 'agent_key', 'page', 'message_count', 'created_at', 'updated_at']
