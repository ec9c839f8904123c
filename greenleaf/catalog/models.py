from datetime import timedelta
from decimal import Decimal
from django.conf import settings
from django.db import models
from django.utils import timezone


class Category(models.Model):
    """
    Product categories.

    field_visibility controls where each custom field is shown, keyed by field
    name: {"thca_percentage": {"shop": true, "product_page": true, "pos": false}}.
    Fields missing from the map are visible everywhere.
    """
    VISIBILITY_CONTEXTS = ('shop', 'product_page', 'pos')

    vendor = models.ForeignKey('vendors.Vendor', on_delete=models.CASCADE, related_name='categories')
    name = models.CharField(max_length=200, db_index=True)
    slug = models.SlugField(max_length=200)
    parent = models.ForeignKey('self', on_delete=models.SET_NULL, null=True, blank=True, related_name='children')
    description = models.TextField(blank=True)
    field_visibility = models.JSONField(default=dict, blank=True)
    display_order = models.IntegerField(default=0)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    def is_field_visible(self, field_key, context):
        rules = (self.field_visibility or {}).get(field_key)
        if not isinstance(rules, dict):
            return True
        return rules.get(context, True) is not False

    class Meta:
        db_table = 'categories'
        verbose_name_plural = 'categories'
        ordering = ['display_order', 'name']
        constraints = [
            models.UniqueConstraint(fields=['vendor', 'slug'], name='unique_category_slug_per_vendor'),
        ]


class Product(models.Model):
    """Vendor product. stock_quantity mirrors the sum of Inventory rows across locations."""
    STATUS_CHOICES = [
        ('draft', 'Draft'),
        ('published', 'Published'),
        ('archived', 'Archived'),
    ]
    STOCK_STATUS_CHOICES = [
        ('in_stock', 'In Stock'),
        ('low_stock', 'Low Stock'),
        ('out_of_stock', 'Out of Stock'),
    ]

    vendor = models.ForeignKey('vendors.Vendor', on_delete=models.CASCADE, related_name='products')
    category = models.ForeignKey(Category, on_delete=models.SET_NULL, null=True, blank=True, related_name='products')
    name = models.CharField(max_length=255, db_index=True)
    slug = models.SlugField(max_length=255)
    sku = models.CharField(max_length=100, blank=True, db_index=True)
    description = models.TextField(blank=True)
    price = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    cost_price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    pricing_tiers = models.JSONField(default=list, blank=True, help_text="[{label, quantity, price}]")
    custom_fields = models.JSONField(default=dict, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='draft', db_index=True)
    manage_stock = models.BooleanField(default=True)
    stock_quantity = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal('0.000'))
    stock_status = models.CharField(max_length=20, choices=STOCK_STATUS_CHOICES, default='out_of_stock')
    low_stock_threshold = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal('5.000'))
    featured_image = models.URLField(max_length=500, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.name} ({self.sku or 'NO-SKU'})"

    def visible_custom_fields(self, context):
        """Custom fields allowed by the category's visibility rules for a display context"""
        fields = self.custom_fields or {}
        if self.category is None:
            return dict(fields)
        return {key: value for key, value in fields.items() if self.category.is_field_visible(key, context)}

    def compute_stock_status(self, quantity=None):
        quantity = self.stock_quantity if quantity is None else quantity
        if quantity <= 0:
            return 'out_of_stock'
        if quantity <= self.low_stock_threshold:
            return 'low_stock'
        return 'in_stock'

    class Meta:
        db_table = 'products'
        ordering = ['name']
        constraints = [
            models.UniqueConstraint(fields=['vendor', 'slug'], name='unique_product_slug_per_vendor'),
            models.UniqueConstraint(fields=['vendor', 'sku'], condition=~models.Q(sku=''),
                                    name='unique_product_sku_per_vendor'),
        ]


class ProductCOA(models.Model):
    """
    Certificate of analysis for a product batch.

    The document itself lives in external storage; file_url points at it.
    Without an expiry date a COA is treated as expired VALIDITY_DAYS after
    its test date. is_verified is set from the Django admin only.
    """
    VALIDITY_DAYS = 90

    vendor = models.ForeignKey('vendors.Vendor', on_delete=models.CASCADE, related_name='coas')
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='coas')
    file_url = models.URLField(max_length=500)
    file_name = models.CharField(max_length=255, blank=True)
    lab_name = models.CharField(max_length=200, blank=True)
    batch_number = models.CharField(max_length=100, blank=True, db_index=True)
    product_name_on_coa = models.CharField(max_length=255, blank=True)
    test_date = models.DateField(null=True, blank=True)
    expiry_date = models.DateField(null=True, blank=True)
    test_results = models.JSONField(default=dict, blank=True,
                                    help_text="Cannabinoid percentages, terpenes and *_passed safety flags")
    is_verified = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)
    uploaded_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
                                    related_name='uploaded_coas')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"COA {self.batch_number or self.pk} for {self.product_id}"

    @property
    def is_expired(self):
        today = timezone.localdate()
        if self.expiry_date:
            return self.expiry_date < today
        if self.test_date:
            return today - self.test_date > timedelta(days=self.VALIDITY_DAYS)
        return False

    @property
    def status(self):
        if self.is_expired:
            return 'expired'
        return 'approved' if self.is_verified else 'pending'

    class Meta:
        db_table = 'product_coas'
        verbose_name = 'product COA'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['vendor', 'product'], name='idx_coa_vendor_product'),
        ]
