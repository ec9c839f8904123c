from decimal import Decimal
from django.db import models


class Vendor(models.Model):
    """A tenant: one cannabis retailer with its own storefront, staff and stock"""
    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('active', 'Active'),
        ('suspended', 'Suspended'),
    ]

    name = models.CharField(max_length=255)
    slug = models.SlugField(max_length=100, unique=True)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=20, blank=True)
    logo_url = models.URLField(max_length=500, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='active')
    settings = models.JSONField(default=dict, blank=True, help_text="tax_rate, currency, receipt_footer")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    @property
    def tax_rate(self):
        """Sales tax as a fraction, e.g. Decimal('0.08') for 8%"""
        return Decimal(str(self.settings.get('tax_rate', 0) or 0))

    @property
    def is_active(self):
        return self.status == 'active'

    class Meta:
        db_table = 'vendors'
        ordering = ['name']
