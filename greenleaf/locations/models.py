from django.db import models, transaction


class Location(models.Model):
    """A vendor's store, warehouse or distribution site"""
    LOCATION_TYPE_CHOICES = [
        ('retail', 'Retail Store'),
        ('warehouse', 'Warehouse'),
        ('distribution', 'Distribution Center'),
    ]

    vendor = models.ForeignKey('vendors.Vendor', on_delete=models.CASCADE, related_name='locations')
    name = models.CharField(max_length=200)
    code = models.CharField(max_length=50)
    location_type = models.CharField(max_length=20, choices=LOCATION_TYPE_CHOICES, default='retail')
    address_line1 = models.CharField(max_length=255, blank=True)
    address_line2 = models.CharField(max_length=255, blank=True)
    city = models.CharField(max_length=100, blank=True)
    state = models.CharField(max_length=100, blank=True)
    postal_code = models.CharField(max_length=20, blank=True)
    phone = models.CharField(max_length=20, blank=True)
    email = models.EmailField(blank=True)
    is_primary = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)
    pos_enabled = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        # Only one primary location per vendor
        with transaction.atomic():
            if self.is_primary:
                Location.objects.filter(vendor_id=self.vendor_id, is_primary=True).exclude(pk=self.pk).update(is_primary=False)
            super().save(*args, **kwargs)

    @property
    def order_prefix(self):
        """First three letters of the name, used in POS order numbers"""
        letters = ''.join(ch for ch in self.name if ch.isalnum())
        return (letters[:3] or 'POS').upper()

    class Meta:
        db_table = 'locations'
        ordering = ['-is_primary', 'name']
        constraints = [
            models.UniqueConstraint(fields=['vendor', 'code'], name='unique_location_code_per_vendor'),
        ]


def get_primary_location(vendor):
    """Primary location for a vendor, falling back to the oldest active one"""
    location = Location.objects.filter(vendor=vendor, is_primary=True).first()
    if location is None:
        location = Location.objects.filter(vendor=vendor, is_active=True).order_by('created_at', 'id').first()
    return location
