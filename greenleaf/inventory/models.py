from decimal import Decimal
from django.db import models
from django.conf import settings


class Inventory(models.Model):
    """On-hand stock of one product at one location"""
    vendor = models.ForeignKey('vendors.Vendor', on_delete=models.CASCADE, related_name='inventory_items')
    product = models.ForeignKey('catalog.Product', on_delete=models.CASCADE, related_name='inventory_items')
    location = models.ForeignKey('locations.Location', on_delete=models.CASCADE, related_name='inventory_items')
    quantity = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal('0.000'))
    reserved_quantity = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal('0.000'))
    reorder_point = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal('0.000'))
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.product.name} @ {self.location.name}: {self.quantity}"

    @property
    def available_quantity(self):
        return self.quantity - self.reserved_quantity

    @property
    def is_low_stock(self):
        return self.quantity <= self.reorder_point

    class Meta:
        db_table = 'inventory'
        verbose_name_plural = 'inventory'
        constraints = [
            models.UniqueConstraint(fields=['product', 'location'], name='unique_inventory_product_location'),
        ]


class InventoryTransaction(models.Model):
    """Ledger of every stock movement"""
    TRANSACTION_TYPE_CHOICES = [
        ('purchase', 'Purchase / Receive'),
        ('sale', 'Sale'),
        ('adjustment', 'Adjustment'),
        ('transfer_in', 'Transfer In'),
        ('transfer_out', 'Transfer Out'),
        ('zero_out', 'Zero Out'),
        ('audit', 'Audit Count'),
        ('return', 'Return'),
        ('void_restock', 'Void Restock'),
    ]

    vendor = models.ForeignKey('vendors.Vendor', on_delete=models.CASCADE, related_name='inventory_transactions')
    inventory = models.ForeignKey(Inventory, on_delete=models.SET_NULL, null=True, blank=True, related_name='transactions')
    product = models.ForeignKey('catalog.Product', on_delete=models.CASCADE, related_name='inventory_transactions')
    location = models.ForeignKey('locations.Location', on_delete=models.PROTECT, related_name='inventory_transactions')
    transaction_type = models.CharField(max_length=20, choices=TRANSACTION_TYPE_CHOICES, db_index=True)
    quantity_change = models.DecimalField(max_digits=12, decimal_places=3)
    quantity_before = models.DecimalField(max_digits=12, decimal_places=3)
    quantity_after = models.DecimalField(max_digits=12, decimal_places=3)
    reason = models.TextField(blank=True)
    reference_type = models.CharField(max_length=50, blank=True)
    reference_id = models.CharField(max_length=100, blank=True, db_index=True)
    performed_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
                                     related_name='inventory_transactions')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.transaction_type} {self.quantity_change} {self.product_id}@{self.location_id}"

    class Meta:
        db_table = 'inventory_transactions'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['vendor', '-created_at'], name='inv_txn_vendor_created_idx'),
            models.Index(fields=['product', 'location'], name='inv_txn_product_loc_idx'),
        ]
