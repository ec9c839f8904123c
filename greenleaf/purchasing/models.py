from decimal import Decimal
from django.conf import settings
from django.db import models
from greenleaf.core.utils import money


class Supplier(models.Model):
    """A company the vendor buys stock from. Removing one only deactivates it."""
    vendor = models.ForeignKey('vendors.Vendor', on_delete=models.CASCADE, related_name='suppliers')
    name = models.CharField(max_length=200, db_index=True)
    company = models.CharField(max_length=200, blank=True)
    contact_name = models.CharField(max_length=200, blank=True)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=20, blank=True)
    address = models.TextField(blank=True)
    payment_terms = models.CharField(max_length=100, blank=True, help_text="e.g. Net 30, COD")
    notes = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'suppliers'
        ordering = ['name']


class PurchaseOrder(models.Model):
    STATUS_CHOICES = [
        ('draft', 'Draft'),
        ('submitted', 'Submitted'),
        ('partial', 'Partially Received'),
        ('received', 'Received'),
        ('cancelled', 'Cancelled'),
    ]
    RECEIVABLE_STATUSES = ('submitted', 'partial')

    vendor = models.ForeignKey('vendors.Vendor', on_delete=models.CASCADE, related_name='purchase_orders')
    supplier = models.ForeignKey(Supplier, on_delete=models.PROTECT, related_name='purchase_orders')
    location = models.ForeignKey('locations.Location', on_delete=models.PROTECT, related_name='purchase_orders',
                                 help_text="Where received stock is put away")
    po_number = models.CharField(max_length=50, unique=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='draft', db_index=True)
    expected_delivery_date = models.DateField(null=True, blank=True)
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True,
                                   related_name='purchase_orders')
    submitted_at = models.DateTimeField(null=True, blank=True)
    received_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.po_number

    @property
    def subtotal(self):
        return sum((item.line_total for item in self.items.all()), Decimal('0.00'))

    class Meta:
        db_table = 'purchase_orders'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['vendor', 'status'], name='idx_po_vendor_status'),
            models.Index(fields=['supplier', 'status'], name='idx_po_supplier_status'),
        ]


class PurchaseOrderItem(models.Model):
    purchase_order = models.ForeignKey(PurchaseOrder, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey('catalog.Product', on_delete=models.PROTECT, related_name='purchase_order_items')
    # Snapshot so the order still reads correctly after a rename
    product_name = models.CharField(max_length=255)
    quantity_ordered = models.DecimalField(max_digits=12, decimal_places=3)
    quantity_received = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal('0.000'))
    unit_cost = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))

    def __str__(self):
        return f"{self.product_name} x {self.quantity_ordered}"

    @property
    def quantity_remaining(self):
        return max(self.quantity_ordered - self.quantity_received, Decimal('0.000'))

    @property
    def line_total(self):
        return money(self.quantity_ordered * self.unit_cost)

    class Meta:
        db_table = 'purchase_order_items'
        ordering = ['id']
        constraints = [
            models.UniqueConstraint(fields=['purchase_order', 'product'], name='unique_product_per_purchase_order'),
        ]


class PurchaseReceipt(models.Model):
    """One receiving event against a line. Only good stock goes into inventory."""
    CONDITION_CHOICES = [
        ('good', 'Good'),
        ('damaged', 'Damaged'),
        ('expired', 'Expired'),
        ('rejected', 'Rejected'),
    ]

    item = models.ForeignKey(PurchaseOrderItem, on_delete=models.CASCADE, related_name='receipts')
    quantity = models.DecimalField(max_digits=12, decimal_places=3)
    condition = models.CharField(max_length=20, choices=CONDITION_CHOICES, default='good')
    notes = models.TextField(blank=True)
    received_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True,
                                    related_name='purchase_receipts')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.quantity} {self.condition} of {self.item.product_name}"

    class Meta:
        db_table = 'purchase_receipts'
        ordering = ['created_at', 'id']
