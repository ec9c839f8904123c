from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    """Platform user. Staff accounts belong to exactly one vendor."""
    ROLE_CHOICES = [
        ('admin', 'Platform Admin'),
        ('vendor', 'Vendor Admin'),
        ('employee', 'Employee'),
        ('customer', 'Customer'),
    ]

    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default='employee')
    vendor = models.ForeignKey('vendors.Vendor', on_delete=models.CASCADE, null=True, blank=True, related_name='users')
    phone = models.CharField(max_length=20, blank=True, null=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'users'

    @property
    def is_platform_admin(self):
        return self.is_superuser or self.role == 'admin'

    @property
    def is_vendor_admin(self):
        return self.is_platform_admin or (self.role == 'vendor' and self.vendor_id is not None)

    @property
    def display_name(self):
        full_name = self.get_full_name()
        return full_name or self.username


class AuditLog(models.Model):
    """Audit log for critical operations"""
    ACTION_CHOICES = [
        ('create', 'Create'),
        ('update', 'Update'),
        ('delete', 'Delete'),
        ('login', 'Login'),
        ('vendor_register', 'Vendor Registered'),
        ('employee_create', 'Employee Created'),
        ('price_change', 'Price Change'),
        ('inventory_adjust', 'Inventory Adjustment'),
        ('inventory_transfer', 'Inventory Transfer'),
        ('inventory_bulk', 'Inventory Bulk Operation'),
        ('session_open', 'POS Session Opened'),
        ('session_close', 'POS Session Closed'),
        ('cash_movement', 'Cash Drawer Movement'),
        ('sale_create', 'Sale Created'),
        ('sale_void', 'Sale Voided'),
        ('order_status', 'Order Status Changed'),
        ('loyalty_adjust', 'Loyalty Points Adjusted'),
        ('loyalty_redeem', 'Loyalty Points Redeemed'),
        ('ai_generate', 'AI Content Generated'),
        ('po_status', 'Purchase Order Status Changed'),
        ('po_receive', 'Purchase Order Received'),
    ]

    vendor = models.ForeignKey('vendors.Vendor', on_delete=models.CASCADE, null=True, blank=True, related_name='audit_logs')
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='audit_logs')
    action = models.CharField(max_length=50, choices=ACTION_CHOICES)
    model_name = models.CharField(max_length=100)
    object_id = models.CharField(max_length=100)
    object_name = models.CharField(max_length=255, blank=True, null=True, help_text="Human-readable name of the object (e.g., product name, order number)")
    object_reference = models.CharField(max_length=255, blank=True, null=True, help_text="Reference identifier (e.g., order number, session number)")
    changes = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['-created_at'], name='audit_created_idx'),
            models.Index(fields=['action'], name='audit_action_idx'),
            models.Index(fields=['model_name'], name='audit_model_idx'),
            models.Index(fields=['object_reference'], name='audit_reference_idx'),
        ]

    def __str__(self):
        return f"{self.action} {self.model_name}#{self.object_id}"
