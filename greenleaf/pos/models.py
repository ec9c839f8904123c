from decimal import Decimal
from django.conf import settings
from django.db import models
from django.db.models import Q


class POSRegister(models.Model):
    """A physical register (cash drawer + terminal) at a location"""
    vendor = models.ForeignKey('vendors.Vendor', on_delete=models.CASCADE, related_name='pos_registers')
    location = models.ForeignKey('locations.Location', on_delete=models.PROTECT, related_name='pos_registers')
    name = models.CharField(max_length=100)
    register_number = models.CharField(max_length=50, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.location.name} - {self.name}"

    class Meta:
        db_table = 'pos_registers'
        ordering = ['location', 'name']


class POSSession(models.Model):
    """
    A register shift from opening count to closing count.

    A register has at most one open session; the partial unique constraint
    enforces it even if two openings race past the register row lock.
    """
    STATUS_CHOICES = [
        ('open', 'Open'),
        ('closed', 'Closed'),
    ]

    vendor = models.ForeignKey('vendors.Vendor', on_delete=models.CASCADE, related_name='pos_sessions')
    location = models.ForeignKey('locations.Location', on_delete=models.PROTECT, related_name='pos_sessions')
    register = models.ForeignKey(POSRegister, on_delete=models.PROTECT, related_name='sessions')
    session_number = models.CharField(max_length=100, unique=True)
    opened_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name='pos_sessions_opened')
    closed_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
                                  related_name='pos_sessions_closed')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='open')
    opening_cash = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    closing_cash = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    expected_cash = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    cash_difference = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    total_sales = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    total_cash = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    total_card = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    total_transactions = models.IntegerField(default=0)
    opening_notes = models.TextField(blank=True)
    closing_notes = models.TextField(blank=True)
    opened_at = models.DateTimeField(auto_now_add=True)
    closed_at = models.DateTimeField(null=True, blank=True)

    def __str__(self):
        return self.session_number

    class Meta:
        db_table = 'pos_sessions'
        ordering = ['-opened_at']
        constraints = [
            models.UniqueConstraint(fields=['register'], condition=Q(status='open'),
                                    name='one_open_session_per_register'),
        ]


class CashMovement(models.Model):
    """Drawer activity outside of sales. paid_out amounts are stored negative."""
    MOVEMENT_TYPE_CHOICES = [
        ('no_sale', 'No Sale'),
        ('paid_in', 'Paid In'),
        ('paid_out', 'Paid Out'),
    ]

    session = models.ForeignKey(POSSession, on_delete=models.CASCADE, related_name='cash_movements')
    movement_type = models.CharField(max_length=20, choices=MOVEMENT_TYPE_CHOICES)
    amount = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    reason = models.CharField(max_length=255)
    performed_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name='cash_movements')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.movement_type} {self.amount} ({self.session.session_number})"

    class Meta:
        db_table = 'pos_cash_movements'
        ordering = ['created_at']


class POSTransaction(models.Model):
    TRANSACTION_TYPE_CHOICES = [
        ('customer_sale', 'Customer Sale'),
        ('walk_in_sale', 'Walk-in Sale'),
        ('refund', 'Refund'),
    ]
    PAYMENT_METHOD_CHOICES = [
        ('cash', 'Cash'),
        ('card', 'Card'),
        ('split', 'Split'),
    ]
    STATUS_CHOICES = [
        ('completed', 'Completed'),
        ('voided', 'Voided'),
        ('refunded', 'Refunded'),
    ]

    vendor = models.ForeignKey('vendors.Vendor', on_delete=models.CASCADE, related_name='pos_transactions')
    location = models.ForeignKey('locations.Location', on_delete=models.PROTECT, related_name='pos_transactions')
    session = models.ForeignKey(POSSession, on_delete=models.SET_NULL, null=True, blank=True, related_name='transactions')
    order = models.OneToOneField('orders.Order', on_delete=models.CASCADE, related_name='pos_transaction')
    transaction_number = models.CharField(max_length=120, unique=True)
    transaction_type = models.CharField(max_length=20, choices=TRANSACTION_TYPE_CHOICES, default='walk_in_sale')
    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHOD_CHOICES, default='cash')
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    tax_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    cash_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    card_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    cash_tendered = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    change_given = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='completed', db_index=True)
    void_reason = models.CharField(max_length=255, blank=True)
    voided_at = models.DateTimeField(null=True, blank=True)
    voided_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
                                  related_name='pos_transactions_voided')
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True,
                                   related_name='pos_transactions')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.transaction_number

    class Meta:
        db_table = 'pos_transactions'
        ordering = ['-created_at']
