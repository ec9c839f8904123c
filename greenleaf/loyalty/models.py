from decimal import Decimal
from django.db import models


def default_tiers():
    return [
        {'name': 'bronze', 'min_points': 0, 'multiplier': 1},
        {'name': 'silver', 'min_points': 500, 'multiplier': 1.25},
        {'name': 'gold', 'min_points': 1500, 'multiplier': 1.5},
        {'name': 'platinum', 'min_points': 5000, 'multiplier': 2},
    ]


class LoyaltyProgram(models.Model):
    """Per-vendor points program settings"""
    vendor = models.OneToOneField('vendors.Vendor', on_delete=models.CASCADE, related_name='loyalty_program')
    name = models.CharField(max_length=200, default='Rewards')
    points_per_dollar = models.DecimalField(max_digits=6, decimal_places=2, default=Decimal('1.00'))
    point_value = models.DecimalField(max_digits=6, decimal_places=4, default=Decimal('0.0100'),
                                      help_text="Dollar value of one point at redemption")
    min_redemption_points = models.PositiveIntegerField(default=100)
    points_expiry_days = models.PositiveIntegerField(default=365)
    tiers = models.JSONField(default=default_tiers, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.vendor.name} - {self.name}"

    def sorted_tiers(self):
        return sorted(self.tiers or default_tiers(), key=lambda tier: tier.get('min_points', 0))

    def tier_for_points(self, lifetime_points):
        current = self.sorted_tiers()[0]
        for tier in self.sorted_tiers():
            if lifetime_points >= tier.get('min_points', 0):
                current = tier
        return current

    class Meta:
        db_table = 'loyalty_programs'


class CustomerLoyalty(models.Model):
    """A customer's running points balance with one vendor"""
    vendor = models.ForeignKey('vendors.Vendor', on_delete=models.CASCADE, related_name='customer_loyalty')
    customer = models.OneToOneField('customers.Customer', on_delete=models.CASCADE, related_name='loyalty')
    points_balance = models.IntegerField(default=0)
    lifetime_points = models.IntegerField(default=0)
    points_redeemed = models.IntegerField(default=0)
    tier = models.CharField(max_length=50, default='bronze')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.customer} - {self.points_balance} pts"

    class Meta:
        db_table = 'customer_loyalty'
        verbose_name_plural = 'customer loyalty'


class LoyaltyTransaction(models.Model):
    TRANSACTION_TYPE_CHOICES = [
        ('earned', 'Earned'),
        ('redeemed', 'Redeemed'),
        ('adjusted', 'Adjusted'),
        ('reversed', 'Reversed'),
        ('expired', 'Expired'),
    ]

    vendor = models.ForeignKey('vendors.Vendor', on_delete=models.CASCADE, related_name='loyalty_transactions')
    customer = models.ForeignKey('customers.Customer', on_delete=models.CASCADE, related_name='loyalty_transactions')
    order = models.ForeignKey('orders.Order', on_delete=models.SET_NULL, null=True, blank=True, related_name='loyalty_transactions')
    transaction_type = models.CharField(max_length=20, choices=TRANSACTION_TYPE_CHOICES, db_index=True)
    points = models.IntegerField(help_text="Signed change to the balance")
    balance_before = models.IntegerField()
    balance_after = models.IntegerField()
    description = models.CharField(max_length=255, blank=True)
    expires_at = models.DateTimeField(null=True, blank=True)
    is_expired = models.BooleanField(default=False)
    # Unspent part of an earned grant, drawn down by redemptions, reversals and expiry
    points_remaining = models.IntegerField(default=0, help_text="Unspent part of an earned grant")
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.transaction_type} {self.points} ({self.customer_id})"

    class Meta:
        db_table = 'loyalty_transactions'
        ordering = ['-created_at', '-id']
