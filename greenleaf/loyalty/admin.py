from django.contrib import admin
from .models import LoyaltyProgram, CustomerLoyalty, LoyaltyTransaction


@admin.register(LoyaltyProgram)
class LoyaltyProgramAdmin(admin.ModelAdmin):
    list_display = ['vendor', 'name', 'points_per_dollar', 'point_value', 'min_redemption_points', 'is_active']


@admin.register(CustomerLoyalty)
class CustomerLoyaltyAdmin(admin.ModelAdmin):
    list_display = ['customer', 'vendor', 'points_balance', 'lifetime_points', 'tier']
    list_filter = ['tier', 'vendor']


@admin.register(LoyaltyTransaction)
class LoyaltyTransactionAdmin(admin.ModelAdmin):
    list_display = ['created_at', 'customer', 'transaction_type', 'points', 'balance_after', 'order']
    list_filter = ['transaction_type', 'vendor']
