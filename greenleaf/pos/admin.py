from django.contrib import admin
from .models import POSRegister, POSSession, CashMovement, POSTransaction


@admin.register(POSRegister)
class POSRegisterAdmin(admin.ModelAdmin):
    list_display = ['name', 'register_number', 'location', 'vendor', 'is_active']
    list_filter = ['is_active', 'vendor']


class CashMovementInline(admin.TabularInline):
    model = CashMovement
    extra = 0
    readonly_fields = ['movement_type', 'amount', 'reason', 'performed_by', 'created_at']


@admin.register(POSSession)
class POSSessionAdmin(admin.ModelAdmin):
    list_display = ['session_number', 'register', 'status', 'opened_by', 'opening_cash', 'closing_cash',
                    'cash_difference', 'opened_at', 'closed_at']
    list_filter = ['status', 'vendor']
    search_fields = ['session_number']
    inlines = [CashMovementInline]


@admin.register(POSTransaction)
class POSTransactionAdmin(admin.ModelAdmin):
    list_display = ['transaction_number', 'transaction_type', 'payment_method', 'total_amount', 'status', 'created_at']
    list_filter = ['status', 'payment_method', 'transaction_type', 'vendor']
    search_fields = ['transaction_number', 'order__order_number']
