from django.contrib import admin
from .models import Order, OrderItem


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ['product', 'product_name', 'sku', 'quantity', 'unit_price', 'line_total']


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ['order_number', 'vendor', 'location', 'order_type', 'status', 'payment_status', 'total_amount', 'created_at']
    list_filter = ['status', 'order_type', 'payment_status', 'vendor']
    search_fields = ['order_number', 'customer__first_name', 'customer__last_name', 'customer__email']
    inlines = [OrderItemInline]
