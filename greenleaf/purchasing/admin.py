from django.contrib import admin
from .models import Supplier, PurchaseOrder, PurchaseOrderItem, PurchaseReceipt


@admin.register(Supplier)
class SupplierAdmin(admin.ModelAdmin):
    list_display = ['name', 'company', 'contact_name', 'email', 'phone', 'vendor', 'is_active']
    list_filter = ['is_active', 'vendor']
    search_fields = ['name', 'company', 'contact_name', 'email']


class PurchaseOrderItemInline(admin.TabularInline):
    model = PurchaseOrderItem
    extra = 0
    readonly_fields = ['quantity_received']


@admin.register(PurchaseOrder)
class PurchaseOrderAdmin(admin.ModelAdmin):
    list_display = ['po_number', 'supplier', 'location', 'status', 'expected_delivery_date', 'created_at']
    list_filter = ['status', 'vendor']
    search_fields = ['po_number', 'supplier__name']
    inlines = [PurchaseOrderItemInline]


@admin.register(PurchaseReceipt)
class PurchaseReceiptAdmin(admin.ModelAdmin):
    list_display = ['item', 'quantity', 'condition', 'received_by', 'created_at']
    list_filter = ['condition']
    readonly_fields = ['item', 'quantity', 'condition', 'notes', 'received_by', 'created_at']
