from django.contrib import admin
from .models import Inventory, InventoryTransaction


@admin.register(Inventory)
class InventoryAdmin(admin.ModelAdmin):
    list_display = ['product', 'location', 'vendor', 'quantity', 'reserved_quantity', 'reorder_point', 'updated_at']
    list_filter = ['vendor', 'location']
    search_fields = ['product__name', 'product__sku']


@admin.register(InventoryTransaction)
class InventoryTransactionAdmin(admin.ModelAdmin):
    list_display = ['created_at', 'transaction_type', 'product', 'location', 'quantity_change',
                    'quantity_before', 'quantity_after', 'performed_by']
    list_filter = ['transaction_type', 'vendor']
    search_fields = ['product__name', 'reference_id', 'reason']
    readonly_fields = [f.name for f in InventoryTransaction._meta.fields]
