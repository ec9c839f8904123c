from django.contrib import admin
from .models import Category, Product, ProductCOA


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ['name', 'vendor', 'parent', 'display_order', 'is_active']
    list_filter = ['is_active', 'vendor']
    search_fields = ['name']


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['name', 'sku', 'vendor', 'category', 'price', 'status', 'stock_quantity', 'stock_status']
    list_filter = ['status', 'stock_status', 'vendor']
    search_fields = ['name', 'sku']
    readonly_fields = ['stock_quantity', 'stock_status', 'created_at', 'updated_at']


@admin.register(ProductCOA)
class ProductCOAAdmin(admin.ModelAdmin):
    list_display = ['product', 'batch_number', 'lab_name', 'test_date', 'expiry_date', 'is_verified', 'is_active']
    list_filter = ['is_verified', 'is_active', 'vendor']
    search_fields = ['batch_number', 'lab_name', 'product__name']
    actions = ['mark_verified']

    @admin.action(description='Mark selected COAs as verified')
    def mark_verified(self, request, queryset):
        updated = queryset.update(is_verified=True)
        self.message_user(request, f'{updated} COA(s) marked as verified.')
