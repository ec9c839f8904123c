from django.contrib import admin
from .models import Vendor


@admin.register(Vendor)
class VendorAdmin(admin.ModelAdmin):
    list_display = ['name', 'slug', 'status', 'email', 'created_at']
    list_filter = ['status']
    search_fields = ['name', 'slug', 'email']
    prepopulated_fields = {'slug': ('name',)}
