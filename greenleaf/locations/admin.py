from django.contrib import admin
from .models import Location


@admin.register(Location)
class LocationAdmin(admin.ModelAdmin):
    list_display = ['name', 'code', 'vendor', 'location_type', 'is_primary', 'is_active', 'created_at']
    list_filter = ['location_type', 'is_primary', 'is_active', 'vendor']
    search_fields = ['name', 'code', 'city']
    ordering = ['vendor', 'name']
