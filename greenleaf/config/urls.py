"""
URL configuration for the greenleaf project.

Every app mounts its routes under /api/v1/.
"""
from django.contrib import admin
from django.urls import path, include

admin.site.site_header = "GreenLeaf Commerce Admin"
admin.site.site_title = "GreenLeaf Commerce Admin Portal"
admin.site.index_title = "Platform administration"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('greenleaf.core.urls')),
    path('api/v1/', include('greenleaf.vendors.urls')),
    path('api/v1/', include('greenleaf.locations.urls')),
    path('api/v1/', include('greenleaf.catalog.urls')),
    path('api/v1/', include('greenleaf.inventory.urls')),
    path('api/v1/', include('greenleaf.purchasing.urls')),
    path('api/v1/', include('greenleaf.customers.urls')),
    path('api/v1/', include('greenleaf.orders.urls')),
    path('api/v1/', include('greenleaf.pos.urls')),
    path('api/v1/', include('greenleaf.loyalty.urls')),
    path('api/v1/', include('greenleaf.analytics.urls')),
    path('api/v1/', include('greenleaf.storefront.urls')),
]
