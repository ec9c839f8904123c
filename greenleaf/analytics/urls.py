from django.urls import path
from .views import (
    sales_summary, comparison, sales_by_employee, sales_by_location, top_products,
    inventory_summary, dashboard,
)

urlpatterns = [
    path('analytics/sales-summary/', sales_summary, name='analytics-sales-summary'),
    path('analytics/comparison/', comparison, name='analytics-comparison'),
    path('analytics/by-employee/', sales_by_employee, name='analytics-by-employee'),
    path('analytics/by-location/', sales_by_location, name='analytics-by-location'),
    path('analytics/top-products/', top_products, name='analytics-top-products'),
    path('analytics/inventory-summary/', inventory_summary, name='analytics-inventory-summary'),
    path('analytics/dashboard/', dashboard, name='analytics-dashboard'),
]
