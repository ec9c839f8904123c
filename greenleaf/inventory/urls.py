from django.urls import path
from .views import (
    inventory_list, inventory_detail, inventory_adjust, inventory_transfer,
    inventory_bulk_operations, inventory_transaction_list,
)

urlpatterns = [
    path('inventory/', inventory_list, name='inventory-list'),
    path('inventory/<int:pk>/', inventory_detail, name='inventory-detail'),
    path('inventory/adjust/', inventory_adjust, name='inventory-adjust'),
    path('inventory/transfer/', inventory_transfer, name='inventory-transfer'),
    path('inventory/bulk-operations/', inventory_bulk_operations, name='inventory-bulk-operations'),
    path('inventory/transactions/', inventory_transaction_list, name='inventory-transaction-list'),
]
