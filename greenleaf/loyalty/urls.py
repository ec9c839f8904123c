from django.urls import path
from .views import (
    loyalty_program, customer_loyalty_detail, customer_loyalty_adjust,
    customer_loyalty_redeem, customer_loyalty_transactions,
)

urlpatterns = [
    path('loyalty/program/', loyalty_program, name='loyalty-program'),
    path('loyalty/customers/<int:customer_id>/', customer_loyalty_detail, name='customer-loyalty-detail'),
    path('loyalty/customers/<int:customer_id>/adjust/', customer_loyalty_adjust, name='customer-loyalty-adjust'),
    path('loyalty/customers/<int:customer_id>/redeem/', customer_loyalty_redeem, name='customer-loyalty-redeem'),
    path('loyalty/customers/<int:customer_id>/transactions/', customer_loyalty_transactions, name='customer-loyalty-transactions'),
]
