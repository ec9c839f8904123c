from django.urls import path
from .views import vendor_list_create, vendor_detail, vendor_me, employee_list_create, employee_detail

urlpatterns = [
    path('vendors/', vendor_list_create, name='vendor-list-create'),
    path('vendors/me/', vendor_me, name='vendor-me'),
    path('vendors/me/employees/', employee_list_create, name='employee-list-create'),
    path('vendors/me/employees/<int:pk>/', employee_detail, name='employee-detail'),
    path('vendors/<int:pk>/', vendor_detail, name='vendor-detail'),
]
