from django.urls import path
from .views import (
    category_list_create, category_detail, product_list_create, product_detail, product_label,
    coa_list_create, coa_detail,
)

urlpatterns = [
    path('categories/', category_list_create, name='category-list-create'),
    path('categories/<int:pk>/', category_detail, name='category-detail'),
    path('products/', product_list_create, name='product-list-create'),
    path('products/<int:pk>/', product_detail, name='product-detail'),
    path('products/<int:pk>/label/', product_label, name='product-label'),
    path('coas/', coa_list_create, name='coa-list-create'),
    path('coas/<int:pk>/', coa_detail, name='coa-detail'),
]
