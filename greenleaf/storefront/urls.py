from django.urls import path
from .views import (
    public_store, public_products, public_product_detail, public_page,
    page_list_create, page_detail, section_list,
    storefront_generate, autofill_strain, bulk_autofill_strains, conversation_list, conversation_detail,
)

urlpatterns = [
    path('store/<slug:vendor_slug>/', public_store, name='public-store'),
    path('store/<slug:vendor_slug>/products/', public_products, name='public-products'),
    path('store/<slug:vendor_slug>/products/<slug:product_slug>/', public_product_detail, name='public-product-detail'),
    path('store/<slug:vendor_slug>/pages/<slug:page_slug>/', public_page, name='public-page'),
    path('storefront/pages/', page_list_create, name='storefront-page-list'),
    path('storefront/pages/<int:pk>/', page_detail, name='storefront-page-detail'),
    path('storefront/sections/', section_list, name='storefront-section-list'),
    path('ai/storefront-generate/', storefront_generate, name='ai-storefront-generate'),
    path('ai/autofill-strain/', autofill_strain, name='ai-autofill-strain'),
    path('ai/bulk-autofill/', bulk_autofill_strains, name='ai-bulk-autofill'),
    path('ai/conversations/', conversation_list, name='ai-conversation-list'),
    path('ai/conversations/<int:pk>/', conversation_detail, name='ai-conversation-detail'),
]
