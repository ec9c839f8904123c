from django.urls import path
from .views import (
    register_list_create, register_detail, session_list, session_open, session_current,
    session_detail, session_close, session_cash_movements, session_summary_view,
    sale_list_create, sale_void,
)

urlpatterns = [
    path('registers/', register_list_create, name='register-list'),
    path('registers/<int:pk>/', register_detail, name='register-detail'),
    path('pos/sessions/', session_list, name='pos-session-list'),
    path('pos/sessions/open/', session_open, name='pos-session-open'),
    path('pos/sessions/current/', session_current, name='pos-session-current'),
    path('pos/sessions/<int:pk>/', session_detail, name='pos-session-detail'),
    path('pos/sessions/<int:pk>/close/', session_close, name='pos-session-close'),
    path('pos/sessions/<int:pk>/cash-movements/', session_cash_movements, name='pos-session-cash-movements'),
    path('pos/sessions/<int:pk>/summary/', session_summary_view, name='pos-session-summary'),
    path('pos/sales/', sale_list_create, name='pos-sale-list'),
    path('pos/sales/void/', sale_void, name='pos-sale-void'),
]
