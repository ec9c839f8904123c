from django.urls import path
from .views import (
    CustomTokenObtainPairView, CustomTokenRefreshView, register_vendor, user_me,
    audit_log_list,
)

urlpatterns = [
    # Auth endpoints
    path('auth/register-vendor/', register_vendor, name='register-vendor'),
    path('auth/login/', CustomTokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('auth/refresh/', CustomTokenRefreshView.as_view(), name='token_refresh'),
    path('auth/me/', user_me, name='user-me'),

    # AuditLog endpoints
    path('audit-logs/', audit_log_list, name='audit-log-list'),
]
