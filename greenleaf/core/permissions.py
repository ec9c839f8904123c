"""Tenant scoping helpers and DRF permission classes"""
from rest_framework.permissions import BasePermission


def get_request_vendor(request):
    """Return the vendor the authenticated user acts for, or None"""
    user = getattr(request, 'user', None)
    if not user or not user.is_authenticated:
        return None
    return user.vendor


def is_vendor_admin(user):
    return bool(user and user.is_authenticated and user.is_vendor_admin)


def is_platform_admin(user):
    return bool(user and user.is_authenticated and user.is_platform_admin)


class IsVendorMember(BasePermission):
    """Authenticated staff user attached to an active vendor"""
    message = 'A vendor account is required for this action'

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False
        if user.role == 'customer':
            return False
        vendor = user.vendor
        return vendor is not None and vendor.status != 'suspended'


class IsVendorAdmin(IsVendorMember):
    """Vendor owner/manager of an active vendor"""
    message = 'Only vendor administrators can perform this action'

    def has_permission(self, request, view):
        return super().has_permission(request, view) and request.user.is_vendor_admin


class IsPlatformAdmin(BasePermission):
    message = 'Only platform administrators can perform this action'

    def has_permission(self, request, view):
        return is_platform_admin(request.user)
