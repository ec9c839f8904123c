"""Utility functions for audit logging and request parsing"""
import logging
from decimal import Decimal, InvalidOperation

from django.db import transaction

from .models import AuditLog

logger = logging.getLogger(__name__)


def get_client_ip(request):
    """Extract client IP address from request"""
    if not request or not hasattr(request, 'META'):
        return None
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = x_forwarded_for.split(',')[0].strip()
    else:
        ip = request.META.get('REMOTE_ADDR')
    return ip or None


def create_audit_log(request=None, action=None, model_name=None, object_id=None,
                     changes=None, user=None, vendor=None, object_name=None,
                     object_reference=None):
    """
    Create an audit log entry

    Args:
        request: Django request object (for user and IP) - optional if user is provided
        action: Action type (sale_create, session_close, inventory_adjust, etc.)
        model_name: Name of the model being acted upon
        object_id: ID of the object (as string)
        changes: Dictionary of changes made
        user: Optional user override (defaults to request.user if request provided)
        vendor: Tenant the entry belongs to (defaults to the acting user's vendor)
        object_name: Human-readable name of the object (e.g., product name, order number)
        object_reference: Reference identifier (e.g., order number, session number)
    """
    try:
        audit_user = None
        if user:
            audit_user = user
        elif request and hasattr(request, 'user'):
            audit_user = request.user

        if audit_user is not None and not audit_user.is_authenticated:
            audit_user = None

        if vendor is None and audit_user is not None:
            vendor = getattr(audit_user, 'vendor', None)

        ip_address = get_client_ip(request) if request else None

        if not action or not model_name or not object_id:
            logger.warning(f"Audit log creation skipped: missing required fields (action={action}, model_name={model_name}, object_id={object_id})")
            return None

        # Savepoint so a failed insert does not poison an enclosing transaction
        with transaction.atomic():
            return AuditLog.objects.create(
                vendor=vendor,
                user=audit_user,
                action=action,
                model_name=model_name,
                object_id=str(object_id),
                object_name=object_name,
                object_reference=object_reference,
                changes=changes or {},
                ip_address=ip_address
            )
    except Exception as e:
        # Don't fail the main operation if audit logging fails
        logger.error(f"Failed to create audit log: {str(e)}")
        return None


def parse_decimal(value, field_name, allow_none=False):
    """
    Convert request input to Decimal.

    Raises ValueError with a client-facing message when the value is not numeric.
    """
    if value is None or value == '':
        if allow_none:
            return None
        raise ValueError(f'{field_name} is required')
    if isinstance(value, bool):
        raise ValueError(f'{field_name} must be a number')
    try:
        result = Decimal(str(value))
    except (InvalidOperation, TypeError):
        raise ValueError(f'{field_name} must be a number')
    if not result.is_finite():
        raise ValueError(f'{field_name} must be a number')
    return result


def parse_id(value, field_name, allow_none=False):
    """Convert a request id to int, raising ValueError with a client-facing message"""
    if value is None or value == '':
        if allow_none:
            return None
        raise ValueError(f'{field_name} is required')
    if isinstance(value, bool):
        raise ValueError(f'{field_name} must be an integer id')
    try:
        result = int(str(value).strip())
    except (TypeError, ValueError):
        raise ValueError(f'{field_name} must be an integer id')
    if result <= 0:
        raise ValueError(f'{field_name} must be an integer id')
    return result


def money(value):
    """Round a Decimal to cents"""
    return Decimal(value).quantize(Decimal('0.01'))


def unique_slug(queryset, value, slug_field='slug', max_length=100):
    """Slugify value and append a counter until it is unique within queryset"""
    from django.utils.text import slugify

    base = slugify(value)[:max_length] or 'item'
    slug = base
    counter = 2
    while queryset.filter(**{slug_field: slug}).exists():
        suffix = f"-{counter}"
        slug = f"{base[:max_length - len(suffix)]}{suffix}"
        counter += 1
    return slug
