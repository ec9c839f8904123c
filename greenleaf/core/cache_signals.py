"""
Cache invalidation signals
Automatically invalidate storefront cache entries when their rows change
"""
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver
import logging
import threading
from contextlib import contextmanager

from . import model_cache

logger = logging.getLogger(__name__)

# Thread-local storage to track signal suspension
_thread_locals = threading.local()


@contextmanager
def suspend_cache_signals():
    """
    Temporarily suspend cache invalidation signals during bulk writes.
    Callers must invalidate the affected vendors once the block finishes.
    """
    previous = is_suspended()
    try:
        _thread_locals.suspended = True
        yield
    finally:
        _thread_locals.suspended = previous


def is_suspended():
    return getattr(_thread_locals, 'suspended', False)


def invalidate_cache_pattern(pattern):
    """
    Invalidate all cache keys matching a pattern
    Uses Redis SCAN to find and delete matching keys
    """
    try:
        from django_redis import get_redis_connection
        redis_conn = get_redis_connection("default")

        keys = []
        cursor = 0
        while True:
            cursor, partial_keys = redis_conn.scan(cursor, match=f"*{pattern}*", count=100)
            keys.extend(partial_keys)
            if cursor == 0:
                break

        if keys:
            redis_conn.delete(*keys)
            logger.info(f"Cache invalidation requested for pattern: {pattern} - Deleted {len(keys)} keys")
        else:
            logger.info(f"Cache invalidation requested for pattern: {pattern} - No keys found")
    except Exception as e:
        # Non-redis backends (local memory in development and tests) have no SCAN
        logger.debug(f"Could not invalidate cache pattern {pattern}: {str(e)}")


def invalidate_vendor_storefront(vendor_id):
    """Drop every cached storefront read for one vendor"""
    model_cache.invalidate_storefront_products_cache(vendor_id)
    invalidate_cache_pattern(f"{model_cache.STOREFRONT_PAGE_KEY_PREFIX}{vendor_id}:")


# --- Signal Handlers ---

@receiver([post_save, post_delete])
def invalidate_storefront_cache(sender, instance, **kwargs):
    """Invalidate storefront caches when vendors, products, categories, inventory or pages change"""
    if is_suspended():
        return

    model_name = sender.__name__

    if model_name == 'Vendor' and sender._meta.app_label == 'vendors':
        model_cache.invalidate_vendor_cache(instance)
        invalidate_vendor_storefront(instance.id)
    elif model_name in ('Product', 'Category', 'Inventory') and sender._meta.app_label in ('catalog', 'inventory'):
        model_cache.invalidate_storefront_products_cache(instance.vendor_id)
    elif model_name == 'StorefrontPage' and sender._meta.app_label == 'storefront':
        model_cache.invalidate_storefront_page_cache(instance.vendor_id, instance.slug)
