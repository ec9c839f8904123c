"""
Caching for the public storefront reads: vendor by slug, published product
lists and published pages.

Entries are invalidated by greenleaf.core.cache_signals when the underlying rows change.
"""
from django.core.cache import cache
import logging

logger = logging.getLogger(__name__)

# Cache key prefixes
VENDOR_SLUG_KEY_PREFIX = 'vendor_slug:'
STOREFRONT_PRODUCTS_KEY_PREFIX = 'storefront_products:'
STOREFRONT_PAGE_KEY_PREFIX = 'storefront_page:'

# Cache TTL (Time To Live) in seconds
VENDOR_CACHE_TTL = 900  # 15 minutes
STOREFRONT_PRODUCTS_CACHE_TTL = 180  # 3 minutes, stock levels move with every sale
STOREFRONT_PAGE_CACHE_TTL = 600  # 10 minutes


# ==================== VENDOR CACHING ====================

def get_vendor_slug_cache_key(slug: str) -> str:
    return f"{VENDOR_SLUG_KEY_PREFIX}{slug}"


def cache_vendor_data(vendor_obj, ttl: int = None):
    """Cache the public subset of a vendor row"""
    if not vendor_obj:
        return None

    cached_data = {
        'id': vendor_obj.id,
        'name': vendor_obj.name,
        'slug': vendor_obj.slug,
        'logo_url': vendor_obj.logo_url,
        'status': vendor_obj.status,
        'currency': vendor_obj.settings.get('currency', 'USD'),
    }
    cache.set(get_vendor_slug_cache_key(vendor_obj.slug), cached_data, ttl or VENDOR_CACHE_TTL)
    logger.debug(f"Cached vendor data: {vendor_obj.name} (ID: {vendor_obj.id})")
    return cached_data


def get_cached_vendor(slug: str):
    cached_data = cache.get(get_vendor_slug_cache_key(slug))
    if cached_data:
        logger.debug(f"Cache hit for vendor: {slug}")
    return cached_data


def invalidate_vendor_cache(vendor_obj):
    if not vendor_obj:
        return
    cache.delete(get_vendor_slug_cache_key(vendor_obj.slug))
    invalidate_storefront_products_cache(vendor_obj.id)
    logger.debug(f"Invalidated cache for vendor: {vendor_obj.name} (ID: {vendor_obj.id})")


# ==================== STOREFRONT PRODUCT CACHING ====================

def get_storefront_products_cache_key(vendor_id: int, category: str = '') -> str:
    return f"{STOREFRONT_PRODUCTS_KEY_PREFIX}{vendor_id}:{category or 'all'}"


def _storefront_products_index_key(vendor_id: int) -> str:
    return f"{STOREFRONT_PRODUCTS_KEY_PREFIX}{vendor_id}:keys"


def cache_storefront_products(vendor_id: int, category: str, data, ttl: int = None):
    """Cache a product list and remember its key so all variants can be dropped together"""
    key = get_storefront_products_cache_key(vendor_id, category)
    cache.set(key, data, ttl or STOREFRONT_PRODUCTS_CACHE_TTL)

    index_key = _storefront_products_index_key(vendor_id)
    keys = cache.get(index_key) or []
    if key not in keys:
        keys.append(key)
        cache.set(index_key, keys, ttl or STOREFRONT_PRODUCTS_CACHE_TTL)


def get_cached_storefront_products(vendor_id: int, category: str = ''):
    return cache.get(get_storefront_products_cache_key(vendor_id, category))


def invalidate_storefront_products_cache(vendor_id: int):
    index_key = _storefront_products_index_key(vendor_id)
    keys = cache.get(index_key) or []
    if keys:
        cache.delete_many(keys)
    cache.delete(index_key)
    logger.debug(f"Invalidated storefront product cache for vendor {vendor_id} ({len(keys)} keys)")


# ==================== STOREFRONT PAGE CACHING ====================

def get_storefront_page_cache_key(vendor_id: int, page_slug: str) -> str:
    return f"{STOREFRONT_PAGE_KEY_PREFIX}{vendor_id}:{page_slug}"


def cache_storefront_page(vendor_id: int, page_slug: str, data, ttl: int = None):
    cache.set(get_storefront_page_cache_key(vendor_id, page_slug), data, ttl or STOREFRONT_PAGE_CACHE_TTL)


def get_cached_storefront_page(vendor_id: int, page_slug: str):
    return cache.get(get_storefront_page_cache_key(vendor_id, page_slug))


def invalidate_storefront_page_cache(vendor_id: int, page_slug: str):
    cache.delete(get_storefront_page_cache_key(vendor_id, page_slug))
