import json
import logging
from django.conf import settings
from django.db.models import Count
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.throttling import UserRateThrottle
from greenleaf.catalog.models import Category, Product
from greenleaf.catalog.serializers import PublicCOASerializer
from greenleaf.core.exceptions import validation_error_response
from greenleaf.core.model_cache import (
    cache_vendor_data, get_cached_vendor,
    cache_storefront_products, get_cached_storefront_products,
    cache_storefront_page, get_cached_storefront_page, invalidate_storefront_page_cache,
)
from greenleaf.core.permissions import IsVendorAdmin, get_request_vendor
from greenleaf.core.utils import create_audit_log, parse_id, unique_slug
from greenleaf.vendors.models import Vendor
from .agents import DEFAULT_AGENTS, STOREFRONT_BUILDER, STRAIN_AUTOFILL, STRAIN_FIELDS
from .llm import LLMError, extract_json, get_llm_client
from .models import StorefrontPage, AIAgent, AIConversation, AIMessage
from .section_library import SECTION_LIBRARY, build_default_sections, normalize_sections, sections_for_page_type
from .serializers import (
    StorefrontPageSerializer, PublicPageSerializer, PublicProductSerializer,
    AIConversationSerializer, AIMessageSerializer,
)

logger = logging.getLogger('greenleaf.storefront')

BULK_AUTOFILL_LIMIT = 20


class AIRateThrottle(UserRateThrottle):
    scope = 'ai'


# ==================== PUBLIC STOREFRONT ====================

def _public_vendor(vendor_slug):
    """Cached public vendor data, or None for unknown and suspended vendors"""
    data = get_cached_vendor(vendor_slug)
    if data is None:
        vendor = Vendor.objects.filter(slug=vendor_slug).first()
        if vendor is None:
            return None
        data = cache_vendor_data(vendor)
    if data['status'] == 'suspended':
        return None
    return data


def _store_not_found():
    return Response({'error': 'Store not found'}, status=status.HTTP_404_NOT_FOUND)


@api_view(['GET'])
@permission_classes([AllowAny])
def public_store(request, vendor_slug):
    """Vendor info, published pages and active categories"""
    vendor = _public_vendor(vendor_slug)
    if vendor is None:
        return _store_not_found()
    pages = StorefrontPage.objects.filter(vendor_id=vendor['id'], is_published=True).order_by('page_type', 'slug')
    categories = Category.objects.filter(vendor_id=vendor['id'], is_active=True).values('name', 'slug')
    return Response({
        'vendor': vendor,
        'pages': [{'slug': p.slug, 'title': p.title, 'page_type': p.page_type} for p in pages],
        'categories': list(categories),
    })


@api_view(['GET'])
@permission_classes([AllowAny])
def public_products(request, vendor_slug):
    """Published products, optionally by ?category=<slug>. Custom fields follow the shop visibility rules."""
    vendor = _public_vendor(vendor_slug)
    if vendor is None:
        return _store_not_found()
    category = request.query_params.get('category', '')

    data = get_cached_storefront_products(vendor['id'], category)
    if data is None:
        products = Product.objects.filter(vendor_id=vendor['id'], status='published').select_related('category')
        if category:
            products = products.filter(category__slug=category)
        products = products.order_by('name')
        data = PublicProductSerializer(products, many=True, context={'visibility': 'shop'}).data
        cache_storefront_products(vendor['id'], category, data)
    return Response({'products': data, 'count': len(data)})


@api_view(['GET'])
@permission_classes([AllowAny])
def public_product_detail(request, vendor_slug, product_slug):
    vendor = _public_vendor(vendor_slug)
    if vendor is None:
        return _store_not_found()
    product = Product.objects.filter(vendor_id=vendor['id'], slug=product_slug,
                                     status='published').select_related('category').first()
    if product is None:
        return Response({'error': 'Product not found'}, status=status.HTTP_404_NOT_FOUND)
    data = PublicProductSerializer(product, context={'visibility': 'product_page'}).data
    data['coas'] = PublicCOASerializer(product.coas.filter(is_active=True), many=True).data
    return Response(data)


@api_view(['GET'])
@permission_classes([AllowAny])
def public_page(request, vendor_slug, page_slug):
    vendor = _public_vendor(vendor_slug)
    if vendor is None:
        return _store_not_found()
    data = get_cached_storefront_page(vendor['id'], page_slug)
    if data is None:
        page = StorefrontPage.objects.filter(vendor_id=vendor['id'], slug=page_slug, is_published=True).first()
        if page is None:
            return Response({'error': 'Page not found'}, status=status.HTTP_404_NOT_FOUND)
        data = PublicPageSerializer(page).data
        cache_storefront_page(vendor['id'], page_slug, data)
    return Response(data)


# ==================== PAGE MANAGEMENT ====================

@api_view(['GET', 'POST'])
@permission_classes([IsVendorAdmin])
def page_list_create(request):
    """List the vendor's pages or create one. A new page without sections gets the defaults for its type."""
    vendor = get_request_vendor(request)
    if request.method == 'GET':
        pages = StorefrontPage.objects.filter(vendor=vendor)
        page_type = request.query_params.get('page_type')
        if page_type:
            pages = pages.filter(page_type=page_type)
        return Response(StorefrontPageSerializer(pages, many=True).data)

    serializer = StorefrontPageSerializer(data=request.data, context={'vendor': vendor})
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)
    page_type = serializer.validated_data.get('page_type', 'custom')
    slug = serializer.validated_data.get('slug') or unique_slug(
        StorefrontPage.objects.filter(vendor=vendor), serializer.validated_data['title'])
    sections = serializer.validated_data.get('sections') or build_default_sections(page_type)
    page = serializer.save(vendor=vendor, slug=slug, sections=sections)

    logger.info(f"Storefront page '{page.slug}' created for {vendor.slug} by {request.user.username}")
    create_audit_log(request=request, action='create', model_name='StorefrontPage', object_id=page.id,
                     object_name=page.title, object_reference=page.slug)
    return Response(StorefrontPageSerializer(page).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsVendorAdmin])
def page_detail(request, pk):
    vendor = get_request_vendor(request)
    page = get_object_or_404(StorefrontPage, pk=pk, vendor=vendor)
    if request.method == 'GET':
        return Response(StorefrontPageSerializer(page).data)

    if request.method == 'DELETE':
        invalidate_storefront_page_cache(vendor.id, page.slug)
        create_audit_log(request=request, action='delete', model_name='StorefrontPage', object_id=page.id,
                         object_name=page.title, object_reference=page.slug)
        page.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)

    old_slug = page.slug
    serializer = StorefrontPageSerializer(page, data=request.data, partial=request.method == 'PATCH',
                                          context={'vendor': vendor})
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)
    page = serializer.save()
    if page.slug != old_slug:
        invalidate_storefront_page_cache(vendor.id, old_slug)
    create_audit_log(request=request, action='update', model_name='StorefrontPage', object_id=page.id,
                     object_name=page.title, object_reference=page.slug,
                     changes={'fields': sorted(request.data.keys())})
    return Response(StorefrontPageSerializer(page).data)


@api_view(['GET'])
@permission_classes([IsVendorAdmin])
def section_list(request):
    """The section library, optionally limited to ?page_type="""
    page_type = request.query_params.get('page_type')
    sections = sections_for_page_type(page_type) if page_type else SECTION_LIBRARY
    return Response({'sections': sections})


# ==================== AI ====================

def _load_agent(key):
    """Active agent by key, installing a built-in default on first use"""
    agent = AIAgent.objects.filter(key=key).first()
    if agent is None:
        config = next((c for c in DEFAULT_AGENTS if c['key'] == key), None)
        if config is None:
            return None
        agent, _ = AIAgent.objects.get_or_create(key=key, defaults={**config, 'model': settings.AI_DEFAULT_MODEL})
    return agent if agent.is_active else None


def _sections_from_reply(reply):
    """A validated sections list from the model's reply, or None when it holds none"""
    try:
        parsed = extract_json(reply)
    except ValueError:
        return None
    if isinstance(parsed, dict):
        parsed = parsed.get('sections')
    if not isinstance(parsed, list) or not parsed:
        return None
    try:
        return normalize_sections(parsed)
    except ValueError as e:
        logger.warning(f"AI returned unusable sections: {e}")
        return None


@api_view(['POST'])
@permission_classes([IsVendorAdmin])
@throttle_classes([AIRateThrottle])
def storefront_generate(request):
    """
    Chat with the storefront builder agent.

    Body: prompt, pageId?, conversationId?, agentKey? (default storefront_builder).
    When the reply contains a sections array and a page is given, the page's
    sections are replaced with it.
    """
    vendor = get_request_vendor(request)
    prompt = (request.data.get('prompt') or '').strip()
    if not prompt:
        return Response({'error': 'prompt is required'}, status=status.HTTP_400_BAD_REQUEST)

    agent = _load_agent(request.data.get('agentKey') or STOREFRONT_BUILDER)
    if agent is None:
        return Response({'error': 'AI agent not found or inactive'}, status=status.HTTP_404_NOT_FOUND)
    try:
        page_id = parse_id(request.data.get('pageId'), 'pageId', allow_none=True)
        conversation_id = parse_id(request.data.get('conversationId'), 'conversationId', allow_none=True)
    except ValueError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    page = get_object_or_404(StorefrontPage, pk=page_id, vendor=vendor) if page_id else None
    if conversation_id:
        conversation = get_object_or_404(AIConversation, pk=conversation_id, vendor=vendor)
        page = page or conversation.page
    else:
        conversation = AIConversation.objects.create(vendor=vendor, user=request.user, agent=agent, page=page,
                                                     title=prompt[:50])

    history = list(conversation.messages.order_by('-created_at', '-id')[:settings.AI_HISTORY_MESSAGES])
    history.reverse()
    messages = [{'role': m.role, 'content': m.content} for m in history]
    messages.append({'role': 'user', 'content': prompt})
    AIMessage.objects.create(conversation=conversation, role='user', content=prompt)

    allowed = sections_for_page_type(page.page_type) if page else SECTION_LIBRARY
    system = agent.system_prompt.replace('{section_keys}', ', '.join(s['key'] for s in allowed))
    system += f"\n\n## CURRENT SESSION CONTEXT\nVendor: {vendor.name}\n"
    if page is not None:
        system += f"Page: {page.title} ({page.page_type})\nCurrent sections:\n{json.dumps(page.sections)}\n"

    try:
        reply = get_llm_client().generate_text(system, messages, model=agent.model,
                                               max_tokens=agent.max_tokens, temperature=agent.temperature)
    except LLMError as e:
        return Response({'error': str(e)}, status=e.status_code)

    sections = _sections_from_reply(reply)
    AIMessage.objects.create(conversation=conversation, role='assistant', content=reply,
                             metadata={'sections': len(sections) if sections else 0})
    conversation.save(update_fields=['updated_at'])

    page_updated = False
    if sections and page is not None:
        page.sections = sections
        page.save(update_fields=['sections', 'updated_at'])
        page_updated = True
        create_audit_log(request=request, action='ai_generate', model_name='StorefrontPage', object_id=page.id,
                         object_name=page.title, object_reference=page.slug,
                         changes={'sections': [s['key'] for s in sections], 'conversation_id': conversation.id})

    return Response({
        'conversation_id': conversation.id,
        'message': reply,
        'sections': sections,
        'page_updated': page_updated,
    })


def _clean_strain_data(parsed):
    data = {field: parsed.get(field) for field in STRAIN_FIELDS}
    for field in ('terpene_profile', 'effects'):
        if not isinstance(data[field], list):
            data[field] = []
    return data


def _research_strain(agent, strain_name):
    """Ask the autofill agent about one strain. Raises LLMError, or ValueError when the reply is unusable."""
    messages = [{
        'role': 'user',
        'content': f'Analyze "{strain_name}" strain. Extract: {", ".join(STRAIN_FIELDS)}\nReturn ONLY JSON.',
    }]
    reply = get_llm_client().generate_text(agent.system_prompt, messages, model=agent.model,
                                           max_tokens=agent.max_tokens, temperature=agent.temperature)
    parsed = extract_json(reply)
    if not isinstance(parsed, dict):
        raise ValueError('AI returned invalid strain data')
    return _clean_strain_data(parsed)


def _apply_strain_data(request, product, data):
    known = {k: v for k, v in data.items() if v not in (None, '', [], 'Unknown')}
    product.custom_fields = {**(product.custom_fields or {}), **known}
    product.save(update_fields=['custom_fields', 'updated_at'])
    create_audit_log(request=request, action='ai_generate', model_name='Product', object_id=product.id,
                     object_name=product.name, object_reference=product.sku,
                     changes={'custom_fields': sorted(known)})


def _wants_apply(request):
    return request.data.get('apply') in (True, 'true', '1', 1)


@api_view(['POST'])
@permission_classes([IsVendorAdmin])
@throttle_classes([AIRateThrottle])
def autofill_strain(request):
    """
    Research a strain and return its profile.

    Body: strainName (defaults to the product name), productId?, apply?. With
    apply=true the known values are merged into the product's custom_fields.
    """
    vendor = get_request_vendor(request)
    try:
        product_id = parse_id(request.data.get('productId'), 'productId', allow_none=True)
    except ValueError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    product = get_object_or_404(Product, pk=product_id, vendor=vendor) if product_id else None
    strain_name = (request.data.get('strainName') or (product.name if product else '')).strip()
    if not strain_name:
        return Response({'error': 'strainName is required'}, status=status.HTTP_400_BAD_REQUEST)

    agent = _load_agent(STRAIN_AUTOFILL)
    if agent is None:
        return Response({'error': 'AI agent not found or inactive'}, status=status.HTTP_404_NOT_FOUND)

    try:
        data = _research_strain(agent, strain_name)
    except LLMError as e:
        return Response({'error': str(e)}, status=e.status_code)
    except ValueError:
        logger.warning(f"Strain autofill for '{strain_name}' returned no JSON")
        return Response({'error': 'AI returned invalid strain data'}, status=status.HTTP_502_BAD_GATEWAY)

    applied = False
    if product is not None and _wants_apply(request):
        _apply_strain_data(request, product, data)
        applied = True

    logger.info(f"Strain autofill for '{strain_name}' by {request.user.username} (applied={applied})")
    return Response({'strain_name': strain_name, 'data': data, 'applied': applied})


@api_view(['POST'])
@permission_classes([IsVendorAdmin])
@throttle_classes([AIRateThrottle])
def bulk_autofill_strains(request):
    """
    Run strain autofill over several products, one agent call each.

    Body: productIds (at most BULK_AUTOFILL_LIMIT), apply?. A failure on one
    product is reported in its result and the rest continue; a missing API key
    stops the whole run.
    """
    vendor = get_request_vendor(request)
    raw_ids = request.data.get('productIds')
    if not isinstance(raw_ids, list) or not raw_ids:
        return Response({'error': 'productIds must be a non-empty list'}, status=status.HTTP_400_BAD_REQUEST)
    if len(raw_ids) > BULK_AUTOFILL_LIMIT:
        return Response({'error': f'At most {BULK_AUTOFILL_LIMIT} products per request'},
                        status=status.HTTP_400_BAD_REQUEST)
    try:
        product_ids = list(dict.fromkeys(parse_id(value, 'productIds') for value in raw_ids))
    except ValueError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    products = {p.id: p for p in Product.objects.filter(vendor=vendor, pk__in=product_ids)}
    missing = [pid for pid in product_ids if pid not in products]
    if missing:
        return Response({'error': f'Products not found: {missing}'}, status=status.HTTP_404_NOT_FOUND)

    agent = _load_agent(STRAIN_AUTOFILL)
    if agent is None:
        return Response({'error': 'AI agent not found or inactive'}, status=status.HTTP_404_NOT_FOUND)

    apply = _wants_apply(request)
    results = []
    for product_id in product_ids:
        product = products[product_id]
        result = {'product_id': product.id, 'product_name': product.name, 'success': False, 'applied': False}
        try:
            result['data'] = _research_strain(agent, product.name)
            result['success'] = True
        except LLMError as e:
            if e.status_code == status.HTTP_503_SERVICE_UNAVAILABLE:
                return Response({'error': str(e)}, status=e.status_code)
            logger.warning(f"Bulk autofill failed for product {product.id}: {e}")
            result['error'] = str(e)
        except ValueError:
            result['error'] = 'AI returned invalid strain data'
        if result['success'] and apply:
            _apply_strain_data(request, product, result['data'])
            result['applied'] = True
        results.append(result)

    succeeded = sum(1 for r in results if r['success'])
    logger.info(f"Bulk strain autofill by {request.user.username}: {succeeded}/{len(results)} succeeded (apply={apply})")
    return Response({'results': results, 'succeeded': succeeded, 'failed': len(results) - succeeded})


@api_view(['GET'])
@permission_classes([IsVendorAdmin])
def conversation_list(request):
    vendor = get_request_vendor(request)
    conversations = (AIConversation.objects.filter(vendor=vendor).select_related('agent')
                     .annotate(message_count=Count('messages')))
    try:
        page_id = parse_id(request.query_params.get('page'), 'page', allow_none=True)
    except ValueError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    if page_id:
        conversations = conversations.filter(page_id=page_id)
    return Response(AIConversationSerializer(conversations, many=True).data)


@api_view(['GET', 'DELETE'])
@permission_classes([IsVendorAdmin])
def conversation_detail(request, pk):
    vendor = get_request_vendor(request)
    conversation = get_object_or_404(AIConversation.objects.select_related('agent'), pk=pk, vendor=vendor)
    if request.method == 'DELETE':
        conversation.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)
    data = AIConversationSerializer(conversation).data
    data['messages'] = AIMessageSerializer(conversation.messages.all(), many=True).data
    return Response(data)
