import logging
from django.core.paginator import Paginator
from django.db.models import Count, ProtectedError
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from greenleaf.core.exceptions import validation_error_response
from greenleaf.core.permissions import IsVendorMember, get_request_vendor
from greenleaf.core.utils import create_audit_log, parse_id, unique_slug
from .filters import ProductFilter
from .label_generator import generate_label_image
from .models import Category, Product, ProductCOA
from .serializers import CategorySerializer, ProductSerializer, ProductListSerializer, ProductCOASerializer

logger = logging.getLogger('greenleaf.catalog')


def _admin_required(request, action):
    if request.user.is_vendor_admin:
        return None
    logger.warning(f"User {request.user.username} attempted to {action} without admin privileges")
    return Response({'error': f'Only vendor administrators can {action}'}, status=status.HTTP_403_FORBIDDEN)


# Category views
@api_view(['GET', 'POST'])
@permission_classes([IsVendorMember])
def category_list_create(request):
    """List the vendor's categories or create one"""
    try:
        vendor = get_request_vendor(request)
        if request.method == 'GET':
            categories = Category.objects.filter(vendor=vendor).annotate(product_count=Count('products'))
            if request.query_params.get('active') == 'true':
                categories = categories.filter(is_active=True)
            return Response(CategorySerializer(categories, many=True).data)

        denied = _admin_required(request, 'create categories')
        if denied:
            return denied
        serializer = CategorySerializer(data=request.data, context={'vendor': vendor})
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)
        slug = unique_slug(Category.objects.filter(vendor=vendor),
                           serializer.validated_data.get('slug') or serializer.validated_data['name'])
        category = serializer.save(vendor=vendor, slug=slug)
        logger.info(f"Category '{category.name}' created by {request.user.username}")
        return Response(CategorySerializer(category).data, status=status.HTTP_201_CREATED)
    except Exception as e:
        logger.error(f"Unexpected error in category_list_create: {str(e)}", exc_info=True)
        return Response({'error': 'An unexpected error occurred'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsVendorMember])
def category_detail(request, pk):
    """Retrieve, update or delete a category"""
    vendor = get_request_vendor(request)
    category = get_object_or_404(Category, pk=pk, vendor=vendor)
    if request.method == 'GET':
        return Response(CategorySerializer(category).data)

    denied = _admin_required(request, 'modify categories')
    if denied:
        return denied

    if request.method in ('PUT', 'PATCH'):
        old_visibility = category.field_visibility
        serializer = CategorySerializer(category, data=request.data, partial=request.method == 'PATCH',
                                        context={'vendor': vendor})
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)
        category = serializer.save()
        if old_visibility != category.field_visibility:
            create_audit_log(request=request, action='update', model_name='Category', object_id=category.id,
                             object_name=category.name,
                             changes={'field_visibility': {'old': old_visibility, 'new': category.field_visibility}})
        return Response(CategorySerializer(category).data)

    category_name = category.name
    category.delete()
    logger.info(f"Category '{category_name}' deleted by {request.user.username}")
    return Response(status=status.HTTP_204_NO_CONTENT)


# Product views
@api_view(['GET', 'POST'])
@permission_classes([IsVendorMember])
def product_list_create(request):
    """List the vendor's products (filtered, paginated) or create one"""
    try:
        vendor = get_request_vendor(request)
        if request.method == 'GET':
            queryset = Product.objects.filter(vendor=vendor).select_related('category')
            filterset = ProductFilter(request.query_params, queryset=queryset)
            if not filterset.is_valid():
                return Response({'error': 'Invalid filter parameters', 'details': filterset.errors},
                                status=status.HTTP_400_BAD_REQUEST)
            queryset = filterset.qs.order_by('name', 'id')

            try:
                page = max(int(request.query_params.get('page', 1)), 1)
                page_size = min(max(int(request.query_params.get('page_size', 50)), 1), 200)
            except ValueError:
                return Response({'error': 'page and page_size must be integers'}, status=status.HTTP_400_BAD_REQUEST)

            paginator = Paginator(queryset, page_size)
            page_obj = paginator.get_page(page)
            return Response({
                'results': ProductListSerializer(page_obj, many=True).data,
                'count': paginator.count,
                'page': page_obj.number,
                'page_size': page_size,
                'total_pages': paginator.num_pages,
            })

        denied = _admin_required(request, 'create products')
        if denied:
            return denied
        logger.info(f"User {request.user.username} creating product: {request.data.get('name')}")
        serializer = ProductSerializer(data=request.data, context={'vendor': vendor})
        if not serializer.is_valid():
            logger.warning(f"Product creation validation failed: {serializer.errors}")
            return validation_error_response(serializer.errors)
        slug = unique_slug(Product.objects.filter(vendor=vendor),
                           serializer.validated_data.get('slug') or serializer.validated_data['name'])
        product = serializer.save(vendor=vendor, slug=slug)
        create_audit_log(request=request, action='create', model_name='Product', object_id=product.id,
                         object_name=product.name, object_reference=product.sku)
        return Response(ProductSerializer(product).data, status=status.HTTP_201_CREATED)
    except Exception as e:
        logger.error(f"Unexpected error in product_list_create: {str(e)}", exc_info=True)
        return Response({'error': 'An unexpected error occurred'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsVendorMember])
def product_detail(request, pk):
    """Retrieve, update or delete a product"""
    vendor = get_request_vendor(request)
    product = get_object_or_404(Product.objects.select_related('category'), pk=pk, vendor=vendor)
    try:
        if request.method == 'GET':
            data = ProductSerializer(product).data
            data['inventory'] = [
                {
                    'location_id': inv.location_id,
                    'location_name': inv.location.name,
                    'quantity': inv.quantity,
                    'reserved_quantity': inv.reserved_quantity,
                }
                for inv in product.inventory_items.select_related('location')
            ]
            return Response(data)

        denied = _admin_required(request, 'modify products')
        if denied:
            return denied

        if request.method in ('PUT', 'PATCH'):
            old_price = product.price
            serializer = ProductSerializer(product, data=request.data, partial=request.method == 'PATCH',
                                           context={'vendor': vendor})
            if not serializer.is_valid():
                return validation_error_response(serializer.errors)
            product = serializer.save()
            if old_price != product.price:
                logger.info(f"Price of '{product.name}' changed {old_price} -> {product.price} by {request.user.username}")
                create_audit_log(request=request, action='price_change', model_name='Product', object_id=product.id,
                                 object_name=product.name, object_reference=product.sku,
                                 changes={'price': {'old': str(old_price), 'new': str(product.price)}})
            return Response(ProductSerializer(product).data)

        product_name = product.name
        try:
            product.delete()
        except ProtectedError:
            return Response({'error': 'Product is on a purchase order. Archive it instead.'},
                            status=status.HTTP_400_BAD_REQUEST)
        logger.info(f"Product '{product_name}' deleted by {request.user.username}")
        create_audit_log(request=request, action='delete', model_name='Product', object_id=pk, object_name=product_name)
        return Response(status=status.HTTP_204_NO_CONTENT)
    except Exception as e:
        logger.error(f"Unexpected error in product_detail: {str(e)}", exc_info=True)
        return Response({'error': 'An unexpected error occurred'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['GET'])
@permission_classes([IsVendorMember])
def product_label(request, pk):
    """Shelf label for a product as a base64 PNG data URL"""
    vendor = get_request_vendor(request)
    product = get_object_or_404(Product, pk=pk, vendor=vendor)
    if not product.sku:
        return Response({'error': 'Product has no SKU to encode'}, status=status.HTTP_400_BAD_REQUEST)
    try:
        image = generate_label_image(
            product_name=product.name,
            sku=product.sku,
            price=f"${product.price:.2f}",
            vendor_name=vendor.name,
            strain_type=(product.custom_fields or {}).get('strain_type'),
        )
        return Response({'product_id': product.id, 'sku': product.sku, 'image': image})
    except Exception as e:
        logger.error(f"Label generation failed for product {pk}: {str(e)}", exc_info=True)
        return Response({'error': 'Failed to generate label'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


# Certificates of analysis
@api_view(['GET', 'POST'])
@permission_classes([IsVendorMember])
def coa_list_create(request):
    """Active COAs, newest first, optionally for one product (?product=)"""
    vendor = get_request_vendor(request)
    if request.method == 'GET':
        coas = ProductCOA.objects.filter(vendor=vendor, is_active=True).select_related('product')
        try:
            product_id = parse_id(request.query_params.get('product'), 'product', allow_none=True)
        except ValueError as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        if product_id:
            coas = coas.filter(product_id=product_id)
        data = ProductCOASerializer(coas, many=True).data
        return Response({'coas': data, 'total': len(data)})

    denied = _admin_required(request, 'upload COAs')
    if denied:
        return denied
    serializer = ProductCOASerializer(data=request.data, context={'vendor': vendor})
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)
    coa = serializer.save(vendor=vendor, uploaded_by=request.user)
    logger.info(f"COA {coa.id} added to product {coa.product_id} by {request.user.username}")
    create_audit_log(request=request, action='create', model_name='ProductCOA', object_id=coa.id,
                     object_name=coa.product.name, object_reference=coa.batch_number)
    return Response(ProductCOASerializer(coa).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsVendorMember])
def coa_detail(request, pk):
    """
    PATCH can move a COA to another product or correct its details. A new
    file_url clears verification. DELETE hides the COA but keeps the record.
    """
    vendor = get_request_vendor(request)
    coa = get_object_or_404(ProductCOA.objects.select_related('product'), pk=pk, vendor=vendor, is_active=True)
    if request.method == 'GET':
        return Response(ProductCOASerializer(coa).data)

    denied = _admin_required(request, 'modify COAs')
    if denied:
        return denied

    if request.method == 'PATCH':
        old_file_url = coa.file_url
        serializer = ProductCOASerializer(coa, data=request.data, partial=True, context={'vendor': vendor})
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)
        extra = {}
        if serializer.validated_data.get('file_url', old_file_url) != old_file_url:
            extra['is_verified'] = False
        coa = serializer.save(**extra)
        create_audit_log(request=request, action='update', model_name='ProductCOA', object_id=coa.id,
                         object_name=coa.product.name, changes={'fields': sorted(serializer.validated_data)})
        return Response(ProductCOASerializer(coa).data)

    coa.is_active = False
    coa.save(update_fields=['is_active', 'updated_at'])
    logger.info(f"COA {coa.id} removed by {request.user.username}")
    create_audit_log(request=request, action='delete', model_name='ProductCOA', object_id=coa.id,
                     object_name=coa.product.name, object_reference=coa.batch_number)
    return Response(status=status.HTTP_204_NO_CONTENT)
