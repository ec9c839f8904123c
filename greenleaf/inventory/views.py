import logging
from decimal import Decimal
from django.db import transaction
from django.db.models import F
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from greenleaf.catalog.models import Product
from greenleaf.core.cache_signals import suspend_cache_signals
from greenleaf.core.model_cache import invalidate_storefront_products_cache
from greenleaf.core.exceptions import validation_error_response
from greenleaf.core.permissions import IsVendorMember, get_request_vendor
from greenleaf.core.utils import create_audit_log, parse_decimal, parse_id
from greenleaf.locations.models import Location
from .models import Inventory, InventoryTransaction
from .serializers import InventorySerializer, InventoryTransactionSerializer
from .utils import InventoryError, adjust_inventory, transfer_inventory, set_inventory_quantity

logger = logging.getLogger('greenleaf.inventory')

BULK_OPERATIONS = ('zero_out', 'audit', 'transfer')


@api_view(['GET'])
@permission_classes([IsVendorMember])
def inventory_list(request):
    """List inventory rows for the vendor, filterable by location, product and low stock"""
    try:
        vendor = get_request_vendor(request)
        queryset = Inventory.objects.filter(vendor=vendor).select_related('product', 'location')

        location_id = parse_id(request.query_params.get('location'), 'location', allow_none=True)
        if location_id:
            queryset = queryset.filter(location_id=location_id)
        product_id = parse_id(request.query_params.get('product'), 'product', allow_none=True)
        if product_id:
            queryset = queryset.filter(product_id=product_id)
        if request.query_params.get('low_stock') == 'true':
            queryset = queryset.filter(quantity__lte=F('reorder_point'))
        if request.query_params.get('in_stock') == 'true':
            queryset = queryset.filter(quantity__gt=0)

        queryset = queryset.order_by('product__name', 'location__name')
        return Response(InventorySerializer(queryset, many=True).data)
    except ValueError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    except Exception as e:
        logger.error(f"Unexpected error in inventory_list: {str(e)}", exc_info=True)
        return Response({'error': 'An unexpected error occurred'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['PATCH'])
@permission_classes([IsVendorMember])
def inventory_detail(request, pk):
    """Update reorder point / reserved quantity of an inventory row. Quantity changes go through adjust."""
    vendor = get_request_vendor(request)
    inventory = get_object_or_404(Inventory, pk=pk, vendor=vendor)
    serializer = InventorySerializer(inventory, data=request.data, partial=True)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)
    serializer.save()
    return Response(serializer.data)


@api_view(['POST'])
@permission_classes([IsVendorMember])
def inventory_adjust(request):
    """
    Adjust stock for a product at a location.

    Body: productId, adjustment (signed), locationId (optional, defaults to the
    primary location), reason (optional).
    """
    vendor = get_request_vendor(request)
    product_id = request.data.get('productId')
    raw_adjustment = request.data.get('adjustment')
    if not product_id or raw_adjustment in (None, ''):
        return Response({'error': 'Missing required fields: productId, adjustment'}, status=status.HTTP_400_BAD_REQUEST)
    try:
        adjustment = parse_decimal(raw_adjustment, 'adjustment')
        product_id = parse_id(product_id, 'productId')
        location_id = parse_id(request.data.get('locationId'), 'locationId', allow_none=True)
    except ValueError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    if adjustment == 0:
        return Response({'error': 'Adjustment cannot be 0'}, status=status.HTTP_400_BAD_REQUEST)

    product = get_object_or_404(Product, pk=product_id, vendor=vendor)
    location = get_object_or_404(Location, pk=location_id, vendor=vendor) if location_id else None

    try:
        reason = request.data.get('reason', '')
        logger.info(f"User {request.user.username} adjusting {product.name} by {adjustment}")
        result = adjust_inventory(vendor, product, adjustment, location=location, reason=reason, user=request.user)

        create_audit_log(
            request=request,
            action='inventory_adjust',
            model_name='Inventory',
            object_id=result['inventory_id'],
            object_name=product.name,
            object_reference=product.sku,
            changes={
                'location_id': result['location_id'],
                'previous_quantity': str(result['previous_quantity']),
                'new_quantity': str(result['new_quantity']),
                'reason': reason,
            },
        )
        return Response({'success': True, **result})
    except InventoryError as e:
        logger.warning(f"Inventory adjustment rejected: {e}")
        return Response({'error': str(e)}, status=e.status_code)
    except Exception as e:
        logger.error(f"Unexpected error in inventory_adjust: {str(e)}", exc_info=True)
        return Response({'error': 'An unexpected error occurred'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['POST'])
@permission_classes([IsVendorMember])
def inventory_transfer(request):
    """Move stock from one inventory row to another location. Body: inventoryId, toLocationId, quantity."""
    vendor = get_request_vendor(request)
    if not request.data.get('inventoryId') or not request.data.get('toLocationId'):
        return Response({'error': 'Missing required fields: inventoryId, toLocationId, quantity'},
                        status=status.HTTP_400_BAD_REQUEST)
    try:
        inventory_id = parse_id(request.data.get('inventoryId'), 'inventoryId')
        to_location_id = parse_id(request.data.get('toLocationId'), 'toLocationId')
    except ValueError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    inventory = get_object_or_404(Inventory.objects.select_related('product', 'location'), pk=inventory_id, vendor=vendor)
    to_location = get_object_or_404(Location, pk=to_location_id, vendor=vendor)
    try:
        quantity = parse_decimal(request.data.get('quantity'), 'quantity')
        result = transfer_inventory(inventory, to_location, quantity, user=request.user,
                                    reason=request.data.get('reason', ''))
    except ValueError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    except InventoryError as e:
        logger.warning(f"Inventory transfer rejected: {e}")
        return Response({'error': str(e)}, status=e.status_code)
    except Exception as e:
        logger.error(f"Unexpected error in inventory_transfer: {str(e)}", exc_info=True)
        return Response({'error': 'An unexpected error occurred'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    create_audit_log(request=request, action='inventory_transfer', model_name='Inventory', object_id=inventory.id,
                     object_name=inventory.product.name, object_reference=result['reference'],
                     changes={'quantity': str(quantity), 'from': inventory.location_id, 'to': to_location.id})
    return Response({'success': True, **result})


def _run_bulk_item(vendor, operation, item, user):
    inventory = Inventory.objects.select_related('product', 'location').get(pk=item.get('inventoryId'), vendor=vendor)
    if operation == 'zero_out':
        set_inventory_quantity(inventory, Decimal('0'), 'zero_out', user=user, reason=item.get('reason') or 'Bulk zero out')
    elif operation == 'audit':
        if item.get('newQuantity') in (None, ''):
            raise InventoryError('newQuantity is required for audit')
        new_quantity = parse_decimal(item.get('newQuantity'), 'newQuantity')
        set_inventory_quantity(inventory, new_quantity, 'audit', user=user, reason=item.get('reason') or 'Inventory audit')
    else:
        if not item.get('toLocationId'):
            raise InventoryError('toLocationId is required for transfer')
        quantity = parse_decimal(item.get('transferQuantity'), 'transferQuantity')
        try:
            to_location = Location.objects.get(pk=item.get('toLocationId'), vendor=vendor)
        except Location.DoesNotExist:
            raise InventoryError('Destination location not found')
        transfer_inventory(inventory, to_location, quantity, user=user, reason=item.get('reason', ''))
    return inventory


@api_view(['POST'])
@permission_classes([IsVendorMember])
def inventory_bulk_operations(request):
    """
    Apply one operation to many inventory rows.

    Body: operation (zero_out | audit | transfer), items: [{inventoryId, newQuantity?,
    toLocationId?, transferQuantity?}]. Each item commits or fails on its own.
    """
    vendor = get_request_vendor(request)
    operation = request.data.get('operation')
    items = request.data.get('items')
    if not operation or not isinstance(items, list) or not items:
        return Response({'error': 'Missing required fields: operation, items'}, status=status.HTTP_400_BAD_REQUEST)
    if operation not in BULK_OPERATIONS:
        return Response({'error': f'Invalid operation: {operation}'}, status=status.HTTP_400_BAD_REQUEST)

    logger.info(f"User {request.user.username} running bulk {operation} on {len(items)} items")
    results = {'success': 0, 'failed': 0, 'errors': []}
    touched_products = set()

    with suspend_cache_signals():
        for item in items:
            item = item if isinstance(item, dict) else {}
            try:
                with transaction.atomic():
                    inventory = _run_bulk_item(vendor, operation, item, request.user)
                touched_products.add(inventory.product_id)
                results['success'] += 1
            except Inventory.DoesNotExist:
                results['failed'] += 1
                results['errors'].append({'inventory_id': item.get('inventoryId'), 'error': 'Inventory not found'})
            except (InventoryError, ValueError) as e:
                results['failed'] += 1
                results['errors'].append({'inventory_id': item.get('inventoryId'), 'error': str(e)})
            except Exception as e:
                logger.error(f"Bulk {operation} failed for inventory {item.get('inventoryId')}: {str(e)}", exc_info=True)
                results['failed'] += 1
                results['errors'].append({'inventory_id': item.get('inventoryId'), 'error': 'Unexpected error'})

    invalidate_storefront_products_cache(vendor.id)
    if results['success']:
        create_audit_log(request=request, action='inventory_bulk', model_name='Inventory', object_id=operation,
                         object_name=f"Bulk {operation}",
                         changes={'success': results['success'], 'failed': results['failed'],
                                  'products': sorted(touched_products)})
    return Response(results)


@api_view(['GET'])
@permission_classes([IsVendorMember])
def inventory_transaction_list(request):
    """Stock movement ledger, newest first"""
    vendor = get_request_vendor(request)
    queryset = InventoryTransaction.objects.filter(vendor=vendor).select_related('product', 'location', 'performed_by')
    for param, field in (('transaction_type', 'transaction_type'), ('reference', 'reference_id')):
        value = request.query_params.get(param)
        if value:
            queryset = queryset.filter(**{field: value})
    try:
        for param, field in (('product', 'product_id'), ('location', 'location_id')):
            value = parse_id(request.query_params.get(param), param, allow_none=True)
            if value:
                queryset = queryset.filter(**{field: value})
    except ValueError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    try:
        limit = min(int(request.query_params.get('limit', 100)), 1000)
    except ValueError:
        return Response({'error': 'limit must be an integer'}, status=status.HTTP_400_BAD_REQUEST)
    return Response(InventoryTransactionSerializer(queryset[:limit], many=True).data)
