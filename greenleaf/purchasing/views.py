import logging
from django.db.models import Q
from django.shortcuts import get_object_or_404
from django.utils.dateparse import parse_date
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from greenleaf.catalog.models import Product
from greenleaf.core.exceptions import validation_error_response
from greenleaf.core.permissions import IsVendorMember, get_request_vendor
from greenleaf.core.utils import create_audit_log, parse_decimal, parse_id
from greenleaf.locations.models import Location
from .models import Supplier, PurchaseOrder
from .serializers import SupplierSerializer, PurchaseOrderSerializer, PurchaseOrderListSerializer, PurchaseReceiptSerializer
from .utils import PurchasingError, create_purchase_order, change_purchase_order_status, receive_purchase_order

logger = logging.getLogger('greenleaf.purchasing')


def _admin_only(request, action):
    if not request.user.is_vendor_admin:
        return Response({'error': f'Only vendor administrators can {action}'}, status=status.HTTP_403_FORBIDDEN)
    return None


def _parse_delivery_date(value):
    if value in (None, ''):
        return None
    try:
        parsed = parse_date(str(value))
    except ValueError:
        parsed = None
    if parsed is None:
        raise ValueError('expectedDeliveryDate must be YYYY-MM-DD')
    return parsed


# ==================== SUPPLIERS ====================

@api_view(['GET', 'POST'])
@permission_classes([IsVendorMember])
def supplier_list_create(request):
    """List suppliers (active=true, search) or create one (vendor admin)"""
    vendor = get_request_vendor(request)
    if request.method == 'GET':
        suppliers = Supplier.objects.filter(vendor=vendor)
        if request.query_params.get('active') == 'true':
            suppliers = suppliers.filter(is_active=True)
        search = request.query_params.get('search', '').strip()
        if search:
            suppliers = suppliers.filter(Q(name__icontains=search) | Q(company__icontains=search) |
                                         Q(contact_name__icontains=search) | Q(email__icontains=search))
        return Response(SupplierSerializer(suppliers, many=True).data)

    denied = _admin_only(request, 'add suppliers')
    if denied:
        return denied
    serializer = SupplierSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)
    supplier = serializer.save(vendor=vendor)
    logger.info(f"Supplier '{supplier.name}' created by {request.user.username}")
    create_audit_log(request=request, action='create', model_name='Supplier', object_id=supplier.id,
                     object_name=supplier.name)
    return Response(SupplierSerializer(supplier).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsVendorMember])
def supplier_detail(request, pk):
    """DELETE deactivates the supplier; its purchase history is kept."""
    vendor = get_request_vendor(request)
    supplier = get_object_or_404(Supplier, pk=pk, vendor=vendor)
    if request.method == 'GET':
        return Response(SupplierSerializer(supplier).data)

    denied = _admin_only(request, 'modify suppliers')
    if denied:
        return denied

    if request.method == 'PATCH':
        serializer = SupplierSerializer(supplier, data=request.data, partial=True)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)
        serializer.save()
        return Response(serializer.data)

    supplier.is_active = False
    supplier.save(update_fields=['is_active', 'updated_at'])
    logger.info(f"Supplier {supplier.id} deactivated by {request.user.username}")
    create_audit_log(request=request, action='delete', model_name='Supplier', object_id=supplier.id,
                     object_name=supplier.name, changes={'is_active': False})
    return Response(status=status.HTTP_204_NO_CONTENT)


# ==================== PURCHASE ORDERS ====================

def _parse_order_items(vendor, raw_items):
    """Resolve [{productId, quantity, unitCost}] into products. Raises ValueError on bad input."""
    if not isinstance(raw_items, list) or not raw_items:
        raise ValueError('A purchase order needs at least one item')
    if not all(isinstance(item, dict) and item.get('productId') for item in raw_items):
        raise ValueError('Each item needs a productId')
    product_ids = [parse_id(item['productId'], 'productId') for item in raw_items]
    products = {p.id: p for p in Product.objects.filter(vendor=vendor, pk__in=product_ids)}

    items = []
    for raw, product_id in zip(raw_items, product_ids):
        product = products.get(product_id)
        if product is None:
            raise ValueError(f'Product not found: {product_id}')
        unit_cost = raw.get('unitCost')
        items.append({
            'product': product,
            'quantity': parse_decimal(raw.get('quantity'), 'quantity'),
            'unit_cost': (product.cost_price or 0) if unit_cost in (None, '') else parse_decimal(unit_cost, 'unitCost'),
        })
    return items


@api_view(['GET', 'POST'])
@permission_classes([IsVendorMember])
def purchase_order_list_create(request):
    """
    GET: purchase orders, filterable by status, supplier and location.
    POST (vendor admin): create a draft.

    Body: supplierId, locationId, items [{productId, quantity, unitCost?}],
    expectedDeliveryDate? (YYYY-MM-DD), notes?. unitCost defaults to the
    product's cost price.
    """
    vendor = get_request_vendor(request)
    if request.method == 'GET':
        orders = (PurchaseOrder.objects.filter(vendor=vendor).select_related('supplier', 'location')
                  .prefetch_related('items'))
        if request.query_params.get('status'):
            orders = orders.filter(status=request.query_params['status'])
        try:
            for param in ('supplier', 'location'):
                value = parse_id(request.query_params.get(param), param, allow_none=True)
                if value:
                    orders = orders.filter(**{param: value})
        except ValueError as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(PurchaseOrderListSerializer(orders[:500], many=True).data)

    denied = _admin_only(request, 'create purchase orders')
    if denied:
        return denied
    data = request.data
    if not data.get('supplierId') or not data.get('locationId'):
        return Response({'error': 'Missing required fields: supplierId, locationId'}, status=status.HTTP_400_BAD_REQUEST)
    try:
        supplier_id = parse_id(data.get('supplierId'), 'supplierId')
        location_id = parse_id(data.get('locationId'), 'locationId')
    except ValueError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    supplier = get_object_or_404(Supplier, pk=supplier_id, vendor=vendor)
    location = get_object_or_404(Location, pk=location_id, vendor=vendor)

    try:
        order = create_purchase_order(
            vendor=vendor,
            supplier=supplier,
            location=location,
            items=_parse_order_items(vendor, data.get('items')),
            user=request.user,
            expected_delivery_date=_parse_delivery_date(data.get('expectedDeliveryDate')),
            notes=data.get('notes', ''),
        )
    except ValueError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    except PurchasingError as e:
        logger.warning(f"Purchase order rejected for {request.user.username}: {e}")
        return Response({'error': str(e)}, status=e.status_code)
    except Exception as e:
        logger.error(f"Unexpected error in purchase_order_list_create: {str(e)}", exc_info=True)
        return Response({'error': 'An unexpected error occurred'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    create_audit_log(request=request, action='create', model_name='PurchaseOrder', object_id=order.id,
                     object_name=supplier.name, object_reference=order.po_number,
                     changes={'items': order.items.count(), 'location_id': location.id})
    return Response(PurchaseOrderSerializer(order).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH'])
@permission_classes([IsVendorMember])
def purchase_order_detail(request, pk):
    """PATCH (vendor admin) accepts status (submitted | cancelled), notes and expectedDeliveryDate."""
    vendor = get_request_vendor(request)
    order = get_object_or_404(
        PurchaseOrder.objects.select_related('supplier', 'location', 'created_by')
        .prefetch_related('items__receipts__received_by'),
        pk=pk, vendor=vendor)
    if request.method == 'GET':
        return Response(PurchaseOrderSerializer(order).data)

    denied = _admin_only(request, 'modify purchase orders')
    if denied:
        return denied
    new_status = request.data.get('status')
    try:
        if 'expectedDeliveryDate' in request.data:
            delivery_date = _parse_delivery_date(request.data.get('expectedDeliveryDate'))
        previous = order.status
        if new_status:
            order, previous = change_purchase_order_status(order, new_status, request.user)
        update_fields = []
        if 'notes' in request.data:
            order.notes = request.data.get('notes') or ''
            update_fields.append('notes')
        if 'expectedDeliveryDate' in request.data:
            order.expected_delivery_date = delivery_date
            update_fields.append('expected_delivery_date')
        if update_fields:
            order.save(update_fields=update_fields + ['updated_at'])
    except ValueError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    except PurchasingError as e:
        return Response({'error': str(e)}, status=e.status_code)
    except Exception as e:
        logger.error(f"Unexpected error in purchase_order_detail: {str(e)}", exc_info=True)
        return Response({'error': 'An unexpected error occurred'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    if previous != order.status:
        create_audit_log(request=request, action='po_status', model_name='PurchaseOrder', object_id=order.id,
                         object_reference=order.po_number, changes={'status': [previous, order.status]})
    order = PurchaseOrder.objects.select_related('supplier', 'location', 'created_by').prefetch_related(
        'items__receipts__received_by').get(pk=order.pk)
    return Response(PurchaseOrderSerializer(order).data)


@api_view(['POST'])
@permission_classes([IsVendorMember])
def purchase_order_receive(request, pk):
    """
    Book a delivery.

    Body: items [{itemId, quantityReceived, condition? (good | damaged | expired |
    rejected), notes? (required unless good)}]. Good stock is added to the
    order's location.
    """
    vendor = get_request_vendor(request)
    order = get_object_or_404(PurchaseOrder, pk=pk, vendor=vendor)
    raw_items = request.data.get('items')
    if not isinstance(raw_items, list) or not raw_items:
        return Response({'error': 'Missing required field: items'}, status=status.HTTP_400_BAD_REQUEST)

    try:
        receipts = []
        for raw in raw_items:
            if not isinstance(raw, dict):
                raise ValueError('Each item needs an itemId')
            receipts.append({
                'item_id': parse_id(raw.get('itemId'), 'itemId'),
                'quantity': parse_decimal(raw.get('quantityReceived'), 'quantityReceived'),
                'condition': raw.get('condition') or 'good',
                'notes': raw.get('notes', ''),
            })
        result = receive_purchase_order(order, receipts, request.user)
    except ValueError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    except PurchasingError as e:
        logger.warning(f"Receiving rejected on {order.po_number}: {e}")
        return Response({'error': str(e)}, status=e.status_code)
    except Exception as e:
        logger.error(f"Unexpected error in purchase_order_receive: {str(e)}", exc_info=True)
        return Response({'error': 'An unexpected error occurred'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    order = result['order']
    create_audit_log(request=request, action='po_receive', model_name='PurchaseOrder', object_id=order.id,
                     object_reference=order.po_number,
                     changes={'lines': len(result['receipts']), 'stocked': str(result['stocked']),
                              'status': order.status})
    order = PurchaseOrder.objects.select_related('supplier', 'location', 'created_by').prefetch_related(
        'items__receipts__received_by').get(pk=order.pk)
    return Response({
        'purchase_order': PurchaseOrderSerializer(order).data,
        'receipts': PurchaseReceiptSerializer(result['receipts'], many=True).data,
        'stocked': result['stocked'],
    })
