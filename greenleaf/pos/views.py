import logging
from django.db.models import ProtectedError
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from greenleaf.catalog.models import Product
from greenleaf.core.exceptions import DomainError, validation_error_response
from greenleaf.core.permissions import IsVendorMember, get_request_vendor
from greenleaf.core.utils import create_audit_log, parse_decimal, parse_id
from greenleaf.customers.models import Customer
from greenleaf.locations.models import Location
from greenleaf.loyalty.serializers import LoyaltyTransactionSerializer
from greenleaf.orders.serializers import OrderSerializer
from .models import POSRegister, POSSession, POSTransaction
from .serializers import (
    POSRegisterSerializer, POSSessionSerializer, CashMovementSerializer, POSTransactionSerializer,
)
from .utils import (
    get_or_create_session, close_session, record_cash_movement, session_summary,
    create_pos_sale, void_pos_transaction,
)

logger = logging.getLogger('greenleaf.pos')


# ==================== REGISTERS ====================

@api_view(['GET', 'POST'])
@permission_classes([IsVendorMember])
def register_list_create(request):
    """List registers (optionally by location) or create one (vendor admin)"""
    vendor = get_request_vendor(request)
    if request.method == 'GET':
        registers = POSRegister.objects.filter(vendor=vendor).select_related('location')
        try:
            location_id = parse_id(request.query_params.get('location'), 'location', allow_none=True)
        except ValueError as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        if location_id:
            registers = registers.filter(location_id=location_id)
        if request.query_params.get('active') == 'true':
            registers = registers.filter(is_active=True)
        return Response(POSRegisterSerializer(registers, many=True).data)

    if not request.user.is_vendor_admin:
        return Response({'error': 'Only vendor administrators can create registers'}, status=status.HTTP_403_FORBIDDEN)
    serializer = POSRegisterSerializer(data=request.data, context={'vendor': vendor})
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)
    register = serializer.save(vendor=vendor)
    logger.info(f"Register '{register.name}' created at {register.location.name} by {request.user.username}")
    create_audit_log(request=request, action='create', model_name='POSRegister', object_id=register.id,
                     object_name=register.name)
    return Response(POSRegisterSerializer(register).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsVendorMember])
def register_detail(request, pk):
    vendor = get_request_vendor(request)
    register = get_object_or_404(POSRegister.objects.select_related('location'), pk=pk, vendor=vendor)
    if request.method == 'GET':
        return Response(POSRegisterSerializer(register).data)

    if not request.user.is_vendor_admin:
        return Response({'error': 'Only vendor administrators can modify registers'}, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'PATCH':
        serializer = POSRegisterSerializer(register, data=request.data, partial=True, context={'vendor': vendor})
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)
        serializer.save()
        return Response(serializer.data)

    if register.sessions.filter(status='open').exists():
        return Response({'error': 'Close the open session before removing this register'},
                        status=status.HTTP_400_BAD_REQUEST)
    try:
        register.delete()
    except ProtectedError:
        # Registers with session history are kept for reporting
        register.is_active = False
        register.save(update_fields=['is_active', 'updated_at'])
        logger.info(f"Register {register.id} has session history; deactivated instead of deleted")
        return Response(POSRegisterSerializer(register).data)
    create_audit_log(request=request, action='delete', model_name='POSRegister', object_id=pk, object_name=register.name)
    return Response(status=status.HTTP_204_NO_CONTENT)


# ==================== SESSIONS ====================

@api_view(['GET'])
@permission_classes([IsVendorMember])
def session_list(request):
    vendor = get_request_vendor(request)
    sessions = POSSession.objects.filter(vendor=vendor).select_related('register', 'location', 'opened_by', 'closed_by')
    if request.query_params.get('status'):
        sessions = sessions.filter(status=request.query_params['status'])
    try:
        for param in ('register', 'location'):
            value = parse_id(request.query_params.get(param), param, allow_none=True)
            if value:
                sessions = sessions.filter(**{param: value})
    except ValueError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    try:
        limit = min(int(request.query_params.get('limit', 50)), 500)
    except ValueError:
        return Response({'error': 'limit must be an integer'}, status=status.HTTP_400_BAD_REQUEST)
    return Response(POSSessionSerializer(sessions[:limit], many=True).data)


@api_view(['POST'])
@permission_classes([IsVendorMember])
def session_open(request):
    """
    Open a session on a register, or return the one already open.

    Body: registerId, openingCash, openingNotes (optional).
    Returns 201 when a session was created and 200 when an existing one was returned.
    """
    vendor = get_request_vendor(request)
    if not request.data.get('registerId'):
        return Response({'error': 'Missing required field: registerId'}, status=status.HTTP_400_BAD_REQUEST)
    try:
        register_id = parse_id(request.data.get('registerId'), 'registerId')
    except ValueError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    register = get_object_or_404(POSRegister.objects.select_related('location'), pk=register_id, vendor=vendor)
    try:
        opening_cash = parse_decimal(request.data.get('openingCash', 0), 'openingCash')
        session, created = get_or_create_session(register, request.user, opening_cash,
                                                 request.data.get('openingNotes', ''))
    except ValueError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    except DomainError as e:
        return Response({'error': str(e)}, status=e.status_code)
    except Exception as e:
        logger.error(f"Unexpected error in session_open: {str(e)}", exc_info=True)
        return Response({'error': 'An unexpected error occurred'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    if created:
        create_audit_log(request=request, action='session_open', model_name='POSSession', object_id=session.id,
                         object_name=register.name, object_reference=session.session_number,
                         changes={'opening_cash': str(session.opening_cash)})
    return Response({'session': POSSessionSerializer(session).data, 'created': created},
                    status=status.HTTP_201_CREATED if created else status.HTTP_200_OK)


@api_view(['GET'])
@permission_classes([IsVendorMember])
def session_current(request):
    """The open session for ?register=, or null"""
    vendor = get_request_vendor(request)
    if not request.query_params.get('register'):
        return Response({'error': 'register parameter is required'}, status=status.HTTP_400_BAD_REQUEST)
    try:
        register_id = parse_id(request.query_params.get('register'), 'register')
    except ValueError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    register = get_object_or_404(POSRegister, pk=register_id, vendor=vendor)
    session = register.sessions.filter(status='open').select_related('register', 'location', 'opened_by').first()
    return Response({'session': POSSessionSerializer(session).data if session else None})


@api_view(['GET'])
@permission_classes([IsVendorMember])
def session_detail(request, pk):
    vendor = get_request_vendor(request)
    session = get_object_or_404(POSSession.objects.select_related('register', 'location', 'opened_by', 'closed_by'),
                                pk=pk, vendor=vendor)
    data = POSSessionSerializer(session).data
    data['cash_movements'] = CashMovementSerializer(session.cash_movements.select_related('performed_by'), many=True).data
    data['transactions'] = POSTransactionSerializer(
        session.transactions.select_related('order', 'order__customer', 'created_by'), many=True).data
    return Response(data)


@api_view(['POST'])
@permission_classes([IsVendorMember])
def session_close(request, pk):
    """Body: closingCash, closingNotes (optional)"""
    vendor = get_request_vendor(request)
    session = get_object_or_404(POSSession, pk=pk, vendor=vendor)
    try:
        closing_cash = parse_decimal(request.data.get('closingCash'), 'closingCash')
        session = close_session(session, request.user, closing_cash, request.data.get('closingNotes', ''))
    except ValueError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    except DomainError as e:
        return Response({'error': str(e)}, status=e.status_code)
    except Exception as e:
        logger.error(f"Unexpected error in session_close: {str(e)}", exc_info=True)
        return Response({'error': 'An unexpected error occurred'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    create_audit_log(request=request, action='session_close', model_name='POSSession', object_id=session.id,
                     object_reference=session.session_number,
                     changes={'closing_cash': str(session.closing_cash), 'expected_cash': str(session.expected_cash),
                              'cash_difference': str(session.cash_difference)})
    return Response(POSSessionSerializer(session).data)


@api_view(['GET', 'POST'])
@permission_classes([IsVendorMember])
def session_cash_movements(request, pk):
    """List drawer movements, or record one. Body: movementType, amount, reason."""
    vendor = get_request_vendor(request)
    session = get_object_or_404(POSSession, pk=pk, vendor=vendor)
    if request.method == 'GET':
        movements = session.cash_movements.select_related('performed_by')
        return Response(CashMovementSerializer(movements, many=True).data)

    movement_type = request.data.get('movementType')
    try:
        amount = parse_decimal(request.data.get('amount'), 'amount', allow_none=True)
        movement = record_cash_movement(session, movement_type, amount, request.data.get('reason'), request.user)
    except ValueError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    except DomainError as e:
        return Response({'error': str(e)}, status=e.status_code)
    except Exception as e:
        logger.error(f"Unexpected error in session_cash_movements: {str(e)}", exc_info=True)
        return Response({'error': 'An unexpected error occurred'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    create_audit_log(request=request, action='cash_movement', model_name='CashMovement', object_id=movement.id,
                     object_reference=session.session_number,
                     changes={'movement_type': movement.movement_type, 'amount': str(movement.amount),
                              'reason': movement.reason})
    return Response(CashMovementSerializer(movement).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsVendorMember])
def session_summary_view(request, pk):
    vendor = get_request_vendor(request)
    session = get_object_or_404(POSSession, pk=pk, vendor=vendor)
    return Response(session_summary(session))


# ==================== SALES ====================

def _parse_sale_items(vendor, raw_items):
    """Resolve [{productId, quantity, unitPrice}] into products. Raises ValueError on bad input."""
    if not isinstance(raw_items, list) or not raw_items:
        raise ValueError('No items in sale')
    if not all(isinstance(item, dict) and item.get('productId') for item in raw_items):
        raise ValueError('Each item needs a productId')
    product_ids = [parse_id(item['productId'], 'productId') for item in raw_items]
    products = {p.id: p for p in Product.objects.filter(vendor=vendor, pk__in=product_ids)}

    items = []
    for raw, product_id in zip(raw_items, product_ids):
        product = products.get(product_id)
        if product is None:
            raise ValueError(f"Product not found: {raw['productId']}")
        if product.status == 'archived':
            raise ValueError(f'Product is not available: {product.name}')
        unit_price = raw.get('unitPrice')
        items.append({
            'product': product,
            'quantity': parse_decimal(raw.get('quantity'), 'quantity'),
            'unit_price': product.price if unit_price in (None, '') else parse_decimal(unit_price, 'unitPrice'),
        })
    return items


@api_view(['GET', 'POST'])
@permission_classes([IsVendorMember])
def sale_list_create(request):
    """
    GET: POS transactions, filterable by session, location, status and date.
    POST: ring up a sale.

    Body: locationId, items [{productId, quantity, unitPrice}], total, paymentMethod
    (cash | card | split), sessionId?, customerId?, taxAmount?, discountAmount?,
    cashTendered?, cashAmount? (split only).
    """
    vendor = get_request_vendor(request)
    if request.method == 'GET':
        transactions = POSTransaction.objects.filter(vendor=vendor).select_related('order', 'order__customer', 'created_by')
        if request.query_params.get('status'):
            transactions = transactions.filter(status=request.query_params['status'])
        if request.query_params.get('today') == 'true':
            transactions = transactions.filter(created_at__date=timezone.localdate())
        try:
            for param in ('session', 'location'):
                value = parse_id(request.query_params.get(param), param, allow_none=True)
                if value:
                    transactions = transactions.filter(**{param: value})
        except ValueError as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        try:
            limit = min(int(request.query_params.get('limit', 100)), 1000)
        except ValueError:
            return Response({'error': 'limit must be an integer'}, status=status.HTTP_400_BAD_REQUEST)
        return Response(POSTransactionSerializer(transactions[:limit], many=True).data)

    data = request.data
    if not data.get('locationId'):
        return Response({'error': 'Missing required field: locationId'}, status=status.HTTP_400_BAD_REQUEST)
    try:
        location_id = parse_id(data.get('locationId'), 'locationId')
        session_id = parse_id(data.get('sessionId'), 'sessionId', allow_none=True)
        customer_id = parse_id(data.get('customerId'), 'customerId', allow_none=True)
    except ValueError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    location = get_object_or_404(Location, pk=location_id, vendor=vendor)
    if not location.is_active or not location.pos_enabled:
        return Response({'error': 'POS is not enabled for this location'}, status=status.HTTP_400_BAD_REQUEST)
    session = get_object_or_404(POSSession, pk=session_id, vendor=vendor) if session_id else None
    customer = get_object_or_404(Customer, pk=customer_id, vendor=vendor) if customer_id else None

    try:
        items = _parse_sale_items(vendor, data.get('items'))
        result = create_pos_sale(
            vendor=vendor,
            user=request.user,
            location=location,
            items=items,
            total=parse_decimal(data.get('total'), 'total'),
            session=session,
            customer=customer,
            payment_method=data.get('paymentMethod') or 'cash',
            tax_amount=parse_decimal(data.get('taxAmount'), 'taxAmount', allow_none=True),
            discount_amount=parse_decimal(data.get('discountAmount', 0), 'discountAmount'),
            cash_tendered=parse_decimal(data.get('cashTendered'), 'cashTendered', allow_none=True),
            cash_amount=parse_decimal(data.get('cashAmount'), 'cashAmount', allow_none=True),
        )
    except ValueError as e:
        logger.warning(f"POS sale rejected for {request.user.username}: {e}")
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    except DomainError as e:
        logger.warning(f"POS sale rejected for {request.user.username}: {e}")
        return Response({'error': str(e)}, status=e.status_code)
    except Exception as e:
        logger.error(f"Unexpected error in sale_list_create: {str(e)}", exc_info=True)
        return Response({'error': 'An unexpected error occurred'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    order = result['order']
    create_audit_log(request=request, action='sale_create', model_name='Order', object_id=order.id,
                     object_name=order.order_number, object_reference=result['transaction'].transaction_number,
                     changes={'total': str(order.total_amount), 'payment_method': order.payment_method,
                              'items': len(items)})
    return Response({
        'order': OrderSerializer(order).data,
        'transaction': POSTransactionSerializer(result['transaction']).data,
        'loyalty': LoyaltyTransactionSerializer(result['loyalty']).data if result['loyalty'] else None,
    }, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsVendorMember])
def sale_void(request):
    """Body: transactionId, reason"""
    vendor = get_request_vendor(request)
    reason = request.data.get('reason')
    if not request.data.get('transactionId') or not reason:
        return Response({'error': 'Missing required fields: transactionId, reason'}, status=status.HTTP_400_BAD_REQUEST)
    try:
        transaction_id = parse_id(request.data.get('transactionId'), 'transactionId')
    except ValueError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    pos_transaction = get_object_or_404(POSTransaction, pk=transaction_id, vendor=vendor)
    try:
        result = void_pos_transaction(pos_transaction, request.user, reason)
    except DomainError as e:
        logger.warning(f"Void rejected for {pos_transaction.transaction_number}: {e}")
        return Response({'error': str(e)}, status=e.status_code)
    except Exception as e:
        logger.error(f"Unexpected error in sale_void: {str(e)}", exc_info=True)
        return Response({'error': 'An unexpected error occurred'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    voided = result['transaction']
    create_audit_log(request=request, action='sale_void', model_name='POSTransaction', object_id=voided.id,
                     object_name=result['order'].order_number, object_reference=voided.transaction_number,
                     changes={'reason': voided.void_reason, 'total': str(voided.total_amount)})
    return Response({
        'transaction': POSTransactionSerializer(voided).data,
        'order': OrderSerializer(result['order']).data,
        'loyalty_reversal': LoyaltyTransactionSerializer(result['loyalty_reversal']).data if result['loyalty_reversal'] else None,
    })
