import logging
from decimal import Decimal
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from greenleaf.core.exceptions import validation_error_response
from greenleaf.core.permissions import IsVendorMember, get_request_vendor
from greenleaf.core.utils import create_audit_log
from greenleaf.customers.models import Customer
from .models import LoyaltyProgram, CustomerLoyalty, LoyaltyTransaction
from .serializers import LoyaltyProgramSerializer, CustomerLoyaltySerializer, LoyaltyTransactionSerializer
from .utils import LoyaltyError, get_program, adjust_points, redeem_points

logger = logging.getLogger('greenleaf.loyalty')


def _parse_points(value):
    if isinstance(value, bool):
        raise ValueError('points must be a whole number')
    points = Decimal(str(value))
    if points != points.to_integral_value():
        raise ValueError('points must be a whole number')
    return int(points)


@api_view(['GET', 'PUT', 'PATCH'])
@permission_classes([IsVendorMember])
def loyalty_program(request):
    """Read or configure the vendor's loyalty program"""
    vendor = get_request_vendor(request)
    if request.method == 'GET':
        program = get_program(vendor)
        data = LoyaltyProgramSerializer(program).data
        data['configured'] = program.pk is not None
        return Response(data)

    if not request.user.is_vendor_admin:
        return Response({'error': 'Only vendor administrators can configure loyalty'}, status=status.HTTP_403_FORBIDDEN)

    program = LoyaltyProgram.objects.filter(vendor=vendor).first()
    serializer = LoyaltyProgramSerializer(program, data=request.data,
                                          partial=request.method == 'PATCH' or program is None)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)
    program = serializer.save(vendor=vendor)
    logger.info(f"Loyalty program for {vendor.slug} updated by {request.user.username}")
    create_audit_log(request=request, action='update', model_name='LoyaltyProgram', object_id=program.id,
                     object_name=program.name, changes=dict(request.data))
    return Response(LoyaltyProgramSerializer(program).data)


@api_view(['GET'])
@permission_classes([IsVendorMember])
def customer_loyalty_detail(request, customer_id):
    """Points balance, tier and recent activity for one customer"""
    vendor = get_request_vendor(request)
    customer = get_object_or_404(Customer, pk=customer_id, vendor=vendor)
    loyalty = CustomerLoyalty.objects.filter(customer=customer).first()
    program = get_program(vendor)

    if loyalty is None:
        data = {
            'customer': customer.id,
            'customer_name': customer.full_name,
            'points_balance': 0,
            'lifetime_points': 0,
            'points_redeemed': 0,
            'tier': program.sorted_tiers()[0].get('name', 'bronze'),
        }
    else:
        data = CustomerLoyaltySerializer(loyalty).data

    data['points_value'] = (Decimal(data['points_balance']) * program.point_value).quantize(Decimal('0.01'))
    data['can_redeem'] = program.is_active and data['points_balance'] >= program.min_redemption_points
    return Response(data)


@api_view(['POST'])
@permission_classes([IsVendorMember])
def customer_loyalty_adjust(request, customer_id):
    """Manually add or remove points. Body: points (signed integer), reason."""
    vendor = get_request_vendor(request)
    customer = get_object_or_404(Customer, pk=customer_id, vendor=vendor)
    if not request.user.is_vendor_admin:
        return Response({'error': 'Only vendor administrators can adjust points'}, status=status.HTTP_403_FORBIDDEN)
    reason = (request.data.get('reason') or '').strip()
    if request.data.get('points') in (None, '') or not reason:
        return Response({'error': 'Missing required fields: points, reason'}, status=status.HTTP_400_BAD_REQUEST)
    try:
        points = _parse_points(request.data.get('points'))
        loyalty_txn = adjust_points(vendor, customer, points, reason=reason)
    except (ValueError, ArithmeticError) as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    except LoyaltyError as e:
        return Response({'error': str(e)}, status=e.status_code)

    create_audit_log(request=request, action='loyalty_adjust', model_name='Customer', object_id=customer.id,
                     object_name=customer.full_name, changes={'points': points, 'reason': reason})
    return Response(LoyaltyTransactionSerializer(loyalty_txn).data, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsVendorMember])
def customer_loyalty_redeem(request, customer_id):
    """Redeem points for a discount. Body: points."""
    vendor = get_request_vendor(request)
    customer = get_object_or_404(Customer, pk=customer_id, vendor=vendor)
    if request.data.get('points') in (None, ''):
        return Response({'error': 'points is required'}, status=status.HTTP_400_BAD_REQUEST)
    try:
        points = _parse_points(request.data.get('points'))
        loyalty_txn, discount = redeem_points(vendor, customer, points)
    except (ValueError, ArithmeticError) as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    except LoyaltyError as e:
        return Response({'error': str(e)}, status=e.status_code)

    create_audit_log(request=request, action='loyalty_redeem', model_name='Customer', object_id=customer.id,
                     object_name=customer.full_name, changes={'points': points, 'discount': str(discount)})
    return Response({
        'transaction': LoyaltyTransactionSerializer(loyalty_txn).data,
        'discount_amount': discount,
        'points_balance': loyalty_txn.balance_after,
    }, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsVendorMember])
def customer_loyalty_transactions(request, customer_id):
    vendor = get_request_vendor(request)
    customer = get_object_or_404(Customer, pk=customer_id, vendor=vendor)
    transactions = LoyaltyTransaction.objects.filter(customer=customer).select_related('order')[:200]
    return Response(LoyaltyTransactionSerializer(transactions, many=True).data)
