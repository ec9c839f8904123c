import logging
from datetime import timedelta
from decimal import Decimal
from django.core.paginator import Paginator
from django.db.models import Count, Q, Sum
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from greenleaf.core.exceptions import DomainError
from greenleaf.core.permissions import IsVendorMember, get_request_vendor
from greenleaf.core.utils import create_audit_log, parse_id
from .models import Order, revenue_order_q
from .serializers import OrderListSerializer, OrderSerializer
from .utils import change_order_status

logger = logging.getLogger('greenleaf.orders')

DATE_RANGES = {
    'last_7_days': 7,
    'last_30_days': 30,
    'last_90_days': 90,
    'all_time': None,
}


def _order_stats(queryset):
    revenue_orders = queryset.filter(revenue_order_q())
    by_location = [
        {'location_id': row['location_id'], 'location_name': row['location__name'],
         'orders': row['orders'], 'revenue': row['revenue'] or Decimal('0.00')}
        for row in queryset.values('location_id', 'location__name')
        .annotate(orders=Count('id'), revenue=Sum('total_amount', filter=revenue_order_q()))
        .order_by('location__name')
    ]
    return {
        'total_orders': queryset.count(),
        'total_revenue': revenue_orders.aggregate(total=Sum('total_amount'))['total'] or Decimal('0.00'),
        'by_location': by_location,
        'by_type': {row['order_type']: row['count'] for row in queryset.values('order_type').annotate(count=Count('id')).order_by()},
        'by_status': {row['status']: row['count'] for row in queryset.values('status').annotate(count=Count('id')).order_by()},
    }


@api_view(['GET'])
@permission_classes([IsVendorMember])
def order_list(request):
    """
    Vendor orders, newest first.

    Filters: location, order_type, status, date_range (last_7_days | last_30_days |
    last_90_days | all_time), search (order number or customer). Paginated with page
    and per_page; stats cover the whole filtered set.
    """
    try:
        vendor = get_request_vendor(request)
        params = request.query_params
        queryset = Order.objects.filter(vendor=vendor).select_related('location', 'customer')

        for param in ('order_type', 'status'):
            value = params.get(param)
            if value:
                queryset = queryset.filter(**{param: value})
        try:
            location_id = parse_id(params.get('location'), 'location', allow_none=True)
        except ValueError as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        if location_id:
            queryset = queryset.filter(location_id=location_id)

        date_range = params.get('date_range', 'all_time')
        if date_range not in DATE_RANGES:
            return Response({'error': f'Invalid date_range: {date_range}'}, status=status.HTTP_400_BAD_REQUEST)
        days = DATE_RANGES[date_range]
        if days:
            queryset = queryset.filter(created_at__gte=timezone.now() - timedelta(days=days))

        search = params.get('search', '').strip()
        if search:
            queryset = queryset.filter(
                Q(order_number__icontains=search) |
                Q(customer__first_name__icontains=search) |
                Q(customer__last_name__icontains=search) |
                Q(customer__email__icontains=search)
            )

        try:
            page = max(int(params.get('page', 1)), 1)
            per_page = min(max(int(params.get('per_page', 50)), 1), 200)
        except ValueError:
            return Response({'error': 'page and per_page must be integers'}, status=status.HTTP_400_BAD_REQUEST)

        queryset = queryset.order_by('-created_at', '-id')
        paginator = Paginator(queryset, per_page)
        page_obj = paginator.get_page(page)
        return Response({
            'orders': OrderListSerializer(page_obj, many=True).data,
            'pagination': {
                'page': page_obj.number,
                'per_page': per_page,
                'total': paginator.count,
                'total_pages': paginator.num_pages,
            },
            'stats': _order_stats(queryset),
        })
    except Exception as e:
        logger.error(f"Unexpected error in order_list: {str(e)}", exc_info=True)
        return Response({'error': 'An unexpected error occurred'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['GET', 'PATCH'])
@permission_classes([IsVendorMember])
def order_detail(request, pk):
    """GET an order with its items. PATCH accepts status and notes."""
    vendor = get_request_vendor(request)
    order = get_object_or_404(Order.objects.select_related('location', 'customer', 'created_by'), pk=pk, vendor=vendor)
    if request.method == 'GET':
        return Response(OrderSerializer(order).data)

    new_status = request.data.get('status')
    notes = request.data.get('notes')
    if new_status is None and notes is None:
        return Response({'error': 'Nothing to update: provide status or notes'}, status=status.HTTP_400_BAD_REQUEST)

    try:
        order, previous = change_order_status(order, new_status or order.status, request.user, notes=notes)
    except DomainError as e:
        return Response({'error': str(e)}, status=e.status_code)
    except Exception as e:
        logger.error(f"Unexpected error in order_detail: {str(e)}", exc_info=True)
        return Response({'error': 'An unexpected error occurred'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    if previous != order.status:
        create_audit_log(request=request, action='order_status', model_name='Order', object_id=order.id,
                         object_name=order.order_number, changes={'status': [previous, order.status]})
    return Response(OrderSerializer(order).data)
