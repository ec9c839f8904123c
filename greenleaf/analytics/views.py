import logging
from decimal import Decimal
from django.db.models import Avg, Count, DecimalField, ExpressionWrapper, F, Sum
from django.db.models.functions import TruncDate
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from greenleaf.catalog.models import Product
from greenleaf.core.permissions import IsVendorAdmin, get_request_vendor
from greenleaf.core.utils import parse_id
from greenleaf.inventory.models import Inventory
from greenleaf.orders.models import OrderItem
from greenleaf.orders.serializers import OrderListSerializer
from greenleaf.pos.models import POSSession
from .utils import (
    parse_date_range, comparison_period, revenue_orders, period_metrics, calculate_change,
)

logger = logging.getLogger('greenleaf.analytics')


def _period(start_date, end_date):
    return {'start_date': start_date.isoformat(), 'end_date': end_date.isoformat(),
            'days': (end_date - start_date).days + 1}


def _bad_request(error):
    return Response({'error': str(error)}, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET'])
@permission_classes([IsVendorAdmin])
def sales_summary(request):
    """Revenue, order count, items sold and a per-day breakdown for the period"""
    try:
        start_date, end_date = parse_date_range(request.query_params)
        location_id = parse_id(request.query_params.get('location'), 'location', allow_none=True)
    except ValueError as e:
        return _bad_request(e)
    vendor = get_request_vendor(request)
    orders = revenue_orders(vendor, start_date, end_date, location_id)

    metrics = period_metrics(orders)
    items_sold = OrderItem.objects.filter(order__in=orders).aggregate(total=Sum('quantity'))['total'] or Decimal('0')
    tax = orders.aggregate(total=Sum('tax_amount'))['total'] or Decimal('0.00')
    discounts = orders.aggregate(total=Sum('discount_amount'))['total'] or Decimal('0.00')

    daily = orders.annotate(date=TruncDate('created_at')).values('date').annotate(
        revenue=Sum('total_amount'),
        orders=Count('id'),
    ).order_by('date')

    return Response({
        'period': _period(start_date, end_date),
        'summary': {
            'total_revenue': metrics['revenue'],
            'total_orders': metrics['orders'],
            'unique_customers': metrics['customers'],
            'avg_order_value': metrics['avg_order_value'],
            'total_items_sold': float(items_sold),
            'total_tax': float(tax),
            'total_discounts': float(discounts),
        },
        'daily_breakdown': [
            {'date': row['date'].isoformat(), 'revenue': float(row['revenue'] or 0), 'orders': row['orders']}
            for row in daily
        ],
    })


@api_view(['GET'])
@permission_classes([IsVendorAdmin])
def comparison(request):
    """
    Compare the selected period with another.

    comparison_type: previous_period (default), day_over_day, week_over_week,
    month_over_month, quarter_over_quarter, same_period_last_year, or custom with
    compare_start_date and compare_end_date.
    """
    params = request.query_params
    comparison_type = params.get('comparison_type', 'previous_period')
    try:
        start_date, end_date = parse_date_range(params)
        compare_start, compare_end, label = comparison_period(start_date, end_date, comparison_type, params)
        location_id = parse_id(params.get('location'), 'location', allow_none=True)
    except ValueError as e:
        return _bad_request(e)

    vendor = get_request_vendor(request)
    current = period_metrics(revenue_orders(vendor, start_date, end_date, location_id))
    previous = period_metrics(revenue_orders(vendor, compare_start, compare_end, location_id))

    return Response({
        'comparison_type': comparison_type,
        'current': {'period': {**_period(start_date, end_date), 'label': 'Current Period'}, 'metrics': current},
        'comparison': {'period': {**_period(compare_start, compare_end), 'label': label}, 'metrics': previous},
        'changes': {key: calculate_change(current[key], previous[key]) for key in current},
    })


@api_view(['GET'])
@permission_classes([IsVendorAdmin])
def sales_by_employee(request):
    try:
        start_date, end_date = parse_date_range(request.query_params)
        location_id = parse_id(request.query_params.get('location'), 'location', allow_none=True)
    except ValueError as e:
        return _bad_request(e)
    vendor = get_request_vendor(request)
    rows = (
        revenue_orders(vendor, start_date, end_date, location_id)
        .values('created_by_id', 'created_by__username', 'created_by__first_name', 'created_by__last_name')
        .annotate(revenue=Sum('total_amount'), orders=Count('id'), avg_order_value=Avg('total_amount'))
        .order_by('-revenue')
    )
    employees = []
    for row in rows:
        full_name = f"{row['created_by__first_name'] or ''} {row['created_by__last_name'] or ''}".strip()
        employees.append({
            'user_id': row['created_by_id'],
            'username': row['created_by__username'],
            'name': full_name or row['created_by__username'] or 'Online',
            'revenue': float(row['revenue'] or 0),
            'orders': row['orders'],
            'avg_order_value': float(row['avg_order_value'] or 0),
        })
    return Response({'period': _period(start_date, end_date), 'employees': employees})


@api_view(['GET'])
@permission_classes([IsVendorAdmin])
def sales_by_location(request):
    try:
        start_date, end_date = parse_date_range(request.query_params)
    except ValueError as e:
        return _bad_request(e)
    vendor = get_request_vendor(request)
    rows = (
        revenue_orders(vendor, start_date, end_date)
        .values('location_id', 'location__name')
        .annotate(revenue=Sum('total_amount'), orders=Count('id'), customers=Count('customer', distinct=True))
        .order_by('-revenue')
    )
    total = sum((row['revenue'] or Decimal('0')) for row in rows)
    locations = [
        {
            'location_id': row['location_id'],
            'location_name': row['location__name'] or 'Unassigned',
            'revenue': float(row['revenue'] or 0),
            'orders': row['orders'],
            'customers': row['customers'],
            'share_percent': round(float((row['revenue'] or 0) / total * 100), 2) if total else 0,
        }
        for row in rows
    ]
    return Response({'period': _period(start_date, end_date), 'locations': locations})


@api_view(['GET'])
@permission_classes([IsVendorAdmin])
def top_products(request):
    try:
        start_date, end_date = parse_date_range(request.query_params)
        location_id = parse_id(request.query_params.get('location'), 'location', allow_none=True)
        limit = min(max(int(request.query_params.get('limit', 10)), 1), 100)
    except ValueError as e:
        return _bad_request(e)
    vendor = get_request_vendor(request)
    orders = revenue_orders(vendor, start_date, end_date, location_id)
    rows = (
        OrderItem.objects.filter(order__in=orders)
        .values('product_id', 'product_name', 'sku')
        .annotate(quantity=Sum('quantity'), revenue=Sum('line_total'), order_count=Count('order', distinct=True))
        .order_by('-revenue')[:limit]
    )
    return Response({
        'period': _period(start_date, end_date),
        'products': [
            {
                'product_id': row['product_id'],
                'product_name': row['product_name'],
                'sku': row['sku'],
                'quantity': float(row['quantity'] or 0),
                'revenue': float(row['revenue'] or 0),
                'order_count': row['order_count'],
            }
            for row in rows
        ],
    })


@api_view(['GET'])
@permission_classes([IsVendorAdmin])
def inventory_summary(request):
    """Stock units and value at cost, overall and per location"""
    vendor = get_request_vendor(request)
    value_expr = ExpressionWrapper(F('quantity') * F('product__cost_price'),
                                   output_field=DecimalField(max_digits=16, decimal_places=3))
    inventory = Inventory.objects.filter(vendor=vendor)
    totals = inventory.aggregate(units=Sum('quantity'), value=Sum(value_expr))
    per_location = (
        inventory.values('location_id', 'location__name')
        .annotate(units=Sum('quantity'), value=Sum(value_expr), products=Count('product', distinct=True))
        .order_by('location__name')
    )
    products = Product.objects.filter(vendor=vendor, manage_stock=True).exclude(status='archived')

    return Response({
        'total_products': products.count(),
        'total_units': float(totals['units'] or 0),
        'total_value': float(totals['value'] or 0),
        'low_stock_count': inventory.filter(quantity__gt=0, quantity__lte=F('reorder_point')).count(),
        'out_of_stock_count': products.filter(stock_status='out_of_stock').count(),
        'by_location': [
            {
                'location_id': row['location_id'],
                'location_name': row['location__name'],
                'units': float(row['units'] or 0),
                'value': float(row['value'] or 0),
                'products': row['products'],
            }
            for row in per_location
        ],
    })


@api_view(['GET'])
@permission_classes([IsVendorAdmin])
def dashboard(request):
    """Today's figures, the selected period against the previous one, and operational counts"""
    try:
        start_date, end_date = parse_date_range(request.query_params)
        compare_start, compare_end, _ = comparison_period(start_date, end_date, 'previous_period')
    except ValueError as e:
        return _bad_request(e)
    vendor = get_request_vendor(request)
    today = timezone.localdate()

    current = period_metrics(revenue_orders(vendor, start_date, end_date))
    previous = period_metrics(revenue_orders(vendor, compare_start, compare_end))
    recent = vendor.orders.select_related('location', 'customer').order_by('-created_at')[:5]

    return Response({
        'period': _period(start_date, end_date),
        'today': period_metrics(revenue_orders(vendor, today, today)),
        'metrics': current,
        'changes': {key: calculate_change(current[key], previous[key]) for key in current},
        'low_stock_count': Inventory.objects.filter(vendor=vendor, quantity__gt=0,
                                                    quantity__lte=F('reorder_point')).count(),
        'open_sessions': POSSession.objects.filter(vendor=vendor, status='open').count(),
        'recent_orders': OrderListSerializer(recent, many=True).data,
    })
