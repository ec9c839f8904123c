"""Date-range parsing and revenue metrics shared by the analytics endpoints"""
import calendar
from datetime import date, datetime, timedelta
from decimal import Decimal
from django.db.models import Count, Sum
from django.utils import timezone
from greenleaf.orders.models import Order, revenue_order_q

RANGE_DAYS = {
    '7d': 7,
    '30d': 30,
    '90d': 90,
    '1y': 365,
}
DEFAULT_RANGE_DAYS = 30

COMPARISON_LABELS = {
    'previous_period': 'Previous Period',
    'day_over_day': 'Yesterday',
    'week_over_week': 'Last Week',
    'month_over_month': 'Last Month',
    'quarter_over_quarter': 'Last Quarter',
    'same_period_last_year': 'Same Period Last Year',
    'custom': 'Custom Period',
}


def parse_date(value, field_name):
    try:
        return datetime.strptime(value, '%Y-%m-%d').date()
    except (TypeError, ValueError):
        raise ValueError(f'{field_name} must be a date in YYYY-MM-DD format')


def parse_date_range(params):
    """
    Return (start_date, end_date), both inclusive.

    ``range`` (7d, 30d, 90d, 1y) wins over ``start_date``/``end_date``. With
    neither, the last 30 days including today. Raises ValueError on bad input.
    """
    today = timezone.localdate()
    range_key = params.get('range')
    if range_key:
        if range_key not in RANGE_DAYS:
            raise ValueError(f"range must be one of: {', '.join(RANGE_DAYS)}")
        return today - timedelta(days=RANGE_DAYS[range_key] - 1), today

    start_raw = params.get('start_date')
    end_raw = params.get('end_date')
    end_date = parse_date(end_raw, 'end_date') if end_raw else today
    if start_raw:
        start_date = parse_date(start_raw, 'start_date')
    else:
        start_date = end_date - timedelta(days=DEFAULT_RANGE_DAYS - 1)
    if start_date > end_date:
        raise ValueError('start_date must be on or before end_date')
    return start_date, end_date


def shift_months(value, months):
    """Move a date by whole months, clamping the day to the target month's length"""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def comparison_period(start_date, end_date, comparison_type, params=None):
    """Return (start, end, label) of the period to compare against. Raises ValueError."""
    params = params or {}
    if comparison_type == 'previous_period':
        length = (end_date - start_date).days + 1
        compare_end = start_date - timedelta(days=1)
        return compare_end - timedelta(days=length - 1), compare_end, COMPARISON_LABELS[comparison_type]
    if comparison_type == 'day_over_day':
        return start_date - timedelta(days=1), end_date - timedelta(days=1), COMPARISON_LABELS[comparison_type]
    if comparison_type == 'week_over_week':
        return start_date - timedelta(days=7), end_date - timedelta(days=7), COMPARISON_LABELS[comparison_type]
    if comparison_type == 'month_over_month':
        return shift_months(start_date, -1), shift_months(end_date, -1), COMPARISON_LABELS[comparison_type]
    if comparison_type == 'quarter_over_quarter':
        return shift_months(start_date, -3), shift_months(end_date, -3), COMPARISON_LABELS[comparison_type]
    if comparison_type == 'same_period_last_year':
        return shift_months(start_date, -12), shift_months(end_date, -12), COMPARISON_LABELS[comparison_type]
    if comparison_type == 'custom':
        if not params.get('compare_start_date') or not params.get('compare_end_date'):
            raise ValueError('custom comparison needs compare_start_date and compare_end_date')
        compare_start = parse_date(params.get('compare_start_date'), 'compare_start_date')
        compare_end = parse_date(params.get('compare_end_date'), 'compare_end_date')
        if compare_start > compare_end:
            raise ValueError('compare_start_date must be on or before compare_end_date')
        return compare_start, compare_end, COMPARISON_LABELS[comparison_type]
    raise ValueError(f'Invalid comparison_type: {comparison_type}')


def revenue_orders(vendor, start_date, end_date, location_id=None):
    orders = Order.objects.filter(
        vendor=vendor,
        created_at__date__gte=start_date,
        created_at__date__lte=end_date,
    ).filter(revenue_order_q())
    if location_id:
        orders = orders.filter(location_id=location_id)
    return orders


def period_metrics(orders):
    totals = orders.aggregate(
        revenue=Sum('total_amount'),
        orders=Count('id'),
        customers=Count('customer', distinct=True),
    )
    revenue = totals['revenue'] or Decimal('0.00')
    count = totals['orders'] or 0
    return {
        'revenue': float(revenue),
        'orders': count,
        'customers': totals['customers'] or 0,
        'avg_order_value': float(revenue / count) if count else 0.0,
    }


def calculate_change(current, previous):
    """Absolute and percent change; percent is 0 when there is nothing to compare to"""
    value = current - previous
    percent = (value / previous) * 100 if previous > 0 else 0
    return {'value': round(value, 2), 'percent': round(percent, 2)}
