"""
Test suite for analytics: sales summary, comparisons, breakdowns and dashboard
"""
from datetime import date, timedelta
from decimal import Decimal
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from greenleaf.analytics.utils import calculate_change, comparison_period, parse_date_range, shift_months
from greenleaf.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from greenleaf.orders.models import Order, OrderItem


class AnalyticsUtilsTests(TestCase):
    def test_default_range_is_last_30_days(self):
        start, end = parse_date_range({})
        self.assertEqual(end, timezone.localdate())
        self.assertEqual((end - start).days, 29)

    def test_range_key_wins(self):
        start, end = parse_date_range({'range': '7d', 'start_date': '2020-01-01'})
        self.assertEqual((end - start).days, 6)

    def test_invalid_dates(self):
        with self.assertRaises(ValueError):
            parse_date_range({'start_date': '2024-13-01'})
        with self.assertRaises(ValueError):
            parse_date_range({'start_date': '2024-02-10', 'end_date': '2024-02-01'})

    def test_previous_period(self):
        start, end, label = comparison_period(date(2024, 3, 11), date(2024, 3, 20), 'previous_period')
        self.assertEqual((start, end), (date(2024, 3, 1), date(2024, 3, 10)))
        self.assertEqual(label, 'Previous Period')

    def test_month_over_month_clamps_day(self):
        self.assertEqual(shift_months(date(2024, 3, 31), -1), date(2024, 2, 29))
        start, end, _ = comparison_period(date(2024, 1, 1), date(2024, 1, 31), 'same_period_last_year')
        self.assertEqual(start, date(2023, 1, 1))

    def test_custom_requires_dates(self):
        with self.assertRaises(ValueError):
            comparison_period(date(2024, 1, 1), date(2024, 1, 31), 'custom', {})

    def test_calculate_change(self):
        self.assertEqual(calculate_change(150.0, 100.0), {'value': 50.0, 'percent': 50.0})
        self.assertEqual(calculate_change(10.0, 0), {'value': 10.0, 'percent': 0})


class AnalyticsAPITests(TestCase):
    def setUp(self):
        self.vendor = TestDataFactory.create_vendor()
        self.owner = TestDataFactory.create_user(vendor=self.vendor, role='vendor')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.owner)
        self.store = TestDataFactory.create_location(self.vendor, name='Store')
        self.annex = TestDataFactory.create_location(self.vendor, name='Annex')
        self.product = TestDataFactory.create_product(self.vendor, name='Gelato', cost_price=Decimal('4.00'))
        self.customer = TestDataFactory.create_customer(self.vendor)

        self.make_order('AN-1', self.store, '10.00', quantity=1)
        self.make_order('AN-2', self.annex, '30.00', quantity=3, customer=self.customer)
        self.make_order('AN-X', self.store, '500.00', quantity=50, order_status='cancelled')

    def make_order(self, number, location, total, quantity, order_status='completed', customer=None, days_ago=0):
        order = Order.objects.create(
            vendor=self.vendor,
            location=location,
            customer=customer,
            order_number=number,
            status=order_status,
            payment_status='paid' if order_status == 'completed' else 'refunded',
            subtotal=Decimal(total),
            total_amount=Decimal(total),
            created_by=self.owner,
        )
        OrderItem.objects.create(order=order, product=self.product, location=location, product_name=self.product.name,
                                 sku=self.product.sku, quantity=Decimal(quantity), unit_price=Decimal('10.00'),
                                 line_total=Decimal(total))
        if days_ago:
            Order.objects.filter(pk=order.pk).update(created_at=timezone.now() - timedelta(days=days_ago))
        return order

    def test_sales_summary_excludes_cancelled(self):
        response = self.client.get('/api/v1/analytics/sales-summary/?range=7d')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        summary = response.data['summary']
        self.assertEqual(summary['total_revenue'], 40.0)
        self.assertEqual(summary['total_orders'], 2)
        self.assertEqual(summary['avg_order_value'], 20.0)
        self.assertEqual(summary['total_items_sold'], 4.0)
        self.assertEqual(summary['unique_customers'], 1)
        self.assertEqual(len(response.data['daily_breakdown']), 1)

    def test_sales_summary_bad_range(self):
        response = self.client.get('/api/v1/analytics/sales-summary/?range=2w')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('error', response.data)

    def test_sales_summary_location_filter(self):
        response = self.client.get(f'/api/v1/analytics/sales-summary/?location={self.annex.id}')
        self.assertEqual(response.data['summary']['total_revenue'], 30.0)

    def test_non_numeric_location_rejected(self):
        for endpoint in ('sales-summary', 'comparison', 'by-employee', 'top-products'):
            response = self.client.get(f'/api/v1/analytics/{endpoint}/?location=abc')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, endpoint)
            self.assertEqual(response.data['error'], 'location must be an integer id')

    def test_comparison_previous_period(self):
        self.make_order('AN-OLD', self.store, '20.00', quantity=2, days_ago=10)
        response = self.client.get('/api/v1/analytics/comparison/?range=7d')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['comparison']['metrics']['revenue'], 20.0)
        self.assertEqual(response.data['changes']['revenue'], {'value': 20.0, 'percent': 100.0})

    def test_comparison_invalid_type(self):
        response = self.client.get('/api/v1/analytics/comparison/?comparison_type=century_over_century')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_sales_by_location(self):
        response = self.client.get('/api/v1/analytics/by-location/')
        locations = response.data['locations']
        self.assertEqual(locations[0]['location_name'], 'Annex')
        self.assertEqual(locations[0]['share_percent'], 75.0)

    def test_sales_by_employee(self):
        response = self.client.get('/api/v1/analytics/by-employee/')
        self.assertEqual(response.data['employees'][0]['username'], self.owner.username)
        self.assertEqual(response.data['employees'][0]['orders'], 2)

    def test_top_products(self):
        response = self.client.get('/api/v1/analytics/top-products/?limit=5')
        products = response.data['products']
        self.assertEqual(len(products), 1)
        self.assertEqual(products[0]['quantity'], 4.0)
        self.assertEqual(products[0]['revenue'], 40.0)

    def test_inventory_summary(self):
        TestDataFactory.stock_product(self.product, self.store, 10)
        response = self.client.get('/api/v1/analytics/inventory-summary/')
        self.assertEqual(response.data['total_units'], 10.0)
        self.assertEqual(response.data['total_value'], 40.0)

    def test_dashboard(self):
        response = self.client.get('/api/v1/analytics/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['today']['revenue'], 40.0)
        self.assertEqual(response.data['open_sessions'], 0)
        self.assertEqual(len(response.data['recent_orders']), 3)

    def test_employee_forbidden(self):
        employee = TestDataFactory.create_user(vendor=self.vendor, role='employee')
        self.client.authenticate_user(employee)
        response = self.client.get('/api/v1/analytics/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
