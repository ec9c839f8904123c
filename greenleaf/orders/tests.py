"""
Test suite for order listing, stats and status changes
"""
from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from greenleaf.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from greenleaf.inventory.models import Inventory
from greenleaf.loyalty.models import CustomerLoyalty, LoyaltyProgram
from greenleaf.loyalty.utils import award_points
from greenleaf.orders.models import Order, OrderItem
from greenleaf.orders.utils import OrderError


def make_order(vendor, location, number, total='25.00', order_status='completed', order_type='pickup',
               customer=None, payment_status='paid'):
    return Order.objects.create(
        vendor=vendor,
        location=location,
        customer=customer,
        order_number=number,
        order_type=order_type,
        status=order_status,
        payment_status=payment_status,
        subtotal=Decimal(total),
        total_amount=Decimal(total),
    )


class OrderListTests(TestCase):
    def setUp(self):
        self.vendor = TestDataFactory.create_vendor()
        self.user = TestDataFactory.create_user(vendor=self.vendor, role='employee')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.store = TestDataFactory.create_location(self.vendor, name='Store')
        self.annex = TestDataFactory.create_location(self.vendor, name='Annex')

    def test_list_with_stats(self):
        make_order(self.vendor, self.store, 'ORD-1', total='10.00')
        make_order(self.vendor, self.annex, 'ORD-2', total='15.00', order_type='pos')
        make_order(self.vendor, self.store, 'ORD-3', total='99.00', order_status='cancelled', payment_status='refunded')

        response = self.client.get('/api/v1/orders/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['pagination']['total'], 3)
        stats = response.data['stats']
        self.assertEqual(stats['total_orders'], 3)
        self.assertEqual(stats['total_revenue'], Decimal('25.00'))
        self.assertEqual(stats['by_type'], {'pickup': 2, 'pos': 1})
        self.assertEqual(stats['by_status']['cancelled'], 1)
        by_location = {row['location_name']: row['revenue'] for row in stats['by_location']}
        self.assertEqual(by_location['Store'], Decimal('10.00'))

    def test_pagination(self):
        for index in range(5):
            make_order(self.vendor, self.store, f'ORD-P{index}')
        response = self.client.get('/api/v1/orders/?per_page=2&page=3')
        self.assertEqual(len(response.data['orders']), 1)
        self.assertEqual(response.data['pagination']['total_pages'], 3)

    def test_date_range(self):
        old = make_order(self.vendor, self.store, 'ORD-OLD')
        Order.objects.filter(pk=old.pk).update(created_at=timezone.now() - timedelta(days=40))
        make_order(self.vendor, self.store, 'ORD-NEW')
        response = self.client.get('/api/v1/orders/?date_range=last_30_days')
        self.assertEqual([o['order_number'] for o in response.data['orders']], ['ORD-NEW'])

    def test_invalid_date_range(self):
        response = self.client.get('/api/v1/orders/?date_range=forever')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_location_filter(self):
        make_order(self.vendor, self.store, 'ORD-S')
        make_order(self.vendor, self.annex, 'ORD-A')
        response = self.client.get(f'/api/v1/orders/?location={self.annex.id}')
        self.assertEqual([o['order_number'] for o in response.data['orders']], ['ORD-A'])

        response = self.client.get('/api/v1/orders/?location=abc')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'location must be an integer id')

    def test_search_by_customer(self):
        customer = TestDataFactory.create_customer(self.vendor, first_name='Zelda')
        make_order(self.vendor, self.store, 'ORD-Z', customer=customer)
        make_order(self.vendor, self.store, 'ORD-Q')
        response = self.client.get('/api/v1/orders/?search=zelda')
        self.assertEqual(response.data['pagination']['total'], 1)

    def test_orders_scoped_to_vendor(self):
        other = TestDataFactory.create_vendor()
        make_order(other, TestDataFactory.create_location(other), 'ORD-OTHER')
        response = self.client.get('/api/v1/orders/')
        self.assertEqual(response.data['pagination']['total'], 0)


class OrderStatusTests(TestCase):
    def setUp(self):
        self.vendor = TestDataFactory.create_vendor()
        self.user = TestDataFactory.create_user(vendor=self.vendor, role='employee')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.location = TestDataFactory.create_location(self.vendor)
        self.product = TestDataFactory.create_product(self.vendor)
        TestDataFactory.stock_product(self.product, self.location, 4)

    def test_cancel_completed_order_restocks_and_reverses_points(self):
        LoyaltyProgram.objects.create(vendor=self.vendor)
        customer = TestDataFactory.create_customer(self.vendor)
        order = make_order(self.vendor, self.location, 'ORD-C1', total='20.00', customer=customer)
        OrderItem.objects.create(order=order, product=self.product, location=self.location, product_name=self.product.name,
                                 quantity=Decimal('2'), unit_price=Decimal('10.00'), line_total=Decimal('20.00'))
        award_points(self.vendor, customer, order.total_amount, order=order)

        response = self.client.patch(f'/api/v1/orders/{order.id}/', {'status': 'cancelled'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'cancelled')
        self.assertEqual(response.data['payment_status'], 'refunded')
        self.assertEqual(Inventory.objects.get(product=self.product, location=self.location).quantity, Decimal('6.000'))
        self.assertEqual(CustomerLoyalty.objects.get(customer=customer).points_balance, 0)

    def test_cancel_pending_order_does_not_restock(self):
        order = make_order(self.vendor, self.location, 'ORD-P1', order_status='pending', payment_status='pending')
        OrderItem.objects.create(order=order, product=self.product, location=self.location, product_name=self.product.name,
                                 quantity=Decimal('1'), unit_price=Decimal('10.00'), line_total=Decimal('10.00'))
        response = self.client.patch(f'/api/v1/orders/{order.id}/', {'status': 'cancelled'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Inventory.objects.get(product=self.product, location=self.location).quantity, Decimal('4.000'))

    def test_cancelled_order_is_final(self):
        order = make_order(self.vendor, self.location, 'ORD-F1', order_status='cancelled')
        response = self.client.patch(f'/api/v1/orders/{order.id}/', {'status': 'completed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_invalid_status(self):
        order = make_order(self.vendor, self.location, 'ORD-I1')
        response = self.client.patch(f'/api/v1/orders/{order.id}/', {'status': 'lost'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_status_error_keeps_its_code(self):
        order = make_order(self.vendor, self.location, 'ORD-L1')
        with patch('greenleaf.orders.views.change_order_status',
                   side_effect=OrderError('Order is locked by a refund', status_code=409)):
            response = self.client.patch(f'/api/v1/orders/{order.id}/', {'status': 'cancelled'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error'], 'Order is locked by a refund')

    def test_complete_sets_completed_at(self):
        order = make_order(self.vendor, self.location, 'ORD-S1', order_status='processing', payment_status='pending')
        response = self.client.patch(f'/api/v1/orders/{order.id}/', {'status': 'completed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIsNotNone(response.data['completed_at'])

    def test_update_notes_only(self):
        order = make_order(self.vendor, self.location, 'ORD-N1')
        response = self.client.patch(f'/api/v1/orders/{order.id}/', {'notes': 'Curbside'}, format='json')
        self.assertEqual(response.data['notes'], 'Curbside')
        self.assertEqual(response.data['status'], 'completed')

    def test_empty_patch(self):
        order = make_order(self.vendor, self.location, 'ORD-E1')
        response = self.client.patch(f'/api/v1/orders/{order.id}/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
