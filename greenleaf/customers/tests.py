"""
Test suite for customer records
"""
from datetime import date
from django.test import TestCase
from rest_framework import status
from greenleaf.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from greenleaf.customers.models import Customer
from greenleaf.orders.models import Order


class CustomerTests(TestCase):
    """Test customer CRUD, search and age checks"""

    def setUp(self):
        self.vendor = TestDataFactory.create_vendor()
        self.user = TestDataFactory.create_user(vendor=self.vendor, role='employee')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_create_customer(self):
        response = self.client.post('/api/v1/customers/', {
            'first_name': 'Mary',
            'last_name': 'Jane',
            'email': 'Mary.Jane@Example.com',
            'date_of_birth': '1990-04-20',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['email'], 'mary.jane@example.com')
        self.assertEqual(response.data['loyalty_points'], 0)

    def test_underage_customer_rejected(self):
        today = date.today()
        response = self.client.post('/api/v1/customers/', {
            'first_name': 'Young',
            'date_of_birth': f'{today.year - 18}-01-01',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('21', response.data['error'])

    def test_duplicate_email_per_vendor(self):
        TestDataFactory.create_customer(self.vendor, email='dup@test.com')
        response = self.client.post('/api/v1/customers/', {'first_name': 'Dup', 'email': 'dup@test.com'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_same_email_other_vendor_allowed(self):
        TestDataFactory.create_customer(TestDataFactory.create_vendor(), email='shared@test.com')
        response = self.client.post('/api/v1/customers/', {'first_name': 'Shared', 'email': 'shared@test.com'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_search(self):
        TestDataFactory.create_customer(self.vendor, first_name='Alice')
        TestDataFactory.create_customer(self.vendor, first_name='Bob')
        response = self.client.get('/api/v1/customers/?search=alice')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['first_name'], 'Alice')

    def test_employee_cannot_delete(self):
        customer = TestDataFactory.create_customer(self.vendor)
        response = self.client.delete(f'/api/v1/customers/{customer.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertTrue(Customer.objects.filter(pk=customer.id).exists())

    def test_admin_can_delete(self):
        customer = TestDataFactory.create_customer(self.vendor)
        owner = TestDataFactory.create_user(vendor=self.vendor, role='vendor')
        self.client.authenticate_user(owner)
        response = self.client.delete(f'/api/v1/customers/{customer.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

    def test_customer_order_history(self):
        customer = TestDataFactory.create_customer(self.vendor)
        Order.objects.create(vendor=self.vendor, customer=customer, order_number='ORD-HIST-1', status='completed')
        response = self.client.get(f'/api/v1/customers/{customer.id}/orders/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data[0]['order_number'], 'ORD-HIST-1')

    def test_other_vendor_customer_not_found(self):
        customer = TestDataFactory.create_customer(TestDataFactory.create_vendor())
        response = self.client.get(f'/api/v1/customers/{customer.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
