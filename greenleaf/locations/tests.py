"""
Test suite for vendor locations
"""
from django.test import TestCase
from rest_framework import status
from greenleaf.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from greenleaf.locations.models import Location, get_primary_location


class LocationTests(TestCase):
    """Test location CRUD and primary-location rules"""

    def setUp(self):
        self.vendor = TestDataFactory.create_vendor()
        self.owner = TestDataFactory.create_user(vendor=self.vendor, role='vendor')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.owner)

    def test_first_location_becomes_primary(self):
        response = self.client.post('/api/v1/locations/', {'name': 'Downtown', 'code': 'dt'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['is_primary'])
        self.assertEqual(response.data['code'], 'DT')

    def test_duplicate_code_rejected(self):
        TestDataFactory.create_location(self.vendor, code='MAIN')
        response = self.client.post('/api/v1/locations/', {'name': 'Other', 'code': 'main'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('error', response.data)

    def test_same_code_allowed_for_other_vendor(self):
        TestDataFactory.create_location(TestDataFactory.create_vendor(), code='MAIN')
        response = self.client.post('/api/v1/locations/', {'name': 'Main', 'code': 'MAIN'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_single_primary_location(self):
        first = TestDataFactory.create_location(self.vendor, is_primary=True)
        second = TestDataFactory.create_location(self.vendor)
        response = self.client.patch(f'/api/v1/locations/{second.id}/', {'is_primary': True}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        first.refresh_from_db()
        self.assertFalse(first.is_primary)
        self.assertEqual(get_primary_location(self.vendor), second)

    def test_cannot_delete_primary(self):
        location = TestDataFactory.create_location(self.vendor, is_primary=True)
        response = self.client.delete(f'/api/v1/locations/{location.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_cannot_delete_location_with_stock(self):
        TestDataFactory.create_location(self.vendor, is_primary=True)
        location = TestDataFactory.create_location(self.vendor)
        product = TestDataFactory.create_product(self.vendor)
        TestDataFactory.stock_product(product, location, 5)
        response = self.client.delete(f'/api/v1/locations/{location.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(Location.objects.filter(pk=location.id).exists())

    def test_delete_empty_location(self):
        TestDataFactory.create_location(self.vendor, is_primary=True)
        location = TestDataFactory.create_location(self.vendor)
        response = self.client.delete(f'/api/v1/locations/{location.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

    def test_other_vendor_location_not_found(self):
        location = TestDataFactory.create_location(TestDataFactory.create_vendor())
        response = self.client.get(f'/api/v1/locations/{location.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_employee_can_list_but_not_create(self):
        TestDataFactory.create_location(self.vendor)
        employee = TestDataFactory.create_user(vendor=self.vendor, role='employee')
        self.client.authenticate_user(employee)
        response = self.client.get('/api/v1/locations/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        response = self.client.post('/api/v1/locations/', {'name': 'Nope', 'code': 'NOPE'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_order_prefix(self):
        location = TestDataFactory.create_location(self.vendor, name='Asheville West')
        self.assertEqual(location.order_prefix, 'ASH')
