"""
Test suite for vendor (tenant) management and staff accounts
"""
from django.test import TestCase
from rest_framework import status
from greenleaf.core.models import User
from greenleaf.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from greenleaf.vendors.models import Vendor


class PlatformVendorTests(TestCase):
    """Platform admin onboarding and suspension"""

    def setUp(self):
        self.admin = TestDataFactory.create_platform_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_create_vendor_generates_slug(self):
        response = self.client.post('/api/v1/vendors/', {'name': 'High Country Cannabis'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['slug'], 'high-country-cannabis')

    def test_list_vendors_filtered_by_status(self):
        TestDataFactory.create_vendor(status='active')
        TestDataFactory.create_vendor(status='suspended')
        response = self.client.get('/api/v1/vendors/?status=suspended')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)

    def test_suspend_vendor_blocks_its_staff(self):
        vendor = TestDataFactory.create_vendor()
        employee = TestDataFactory.create_user(vendor=vendor, role='employee')

        response = self.client.patch(f'/api/v1/vendors/{vendor.id}/', {'status': 'suspended'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        vendor.refresh_from_db()
        self.assertEqual(vendor.status, 'suspended')

        staff_client = AuthenticatedAPIClient()
        staff_client.authenticate_user(employee)
        response = staff_client.get('/api/v1/vendors/me/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_invalid_tax_rate_rejected(self):
        vendor = TestDataFactory.create_vendor()
        response = self.client.patch(f'/api/v1/vendors/{vendor.id}/', {'settings': {'tax_rate': '1.5'}}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('error', response.data)

    def test_vendor_admin_cannot_list_all_vendors(self):
        vendor = TestDataFactory.create_vendor()
        owner = TestDataFactory.create_user(vendor=vendor, role='vendor')
        self.client.authenticate_user(owner)
        response = self.client.get('/api/v1/vendors/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class VendorSelfServiceTests(TestCase):
    """A vendor admin managing their own tenant"""

    def setUp(self):
        self.vendor = TestDataFactory.create_vendor(tax_rate='0.07')
        self.owner = TestDataFactory.create_user(vendor=self.vendor, role='vendor')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.owner)

    def test_settings_are_merged(self):
        response = self.client.patch('/api/v1/vendors/me/', {'settings': {'receipt_footer': 'Thanks!'}}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['settings']['receipt_footer'], 'Thanks!')
        self.assertEqual(response.data['settings']['tax_rate'], '0.07')

    def test_owner_cannot_change_own_status(self):
        response = self.client.patch('/api/v1/vendors/me/', {'status': 'suspended', 'name': 'Renamed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.vendor.refresh_from_db()
        self.assertEqual(self.vendor.status, 'active')
        self.assertEqual(self.vendor.name, 'Renamed')

    def test_other_vendor_hidden(self):
        other = TestDataFactory.create_vendor()
        response = self.client.get(f'/api/v1/vendors/{other.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_employee_cannot_update_settings(self):
        employee = TestDataFactory.create_user(vendor=self.vendor, role='employee')
        self.client.authenticate_user(employee)
        response = self.client.patch('/api/v1/vendors/me/', {'name': 'Nope'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class EmployeeTests(TestCase):
    """Staff account management"""

    def setUp(self):
        self.vendor = TestDataFactory.create_vendor()
        self.owner = TestDataFactory.create_user(vendor=self.vendor, role='vendor')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.owner)

    def test_create_employee(self):
        response = self.client.post('/api/v1/vendors/me/employees/', {
            'username': 'newbudtender',
            'email': 'bud@test.com',
            'password': 'Sativa!Indica42',
            'role': 'employee',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        employee = User.objects.get(username='newbudtender')
        self.assertEqual(employee.vendor, self.vendor)
        self.assertTrue(employee.check_password('Sativa!Indica42'))
        self.assertNotIn('password', response.data)

    def test_employee_role_cannot_be_platform_admin(self):
        response = self.client.post('/api/v1/vendors/me/employees/', {
            'username': 'sneaky',
            'password': 'Sativa!Indica42',
            'role': 'admin',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_employees_scoped_to_vendor(self):
        TestDataFactory.create_user(vendor=self.vendor, role='employee')
        TestDataFactory.create_user(vendor=TestDataFactory.create_vendor(), role='employee')
        response = self.client.get('/api/v1/vendors/me/employees/')
        self.assertEqual(len(response.data), 2)

    def test_deactivate_employee(self):
        employee = TestDataFactory.create_user(vendor=self.vendor, role='employee')
        response = self.client.delete(f'/api/v1/vendors/me/employees/{employee.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        employee.refresh_from_db()
        self.assertFalse(employee.is_active)

    def test_cannot_modify_self(self):
        response = self.client.delete(f'/api/v1/vendors/me/employees/{self.owner.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_employee_cannot_add_staff(self):
        employee = TestDataFactory.create_user(vendor=self.vendor, role='employee')
        self.client.authenticate_user(employee)
        response = self.client.post('/api/v1/vendors/me/employees/', {
            'username': 'another',
            'password': 'Sativa!Indica42',
            'role': 'employee',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(Vendor.objects.filter(users__username='another').exists())
