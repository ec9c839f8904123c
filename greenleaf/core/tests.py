"""
Test suite for authentication, tenant permissions and audit logs
"""
from django.test import TestCase
from rest_framework import status
from greenleaf.core.models import AuditLog
from greenleaf.core.test_utils import TestDataFactory, AuthenticatedAPIClient, TEST_PASSWORD
from greenleaf.core.utils import create_audit_log, parse_decimal, parse_id
from greenleaf.locations.models import Location


class VendorRegistrationTests(TestCase):
    """Test vendor sign-up"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()

    def test_register_vendor_creates_tenant(self):
        """Sign-up creates the vendor, its primary location and the owner"""
        data = {
            'business_name': 'Green Leaf Dispensary',
            'username': 'greenowner',
            'email': 'owner@greenleaf.test',
            'password': TEST_PASSWORD,
            'password_confirm': TEST_PASSWORD,
        }
        response = self.client.post('/api/v1/auth/register-vendor/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['vendor']['slug'], 'green-leaf-dispensary')
        self.assertIn('access', response.data['tokens'])
        self.assertEqual(response.data['user']['role'], 'vendor')

        location = Location.objects.get(vendor_id=response.data['vendor']['id'])
        self.assertTrue(location.is_primary)
        self.assertTrue(AuditLog.objects.filter(action='vendor_register').exists())

    def test_register_vendor_password_mismatch(self):
        data = {
            'business_name': 'Mismatch Co',
            'username': 'mismatch',
            'email': 'mismatch@test.com',
            'password': TEST_PASSWORD,
            'password_confirm': 'something-else-entirely',
        }
        response = self.client.post('/api/v1/auth/register-vendor/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('error', response.data)

    def test_duplicate_business_names_get_unique_slugs(self):
        for index in range(2):
            data = {
                'business_name': 'Twin Peaks',
                'username': f'twin{index}',
                'email': f'twin{index}@test.com',
                'password': TEST_PASSWORD,
                'password_confirm': TEST_PASSWORD,
            }
            response = self.client.post('/api/v1/auth/register-vendor/', data, format='json')
            self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        slugs = set(Location.objects.values_list('vendor__slug', flat=True))
        self.assertEqual(len(slugs), 2)


class AuthTests(TestCase):
    """Test login, refresh and the current-user endpoint"""

    def setUp(self):
        self.vendor = TestDataFactory.create_vendor()
        self.user = TestDataFactory.create_user(vendor=self.vendor, username='budtender', role='employee')
        self.client = AuthenticatedAPIClient()

    def test_login_returns_tokens(self):
        response = self.client.post('/api/v1/auth/login/', {
            'username': 'budtender',
            'password': TEST_PASSWORD,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)

    def test_login_wrong_password(self):
        response = self.client.post('/api/v1/auth/login/', {
            'username': 'budtender',
            'password': 'wrong-password',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertIn('error', response.data)

    def test_login_suspended_vendor(self):
        self.vendor.status = 'suspended'
        self.vendor.save()
        response = self.client.post('/api/v1/auth/login/', {
            'username': 'budtender',
            'password': TEST_PASSWORD,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_refresh_token(self):
        login = self.client.post('/api/v1/auth/login/', {
            'username': 'budtender',
            'password': TEST_PASSWORD,
        }, format='json')
        response = self.client.post('/api/v1/auth/refresh/', {'refresh': login.data['refresh']}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)

    def test_me_capabilities_for_employee(self):
        self.client.authenticate_user(self.user)
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['vendor']['id'], self.vendor.id)
        self.assertTrue(response.data['can_access_pos'])
        self.assertFalse(response.data['can_view_analytics'])
        self.assertFalse(response.data['is_platform_admin'])

    def test_me_capabilities_for_vendor_admin(self):
        owner = TestDataFactory.create_user(vendor=self.vendor, role='vendor')
        self.client.authenticate_user(owner)
        response = self.client.get('/api/v1/auth/me/')
        self.assertTrue(response.data['can_manage_storefront'])
        self.assertTrue(response.data['can_manage_employees'])

    def test_me_requires_authentication(self):
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertIn('error', response.data)


class AuditLogTests(TestCase):
    """Test audit log listing and tenant isolation"""

    def setUp(self):
        self.vendor = TestDataFactory.create_vendor()
        self.owner = TestDataFactory.create_user(vendor=self.vendor, role='vendor')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.owner)

    def test_audit_log_list_scoped_to_vendor(self):
        other_vendor = TestDataFactory.create_vendor()
        other_owner = TestDataFactory.create_user(vendor=other_vendor, role='vendor')
        create_audit_log(user=self.owner, action='update', model_name='Product', object_id=1)
        create_audit_log(user=other_owner, action='update', model_name='Product', object_id=2)

        response = self.client.get('/api/v1/audit-logs/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['object_id'], '1')

    def test_audit_log_filter_by_action(self):
        create_audit_log(user=self.owner, action='update', model_name='Product', object_id=1)
        create_audit_log(user=self.owner, action='delete', model_name='Product', object_id=2)
        response = self.client.get('/api/v1/audit-logs/?action=delete')
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['action'], 'delete')

    def test_audit_log_invalid_date(self):
        response = self.client.get('/api/v1/audit-logs/?date_from=yesterday')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_employee_cannot_read_audit_logs(self):
        employee = TestDataFactory.create_user(vendor=self.vendor, role='employee')
        self.client.authenticate_user(employee)
        response = self.client.get('/api/v1/audit-logs/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertIn('error', response.data)

    def test_audit_log_skipped_without_required_fields(self):
        self.assertIsNone(create_audit_log(user=self.owner, action='update'))


class RequestParsingTests(TestCase):
    def test_parse_decimal(self):
        self.assertEqual(str(parse_decimal('12.50', 'price')), '12.50')
        self.assertIsNone(parse_decimal(None, 'price', allow_none=True))
        with self.assertRaises(ValueError):
            parse_decimal('abc', 'price')

    def test_parse_id(self):
        self.assertEqual(parse_id('42', 'productId'), 42)
        self.assertEqual(parse_id(7, 'productId'), 7)
        self.assertIsNone(parse_id('', 'location', allow_none=True))
        for bad in ('abc', '1.5', '-3', True, [1]):
            with self.assertRaises(ValueError):
                parse_id(bad, 'productId')
