"""
Test suite for categories, products, custom-field visibility and labels
"""
from datetime import timedelta
from decimal import Decimal
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from greenleaf.catalog.models import Product, ProductCOA
from greenleaf.core.models import AuditLog
from greenleaf.core.test_utils import TestDataFactory, AuthenticatedAPIClient


class CategoryTests(TestCase):
    """Test category CRUD and field visibility rules"""

    def setUp(self):
        self.vendor = TestDataFactory.create_vendor()
        self.owner = TestDataFactory.create_user(vendor=self.vendor, role='vendor')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.owner)

    def test_create_category(self):
        response = self.client.post('/api/v1/categories/', {'name': 'Flower'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['slug'], 'flower')

    def test_duplicate_category_names_get_unique_slugs(self):
        self.client.post('/api/v1/categories/', {'name': 'Edibles'}, format='json')
        response = self.client.post('/api/v1/categories/', {'name': 'Edibles'}, format='json')
        self.assertEqual(response.data['slug'], 'edibles-2')

    def test_invalid_visibility_context_rejected(self):
        response = self.client.post('/api/v1/categories/', {
            'name': 'Vapes',
            'field_visibility': {'thca_percentage': {'billboard': True}},
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('error', response.data)

    def test_visibility_change_is_audited(self):
        category = TestDataFactory.create_category(self.vendor)
        response = self.client.patch(f'/api/v1/categories/{category.id}/', {
            'field_visibility': {'thca_percentage': {'shop': False}},
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(AuditLog.objects.filter(model_name='Category', object_id=str(category.id)).exists())

    def test_visible_custom_fields(self):
        category = TestDataFactory.create_category(self.vendor, field_visibility={
            'thca_percentage': {'shop': False, 'product_page': True},
        })
        product = TestDataFactory.create_product(self.vendor, category=category, custom_fields={
            'thca_percentage': '24.1',
            'strain_type': 'hybrid',
        })
        self.assertEqual(product.visible_custom_fields('shop'), {'strain_type': 'hybrid'})
        self.assertEqual(product.visible_custom_fields('product_page')['thca_percentage'], '24.1')

    def test_parent_from_other_vendor_rejected(self):
        foreign = TestDataFactory.create_category(TestDataFactory.create_vendor())
        response = self.client.post('/api/v1/categories/', {'name': 'Child', 'parent': foreign.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class ProductTests(TestCase):
    """Test product CRUD, filtering and pagination"""

    def setUp(self):
        self.vendor = TestDataFactory.create_vendor()
        self.owner = TestDataFactory.create_user(vendor=self.vendor, role='vendor')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.owner)
        self.category = TestDataFactory.create_category(self.vendor, name='Flower')

    def test_create_product(self):
        response = self.client.post('/api/v1/products/', {
            'name': 'Blue Dream 3.5g',
            'sku': 'BD-35',
            'price': '35.00',
            'category': self.category.id,
            'custom_fields': {'strain_type': 'sativa'},
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['slug'], 'blue-dream-35g')
        self.assertEqual(response.data['stock_status'], 'out_of_stock')

    def test_duplicate_sku_rejected(self):
        TestDataFactory.create_product(self.vendor, sku='BD-35')
        response = self.client.post('/api/v1/products/', {'name': 'Dup', 'sku': 'BD-35', 'price': '10.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_blank_skus_do_not_collide(self):
        TestDataFactory.create_product(self.vendor, sku='')
        response = self.client.post('/api/v1/products/', {'name': 'No Sku', 'sku': '', 'price': '10.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_negative_price_rejected(self):
        response = self.client.post('/api/v1/products/', {'name': 'Bad', 'price': '-1.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_price_change_is_audited(self):
        product = TestDataFactory.create_product(self.vendor, price=Decimal('20.00'))
        response = self.client.patch(f'/api/v1/products/{product.id}/', {'price': '25.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        log = AuditLog.objects.get(action='price_change')
        self.assertEqual(log.changes['price'], {'old': '20.00', 'new': '25.00'})

    def test_list_search_and_pagination(self):
        TestDataFactory.create_product(self.vendor, name='Blue Dream')
        TestDataFactory.create_product(self.vendor, name='Sour Diesel')
        TestDataFactory.create_product(self.vendor, name='Blue Cheese')

        response = self.client.get('/api/v1/products/?search=blue')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)

        response = self.client.get('/api/v1/products/?page_size=1&page=2')
        self.assertEqual(response.data['count'], 3)
        self.assertEqual(response.data['total_pages'], 3)
        self.assertEqual(len(response.data['results']), 1)

    def test_filter_by_strain_type(self):
        TestDataFactory.create_product(self.vendor, custom_fields={'strain_type': 'Indica'})
        TestDataFactory.create_product(self.vendor, custom_fields={'strain_type': 'sativa'})
        response = self.client.get('/api/v1/products/?strain_type=indica')
        self.assertEqual(response.data['count'], 1)

    def test_products_scoped_to_vendor(self):
        TestDataFactory.create_product(TestDataFactory.create_vendor())
        mine = TestDataFactory.create_product(self.vendor)
        response = self.client.get('/api/v1/products/')
        self.assertEqual([p['id'] for p in response.data['results']], [mine.id])

    def test_detail_includes_inventory_by_location(self):
        location = TestDataFactory.create_location(self.vendor)
        product = TestDataFactory.create_product(self.vendor)
        TestDataFactory.stock_product(product, location, 12)
        response = self.client.get(f'/api/v1/products/{product.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['inventory']), 1)
        self.assertEqual(response.data['inventory'][0]['quantity'], Decimal('12.000'))

    def test_employee_cannot_create_product(self):
        employee = TestDataFactory.create_user(vendor=self.vendor, role='employee')
        self.client.authenticate_user(employee)
        response = self.client.post('/api/v1/products/', {'name': 'Nope', 'price': '1.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_delete_product(self):
        product = TestDataFactory.create_product(self.vendor)
        response = self.client.delete(f'/api/v1/products/{product.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Product.objects.filter(pk=product.id).exists())


class ProductLabelTests(TestCase):
    def setUp(self):
        self.vendor = TestDataFactory.create_vendor()
        self.user = TestDataFactory.create_user(vendor=self.vendor, role='employee')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_label_is_png_data_url(self):
        product = TestDataFactory.create_product(self.vendor, sku='GL-1001')
        response = self.client.get(f'/api/v1/products/{product.id}/label/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['image'].startswith('data:image/png;base64,'))

    def test_label_requires_sku(self):
        product = TestDataFactory.create_product(self.vendor, sku='')
        response = self.client.get(f'/api/v1/products/{product.id}/label/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class ProductCOATests(TestCase):
    """Certificates of analysis"""

    def setUp(self):
        self.vendor = TestDataFactory.create_vendor()
        self.owner = TestDataFactory.create_user(vendor=self.vendor, role='vendor')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.owner)
        self.product = TestDataFactory.create_product(self.vendor, name='Gelato 41')
        self.today = timezone.localdate()

    def _coa(self, **kwargs):
        fields = {'vendor': self.vendor, 'product': self.product, 'file_url': 'https://files.example.com/coa.pdf'}
        fields.update(kwargs)
        return ProductCOA.objects.create(**fields)

    def test_status(self):
        self.assertEqual(self._coa(test_date=self.today).status, 'pending')
        self.assertEqual(self._coa(test_date=self.today, is_verified=True).status, 'approved')
        self.assertEqual(self._coa(expiry_date=self.today - timedelta(days=1), is_verified=True).status, 'expired')
        self.assertEqual(self._coa(test_date=self.today - timedelta(days=91)).status, 'expired')
        self.assertEqual(self._coa(test_date=self.today - timedelta(days=200),
                                   expiry_date=self.today + timedelta(days=30)).status, 'pending')

    def test_create_starts_unverified(self):
        response = self.client.post('/api/v1/coas/', {
            'product': self.product.id,
            'file_url': 'https://files.example.com/gelato-41.pdf',
            'lab_name': 'ACS Laboratory',
            'batch_number': 'G41-0907',
            'test_date': str(self.today),
            'test_results': {'thca': 27.4, 'pesticides_passed': True},
            'is_verified': True,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertFalse(response.data['is_verified'])
        self.assertEqual(response.data['status'], 'pending')
        self.assertEqual(response.data['uploaded_by'], self.owner.id)
        self.assertTrue(AuditLog.objects.filter(model_name='ProductCOA', action='create').exists())

    def test_create_validation(self):
        foreign = TestDataFactory.create_product(TestDataFactory.create_vendor())
        response = self.client.post('/api/v1/coas/', {'product': foreign.id, 'file_url': 'https://x.example.com/a.pdf'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.post('/api/v1/coas/', {'product': self.product.id, 'file_url': 'not a url'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.post('/api/v1/coas/', {
            'product': self.product.id,
            'file_url': 'https://x.example.com/a.pdf',
            'test_date': str(self.today),
            'expiry_date': str(self.today - timedelta(days=3)),
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(ProductCOA.objects.exists())

    def test_list_filters_by_product_and_hides_removed(self):
        other = TestDataFactory.create_product(self.vendor)
        self._coa(batch_number='A')
        self._coa(product=other, batch_number='B')
        self._coa(batch_number='C', is_active=False)
        response = self.client.get(f'/api/v1/coas/?product={self.product.id}')
        self.assertEqual(response.data['total'], 1)
        self.assertEqual(response.data['coas'][0]['batch_number'], 'A')
        response = self.client.get('/api/v1/coas/?product=abc')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_new_file_clears_verification(self):
        coa = self._coa(is_verified=True)
        response = self.client.patch(f'/api/v1/coas/{coa.id}/', {'lab_name': 'Kaycha Labs'}, format='json')
        self.assertTrue(response.data['is_verified'])
        response = self.client.patch(f'/api/v1/coas/{coa.id}/', {'file_url': 'https://files.example.com/v2.pdf'},
                                     format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['is_verified'])

    def test_reassign_to_other_product(self):
        coa = self._coa()
        other = TestDataFactory.create_product(self.vendor, name='Runtz')
        response = self.client.patch(f'/api/v1/coas/{coa.id}/', {'product': other.id}, format='json')
        self.assertEqual(response.data['product_name'], 'Runtz')

    def test_delete_keeps_record(self):
        coa = self._coa()
        response = self.client.delete(f'/api/v1/coas/{coa.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        coa.refresh_from_db()
        self.assertFalse(coa.is_active)
        self.assertEqual(self.client.get(f'/api/v1/coas/{coa.id}/').status_code, status.HTTP_404_NOT_FOUND)

    def test_employee_reads_only(self):
        coa = self._coa()
        employee = TestDataFactory.create_user(vendor=self.vendor, role='employee')
        self.client.authenticate_user(employee)
        self.assertEqual(self.client.get('/api/v1/coas/').status_code, status.HTTP_200_OK)
        response = self.client.delete(f'/api/v1/coas/{coa.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
