"""
Test utilities and factories for creating test data
"""
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from greenleaf.vendors.models import Vendor
from greenleaf.locations.models import Location
from greenleaf.catalog.models import Category, Product
from greenleaf.customers.models import Customer
from greenleaf.inventory.utils import adjust_inventory
from greenleaf.pos.models import POSRegister
from decimal import Decimal
import random
import string

User = get_user_model()

TEST_PASSWORD = 'GreenLeaf!2024pass'


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_lowercase + string.digits, k=length))

    @staticmethod
    def create_vendor(name=None, slug=None, status='active', tax_rate=None):
        """Create a test vendor"""
        if not name:
            name = f'Vendor {TestDataFactory.random_string(6)}'
        if not slug:
            slug = f'vendor-{TestDataFactory.random_string(8)}'
        settings = {'currency': 'USD'}
        if tax_rate is not None:
            settings['tax_rate'] = str(tax_rate)
        return Vendor.objects.create(name=name, slug=slug, email=f'{slug}@test.com', status=status, settings=settings)

    @staticmethod
    def create_user(vendor=None, role='vendor', username=None, password=TEST_PASSWORD, is_superuser=False):
        """Create a test user; role 'vendor' is the vendor's administrator"""
        if not username:
            username = f'testuser_{TestDataFactory.random_string(6)}'
        return User.objects.create_user(
            username=username,
            email=f'{username}@test.com',
            password=password,
            role=role,
            vendor=vendor,
            is_superuser=is_superuser,
            is_staff=is_superuser,
        )

    @staticmethod
    def create_platform_admin(username=None):
        return TestDataFactory.create_user(vendor=None, role='admin', username=username)

    @staticmethod
    def create_location(vendor, name=None, code=None, is_primary=False, pos_enabled=True):
        """Create a test location"""
        if not name:
            name = f'Store {TestDataFactory.random_string(4)}'
        if not code:
            code = f'LOC{TestDataFactory.random_string(4).upper()}'
        return Location.objects.create(
            vendor=vendor,
            name=name,
            code=code,
            city='Charlotte',
            state='NC',
            is_primary=is_primary,
            pos_enabled=pos_enabled,
        )

    @staticmethod
    def create_category(vendor, name=None, field_visibility=None):
        """Create a test category"""
        if not name:
            name = f'Category {TestDataFactory.random_string(6)}'
        return Category.objects.create(
            vendor=vendor,
            name=name,
            slug=f'cat-{TestDataFactory.random_string(8)}',
            field_visibility=field_visibility or {},
        )

    @staticmethod
    def create_product(vendor, name=None, sku=None, price=None, category=None, status='published',
                       custom_fields=None, manage_stock=True, cost_price=None):
        """Create a test product"""
        if not name:
            name = f'Product {TestDataFactory.random_string(6)}'
        if sku is None:
            sku = f'SKU-{TestDataFactory.random_string(8).upper()}'
        return Product.objects.create(
            vendor=vendor,
            name=name,
            slug=f'product-{TestDataFactory.random_string(8)}',
            sku=sku,
            category=category,
            price=price if price is not None else Decimal('10.00'),
            cost_price=cost_price,
            status=status,
            custom_fields=custom_fields or {},
            manage_stock=manage_stock,
        )

    @staticmethod
    def stock_product(product, location, quantity, user=None):
        """Put stock on hand through the inventory ledger so product totals stay in sync"""
        result = adjust_inventory(product.vendor, product, Decimal(str(quantity)), location=location,
                                  reason='Test stock', user=user)
        product.refresh_from_db()
        return result

    @staticmethod
    def create_customer(vendor, first_name=None, email=None):
        """Create a test customer"""
        if not first_name:
            first_name = f'Customer{TestDataFactory.random_string(4)}'
        if email is None:
            email = f'{first_name.lower()}@test.com'
        return Customer.objects.create(
            vendor=vendor,
            first_name=first_name,
            last_name='Test',
            email=email,
            phone=f'704{random.randint(1000000, 9999999)}',
        )

    @staticmethod
    def create_register(location, name=None):
        """Create a test POS register"""
        return POSRegister.objects.create(
            vendor=location.vendor,
            location=location,
            name=name or f'Register {TestDataFactory.random_string(3)}',
        )


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()
