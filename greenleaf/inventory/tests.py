"""
Test suite for inventory adjustments, transfers and bulk operations
"""
from decimal import Decimal
from io import StringIO
from django.core.management import call_command
from django.test import TestCase
from rest_framework import status
from greenleaf.catalog.models import Product
from greenleaf.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from greenleaf.inventory.models import Inventory, InventoryTransaction
from greenleaf.inventory.utils import (
    InsufficientInventory, InventoryError, adjust_inventory, deduct_for_sale, restock, transfer_inventory,
)


class InventoryUtilsTests(TestCase):
    """Ledger and stock-sync behaviour of the movement helpers"""

    def setUp(self):
        self.vendor = TestDataFactory.create_vendor()
        self.user = TestDataFactory.create_user(vendor=self.vendor)
        self.store = TestDataFactory.create_location(self.vendor, name='Store', is_primary=True)
        self.warehouse = TestDataFactory.create_location(self.vendor, name='Warehouse')
        self.product = TestDataFactory.create_product(self.vendor)

    def test_adjust_defaults_to_primary_location(self):
        result = adjust_inventory(self.vendor, self.product, Decimal('10'), user=self.user)
        self.assertEqual(result['location_id'], self.store.id)
        self.assertTrue(result['was_created'])
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, Decimal('10.000'))
        self.assertEqual(self.product.stock_status, 'in_stock')

    def test_adjust_below_zero_rejected(self):
        TestDataFactory.stock_product(self.product, self.store, 3)
        with self.assertRaises(InventoryError):
            adjust_inventory(self.vendor, self.product, Decimal('-5'), location=self.store)
        self.assertEqual(Inventory.objects.get(product=self.product).quantity, Decimal('3.000'))

    def test_adjust_rejects_foreign_location(self):
        foreign = TestDataFactory.create_location(TestDataFactory.create_vendor())
        with self.assertRaises(InventoryError):
            adjust_inventory(self.vendor, self.product, Decimal('1'), location=foreign)

    def test_low_stock_status(self):
        TestDataFactory.stock_product(self.product, self.store, 4)
        self.assertEqual(self.product.stock_status, 'low_stock')

    def test_product_total_spans_locations(self):
        TestDataFactory.stock_product(self.product, self.store, 10)
        TestDataFactory.stock_product(self.product, self.warehouse, 15)
        self.assertEqual(self.product.stock_quantity, Decimal('25.000'))

    def test_transfer_writes_paired_ledger_rows(self):
        TestDataFactory.stock_product(self.product, self.warehouse, 20)
        source = Inventory.objects.get(product=self.product, location=self.warehouse)
        result = transfer_inventory(source, self.store, Decimal('8'), user=self.user)

        self.assertEqual(result['from_quantity'], Decimal('12.000'))
        self.assertEqual(result['to_quantity'], Decimal('8'))
        rows = InventoryTransaction.objects.filter(reference_id=result['reference'])
        self.assertEqual(set(rows.values_list('transaction_type', flat=True)), {'transfer_in', 'transfer_out'})
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, Decimal('20.000'))

    def test_transfer_insufficient_changes_nothing(self):
        TestDataFactory.stock_product(self.product, self.warehouse, 2)
        source = Inventory.objects.get(product=self.product, location=self.warehouse)
        with self.assertRaises(InventoryError):
            transfer_inventory(source, self.store, Decimal('5'))
        self.assertFalse(Inventory.objects.filter(product=self.product, location=self.store).exists())
        self.assertFalse(InventoryTransaction.objects.filter(reference_type='transfer').exists())

    def test_transfer_to_same_location_rejected(self):
        TestDataFactory.stock_product(self.product, self.store, 5)
        source = Inventory.objects.get(product=self.product, location=self.store)
        with self.assertRaises(InventoryError):
            transfer_inventory(source, self.store, Decimal('1'))

    def test_deduct_for_sale_insufficient(self):
        TestDataFactory.stock_product(self.product, self.store, 1)
        with self.assertRaises(InsufficientInventory) as ctx:
            deduct_for_sale(self.product, self.store, Decimal('2'))
        self.assertEqual(str(ctx.exception), f"Insufficient inventory: {self.product.name}")

    def test_unmanaged_product_skips_stock(self):
        product = TestDataFactory.create_product(self.vendor, manage_stock=False)
        self.assertIsNone(deduct_for_sale(product, self.store, Decimal('100')))

    def test_restock_after_sale(self):
        TestDataFactory.stock_product(self.product, self.store, 5)
        deduct_for_sale(self.product, self.store, Decimal('2'), reference_id='ORD-1')
        restock(self.product, self.store, Decimal('2'), reference_id='ORD-1')
        self.assertEqual(Inventory.objects.get(product=self.product, location=self.store).quantity, Decimal('5.000'))
        self.assertEqual(InventoryTransaction.objects.filter(reference_id='ORD-1').count(), 2)


class InventoryAPITests(TestCase):
    """Inventory endpoints"""

    def setUp(self):
        self.vendor = TestDataFactory.create_vendor()
        self.user = TestDataFactory.create_user(vendor=self.vendor, role='employee')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.store = TestDataFactory.create_location(self.vendor, is_primary=True)
        self.warehouse = TestDataFactory.create_location(self.vendor)
        self.product = TestDataFactory.create_product(self.vendor)

    def test_adjust_endpoint(self):
        response = self.client.post('/api/v1/inventory/adjust/', {
            'productId': self.product.id,
            'adjustment': '12.5',
            'locationId': self.store.id,
            'reason': 'Delivery',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['success'])
        self.assertEqual(response.data['new_quantity'], Decimal('12.500'))

    def test_adjust_zero_rejected(self):
        response = self.client.post('/api/v1/inventory/adjust/', {
            'productId': self.product.id,
            'adjustment': 0,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_adjust_non_numeric_rejected(self):
        response = self.client.post('/api/v1/inventory/adjust/', {
            'productId': self.product.id,
            'adjustment': 'lots',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'adjustment must be a number')

    def test_non_numeric_ids_rejected(self):
        response = self.client.post('/api/v1/inventory/adjust/', {'productId': 'abc', 'adjustment': 1}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'productId must be an integer id')
        response = self.client.post('/api/v1/inventory/transfer/', {
            'inventoryId': 'abc',
            'toLocationId': self.store.id,
            'quantity': '1',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.get('/api/v1/inventory/?location=abc')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_adjust_foreign_product_not_found(self):
        foreign = TestDataFactory.create_product(TestDataFactory.create_vendor())
        response = self.client.post('/api/v1/inventory/adjust/', {
            'productId': foreign.id,
            'adjustment': 1,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_transfer_endpoint(self):
        TestDataFactory.stock_product(self.product, self.warehouse, 10)
        inventory = Inventory.objects.get(product=self.product, location=self.warehouse)
        response = self.client.post('/api/v1/inventory/transfer/', {
            'inventoryId': inventory.id,
            'toLocationId': self.store.id,
            'quantity': '4',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['reference'].startswith('TRF-'))

    def test_transfer_too_much(self):
        TestDataFactory.stock_product(self.product, self.warehouse, 1)
        inventory = Inventory.objects.get(product=self.product, location=self.warehouse)
        response = self.client.post('/api/v1/inventory/transfer/', {
            'inventoryId': inventory.id,
            'toLocationId': self.store.id,
            'quantity': '4',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('Insufficient quantity', response.data['error'])

    def test_bulk_zero_out_reports_partial_failures(self):
        TestDataFactory.stock_product(self.product, self.store, 6)
        inventory = Inventory.objects.get(product=self.product, location=self.store)
        response = self.client.post('/api/v1/inventory/bulk-operations/', {
            'operation': 'zero_out',
            'items': [{'inventoryId': inventory.id}, {'inventoryId': 999999}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['success'], 1)
        self.assertEqual(response.data['failed'], 1)
        inventory.refresh_from_db()
        self.assertEqual(inventory.quantity, Decimal('0.000'))

    def test_bulk_audit_sets_count(self):
        TestDataFactory.stock_product(self.product, self.store, 6)
        inventory = Inventory.objects.get(product=self.product, location=self.store)
        response = self.client.post('/api/v1/inventory/bulk-operations/', {
            'operation': 'audit',
            'items': [{'inventoryId': inventory.id, 'newQuantity': '9'}],
        }, format='json')
        self.assertEqual(response.data['success'], 1)
        ledger = InventoryTransaction.objects.filter(transaction_type='audit').get()
        self.assertEqual(ledger.quantity_change, Decimal('3.000'))

    def test_bulk_invalid_operation(self):
        response = self.client.post('/api/v1/inventory/bulk-operations/', {
            'operation': 'shred',
            'items': [{'inventoryId': 1}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_inventory_list_low_stock(self):
        TestDataFactory.stock_product(self.product, self.store, 2)
        inventory = Inventory.objects.get(product=self.product, location=self.store)
        inventory.reorder_point = Decimal('5')
        inventory.save()
        other = TestDataFactory.create_product(self.vendor)
        TestDataFactory.stock_product(other, self.store, 50)

        response = self.client.get('/api/v1/inventory/?low_stock=true')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row['id'] for row in response.data], [inventory.id])

    def test_transaction_ledger_filter(self):
        TestDataFactory.stock_product(self.product, self.store, 2)
        response = self.client.get(f'/api/v1/inventory/transactions/?product={self.product.id}')
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['transaction_type'], 'purchase')


class CheckInventorySyncCommandTests(TestCase):
    def setUp(self):
        self.vendor = TestDataFactory.create_vendor()
        self.store = TestDataFactory.create_location(self.vendor, name='Store', is_primary=True)
        self.product = TestDataFactory.create_product(self.vendor, name='Wedding Cake')
        TestDataFactory.stock_product(self.product, self.store, 12)

    def test_in_sync(self):
        out = StringIO()
        call_command('check_inventory_sync', stdout=out)
        self.assertIn('All products are in sync', out.getvalue())

    def test_report_then_fix(self):
        Product.objects.filter(pk=self.product.pk).update(stock_quantity=Decimal('99'))
        out = StringIO()
        call_command('check_inventory_sync', stdout=out)
        self.assertIn('1 product(s) out of sync', out.getvalue())
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, Decimal('99'))

        out = StringIO()
        call_command('check_inventory_sync', '--fix', stdout=out)
        self.assertIn('Fixed 1 product(s)', out.getvalue())
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, Decimal('12'))
