"""
Test suite for suppliers, purchase orders and receiving
"""
from decimal import Decimal
from django.test import TestCase
from rest_framework import status
from greenleaf.catalog.models import Product
from greenleaf.core.models import AuditLog
from greenleaf.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from greenleaf.inventory.models import Inventory, InventoryTransaction
from greenleaf.purchasing.models import Supplier, PurchaseOrder, PurchaseReceipt
from greenleaf.purchasing.utils import PurchasingError, create_purchase_order, receive_purchase_order


class SupplierAPITests(TestCase):

    def setUp(self):
        self.vendor = TestDataFactory.create_vendor()
        self.admin = TestDataFactory.create_user(vendor=self.vendor)
        self.employee = TestDataFactory.create_user(vendor=self.vendor, role='employee')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_create_and_search(self):
        response = self.client.post('/api/v1/suppliers/', {
            'name': '  Emerald Farms ',
            'contact_name': 'Dana Ruiz',
            'email': 'Orders@EmeraldFarms.com',
            'payment_terms': 'Net 30',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['name'], 'Emerald Farms')
        self.assertEqual(response.data['email'], 'orders@emeraldfarms.com')
        Supplier.objects.create(vendor=self.vendor, name='Coastal Glass')
        Supplier.objects.create(vendor=TestDataFactory.create_vendor(), name='Emerald Other')

        response = self.client.get('/api/v1/suppliers/?search=emerald')
        self.assertEqual([s['name'] for s in response.data], ['Emerald Farms'])
        self.assertTrue(AuditLog.objects.filter(action='create', model_name='Supplier').exists())

    def test_blank_name_rejected(self):
        response = self.client.post('/api/v1/suppliers/', {'name': '   '}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_deactivates(self):
        supplier = Supplier.objects.create(vendor=self.vendor, name='Emerald Farms')
        response = self.client.delete(f'/api/v1/suppliers/{supplier.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        supplier.refresh_from_db()
        self.assertFalse(supplier.is_active)
        response = self.client.get('/api/v1/suppliers/?active=true')
        self.assertEqual(response.data, [])

    def test_employee_reads_but_cannot_write(self):
        supplier = Supplier.objects.create(vendor=self.vendor, name='Emerald Farms')
        self.client.authenticate_user(self.employee)
        self.assertEqual(self.client.get('/api/v1/suppliers/').status_code, status.HTTP_200_OK)
        response = self.client.post('/api/v1/suppliers/', {'name': 'Other'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        response = self.client.patch(f'/api/v1/suppliers/{supplier.id}/', {'name': 'Renamed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_other_vendor_supplier_not_found(self):
        supplier = Supplier.objects.create(vendor=TestDataFactory.create_vendor(), name='Elsewhere')
        self.assertEqual(self.client.get(f'/api/v1/suppliers/{supplier.id}/').status_code, status.HTTP_404_NOT_FOUND)


class PurchaseOrderTests(TestCase):
    """Creating, submitting and receiving purchase orders"""

    def setUp(self):
        self.vendor = TestDataFactory.create_vendor()
        self.admin = TestDataFactory.create_user(vendor=self.vendor)
        self.employee = TestDataFactory.create_user(vendor=self.vendor, role='employee')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)
        self.store = TestDataFactory.create_location(self.vendor, name='Store', is_primary=True)
        self.warehouse = TestDataFactory.create_location(self.vendor, name='Warehouse')
        self.supplier = Supplier.objects.create(vendor=self.vendor, name='Emerald Farms')
        self.flower = TestDataFactory.create_product(self.vendor, name='Blue Dream 3.5g', cost_price=Decimal('12.00'))
        self.edible = TestDataFactory.create_product(self.vendor, name='Gummies')

    def _create(self, **overrides):
        payload = {
            'supplierId': self.supplier.id,
            'locationId': self.warehouse.id,
            'items': [
                {'productId': self.flower.id, 'quantity': '20'},
                {'productId': self.edible.id, 'quantity': '10', 'unitCost': '4.50'},
            ],
            'expectedDeliveryDate': '2026-11-02',
        }
        payload.update(overrides)
        return self.client.post('/api/v1/purchase-orders/', payload, format='json')

    def _submitted_order(self):
        order = create_purchase_order(
            self.vendor, self.supplier, self.warehouse,
            [{'product': self.flower, 'quantity': Decimal('20'), 'unit_cost': Decimal('12.00')},
             {'product': self.edible, 'quantity': Decimal('10'), 'unit_cost': Decimal('4.50')}],
            user=self.admin,
        )
        order.status = 'submitted'
        order.save()
        return order

    def test_create_draft(self):
        response = self._create()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], 'draft')
        self.assertTrue(response.data['po_number'].startswith('PO-'))
        self.assertEqual(response.data['item_count'], 2)
        self.assertEqual(response.data['subtotal'], '285.00')
        flower_line = next(i for i in response.data['items'] if i['product'] == self.flower.id)
        self.assertEqual(flower_line['unit_cost'], '12.00')
        self.assertEqual(flower_line['product_name'], 'Blue Dream 3.5g')

    def test_create_rejects_bad_lines(self):
        self.assertEqual(self._create(items=[]).status_code, status.HTTP_400_BAD_REQUEST)
        response = self._create(items=[{'productId': self.flower.id, 'quantity': '0'}])
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self._create(items=[{'productId': self.flower.id, 'quantity': '1'},
                                       {'productId': self.flower.id, 'quantity': '2'}])
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('listed twice', response.data['error'])
        response = self._create(expectedDeliveryDate='next week')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(PurchaseOrder.objects.exists())

    def test_create_rejects_other_vendor_product(self):
        foreign = TestDataFactory.create_product(TestDataFactory.create_vendor())
        response = self._create(items=[{'productId': foreign.id, 'quantity': '5'}])
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], f'Product not found: {foreign.id}')

    def test_create_rejects_inactive_supplier(self):
        self.supplier.is_active = False
        self.supplier.save()
        response = self._create()
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_non_numeric_ids_rejected(self):
        response = self._create(supplierId='abc')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'supplierId must be an integer id')
        response = self._create(items=[{'productId': 'abc', 'quantity': '1'}])
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.get('/api/v1/purchase-orders/?supplier=abc')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_employee_cannot_create(self):
        self.client.authenticate_user(self.employee)
        self.assertEqual(self._create().status_code, status.HTTP_403_FORBIDDEN)

    def test_submit_then_cancel(self):
        order_id = self._create().data['id']
        response = self.client.patch(f'/api/v1/purchase-orders/{order_id}/', {'status': 'submitted'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'submitted')
        self.assertIsNotNone(response.data['submitted_at'])
        self.assertTrue(AuditLog.objects.filter(action='po_status', object_id=str(order_id)).exists())

        response = self.client.patch(f'/api/v1/purchase-orders/{order_id}/', {'status': 'cancelled'}, format='json')
        self.assertEqual(response.data['status'], 'cancelled')

    def test_invalid_transition_conflicts(self):
        order = self._submitted_order()
        response = self.client.patch(f'/api/v1/purchase-orders/{order.id}/', {'status': 'draft'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        response = self.client.patch(f'/api/v1/purchase-orders/{order.id}/', {'status': 'received'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        response = self.client.patch(f'/api/v1/purchase-orders/{order.id}/', {'status': 'lost'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_filters(self):
        self._submitted_order()
        other = Supplier.objects.create(vendor=self.vendor, name='Coastal Glass')
        self._create(supplierId=other.id)
        response = self.client.get(f'/api/v1/purchase-orders/?supplier={other.id}')
        self.assertEqual(len(response.data), 1)
        response = self.client.get('/api/v1/purchase-orders/?status=submitted')
        self.assertEqual([o['supplier_name'] for o in response.data], ['Emerald Farms'])

    def test_partial_then_full_receipt(self):
        order = self._submitted_order()
        flower_line = order.items.get(product=self.flower)
        edible_line = order.items.get(product=self.edible)
        self.client.authenticate_user(self.employee)

        response = self.client.post(f'/api/v1/purchase-orders/{order.id}/receive/', {
            'items': [{'itemId': flower_line.id, 'quantityReceived': '15'}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['purchase_order']['status'], 'partial')
        self.assertEqual(response.data['stocked'], Decimal('15'))

        ledger = InventoryTransaction.objects.get(inventory__product=self.flower)
        self.assertEqual(ledger.transaction_type, 'purchase')
        self.assertEqual(ledger.reference_id, order.po_number)
        self.assertEqual(ledger.reference_type, 'purchase_order')
        self.assertEqual(ledger.quantity_change, Decimal('15.000'))
        self.assertEqual(Inventory.objects.get(product=self.flower, location=self.warehouse).quantity,
                         Decimal('15.000'))

        response = self.client.post(f'/api/v1/purchase-orders/{order.id}/receive/', {
            'items': [{'itemId': flower_line.id, 'quantityReceived': '5'},
                      {'itemId': edible_line.id, 'quantityReceived': '10'}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['purchase_order']['status'], 'received')
        order.refresh_from_db()
        self.assertIsNotNone(order.received_at)
        self.flower.refresh_from_db()
        self.assertEqual(self.flower.stock_quantity, Decimal('20.000'))
        self.assertFalse(Inventory.objects.filter(location=self.store).exists())
        self.assertEqual(AuditLog.objects.filter(action='po_receive', object_id=str(order.id)).count(), 2)

    def test_damaged_stock_needs_notes_and_is_not_shelved(self):
        order = self._submitted_order()
        line = order.items.get(product=self.edible)
        url = f'/api/v1/purchase-orders/{order.id}/receive/'

        response = self.client.post(url, {
            'items': [{'itemId': line.id, 'quantityReceived': '2', 'condition': 'damaged'}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Notes are required for damaged items')

        response = self.client.post(url, {
            'items': [{'itemId': line.id, 'quantityReceived': '2', 'condition': 'damaged', 'notes': 'Crushed box'}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['stocked'], Decimal('0.000'))
        line.refresh_from_db()
        self.assertEqual(line.quantity_received, Decimal('2.000'))
        self.assertFalse(Inventory.objects.filter(product=self.edible).exists())
        self.assertEqual(PurchaseReceipt.objects.get(item=line).notes, 'Crushed box')

    def test_over_receipt_rejected_atomically(self):
        order = self._submitted_order()
        flower_line = order.items.get(product=self.flower)
        edible_line = order.items.get(product=self.edible)
        response = self.client.post(f'/api/v1/purchase-orders/{order.id}/receive/', {
            'items': [{'itemId': flower_line.id, 'quantityReceived': '5'},
                      {'itemId': edible_line.id, 'quantityReceived': '11'}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('only 10.000 outstanding', response.data['error'])
        self.assertFalse(InventoryTransaction.objects.exists())
        flower_line.refresh_from_db()
        self.assertEqual(flower_line.quantity_received, Decimal('0.000'))

    def test_draft_cannot_be_received(self):
        order_id = self._create().data['id']
        order = PurchaseOrder.objects.get(pk=order_id)
        line = order.items.first()
        response = self.client.post(f'/api/v1/purchase-orders/{order_id}/receive/', {
            'items': [{'itemId': line.id, 'quantityReceived': '1'}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_receive_rejects_line_from_another_order(self):
        order = self._submitted_order()
        other = self._submitted_order()
        with self.assertRaises(PurchasingError):
            receive_purchase_order(order, [{'item_id': other.items.first().id, 'quantity': Decimal('1')}], self.admin)

    def test_receive_non_numeric_item_id(self):
        order = self._submitted_order()
        response = self.client.post(f'/api/v1/purchase-orders/{order.id}/receive/', {
            'items': [{'itemId': 'abc', 'quantityReceived': '1'}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'itemId must be an integer id')

    def test_product_on_order_cannot_be_deleted(self):
        self._submitted_order()
        response = self.client.delete(f'/api/v1/products/{self.flower.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(Product.objects.filter(pk=self.flower.id).exists())
