"""
Test suite for POS registers, sessions, cash drawer, sales and voids
"""
from datetime import timedelta
from decimal import Decimal
from io import StringIO
import threading
from unittest.mock import patch
from django.db import IntegrityError, connection, transaction
from django.core.management import call_command
from django.test import TestCase, TransactionTestCase, skipUnlessDBFeature
from django.utils import timezone
from rest_framework import status
from greenleaf.core.models import AuditLog
from greenleaf.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from greenleaf.inventory.models import Inventory, InventoryTransaction
from greenleaf.loyalty.models import CustomerLoyalty, LoyaltyProgram
from greenleaf.orders.models import Order
from greenleaf.pos.models import CashMovement, POSSession, POSTransaction
from greenleaf.pos.utils import (
    SaleError, SessionError, close_session, create_pos_sale, get_or_create_session, record_cash_movement,
)


class POSTestCase(TestCase):
    """Vendor with one POS location, a register and a stocked product"""

    def setUp(self):
        self.vendor = TestDataFactory.create_vendor()
        self.user = TestDataFactory.create_user(vendor=self.vendor, role='employee')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.location = TestDataFactory.create_location(self.vendor, name='Main Street', is_primary=True)
        self.register = TestDataFactory.create_register(self.location, name='Front')
        self.product = TestDataFactory.create_product(self.vendor, price=Decimal('10.00'))
        TestDataFactory.stock_product(self.product, self.location, 10)

    def open_session(self, opening_cash='100.00'):
        session, _ = get_or_create_session(self.register, self.user, Decimal(opening_cash))
        return session

    def sale_payload(self, quantity=2, total='20.00', **extra):
        payload = {
            'locationId': self.location.id,
            'items': [{'productId': self.product.id, 'quantity': quantity, 'unitPrice': '10.00'}],
            'total': total,
            'paymentMethod': 'cash',
        }
        payload.update(extra)
        return payload


class RegisterTests(POSTestCase):
    def test_employee_cannot_create_register(self):
        response = self.client.post('/api/v1/registers/', {'location': self.location.id, 'name': 'Back'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_admin_creates_register(self):
        owner = TestDataFactory.create_user(vendor=self.vendor, role='vendor')
        self.client.authenticate_user(owner)
        response = self.client.post('/api/v1/registers/', {'location': self.location.id, 'name': 'Back'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertFalse(response.data['has_open_session'])

    def test_register_requires_pos_location(self):
        owner = TestDataFactory.create_user(vendor=self.vendor, role='vendor')
        self.client.authenticate_user(owner)
        warehouse = TestDataFactory.create_location(self.vendor, pos_enabled=False)
        response = self.client.post('/api/v1/registers/', {'location': warehouse.id, 'name': 'X'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_register_with_history_is_deactivated(self):
        owner = TestDataFactory.create_user(vendor=self.vendor, role='vendor')
        self.client.authenticate_user(owner)
        session = self.open_session()
        close_session(session, self.user, Decimal('100.00'))
        response = self.client.delete(f'/api/v1/registers/{self.register.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.register.refresh_from_db()
        self.assertFalse(self.register.is_active)

    def test_cannot_delete_register_with_open_session(self):
        owner = TestDataFactory.create_user(vendor=self.vendor, role='vendor')
        self.client.authenticate_user(owner)
        self.open_session()
        response = self.client.delete(f'/api/v1/registers/{self.register.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class SessionTests(POSTestCase):
    def test_open_session(self):
        response = self.client.post('/api/v1/pos/sessions/open/', {
            'registerId': self.register.id,
            'openingCash': '150.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['created'])
        self.assertTrue(response.data['session']['session_number'].startswith('SES-'))
        self.assertTrue(AuditLog.objects.filter(action='session_open').exists())

    def test_second_open_returns_existing_session(self):
        first = self.client.post('/api/v1/pos/sessions/open/', {'registerId': self.register.id}, format='json')
        second = self.client.post('/api/v1/pos/sessions/open/', {'registerId': self.register.id}, format='json')
        self.assertEqual(second.status_code, status.HTTP_200_OK)
        self.assertFalse(second.data['created'])
        self.assertEqual(first.data['session']['id'], second.data['session']['id'])
        self.assertEqual(POSSession.objects.filter(register=self.register, status='open').count(), 1)

    def test_constraint_rejects_second_open_session(self):
        self.open_session()
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                POSSession.objects.create(vendor=self.vendor, location=self.location, register=self.register,
                                          session_number='SES-DUPLICATE', opened_by=self.user)
        self.assertEqual(POSSession.objects.filter(register=self.register, status='open').count(), 1)

    def test_racing_open_returns_winner_session(self):
        winner = self.open_session()
        real_filter = POSSession.objects.filter
        calls = []

        def filter_missing_first_lookup(*args, **kwargs):
            # The first lookup runs before the winner committed, so it sees nothing
            calls.append(kwargs)
            if len(calls) == 1:
                return POSSession.objects.none()
            return real_filter(*args, **kwargs)

        with patch.object(POSSession.objects, 'filter', side_effect=filter_missing_first_lookup):
            session, created = get_or_create_session(self.register, self.user, Decimal('50.00'))

        self.assertFalse(created)
        self.assertEqual(session.id, winner.id)
        self.assertEqual(POSSession.objects.filter(register=self.register, status='open').count(), 1)

    def test_negative_opening_cash(self):
        with self.assertRaises(SessionError):
            get_or_create_session(self.register, self.user, Decimal('-1'))

    def test_inactive_register(self):
        self.register.is_active = False
        self.register.save()
        response = self.client.post('/api/v1/pos/sessions/open/', {'registerId': self.register.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Register is inactive')

    def test_non_numeric_register_id(self):
        response = self.client.post('/api/v1/pos/sessions/open/', {'registerId': 'abc'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'registerId must be an integer id')
        response = self.client.get('/api/v1/pos/sessions/current/?register=abc')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.get('/api/v1/pos/sessions/?register=abc')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_current_session(self):
        response = self.client.get(f'/api/v1/pos/sessions/current/?register={self.register.id}')
        self.assertIsNone(response.data['session'])
        session = self.open_session()
        response = self.client.get(f'/api/v1/pos/sessions/current/?register={self.register.id}')
        self.assertEqual(response.data['session']['id'], session.id)

    def test_close_session_computes_difference(self):
        session = self.open_session('100.00')
        create_pos_sale(vendor=self.vendor, user=self.user, location=self.location, session=session,
                        items=[{'product': self.product, 'quantity': Decimal('2'), 'unit_price': Decimal('10.00')}],
                        total=Decimal('20.00'))
        record_cash_movement(session, 'paid_out', Decimal('5.00'), 'Ice for the cooler', self.user)

        response = self.client.post(f'/api/v1/pos/sessions/{session.id}/close/', {'closingCash': '113.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        session.refresh_from_db()
        self.assertEqual(session.status, 'closed')
        self.assertEqual(session.expected_cash, Decimal('115.00'))
        self.assertEqual(session.cash_difference, Decimal('-2.00'))

    def test_close_twice(self):
        session = self.open_session()
        close_session(session, self.user, Decimal('100.00'))
        response = self.client.post(f'/api/v1/pos/sessions/{session.id}/close/', {'closingCash': '100.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Session is already closed')

    def test_new_session_after_close(self):
        session = self.open_session()
        close_session(session, self.user, Decimal('100.00'))
        new_session, created = get_or_create_session(self.register, self.user)
        self.assertTrue(created)
        self.assertNotEqual(new_session.id, session.id)

    def test_other_vendor_session_not_found(self):
        other_vendor = TestDataFactory.create_vendor()
        other_location = TestDataFactory.create_location(other_vendor)
        other_register = TestDataFactory.create_register(other_location)
        other_session, _ = get_or_create_session(other_register, TestDataFactory.create_user(vendor=other_vendor))
        response = self.client.get(f'/api/v1/pos/sessions/{other_session.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class CashMovementTests(POSTestCase):
    def test_paid_in_and_no_sale(self):
        session = self.open_session('50.00')
        response = self.client.post(f'/api/v1/pos/sessions/{session.id}/cash-movements/', {
            'movementType': 'paid_in',
            'amount': '20.00',
            'reason': 'Change float top-up',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        response = self.client.post(f'/api/v1/pos/sessions/{session.id}/cash-movements/', {
            'movementType': 'no_sale',
            'reason': 'Customer needed change',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(CashMovement.objects.get(movement_type='no_sale').amount, Decimal('0.00'))

        summary = self.client.get(f'/api/v1/pos/sessions/{session.id}/summary/').data
        self.assertEqual(summary['expected_cash'], Decimal('70.00'))
        self.assertEqual(summary['no_sale_count'], 1)

    def test_paid_out_stored_negative(self):
        session = self.open_session('50.00')
        movement = record_cash_movement(session, 'paid_out', Decimal('10.00'), 'Supplies', self.user)
        self.assertEqual(movement.amount, Decimal('-10.00'))

    def test_paid_out_cannot_exceed_drawer(self):
        session = self.open_session('10.00')
        with self.assertRaises(SessionError):
            record_cash_movement(session, 'paid_out', Decimal('25.00'), 'Too much', self.user)

    def test_reason_required(self):
        session = self.open_session()
        response = self.client.post(f'/api/v1/pos/sessions/{session.id}/cash-movements/', {
            'movementType': 'paid_in',
            'amount': '5.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_closed_session_rejects_movements(self):
        session = self.open_session()
        close_session(session, self.user, Decimal('100.00'))
        with self.assertRaises(SessionError):
            record_cash_movement(session, 'paid_in', Decimal('5.00'), 'Late', self.user)


class SaleTests(POSTestCase):
    def test_cash_sale(self):
        session = self.open_session()
        response = self.client.post('/api/v1/pos/sales/', self.sale_payload(
            sessionId=session.id, cashTendered='50.00'), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['order']['status'], 'completed')
        self.assertEqual(response.data['order']['payment_status'], 'paid')
        self.assertEqual(response.data['transaction']['change_given'], '30.00')
        self.assertTrue(response.data['order']['order_number'].startswith('MAI-'))
        self.assertIsNone(response.data['loyalty'])

        inventory = Inventory.objects.get(product=self.product, location=self.location)
        self.assertEqual(inventory.quantity, Decimal('8.000'))
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, Decimal('8.000'))

        session.refresh_from_db()
        self.assertEqual(session.total_sales, Decimal('20.00'))
        self.assertEqual(session.total_cash, Decimal('20.00'))
        self.assertEqual(session.total_transactions, 1)

    def test_tax_defaults_to_vendor_rate(self):
        self.vendor.settings = {'tax_rate': '0.08'}
        self.vendor.save()
        response = self.client.post('/api/v1/pos/sales/', self.sale_payload(total='21.60'), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['order']['tax_amount'], '1.60')

    def test_total_mismatch_rejected(self):
        response = self.client.post('/api/v1/pos/sales/', self.sale_payload(total='25.00'), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Order.objects.exists())

    def test_insufficient_inventory_rolls_back(self):
        response = self.client.post('/api/v1/pos/sales/', self.sale_payload(quantity=11, total='110.00'), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], f'Insufficient inventory: {self.product.name}')
        self.assertFalse(Order.objects.exists())
        self.assertFalse(POSTransaction.objects.exists())
        self.assertEqual(Inventory.objects.get(product=self.product, location=self.location).quantity, Decimal('10.000'))

    def test_card_sale(self):
        response = self.client.post('/api/v1/pos/sales/', self.sale_payload(paymentMethod='card'), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['transaction']['card_amount'], '20.00')
        self.assertEqual(response.data['transaction']['cash_amount'], '0.00')

    def test_split_sale(self):
        session = self.open_session()
        response = self.client.post('/api/v1/pos/sales/', self.sale_payload(
            paymentMethod='split', cashAmount='5.00', sessionId=session.id), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        session.refresh_from_db()
        self.assertEqual(session.total_cash, Decimal('5.00'))
        self.assertEqual(session.total_card, Decimal('15.00'))

    def test_short_cash_rejected(self):
        with self.assertRaises(SaleError):
            create_pos_sale(vendor=self.vendor, user=self.user, location=self.location,
                            items=[{'product': self.product, 'quantity': Decimal('1'), 'unit_price': Decimal('10.00')}],
                            total=Decimal('10.00'), cash_tendered=Decimal('5.00'))

    def test_closed_session_rejected(self):
        session = self.open_session()
        close_session(session, self.user, Decimal('100.00'))
        response = self.client.post('/api/v1/pos/sales/', self.sale_payload(sessionId=session.id), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_customer_sale_awards_points(self):
        LoyaltyProgram.objects.create(vendor=self.vendor)
        customer = TestDataFactory.create_customer(self.vendor)
        response = self.client.post('/api/v1/pos/sales/', self.sale_payload(customerId=customer.id), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['loyalty']['points'], 20)
        self.assertEqual(response.data['transaction']['transaction_type'], 'customer_sale')
        self.assertEqual(CustomerLoyalty.objects.get(customer=customer).points_balance, 20)

    def test_foreign_product_rejected(self):
        foreign = TestDataFactory.create_product(TestDataFactory.create_vendor())
        payload = self.sale_payload()
        payload['items'][0]['productId'] = foreign.id
        response = self.client.post('/api/v1/pos/sales/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_sale_list_filters_by_session(self):
        session = self.open_session()
        self.client.post('/api/v1/pos/sales/', self.sale_payload(sessionId=session.id), format='json')
        self.client.post('/api/v1/pos/sales/', self.sale_payload(quantity=1, total='10.00'), format='json')
        response = self.client.get(f'/api/v1/pos/sales/?session={session.id}')
        self.assertEqual(len(response.data), 1)

    def test_non_numeric_ids_rejected(self):
        for field in ('sessionId', 'customerId', 'locationId'):
            response = self.client.post('/api/v1/pos/sales/', self.sale_payload(**{field: 'abc'}), format='json')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
            self.assertEqual(response.data['error'], f'{field} must be an integer id')

        payload = self.sale_payload()
        payload['items'][0]['productId'] = 'abc'
        response = self.client.post('/api/v1/pos/sales/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(Order.objects.count(), 0)

    def test_sale_list_rejects_non_numeric_filter(self):
        response = self.client.get('/api/v1/pos/sales/?location=abc')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'location must be an integer id')


class VoidTests(POSTestCase):
    def make_sale(self, **kwargs):
        return create_pos_sale(vendor=self.vendor, user=self.user, location=self.location,
                               items=[{'product': self.product, 'quantity': Decimal('3'), 'unit_price': Decimal('10.00')}],
                               total=Decimal('30.00'), **kwargs)

    def test_void_restores_everything(self):
        LoyaltyProgram.objects.create(vendor=self.vendor)
        customer = TestDataFactory.create_customer(self.vendor)
        session = self.open_session()
        sale = self.make_sale(session=session, customer=customer)

        response = self.client.post('/api/v1/pos/sales/void/', {
            'transactionId': sale['transaction'].id,
            'reason': 'Rang up wrong item',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['transaction']['status'], 'voided')
        self.assertEqual(response.data['order']['status'], 'cancelled')
        self.assertEqual(response.data['loyalty_reversal']['points'], -30)

        self.assertEqual(Inventory.objects.get(product=self.product, location=self.location).quantity, Decimal('10.000'))
        self.assertTrue(InventoryTransaction.objects.filter(transaction_type='void_restock').exists())
        session.refresh_from_db()
        self.assertEqual(session.total_sales, Decimal('0.00'))
        self.assertEqual(session.total_transactions, 0)
        self.assertEqual(CustomerLoyalty.objects.get(customer=customer).points_balance, 0)

    def test_void_twice(self):
        sale = self.make_sale()
        self.client.post('/api/v1/pos/sales/void/', {'transactionId': sale['transaction'].id, 'reason': 'x'}, format='json')
        response = self.client.post('/api/v1/pos/sales/void/', {'transactionId': sale['transaction'].id, 'reason': 'x'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Transaction already voided')

    def test_void_requires_reason(self):
        sale = self.make_sale()
        response = self.client.post('/api/v1/pos/sales/void/', {'transactionId': sale['transaction'].id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_void_previous_day_rejected(self):
        sale = self.make_sale()
        POSTransaction.objects.filter(pk=sale['transaction'].pk).update(created_at=timezone.now() - timedelta(days=2))
        response = self.client.post('/api/v1/pos/sales/void/', {
            'transactionId': sale['transaction'].id,
            'reason': 'Too late',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Can only void same-day transactions. Use refund instead.')

    def test_void_keeps_error_status(self):
        sale = self.make_sale()
        with patch('greenleaf.pos.views.void_pos_transaction',
                   side_effect=SaleError('Transaction is being refunded', status_code=409)):
            response = self.client.post('/api/v1/pos/sales/void/', {
                'transactionId': sale['transaction'].id,
                'reason': 'Duplicate',
            }, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error'], 'Transaction is being refunded')

    def test_sale_keeps_error_status(self):
        with patch('greenleaf.pos.views.create_pos_sale',
                   side_effect=SessionError('Register is busy', status_code=409)):
            response = self.client.post('/api/v1/pos/sales/', self.sale_payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_void_non_numeric_transaction_id(self):
        response = self.client.post('/api/v1/pos/sales/void/', {'transactionId': 'abc', 'reason': 'x'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'transactionId must be an integer id')

    def test_pos_order_cannot_be_cancelled_through_orders(self):
        sale = self.make_sale()
        response = self.client.patch(f"/api/v1/orders/{sale['order'].id}/", {'status': 'cancelled'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class POSCommandTests(POSTestCase):
    def test_close_stale_sessions(self):
        session = self.open_session('80.00')
        POSSession.objects.filter(pk=session.pk).update(opened_at=timezone.now() - timedelta(hours=30))
        out = StringIO()
        call_command('close_stale_sessions', hours=24, stdout=out)
        session.refresh_from_db()
        self.assertEqual(session.status, 'closed')
        self.assertEqual(session.cash_difference, Decimal('0.00'))
        self.assertIn('Closed 1 session(s)', out.getvalue())

    def test_close_stale_sessions_dry_run(self):
        session = self.open_session()
        POSSession.objects.filter(pk=session.pk).update(opened_at=timezone.now() - timedelta(hours=30))
        call_command('close_stale_sessions', dry_run=True, stdout=StringIO())
        session.refresh_from_db()
        self.assertEqual(session.status, 'open')

    def test_verify_pos_sessions(self):
        self.open_session()
        out = StringIO()
        call_command('verify_pos_sessions', stdout=out)
        self.assertIn('OK: 1 open session(s)', out.getvalue())


class ConcurrentSessionOpenTests(TransactionTestCase):
    """Opens racing on real connections; needs row locks, so SQLite skips it"""

    workers = 6

    @skipUnlessDBFeature('has_select_for_update')
    def test_parallel_opens_share_one_session(self):
        vendor = TestDataFactory.create_vendor()
        user = TestDataFactory.create_user(vendor=vendor, role='employee')
        location = TestDataFactory.create_location(vendor, name='Main Street', is_primary=True)
        register = TestDataFactory.create_register(location)

        barrier = threading.Barrier(self.workers)
        results = []
        errors = []

        def open_register():
            try:
                barrier.wait()
                session, created = get_or_create_session(register, user, Decimal('100.00'))
                results.append((session.id, created))
            except Exception as e:
                errors.append(e)
            finally:
                connection.close()

        threads = [threading.Thread(target=open_register) for _ in range(self.workers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(errors, [])
        self.assertEqual(len({session_id for session_id, _ in results}), 1)
        self.assertEqual(sum(1 for _, created in results if created), 1)
        self.assertEqual(POSSession.objects.filter(register=register, status='open').count(), 1)
