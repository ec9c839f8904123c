"""
Test suite for loyalty points: earning, tiers, redemption, adjustment and expiry
"""
from datetime import timedelta
from decimal import Decimal
from io import StringIO
from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from greenleaf.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from greenleaf.loyalty.models import CustomerLoyalty, LoyaltyProgram, LoyaltyTransaction
from greenleaf.loyalty.utils import (
    LoyaltyError, award_points, calculate_points, expire_points, redeem_points, reverse_points_for_order,
)
from greenleaf.orders.models import Order


class LoyaltyUtilsTests(TestCase):
    def setUp(self):
        self.vendor = TestDataFactory.create_vendor()
        self.program = LoyaltyProgram.objects.create(vendor=self.vendor)
        self.customer = TestDataFactory.create_customer(self.vendor)

    def test_points_are_floored(self):
        self.assertEqual(calculate_points(self.program, Decimal('49.99')), 49)

    def test_tier_multiplier_applies(self):
        self.assertEqual(calculate_points(self.program, Decimal('100.00'), 'gold'), 150)

    def test_award_creates_ledger_and_tier(self):
        txn = award_points(self.vendor, self.customer, Decimal('600.00'))
        self.assertEqual(txn.points, 600)
        self.assertIsNotNone(txn.expires_at)
        loyalty = CustomerLoyalty.objects.get(customer=self.customer)
        self.assertEqual(loyalty.points_balance, 600)
        self.assertEqual(loyalty.tier, 'silver')

    def test_inactive_program_awards_nothing(self):
        self.program.is_active = False
        self.program.save()
        self.assertIsNone(award_points(self.vendor, self.customer, Decimal('100')))

    def test_redeem_below_minimum(self):
        award_points(self.vendor, self.customer, Decimal('500'))
        with self.assertRaises(LoyaltyError):
            redeem_points(self.vendor, self.customer, 50)

    def test_redeem_more_than_balance(self):
        award_points(self.vendor, self.customer, Decimal('150'))
        with self.assertRaises(LoyaltyError):
            redeem_points(self.vendor, self.customer, 200)

    def test_redeem_returns_discount(self):
        award_points(self.vendor, self.customer, Decimal('300'))
        txn, discount = redeem_points(self.vendor, self.customer, 200)
        self.assertEqual(discount, Decimal('2.00'))
        self.assertEqual(txn.balance_after, 100)

    def test_reversal_never_goes_negative(self):
        order = Order.objects.create(vendor=self.vendor, customer=self.customer, order_number='ORD-REV-1')
        award_points(self.vendor, self.customer, Decimal('300'), order=order)
        redeem_points(self.vendor, self.customer, 250)

        reversal = reverse_points_for_order(order)
        self.assertEqual(reversal.points, -50)
        self.assertEqual(CustomerLoyalty.objects.get(customer=self.customer).points_balance, 0)
        self.assertIsNone(reverse_points_for_order(order))

    def test_expire_points(self):
        txn = award_points(self.vendor, self.customer, Decimal('120'))
        LoyaltyTransaction.objects.filter(pk=txn.pk).update(expires_at=timezone.now() - timedelta(days=1))
        self.assertEqual(expire_points(self.vendor), 120)
        self.assertEqual(CustomerLoyalty.objects.get(customer=self.customer).points_balance, 0)
        self.assertEqual(expire_points(self.vendor), 0)

    def backdate(self, txn):
        LoyaltyTransaction.objects.filter(pk=txn.pk).update(expires_at=timezone.now() - timedelta(days=1))

    def test_expiry_skips_points_already_reversed(self):
        order = Order.objects.create(vendor=self.vendor, customer=self.customer, order_number='ORD-EXP-1')
        voided_grant = award_points(self.vendor, self.customer, Decimal('100'), order=order)
        reverse_points_for_order(order)
        award_points(self.vendor, self.customer, Decimal('100'))
        self.backdate(voided_grant)

        self.assertEqual(expire_points(self.vendor), 0)
        self.assertEqual(CustomerLoyalty.objects.get(customer=self.customer).points_balance, 100)

    def test_expiry_skips_points_already_redeemed(self):
        old_grant = award_points(self.vendor, self.customer, Decimal('200'))
        redeem_points(self.vendor, self.customer, 200)
        award_points(self.vendor, self.customer, Decimal('150'))
        self.backdate(old_grant)

        self.assertEqual(expire_points(self.vendor), 0)
        self.assertEqual(CustomerLoyalty.objects.get(customer=self.customer).points_balance, 150)

    def test_expiry_takes_only_the_unspent_part(self):
        old_grant = award_points(self.vendor, self.customer, Decimal('300'))
        redeem_points(self.vendor, self.customer, 100)
        fresh_grant = award_points(self.vendor, self.customer, Decimal('50'))
        self.backdate(old_grant)

        self.assertEqual(expire_points(self.vendor), 200)
        self.assertEqual(CustomerLoyalty.objects.get(customer=self.customer).points_balance, 50)
        fresh_grant.refresh_from_db()
        self.assertEqual(fresh_grant.points_remaining, 50)

    def test_redemption_draws_oldest_grant_first(self):
        first = award_points(self.vendor, self.customer, Decimal('120'))
        second = award_points(self.vendor, self.customer, Decimal('100'))
        redeem_points(self.vendor, self.customer, 150)
        first.refresh_from_db()
        second.refresh_from_db()
        self.assertEqual((first.points_remaining, second.points_remaining), (0, 70))

    def test_expire_command(self):
        txn = award_points(self.vendor, self.customer, Decimal('80'))
        LoyaltyTransaction.objects.filter(pk=txn.pk).update(expires_at=timezone.now() - timedelta(days=1))
        out = StringIO()
        call_command('expire_loyalty_points', vendor=self.vendor.slug, stdout=out)
        self.assertIn('80 points expired', out.getvalue())


class LoyaltyAPITests(TestCase):
    def setUp(self):
        self.vendor = TestDataFactory.create_vendor()
        self.owner = TestDataFactory.create_user(vendor=self.vendor, role='vendor')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.owner)
        self.customer = TestDataFactory.create_customer(self.vendor)

    def test_program_defaults_when_unconfigured(self):
        response = self.client.get('/api/v1/loyalty/program/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['configured'])
        self.assertEqual(response.data['points_per_dollar'], '1.00')

    def test_configure_program(self):
        response = self.client.patch('/api/v1/loyalty/program/', {'points_per_dollar': '2.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(LoyaltyProgram.objects.get(vendor=self.vendor).points_per_dollar, Decimal('2.00'))

    def test_tiers_need_a_zero_tier(self):
        response = self.client.patch('/api/v1/loyalty/program/', {
            'tiers': [{'name': 'vip', 'min_points': 100, 'multiplier': 2}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_adjust_and_detail(self):
        response = self.client.post(f'/api/v1/loyalty/customers/{self.customer.id}/adjust/', {
            'points': 250,
            'reason': 'Welcome bonus',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        response = self.client.get(f'/api/v1/loyalty/customers/{self.customer.id}/')
        self.assertEqual(response.data['points_balance'], 250)
        self.assertEqual(response.data['points_value'], Decimal('2.50'))
        self.assertTrue(response.data['can_redeem'])

    def test_adjust_requires_reason(self):
        response = self.client.post(f'/api/v1/loyalty/customers/{self.customer.id}/adjust/', {'points': 10}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_adjust_rejects_fractional_points(self):
        response = self.client.post(f'/api/v1/loyalty/customers/{self.customer.id}/adjust/', {
            'points': '10.5',
            'reason': 'Oops',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_adjust_cannot_go_negative(self):
        response = self.client.post(f'/api/v1/loyalty/customers/{self.customer.id}/adjust/', {
            'points': -10,
            'reason': 'Correction',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_redeem_endpoint(self):
        award_points(self.vendor, self.customer, Decimal('500'))
        response = self.client.post(f'/api/v1/loyalty/customers/{self.customer.id}/redeem/', {'points': 100}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['discount_amount'], Decimal('1.00'))
        self.assertEqual(response.data['points_balance'], 400)

    def test_employee_cannot_adjust(self):
        employee = TestDataFactory.create_user(vendor=self.vendor, role='employee')
        self.client.authenticate_user(employee)
        response = self.client.post(f'/api/v1/loyalty/customers/{self.customer.id}/adjust/', {
            'points': 10,
            'reason': 'Friend',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_transactions_list(self):
        award_points(self.vendor, self.customer, Decimal('20'))
        response = self.client.get(f'/api/v1/loyalty/customers/{self.customer.id}/transactions/')
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['transaction_type'], 'earned')
