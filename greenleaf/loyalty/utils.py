"""Points earning, redemption and reversal"""
import logging
import math
from datetime import timedelta
from decimal import Decimal

from django.db import transaction
from django.db.models import Sum
from django.utils import timezone

from greenleaf.core.exceptions import DomainError
from .models import LoyaltyProgram, CustomerLoyalty, LoyaltyTransaction

logger = logging.getLogger('greenleaf.loyalty')


class LoyaltyError(DomainError):
    pass


def get_program(vendor):
    """The vendor's program, or an unsaved one carrying the default rates"""
    program = LoyaltyProgram.objects.filter(vendor=vendor).first()
    if program is None:
        program = LoyaltyProgram(vendor=vendor)
    return program


def get_locked_loyalty(vendor, customer):
    """Row-locked loyalty record for the customer, created at bronze when missing"""
    loyalty, _ = CustomerLoyalty.objects.select_for_update().get_or_create(
        customer=customer,
        defaults={'vendor': vendor, 'tier': 'bronze'},
    )
    return loyalty


def _consume_grants(loyalty, points, order=None):
    """
    Draw points out of the customer's unspent earned grants: the order's own
    grants first when one is given, then oldest first.
    """
    open_grants = LoyaltyTransaction.objects.select_for_update().filter(
        customer_id=loyalty.customer_id, transaction_type='earned', is_expired=False, points_remaining__gt=0,
    )
    grants = []
    if order is not None:
        grants.extend(open_grants.filter(order=order).order_by('created_at', 'id'))
        open_grants = open_grants.exclude(order=order)
    grants.extend(open_grants.order_by('created_at', 'id'))

    for grant in grants:
        if points <= 0:
            break
        used = min(points, grant.points_remaining)
        grant.points_remaining -= used
        grant.save(update_fields=['points_remaining'])
        points -= used


def _apply(loyalty, program, transaction_type, points, order=None, description='', expires_at=None):
    balance_before = loyalty.points_balance
    loyalty.points_balance = balance_before + points
    if transaction_type == 'earned' or (transaction_type == 'adjusted' and points > 0):
        loyalty.lifetime_points += points
    elif transaction_type == 'reversed':
        loyalty.lifetime_points = max(loyalty.lifetime_points + points, 0)
    elif transaction_type == 'redeemed':
        loyalty.points_redeemed += -points
    loyalty.tier = program.tier_for_points(loyalty.lifetime_points).get('name', loyalty.tier)
    loyalty.save()

    # Expiry settles its own grant in expire_points
    if points < 0 and transaction_type != 'expired':
        _consume_grants(loyalty, -points, order=order if transaction_type == 'reversed' else None)

    return LoyaltyTransaction.objects.create(
        vendor_id=loyalty.vendor_id,
        customer_id=loyalty.customer_id,
        order=order,
        transaction_type=transaction_type,
        points=points,
        balance_before=balance_before,
        balance_after=loyalty.points_balance,
        description=description,
        expires_at=expires_at,
        points_remaining=points if transaction_type == 'earned' else 0,
    )


def calculate_points(program, order_total, tier_name='bronze'):
    """floor(total * points_per_dollar * tier multiplier)"""
    multiplier = Decimal('1')
    for tier in program.sorted_tiers():
        if tier.get('name') == tier_name:
            multiplier = Decimal(str(tier.get('multiplier', 1)))
    points = Decimal(order_total) * program.points_per_dollar * multiplier
    return max(math.floor(points), 0)


def award_points(vendor, customer, order_total, order=None):
    """Credit points for a purchase. Returns the LoyaltyTransaction, or None when nothing was earned."""
    program = get_program(vendor)
    if not program.is_active or customer is None:
        return None

    with transaction.atomic():
        loyalty = get_locked_loyalty(vendor, customer)
        points = calculate_points(program, order_total, loyalty.tier)
        if points <= 0:
            return None
        expires_at = timezone.now() + timedelta(days=program.points_expiry_days) if program.points_expiry_days else None
        description = f"Purchase {order.order_number}" if order is not None else 'Purchase'
        loyalty_txn = _apply(loyalty, program, 'earned', points, order=order, description=description,
                             expires_at=expires_at)

    logger.info(f"Customer {customer.id} earned {points} points (balance {loyalty_txn.balance_after})")
    return loyalty_txn


def redeem_points(vendor, customer, points, order=None):
    """Spend points. Returns (transaction, discount_value)."""
    program = get_program(vendor)
    if not program.is_active:
        raise LoyaltyError('Loyalty program is not active')
    points = int(points)
    if points < program.min_redemption_points:
        raise LoyaltyError(f'Minimum redemption is {program.min_redemption_points} points')

    with transaction.atomic():
        loyalty = get_locked_loyalty(vendor, customer)
        if points > loyalty.points_balance:
            raise LoyaltyError(f'Insufficient points. Balance: {loyalty.points_balance}')
        loyalty_txn = _apply(loyalty, program, 'redeemed', -points, order=order,
                             description=f"Redeemed {points} points")

    discount = (Decimal(points) * program.point_value).quantize(Decimal('0.01'))
    return loyalty_txn, discount


def adjust_points(vendor, customer, points, reason=''):
    """Manual correction by staff. The balance can never go negative."""
    points = int(points)
    if points == 0:
        raise LoyaltyError('Adjustment cannot be 0')
    program = get_program(vendor)
    with transaction.atomic():
        loyalty = get_locked_loyalty(vendor, customer)
        if loyalty.points_balance + points < 0:
            raise LoyaltyError(f'Cannot reduce points below 0. Balance: {loyalty.points_balance}')
        return _apply(loyalty, program, 'adjusted', points, description=reason or 'Manual adjustment')


def reverse_points_for_order(order):
    """Take back points earned on an order that has been voided or cancelled"""
    if order.customer_id is None:
        return None
    earned = LoyaltyTransaction.objects.filter(order=order, transaction_type='earned').aggregate(total=Sum('points'))['total'] or 0
    already_reversed = -(LoyaltyTransaction.objects.filter(order=order, transaction_type='reversed').aggregate(total=Sum('points'))['total'] or 0)
    outstanding = earned - already_reversed
    if outstanding <= 0:
        return None

    program = get_program(order.vendor)
    with transaction.atomic():
        loyalty = get_locked_loyalty(order.vendor, order.customer)
        # Points may already be spent; never drive the balance negative
        points = min(outstanding, loyalty.points_balance)
        if points <= 0:
            return None
        loyalty_txn = _apply(loyalty, program, 'reversed', -points, order=order,
                             description=f"Reversed for {order.order_number}")

    logger.info(f"Reversed {points} points for order {order.order_number}")
    return loyalty_txn


def expire_points(vendor, now=None):
    """
    Expire the unspent part of earned grants past their expiry date.
    Returns the number of points expired.
    """
    now = now or timezone.now()
    program = get_program(vendor)
    total_expired = 0

    due = LoyaltyTransaction.objects.filter(
        vendor=vendor, transaction_type='earned', is_expired=False, expires_at__lte=now,
    ).order_by('customer_id', 'created_at', 'id')

    for earned in due:
        with transaction.atomic():
            loyalty = get_locked_loyalty(vendor, earned.customer)
            grant = LoyaltyTransaction.objects.select_for_update().get(pk=earned.pk)
            points = min(grant.points_remaining, loyalty.points_balance)
            if points > 0:
                _apply(loyalty, program, 'expired', -points, order=grant.order,
                       description=f"Expired points from {grant.created_at:%Y-%m-%d}")
                total_expired += points
            grant.points_remaining = 0
            grant.is_expired = True
            grant.save(update_fields=['points_remaining', 'is_expired'])

    if total_expired:
        logger.info(f"Expired {total_expired} loyalty points for vendor {vendor.slug}")
    return total_expired
