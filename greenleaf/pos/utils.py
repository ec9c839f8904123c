"""
Register sessions, cash drawer and sale/void processing.

All writes for a sale or a void happen in one transaction.atomic() block:
the order, its items, the stock deductions, the POS transaction, the session
totals and the loyalty points either all persist or none do.
"""
import logging
import time
import uuid
from decimal import Decimal

from django.db import IntegrityError, transaction
from django.db.models import F, Sum
from django.utils import timezone

from greenleaf.core.exceptions import DomainError
from greenleaf.core.utils import money
from greenleaf.inventory.utils import deduct_for_sale, restock
from greenleaf.loyalty.utils import award_points, reverse_points_for_order
from greenleaf.orders.models import Order, OrderItem
from .models import POSRegister, POSSession, CashMovement, POSTransaction

logger = logging.getLogger('greenleaf.pos')

ZERO = Decimal('0.00')
# Client-side totals may differ from the server's by rounding on each line
TOTAL_TOLERANCE = Decimal('0.01')


class SessionError(DomainError):
    pass


class SaleError(DomainError):
    pass


# ==================== SESSIONS ====================

def generate_session_number(register):
    return f"SES-{timezone.now().strftime('%Y%m%d')}-{register.id}-{str(uuid.uuid4())[:6].upper()}"


def get_or_create_session(register, user, opening_cash=ZERO, opening_notes=''):
    """
    Return (session, created) for the register's single open session.

    The register row is locked so concurrent callers queue behind each other and
    the later ones see the session the first one created. If a racing insert
    still reaches the unique constraint, the winner's session is returned.
    """
    if not register.is_active:
        raise SessionError('Register is inactive')
    if opening_cash < 0:
        raise SessionError('Opening cash cannot be negative')

    try:
        with transaction.atomic():
            POSRegister.objects.select_for_update().get(pk=register.pk)
            existing = POSSession.objects.filter(register=register, status='open').first()
            if existing is not None:
                return existing, False
            session = POSSession.objects.create(
                vendor_id=register.vendor_id,
                location_id=register.location_id,
                register=register,
                session_number=generate_session_number(register),
                opened_by=user,
                opening_cash=money(opening_cash),
                opening_notes=opening_notes or '',
            )
    except IntegrityError:
        existing = POSSession.objects.filter(register=register, status='open').first()
        if existing is None:
            raise
        logger.info(f"Concurrent session open on register {register.id}; returning {existing.session_number}")
        return existing, False

    logger.info(f"Session {session.session_number} opened on register {register.id} by {user.username} with {session.opening_cash}")
    return session, True


def cash_movement_total(session):
    return session.cash_movements.aggregate(total=Sum('amount'))['total'] or ZERO


def calculate_expected_cash(session):
    """Opening float + cash taken in sales + paid in - paid out"""
    return money(session.opening_cash + session.total_cash + cash_movement_total(session))


def close_session(session, user, closing_cash, closing_notes=''):
    if closing_cash < 0:
        raise SessionError('Closing cash cannot be negative')
    with transaction.atomic():
        session = POSSession.objects.select_for_update().get(pk=session.pk)
        if session.status != 'open':
            raise SessionError('Session is already closed')
        expected = calculate_expected_cash(session)
        session.status = 'closed'
        session.closing_cash = money(closing_cash)
        session.expected_cash = expected
        session.cash_difference = money(session.closing_cash - expected)
        session.closing_notes = closing_notes or ''
        session.closed_by = user
        session.closed_at = timezone.now()
        session.save()

    logger.info(f"Session {session.session_number} closed by {user.username}: expected {session.expected_cash}, counted {session.closing_cash}, difference {session.cash_difference}")
    return session


def record_cash_movement(session, movement_type, amount, reason, user):
    if movement_type not in dict(CashMovement.MOVEMENT_TYPE_CHOICES):
        raise SessionError(f'Invalid movement type: {movement_type}')
    reason = (reason or '').strip()
    if not reason:
        raise SessionError('A reason is required')

    if movement_type == 'no_sale':
        amount = ZERO
    else:
        if amount is None or amount <= 0:
            raise SessionError('Amount must be greater than 0')
        amount = money(amount)
        if movement_type == 'paid_out':
            amount = -amount

    with transaction.atomic():
        locked = POSSession.objects.select_for_update().get(pk=session.pk)
        if locked.status != 'open':
            raise SessionError('Session is not open')
        if movement_type == 'paid_out' and calculate_expected_cash(locked) + amount < 0:
            raise SessionError('Paid out exceeds the cash in the drawer')
        movement = CashMovement.objects.create(
            session=locked,
            movement_type=movement_type,
            amount=amount,
            reason=reason,
            performed_by=user,
        )
    logger.info(f"Cash movement {movement_type} {amount} on {session.session_number} by {user.username}: {reason}")
    return movement


def session_summary(session):
    """Z-report figures for a session"""
    transactions = session.transactions.all()
    completed = transactions.filter(status='completed')
    by_method = {}
    for row in completed.values('payment_method').annotate(total=Sum('total_amount')).order_by('payment_method'):
        by_method[row['payment_method']] = row['total'] or ZERO

    movements = {}
    for row in session.cash_movements.values('movement_type').annotate(total=Sum('amount')).order_by('movement_type'):
        movements[row['movement_type']] = row['total'] or ZERO

    return {
        'session_number': session.session_number,
        'status': session.status,
        'opened_at': session.opened_at,
        'closed_at': session.closed_at,
        'opening_cash': session.opening_cash,
        'total_sales': session.total_sales,
        'total_cash': session.total_cash,
        'total_card': session.total_card,
        'total_transactions': session.total_transactions,
        'voided_transactions': transactions.filter(status='voided').count(),
        'sales_by_payment_method': by_method,
        'cash_movements': movements,
        'no_sale_count': session.cash_movements.filter(movement_type='no_sale').count(),
        'expected_cash': calculate_expected_cash(session) if session.status == 'open' else session.expected_cash,
        'closing_cash': session.closing_cash,
        'cash_difference': session.cash_difference,
    }


# ==================== SALES ====================

def generate_order_number(location):
    """{LOC}-{YYYYMMDD}-{last 6 digits of the epoch in ms}, bumped until unique"""
    date_part = timezone.localtime().strftime('%Y%m%d')
    stamp = int(time.time() * 1000)
    while True:
        order_number = f"{location.order_prefix}-{date_part}-{str(stamp)[-6:]}"
        if not Order.objects.filter(order_number=order_number).exists():
            return order_number
        stamp += 1


def _split_payment(payment_method, total, cash_tendered, cash_amount):
    """Return (cash_amount, card_amount, cash_tendered, change_given)"""
    if payment_method == 'cash':
        tendered = total if cash_tendered is None else money(cash_tendered)
        if tendered < total:
            raise SaleError('Cash tendered is less than the total')
        return total, ZERO, tendered, money(tendered - total)
    if payment_method == 'card':
        return ZERO, total, None, ZERO
    if payment_method == 'split':
        if cash_amount is None or cash_amount <= 0 or cash_amount >= total:
            raise SaleError('Split payments need a cash amount between 0 and the total')
        cash_amount = money(cash_amount)
        tendered = cash_amount if cash_tendered is None else money(cash_tendered)
        if tendered < cash_amount:
            raise SaleError('Cash tendered is less than the cash portion')
        return cash_amount, money(total - cash_amount), tendered, money(tendered - cash_amount)
    raise SaleError(f'Invalid payment method: {payment_method}')


def create_pos_sale(*, vendor, user, location, items, total, session=None, customer=None,
                    payment_method='cash', tax_amount=None, discount_amount=ZERO,
                    cash_tendered=None, cash_amount=None):
    """
    Record a completed in-store sale.

    items: [{'product': Product, 'quantity': Decimal, 'unit_price': Decimal}]
    Returns a dict with the order, the POS transaction and the loyalty transaction.
    """
    if not items:
        raise SaleError('No items in sale')
    if total <= 0:
        raise SaleError('Total must be greater than 0')
    if session is not None:
        if session.status != 'open':
            raise SessionError('Session is not open')
        if session.location_id != location.id:
            raise SessionError('Session belongs to a different location')

    subtotal = ZERO
    lines = []
    for item in items:
        product = item['product']
        quantity = item['quantity']
        if quantity <= 0:
            raise SaleError(f'Quantity must be greater than 0: {product.name}')
        unit_price = money(item['unit_price'])
        line_total = money(unit_price * quantity)
        subtotal += line_total
        lines.append((product, quantity, unit_price, line_total))

    if tax_amount is None:
        tax_amount = money(subtotal * vendor.tax_rate)
    total = money(total)
    expected_total = money(subtotal + tax_amount - discount_amount)
    if abs(expected_total - total) > TOTAL_TOLERANCE:
        raise SaleError(f'Total {total} does not match items ({expected_total})')

    cash_part, card_part, tendered, change = _split_payment(payment_method, total, cash_tendered, cash_amount)

    with transaction.atomic():
        order = Order.objects.create(
            vendor=vendor,
            location=location,
            customer=customer,
            order_number=generate_order_number(location),
            order_type='pos',
            status='completed',
            payment_status='paid',
            payment_method=payment_method,
            subtotal=money(subtotal),
            tax_amount=money(tax_amount),
            discount_amount=money(discount_amount),
            total_amount=total,
            created_by=user,
            completed_at=timezone.now(),
            metadata={
                'pos_sale': True,
                'walk_in': customer is None,
                'session_id': session.id if session is not None else None,
                'cash_tendered': str(tendered) if tendered is not None else None,
                'change_given': str(change),
            },
        )

        for product, quantity, unit_price, line_total in lines:
            OrderItem.objects.create(
                order=order,
                product=product,
                location=location,
                product_name=product.name,
                sku=product.sku,
                quantity=quantity,
                unit_price=unit_price,
                line_total=line_total,
            )
            deduct_for_sale(product, location, quantity, user=user, reference_id=order.order_number)

        pos_transaction = POSTransaction.objects.create(
            vendor=vendor,
            location=location,
            session=session,
            order=order,
            transaction_number=f"TXN-{order.order_number}",
            transaction_type='customer_sale' if customer is not None else 'walk_in_sale',
            payment_method=payment_method,
            subtotal=order.subtotal,
            tax_amount=order.tax_amount,
            total_amount=total,
            cash_amount=cash_part,
            card_amount=card_part,
            cash_tendered=tendered,
            change_given=change,
            created_by=user,
        )

        if session is not None:
            POSSession.objects.filter(pk=session.pk).update(
                total_sales=F('total_sales') + total,
                total_cash=F('total_cash') + cash_part,
                total_card=F('total_card') + card_part,
                total_transactions=F('total_transactions') + 1,
            )

        loyalty_txn = award_points(vendor, customer, total, order=order) if customer is not None else None

    logger.info(f"POS sale {order.order_number} completed at {location.name} by {user.username}: {total} ({payment_method})")
    return {'order': order, 'transaction': pos_transaction, 'loyalty': loyalty_txn}


def void_pos_transaction(pos_transaction, user, reason):
    """Void a same-day sale: restock items, cancel the order, reverse points and session totals"""
    reason = (reason or '').strip()
    if not reason:
        raise SaleError('A void reason is required')

    with transaction.atomic():
        locked = POSTransaction.objects.select_for_update(of=('self',)).select_related('order', 'order__customer', 'order__vendor').get(pk=pos_transaction.pk)
        if locked.status == 'voided':
            raise SaleError('Transaction already voided')
        if locked.status != 'completed':
            raise SaleError(f'Cannot void a {locked.status} transaction')
        if timezone.localdate(locked.created_at) != timezone.localdate():
            raise SaleError('Can only void same-day transactions. Use refund instead.')

        order = locked.order
        for item in order.items.select_related('product', 'location'):
            if item.product is None:
                continue
            restock(item.product, item.location or order.location, item.quantity, user=user,
                    transaction_type='void_restock', reason=f"Void: {reason}",
                    reference_id=order.order_number)

        order.status = 'cancelled'
        order.payment_status = 'refunded'
        order.metadata = {**order.metadata, 'voided': True, 'void_reason': reason}
        order.save(update_fields=['status', 'payment_status', 'metadata', 'updated_at'])

        locked.status = 'voided'
        locked.void_reason = reason
        locked.voided_at = timezone.now()
        locked.voided_by = user
        locked.save(update_fields=['status', 'void_reason', 'voided_at', 'voided_by'])

        if locked.session_id is not None:
            POSSession.objects.filter(pk=locked.session_id).update(
                total_sales=F('total_sales') - locked.total_amount,
                total_cash=F('total_cash') - locked.cash_amount,
                total_card=F('total_card') - locked.card_amount,
                total_transactions=F('total_transactions') - 1,
            )

        reversed_txn = reverse_points_for_order(order)

    logger.info(f"Transaction {locked.transaction_number} voided by {user.username}: {reason}")
    return {'transaction': locked, 'order': order, 'loyalty_reversal': reversed_txn}
