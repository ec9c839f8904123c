import logging
from django.db import transaction
from django.utils import timezone
from greenleaf.core.exceptions import DomainError
from greenleaf.inventory.utils import restock
from greenleaf.loyalty.utils import reverse_points_for_order
from .models import Order, REVENUE_STATUSES

logger = logging.getLogger('greenleaf.orders')

# Moving an order into one of these from a revenue status returns its stock
CANCEL_STATUSES = ('cancelled', 'refunded')


class OrderError(DomainError):
    pass


def change_order_status(order, new_status, user, notes=None):
    """
    Move an order to a new status.

    Cancelling or refunding a completed order puts its items back into stock
    and takes back the loyalty points it earned, in one transaction.
    """
    if new_status not in dict(Order.STATUS_CHOICES):
        raise OrderError(f'Invalid status: {new_status}')

    with transaction.atomic():
        order = Order.objects.select_for_update().get(pk=order.pk)
        previous = order.status
        if previous in CANCEL_STATUSES and new_status != previous:
            raise OrderError(f'Cannot change a {previous} order')

        if new_status in CANCEL_STATUSES and previous != new_status:
            pos_transaction = getattr(order, 'pos_transaction', None)
            if pos_transaction is not None and pos_transaction.status == 'completed':
                raise OrderError('In-store sales are cancelled through the POS void endpoint')
            if previous in REVENUE_STATUSES:
                for item in order.items.select_related('product', 'location'):
                    location = item.location or order.location
                    if item.product is None or location is None:
                        continue
                    restock(item.product, location, item.quantity, user=user,
                            transaction_type='return', reason=f"Order {order.order_number} {new_status}",
                            reference_id=order.order_number)
                reverse_points_for_order(order)
            if order.payment_status == 'paid':
                order.payment_status = 'refunded'

        order.status = new_status
        if new_status in REVENUE_STATUSES and order.completed_at is None:
            order.completed_at = timezone.now()
        if notes is not None:
            order.notes = notes
        order.save()

    logger.info(f"Order {order.order_number} status {previous} -> {new_status} by {user.username}")
    return order, previous
