"""
Purchase orders and receiving.

Receiving is the only way purchase-order stock reaches inventory. Each call
locks the order and its lines, so two clerks booking the same delivery cannot
both receive the outstanding quantity.
"""
import logging
import uuid
from decimal import Decimal

from django.db import transaction
from django.utils import timezone

from greenleaf.core.exceptions import DomainError
from greenleaf.inventory.utils import restock
from .models import PurchaseOrder, PurchaseOrderItem, PurchaseReceipt

logger = logging.getLogger('greenleaf.purchasing')

# Manual moves; partial and received are reached by receiving only
STATUS_TRANSITIONS = {
    'draft': ('submitted', 'cancelled'),
    'submitted': ('cancelled',),
}


class PurchasingError(DomainError):
    pass


def generate_po_number():
    return f"PO-{timezone.localtime().strftime('%Y%m%d')}-{str(uuid.uuid4())[:6].upper()}"


def create_purchase_order(vendor, supplier, location, items, user, expected_delivery_date=None, notes=''):
    """
    Create a draft purchase order.

    items: [{'product': Product, 'quantity': Decimal, 'unit_cost': Decimal}]
    """
    if supplier.vendor_id != vendor.id or location.vendor_id != vendor.id:
        raise PurchasingError('Supplier and location must belong to this vendor')
    if not supplier.is_active:
        raise PurchasingError(f'Supplier is inactive: {supplier.name}')
    if not location.is_active:
        raise PurchasingError(f'Location is inactive: {location.name}')
    if not items:
        raise PurchasingError('A purchase order needs at least one item')

    seen = set()
    for item in items:
        product = item['product']
        if product.vendor_id != vendor.id:
            raise PurchasingError(f'Product not found: {product.id}')
        if product.id in seen:
            raise PurchasingError(f'Product listed twice: {product.name}')
        seen.add(product.id)
        if item['quantity'] <= 0:
            raise PurchasingError(f'Quantity must be greater than 0: {product.name}')
        if item['unit_cost'] < 0:
            raise PurchasingError(f'Unit cost cannot be negative: {product.name}')

    with transaction.atomic():
        order = PurchaseOrder.objects.create(
            vendor=vendor,
            supplier=supplier,
            location=location,
            po_number=generate_po_number(),
            expected_delivery_date=expected_delivery_date,
            notes=notes or '',
            created_by=user,
        )
        PurchaseOrderItem.objects.bulk_create([
            PurchaseOrderItem(
                purchase_order=order,
                product=item['product'],
                product_name=item['product'].name,
                quantity_ordered=item['quantity'],
                unit_cost=item['unit_cost'],
            )
            for item in items
        ])

    logger.info(f"Purchase order {order.po_number} created for {supplier.name} by {user.username} ({len(items)} lines)")
    return order


def change_purchase_order_status(order, new_status, user):
    """Submit or cancel a purchase order. Returns (order, previous_status)."""
    if new_status not in dict(PurchaseOrder.STATUS_CHOICES):
        raise PurchasingError(f'Invalid status: {new_status}')

    with transaction.atomic():
        order = PurchaseOrder.objects.select_for_update().get(pk=order.pk)
        previous = order.status
        if new_status == previous:
            return order, previous
        if new_status not in STATUS_TRANSITIONS.get(previous, ()):
            raise PurchasingError(f'Cannot change a {previous} purchase order to {new_status}', status_code=409)
        order.status = new_status
        if new_status == 'submitted':
            order.submitted_at = timezone.now()
        order.save(update_fields=['status', 'submitted_at', 'updated_at'])

    logger.info(f"Purchase order {order.po_number} status {previous} -> {new_status} by {user.username}")
    return order, previous


def receive_purchase_order(order, receipts, user):
    """
    Book a delivery against a submitted or partially received order.

    receipts: [{'item_id': int, 'quantity': Decimal, 'condition': str, 'notes': str}]
    Every condition counts toward the line's received quantity; only good stock
    is added to the order's location, as a purchase movement referencing the PO.
    Returns {'order', 'receipts', 'stocked'}.
    """
    if not receipts:
        raise PurchasingError('No items to receive')
    conditions = dict(PurchaseReceipt.CONDITION_CHOICES)

    with transaction.atomic():
        order = PurchaseOrder.objects.select_for_update(of=('self',)).select_related('location').get(pk=order.pk)
        if order.status not in PurchaseOrder.RECEIVABLE_STATUSES:
            raise PurchasingError(f'Cannot receive a {order.status} purchase order', status_code=409)
        lines = {item.id: item for item in
                 PurchaseOrderItem.objects.select_for_update(of=('self',)).filter(purchase_order=order)
                 .select_related('product')}

        created = []
        stocked = Decimal('0.000')
        seen = set()
        for entry in receipts:
            item = lines.get(entry['item_id'])
            if item is None:
                raise PurchasingError(f"Item not found on this purchase order: {entry['item_id']}")
            if item.id in seen:
                raise PurchasingError(f'Item listed twice: {item.product_name}')
            seen.add(item.id)

            quantity = entry['quantity']
            condition = entry.get('condition') or 'good'
            notes = (entry.get('notes') or '').strip()
            if quantity <= 0:
                raise PurchasingError(f'Received quantity must be greater than 0: {item.product_name}')
            if quantity > item.quantity_remaining:
                raise PurchasingError(
                    f'Cannot receive {quantity} of {item.product_name}: only {item.quantity_remaining} outstanding')
            if condition not in conditions:
                raise PurchasingError(f'Invalid condition: {condition}')
            if condition != 'good' and not notes:
                raise PurchasingError(f'Notes are required for {condition} items')

            item.quantity_received += quantity
            item.save(update_fields=['quantity_received'])
            if condition == 'good':
                inventory = restock(item.product, order.location, quantity, user=user, transaction_type='purchase',
                                    reason=f'Received on {order.po_number}', reference_id=order.po_number,
                                    reference_type='purchase_order')
                if inventory is not None:
                    stocked += quantity
            created.append(PurchaseReceipt.objects.create(item=item, quantity=quantity, condition=condition,
                                                          notes=notes, received_by=user))

        if all(line.quantity_remaining <= 0 for line in lines.values()):
            order.status = 'received'
            order.received_at = timezone.now()
        else:
            order.status = 'partial'
        order.save(update_fields=['status', 'received_at', 'updated_at'])

    logger.info(f"Received {len(created)} lines on {order.po_number} by {user.username}: "
                f"{stocked} units stocked, order now {order.status}")
    return {'order': order, 'receipts': created, 'stocked': stocked}
