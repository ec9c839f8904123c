"""
Stock movement helpers shared by the inventory, POS and order views.

Every helper that changes a quantity locks the Inventory row with
select_for_update, writes an InventoryTransaction, and keeps
Product.stock_quantity in sync. Callers that chain several movements wrap
them in one transaction.atomic() block so a failure leaves nothing behind.
"""
import logging
import uuid
from decimal import Decimal

from django.db import transaction
from django.db.models import Sum
from django.utils import timezone

from greenleaf.core.exceptions import DomainError
from greenleaf.locations.models import get_primary_location
from .models import Inventory, InventoryTransaction

logger = logging.getLogger('greenleaf.inventory')

# Quantities are stored with three decimals; anything closer to zero is rounding noise
EPSILON = Decimal('0.001')
ZERO = Decimal('0.000')


class InventoryError(DomainError):
    pass


class InsufficientInventory(InventoryError):
    def __init__(self, product_name, available=None, requested=None):
        super().__init__(f"Insufficient inventory: {product_name}")
        self.product_name = product_name
        self.available = available
        self.requested = requested


def sync_product_stock(product):
    """Recompute the product's total stock and status from its inventory rows"""
    total = Inventory.objects.filter(product=product).aggregate(total=Sum('quantity'))['total'] or ZERO
    product.stock_quantity = total
    product.stock_status = product.compute_stock_status(total)
    product.save(update_fields=['stock_quantity', 'stock_status', 'updated_at'])
    return total


def record_transaction(inventory, transaction_type, quantity_before, quantity_after, user=None,
                       reason='', reference_type='', reference_id=''):
    return InventoryTransaction.objects.create(
        vendor_id=inventory.vendor_id,
        inventory=inventory,
        product_id=inventory.product_id,
        location_id=inventory.location_id,
        transaction_type=transaction_type,
        quantity_change=quantity_after - quantity_before,
        quantity_before=quantity_before,
        quantity_after=quantity_after,
        reason=reason or '',
        reference_type=reference_type or '',
        reference_id=str(reference_id or ''),
        performed_by=user if user is not None and user.is_authenticated else None,
    )


def lock_inventory(product, location, create=False):
    """
    Fetch the Inventory row for (product, location) with a row lock.
    Returns (inventory, created); inventory is None when missing and create is False.
    Must be called inside transaction.atomic().
    """
    queryset = Inventory.objects.select_for_update()
    if create:
        return queryset.get_or_create(
            product=product,
            location=location,
            defaults={'vendor_id': product.vendor_id},
        )
    return queryset.filter(product=product, location=location).first(), False


def _check_same_vendor(vendor, *objects):
    for obj in objects:
        if obj is not None and obj.vendor_id != vendor.id:
            raise InventoryError(f"{obj.__class__.__name__} does not belong to this vendor")


def adjust_inventory(vendor, product, adjustment, location=None, reason='', user=None):
    """
    Add (positive) or remove (negative) stock at a location, creating the row if needed.
    Without a location the vendor's primary location is used.
    """
    if location is None:
        location = get_primary_location(vendor)
        if location is None:
            raise InventoryError('No location found for inventory. Create a location first.')
    _check_same_vendor(vendor, product, location)
    adjustment = Decimal(adjustment)

    with transaction.atomic():
        inventory, created = lock_inventory(product, location, create=True)
        previous_quantity = inventory.quantity
        new_quantity = previous_quantity + adjustment
        if new_quantity < -EPSILON:
            raise InventoryError('Cannot reduce inventory below 0')
        if new_quantity < ZERO:
            new_quantity = ZERO

        inventory.quantity = new_quantity
        inventory.save(update_fields=['quantity', 'updated_at'])
        record_transaction(
            inventory,
            'purchase' if adjustment > 0 else 'adjustment',
            previous_quantity,
            new_quantity,
            user=user,
            reason=reason or ('Stock received' if adjustment > 0 else 'Manual adjustment'),
            reference_type='manual_adjustment',
        )
        sync_product_stock(product)

    logger.info(f"Inventory adjusted for {product.name} at {location.name}: {previous_quantity} -> {new_quantity}")
    return {
        'inventory_id': inventory.id,
        'product_id': product.id,
        'location_id': location.id,
        'previous_quantity': previous_quantity,
        'new_quantity': new_quantity,
        'adjustment': adjustment,
        'was_created': created,
    }


def deduct_for_sale(product, location, quantity, user=None, reference_id='', reference_type='order'):
    """Remove sold stock. Raises InsufficientInventory when the location cannot cover it."""
    if not product.manage_stock:
        return None
    inventory, _ = lock_inventory(product, location)
    available = inventory.quantity if inventory is not None else ZERO
    if inventory is None or available + EPSILON < quantity:
        raise InsufficientInventory(product.name, available=available, requested=quantity)

    previous_quantity = inventory.quantity
    inventory.quantity = max(previous_quantity - quantity, ZERO)
    inventory.save(update_fields=['quantity', 'updated_at'])
    record_transaction(inventory, 'sale', previous_quantity, inventory.quantity, user=user,
                       reason='POS sale', reference_type=reference_type, reference_id=reference_id)
    sync_product_stock(product)
    return inventory


def restock(product, location, quantity, user=None, transaction_type='void_restock', reason='',
            reference_id='', reference_type='order'):
    """Put stock back after a void, cancellation or return, or book received purchase-order stock"""
    if not product.manage_stock:
        return None
    inventory, _ = lock_inventory(product, location, create=True)
    previous_quantity = inventory.quantity
    inventory.quantity = previous_quantity + quantity
    inventory.save(update_fields=['quantity', 'updated_at'])
    record_transaction(inventory, transaction_type, previous_quantity, inventory.quantity, user=user,
                       reason=reason, reference_type=reference_type, reference_id=reference_id)
    sync_product_stock(product)
    return inventory


def generate_transfer_reference():
    return f"TRF-{timezone.now().strftime('%Y%m%d')}-{str(uuid.uuid4())[:8].upper()}"


def transfer_inventory(inventory, to_location, quantity, user=None, reason=''):
    """
    Move stock between two locations of the same vendor.
    Both ledger rows share one TRF- reference; either both persist or neither does.
    """
    quantity = Decimal(quantity)
    if quantity <= 0:
        raise InventoryError('Transfer quantity must be greater than 0')
    if to_location.vendor_id != inventory.vendor_id:
        raise InventoryError('Destination location not found')
    if to_location.id == inventory.location_id:
        raise InventoryError('Source and destination locations must differ')
    if not to_location.is_active:
        raise InventoryError('Destination location is inactive')

    reference = generate_transfer_reference()
    with transaction.atomic():
        source = Inventory.objects.select_for_update().select_related('product', 'location').get(pk=inventory.pk)
        if source.quantity + EPSILON < quantity:
            raise InventoryError(f'Insufficient quantity. Available: {source.quantity}')

        destination, _ = lock_inventory(source.product, to_location, create=True)

        source_before = source.quantity
        source.quantity = max(source_before - quantity, ZERO)
        source.save(update_fields=['quantity', 'updated_at'])
        record_transaction(source, 'transfer_out', source_before, source.quantity, user=user,
                           reason=reason or f"Transfer to {to_location.name}",
                           reference_type='transfer', reference_id=reference)

        destination_before = destination.quantity
        destination.quantity = destination_before + quantity
        destination.save(update_fields=['quantity', 'updated_at'])
        record_transaction(destination, 'transfer_in', destination_before, destination.quantity, user=user,
                           reason=reason or f"Transfer from {source.location.name}",
                           reference_type='transfer', reference_id=reference)

    logger.info(f"Transferred {quantity} of {source.product.name} from {source.location.name} to {to_location.name} ({reference})")
    return {
        'reference': reference,
        'product_id': source.product_id,
        'quantity': quantity,
        'from_location_id': source.location_id,
        'from_quantity': source.quantity,
        'to_location_id': to_location.id,
        'to_quantity': destination.quantity,
    }


def set_inventory_quantity(inventory, new_quantity, transaction_type, user=None, reason=''):
    """Overwrite a row's quantity (zero out or audit count) and log the delta"""
    new_quantity = Decimal(new_quantity)
    if new_quantity < 0:
        raise InventoryError('Quantity cannot be negative')
    with transaction.atomic():
        locked = Inventory.objects.select_for_update().select_related('product').get(pk=inventory.pk)
        previous_quantity = locked.quantity
        locked.quantity = new_quantity
        locked.save(update_fields=['quantity', 'updated_at'])
        record_transaction(locked, transaction_type, previous_quantity, new_quantity, user=user,
                           reason=reason, reference_type='bulk_operation')
        sync_product_stock(locked.product)
    return locked, previous_quantity
