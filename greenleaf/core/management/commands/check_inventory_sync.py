"""
Django management command to check Product.stock_quantity against the sum of
its per-location Inventory rows
"""
from decimal import Decimal
from django.core.management.base import BaseCommand
from django.db.models import Sum
from greenleaf.catalog.models import Product
from greenleaf.inventory.utils import EPSILON, sync_product_stock


class Command(BaseCommand):
    help = 'Check product stock totals against inventory rows, optionally fixing them'

    def add_arguments(self, parser):
        parser.add_argument(
            '--vendor',
            type=str,
            help='Only check products of the vendor with this slug',
        )
        parser.add_argument(
            '--fix',
            action='store_true',
            help='Rewrite stock_quantity and stock_status from the inventory rows',
        )

    def handle(self, *args, **options):
        fix = options.get('fix', False)
        products = Product.objects.filter(manage_stock=True).select_related('vendor').order_by('vendor_id', 'id')
        if options.get('vendor'):
            products = products.filter(vendor__slug=options['vendor'])

        self.stdout.write("=" * 80)
        self.stdout.write(self.style.SUCCESS("PRODUCT STOCK vs INVENTORY"))
        self.stdout.write("=" * 80)
        self.stdout.write(f"Products checked: {products.count()}")

        discrepancies = 0
        for product in products:
            inventory_total = product.inventory_items.aggregate(total=Sum('quantity'))['total'] or Decimal('0')
            difference = product.stock_quantity - inventory_total
            if abs(difference) <= EPSILON:
                continue
            discrepancies += 1
            self.stdout.write(self.style.WARNING(
                f"  [{product.vendor.slug}] {product.name} (ID: {product.id}): "
                f"stock_quantity={product.stock_quantity} inventory={inventory_total} difference={difference:+}"
            ))
            if fix:
                sync_product_stock(product)

        if not discrepancies:
            self.stdout.write(self.style.SUCCESS("All products are in sync"))
        elif fix:
            self.stdout.write(self.style.SUCCESS(f"Fixed {discrepancies} product(s)"))
        else:
            self.stdout.write(self.style.WARNING(f"{discrepancies} product(s) out of sync. Run with --fix to repair."))
