"""
Django management command to expire loyalty points past the program's expiry window
"""
from django.core.management.base import BaseCommand, CommandError
from greenleaf.vendors.models import Vendor
from greenleaf.loyalty.utils import expire_points


class Command(BaseCommand):
    help = 'Expire earned loyalty points whose expiry date has passed'

    def add_arguments(self, parser):
        parser.add_argument(
            '--vendor',
            type=str,
            help='Only process the vendor with this slug',
        )

    def handle(self, *args, **options):
        vendors = Vendor.objects.filter(status='active')
        if options.get('vendor'):
            vendors = vendors.filter(slug=options['vendor'])
            if not vendors.exists():
                raise CommandError(f"Vendor '{options['vendor']}' not found")

        total = 0
        for vendor in vendors:
            expired = expire_points(vendor)
            total += expired
            if expired:
                self.stdout.write(f"{vendor.slug}: expired {expired} points")

        self.stdout.write(self.style.SUCCESS(f"Done. {total} points expired."))
