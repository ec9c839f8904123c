"""
Django management command to check that no register has more than one open session
"""
from django.core.management.base import BaseCommand
from django.db.models import Count
from greenleaf.pos.models import POSSession


class Command(BaseCommand):
    help = 'Report registers with more than one open POS session'

    def handle(self, *args, **options):
        duplicates = (
            POSSession.objects.filter(status='open')
            .values('register_id', 'register__name', 'location__name')
            .annotate(open_count=Count('id'))
            .filter(open_count__gt=1)
            .order_by('register_id')
        )

        if not duplicates:
            open_total = POSSession.objects.filter(status='open').count()
            self.stdout.write(self.style.SUCCESS(f"OK: {open_total} open session(s), at most one per register"))
            return

        self.stdout.write(self.style.ERROR(f"{len(duplicates)} register(s) have more than one open session:"))
        for row in duplicates:
            self.stdout.write(f"  Register {row['register_id']} ({row['register__name']} @ {row['location__name']}): "
                              f"{row['open_count']} open sessions")
            for session in POSSession.objects.filter(register_id=row['register_id'], status='open').order_by('opened_at'):
                self.stdout.write(f"    - {session.session_number} opened {session.opened_at:%Y-%m-%d %H:%M}")
