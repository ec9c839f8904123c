"""
Django management command to close register sessions left open past a shift
"""
from datetime import timedelta
from django.core.management.base import BaseCommand
from django.utils import timezone
from greenleaf.pos.models import POSSession
from greenleaf.pos.utils import calculate_expected_cash, close_session


class Command(BaseCommand):
    help = 'Close POS sessions that have been open longer than --hours, counting the drawer at the expected amount'

    def add_arguments(self, parser):
        parser.add_argument(
            '--hours',
            type=int,
            default=24,
            help='Close sessions opened more than this many hours ago (default: 24)',
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='List the sessions that would be closed without closing them',
        )

    def handle(self, *args, **options):
        hours = options['hours']
        dry_run = options.get('dry_run', False)
        cutoff = timezone.now() - timedelta(hours=hours)

        stale = POSSession.objects.filter(status='open', opened_at__lt=cutoff).select_related('register', 'opened_by')
        self.stdout.write(f"Found {stale.count()} session(s) open for more than {hours} hours")

        closed = 0
        for session in stale:
            expected = calculate_expected_cash(session)
            self.stdout.write(
                f"  {session.session_number} ({session.register.name}) opened {session.opened_at:%Y-%m-%d %H:%M} "
                f"by {session.opened_by.username}, expected cash {expected}"
            )
            if dry_run:
                continue
            close_session(session, session.opened_by, expected,
                          closing_notes=f'Closed automatically after {hours} hours')
            closed += 1

        if dry_run:
            self.stdout.write(self.style.WARNING('Dry run: no sessions were closed'))
        else:
            self.stdout.write(self.style.SUCCESS(f"Closed {closed} session(s)"))
