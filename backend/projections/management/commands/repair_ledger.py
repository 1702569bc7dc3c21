# projections/management/commands/repair_ledger.py
"""
Verify or repair ledger running balances.

Usage:
    # Report drift only
    python manage.py repair_ledger --tenant acme --dry-run

    # Backfill missing rows, then refold running balances
    python manage.py repair_ledger --tenant acme --backfill

    # Custom tolerance for all tenants
    python manage.py repair_ledger --all-tenants --tolerance 0.05
"""

from decimal import Decimal, InvalidOperation

from django.core.management.base import BaseCommand, CommandError

from projections.ledger import ledger_projection
from projections.management.commands.rebuild_projection import get_companies


class Command(BaseCommand):
    help = "Verify or repair ledger running balances"

    def add_arguments(self, parser):
        parser.add_argument("--tenant", type=str, help="Company slug")
        parser.add_argument("--all-tenants", action="store_true", help="All active companies")
        parser.add_argument("--tolerance", type=str, help="Allowed drift before a row is corrected")
        parser.add_argument("--backfill", action="store_true", help="Project posted lines missing from the ledger first")
        parser.add_argument("--dry-run", action="store_true", help="Report drift without changing anything")

    def handle(self, *args, **options):
        tolerance = None
        if options["tolerance"] is not None:
            try:
                tolerance = Decimal(options["tolerance"])
            except InvalidOperation:
                raise CommandError(f"Invalid tolerance: {options['tolerance']}")

        for company in get_companies(options):
            if options["dry_run"]:
                mismatches = ledger_projection.verify(company, tolerance=tolerance)
                for m in mismatches:
                    self.stdout.write(
                        f"  {company.slug} {m['account_code']} {m['date']} #{m['sequence']}: "
                        f"stored {m['stored']} expected {m['expected']}"
                    )
                style = self.style.WARNING if mismatches else self.style.SUCCESS
                self.stdout.write(style(f"{company.slug}: {len(mismatches)} drifted row(s)"))
                continue

            if options["backfill"]:
                backfilled = ledger_projection.backfill_missing(company)
                self.stdout.write(f"{company.slug}: backfilled {backfilled} entries")

            corrections = ledger_projection.repair(company, tolerance=tolerance)
            self.stdout.write(self.style.SUCCESS(f"{company.slug}: corrected {len(corrections)} row(s)"))
