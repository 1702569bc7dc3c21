# projections/management/commands/rebuild_projection.py
"""
Management command to rebuild projections from the posted journal.

The posted journal is the source of truth; projections can always be
rebuilt.

Usage:
    # Rebuild the ledger for a specific tenant
    python manage.py rebuild_projection --projection ledger --tenant acme

    # Rebuild ALL projections for ALL tenants
    python manage.py rebuild_projection --all --all-tenants

    # Dry run - show what would happen without writing
    python manage.py rebuild_projection --projection ledger --tenant acme --dry-run

    # List all available projections
    python manage.py rebuild_projection --list
"""

import time
import logging

from django.core.management.base import BaseCommand, CommandError

from accounts.models import Company
from projections.base import projection_registry

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    """Rebuild projections from the posted journal."""

    help = "Rebuild projections from the posted journal"

    def add_arguments(self, parser):
        parser.add_argument(
            "--projection",
            type=str,
            help="Name of the projection to rebuild",
        )
        parser.add_argument(
            "--all",
            action="store_true",
            dest="all_projections",
            help="Rebuild ALL projections",
        )
        parser.add_argument(
            "--tenant",
            type=str,
            help="Company slug to rebuild for",
        )
        parser.add_argument(
            "--all-tenants",
            action="store_true",
            help="Rebuild for all active tenants",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Show what would happen without making changes",
        )
        parser.add_argument(
            "--list",
            action="store_true",
            help="List all available projections",
        )

    def handle(self, *args, **options):
        if options["list"]:
            self.stdout.write("\nAvailable projections:\n")
            for name in projection_registry.names():
                self.stdout.write(f"  {name}")
            self.stdout.write(f"\nTotal: {len(projection_registry.names())} projections")
            return

        projections = self._get_projections(options)
        companies = get_companies(options)

        self.stdout.write("\n" + "=" * 60)
        self.stdout.write("PROJECTION REBUILD PLAN")
        self.stdout.write("=" * 60)
        for projection in projections:
            for company in companies:
                count = projection.posted_entries(company).count()
                self.stdout.write(f"  {projection.name} @ {company.slug}: {count:,} entries")

        if options["dry_run"]:
            self.stdout.write(self.style.WARNING("\n[DRY RUN] No changes made."))
            return

        start_time = time.time()
        total = 0
        for company in companies:
            for projection in projections:
                try:
                    replayed = projection.rebuild(company)
                except Exception:
                    logger.exception(f"Projection rebuild failed: {projection.name} @ {company.slug}")
                    raise
                total += replayed
                self.stdout.write(
                    self.style.SUCCESS(f"  {projection.name} @ {company.slug}: {replayed:,} entries replayed")
                )

        elapsed = time.time() - start_time
        self.stdout.write(self.style.SUCCESS(f"\nREBUILD COMPLETE: {total:,} entries in {elapsed:.2f}s"))

    def _get_projections(self, options):
        if options["projection"] and options["all_projections"]:
            raise CommandError("Cannot use --projection and --all together")
        if options["all_projections"]:
            return projection_registry.all()
        if not options["projection"]:
            raise CommandError("Must specify --projection <name> or --all")

        projection = projection_registry.get(options["projection"])
        if not projection:
            available = ", ".join(projection_registry.names())
            raise CommandError(f"Unknown projection: {options['projection']}\nAvailable: {available}")
        return [projection]


def get_companies(options):
    """Companies selected by --tenant / --all-tenants."""
    if options.get("tenant") and options.get("all_tenants"):
        raise CommandError("Cannot use --tenant and --all-tenants together")
    if options.get("all_tenants"):
        return list(Company.objects.filter(is_active=True).order_by("id"))
    if not options.get("tenant"):
        raise CommandError("Must specify --tenant <slug> or --all-tenants")

    try:
        return [Company.objects.get(slug=options["tenant"], is_active=True)]
    except Company.DoesNotExist:
        raise CommandError(f"Company not found or inactive: {options['tenant']}")
