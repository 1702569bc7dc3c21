# accounts/management/commands/seed_permissions.py

from django.core.management.base import BaseCommand

from accounts.permission_defaults import all_permission_codes
from accounts.permissions import ensure_permissions, grant_defaults_to_all_memberships


class Command(BaseCommand):
    help = "Seed the permission catalogue and optionally grant role defaults"

    def add_arguments(self, parser):
        parser.add_argument(
            "--grant-defaults",
            action="store_true",
            help="Grant role defaults to memberships that have no explicit permissions",
        )

    def handle(self, *args, **options):
        perms = ensure_permissions(all_permission_codes())
        self.stdout.write(f"Permission catalogue holds {len(perms)} codes.")

        if options["grant_defaults"]:
            summary = grant_defaults_to_all_memberships()
            self.stdout.write(
                f"Granted {summary['permissions_granted']} permissions "
                f"to {summary['memberships_updated']} memberships."
            )

        self.stdout.write(self.style.SUCCESS("Done!"))
