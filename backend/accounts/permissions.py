# accounts/permissions.py
from __future__ import annotations

import logging
from typing import Optional

from django.db import transaction

from accounts.models import LedgerPermission, CompanyMembership, CompanyMembershipPermission
from accounts.permission_defaults import ROLE_DEFAULTS

logger = logging.getLogger(__name__)


def ensure_permissions(codes) -> list[LedgerPermission]:
    """
    Insert-if-absent the LedgerPermission rows for ``codes``.

    Relies on the unique constraint on ``code`` so concurrent callers never
    create duplicates.
    """
    codes = set(codes)
    LedgerPermission.objects.bulk_create(
        [
            LedgerPermission(
                code=c,
                name=c,
                module=c.split(".")[0],
            )
            for c in codes
        ],
        ignore_conflicts=True,
    )
    return list(LedgerPermission.objects.filter(code__in=codes))


@transaction.atomic
def grant_role_defaults(
    membership: CompanyMembership,
    granted_by=None,
    overwrite: bool = False,
) -> int:
    """
    Grant default permissions for the membership.role.

    - Idempotent by default: only grants missing codes.
    - If overwrite=True: first removes existing permissions then grants defaults.
    Returns number of permissions newly granted.
    """
    default_codes = ROLE_DEFAULTS.get(membership.role, set())

    if overwrite:
        CompanyMembershipPermission.objects.filter(
            membership=membership,
            company=membership.company,
        ).delete()

    perms = ensure_permissions(default_codes)

    already = set(
        CompanyMembershipPermission.objects.filter(
            membership=membership,
            permission__in=perms,
        ).values_list("permission__code", flat=True)
    )

    to_grant = [p for p in perms if p.code not in already]
    if not to_grant:
        return 0

    CompanyMembershipPermission.objects.bulk_create(
        [
            CompanyMembershipPermission(
                membership=membership,
                company=membership.company,
                permission=p,
                granted_by=granted_by if (granted_by and granted_by.is_authenticated) else None,
            )
            for p in to_grant
        ],
        ignore_conflicts=True,
    )
    logger.info(
        "Granted role defaults",
        extra={
            "membership_id": membership.id,
            "role": membership.role,
            "granted": len(to_grant),
        },
    )
    return len(to_grant)


@transaction.atomic
def grant_defaults_to_all_memberships(
    granted_by: Optional[object] = None,
    only_if_empty: bool = True,
) -> dict[str, int]:
    """
    Grant defaults across all memberships.
    - only_if_empty=True: only touches memberships with zero explicit permissions.
    """
    updated = 0
    total_granted = 0

    for m in CompanyMembership.objects.all().select_related("company"):
        if only_if_empty and CompanyMembershipPermission.objects.filter(membership=m).exists():
            continue
        granted = grant_role_defaults(membership=m, granted_by=granted_by)
        if granted > 0:
            updated += 1
            total_granted += granted

    return {"memberships_updated": updated, "permissions_granted": total_granted}
