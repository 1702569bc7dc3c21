# accounts/authz.py
"""
Authorization gate for the ledger core.

Provides:
- ActorContext: Immutable context for the current request
- resolve_actor: Extract actor context from request (tenant resolution)
- require: Check a "<resource>.<action>" permission and raise ForbiddenError

Permissions are checked:
1. First by role (OWNER: implicit allow)
2. Everyone else: explicit permissions only (role defaults + manual grants)
"""

import logging
from dataclasses import dataclass
from typing import FrozenSet

from rest_framework.exceptions import NotAuthenticated

from accounting.errors import ForbiddenError
from accounts.models import CompanyMembership, Company

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActorContext:
    """
    Immutable context for the current actor (user + company).

    Passed to commands and policies so they know who is acting and in
    which company.
    """
    user: object
    company: Company
    membership: CompanyMembership
    perms: FrozenSet[str]

    def has(self, code: str) -> bool:
        if not self.membership.is_active:
            return False

        if self.membership.role == CompanyMembership.Role.OWNER:
            return True
        if code in self.perms:
            return True
        # Fallback to a fresh lookup in case permissions changed after context creation.
        return self.membership.permissions.filter(code=code).exists()

    def can(self, resource: str, action: str) -> bool:
        return self.has(f"{resource}.{action}")

    @property
    def is_owner(self) -> bool:
        return self.membership.role == CompanyMembership.Role.OWNER

    @property
    def role(self) -> str:
        return self.membership.role


def resolve_actor(request) -> ActorContext:
    """
    Extract ActorContext from the current request.

    Membership and permissions are loaded fresh from the database on every
    call so that permission changes take effect immediately.

    Raises:
        NotAuthenticated: If user is not authenticated
        ForbiddenError: If the user has no active company or membership
    """
    user = getattr(request, "user", None)

    if not user or not user.is_authenticated:
        raise NotAuthenticated("Authentication required.")

    company = getattr(user, "active_company", None)

    if not company:
        raise ForbiddenError("No active company selected. Please select a company first.")

    try:
        membership = CompanyMembership.objects.select_related(
            "company"
        ).prefetch_related(
            "permissions"
        ).get(
            user=user,
            company=company,
            is_active=True,
        )
    except CompanyMembership.DoesNotExist:
        raise ForbiddenError("You are not an active member of the selected company.")

    perms = frozenset(
        membership.permissions.values_list("code", flat=True)
    )

    return ActorContext(
        user=user,
        company=company,
        membership=membership,
        perms=perms,
    )


def require(actor: ActorContext, code: str) -> None:
    """
    Require that the actor has a specific permission.

    Raises ForbiddenError if the permission is not granted. Callers treat
    this as terminal; there is no retry or escalation.

    Example:
        require(actor, "journal.post")
    """
    if not actor.has(code):
        logger.warning(
            "Permission denied",
            extra={
                "company_id": actor.company.id,
                "user_id": getattr(actor.user, "id", None),
                "permission": code,
            },
        )
        raise ForbiddenError(f"Permission denied: {code}")
