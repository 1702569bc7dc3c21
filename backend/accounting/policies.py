# accounting/policies.py
"""
Business policy functions for accounting operations.

Policies answer: "Is this action allowed given the current state?"
They do NOT perform the action; the command does.

Design Principles:
1. Policies have no side effects
2. Policies return (bool, str) tuples for clear error messages
3. Policies check ONE thing conceptually
4. Commands compose policies and raise the matching typed error

Usage:
    allowed, reason = can_post_to_period(period)
    if not allowed:
        raise period_rejection(period, reason)
"""

from decimal import Decimal, InvalidOperation

from accounting.errors import PeriodClosedError, PeriodLockedError
from accounting.models import Account, AccountingPeriod, JournalEntry, MONEY_Q, ZERO


# =============================================================================
# Tenant Boundary Policies
# =============================================================================

def check_tenant_boundary(actor, entity) -> bool:
    """
    Verify entity belongs to actor's company.
    This is the fundamental multi-tenant security check.
    """
    entity_company_id = getattr(entity, "company_id", None)
    if entity_company_id is None:
        company = getattr(entity, "company", None)
        entity_company_id = getattr(company, "id", None) if company else None
    return entity_company_id == actor.company.id


# =============================================================================
# Amount helpers
# =============================================================================

def format_amount(value: Decimal) -> str:
    """Render 100.00 as "100" and 100.50 as "100.50" for error messages."""
    if value == value.to_integral_value():
        return str(int(value))
    return str(value.quantize(MONEY_Q))


def parse_amount(value) -> Decimal:
    """
    Parse a money amount exactly.

    Raises ValueError for non-numeric input or more than two decimal places.
    Floats are converted through str() so 0.1 stays 0.1.
    """
    if value is None or value == "":
        return ZERO
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value))
        except (InvalidOperation, ValueError, TypeError):
            raise ValueError(f"invalid amount {value!r}")
    if not amount.is_finite():
        raise ValueError(f"invalid amount {value!r}")
    if amount != amount.quantize(MONEY_Q):
        raise ValueError(f"amount {value} has more than 2 decimal places")
    return amount.quantize(MONEY_Q)


# =============================================================================
# Account Policies
# =============================================================================

def can_delete_account(actor, account) -> tuple[bool, str]:
    """
    Rules:
    - Must belong to actor's company
    - Cannot have journal lines or ledger activity
    - Cannot have child accounts
    """
    if not check_tenant_boundary(actor, account):
        return False, "Cross-company action denied."

    if account.journal_lines.exists() or account.ledger_entries.exists():
        return False, "Cannot delete an account that has transactions. Deactivate it instead."

    if account.children.exists():
        return False, "Cannot delete an account that has child accounts."

    return True, ""


def can_set_parent(actor, account, parent) -> tuple[bool, str]:
    """Parent must be in the same company and must not create a loop."""
    if parent is None:
        return True, ""

    if not check_tenant_boundary(actor, parent):
        return False, "Parent account must belong to the same company."

    if account.pk is not None and parent.pk == account.pk:
        return False, "An account cannot be its own parent."

    if account.would_create_cycle(parent):
        return False, (
            f"Cannot set {parent.code} as parent of {account.code}: "
            "this would create a cycle in the account tree."
        )

    return True, ""


def can_change_account_type(actor, account) -> tuple[bool, str]:
    """The normal side of an account with activity must not change."""
    if not check_tenant_boundary(actor, account):
        return False, "Cross-company action denied."

    if account.ledger_entries.exists():
        return False, "Cannot change type of an account with transactions."

    return True, ""


def check_account_postable(account, line_no: int) -> str:
    """Return a problem description for ``account`` on ``line_no``, or ""."""
    if not account.is_postable:
        return f"line {line_no}: account {account.code} is inactive"
    return ""


# =============================================================================
# Journal Entry Policies
# =============================================================================

def can_edit_entry(actor, entry) -> tuple[bool, str]:
    if not check_tenant_boundary(actor, entry):
        return False, "Cross-company action denied."

    if entry.status != JournalEntry.Status.DRAFT:
        return False, (
            f"Cannot edit a {entry.get_status_display().lower()} entry. "
            "Void it and create a new entry instead."
        )

    return True, ""


def can_delete_entry(actor, entry) -> tuple[bool, str]:
    if not check_tenant_boundary(actor, entry):
        return False, "Cross-company action denied."

    if entry.status != JournalEntry.Status.DRAFT:
        return False, f"Cannot delete a {entry.get_status_display().lower()} entry."

    return True, ""


def can_post_entry(actor, entry) -> tuple[bool, str]:
    if not check_tenant_boundary(actor, entry):
        return False, "Cross-company action denied."

    if entry.status != JournalEntry.Status.DRAFT:
        return False, f"Only draft entries can be posted (entry is {entry.get_status_display().lower()})."

    return True, ""


def can_void_entry(actor, entry) -> tuple[bool, str]:
    if not check_tenant_boundary(actor, entry):
        return False, "Cross-company action denied."

    if entry.status == JournalEntry.Status.VOIDED:
        return False, "Journal entry is already voided."

    if entry.status != JournalEntry.Status.POSTED:
        return False, "Only posted entries can be voided."

    if entry.reverses_entry_id:
        return False, "A reversing entry cannot itself be voided."

    return True, ""


# =============================================================================
# Period Policies
# =============================================================================

def can_post_to_period(period) -> tuple[bool, str]:
    """
    A date outside every period is postable; inside one, the period must
    be OPEN.
    """
    if period is None or period.status == AccountingPeriod.Status.OPEN:
        return True, ""

    return False, (
        f"Cannot post transaction to {period.get_status_display().lower()} period "
        f"\"{period.name}\" ({period.range_label}). "
        "Please reopen the period or change the transaction date."
    )


def period_rejection(period, reason: str):
    """Typed error for a period that refused a posting."""
    if period.status == AccountingPeriod.Status.LOCKED:
        return PeriodLockedError(reason)
    return PeriodClosedError(reason)


def can_update_period(actor, period) -> tuple[bool, str]:
    if not check_tenant_boundary(actor, period):
        return False, "Cross-company action denied."

    if period.status == AccountingPeriod.Status.LOCKED:
        return False, f"Period \"{period.name}\" is locked and cannot be modified."

    return True, ""


def can_close_period(actor, period) -> tuple[bool, str]:
    if not check_tenant_boundary(actor, period):
        return False, "Cross-company action denied."

    if period.status != AccountingPeriod.Status.OPEN:
        return False, (
            f"Only open periods can be closed (period \"{period.name}\" is "
            f"{period.get_status_display().lower()})."
        )

    return True, ""


def can_reopen_period(actor, period) -> tuple[bool, str]:
    if not check_tenant_boundary(actor, period):
        return False, "Cross-company action denied."

    if period.status == AccountingPeriod.Status.LOCKED:
        return False, f"Period \"{period.name}\" is locked and cannot be reopened."

    if period.status != AccountingPeriod.Status.CLOSED:
        return False, f"Only closed periods can be reopened (period \"{period.name}\" is open)."

    return True, ""


def can_lock_period(actor, period) -> tuple[bool, str]:
    if not check_tenant_boundary(actor, period):
        return False, "Cross-company action denied."

    if period.status != AccountingPeriod.Status.CLOSED:
        return False, (
            f"Only closed periods can be locked (period \"{period.name}\" is "
            f"{period.get_status_display().lower()})."
        )

    return True, ""


def period_has_activity(period) -> bool:
    """Posted or voided entries dated inside the period, or a closing entry for it."""
    dated_inside = JournalEntry.objects.filter(
        company_id=period.company_id,
        date__gte=period.start_date,
        date__lte=period.end_date,
        status__in=[JournalEntry.Status.POSTED, JournalEntry.Status.VOIDED],
    ).exists()
    return dated_inside or period.closing_entries.exists()


def can_delete_period(actor, period) -> tuple[bool, str]:
    if not check_tenant_boundary(actor, period):
        return False, "Cross-company action denied."

    if period.status != AccountingPeriod.Status.OPEN:
        return False, (
            f"Only open periods can be deleted (period \"{period.name}\" is "
            f"{period.get_status_display().lower()})."
        )

    if period_has_activity(period):
        return False, f"Period \"{period.name}\" has posted journal entries and cannot be deleted."

    return True, ""
