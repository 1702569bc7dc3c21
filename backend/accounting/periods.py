# accounting/periods.py
"""
Accounting period commands.

Lifecycle:
    OPEN -> CLOSED      close_period: posts the closing entry
    CLOSED -> OPEN      reopen_period: voids the closing entry
    CLOSED -> LOCKED    lock_period: permanent

Posting into a CLOSED or LOCKED period is refused by the journal
commands (see accounting.commands._check_period_gate).
"""

from datetime import date as date_type
import logging

from django.db import IntegrityError, transaction
from django.db.models import Sum
from django.utils import timezone

from accounts.authz import ActorContext, require
from accounts.models import Company
from accounting.commands import (
    CommandResult,
    _post_locked,
    _void_locked,
    command,
    get_or_create_retained_earnings,
)
from accounting.errors import (
    NotFoundError,
    PeriodLockedError,
    PeriodNotEmptyError,
    PeriodOverlapError,
    ValidationError,
)
from accounting.locking import lock_accounts, select_period_for_update
from accounting.models import Account, AccountingPeriod, JournalEntry, JournalLine, SourceLink, ZERO
from accounting.policies import (
    can_close_period,
    can_delete_period,
    can_lock_period,
    can_reopen_period,
    can_update_period,
    period_has_activity,
    period_rejection,
)
from ops.metrics import period_transitions_total
from projections.models import LedgerEntry


logger = logging.getLogger(__name__)


def _get_period(actor: ActorContext, period_id) -> AccountingPeriod:
    try:
        return select_period_for_update(actor.company, period_id)
    except (AccountingPeriod.DoesNotExist, ValueError, TypeError):
        raise NotFoundError("Accounting period not found.")


def _check_overlap(company, start_date, end_date, exclude_pk=None) -> None:
    clash = AccountingPeriod.objects.filter(
        company=company,
        start_date__lte=end_date,
        end_date__gte=start_date,
    )
    if exclude_pk is not None:
        clash = clash.exclude(pk=exclude_pk)
    other = clash.order_by("start_date").first()
    if other is not None:
        raise PeriodOverlapError(
            f"Period overlaps with existing period \"{other.name}\" ({other.range_label})"
        )


def _check_dates(start_date, end_date) -> None:
    if not start_date or not end_date:
        raise ValidationError("start_date and end_date are required")
    if end_date <= start_date:
        raise ValidationError("End date must be after start date.")


@command
def create_period(
    actor: ActorContext,
    name: str,
    start_date: date_type,
    end_date: date_type,
    period_type: str = AccountingPeriod.PeriodType.MONTHLY,
    fiscal_year: int = None,
    notes: str = "",
) -> CommandResult:
    """
    Create an OPEN period. Periods of one company never overlap.

    The company row is locked while checking for overlaps so two
    concurrent creates cannot both pass the check.
    """
    require(actor, "periods.create")

    name = (name or "").strip()
    if not name:
        raise ValidationError("name is required")
    _check_dates(start_date, end_date)
    if period_type not in AccountingPeriod.PeriodType.values:
        raise ValidationError(f"invalid period type {period_type!r}")

    Company.objects.select_for_update().filter(pk=actor.company.pk).first()
    _check_overlap(actor.company, start_date, end_date)

    period = AccountingPeriod.objects.create(
        company=actor.company,
        name=name[:100],
        period_type=period_type,
        fiscal_year=fiscal_year or start_date.year,
        start_date=start_date,
        end_date=end_date,
        notes=(notes or "")[:500],
    )
    logger.info(
        f"Period {period.name} created",
        extra={"company_id": actor.company.id, "period_id": period.id, "range": period.range_label},
    )
    return CommandResult.ok(period)


@command
def update_period(actor: ActorContext, period_id: int, **updates) -> CommandResult:
    """
    Rename or annotate a period, or move its dates while it is OPEN and
    has no activity.
    """
    require(actor, "periods.update")
    period = _get_period(actor, period_id)

    allowed, reason = can_update_period(actor, period)
    if not allowed:
        raise PeriodLockedError(reason)

    unknown = set(updates) - {"name", "notes", "start_date", "end_date", "period_type", "fiscal_year"}
    if unknown:
        raise ValidationError(f"Cannot update field(s): {', '.join(sorted(unknown))}")

    if "name" in updates:
        name = (updates["name"] or "").strip()
        if not name:
            raise ValidationError("name is required")
        period.name = name[:100]
    if "notes" in updates:
        period.notes = (updates["notes"] or "")[:500]
    if "period_type" in updates:
        if updates["period_type"] not in AccountingPeriod.PeriodType.values:
            raise ValidationError(f"invalid period type {updates['period_type']!r}")
        period.period_type = updates["period_type"]
    if "fiscal_year" in updates and updates["fiscal_year"]:
        period.fiscal_year = updates["fiscal_year"]

    start_date = updates.get("start_date", period.start_date)
    end_date = updates.get("end_date", period.end_date)
    if (start_date, end_date) != (period.start_date, period.end_date):
        if not period.is_open:
            raise ValidationError("Only open periods can change dates.")
        if period_has_activity(period):
            raise PeriodNotEmptyError(
                f"Period \"{period.name}\" has posted journal entries; its dates cannot change."
            )
        _check_dates(start_date, end_date)
        Company.objects.select_for_update().filter(pk=actor.company.pk).first()
        _check_overlap(actor.company, start_date, end_date, exclude_pk=period.pk)
        period.start_date = start_date
        period.end_date = end_date

    period.save()
    return CommandResult.ok(period)


@command
def delete_period(actor: ActorContext, period_id: int) -> CommandResult:
    """Delete an OPEN period that no posted entry falls into."""
    require(actor, "periods.delete")
    period = _get_period(actor, period_id)

    allowed, reason = can_delete_period(actor, period)
    if not allowed:
        raise PeriodNotEmptyError(reason)

    name = period.name
    period.delete()
    logger.info(f"Period {name} deleted", extra={"company_id": actor.company.id})
    return CommandResult.ok({"name": name})


def _period_activity(period: AccountingPeriod) -> list:
    """(account, debit, credit) sums of revenue and expense accounts inside the period."""
    sums = (
        LedgerEntry.objects
        .filter(
            company_id=period.company_id,
            date__gte=period.start_date,
            date__lte=period.end_date,
            account__account_type__in=[Account.AccountType.REVENUE, Account.AccountType.EXPENSE],
        )
        .values("account_id")
        .annotate(debit=Sum("debit"), credit=Sum("credit"))
    )
    by_account = {row["account_id"]: row for row in sums}
    accounts = lock_accounts(period.company, by_account.keys())
    return [
        (account, by_account[account.pk]["debit"] or ZERO, by_account[account.pk]["credit"] or ZERO)
        for account in sorted(accounts, key=lambda a: a.code)
    ]


def _closing_lines(period: AccountingPeriod, activity) -> tuple[list, dict]:
    """
    Lines that zero every revenue and expense account for the period and
    carry the difference to retained earnings.
    """
    lines = []
    total_revenue = ZERO
    total_expenses = ZERO
    revenue_accounts = 0
    expense_accounts = 0

    for account, debit, credit in activity:
        net = account.signed_amount(debit, credit)
        if net == ZERO:
            continue
        if account.account_type == Account.AccountType.REVENUE:
            total_revenue += net
            revenue_accounts += 1
        else:
            total_expenses += net
            expense_accounts += 1

        # Move the balance off the account's normal side
        if account.is_debit_normal:
            move = (ZERO, net) if net > ZERO else (-net, ZERO)
        else:
            move = (net, ZERO) if net > ZERO else (ZERO, -net)
        lines.append((account, move[0], move[1], f"Close {account.code} for {period.name}"))

    net_income = total_revenue - total_expenses
    if net_income != ZERO:
        retained = get_or_create_retained_earnings(period.company)
        if net_income > ZERO:
            lines.append((retained, ZERO, net_income, f"Net income for {period.name}"))
        else:
            lines.append((retained, -net_income, ZERO, f"Net loss for {period.name}"))

    summary = {
        "total_revenue": total_revenue,
        "total_expenses": total_expenses,
        "net_income": net_income,
        "revenue_accounts": revenue_accounts,
        "expense_accounts": expense_accounts,
    }
    return lines, summary


def _insert_closing_entry(actor: ActorContext, period: AccountingPeriod, lines) -> JournalEntry:
    """
    Insert the period's closing entry if absent.

    At most one live (DRAFT or POSTED) closing entry exists per period; a
    concurrent insert loses on that unique constraint and reuses the
    existing row.
    """
    live = JournalEntry.objects.filter(
        closes_period=period,
        entry_type=JournalEntry.EntryType.CLOSING,
        status__in=[JournalEntry.Status.DRAFT, JournalEntry.Status.POSTED],
    )
    existing = live.select_for_update().first()
    if existing is not None:
        return existing

    try:
        with transaction.atomic():
            entry = JournalEntry(
                company=period.company,
                date=period.end_date,
                reference=f"CLOSE-{period.name}"[:100],
                memo=f"Closing entry for {period.name}"[:255],
                entry_type=JournalEntry.EntryType.CLOSING,
                status=JournalEntry.Status.DRAFT,
                closes_period=period,
                created_by=actor.user,
            )
            entry.source = SourceLink(kind=JournalEntry.SourceKind.PERIOD_CLOSE, source_id=str(period.public_id))
            entry.save()
            for line_no, (account, debit, credit, memo) in enumerate(lines, start=1):
                JournalLine.objects.create(
                    entry=entry,
                    company_id=entry.company_id,
                    line_no=line_no,
                    account=account,
                    debit=debit,
                    credit=credit,
                    memo=memo[:255],
                )
    except IntegrityError:
        entry = live.select_for_update().get()
    return entry


@command
def close_period(actor: ActorContext, period_id: int) -> CommandResult:
    """
    Close an OPEN period.

    Posts a System closing entry, dated on the period's last day, that
    brings every revenue and expense account's activity for the period to
    zero against retained earnings. A period without income activity
    closes without an entry.

    Returns:
        CommandResult with a summary dict: period, closing_entry,
        total_revenue, total_expenses, net_income, revenue_accounts,
        expense_accounts
    """
    require(actor, "periods.close")
    period = _get_period(actor, period_id)

    allowed, reason = can_close_period(actor, period)
    if not allowed:
        if period.status == AccountingPeriod.Status.OPEN:
            raise ValidationError(reason)
        raise period_rejection(period, reason)

    lines, summary = _closing_lines(period, _period_activity(period))

    closing_entry = None
    if lines:
        closing_entry = _insert_closing_entry(actor, period, lines)
        if closing_entry.status == JournalEntry.Status.DRAFT:
            # Posted while the period is still OPEN
            _post_locked(actor, closing_entry)

    period.status = AccountingPeriod.Status.CLOSED
    period.closed_at = timezone.now()
    period.closed_by = actor.user
    period.closing_entry = closing_entry
    period.save()

    transaction.on_commit(lambda: period_transitions_total.labels(action="close").inc())
    logger.info(
        f"Period {period.name} closed",
        extra={
            "company_id": actor.company.id,
            "period_id": period.id,
            "closing_entry_id": closing_entry.id if closing_entry else None,
            "net_income": str(summary["net_income"]),
        },
    )
    return CommandResult.ok({"period": period, "closing_entry": closing_entry, **summary})


@command
def reopen_period(actor: ActorContext, period_id: int) -> CommandResult:
    """
    Reopen a CLOSED period.

    The closing entry is voided with a reversal dated on the closing
    entry's own date, so every account balance is back where it was before
    the close. LOCKED periods cannot be reopened.
    """
    require(actor, "periods.reopen")
    period = _get_period(actor, period_id)

    allowed, reason = can_reopen_period(actor, period)
    if not allowed:
        if period.status == AccountingPeriod.Status.LOCKED:
            raise PeriodLockedError(reason)
        raise ValidationError(reason)

    closing_entry = period.closing_entry
    period.status = AccountingPeriod.Status.OPEN
    period.closed_at = None
    period.closed_by = None
    period.closing_entry = None
    period.save()

    reversal = None
    if closing_entry is not None and closing_entry.status == JournalEntry.Status.POSTED:
        closing_entry = JournalEntry.objects.select_for_update().get(pk=closing_entry.pk)
        reversal = _void_locked(actor, closing_entry, reversal_date=closing_entry.date)

    transaction.on_commit(lambda: period_transitions_total.labels(action="reopen").inc())
    logger.info(
        f"Period {period.name} reopened",
        extra={
            "company_id": actor.company.id,
            "period_id": period.id,
            "reversal_id": reversal.id if reversal else None,
        },
    )
    return CommandResult.ok(period)


@command
def lock_period(actor: ActorContext, period_id: int) -> CommandResult:
    """CLOSED -> LOCKED. There is no way back."""
    require(actor, "periods.lock")
    period = _get_period(actor, period_id)

    allowed, reason = can_lock_period(actor, period)
    if not allowed:
        if period.status == AccountingPeriod.Status.LOCKED:
            raise PeriodLockedError(f"Period \"{period.name}\" is already locked.")
        raise ValidationError(reason)

    period.status = AccountingPeriod.Status.LOCKED
    period.save()

    transaction.on_commit(lambda: period_transitions_total.labels(action="lock").inc())
    logger.warning(
        f"Period {period.name} locked",
        extra={"company_id": actor.company.id, "period_id": period.id, "user_id": actor.user.id},
    )
    return CommandResult.ok(period)


def list_periods(company, fiscal_year: int = None, status: str = None):
    qs = AccountingPeriod.objects.filter(company=company)
    if fiscal_year:
        qs = qs.filter(fiscal_year=fiscal_year)
    if status:
        qs = qs.filter(status=status)
    return qs.order_by("start_date")


def get_open_periods(company):
    return list_periods(company, status=AccountingPeriod.Status.OPEN)
