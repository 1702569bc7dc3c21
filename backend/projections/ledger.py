# projections/ledger.py
"""
Ledger Projection.

Turns every posted journal line into a LedgerEntry with a running balance.

Ordering:
- Rows of one account are totally ordered by (date, sequence).
- ``sequence`` comes from the company "ledger" counter, so two entries
  posted on the same day chain instead of both starting from the same
  previous balance.
- A back-dated posting is inserted at its place in the order, and the
  running balances of every later row of that account are refolded.

The projector runs inside the posting transaction. Callers hold the
account row locks (see accounting.locking) before calling apply().

Account.balance is a cache of the last running balance and is refreshed
on a best-effort basis. The ledger rows are authoritative.
"""

from datetime import date as date_type
from decimal import Decimal
from typing import Dict, List, Optional
import logging

from django.conf import settings
from django.db import DatabaseError, transaction
from django.db.models import Q
from django.utils import timezone

from accounts.models import Company
from accounting.locking import lock_accounts
from accounting.models import Account, JournalEntry, ZERO
from accounting.sequences import LEDGER_SEQUENCE, next_company_sequence
from ops.metrics import ledger_repairs_total
from projections.base import BaseProjection
from projections.models import LedgerEntry
from projections.write_barrier import projection_writes_allowed


logger = logging.getLogger(__name__)


def _before(on: date_type, sequence: int) -> Q:
    return Q(date__lt=on) | Q(date=on, sequence__lt=sequence)


def _after(on: date_type, sequence: int) -> Q:
    return Q(date__gt=on) | Q(date=on, sequence__gt=sequence)


def repair_tolerance() -> Decimal:
    return Decimal(str(getattr(settings, "LEDGER_REPAIR_TOLERANCE", "0.01")))


class LedgerProjection(BaseProjection):
    """
    Maintains LedgerEntry rows from posted journal entries.

    Rebuild replays POSTED and VOIDED entries in posting order. A voided
    entry stays in the ledger; its reversing entry is replayed after it.
    """

    @property
    def name(self) -> str:
        return "ledger"

    def posted_entries(self, company: Company):
        return (
            JournalEntry.objects
            .filter(
                company=company,
                status__in=[JournalEntry.Status.POSTED, JournalEntry.Status.VOIDED],
            )
            .order_by("posted_at", "id")
        )

    def apply(self, entry, lines=None) -> List[LedgerEntry]:
        if lines is None:
            lines = list(
                entry.lines
                .select_related("account")
                .filter(ledger_entry__isnull=True)
                .order_by("line_no")
            )
        if not lines:
            return []

        first_sequence = next_company_sequence(entry.company, LEDGER_SEQUENCE, count=len(lines))

        created = []
        touched: Dict[int, Account] = {}
        with projection_writes_allowed():
            for offset, line in enumerate(lines):
                account = line.account
                row = self._append(entry, line, account, first_sequence + offset)
                created.append(row)
                touched[account.pk] = account

        for account in touched.values():
            refresh_cached_balance(account)

        logger.info(
            "Journal entry projected into ledger",
            extra={
                "company_id": entry.company_id,
                "entry_id": entry.id,
                "entry_number": entry.entry_number,
                "rows": len(created),
            },
        )
        return created

    def _append(self, entry, line, account: Account, sequence: int) -> LedgerEntry:
        previous = (
            LedgerEntry.objects
            .filter(account=account)
            .filter(_before(entry.date, sequence))
            .order_by("-date", "-sequence")
            .first()
        )
        opening = previous.running_balance if previous else ZERO

        row = LedgerEntry.objects.create(
            company_id=entry.company_id,
            account=account,
            journal_entry=entry,
            journal_line=line,
            date=entry.date,
            sequence=sequence,
            debit=line.debit,
            credit=line.credit,
            running_balance=opening + account.signed_amount(line.debit, line.credit),
            account_code=account.code,
            entry_number=entry.entry_number,
            description=(line.memo or entry.memo)[:255],
        )

        # Back-dated: later rows now sit on a different opening balance.
        refolded = self._refold_after(account, row)
        if refolded:
            logger.info(
                "Back-dated ledger row refolded later balances",
                extra={"account_id": account.pk, "rows": refolded, "date": str(entry.date)},
            )
        return row

    def _refold_after(self, account: Account, row: LedgerEntry) -> int:
        balance = row.running_balance
        changed = 0
        later = (
            LedgerEntry.objects
            .filter(account=account)
            .filter(_after(row.date, row.sequence))
            .order_by("date", "sequence")
        )
        for other in later:
            balance += account.signed_amount(other.debit, other.credit)
            if other.running_balance != balance:
                other.running_balance = balance
                other.save(update_fields=["running_balance"])
                changed += 1
        return changed

    def rebuild(self, company: Company) -> int:
        with transaction.atomic():
            lock_accounts(company)
            replayed = super().rebuild(company)
        return replayed

    def _clear_projected_data(self, company: Company) -> None:
        LedgerEntry.objects.filter(company=company).delete()

    # ------------------------------------------------------------------
    # Repair
    # ------------------------------------------------------------------

    def _fold_account(self, account: Account, tolerance: Decimal, fix: bool) -> list:
        """
        Recompute running balances of one account in ledger order.

        Rows that differ from the fold by more than ``tolerance`` are
        reported and, with ``fix``, rewritten. The fold always carries the
        recomputed value forward, so one bad row does not hide later ones.
        """
        corrections = []
        balance = ZERO
        rows = LedgerEntry.objects.filter(account=account).order_by("date", "sequence")
        for row in rows:
            balance += account.signed_amount(row.debit, row.credit)
            if abs(row.running_balance - balance) > tolerance:
                corrections.append({
                    "account_id": account.pk,
                    "account_code": account.code,
                    "ledger_entry_id": row.pk,
                    "date": row.date,
                    "sequence": row.sequence,
                    "stored": row.running_balance,
                    "expected": balance,
                })
                if fix:
                    row.running_balance = balance
                    row.save(update_fields=["running_balance"])
        return corrections

    def repair(
        self,
        company: Company,
        account_ids: Optional[List[int]] = None,
        tolerance: Optional[Decimal] = None,
    ) -> list:
        """
        Correct drifted running balances. Running it twice in a row makes
        no changes the second time.
        """
        if tolerance is None:
            tolerance = repair_tolerance()

        with transaction.atomic():
            accounts = lock_accounts(company, account_ids)
            corrections = []
            with projection_writes_allowed():
                for account in accounts:
                    fixed = self._fold_account(account, tolerance, fix=True)
                    if fixed:
                        corrections.extend(fixed)
                        refresh_cached_balance(account)

        if corrections:
            ledger_repairs_total.inc(len(corrections))
            logger.warning(
                f"Ledger repair corrected {len(corrections)} running balance(s) for {company.name}",
                extra={
                    "company_id": company.id,
                    "corrections": len(corrections),
                    "accounts": sorted({c["account_code"] for c in corrections}),
                },
            )
        else:
            logger.info("Ledger repair found no drift", extra={"company_id": company.id})
        return corrections

    def verify(self, company: Company, tolerance: Optional[Decimal] = None) -> list:
        if tolerance is None:
            tolerance = repair_tolerance()
        mismatches = []
        for account in Account.objects.filter(company=company).order_by("pk"):
            mismatches.extend(self._fold_account(account, tolerance, fix=False))
        return mismatches

    def backfill_missing(self, company: Company) -> int:
        """
        Project posted lines that have no ledger row yet.

        Returns the number of journal entries that received rows.
        """
        with transaction.atomic():
            lock_accounts(company)
            entries = (
                self.posted_entries(company)
                .filter(lines__ledger_entry__isnull=True)
                .distinct()
            )
            backfilled = 0
            for entry in entries:
                if self.apply(entry):
                    backfilled += 1

        if backfilled:
            logger.warning(
                f"Backfilled ledger rows for {backfilled} journal entries",
                extra={"company_id": company.id, "entries": backfilled},
            )
        return backfilled


ledger_projection = LedgerProjection()


def refresh_cached_balance(account: Account) -> Optional[Decimal]:
    """
    Copy the account's last running balance onto Account.balance.

    Failure here never fails the posting: the cache is logged and left
    stale, and readers that need the truth use the ledger.
    """
    latest = (
        LedgerEntry.objects
        .filter(account_id=account.pk)
        .order_by("-date", "-sequence")
        .first()
    )
    balance = latest.running_balance if latest else ZERO
    try:
        with transaction.atomic():
            Account.objects.filter(pk=account.pk).update(
                balance=balance,
                balance_refreshed_at=timezone.now(),
            )
    except DatabaseError:
        logger.warning(
            "Cached account balance refresh failed",
            exc_info=True,
            extra={"account_id": account.pk, "account_code": account.code},
        )
        return None
    account.balance = balance
    return balance


# =============================================================================
# Queries
# =============================================================================

def ledger_queryset(company: Company):
    return (
        LedgerEntry.objects
        .filter(company=company)
        .select_related("account", "journal_entry")
        .order_by("date", "sequence")
    )


def get_ledger_for_account(company: Company, account: Account, start_date=None, end_date=None):
    qs = ledger_queryset(company).filter(account=account)
    if start_date:
        qs = qs.filter(date__gte=start_date)
    if end_date:
        qs = qs.filter(date__lte=end_date)
    return qs


def get_ledger_by_date_range(company: Company, start_date, end_date):
    return ledger_queryset(company).filter(date__gte=start_date, date__lte=end_date)


def get_ledger_for_entry(company: Company, entry: JournalEntry):
    return ledger_queryset(company).filter(journal_entry=entry).order_by("sequence")


def get_account_balance(company: Company, account: Account, as_of=None) -> Decimal:
    """Balance of ``account`` after the last ledger row on or before ``as_of``."""
    qs = LedgerEntry.objects.filter(company=company, account=account)
    if as_of:
        qs = qs.filter(date__lte=as_of)
    last = qs.order_by("-date", "-sequence").first()
    return last.running_balance if last else ZERO


def get_general_ledger(company: Company, start_date=None, end_date=None, account_ids=None) -> list:
    """
    Per-account ledger sections for a date range.

    Each section carries the opening balance (last running balance before
    ``start_date``), the rows in range, their debit and credit totals and
    the closing balance. Accounts with no rows and a zero opening balance
    are left out.
    """
    accounts = Account.objects.filter(company=company).order_by("code")
    if account_ids:
        accounts = accounts.filter(pk__in=account_ids)

    sections = []
    for account in accounts:
        opening = ZERO
        if start_date:
            before = (
                LedgerEntry.objects
                .filter(company=company, account=account, date__lt=start_date)
                .order_by("-date", "-sequence")
                .first()
            )
            opening = before.running_balance if before else ZERO

        rows = list(get_ledger_for_account(company, account, start_date, end_date))
        if not rows and opening == ZERO:
            continue

        sections.append({
            "account": account,
            "opening_balance": opening,
            "entries": rows,
            "total_debit": sum((r.debit for r in rows), ZERO),
            "total_credit": sum((r.credit for r in rows), ZERO),
            "closing_balance": rows[-1].running_balance if rows else opening,
            "entry_count": len(rows),
        })
    return sections


def get_ledger_page(qs, page: int = 1, page_size: int = None) -> dict:
    """Offset page over an ordered ledger queryset."""
    if page_size is None:
        page_size = getattr(settings, "LEDGER_PAGE_SIZE", 50)
    page = max(1, page)
    page_size = max(1, min(page_size, 500))
    offset = (page - 1) * page_size
    return {
        "page": page,
        "page_size": page_size,
        "total": qs.count(),
        "entries": list(qs[offset:offset + page_size]),
    }
