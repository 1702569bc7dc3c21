# projections/reports.py
"""
Financial reports read from the ledger.

All figures come from LedgerEntry rows, never from the cached
Account.balance column.
"""

from decimal import Decimal
from typing import Dict, List
import logging

from django.db.models import Q, Sum

from accounts.models import Company
from accounting.errors import LedgerIntegrityError
from accounting.models import Account, JournalEntry, ZERO
from accounting.policies import format_amount
from ops.metrics import ledger_integrity_errors_total
from projections.models import LedgerEntry


logger = logging.getLogger(__name__)


def _sums_by_account(qs) -> Dict[int, Dict[str, Decimal]]:
    totals = qs.values("account_id").annotate(debit=Sum("debit"), credit=Sum("credit"))
    return {
        row["account_id"]: {"debit": row["debit"] or ZERO, "credit": row["credit"] or ZERO}
        for row in totals
    }


def _account_row(account: Account, debit: Decimal, credit: Decimal) -> dict:
    return {
        "account_id": account.pk,
        "account_public_id": str(account.public_id),
        "code": account.code,
        "name": account.name,
        "account_type": account.account_type,
        "balance": account.signed_amount(debit, credit),
    }


def get_trial_balance(company: Company, as_of=None) -> dict:
    """
    Trial balance as of a date (inclusive). No date means everything.

    Each account with a non-zero net appears once, in the debit or the
    credit column. Raises LedgerIntegrityError when the ledger's debits and
    credits do not net to zero.
    """
    qs = LedgerEntry.objects.filter(company=company)
    if as_of:
        qs = qs.filter(date__lte=as_of)

    sums = _sums_by_account(qs)
    accounts = Account.objects.filter(company=company, pk__in=sums.keys()).order_by("code")

    raw_debits = sum((s["debit"] for s in sums.values()), ZERO)
    raw_credits = sum((s["credit"] for s in sums.values()), ZERO)
    if raw_debits != raw_credits:
        ledger_integrity_errors_total.inc()
        logger.error(
            "Trial balance does not net to zero",
            extra={
                "company_id": company.id,
                "as_of": str(as_of) if as_of else None,
                "debits": str(raw_debits),
                "credits": str(raw_credits),
            },
        )
        raise LedgerIntegrityError(
            f"trial balance does not balance: debits {format_amount(raw_debits)} "
            f"≠ credits {format_amount(raw_credits)}",
            details={
                "total_debits": str(raw_debits),
                "total_credits": str(raw_credits),
                "difference": str(raw_debits - raw_credits),
            },
        )

    rows = []
    total_debits = ZERO
    total_credits = ZERO
    for account in accounts:
        s = sums[account.pk]
        net = s["debit"] - s["credit"]
        if net == ZERO:
            continue
        row = _account_row(account, s["debit"], s["credit"])
        row["debit"] = net if net > ZERO else ZERO
        row["credit"] = -net if net < ZERO else ZERO
        total_debits += row["debit"]
        total_credits += row["credit"]
        rows.append(row)

    return {
        "as_of": as_of,
        "accounts": rows,
        "total_debits": total_debits,
        "total_credits": total_credits,
        "difference": total_debits - total_credits,
        "is_balanced": total_debits == total_credits,
    }


def _closing_activity() -> Q:
    """Closing entries and the reversals that undo them on reopen."""
    return (
        Q(journal_entry__entry_type=JournalEntry.EntryType.CLOSING)
        | Q(journal_entry__reverses_entry__entry_type=JournalEntry.EntryType.CLOSING)
    )


def get_income_statement(company: Company, start_date, end_date) -> dict:
    """
    Revenue and expense activity for [start_date, end_date].

    Period closing entries are excluded so a closed period still reports
    its income.
    """
    qs = (
        LedgerEntry.objects
        .filter(
            company=company,
            date__gte=start_date,
            date__lte=end_date,
            account__account_type__in=[Account.AccountType.REVENUE, Account.AccountType.EXPENSE],
        )
        .exclude(_closing_activity())
    )
    sums = _sums_by_account(qs)

    revenue: List[dict] = []
    expenses: List[dict] = []
    for account in Account.objects.filter(company=company, pk__in=sums.keys()).order_by("code"):
        s = sums[account.pk]
        row = _account_row(account, s["debit"], s["credit"])
        if row["balance"] == ZERO:
            continue
        if account.account_type == Account.AccountType.REVENUE:
            revenue.append(row)
        else:
            expenses.append(row)

    total_revenue = sum((r["balance"] for r in revenue), ZERO)
    total_expenses = sum((r["balance"] for r in expenses), ZERO)
    return {
        "start_date": start_date,
        "end_date": end_date,
        "revenue": revenue,
        "expenses": expenses,
        "total_revenue": total_revenue,
        "total_expenses": total_expenses,
        "net_income": total_revenue - total_expenses,
    }


def get_balance_sheet(company: Company, as_of=None) -> dict:
    """
    Assets, liabilities and equity as of a date.

    Revenue and expense balances not yet closed into retained earnings are
    reported as current earnings inside equity.
    """
    qs = LedgerEntry.objects.filter(company=company)
    if as_of:
        qs = qs.filter(date__lte=as_of)
    sums = _sums_by_account(qs)

    sections = {
        Account.AccountType.ASSET: [],
        Account.AccountType.LIABILITY: [],
        Account.AccountType.EQUITY: [],
    }
    current_earnings = ZERO
    for account in Account.objects.filter(company=company, pk__in=sums.keys()).order_by("code"):
        s = sums[account.pk]
        row = _account_row(account, s["debit"], s["credit"])
        if account.account_type == Account.AccountType.REVENUE:
            current_earnings += row["balance"]
        elif account.account_type == Account.AccountType.EXPENSE:
            current_earnings -= row["balance"]
        elif row["balance"] != ZERO:
            sections[account.account_type].append(row)

    total_assets = sum((r["balance"] for r in sections[Account.AccountType.ASSET]), ZERO)
    total_liabilities = sum((r["balance"] for r in sections[Account.AccountType.LIABILITY]), ZERO)
    total_equity = sum((r["balance"] for r in sections[Account.AccountType.EQUITY]), ZERO) + current_earnings

    return {
        "as_of": as_of,
        "assets": sections[Account.AccountType.ASSET],
        "liabilities": sections[Account.AccountType.LIABILITY],
        "equity": sections[Account.AccountType.EQUITY],
        "current_earnings": current_earnings,
        "total_assets": total_assets,
        "total_liabilities": total_liabilities,
        "total_equity": total_equity,
        "is_balanced": total_assets == total_liabilities + total_equity,
    }
