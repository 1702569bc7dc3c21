# tests/test_ledger.py
"""
Tests for the ledger projection.

Tests cover:
- Running balances in (date, sequence) order
- Back-dated postings refolding later rows
- Repair fold and its tolerance
- Rebuild and backfill
- Ledger queries and the general ledger
"""

from datetime import date
from decimal import Decimal

import pytest
from django.core.management import call_command

from accounting.commands import create_draft
from accounting.models import Account, JournalEntry
from projections.base import projection_registry
from projections.ledger import (
    get_account_balance,
    get_general_ledger,
    get_ledger_by_date_range,
    get_ledger_for_account,
    get_ledger_for_entry,
    get_ledger_page,
    ledger_projection,
    ledger_queryset,
)
from projections.models import LedgerEntry
from projections.tasks import repair_company_ledger, verify_all_ledgers


def _running(company, account):
    return [row.running_balance for row in get_ledger_for_account(company, account)]


@pytest.mark.django_db
class TestRunningBalance:

    def test_same_day_entries_chain(self, company, cash, revenue, capital, post_entry):
        """Two entries on the same day: Cash reads 1000 then 1500."""
        e1 = post_entry(date(2026, 1, 10), cash, capital, "1000")
        e2 = post_entry(date(2026, 1, 10), cash, revenue, "500")

        rows = list(get_ledger_for_account(company, cash))

        assert [r.journal_entry_id for r in rows] == [e1.id, e2.id]
        assert [r.running_balance for r in rows] == [Decimal("1000.00"), Decimal("1500.00")]
        assert rows[0].sequence < rows[1].sequence

    def test_credit_normal_account_grows_with_credits(self, company, cash, revenue, post_entry):
        post_entry(date(2026, 1, 10), cash, revenue, "200")
        post_entry(date(2026, 1, 11), revenue, cash, "50")

        assert _running(company, revenue) == [Decimal("200.00"), Decimal("150.00")]

    def test_back_dated_posting_refolds_later_rows(self, company, cash, revenue, post_entry):
        post_entry(date(2026, 1, 10), cash, revenue, "100")
        post_entry(date(2026, 1, 20), cash, revenue, "100")

        back_dated = post_entry(date(2026, 1, 5), cash, revenue, "25")

        rows = list(get_ledger_for_account(company, cash))
        assert rows[0].journal_entry_id == back_dated.id
        assert [r.running_balance for r in rows] == [
            Decimal("25.00"),
            Decimal("125.00"),
            Decimal("225.00"),
        ]
        assert ledger_projection.verify(company) == []

    def test_sequences_unique_per_company(self, company, cash, revenue, post_entry):
        post_entry(date(2026, 1, 10), cash, revenue, "1")
        post_entry(date(2026, 1, 10), cash, revenue, "2")

        sequences = list(LedgerEntry.objects.filter(company=company).values_list("sequence", flat=True))
        assert len(sequences) == len(set(sequences)) == 4

    def test_cached_balance_refreshed(self, cash, revenue, post_entry):
        post_entry(date(2026, 1, 10), cash, revenue, "75.25")

        cash.refresh_from_db()
        assert cash.balance == Decimal("75.25")
        assert cash.balance_refreshed_at is not None

    def test_balance_as_of(self, company, cash, revenue, post_entry):
        post_entry(date(2026, 1, 10), cash, revenue, "100")
        post_entry(date(2026, 1, 20), cash, revenue, "50")

        assert get_account_balance(company, cash, as_of=date(2026, 1, 9)) == Decimal("0.00")
        assert get_account_balance(company, cash, as_of=date(2026, 1, 10)) == Decimal("100.00")
        assert get_account_balance(company, cash) == Decimal("150.00")

    def test_drafts_are_not_projected(self, actor, company, cash, revenue):
        create_draft(
            actor,
            date=date(2026, 1, 10),
            lines=[
                {"account_id": cash.id, "debit": "5", "credit": "0"},
                {"account_id": revenue.id, "debit": "0", "credit": "5"},
            ],
        ).unwrap()

        assert not LedgerEntry.objects.filter(company=company).exists()


@pytest.mark.django_db
class TestRepair:

    def _corrupt(self, row, delta):
        LedgerEntry.objects.filter(pk=row.pk).update(running_balance=row.running_balance + Decimal(delta))

    def test_drift_within_tolerance_is_left(self, company, cash, revenue, post_entry):
        post_entry(date(2026, 1, 10), cash, revenue, "100")
        row = LedgerEntry.objects.get(account=cash)
        self._corrupt(row, "0.01")

        assert ledger_projection.verify(company) == []
        assert ledger_projection.repair(company) == []

    def test_drift_is_corrected(self, company, cash, revenue, post_entry):
        post_entry(date(2026, 1, 10), cash, revenue, "100")
        post_entry(date(2026, 1, 11), cash, revenue, "100")
        first = get_ledger_for_account(company, cash).first()
        self._corrupt(first, "5.00")

        mismatches = ledger_projection.verify(company)
        assert len(mismatches) == 1
        assert mismatches[0]["stored"] == Decimal("105.00")
        assert mismatches[0]["expected"] == Decimal("100.00")

        corrections = ledger_projection.repair(company)

        assert [c["ledger_entry_id"] for c in corrections] == [first.pk]
        assert _running(company, cash) == [Decimal("100.00"), Decimal("200.00")]
        assert ledger_projection.repair(company) == []

    def test_repair_limited_to_accounts(self, company, cash, revenue, post_entry):
        post_entry(date(2026, 1, 10), cash, revenue, "100")
        for row in LedgerEntry.objects.filter(company=company):
            self._corrupt(row, "1.00")

        corrections = ledger_projection.repair(company, account_ids=[cash.id])

        assert {c["account_code"] for c in corrections} == {"1000"}
        assert len(ledger_projection.verify(company)) == 1

    def test_custom_tolerance(self, company, cash, revenue, post_entry):
        post_entry(date(2026, 1, 10), cash, revenue, "100")
        self._corrupt(LedgerEntry.objects.get(account=cash), "0.50")

        assert ledger_projection.repair(company, tolerance=Decimal("1.00")) == []
        assert len(ledger_projection.repair(company, tolerance=Decimal("0.10"))) == 1

    def test_repair_task(self, company, cash, revenue, post_entry):
        post_entry(date(2026, 1, 10), cash, revenue, "100")
        self._corrupt(LedgerEntry.objects.get(account=cash), "3.00")

        outcome = repair_company_ledger.apply(args=[company.id]).get()

        assert outcome == {"company_id": company.id, "backfilled_entries": 0, "corrections": 1}
        assert ledger_projection.verify(company) == []

    def test_verify_all_ledgers_task(self, company, cash, revenue, post_entry):
        post_entry(date(2026, 1, 10), cash, revenue, "100")

        outcome = verify_all_ledgers.apply().get()

        assert outcome["drifted"] == 0
        assert outcome["mismatches"] == {company.slug: 0}


@pytest.mark.django_db
class TestRebuildAndBackfill:

    def test_rebuild_reproduces_rows(self, actor, company, cash, revenue, post_entry):
        from accounting.commands import void_journal_entry

        post_entry(date(2026, 1, 10), cash, revenue, "100")
        voided = post_entry(date(2026, 1, 11), cash, revenue, "40")
        void_journal_entry(actor, voided.id).unwrap()
        expected = [(r.journal_line_id, r.running_balance) for r in ledger_queryset(company)]

        replayed = ledger_projection.rebuild(company)

        assert replayed == 3
        rebuilt = [(r.journal_line_id, r.running_balance) for r in ledger_queryset(company)]
        assert sorted(rebuilt) == sorted(expected)
        assert ledger_projection.verify(company) == []

    def test_backfill_missing_rows(self, company, cash, revenue, post_entry):
        entry = post_entry(date(2026, 1, 10), cash, revenue, "100")
        LedgerEntry.objects.filter(journal_entry=entry).delete()

        assert ledger_projection.backfill_missing(company) == 1
        assert get_ledger_for_entry(company, entry).count() == 2
        assert ledger_projection.backfill_missing(company) == 0

    def test_registered(self):
        assert projection_registry.get("ledger") is ledger_projection

    def test_rebuild_command(self, company, cash, revenue, post_entry):
        post_entry(date(2026, 1, 10), cash, revenue, "100")
        LedgerEntry.objects.filter(company=company).delete()

        call_command("rebuild_projection", projection="ledger", tenant=company.slug)

        assert get_account_balance(company, cash) == Decimal("100.00")

    def test_repair_command_dry_run_changes_nothing(self, company, cash, revenue, post_entry):
        post_entry(date(2026, 1, 10), cash, revenue, "100")
        row = LedgerEntry.objects.get(account=cash)
        LedgerEntry.objects.filter(pk=row.pk).update(running_balance=Decimal("7.00"))

        call_command("repair_ledger", tenant=company.slug, dry_run=True)
        row.refresh_from_db()
        assert row.running_balance == Decimal("7.00")

        call_command("repair_ledger", tenant=company.slug)
        row.refresh_from_db()
        assert row.running_balance == Decimal("100.00")


@pytest.mark.django_db
class TestLedgerQueries:

    def test_date_range(self, company, cash, revenue, post_entry):
        post_entry(date(2026, 1, 5), cash, revenue, "1")
        post_entry(date(2026, 1, 15), cash, revenue, "2")
        post_entry(date(2026, 1, 25), cash, revenue, "3")

        rows = get_ledger_by_date_range(company, date(2026, 1, 10), date(2026, 1, 20))

        assert {r.date for r in rows} == {date(2026, 1, 15)}
        assert rows.count() == 2

    def test_account_range(self, company, cash, revenue, post_entry):
        post_entry(date(2026, 1, 5), cash, revenue, "1")
        post_entry(date(2026, 1, 15), cash, revenue, "2")

        rows = list(get_ledger_for_account(company, cash, start_date=date(2026, 1, 10)))

        assert [r.running_balance for r in rows] == [Decimal("3.00")]

    def test_tenant_isolation(self, company, second_company, cash, revenue, post_entry):
        post_entry(date(2026, 1, 5), cash, revenue, "1")

        assert not ledger_queryset(second_company).exists()

    def test_page(self, company, cash, revenue, post_entry):
        for day in range(1, 4):
            post_entry(date(2026, 1, day), cash, revenue, "1")

        page = get_ledger_page(ledger_queryset(company), page=2, page_size=4)

        assert page["total"] == 6
        assert page["page"] == 2
        assert len(page["entries"]) == 2

    def test_general_ledger(self, company, cash, revenue, capital, expense, post_entry):
        post_entry(date(2026, 1, 2), cash, capital, "1000")
        post_entry(date(2026, 1, 10), cash, revenue, "300")
        post_entry(date(2026, 1, 12), expense, cash, "120")

        sections = get_general_ledger(company, start_date=date(2026, 1, 5), end_date=date(2026, 1, 31))
        by_code = {s["account"].code: s for s in sections}

        assert set(by_code) == {"1000", "3000", "4000", "5000"}
        cash_section = by_code["1000"]
        assert cash_section["opening_balance"] == Decimal("1000.00")
        assert cash_section["total_debit"] == Decimal("300.00")
        assert cash_section["total_credit"] == Decimal("120.00")
        assert cash_section["closing_balance"] == Decimal("1180.00")
        assert cash_section["entry_count"] == 2

        capital_section = by_code["3000"]
        assert capital_section["entries"] == []
        assert capital_section["closing_balance"] == Decimal("1000.00")

    def test_general_ledger_filtered_accounts(self, company, cash, revenue, post_entry):
        post_entry(date(2026, 1, 2), cash, revenue, "10")

        sections = get_general_ledger(company, account_ids=[revenue.id])

        assert [s["account"].code for s in sections] == ["4000"]

    def test_account_without_rows_has_zero_balance(self, company):
        account = Account.objects.create(
            company=company,
            code="1999",
            name="Unused",
            account_type=Account.AccountType.ASSET,
        )

        assert get_account_balance(company, account) == Decimal("0.00")
        assert not JournalEntry.objects.exists()
