# tests/test_periods.py
"""
Tests for the accounting period manager.

Tests cover:
- Creating periods and rejecting overlaps
- Finding the period for a date
- Close / reopen / lock transitions
- Closing entries into retained earnings
- Delete only for empty OPEN periods
"""

from datetime import date
from decimal import Decimal

import pytest
from django.conf import settings

from accounting.commands import create_and_post
from accounting.locking import find_period_for_date
from accounting.models import Account, AccountingPeriod, JournalEntry
from accounting.periods import (
    close_period,
    create_period,
    delete_period,
    get_open_periods,
    list_periods,
    lock_period,
    reopen_period,
    update_period,
)
from projections.ledger import get_account_balance


def _balances(company):
    return {
        account.code: get_account_balance(company, account)
        for account in Account.objects.filter(company=company)
    }


# =============================================================================
# Create / overlap
# =============================================================================

@pytest.mark.django_db
class TestCreatePeriod:

    def test_create_open_period(self, actor):
        result = create_period(actor, "Q1 2026", date(2026, 1, 1), date(2026, 3, 31), period_type="QUARTERLY")

        assert result.success, result.error
        period = result.data
        assert period.status == AccountingPeriod.Status.OPEN
        assert period.fiscal_year == 2026
        assert period.period_type == AccountingPeriod.PeriodType.QUARTERLY

    def test_overlap_rejected(self, actor, jan_2026):
        result = create_period(actor, "Mid Jan", date(2026, 1, 15), date(2026, 2, 15))

        assert not result.success
        assert result.error_code == "period_overlap"
        assert "January 2026" in result.error
        assert AccountingPeriod.objects.count() == 1

    def test_shared_boundary_day_overlaps(self, actor, jan_2026):
        result = create_period(actor, "Late", date(2026, 1, 31), date(2026, 2, 27))

        assert result.error_code == "period_overlap"

    def test_adjacent_period_allowed(self, actor, jan_2026):
        result = create_period(actor, "February 2026", date(2026, 2, 1), date(2026, 2, 28))

        assert result.success, result.error

    def test_overlap_is_per_company(self, second_actor, jan_2026):
        result = create_period(second_actor, "January 2026", date(2026, 1, 1), date(2026, 1, 31))

        assert result.success, result.error

    def test_end_before_start_rejected(self, actor):
        result = create_period(actor, "Backwards", date(2026, 2, 1), date(2026, 1, 1))

        assert result.error_code == "validation_error"
        assert result.error == "End date must be after start date."

    def test_requires_permission(self, viewer_actor):
        result = create_period(viewer_actor, "Q1", date(2026, 1, 1), date(2026, 3, 31))

        assert result.error_code == "forbidden"


@pytest.mark.django_db
class TestFindPeriodForDate:

    def test_inclusive_bounds(self, company, jan_2026, feb_2026):
        assert find_period_for_date(company, date(2026, 1, 1)) == jan_2026
        assert find_period_for_date(company, date(2026, 1, 31)) == jan_2026
        assert find_period_for_date(company, date(2026, 2, 1)) == feb_2026

    def test_no_period(self, company, jan_2026):
        assert find_period_for_date(company, date(2025, 12, 31)) is None

    def test_other_company_not_visible(self, second_company, jan_2026):
        assert find_period_for_date(second_company, date(2026, 1, 15)) is None

    def test_list_and_open_periods(self, company, jan_2026, feb_2026):
        AccountingPeriod.objects.filter(pk=jan_2026.pk).update(status=AccountingPeriod.Status.CLOSED)

        assert list(list_periods(company, fiscal_year=2026)) == [jan_2026, feb_2026]
        assert list(get_open_periods(company)) == [feb_2026]


# =============================================================================
# Close / reopen / lock
# =============================================================================

@pytest.mark.django_db
class TestClosePeriod:

    def test_close_moves_net_income_to_retained_earnings(self, actor, company, chart, jan_2026, post_entry):
        post_entry(date(2026, 1, 5), chart["1000"], chart["4000"], "1000")
        post_entry(date(2026, 1, 20), chart["5000"], chart["1000"], "300")

        result = close_period(actor, jan_2026.id)

        assert result.success, result.error
        summary = result.data
        assert summary["total_revenue"] == Decimal("1000.00")
        assert summary["total_expenses"] == Decimal("300.00")
        assert summary["net_income"] == Decimal("700.00")
        assert (summary["revenue_accounts"], summary["expense_accounts"]) == (1, 1)

        period = summary["period"]
        closing = summary["closing_entry"]
        assert period.status == AccountingPeriod.Status.CLOSED
        assert period.closed_by_id == actor.user.id
        assert period.closing_entry_id == closing.id
        assert closing.entry_type == JournalEntry.EntryType.CLOSING
        assert closing.status == JournalEntry.Status.POSTED
        assert closing.date == date(2026, 1, 31)
        assert closing.closes_period_id == jan_2026.id

        retained = Account.objects.get(company=company, code=settings.RETAINED_EARNINGS_CODE)
        assert retained.account_type == Account.AccountType.EQUITY
        assert get_account_balance(company, retained) == Decimal("700.00")
        assert get_account_balance(company, chart["4000"]) == Decimal("0.00")
        assert get_account_balance(company, chart["5000"]) == Decimal("0.00")
        assert get_account_balance(company, chart["1000"]) == Decimal("700.00")

    def test_close_net_loss(self, actor, company, chart, jan_2026, post_entry):
        post_entry(date(2026, 1, 5), chart["1000"], chart["4000"], "100")
        post_entry(date(2026, 1, 6), chart["5000"], chart["2000"], "250")

        summary = close_period(actor, jan_2026.id).unwrap()

        assert summary["net_income"] == Decimal("-150.00")
        retained = Account.objects.get(company=company, code=settings.RETAINED_EARNINGS_CODE)
        # Credit-normal equity goes negative on a loss
        assert get_account_balance(company, retained) == Decimal("-150.00")

    def test_close_without_income_activity_posts_nothing(self, actor, chart, jan_2026, post_entry):
        post_entry(date(2026, 1, 5), chart["1000"], chart["3000"], "500")

        summary = close_period(actor, jan_2026.id).unwrap()

        assert summary["closing_entry"] is None
        assert summary["net_income"] == Decimal("0.00")
        assert not JournalEntry.objects.filter(entry_type=JournalEntry.EntryType.CLOSING).exists()

    def test_close_ignores_activity_outside_period(self, actor, chart, jan_2026, post_entry):
        post_entry(date(2026, 1, 5), chart["1000"], chart["4000"], "100")
        post_entry(date(2026, 2, 5), chart["1000"], chart["4000"], "900")

        summary = close_period(actor, jan_2026.id).unwrap()

        assert summary["net_income"] == Decimal("100.00")

    def test_closed_period_cannot_be_closed_again(self, actor, jan_2026):
        close_period(actor, jan_2026.id).unwrap()

        result = close_period(actor, jan_2026.id)

        assert result.error_code == "period_closed"

    def test_posting_into_closed_period_rejected(self, actor, chart, jan_2026):
        close_period(actor, jan_2026.id).unwrap()

        result = create_and_post(
            actor,
            date=date(2026, 1, 10),
            lines=[
                {"account_id": chart["1000"].id, "debit": "5", "credit": "0"},
                {"account_id": chart["4000"].id, "debit": "0", "credit": "5"},
            ],
        )

        assert result.error_code == "period_closed"

    def test_closing_entry_cannot_be_voided_directly(self, actor, chart, jan_2026, post_entry):
        from accounting.commands import void_journal_entry

        post_entry(date(2026, 1, 5), chart["1000"], chart["4000"], "100")
        closing = close_period(actor, jan_2026.id).unwrap()["closing_entry"]
        AccountingPeriod.objects.filter(pk=jan_2026.pk).update(status=AccountingPeriod.Status.OPEN)

        result = void_journal_entry(actor, closing.id)

        assert result.error == "Closing entries are reversed by reopening their period."

    def test_retained_earnings_code_taken_by_non_equity(self, actor, company, chart, jan_2026, post_entry):
        Account.objects.create(
            company=company,
            code=settings.RETAINED_EARNINGS_CODE,
            name="Misc Asset",
            account_type=Account.AccountType.ASSET,
        )
        post_entry(date(2026, 1, 5), chart["1000"], chart["4000"], "100")

        result = close_period(actor, jan_2026.id)

        assert result.error_code == "validation_error"
        jan_2026.refresh_from_db()
        assert jan_2026.status == AccountingPeriod.Status.OPEN


@pytest.mark.django_db
class TestReopenPeriod:

    def test_reopen_exactly_undoes_close(self, actor, company, chart, jan_2026, post_entry):
        post_entry(date(2026, 1, 5), chart["1000"], chart["4000"], "1000")
        post_entry(date(2026, 1, 20), chart["5000"], chart["1000"], "300")
        before = _balances(company)

        closing = close_period(actor, jan_2026.id).unwrap()["closing_entry"]
        result = reopen_period(actor, jan_2026.id)

        assert result.success, result.error
        period = result.data
        assert period.status == AccountingPeriod.Status.OPEN
        assert period.closed_at is None
        assert period.closed_by_id is None
        assert period.closing_entry_id is None

        after = _balances(company)
        retained_code = settings.RETAINED_EARNINGS_CODE
        assert after.pop(retained_code) == Decimal("0.00")
        assert after == before

        closing.refresh_from_db()
        assert closing.status == JournalEntry.Status.VOIDED
        reversal = closing.reversal_entry
        assert reversal.date == closing.date

    def test_close_again_after_reopen(self, actor, company, chart, jan_2026, post_entry):
        post_entry(date(2026, 1, 5), chart["1000"], chart["4000"], "1000")
        close_period(actor, jan_2026.id).unwrap()
        reopen_period(actor, jan_2026.id).unwrap()
        post_entry(date(2026, 1, 25), chart["1000"], chart["4000"], "50")

        summary = close_period(actor, jan_2026.id).unwrap()

        assert summary["net_income"] == Decimal("1050.00")
        retained = Account.objects.get(company=company, code=settings.RETAINED_EARNINGS_CODE)
        assert get_account_balance(company, retained) == Decimal("1050.00")
        assert get_account_balance(company, chart["4000"]) == Decimal("0.00")

    def test_open_period_cannot_be_reopened(self, actor, jan_2026):
        result = reopen_period(actor, jan_2026.id)

        assert result.error_code == "validation_error"

    def test_locked_period_cannot_be_reopened(self, actor, jan_2026):
        close_period(actor, jan_2026.id).unwrap()
        lock_period(actor, jan_2026.id).unwrap()

        result = reopen_period(actor, jan_2026.id)

        assert result.error_code == "period_locked"
        jan_2026.refresh_from_db()
        assert jan_2026.status == AccountingPeriod.Status.LOCKED


@pytest.mark.django_db
class TestDeactivatedAccounts:
    """Accounts deactivated after use still close and reopen with their period."""

    def _deactivate(self, account):
        Account.objects.filter(pk=account.pk).update(status=Account.Status.INACTIVE)

    def test_close_zeroes_inactive_revenue(self, actor, company, chart, jan_2026, post_entry):
        post_entry(date(2026, 1, 5), chart["1000"], chart["4000"], "1000")
        self._deactivate(chart["4000"])

        result = close_period(actor, jan_2026.id)

        assert result.success, result.error
        assert result.data["net_income"] == Decimal("1000.00")
        assert get_account_balance(company, chart["4000"]) == Decimal("0.00")

    def test_reopen_with_inactive_expense(self, actor, company, chart, jan_2026, post_entry):
        post_entry(date(2026, 1, 5), chart["1000"], chart["4000"], "1000")
        post_entry(date(2026, 1, 8), chart["5000"], chart["1000"], "200")
        close_period(actor, jan_2026.id).unwrap()
        self._deactivate(chart["5000"])

        result = reopen_period(actor, jan_2026.id)

        assert result.success, result.error
        assert result.data.status == AccountingPeriod.Status.OPEN
        assert get_account_balance(company, chart["5000"]) == Decimal("200.00")
        assert get_account_balance(company, chart["4000"]) == Decimal("1000.00")


@pytest.mark.django_db
class TestLockPeriod:

    def test_only_closed_periods_lock(self, actor, jan_2026):
        result = lock_period(actor, jan_2026.id)

        assert result.error_code == "validation_error"
        assert "Only closed periods can be locked" in result.error

    def test_lock_is_final(self, actor, chart, jan_2026):
        close_period(actor, jan_2026.id).unwrap()
        period = lock_period(actor, jan_2026.id).unwrap()

        assert period.status == AccountingPeriod.Status.LOCKED
        assert lock_period(actor, jan_2026.id).error_code == "period_locked"
        assert update_period(actor, jan_2026.id, name="Renamed").error_code == "period_locked"

        result = create_and_post(
            actor,
            date=date(2026, 1, 10),
            lines=[
                {"account_id": chart["1000"].id, "debit": "5", "credit": "0"},
                {"account_id": chart["4000"].id, "debit": "0", "credit": "5"},
            ],
        )
        assert result.error_code == "period_locked"


# =============================================================================
# Update / delete
# =============================================================================

@pytest.mark.django_db
class TestUpdateAndDeletePeriod:

    def test_rename(self, actor, jan_2026):
        period = update_period(actor, jan_2026.id, name="Jan", notes="First month").unwrap()

        assert (period.name, period.notes) == ("Jan", "First month")

    def test_move_dates_of_empty_period(self, actor, jan_2026):
        period = update_period(actor, jan_2026.id, end_date=date(2026, 1, 30)).unwrap()

        assert period.end_date == date(2026, 1, 30)

    def test_move_dates_into_overlap_rejected(self, actor, jan_2026, feb_2026):
        result = update_period(actor, jan_2026.id, end_date=date(2026, 2, 10))

        assert result.error_code == "period_overlap"

    def test_move_dates_with_activity_rejected(self, actor, chart, jan_2026, post_entry):
        post_entry(date(2026, 1, 5), chart["1000"], chart["4000"], "10")

        result = update_period(actor, jan_2026.id, start_date=date(2026, 1, 2))

        assert result.error_code == "period_not_empty"

    def test_delete_empty_open_period(self, actor, jan_2026):
        result = delete_period(actor, jan_2026.id)

        assert result.success, result.error
        assert not AccountingPeriod.objects.filter(pk=jan_2026.pk).exists()

    def test_delete_with_activity_rejected(self, actor, chart, jan_2026, post_entry):
        post_entry(date(2026, 1, 5), chart["1000"], chart["4000"], "10")

        result = delete_period(actor, jan_2026.id)

        assert result.error_code == "period_not_empty"
        assert AccountingPeriod.objects.filter(pk=jan_2026.pk).exists()

    def test_delete_closed_period_rejected(self, actor, jan_2026):
        close_period(actor, jan_2026.id).unwrap()

        result = delete_period(actor, jan_2026.id)

        assert result.error_code == "period_not_empty"

    def test_drafts_do_not_count_as_activity(self, actor, chart, jan_2026):
        from accounting.commands import create_draft

        create_draft(
            actor,
            date=date(2026, 1, 5),
            lines=[
                {"account_id": chart["1000"].id, "debit": "5", "credit": "0"},
                {"account_id": chart["4000"].id, "debit": "0", "credit": "5"},
            ],
        ).unwrap()

        assert delete_period(actor, jan_2026.id).success

    def test_unknown_period(self, actor):
        assert delete_period(actor, 987654).error_code == "not_found"
