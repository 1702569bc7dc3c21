# tests/test_write_barrier.py
"""
Tests for write barrier enforcement.
"""

from decimal import Decimal

import pytest

from accounting.models import Account, CompanySequence
from projections.models import LedgerEntry
from projections.write_barrier import (
    admin_emergency_writes_allowed,
    bootstrap_writes_allowed,
    command_writes_allowed,
    current_write_context,
    projection_writes_allowed,
)


@pytest.mark.django_db
def test_direct_account_save_raises(settings, company):
    settings.TESTING = False

    with pytest.raises(RuntimeError, match="Direct saves are only allowed"):
        Account.objects.create(
            company=company,
            code="1000",
            name="Cash",
            account_type=Account.AccountType.ASSET,
        )


@pytest.mark.django_db
def test_command_context_allows_writes(settings, company):
    settings.TESTING = False

    with pytest.raises(RuntimeError, match="command"):
        CompanySequence.objects.create(company=company, name="journal_entry")

    with command_writes_allowed():
        seq = CompanySequence.objects.create(company=company, name="journal_entry")

    assert seq.company_id == company.id


@pytest.mark.django_db
def test_bootstrap_context_allows_command_models(settings, company):
    settings.TESTING = False

    with bootstrap_writes_allowed():
        account = Account.objects.create(
            company=company,
            code="1000",
            name="Cash",
            account_type=Account.AccountType.ASSET,
        )

    assert account.normal_balance == Account.NormalBalance.DEBIT


@pytest.mark.django_db
def test_command_context_cannot_write_ledger_rows(settings, actor, cash, revenue, post_entry):
    from datetime import date

    entry = post_entry(date(2026, 1, 5), cash, revenue, "100.00")
    row = LedgerEntry.objects.get(journal_entry=entry, account=cash)

    settings.TESTING = False
    row.running_balance = Decimal("1.00")
    with command_writes_allowed():
        with pytest.raises(RuntimeError, match="projection-owned"):
            row.save()

    with projection_writes_allowed():
        row.save()

    row.refresh_from_db()
    assert row.running_balance == Decimal("1.00")


def test_contexts_nest_and_unwind():
    assert current_write_context() is None
    with command_writes_allowed():
        assert current_write_context() == "command"
        with projection_writes_allowed():
            assert current_write_context() == "projection"
        assert current_write_context() == "command"
    assert current_write_context() is None


def test_admin_emergency_disabled_by_default(settings):
    settings.ALLOW_ADMIN_EMERGENCY_WRITES = False
    with pytest.raises(RuntimeError, match="disabled"):
        with admin_emergency_writes_allowed():
            pass
