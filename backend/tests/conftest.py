# tests/conftest.py
"""
Pytest fixtures for ledger core tests.

- ActorContext is built the way resolve_actor builds it: user, company,
  membership and the granted permission codes
- Accounts and periods are created directly; settings.TESTING relaxes the
  write-barrier guards for fixtures
- post_entry() goes through the command layer so the ledger is projected
"""

from datetime import date
from decimal import Decimal

import pytest
from django.conf import settings
from django.contrib.auth import get_user_model

from accounts.authz import ActorContext
from accounts.models import Company, CompanyMembership
from accounts.permissions import grant_role_defaults
from accounting.commands import create_and_post
from accounting.models import Account, AccountingPeriod


User = get_user_model()


@pytest.fixture(autouse=True, scope="session")
def _testing_settings():
    """Ensure test-only settings are enabled for write-barrier guards."""
    settings.TESTING = True


def _actor_for(membership) -> ActorContext:
    return ActorContext(
        user=membership.user,
        company=membership.company,
        membership=membership,
        perms=frozenset(membership.permissions.values_list("code", flat=True)),
    )


# =============================================================================
# Company & User Fixtures
# =============================================================================

@pytest.fixture
def company(db):
    """Create a test company."""
    return Company.objects.create(
        name="Test Company",
        slug="test-company",
        default_currency="USD",
        is_active=True,
    )


@pytest.fixture
def second_company(db):
    """Create a second test company for multi-tenant tests."""
    return Company.objects.create(
        name="Second Company",
        slug="second-company",
        default_currency="EUR",
        is_active=True,
    )


@pytest.fixture
def user(db, company):
    """Create a test user whose active company is ``company``."""
    user = User.objects.create_user(
        email="owner@test.com",
        password="testpass123",
        name="Test Owner",
    )
    user.active_company = company
    user.save()
    return user


@pytest.fixture
def viewer_user(db, company):
    user = User.objects.create_user(
        email="viewer@test.com",
        password="testpass123",
        name="Test Viewer",
    )
    user.active_company = company
    user.save()
    return user


@pytest.fixture
def owner_membership(db, company, user):
    membership = CompanyMembership.objects.create(
        company=company,
        user=user,
        role=CompanyMembership.Role.OWNER,
        is_active=True,
    )
    grant_role_defaults(membership, granted_by=user)
    return membership


@pytest.fixture
def viewer_membership(db, company, viewer_user):
    membership = CompanyMembership.objects.create(
        company=company,
        user=viewer_user,
        role=CompanyMembership.Role.VIEWER,
        is_active=True,
    )
    grant_role_defaults(membership)
    return membership


@pytest.fixture
def second_owner_membership(db, second_company):
    user = User.objects.create_user(
        email="owner@second.com",
        password="testpass123",
        name="Second Owner",
    )
    user.active_company = second_company
    user.save()
    membership = CompanyMembership.objects.create(
        company=second_company,
        user=user,
        role=CompanyMembership.Role.OWNER,
        is_active=True,
    )
    grant_role_defaults(membership, granted_by=user)
    return membership


# =============================================================================
# Actor Context Fixtures
# =============================================================================

@pytest.fixture
def actor(owner_membership):
    """ActorContext for the owner user."""
    return _actor_for(owner_membership)


@pytest.fixture
def viewer_actor(viewer_membership):
    """ActorContext for a read-only member."""
    return _actor_for(viewer_membership)


@pytest.fixture
def second_actor(second_owner_membership):
    return _actor_for(second_owner_membership)


# =============================================================================
# Chart of Accounts
# =============================================================================

def _account(company, code, name, account_type):
    return Account.objects.create(
        company=company,
        code=code,
        name=name,
        account_type=account_type,
    )


@pytest.fixture
def cash(db, company):
    return _account(company, "1000", "Cash", Account.AccountType.ASSET)


@pytest.fixture
def payable(db, company):
    return _account(company, "2000", "Accounts Payable", Account.AccountType.LIABILITY)


@pytest.fixture
def capital(db, company):
    return _account(company, "3000", "Owner Capital", Account.AccountType.EQUITY)


@pytest.fixture
def revenue(db, company):
    return _account(company, "4000", "Sales Revenue", Account.AccountType.REVENUE)


@pytest.fixture
def expense(db, company):
    return _account(company, "5000", "Operating Expenses", Account.AccountType.EXPENSE)


@pytest.fixture
def chart(cash, payable, capital, revenue, expense):
    """The standard five-account chart keyed by code."""
    return {a.code: a for a in (cash, payable, capital, revenue, expense)}


# =============================================================================
# Periods
# =============================================================================

@pytest.fixture
def jan_2026(db, company):
    return AccountingPeriod.objects.create(
        company=company,
        name="January 2026",
        period_type=AccountingPeriod.PeriodType.MONTHLY,
        fiscal_year=2026,
        start_date=date(2026, 1, 1),
        end_date=date(2026, 1, 31),
    )


@pytest.fixture
def feb_2026(db, company):
    return AccountingPeriod.objects.create(
        company=company,
        name="February 2026",
        period_type=AccountingPeriod.PeriodType.MONTHLY,
        fiscal_year=2026,
        start_date=date(2026, 2, 1),
        end_date=date(2026, 2, 28),
    )


# =============================================================================
# Posting helper
# =============================================================================

@pytest.fixture
def post_entry(actor):
    """
    Post a two-line entry through the command layer.

    Usage:
        entry = post_entry(date(2026, 1, 5), cash, revenue, "1000.00")
    """

    def _post(on, debit_account, credit_account, amount, memo=""):
        amount = Decimal(amount)
        result = create_and_post(
            actor,
            date=on,
            memo=memo,
            lines=[
                {"account_id": debit_account.id, "debit": amount, "credit": "0"},
                {"account_id": credit_account.id, "debit": "0", "credit": amount},
            ],
        )
        return result.unwrap()

    return _post


# =============================================================================
# API Client Fixtures
# =============================================================================

@pytest.fixture
def api_client():
    """Create a DRF API client."""
    from rest_framework.test import APIClient
    return APIClient()


@pytest.fixture
def authenticated_client(api_client, user, owner_membership):
    """API client logged in as the company owner."""
    api_client.force_authenticate(user=user)
    return api_client


@pytest.fixture
def viewer_client(viewer_user, viewer_membership):
    from rest_framework.test import APIClient
    client = APIClient()
    client.force_authenticate(user=viewer_user)
    return client
