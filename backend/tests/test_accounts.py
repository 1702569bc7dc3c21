# tests/test_accounts.py
"""
Tests for the account registry and the authorization layer.

Tests cover:
- Account create / update / delete commands
- Normal balance derived from the account type
- Parent links (same company, no cycles)
- Role defaults and permission checks
"""

from datetime import date

import pytest
from django.conf import settings

from accounts.authz import ActorContext, require
from accounts.models import CompanyMembership, LedgerPermission
from accounts.permission_defaults import ROLE_DEFAULTS, all_permission_codes
from accounts.permissions import grant_role_defaults
from accounting.commands import (
    create_account,
    delete_account,
    get_or_create_retained_earnings,
    update_account,
)
from accounting.errors import ForbiddenError
from accounting.models import Account


@pytest.mark.django_db
class TestCreateAccount:

    def test_create(self, actor):
        result = create_account(actor, code="1100", name="Bank", account_type="ASSET")

        assert result.success, result.error
        account = result.data
        assert account.company_id == actor.company.id
        assert account.normal_balance == Account.NormalBalance.DEBIT
        assert account.status == Account.Status.ACTIVE

    @pytest.mark.parametrize("account_type,normal", [
        ("ASSET", "DEBIT"),
        ("EXPENSE", "DEBIT"),
        ("LIABILITY", "CREDIT"),
        ("EQUITY", "CREDIT"),
        ("REVENUE", "CREDIT"),
    ])
    def test_normal_balance_follows_type(self, actor, account_type, normal):
        account = create_account(actor, code="9000", name="X", account_type=account_type).unwrap()

        assert account.normal_balance == normal

    def test_duplicate_code_rejected(self, actor, cash):
        result = create_account(actor, code="1000", name="Cash again", account_type="ASSET")

        assert result.error_code == "validation_error"
        assert "account code 1000 already exists" in result.details

    def test_same_code_in_other_company(self, second_actor, cash):
        result = create_account(second_actor, code="1000", name="Cash", account_type="ASSET")

        assert result.success, result.error

    def test_all_problems_reported(self, actor):
        result = create_account(actor, code="", name="", account_type="BOGUS")

        assert result.details == ["code is required", "name is required", "invalid account type 'BOGUS'"]

    def test_parent(self, actor, cash):
        child = create_account(actor, code="1010", name="Petty Cash", account_type="ASSET", parent_id=cash.id).unwrap()

        assert child.parent_id == cash.id
        assert child.get_ancestors() == [cash]

    def test_parent_from_other_company_not_found(self, second_actor, cash):
        result = create_account(second_actor, code="1010", name="Petty", account_type="ASSET", parent_id=cash.id)

        assert result.error_code == "not_found"

    def test_requires_permission(self, viewer_actor):
        result = create_account(viewer_actor, code="1100", name="Bank", account_type="ASSET")

        assert result.error_code == "forbidden"
        assert not Account.objects.filter(code="1100").exists()


@pytest.mark.django_db
class TestUpdateAccount:

    def test_rename_and_deactivate(self, actor, cash):
        account = update_account(actor, cash.id, name="Cash on hand", status="INACTIVE").unwrap()

        assert account.name == "Cash on hand"
        assert not account.is_postable

    def test_cycle_rejected(self, actor, cash):
        child = create_account(actor, code="1010", name="Petty", account_type="ASSET", parent_id=cash.id).unwrap()

        result = update_account(actor, cash.id, parent_id=child.id)

        assert not result.success
        assert "cycle" in result.error

    def test_own_parent_rejected(self, actor, cash):
        result = update_account(actor, cash.id, parent_id=cash.id)

        assert result.error == "An account cannot be its own parent."

    def test_type_change_blocked_with_activity(self, actor, cash, revenue, post_entry):
        post_entry(date(2026, 1, 5), cash, revenue, "10")

        result = update_account(actor, revenue.id, account_type="LIABILITY")

        assert result.error == "Cannot change type of an account with transactions."

    def test_type_change_updates_normal_balance(self, actor, cash):
        account = update_account(actor, cash.id, account_type="LIABILITY").unwrap()

        assert account.normal_balance == Account.NormalBalance.CREDIT

    def test_unknown_field_rejected(self, actor, cash):
        result = update_account(actor, cash.id, balance="100")

        assert result.error == "Cannot update field(s): balance"

    def test_code_change_blocked_with_activity(self, actor, cash, revenue, post_entry):
        post_entry(date(2026, 1, 5), cash, revenue, "10")

        result = update_account(actor, cash.id, code="1001")

        assert result.error == "Cannot change code of an account with transactions."


@pytest.mark.django_db
class TestDeleteAccount:

    def test_delete_unused(self, actor, cash):
        assert delete_account(actor, cash.id).success
        assert not Account.objects.filter(pk=cash.pk).exists()

    def test_delete_with_activity_rejected(self, actor, cash, revenue, post_entry):
        post_entry(date(2026, 1, 5), cash, revenue, "10")

        result = delete_account(actor, cash.id)

        assert "Deactivate it instead" in result.error
        assert Account.objects.filter(pk=cash.pk).exists()

    def test_delete_with_children_rejected(self, actor, cash):
        create_account(actor, code="1010", name="Petty", account_type="ASSET", parent_id=cash.id).unwrap()

        result = delete_account(actor, cash.id)

        assert result.error == "Cannot delete an account that has child accounts."


@pytest.mark.django_db
class TestRetainedEarnings:

    def test_created_once(self, company):
        first = get_or_create_retained_earnings(company)
        second = get_or_create_retained_earnings(company)

        assert first.pk == second.pk
        assert first.code == settings.RETAINED_EARNINGS_CODE
        assert first.account_type == Account.AccountType.EQUITY


# =============================================================================
# Authorization
# =============================================================================

@pytest.mark.django_db
class TestAuthorization:

    def test_role_defaults_granted(self, owner_membership):
        codes = set(owner_membership.permissions.values_list("code", flat=True))

        assert codes == ROLE_DEFAULTS["OWNER"]
        assert LedgerPermission.objects.count() == len(codes)

    def test_grant_is_idempotent(self, owner_membership):
        assert grant_role_defaults(owner_membership) == 0

    def test_viewer_is_read_only(self, viewer_actor):
        assert viewer_actor.has("journal.read")
        assert not viewer_actor.has("journal.post")
        with pytest.raises(ForbiddenError, match="Permission denied: periods.close"):
            require(viewer_actor, "periods.close")

    def test_owner_has_implicit_access(self, actor):
        assert actor.is_owner
        assert actor.has("ledger.repair")

    def test_inactive_membership_has_nothing(self, owner_membership):
        owner_membership.is_active = False
        owner_membership.save()
        actor = ActorContext(
            user=owner_membership.user,
            company=owner_membership.company,
            membership=owner_membership,
            perms=frozenset(ROLE_DEFAULTS["OWNER"]),
        )

        assert not actor.has("accounts.read")

    def test_accountant_cannot_repair_ledger(self, company, viewer_user):
        membership = CompanyMembership.objects.create(
            company=company,
            user=viewer_user,
            role=CompanyMembership.Role.ACCOUNTANT,
        )
        grant_role_defaults(membership)
        codes = set(membership.permissions.values_list("code", flat=True))

        assert "journal.post" in codes
        assert "periods.close" in codes
        assert "ledger.repair" not in codes

    def test_catalogue_covers_every_role(self):
        codes = all_permission_codes()

        for role_codes in ROLE_DEFAULTS.values():
            assert role_codes <= codes
