# accounting/locking.py
"""
Row locks taken by posting, voiding and period transitions.

Lock order is always: journal entry -> period -> accounts (by pk).
Keeping one order across commands avoids lock cycles between them.
"""

from accounting.models import Account, AccountingPeriod


def lock_accounts(company, account_ids=None) -> list[Account]:
    """
    select_for_update the given accounts (all company accounts when
    ``account_ids`` is None) in primary-key order.
    """
    qs = Account.objects.select_for_update().filter(company=company)
    if account_ids is not None:
        qs = qs.filter(pk__in=set(account_ids))
    return list(qs.order_by("pk"))


def find_period_for_date(company, value, for_update: bool = False):
    """
    The single period whose inclusive [start, end] range contains ``value``,
    or None.
    """
    qs = AccountingPeriod.objects.filter(
        company=company,
        start_date__lte=value,
        end_date__gte=value,
    )
    if for_update:
        qs = qs.select_for_update()
    return qs.order_by("start_date").first()


def select_period_for_update(company, period_id) -> AccountingPeriod:
    """Lock one period row. Raises AccountingPeriod.DoesNotExist."""
    return AccountingPeriod.objects.select_for_update().get(pk=period_id, company=company)
