# projections/views.py
"""
API views for the ledger and financial reports.

These views read LedgerEntry rows written by the ledger projection.
Balances come from running balances and sums over the ledger, never from
the cached Account.balance column.
"""

from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.authz import resolve_actor, require
from accounting.errors import LedgerError, NotFoundError, ValidationError
from accounting.models import Account, JournalEntry
from accounting.views import error_response, query_date
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
from projections.reports import get_balance_sheet, get_income_statement, get_trial_balance
from projections.serializers import GeneralLedgerSectionSerializer, LedgerEntrySerializer


def _int_param(request, name: str, default: int) -> int:
    raw = request.query_params.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer")


def _page_response(request, qs) -> Response:
    page = get_ledger_page(
        qs,
        page=_int_param(request, "page", 1),
        page_size=_int_param(request, "page_size", None) if request.query_params.get("page_size") else None,
    )
    page["entries"] = LedgerEntrySerializer(page["entries"], many=True).data
    return Response(page)


def _get_account(actor, code) -> Account:
    account = Account.objects.filter(company=actor.company, code=code).first()
    if not account:
        raise NotFoundError("Account not found.")
    return account


def _money(report: dict) -> dict:
    """Render Decimal values as strings, recursing into rows."""
    rendered = {}
    for key, value in report.items():
        if isinstance(value, list):
            rendered[key] = [_money(row) if isinstance(row, dict) else row for row in value]
        elif hasattr(value, "quantize"):
            rendered[key] = str(value)
        elif hasattr(value, "isoformat"):
            rendered[key] = value.isoformat()
        else:
            rendered[key] = value
    return rendered


class LedgerListView(APIView):
    """
    GET /api/ledger/entries/ -> paged ledger rows in (date, sequence) order
        ?date_from=&date_to=&page=&page_size=
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)
        require(actor, "ledger.read")

        try:
            date_from = query_date(request, "date_from")
            date_to = query_date(request, "date_to")
            if date_from and date_to:
                qs = get_ledger_by_date_range(actor.company, date_from, date_to)
            else:
                qs = ledger_queryset(actor.company)
                if date_from:
                    qs = qs.filter(date__gte=date_from)
                if date_to:
                    qs = qs.filter(date__lte=date_to)
            return _page_response(request, qs)
        except LedgerError as exc:
            return error_response(exc)


class AccountLedgerView(APIView):
    """
    GET /api/ledger/accounts/<code>/ -> paged ledger rows for one account
        ?date_from=&date_to=&page=&page_size=
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, code):
        actor = resolve_actor(request)
        require(actor, "ledger.read")

        try:
            account = _get_account(actor, code)
            qs = get_ledger_for_account(
                actor.company,
                account,
                query_date(request, "date_from"),
                query_date(request, "date_to"),
            )
            return _page_response(request, qs)
        except LedgerError as exc:
            return error_response(exc)


class AccountBalanceView(APIView):
    """
    GET /api/ledger/accounts/<code>/balance/?as_of=YYYY-MM-DD

    Authoritative balance from the ledger next to the cached value.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, code):
        actor = resolve_actor(request)
        require(actor, "ledger.read")

        try:
            account = _get_account(actor, code)
            as_of = query_date(request, "as_of")
        except LedgerError as exc:
            return error_response(exc)

        return Response({
            "account_code": account.code,
            "account_name": account.name,
            "normal_balance": account.normal_balance,
            "as_of": as_of.isoformat() if as_of else None,
            "balance": str(get_account_balance(actor.company, account, as_of)),
            "cached_balance": str(account.balance),
            "cached_at": account.balance_refreshed_at,
        })


class JournalEntryLedgerView(APIView):
    """GET /api/ledger/journal-entries/<pk>/ -> ledger rows written for one entry"""
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        actor = resolve_actor(request)
        require(actor, "ledger.read")

        entry = JournalEntry.objects.filter(company=actor.company, pk=pk).first()
        if not entry:
            return error_response(NotFoundError("Journal entry not found."))

        rows = get_ledger_for_entry(actor.company, entry)
        return Response(LedgerEntrySerializer(rows, many=True).data)


class GeneralLedgerView(APIView):
    """
    GET /api/ledger/general-ledger/?date_from=&date_to=&account=<code>

    Per-account sections with opening balance, rows, totals and closing
    balance.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)
        require(actor, "ledger.read")

        try:
            date_from = query_date(request, "date_from")
            date_to = query_date(request, "date_to")
            account_ids = None
            codes = request.query_params.getlist("account")
            if codes:
                account_ids = list(
                    Account.objects.filter(company=actor.company, code__in=codes).values_list("id", flat=True)
                )
                if not account_ids:
                    raise NotFoundError("Account not found.")
        except LedgerError as exc:
            return error_response(exc)

        sections = get_general_ledger(actor.company, date_from, date_to, account_ids)
        return Response({
            "date_from": date_from.isoformat() if date_from else None,
            "date_to": date_to.isoformat() if date_to else None,
            "accounts": GeneralLedgerSectionSerializer(sections, many=True).data,
        })


class LedgerRepairView(APIView):
    """
    GET /api/ledger/repair/ -> drifted running balances (no changes)
    POST /api/ledger/repair/ -> backfill missing rows, then refold
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)
        require(actor, "ledger.read")

        mismatches = ledger_projection.verify(actor.company)
        return Response({
            "consistent": not mismatches,
            "mismatches": [_money(m) for m in mismatches],
        })

    def post(self, request):
        actor = resolve_actor(request)
        require(actor, "ledger.repair")

        backfilled = ledger_projection.backfill_missing(actor.company)
        corrections = ledger_projection.repair(actor.company)
        return Response({
            "backfilled_entries": backfilled,
            "corrections": [_money(c) for c in corrections],
        }, status=status.HTTP_200_OK)


# =============================================================================
# Reports
# =============================================================================

class TrialBalanceView(APIView):
    """
    GET /api/ledger/reports/trial-balance/?as_of=YYYY-MM-DD

    Responds 500 with code "ledger_integrity" when debits and credits do
    not agree.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)
        require(actor, "reports.read")

        try:
            report = get_trial_balance(actor.company, query_date(request, "as_of"))
        except LedgerError as exc:
            return error_response(exc)
        return Response(_money(report))


class BalanceSheetView(APIView):
    """GET /api/ledger/reports/balance-sheet/?as_of=YYYY-MM-DD"""
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)
        require(actor, "reports.read")

        try:
            report = get_balance_sheet(actor.company, query_date(request, "as_of"))
        except LedgerError as exc:
            return error_response(exc)
        return Response(_money(report))


class IncomeStatementView(APIView):
    """GET /api/ledger/reports/income-statement/?date_from=&date_to="""
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)
        require(actor, "reports.read")

        try:
            report = get_income_statement(
                actor.company,
                query_date(request, "date_from", required=True),
                query_date(request, "date_to", required=True),
            )
        except LedgerError as exc:
            return error_response(exc)
        return Response(_money(report))
