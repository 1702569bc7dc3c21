# accounting/views.py
"""
Thin views that delegate to the commands layer.

Views handle: HTTP parsing, authentication, response formatting.
Commands handle: business logic, validation, locking.

All mutations go through commands. Views never call .save() on models.
"""

from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from django.db.models import Exists, OuterRef
from django.utils.dateparse import parse_date

from accounts.authz import resolve_actor, require
from accounting.errors import LedgerError, NotFoundError, ValidationError
from accounting.locking import find_period_for_date

from .commands import (
    create_account,
    create_and_post,
    create_draft,
    delete_account,
    delete_draft,
    post_journal_entry,
    update_account,
    update_draft,
    void_journal_entry,
)
from .models import Account, AccountingPeriod, JournalEntry, JournalLine, SourceLink
from .periods import (
    close_period,
    create_period,
    delete_period,
    list_periods,
    lock_period,
    reopen_period,
    update_period,
)
from .serializers import (
    AccountCreateSerializer,
    AccountSerializer,
    AccountUpdateSerializer,
    AccountingPeriodCreateSerializer,
    AccountingPeriodSerializer,
    AccountingPeriodUpdateSerializer,
    JournalEntryInputSerializer,
    JournalEntrySerializer,
    JournalEntryUpdateSerializer,
)


def error_response(exc: LedgerError) -> Response:
    return Response(exc.as_dict(), status=exc.http_status)


def failed(result) -> Response:
    return error_response(result.exception)


def query_date(request, name: str, required: bool = False):
    """Parse an ISO date query parameter. Raises ValidationError when malformed."""
    raw = request.query_params.get(name)
    if not raw:
        if required:
            raise ValidationError(f"{name} is required")
        return None
    try:
        value = parse_date(raw)
    except ValueError:
        value = None
    if value is None:
        raise ValidationError(f"{name} must be a date in YYYY-MM-DD format")
    return value


# =============================================================================
# Account Views
# =============================================================================

def _account_queryset(actor):
    return Account.objects.filter(
        company=actor.company,
    ).annotate(
        _has_transactions=Exists(
            JournalLine.objects.filter(account=OuterRef("pk"))
        ),
    ).select_related("parent")


class AccountListCreateView(APIView):
    """
    GET /api/accounting/accounts/ -> list accounts for active company
    POST /api/accounting/accounts/ -> create account in active company
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)
        require(actor, "accounts.read")

        accounts = _account_queryset(actor)
        account_type = request.query_params.get("account_type")
        if account_type:
            accounts = accounts.filter(account_type=account_type)
        account_status = request.query_params.get("status")
        if account_status:
            accounts = accounts.filter(status=account_status)

        serializer = AccountSerializer(accounts.order_by("code"), many=True)
        return Response(serializer.data)

    def post(self, request):
        actor = resolve_actor(request)
        # Permission check happens in command

        input_serializer = AccountCreateSerializer(data=request.data)
        input_serializer.is_valid(raise_exception=True)

        result = create_account(actor, **input_serializer.validated_data)
        if not result.success:
            return failed(result)

        return Response(AccountSerializer(result.data).data, status=status.HTTP_201_CREATED)


class AccountDetailView(APIView):
    """
    GET /api/accounting/accounts/<code>/ -> retrieve account
    PATCH /api/accounting/accounts/<code>/ -> update account
    DELETE /api/accounting/accounts/<code>/ -> delete account
    """
    permission_classes = [IsAuthenticated]

    def get_object(self, actor, code):
        account = _account_queryset(actor).filter(code=code).first()
        if not account:
            raise NotFoundError("Account not found.")
        return account

    def get(self, request, code):
        actor = resolve_actor(request)
        require(actor, "accounts.read")
        try:
            account = self.get_object(actor, code)
        except NotFoundError as exc:
            return error_response(exc)
        return Response(AccountSerializer(account).data)

    def patch(self, request, code):
        actor = resolve_actor(request)
        try:
            account = self.get_object(actor, code)
        except NotFoundError as exc:
            return error_response(exc)

        input_serializer = AccountUpdateSerializer(data=request.data, partial=True)
        input_serializer.is_valid(raise_exception=True)

        result = update_account(actor, account.id, **input_serializer.validated_data)
        if not result.success:
            return failed(result)
        return Response(AccountSerializer(result.data).data)

    def delete(self, request, code):
        actor = resolve_actor(request)
        try:
            account = self.get_object(actor, code)
        except NotFoundError as exc:
            return error_response(exc)

        result = delete_account(actor, account.id)
        if not result.success:
            return failed(result)
        return Response(status=status.HTTP_204_NO_CONTENT)


# =============================================================================
# Journal Entry Views
# =============================================================================

class JournalEntryListCreateView(APIView):
    """
    GET /api/accounting/journal-entries/ -> list entries
        ?status=POSTED&entry_type=MANUAL&date_from=...&date_to=...
    POST /api/accounting/journal-entries/ -> create draft (or post with "post": true)
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)
        require(actor, "journal.read")

        try:
            date_from = query_date(request, "date_from")
            date_to = query_date(request, "date_to")
        except ValidationError as exc:
            return error_response(exc)

        entries = JournalEntry.objects.filter(company=actor.company)
        if request.query_params.get("status"):
            entries = entries.filter(status=request.query_params["status"])
        if request.query_params.get("entry_type"):
            entries = entries.filter(entry_type=request.query_params["entry_type"])
        if date_from:
            entries = entries.filter(date__gte=date_from)
        if date_to:
            entries = entries.filter(date__lte=date_to)

        entries = entries.prefetch_related("lines__account").order_by("-date", "-id")
        return Response(JournalEntrySerializer(entries, many=True).data)

    def post(self, request):
        actor = resolve_actor(request)

        input_serializer = JournalEntryInputSerializer(data=request.data)
        input_serializer.is_valid(raise_exception=True)
        data = dict(input_serializer.validated_data)

        source = data.pop("source", None)
        if source:
            data["source"] = SourceLink(kind=source["kind"], source_id=source["source_id"])
        data["lines"] = [dict(line) for line in data["lines"]]

        command = create_and_post if data.pop("post") else create_draft
        result = command(actor, **data)
        if not result.success:
            return failed(result)

        return Response(JournalEntrySerializer(result.data).data, status=status.HTTP_201_CREATED)


class JournalEntryDetailView(APIView):
    """
    GET /api/accounting/journal-entries/<pk>/ -> retrieve entry with lines
    PATCH /api/accounting/journal-entries/<pk>/ -> edit a draft
    DELETE /api/accounting/journal-entries/<pk>/ -> delete a draft
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        actor = resolve_actor(request)
        require(actor, "journal.read")

        entry = (
            JournalEntry.objects
            .filter(company=actor.company, pk=pk)
            .prefetch_related("lines__account")
            .first()
        )
        if not entry:
            return error_response(NotFoundError("Journal entry not found."))
        return Response(JournalEntrySerializer(entry).data)

    def patch(self, request, pk):
        actor = resolve_actor(request)

        input_serializer = JournalEntryUpdateSerializer(data=request.data, partial=True)
        input_serializer.is_valid(raise_exception=True)
        data = dict(input_serializer.validated_data)
        if "lines" in data:
            data["lines"] = [dict(line) for line in data["lines"]]

        result = update_draft(actor, pk, **data)
        if not result.success:
            return failed(result)
        return Response(JournalEntrySerializer(result.data).data)

    def delete(self, request, pk):
        actor = resolve_actor(request)

        result = delete_draft(actor, pk)
        if not result.success:
            return failed(result)
        return Response(status=status.HTTP_204_NO_CONTENT)


class JournalPostView(APIView):
    """POST /api/accounting/journal-entries/<pk>/post/ -> post entry"""
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        actor = resolve_actor(request)

        result = post_journal_entry(actor, pk)
        if not result.success:
            return failed(result)

        entry = result.data
        return Response({
            "id": entry.id,
            "status": entry.status,
            "entry_number": entry.entry_number,
            "posted_at": entry.posted_at,
            "posted_by": entry.posted_by_id,
        })


class JournalVoidView(APIView):
    """
    POST /api/accounting/journal-entries/<pk>/void/ -> void entry

    Responds with the reversing entry.
    """
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        actor = resolve_actor(request)

        result = void_journal_entry(actor, pk)
        if not result.success:
            return failed(result)

        original = result.data
        reversal = original.reversal_entry
        return Response(
            {
                "id": reversal.id,
                "entry_number": reversal.entry_number,
                "date": reversal.date,
                "status": reversal.status,
                "posted_at": reversal.posted_at,
                "reverses_entry": original.id,
                "original_status": original.status,
            },
            status=status.HTTP_201_CREATED,
        )


# =============================================================================
# Period Views
# =============================================================================

class PeriodListCreateView(APIView):
    """
    GET /api/accounting/periods/ -> list periods (?fiscal_year=&status=)
    POST /api/accounting/periods/ -> create period
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)
        require(actor, "periods.read")

        fiscal_year = request.query_params.get("fiscal_year")
        periods = list_periods(
            actor.company,
            fiscal_year=int(fiscal_year) if fiscal_year and fiscal_year.isdigit() else None,
            status=request.query_params.get("status"),
        )
        return Response(AccountingPeriodSerializer(periods, many=True).data)

    def post(self, request):
        actor = resolve_actor(request)

        input_serializer = AccountingPeriodCreateSerializer(data=request.data)
        input_serializer.is_valid(raise_exception=True)

        result = create_period(actor, **input_serializer.validated_data)
        if not result.success:
            return failed(result)
        return Response(AccountingPeriodSerializer(result.data).data, status=status.HTTP_201_CREATED)


class PeriodDetailView(APIView):
    """
    GET /api/accounting/periods/<pk>/
    PATCH /api/accounting/periods/<pk>/
    DELETE /api/accounting/periods/<pk>/
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        actor = resolve_actor(request)
        require(actor, "periods.read")

        period = AccountingPeriod.objects.filter(company=actor.company, pk=pk).first()
        if not period:
            return error_response(NotFoundError("Accounting period not found."))
        return Response(AccountingPeriodSerializer(period).data)

    def patch(self, request, pk):
        actor = resolve_actor(request)

        input_serializer = AccountingPeriodUpdateSerializer(data=request.data, partial=True)
        input_serializer.is_valid(raise_exception=True)

        result = update_period(actor, pk, **input_serializer.validated_data)
        if not result.success:
            return failed(result)
        return Response(AccountingPeriodSerializer(result.data).data)

    def delete(self, request, pk):
        actor = resolve_actor(request)

        result = delete_period(actor, pk)
        if not result.success:
            return failed(result)
        return Response(status=status.HTTP_204_NO_CONTENT)


class PeriodCloseView(APIView):
    """POST /api/accounting/periods/<pk>/close/"""
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        actor = resolve_actor(request)

        result = close_period(actor, pk)
        if not result.success:
            return failed(result)

        summary = result.data
        closing_entry = summary["closing_entry"]
        return Response({
            "period": AccountingPeriodSerializer(summary["period"]).data,
            "closing_entry_id": closing_entry.id if closing_entry else None,
            "total_revenue": str(summary["total_revenue"]),
            "total_expenses": str(summary["total_expenses"]),
            "net_income": str(summary["net_income"]),
            "revenue_accounts": summary["revenue_accounts"],
            "expense_accounts": summary["expense_accounts"],
        })


class PeriodReopenView(APIView):
    """POST /api/accounting/periods/<pk>/reopen/"""
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        actor = resolve_actor(request)

        result = reopen_period(actor, pk)
        if not result.success:
            return failed(result)
        return Response(AccountingPeriodSerializer(result.data).data)


class PeriodLockView(APIView):
    """POST /api/accounting/periods/<pk>/lock/"""
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        actor = resolve_actor(request)

        result = lock_period(actor, pk)
        if not result.success:
            return failed(result)
        return Response(AccountingPeriodSerializer(result.data).data)


class PeriodForDateView(APIView):
    """GET /api/accounting/periods/for-date/?date=YYYY-MM-DD"""
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)
        require(actor, "periods.read")

        try:
            on = query_date(request, "date", required=True)
        except ValidationError as exc:
            return error_response(exc)

        period = find_period_for_date(actor.company, on)
        if not period:
            return error_response(NotFoundError(f"No accounting period contains {on.isoformat()}."))
        return Response(AccountingPeriodSerializer(period).data)
