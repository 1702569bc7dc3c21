# accounting/serializers.py
"""
Serializers for accounting API.

These serializers are used for:
1. Input validation (shape only)
2. Output formatting

Amounts, balance and period rules are checked in commands.py so API and
internal callers get the same errors.
"""

from rest_framework import serializers

from .models import Account, AccountingPeriod, JournalEntry, JournalLine


# =============================================================================
# Account Serializers
# =============================================================================

class AccountSerializer(serializers.ModelSerializer):
    """
    Serializer for Account model.

    ``balance`` is the cached balance and may lag; the ledger endpoints
    return authoritative figures.
    """
    has_transactions = serializers.SerializerMethodField()
    parent_code = serializers.CharField(source="parent.code", read_only=True, default=None)

    class Meta:
        model = Account
        fields = [
            "id", "public_id", "code", "name",
            "account_type", "subtype", "normal_balance", "status",
            "parent", "parent_code", "description",
            "balance", "balance_refreshed_at", "has_transactions",
            "created_at", "updated_at",
        ]
        read_only_fields = fields

    def get_has_transactions(self, obj):
        if hasattr(obj, "_has_transactions"):
            return obj._has_transactions
        return obj.journal_lines.exists()


class AccountCreateSerializer(serializers.Serializer):
    code = serializers.CharField(max_length=20)
    name = serializers.CharField(max_length=255)
    account_type = serializers.ChoiceField(choices=Account.AccountType.choices)
    parent_id = serializers.IntegerField(required=False, allow_null=True)
    subtype = serializers.CharField(max_length=50, required=False, allow_blank=True, default="")
    description = serializers.CharField(required=False, allow_blank=True, default="")


class AccountUpdateSerializer(serializers.Serializer):
    code = serializers.CharField(max_length=20, required=False)
    name = serializers.CharField(max_length=255, required=False)
    account_type = serializers.ChoiceField(choices=Account.AccountType.choices, required=False)
    status = serializers.ChoiceField(choices=Account.Status.choices, required=False)
    subtype = serializers.CharField(max_length=50, required=False, allow_blank=True)
    description = serializers.CharField(required=False, allow_blank=True)
    parent_id = serializers.IntegerField(required=False, allow_null=True)


# =============================================================================
# Journal Entry Serializers
# =============================================================================

class JournalLineSerializer(serializers.ModelSerializer):
    account_code = serializers.CharField(source="account.code", read_only=True)
    account_name = serializers.CharField(source="account.name", read_only=True)

    class Meta:
        model = JournalLine
        fields = ["id", "line_no", "account", "account_code", "account_name", "memo", "debit", "credit"]
        read_only_fields = fields


class JournalLineInputSerializer(serializers.Serializer):
    """
    One input line. Amounts stay strings here; commands parse them exactly
    and report every bad line at once.
    """
    account_id = serializers.IntegerField(required=False, allow_null=True)
    account_code = serializers.CharField(max_length=20, required=False, allow_blank=True)
    debit = serializers.CharField(required=False, allow_blank=True, default="0")
    credit = serializers.CharField(required=False, allow_blank=True, default="0")
    memo = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")


class SourceLinkSerializer(serializers.Serializer):
    kind = serializers.ChoiceField(choices=JournalEntry.SourceKind.choices)
    source_id = serializers.CharField(max_length=100, allow_blank=True)


class JournalEntrySerializer(serializers.ModelSerializer):
    lines = JournalLineSerializer(many=True, read_only=True)
    source = serializers.SerializerMethodField()
    total_debit = serializers.DecimalField(max_digits=18, decimal_places=2, read_only=True)
    total_credit = serializers.DecimalField(max_digits=18, decimal_places=2, read_only=True)
    reversal_entry_id = serializers.SerializerMethodField()

    class Meta:
        model = JournalEntry
        fields = [
            "id", "public_id", "entry_number", "date", "reference", "memo",
            "entry_type", "status", "source",
            "closes_period", "reverses_entry", "reversal_entry_id",
            "posted_at", "posted_by", "voided_at", "voided_by",
            "created_at", "created_by", "updated_at",
            "total_debit", "total_credit", "lines",
        ]
        read_only_fields = fields

    def get_source(self, obj):
        link = obj.source
        return link.as_dict() if link else None

    def get_reversal_entry_id(self, obj):
        reversal = getattr(obj, "reversal_entry", None)
        return reversal.id if reversal else None


class JournalEntryInputSerializer(serializers.Serializer):
    date = serializers.DateField()
    memo = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    reference = serializers.CharField(max_length=100, required=False, allow_blank=True, default="")
    lines = JournalLineInputSerializer(many=True)
    source = SourceLinkSerializer(required=False, allow_null=True)
    post = serializers.BooleanField(required=False, default=False)


class JournalEntryUpdateSerializer(serializers.Serializer):
    date = serializers.DateField(required=False)
    memo = serializers.CharField(max_length=255, required=False, allow_blank=True)
    reference = serializers.CharField(max_length=100, required=False, allow_blank=True)
    lines = JournalLineInputSerializer(many=True, required=False)


# =============================================================================
# Period Serializers
# =============================================================================

class AccountingPeriodSerializer(serializers.ModelSerializer):
    class Meta:
        model = AccountingPeriod
        fields = [
            "id", "public_id", "name", "period_type", "fiscal_year",
            "start_date", "end_date", "status",
            "closed_at", "closed_by", "closing_entry", "notes",
            "created_at", "updated_at",
        ]
        read_only_fields = fields


class AccountingPeriodCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=100)
    start_date = serializers.DateField()
    end_date = serializers.DateField()
    period_type = serializers.ChoiceField(
        choices=AccountingPeriod.PeriodType.choices,
        required=False,
        default=AccountingPeriod.PeriodType.MONTHLY,
    )
    fiscal_year = serializers.IntegerField(required=False, allow_null=True, min_value=1900, max_value=2100)
    notes = serializers.CharField(max_length=500, required=False, allow_blank=True, default="")


class AccountingPeriodUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=100, required=False)
    start_date = serializers.DateField(required=False)
    end_date = serializers.DateField(required=False)
    period_type = serializers.ChoiceField(choices=AccountingPeriod.PeriodType.choices, required=False)
    fiscal_year = serializers.IntegerField(required=False, min_value=1900, max_value=2100)
    notes = serializers.CharField(max_length=500, required=False, allow_blank=True)
