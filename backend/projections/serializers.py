# projections/serializers.py
"""Output serializers for ledger and report endpoints."""

from rest_framework import serializers

from .models import LedgerEntry


class LedgerEntrySerializer(serializers.ModelSerializer):
    account_name = serializers.CharField(source="account.name", read_only=True)
    journal_entry_public_id = serializers.UUIDField(source="journal_entry.public_id", read_only=True)

    class Meta:
        model = LedgerEntry
        fields = [
            "id", "date", "sequence",
            "account", "account_code", "account_name",
            "journal_entry", "journal_entry_public_id", "journal_line", "entry_number",
            "description", "debit", "credit", "running_balance",
        ]
        read_only_fields = fields


class GeneralLedgerSectionSerializer(serializers.Serializer):
    account_id = serializers.IntegerField(source="account.id")
    account_code = serializers.CharField(source="account.code")
    account_name = serializers.CharField(source="account.name")
    account_type = serializers.CharField(source="account.account_type")
    opening_balance = serializers.DecimalField(max_digits=18, decimal_places=2)
    total_debit = serializers.DecimalField(max_digits=18, decimal_places=2)
    total_credit = serializers.DecimalField(max_digits=18, decimal_places=2)
    closing_balance = serializers.DecimalField(max_digits=18, decimal_places=2)
    entry_count = serializers.IntegerField()
    entries = LedgerEntrySerializer(many=True)
