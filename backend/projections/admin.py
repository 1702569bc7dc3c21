# projections/admin.py
"""Django admin for projection models."""

from django.contrib import admin

from .models import LedgerEntry


@admin.register(LedgerEntry)
class LedgerEntryAdmin(admin.ModelAdmin):
    list_display = [
        "date", "sequence", "account_code", "entry_number",
        "debit", "credit", "running_balance", "company",
    ]
    list_filter = ["company", "account__account_type"]
    search_fields = ["account_code", "entry_number", "description"]
    list_select_related = ["company", "account"]
    ordering = ["company", "date", "sequence"]
    readonly_fields = [
        "company", "account", "journal_entry", "journal_line", "date", "sequence",
        "debit", "credit", "running_balance", "account_code", "entry_number",
        "description", "created_at",
    ]

    def has_add_permission(self, request):
        return False  # Managed by projection

    def has_change_permission(self, request, obj=None):
        return False  # Managed by projection

    def has_delete_permission(self, request, obj=None):
        return False  # Managed by projection
