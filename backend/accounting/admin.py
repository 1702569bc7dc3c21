# accounting/admin.py
"""
Django admin configuration for accounting models.

The admin is for viewing only. All mutations go through the command
layer (accounting/commands.py, accounting/periods.py), which takes the
locks and keeps the ledger in step with the journal.
"""

from django.contrib import admin
from django.utils.html import format_html

from .models import Account, AccountingPeriod, JournalEntry, JournalLine


class ReadOnlyModelAdmin(admin.ModelAdmin):
    """
    Base admin class for command-owned models.

    Direct admin edits would bypass the period gate and the ledger
    projection.
    """

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class JournalLineInline(admin.TabularInline):
    model = JournalLine
    extra = 0
    readonly_fields = ["line_no", "account", "memo", "debit", "credit"]
    fields = ["line_no", "account", "memo", "debit", "credit"]

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Account)
class AccountAdmin(ReadOnlyModelAdmin):
    list_display = ["code", "name", "account_type", "normal_balance", "status", "parent", "balance", "company"]
    list_filter = ["company", "account_type", "status"]
    search_fields = ["code", "name", "description"]
    list_select_related = ["company", "parent"]
    ordering = ["company", "code"]


@admin.register(AccountingPeriod)
class AccountingPeriodAdmin(ReadOnlyModelAdmin):
    list_display = ["name", "start_date", "end_date", "status", "fiscal_year", "closed_at", "company"]
    list_filter = ["company", "status", "fiscal_year"]
    ordering = ["company", "start_date"]


@admin.register(JournalEntry)
class JournalEntryAdmin(ReadOnlyModelAdmin):
    list_display = [
        "id", "entry_number", "date", "memo_truncated", "entry_type",
        "status_colored", "source_kind", "company",
    ]
    list_filter = ["company", "status", "entry_type", "date"]
    search_fields = ["entry_number", "reference", "memo"]
    date_hierarchy = "date"
    list_select_related = ["company"]
    ordering = ["-date", "-id"]
    inlines = [JournalLineInline]

    def memo_truncated(self, obj):
        if len(obj.memo) > 50:
            return f"{obj.memo[:50]}..."
        return obj.memo
    memo_truncated.short_description = "Memo"

    def status_colored(self, obj):
        colors = {
            JournalEntry.Status.DRAFT: "#007bff",
            JournalEntry.Status.POSTED: "#28a745",
            JournalEntry.Status.VOIDED: "#dc3545",
        }
        return format_html(
            '<span style="color: {}; font-weight: bold;">{}</span>',
            colors.get(obj.status, "#000"),
            obj.get_status_display(),
        )
    status_colored.short_description = "Status"
    status_colored.admin_order_field = "status"
