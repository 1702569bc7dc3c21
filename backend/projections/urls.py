# projections/urls.py
"""
URL configuration for ledger and reports API.

Endpoints:
- /entries/ - Paged ledger rows
- /accounts/<code>/ - Ledger rows for one account
- /accounts/<code>/balance/ - Account balance as of a date
- /journal-entries/<pk>/ - Ledger rows for one journal entry
- /general-ledger/ - Per-account sections with opening/closing balances
- /repair/ - Verify (GET) or repair (POST) running balances
- /reports/trial-balance/ - Trial balance as of a date
- /reports/balance-sheet/ - Balance sheet
- /reports/income-statement/ - Income statement (P&L)
"""

from django.urls import path

from .views import (
    LedgerListView,
    AccountLedgerView,
    AccountBalanceView,
    JournalEntryLedgerView,
    GeneralLedgerView,
    LedgerRepairView,
    TrialBalanceView,
    BalanceSheetView,
    IncomeStatementView,
)

app_name = "projections"

urlpatterns = [
    # Ledger
    path(
        "entries/",
        LedgerListView.as_view(),
        name="ledger-list",
    ),
    path(
        "accounts/<str:code>/",
        AccountLedgerView.as_view(),
        name="account-ledger",
    ),
    path(
        "accounts/<str:code>/balance/",
        AccountBalanceView.as_view(),
        name="account-balance",
    ),
    path(
        "journal-entries/<int:pk>/",
        JournalEntryLedgerView.as_view(),
        name="journal-entry-ledger",
    ),
    path(
        "general-ledger/",
        GeneralLedgerView.as_view(),
        name="general-ledger",
    ),
    path(
        "repair/",
        LedgerRepairView.as_view(),
        name="ledger-repair",
    ),

    # Financial Reports
    path(
        "reports/trial-balance/",
        TrialBalanceView.as_view(),
        name="trial-balance",
    ),
    path(
        "reports/balance-sheet/",
        BalanceSheetView.as_view(),
        name="balance-sheet",
    ),
    path(
        "reports/income-statement/",
        IncomeStatementView.as_view(),
        name="income-statement",
    ),
]
