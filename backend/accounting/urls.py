# accounting/urls.py
"""
URL configuration for accounting API.

Endpoints:
- /accounts/ - Chart of Accounts CRUD
- /journal-entries/ - Journal Entry CRUD with post/void actions
- /periods/ - Accounting periods with close/reopen/lock actions
"""

from django.urls import path

from .views import (
    # Account views
    AccountListCreateView,
    AccountDetailView,
    # Journal entry views
    JournalEntryListCreateView,
    JournalEntryDetailView,
    JournalPostView,
    JournalVoidView,
    # Period views
    PeriodListCreateView,
    PeriodForDateView,
    PeriodDetailView,
    PeriodCloseView,
    PeriodReopenView,
    PeriodLockView,
)

app_name = "accounting"

urlpatterns = [
    # ==========================================================================
    # Accounts (Chart of Accounts)
    # ==========================================================================
    path(
        "accounts/",
        AccountListCreateView.as_view(),
        name="account-list-create",
    ),
    path(
        "accounts/<str:code>/",
        AccountDetailView.as_view(),
        name="account-detail",
    ),

    # ==========================================================================
    # Journal Entries
    # ==========================================================================
    path(
        "journal-entries/",
        JournalEntryListCreateView.as_view(),
        name="journal-entry-list-create",
    ),
    path(
        "journal-entries/<int:pk>/",
        JournalEntryDetailView.as_view(),
        name="journal-entry-detail",
    ),
    path(
        "journal-entries/<int:pk>/post/",
        JournalPostView.as_view(),
        name="journal-entry-post",
    ),
    path(
        "journal-entries/<int:pk>/void/",
        JournalVoidView.as_view(),
        name="journal-entry-void",
    ),

    # ==========================================================================
    # Accounting Periods
    # ==========================================================================
    path(
        "periods/",
        PeriodListCreateView.as_view(),
        name="period-list-create",
    ),
    path(
        "periods/for-date/",
        PeriodForDateView.as_view(),
        name="period-for-date",
    ),
    path(
        "periods/<int:pk>/",
        PeriodDetailView.as_view(),
        name="period-detail",
    ),
    path(
        "periods/<int:pk>/close/",
        PeriodCloseView.as_view(),
        name="period-close",
    ),
    path(
        "periods/<int:pk>/reopen/",
        PeriodReopenView.as_view(),
        name="period-reopen",
    ),
    path(
        "periods/<int:pk>/lock/",
        PeriodLockView.as_view(),
        name="period-lock",
    ),
]
