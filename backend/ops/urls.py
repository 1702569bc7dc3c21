"""
Probe and scrape routes, mounted under /_health/ and /_metrics/.

Neither list goes through JWT authentication; keep both off the public
network.
"""
from django.urls import path

from ops.health import FullHealthView, LedgerBacklogView, LivenessView, ReadinessView
from ops.metrics import MetricsView

urlpatterns = [
    path("live", LivenessView.as_view(), name="health-live"),
    path("ready", ReadinessView.as_view(), name="health-ready"),
    path("ledger", LedgerBacklogView.as_view(), name="health-ledger"),
    path("full", FullHealthView.as_view(), name="health-full"),
]

metrics_patterns = [
    path("", MetricsView.as_view(), name="metrics"),
]
