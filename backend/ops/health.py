"""
Health check endpoints for operations monitoring.

Provides comprehensive health checks for:
- Database connectivity (all configured databases)
- Redis/Celery connectivity
- Ledger backlog (posted lines not yet projected)

Endpoints:
- /_health/live    - Kubernetes liveness probe (is the process running?)
- /_health/ready   - Kubernetes readiness probe (can we serve traffic?)
- /_health/ledger  - Ledger backlog only (posted lines without ledger rows)
- /_health/full    - Full health report (for debugging/dashboards)
"""
import logging
import time
from typing import Dict, Any

import redis

from django.conf import settings
from django.db import DatabaseError, connections
from django.db.models import Count
from django.http import JsonResponse
from django.views import View

logger = logging.getLogger(__name__)


class HealthCheck:
    """Health check implementation."""

    @staticmethod
    def check_database(alias: str = "default") -> Dict[str, Any]:
        """Check database connectivity."""
        start = time.time()
        try:
            conn = connections[alias]
            conn.ensure_connection()
            with conn.cursor() as cursor:
                cursor.execute("SELECT 1")
                cursor.fetchone()
            duration_ms = (time.time() - start) * 1000
            return {
                "status": "healthy",
                "alias": alias,
                "duration_ms": round(duration_ms, 2),
            }
        except Exception as e:
            duration_ms = (time.time() - start) * 1000
            return {
                "status": "unhealthy",
                "alias": alias,
                "error": str(e),
                "duration_ms": round(duration_ms, 2),
            }

    @staticmethod
    def check_all_databases() -> Dict[str, Any]:
        """Check all configured databases."""
        results = {}
        all_healthy = True

        for alias in settings.DATABASES.keys():
            result = HealthCheck.check_database(alias)
            results[alias] = result
            if result["status"] != "healthy":
                all_healthy = False

        return {
            "status": "healthy" if all_healthy else "degraded",
            "databases": results,
        }

    @staticmethod
    def check_redis() -> Dict[str, Any]:
        """Check Redis connectivity (if configured)."""
        redis_url = getattr(settings, "CELERY_BROKER_URL", None)
        if not redis_url:
            return {"status": "skipped", "reason": "Redis not configured"}

        start = time.time()
        try:
            client = redis.from_url(redis_url)
            client.ping()
            duration_ms = (time.time() - start) * 1000
            return {
                "status": "healthy",
                "duration_ms": round(duration_ms, 2),
            }
        except Exception as e:
            duration_ms = (time.time() - start) * 1000
            return {
                "status": "unhealthy",
                "error": str(e),
                "duration_ms": round(duration_ms, 2),
            }

    @staticmethod
    def check_ledger_backlog() -> Dict[str, Any]:
        """Posted journal lines that have no ledger row yet."""
        try:
            from accounting.models import JournalEntry, JournalLine

            missing = (
                JournalLine.objects
                .filter(
                    entry__status__in=[JournalEntry.Status.POSTED, JournalEntry.Status.VOIDED],
                    ledger_entry__isnull=True,
                )
                .values("company__slug")
                .annotate(lines=Count("id"))
            )
            backlog = {row["company__slug"]: row["lines"] for row in missing}
            total = sum(backlog.values())

            return {
                "status": "healthy" if total == 0 else "degraded",
                "missing_lines": total,
                "companies": dict(list(backlog.items())[:10]),
            }
        except DatabaseError as e:
            return {
                "status": "error",
                "error": str(e),
            }

    @staticmethod
    def get_full_health() -> Dict[str, Any]:
        """Get comprehensive health report."""
        checks = {
            "databases": HealthCheck.check_all_databases(),
            "redis": HealthCheck.check_redis(),
            "ledger_backlog": HealthCheck.check_ledger_backlog(),
        }

        # Determine overall status
        statuses = [c.get("status", "unknown") for c in checks.values()]
        if all(s == "healthy" or s == "skipped" for s in statuses):
            overall = "healthy"
        elif any(s == "unhealthy" for s in statuses):
            overall = "unhealthy"
        else:
            overall = "degraded"

        return {
            "status": overall,
            "checks": checks,
            "version": getattr(settings, "VERSION", "unknown"),
            "environment": "production" if not settings.DEBUG else "development",
        }


class LivenessView(View):
    """
    Kubernetes liveness probe.

    Returns 200 if the process is running.
    This should be very fast and not check external dependencies.
    """

    def get(self, request):
        return JsonResponse({"status": "alive"})


class ReadinessView(View):
    """
    Kubernetes readiness probe.

    Returns 200 if the service can handle traffic.
    Checks database connectivity.
    """

    def get(self, request):
        db_check = HealthCheck.check_database("default")

        if db_check["status"] == "healthy":
            return JsonResponse({
                "status": "ready",
                "database": db_check,
            })
        else:
            return JsonResponse({
                "status": "not_ready",
                "database": db_check,
            }, status=503)


class FullHealthView(View):
    """
    Full health check for debugging and dashboards.

    Returns comprehensive health information.
    Should be protected in production (internal network only).
    """

    def get(self, request):
        health = HealthCheck.get_full_health()

        status_code = 200 if health["status"] == "healthy" else 503
        return JsonResponse(health, status=status_code)


class LedgerBacklogView(View):
    """Posted lines still waiting for a ledger row; 503 while any are missing."""

    def get(self, request):
        backlog = HealthCheck.check_ledger_backlog()
        return JsonResponse(backlog, status=200 if backlog["status"] == "healthy" else 503)
