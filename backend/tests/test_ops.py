# tests/test_ops.py
"""
Tests for logging configuration and the health endpoints.
"""

import json
import logging
import sys
from decimal import Decimal
from datetime import date

import pytest

from accounting.models import JournalEntry
from ops.logging_config import APP_LOGGERS, JsonFormatter, get_logging_config
from projections.models import LedgerEntry


def _record(**extra):
    record = logging.LogRecord(
        name="accounting.commands",
        level=logging.INFO,
        pathname="/srv/accounting/commands.py",
        lineno=42,
        msg="Journal entry %s posted",
        args=("JE-000001",),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJsonFormatter:

    def test_context_fields_at_top_level(self):
        line = json.loads(JsonFormatter().format(_record(
            company_id=7,
            entry_id=12,
            entry_number="JE-000001",
            lines=2,
        )))

        assert line["message"] == "Journal entry JE-000001 posted"
        assert line["level"] == "INFO"
        assert line["logger"] == "accounting.commands"
        assert line["company_id"] == 7
        assert line["entry_number"] == "JE-000001"
        assert line["extra"] == {"lines": 2}
        assert line["timestamp"].endswith("+00:00")

    def test_decimals_and_dates_are_strings(self):
        line = json.loads(JsonFormatter().format(_record(
            net_income=Decimal("750.00"),
            date=date(2026, 1, 31),
        )))

        assert line["extra"] == {"net_income": "750.00", "date": "2026-01-31"}

    def test_exception_included(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = _record()
            record.exc_info = sys.exc_info()

        line = json.loads(JsonFormatter().format(record))

        assert "RuntimeError: boom" in line["exception"]
        assert "extra" not in line


class TestLoggingConfig:

    def test_json_by_default_outside_debug(self, monkeypatch):
        monkeypatch.delenv("LOG_FORMAT", raising=False)
        monkeypatch.delenv("LOG_LEVEL", raising=False)

        config = get_logging_config(debug=False)

        assert config["handlers"]["console"]["formatter"] == "json"
        assert config["loggers"]["django.db.backends"]["handlers"] == ["null"]
        for name in APP_LOGGERS:
            assert config["loggers"][name]["level"] == "INFO"

    def test_console_in_debug(self, monkeypatch):
        monkeypatch.delenv("LOG_FORMAT", raising=False)
        monkeypatch.setenv("LOG_LEVEL", "WARNING")

        config = get_logging_config(debug=True)

        assert config["handlers"]["console"]["formatter"] == "verbose"
        assert config["loggers"]["accounting"]["level"] == "WARNING"


@pytest.mark.django_db
class TestHealth:

    def test_ready(self, client):
        r = client.get("/_health/ready")

        assert r.status_code == 200
        assert r.json()["status"] == "ready"

    def test_ledger_backlog_healthy(self, client, cash, revenue, post_entry):
        post_entry(date(2026, 1, 5), cash, revenue, "10")

        r = client.get("/_health/ledger")

        assert r.status_code == 200
        assert r.json()["missing_lines"] == 0

    def test_ledger_backlog_reports_missing_rows(self, client, company, cash, revenue, post_entry):
        entry = post_entry(date(2026, 1, 5), cash, revenue, "10")
        LedgerEntry.objects.filter(journal_entry=entry).delete()

        r = client.get("/_health/ledger")

        assert r.status_code == 503
        body = r.json()
        assert body["status"] == "degraded"
        assert body["companies"] == {company.slug: 2}
        assert JournalEntry.objects.get(pk=entry.pk).status == JournalEntry.Status.POSTED
