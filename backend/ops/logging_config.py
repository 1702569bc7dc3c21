"""
Logging setup for the ledger services.

LOG_FORMAT picks the output: "json" (one object per line, the default
outside DEBUG) or "console". LOG_LEVEL sets the level for the root and
application loggers.

Commands log with ``extra={...}``. In JSON output the ledger context keys
(company, entry, period, command) sit at the top level of each line so log
queries can filter on them; any other extra field goes under "extra".
"""
import json
import logging
import os
from datetime import datetime, timezone

APP_LOGGERS = ("accounts", "accounting", "projections", "ops", "celery")

# extra= keys promoted to the top level of a JSON line
CONTEXT_FIELDS = (
    "company_id",
    "entry_id",
    "entry_number",
    "period_id",
    "command",
    "error_code",
)

_RECORD_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime", "taskName"}


def get_logging_config(debug: bool = False) -> dict:
    """Build the Django LOGGING dict."""
    log_level = os.environ.get("LOG_LEVEL", "DEBUG" if debug else "INFO")
    log_format = os.environ.get("LOG_FORMAT", "console" if debug else "json")

    if log_format == "json":
        formatters = {"json": {"()": "ops.logging_config.JsonFormatter"}}
        console = {
            "class": "logging.StreamHandler",
            "formatter": "json",
            "stream": "ext://sys.stdout",
        }
    else:
        formatters = {
            "verbose": {
                "format": "[{asctime}] {levelname} {name} {message}",
                "style": "{",
            },
        }
        console = {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        }

    loggers = {
        "": {"handlers": ["console"], "level": log_level},
        "django": {"handlers": ["console"], "level": log_level, "propagate": False},
        "django.request": {
            "handlers": ["console"],
            "level": log_level if debug else "ERROR",
            "propagate": False,
        },
        # SQL only in DEBUG
        "django.db.backends": {
            "handlers": ["console"] if debug else ["null"],
            "level": "DEBUG" if debug else "INFO",
            "propagate": False,
        },
    }
    for name in APP_LOGGERS:
        loggers[name] = {"handlers": ["console"], "level": log_level, "propagate": False}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": formatters,
        "handlers": {
            "console": console,
            "null": {"class": "logging.NullHandler"},
        },
        "loggers": loggers,
    }


class JsonFormatter(logging.Formatter):
    """
    One JSON object per record.

    Fields: timestamp (UTC, from the record's creation time), level, logger,
    message, location, the CONTEXT_FIELDS that were passed, "extra" for
    the remaining extra= keys and "exception" when exc_info is set.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.lineno}",
        }

        extras = {}
        for key, value in record.__dict__.items():
            if key in _RECORD_ATTRS:
                continue
            if key in CONTEXT_FIELDS:
                entry[key] = value
            else:
                extras[key] = value
        if extras:
            entry["extra"] = extras

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        # Decimal amounts and dates become strings
        return json.dumps(entry, default=str)
