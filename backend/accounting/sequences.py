# accounting/sequences.py
"""
Per-company counters.

- "journal_entry": entry numbers handed out at posting time
- "ledger": insertion order of ledger rows, the tie-breaker after date
"""

from django.db import IntegrityError, transaction

from accounting.models import CompanySequence
from projections.write_barrier import command_writes_allowed

JOURNAL_ENTRY_SEQUENCE = "journal_entry"
LEDGER_SEQUENCE = "ledger"


def next_company_sequence(company, name: str, count: int = 1) -> int:
    """
    Reserve ``count`` consecutive values for a company/name pair and return
    the first one.

    The counter row is locked with select_for_update, so concurrent callers
    serialize on it. A missing row is inserted inside a savepoint; losing
    that race to another transaction falls back to the locked read.
    """
    with command_writes_allowed():
        try:
            seq = CompanySequence.objects.select_for_update().get(
                company=company,
                name=name,
            )
        except CompanySequence.DoesNotExist:
            try:
                with transaction.atomic():
                    seq = CompanySequence.objects.create(
                        company=company,
                        name=name,
                        next_value=1,
                    )
            except IntegrityError:
                seq = CompanySequence.objects.select_for_update().get(
                    company=company,
                    name=name,
                )

        value = seq.next_value
        seq.next_value = value + count
        seq.save(update_fields=["next_value", "updated_at"])
        return value


def format_entry_number(value: int) -> str:
    return f"JE-{value:06d}"
