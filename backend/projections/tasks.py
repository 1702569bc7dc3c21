"""
Celery tasks for ledger maintenance.

Tasks:
- repair_company_ledger: Backfill missing rows and refold running balances
  for one company
- verify_all_ledgers: Periodic drift check for every active company;
  schedules a repair where drift is found

Usage:
    from projections.tasks import repair_company_ledger
    repair_company_ledger.delay(company_id=company.id)

    # verify_all_ledgers runs from CELERY_BEAT_SCHEDULE
"""
import logging
from decimal import Decimal
from typing import Optional

from celery import shared_task
from django.db import OperationalError

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    max_retries=3,
    default_retry_delay=60,
    autoretry_for=(OperationalError,),
    retry_backoff=True,
)
def repair_company_ledger(self, company_id: int, tolerance: Optional[str] = None) -> dict:
    """
    Backfill and repair the ledger of one company.

    Lock conflicts with concurrent postings are retried with backoff.

    Returns:
        Dict with backfilled entry count and correction count
    """
    from accounts.models import Company
    from projections.ledger import ledger_projection

    try:
        company = Company.objects.get(id=company_id)
    except Company.DoesNotExist:
        logger.error(f"Company {company_id} not found")
        return {"error": f"Company {company_id} not found"}

    backfilled = ledger_projection.backfill_missing(company)
    corrections = ledger_projection.repair(
        company,
        tolerance=Decimal(tolerance) if tolerance is not None else None,
    )

    logger.info(
        f"Ledger repair finished for {company.name}",
        extra={"company_id": company_id, "backfilled": backfilled, "corrections": len(corrections)},
    )
    return {
        "company_id": company_id,
        "backfilled_entries": backfilled,
        "corrections": len(corrections),
    }


@shared_task(bind=True)
def verify_all_ledgers(self) -> dict:
    """
    Verify running balances for all active companies.

    Designed to run periodically. Read-only; drifted companies get a
    repair_company_ledger task.
    """
    from accounts.models import Company
    from projections.ledger import ledger_projection

    results = {}
    for company in Company.objects.filter(is_active=True).order_by("id"):
        mismatches = ledger_projection.verify(company)
        results[company.slug] = len(mismatches)
        if mismatches:
            logger.warning(
                f"Ledger drift detected for {company.name}",
                extra={"company_id": company.id, "mismatches": len(mismatches)},
            )
            repair_company_ledger.delay(company_id=company.id)

    drifted = sum(1 for count in results.values() if count)
    logger.info(
        "Ledger verification complete",
        extra={"companies": len(results), "drifted": drifted},
    )
    return {"companies": len(results), "drifted": drifted, "mismatches": results}
