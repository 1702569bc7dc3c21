# projections/base.py
"""
Base classes for projections.

A projection derives a materialized view from posted journal entries.
Projections:
- Apply a posted entry inside the poster's transaction
- Can be rebuilt from scratch by replaying the posted journal
- Can verify their stored state against a fresh fold
"""

from abc import ABC, abstractmethod
from typing import List, Optional
import logging

from django.db import transaction

from accounts.models import Company
from projections.write_barrier import projection_writes_allowed


logger = logging.getLogger(__name__)


class BaseProjection(ABC):
    """
    Base class for all projections.

    Subclasses must implement:
    - name: Unique identifier for this projection
    - apply(entry): Project a single posted journal entry
    - posted_entries(company): The journal replayed by rebuild()

    Optional overrides:
    - _clear_projected_data(company): Wipe projected rows before rebuild
    - verify(company): Report drift between stored and derived state
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique name for this projection."""

    @abstractmethod
    def apply(self, entry, lines=None) -> list:
        """
        Project one posted journal entry.

        Runs inside the caller's transaction. Callers are responsible for
        holding the locks that make the projection race-free.
        """

    @abstractmethod
    def posted_entries(self, company: Company):
        """Entries to replay, in the order they were originally projected."""

    def rebuild(self, company: Company) -> int:
        """
        Rebuild this projection from scratch for a company.

        Returns:
            Number of journal entries replayed
        """
        with transaction.atomic():
            with projection_writes_allowed():
                self._clear_projected_data(company)

            replayed = 0
            for entry in self.posted_entries(company):
                self.apply(entry)
                replayed += 1

        logger.info(
            f"Projection {self.name} rebuilt for {company.name}",
            extra={"company_id": company.id, "entries": replayed},
        )
        return replayed

    def _clear_projected_data(self, company: Company) -> None:
        """
        Clear all projected data for rebuild.
        Subclasses should override this.
        """

    def verify(self, company: Company) -> list:
        """Return a list of mismatches. Empty means the projection is consistent."""
        return []


class ProjectionRegistry:
    """
    Registry of all projections.

    Usage:
        projection_registry.register(LedgerProjection())
        projection_registry.get("ledger").rebuild(company)
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._projections = {}
        return cls._instance

    def register(self, projection: BaseProjection) -> None:
        self._projections[projection.name] = projection

    def get(self, name: str) -> Optional[BaseProjection]:
        return self._projections.get(name)

    def all(self) -> List[BaseProjection]:
        return list(self._projections.values())

    def names(self) -> List[str]:
        return list(self._projections.keys())


# Global registry instance
projection_registry = ProjectionRegistry()
