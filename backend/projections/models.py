# projections/models.py
"""
Projection models (materialized views).

These tables are DERIVED from posted journal entries. They can be:
- Appended to as entries are posted or voided
- Repaired by refolding running balances
- Rebuilt from scratch from the posted journal

NEVER modify these tables directly. They are owned by the ledger projector.
"""

from decimal import Decimal

from django.db import models

from accounts.models import Company
from accounting.models import Account, JournalEntry, JournalLine
from projections.write_barrier import guard_write


PROJECTION_CONTEXTS = {"projection", "admin_emergency"}


class ProjectionOwnedModel(models.Model):
    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        guard_write(self.__class__.__name__, PROJECTION_CONTEXTS, "a projection-owned read model")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        guard_write(self.__class__.__name__, PROJECTION_CONTEXTS, "a projection-owned read model")
        return super().delete(*args, **kwargs)


class LedgerEntry(ProjectionOwnedModel):
    """
    One ledger line per posted journal line.

    Per account, rows are totally ordered by (date, sequence). ``sequence``
    is a per-company insertion counter, so same-day rows never tie.
    ``running_balance`` is the account balance, signed by the account's
    normal side, after this row.

    Append-only: a void appends rows for the reversing entry. Only the
    repair fold rewrites ``running_balance`` on existing rows.
    """

    company = models.ForeignKey(
        Company,
        on_delete=models.CASCADE,
        related_name="ledger_entries",
    )
    account = models.ForeignKey(
        Account,
        on_delete=models.PROTECT,
        related_name="ledger_entries",
    )
    journal_entry = models.ForeignKey(
        JournalEntry,
        on_delete=models.PROTECT,
        related_name="ledger_entries",
    )
    journal_line = models.OneToOneField(
        JournalLine,
        on_delete=models.PROTECT,
        related_name="ledger_entry",
    )

    date = models.DateField()
    sequence = models.BigIntegerField()

    debit = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    credit = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    running_balance = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))

    # Denormalized for listings
    account_code = models.CharField(max_length=20)
    entry_number = models.CharField(max_length=50, blank=True, default="")
    description = models.CharField(max_length=255, blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["company", "sequence"],
                name="uniq_ledger_sequence_per_company",
            ),
        ]
        indexes = [
            models.Index(fields=["company", "account", "date", "sequence"], name="ledger_account_order_idx"),
            models.Index(fields=["company", "date", "sequence"], name="ledger_company_order_idx"),
            models.Index(fields=["company", "journal_entry"], name="ledger_company_entry_idx"),
        ]
        ordering = ["date", "sequence"]

    def __str__(self):
        return f"{self.account_code} {self.date} #{self.sequence} -> {self.running_balance}"

    @property
    def movement(self) -> Decimal:
        """This row's effect on the running balance."""
        return self.account.signed_amount(self.debit, self.credit)
