# accounting/models.py
"""
Accounting WRITE MODELS.

All mutations go through the command layer (accounting/commands.py and
accounting/periods.py), which runs inside command_writes_allowed(). Direct
saves outside a command context are rejected.

Models:
- CompanySequence: Per-company counters (entry numbers, ledger order)
- Account: Chart of Accounts
- AccountingPeriod: Fiscal periods gating which dates may be posted
- JournalEntry: Journal entry headers
- JournalLine: Debit/credit lines
"""

from dataclasses import dataclass
from decimal import Decimal
import uuid

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import Q, Sum

from accounts.models import Company
from projections.write_barrier import guard_write


MONEY_Q = Decimal("0.01")
ZERO = Decimal("0.00")


COMMAND_CONTEXTS = {"command", "bootstrap", "admin_emergency"}


class CommandOwnedModel(models.Model):
    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        guard_write(self.__class__.__name__, COMMAND_CONTEXTS, "a command-owned write model")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        guard_write(self.__class__.__name__, COMMAND_CONTEXTS, "a command-owned write model")
        return super().delete(*args, **kwargs)


class CompanySequence(CommandOwnedModel):
    """
    Per-company counters for sequential identifiers.

    Used by commands to allocate unique numbers under concurrency.
    """

    company = models.ForeignKey(
        Company,
        on_delete=models.CASCADE,
        related_name="sequences",
    )
    name = models.CharField(max_length=100)
    next_value = models.BigIntegerField(default=1)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["company", "name"],
                name="uniq_company_sequence_name",
            ),
        ]

    def __str__(self):
        return f"{self.company_id}:{self.name}={self.next_value}"


class Account(CommandOwnedModel):
    """
    Chart of Accounts entry.

    ``balance`` is an advisory cache refreshed from the ledger fold after
    each projection. The ledger is the source of truth.
    """

    class AccountType(models.TextChoices):
        ASSET = "ASSET", "Asset"
        LIABILITY = "LIABILITY", "Liability"
        EQUITY = "EQUITY", "Equity"
        REVENUE = "REVENUE", "Revenue"
        EXPENSE = "EXPENSE", "Expense"

    class NormalBalance(models.TextChoices):
        DEBIT = "DEBIT", "Debit"
        CREDIT = "CREDIT", "Credit"

    class Status(models.TextChoices):
        ACTIVE = "ACTIVE", "Active"
        INACTIVE = "INACTIVE", "Inactive"

    NORMAL_BALANCE_MAP = {
        AccountType.ASSET: NormalBalance.DEBIT,
        AccountType.LIABILITY: NormalBalance.CREDIT,
        AccountType.EQUITY: NormalBalance.CREDIT,
        AccountType.REVENUE: NormalBalance.CREDIT,
        AccountType.EXPENSE: NormalBalance.DEBIT,
    }

    company = models.ForeignKey(
        Company,
        on_delete=models.CASCADE,
        related_name="accounts",
    )
    public_id = models.UUIDField(default=uuid.uuid4, editable=False, unique=True)

    code = models.CharField(max_length=20)
    name = models.CharField(max_length=255)
    account_type = models.CharField(max_length=20, choices=AccountType.choices)
    subtype = models.CharField(max_length=50, blank=True, default="")
    normal_balance = models.CharField(
        max_length=10,
        choices=NormalBalance.choices,
        editable=False,
    )
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.ACTIVE,
    )

    parent = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="children",
    )

    description = models.TextField(blank=True, default="")

    balance = models.DecimalField(max_digits=18, decimal_places=2, default=ZERO)
    balance_refreshed_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["company", "code"],
                name="uniq_account_code_per_company",
            )
        ]
        ordering = ["code"]
        indexes = [
            models.Index(fields=["company", "account_type"], name="acct_company_type_idx"),
            models.Index(fields=["company", "parent"], name="acct_company_parent_idx"),
        ]

    def __str__(self):
        return f"{self.code} - {self.name}"

    @property
    def is_debit_normal(self) -> bool:
        return self.normal_balance == self.NormalBalance.DEBIT

    @property
    def is_postable(self) -> bool:
        return self.status == self.Status.ACTIVE

    def signed_amount(self, debit: Decimal, credit: Decimal) -> Decimal:
        """Movement of this account for a debit/credit pair, in its normal-side terms."""
        if self.is_debit_normal:
            return debit - credit
        return credit - debit

    def would_create_cycle(self, parent: "Account | None") -> bool:
        """True if making ``parent`` this account's parent would close a loop."""
        if parent is None:
            return False
        if self.pk is None:
            return False
        seen = set()
        current = parent
        while current is not None:
            if current.pk == self.pk:
                return True
            if current.pk in seen:
                return True
            seen.add(current.pk)
            current = current.parent
        return False

    def clean(self):
        if self.parent_id:
            if self.parent.company_id != self.company_id:
                raise ValidationError("Parent account must belong to the same company.")
            if self.would_create_cycle(self.parent):
                raise ValidationError("Setting this parent would create a cycle in the account tree.")

    def save(self, *args, **kwargs):
        self.normal_balance = self.NORMAL_BALANCE_MAP.get(
            self.account_type,
            self.NormalBalance.DEBIT,
        )
        self.clean()
        super().save(*args, **kwargs)

    def get_ancestors(self) -> list["Account"]:
        """Returns list of ancestor accounts from root to immediate parent."""
        ancestors = []
        current = self.parent
        while current:
            ancestors.insert(0, current)
            current = current.parent
        return ancestors


class AccountingPeriod(CommandOwnedModel):
    """
    A fiscal period for one company.

    State machine: OPEN -> CLOSED -> OPEN (reopen), CLOSED -> LOCKED (final).
    Periods of one company never overlap.
    """

    class PeriodType(models.TextChoices):
        MONTHLY = "MONTHLY", "Monthly"
        QUARTERLY = "QUARTERLY", "Quarterly"
        ANNUAL = "ANNUAL", "Annual"

    class Status(models.TextChoices):
        OPEN = "OPEN", "Open"
        CLOSED = "CLOSED", "Closed"
        LOCKED = "LOCKED", "Locked"

    company = models.ForeignKey(
        Company,
        on_delete=models.CASCADE,
        related_name="accounting_periods",
    )
    public_id = models.UUIDField(default=uuid.uuid4, editable=False, unique=True)

    name = models.CharField(max_length=100)
    period_type = models.CharField(max_length=20, choices=PeriodType.choices)
    fiscal_year = models.PositiveIntegerField(
        validators=[MinValueValidator(1900), MaxValueValidator(2100)],
    )
    start_date = models.DateField()
    end_date = models.DateField()
    status = models.CharField(
        max_length=10,
        choices=Status.choices,
        default=Status.OPEN,
    )

    closed_at = models.DateTimeField(null=True, blank=True)
    closed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="closed_periods",
    )
    closing_entry = models.ForeignKey(
        "JournalEntry",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="+",
    )
    notes = models.CharField(max_length=500, blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["company", "start_date", "end_date"],
                name="uniq_period_range_per_company",
            ),
            models.CheckConstraint(
                condition=Q(end_date__gt=models.F("start_date")),
                name="chk_period_end_after_start",
            ),
        ]
        indexes = [
            models.Index(fields=["company", "start_date", "end_date"], name="period_company_range_idx"),
            models.Index(fields=["company", "status"], name="period_company_status_idx"),
        ]
        ordering = ["start_date"]

    def __str__(self):
        return f"{self.name} ({self.start_date} to {self.end_date}) {self.status}"

    def contains_date(self, value) -> bool:
        return self.start_date <= value <= self.end_date

    @property
    def is_open(self) -> bool:
        return self.status == self.Status.OPEN

    @property
    def range_label(self) -> str:
        return f"{self.start_date.isoformat()} to {self.end_date.isoformat()}"


@dataclass(frozen=True)
class SourceLink:
    """Tagged link from a journal entry to the document that produced it."""

    kind: str
    source_id: str

    def as_dict(self) -> dict:
        return {"kind": self.kind, "source_id": self.source_id}


class JournalEntry(CommandOwnedModel):
    """
    Journal Entry header.

    Workflow: DRAFT -> POSTED -> VOIDED
    - DRAFT: mutable, not yet in the ledger
    - POSTED: immutable, projected into the ledger
    - VOIDED: immutable, cancelled by a linked reversing entry
    """

    class Status(models.TextChoices):
        DRAFT = "DRAFT", "Draft"
        POSTED = "POSTED", "Posted"
        VOIDED = "VOIDED", "Voided"

    class EntryType(models.TextChoices):
        MANUAL = "MANUAL", "Manual"
        SYSTEM = "SYSTEM", "System"
        CLOSING = "CLOSING", "Closing"

    class SourceKind(models.TextChoices):
        MANUAL = "manual", "Manual"
        INVOICE = "invoice", "Invoice"
        BILL = "bill", "Bill"
        PAYMENT = "payment", "Payment"
        PERIOD_CLOSE = "period_close", "Period close"
        VOID = "void", "Void"

    company = models.ForeignKey(
        Company,
        on_delete=models.CASCADE,
        related_name="journal_entries",
    )
    public_id = models.UUIDField(default=uuid.uuid4, editable=False, unique=True)

    entry_number = models.CharField(
        max_length=50,
        blank=True,
        default="",
        help_text="Allocated when the entry is posted",
    )
    date = models.DateField()
    reference = models.CharField(max_length=100, blank=True, default="")
    memo = models.CharField(max_length=255, blank=True, default="")

    entry_type = models.CharField(
        max_length=20,
        choices=EntryType.choices,
        default=EntryType.MANUAL,
    )
    status = models.CharField(
        max_length=12,
        choices=Status.choices,
        default=Status.DRAFT,
    )

    # Tagged source link {kind, source_id}
    source_kind = models.CharField(
        max_length=20,
        choices=SourceKind.choices,
        blank=True,
        default="",
    )
    source_id = models.CharField(max_length=100, blank=True, default="")

    closes_period = models.ForeignKey(
        AccountingPeriod,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="closing_entries",
    )

    posted_at = models.DateTimeField(null=True, blank=True)
    posted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="posted_journal_entries",
    )

    voided_at = models.DateTimeField(null=True, blank=True)
    voided_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="voided_journal_entries",
    )
    reverses_entry = models.OneToOneField(
        "self",
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="reversal_entry",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="created_journal_entries",
    )
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["company", "entry_number"],
                condition=~Q(entry_number=""),
                name="uniq_entry_number_per_company",
            ),
            # At most one live closing entry per period.
            models.UniqueConstraint(
                fields=["closes_period"],
                condition=Q(entry_type="CLOSING") & Q(status__in=["DRAFT", "POSTED"]),
                name="uniq_live_closing_entry_per_period",
            ),
        ]
        indexes = [
            models.Index(fields=["company", "date", "id"], name="je_company_date_idx"),
            models.Index(fields=["company", "status"], name="je_company_status_idx"),
            models.Index(fields=["company", "entry_type"], name="je_company_type_idx"),
            models.Index(fields=["company", "source_kind", "source_id"], name="je_company_source_idx"),
        ]
        ordering = ["-date", "-id"]

    def __str__(self):
        num = self.entry_number or f"#{self.id}"
        return f"JE {num} ({self.date}) {self.status}"

    @property
    def source(self) -> SourceLink | None:
        if not self.source_kind:
            return None
        return SourceLink(kind=self.source_kind, source_id=self.source_id)

    @source.setter
    def source(self, link: SourceLink | None) -> None:
        if link is None:
            self.source_kind = ""
            self.source_id = ""
        else:
            self.source_kind = link.kind
            self.source_id = str(link.source_id)

    @property
    def is_draft(self) -> bool:
        return self.status == self.Status.DRAFT

    @property
    def is_system_generated(self) -> bool:
        """Closing entries and reversals; they may touch deactivated accounts."""
        return self.entry_type == self.EntryType.CLOSING or self.reverses_entry_id is not None

    @property
    def total_debit(self) -> Decimal:
        return self.lines.aggregate(total=Sum("debit"))["total"] or ZERO

    @property
    def total_credit(self) -> Decimal:
        return self.lines.aggregate(total=Sum("credit"))["total"] or ZERO

    @property
    def is_balanced(self) -> bool:
        return self.total_debit == self.total_credit


class JournalLine(CommandOwnedModel):
    """
    Individual line within a journal entry.
    Each line affects one account with either a debit or a credit amount.
    """

    entry = models.ForeignKey(
        JournalEntry,
        on_delete=models.CASCADE,
        related_name="lines",
    )
    company = models.ForeignKey(
        Company,
        on_delete=models.CASCADE,
        related_name="journal_lines",
    )
    public_id = models.UUIDField(default=uuid.uuid4, editable=False, unique=True)

    line_no = models.PositiveIntegerField()
    account = models.ForeignKey(
        Account,
        on_delete=models.PROTECT,
        related_name="journal_lines",
    )
    memo = models.CharField(max_length=255, blank=True, default="")

    debit = models.DecimalField(max_digits=18, decimal_places=2, default=ZERO)
    credit = models.DecimalField(max_digits=18, decimal_places=2, default=ZERO)

    class Meta:
        ordering = ["entry", "line_no"]
        constraints = [
            models.UniqueConstraint(
                fields=["entry", "line_no"],
                name="uniq_journal_line_no",
            ),
            models.CheckConstraint(
                condition=~(Q(debit__gt=0) & Q(credit__gt=0)),
                name="chk_line_not_both_debit_credit",
            ),
            models.CheckConstraint(
                condition=~(Q(debit__exact=0) & Q(credit__exact=0)),
                name="chk_line_not_both_zero",
            ),
            models.CheckConstraint(
                condition=Q(debit__gte=0) & Q(credit__gte=0),
                name="chk_line_non_negative",
            ),
        ]
        indexes = [
            models.Index(fields=["company", "entry"], name="jl_company_entry_idx"),
        ]

    def __str__(self):
        return f"JE#{self.entry_id} L{self.line_no}"

    def save(self, *args, **kwargs):
        if self.entry_id and self.company_id and self.entry.company_id != self.company_id:
            raise ValidationError("JournalLine company must match entry company.")
        if self.account_id and self.company_id and self.account.company_id != self.company_id:
            raise ValidationError("JournalLine company must match account company.")
        super().save(*args, **kwargs)

    @property
    def amount(self) -> Decimal:
        return self.debit if self.debit > 0 else self.credit

    @property
    def is_debit(self) -> bool:
        return self.debit > 0
