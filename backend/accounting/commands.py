# accounting/commands.py
"""
Command layer for accounting operations.

Commands are the single point where business operations happen.
Views call commands; commands enforce rules and write the books.

Pattern:
1. Validate permissions (require)
2. Apply business policies (can_*)
3. Take row locks in the fixed order (entry -> period -> accounts)
4. Perform the operation (model changes + ledger projection)
5. Return CommandResult

Every command runs in one transaction. A failure raises a typed
LedgerError, the transaction rolls back, and the caller receives
CommandResult.fail(error). Nothing is half-written.
"""

from datetime import date as date_type
from functools import wraps
import logging

from django.conf import settings
from django.db import IntegrityError, OperationalError, connection, transaction
from django.utils import timezone

from accounts.authz import ActorContext, require
from accounting.errors import (
    ConcurrencyConflictError,
    LedgerError,
    NotFoundError,
    ValidationError,
)
from accounting.locking import find_period_for_date, lock_accounts
from accounting.models import Account, JournalEntry, JournalLine, SourceLink, ZERO
from accounting.policies import (
    can_change_account_type,
    can_delete_account,
    can_delete_entry,
    can_edit_entry,
    can_post_entry,
    can_post_to_period,
    can_set_parent,
    can_void_entry,
    check_account_postable,
    format_amount,
    parse_amount,
    period_rejection,
)
from accounting.sequences import JOURNAL_ENTRY_SEQUENCE, format_entry_number, next_company_sequence
from ops.metrics import journal_entries_total, lock_conflicts_total
from projections.ledger import ledger_projection
from projections.write_barrier import command_writes_allowed


logger = logging.getLogger(__name__)


class CommandResult:
    """
    Wrapper for command results with success/failure info.

    Usage:
        result = post_journal_entry(actor, entry_id)
        if result.success:
            entry = result.data
        else:
            error_message = result.error
            error_code = result.error_code
    """

    def __init__(self, success: bool, data=None, error: str = None, exception: LedgerError = None):
        self.success = success
        self.data = data
        self.error = error
        self.exception = exception

    @classmethod
    def ok(cls, data=None):
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error):
        if not isinstance(error, LedgerError):
            error = ValidationError(str(error))
        return cls(success=False, error=error.message, exception=error)

    @property
    def error_code(self):
        return self.exception.code if self.exception else None

    @property
    def details(self) -> list:
        return self.exception.details if self.exception else []

    def unwrap(self):
        """Return data, or raise the typed error the command failed with."""
        if not self.success:
            raise self.exception
        return self.data

    def __repr__(self):
        if self.success:
            return f"CommandResult.ok({self.data!r})"
        return f"CommandResult.fail({self.error_code}: {self.error})"


def command(func):
    """
    Run ``func`` in its own transaction and convert LedgerErrors into
    CommandResult.fail().

    A lock conflict (deadlock or lock timeout) is retried up to
    LEDGER_LOCK_RETRIES times when the command owns the outermost
    transaction. Inside a caller's transaction it fails at once with
    ConcurrencyConflictError.
    """

    @wraps(func)
    def wrapper(*args, **kwargs):
        if connection.in_atomic_block:
            attempts = 1
        else:
            attempts = max(1, int(getattr(settings, "LEDGER_LOCK_RETRIES", 3)))

        for attempt in range(1, attempts + 1):
            try:
                with transaction.atomic():
                    with command_writes_allowed():
                        return func(*args, **kwargs)
            except LedgerError as exc:
                logger.info(
                    f"{func.__name__} rejected: {exc.message}",
                    extra={"command": func.__name__, "error_code": exc.code},
                )
                return CommandResult.fail(exc)
            except OperationalError:
                logger.warning(
                    f"{func.__name__} hit a lock conflict",
                    exc_info=True,
                    extra={"command": func.__name__, "attempt": attempt, "attempts": attempts},
                )

        lock_conflicts_total.labels(command=func.__name__).inc()
        return CommandResult.fail(ConcurrencyConflictError(
            f"Could not complete {func.__name__} because the records are busy. Please retry."
        ))

    return wrapper


def _count(action: str) -> None:
    transaction.on_commit(lambda: journal_entries_total.labels(action=action).inc())


# =============================================================================
# Account Commands
# =============================================================================

def _get_account(actor: ActorContext, account_id, for_update: bool = False) -> Account:
    qs = Account.objects.filter(company=actor.company)
    if for_update:
        qs = qs.select_for_update()
    try:
        return qs.get(pk=account_id)
    except (Account.DoesNotExist, ValueError, TypeError):
        raise NotFoundError("Account not found.")


@command
def create_account(
    actor: ActorContext,
    code: str,
    name: str,
    account_type: str,
    parent_id: int = None,
    subtype: str = "",
    description: str = "",
) -> CommandResult:
    """
    Create a new account in the actor's company.

    Returns:
        CommandResult with the new Account
    """
    require(actor, "accounts.create")

    code = (code or "").strip()
    name = (name or "").strip()
    problems = []
    if not code:
        problems.append("code is required")
    if not name:
        problems.append("name is required")
    if account_type not in Account.AccountType.values:
        problems.append(f"invalid account type {account_type!r}")
    if code and Account.objects.filter(company=actor.company, code=code).exists():
        problems.append(f"account code {code} already exists")
    if problems:
        raise ValidationError("; ".join(problems), details=problems)

    account = Account(
        company=actor.company,
        code=code,
        name=name,
        account_type=account_type,
        subtype=subtype or "",
        description=description or "",
    )

    if parent_id is not None:
        parent = _get_account(actor, parent_id)
        allowed, reason = can_set_parent(actor, account, parent)
        if not allowed:
            raise ValidationError(reason)
        account.parent = parent

    account.save()

    logger.info(
        f"Account {account.code} created",
        extra={"company_id": actor.company.id, "account_id": account.id},
    )
    return CommandResult.ok(account)


@command
def update_account(actor: ActorContext, account_id: int, **updates) -> CommandResult:
    """
    Update an existing account.

    Accepted fields: code, name, account_type, subtype, description,
    status, parent_id. ``parent_id=None`` detaches the account.
    """
    require(actor, "accounts.update")
    account = _get_account(actor, account_id, for_update=True)

    allowed_fields = {"code", "name", "account_type", "subtype", "description", "status", "parent_id"}
    unknown = set(updates) - allowed_fields
    if unknown:
        raise ValidationError(f"Cannot update field(s): {', '.join(sorted(unknown))}")

    if "code" in updates:
        code = (updates["code"] or "").strip()
        if not code:
            raise ValidationError("code is required")
        if code != account.code:
            if account.ledger_entries.exists():
                raise ValidationError("Cannot change code of an account with transactions.")
            if Account.objects.filter(company=actor.company, code=code).exclude(pk=account.pk).exists():
                raise ValidationError(f"account code {code} already exists")
            account.code = code

    if "name" in updates:
        name = (updates["name"] or "").strip()
        if not name:
            raise ValidationError("name is required")
        account.name = name

    if "account_type" in updates and updates["account_type"] != account.account_type:
        if updates["account_type"] not in Account.AccountType.values:
            raise ValidationError(f"invalid account type {updates['account_type']!r}")
        allowed, reason = can_change_account_type(actor, account)
        if not allowed:
            raise ValidationError(reason)
        account.account_type = updates["account_type"]

    if "status" in updates:
        if updates["status"] not in Account.Status.values:
            raise ValidationError(f"invalid status {updates['status']!r}")
        account.status = updates["status"]

    for field in ("subtype", "description"):
        if field in updates:
            setattr(account, field, updates[field] or "")

    if "parent_id" in updates:
        parent = None
        if updates["parent_id"] is not None:
            parent = _get_account(actor, updates["parent_id"])
        allowed, reason = can_set_parent(actor, account, parent)
        if not allowed:
            raise ValidationError(reason)
        account.parent = parent

    account.save()
    return CommandResult.ok(account)


@command
def delete_account(actor: ActorContext, account_id: int) -> CommandResult:
    require(actor, "accounts.delete")
    account = _get_account(actor, account_id, for_update=True)

    allowed, reason = can_delete_account(actor, account)
    if not allowed:
        raise ValidationError(reason)

    code = account.code
    account.delete()
    logger.info(f"Account {code} deleted", extra={"company_id": actor.company.id})
    return CommandResult.ok({"code": code})


def get_or_create_retained_earnings(company) -> Account:
    """
    The company's retained earnings account, created on first use.

    Insert-if-absent: concurrent closes race on the (company, code) unique
    constraint and the loser reads the winner's row.
    """
    code = settings.RETAINED_EARNINGS_CODE
    account = Account.objects.filter(company=company, code=code).first()
    if account is None:
        try:
            with transaction.atomic(), command_writes_allowed():
                account = Account.objects.create(
                    company=company,
                    code=code,
                    name=settings.RETAINED_EARNINGS_NAME,
                    account_type=Account.AccountType.EQUITY,
                    subtype="retained_earnings",
                )
            logger.info(
                "Retained earnings account provisioned",
                extra={"company_id": company.id, "account_code": code},
            )
        except IntegrityError:
            account = Account.objects.get(company=company, code=code)

    if account.account_type != Account.AccountType.EQUITY:
        raise ValidationError(
            f"Account {code} is reserved for retained earnings but is a "
            f"{account.get_account_type_display().lower()} account."
        )
    return account


# =============================================================================
# Journal Entry Commands
# =============================================================================

def _get_entry(actor: ActorContext, entry_id, for_update: bool = False) -> JournalEntry:
    qs = JournalEntry.objects.filter(company=actor.company)
    if for_update:
        qs = qs.select_for_update()
    try:
        return qs.get(pk=entry_id)
    except (JournalEntry.DoesNotExist, ValueError, TypeError):
        raise NotFoundError("Journal entry not found.")


def _resolve_line_account(actor: ActorContext, line: dict):
    if line.get("account_id") is not None:
        ref = line["account_id"]
        try:
            return Account.objects.filter(company=actor.company, pk=ref).first(), ref
        except (ValueError, TypeError):
            return None, ref
    if line.get("account_code"):
        ref = line["account_code"]
        return Account.objects.filter(company=actor.company, code=ref).first(), ref
    return None, None


def _balance_problems(line_count: int, total_debit, total_credit) -> list:
    problems = []
    if line_count < 2:
        problems.append("entry must have at least 2 lines")
    if total_debit != total_credit:
        problems.append(
            f"entry not balanced: debit {format_amount(total_debit)} "
            f"≠ credit {format_amount(total_credit)}"
        )
    return problems


def _validate_lines(actor: ActorContext, lines) -> list:
    """
    Check every line and the entry as a whole.

    Returns the cleaned lines as (account, debit, credit, memo) tuples.
    Raises ValidationError listing every problem found, one per entry in
    ``details``, in line order.
    """
    problems = []
    cleaned = []
    total_debit = ZERO
    total_credit = ZERO

    for line_no, line in enumerate(lines or [], start=1):
        account, ref = _resolve_line_account(actor, line)
        if ref is None:
            problems.append(f"line {line_no}: account is required")
        elif account is None:
            problems.append(f"line {line_no}: account {ref} not found")

        try:
            debit = parse_amount(line.get("debit"))
            credit = parse_amount(line.get("credit"))
        except ValueError as exc:
            problems.append(f"line {line_no}: {exc}")
            continue

        if debit < ZERO or credit < ZERO:
            problems.append(f"line {line_no}: amounts cannot be negative")
        elif debit > ZERO and credit > ZERO:
            problems.append(f"line {line_no}: cannot have both debit and credit")
        elif debit == ZERO and credit == ZERO:
            problems.append(f"line {line_no}: must have either a debit or a credit")

        if account is not None:
            problem = check_account_postable(account, line_no)
            if problem:
                problems.append(problem)

        total_debit += debit
        total_credit += credit
        cleaned.append((account, debit, credit, (line.get("memo") or "")[:255]))

    problems.extend(_balance_problems(len(lines or []), total_debit, total_credit))

    if problems:
        raise ValidationError("; ".join(problems), details=problems)
    return cleaned


def _write_lines(entry: JournalEntry, cleaned) -> list:
    return [
        JournalLine.objects.create(
            entry=entry,
            company_id=entry.company_id,
            line_no=line_no,
            account=account,
            debit=debit,
            credit=credit,
            memo=memo,
        )
        for line_no, (account, debit, credit, memo) in enumerate(cleaned, start=1)
    ]


def _create_draft(
    actor: ActorContext,
    date: date_type,
    lines,
    memo: str = "",
    reference: str = "",
    source: SourceLink = None,
    entry_type: str = JournalEntry.EntryType.MANUAL,
) -> JournalEntry:
    if not date:
        raise ValidationError("date is required")
    cleaned = _validate_lines(actor, lines)

    entry = JournalEntry(
        company=actor.company,
        date=date,
        memo=(memo or "")[:255],
        reference=(reference or "")[:100],
        entry_type=entry_type,
        status=JournalEntry.Status.DRAFT,
        created_by=actor.user,
    )
    entry.source = source or SourceLink(kind=JournalEntry.SourceKind.MANUAL, source_id="")
    entry.save()
    _write_lines(entry, cleaned)
    return entry


@command
def create_draft(
    actor: ActorContext,
    date: date_type,
    lines,
    memo: str = "",
    reference: str = "",
    source: SourceLink = None,
) -> CommandResult:
    """
    Create a DRAFT journal entry.

    Args:
        actor: The actor context
        date: Accounting date of the entry
        lines: list of {"account_id" | "account_code", "debit", "credit", "memo"}
        source: Optional SourceLink to the business document behind the entry

    Returns:
        CommandResult with the draft JournalEntry, or a ValidationError
        whose details list every offending line
    """
    require(actor, "journal.create")
    entry = _create_draft(actor, date, lines, memo=memo, reference=reference, source=source)
    logger.info(
        "Journal entry draft created",
        extra={"company_id": actor.company.id, "entry_id": entry.id},
    )
    return CommandResult.ok(entry)


@command
def update_draft(actor: ActorContext, entry_id: int, **updates) -> CommandResult:
    """
    Edit a DRAFT entry. Accepted fields: date, memo, reference, lines.
    Passing ``lines`` replaces every line.
    """
    require(actor, "journal.update")
    entry = _get_entry(actor, entry_id, for_update=True)

    allowed, reason = can_edit_entry(actor, entry)
    if not allowed:
        raise ValidationError(reason)

    unknown = set(updates) - {"date", "memo", "reference", "lines"}
    if unknown:
        raise ValidationError(f"Cannot update field(s): {', '.join(sorted(unknown))}")

    if "date" in updates:
        if not updates["date"]:
            raise ValidationError("date is required")
        entry.date = updates["date"]
    if "memo" in updates:
        entry.memo = (updates["memo"] or "")[:255]
    if "reference" in updates:
        entry.reference = (updates["reference"] or "")[:100]

    if "lines" in updates:
        cleaned = _validate_lines(actor, updates["lines"])
        entry.lines.all().delete()
        entry.save()
        _write_lines(entry, cleaned)
    else:
        entry.save()

    return CommandResult.ok(entry)


@command
def delete_draft(actor: ActorContext, entry_id: int) -> CommandResult:
    require(actor, "journal.delete")
    entry = _get_entry(actor, entry_id, for_update=True)

    allowed, reason = can_delete_entry(actor, entry)
    if not allowed:
        raise ValidationError(reason)

    entry_pk = entry.pk
    entry.delete()
    logger.info("Journal entry draft deleted", extra={"company_id": actor.company.id, "entry_id": entry_pk})
    return CommandResult.ok({"id": entry_pk})


def _check_period_gate(company, on: date_type):
    """Lock the period containing ``on`` and refuse if it is not OPEN."""
    period = find_period_for_date(company, on, for_update=True)
    allowed, reason = can_post_to_period(period)
    if not allowed:
        raise period_rejection(period, reason)
    return period


def _post_locked(actor: ActorContext, entry: JournalEntry) -> JournalEntry:
    """
    Post a locked DRAFT entry: period gate, account locks, entry number,
    status change and ledger projection, all in the caller's transaction.
    """
    lines = list(entry.lines.select_related("account").order_by("line_no"))

    problems = []
    if not entry.is_system_generated:
        for line in lines:
            problem = check_account_postable(line.account, line.line_no)
            if problem:
                problems.append(problem)
    problems.extend(_balance_problems(
        len(lines),
        sum((line.debit for line in lines), ZERO),
        sum((line.credit for line in lines), ZERO),
    ))
    if problems:
        raise ValidationError("; ".join(problems), details=problems)

    _check_period_gate(entry.company, entry.date)
    lock_accounts(entry.company, [line.account_id for line in lines])

    entry.entry_number = format_entry_number(
        next_company_sequence(entry.company, JOURNAL_ENTRY_SEQUENCE)
    )
    entry.status = JournalEntry.Status.POSTED
    entry.posted_at = timezone.now()
    entry.posted_by = actor.user
    entry.save()

    ledger_projection.apply(entry, lines)
    _count("post")

    logger.info(
        f"Journal entry {entry.entry_number} posted",
        extra={
            "company_id": entry.company_id,
            "entry_id": entry.id,
            "entry_number": entry.entry_number,
            "date": str(entry.date),
            "lines": len(lines),
        },
    )
    return entry


@command
def post_journal_entry(actor: ActorContext, entry_id: int) -> CommandResult:
    """
    Post a DRAFT entry, making it affect account balances.

    Fails with PeriodClosedError / PeriodLockedError when the entry's date
    falls in a period that is not OPEN. Either the whole entry reaches the
    ledger or none of it does.
    """
    require(actor, "journal.post")
    entry = _get_entry(actor, entry_id, for_update=True)

    allowed, reason = can_post_entry(actor, entry)
    if not allowed:
        raise ValidationError(reason)

    return CommandResult.ok(_post_locked(actor, entry))


@command
def create_and_post(
    actor: ActorContext,
    date: date_type,
    lines,
    memo: str = "",
    reference: str = "",
    source: SourceLink = None,
) -> CommandResult:
    """Create a draft and post it in one transaction."""
    require(actor, "journal.create")
    require(actor, "journal.post")
    entry = _create_draft(actor, date, lines, memo=memo, reference=reference, source=source)
    return CommandResult.ok(_post_locked(actor, entry))


def _void_locked(actor: ActorContext, entry: JournalEntry, reversal_date: date_type = None) -> JournalEntry:
    """
    Append the reversing entry for a locked POSTED entry and mark it VOIDED.

    The reversal swaps every line's debit and credit. It is dated
    ``reversal_date``, or today when not given, and must pass the period
    gate for that date.
    """
    if reversal_date is None:
        reversal_date = timezone.localdate()

    reversal = JournalEntry(
        company=entry.company,
        date=reversal_date,
        reference=f"REV-{entry.entry_number}"[:100],
        memo=f"Reversal of {entry.entry_number}: {entry.memo}".rstrip(": ")[:255],
        entry_type=JournalEntry.EntryType.SYSTEM,
        status=JournalEntry.Status.DRAFT,
        reverses_entry=entry,
        created_by=actor.user,
    )
    reversal.source = SourceLink(kind=JournalEntry.SourceKind.VOID, source_id=str(entry.public_id))
    reversal.save()

    for line in entry.lines.order_by("line_no"):
        JournalLine.objects.create(
            entry=reversal,
            company_id=entry.company_id,
            line_no=line.line_no,
            account_id=line.account_id,
            debit=line.credit,
            credit=line.debit,
            memo=f"Reversal: {line.memo or entry.memo}".rstrip(": ")[:255],
        )

    _post_locked(actor, reversal)

    entry.status = JournalEntry.Status.VOIDED
    entry.voided_at = timezone.now()
    entry.voided_by = actor.user
    entry.save()
    _count("void")

    logger.info(
        f"Journal entry {entry.entry_number} voided by {reversal.entry_number}",
        extra={
            "company_id": entry.company_id,
            "entry_id": entry.id,
            "reversal_id": reversal.id,
            "reversal_date": str(reversal.date),
        },
    )
    return reversal


@command
def void_journal_entry(actor: ActorContext, entry_id: int) -> CommandResult:
    """
    Void a POSTED entry.

    Posted entries are never edited or deleted. Voiding appends a
    reversing entry dated today, links it to the original, and marks the
    original VOIDED. The original's period must still be OPEN, and so must
    the period containing today's date.

    Returns:
        CommandResult with the voided original; ``data.reversal_entry`` is
        the reversing entry
    """
    require(actor, "journal.void")
    entry = _get_entry(actor, entry_id, for_update=True)

    allowed, reason = can_void_entry(actor, entry)
    if not allowed:
        raise ValidationError(reason)

    if entry.entry_type == JournalEntry.EntryType.CLOSING:
        raise ValidationError("Closing entries are reversed by reopening their period.")

    _check_period_gate(entry.company, entry.date)
    _void_locked(actor, entry)
    return CommandResult.ok(entry)
