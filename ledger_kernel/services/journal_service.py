"""
JournalService -- the posting engine.

Responsibility:
    Validates and persists balanced journal entries, voids entries by
    creating a separate reversal entry, and gates posts and voids behind
    the approval policy.  Also provides the two standard fee postings
    (payment received, invoice raised) used by the receivables flows.

Architecture position:
    Kernel > Services -- imperative shell.  Consumes the pure line
    validation in domain/dtos.py and an injected ApprovalPolicy.

Invariants enforced:
    - Every entry written (including reversals) has Σdebit == Σcredit and
      one positive side per line.
    - Every line's account code resolves to an active account.
    - Entry and lines are persisted in one flush; on failure nothing is kept.
    - Void never deletes or edits lines: the original is flagged and a new
      VOID_REVERSAL entry carries the swapped lines.

Failure modes:
    - EmptyEntryError / InvalidLineError / UnbalancedEntryError.
    - AccountNotFoundError / AccountInactiveError.
    - EntryNotFoundError / EntryAlreadyVoidedError / CannotVoidReversalError /
      EntryPendingApprovalError on void.

Two layers of API:
    - ``post``, ``void``, ``record_payment``, ``record_invoice`` return
      result objects and own (or savepoint) the transaction.
    - ``post_entry``, ``void_entry`` and the line builders are flush-only
      and raise; receivables and credit services compose them inside their
      own transaction so that a GL failure rolls the whole operation back.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.domain.accounts import SystemAccounts
from ledger_kernel.domain.approval import (
    VOID_TRANSACTION_TYPE,
    ApprovalAction,
    ApprovalPolicy,
    ApprovalStatus,
)
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import (
    LineSpec,
    SubjectRefs,
    require_positive,
    validate_lines,
)
from ledger_kernel.exceptions import (
    AccountInactiveError,
    AccountNotFoundError,
    CannotVoidReversalError,
    EntryAlreadyVoidedError,
    EntryNotFoundError,
    EntryPendingApprovalError,
    MissingFieldError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.account import Account
from ledger_kernel.models.approval import ApprovalRequest
from ledger_kernel.models.journal import EntryType, JournalEntry, JournalLine
from ledger_kernel.services.base import BaseService, OperationResult
from ledger_kernel.utils.refs import generate_entry_ref

logger = get_logger("services.journal")


@dataclass(frozen=True)
class JournalPostResult(OperationResult):
    """Result of posting a journal entry."""

    entry_id: int | None = None
    entry_ref: str | None = None
    requires_approval: bool = False

    @classmethod
    def from_entry(cls, entry: JournalEntry) -> JournalPostResult:
        if entry.requires_approval and not entry.is_posted:
            message = (
                f"Journal entry created successfully. Awaiting approval (Ref: {entry.entry_ref})"
            )
        else:
            message = f"Journal entry posted successfully (Ref: {entry.entry_ref})"
        return cls(
            success=True,
            message=message,
            entry_id=entry.id,
            entry_ref=entry.entry_ref,
            requires_approval=not entry.is_posted,
        )


@dataclass(frozen=True)
class VoidResult(OperationResult):
    """Result of a void request."""

    entry_id: int | None = None
    reversal_entry_id: int | None = None
    requires_approval: bool = False
    approval_request_id: int | None = None


@dataclass(frozen=True)
class VoidOutcome:
    """What ``void_entry`` did: voided now, or deferred to approval."""

    entry: JournalEntry
    reversal: JournalEntry | None = None
    approval_request: ApprovalRequest | None = None

    @property
    def deferred(self) -> bool:
        return self.reversal is None


class JournalService(BaseService):
    """
    Posting engine over journal_entries / journal_entry_lines.

    Contract:
        Receives a Session, Clock, optional ApprovalPolicy and the system
        account codes.  With ``auto_commit=False`` it never commits, so a
        caller can make the GL write part of a larger transaction.

    Non-goals:
        - Does NOT edit posted entries; void is the only correction path.
        - Does NOT decide approval rules itself (see ApprovalPolicy).
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        approval_policy: ApprovalPolicy | None = None,
        system_accounts: SystemAccounts | None = None,
        auto_commit: bool = True,
    ):
        super().__init__(session, clock, auto_commit)
        self.approval_policy = approval_policy
        self.accounts = system_accounts or SystemAccounts()

    # =========================================================================
    # Public operations
    # =========================================================================

    def post(
        self,
        entry_date: date,
        entry_type: str,
        description: str,
        lines: Sequence[LineSpec],
        created_by_id: int,
        subject: SubjectRefs | None = None,
        requires_approval: bool = False,
    ) -> JournalPostResult:
        """Validate and persist a balanced journal entry."""
        return self._execute(
            "post_journal_entry",
            lambda: JournalPostResult.from_entry(
                self.post_entry(
                    entry_date=entry_date,
                    entry_type=entry_type,
                    description=description,
                    lines=lines,
                    created_by_id=created_by_id,
                    subject=subject,
                    requires_approval=requires_approval,
                )
            ),
            JournalPostResult,
        )

    def void(self, entry_id: int, reason: str, actor_id: int) -> VoidResult:
        """Void an entry by reversal, or defer the void to approval."""

        def work() -> VoidResult:
            outcome = self.void_entry(self.get_entry_or_raise(entry_id), reason, actor_id)
            if outcome.deferred:
                return VoidResult(
                    success=True,
                    message="Void request submitted for approval",
                    entry_id=entry_id,
                    requires_approval=True,
                    approval_request_id=outcome.approval_request.id,
                )
            return VoidResult(
                success=True,
                message="Journal entry voided and reversal entry created successfully",
                entry_id=entry_id,
                reversal_entry_id=outcome.reversal.id,
            )

        return self._execute("void_journal_entry", work, VoidResult)

    def record_payment(
        self,
        student_id: int,
        amount: int,
        payment_method: str,
        payment_date: date,
        created_by_id: int,
        description: str | None = None,
        source_ledger_txn_id: int | None = None,
    ) -> JournalPostResult:
        """Post a fee payment: Dr cash/bank (by method), Cr receivable."""
        return self._execute(
            "record_payment_entry",
            lambda: JournalPostResult.from_entry(
                self.post_payment_entry(
                    student_id=student_id,
                    amount=amount,
                    payment_method=payment_method,
                    payment_date=payment_date,
                    created_by_id=created_by_id,
                    description=description,
                    source_ledger_txn_id=source_ledger_txn_id,
                )
            ),
            JournalPostResult,
        )

    def record_invoice(
        self,
        student_id: int,
        items: Sequence[tuple[str | None, int, str]],
        invoice_date: date,
        created_by_id: int,
        description: str | None = None,
    ) -> JournalPostResult:
        """Post an invoice: Dr receivable, Cr one revenue line per item.

        ``items`` are ``(gl_account_code, amount, description)``; a missing
        code falls back to the default revenue account.
        """
        return self._execute(
            "record_invoice_entry",
            lambda: JournalPostResult.from_entry(
                self.post_invoice_entry(
                    student_id=student_id,
                    items=items,
                    invoice_date=invoice_date,
                    created_by_id=created_by_id,
                    description=description,
                )
            ),
            JournalPostResult,
        )

    # =========================================================================
    # Reads
    # =========================================================================

    def get_entry(self, entry_id: int) -> JournalEntry | None:
        return self.session.get(JournalEntry, entry_id)

    def get_entry_or_raise(self, entry_id: int) -> JournalEntry:
        entry = self.get_entry(entry_id)
        if entry is None:
            raise EntryNotFoundError(entry_id)
        return entry

    def find_reversal(self, entry_id: int) -> JournalEntry | None:
        return self.session.scalars(
            select(JournalEntry).where(JournalEntry.reversal_of_id == entry_id)
        ).first()

    def list_pending_approvals(self) -> list[ApprovalRequest]:
        """Open approval requests, oldest first."""
        return list(
            self.session.scalars(
                select(ApprovalRequest)
                .where(ApprovalRequest.status == ApprovalStatus.PENDING.value)
                .order_by(ApprovalRequest.created_at, ApprovalRequest.id)
            )
        )

    # =========================================================================
    # Flush-only primitives
    # =========================================================================

    def post_entry(
        self,
        entry_date: date,
        entry_type: str,
        description: str,
        lines: Sequence[LineSpec],
        created_by_id: int,
        subject: SubjectRefs | None = None,
        requires_approval: bool = False,
        reversal_of_id: int | None = None,
        source_ledger_txn_id: int | None = None,
        skip_approval: bool = False,
    ) -> JournalEntry:
        """
        Validate, resolve accounts, and flush a new entry with its lines.

        Preconditions: lines are balanced and reference active accounts.
        Postconditions: entry is flushed and has an id.  It is posted unless
            approval was requested by the caller or required by the policy,
            in which case it is PENDING with a POST approval request.

        Raises:
            LedgerValidationError, AccountError subclasses.
        """
        if not entry_type or not entry_type.strip():
            raise MissingFieldError("entry_type")
        if not description or not description.strip():
            raise MissingFieldError("description")

        total, _ = validate_lines(lines)
        accounts = self._resolve_accounts(line.account_code for line in lines)

        rule_name = None
        gated = requires_approval
        if not skip_approval and not gated and self.approval_policy is not None:
            evaluation = self.approval_policy.evaluate(entry_type, total, 0)
            gated = evaluation.needs_approval
            if evaluation.matched_rule is not None:
                rule_name = evaluation.matched_rule.rule_name

        subject = subject or SubjectRefs()
        now = self.clock.now_utc()
        entry = JournalEntry(
            entry_ref=generate_entry_ref(entry_type, now),
            entry_date=entry_date,
            entry_type=entry_type,
            description=description.strip(),
            student_id=subject.student_id,
            staff_id=subject.staff_id,
            term_id=subject.term_id,
            is_posted=not gated,
            is_voided=False,
            requires_approval=gated,
            approval_status=(ApprovalStatus.PENDING if gated else ApprovalStatus.APPROVED).value,
            reversal_of_id=reversal_of_id,
            source_ledger_txn_id=source_ledger_txn_id,
            created_by_id=created_by_id,
            created_at=now,
        )
        entry.lines = [
            JournalLine(
                line_number=number,
                account_id=accounts[line.account_code].id,
                debit_amount=line.debit_amount,
                credit_amount=line.credit_amount,
                description=line.description,
            )
            for number, line in enumerate(lines, start=1)
        ]
        self.session.add(entry)
        self.session.flush()

        if gated:
            request = ApprovalRequest(
                journal_entry_id=entry.id,
                action=ApprovalAction.POST.value,
                status=ApprovalStatus.PENDING.value,
                rule_name=rule_name,
                created_by_id=created_by_id,
                created_at=now,
            )
            self.session.add(request)
            self.session.flush()

        with LogContext.bind(entry_id=entry.id, actor_id=created_by_id):
            logger.info(
                "journal_entry_posted" if not gated else "journal_entry_pending_approval",
                extra={
                    "entry_ref": entry.entry_ref,
                    "entry_type": entry_type,
                    "total_amount": total,
                    "line_count": len(entry.lines),
                    "approval_rule": rule_name,
                },
            )
        return entry

    def void_entry(
        self,
        entry: JournalEntry,
        reason: str,
        actor_id: int,
        bypass_approval: bool = False,
    ) -> VoidOutcome:
        """
        Void ``entry`` or raise a VOID approval request for it.

        Args:
            bypass_approval: Skip the policy check.  Used when the void is
                itself the effect of an approved request, and by payment
                voids that cascade to their GL entry.
        """
        if not reason or not reason.strip():
            raise MissingFieldError("reason")
        if entry.is_voided:
            raise EntryAlreadyVoidedError(entry.id, entry.entry_ref)
        if entry.is_reversal:
            raise CannotVoidReversalError(entry.id, entry.entry_ref)
        if entry.approval_status == ApprovalStatus.PENDING.value:
            raise EntryPendingApprovalError(entry.id, entry.entry_ref)

        if not bypass_approval and self.approval_policy is not None:
            age_days = max((self.clock.today() - entry.entry_date).days, 0)
            evaluation = self.approval_policy.evaluate(
                VOID_TRANSACTION_TYPE, entry.total_debits, age_days
            )
            if evaluation.needs_approval:
                request = ApprovalRequest(
                    journal_entry_id=entry.id,
                    action=ApprovalAction.VOID.value,
                    status=ApprovalStatus.PENDING.value,
                    rule_name=evaluation.matched_rule.rule_name,
                    reason=reason.strip(),
                    created_by_id=actor_id,
                    created_at=self.clock.now_utc(),
                )
                entry.approval_status = ApprovalStatus.PENDING.value
                entry.updated_by_id = actor_id
                self.session.add(request)
                self.session.flush()
                logger.info(
                    "journal_void_deferred",
                    extra={
                        "entry_id": entry.id,
                        "entry_ref": entry.entry_ref,
                        "approval_rule": evaluation.matched_rule.rule_name,
                        "age_days": age_days,
                    },
                )
                return VoidOutcome(entry=entry, approval_request=request)

        reversal = self._reverse(entry, reason.strip(), actor_id)
        return VoidOutcome(entry=entry, reversal=reversal)

    def _reverse(self, entry: JournalEntry, reason: str, actor_id: int) -> JournalEntry:
        """Flag ``entry`` voided and post its mirror image."""
        now = self.clock.now_utc()
        entry.is_voided = True
        entry.voided_reason = reason
        entry.voided_by_id = actor_id
        entry.voided_at = now
        entry.updated_by_id = actor_id

        reversed_lines = [
            LineSpec(
                account_code=line.account.code,
                debit_amount=line.credit_amount,
                credit_amount=line.debit_amount,
                description=f"Reversal: {line.description or ''}".rstrip(),
            )
            for line in entry.lines
        ]
        reversal = self.post_entry(
            entry_date=self.clock.today(),
            entry_type=EntryType.VOID_REVERSAL.value,
            description=f"Void Reversal for Ref: {entry.entry_ref}. Reason: {reason}",
            lines=reversed_lines,
            created_by_id=actor_id,
            subject=SubjectRefs(
                student_id=entry.student_id,
                staff_id=entry.staff_id,
                term_id=entry.term_id,
            ),
            reversal_of_id=entry.id,
            source_ledger_txn_id=entry.source_ledger_txn_id,
            skip_approval=True,
        )
        logger.info(
            "journal_entry_voided",
            extra={
                "entry_id": entry.id,
                "entry_ref": entry.entry_ref,
                "reversal_entry_id": reversal.id,
                "reason": reason,
            },
        )
        return reversal

    def discard_unposted(self, entry: JournalEntry, reason: str, actor_id: int) -> JournalEntry:
        """
        Void an entry that never reached the ledger (pending POST approval).

        No reversal is written because the entry's lines were never counted.
        Any open approval requests on the entry are closed as REJECTED.
        """
        if entry.is_voided:
            raise EntryAlreadyVoidedError(entry.id, entry.entry_ref)
        now = self.clock.now_utc()
        entry.is_voided = True
        entry.voided_reason = reason
        entry.voided_by_id = actor_id
        entry.voided_at = now
        entry.approval_status = ApprovalStatus.REJECTED.value
        entry.updated_by_id = actor_id
        for request in self.session.scalars(
            select(ApprovalRequest).where(
                ApprovalRequest.journal_entry_id == entry.id,
                ApprovalRequest.status == ApprovalStatus.PENDING.value,
            )
        ).all():
            request.status = ApprovalStatus.REJECTED.value
            request.reviewed_by_id = actor_id
            request.reviewed_at = now
            request.review_notes = reason
        self.session.flush()
        logger.info(
            "journal_entry_discarded",
            extra={"entry_id": entry.id, "entry_ref": entry.entry_ref, "reason": reason},
        )
        return entry

    def payment_lines(self, amount: int, payment_method: str, description: str) -> list[LineSpec]:
        require_positive(amount, "Payment amount")
        return [
            LineSpec.debit(self.accounts.account_for_method(payment_method), amount, description),
            LineSpec.credit(self.accounts.receivable, amount, description),
        ]

    def invoice_lines(
        self, items: Sequence[tuple[str | None, int, str]], description: str
    ) -> list[LineSpec]:
        if not items:
            raise MissingFieldError("items")
        credit_lines = [
            LineSpec.credit(code or self.accounts.default_revenue, require_positive(amount), item_desc)
            for code, amount, item_desc in items
        ]
        total = sum(line.credit_amount for line in credit_lines)
        return [LineSpec.debit(self.accounts.receivable, total, description), *credit_lines]

    def post_payment_entry(
        self,
        student_id: int,
        amount: int,
        payment_method: str,
        payment_date: date,
        created_by_id: int,
        description: str | None = None,
        source_ledger_txn_id: int | None = None,
    ) -> JournalEntry:
        description = description or f"Fee payment received via {payment_method}"
        return self.post_entry(
            entry_date=payment_date,
            entry_type=EntryType.FEE_PAYMENT.value,
            description=description,
            lines=self.payment_lines(amount, payment_method, description),
            created_by_id=created_by_id,
            subject=SubjectRefs(student_id=student_id),
            source_ledger_txn_id=source_ledger_txn_id,
        )

    def post_invoice_entry(
        self,
        student_id: int,
        items: Sequence[tuple[str | None, int, str]],
        invoice_date: date,
        created_by_id: int,
        description: str | None = None,
        term_id: int | None = None,
    ) -> JournalEntry:
        description = description or "Fee invoice"
        return self.post_entry(
            entry_date=invoice_date,
            entry_type=EntryType.FEE_INVOICE.value,
            description=description,
            lines=self.invoice_lines(items, description),
            created_by_id=created_by_id,
            subject=SubjectRefs(student_id=student_id, term_id=term_id),
        )

    # =========================================================================
    # Internal
    # =========================================================================

    def _resolve_accounts(self, codes) -> dict[str, Account]:
        wanted = set(codes)
        found = {
            account.code: account
            for account in self.session.scalars(
                select(Account).where(Account.code.in_(wanted))
            )
        }
        for code in sorted(wanted):
            account = found.get(code)
            if account is None:
                raise AccountNotFoundError(code)
            if not account.is_active:
                raise AccountInactiveError(code)
        return found
