"""
Payment Service -- records, voids and reprints fee payments.

Thin glue layer that:
1. Calls ReplayGuard so a retried request returns the first result
2. Writes the legacy LedgerTransaction mirror row and its Receipt
3. Calls InvoiceAllocator to spread the payment over invoices
4. Records any unapplied remainder as student credit
5. Calls the kernel JournalService for the GL entry

All of it happens in one transaction: if the GL posting (or anything
before it) fails, no mirror row, receipt, allocation, invoice update or
credit row survives.

Usage:
    service = PaymentService(session, clock)
    result = service.record_payment(
        student_id=7, amount=20000, payment_method="MPESA",
        transaction_date=date(2026, 1, 15), created_by_id=1,
        payment_reference="QK12AB", idempotency_key="mpesa-QK12AB",
    )
    result.transaction_ref   # "TXN-20260115-..."
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_engines.allocation import AllocationEngine, AllocationStrategy
from ledger_engines.credit import CreditTransactionType
from ledger_kernel.domain.accounts import SystemAccounts
from ledger_kernel.domain.approval import ApprovalPolicy
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import require_positive
from ledger_kernel.exceptions import (
    MissingFieldError,
    ReceiptNotFoundError,
    StudentNotFoundError,
    TransactionAlreadyVoidedError,
    TransactionNotFoundError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.journal import JournalEntry
from ledger_kernel.models.student import Student
from ledger_kernel.services.base import BaseService, OperationResult
from ledger_kernel.services.journal_service import JournalService
from ledger_kernel.utils.idempotency import DEFAULT_MAX_KEY_LENGTH
from ledger_kernel.utils.refs import generate_receipt_number, generate_transaction_ref
from ledger_modules.credit.orm import CreditTransactionModel
from ledger_modules.credit.service import CreditService
from ledger_modules.receivables.allocator import InvoiceAllocator
from ledger_modules.receivables.idempotency import (
    DEFAULT_REPLAY_WINDOW_SECONDS,
    ReplayGuard,
)
from ledger_modules.receivables.models import (
    AppliedAllocation,
    DebitCredit,
    TransactionType,
)
from ledger_modules.receivables.orm import LedgerTransactionModel, ReceiptModel

logger = get_logger("modules.receivables.payment")

MAX_HISTORY_PAGE = 500


@dataclass(frozen=True)
class PaymentResult(OperationResult):
    """Result of recording a payment (fresh or replayed)."""

    transaction_id: int | None = None
    transaction_ref: str | None = None
    receipt_number: str | None = None
    journal_entry_id: int | None = None
    allocations: tuple[AppliedAllocation, ...] = ()
    credited_amount: int = 0
    requires_approval: bool = False
    replayed: bool = False

    @property
    def total_applied(self) -> int:
        return sum(a.amount_applied for a in self.allocations)


@dataclass(frozen=True)
class PaymentVoidResult(OperationResult):
    """Result of voiding a payment."""

    transaction_id: int | None = None
    reversal_transaction_id: int | None = None
    reversal_entry_id: int | None = None
    amount_unallocated: int = 0
    credit_adjustment: int = 0


@dataclass(frozen=True)
class ReceiptPrintResult(OperationResult):
    receipt_id: int | None = None
    receipt_number: str | None = None
    print_count: int = 0


@dataclass(frozen=True)
class PaymentRecord:
    """Read model of a ledger transaction for payment history."""

    id: int
    transaction_ref: str
    transaction_date: date
    transaction_type: str
    amount: int
    payment_method: str | None
    payment_reference: str | None
    invoice_id: int | None
    journal_entry_id: int | None
    receipt_number: str | None
    is_voided: bool
    voided_reason: str | None
    created_at: datetime

    @classmethod
    def from_model(cls, txn: LedgerTransactionModel) -> PaymentRecord:
        return cls(
            id=txn.id,
            transaction_ref=txn.transaction_ref,
            transaction_date=txn.transaction_date,
            transaction_type=txn.transaction_type,
            amount=txn.amount,
            payment_method=txn.payment_method,
            payment_reference=txn.payment_reference,
            invoice_id=txn.invoice_id,
            journal_entry_id=txn.journal_entry_id,
            receipt_number=txn.receipt.receipt_number if txn.receipt else None,
            is_voided=txn.is_voided,
            voided_reason=txn.voided_reason,
            created_at=txn.created_at,
        )


def _replay_result(txn: LedgerTransactionModel, message: str) -> PaymentResult:
    return PaymentResult(
        success=True,
        message=message,
        transaction_id=txn.id,
        transaction_ref=txn.transaction_ref,
        receipt_number=txn.receipt.receipt_number if txn.receipt else None,
        journal_entry_id=txn.journal_entry_id,
        replayed=True,
    )


class PaymentService(BaseService):
    """
    Fee payment flows over the receivables tables and the GL.

    Engine composition:
    - ReplayGuard: explicit-key and fuzzy replay detection
    - InvoiceAllocator (AllocationEngine): payment-to-invoice application
    - CreditService (flush-only primitives): overpayment credit and refunds
    - JournalService (auto_commit=False): GL postings and reversals
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        system_accounts: SystemAccounts | None = None,
        approval_policy: ApprovalPolicy | None = None,
        allocation_strategy: AllocationStrategy | None = None,
        replay_window_seconds: int = DEFAULT_REPLAY_WINDOW_SECONDS,
        max_key_length: int = DEFAULT_MAX_KEY_LENGTH,
        auto_commit: bool = True,
    ):
        super().__init__(session, clock, auto_commit)
        self.accounts = system_accounts or SystemAccounts()
        self._journal = JournalService(
            session,
            clock=self.clock,
            approval_policy=approval_policy,
            system_accounts=self.accounts,
            auto_commit=False,
        )
        self._credit = CreditService(
            session,
            clock=self.clock,
            system_accounts=self.accounts,
            approval_policy=approval_policy,
            allocation_strategy=allocation_strategy,
            replay_window_seconds=replay_window_seconds,
            auto_commit=False,
        )
        self._allocator = InvoiceAllocator(
            session, self.clock, AllocationEngine(allocation_strategy)
        )
        self._guard = ReplayGuard(
            session,
            self.clock,
            window_seconds=replay_window_seconds,
            max_key_length=max_key_length,
        )

    # =========================================================================
    # Record
    # =========================================================================

    def record_payment(
        self,
        student_id: int,
        amount: int,
        payment_method: str,
        transaction_date: date,
        created_by_id: int,
        payment_reference: str | None = None,
        description: str | None = None,
        term_id: int | None = None,
        invoice_id: int | None = None,
        idempotency_key: str | None = None,
    ) -> PaymentResult:
        """
        Record a fee payment.

        Without ``invoice_id`` the payment is applied to outstanding
        invoices oldest due date first; any remainder becomes a
        CREDIT_RECEIVED row.  With ``invoice_id`` it must fit that invoice.

        A request carrying a known ``idempotency_key``, or matching an
        unkeyed payment recorded inside the replay window, returns the
        original transaction and writes nothing.
        """

        def work() -> PaymentResult:
            require_positive(amount, "Payment amount")
            if not payment_method or not payment_method.strip():
                raise MissingFieldError("payment_method")
            if transaction_date is None:
                raise MissingFieldError("transaction_date")
            if self.session.get(Student, student_id) is None:
                raise StudentNotFoundError(student_id)

            method = payment_method.strip().upper()
            reference = (payment_reference or "").strip() or None
            key = self._guard.normalize_key(idempotency_key)

            if key is not None:
                existing = self._guard.find_by_key(key)
                if existing is not None:
                    return _replay_result(
                        existing, "Idempotent replay detected; returning existing transaction"
                    )
            else:
                existing = self._guard.find_payment_replay(
                    student_id=student_id,
                    amount=amount,
                    transaction_date=transaction_date,
                    transaction_type=TransactionType.FEE_PAYMENT.value,
                    payment_method=method,
                    payment_reference=reference,
                    created_by_id=created_by_id,
                    invoice_id=invoice_id,
                )
                if existing is not None:
                    return _replay_result(
                        existing, "Idempotent replay detected; returning existing transaction"
                    )

            if invoice_id is not None:
                self._allocator.load_target(invoice_id, student_id, amount)

            now = self.clock.now_utc()
            txn = LedgerTransactionModel(
                transaction_ref=generate_transaction_ref(now),
                transaction_date=transaction_date,
                transaction_type=TransactionType.FEE_PAYMENT.value,
                student_id=student_id,
                amount=amount,
                debit_credit=DebitCredit.CREDIT.value,
                payment_method=method,
                payment_reference=reference,
                description=(description or "").strip() or None,
                term_id=term_id,
                invoice_id=invoice_id,
                idempotency_key=key,
                created_by_id=created_by_id,
                created_at=now,
            )
            try:
                with self.session.begin_nested():
                    self.session.add(txn)
                    self.session.flush()
            except IntegrityError:
                # Another request stored the same key first
                existing = self._guard.find_by_key(key) if key is not None else None
                if existing is None:
                    raise
                return _replay_result(
                    existing, "Idempotent replay detected; returning existing transaction"
                )

            receipt = ReceiptModel(
                receipt_number=generate_receipt_number(now),
                transaction_id=txn.id,
                receipt_date=transaction_date,
                student_id=student_id,
                amount=amount,
                payment_method=method,
                payment_reference=reference,
                created_by_id=created_by_id,
                created_at=now,
            )
            self.session.add(receipt)
            self.session.flush()

            outcome = self._allocator.apply_payment(
                student_id, amount, transaction_id=txn.id, target_invoice_id=invoice_id
            )
            if outcome.remainder > 0:
                self._credit.record_credit(
                    student_id=student_id,
                    amount=outcome.remainder,
                    transaction_type=CreditTransactionType.CREDIT_RECEIVED.value,
                    actor_id=created_by_id,
                    notes=f"Overpayment from {txn.transaction_ref}",
                    source_transaction_id=txn.id,
                )
                self._credit.sync_cache(student_id)

            entry = self._journal.post_payment_entry(
                student_id=student_id,
                amount=amount,
                payment_method=method,
                payment_date=transaction_date,
                created_by_id=created_by_id,
                description=txn.description,
                source_ledger_txn_id=txn.id,
            )
            txn.journal_entry_id = entry.id
            self.session.flush()

            with LogContext.bind(student_id=student_id, actor_id=created_by_id):
                logger.info(
                    "payment_recorded",
                    extra={
                        "transaction_ref": txn.transaction_ref,
                        "receipt_number": receipt.receipt_number,
                        "amount": amount,
                        "payment_method": method,
                        "total_applied": outcome.total_applied,
                        "credited_amount": outcome.remainder,
                        "journal_entry_id": entry.id,
                    },
                )
            return PaymentResult(
                success=True,
                message="Payment recorded successfully",
                transaction_id=txn.id,
                transaction_ref=txn.transaction_ref,
                receipt_number=receipt.receipt_number,
                journal_entry_id=entry.id,
                allocations=outcome.applied_allocations,
                credited_amount=outcome.remainder,
                requires_approval=not entry.is_posted,
            )

        return self._execute("record_payment", work, PaymentResult)

    # =========================================================================
    # Void
    # =========================================================================

    def void_payment(self, transaction_id: int, reason: str, actor_id: int) -> PaymentVoidResult:
        """
        Void a payment and everything it caused.

        Invoice allocations are taken back exactly, credit created by the
        payment is refunded (up to the balance still available), credit
        spent by a credit payment is restored, a REFUND mirror row is
        written, and the GL entry is reversed.
        """

        def work() -> PaymentVoidResult:
            if not reason or not reason.strip():
                raise MissingFieldError("reason")
            txn = self.session.get(LedgerTransactionModel, transaction_id)
            if txn is None or txn.transaction_type == TransactionType.REFUND.value:
                raise TransactionNotFoundError(transaction_id)
            if txn.is_voided:
                raise TransactionAlreadyVoidedError(transaction_id)

            now = self.clock.now_utc()
            note = reason.strip()
            unallocated = self._allocator.reverse_allocations(txn)
            credit_adjustment = self._adjust_credit_for_void(txn, note, actor_id)

            txn.is_voided = True
            txn.voided_reason = note
            txn.voided_by_id = actor_id
            txn.voided_at = now
            txn.updated_by_id = actor_id

            refund = LedgerTransactionModel(
                transaction_ref=generate_transaction_ref(now),
                transaction_date=self.clock.today(),
                transaction_type=TransactionType.REFUND.value,
                student_id=txn.student_id,
                amount=txn.amount,
                debit_credit=DebitCredit.DEBIT.value,
                payment_method=txn.payment_method,
                payment_reference=txn.payment_reference,
                description=f"Void of {txn.transaction_ref}: {note}",
                term_id=txn.term_id,
                invoice_id=txn.invoice_id,
                created_by_id=actor_id,
                created_at=now,
            )
            self.session.add(refund)
            self.session.flush()

            reversal_entry_id = self._void_gl_entry(txn, note, actor_id)
            refund.journal_entry_id = reversal_entry_id
            self.session.flush()

            with LogContext.bind(student_id=txn.student_id, actor_id=actor_id):
                logger.info(
                    "payment_voided",
                    extra={
                        "transaction_ref": txn.transaction_ref,
                        "refund_transaction_id": refund.id,
                        "amount_unallocated": unallocated,
                        "credit_adjustment": credit_adjustment,
                        "reversal_entry_id": reversal_entry_id,
                    },
                )
            return PaymentVoidResult(
                success=True,
                message=f"Payment voided successfully. Reversal transaction: #{refund.id}",
                transaction_id=txn.id,
                reversal_transaction_id=refund.id,
                reversal_entry_id=reversal_entry_id,
                amount_unallocated=unallocated,
                credit_adjustment=credit_adjustment,
            )

        return self._execute("void_payment", work, PaymentVoidResult)

    def _adjust_credit_for_void(
        self, txn: LedgerTransactionModel, note: str, actor_id: int
    ) -> int:
        """Undo the payment's effect on the credit ledger; return the signed change."""
        if txn.transaction_type == TransactionType.CREDIT_PAYMENT.value:
            self._credit.record_credit(
                student_id=txn.student_id,
                amount=txn.amount,
                transaction_type=CreditTransactionType.CREDIT_RECEIVED.value,
                actor_id=actor_id,
                notes=f"Credit restored from voided payment {txn.transaction_ref}",
                source_transaction_id=txn.id,
            )
            self._credit.sync_cache(txn.student_id)
            return txn.amount

        credited = self.session.scalar(
            select(func.coalesce(func.sum(CreditTransactionModel.amount), 0)).where(
                CreditTransactionModel.source_transaction_id == txn.id,
                CreditTransactionModel.transaction_type
                == CreditTransactionType.CREDIT_RECEIVED.value,
            )
        )
        refundable = min(credited, max(self._credit.balance(txn.student_id), 0))
        if refundable <= 0:
            return 0
        self._credit.record_credit(
            student_id=txn.student_id,
            amount=refundable,
            transaction_type=CreditTransactionType.CREDIT_REFUNDED.value,
            actor_id=actor_id,
            notes=f"Void of payment {txn.transaction_ref}: {note}",
            source_transaction_id=txn.id,
        )
        self._credit.sync_cache(txn.student_id)
        return -refundable

    def _void_gl_entry(
        self, txn: LedgerTransactionModel, note: str, actor_id: int
    ) -> int | None:
        if txn.journal_entry_id is None:
            return None
        entry: JournalEntry = self._journal.get_entry_or_raise(txn.journal_entry_id)
        if not entry.is_posted:
            self._journal.discard_unposted(entry, f"Payment voided: {note}", actor_id)
            return None
        outcome = self._journal.void_entry(entry, note, actor_id, bypass_approval=True)
        return outcome.reversal.id

    # =========================================================================
    # Receipts and history
    # =========================================================================

    def record_receipt_print(self, receipt_id: int, actor_id: int) -> ReceiptPrintResult:
        """Count one more print of a receipt."""

        def work() -> ReceiptPrintResult:
            receipt = self.session.get(ReceiptModel, receipt_id)
            if receipt is None:
                raise ReceiptNotFoundError(receipt_id)
            receipt.print_count += 1
            receipt.last_printed_at = self.clock.now_utc()
            receipt.updated_by_id = actor_id
            self.session.flush()
            return ReceiptPrintResult(
                success=True,
                message="Receipt print recorded",
                receipt_id=receipt.id,
                receipt_number=receipt.receipt_number,
                print_count=receipt.print_count,
            )

        return self._execute("record_receipt_print", work, ReceiptPrintResult)

    def get_payment_history(
        self,
        student_id: int,
        include_voided: bool = True,
        limit: int = 100,
    ) -> list[PaymentRecord]:
        """Ledger transactions for a student, newest first."""
        stmt = (
            select(LedgerTransactionModel)
            .where(LedgerTransactionModel.student_id == student_id)
            .order_by(LedgerTransactionModel.id.desc())
            .limit(max(1, min(limit, MAX_HISTORY_PAGE)))
        )
        if not include_voided:
            stmt = stmt.where(LedgerTransactionModel.is_voided.is_(False))
        return [PaymentRecord.from_model(txn) for txn in self.session.scalars(stmt)]
