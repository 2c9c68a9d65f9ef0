"""
Credit Ledger Service -- student credit balances and their application.

Thin glue layer that:
1. Folds the append-only credit_transactions rows into a balance
2. Calls the AllocationEngine (through InvoiceAllocator) to spend credit
   on outstanding invoices, overdue first
3. Calls the kernel JournalService for the consolidated GL entry
4. Keeps the Student.credit_balance cache equal to the fold

This service owns the transaction boundary.  JournalService runs with
auto_commit=False so credit rows, invoice updates and the journal entry
share a single transaction.

Usage:
    service = CreditService(session, clock)
    service.add_credit(student_id=7, amount=70000, notes="Overpayment", actor_id=1)
    result = service.allocate(student_id=7, actor_id=1)
    result.total_credit_applied   # 70000
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_engines.allocation import AllocationEngine, AllocationStrategy
from ledger_engines.credit import CreditTransactionType, fold_credit_balance
from ledger_kernel.domain.accounts import SystemAccounts
from ledger_kernel.domain.approval import ApprovalPolicy
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import LineSpec, SubjectRefs, require_positive
from ledger_kernel.exceptions import (
    CreditNotReversibleError,
    CreditTransactionNotFoundError,
    InsufficientCreditError,
    MissingFieldError,
    NoCreditBalanceError,
    NoOutstandingInvoicesError,
    StudentNotFoundError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.journal import EntryType, JournalEntry
from ledger_kernel.models.student import Student
from ledger_kernel.services.base import BaseService, OperationResult
from ledger_kernel.services.journal_service import JournalService
from ledger_kernel.utils.refs import generate_receipt_number, generate_transaction_ref
from ledger_modules.credit.orm import CreditTransactionModel
from ledger_modules.receivables.allocator import InvoiceAllocator
from ledger_modules.receivables.idempotency import (
    DEFAULT_REPLAY_WINDOW_SECONDS,
    ReplayGuard,
)
from ledger_modules.receivables.models import (
    CREDIT_BALANCE_REFERENCE,
    AppliedAllocation,
    DebitCredit,
    TransactionType,
)
from ledger_modules.receivables.orm import LedgerTransactionModel, ReceiptModel

logger = get_logger("modules.credit.service")

MAX_TRANSACTION_PAGE = 500
CREDIT_PAYMENT_METHOD = "CREDIT"


@dataclass(frozen=True)
class CreditResult(OperationResult):
    """Result of adding or reversing credit."""

    credit_transaction_id: int | None = None
    new_balance: int | None = None


@dataclass(frozen=True)
class CreditAllocationResult(OperationResult):
    """Result of spending a credit balance on outstanding invoices."""

    total_credit_applied: int = 0
    invoices_affected: int = 0
    allocations: tuple[AppliedAllocation, ...] = ()
    remaining_balance: int = 0
    journal_entry_id: int | None = None


@dataclass(frozen=True)
class CreditPaymentResult(OperationResult):
    """Result of paying one invoice from the credit balance."""

    transaction_id: int | None = None
    transaction_ref: str | None = None
    receipt_number: str | None = None
    journal_entry_id: int | None = None
    new_balance: int | None = None
    replayed: bool = False


@dataclass(frozen=True)
class CreditTransactionView:
    """Read model of one credit ledger row."""

    id: int
    student_id: int
    transaction_type: str
    amount: int
    signed_amount: int
    reference_invoice_id: int | None
    source_transaction_id: int | None
    notes: str | None
    created_at: datetime

    @classmethod
    def from_model(cls, row: CreditTransactionModel) -> CreditTransactionView:
        return cls(
            id=row.id,
            student_id=row.student_id,
            transaction_type=row.transaction_type,
            amount=row.amount,
            signed_amount=row.signed_amount,
            reference_invoice_id=row.reference_invoice_id,
            source_transaction_id=row.source_transaction_id,
            notes=row.notes,
            created_at=row.created_at,
        )


class CreditService(BaseService):
    """
    Append-only credit ledger with overdue-first auto-application.

    Transaction boundary: public operations commit on success and roll
    back on failure (or run in a SAVEPOINT with ``auto_commit=False``).
    ``record_credit`` and ``sync_cache`` are flush-only so the payment flow
    can record an overpayment inside its own transaction.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        system_accounts: SystemAccounts | None = None,
        approval_policy: ApprovalPolicy | None = None,
        allocation_strategy: AllocationStrategy | None = None,
        replay_window_seconds: int = DEFAULT_REPLAY_WINDOW_SECONDS,
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
        self._allocator = InvoiceAllocator(
            session, self.clock, AllocationEngine(allocation_strategy)
        )
        self._guard = ReplayGuard(session, self.clock, window_seconds=replay_window_seconds)

    # =========================================================================
    # Reads
    # =========================================================================

    def balance(self, student_id: int) -> int:
        """Authoritative balance: the fold of every credit row for the student."""
        rows = self.session.execute(
            select(
                CreditTransactionModel.transaction_type,
                CreditTransactionModel.amount,
            ).where(CreditTransactionModel.student_id == student_id)
        ).tuples()
        return fold_credit_balance(rows)

    def get_transactions(self, student_id: int, limit: int = 100) -> list[CreditTransactionView]:
        """Most recent credit rows first.  ``limit`` is capped at 500."""
        limit = max(1, min(limit, MAX_TRANSACTION_PAGE))
        rows = self.session.scalars(
            select(CreditTransactionModel)
            .where(CreditTransactionModel.student_id == student_id)
            .order_by(CreditTransactionModel.id.desc())
            .limit(limit)
        )
        return [CreditTransactionView.from_model(row) for row in rows]

    # =========================================================================
    # Public operations
    # =========================================================================

    def add_credit(
        self,
        student_id: int,
        amount: int,
        actor_id: int,
        notes: str | None = None,
    ) -> CreditResult:
        """Append a CREDIT_RECEIVED row."""

        def work() -> CreditResult:
            require_positive(amount, "Credit amount")
            self._require_student(student_id)
            row = self.record_credit(
                student_id=student_id,
                amount=amount,
                transaction_type=CreditTransactionType.CREDIT_RECEIVED.value,
                actor_id=actor_id,
                notes=(notes or "").strip() or "Manual credit adjustment",
            )
            new_balance = self.sync_cache(student_id)
            return CreditResult(
                success=True,
                message=f"Credit of {amount} added successfully",
                credit_transaction_id=row.id,
                new_balance=new_balance,
            )

        return self._execute("add_credit", work, CreditResult)

    def reverse_credit(self, credit_id: int, reason: str, actor_id: int) -> CreditResult:
        """Cancel a received credit by appending a CREDIT_REFUNDED row."""

        def work() -> CreditResult:
            if not reason or not reason.strip():
                raise MissingFieldError("reason")
            original = self.session.get(CreditTransactionModel, credit_id)
            if original is None:
                raise CreditTransactionNotFoundError(credit_id)
            if original.transaction_type != CreditTransactionType.CREDIT_RECEIVED.value:
                raise CreditNotReversibleError(credit_id, original.transaction_type)
            available = self.balance(original.student_id)
            if original.amount > available:
                raise InsufficientCreditError(original.student_id, available, original.amount)
            row = self.record_credit(
                student_id=original.student_id,
                amount=original.amount,
                transaction_type=CreditTransactionType.CREDIT_REFUNDED.value,
                actor_id=actor_id,
                notes=f"Reversal of credit #{credit_id}: {reason.strip()}",
                source_transaction_id=original.source_transaction_id,
            )
            new_balance = self.sync_cache(original.student_id)
            return CreditResult(
                success=True,
                message="Credit transaction reversed",
                credit_transaction_id=row.id,
                new_balance=new_balance,
            )

        return self._execute("reverse_credit", work, CreditResult)

    def allocate(self, student_id: int, actor_id: int) -> CreditAllocationResult:
        """
        Spend the student's credit on outstanding invoices.

        Invoices are taken overdue first, then by ascending due date.  One
        CREDIT_APPLIED row is written per invoice touched, and one
        consolidated journal entry for the total.
        """

        def work() -> CreditAllocationResult:
            self._require_student(student_id)
            available = self.balance(student_id)
            if available <= 0:
                raise NoCreditBalanceError(student_id, available)
            invoices = self._allocator.outstanding_invoices(student_id)
            if not invoices:
                raise NoOutstandingInvoicesError(student_id)

            plan = self._allocator.plan(available, invoices)
            applied = self._allocator.apply_plan(plan, invoices)
            for allocation in applied:
                self.record_credit(
                    student_id=student_id,
                    amount=allocation.amount_applied,
                    transaction_type=CreditTransactionType.CREDIT_APPLIED.value,
                    actor_id=actor_id,
                    notes=f"Auto-applied to invoice {allocation.invoice_number}",
                    reference_invoice_id=allocation.invoice_id,
                )
            entry = self.post_application_entry(
                student_id=student_id,
                amount=plan.total_applied,
                actor_id=actor_id,
                description=f"Credit balance applied to {len(applied)} invoice(s)",
            )
            remaining = self.sync_cache(student_id)

            with LogContext.bind(student_id=student_id, actor_id=actor_id):
                logger.info(
                    "credit_allocated",
                    extra={
                        "total_applied": plan.total_applied,
                        "invoices_affected": len(applied),
                        "remaining_balance": remaining,
                        "journal_entry_id": entry.id,
                    },
                )
            return CreditAllocationResult(
                success=True,
                message=(
                    f"Successfully applied {plan.total_applied} to {len(applied)} invoice(s)"
                ),
                total_credit_applied=plan.total_applied,
                invoices_affected=len(applied),
                allocations=applied,
                remaining_balance=remaining,
                journal_entry_id=entry.id,
            )

        return self._execute("allocate_credit", work, CreditAllocationResult)

    def pay_with_credit(
        self,
        student_id: int,
        invoice_id: int,
        amount: int,
        actor_id: int,
        description: str | None = None,
    ) -> CreditPaymentResult:
        """
        Pay one invoice from the credit balance.

        Writes a CREDIT_PAYMENT mirror row with a receipt, the invoice
        allocation, a CREDIT_APPLIED row and the GL entry.  An identical
        request from the same actor inside the replay window returns the
        first transaction instead.
        """

        def work() -> CreditPaymentResult:
            require_positive(amount, "Payment amount")
            self._require_student(student_id)
            today = self.clock.today()

            existing = self._guard.find_payment_replay(
                student_id=student_id,
                amount=amount,
                transaction_date=today,
                transaction_type=TransactionType.CREDIT_PAYMENT.value,
                payment_method=CREDIT_PAYMENT_METHOD,
                payment_reference=CREDIT_BALANCE_REFERENCE,
                created_by_id=actor_id,
                invoice_id=invoice_id,
            )
            if existing is not None:
                return CreditPaymentResult(
                    success=True,
                    message="Duplicate credit payment request detected; returning existing transaction",
                    transaction_id=existing.id,
                    transaction_ref=existing.transaction_ref,
                    receipt_number=existing.receipt.receipt_number if existing.receipt else None,
                    journal_entry_id=existing.journal_entry_id,
                    new_balance=self.balance(student_id),
                    replayed=True,
                )

            available = self.balance(student_id)
            if amount > available:
                raise InsufficientCreditError(student_id, available, amount)
            invoice = self._allocator.load_target(invoice_id, student_id, amount)

            now = self.clock.now_utc()
            description_text = (description or "").strip() or (
                f"Payment from credit balance for invoice {invoice.invoice_number}"
            )
            txn = LedgerTransactionModel(
                transaction_ref=generate_transaction_ref(now),
                transaction_date=today,
                transaction_type=TransactionType.CREDIT_PAYMENT.value,
                student_id=student_id,
                amount=amount,
                debit_credit=DebitCredit.CREDIT.value,
                payment_method=CREDIT_PAYMENT_METHOD,
                payment_reference=CREDIT_BALANCE_REFERENCE,
                description=description_text,
                term_id=invoice.term_id,
                invoice_id=invoice.id,
                created_by_id=actor_id,
                created_at=now,
            )
            self.session.add(txn)
            self.session.flush()
            receipt = ReceiptModel(
                receipt_number=generate_receipt_number(now),
                transaction_id=txn.id,
                receipt_date=today,
                student_id=student_id,
                amount=amount,
                payment_method=CREDIT_PAYMENT_METHOD,
                payment_reference=CREDIT_BALANCE_REFERENCE,
                created_by_id=actor_id,
                created_at=now,
            )
            self.session.add(receipt)

            self._allocator.apply_payment(
                student_id, amount, transaction_id=txn.id, target_invoice_id=invoice.id
            )
            self.record_credit(
                student_id=student_id,
                amount=amount,
                transaction_type=CreditTransactionType.CREDIT_APPLIED.value,
                actor_id=actor_id,
                notes=f"Applied to invoice {invoice.invoice_number}",
                reference_invoice_id=invoice.id,
                source_transaction_id=txn.id,
            )
            entry = self.post_application_entry(
                student_id=student_id,
                amount=amount,
                actor_id=actor_id,
                description=description_text,
                source_ledger_txn_id=txn.id,
            )
            txn.journal_entry_id = entry.id
            new_balance = self.sync_cache(student_id)
            self.session.flush()

            with LogContext.bind(student_id=student_id, actor_id=actor_id):
                logger.info(
                    "credit_payment_recorded",
                    extra={
                        "transaction_ref": txn.transaction_ref,
                        "invoice_number": invoice.invoice_number,
                        "amount": amount,
                        "new_balance": new_balance,
                    },
                )
            return CreditPaymentResult(
                success=True,
                message="Payment recorded successfully",
                transaction_id=txn.id,
                transaction_ref=txn.transaction_ref,
                receipt_number=receipt.receipt_number,
                journal_entry_id=entry.id,
                new_balance=new_balance,
            )

        return self._execute("pay_with_credit", work, CreditPaymentResult)

    # =========================================================================
    # Flush-only primitives
    # =========================================================================

    def record_credit(
        self,
        student_id: int,
        amount: int,
        transaction_type: str,
        actor_id: int,
        notes: str | None = None,
        reference_invoice_id: int | None = None,
        source_transaction_id: int | None = None,
    ) -> CreditTransactionModel:
        """Append one credit row.  Callers follow up with ``sync_cache``."""
        require_positive(amount, "Credit amount")
        row = CreditTransactionModel(
            student_id=student_id,
            amount=amount,
            transaction_type=transaction_type,
            reference_invoice_id=reference_invoice_id,
            source_transaction_id=source_transaction_id,
            notes=notes,
            created_by_id=actor_id,
            created_at=self.clock.now_utc(),
        )
        self.session.add(row)
        self.session.flush()
        logger.info(
            "credit_transaction_recorded",
            extra={
                "credit_transaction_id": row.id,
                "student_id": student_id,
                "transaction_type": transaction_type,
                "amount": amount,
            },
        )
        return row

    def sync_cache(self, student_id: int) -> int:
        """Rewrite Student.credit_balance from the fold; return the balance."""
        student = self._require_student(student_id)
        balance = self.balance(student_id)
        student.credit_balance = balance
        self.session.flush()
        return balance

    def post_application_entry(
        self,
        student_id: int,
        amount: int,
        actor_id: int,
        description: str,
        source_ledger_txn_id: int | None = None,
    ) -> JournalEntry:
        """Dr receivable, Cr student credit liability for ``amount``."""
        return self._journal.post_entry(
            entry_date=self.clock.today(),
            entry_type=EntryType.CREDIT_APPLICATION.value,
            description=description,
            lines=[
                LineSpec.debit(self.accounts.receivable, amount, description),
                LineSpec.credit(self.accounts.student_credit, amount, description),
            ],
            created_by_id=actor_id,
            subject=SubjectRefs(student_id=student_id),
            source_ledger_txn_id=source_ledger_txn_id,
        )

    def _require_student(self, student_id: int) -> Student:
        student = self.session.get(Student, student_id)
        if student is None:
            raise StudentNotFoundError(student_id)
        return student
