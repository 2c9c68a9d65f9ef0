"""
InvoiceAllocator -- applies money to a student's invoices.

Responsibility:
    Loads the invoices a payment or credit application may touch, asks the
    pure AllocationEngine for a plan, and writes the plan back: invoice
    amount_paid and status, plus one PaymentAllocation row per invoice when
    the money came from a ledger transaction.  Also undoes those rows
    exactly when a payment is voided.

Architecture position:
    Modules > Receivables.  Flush-only: never commits.  The calling service
    owns the transaction, so an allocation is rolled back together with the
    payment, credit rows and GL entry it belongs to.

Invariants enforced:
    - amount_paid never goes below zero and never exceeds what the plan
      computed from the outstanding balance.
    - Status follows ``derive_invoice_status`` after every change.
    - A targeted payment must fit entirely in the target invoice.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_engines.allocation import (
    ALLOCATABLE_STATUSES,
    AllocationEngine,
    AllocationPlan,
    derive_invoice_status,
)
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import require_positive
from ledger_kernel.exceptions import (
    InvoiceNotAllocatableError,
    InvoiceNotFoundError,
    InvoiceOwnershipError,
    OverpaymentError,
)
from ledger_kernel.logging_config import get_logger
from ledger_modules.receivables.models import AppliedAllocation
from ledger_modules.receivables.orm import (
    InvoiceModel,
    LedgerTransactionModel,
    PaymentAllocationModel,
)

logger = get_logger("modules.receivables.allocator")


@dataclass(frozen=True)
class AllocationOutcome:
    """What ``apply_payment`` did."""

    applied_allocations: tuple[AppliedAllocation, ...]
    remainder: int

    @property
    def total_applied(self) -> int:
        return sum(a.amount_applied for a in self.applied_allocations)

    @property
    def invoices_affected(self) -> int:
        return len(self.applied_allocations)


class InvoiceAllocator:
    """Writes allocation plans to fee_invoices and payment_invoice_allocations."""

    def __init__(
        self,
        session: Session,
        clock: Clock,
        engine: AllocationEngine | None = None,
    ):
        self.session = session
        self.clock = clock
        self.engine = engine or AllocationEngine()

    def outstanding_invoices(self, student_id: int) -> list[InvoiceModel]:
        """Allocatable invoices with a positive balance, oldest due date first."""
        return list(
            self.session.scalars(
                select(InvoiceModel)
                .where(
                    InvoiceModel.student_id == student_id,
                    InvoiceModel.status.in_(sorted(ALLOCATABLE_STATUSES)),
                    InvoiceModel.amount_paid < InvoiceModel.total_amount,
                )
                .order_by(
                    InvoiceModel.due_date,
                    InvoiceModel.invoice_date,
                    InvoiceModel.id,
                )
            )
        )

    def load_target(self, invoice_id: int, student_id: int, amount: int) -> InvoiceModel:
        """Validate that ``amount`` may be paid into one specific invoice."""
        invoice = self.session.get(InvoiceModel, invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(invoice_id)
        if invoice.student_id != student_id:
            raise InvoiceOwnershipError(invoice_id, student_id)
        if invoice.status not in ALLOCATABLE_STATUSES or invoice.outstanding <= 0:
            raise InvoiceNotAllocatableError(invoice.invoice_number, invoice.status)
        if amount > invoice.outstanding:
            raise OverpaymentError(invoice.invoice_number, amount, invoice.outstanding)
        return invoice

    def plan(self, amount: int, invoices: list[InvoiceModel]) -> AllocationPlan:
        return self.engine.plan(
            amount,
            [invoice.to_target() for invoice in invoices],
            self.clock.today(),
        )

    def apply_payment(
        self,
        student_id: int,
        amount: int,
        transaction_id: int | None = None,
        target_invoice_id: int | None = None,
    ) -> AllocationOutcome:
        """
        Spread ``amount`` over the student's invoices.

        With ``target_invoice_id`` only that invoice is paid and the amount
        must fit its outstanding balance.  Otherwise invoices are paid in
        strategy order until the amount runs out; what is left is returned
        as ``remainder`` for the caller to record as credit.

        Raises:
            NonPositiveAmountError, InvoiceNotFoundError,
            InvoiceOwnershipError, InvoiceNotAllocatableError,
            OverpaymentError.
        """
        require_positive(amount, "Payment amount")
        if target_invoice_id is not None:
            invoices = [self.load_target(target_invoice_id, student_id, amount)]
        else:
            invoices = self.outstanding_invoices(student_id)

        plan = self.plan(amount, invoices)
        applied = self.apply_plan(plan, invoices, transaction_id)
        return AllocationOutcome(applied_allocations=applied, remainder=plan.remainder)

    def apply_plan(
        self,
        plan: AllocationPlan,
        invoices: list[InvoiceModel],
        transaction_id: int | None = None,
    ) -> tuple[AppliedAllocation, ...]:
        """Write a plan to the invoices it names and flush."""
        by_id = {invoice.id: invoice for invoice in invoices}
        now = self.clock.now_utc()
        applied: list[AppliedAllocation] = []
        for line in plan.lines:
            invoice = by_id[line.invoice_id]
            invoice.amount_paid = line.new_amount_paid
            invoice.status = line.new_status
            if transaction_id is not None:
                self.session.add(
                    PaymentAllocationModel(
                        transaction_id=transaction_id,
                        invoice_id=invoice.id,
                        applied_amount=line.applied,
                        created_at=now,
                    )
                )
            applied.append(
                AppliedAllocation(
                    invoice_id=invoice.id,
                    invoice_number=invoice.invoice_number,
                    amount_applied=line.applied,
                    new_balance=line.new_balance,
                    new_status=line.new_status,
                )
            )
        self.session.flush()
        return tuple(applied)

    def reverse_allocations(self, transaction: LedgerTransactionModel) -> int:
        """
        Take back every allocation recorded for ``transaction``.

        The allocation rows stay as history; only the invoices change.
        Returns the total amount taken back.
        """
        allocations = self.allocations_for(transaction.id)
        total = 0
        for allocation in allocations:
            invoice = allocation.invoice
            invoice.amount_paid = max(invoice.amount_paid - allocation.applied_amount, 0)
            invoice.status = derive_invoice_status(
                invoice.total_amount, invoice.amount_paid, invoice.status
            )
            total += allocation.applied_amount
        self.session.flush()
        logger.info(
            "payment_allocations_reversed",
            extra={
                "transaction_id": transaction.id,
                "invoices_affected": len(allocations),
                "amount": total,
            },
        )
        return total

    def allocations_for(self, transaction_id: int) -> list[PaymentAllocationModel]:
        return list(
            self.session.scalars(
                select(PaymentAllocationModel)
                .where(PaymentAllocationModel.transaction_id == transaction_id)
                .order_by(PaymentAllocationModel.id)
            )
        )
