"""
Invoice Service -- raises, cancels and lists fee invoices.

Every invoice posts Dr receivable / Cr revenue (one credit line per item)
in the same transaction that writes the invoice.  Invoice creation carries
no idempotency key, so an identical request from the same creator inside
the replay window returns the first invoice instead of billing twice.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date

from sqlalchemy.orm import Session

from ledger_engines.allocation import ALLOCATABLE_STATUSES, InvoiceStatus
from ledger_kernel.domain.accounts import SystemAccounts
from ledger_kernel.domain.approval import ApprovalPolicy
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import require_positive
from ledger_kernel.exceptions import (
    InvalidDateRangeError,
    InvoiceHasPaymentsError,
    InvoiceNotAllocatableError,
    InvoiceNotFoundError,
    MissingFieldError,
    StudentNotFoundError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.student import Student
from ledger_kernel.services.base import BaseService, OperationResult
from ledger_kernel.services.journal_service import JournalService
from ledger_kernel.utils.refs import generate_invoice_number
from ledger_modules.receivables.allocator import InvoiceAllocator
from ledger_modules.receivables.idempotency import (
    DEFAULT_REPLAY_WINDOW_SECONDS,
    ReplayGuard,
)
from ledger_modules.receivables.models import Invoice, InvoiceItem
from ledger_modules.receivables.orm import InvoiceItemModel, InvoiceModel

logger = get_logger("modules.receivables.invoice")


@dataclass(frozen=True)
class InvoiceResult(OperationResult):
    """Result of creating or cancelling an invoice."""

    invoice_id: int | None = None
    invoice_number: str | None = None
    total_amount: int = 0
    journal_entry_id: int | None = None
    replayed: bool = False


class InvoiceService(BaseService):
    """Fee invoice lifecycle outside of payment allocation."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        system_accounts: SystemAccounts | None = None,
        approval_policy: ApprovalPolicy | None = None,
        replay_window_seconds: int = DEFAULT_REPLAY_WINDOW_SECONDS,
        auto_commit: bool = True,
    ):
        super().__init__(session, clock, auto_commit)
        self._journal = JournalService(
            session,
            clock=self.clock,
            approval_policy=approval_policy,
            system_accounts=system_accounts,
            auto_commit=False,
        )
        self._guard = ReplayGuard(session, self.clock, window_seconds=replay_window_seconds)
        self._allocator = InvoiceAllocator(session, self.clock)

    def create_invoice(
        self,
        student_id: int,
        items: Sequence[InvoiceItem],
        invoice_date: date,
        due_date: date,
        created_by_id: int,
        term_id: int | None = None,
        description: str | None = None,
    ) -> InvoiceResult:
        """Write an invoice with its items and post it to the GL."""

        def work() -> InvoiceResult:
            if not items:
                raise MissingFieldError("items")
            for item in items:
                require_positive(item.amount, "Invoice item amount")
                if not item.description or not item.description.strip():
                    raise MissingFieldError("description")
            if due_date < invoice_date:
                raise InvalidDateRangeError(invoice_date, due_date)
            if self.session.get(Student, student_id) is None:
                raise StudentNotFoundError(student_id)

            total = sum(item.amount for item in items)
            existing = self._guard.find_invoice_replay(
                student_id=student_id,
                term_id=term_id,
                invoice_date=invoice_date,
                due_date=due_date,
                total_amount=total,
                items=items,
                created_by_id=created_by_id,
            )
            if existing is not None:
                return InvoiceResult(
                    success=True,
                    message="Duplicate invoice request detected; returning existing invoice",
                    invoice_id=existing.id,
                    invoice_number=existing.invoice_number,
                    total_amount=existing.total_amount,
                    journal_entry_id=existing.journal_entry_id,
                    replayed=True,
                )

            now = self.clock.now_utc()
            invoice = InvoiceModel(
                invoice_number=generate_invoice_number(now),
                student_id=student_id,
                term_id=term_id,
                invoice_date=invoice_date,
                due_date=due_date,
                description=(description or "").strip() or None,
                total_amount=total,
                amount_paid=0,
                status=InvoiceStatus.PENDING.value,
                created_by_id=created_by_id,
                created_at=now,
            )
            invoice.items = [InvoiceItemModel.from_dto(item) for item in items]
            self.session.add(invoice)
            self.session.flush()

            entry = self._journal.post_invoice_entry(
                student_id=student_id,
                items=[
                    (item.gl_account_code, item.amount, item.description.strip())
                    for item in items
                ],
                invoice_date=invoice_date,
                created_by_id=created_by_id,
                description=f"Fee invoice {invoice.invoice_number}",
                term_id=term_id,
            )
            invoice.journal_entry_id = entry.id
            self.session.flush()

            with LogContext.bind(student_id=student_id, actor_id=created_by_id):
                logger.info(
                    "invoice_created",
                    extra={
                        "invoice_number": invoice.invoice_number,
                        "total_amount": total,
                        "item_count": len(items),
                        "journal_entry_id": entry.id,
                    },
                )
            return InvoiceResult(
                success=True,
                message=f"Invoice {invoice.invoice_number} created successfully",
                invoice_id=invoice.id,
                invoice_number=invoice.invoice_number,
                total_amount=total,
                journal_entry_id=entry.id,
            )

        return self._execute("create_invoice", work, InvoiceResult)

    def cancel_invoice(self, invoice_id: int, reason: str, actor_id: int) -> InvoiceResult:
        """Cancel an invoice that has received no payment and reverse its GL entry."""

        def work() -> InvoiceResult:
            if not reason or not reason.strip():
                raise MissingFieldError("reason")
            invoice = self.session.get(InvoiceModel, invoice_id)
            if invoice is None:
                raise InvoiceNotFoundError(invoice_id)
            if invoice.status not in ALLOCATABLE_STATUSES:
                raise InvoiceNotAllocatableError(invoice.invoice_number, invoice.status)
            if invoice.amount_paid > 0:
                raise InvoiceHasPaymentsError(invoice.invoice_number, invoice.amount_paid)

            invoice.status = InvoiceStatus.CANCELLED.value
            invoice.cancelled_reason = reason.strip()
            invoice.updated_by_id = actor_id
            if invoice.journal_entry_id is not None:
                entry = self._journal.get_entry_or_raise(invoice.journal_entry_id)
                if entry.is_posted:
                    self._journal.void_entry(
                        entry, f"Invoice cancelled: {reason.strip()}", actor_id,
                        bypass_approval=True,
                    )
                else:
                    self._journal.discard_unposted(
                        entry, f"Invoice cancelled: {reason.strip()}", actor_id
                    )
            self.session.flush()
            logger.info(
                "invoice_cancelled",
                extra={"invoice_number": invoice.invoice_number, "reason": reason.strip()},
            )
            return InvoiceResult(
                success=True,
                message=f"Invoice {invoice.invoice_number} cancelled",
                invoice_id=invoice.id,
                invoice_number=invoice.invoice_number,
                total_amount=invoice.total_amount,
                journal_entry_id=invoice.journal_entry_id,
            )

        return self._execute("cancel_invoice", work, InvoiceResult)

    def get_invoice(self, invoice_id: int) -> Invoice | None:
        invoice = self.session.get(InvoiceModel, invoice_id)
        return invoice.to_dto() if invoice is not None else None

    def get_outstanding_invoices(self, student_id: int) -> list[Invoice]:
        """Invoices still accepting payment, oldest due date first."""
        return [row.to_dto() for row in self._allocator.outstanding_invoices(student_id)]
