"""
Receivables ORM Models (``ledger_modules.receivables.orm``).

Responsibility
--------------
SQLAlchemy persistence models for invoices, invoice items, the legacy
single-entry ledger transaction table, receipts, and payment-to-invoice
allocations.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``ledger_kernel.db.base``
and sibling ``models.py``.  MUST NOT be imported by ``ledger_kernel``.

Invariants enforced
-------------------
* ``0 <= amount_paid`` on invoices (CHECK).
* ``idempotency_key`` is UNIQUE (NULLs allowed) on ledger transactions.
* One receipt per ledger transaction (UNIQUE transaction_id).
* Allocation amounts are positive (CHECK).
"""

from datetime import date, datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_engines.allocation import InvoiceStatus, InvoiceTarget
from ledger_kernel.db.base import Base, TrackedBase, UTCDateTime
from ledger_modules.receivables.models import AppliedAllocation, Invoice, InvoiceItem


# ---------------------------------------------------------------------------
# 1. InvoiceModel / InvoiceItemModel
# ---------------------------------------------------------------------------


class InvoiceModel(TrackedBase):
    """
    ORM model for a fee invoice.

    Guarantees:
        - invoice_number is unique.
        - total_amount is fixed at creation from the items.
        - amount_paid and status change only through allocation or
          allocation reversal.
    """

    __tablename__ = "fee_invoices"

    __table_args__ = (
        CheckConstraint("amount_paid >= 0", name="ck_fee_invoice_paid_non_negative"),
        CheckConstraint("total_amount > 0", name="ck_fee_invoice_total_positive"),
        Index("idx_fee_invoice_student", "student_id"),
        Index("idx_fee_invoice_status", "status"),
        Index("idx_fee_invoice_due_date", "due_date"),
    )

    invoice_number: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    student_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("students.id"), nullable=False
    )
    term_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    invoice_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    total_amount: Mapped[int] = mapped_column(nullable=False)
    amount_paid: Mapped[int] = mapped_column(default=0, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=InvoiceStatus.PENDING.value, nullable=False
    )
    journal_entry_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("journal_entries.id"), nullable=True
    )
    cancelled_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    items: Mapped[list["InvoiceItemModel"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItemModel.id",
        lazy="selectin",
    )

    @property
    def outstanding(self) -> int:
        return max(self.total_amount - self.amount_paid, 0)

    def to_dto(self) -> Invoice:
        """Convert ORM model to frozen dataclass."""
        return Invoice(
            id=self.id,
            invoice_number=self.invoice_number,
            student_id=self.student_id,
            term_id=self.term_id,
            invoice_date=self.invoice_date,
            due_date=self.due_date,
            total_amount=self.total_amount,
            amount_paid=self.amount_paid,
            status=self.status,
            items=tuple(item.to_dto() for item in self.items),
        )

    def to_target(self) -> InvoiceTarget:
        """Allocation engine view of this invoice."""
        return InvoiceTarget(
            invoice_id=self.id,
            invoice_number=self.invoice_number,
            due_date=self.due_date,
            invoice_date=self.invoice_date,
            total_amount=self.total_amount,
            amount_paid=self.amount_paid,
            status=self.status,
        )

    def __repr__(self) -> str:
        return f"<InvoiceModel {self.invoice_number} {self.status}>"


class InvoiceItemModel(Base):
    """ORM model for a billed line on an invoice."""

    __tablename__ = "invoice_items"

    invoice_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("fee_invoices.id"), nullable=False
    )
    fee_category_id: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    amount: Mapped[int] = mapped_column(nullable=False)
    gl_account_code: Mapped[str | None] = mapped_column(String(20), nullable=True)

    invoice: Mapped[InvoiceModel] = relationship(back_populates="items")

    def to_dto(self) -> InvoiceItem:
        return InvoiceItem(
            fee_category_id=self.fee_category_id,
            description=self.description,
            amount=self.amount,
            gl_account_code=self.gl_account_code,
        )

    @classmethod
    def from_dto(cls, dto: InvoiceItem) -> "InvoiceItemModel":
        return cls(
            fee_category_id=dto.fee_category_id,
            description=dto.description.strip(),
            amount=dto.amount,
            gl_account_code=dto.gl_account_code,
        )


# ---------------------------------------------------------------------------
# 2. LedgerTransactionModel / ReceiptModel
# ---------------------------------------------------------------------------


class LedgerTransactionModel(TrackedBase):
    """
    Legacy single-entry mirror of a money movement.

    Written alongside the journal entry for every payment so older reports
    keep working.  Voided in lockstep with its journal entry; never deleted.
    """

    __tablename__ = "ledger_transactions"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_ledger_txn_amount_positive"),
        Index("idx_ledger_txn_student", "student_id"),
        Index("idx_ledger_txn_created_at", "created_at"),
    )

    transaction_ref: Mapped[str] = mapped_column(String(60), nullable=False, unique=True)
    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)
    transaction_type: Mapped[str] = mapped_column(String(30), nullable=False)
    student_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("students.id"), nullable=False
    )
    amount: Mapped[int] = mapped_column(nullable=False)
    debit_credit: Mapped[str] = mapped_column(String(6), nullable=False)
    payment_method: Mapped[str | None] = mapped_column(String(30), nullable=True)
    payment_reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    term_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    invoice_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("fee_invoices.id"), nullable=True
    )
    journal_entry_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("journal_entries.id"), nullable=True
    )
    idempotency_key: Mapped[str | None] = mapped_column(
        String(128), nullable=True, unique=True
    )

    is_voided: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    voided_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    voided_by_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    voided_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    receipt: Mapped["ReceiptModel | None"] = relationship(
        back_populates="transaction", uselist=False, lazy="selectin"
    )
    allocations: Mapped[list["PaymentAllocationModel"]] = relationship(
        back_populates="transaction",
        order_by="PaymentAllocationModel.id",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<LedgerTransactionModel {self.transaction_ref} {self.amount}>"


class ReceiptModel(TrackedBase):
    """Receipt issued for a ledger transaction; only print_count changes."""

    __tablename__ = "receipts"

    receipt_number: Mapped[str] = mapped_column(String(60), nullable=False, unique=True)
    transaction_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("ledger_transactions.id"), nullable=False, unique=True
    )
    receipt_date: Mapped[date] = mapped_column(Date, nullable=False)
    student_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("students.id"), nullable=False
    )
    amount: Mapped[int] = mapped_column(nullable=False)
    payment_method: Mapped[str | None] = mapped_column(String(30), nullable=True)
    payment_reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    print_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_printed_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    transaction: Mapped[LedgerTransactionModel] = relationship(back_populates="receipt")


# ---------------------------------------------------------------------------
# 3. PaymentAllocationModel
# ---------------------------------------------------------------------------


class PaymentAllocationModel(Base):
    """How much of one ledger transaction went to one invoice."""

    __tablename__ = "payment_invoice_allocations"

    __table_args__ = (
        CheckConstraint("applied_amount > 0", name="ck_payment_allocation_positive"),
        Index("idx_payment_allocation_txn", "transaction_id"),
        Index("idx_payment_allocation_invoice", "invoice_id"),
    )

    transaction_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("ledger_transactions.id"), nullable=False
    )
    invoice_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("fee_invoices.id"), nullable=False
    )
    applied_amount: Mapped[int] = mapped_column(nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    transaction: Mapped[LedgerTransactionModel] = relationship(back_populates="allocations")
    invoice: Mapped[InvoiceModel] = relationship(lazy="joined")

    def to_dto(self) -> AppliedAllocation:
        return AppliedAllocation(
            invoice_id=self.invoice_id,
            invoice_number=self.invoice.invoice_number,
            amount_applied=self.applied_amount,
            new_balance=self.invoice.outstanding,
            new_status=self.invoice.status,
        )
