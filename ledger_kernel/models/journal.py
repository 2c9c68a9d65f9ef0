"""
Module: ledger_kernel.models.journal
Responsibility: ORM persistence for journal entries and journal lines -- the
    single source of financial truth in this system.
Architecture position: Kernel > Models.  May import from db/base.py only.
    MUST NOT import from services/, selectors/, domain/, or outer layers.

Invariants enforced:
    - entry_ref is unique.
    - Every line carries exactly one positive side (CHECK constraint).
    - Line numbers are unique within an entry.
    - Balance (debits == credits) is checked by JournalService before the
      entry is added; ``is_balanced`` is a read-side assertion helper.
    - Entries are never deleted.  Only the void and approval columns change
      after creation; corrections are separate VOID_REVERSAL entries that
      point back through reversal_of_id.

Failure modes:
    - IntegrityError on duplicate entry_ref.
    - IntegrityError if a line violates the one-sided CHECK.
"""

from datetime import date, datetime
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import Base, TrackedBase, UTCDateTime

if TYPE_CHECKING:
    from ledger_kernel.models.account import Account


class EntryType(str, Enum):
    """Entry categories the core itself writes.

    entry_type is free-form; callers may post other categories
    (e.g. SCHOLARSHIP, SALARY_PAYMENT).
    """

    FEE_PAYMENT = "FEE_PAYMENT"
    FEE_INVOICE = "FEE_INVOICE"
    CREDIT_APPLICATION = "CREDIT_APPLICATION"
    VOID_REVERSAL = "VOID_REVERSAL"
    MANUAL = "MANUAL"


class JournalEntry(TrackedBase):
    """
    Journal entry header -- the atomic unit of double-entry accounting.

    Contract:
        Created in one step together with all of its lines.  Once created,
        only void and approval fields may change.

    Guarantees:
        - is_posted is False exactly while a POST approval is pending or
          after a pending entry was rejected.
        - A voided entry stays in the table with is_voided=True.

    Non-goals:
        - This model does NOT enforce balance at the ORM level; enforcement
          lives in JournalService.
    """

    __tablename__ = "journal_entries"

    __table_args__ = (
        Index("idx_journal_entry_date", "entry_date"),
        Index("idx_journal_entry_type", "entry_type"),
        Index("idx_journal_student", "student_id"),
        Index("idx_journal_reversal_of", "reversal_of_id"),
    )

    entry_ref: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    entry_date: Mapped[date] = mapped_column(Date, nullable=False)
    entry_type: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)

    # Optional subject links
    student_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("students.id"), nullable=True
    )
    staff_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    term_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    is_posted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Void state
    is_voided: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    voided_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    voided_by_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    voided_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    # Approval state
    approval_status: Mapped[str] = mapped_column(
        String(10), default="APPROVED", nullable=False
    )
    requires_approval: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    approved_by_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    # If this is a reversal, points to the original entry
    reversal_of_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("journal_entries.id"), nullable=True
    )

    # Legacy mirror row this entry was posted for (ledger_transactions.id)
    source_ledger_txn_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    lines: Mapped[list["JournalLine"]] = relationship(
        back_populates="entry",
        cascade="all, delete-orphan",
        order_by="JournalLine.line_number",
        lazy="selectin",
    )

    @property
    def total_debits(self) -> int:
        return sum(line.debit_amount for line in self.lines)

    @property
    def total_credits(self) -> int:
        return sum(line.credit_amount for line in self.lines)

    @property
    def is_balanced(self) -> bool:
        return self.total_debits == self.total_credits

    @property
    def is_reversal(self) -> bool:
        return self.reversal_of_id is not None

    def __repr__(self) -> str:
        return f"<JournalEntry {self.entry_ref} {self.entry_type}>"


class JournalLine(Base):
    """
    Individual debit or credit line within a journal entry.

    Contract:
        Owned by exactly one JournalEntry; references exactly one Account.
        Exactly one of debit_amount / credit_amount is positive.
    """

    __tablename__ = "journal_entry_lines"

    __table_args__ = (
        UniqueConstraint("journal_entry_id", "line_number", name="uq_journal_line_number"),
        CheckConstraint(
            "(debit_amount > 0 AND credit_amount = 0) OR "
            "(debit_amount = 0 AND credit_amount > 0)",
            name="ck_journal_line_one_side",
        ),
        Index("idx_journal_line_account", "account_id"),
    )

    journal_entry_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("journal_entries.id"), nullable=False
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    account_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("gl_accounts.id"), nullable=False
    )
    debit_amount: Mapped[int] = mapped_column(default=0, nullable=False)
    credit_amount: Mapped[int] = mapped_column(default=0, nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    entry: Mapped[JournalEntry] = relationship(back_populates="lines")
    account: Mapped["Account"] = relationship(lazy="joined")

    @property
    def is_debit(self) -> bool:
        return self.debit_amount > 0

    def __repr__(self) -> str:
        side = f"Dr {self.debit_amount}" if self.is_debit else f"Cr {self.credit_amount}"
        return f"<JournalLine {self.line_number} {side}>"
