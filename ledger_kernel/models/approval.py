"""
Module: ledger_kernel.models.approval
Responsibility: Persistence for approval rules and for approval requests
    raised against journal entries.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - At most one PENDING request per journal entry (enforced by
      JournalService before creating a request).
    - A request's status moves PENDING -> APPROVED or PENDING -> REJECTED
      exactly once; reviewer and timestamp are stamped on that move.
"""

from datetime import datetime

from sqlalchemy import BigInteger, Boolean, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import Base, TrackedBase, UTCDateTime
from ledger_kernel.models.journal import JournalEntry


class ApprovalRule(Base):
    """Stored approval rule.  Loaded into an ApprovalPolicy by the bridges."""

    __tablename__ = "approval_rules"

    rule_name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    transaction_type: Mapped[str] = mapped_column(String(50), nullable=False)
    min_amount: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    days_since_transaction: Mapped[int | None] = mapped_column(Integer, nullable=True)
    required_role: Mapped[str | None] = mapped_column(String(50), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class ApprovalRequest(TrackedBase):
    """A deferred POST or VOID awaiting review.

    created_by_id is the requester.  For VOID requests, ``reason`` holds the
    void reason that will be applied if the request is approved.
    """

    __tablename__ = "journal_approval_requests"

    __table_args__ = (
        Index("idx_approval_request_entry", "journal_entry_id"),
        Index("idx_approval_request_status", "status"),
    )

    journal_entry_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("journal_entries.id"), nullable=False
    )
    action: Mapped[str] = mapped_column(String(10), nullable=False)
    status: Mapped[str] = mapped_column(String(10), default="PENDING", nullable=False)
    rule_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    review_notes: Mapped[str | None] = mapped_column(String(500), nullable=True)
    reviewed_by_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    entry: Mapped[JournalEntry] = relationship(lazy="joined")
