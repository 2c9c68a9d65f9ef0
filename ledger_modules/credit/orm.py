"""
Credit Ledger ORM Models (``ledger_modules.credit.orm``).

Responsibility
--------------
The append-only credit transaction table.  A student's credit balance is
the fold of these rows; ``Student.credit_balance`` only caches it.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``ledger_kernel.db.base``
and ``ledger_engines.credit``.

Invariants enforced
-------------------
* ``amount > 0`` (CHECK); the sign comes from ``transaction_type``.
* Rows are never updated or deleted; reversal appends a CREDIT_REFUNDED row.
"""

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_engines.credit import CREDIT_SIGN
from ledger_kernel.db.base import TrackedBase


class CreditTransactionModel(TrackedBase):
    """One movement on a student's credit balance."""

    __tablename__ = "credit_transactions"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_credit_txn_amount_positive"),
        Index("idx_credit_txn_student", "student_id"),
    )

    student_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("students.id"), nullable=False
    )
    amount: Mapped[int] = mapped_column(nullable=False)
    transaction_type: Mapped[str] = mapped_column(String(20), nullable=False)
    reference_invoice_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("fee_invoices.id"), nullable=True
    )
    source_transaction_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("ledger_transactions.id"), nullable=True
    )
    notes: Mapped[str | None] = mapped_column(String(500), nullable=True)

    @property
    def signed_amount(self) -> int:
        return CREDIT_SIGN.get(self.transaction_type, 0) * self.amount

    def __repr__(self) -> str:
        return f"<CreditTransactionModel {self.transaction_type} {self.amount}>"
