"""
Module: ledger_kernel.models.student
Responsibility: The account holder that invoices, payments and credits are
    recorded against.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - credit_balance is a cache of the student's credit-transaction fold.
      It is rewritten from the fold inside every credit mutation and is never
      read for allocation decisions.
"""

from sqlalchemy import BigInteger, Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import Base


class Student(Base):
    """Student record as seen by the ledger (identity plus cached credit)."""

    __tablename__ = "students"

    admission_number: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Cache only -- the credit_transactions fold is authoritative
    credit_balance: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self) -> str:
        return f"<Student {self.admission_number}>"
