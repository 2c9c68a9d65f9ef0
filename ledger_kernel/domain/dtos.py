"""
Plain data carriers passed into the posting engine.

These are frozen, I/O-free descriptions of what the caller wants posted.
Validation of the line shape lives in ``validate_lines`` so the same rules
apply whether the lines come from a payment flow, an invoice, or a manual
journal.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from ledger_kernel.exceptions import (
    EmptyEntryError,
    InvalidLineError,
    NonPositiveAmountError,
    UnbalancedEntryError,
)


def require_positive(amount: int, what: str = "Amount") -> int:
    """Reject anything that is not a positive integer of minor units."""
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise NonPositiveAmountError(amount, what)
    return amount


@dataclass(frozen=True)
class LineSpec:
    """One requested journal line.  Exactly one of the amounts is positive."""

    account_code: str
    debit_amount: int = 0
    credit_amount: int = 0
    description: str | None = None

    @classmethod
    def debit(cls, account_code: str, amount: int, description: str | None = None) -> LineSpec:
        return cls(account_code=account_code, debit_amount=amount, description=description)

    @classmethod
    def credit(cls, account_code: str, amount: int, description: str | None = None) -> LineSpec:
        return cls(account_code=account_code, credit_amount=amount, description=description)


@dataclass(frozen=True)
class SubjectRefs:
    """Optional subject links carried on a journal entry."""

    student_id: int | None = None
    staff_id: int | None = None
    term_id: int | None = None


def _is_minor_units(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_lines(lines: Sequence[LineSpec]) -> tuple[int, int]:
    """Check line shape and balance; return (total_debits, total_credits).

    Raises:
        EmptyEntryError: no lines.
        InvalidLineError: a line has both, neither, or a negative side,
            or an amount that is not an integer of minor units.
        UnbalancedEntryError: debits != credits.
    """
    if not lines:
        raise EmptyEntryError()

    total_debits = 0
    total_credits = 0
    for number, line in enumerate(lines, start=1):
        if not line.account_code or not line.account_code.strip():
            raise InvalidLineError(number, "account code is required")
        if not (_is_minor_units(line.debit_amount) and _is_minor_units(line.credit_amount)):
            raise InvalidLineError(number, "amounts must be integers of minor units")
        if line.debit_amount < 0 or line.credit_amount < 0:
            raise InvalidLineError(number, "amounts cannot be negative")
        if line.debit_amount > 0 and line.credit_amount > 0:
            raise InvalidLineError(number, "line cannot have both debit and credit")
        if line.debit_amount == 0 and line.credit_amount == 0:
            raise InvalidLineError(number, "line must have either debit or credit")
        total_debits += line.debit_amount
        total_credits += line.credit_amount

    if total_debits != total_credits:
        raise UnbalancedEntryError(total_debits, total_credits)
    return total_debits, total_credits
