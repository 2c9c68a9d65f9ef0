"""
Reporting Domain Models (``ledger_modules.reporting.models``).

Frozen report DTOs returned by the reporting service.  All monetary fields
are ``int`` minor units.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date


@dataclass(frozen=True)
class StatementLine:
    """One account on a statement with its normal-side balance."""

    account_code: str
    account_name: str
    balance: int


@dataclass(frozen=True)
class StatementSection:
    label: str
    lines: tuple[StatementLine, ...]
    total: int


@dataclass(frozen=True)
class IncomeSummary:
    """Revenue and expense totals over a date filter."""

    total_revenue: int
    total_expenses: int

    @property
    def net_income(self) -> int:
        return self.total_revenue - self.total_expenses


@dataclass(frozen=True)
class BalanceSheetReport:
    """
    Point-in-time balance sheet.

    Zero-balance accounts are left out of the sections but their zero
    still counts toward the totals.  ``is_balanced`` is exact integer
    equality of assets against liabilities + equity + net income.
    """

    as_of_date: date
    assets: StatementSection
    liabilities: StatementSection
    equity: StatementSection
    total_assets: int
    total_liabilities: int
    total_equity: int
    net_income: int
    is_balanced: bool

    @property
    def total_liabilities_and_equity(self) -> int:
        return self.total_liabilities + self.total_equity + self.net_income


@dataclass(frozen=True)
class TrialBalanceLine:
    account_code: str
    account_name: str
    account_type: str
    debit_total: int
    credit_total: int


@dataclass(frozen=True)
class TrialBalanceReport:
    start_date: date | None
    end_date: date | None
    lines: tuple[TrialBalanceLine, ...]
    total_debits: int
    total_credits: int

    @property
    def is_balanced(self) -> bool:
        return self.total_debits == self.total_credits
