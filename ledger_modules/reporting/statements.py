"""
Pure financial statement transformation functions.

These functions turn per-account balances from the ledger selector into
structured statements.  ZERO I/O.  ZERO side effects.

- No database access
- No clock access
- Deterministic: same inputs always produce same outputs
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable, Sequence
from datetime import date
from enum import Enum

from ledger_kernel.models.account import AccountType
from ledger_kernel.selectors.ledger_selector import AccountBalance, TrialBalanceRow
from ledger_modules.reporting.models import (
    BalanceSheetReport,
    IncomeSummary,
    StatementLine,
    StatementSection,
    TrialBalanceLine,
    TrialBalanceReport,
)


def _of_type(balances: Iterable[AccountBalance], account_type: AccountType) -> list[AccountBalance]:
    return [b for b in balances if b.account_type == account_type.value]


def _make_section(label: str, balances: Sequence[AccountBalance]) -> StatementSection:
    lines = tuple(
        StatementLine(
            account_code=b.account_code,
            account_name=b.account_name,
            balance=b.balance,
        )
        for b in sorted(balances, key=lambda b: b.account_code)
        if b.balance != 0
    )
    return StatementSection(label=label, lines=lines, total=sum(b.balance for b in balances))


def compute_net_income(balances: Sequence[AccountBalance]) -> IncomeSummary:
    """Sum of REVENUE balances and EXPENSE balances."""
    return IncomeSummary(
        total_revenue=sum(b.balance for b in _of_type(balances, AccountType.REVENUE)),
        total_expenses=sum(b.balance for b in _of_type(balances, AccountType.EXPENSE)),
    )


def build_balance_sheet(as_of_date: date, balances: Sequence[AccountBalance]) -> BalanceSheetReport:
    """
    Build the balance sheet and check the accounting equation.

    Net income for the same filter is carried separately rather than folded
    into equity, so ``is_balanced`` reads
    ``assets == liabilities + equity + net_income``.
    """
    assets = _make_section("Assets", _of_type(balances, AccountType.ASSET))
    liabilities = _make_section("Liabilities", _of_type(balances, AccountType.LIABILITY))
    equity = _make_section("Equity", _of_type(balances, AccountType.EQUITY))
    net_income = compute_net_income(balances).net_income

    return BalanceSheetReport(
        as_of_date=as_of_date,
        assets=assets,
        liabilities=liabilities,
        equity=equity,
        total_assets=assets.total,
        total_liabilities=liabilities.total,
        total_equity=equity.total,
        net_income=net_income,
        is_balanced=assets.total == liabilities.total + equity.total + net_income,
    )


def build_trial_balance(
    rows: Sequence[TrialBalanceRow],
    start_date: date | None = None,
    end_date: date | None = None,
) -> TrialBalanceReport:
    lines = tuple(
        TrialBalanceLine(
            account_code=row.account_code,
            account_name=row.account_name,
            account_type=row.account_type,
            debit_total=row.debit_total,
            credit_total=row.credit_total,
        )
        for row in rows
    )
    return TrialBalanceReport(
        start_date=start_date,
        end_date=end_date,
        lines=lines,
        total_debits=sum(line.debit_total for line in lines),
        total_credits=sum(line.credit_total for line in lines),
    )


def render_to_dict(obj: object) -> dict | list | str | int | float | bool | None:
    """
    Convert any report dataclass to a plain dict for JSON serialization.

    Dates become ISO strings, enums their value, tuples lists.  Properties
    such as ``is_balanced`` on the trial balance are not included.
    """
    if obj is None:
        return None
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (list, tuple)):
        return [render_to_dict(item) for item in obj]
    if isinstance(obj, dict):
        return {str(k): render_to_dict(v) for k, v in obj.items()}
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {
            f.name: render_to_dict(getattr(obj, f.name))
            for f in dataclasses.fields(obj)
        }
    if isinstance(obj, (str, int, float, bool)):
        return obj
    return str(obj)
