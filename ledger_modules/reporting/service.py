"""
Reporting Service -- read-only statements over the general ledger.

Orchestrates data loading from the kernel LedgerSelector and delegates to
the pure transformation functions in statements.py.  No financial logic
lives in this class and nothing is written.
"""

from __future__ import annotations

from datetime import date

from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.exceptions import AccountNotFoundError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.selectors.ledger_selector import LedgerSelector
from ledger_modules.reporting.models import (
    BalanceSheetReport,
    IncomeSummary,
    TrialBalanceReport,
)
from ledger_modules.reporting.statements import (
    build_balance_sheet,
    build_trial_balance,
    compute_net_income,
)

logger = get_logger("modules.reporting.service")


class ReportingService:
    """
    Balance sheet, trial balance and net income.

    Contract:
        Balances count only posted, non-voided lines dated on or before the
        report date.  ``as_of_date`` defaults to the clock's today.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()
        self._ledger = LedgerSelector(session)

    def balance_sheet(self, as_of_date: date | None = None) -> BalanceSheetReport:
        as_of = as_of_date or self._clock.today()
        report = build_balance_sheet(as_of, self._ledger.account_balances(as_of_date=as_of))
        logger.info(
            "balance_sheet_generated",
            extra={
                "as_of_date": as_of.isoformat(),
                "total_assets": report.total_assets,
                "total_liabilities_and_equity": report.total_liabilities_and_equity,
                "is_balanced": report.is_balanced,
            },
        )
        if not report.is_balanced:
            logger.warning(
                "balance_sheet_out_of_balance",
                extra={
                    "as_of_date": as_of.isoformat(),
                    "difference": report.total_assets - report.total_liabilities_and_equity,
                },
            )
        return report

    def trial_balance(
        self,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> TrialBalanceReport:
        report = build_trial_balance(
            self._ledger.trial_balance(start_date=start_date, end_date=end_date),
            start_date=start_date,
            end_date=end_date,
        )
        logger.info(
            "trial_balance_generated",
            extra={
                "line_count": len(report.lines),
                "total_debits": report.total_debits,
                "total_credits": report.total_credits,
            },
        )
        return report

    def income_summary(
        self,
        as_of_date: date | None = None,
        start_date: date | None = None,
    ) -> IncomeSummary:
        return compute_net_income(
            self._ledger.account_balances(as_of_date=as_of_date, start_date=start_date)
        )

    def net_income(self, as_of_date: date | None = None, start_date: date | None = None) -> int:
        """Revenue minus expenses over the date filter."""
        return self.income_summary(as_of_date, start_date).net_income

    def account_balance(self, account_code: str, as_of_date: date | None = None) -> int:
        """Normal-side balance of one account."""
        for row in self._ledger.account_balances(as_of_date=as_of_date):
            if row.account_code == account_code:
                return row.balance
        raise AccountNotFoundError(account_code)
