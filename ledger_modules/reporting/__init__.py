"""
Reporting Module.

Balance sheet with the accounting-equation check, trial balance, and net
income, computed on demand from posted journal lines.
"""

from ledger_modules.reporting.models import (
    BalanceSheetReport,
    IncomeSummary,
    StatementLine,
    StatementSection,
    TrialBalanceLine,
    TrialBalanceReport,
)
from ledger_modules.reporting.service import ReportingService
from ledger_modules.reporting.statements import render_to_dict

__all__ = [
    "BalanceSheetReport",
    "IncomeSummary",
    "ReportingService",
    "StatementLine",
    "StatementSection",
    "TrialBalanceLine",
    "TrialBalanceReport",
    "render_to_dict",
]
