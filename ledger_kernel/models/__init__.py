"""Domain models for the ledger kernel."""

from ledger_kernel.models.account import Account, AccountType, NormalBalance
from ledger_kernel.models.approval import ApprovalRequest, ApprovalRule
from ledger_kernel.models.journal import EntryType, JournalEntry, JournalLine
from ledger_kernel.models.student import Student

__all__ = [
    "Account",
    "AccountType",
    "NormalBalance",
    "ApprovalRequest",
    "ApprovalRule",
    "EntryType",
    "JournalEntry",
    "JournalLine",
    "Student",
]
