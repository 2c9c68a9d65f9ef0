"""Kernel services: chart of accounts, posting engine and approval review."""

from ledger_kernel.services.account_service import (
    AccountInfo,
    AccountResult,
    AccountService,
)
from ledger_kernel.services.approval_service import ApprovalResult, ApprovalService
from ledger_kernel.services.base import BaseService, OperationResult
from ledger_kernel.services.journal_service import (
    JournalPostResult,
    JournalService,
    VoidOutcome,
    VoidResult,
)

__all__ = [
    "AccountInfo",
    "AccountResult",
    "AccountService",
    "ApprovalResult",
    "ApprovalService",
    "BaseService",
    "JournalPostResult",
    "JournalService",
    "OperationResult",
    "VoidOutcome",
    "VoidResult",
]
