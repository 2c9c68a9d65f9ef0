"""
Configuration Schema (``ledger_config.schema``).

Responsibility
--------------
Frozen dataclasses describing the parsed ledger configuration: the seed
chart of accounts, the system account codes automatic postings use, the
approval rules, and the replay guard limits.

Architecture position
---------------------
**Config layer** -- pure data definitions, no I/O.  Depends on nothing in
the kernel; ``ledger_config.bridges`` converts these into kernel inputs.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class AccountDef:
    """One account in the seed chart of accounts."""

    code: str
    name: str
    account_type: str
    normal_balance: str | None = None
    description: str | None = None


@dataclass(frozen=True)
class SystemAccountsDef:
    """Account codes the core posts to on its own behalf."""

    cash: str = "1010"
    bank: str = "1020"
    receivable: str = "1100"
    student_credit: str = "2020"
    default_revenue: str = "4300"
    payment_methods: dict[str, str] = field(default_factory=lambda: {"CASH": "1010"})


@dataclass(frozen=True)
class ApprovalRuleDef:
    rule_name: str
    transaction_type: str
    min_amount: int | None = None
    days_since_transaction: int | None = None
    required_role: str | None = None
    description: str | None = None
    is_active: bool = True


@dataclass(frozen=True)
class IdempotencyDef:
    replay_window_seconds: int = 15
    key_max_length: int = 128


@dataclass(frozen=True)
class LedgerConfig:
    """The complete parsed configuration set."""

    config_id: str
    version: int
    system_accounts: SystemAccountsDef
    idempotency: IdempotencyDef
    accounts: tuple[AccountDef, ...] = ()
    approval_rules: tuple[ApprovalRuleDef, ...] = ()
    allocation_strategy: str = "overdue_first_fifo"
    checksum: str = ""
