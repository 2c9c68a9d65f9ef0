"""
Config -> Kernel Bridges.

Functions that convert a parsed LedgerConfig into kernel inputs and seed
the configured reference data.  These live in ledger_config (the producer)
because the kernel must never import ledger_config.

Usage:
    from ledger_config import get_active_config
    from ledger_config.bridges import build_approval_policy, seed_chart_of_accounts

    config = get_active_config()
    seed_chart_of_accounts(session, config, actor_id=1)
    policy = build_approval_policy(config)
"""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_config.schema import LedgerConfig
from ledger_engines.allocation import (
    AllocationStrategy,
    LargestBalanceFirstStrategy,
    OverdueFirstStrategy,
)
from ledger_engines.approval import RuleBasedApprovalPolicy
from ledger_kernel.domain.accounts import SystemAccounts
from ledger_kernel.domain.approval import ApprovalRuleSpec
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import DEFAULT_NORMAL_BALANCE, Account, AccountType
from ledger_kernel.models.approval import ApprovalRule

logger = get_logger("config.bridges")

_STRATEGIES: dict[str, type[AllocationStrategy]] = {
    OverdueFirstStrategy.name: OverdueFirstStrategy,
    LargestBalanceFirstStrategy.name: LargestBalanceFirstStrategy,
}


def build_system_accounts(config: LedgerConfig) -> SystemAccounts:
    accounts = config.system_accounts
    return SystemAccounts(
        cash=accounts.cash,
        bank=accounts.bank,
        receivable=accounts.receivable,
        student_credit=accounts.student_credit,
        default_revenue=accounts.default_revenue,
        payment_method_accounts=dict(accounts.payment_methods),
    )


def build_approval_policy(config: LedgerConfig) -> RuleBasedApprovalPolicy:
    """Policy over the configured rules, in configuration order."""
    return RuleBasedApprovalPolicy([
        ApprovalRuleSpec(
            rule_name=rule.rule_name,
            transaction_type=rule.transaction_type,
            min_amount=rule.min_amount,
            days_since_transaction=rule.days_since_transaction,
            required_role=rule.required_role,
            is_active=rule.is_active,
        )
        for rule in config.approval_rules
    ])


def policy_from_rules(rules: Iterable[ApprovalRule]) -> RuleBasedApprovalPolicy:
    """Policy over stored approval_rules rows, ordered by id."""
    return RuleBasedApprovalPolicy([
        ApprovalRuleSpec(
            rule_name=row.rule_name,
            transaction_type=row.transaction_type,
            min_amount=row.min_amount,
            days_since_transaction=row.days_since_transaction,
            required_role=row.required_role,
            is_active=row.is_active,
        )
        for row in sorted(rules, key=lambda r: r.id)
    ])


def load_approval_policy(session: Session) -> RuleBasedApprovalPolicy:
    return policy_from_rules(session.scalars(select(ApprovalRule)))


def build_allocation_strategy(config: LedgerConfig) -> AllocationStrategy:
    try:
        return _STRATEGIES[config.allocation_strategy]()
    except KeyError:
        raise ValueError(
            f"Unknown allocation strategy {config.allocation_strategy!r}; "
            f"expected one of {sorted(_STRATEGIES)}"
        ) from None


def seed_chart_of_accounts(session: Session, config: LedgerConfig, actor_id: int) -> int:
    """
    Insert configured accounts that do not exist yet.

    Existing codes are left untouched.  Flushes but does not commit.
    Returns the number of accounts created.
    """
    existing = set(session.scalars(select(Account.code)))
    created = 0
    for definition in config.accounts:
        if definition.code in existing:
            continue
        account_type = AccountType(definition.account_type)
        session.add(
            Account(
                code=definition.code,
                name=definition.name,
                account_type=account_type.value,
                normal_balance=(
                    definition.normal_balance
                    or DEFAULT_NORMAL_BALANCE[account_type].value
                ),
                description=definition.description,
                is_active=True,
                created_by_id=actor_id,
            )
        )
        created += 1
    session.flush()
    logger.info(
        "chart_of_accounts_seeded",
        extra={
            "config_id": config.config_id,
            "accounts_created": created,
            "existing": len(existing),
        },
    )
    return created


def seed_approval_rules(session: Session, config: LedgerConfig) -> int:
    """Insert configured approval rules by name; returns the number created."""
    existing = set(session.scalars(select(ApprovalRule.rule_name)))
    created = 0
    for rule in config.approval_rules:
        if rule.rule_name in existing:
            continue
        session.add(
            ApprovalRule(
                rule_name=rule.rule_name,
                description=rule.description,
                transaction_type=rule.transaction_type,
                min_amount=rule.min_amount,
                days_since_transaction=rule.days_since_transaction,
                required_role=rule.required_role,
                is_active=rule.is_active,
            )
        )
        created += 1
    session.flush()
    logger.info(
        "approval_rules_seeded",
        extra={"config_id": config.config_id, "rules_created": created},
    )
    return created
