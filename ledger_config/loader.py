"""
Configuration Loader (``ledger_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the typed
``ledger_config.schema`` dataclasses.  Runtime callers go through
``ledger_config.get_active_config()`` instead of calling this directly.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Invalid values (unknown account type, non-positive limits)  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from ledger_config.schema import (
    AccountDef,
    ApprovalRuleDef,
    IdempotencyDef,
    LedgerConfig,
    SystemAccountsDef,
)

_ACCOUNT_TYPES = frozenset({"ASSET", "LIABILITY", "EQUITY", "REVENUE", "EXPENSE"})
_NORMAL_BALANCES = frozenset({"DEBIT", "CREDIT"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file and return its contents as a dict."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _optional_int(value: Any) -> int | None:
    return None if value is None else int(value)


def parse_account(data: dict[str, Any]) -> AccountDef:
    account_type = str(data["type"]).upper()
    if account_type not in _ACCOUNT_TYPES:
        raise ValueError(f"Unknown account type {account_type!r} for {data['code']}")
    normal_balance = data.get("normal_balance")
    if normal_balance is not None:
        normal_balance = str(normal_balance).upper()
        if normal_balance not in _NORMAL_BALANCES:
            raise ValueError(f"Unknown normal balance {normal_balance!r} for {data['code']}")
    return AccountDef(
        code=str(data["code"]),
        name=data["name"],
        account_type=account_type,
        normal_balance=normal_balance,
        description=data.get("description"),
    )


def parse_system_accounts(data: dict[str, Any]) -> SystemAccountsDef:
    defaults = SystemAccountsDef()
    methods = data.get("payment_methods", defaults.payment_methods)
    return SystemAccountsDef(
        cash=str(data.get("cash", defaults.cash)),
        bank=str(data.get("bank", defaults.bank)),
        receivable=str(data.get("receivable", defaults.receivable)),
        student_credit=str(data.get("student_credit", defaults.student_credit)),
        default_revenue=str(data.get("default_revenue", defaults.default_revenue)),
        payment_methods={str(k).upper(): str(v) for k, v in methods.items()},
    )


def parse_approval_rule(data: dict[str, Any]) -> ApprovalRuleDef:
    return ApprovalRuleDef(
        rule_name=data["name"],
        transaction_type=data["transaction_type"],
        min_amount=_optional_int(data.get("min_amount")),
        days_since_transaction=_optional_int(data.get("days_since_transaction")),
        required_role=data.get("required_role"),
        description=data.get("description"),
        is_active=bool(data.get("is_active", True)),
    )


def parse_idempotency(data: dict[str, Any]) -> IdempotencyDef:
    defaults = IdempotencyDef()
    window = int(data.get("replay_window_seconds", defaults.replay_window_seconds))
    max_length = int(data.get("key_max_length", defaults.key_max_length))
    if window <= 0:
        raise ValueError("replay_window_seconds must be positive")
    if max_length <= 0:
        raise ValueError("key_max_length must be positive")
    return IdempotencyDef(replay_window_seconds=window, key_max_length=max_length)


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON form of the raw configuration."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def parse_config(data: dict[str, Any]) -> LedgerConfig:
    """Parse a full configuration dict."""
    accounts = tuple(parse_account(item) for item in data.get("chart_of_accounts", []))
    codes = [account.code for account in accounts]
    if len(codes) != len(set(codes)):
        raise ValueError("Duplicate account code in chart_of_accounts")

    return LedgerConfig(
        config_id=data["config_id"],
        version=int(data.get("version", 1)),
        system_accounts=parse_system_accounts(data.get("system_accounts", {})),
        idempotency=parse_idempotency(data.get("idempotency", {})),
        accounts=accounts,
        approval_rules=tuple(
            parse_approval_rule(item) for item in data.get("approval_rules", [])
        ),
        allocation_strategy=data.get("allocation_strategy", "overdue_first_fifo"),
        checksum=compute_checksum(data),
    )


def load_config(path: Path) -> LedgerConfig:
    return parse_config(load_yaml_file(path))
