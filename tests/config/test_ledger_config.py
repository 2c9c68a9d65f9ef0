"""
Ledger configuration: YAML parsing, validation and the kernel bridges.
"""

import logging

import pytest
import yaml
from sqlalchemy import select

from ledger_config import DEFAULT_CONFIG_PATH, get_active_config
from ledger_config.bridges import (
    build_allocation_strategy,
    build_approval_policy,
    build_system_accounts,
    load_approval_policy,
    seed_approval_rules,
    seed_chart_of_accounts,
)
from ledger_config.loader import compute_checksum, load_yaml_file, parse_config
from ledger_engines.allocation import LargestBalanceFirstStrategy, OverdueFirstStrategy
from ledger_kernel.models.account import Account
from ledger_kernel.models.approval import ApprovalRule


def _minimal(**overrides):
    data = {
        "config_id": "test",
        "chart_of_accounts": [
            {"code": "1010", "name": "Cash", "type": "asset"},
            {"code": "2020", "name": "Student Credit", "type": "LIABILITY"},
        ],
    }
    data.update(overrides)
    return data


class TestDefaultConfig:

    def test_loads_packaged_set(self, ledger_config):
        assert ledger_config.config_id == "school-default"
        assert ledger_config.idempotency.replay_window_seconds == 15
        assert ledger_config.idempotency.key_max_length == 128
        assert ledger_config.allocation_strategy == "overdue_first_fifo"
        assert [r.rule_name for r in ledger_config.approval_rules] == [
            "High Value Void",
            "Aged Transaction Void",
            "Large Payment",
        ]

    def test_checksum_is_stable(self):
        raw = load_yaml_file(DEFAULT_CONFIG_PATH)

        assert get_active_config().checksum == compute_checksum(raw)
        assert len(compute_checksum(raw)) == 64

    def test_trace_logged(self, captured_logs):
        get_active_config()

        traces = [r for r in captured_logs() if r["message"] == "LEDGER_CONFIG_TRACE"]
        assert traces and traces[0]["config_id"] == "school-default"

    def test_custom_path(self, tmp_path):
        path = tmp_path / "ledger.yaml"
        path.write_text(yaml.safe_dump(_minimal(config_id="branch")))

        assert get_active_config(path).config_id == "branch"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml")


class TestParseConfig:

    def test_defaults_applied(self):
        config = parse_config(_minimal())

        assert config.version == 1
        assert config.system_accounts.receivable == "1100"
        assert config.idempotency.replay_window_seconds == 15
        assert config.accounts[0].account_type == "ASSET"

    def test_duplicate_code_rejected(self):
        data = _minimal(chart_of_accounts=[
            {"code": "1010", "name": "Cash", "type": "ASSET"},
            {"code": "1010", "name": "Petty Cash", "type": "ASSET"},
        ])

        with pytest.raises(ValueError, match="Duplicate"):
            parse_config(data)

    def test_unknown_account_type_rejected(self):
        data = _minimal(chart_of_accounts=[{"code": "9", "name": "X", "type": "CONTRA"}])

        with pytest.raises(ValueError):
            parse_config(data)

    @pytest.mark.parametrize("field", ["replay_window_seconds", "key_max_length"])
    def test_non_positive_idempotency_limits_rejected(self, field):
        with pytest.raises(ValueError):
            parse_config(_minimal(idempotency={field: 0}))

    def test_missing_config_id(self):
        data = _minimal()
        del data["config_id"]

        with pytest.raises(KeyError):
            parse_config(data)

    def test_payment_method_keys_upper_cased(self):
        config = parse_config(_minimal(system_accounts={"payment_methods": {"mpesa": "1030"}}))

        assert build_system_accounts(config).account_for_method("MPESA") == "1030"


class TestBridges:

    def test_system_accounts(self, ledger_config):
        accounts = build_system_accounts(ledger_config)

        assert accounts.account_for_method("cash") == "1010"
        assert accounts.account_for_method("MPESA") == "1020"
        assert accounts.account_for_method("AIRTEL") == "1020"
        assert accounts.student_credit == "2020"

    def test_approval_policy_in_config_order(self, ledger_config):
        policy = build_approval_policy(ledger_config)

        assert policy.evaluate("VOID", 50000).matched_rule.rule_name == "High Value Void"
        assert policy.evaluate("VOID", 1, age_days=7).matched_rule.rule_name == (
            "Aged Transaction Void"
        )
        assert not policy.evaluate("FEE_PAYMENT", 99999).needs_approval

    def test_allocation_strategy(self, ledger_config):
        assert isinstance(build_allocation_strategy(ledger_config), OverdueFirstStrategy)
        config = parse_config(_minimal(allocation_strategy="largest_balance_first"))
        assert isinstance(build_allocation_strategy(config), LargestBalanceFirstStrategy)

    def test_unknown_allocation_strategy(self):
        with pytest.raises(ValueError, match="Unknown allocation strategy"):
            build_allocation_strategy(parse_config(_minimal(allocation_strategy="random")))

    def test_seed_chart_is_idempotent(self, bare_session, ledger_config):
        first = seed_chart_of_accounts(bare_session, ledger_config, actor_id=1)
        second = seed_chart_of_accounts(bare_session, ledger_config, actor_id=1)

        assert first == len(ledger_config.accounts)
        assert second == 0
        credit = bare_session.scalars(select(Account).where(Account.code == "2020")).one()
        assert credit.normal_balance == "CREDIT"

    def test_seeding_logs_counts_at_info(self, bare_session, ledger_config, captured_logs):
        logging.getLogger("ledger_kernel").setLevel(logging.INFO)

        seed_chart_of_accounts(bare_session, ledger_config, actor_id=1)
        seed_approval_rules(bare_session, ledger_config)

        records = {r["message"]: r for r in captured_logs()}
        chart = records["chart_of_accounts_seeded"]
        rules = records["approval_rules_seeded"]
        assert chart["level"] == "INFO"
        assert chart["accounts_created"] == len(ledger_config.accounts)
        assert chart["existing"] == 0
        assert rules["rules_created"] == 3

    def test_seed_and_load_approval_rules(self, bare_session, ledger_config):
        assert seed_approval_rules(bare_session, ledger_config) == 3
        assert seed_approval_rules(bare_session, ledger_config) == 0

        stored = bare_session.scalars(select(ApprovalRule)).all()
        policy = load_approval_policy(bare_session)

        assert {r.rule_name for r in stored} == {r.rule_name for r in ledger_config.approval_rules}
        assert policy.evaluate("FEE_PAYMENT", 100000).needs_approval
