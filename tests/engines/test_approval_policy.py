"""Tests for rule-based approval evaluation."""

import pytest

from ledger_engines.approval import RuleBasedApprovalPolicy, rule_matches, select_matching_rule
from ledger_kernel.domain.approval import (
    ApprovalRuleSpec,
    ApprovalStatus,
    can_transition,
)

HIGH_VALUE = ApprovalRuleSpec("High Value Void", "VOID", min_amount=50000)
AGED = ApprovalRuleSpec("Aged Transaction Void", "VOID", days_since_transaction=7)
LARGE_PAYMENT = ApprovalRuleSpec("Large Payment", "FEE_PAYMENT", min_amount=100000)


class TestRuleMatches:

    def test_amount_threshold_inclusive(self):
        assert rule_matches(HIGH_VALUE, "VOID", 50000)
        assert not rule_matches(HIGH_VALUE, "VOID", 49999)

    def test_age_threshold_inclusive(self):
        assert rule_matches(AGED, "VOID", 1, age_days=7)
        assert not rule_matches(AGED, "VOID", 1, age_days=6)

    def test_type_must_match(self):
        assert not rule_matches(HIGH_VALUE, "FEE_PAYMENT", 90000)

    def test_inactive_never_matches(self):
        rule = ApprovalRuleSpec("Off", "VOID", min_amount=1, is_active=False)

        assert not rule_matches(rule, "VOID", 100)

    @pytest.mark.parametrize("amount,age_days", [(1, 0), (10_000_000, 365)])
    def test_rule_without_thresholds_never_matches(self, amount, age_days):
        rule = ApprovalRuleSpec("All Voids", "VOID")

        assert not rule_matches(rule, "VOID", amount, age_days=age_days)

    def test_policy_skips_rule_without_thresholds(self):
        policy = RuleBasedApprovalPolicy([ApprovalRuleSpec("All Voids", "VOID"), HIGH_VALUE])

        assert not policy.evaluate("VOID", 100).needs_approval
        assert policy.evaluate("VOID", 50000).matched_rule is HIGH_VALUE

    def test_either_threshold_suffices(self):
        rule = ApprovalRuleSpec("Either", "VOID", min_amount=50000, days_since_transaction=7)

        assert rule_matches(rule, "VOID", 10, age_days=30)
        assert rule_matches(rule, "VOID", 60000, age_days=0)


class TestPolicy:

    def test_first_match_wins(self):
        policy = RuleBasedApprovalPolicy([HIGH_VALUE, AGED])

        evaluation = policy.evaluate("VOID", 60000, age_days=10)

        assert evaluation.needs_approval
        assert evaluation.matched_rule is HIGH_VALUE
        assert "High Value Void" in evaluation.reason

    def test_no_match(self):
        policy = RuleBasedApprovalPolicy([HIGH_VALUE, AGED, LARGE_PAYMENT])

        evaluation = policy.evaluate("FEE_INVOICE", 10**9)

        assert not evaluation.needs_approval
        assert evaluation.matched_rule is None

    def test_select_matching_rule(self):
        assert select_matching_rule([HIGH_VALUE, AGED], "VOID", 1, 8) is AGED
        assert select_matching_rule([], "VOID", 1) is None

    def test_empty_policy_approves_everything(self):
        assert not RuleBasedApprovalPolicy().evaluate("VOID", 10**9, 365).needs_approval


class TestApprovalTransitions:

    def test_pending_is_the_only_open_state(self):
        assert can_transition(ApprovalStatus.PENDING, ApprovalStatus.APPROVED)
        assert can_transition(ApprovalStatus.PENDING, ApprovalStatus.REJECTED)
        assert not can_transition(ApprovalStatus.APPROVED, ApprovalStatus.PENDING)
        assert not can_transition(ApprovalStatus.REJECTED, ApprovalStatus.APPROVED)
