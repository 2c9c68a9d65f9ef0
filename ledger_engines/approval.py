"""
ledger_engines.approval -- Pure approval rule evaluation engine.

Responsibility:
    Decide whether posting or voiding a journal entry must wait for review,
    given the entry type, its total amount, and its age in days.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import ledger_kernel/domain/ types.

Invariants enforced:
    - Deterministic rule ordering: rules are evaluated in the order supplied
      (config order); first match wins.
    - Inactive rules never match.
    - Rules with neither an amount nor an age threshold never match.
    - Purity: no clock access, no I/O, no database.  Callers compute the
      entry's age from their own Clock.

Failure modes:
    - Returns ``ApprovalEvaluation(needs_approval=False)`` when no rule
      matches (fail-open for unconfigured entry types).
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from ledger_kernel.domain.approval import ApprovalEvaluation, ApprovalRuleSpec


def rule_matches(
    rule: ApprovalRuleSpec,
    transaction_type: str,
    amount: int,
    age_days: int = 0,
) -> bool:
    """Check if a rule applies to the given action.

    A rule matches if it is active, its transaction type equals the
    requested one, and one of its thresholds is set and reached.  A rule
    with neither threshold never matches.
    """
    if not rule.is_active or rule.transaction_type != transaction_type:
        return False

    if rule.min_amount is not None and amount >= rule.min_amount:
        return True
    if rule.days_since_transaction is not None and age_days >= rule.days_since_transaction:
        return True
    return False


def select_matching_rule(
    rules: Iterable[ApprovalRuleSpec],
    transaction_type: str,
    amount: int,
    age_days: int = 0,
) -> ApprovalRuleSpec | None:
    for rule in rules:
        if rule_matches(rule, transaction_type, amount, age_days):
            return rule
    return None


class RuleBasedApprovalPolicy:
    """
    ApprovalPolicy backed by an ordered list of rules.

    Usage:
        policy = RuleBasedApprovalPolicy([
            ApprovalRuleSpec("High Value Void", "VOID", min_amount=50000),
        ])
        policy.evaluate("VOID", 75000).needs_approval   # True
    """

    def __init__(self, rules: Sequence[ApprovalRuleSpec] = ()):
        self._rules = tuple(rules)

    @property
    def rules(self) -> tuple[ApprovalRuleSpec, ...]:
        return self._rules

    def evaluate(
        self,
        transaction_type: str,
        amount: int,
        age_days: int = 0,
    ) -> ApprovalEvaluation:
        rule = select_matching_rule(self._rules, transaction_type, amount, age_days)
        if rule is None:
            return ApprovalEvaluation(
                needs_approval=False,
                reason="No matching rule for type/amount/age",
            )
        return ApprovalEvaluation(
            needs_approval=True,
            matched_rule=rule,
            reason=f"Approval required by rule '{rule.rule_name}'",
        )
