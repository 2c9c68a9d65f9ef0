"""
Approval domain types (``ledger_kernel.domain.approval``).

Responsibility
--------------
Pure value objects for the journal approval gate: the approval status
lifecycle, the rule shape, the evaluation result, and the policy protocol
that the posting engine consults.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* ``APPROVAL_TRANSITIONS`` defines the only valid status transitions.
  APPROVED and REJECTED are terminal.
* The posting engine never looks rules up itself; it asks an injected
  ``ApprovalPolicy``.  A ``None`` policy means nothing requires approval.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol


class ApprovalStatus(str, Enum):
    """Approval state of a journal entry or approval request."""

    APPROVED = "APPROVED"
    PENDING = "PENDING"
    REJECTED = "REJECTED"


APPROVAL_TRANSITIONS: dict[ApprovalStatus, frozenset[ApprovalStatus]] = {
    ApprovalStatus.PENDING: frozenset({
        ApprovalStatus.APPROVED,
        ApprovalStatus.REJECTED,
    }),
    ApprovalStatus.APPROVED: frozenset(),
    ApprovalStatus.REJECTED: frozenset(),
}


def can_transition(current: ApprovalStatus, target: ApprovalStatus) -> bool:
    return target in APPROVAL_TRANSITIONS[current]


class ApprovalAction(str, Enum):
    """What a pending approval request will do once approved."""

    POST = "POST"
    VOID = "VOID"


# Pseudo entry type used by rules that gate voids rather than posts.
VOID_TRANSACTION_TYPE = "VOID"


@dataclass(frozen=True)
class ApprovalRuleSpec:
    """A single approval rule.

    ``transaction_type`` is a journal entry type (e.g. FEE_PAYMENT) or
    ``VOID``.  A rule matches when any of its set thresholds is reached:
    ``amount >= min_amount`` or ``age_days >= days_since_transaction``.
    A rule with no thresholds matches every request of its type.
    """

    rule_name: str
    transaction_type: str
    min_amount: int | None = None
    days_since_transaction: int | None = None
    required_role: str | None = None
    is_active: bool = True


@dataclass(frozen=True)
class ApprovalEvaluation:
    """Result of evaluating whether an action needs approval."""

    needs_approval: bool
    matched_rule: ApprovalRuleSpec | None = None
    reason: str = ""


class ApprovalPolicy(Protocol):
    """Pure decision function consulted by the posting engine."""

    def evaluate(
        self,
        transaction_type: str,
        amount: int,
        age_days: int = 0,
    ) -> ApprovalEvaluation:
        ...
