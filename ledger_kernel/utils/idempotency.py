"""
Idempotency helpers.

Explicit idempotency keys are caller-supplied free text.  They are trimmed,
bounded in length, and stored under a UNIQUE constraint so a retried request
can be recognized and answered with the original result.

Requests that carry no key (credit-balance payments, invoice creation) are
matched fuzzily instead; the item normalization used for that comparison
lives here too.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

DEFAULT_MAX_KEY_LENGTH = 128


def normalize_idempotency_key(
    key: str | None,
    max_length: int = DEFAULT_MAX_KEY_LENGTH,
) -> str | None:
    """
    Normalize a caller-supplied idempotency key.

    Returns None for a missing or blank key.  Otherwise the key is stripped
    and truncated to ``max_length`` characters.

    Example:
        >>> normalize_idempotency_key("  pay-42  ")
        'pay-42'
    """
    if key is None:
        return None
    trimmed = key.strip()
    if not trimmed:
        return None
    return trimmed[:max_length]


@dataclass(frozen=True, order=True)
class NormalizedItem:
    """Comparable form of an invoice line item."""

    fee_category_id: int
    amount: int
    description: str


def _item_field(item: Any, name: str) -> Any:
    if isinstance(item, Mapping):
        return item.get(name)
    return getattr(item, name, None)


def normalize_items(items: Iterable[Any]) -> tuple[NormalizedItem, ...]:
    """
    Normalize invoice items for order-independent comparison.

    Items may be mappings or objects with ``fee_category_id``, ``amount``
    and ``description``.  Descriptions are trimmed; the result is sorted by
    category id, then amount, then description.
    """
    normalized = [
        NormalizedItem(
            fee_category_id=int(_item_field(item, "fee_category_id") or 0),
            amount=int(_item_field(item, "amount") or 0),
            description=str(_item_field(item, "description") or "").strip(),
        )
        for item in items
    ]
    return tuple(sorted(normalized))


def same_item_set(left: Iterable[Any], right: Iterable[Any]) -> bool:
    """True if both item collections normalize to the same sequence."""
    return normalize_items(left) == normalize_items(right)
