"""
Module: ledger_kernel.selectors.base
Responsibility: Base class for read-only query selectors.
Architecture position: Kernel > Selectors.  May import from db/base.py and
    models/.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only access: selectors MUST NOT add, delete, flush or commit.
    - DTO return convention: selectors return frozen dataclasses, not ORM rows.
    - The caller owns the session and its transaction scope.
"""

from sqlalchemy.orm import Session


class BaseSelector:
    """Holds the caller's session for read-only queries."""

    def __init__(self, session: Session):
        self.session = session
