"""
Module ORM Registry (``ledger_modules._orm_registry``).

Responsibility
--------------
Ensure all kernel and module-level SQLAlchemy ORM models are imported so
that ``Base.metadata`` contains their table definitions before tables are
created.

Architecture position
---------------------
**Modules layer** -- utility.  Imported lazily by
``ledger_kernel.db.engine.create_tables``.
"""


def import_all_orm_models() -> None:
    """Import kernel models and every ``ledger_modules.*.orm`` module.

    Idempotent -- repeated calls are harmless.
    """
    import ledger_kernel.models  # noqa: F401
    import ledger_modules.receivables.orm  # noqa: F401
    import ledger_modules.credit.orm  # noqa: F401
