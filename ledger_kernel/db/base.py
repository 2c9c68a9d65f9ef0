"""
Module: ledger_kernel.db.base
Responsibility: Declarative base classes for all SQLAlchemy ORM models.  Provides
    the integer primary key convention, the UTC timestamp type, the type
    annotation map for consistent column types, and the TrackedBase mixin for
    audit timestamps.
Architecture position: Kernel > DB.  This is the lowest-level import target
    within the kernel.  ALL model files import from here.  This module MUST NOT
    import from models/, services/, selectors/, domain/, or outer layers.

Invariants enforced:
    - Integer money: type_annotation_map maps Python int to BigInteger.  Every
      monetary column is an integer count of minor currency units.
      NEVER use float or Numeric for monetary amounts.
    - UTC timestamps: datetime columns store naive UTC and load as
      timezone-aware UTC (UTCDateTime).
    - Audit timestamps: TrackedBase provides created_at, updated_at,
      created_by_id, and updated_by_id.

Failure modes:
    - ValueError from UTCDateTime if a naive datetime is bound (callers must
      pass aware datetimes, normally from an injected Clock).
"""

from datetime import date, datetime, timezone
from typing import ClassVar

from sqlalchemy import BigInteger, Date, DateTime, Integer, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

# SQLite only aliases rowid for a column declared exactly INTEGER PRIMARY KEY.
IntPK = BigInteger().with_variant(Integer(), "sqlite")


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware datetime stored as naive UTC.

    Contract:
        SQLite has no timezone-aware timestamp type.  Values are normalized to
        UTC on the way in and re-tagged as UTC on the way out.

    Guarantees:
        - process_bind_param: aware datetime -> naive UTC.
        - process_result_value: naive -> aware UTC.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError(f"Naive datetime not allowed: {value!r}")
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Contract:
        Every ORM model in the system inherits from Base (or TrackedBase).
        Base provides an autoincrement integer primary key and a
        type_annotation_map that enforces consistent column types across the
        entire schema.

    Guarantees:
        - id is an autoincrement integer.
        - int maps to BigInteger -- money in minor units.
        - datetime maps to UTCDateTime -- always timezone-aware on load.
        - date maps to Date.
    """

    type_annotation_map: ClassVar[dict] = {
        int: BigInteger,
        datetime: UTCDateTime(),
        date: Date,
        str: String(255),
    }

    id: Mapped[int] = mapped_column(
        IntPK,
        primary_key=True,
        autoincrement=True,
    )


class TrackedBase(Base):
    """
    Abstract base with audit timestamp and actor tracking.

    Contract:
        Every model that inherits TrackedBase records who created and last
        modified the row, and when.  Services that depend on creation time
        (replay windows) set created_at explicitly from their Clock; the server
        default only covers rows written without one.

    Guarantees:
        - created_at defaults to server CURRENT_TIMESTAMP on INSERT.
        - updated_at auto-updates on every UPDATE.
        - created_by_id is required (NOT NULL) -- every record has a creator.
        - updated_by_id is nullable.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.current_timestamp(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.current_timestamp(),
        onupdate=func.current_timestamp(),
        nullable=False,
    )

    created_by_id: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    updated_by_id: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )
