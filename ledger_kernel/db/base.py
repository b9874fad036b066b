"""
Declarative bases for every ledger table.

Two key conventions:

* ``LedgerRowBase``: auto-increment integer ids for rows that are only ever
  addressed internally (accounts, periods, journals, journal lines, the
  inventory cost ledger and snapshots).
* ``DocumentBase``: uuid4 ids for documents that leave the system (supplier
  invoices and payments, credit notes, COD collections and settlements,
  backorders, vouchers).

``Decimal`` columns default to ``Numeric(18, 2)``; unit costs use
``db.types.UnitCost`` for four places.  Floats are never mapped.

Nothing here may import from models, services, selectors or modules.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, DateTime, Integer, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

# SQLite only auto-increments INTEGER PRIMARY KEY columns.
LedgerId = BigInteger().with_variant(Integer(), "sqlite")


class UUIDString(TypeDecorator):
    """uuid.UUID stored as its 36-character string form on every backend."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return str(value if isinstance(value, PyUUID) else PyUUID(str(value)))

    def process_result_value(self, value, dialect):
        return None if value is None else PyUUID(value)


class Base(DeclarativeBase):
    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(18, 2),
        datetime: DateTime(timezone=True),
        PyUUID: UUIDString(),
        int: BigInteger,
    }


class LedgerRowBase(Base):
    __abstract__ = True

    id: Mapped[int] = mapped_column(LedgerId, primary_key=True, autoincrement=True)


class TrackedBase(Base):
    """Adds server-stamped ``created_at`` and ``updated_at``."""

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class DocumentBase(TrackedBase):
    __abstract__ = True

    id: Mapped[PyUUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


UUID = PyUUID
