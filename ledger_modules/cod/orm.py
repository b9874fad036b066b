"""
Module: ledger_modules.cod.orm
Responsibility: SQLAlchemy ORM persistence for COD collections and the
    settlement batches that clear them.

Architecture position: Modules > COD > ORM.  Drivers and customer invoices
    live outside the accounting core and are referenced by id with NO
    foreign key.

Invariants enforced:
    - One collection per customer invoice (unique invoice_id).
    - A collection is linked to a settlement (weak link via settlement_id),
      never contained by it.
    - A settled collection is frozen (guards.py).
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import DocumentBase, LedgerId, UUIDString


class CodSettlement(DocumentBase):
    """Batch clearing of a driver's collected cash."""

    __tablename__ = "cod_settlements"

    __table_args__ = (
        Index("idx_cod_settlement_driver", "driver_id"),
        CheckConstraint("total_amount > 0", name="chk_cod_settlement_total_positive"),
    )

    driver_id: Mapped[str] = mapped_column(String(64), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)
    received_by: Mapped[str] = mapped_column(String(100), nullable=False)
    settled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    journal_id: Mapped[int | None] = mapped_column(
        LedgerId, ForeignKey("journals.id"), nullable=True
    )

    collections: Mapped[list["CodCollection"]] = relationship(
        back_populates="settlement",
        order_by="CodCollection.collected_at",
        lazy="selectin",
    )

    def to_dto(self):
        from ledger_modules.cod.models import SettlementInfo

        return SettlementInfo(
            id=self.id,
            driver_id=self.driver_id,
            total_amount=self.total_amount,
            received_by=self.received_by,
            settled_at=self.settled_at,
            note=self.note,
            journal_id=self.journal_id,
            collection_ids=tuple(c.id for c in self.collections),
        )


class CodCollection(DocumentBase):
    """Cash collected by a driver for one invoice."""

    __tablename__ = "cod_collections"

    __table_args__ = (
        UniqueConstraint("invoice_id", name="uq_cod_collection_invoice"),
        Index("idx_cod_collection_driver_status", "driver_id", "status"),
        CheckConstraint("amount > 0", name="chk_cod_collection_amount_positive"),
    )

    invoice_id: Mapped[str] = mapped_column(String(64), nullable=False)
    driver_id: Mapped[str] = mapped_column(String(64), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="collected", nullable=False)
    settlement_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("cod_settlements.id"), nullable=True
    )
    collected_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    settlement: Mapped[CodSettlement | None] = relationship(back_populates="collections")

    def to_dto(self):
        from ledger_modules.cod.models import CollectionInfo, CollectionStatus

        return CollectionInfo(
            id=self.id,
            invoice_id=self.invoice_id,
            driver_id=self.driver_id,
            amount=self.amount,
            status=CollectionStatus(self.status),
            settlement_id=self.settlement_id,
            collected_at=self.collected_at,
        )

    def __repr__(self) -> str:
        return f"<CodCollection invoice={self.invoice_id} {self.status} amount={self.amount}>"
