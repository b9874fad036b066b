"""
COD Reconciliation Service (``ledger_modules.cod.service``).

Responsibility
--------------
Tracks cash drivers collect on delivery and settles it in batches.

``settle_driver`` locks every ``collected`` row of the driver, sums them,
creates one ``CodSettlement`` for exactly that sum, flips every row to
``settled`` with the settlement's id, and posts

    Dr cash (or chosen cash/bank account) / Cr driver_receivable

all in the caller's transaction.

Invariants enforced
-------------------
* settlement.total_amount == Sum(amount) of the rows it settles.
* Every row referencing a settlement has status ``settled``.
* Rows collected while a settlement is running wait on the row locks and
  are picked up by the next settlement, never half-included.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from ledger_kernel.db.types import ZERO, exceeds_money_precision, to_decimal
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import LineSpec
from ledger_kernel.domain.references import JournalReference, ReferenceKind
from ledger_kernel.domain.roles import AccountRole
from ledger_kernel.exceptions import (
    DuplicateCollectionError,
    InvalidAmountError,
    NothingToSettleError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.journal_service import JournalService
from ledger_kernel.services.role_resolver import RoleResolver
from ledger_modules.cod.models import (
    CollectionInfo,
    CollectionStatus,
    DriverOutstanding,
    SettlementInfo,
)
from ledger_modules.cod.orm import CodCollection, CodSettlement

logger = get_logger("modules.cod.service")


class CodService(BaseService):
    """
    Driver COD collections and settlements.

    Non-goals:
        - Does NOT track driver debt for shortages; a settlement always
          equals the collected sum.
    """

    def __init__(
        self,
        session,
        roles: RoleResolver,
        clock: Clock | None = None,
        journals: JournalService | None = None,
    ):
        super().__init__(session, clock)
        self._roles = roles
        self._journals = journals or JournalService(session, self.clock)

    def _collection_id_for(self, invoice_id: str) -> UUID | None:
        return self.session.execute(
            select(CodCollection.id).where(CodCollection.invoice_id == str(invoice_id))
        ).scalar_one_or_none()

    def record_collection(
        self,
        invoice_id: str,
        driver_id: str,
        amount: Decimal,
        collected_at: datetime | None = None,
    ) -> CollectionInfo:
        """
        Record cash a driver collected for one invoice.

        Raises:
            InvalidAmountError: amount <= 0 or sub-cent.
            DuplicateCollectionError: the invoice already has a collection.
        """
        amount = to_decimal(amount)
        if amount <= 0:
            raise InvalidAmountError(amount)
        if exceeds_money_precision(amount):
            raise InvalidAmountError(amount, "amount exceeds 2 decimal places")

        existing = self._collection_id_for(invoice_id)
        if existing is not None:
            raise DuplicateCollectionError(invoice_id, existing)

        collection = CodCollection(
            invoice_id=str(invoice_id),
            driver_id=str(driver_id),
            amount=amount,
            status=CollectionStatus.COLLECTED.value,
            collected_at=collected_at or self.clock.now(),
        )
        try:
            with self.session.begin_nested():
                self.session.add(collection)
        except IntegrityError as exc:
            # A concurrent collection for the same invoice committed first.
            existing = self._collection_id_for(invoice_id)
            if existing is None:
                raise
            raise DuplicateCollectionError(invoice_id, existing) from exc
        logger.info(
            "cod_collected",
            extra={
                "collection_id": collection.id,
                "invoice_id": invoice_id,
                "driver_id": driver_id,
                "amount": amount,
            },
        )
        return collection.to_dto()

    def settle_driver(
        self,
        driver_id: str,
        received_by: str,
        entry_date: date,
        note: str | None = None,
        cash_account_code: str | None = None,
    ) -> SettlementInfo:
        """
        Settle every outstanding collection of ``driver_id`` in one batch.

        Raises:
            NothingToSettleError: the driver has no ``collected`` rows.
        """
        driver_id = str(driver_id)
        collections = self.session.execute(
            select(CodCollection)
            .where(
                CodCollection.driver_id == driver_id,
                CodCollection.status == CollectionStatus.COLLECTED.value,
            )
            .order_by(CodCollection.collected_at)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalars().all()
        if not collections:
            raise NothingToSettleError(driver_id)

        total = sum((c.amount for c in collections), ZERO)
        settled_at = self.clock.now()
        settlement = CodSettlement(
            driver_id=driver_id,
            total_amount=total,
            received_by=received_by,
            settled_at=settled_at,
            note=note,
        )
        self.session.add(settlement)
        self.session.flush()

        cash_account = (
            self._roles.resolve_code(cash_account_code)
            if cash_account_code
            else self._roles.resolve(AccountRole.CASH)
        )
        journal = self._journals.post_journal(
            entry_date=entry_date,
            reference=JournalReference(ReferenceKind.COD_SETTLEMENT, str(settlement.id)),
            description=f"COD settlement for driver {driver_id}",
            created_by=received_by,
            lines=[
                LineSpec.dr(cash_account, total),
                LineSpec.cr(self._roles.resolve(AccountRole.DRIVER_RECEIVABLE), total),
            ],
            idempotency_key=f"cod_settlement_{settlement.id}",
        )
        settlement.journal_id = journal.id

        for collection in collections:
            collection.settlement_id = settlement.id
            collection.status = CollectionStatus.SETTLED.value
        self.session.flush()

        logger.info(
            "cod_settled",
            extra={
                "settlement_id": settlement.id,
                "driver_id": driver_id,
                "total_amount": total,
                "collection_count": len(collections),
                "journal_id": journal.id,
            },
        )
        return SettlementInfo(
            id=settlement.id,
            driver_id=driver_id,
            total_amount=total,
            received_by=received_by,
            settled_at=settled_at,
            note=note,
            journal_id=journal.id,
            collection_ids=tuple(c.id for c in collections),
        )

    def outstanding_for_driver(self, driver_id: str) -> DriverOutstanding:
        amounts = self.session.execute(
            select(CodCollection.amount).where(
                CodCollection.driver_id == str(driver_id),
                CodCollection.status == CollectionStatus.COLLECTED.value,
            )
        ).scalars().all()
        return DriverOutstanding(
            driver_id=str(driver_id),
            collection_count=len(amounts),
            total_amount=sum(amounts, ZERO),
        )

    def get_settlement(self, settlement_id: UUID) -> SettlementInfo | None:
        settlement = self.session.get(CodSettlement, settlement_id)
        return settlement.to_dto() if settlement else None

    def list_collections(self, driver_id: str) -> list[CollectionInfo]:
        rows = self.session.execute(
            select(CodCollection)
            .where(CodCollection.driver_id == str(driver_id))
            .order_by(CodCollection.collected_at)
        ).scalars()
        return [row.to_dto() for row in rows]
