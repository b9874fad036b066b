"""
COD Domain Models (``ledger_modules.cod.models``).

Frozen snapshots of driver cash collections and settlement batches.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class CollectionStatus(str, Enum):
    COLLECTED = "collected"
    SETTLED = "settled"


@dataclass(frozen=True)
class CollectionInfo:
    id: UUID
    invoice_id: str
    driver_id: str
    amount: Decimal
    status: CollectionStatus
    settlement_id: UUID | None
    collected_at: datetime


@dataclass(frozen=True)
class SettlementInfo:
    id: UUID
    driver_id: str
    total_amount: Decimal
    received_by: str
    settled_at: datetime
    note: str | None
    journal_id: int | None
    collection_ids: tuple[UUID, ...]


@dataclass(frozen=True)
class DriverOutstanding:
    """Cash a driver holds that has not been settled yet."""

    driver_id: str
    collection_count: int
    total_amount: Decimal
