"""
COD Module (``ledger_modules.cod``).

Responsibility
--------------
Cash-on-delivery collections per driver and the settlement batches that
move that cash from the driver receivable into the till.
"""

from ledger_modules.cod.models import (
    CollectionInfo,
    CollectionStatus,
    DriverOutstanding,
    SettlementInfo,
)
from ledger_modules.cod.service import CodService

__all__ = [
    "CodService",
    "CollectionInfo",
    "CollectionStatus",
    "DriverOutstanding",
    "SettlementInfo",
]
