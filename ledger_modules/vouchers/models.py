"""
Voucher Domain Models (``ledger_modules.vouchers.models``).
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID


@dataclass(frozen=True)
class VoucherInfo:
    id: UUID
    code: str
    product_id: UUID | None
    discount_pct: Decimal
    max_discount: Decimal
    starts_at: datetime
    expires_at: datetime
    usage_limit: int
    usage_count: int
    is_active: bool

    @property
    def remaining_uses(self) -> int:
        return max(self.usage_limit - self.usage_count, 0)


@dataclass(frozen=True)
class VoucherQuote:
    """What a valid voucher grants at the moment it was checked."""

    code: str
    product_id: UUID | None
    discount_pct: Decimal
    max_discount: Decimal
