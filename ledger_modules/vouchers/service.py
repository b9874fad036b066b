"""
Voucher Service (``ledger_modules.vouchers.service``).

Responsibility
--------------
Creates discount vouchers, checks them at checkout and counts redemptions.

Validation order
----------------
``validate`` reports the first failing rule, always in this order:

1. unknown code           -> VoucherNotFoundError
2. ``is_active`` false    -> VoucherInactiveError
3. before ``starts_at``   -> VoucherNotStartedError
4. at/after ``expires_at``-> VoucherExpiredError
5. usage_count >= limit   -> VoucherExhaustedError

``redeem`` re-runs the same checks on the row locked ``FOR UPDATE`` so two
checkouts cannot both take the last use.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from ledger_kernel.db.types import ZERO, round_money, to_decimal
from ledger_kernel.exceptions import (
    VoucherExhaustedError,
    VoucherExpiredError,
    VoucherInactiveError,
    VoucherNotFoundError,
    VoucherNotStartedError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.services.base import BaseService
from ledger_modules.vouchers.models import VoucherInfo, VoucherQuote
from ledger_modules.vouchers.orm import Voucher

logger = get_logger("modules.vouchers.service")

_CODE_STRIP = re.compile(r"[^A-Z0-9_-]+")


def normalize_code(value: str) -> str:
    """Trim, upper-case and drop anything outside ``A-Z 0-9 _ -``."""
    if not isinstance(value, str):
        return ""
    return _CODE_STRIP.sub("", value.strip().upper())


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class VoucherService(BaseService):
    """Typed voucher rows keyed by their normalized code."""

    def _load(self, code: str, lock: bool = False) -> Voucher:
        normalized = normalize_code(code)
        stmt = select(Voucher).where(Voucher.code == normalized)
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        voucher = self.session.execute(stmt).scalar_one_or_none() if normalized else None
        if voucher is None:
            raise VoucherNotFoundError(normalized or str(code))
        return voucher

    def _check(self, voucher: Voucher, on: datetime) -> None:
        if not voucher.is_active:
            raise VoucherInactiveError(voucher.code)
        starts_at = _as_utc(voucher.starts_at)
        expires_at = _as_utc(voucher.expires_at)
        if on < starts_at:
            raise VoucherNotStartedError(voucher.code, starts_at.isoformat())
        if on >= expires_at:
            raise VoucherExpiredError(voucher.code, expires_at.isoformat())
        if voucher.usage_count >= voucher.usage_limit:
            raise VoucherExhaustedError(voucher.code, voucher.usage_limit)

    def create_voucher(
        self,
        code: str,
        discount_pct: Decimal,
        max_discount: Decimal,
        starts_at: datetime,
        expires_at: datetime,
        usage_limit: int,
        product_id: UUID | None = None,
        is_active: bool = True,
    ) -> VoucherInfo:
        """
        Create a voucher.

        Raises:
            ValueError: malformed code, percentage outside 0..100, negative
                cap, empty window, usage limit below 1, or a code that
                already exists.
        """
        normalized = normalize_code(code)
        if not 3 <= len(normalized) <= 40:
            raise ValueError(f"Voucher code must be 3-40 characters: {code!r}")
        discount_pct = to_decimal(discount_pct)
        if discount_pct < 0 or discount_pct > 100:
            raise ValueError(f"discount_pct must be within 0..100, got {discount_pct}")
        max_discount = round_money(max_discount)
        if max_discount < 0:
            raise ValueError(f"max_discount must not be negative, got {max_discount}")
        if _as_utc(expires_at) <= _as_utc(starts_at):
            raise ValueError("expires_at must be after starts_at")
        if isinstance(usage_limit, bool) or not isinstance(usage_limit, int) or usage_limit < 1:
            raise ValueError(f"usage_limit must be a positive integer, got {usage_limit!r}")

        exists = self.session.execute(
            select(Voucher.id).where(Voucher.code == normalized)
        ).scalar_one_or_none()
        if exists is not None:
            raise ValueError(f"Voucher code already exists: {normalized}")

        voucher = Voucher(
            code=normalized,
            product_id=product_id,
            discount_pct=discount_pct,
            max_discount=max_discount,
            starts_at=starts_at,
            expires_at=expires_at,
            usage_limit=usage_limit,
            usage_count=0,
            is_active=is_active,
        )
        self.session.add(voucher)
        self.session.flush()
        logger.info(
            "voucher_created",
            extra={
                "voucher_id": voucher.id,
                "voucher_code": normalized,
                "discount_pct": discount_pct,
                "usage_limit": usage_limit,
            },
        )
        return voucher.to_dto()

    def get_voucher(self, code: str) -> VoucherInfo:
        return self._load(code).to_dto()

    def validate(self, code: str, on: datetime | None = None) -> VoucherQuote:
        voucher = self._load(code)
        self._check(voucher, _as_utc(on) if on else self.clock.now())
        return VoucherQuote(
            code=voucher.code,
            product_id=voucher.product_id,
            discount_pct=voucher.discount_pct,
            max_discount=voucher.max_discount,
        )

    def discount_for(self, code: str, price: Decimal, on: datetime | None = None) -> Decimal:
        """Discount for one item: ``min(price * pct / 100, max_discount)``."""
        price = to_decimal(price)
        if price < 0:
            raise ValueError(f"price must not be negative, got {price}")
        quote = self.validate(code, on)
        discount = round_money(price * quote.discount_pct / Decimal(100))
        return max(min(discount, quote.max_discount), ZERO)

    def redeem(self, code: str, on: datetime | None = None) -> VoucherInfo:
        voucher = self._load(code, lock=True)
        self._check(voucher, _as_utc(on) if on else self.clock.now())
        voucher.usage_count += 1
        self.session.flush()
        logger.info(
            "voucher_redeemed",
            extra={
                "voucher_code": voucher.code,
                "usage_count": voucher.usage_count,
                "usage_limit": voucher.usage_limit,
            },
        )
        return voucher.to_dto()

    def deactivate(self, code: str) -> VoucherInfo:
        voucher = self._load(code, lock=True)
        voucher.is_active = False
        self.session.flush()
        logger.info("voucher_deactivated", extra={"voucher_code": voucher.code})
        return voucher.to_dto()
