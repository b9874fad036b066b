"""
Module: ledger_modules.vouchers.orm
Responsibility: SQLAlchemy ORM persistence for discount vouchers.

Architecture position: Modules > Vouchers > ORM.  One typed row per voucher
    code; products are referenced by UUID with NO foreign key.

Invariants enforced:
    - code is unique and stored upper-case.
    - 0 <= discount_pct <= 100, max_discount >= 0.
    - expires_at > starts_at.
    - 0 <= usage_count <= usage_limit, usage_limit >= 1.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, DateTime, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import DocumentBase


class Voucher(DocumentBase):
    """Percentage discount with a cap, a validity window and a usage quota."""

    __tablename__ = "vouchers"

    __table_args__ = (
        CheckConstraint(
            "discount_pct >= 0 AND discount_pct <= 100", name="chk_voucher_pct_range"
        ),
        CheckConstraint("max_discount >= 0", name="chk_voucher_cap_non_negative"),
        CheckConstraint("expires_at > starts_at", name="chk_voucher_window"),
        CheckConstraint("usage_limit >= 1", name="chk_voucher_limit_positive"),
        CheckConstraint(
            "usage_count >= 0 AND usage_count <= usage_limit", name="chk_voucher_usage_range"
        ),
    )

    code: Mapped[str] = mapped_column(String(40), unique=True, index=True, nullable=False)
    product_id: Mapped[UUID | None] = mapped_column(nullable=True)
    discount_pct: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    max_discount: Mapped[Decimal] = mapped_column(nullable=False)
    starts_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    usage_limit: Mapped[int] = mapped_column(Integer, nullable=False)
    usage_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def to_dto(self):
        from ledger_modules.vouchers.models import VoucherInfo

        return VoucherInfo(
            id=self.id,
            code=self.code,
            product_id=self.product_id,
            discount_pct=self.discount_pct,
            max_discount=self.max_discount,
            starts_at=self.starts_at,
            expires_at=self.expires_at,
            usage_limit=self.usage_limit,
            usage_count=self.usage_count,
            is_active=self.is_active,
        )

    def __repr__(self) -> str:
        return f"<Voucher {self.code} {self.usage_count}/{self.usage_limit}>"
