"""
Module: ledger_kernel.models.account
Responsibility: ORM persistence for the chart of accounts.
Architecture position: Kernel > Models.  May import from db/base.py and domain/.

Invariants enforced:
    - code is globally unique (uq_account_code).
    - account_type is immutable once any journal line references the
      account (db/immutability.py).
    - parent chain is acyclic (AccountService).

Failure modes:
    - IntegrityError on duplicate code (translated to DuplicateAccountCodeError
      by AccountService).
"""

from typing import TYPE_CHECKING

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import LedgerId, LedgerRowBase, TrackedBase
from ledger_kernel.domain.dtos import AccountInfo, AccountType

if TYPE_CHECKING:
    from ledger_kernel.models.journal import JournalLine


class Account(LedgerRowBase, TrackedBase):
    """
    Chart of Accounts node.

    Contract:
        Account.code is unique.  Once referenced by a journal line the
        account_type MUST NOT change.

    Non-goals:
        Balances are never stored here; they are derived from journal
        lines by the ledger selector.
    """

    __tablename__ = "accounts"

    __table_args__ = (
        UniqueConstraint("code", name="uq_account_code"),
        Index("idx_account_type", "account_type"),
        Index("idx_account_parent", "parent_id"),
    )

    code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    account_type: Mapped[AccountType] = mapped_column(String(20), nullable=False)

    parent_id: Mapped[int | None] = mapped_column(
        LedgerId,
        ForeignKey("accounts.id"),
        nullable=True,
    )

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    journal_lines: Mapped[list["JournalLine"]] = relationship(
        back_populates="account",
        lazy="dynamic",
    )

    def __repr__(self) -> str:
        return f"<Account {self.code}: {self.name}>"

    def to_dto(self) -> AccountInfo:
        return AccountInfo(
            id=self.id,
            code=self.code,
            name=self.name,
            account_type=AccountType(self.account_type),
            parent_id=self.parent_id,
            is_active=self.is_active,
        )
