"""
AccountService -- chart of accounts maintenance.

Responsibility:
    Create, rename, re-parent, retype and deactivate accounts; seed the
    standard chart.  Returns frozen ``AccountInfo`` DTOs.

Invariants enforced:
    - code unique across the chart.
    - account_type immutable once any journal line references the account
      (checked here first; db/immutability.py is the backstop).
    - parent chain acyclic.

Failure modes:
    - DuplicateAccountCodeError, AccountNotFoundError,
      AccountTypeLockedError, AccountHierarchyError.
"""

from typing import Iterable

from sqlalchemy import select

from ledger_kernel.db.immutability import account_is_referenced
from ledger_kernel.domain.dtos import AccountInfo, AccountType
from ledger_kernel.exceptions import (
    AccountHierarchyError,
    AccountNotFoundError,
    AccountTypeLockedError,
    DuplicateAccountCodeError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account
from ledger_kernel.services.base import BaseService

logger = get_logger("services.account")

_UNCHANGED = object()


class AccountService(BaseService):
    """Chart of accounts CRUD.  Flush-only."""

    def _get(self, account_id: int) -> Account:
        account = self.session.get(Account, account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        return account

    def _get_by_code(self, code: str) -> Account | None:
        return self.session.execute(
            select(Account).where(Account.code == code)
        ).scalar_one_or_none()

    def get_account(self, account_id: int) -> AccountInfo:
        return self._get(account_id).to_dto()

    def get_by_code(self, code: str) -> AccountInfo:
        account = self._get_by_code(code)
        if account is None:
            raise AccountNotFoundError(code)
        return account.to_dto()

    def list_accounts(self, include_inactive: bool = True) -> list[AccountInfo]:
        stmt = select(Account).order_by(Account.code)
        if not include_inactive:
            stmt = stmt.where(Account.is_active.is_(True))
        return [a.to_dto() for a in self.session.execute(stmt).scalars()]

    def create_account(
        self,
        code: str,
        name: str,
        account_type: AccountType | str,
        parent_id: int | None = None,
    ) -> AccountInfo:
        """
        Add an account to the chart.

        Raises:
            DuplicateAccountCodeError: code already used.
            AccountNotFoundError: parent_id unknown.
            ValueError: account_type not one of the five types.
        """
        account_type = AccountType(account_type)
        code = code.strip()
        if self._get_by_code(code) is not None:
            raise DuplicateAccountCodeError(code)
        if parent_id is not None:
            self._get(parent_id)

        account = Account(
            code=code,
            name=name,
            account_type=account_type.value,
            parent_id=parent_id,
            is_active=True,
        )
        self.session.add(account)
        self.session.flush()

        logger.info(
            "account_created",
            extra={"account_id": account.id, "account_code": code, "account_type": account_type.value},
        )
        return account.to_dto()

    def update_account(
        self,
        account_id: int,
        *,
        name: str | None = None,
        account_type: AccountType | str | None = None,
        parent_id=_UNCHANGED,
    ) -> AccountInfo:
        """
        Change name, type or parent.  Pass ``parent_id=None`` to detach.

        Raises:
            AccountTypeLockedError: type change on a referenced account.
            AccountHierarchyError: new parent would create a cycle.
        """
        account = self._get(account_id)

        if account_type is not None:
            new_type = AccountType(account_type)
            if new_type.value != account.account_type:
                if account_is_referenced(self.session.connection(), account.id):
                    raise AccountTypeLockedError(account.id, account.account_type, new_type.value)
                account.account_type = new_type.value

        if parent_id is not _UNCHANGED:
            if parent_id is not None:
                self._assert_acyclic(account.id, parent_id)
            account.parent_id = parent_id

        if name is not None:
            account.name = name

        self.session.flush()
        logger.info("account_updated", extra={"account_id": account.id})
        return account.to_dto()

    def _assert_acyclic(self, account_id: int, parent_id: int) -> None:
        seen: set[int] = set()
        cursor: int | None = parent_id
        while cursor is not None:
            if cursor == account_id:
                raise AccountHierarchyError(account_id, parent_id)
            if cursor in seen:
                # Pre-existing loop above us; refuse to attach to it
                raise AccountHierarchyError(account_id, parent_id)
            seen.add(cursor)
            cursor = self._get(cursor).parent_id

    def deactivate(self, account_id: int) -> AccountInfo:
        account = self._get(account_id)
        account.is_active = False
        self.session.flush()
        logger.info("account_deactivated", extra={"account_id": account.id})
        return account.to_dto()

    def reactivate(self, account_id: int) -> AccountInfo:
        account = self._get(account_id)
        account.is_active = True
        self.session.flush()
        return account.to_dto()

    def seed_chart(self, definitions: Iterable) -> dict[str, int]:
        """
        Create any missing accounts from ``definitions``.

        Each definition exposes ``code``, ``name``, ``account_type`` and an
        optional ``parent_code``.  Existing codes are left untouched.

        Returns:
            Mapping of code -> account id for every definition.
        """
        ids: dict[str, int] = {}
        created = 0
        for definition in definitions:
            existing = self._get_by_code(definition.code)
            if existing is not None:
                ids[definition.code] = existing.id
                continue
            parent_code = getattr(definition, "parent_code", None)
            parent_id = None
            if parent_code:
                parent_id = ids.get(parent_code) or self.get_by_code(parent_code).id
            info = self.create_account(
                definition.code, definition.name, definition.account_type, parent_id
            )
            ids[definition.code] = info.id
            created += 1
        logger.info("chart_seeded", extra={"created_count": created, "total": len(ids)})
        return ids
