"""
RoleResolver -- maps account roles to posting account ids.

Bindings (role -> account code) come from configuration; the resolver
looks the code up in the chart on first use and caches the id for the
life of the session.
"""

from typing import Mapping

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.domain.roles import AccountRole
from ledger_kernel.exceptions import AccountRoleNotBoundError
from ledger_kernel.models.account import Account


class RoleResolver:
    """
    Resolves account roles to active chart accounts.

    Raises:
        AccountRoleNotBoundError: role has no binding, the bound code is not
            in the chart, or the account is inactive.
    """

    def __init__(self, session: Session, bindings: Mapping[str, str]):
        self.session = session
        self._bindings = {str(getattr(k, "value", k)): v for k, v in bindings.items()}
        self._cache: dict[str, int] = {}

    def code_for(self, role: AccountRole | str) -> str:
        key = str(getattr(role, "value", role))
        code = self._bindings.get(key)
        if code is None:
            raise AccountRoleNotBoundError(key)
        return code

    def resolve(self, role: AccountRole | str) -> int:
        key = str(getattr(role, "value", role))
        if key not in self._cache:
            code = self.code_for(key)
            self._cache[key] = self._account_id_for_code(code, role=key)
        return self._cache[key]

    def resolve_code(self, code: str) -> int:
        """Resolve an explicit account code (e.g. a caller-chosen bank account)."""
        return self._account_id_for_code(code, role=f"code:{code}")

    def _account_id_for_code(self, code: str, role: str) -> int:
        account = self.session.execute(
            select(Account).where(Account.code == code)
        ).scalar_one_or_none()
        if account is None or not account.is_active:
            raise AccountRoleNotBoundError(role, code)
        return account.id

    @property
    def bindings(self) -> dict[str, str]:
        return dict(self._bindings)
