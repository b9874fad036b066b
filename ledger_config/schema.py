"""
LedgerConfig schema.

Frozen dataclasses the YAML configuration is parsed into.  Nothing here
reads files; see ``ledger_config.loader``.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ledger_kernel.domain.dtos import AccountType


@dataclass(frozen=True)
class AccountDefinition:
    """One seed row of the chart of accounts."""

    code: str
    name: str
    account_type: AccountType
    parent_code: str | None = None


@dataclass(frozen=True)
class SchemaLockSettings:
    name: str
    timeout_sec: int


@dataclass(frozen=True)
class LedgerConfig:
    """
    Runtime configuration of the ledger.

    ``account_roles`` is stored as sorted (role, code) pairs so the object
    stays hashable; use ``role_bindings`` for a mapping.
    """

    config_id: str
    version: int
    account_roles: tuple[tuple[str, str], ...]
    chart_of_accounts: tuple[AccountDefinition, ...]
    schema_lock: SchemaLockSettings
    checksum: str = field(default="", compare=False)

    @property
    def role_bindings(self) -> dict[str, str]:
        return dict(self.account_roles)

    def code_for_role(self, role: str) -> str:
        key = str(getattr(role, "value", role))
        bindings = self.role_bindings
        if key not in bindings:
            raise KeyError(f"No account bound to role {key!r}")
        return bindings[key]
