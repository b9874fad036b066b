"""
Configuration Loader (``ledger_config.loader``).

Responsibility
--------------
Loads the YAML configuration file and parses it into the frozen
``ledger_config.schema`` dataclasses.  Runtime callers go through
``ledger_config.get_active_config()`` instead of calling this directly.

Invariants enforced
-------------------
* Required keys are never defaulted: a missing key raises ``KeyError``.
* Every role names a known ``AccountRole`` and is bound to a code present
  in the seeded chart (``ValueError`` otherwise).
* Chart codes are unique; parents must be declared before their children.
* ``compute_checksum`` is a deterministic SHA-256 over the parsed content.

Failure modes
-------------
* Missing file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import replace
from pathlib import Path
from typing import Any

import yaml

from ledger_config.schema import (
    AccountDefinition,
    LedgerConfig,
    SchemaLockSettings,
)
from ledger_kernel.domain.dtos import AccountType
from ledger_kernel.domain.roles import AccountRole


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a YAML file and return its top-level mapping.

    Raises:
        FileNotFoundError: the file does not exist.
        yaml.YAMLError: the file is not valid YAML.
        ValueError: the document is not a mapping.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top-level YAML document must be a mapping")
    return data


def parse_account_definition(data: dict[str, Any]) -> AccountDefinition:
    return AccountDefinition(
        code=str(data["code"]).strip(),
        name=str(data["name"]),
        account_type=AccountType(data["type"]),
        parent_code=str(data["parent"]) if data.get("parent") is not None else None,
    )


def parse_chart(rows: list[dict[str, Any]]) -> tuple[AccountDefinition, ...]:
    definitions: list[AccountDefinition] = []
    seen: set[str] = set()
    for row in rows:
        definition = parse_account_definition(row)
        if definition.code in seen:
            raise ValueError(f"Duplicate account code in chart: {definition.code}")
        if definition.parent_code and definition.parent_code not in seen:
            raise ValueError(
                f"Account {definition.code} names parent {definition.parent_code} "
                "before it is defined"
            )
        seen.add(definition.code)
        definitions.append(definition)
    return tuple(definitions)


def parse_account_roles(
    data: dict[str, Any], chart: tuple[AccountDefinition, ...]
) -> tuple[tuple[str, str], ...]:
    known_roles = {role.value for role in AccountRole}
    chart_codes = {d.code for d in chart}
    bindings: list[tuple[str, str]] = []
    for role, code in data.items():
        if role not in known_roles:
            raise ValueError(f"Unknown account role: {role!r}")
        code = str(code).strip()
        if code not in chart_codes:
            raise ValueError(f"Role {role!r} is bound to {code}, which is not in the chart")
        bindings.append((role, code))
    return tuple(sorted(bindings))


def parse_schema_lock(data: dict[str, Any]) -> SchemaLockSettings:
    timeout = int(data["timeout_sec"])
    if timeout <= 0:
        raise ValueError(f"schema_lock.timeout_sec must be positive, got {timeout}")
    return SchemaLockSettings(name=str(data["name"]), timeout_sec=timeout)


def parse_config(data: dict[str, Any]) -> LedgerConfig:
    """Parse a full configuration mapping.  Raises KeyError/ValueError."""
    chart = parse_chart(data["chart_of_accounts"])
    config = LedgerConfig(
        config_id=str(data["config_id"]),
        version=int(data["version"]),
        account_roles=parse_account_roles(data["account_roles"], chart),
        chart_of_accounts=chart,
        schema_lock=parse_schema_lock(data["schema_lock"]),
    )
    return replace(config, checksum=compute_checksum(config))


def compute_checksum(config: LedgerConfig) -> str:
    """SHA-256 over the canonical JSON form of ``config`` (checksum excluded)."""
    payload = {
        "config_id": config.config_id,
        "version": config.version,
        "account_roles": [list(pair) for pair in config.account_roles],
        "chart_of_accounts": [
            [d.code, d.name, d.account_type.value, d.parent_code]
            for d in config.chart_of_accounts
        ],
        "schema_lock": [config.schema_lock.name, config.schema_lock.timeout_sec],
    }
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def load_config_file(path: Path) -> LedgerConfig:
    return parse_config(load_yaml_file(path))
