"""
ledger_config -- single public entrypoint for ledger configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads the YAML file or the
    ``DB_SCHEMA_LOCK_*`` environment variables directly.

Architecture position:
    Configuration.  Sits above ``ledger_kernel`` and below
    ``ledger_services`` / ``scripts``.  The kernel MUST NEVER import from
    ``ledger_config``; callers hand it the values it needs (role bindings,
    lock name and timeout).

Resolution order:
    1. ``path`` argument
    2. ``LEDGER_CONFIG_FILE`` environment variable
    3. ``ledger_config/defaults.yaml``

    ``DB_SCHEMA_LOCK_NAME`` and ``DB_SCHEMA_LOCK_TIMEOUT_SEC`` then override
    the file's ``schema_lock`` section.  A timeout that is not a positive
    integer falls back to 30 seconds.

Failure modes:
    - ``FileNotFoundError`` -- the configured file does not exist.
    - ``KeyError`` / ``ValueError`` -- missing keys or invalid values.

Audit relevance:
    Every successful call emits a ``LEDGER_CONFIG_TRACE`` log entry with the
    config id, version and checksum.
"""

from __future__ import annotations

import os
from dataclasses import replace
from pathlib import Path

from ledger_config.loader import load_config_file
from ledger_config.schema import AccountDefinition, LedgerConfig, SchemaLockSettings
from ledger_kernel.logging_config import get_logger

_logger = get_logger("config")

DEFAULT_CONFIG_FILE = Path(__file__).parent / "defaults.yaml"
CONFIG_FILE_ENV = "LEDGER_CONFIG_FILE"
LOCK_NAME_ENV = "DB_SCHEMA_LOCK_NAME"
LOCK_TIMEOUT_ENV = "DB_SCHEMA_LOCK_TIMEOUT_SEC"
FALLBACK_LOCK_TIMEOUT_SEC = 30


def _timeout_override(raw: str) -> int:
    try:
        value = int(raw.strip())
    except ValueError:
        return FALLBACK_LOCK_TIMEOUT_SEC
    return value if value > 0 else FALLBACK_LOCK_TIMEOUT_SEC


def _apply_env_overrides(lock: SchemaLockSettings) -> SchemaLockSettings:
    name = os.environ.get(LOCK_NAME_ENV, "").strip()
    raw_timeout = os.environ.get(LOCK_TIMEOUT_ENV)
    if name:
        lock = replace(lock, name=name)
    if raw_timeout is not None:
        lock = replace(lock, timeout_sec=_timeout_override(raw_timeout))
    return lock


def get_active_config(path: Path | str | None = None) -> LedgerConfig:
    """
    The ONLY public configuration entrypoint.

    Non-goals:
        - Does NOT cache; callers hold the returned config for the life of
          the process.
    """
    source = Path(path or os.environ.get(CONFIG_FILE_ENV) or DEFAULT_CONFIG_FILE)
    config = load_config_file(source)
    config = replace(config, schema_lock=_apply_env_overrides(config.schema_lock))

    _logger.info(
        "LEDGER_CONFIG_TRACE",
        extra={
            "trace_type": "LEDGER_CONFIG_TRACE",
            "config_set_id": config.config_id,
            "config_set_version": config.version,
            "checksum": config.checksum,
            "source_path": str(source),
            "role_binding_count": len(config.account_roles),
            "chart_size": len(config.chart_of_accounts),
            "lock_name": config.schema_lock.name,
        },
    )
    return config


__all__ = [
    "AccountDefinition",
    "LedgerConfig",
    "SchemaLockSettings",
    "get_active_config",
]
