"""Shared configuration loader for the ordinal ledger."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

from .kv import SQLITE_BACKEND, SUPPORTED_BACKENDS, SQLiteKeyValueStore


class ConfigurationError(RuntimeError):
    """Raised when configuration is invalid."""


DEFAULT_CONFIG_PATH = Path.home() / ".ordinal-ledger.yaml"
_CONFIG_PATH_OVERRIDE: Path | None = None

ENV_PREFIX = "ORDINAL_LEDGER_"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class LedgerConfig:
    """Configuration container for the store backing the ledger."""

    backend: str = SQLITE_BACKEND
    sqlite_path: Path = field(default_factory=lambda: SQLiteKeyValueStore.DEFAULT_DB_PATH)
    log_level: str = "INFO"

    @property
    def log_level_value(self) -> int:
        return logging.getLevelName(self.log_level)


def set_default_config_path(path: str | Path | None) -> None:
    """Remember a user-supplied config path for future loads."""

    global _CONFIG_PATH_OVERRIDE
    _CONFIG_PATH_OVERRIDE = Path(path).expanduser() if path else None


def _load_config_file(path: Path, *, required: bool) -> dict[str, Any]:
    if not path.exists():
        if required:
            raise ConfigurationError(f"Config file not found: {path}")
        return {}

    try:
        loaded = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as exc:  # pragma: no cover - delegated to PyYAML
        raise ConfigurationError(f"Invalid YAML in config file {path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise ConfigurationError(f"Expected {path} to contain a YAML object with a 'store' section")
    return loaded


def _first_value(*values: Any, default: Any = None) -> Any:
    for value in values:
        if value is not None:
            return value
    return default


def _coerce_backend(raw: Any, *, source: str) -> str | None:
    if raw is None:
        return None
    backend = str(raw).strip().lower()
    if backend not in SUPPORTED_BACKENDS:
        choices = ", ".join(SUPPORTED_BACKENDS)
        raise ConfigurationError(f"Invalid backend in {source}: {raw} (expected one of {choices})")
    return backend


def _coerce_log_level(raw: Any, *, source: str) -> str | None:
    if raw is None:
        return None
    level = str(raw).strip().upper()
    if level not in LOG_LEVELS:
        raise ConfigurationError(f"Invalid log level in {source}: {raw}")
    return level


def load_ledger_config(
    *,
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> LedgerConfig:
    """Load store configuration from overrides, environment variables, and optional YAML."""

    env_map = os.environ if env is None else env
    explicit_path = config_path is not None or _CONFIG_PATH_OVERRIDE is not None
    path = (
        Path(config_path).expanduser()
        if config_path is not None
        else _CONFIG_PATH_OVERRIDE or DEFAULT_CONFIG_PATH
    )

    file_config = _load_config_file(path, required=explicit_path)
    store_section = file_config.get("store", {}) or {}
    if not isinstance(store_section, dict):
        raise ConfigurationError(f"Expected 'store' to be a mapping in {path}")

    override_map = dict(overrides or {})

    backend = _first_value(
        _coerce_backend(override_map.get("backend"), source="overrides"),
        _coerce_backend(env_map.get(f"{ENV_PREFIX}BACKEND"), source="environment"),
        _coerce_backend(store_section.get("backend"), source=f"{path} store.backend"),
        default=SQLITE_BACKEND,
    )
    sqlite_path = _first_value(
        override_map.get("sqlite_path"),
        env_map.get(f"{ENV_PREFIX}SQLITE_PATH") or None,
        store_section.get("sqlite_path"),
    )
    log_level = _first_value(
        _coerce_log_level(override_map.get("log_level"), source="overrides"),
        _coerce_log_level(env_map.get(f"{ENV_PREFIX}LOG_LEVEL"), source="environment"),
        _coerce_log_level(file_config.get("log_level"), source=f"{path} log_level"),
        default="INFO",
    )

    config = LedgerConfig(backend=backend, log_level=log_level)
    if sqlite_path is not None:
        config.sqlite_path = Path(str(sqlite_path)).expanduser()
    return config

