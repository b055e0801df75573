from __future__ import annotations

import dataclasses
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, cast

import yaml

from .coercion import coerce_float, coerce_int
from .exceptions import ConfigError

CONFIG_FILENAME = "blockcord.yml"
OVERRIDE_FILENAME = "blockcord.override.yml"
DEFAULT_CONVEX_URL_ENV = "BLOCKCORD_CONVEX_URL"
DEFAULT_QUERY_PATH = "discord:getCommands"
DEFINITION_SOURCES = ("convex", "yaml")

DEFAULT_CONFIG: Dict[str, Any] = {
    "scope_id": "",
    "definitions": {
        "source": "convex",
        "convex_url_env": DEFAULT_CONVEX_URL_ENV,
        "query_path": DEFAULT_QUERY_PATH,
        "timeout_seconds": 10.0,
        "yaml_path": "definitions.yml",
        "resync_interval_seconds": 0,
    },
    "log": {
        "path": ".blockcord/blockcord.log",
        "level": "INFO",
        "max_bytes": 10 * 1024 * 1024,
        "backup_count": 3,
    },
    "discord_bot": {},
}


@dataclasses.dataclass(frozen=True)
class LogConfig:
    path: Optional[Path]
    level: int
    max_bytes: int
    backup_count: int


@dataclasses.dataclass(frozen=True)
class DefinitionSourceConfig:
    source: str
    convex_url: Optional[str]
    convex_url_env: str
    query_path: str
    timeout_seconds: float
    yaml_path: Path
    resync_interval_seconds: float


@dataclasses.dataclass(frozen=True)
class AppConfig:
    root: Path
    raw: Dict[str, Any]
    scope_id: str
    definitions: DefinitionSourceConfig
    log: LogConfig


def _merge_defaults(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    merged = cast(Dict[str, Any], json.loads(json.dumps(base)))
    for key, value in overrides.items():
        if isinstance(value, dict) and key in merged and isinstance(merged[key], dict):
            merged[key] = _merge_defaults(merged[key], value)
        else:
            merged[key] = value
    return merged


def _load_yaml_dict(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Failed to read config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must be a mapping: {path}")
    return data


def _section(raw: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = raw.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"{key} must be a mapping")
    return value


def _parse_log_config(root: Path, cfg: Dict[str, Any]) -> LogConfig:
    level_name = str(cfg.get("level", "INFO")).strip().upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        raise ConfigError(f"log.level is not a valid logging level: {level_name}")
    max_bytes = coerce_int(cfg.get("max_bytes"))
    if max_bytes is None or max_bytes <= 0:
        raise ConfigError("log.max_bytes must be a positive integer")
    backup_count = coerce_int(cfg.get("backup_count"))
    if backup_count is None or backup_count < 0:
        raise ConfigError("log.backup_count must be >= 0")
    path_value = cfg.get("path")
    path: Optional[Path] = None
    if isinstance(path_value, str) and path_value.strip():
        path = (root / path_value.strip()).resolve()
    return LogConfig(
        path=path, level=level, max_bytes=max_bytes, backup_count=backup_count
    )


def _parse_definition_source_config(
    root: Path, cfg: Dict[str, Any]
) -> DefinitionSourceConfig:
    source = str(cfg.get("source", "convex")).strip().lower()
    if source not in DEFINITION_SOURCES:
        raise ConfigError(
            f"definitions.source must be one of {', '.join(DEFINITION_SOURCES)}"
        )
    convex_url_env = str(cfg.get("convex_url_env") or DEFAULT_CONVEX_URL_ENV).strip()
    convex_url = os.environ.get(convex_url_env) or None
    if source == "convex" and not convex_url:
        raise ConfigError(
            f"definitions.source is convex but env var {convex_url_env} is unset"
        )
    query_path = str(cfg.get("query_path") or DEFAULT_QUERY_PATH).strip()
    timeout_seconds = coerce_float(cfg.get("timeout_seconds"))
    if timeout_seconds is None or timeout_seconds <= 0:
        raise ConfigError("definitions.timeout_seconds must be > 0")
    resync = coerce_float(cfg.get("resync_interval_seconds"), 0.0)
    if resync is None or resync < 0:
        raise ConfigError("definitions.resync_interval_seconds must be >= 0")
    yaml_path_value = cfg.get("yaml_path")
    if not isinstance(yaml_path_value, str) or not yaml_path_value.strip():
        raise ConfigError("definitions.yaml_path must be a string path")
    return DefinitionSourceConfig(
        source=source,
        convex_url=convex_url,
        convex_url_env=convex_url_env,
        query_path=query_path,
        timeout_seconds=timeout_seconds,
        yaml_path=(root / yaml_path_value.strip()).resolve(),
        resync_interval_seconds=resync,
    )


def load_config(root: Path) -> AppConfig:
    """Load ``blockcord.yml`` (plus optional override file) from ``root``."""
    root = root.resolve()
    merged = _load_yaml_dict(root / CONFIG_FILENAME)
    override_path = root / OVERRIDE_FILENAME
    try:
        override = _load_yaml_dict(override_path)
    except ConfigError as exc:
        raise ConfigError(
            f"Invalid override config {override_path}; fix or delete it: {exc}"
        ) from exc
    if override:
        merged = _merge_defaults(merged, override)
    return parse_config(root, merged)


def parse_config(root: Path, raw: Dict[str, Any]) -> AppConfig:
    raw = _merge_defaults(DEFAULT_CONFIG, raw)
    scope_id = str(raw.get("scope_id") or "").strip()
    if not scope_id:
        raise ConfigError("scope_id must be set to the Discord server id")
    return AppConfig(
        root=root,
        raw=raw,
        scope_id=scope_id,
        definitions=_parse_definition_source_config(
            root, _section(raw, "definitions")
        ),
        log=_parse_log_config(root, _section(raw, "log")),
    )


__all__ = [
    "AppConfig",
    "CONFIG_FILENAME",
    "ConfigError",
    "DEFAULT_CONFIG",
    "DefinitionSourceConfig",
    "LogConfig",
    "load_config",
    "parse_config",
]
