from __future__ import annotations

import json
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from .config import LogConfig

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
_MAX_FIELD_CHARS = 500


def _coerce_field(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_coerce_field(item) for item in value]
    if isinstance(value, dict):
        return {str(key): _coerce_field(item) for key, item in value.items()}
    text = str(value)
    if len(text) > _MAX_FIELD_CHARS:
        return text[: _MAX_FIELD_CHARS - 3] + "..."
    return text


def log_event(
    logger: logging.Logger,
    level: int,
    event: str,
    *,
    exc: Optional[BaseException] = None,
    **fields: Any,
) -> None:
    """Emit a structured log line: the event name followed by JSON fields."""
    if not logger.isEnabledFor(level):
        return
    payload: dict[str, Any] = {"event": event}
    for key, value in fields.items():
        payload[key] = _coerce_field(value)
    if exc is not None:
        payload["error_type"] = type(exc).__name__
        payload["error"] = _coerce_field(str(exc))
    try:
        rendered = json.dumps(payload, sort_keys=False)
    except (TypeError, ValueError):
        rendered = repr(payload)
    exc_info = exc if exc is not None and level >= logging.ERROR else None
    logger.log(level, rendered, exc_info=exc_info)


def setup_rotating_logger(name: str, log_config: "LogConfig") -> logging.Logger:
    logger = logging.getLogger(name)
    logger.setLevel(log_config.level)
    if getattr(logger, "_blockcord_configured", False):
        return logger

    formatter = logging.Formatter(_LOG_FORMAT)
    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    if log_config.path is not None:
        path = Path(log_config.path)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            path,
            maxBytes=log_config.max_bytes,
            backupCount=log_config.backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.propagate = False
    setattr(logger, "_blockcord_configured", True)
    return logger


__all__ = ["log_event", "setup_rotating_logger"]
