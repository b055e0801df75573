from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import yaml

from ..core.exceptions import DefinitionFetchError


class YamlDefinitionSource:
    """Definitions from a local YAML file, re-read on every fetch.

    The file is either a mapping of scope id to a list of records, or a flat
    list of records that each carry ``serverId``.
    """

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    async def fetch_definitions(self, scope_id: str) -> list[dict[str, Any]]:
        return await asyncio.to_thread(self._load, scope_id)

    def _load(self, scope_id: str) -> list[dict[str, Any]]:
        try:
            data = yaml.safe_load(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise DefinitionFetchError(
                f"Definitions file not found: {self._path}"
            ) from exc
        except OSError as exc:
            raise DefinitionFetchError(
                f"Failed to read definitions file {self._path}: {exc}"
            ) from exc
        except yaml.YAMLError as exc:
            raise DefinitionFetchError(
                f"Invalid YAML in {self._path}: {exc}"
            ) from exc

        if data is None:
            return []
        if isinstance(data, dict):
            records = data.get(scope_id)
            if records is None:
                records = data.get(_int_key(scope_id), [])
            if not isinstance(records, list):
                raise DefinitionFetchError(
                    f"Definitions for scope {scope_id} must be a list"
                )
            return [_with_scope(record, scope_id) for record in records]
        if isinstance(data, list):
            return [
                record
                for record in data
                if not isinstance(record, dict)
                or str(record.get("serverId", scope_id)) == scope_id
            ]
        raise DefinitionFetchError(
            f"Definitions file must contain a mapping or a list: {self._path}"
        )


def _int_key(scope_id: str) -> Any:
    # Unquoted snowflakes in YAML load as integers.
    return int(scope_id) if scope_id.isdigit() else scope_id


def _with_scope(record: Any, scope_id: str) -> Any:
    if isinstance(record, dict) and "serverId" not in record:
        return {**record, "serverId": scope_id}
    return record
