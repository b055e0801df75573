"""Reconciles externally authored definitions into the handler registry."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Protocol

from ..core.exceptions import (
    CommandPublishError,
    DefinitionFetchError,
    DefinitionValidationError,
)
from ..core.logging_utils import log_event
from .decoding import decode_definition
from .interpreter import BlockInterpreter
from .models import CommandDefinition, InvocationContext
from .registry import CommandHandler, HandlerRegistry, InstalledCommand, RegistryHolder
from .responder import Responder

INPUT_OPTION: dict[str, Any] = {
    "name": "input",
    "description": "Text passed to the command",
    "type": "string",
    "required": False,
}


class DefinitionSource(Protocol):
    async def fetch_definitions(self, scope_id: str) -> list[dict[str, Any]]: ...


class CommandPublisher(Protocol):
    async def publish(self, commands: list[dict[str, Any]]) -> None: ...


@dataclass(frozen=True)
class SkippedDefinition:
    name: Optional[str]
    reason: str


@dataclass(frozen=True)
class SyncReport:
    scope_id: str
    installed: tuple[str, ...]
    removed: tuple[str, ...]
    skipped: tuple[SkippedDefinition, ...]
    published: bool


def build_handler(
    definition: CommandDefinition, interpreter: BlockInterpreter
) -> CommandHandler:
    async def handler(context: InvocationContext, responder: Responder) -> None:
        await interpreter.run(definition, context, responder)

    return handler


def _record_name(record: Any) -> Optional[str]:
    if isinstance(record, Mapping):
        name = record.get("name")
        if isinstance(name, str):
            return name
    return None


class DefinitionSynchronizer:
    def __init__(
        self,
        *,
        source: DefinitionSource,
        holder: RegistryHolder,
        interpreter: BlockInterpreter,
        publisher: Optional[CommandPublisher] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._source = source
        self._holder = holder
        self._interpreter = interpreter
        self._publisher = publisher
        self._logger = logger or logging.getLogger(__name__)
        self._lock = asyncio.Lock()

    async def sync(self, scope_id: str) -> SyncReport:
        async with self._lock:
            return await self._sync_locked(scope_id)

    async def _fetch(self, scope_id: str) -> list[Any]:
        try:
            records = await self._source.fetch_definitions(scope_id)
        except DefinitionFetchError as exc:
            log_event(
                self._logger,
                logging.ERROR,
                "commands.sync.fetch_failed",
                scope_id=scope_id,
                exc=exc,
            )
            raise
        except Exception as exc:
            log_event(
                self._logger,
                logging.ERROR,
                "commands.sync.fetch_failed",
                scope_id=scope_id,
                exc=exc,
            )
            raise DefinitionFetchError(
                f"failed to fetch definitions for scope {scope_id}: {exc}"
            ) from exc
        if not isinstance(records, list):
            raise DefinitionFetchError(
                f"definition source returned {type(records).__name__}, expected a list"
            )
        return records

    def _build_entries(
        self, scope_id: str, records: list[Any], reserved: set[str]
    ) -> tuple[list[InstalledCommand], list[SkippedDefinition]]:
        entries: list[InstalledCommand] = []
        skipped: list[SkippedDefinition] = []
        installed_names: set[str] = set()
        for record in records:
            try:
                definition = decode_definition(record, scope_id)
            except DefinitionValidationError as exc:
                name = exc.name or _record_name(record)
                skipped.append(SkippedDefinition(name=name, reason=str(exc)))
                log_event(
                    self._logger,
                    logging.WARNING,
                    "commands.sync.invalid_definition",
                    scope_id=scope_id,
                    name=name,
                    reason=str(exc),
                )
                continue
            except Exception as exc:
                name = _record_name(record)
                detail = f"could not be decoded: {type(exc).__name__}: {exc}"
                skipped.append(SkippedDefinition(name=name, reason=detail))
                log_event(
                    self._logger,
                    logging.ERROR,
                    "commands.sync.decode_failed",
                    scope_id=scope_id,
                    name=name,
                    exc=exc,
                )
                continue

            reason: Optional[str] = None
            if definition.scope_id != scope_id:
                reason = f"belongs to scope {definition.scope_id}"
            elif definition.name in reserved:
                reason = "name is reserved by a built-in command"
            elif definition.name in installed_names:
                reason = "duplicate name"
            elif not definition.enabled:
                reason = "disabled"
            if reason is not None:
                skipped.append(SkippedDefinition(name=definition.name, reason=reason))
                log_event(
                    self._logger,
                    logging.INFO,
                    "commands.sync.definition_skipped",
                    scope_id=scope_id,
                    name=definition.name,
                    reason=reason,
                )
                continue

            installed_names.add(definition.name)
            entries.append(
                InstalledCommand(
                    name=definition.name,
                    description=definition.description,
                    handler=build_handler(definition, self._interpreter),
                    managed=True,
                    options=(INPUT_OPTION,),
                    definition=definition,
                    cooldown_seconds=definition.cooldown_seconds,
                )
            )
        return entries, skipped

    async def _sync_locked(self, scope_id: str) -> SyncReport:
        records = await self._fetch(scope_id)
        current = self._holder.snapshot()
        reserved = {entry.name for entry in current.entries() if not entry.managed}
        entries, skipped = self._build_entries(scope_id, records, reserved)

        previous, current = self._holder.swap_managed(entries)
        installed = tuple(entry.name for entry in entries)
        removed = tuple(
            sorted(set(previous.managed_names()) - set(current.managed_names()))
        )
        log_event(
            self._logger,
            logging.INFO,
            "commands.sync.swapped",
            scope_id=scope_id,
            fetched_count=len(records),
            installed=installed,
            removed=removed,
            skipped_count=len(skipped),
        )

        published = False
        if self._publisher is not None:
            await self._publish(self._publisher, scope_id, current)
            published = True
        return SyncReport(
            scope_id=scope_id,
            installed=installed,
            removed=removed,
            skipped=tuple(skipped),
            published=published,
        )

    async def _publish(
        self, publisher: CommandPublisher, scope_id: str, registry: HandlerRegistry
    ) -> None:
        commands = [entry.metadata() for entry in registry.entries()]
        try:
            await publisher.publish(commands)
        except Exception as exc:
            log_event(
                self._logger,
                logging.ERROR,
                "commands.sync.publish_failed",
                scope_id=scope_id,
                command_count=len(commands),
                exc=exc,
            )
            raise CommandPublishError(
                f"failed to publish {len(commands)} commands: {exc}"
            ) from exc
        log_event(
            self._logger,
            logging.INFO,
            "commands.sync.published",
            scope_id=scope_id,
            command_count=len(commands),
        )


class PeriodicResync:
    """Re-runs a sync on a fixed interval, keeping the last good registry on failure."""

    def __init__(
        self,
        synchronizer: DefinitionSynchronizer,
        *,
        scope_id: str,
        interval_seconds: float,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self._synchronizer = synchronizer
        self._scope_id = scope_id
        self._interval_seconds = interval_seconds
        self._logger = logger or logging.getLogger(__name__)
        self._stop_event = asyncio.Event()

    def stop(self) -> None:
        self._stop_event.set()

    async def run(self) -> None:
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(
                    self._stop_event.wait(), timeout=self._interval_seconds
                )
                break
            except asyncio.TimeoutError:
                pass
            try:
                await self._synchronizer.sync(self._scope_id)
            except (DefinitionFetchError, CommandPublishError) as exc:
                log_event(
                    self._logger,
                    logging.WARNING,
                    "commands.resync.failed",
                    scope_id=self._scope_id,
                    exc=exc,
                )
            except Exception as exc:
                log_event(
                    self._logger,
                    logging.ERROR,
                    "commands.resync.crashed",
                    scope_id=self._scope_id,
                    exc=exc,
                )


__all__ = [
    "CommandPublisher",
    "DefinitionSource",
    "DefinitionSynchronizer",
    "INPUT_OPTION",
    "PeriodicResync",
    "SkippedDefinition",
    "SyncReport",
    "build_handler",
]
