from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Iterable, Iterator, Mapping, Optional

from .models import CommandDefinition, InvocationContext
from .responder import Responder

CommandHandler = Callable[[InvocationContext, Responder], Awaitable[None]]


@dataclass(frozen=True)
class InstalledCommand:
    name: str
    description: str
    handler: CommandHandler
    managed: bool
    options: tuple[dict[str, Any], ...] = ()
    definition: Optional[CommandDefinition] = None
    cooldown_seconds: float = 0.0
    default_member_permissions: Optional[str] = None

    def metadata(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "name": self.name,
            "description": self.description,
        }
        if self.options:
            payload["options"] = [dict(option) for option in self.options]
        if self.default_member_permissions is not None:
            payload["default_member_permissions"] = self.default_member_permissions
        return payload


@dataclass(frozen=True)
class HandlerRegistry:
    """Immutable name -> command snapshot. Replaced wholesale, never mutated."""

    _entries: Mapping[str, InstalledCommand] = field(
        default_factory=lambda: MappingProxyType({})
    )

    @classmethod
    def from_entries(cls, entries: Iterable[InstalledCommand]) -> "HandlerRegistry":
        table: dict[str, InstalledCommand] = {}
        for entry in entries:
            table[entry.name] = entry
        return cls(MappingProxyType(table))

    def get(self, name: str) -> Optional[InstalledCommand]:
        return self._entries.get(name)

    def names(self) -> tuple[str, ...]:
        return tuple(self._entries)

    def managed_names(self) -> tuple[str, ...]:
        return tuple(name for name, entry in self._entries.items() if entry.managed)

    def entries(self) -> tuple[InstalledCommand, ...]:
        return tuple(self._entries.values())

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


class RegistryHolder:
    """Holds the current registry snapshot.

    Readers call ``snapshot()`` once and keep using that object; writers build
    a complete new snapshot and publish it with one reference assignment.
    """

    def __init__(self, registry: Optional[HandlerRegistry] = None) -> None:
        self._registry = registry or HandlerRegistry()

    def snapshot(self) -> HandlerRegistry:
        return self._registry

    def install_builtin(self, entry: InstalledCommand) -> HandlerRegistry:
        if entry.managed:
            raise ValueError("built-in commands must not be marked as managed")
        current = self._registry
        updated = HandlerRegistry.from_entries(
            [item for item in current.entries() if item.name != entry.name] + [entry]
        )
        self._registry = updated
        return updated

    def swap_managed(
        self, entries: Iterable[InstalledCommand]
    ) -> tuple[HandlerRegistry, HandlerRegistry]:
        """Replace every managed entry; unmanaged entries are carried over.

        Returns ``(previous, current)`` snapshots.
        """
        previous = self._registry
        unmanaged = [entry for entry in previous.entries() if not entry.managed]
        reserved = {entry.name for entry in unmanaged}
        managed: list[InstalledCommand] = []
        for entry in entries:
            if not entry.managed:
                raise ValueError(f"entry {entry.name!r} is not managed")
            if entry.name in reserved:
                raise ValueError(f"entry {entry.name!r} shadows a built-in command")
            managed.append(entry)
        current = HandlerRegistry.from_entries(unmanaged + managed)
        self._registry = current
        return previous, current


__all__ = [
    "CommandHandler",
    "HandlerRegistry",
    "InstalledCommand",
    "RegistryHolder",
]
