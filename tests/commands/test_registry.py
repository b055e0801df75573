from __future__ import annotations

import pytest

from blockcord.commands.models import InvocationContext
from blockcord.commands.registry import HandlerRegistry, InstalledCommand, RegistryHolder


async def _noop(context: InvocationContext, responder) -> None:
    return None


def _entry(name: str, *, managed: bool = True, **kwargs) -> InstalledCommand:
    return InstalledCommand(
        name=name, description=f"{name} command", handler=_noop, managed=managed, **kwargs
    )


def test_swap_replaces_managed_entries_and_keeps_builtins() -> None:
    holder = RegistryHolder()
    holder.install_builtin(_entry("reload", managed=False))
    holder.swap_managed([_entry("ping"), _entry("pong")])

    previous, current = holder.swap_managed([_entry("pong"), _entry("hello")])

    assert set(previous.names()) == {"reload", "ping", "pong"}
    assert set(current.names()) == {"reload", "pong", "hello"}
    assert set(current.managed_names()) == {"pong", "hello"}
    assert holder.snapshot() is current


def test_old_snapshot_is_unaffected_by_swap() -> None:
    holder = RegistryHolder()
    holder.swap_managed([_entry("ping")])
    snapshot = holder.snapshot()

    holder.swap_managed([])

    assert "ping" in snapshot
    assert "ping" not in holder.snapshot()


def test_swap_rejects_builtin_shadowing() -> None:
    holder = RegistryHolder()
    holder.install_builtin(_entry("reload", managed=False))
    with pytest.raises(ValueError, match="shadows"):
        holder.swap_managed([_entry("reload")])


def test_install_builtin_rejects_managed_entry() -> None:
    with pytest.raises(ValueError):
        RegistryHolder().install_builtin(_entry("x"))


def test_metadata_includes_options_and_permissions() -> None:
    entry = _entry(
        "reload",
        managed=False,
        options=({"name": "input", "type": "string"},),
        default_member_permissions="8",
    )
    assert entry.metadata() == {
        "name": "reload",
        "description": "reload command",
        "options": [{"name": "input", "type": "string"}],
        "default_member_permissions": "8",
    }


def test_registry_is_read_only() -> None:
    registry = HandlerRegistry.from_entries([_entry("ping")])
    with pytest.raises(TypeError):
        registry._entries["pong"] = _entry("pong")  # type: ignore[index]
    assert len(registry) == 1
    assert list(registry) == ["ping"]
