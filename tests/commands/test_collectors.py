from __future__ import annotations

import asyncio

import pytest

from blockcord.commands.collectors import (
    CollectorRegistry,
    build_collector_custom_id,
    parse_collector_custom_id,
)


def test_custom_id_round_trip() -> None:
    custom_id = build_collector_custom_id("reload", "confirm", "123")
    assert custom_id == "collector:reload:confirm:123"
    assert parse_collector_custom_id(custom_id) == ("reload", "confirm", "123")


@pytest.mark.parametrize(
    "custom_id", ["", "flow:1:resume", "collector:reload:confirm", "collector::x:1"]
)
def test_parse_rejects_foreign_ids(custom_id: str) -> None:
    assert parse_collector_custom_id(custom_id) is None


@pytest.mark.anyio
async def test_resolve_delivers_first_response_only() -> None:
    registry = CollectorRegistry()
    collector = registry.open("user-1", "reload", timeout_seconds=5)

    assert registry.resolve("user-1", "reload", "confirm") is True
    assert registry.resolve("user-1", "reload", "cancel") is False
    assert await collector.wait() == "confirm"
    assert len(registry) == 0


@pytest.mark.anyio
async def test_wait_times_out() -> None:
    registry = CollectorRegistry()
    collector = registry.open("user-1", "reload", timeout_seconds=0.01)

    assert await collector.wait() is None
    assert collector.timed_out is True
    assert registry.resolve("user-1", "reload", "confirm") is False


@pytest.mark.anyio
async def test_second_open_supersedes_first() -> None:
    registry = CollectorRegistry()
    first = registry.open("user-1", "reload", timeout_seconds=5)
    second = registry.open("user-1", "reload", timeout_seconds=5)

    assert await first.wait() is None
    assert first.superseded is True

    waiter = asyncio.create_task(second.wait())
    await asyncio.sleep(0)
    assert registry.resolve("user-1", "reload", "cancel") is True
    assert await waiter == "cancel"


@pytest.mark.anyio
async def test_collectors_are_keyed_by_actor_and_action() -> None:
    registry = CollectorRegistry()
    registry.open("user-1", "reload", timeout_seconds=5)
    registry.open("user-2", "reload", timeout_seconds=5)

    assert registry.resolve("user-3", "reload", "confirm") is False
    assert registry.resolve("user-1", "undo", "confirm") is False
    assert len(registry) == 2


@pytest.mark.anyio
async def test_expired_collector_cannot_be_resolved() -> None:
    now = [0.0]
    registry = CollectorRegistry(clock=lambda: now[0])
    registry.open("user-1", "reload", timeout_seconds=5)

    now[0] = 6.0

    assert registry.get("user-1", "reload") is None
    assert registry.resolve("user-1", "reload", "confirm") is False
