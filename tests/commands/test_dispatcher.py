from __future__ import annotations

from typing import Any

import pytest

from blockcord.commands.dispatcher import (
    COMMAND_DONE_MESSAGE,
    COMMAND_FAILED_MESSAGE,
    COMMAND_NOT_FOUND_MESSAGE,
    DispatchStatus,
    InvocationDispatcher,
)
from blockcord.commands.models import InvocationContext
from blockcord.commands.registry import InstalledCommand, RegistryHolder
from blockcord.commands.responder import BaseResponder, ReplyPayload, notice


class _RecordingResponder(BaseResponder):
    def __init__(self) -> None:
        super().__init__()
        self.sent: list[ReplyPayload] = []

    async def _send_initial(self, payload: ReplyPayload, *, deferred: bool) -> None:
        self.sent.append(payload)

    async def _send_follow_up(self, payload: ReplyPayload) -> None:
        self.sent.append(payload)

    async def _defer(self, *, ephemeral: bool) -> None:
        return None

    async def _edit_initial(self, payload: ReplyPayload) -> None:
        return None


class _FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


CONTEXT = InvocationContext(actor_id="user-1", guild_id="guild-1")


def _holder(*entries: InstalledCommand) -> RegistryHolder:
    holder = RegistryHolder()
    holder.swap_managed(entries)
    return holder


def _entry(name: str, handler: Any, **kwargs: Any) -> InstalledCommand:
    return InstalledCommand(
        name=name, description=name, handler=handler, managed=True, **kwargs
    )


async def _say_hi(context: InvocationContext, responder) -> None:
    await responder.send(ReplyPayload(content="hi"))


async def _explode(context: InvocationContext, responder) -> None:
    await responder.send(ReplyPayload(content="partial"))
    raise RuntimeError("boom")


async def _silent(context: InvocationContext, responder) -> None:
    return None


@pytest.mark.anyio
async def test_unknown_name_sends_not_found_notice() -> None:
    dispatcher = InvocationDispatcher(_holder())
    responder = _RecordingResponder()

    outcome = await dispatcher.dispatch("ghost", CONTEXT, responder)

    assert outcome.status is DispatchStatus.NOT_FOUND
    assert responder.sent == [notice(COMMAND_NOT_FOUND_MESSAGE)]


@pytest.mark.anyio
async def test_handler_failure_sends_exactly_one_notice_and_dispatcher_survives() -> None:
    dispatcher = InvocationDispatcher(_holder(_entry("bad", _explode), _entry("ok", _say_hi)))

    failed = _RecordingResponder()
    outcome = await dispatcher.dispatch("bad", CONTEXT, failed)
    assert outcome.status is DispatchStatus.FAILED
    assert [p.content for p in failed.sent] == ["partial", COMMAND_FAILED_MESSAGE]

    ok = _RecordingResponder()
    outcome = await dispatcher.dispatch("ok", CONTEXT, ok)
    assert outcome.status is DispatchStatus.COMPLETED
    assert [p.content for p in ok.sent] == ["hi"]


@pytest.mark.anyio
async def test_silent_handler_gets_done_notice() -> None:
    dispatcher = InvocationDispatcher(_holder(_entry("quiet", _silent)))
    responder = _RecordingResponder()

    outcome = await dispatcher.dispatch("quiet", CONTEXT, responder)

    assert outcome.status is DispatchStatus.COMPLETED
    assert responder.sent == [notice(COMMAND_DONE_MESSAGE)]
    assert outcome.responses_sent == 1


@pytest.mark.anyio
async def test_cooldown_is_per_actor() -> None:
    clock = _FakeClock()
    dispatcher = InvocationDispatcher(
        _holder(_entry("slow", _say_hi, cooldown_seconds=10)), clock=clock
    )

    first = await dispatcher.dispatch("slow", CONTEXT, _RecordingResponder())
    blocked_responder = _RecordingResponder()
    blocked = await dispatcher.dispatch("slow", CONTEXT, blocked_responder)
    other = await dispatcher.dispatch(
        "slow", InvocationContext(actor_id="user-2"), _RecordingResponder()
    )
    clock.now += 10
    later = await dispatcher.dispatch("slow", CONTEXT, _RecordingResponder())

    assert first.status is DispatchStatus.COMPLETED
    assert blocked.status is DispatchStatus.COOLDOWN
    assert "10s" in (blocked_responder.sent[0].content or "")
    assert other.status is DispatchStatus.COMPLETED
    assert later.status is DispatchStatus.COMPLETED


@pytest.mark.anyio
async def test_dispatch_uses_snapshot_taken_at_entry() -> None:
    holder = RegistryHolder()
    seen: list[str] = []

    async def _swapping(context: InvocationContext, responder) -> None:
        holder.swap_managed([])
        seen.append("ran")
        await responder.send(ReplyPayload(content="still here"))

    holder.swap_managed([_entry("swap", _swapping)])
    dispatcher = InvocationDispatcher(holder)
    responder = _RecordingResponder()

    outcome = await dispatcher.dispatch("swap", CONTEXT, responder)

    assert outcome.status is DispatchStatus.COMPLETED
    assert seen == ["ran"]
    assert "swap" not in holder.snapshot()
