from __future__ import annotations

import pytest

from blockcord.commands.responder import BaseResponder, ReplyPayload
from blockcord.core.exceptions import ResponseStateError


class _RecordingResponder(BaseResponder):
    def __init__(self) -> None:
        super().__init__()
        self.calls: list[tuple[str, object]] = []

    async def _send_initial(self, payload: ReplyPayload, *, deferred: bool) -> None:
        self.calls.append(("initial", deferred))

    async def _send_follow_up(self, payload: ReplyPayload) -> None:
        self.calls.append(("follow_up", payload.content))

    async def _defer(self, *, ephemeral: bool) -> None:
        self.calls.append(("defer", ephemeral))

    async def _edit_initial(self, payload: ReplyPayload) -> None:
        self.calls.append(("edit", payload.content))


@pytest.mark.anyio
async def test_send_replies_then_follows_up() -> None:
    responder = _RecordingResponder()
    await responder.send(ReplyPayload(content="a"))
    await responder.send(ReplyPayload(content="b"))
    assert responder.calls == [("initial", False), ("follow_up", "b")]
    assert responder.responses_sent == 2


@pytest.mark.anyio
async def test_second_reply_is_rejected() -> None:
    responder = _RecordingResponder()
    await responder.reply(ReplyPayload(content="a"))
    with pytest.raises(ResponseStateError):
        await responder.reply(ReplyPayload(content="b"))


@pytest.mark.anyio
async def test_follow_up_and_edit_require_initial_reply() -> None:
    responder = _RecordingResponder()
    with pytest.raises(ResponseStateError):
        await responder.follow_up(ReplyPayload(content="a"))
    with pytest.raises(ResponseStateError):
        await responder.edit_reply(ReplyPayload(content="a"))


@pytest.mark.anyio
async def test_keep_alive_defers_once_and_marks_reply_deferred() -> None:
    responder = _RecordingResponder()
    await responder.keep_alive(ephemeral=True)
    await responder.keep_alive(ephemeral=False)
    await responder.reply(ReplyPayload(content="late"))
    await responder.keep_alive()
    assert responder.calls == [("defer", True), ("initial", True)]
    assert responder.deferred is True
