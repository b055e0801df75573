from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

from ..core.exceptions import ResponseStateError
from .models import ComponentSpec


@dataclass(frozen=True)
class ReplyPayload:
    content: Optional[str] = None
    embeds: tuple[dict[str, Any], ...] = ()
    rows: tuple[tuple[ComponentSpec, ...], ...] = field(default_factory=tuple)
    ephemeral: bool = False


class Responder(Protocol):
    """Outbound side of one invocation: one initial reply, then follow-ups."""

    @property
    def replied(self) -> bool: ...

    @property
    def responses_sent(self) -> int: ...

    async def send(self, payload: ReplyPayload) -> None: ...

    async def reply(self, payload: ReplyPayload) -> None: ...

    async def follow_up(self, payload: ReplyPayload) -> None: ...

    async def keep_alive(self, *, ephemeral: bool = False) -> None: ...

    async def edit_reply(self, payload: ReplyPayload) -> None: ...


class BaseResponder:
    """Tracks the reply/follow-up state machine for one invocation.

    Subclasses implement the transport hooks. ``keep_alive`` acknowledges the
    invocation without a visible message; the next ``reply`` then completes
    that acknowledgement instead of creating a new response.
    """

    def __init__(self) -> None:
        self._replied = False
        self._deferred = False
        self._responses_sent = 0

    @property
    def replied(self) -> bool:
        return self._replied

    @property
    def deferred(self) -> bool:
        return self._deferred

    @property
    def responses_sent(self) -> int:
        return self._responses_sent

    async def send(self, payload: ReplyPayload) -> None:
        if self._replied:
            await self.follow_up(payload)
        else:
            await self.reply(payload)

    async def reply(self, payload: ReplyPayload) -> None:
        if self._replied:
            raise ResponseStateError("initial reply already sent")
        await self._send_initial(payload, deferred=self._deferred)
        self._replied = True
        self._responses_sent += 1

    async def follow_up(self, payload: ReplyPayload) -> None:
        if not self._replied:
            raise ResponseStateError("follow-up requires an initial reply")
        await self._send_follow_up(payload)
        self._responses_sent += 1

    async def keep_alive(self, *, ephemeral: bool = False) -> None:
        if self._replied or self._deferred:
            return
        await self._defer(ephemeral=ephemeral)
        self._deferred = True

    async def edit_reply(self, payload: ReplyPayload) -> None:
        """Replace the content of the initial reply, e.g. to close a prompt."""
        if not self._replied:
            raise ResponseStateError("no initial reply to edit")
        await self._edit_initial(payload)

    async def _send_initial(self, payload: ReplyPayload, *, deferred: bool) -> None:
        raise NotImplementedError

    async def _send_follow_up(self, payload: ReplyPayload) -> None:
        raise NotImplementedError

    async def _defer(self, *, ephemeral: bool) -> None:
        raise NotImplementedError

    async def _edit_initial(self, payload: ReplyPayload) -> None:
        raise NotImplementedError


def notice(text: str, *, ephemeral: bool = True) -> ReplyPayload:
    return ReplyPayload(content=text, ephemeral=ephemeral)


__all__ = ["BaseResponder", "ReplyPayload", "Responder", "notice"]
