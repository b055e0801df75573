from __future__ import annotations

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from ..core.logging_utils import log_event
from .models import InvocationContext
from .registry import InstalledCommand, RegistryHolder
from .responder import ReplyPayload, Responder, notice

COMMAND_NOT_FOUND_MESSAGE = "This command is not available."
COMMAND_FAILED_MESSAGE = "Something went wrong while running this command."
COMMAND_COOLDOWN_MESSAGE = "This command is on cooldown. Try again in {remaining}s."
COMMAND_DONE_MESSAGE = "Done."
_COOLDOWN_PRUNE_THRESHOLD = 1024


class DispatchStatus(str, Enum):
    COMPLETED = "completed"
    NOT_FOUND = "not_found"
    COOLDOWN = "cooldown"
    FAILED = "failed"


@dataclass(frozen=True)
class DispatchOutcome:
    name: str
    status: DispatchStatus
    responses_sent: int


class InvocationDispatcher:
    """Resolves invocations against the registry and runs them in a failure boundary."""

    def __init__(
        self,
        holder: RegistryHolder,
        *,
        logger: Optional[logging.Logger] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._holder = holder
        self._logger = logger or logging.getLogger(__name__)
        self._clock = clock
        self._cooldowns: dict[tuple[str, str], float] = {}

    async def dispatch(
        self, name: str, context: InvocationContext, responder: Responder
    ) -> DispatchOutcome:
        registry = self._holder.snapshot()
        entry = registry.get(name)
        if entry is None:
            log_event(
                self._logger,
                logging.INFO,
                "commands.dispatch.not_found",
                command=name,
                actor_id=context.actor_id,
            )
            await self._send_notice(name, responder, notice(COMMAND_NOT_FOUND_MESSAGE))
            return DispatchOutcome(name, DispatchStatus.NOT_FOUND, responder.responses_sent)

        remaining = self._cooldown_remaining(entry, context.actor_id)
        if remaining > 0:
            await self._send_notice(
                name,
                responder,
                notice(COMMAND_COOLDOWN_MESSAGE.format(remaining=math.ceil(remaining))),
            )
            return DispatchOutcome(name, DispatchStatus.COOLDOWN, responder.responses_sent)
        self._start_cooldown(entry, context.actor_id)

        try:
            await entry.handler(context, responder)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            log_event(
                self._logger,
                logging.ERROR,
                "commands.dispatch.failed",
                command=name,
                actor_id=context.actor_id,
                guild_id=context.guild_id,
                already_replied=responder.replied,
                exc=exc,
            )
            await self._send_notice(name, responder, notice(COMMAND_FAILED_MESSAGE))
            return DispatchOutcome(name, DispatchStatus.FAILED, responder.responses_sent)

        if not responder.replied:
            await self._send_notice(name, responder, notice(COMMAND_DONE_MESSAGE))
        log_event(
            self._logger,
            logging.INFO,
            "commands.dispatch.completed",
            command=name,
            actor_id=context.actor_id,
            responses_sent=responder.responses_sent,
        )
        return DispatchOutcome(name, DispatchStatus.COMPLETED, responder.responses_sent)

    async def _send_notice(
        self, name: str, responder: Responder, payload: ReplyPayload
    ) -> None:
        try:
            await responder.send(payload)
        except Exception as exc:
            log_event(
                self._logger,
                logging.ERROR,
                "commands.dispatch.notice_failed",
                command=name,
                exc=exc,
            )

    def _cooldown_remaining(self, entry: InstalledCommand, actor_id: str) -> float:
        if entry.cooldown_seconds <= 0:
            return 0.0
        expires_at = self._cooldowns.get((entry.name, actor_id))
        if expires_at is None:
            return 0.0
        return max(expires_at - self._clock(), 0.0)

    def _start_cooldown(self, entry: InstalledCommand, actor_id: str) -> None:
        if entry.cooldown_seconds <= 0:
            return
        now = self._clock()
        if len(self._cooldowns) >= _COOLDOWN_PRUNE_THRESHOLD:
            self._cooldowns = {
                key: expires_at
                for key, expires_at in self._cooldowns.items()
                if expires_at > now
            }
        self._cooldowns[(entry.name, actor_id)] = now + entry.cooldown_seconds


__all__ = [
    "COMMAND_COOLDOWN_MESSAGE",
    "COMMAND_DONE_MESSAGE",
    "COMMAND_FAILED_MESSAGE",
    "COMMAND_NOT_FOUND_MESSAGE",
    "DispatchOutcome",
    "DispatchStatus",
    "InvocationDispatcher",
]
