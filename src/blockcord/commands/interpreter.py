"""Block interpreter.

Evaluation is two-phase: every condition block is evaluated and the results
are combined with AND; only a permitted invocation runs its action blocks,
sequentially and in list order.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Protocol

from ..core.exceptions import BlockExecutionError, NotFoundError
from ..core.logging_utils import log_event
from .layout import layout_components
from .models import (
    ActionBlock,
    CommandDefinition,
    ConditionBlock,
    ConditionType,
    DelayBlock,
    InvocationContext,
    MessageBlock,
    RoleAddBlock,
    RoleRemoveBlock,
    normalize_channel_type,
)
from .responder import ReplyPayload, Responder, notice

REQUIREMENTS_NOT_MET_MESSAGE = "You do not meet the requirements to use this command."


class RoleManager(Protocol):
    async def add_role(self, *, guild_id: str, user_id: str, role_id: str) -> None: ...

    async def remove_role(
        self, *, guild_id: str, user_id: str, role_id: str
    ) -> None: ...


@dataclass(frozen=True)
class ConditionResult:
    condition: ConditionBlock
    passed: bool


@dataclass(frozen=True)
class Decision:
    permitted: bool
    results: tuple[ConditionResult, ...] = ()

    @property
    def failed(self) -> tuple[ConditionBlock, ...]:
        return tuple(result.condition for result in self.results if not result.passed)


def check_condition(condition: ConditionBlock, context: InvocationContext) -> bool:
    condition_type = condition.condition_type
    if condition_type is ConditionType.MESSAGE_STARTS_WITH:
        value = context.input_option
        return value is not None and value.startswith(condition.value)
    if condition_type is ConditionType.USER_HAS_ROLE:
        return condition.value in context.actor_role_ids
    if condition_type is ConditionType.CHANNEL_TYPE:
        actual = normalize_channel_type(context.origin_channel_type)
        return actual is not None and actual == normalize_channel_type(condition.value)
    raise AssertionError(f"unhandled condition type: {condition_type!r}")


def evaluate(definition: CommandDefinition, context: InvocationContext) -> Decision:
    results = tuple(
        ConditionResult(condition=condition, passed=check_condition(condition, context))
        for condition in definition.conditions
    )
    return Decision(
        permitted=all(result.passed for result in results), results=results
    )


def build_message_payload(block: MessageBlock) -> ReplyPayload:
    rows = tuple(tuple(row) for row in layout_components(block.components))
    return ReplyPayload(
        content=block.content,
        embeds=block.embeds,
        rows=rows,
        ephemeral=block.ephemeral,
    )


def _next_message_ephemeral(
    definition: CommandDefinition, start: int
) -> Optional[bool]:
    for block in definition.blocks[start:]:
        if isinstance(block, MessageBlock):
            return block.ephemeral
    return None


class BlockInterpreter:
    def __init__(
        self,
        *,
        roles: RoleManager,
        logger: Optional[logging.Logger] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._roles = roles
        self._logger = logger or logging.getLogger(__name__)
        self._sleep = sleep

    async def run(
        self,
        definition: CommandDefinition,
        context: InvocationContext,
        responder: Responder,
    ) -> Decision:
        decision = evaluate(definition, context)
        if not decision.permitted:
            log_event(
                self._logger,
                logging.INFO,
                "commands.run.denied",
                command=definition.name,
                actor_id=context.actor_id,
                failed_conditions=[
                    condition.condition_type.value for condition in decision.failed
                ],
            )
            await responder.send(notice(REQUIREMENTS_NOT_MET_MESSAGE))
            return decision

        for index, block in enumerate(definition.blocks):
            if isinstance(block, ConditionBlock):
                continue
            try:
                await self._execute(definition, index, block, context, responder)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                raise BlockExecutionError(
                    f"{block.kind.value} block {index} of {definition.name!r} failed: {exc}",
                    block_index=index,
                    block_kind=block.kind.value,
                ) from exc
        return decision

    async def _execute(
        self,
        definition: CommandDefinition,
        index: int,
        block: ActionBlock,
        context: InvocationContext,
        responder: Responder,
    ) -> None:
        if isinstance(block, MessageBlock):
            await responder.send(build_message_payload(block))
        elif isinstance(block, RoleAddBlock):
            await self._mutate_role(definition, block.role_id, context, add=True)
        elif isinstance(block, RoleRemoveBlock):
            await self._mutate_role(definition, block.role_id, context, add=False)
        elif isinstance(block, DelayBlock):
            if not responder.replied:
                ephemeral = _next_message_ephemeral(definition, index + 1)
                await responder.keep_alive(ephemeral=bool(ephemeral))
            await self._sleep(block.duration_seconds)
        else:
            raise AssertionError(f"unhandled block: {block!r}")

    async def _mutate_role(
        self,
        definition: CommandDefinition,
        role_id: str,
        context: InvocationContext,
        *,
        add: bool,
    ) -> None:
        if not context.guild_id or not role_id:
            log_event(
                self._logger,
                logging.DEBUG,
                "commands.run.role_skipped",
                command=definition.name,
                reason="no_guild" if not context.guild_id else "no_role",
            )
            return
        try:
            if add:
                await self._roles.add_role(
                    guild_id=context.guild_id, user_id=context.actor_id, role_id=role_id
                )
            else:
                await self._roles.remove_role(
                    guild_id=context.guild_id, user_id=context.actor_id, role_id=role_id
                )
        except NotFoundError as exc:
            log_event(
                self._logger,
                logging.DEBUG,
                "commands.run.role_not_found",
                command=definition.name,
                role_id=role_id,
                actor_id=context.actor_id,
                exc=exc,
            )


__all__ = [
    "BlockInterpreter",
    "ConditionResult",
    "Decision",
    "REQUIREMENTS_NOT_MET_MESSAGE",
    "RoleManager",
    "build_message_payload",
    "check_condition",
    "evaluate",
]
