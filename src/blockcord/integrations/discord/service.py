from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, Optional

from ...commands.builtins import AdminPolicy, build_reload_command
from ...commands.collectors import CollectorRegistry, parse_collector_custom_id
from ...commands.dispatcher import InvocationDispatcher
from ...commands.interpreter import BlockInterpreter
from ...commands.registry import RegistryHolder
from ...commands.synchronizer import (
    DefinitionSource,
    DefinitionSynchronizer,
    PeriodicResync,
    SyncReport,
)
from ...core.config import AppConfig
from ...core.exceptions import CommandPublishError, DefinitionFetchError
from ...core.logging_utils import log_event
from .command_registry import DiscordCommandPublisher
from .config import DiscordBotConfig
from .constants import (
    MESSAGE_FLAG_EPHEMERAL,
    RESPONSE_CHANNEL_MESSAGE,
    RESPONSE_DEFERRED_UPDATE_MESSAGE,
)
from .errors import DiscordAPIError
from .gateway import DiscordGatewayClient
from .interactions import (
    build_invocation_context,
    extract_command_name,
    extract_component_custom_id,
    extract_interaction_id,
    extract_interaction_token,
    extract_user_id,
    is_command_interaction,
    is_component_interaction,
)
from .responder import DiscordInteractionResponder
from .rest import DiscordRestClient
from .roles import DiscordRoleManager

PROMPT_EXPIRED_MESSAGE = "This prompt has expired."
PROMPT_NOT_YOURS_MESSAGE = "This prompt belongs to someone else."


class DiscordBotService:
    def __init__(
        self,
        app_config: AppConfig,
        config: DiscordBotConfig,
        *,
        source: DefinitionSource,
        logger: logging.Logger,
        rest_client: Optional[DiscordRestClient] = None,
        gateway_client: Optional[DiscordGatewayClient] = None,
    ) -> None:
        self._app_config = app_config
        self._config = config
        self._logger = logger
        self._scope_id = app_config.scope_id

        self._rest = (
            rest_client
            if rest_client is not None
            else DiscordRestClient(bot_token=config.bot_token or "")
        )
        self._owns_rest = rest_client is None

        self._gateway = (
            gateway_client
            if gateway_client is not None
            else DiscordGatewayClient(
                bot_token=config.bot_token or "",
                intents=config.intents,
                logger=logger,
                rest=self._rest,
            )
        )
        self._owns_gateway = gateway_client is None

        registration = config.command_registration
        publisher = (
            DiscordCommandPublisher(
                self._rest,
                application_id=config.application_id or "",
                scope=registration.scope,
                guild_ids=registration.guild_ids,
                logger=logger,
            )
            if registration.enabled
            else None
        )

        self._holder = RegistryHolder()
        self._collectors = CollectorRegistry(logger=logger)
        self._interpreter = BlockInterpreter(
            roles=DiscordRoleManager(self._rest), logger=logger
        )
        self._synchronizer = DefinitionSynchronizer(
            source=source,
            holder=self._holder,
            interpreter=self._interpreter,
            publisher=publisher,
            logger=logger,
        )
        self._dispatcher = InvocationDispatcher(self._holder, logger=logger)
        self._holder.install_builtin(
            build_reload_command(
                synchronizer=self._synchronizer,
                collectors=self._collectors,
                scope_id=self._scope_id,
                policy=AdminPolicy(
                    user_ids=config.admin_user_ids, role_ids=config.admin_role_ids
                ),
                logger=logger,
            )
        )
        self._resync: Optional[PeriodicResync] = None
        interval = app_config.definitions.resync_interval_seconds
        if interval > 0:
            self._resync = PeriodicResync(
                self._synchronizer,
                scope_id=self._scope_id,
                interval_seconds=interval,
                logger=logger,
            )
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def holder(self) -> RegistryHolder:
        return self._holder

    @property
    def collectors(self) -> CollectorRegistry:
        return self._collectors

    @property
    def synchronizer(self) -> DefinitionSynchronizer:
        return self._synchronizer

    async def run_forever(self) -> None:
        await self._sync_on_startup()
        resync_task: Optional[asyncio.Task[None]] = None
        if self._resync is not None:
            resync_task = asyncio.create_task(self._resync.run())
        try:
            log_event(
                self._logger,
                logging.INFO,
                "discord.bot.starting",
                scope_id=self._scope_id,
                commands=list(self._holder.snapshot().names()),
            )
            await self._gateway.run(self._on_dispatch)
        finally:
            if self._resync is not None:
                self._resync.stop()
            if resync_task is not None:
                resync_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await resync_task
            await self._shutdown()

    async def sync_once(self) -> SyncReport:
        """Fetch, install and publish once without connecting to the gateway."""
        try:
            return await self._synchronizer.sync(self._scope_id)
        finally:
            await self._shutdown()

    async def _sync_on_startup(self) -> None:
        try:
            await self._synchronizer.sync(self._scope_id)
        except (DefinitionFetchError, CommandPublishError) as exc:
            log_event(
                self._logger,
                logging.WARNING,
                "discord.commands.sync.startup_failed",
                scope_id=self._scope_id,
                exc=exc,
            )
            if self._config.fail_on_startup_sync_error:
                raise

    async def _shutdown(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await task
        if self._owns_gateway:
            with contextlib.suppress(Exception):
                await self._gateway.stop()
        if self._owns_rest:
            with contextlib.suppress(Exception):
                await self._rest.close()

    def _spawn(self, coro: Any) -> asyncio.Task[Any]:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _on_dispatch(self, event_type: str, payload: dict[str, Any]) -> None:
        if event_type != "INTERACTION_CREATE":
            return
        if is_component_interaction(payload):
            await self._handle_component_interaction(payload)
        elif is_command_interaction(payload):
            # A slow command (delays, prompts) must not block the gateway reader.
            self._spawn(self._handle_command_interaction(payload))

    async def _handle_command_interaction(self, payload: dict[str, Any]) -> None:
        interaction_id = extract_interaction_id(payload)
        interaction_token = extract_interaction_token(payload)
        name = extract_command_name(payload)
        context = build_invocation_context(payload)
        if not interaction_id or not interaction_token or not name or context is None:
            log_event(
                self._logger,
                logging.WARNING,
                "discord.interaction.malformed",
                has_id=bool(interaction_id),
                has_token=bool(interaction_token),
                has_name=bool(name),
                has_user=context is not None,
            )
            return
        responder = DiscordInteractionResponder(
            self._rest,
            application_id=self._config.application_id or "",
            interaction_id=interaction_id,
            interaction_token=interaction_token,
        )
        await self._dispatcher.dispatch(name, context, responder)

    async def _handle_component_interaction(self, payload: dict[str, Any]) -> None:
        interaction_id = extract_interaction_id(payload)
        interaction_token = extract_interaction_token(payload)
        custom_id = extract_component_custom_id(payload)
        user_id = extract_user_id(payload)
        if not interaction_id or not interaction_token:
            return

        parsed = parse_collector_custom_id(custom_id or "")
        if parsed is None:
            # Buttons authored in definitions have no handler; acknowledge silently.
            await self._acknowledge(interaction_id, interaction_token)
            return
        action, value, owner_id = parsed
        if user_id != owner_id:
            await self._respond_ephemeral(
                interaction_id, interaction_token, PROMPT_NOT_YOURS_MESSAGE
            )
            return
        if not self._collectors.resolve(owner_id, action, value):
            await self._respond_ephemeral(
                interaction_id, interaction_token, PROMPT_EXPIRED_MESSAGE
            )
            return
        await self._acknowledge(interaction_id, interaction_token)

    async def _acknowledge(self, interaction_id: str, interaction_token: str) -> None:
        try:
            await self._rest.create_interaction_response(
                interaction_id=interaction_id,
                interaction_token=interaction_token,
                payload={"type": RESPONSE_DEFERRED_UPDATE_MESSAGE},
            )
        except DiscordAPIError as exc:
            log_event(
                self._logger,
                logging.WARNING,
                "discord.interaction.ack_failed",
                interaction_id=interaction_id,
                exc=exc,
            )

    async def _respond_ephemeral(
        self, interaction_id: str, interaction_token: str, text: str
    ) -> None:
        try:
            await self._rest.create_interaction_response(
                interaction_id=interaction_id,
                interaction_token=interaction_token,
                payload={
                    "type": RESPONSE_CHANNEL_MESSAGE,
                    "data": {"content": text, "flags": MESSAGE_FLAG_EPHEMERAL},
                },
            )
        except DiscordAPIError as exc:
            log_event(
                self._logger,
                logging.WARNING,
                "discord.interaction.respond_failed",
                interaction_id=interaction_id,
                exc=exc,
            )


def create_discord_bot_service(
    app_config: AppConfig,
    *,
    source: DefinitionSource,
    logger: logging.Logger,
) -> DiscordBotService:
    config = DiscordBotConfig.from_raw(
        raw=app_config.raw.get("discord_bot") or {}, scope_id=app_config.scope_id
    )
    return DiscordBotService(app_config, config, source=source, logger=logger)
