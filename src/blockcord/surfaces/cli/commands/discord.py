from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Callable, Optional

import typer

from ....commands.builtins import AdminPolicy, build_reload_command, format_sync_report
from ....commands.collectors import CollectorRegistry
from ....commands.interpreter import BlockInterpreter
from ....commands.layout import layout_components, row_sizes
from ....commands.models import MessageBlock
from ....commands.registry import RegistryHolder
from ....commands.synchronizer import DefinitionSource, DefinitionSynchronizer, SyncReport
from ....core.config import AppConfig
from ....core.exceptions import (
    CommandPublishError,
    ConfigError,
    DefinitionFetchError,
)
from ....core.logging_utils import setup_rotating_logger
from ....integrations.discord.service import create_discord_bot_service
from ....store import build_definition_source, close_definition_source

LOGGER_NAME = "blockcord"


class _OfflineRoleManager:
    """Role manager for dry runs; definitions are decoded but never executed."""

    async def add_role(self, *, guild_id: str, user_id: str, role_id: str) -> None:
        raise RuntimeError("role changes are unavailable in check mode")

    async def remove_role(self, *, guild_id: str, user_id: str, role_id: str) -> None:
        raise RuntimeError("role changes are unavailable in check mode")


async def check_definitions(
    source: DefinitionSource, *, scope_id: str, logger: logging.Logger
) -> tuple[SyncReport, RegistryHolder]:
    """Fetch and validate definitions into a throwaway registry; nothing is published."""
    holder = RegistryHolder()
    synchronizer = DefinitionSynchronizer(
        source=source,
        holder=holder,
        interpreter=BlockInterpreter(roles=_OfflineRoleManager(), logger=logger),
        logger=logger,
    )
    holder.install_builtin(
        build_reload_command(
            synchronizer=synchronizer,
            collectors=CollectorRegistry(logger=logger),
            scope_id=scope_id,
            policy=AdminPolicy(),
            logger=logger,
        )
    )
    report = await synchronizer.sync(scope_id)
    return report, holder


def describe_registry(holder: RegistryHolder) -> list[str]:
    lines: list[str] = []
    for entry in holder.snapshot().entries():
        if entry.definition is None:
            lines.append(f"/{entry.name} (built-in)")
            continue
        definition = entry.definition
        summary = f"/{entry.name}: {len(definition.conditions)} condition(s), "
        summary += f"{len(definition.actions)} action(s)"
        if definition.cooldown_seconds > 0:
            summary += f", cooldown {definition.cooldown_seconds:g}s"
        lines.append(summary)
        for index, block in enumerate(definition.blocks):
            if isinstance(block, MessageBlock) and block.components:
                sizes = row_sizes(layout_components(block.components))
                lines.append(f"  block {index}: component rows {sizes}")
    return lines


def register_discord_commands(
    app: typer.Typer,
    *,
    raise_exit: Callable,
    require_config: Callable[[Optional[Path]], AppConfig],
) -> None:
    @app.command("start")
    def start(
        path: Optional[Path] = typer.Option(
            None, "--path", help="Directory containing blockcord.yml"
        ),
    ) -> None:
        """Run the bot until interrupted."""
        config = require_config(path)
        logger = setup_rotating_logger(LOGGER_NAME, config.log)

        async def _run() -> None:
            source = build_definition_source(config.definitions, logger=logger)
            try:
                service = create_discord_bot_service(
                    config, source=source, logger=logger
                )
                await service.run_forever()
            finally:
                await close_definition_source(source)

        try:
            asyncio.run(_run())
        except ConfigError as exc:
            raise_exit(str(exc), cause=exc)
        except (DefinitionFetchError, CommandPublishError) as exc:
            raise_exit(f"Startup sync failed: {exc}", cause=exc)
        except KeyboardInterrupt:
            typer.echo("Bot stopped.")

    @app.command("sync")
    def sync(
        path: Optional[Path] = typer.Option(
            None, "--path", help="Directory containing blockcord.yml"
        ),
    ) -> None:
        """Fetch definitions once and publish the command list."""
        config = require_config(path)
        logger = setup_rotating_logger(LOGGER_NAME, config.log)

        async def _run() -> SyncReport:
            source = build_definition_source(config.definitions, logger=logger)
            try:
                service = create_discord_bot_service(
                    config, source=source, logger=logger
                )
                return await service.sync_once()
            finally:
                await close_definition_source(source)

        try:
            report = asyncio.run(_run())
        except ConfigError as exc:
            raise_exit(str(exc), cause=exc)
        except DefinitionFetchError as exc:
            raise_exit(f"Fetching definitions failed: {exc}", cause=exc)
        except CommandPublishError as exc:
            raise_exit(f"Publishing commands failed: {exc}", cause=exc)
        typer.echo(format_sync_report(report))
        if not report.published:
            typer.echo("Command registration is disabled; nothing was published.")

    @app.command("check")
    def check(
        path: Optional[Path] = typer.Option(
            None, "--path", help="Directory containing blockcord.yml"
        ),
        strict: bool = typer.Option(
            False, "--strict", help="Exit non-zero when any definition is skipped."
        ),
    ) -> None:
        """Validate definitions and show their layouts without publishing."""
        config = require_config(path)
        logger = logging.getLogger(f"{LOGGER_NAME}.check")

        async def _run() -> tuple[SyncReport, RegistryHolder]:
            source = build_definition_source(config.definitions, logger=logger)
            try:
                return await check_definitions(
                    source, scope_id=config.scope_id, logger=logger
                )
            finally:
                await close_definition_source(source)

        try:
            report, holder = asyncio.run(_run())
        except ConfigError as exc:
            raise_exit(str(exc), cause=exc)
        except DefinitionFetchError as exc:
            raise_exit(f"Fetching definitions failed: {exc}", cause=exc)
        for line in describe_registry(holder):
            typer.echo(line)
        for skipped in report.skipped:
            typer.echo(f"skipped {skipped.name or '(unnamed)'}: {skipped.reason}")
        if strict and report.skipped:
            raise typer.Exit(code=1)
