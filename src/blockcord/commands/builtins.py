from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from ..core.exceptions import CommandPublishError, DefinitionFetchError
from ..core.logging_utils import log_event
from .collectors import (
    CONFIRM_TIMEOUT_SECONDS,
    CollectorRegistry,
    build_collector_custom_id,
)
from .models import ButtonSpec, ButtonStyle, InvocationContext
from .registry import InstalledCommand
from .responder import ReplyPayload, Responder, notice
from .synchronizer import DefinitionSynchronizer, SyncReport

RELOAD_COMMAND_NAME = "reload"
RELOAD_ACTION = "reload"
CONFIRM_VALUE = "confirm"
CANCEL_VALUE = "cancel"
# Discord ADMINISTRATOR permission bit; hides the command from everyone else.
ADMINISTRATOR_PERMISSION = str(1 << 3)


@dataclass(frozen=True)
class AdminPolicy:
    user_ids: frozenset[str] = field(default_factory=frozenset)
    role_ids: frozenset[str] = field(default_factory=frozenset)

    def allows(self, context: InvocationContext) -> bool:
        if not self.user_ids and not self.role_ids:
            return True
        if context.actor_id in self.user_ids:
            return True
        return bool(self.role_ids & context.actor_role_ids)


def format_sync_report(report: SyncReport) -> str:
    lines = [f"Reloaded {len(report.installed)} command(s)."]
    if report.removed:
        lines.append(f"Removed: {', '.join(report.removed)}")
    if report.skipped:
        lines.append(f"Skipped {len(report.skipped)} definition(s):")
        for skipped in report.skipped[:10]:
            lines.append(f"- {skipped.name or '(unnamed)'}: {skipped.reason}")
        if len(report.skipped) > 10:
            lines.append(f"- ... and {len(report.skipped) - 10} more")
    return "\n".join(lines)


def _describe_duration(seconds: float) -> str:
    if seconds >= 60 and seconds % 60 == 0:
        minutes = int(seconds // 60)
        return "1 minute" if minutes == 1 else f"{minutes} minutes"
    return f"{seconds:g} seconds"


def _prompt_payload(actor_id: str) -> ReplyPayload:
    buttons = (
        ButtonSpec(
            custom_id=build_collector_custom_id(RELOAD_ACTION, CONFIRM_VALUE, actor_id),
            label="Confirm",
            style=ButtonStyle.DANGER,
        ),
        ButtonSpec(
            custom_id=build_collector_custom_id(RELOAD_ACTION, CANCEL_VALUE, actor_id),
            label="Cancel",
            style=ButtonStyle.SECONDARY,
        ),
    )
    return ReplyPayload(
        content=(
            "Reload all commands from the command builder?\n"
            "Commands that were deleted or renamed there will stop working here."
        ),
        rows=(buttons,),
        ephemeral=True,
    )


def build_reload_command(
    *,
    synchronizer: DefinitionSynchronizer,
    collectors: CollectorRegistry,
    scope_id: str,
    policy: AdminPolicy,
    logger: Optional[logging.Logger] = None,
    timeout_seconds: float = CONFIRM_TIMEOUT_SECONDS,
) -> InstalledCommand:
    log = logger or logging.getLogger(__name__)

    async def handler(context: InvocationContext, responder: Responder) -> None:
        if not policy.allows(context):
            await responder.send(
                notice("Only server administrators can reload commands.")
            )
            return

        collector = collectors.open(
            context.actor_id, RELOAD_ACTION, timeout_seconds=timeout_seconds
        )
        await responder.reply(_prompt_payload(context.actor_id))
        decision = await collector.wait()

        if decision is None:
            if collector.superseded:
                text = "This reload prompt was replaced by a newer one."
            else:
                text = (
                    f"Timed out: no response in {_describe_duration(timeout_seconds)}. "
                    "Reload cancelled."
                )
            await responder.edit_reply(ReplyPayload(content=text, ephemeral=True))
            return
        if decision != CONFIRM_VALUE:
            await responder.edit_reply(
                ReplyPayload(content="Reload cancelled.", ephemeral=True)
            )
            return

        try:
            report = await synchronizer.sync(scope_id)
        except DefinitionFetchError as exc:
            log_event(
                log,
                logging.WARNING,
                "commands.reload.fetch_failed",
                scope_id=scope_id,
                actor_id=context.actor_id,
                exc=exc,
            )
            text = (
                "Reload failed: the command builder could not be reached. "
                "Existing commands are unchanged."
            )
        except CommandPublishError as exc:
            log_event(
                log,
                logging.WARNING,
                "commands.reload.publish_failed",
                scope_id=scope_id,
                actor_id=context.actor_id,
                exc=exc,
            )
            text = (
                "Commands were reloaded, but Discord did not accept the updated "
                "command list. Try again in a few minutes."
            )
        else:
            log_event(
                log,
                logging.INFO,
                "commands.reload.completed",
                scope_id=scope_id,
                actor_id=context.actor_id,
                installed_count=len(report.installed),
                skipped_count=len(report.skipped),
            )
            text = format_sync_report(report)
        await responder.edit_reply(ReplyPayload(content=text, ephemeral=True))

    return InstalledCommand(
        name=RELOAD_COMMAND_NAME,
        description="Reload commands from the command builder",
        handler=handler,
        managed=False,
        default_member_permissions=ADMINISTRATOR_PERMISSION,
    )


__all__ = [
    "AdminPolicy",
    "CANCEL_VALUE",
    "CONFIRM_VALUE",
    "RELOAD_ACTION",
    "RELOAD_COMMAND_NAME",
    "build_reload_command",
    "format_sync_report",
]
