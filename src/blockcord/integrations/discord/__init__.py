"""Discord transport for definition-driven commands."""

from .command_registry import DiscordCommandPublisher, sync_commands
from .commands import build_application_commands
from .components import (
    build_action_row,
    build_button,
    build_select_menu,
    build_select_option,
    render_action_rows,
    render_components,
)
from .config import DiscordBotConfig, DiscordBotConfigError, DiscordCommandRegistration
from .errors import (
    DiscordAPIError,
    DiscordError,
    DiscordNotFoundError,
    DiscordPermanentError,
)
from .gateway import DiscordGatewayClient
from .interactions import build_invocation_context
from .responder import DiscordInteractionResponder
from .rest import DiscordRestClient
from .roles import DiscordRoleManager
from .service import DiscordBotService, create_discord_bot_service

__all__ = [
    "DiscordAPIError",
    "DiscordBotConfig",
    "DiscordBotConfigError",
    "DiscordBotService",
    "DiscordCommandPublisher",
    "DiscordCommandRegistration",
    "DiscordError",
    "DiscordGatewayClient",
    "DiscordInteractionResponder",
    "DiscordNotFoundError",
    "DiscordPermanentError",
    "DiscordRestClient",
    "DiscordRoleManager",
    "build_action_row",
    "build_application_commands",
    "build_button",
    "build_invocation_context",
    "build_select_menu",
    "build_select_option",
    "create_discord_bot_service",
    "render_action_rows",
    "render_components",
    "sync_commands",
]
