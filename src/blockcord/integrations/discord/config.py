from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Optional

from ...core.exceptions import ConfigError
from .constants import DISCORD_INTENT_GUILDS

DEFAULT_BOT_TOKEN_ENV = "BLOCKCORD_DISCORD_BOT_TOKEN"
DEFAULT_APP_ID_ENV = "BLOCKCORD_DISCORD_APP_ID"
DEFAULT_COMMAND_SCOPE = "guild"
# Slash commands and component interactions arrive without message intents.
DEFAULT_INTENTS = DISCORD_INTENT_GUILDS


class DiscordBotConfigError(ConfigError):
    """Raised when discord bot config is invalid."""


@dataclass(frozen=True)
class DiscordCommandRegistration:
    enabled: bool
    scope: str
    guild_ids: tuple[str, ...]


@dataclass(frozen=True)
class DiscordBotConfig:
    bot_token_env: str
    app_id_env: str
    bot_token: Optional[str]
    application_id: Optional[str]
    command_registration: DiscordCommandRegistration
    admin_user_ids: frozenset[str]
    admin_role_ids: frozenset[str]
    intents: int
    fail_on_startup_sync_error: bool

    @classmethod
    def from_raw(
        cls,
        *,
        raw: dict[str, Any],
        scope_id: str,
        require_credentials: bool = True,
    ) -> "DiscordBotConfig":
        cfg: dict[str, Any] = raw if isinstance(raw, dict) else {}
        bot_token_env = str(cfg.get("bot_token_env", DEFAULT_BOT_TOKEN_ENV)).strip()
        app_id_env = str(cfg.get("app_id_env", DEFAULT_APP_ID_ENV)).strip()
        if not bot_token_env:
            raise DiscordBotConfigError("discord_bot.bot_token_env must be non-empty")
        if not app_id_env:
            raise DiscordBotConfigError("discord_bot.app_id_env must be non-empty")

        bot_token = os.environ.get(bot_token_env) or None
        application_id = os.environ.get(app_id_env) or None

        registration_raw = cfg.get("command_registration")
        registration_cfg = (
            registration_raw if isinstance(registration_raw, dict) else {}
        )
        scope_raw = (
            str(registration_cfg.get("scope", DEFAULT_COMMAND_SCOPE)).strip().lower()
        )
        if scope_raw not in {"global", "guild"}:
            raise DiscordBotConfigError(
                "discord_bot.command_registration.scope must be 'global' or 'guild'"
            )
        guild_ids = tuple(_parse_string_ids(registration_cfg.get("guild_ids")))
        if scope_raw == "guild" and not guild_ids:
            guild_ids = (scope_id,)
        command_registration = DiscordCommandRegistration(
            enabled=_parse_bool_or_default(
                registration_cfg.get("enabled"),
                default=True,
                key="discord_bot.command_registration.enabled",
            ),
            scope=scope_raw,
            guild_ids=guild_ids,
        )

        intents_value = cfg.get("intents", DEFAULT_INTENTS)
        if not isinstance(intents_value, int) or isinstance(intents_value, bool):
            raise DiscordBotConfigError("discord_bot.intents must be an integer")
        if intents_value < 0:
            raise DiscordBotConfigError("discord_bot.intents must be >= 0")

        if require_credentials:
            if not bot_token:
                raise DiscordBotConfigError(
                    f"Discord bot token env var {bot_token_env} is unset"
                )
            if not application_id:
                raise DiscordBotConfigError(
                    f"Discord application id env var {app_id_env} is unset"
                )

        return cls(
            bot_token_env=bot_token_env,
            app_id_env=app_id_env,
            bot_token=bot_token,
            application_id=application_id,
            command_registration=command_registration,
            admin_user_ids=frozenset(_parse_string_ids(cfg.get("admin_user_ids"))),
            admin_role_ids=frozenset(_parse_string_ids(cfg.get("admin_role_ids"))),
            intents=intents_value,
            fail_on_startup_sync_error=_parse_bool_or_default(
                cfg.get("fail_on_startup_sync_error"),
                default=True,
                key="discord_bot.fail_on_startup_sync_error",
            ),
        )


def _parse_string_ids(value: Any) -> list[str]:
    if value is None:
        return []
    items = value if isinstance(value, (list, tuple, set, frozenset)) else [value]
    parsed: list[str] = []
    for item in items:
        token = str(item).strip()
        if token:
            parsed.append(token)
    return parsed


def _parse_bool_or_default(value: Any, *, default: bool, key: str) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    raise DiscordBotConfigError(f"{key} must be a boolean")
