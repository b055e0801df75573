from __future__ import annotations

import pytest

from blockcord.integrations.discord.config import (
    DEFAULT_APP_ID_ENV,
    DEFAULT_BOT_TOKEN_ENV,
    DiscordBotConfig,
    DiscordBotConfigError,
)


@pytest.fixture
def credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(DEFAULT_BOT_TOKEN_ENV, "token")
    monkeypatch.setenv(DEFAULT_APP_ID_ENV, "app-1")


def test_defaults_to_guild_scope_for_configured_server(credentials: None) -> None:
    config = DiscordBotConfig.from_raw(raw={}, scope_id="guild-1")

    assert config.bot_token == "token"
    assert config.application_id == "app-1"
    assert config.command_registration.enabled is True
    assert config.command_registration.scope == "guild"
    assert config.command_registration.guild_ids == ("guild-1",)
    assert config.intents == 1
    assert config.fail_on_startup_sync_error is True
    assert config.admin_user_ids == frozenset()


def test_parses_admins_and_global_scope(credentials: None) -> None:
    config = DiscordBotConfig.from_raw(
        raw={
            "admin_user_ids": [123, "456"],
            "admin_role_ids": "789",
            "command_registration": {"scope": "global"},
        },
        scope_id="guild-1",
    )

    assert config.admin_user_ids == frozenset({"123", "456"})
    assert config.admin_role_ids == frozenset({"789"})
    assert config.command_registration.scope == "global"
    assert config.command_registration.guild_ids == ()


def test_missing_token_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(DEFAULT_BOT_TOKEN_ENV, raising=False)
    monkeypatch.setenv(DEFAULT_APP_ID_ENV, "app-1")

    with pytest.raises(DiscordBotConfigError, match=DEFAULT_BOT_TOKEN_ENV):
        DiscordBotConfig.from_raw(raw={}, scope_id="guild-1")


def test_credentials_optional_when_not_required(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(DEFAULT_BOT_TOKEN_ENV, raising=False)
    monkeypatch.delenv(DEFAULT_APP_ID_ENV, raising=False)

    config = DiscordBotConfig.from_raw(
        raw={}, scope_id="guild-1", require_credentials=False
    )

    assert config.bot_token is None


@pytest.mark.parametrize(
    "raw",
    [
        {"command_registration": {"scope": "everywhere"}},
        {"command_registration": {"enabled": "yes"}},
        {"intents": -1},
        {"intents": True},
        {"bot_token_env": "  "},
    ],
)
def test_rejects_invalid_values(credentials: None, raw: dict) -> None:
    with pytest.raises(DiscordBotConfigError):
        DiscordBotConfig.from_raw(raw=raw, scope_id="guild-1")
