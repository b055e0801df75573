from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Callable, Optional

import pytest

from blockcord.core.config import AppConfig, DefinitionSourceConfig, LogConfig
from blockcord.core.exceptions import DefinitionFetchError
from blockcord.integrations.discord.config import (
    DiscordBotConfig,
    DiscordCommandRegistration,
)
from blockcord.integrations.discord.service import (
    PROMPT_EXPIRED_MESSAGE,
    PROMPT_NOT_YOURS_MESSAGE,
    DiscordBotService,
)


class _FakeRest:
    def __init__(self) -> None:
        self.interaction_responses: list[dict[str, Any]] = []
        self.followups: list[dict[str, Any]] = []
        self.command_sync_calls: list[dict[str, Any]] = []
        self.role_calls: list[tuple[str, str, str, str]] = []

    async def create_interaction_response(
        self,
        *,
        interaction_id: str,
        interaction_token: str,
        payload: dict[str, Any],
    ) -> None:
        self.interaction_responses.append(
            {
                "interaction_id": interaction_id,
                "interaction_token": interaction_token,
                "payload": payload,
            }
        )

    async def create_followup_message(
        self, *, application_id: str, interaction_token: str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        self.followups.append(payload)
        return {"id": "msg-2"}

    async def edit_original_interaction_response(
        self, *, application_id: str, interaction_token: str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        return {"id": "msg-1"}

    async def bulk_overwrite_application_commands(
        self,
        *,
        application_id: str,
        commands: list[dict[str, Any]],
        guild_id: str | None = None,
    ) -> list[dict[str, Any]]:
        self.command_sync_calls.append(
            {
                "application_id": application_id,
                "guild_id": guild_id,
                "commands": commands,
            }
        )
        return commands

    async def add_guild_member_role(
        self, *, guild_id: str, user_id: str, role_id: str
    ) -> None:
        self.role_calls.append(("add", guild_id, user_id, role_id))

    async def remove_guild_member_role(
        self, *, guild_id: str, user_id: str, role_id: str
    ) -> None:
        self.role_calls.append(("remove", guild_id, user_id, role_id))


class _FakeGateway:
    def __init__(
        self,
        events: list[dict[str, Any]],
        *,
        settled: Optional[Callable[[], bool]] = None,
    ) -> None:
        self._events = events
        self._settled = settled
        self.ran = False
        self.stopped = False

    async def run(self, on_dispatch) -> None:
        self.ran = True
        for payload in self._events:
            await on_dispatch("INTERACTION_CREATE", payload)
        if self._settled is None:
            return
        # Command interactions run as background tasks; wait for them to land.
        for _ in range(200):
            if self._settled():
                return
            await asyncio.sleep(0.01)

    async def stop(self) -> None:
        self.stopped = True


class _FakeSource:
    def __init__(self, records: list[Any], *, error: Optional[Exception] = None) -> None:
        self._records = records
        self._error = error

    async def fetch_definitions(self, scope_id: str) -> list[Any]:
        if self._error is not None:
            raise self._error
        return [dict(record, serverId=scope_id) for record in self._records]


def _record(name: str, blocks: list[dict[str, Any]]) -> dict[str, Any]:
    return {"name": name, "description": f"{name} command", "blocks": json.dumps(blocks)}


def _app_config(root: Path) -> AppConfig:
    return AppConfig(
        root=root,
        raw={},
        scope_id="guild-1",
        definitions=DefinitionSourceConfig(
            source="yaml",
            convex_url=None,
            convex_url_env="BLOCKCORD_CONVEX_URL",
            query_path="discord:getCommands",
            timeout_seconds=5.0,
            yaml_path=root / "definitions.yml",
            resync_interval_seconds=0,
        ),
        log=LogConfig(path=None, level=logging.INFO, max_bytes=1024, backup_count=0),
    )


def _config(
    *,
    registration_enabled: bool = True,
    fail_on_startup_sync_error: bool = True,
) -> DiscordBotConfig:
    return DiscordBotConfig(
        bot_token_env="TOKEN_ENV",
        app_id_env="APP_ENV",
        bot_token="token",
        application_id="app-1",
        command_registration=DiscordCommandRegistration(
            enabled=registration_enabled, scope="guild", guild_ids=("guild-1",)
        ),
        admin_user_ids=frozenset({"admin-1"}),
        admin_role_ids=frozenset(),
        intents=1,
        fail_on_startup_sync_error=fail_on_startup_sync_error,
    )


def _command(
    name: str,
    *,
    user_id: str = "user-1",
    interaction_id: str = "inter-1",
    input_value: Optional[str] = None,
) -> dict[str, Any]:
    data: dict[str, Any] = {"name": name}
    if input_value is not None:
        data["options"] = [{"type": 3, "name": "input", "value": input_value}]
    return {
        "id": interaction_id,
        "token": "token-1",
        "type": 2,
        "guild_id": "guild-1",
        "channel_id": "channel-1",
        "channel": {"id": "channel-1", "type": 0},
        "member": {"user": {"id": user_id}, "roles": []},
        "data": data,
    }


def _component(custom_id: str, *, user_id: str = "user-1") -> dict[str, Any]:
    return {
        "id": "inter-c",
        "token": "token-c",
        "type": 3,
        "guild_id": "guild-1",
        "channel_id": "channel-1",
        "member": {"user": {"id": user_id}, "roles": []},
        "data": {"custom_id": custom_id, "component_type": 2},
    }


def _service(
    tmp_path: Path,
    rest: _FakeRest,
    gateway: _FakeGateway,
    source: _FakeSource,
    **config_kwargs: Any,
) -> DiscordBotService:
    return DiscordBotService(
        _app_config(tmp_path),
        _config(**config_kwargs),
        source=source,
        logger=logging.getLogger("test"),
        rest_client=rest,
        gateway_client=gateway,
    )


@pytest.mark.anyio
async def test_service_syncs_commands_on_startup(tmp_path: Path) -> None:
    rest = _FakeRest()
    gateway = _FakeGateway([])
    source = _FakeSource(
        [_record("ping", [{"type": "message", "config": {"content": "pong"}}])]
    )
    service = _service(tmp_path, rest, gateway, source)

    await service.run_forever()

    assert gateway.ran
    assert len(rest.command_sync_calls) == 1
    sync_call = rest.command_sync_calls[0]
    assert sync_call["application_id"] == "app-1"
    assert sync_call["guild_id"] == "guild-1"
    names = {command["name"] for command in sync_call["commands"]}
    assert names == {"ping", "reload"}
    assert set(service.holder.snapshot().names()) == {"ping", "reload"}


@pytest.mark.anyio
async def test_service_skips_publish_when_registration_disabled(tmp_path: Path) -> None:
    rest = _FakeRest()
    source = _FakeSource(
        [_record("ping", [{"type": "message", "config": {"content": "pong"}}])]
    )
    service = _service(
        tmp_path, rest, _FakeGateway([]), source, registration_enabled=False
    )

    await service.run_forever()

    assert rest.command_sync_calls == []
    assert "ping" in service.holder.snapshot()


@pytest.mark.anyio
async def test_startup_fetch_failure_is_fatal_by_default(tmp_path: Path) -> None:
    gateway = _FakeGateway([])
    source = _FakeSource([], error=DefinitionFetchError("store down"))
    service = _service(tmp_path, _FakeRest(), gateway, source)

    with pytest.raises(DefinitionFetchError):
        await service.run_forever()

    assert not gateway.ran


@pytest.mark.anyio
async def test_startup_fetch_failure_can_be_tolerated(tmp_path: Path) -> None:
    gateway = _FakeGateway([])
    source = _FakeSource([], error=DefinitionFetchError("store down"))
    service = _service(
        tmp_path, _FakeRest(), gateway, source, fail_on_startup_sync_error=False
    )

    await service.run_forever()

    assert gateway.ran
    assert service.holder.snapshot().names() == ("reload",)


@pytest.mark.anyio
async def test_service_runs_definition_for_command(tmp_path: Path) -> None:
    rest = _FakeRest()
    gateway = _FakeGateway(
        [_command("greet", input_value="world")],
        settled=lambda: bool(rest.followups),
    )
    source = _FakeSource(
        [
            _record(
                "greet",
                [
                    {"type": "message", "config": {"content": "Hello"}},
                    {"type": "role_add", "config": {"roleId": "role-9"}},
                    {"type": "message", "config": {"content": "Role granted"}},
                ],
            )
        ]
    )
    service = _service(tmp_path, rest, gateway, source)

    await service.run_forever()

    assert len(rest.interaction_responses) == 1
    reply = rest.interaction_responses[0]["payload"]
    assert reply["type"] == 4
    assert reply["data"]["allowed_mentions"] == {"parse": []}
    assert rest.role_calls == [("add", "guild-1", "user-1", "role-9")]
    assert rest.followups[0]["content"] == "Role granted"


@pytest.mark.anyio
async def test_unknown_command_gets_ephemeral_notice(tmp_path: Path) -> None:
    rest = _FakeRest()
    gateway = _FakeGateway(
        [_command("missing")],
        settled=lambda: bool(rest.interaction_responses),
    )
    service = _service(tmp_path, rest, gateway, _FakeSource([]))

    await service.run_forever()

    payload = rest.interaction_responses[0]["payload"]
    assert payload["data"]["flags"] == 64
    assert "not available" in payload["data"]["content"]


@pytest.mark.anyio
async def test_authored_button_press_is_acknowledged(tmp_path: Path) -> None:
    rest = _FakeRest()
    gateway = _FakeGateway([_component("shop:buy")])
    service = _service(tmp_path, rest, gateway, _FakeSource([]))

    await service.run_forever()

    assert rest.interaction_responses == [
        {
            "interaction_id": "inter-c",
            "interaction_token": "token-c",
            "payload": {"type": 6},
        }
    ]


@pytest.mark.anyio
async def test_collector_press_by_other_user_is_rejected(tmp_path: Path) -> None:
    rest = _FakeRest()
    gateway = _FakeGateway(
        [_component("collector:reload:confirm:admin-1", user_id="user-2")]
    )
    service = _service(tmp_path, rest, gateway, _FakeSource([]))

    await service.run_forever()

    data = rest.interaction_responses[0]["payload"]["data"]
    assert data == {"content": PROMPT_NOT_YOURS_MESSAGE, "flags": 64}


@pytest.mark.anyio
async def test_collector_press_without_open_prompt_expires(tmp_path: Path) -> None:
    rest = _FakeRest()
    gateway = _FakeGateway(
        [_component("collector:reload:confirm:admin-1", user_id="admin-1")]
    )
    service = _service(tmp_path, rest, gateway, _FakeSource([]))

    await service.run_forever()

    data = rest.interaction_responses[0]["payload"]["data"]
    assert data["content"] == PROMPT_EXPIRED_MESSAGE


@pytest.mark.anyio
async def test_collector_press_resolves_open_prompt(tmp_path: Path) -> None:
    rest = _FakeRest()
    gateway = _FakeGateway(
        [_component("collector:reload:cancel:admin-1", user_id="admin-1")]
    )
    service = _service(tmp_path, rest, gateway, _FakeSource([]))
    collector = service.collectors.open("admin-1", "reload", timeout_seconds=5)

    await service.run_forever()

    assert rest.interaction_responses[0]["payload"] == {"type": 6}
    assert await collector.wait() == "cancel"
