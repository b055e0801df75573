from __future__ import annotations

from blockcord.integrations.discord.interactions import (
    build_invocation_context,
    extract_channel_type,
    extract_command_name,
    extract_component_custom_id,
    extract_input_option,
    extract_member_role_ids,
    extract_user_id,
    is_command_interaction,
    is_component_interaction,
)


def _guild_command(**overrides) -> dict:
    payload = {
        "id": "i-1",
        "token": "tok",
        "type": 2,
        "guild_id": "guild-1",
        "channel_id": "chan-1",
        "channel": {"id": "chan-1", "type": 0},
        "member": {"user": {"id": "user-1"}, "roles": ["r1", "r2"]},
        "data": {
            "name": "greet",
            "options": [{"name": "input", "type": 3, "value": "hello there"}],
        },
    }
    payload.update(overrides)
    return payload


def test_extracts_command_fields() -> None:
    payload = _guild_command()
    assert is_command_interaction(payload)
    assert not is_component_interaction(payload)
    assert extract_command_name(payload) == "greet"
    assert extract_input_option(payload) == "hello there"
    assert extract_user_id(payload) == "user-1"
    assert extract_member_role_ids(payload) == frozenset({"r1", "r2"})
    assert extract_channel_type(payload) == "guild_text"


def test_dm_payload_uses_top_level_user() -> None:
    payload = {
        "id": "i-2",
        "token": "tok",
        "type": 2,
        "channel_id": "dm-1",
        "user": {"id": "user-9"},
        "data": {"name": "greet"},
    }
    context = build_invocation_context(payload)
    assert context is not None
    assert context.actor_id == "user-9"
    assert context.guild_id is None
    assert context.origin_channel_type == "dm"
    assert context.actor_role_ids == frozenset()
    assert context.input_option is None


def test_build_invocation_context_for_guild() -> None:
    context = build_invocation_context(_guild_command())
    assert context is not None
    assert context.guild_id == "guild-1"
    assert context.channel_id == "chan-1"


def test_missing_user_yields_no_context() -> None:
    payload = _guild_command(member=None)
    assert build_invocation_context(payload) is None


def test_component_custom_id() -> None:
    payload = {"type": 3, "data": {"custom_id": "collector:reload:confirm:u1"}}
    assert is_component_interaction(payload)
    assert extract_component_custom_id(payload) == "collector:reload:confirm:u1"
