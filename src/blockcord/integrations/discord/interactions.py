from __future__ import annotations

from typing import Any, Optional

from ...commands.models import InvocationContext, normalize_channel_type
from .constants import (
    INTERACTION_TYPE_APPLICATION_COMMAND,
    INTERACTION_TYPE_MESSAGE_COMPONENT,
)


def _as_id(value: object) -> str | None:
    if value is None:
        return None
    token = str(value).strip()
    return token or None


def extract_interaction_id(interaction_payload: dict[str, Any]) -> Optional[str]:
    return _as_id(interaction_payload.get("id"))


def extract_interaction_token(interaction_payload: dict[str, Any]) -> Optional[str]:
    return _as_id(interaction_payload.get("token"))


def extract_channel_id(interaction_payload: dict[str, Any]) -> Optional[str]:
    return _as_id(interaction_payload.get("channel_id"))


def extract_guild_id(interaction_payload: dict[str, Any]) -> Optional[str]:
    return _as_id(interaction_payload.get("guild_id"))


def extract_user_id(interaction_payload: dict[str, Any]) -> Optional[str]:
    member = interaction_payload.get("member")
    if isinstance(member, dict):
        member_user = member.get("user")
        if isinstance(member_user, dict):
            user_id = _as_id(member_user.get("id"))
            if user_id:
                return user_id
    user = interaction_payload.get("user")
    if isinstance(user, dict):
        return _as_id(user.get("id"))
    return None


def extract_member_role_ids(interaction_payload: dict[str, Any]) -> frozenset[str]:
    member = interaction_payload.get("member")
    if not isinstance(member, dict):
        return frozenset()
    roles = member.get("roles")
    if not isinstance(roles, list):
        return frozenset()
    return frozenset(
        role_id for role_id in (_as_id(item) for item in roles) if role_id
    )


def extract_channel_type(interaction_payload: dict[str, Any]) -> Optional[str]:
    channel = interaction_payload.get("channel")
    if isinstance(channel, dict) and "type" in channel:
        return normalize_channel_type(channel.get("type"))
    # DMs arrive without a guild and, on older payloads, without a channel object.
    if extract_guild_id(interaction_payload) is None:
        return "dm"
    return None


def extract_command_name(interaction_payload: dict[str, Any]) -> Optional[str]:
    data = interaction_payload.get("data")
    if not isinstance(data, dict):
        return None
    name = data.get("name")
    if not isinstance(name, str) or not name:
        return None
    return name


def extract_command_options(interaction_payload: dict[str, Any]) -> dict[str, Any]:
    data = interaction_payload.get("data")
    if not isinstance(data, dict):
        return {}
    options = data.get("options")
    if not isinstance(options, list):
        return {}
    parsed: dict[str, Any] = {}
    for item in options:
        if not isinstance(item, dict):
            continue
        name = item.get("name")
        if isinstance(name, str) and name:
            parsed[name] = item.get("value")
    return parsed


def extract_input_option(interaction_payload: dict[str, Any]) -> Optional[str]:
    value = extract_command_options(interaction_payload).get("input")
    if value is None:
        return None
    return str(value)


def is_command_interaction(interaction_payload: dict[str, Any]) -> bool:
    return interaction_payload.get("type") == INTERACTION_TYPE_APPLICATION_COMMAND


def is_component_interaction(interaction_payload: dict[str, Any]) -> bool:
    return interaction_payload.get("type") == INTERACTION_TYPE_MESSAGE_COMPONENT


def extract_component_custom_id(interaction_payload: dict[str, Any]) -> Optional[str]:
    data = interaction_payload.get("data")
    if not isinstance(data, dict):
        return None
    return _as_id(data.get("custom_id"))


def build_invocation_context(
    interaction_payload: dict[str, Any],
) -> Optional[InvocationContext]:
    user_id = extract_user_id(interaction_payload)
    if user_id is None:
        return None
    return InvocationContext(
        actor_id=user_id,
        actor_role_ids=extract_member_role_ids(interaction_payload),
        origin_channel_type=extract_channel_type(interaction_payload),
        guild_id=extract_guild_id(interaction_payload),
        input_option=extract_input_option(interaction_payload),
        channel_id=extract_channel_id(interaction_payload),
    )
