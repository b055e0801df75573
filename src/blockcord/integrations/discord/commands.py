from __future__ import annotations

from typing import Any, Iterable, Mapping

from .constants import COMMAND_TYPE_CHAT_INPUT, OPTION_TYPE_STRING

# Platform-neutral option type names -> Discord application command option types.
OPTION_TYPES: dict[str, int] = {
    "string": OPTION_TYPE_STRING,
    "integer": 4,
    "boolean": 5,
    "user": 6,
    "channel": 7,
    "role": 8,
    "number": 10,
}


def _build_option(option: Mapping[str, Any]) -> dict[str, Any]:
    option_type = option.get("type", "string")
    if isinstance(option_type, str):
        try:
            option_type = OPTION_TYPES[option_type]
        except KeyError:
            raise ValueError(f"unsupported option type: {option_type!r}") from None
    return {
        "type": option_type,
        "name": option["name"],
        "description": option.get("description") or option["name"],
        "required": bool(option.get("required", False)),
    }


def build_application_command(metadata: Mapping[str, Any]) -> dict[str, Any]:
    command: dict[str, Any] = {
        "type": COMMAND_TYPE_CHAT_INPUT,
        "name": metadata["name"],
        "description": metadata.get("description") or metadata["name"],
    }
    options = metadata.get("options") or ()
    if options:
        command["options"] = [_build_option(option) for option in options]
    permissions = metadata.get("default_member_permissions")
    if permissions is not None:
        command["default_member_permissions"] = str(permissions)
    return command


def build_application_commands(
    metadata: Iterable[Mapping[str, Any]],
) -> list[dict[str, Any]]:
    return [build_application_command(item) for item in metadata]
