from __future__ import annotations

import json
from typing import Any, Mapping, Optional

from ..core.coercion import coerce_bool, coerce_float, coerce_int
from ..core.exceptions import DefinitionValidationError
from .collectors import CUSTOM_ID_PREFIX
from .layout import MAX_ROWS_PER_MESSAGE, layout_components
from .models import (
    COMMAND_NAME_PATTERN,
    DEFAULT_COMMAND_DESCRIPTION,
    MAX_DESCRIPTION_LENGTH,
    Block,
    BlockKind,
    ButtonSpec,
    ButtonStyle,
    CommandDefinition,
    ComponentKind,
    ComponentSpec,
    ConditionBlock,
    ConditionType,
    DelayBlock,
    MessageBlock,
    RoleAddBlock,
    RoleRemoveBlock,
    SelectOptionSpec,
    SelectSpec,
)

MAX_DELAY_SECONDS = 600.0
MAX_EMBEDS_PER_MESSAGE = 10
MAX_MESSAGE_CONTENT_LENGTH = 2000
_BUTTON_STYLE_NAMES = {style.name.lower(): style for style in ButtonStyle}


def _pick(config: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in config and config[key] is not None:
            return config[key]
    return None


def _as_text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    token = str(value).strip()
    return token or None


def validate_command_name(name: Any) -> str:
    if not isinstance(name, str) or not COMMAND_NAME_PATTERN.match(name):
        raise DefinitionValidationError(
            f"invalid command name {name!r}: must match {COMMAND_NAME_PATTERN.pattern}",
            name=name if isinstance(name, str) else None,
        )
    return name


def _load_json_list(raw: Any, *, what: str) -> list[Any]:
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DefinitionValidationError(f"{what} is not valid UTF-8: {exc}") from exc
    if isinstance(raw, str):
        try:
            raw = json.loads(raw) if raw.strip() else []
        except json.JSONDecodeError as exc:
            raise DefinitionValidationError(f"{what} is not valid JSON: {exc}") from exc
    if raw is None:
        return []
    if not isinstance(raw, (list, tuple)):
        raise DefinitionValidationError(
            f"{what} must be a list, got {type(raw).__name__}"
        )
    return list(raw)


def _decode_button_style(value: Any) -> ButtonStyle:
    if value is None:
        return ButtonStyle.SECONDARY
    if isinstance(value, str) and value.strip().lower() in _BUTTON_STYLE_NAMES:
        return _BUTTON_STYLE_NAMES[value.strip().lower()]
    style = coerce_int(value)
    try:
        return ButtonStyle(style)
    except ValueError as exc:
        raise DefinitionValidationError(f"unknown button style {value!r}") from exc


def _decode_select_option(raw: Any) -> SelectOptionSpec:
    if not isinstance(raw, Mapping):
        raise DefinitionValidationError("select option must be an object")
    label = _as_text(raw.get("label"))
    value = _as_text(raw.get("value")) or label
    if label is None or value is None:
        raise DefinitionValidationError("select option requires a label")
    return SelectOptionSpec(
        label=label,
        value=value,
        description=_as_text(raw.get("description")),
        emoji=_as_text(raw.get("emoji")),
        default=coerce_bool(raw.get("default"), False),
    )


def _decode_custom_id(props: Mapping[str, Any]) -> Optional[str]:
    custom_id = _as_text(_pick(props, "customId", "custom_id"))
    if custom_id is not None and custom_id.startswith(f"{CUSTOM_ID_PREFIX}:"):
        raise DefinitionValidationError(
            f"customId {custom_id!r} uses the reserved {CUSTOM_ID_PREFIX!r} prefix"
        )
    return custom_id


def decode_component_spec(raw: Any) -> ComponentSpec:
    if not isinstance(raw, Mapping):
        raise DefinitionValidationError("component must be an object")
    kind_raw = _as_text(_pick(raw, "kind", "type"))
    props = raw.get("props")
    if not isinstance(props, Mapping):
        props = raw
    try:
        kind = ComponentKind((kind_raw or "").lower())
    except ValueError as exc:
        raise DefinitionValidationError(f"unknown component kind {kind_raw!r}") from exc

    disabled = coerce_bool(props.get("disabled"), False)
    if kind is ComponentKind.BUTTON:
        style = _decode_button_style(props.get("style"))
        label = _as_text(props.get("label"))
        url = _as_text(props.get("url"))
        custom_id = _decode_custom_id(props)
        if label is None:
            raise DefinitionValidationError("button requires a label")
        if style is ButtonStyle.LINK:
            if url is None:
                raise DefinitionValidationError("link button requires a url")
        elif custom_id is None:
            raise DefinitionValidationError("button requires a customId")
        return ButtonSpec(
            custom_id=custom_id or "",
            label=label,
            style=style,
            emoji=_as_text(props.get("emoji")),
            disabled=disabled,
            url=url if style is ButtonStyle.LINK else None,
        )

    custom_id = _decode_custom_id(props)
    if custom_id is None:
        raise DefinitionValidationError("select requires a customId")
    options = tuple(
        _decode_select_option(item)
        for item in _load_json_list(props.get("options"), what="select options")
    )
    if not options:
        raise DefinitionValidationError("select requires at least one option")
    min_values = coerce_int(_pick(props, "minValues", "min_values"), 1)
    max_values = coerce_int(_pick(props, "maxValues", "max_values"), 1)
    if min_values is None or max_values is None or min_values < 0:
        raise DefinitionValidationError("select minValues/maxValues must be integers")
    if max_values < max(min_values, 1):
        raise DefinitionValidationError("select maxValues must be >= minValues")
    return SelectSpec(
        custom_id=custom_id,
        options=options,
        placeholder=_as_text(props.get("placeholder")),
        min_values=min_values,
        max_values=max_values,
        disabled=disabled,
    )


def decode_component_specs(raw: Any) -> tuple[ComponentSpec, ...]:
    return tuple(
        decode_component_spec(item)
        for item in _load_json_list(raw, what="message components")
    )


def _decode_condition(config: Mapping[str, Any]) -> ConditionBlock:
    type_raw = _as_text(_pick(config, "conditionType", "condition_type"))
    try:
        condition_type = ConditionType((type_raw or "").lower())
    except ValueError as exc:
        raise DefinitionValidationError(
            f"unknown condition type {type_raw!r}"
        ) from exc
    value = _pick(config, "conditionValue", "condition_value")
    if value is None or isinstance(value, (dict, list)):
        raise DefinitionValidationError(
            f"condition {condition_type.value} requires a conditionValue"
        )
    text = str(value)
    if condition_type is not ConditionType.MESSAGE_STARTS_WITH:
        text = text.strip()
    if not text:
        raise DefinitionValidationError(
            f"condition {condition_type.value} requires a non-empty conditionValue"
        )
    return ConditionBlock(condition_type=condition_type, value=text)


def _decode_message(config: Mapping[str, Any]) -> MessageBlock:
    content_raw = config.get("content")
    content = str(content_raw) if content_raw not in (None, "") else None
    if content is not None and len(content) > MAX_MESSAGE_CONTENT_LENGTH:
        raise DefinitionValidationError(
            f"message content exceeds {MAX_MESSAGE_CONTENT_LENGTH} characters"
        )
    embeds_raw = _load_json_list(config.get("embeds"), what="message embeds")
    if any(not isinstance(embed, Mapping) for embed in embeds_raw):
        raise DefinitionValidationError("message embeds must be objects")
    if len(embeds_raw) > MAX_EMBEDS_PER_MESSAGE:
        raise DefinitionValidationError(
            f"message allows at most {MAX_EMBEDS_PER_MESSAGE} embeds"
        )
    components = decode_component_specs(config.get("components"))
    row_count = len(layout_components(components))
    if row_count > MAX_ROWS_PER_MESSAGE:
        raise DefinitionValidationError(
            f"message components need {row_count} rows; at most "
            f"{MAX_ROWS_PER_MESSAGE} are allowed"
        )
    if content is None and not embeds_raw and not components:
        raise DefinitionValidationError(
            "message block requires content, embeds or components"
        )
    return MessageBlock(
        content=content,
        embeds=tuple(dict(embed) for embed in embeds_raw),
        components=components,
        ephemeral=coerce_bool(config.get("ephemeral"), False),
    )


def _decode_role_id(config: Mapping[str, Any], kind: BlockKind) -> str:
    role_id = _as_text(_pick(config, "roleId", "role_id"))
    if role_id is None:
        raise DefinitionValidationError(f"{kind.value} block requires a roleId")
    return role_id


def _decode_delay(config: Mapping[str, Any]) -> DelayBlock:
    duration = coerce_float(_pick(config, "durationSeconds", "duration_seconds"))
    if duration is None or duration < 0:
        raise DefinitionValidationError("delay block requires durationSeconds >= 0")
    if duration > MAX_DELAY_SECONDS:
        raise DefinitionValidationError(
            f"delay block durationSeconds exceeds {MAX_DELAY_SECONDS:g}"
        )
    return DelayBlock(duration_seconds=duration)


def decode_block(raw: Any, *, index: int = 0) -> Block:
    if not isinstance(raw, Mapping):
        raise DefinitionValidationError(f"block {index} must be an object")
    kind_raw = _as_text(raw.get("type"))
    try:
        kind = BlockKind((kind_raw or "").lower())
    except ValueError as exc:
        raise DefinitionValidationError(
            f"block {index} has unknown type {kind_raw!r}"
        ) from exc
    config = raw.get("config")
    if config is None:
        config = {}
    if not isinstance(config, Mapping):
        raise DefinitionValidationError(f"block {index} config must be an object")

    try:
        if kind is BlockKind.CONDITION:
            return _decode_condition(config)
        if kind is BlockKind.MESSAGE:
            return _decode_message(config)
        if kind is BlockKind.ROLE_ADD:
            return RoleAddBlock(role_id=_decode_role_id(config, kind))
        if kind is BlockKind.ROLE_REMOVE:
            return RoleRemoveBlock(role_id=_decode_role_id(config, kind))
        if kind is BlockKind.DELAY:
            return _decode_delay(config)
    except DefinitionValidationError as exc:
        raise DefinitionValidationError(f"block {index} ({kind.value}): {exc}") from exc
    raise AssertionError(f"unhandled block kind: {kind!r}")


def decode_blocks(raw: Any) -> tuple[Block, ...]:
    """Decode a block list that may arrive pre-parsed or as a JSON string."""
    return tuple(
        decode_block(item, index=index)
        for index, item in enumerate(_load_json_list(raw, what="blocks"))
    )


def decode_definition(record: Mapping[str, Any], scope_id: str) -> CommandDefinition:
    if not isinstance(record, Mapping):
        raise DefinitionValidationError("definition record must be an object")
    name = validate_command_name(record.get("name"))
    try:
        blocks = decode_blocks(record.get("blocks"))
    except DefinitionValidationError as exc:
        raise DefinitionValidationError(str(exc), name=name) from exc

    description = _as_text(record.get("description")) or DEFAULT_COMMAND_DESCRIPTION
    cooldown = coerce_float(_pick(record, "cooldownSeconds", "cooldown"), 0.0)
    record_scope = _as_text(_pick(record, "serverId", "scopeId"))
    return CommandDefinition(
        scope_id=record_scope or scope_id,
        name=name,
        description=description[:MAX_DESCRIPTION_LENGTH],
        cooldown_seconds=max(cooldown or 0.0, 0.0),
        enabled=coerce_bool(record.get("enabled"), True),
        blocks=blocks,
        source_id=_as_text(record.get("_id")),
    )


__all__ = [
    "MAX_DELAY_SECONDS",
    "decode_block",
    "decode_blocks",
    "decode_component_spec",
    "decode_component_specs",
    "decode_definition",
    "validate_command_name",
]
