from __future__ import annotations

from typing import Any, Iterable, Optional, Sequence

from ...commands.layout import layout_components
from ...commands.models import (
    ButtonSpec,
    ButtonStyle,
    ComponentSpec,
    SelectOptionSpec,
    SelectSpec,
)
from .constants import (
    COMPONENT_TYPE_ACTION_ROW,
    COMPONENT_TYPE_BUTTON,
    COMPONENT_TYPE_STRING_SELECT,
)

DISCORD_SELECT_OPTION_MAX_OPTIONS = 25


def build_action_row(components: list[dict[str, Any]]) -> dict[str, Any]:
    return {
        "type": COMPONENT_TYPE_ACTION_ROW,
        "components": components,
    }


def build_button(
    label: str,
    custom_id: Optional[str],
    *,
    style: int = ButtonStyle.SECONDARY,
    emoji: Optional[str] = None,
    disabled: bool = False,
    url: Optional[str] = None,
) -> dict[str, Any]:
    button: dict[str, Any] = {
        "type": COMPONENT_TYPE_BUTTON,
        "style": int(style),
        "label": label[:80],
        "disabled": disabled,
    }
    # Link buttons carry a url and must not carry a custom_id.
    if url:
        button["style"] = int(ButtonStyle.LINK)
        button["url"] = url
    elif custom_id:
        button["custom_id"] = custom_id
    if emoji:
        button["emoji"] = {"name": emoji}
    return button


def build_select_menu(
    custom_id: str,
    options: list[dict[str, Any]],
    *,
    placeholder: Optional[str] = None,
    min_values: int = 1,
    max_values: int = 1,
    disabled: bool = False,
) -> dict[str, Any]:
    options = options[:DISCORD_SELECT_OPTION_MAX_OPTIONS]
    select: dict[str, Any] = {
        "type": COMPONENT_TYPE_STRING_SELECT,
        "custom_id": custom_id,
        "options": options,
        "min_values": min_values,
        "max_values": max(min(max_values, len(options)), 1),
        "disabled": disabled,
    }
    if placeholder:
        select["placeholder"] = placeholder[:150]
    return select


def build_select_option(
    label: str,
    value: str,
    *,
    description: Optional[str] = None,
    emoji: Optional[str] = None,
    default: bool = False,
) -> dict[str, Any]:
    option: dict[str, Any] = {
        "label": label[:100],
        "value": value[:100],
        "default": default,
    }
    if description:
        option["description"] = description[:100]
    if emoji:
        option["emoji"] = {"name": emoji}
    return option


def render_component(spec: ComponentSpec) -> dict[str, Any]:
    if isinstance(spec, ButtonSpec):
        return build_button(
            spec.label,
            spec.custom_id,
            style=spec.style,
            emoji=spec.emoji,
            disabled=spec.disabled,
            url=spec.url,
        )
    if isinstance(spec, SelectSpec):
        return build_select_menu(
            spec.custom_id,
            [_render_option(option) for option in spec.options],
            placeholder=spec.placeholder,
            min_values=spec.min_values,
            max_values=spec.max_values,
            disabled=spec.disabled,
        )
    raise TypeError(f"unsupported component spec: {spec!r}")


def _render_option(option: SelectOptionSpec) -> dict[str, Any]:
    return build_select_option(
        option.label,
        option.value,
        description=option.description,
        emoji=option.emoji,
        default=option.default,
    )


def render_action_rows(
    rows: Sequence[Sequence[ComponentSpec]],
) -> list[dict[str, Any]]:
    """Render already-partitioned rows into Discord action rows."""
    return [
        build_action_row([render_component(spec) for spec in row])
        for row in rows
        if row
    ]


def render_components(specs: Iterable[ComponentSpec]) -> list[dict[str, Any]]:
    return render_action_rows(layout_components(specs))
