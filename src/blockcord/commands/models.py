"""Data model for externally authored commands.

A definition is an ordered list of blocks. Blocks form a closed tagged union:
conditions gate the invocation, every other kind is an action executed in
order once the gate permits.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

COMMAND_NAME_PATTERN = re.compile(r"^[a-z0-9_]{1,32}$")
DEFAULT_COMMAND_DESCRIPTION = "Generated from visual builder"
MAX_DESCRIPTION_LENGTH = 100

# Discord channel types (https://discord.com/developers/docs/resources/channel#channel-object-channel-types).
CHANNEL_TYPE_NAMES: dict[int, str] = {
    0: "guild_text",
    1: "dm",
    2: "guild_voice",
    3: "group_dm",
    4: "guild_category",
    5: "guild_announcement",
    10: "announcement_thread",
    11: "public_thread",
    12: "private_thread",
    13: "guild_stage_voice",
    14: "guild_directory",
    15: "guild_forum",
    16: "guild_media",
}


class BlockKind(str, Enum):
    CONDITION = "condition"
    MESSAGE = "message"
    ROLE_ADD = "role_add"
    ROLE_REMOVE = "role_remove"
    DELAY = "delay"


class ConditionType(str, Enum):
    MESSAGE_STARTS_WITH = "message_starts_with"
    USER_HAS_ROLE = "user_has_role"
    CHANNEL_TYPE = "channel_type"


class ComponentKind(str, Enum):
    BUTTON = "button"
    SELECT = "select"


class ButtonStyle(int, Enum):
    PRIMARY = 1
    SECONDARY = 2
    SUCCESS = 3
    DANGER = 4
    LINK = 5


@dataclass(frozen=True)
class SelectOptionSpec:
    label: str
    value: str
    description: Optional[str] = None
    emoji: Optional[str] = None
    default: bool = False


@dataclass(frozen=True)
class ButtonSpec:
    custom_id: str
    label: str
    style: ButtonStyle = ButtonStyle.SECONDARY
    emoji: Optional[str] = None
    disabled: bool = False
    url: Optional[str] = None

    @property
    def kind(self) -> ComponentKind:
        return ComponentKind.BUTTON


@dataclass(frozen=True)
class SelectSpec:
    custom_id: str
    options: tuple[SelectOptionSpec, ...]
    placeholder: Optional[str] = None
    min_values: int = 1
    max_values: int = 1
    disabled: bool = False

    @property
    def kind(self) -> ComponentKind:
        return ComponentKind.SELECT


ComponentSpec = Union[ButtonSpec, SelectSpec]


@dataclass(frozen=True)
class ConditionBlock:
    condition_type: ConditionType
    value: str

    @property
    def kind(self) -> BlockKind:
        return BlockKind.CONDITION


@dataclass(frozen=True)
class MessageBlock:
    content: Optional[str] = None
    embeds: tuple[dict[str, Any], ...] = ()
    components: tuple[ComponentSpec, ...] = ()
    ephemeral: bool = False

    @property
    def kind(self) -> BlockKind:
        return BlockKind.MESSAGE


@dataclass(frozen=True)
class RoleAddBlock:
    role_id: str

    @property
    def kind(self) -> BlockKind:
        return BlockKind.ROLE_ADD


@dataclass(frozen=True)
class RoleRemoveBlock:
    role_id: str

    @property
    def kind(self) -> BlockKind:
        return BlockKind.ROLE_REMOVE


@dataclass(frozen=True)
class DelayBlock:
    duration_seconds: float

    @property
    def kind(self) -> BlockKind:
        return BlockKind.DELAY


ActionBlock = Union[MessageBlock, RoleAddBlock, RoleRemoveBlock, DelayBlock]
Block = Union[ConditionBlock, ActionBlock]


@dataclass(frozen=True)
class CommandDefinition:
    scope_id: str
    name: str
    description: str = DEFAULT_COMMAND_DESCRIPTION
    cooldown_seconds: float = 0.0
    enabled: bool = True
    blocks: tuple[Block, ...] = ()
    source_id: Optional[str] = None

    @property
    def conditions(self) -> tuple[ConditionBlock, ...]:
        return tuple(block for block in self.blocks if isinstance(block, ConditionBlock))

    @property
    def actions(self) -> tuple[ActionBlock, ...]:
        return tuple(
            block for block in self.blocks if not isinstance(block, ConditionBlock)
        )


@dataclass(frozen=True)
class InvocationContext:
    """Per-dispatch view of the invoking actor. Never persisted."""

    actor_id: str
    actor_role_ids: frozenset[str] = field(default_factory=frozenset)
    origin_channel_type: Optional[str] = None
    guild_id: Optional[str] = None
    input_option: Optional[str] = None
    channel_id: Optional[str] = None


def normalize_channel_type(value: Any) -> Optional[str]:
    """Map a platform channel type (integer or name) onto its canonical name."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return CHANNEL_TYPE_NAMES.get(value, str(value))
    token = str(value).strip().lower()
    if not token:
        return None
    if token.isdigit():
        return CHANNEL_TYPE_NAMES.get(int(token), token)
    return token


__all__ = [
    "ActionBlock",
    "Block",
    "BlockKind",
    "ButtonSpec",
    "ButtonStyle",
    "CHANNEL_TYPE_NAMES",
    "COMMAND_NAME_PATTERN",
    "CommandDefinition",
    "ComponentKind",
    "ComponentSpec",
    "ConditionBlock",
    "ConditionType",
    "DEFAULT_COMMAND_DESCRIPTION",
    "DelayBlock",
    "InvocationContext",
    "MAX_DESCRIPTION_LENGTH",
    "MessageBlock",
    "RoleAddBlock",
    "RoleRemoveBlock",
    "SelectOptionSpec",
    "SelectSpec",
    "normalize_channel_type",
]
