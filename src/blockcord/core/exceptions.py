from __future__ import annotations

from typing import Optional


class BlockcordError(Exception):
    """Base error for the command runtime."""

    def __init__(self, message: str, *, user_message: Optional[str] = None) -> None:
        super().__init__(message)
        self.user_message = user_message


class ConfigError(BlockcordError):
    """Raised when the bot configuration is invalid."""


class DefinitionValidationError(BlockcordError):
    """A fetched command definition failed validation and cannot be installed."""

    def __init__(self, message: str, *, name: Optional[str] = None) -> None:
        super().__init__(message)
        self.name = name


class DefinitionFetchError(BlockcordError):
    """The definition store could not be queried."""


class NotFoundError(BlockcordError):
    """A referenced command, member or role does not exist."""


class BlockExecutionError(BlockcordError):
    """An action block raised while a command was running."""

    def __init__(self, message: str, *, block_index: int, block_kind: str) -> None:
        super().__init__(message)
        self.block_index = block_index
        self.block_kind = block_kind


class CommandPublishError(BlockcordError):
    """Publishing command metadata to the platform failed."""


class ResponseStateError(BlockcordError):
    """A reply, follow-up or edit was attempted out of order."""


__all__ = [
    "BlockcordError",
    "BlockExecutionError",
    "CommandPublishError",
    "ConfigError",
    "DefinitionFetchError",
    "DefinitionValidationError",
    "NotFoundError",
    "ResponseStateError",
]
