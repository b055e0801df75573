from __future__ import annotations

from typing import Optional

from ...core.exceptions import BlockcordError, NotFoundError


class DiscordError(BlockcordError):
    """Base Discord integration error."""


class DiscordAPIError(DiscordError):
    """Discord API request error."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        retry_after: Optional[float] = None,
        user_message: Optional[str] = None,
    ) -> None:
        super().__init__(message, user_message=user_message)
        self.status_code = status_code
        self.retry_after = retry_after


class DiscordPermanentError(DiscordAPIError):
    """Non-retryable Discord API error (bad token, missing permissions)."""


class DiscordNotFoundError(DiscordAPIError, NotFoundError):
    """The referenced Discord resource (member, role, interaction) is gone."""
