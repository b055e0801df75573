from __future__ import annotations

from .rest import DiscordRestClient


class DiscordRoleManager:
    """Role grants and revocations for the invoking member.

    A missing member or role surfaces as ``DiscordNotFoundError``, which the
    interpreter treats as a no-op.
    """

    def __init__(self, rest: DiscordRestClient) -> None:
        self._rest = rest

    async def add_role(self, *, guild_id: str, user_id: str, role_id: str) -> None:
        await self._rest.add_guild_member_role(
            guild_id=guild_id, user_id=user_id, role_id=role_id
        )

    async def remove_role(self, *, guild_id: str, user_id: str, role_id: str) -> None:
        await self._rest.remove_guild_member_role(
            guild_id=guild_id, user_id=user_id, role_id=role_id
        )
