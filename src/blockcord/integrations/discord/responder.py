from __future__ import annotations

from typing import Any

from ...commands.responder import BaseResponder, ReplyPayload
from .components import render_action_rows
from .constants import (
    MESSAGE_FLAG_EPHEMERAL,
    RESPONSE_CHANNEL_MESSAGE,
    RESPONSE_DEFERRED_CHANNEL_MESSAGE,
)
from .rest import DiscordRestClient


def build_message_payload(
    payload: ReplyPayload, *, include_flags: bool = True
) -> dict[str, Any]:
    message: dict[str, Any] = {
        "content": payload.content or "",
        "embeds": [dict(embed) for embed in payload.embeds],
        "components": render_action_rows(payload.rows),
        "allowed_mentions": {"parse": []},
    }
    if include_flags and payload.ephemeral:
        message["flags"] = MESSAGE_FLAG_EPHEMERAL
    return message


class DiscordInteractionResponder(BaseResponder):
    """Responds to one slash-command interaction through the REST API.

    The first message is the interaction callback (or, after a deferral, an
    edit of the deferred placeholder); every later message is a webhook
    follow-up bound to the same interaction token.
    """

    def __init__(
        self,
        rest: DiscordRestClient,
        *,
        application_id: str,
        interaction_id: str,
        interaction_token: str,
    ) -> None:
        super().__init__()
        self._rest = rest
        self._application_id = application_id
        self._interaction_id = interaction_id
        self._interaction_token = interaction_token

    async def _send_initial(self, payload: ReplyPayload, *, deferred: bool) -> None:
        if deferred:
            # Ephemerality is fixed by the deferral; edits cannot change it.
            await self._rest.edit_original_interaction_response(
                application_id=self._application_id,
                interaction_token=self._interaction_token,
                payload=build_message_payload(payload, include_flags=False),
            )
            return
        await self._rest.create_interaction_response(
            interaction_id=self._interaction_id,
            interaction_token=self._interaction_token,
            payload={
                "type": RESPONSE_CHANNEL_MESSAGE,
                "data": build_message_payload(payload),
            },
        )

    async def _send_follow_up(self, payload: ReplyPayload) -> None:
        await self._rest.create_followup_message(
            application_id=self._application_id,
            interaction_token=self._interaction_token,
            payload=build_message_payload(payload),
        )

    async def _defer(self, *, ephemeral: bool) -> None:
        data: dict[str, Any] = {}
        if ephemeral:
            data["flags"] = MESSAGE_FLAG_EPHEMERAL
        await self._rest.create_interaction_response(
            interaction_id=self._interaction_id,
            interaction_token=self._interaction_token,
            payload={"type": RESPONSE_DEFERRED_CHANNEL_MESSAGE, "data": data},
        )

    async def _edit_initial(self, payload: ReplyPayload) -> None:
        await self._rest.edit_original_interaction_response(
            application_id=self._application_id,
            interaction_token=self._interaction_token,
            payload=build_message_payload(payload, include_flags=False),
        )
