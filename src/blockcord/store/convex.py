from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from ..core.exceptions import DefinitionFetchError
from ..core.logging_utils import log_event

DEFAULT_QUERY_PATH = "discord:getCommands"


class ConvexDefinitionSource:
    """Reads command definitions through the Convex HTTP query API.

    One query per fetch; failures surface as ``DefinitionFetchError`` and
    are not retried here.
    """

    def __init__(
        self,
        *,
        deployment_url: str,
        query_path: str = DEFAULT_QUERY_PATH,
        timeout_seconds: float = 10.0,
        logger: Optional[logging.Logger] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._query_path = query_path
        self._logger = logger or logging.getLogger(__name__)
        self._client = httpx.AsyncClient(
            base_url=deployment_url.rstrip("/"),
            timeout=timeout_seconds,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "ConvexDefinitionSource":
        return self

    async def __aexit__(self, *_exc_info: object) -> None:
        await self.close()

    async def fetch_definitions(self, scope_id: str) -> list[dict[str, Any]]:
        body = {
            "path": self._query_path,
            "args": {"serverId": scope_id},
            "format": "json",
        }
        try:
            response = await self._client.post("/api/query", json=body)
        except httpx.HTTPError as exc:
            raise DefinitionFetchError(
                f"Convex query {self._query_path} failed: {exc}"
            ) from exc
        if response.status_code != 200:
            preview = (response.text or "").strip().replace("\n", " ")[:200]
            raise DefinitionFetchError(
                f"Convex query {self._query_path} returned "
                f"status={response.status_code} body={preview!r}"
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise DefinitionFetchError(
                f"Convex query {self._query_path} returned non-JSON body"
            ) from exc
        if not isinstance(payload, dict):
            raise DefinitionFetchError("Convex response must be a JSON object")
        status = payload.get("status")
        if status != "success":
            message = payload.get("errorMessage") or "unknown error"
            raise DefinitionFetchError(
                f"Convex query {self._query_path} failed: {message}"
            )
        value = payload.get("value")
        if not isinstance(value, list):
            raise DefinitionFetchError(
                f"Convex query {self._query_path} returned {type(value).__name__}, "
                "expected a list"
            )
        log_event(
            self._logger,
            logging.DEBUG,
            "store.convex.fetched",
            scope_id=scope_id,
            record_count=len(value),
        )
        return value
