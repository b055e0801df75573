"""Time-boxed collectors for confirm/undo prompts.

A collector waits for the first response from one actor to one kind of
prompt. Collectors are keyed by ``(actor_id, action)``: opening a second one
for the same key supersedes the first, so two collectors never resolve the
same entry.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Optional

from ..core.logging_utils import log_event

CONFIRM_TIMEOUT_SECONDS = 60.0
CUSTOM_ID_PREFIX = "collector"

CollectorKey = tuple[str, str]


def build_collector_custom_id(action: str, value: str, actor_id: str) -> str:
    return f"{CUSTOM_ID_PREFIX}:{action}:{value}:{actor_id}"


def parse_collector_custom_id(custom_id: str) -> Optional[tuple[str, str, str]]:
    """Split a collector component id into ``(action, value, actor_id)``."""
    parts = custom_id.split(":")
    if len(parts) != 4 or parts[0] != CUSTOM_ID_PREFIX:
        return None
    _, action, value, actor_id = parts
    if not action or not value or not actor_id:
        return None
    return action, value, actor_id


class Collector:
    def __init__(
        self,
        registry: "CollectorRegistry",
        key: CollectorKey,
        future: "asyncio.Future[Optional[str]]",
        *,
        timeout_seconds: float,
        expires_at: float,
        data: Any = None,
    ) -> None:
        self._registry = registry
        self._future = future
        self.key = key
        self.timeout_seconds = timeout_seconds
        self.expires_at = expires_at
        self.data = data
        self.timed_out = False
        self.superseded = False

    @property
    def actor_id(self) -> str:
        return self.key[0]

    @property
    def action(self) -> str:
        return self.key[1]

    @property
    def done(self) -> bool:
        return self._future.done()

    def _deliver(self, value: Optional[str]) -> bool:
        if self._future.done():
            return False
        self._future.set_result(value)
        return True

    def supersede(self) -> None:
        if self._deliver(None):
            self.superseded = True

    async def wait(self) -> Optional[str]:
        """Return the collected value, or ``None`` on timeout or supersession."""
        try:
            return await asyncio.wait_for(
                asyncio.shield(self._future), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError:
            self.timed_out = self._deliver(None)
            return None
        finally:
            self._registry._evict(self)


class CollectorRegistry:
    def __init__(
        self,
        *,
        logger: Optional[logging.Logger] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._logger = logger or logging.getLogger(__name__)
        self._clock = clock
        self._entries: dict[CollectorKey, Collector] = {}

    def open(
        self,
        actor_id: str,
        action: str,
        *,
        timeout_seconds: float = CONFIRM_TIMEOUT_SECONDS,
        data: Any = None,
    ) -> Collector:
        key = (actor_id, action)
        previous = self._entries.pop(key, None)
        if previous is not None:
            previous.supersede()
            log_event(
                self._logger,
                logging.INFO,
                "collectors.superseded",
                actor_id=actor_id,
                action=action,
            )
        future: asyncio.Future[Optional[str]] = (
            asyncio.get_running_loop().create_future()
        )
        collector = Collector(
            self,
            key,
            future,
            timeout_seconds=timeout_seconds,
            expires_at=self._clock() + timeout_seconds,
            data=data,
        )
        self._entries[key] = collector
        return collector

    def get(self, actor_id: str, action: str) -> Optional[Collector]:
        collector = self._entries.get((actor_id, action))
        if collector is None:
            return None
        if collector.done or collector.expires_at <= self._clock():
            return None
        return collector

    def resolve(self, actor_id: str, action: str, value: str) -> bool:
        collector = self.get(actor_id, action)
        if collector is None:
            return False
        delivered = collector._deliver(value)
        if delivered:
            self._evict(collector)
            log_event(
                self._logger,
                logging.INFO,
                "collectors.resolved",
                actor_id=actor_id,
                action=action,
                value=value,
            )
        return delivered

    def _evict(self, collector: Collector) -> None:
        if self._entries.get(collector.key) is collector:
            del self._entries[collector.key]

    def __len__(self) -> int:
        return len(self._entries)


__all__ = [
    "CONFIRM_TIMEOUT_SECONDS",
    "CUSTOM_ID_PREFIX",
    "Collector",
    "CollectorRegistry",
    "build_collector_custom_id",
    "parse_collector_custom_id",
]
