from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import math
import platform
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

import websockets
from websockets.exceptions import ConnectionClosed

from ...core.logging_utils import log_event
from .constants import DISCORD_GATEWAY_URL
from .errors import DiscordAPIError, DiscordPermanentError
from .rest import DiscordRestClient

OP_DISPATCH = 0
OP_HEARTBEAT = 1
OP_IDENTIFY = 2
OP_RESUME = 6
OP_RECONNECT = 7
OP_INVALID_SESSION = 9
OP_HELLO = 10
OP_HEARTBEAT_ACK = 11

FATAL_GATEWAY_CLOSE_CODES = {4004, 4010, 4011, 4012, 4013, 4014}
# Close codes after which the session cannot be resumed.
NON_RESUMABLE_CLOSE_CODES = {4007, 4009}

DispatchHandler = Callable[[str, dict[str, Any]], Awaitable[None]]


@dataclass(frozen=True)
class GatewayFrame:
    op: int
    d: Any = None
    s: Optional[int] = None
    t: Optional[str] = None
    raw: dict[str, Any] | None = None


@dataclass
class GatewaySession:
    session_id: Optional[str] = None
    resume_url: Optional[str] = None
    sequence: Optional[int] = None

    @property
    def resumable(self) -> bool:
        return self.session_id is not None and self.sequence is not None

    def clear(self) -> None:
        self.session_id = None
        self.resume_url = None
        self.sequence = None


def build_identify_payload(*, bot_token: str, intents: int) -> dict[str, Any]:
    return {
        "op": OP_IDENTIFY,
        "d": {
            "token": bot_token,
            "intents": intents,
            "properties": {
                "os": platform.system().lower() or "unknown",
                "browser": "blockcord",
                "device": "blockcord",
            },
        },
    }


def build_resume_payload(
    *, bot_token: str, session_id: str, sequence: int
) -> dict[str, Any]:
    return {
        "op": OP_RESUME,
        "d": {"token": bot_token, "session_id": session_id, "seq": sequence},
    }


def parse_gateway_frame(frame: str | bytes | dict[str, Any]) -> GatewayFrame:
    if isinstance(frame, bytes):
        frame = frame.decode("utf-8")
    payload = json.loads(frame) if isinstance(frame, str) else dict(frame)
    if not isinstance(payload, dict):
        raise DiscordAPIError("Discord gateway frame must be a JSON object")
    op = payload.get("op")
    if not isinstance(op, int):
        raise DiscordAPIError(f"Discord gateway frame missing numeric op: {payload!r}")
    seq = payload.get("s")
    event_type = payload.get("t")
    return GatewayFrame(
        op=op,
        d=payload.get("d"),
        s=seq if isinstance(seq, int) else None,
        t=event_type if isinstance(event_type, str) else None,
        raw=payload,
    )


def normalize_gateway_url(url: Optional[str]) -> str:
    if not isinstance(url, str) or not url:
        return DISCORD_GATEWAY_URL
    if "?" in url:
        return url
    return f"{url.rstrip('/')}/?v=10&encoding=json"


def calculate_reconnect_backoff(
    attempt: int,
    *,
    base_seconds: float = 1.0,
    max_seconds: float = 30.0,
    rand_float: Callable[[], float] = random.random,
) -> float:
    normalized_attempt = max(attempt, 0)
    if max_seconds <= 0.0 or base_seconds <= 0.0:
        return 0.0
    min_jitter = 0.8
    cap_threshold = math.ceil(math.log2(max_seconds / (base_seconds * min_jitter)))
    if normalized_attempt >= max(cap_threshold, 0):
        return max_seconds
    scaled = base_seconds * (2**normalized_attempt)
    jitter_factor = 0.8 + (0.4 * min(max(rand_float(), 0.0), 1.0))
    return min(max_seconds, max(0.0, scaled * jitter_factor))


def gateway_close_code(exc: BaseException) -> int | None:
    code = getattr(exc, "code", None)
    if isinstance(code, int):
        return code
    received = getattr(exc, "rcvd", None)
    received_code = getattr(received, "code", None)
    if isinstance(received_code, int):
        return received_code
    return None


class DiscordGatewayClient:
    """Receives gateway dispatches, resuming the previous session when possible."""

    def __init__(
        self,
        *,
        bot_token: str,
        intents: int,
        logger: logging.Logger,
        rest: Optional[DiscordRestClient] = None,
        gateway_url: str | None = None,
    ) -> None:
        self._bot_token = bot_token
        self._intents = intents
        self._logger = logger
        self._rest = rest
        self._gateway_url = gateway_url
        self._session = GatewaySession()
        self._heartbeat_acked = True
        self._stop_event = asyncio.Event()
        self._heartbeat_task: Optional[asyncio.Task[None]] = None
        self._websocket: Any = None

    @property
    def session(self) -> GatewaySession:
        return self._session

    async def stop(self) -> None:
        self._stop_event.set()
        await self._cancel_heartbeat()
        if self._websocket is not None:
            with contextlib.suppress(Exception):
                await self._websocket.close()

    async def run(self, on_dispatch: DispatchHandler) -> None:
        reconnect_attempt = 0
        while not self._stop_event.is_set():
            established_session = False
            fatal_reason: Optional[str] = None
            try:
                gateway_url = await self._connect_url()
                async with websockets.connect(gateway_url) as websocket:
                    self._websocket = websocket
                    established_session = await self._run_connection(
                        websocket, on_dispatch
                    )
            except asyncio.CancelledError:
                raise
            except DiscordPermanentError as exc:
                fatal_reason = str(exc)
            except ConnectionClosed as exc:
                close_code = gateway_close_code(exc)
                if close_code in FATAL_GATEWAY_CLOSE_CODES:
                    fatal_reason = f"gateway_close_code={close_code}"
                else:
                    if close_code in NON_RESUMABLE_CLOSE_CODES:
                        self._session.clear()
                    log_event(
                        self._logger,
                        logging.INFO,
                        "discord.gateway.closed",
                        close_code=close_code,
                        resumable=self._session.resumable,
                    )
            except Exception as exc:
                log_event(
                    self._logger,
                    logging.WARNING,
                    "discord.gateway.error",
                    exc=exc,
                )
            finally:
                self._websocket = None
                await self._cancel_heartbeat()

            if self._stop_event.is_set():
                break
            if fatal_reason is not None:
                log_event(
                    self._logger,
                    logging.ERROR,
                    "discord.gateway.halted",
                    reason=fatal_reason,
                    hint="Fix token/intents/configuration and restart the service.",
                )
                raise DiscordPermanentError(
                    f"Discord gateway halted after fatal failure: {fatal_reason}"
                )
            if established_session:
                reconnect_attempt = 0
            backoff = calculate_reconnect_backoff(reconnect_attempt)
            reconnect_attempt += 1
            await asyncio.sleep(backoff)

    async def _connect_url(self) -> str:
        if self._session.resumable and self._session.resume_url:
            return normalize_gateway_url(self._session.resume_url)
        if self._gateway_url:
            return self._gateway_url
        if self._rest is None:
            return DISCORD_GATEWAY_URL
        payload = await self._rest.get_gateway_bot()
        return normalize_gateway_url(payload.get("url"))

    async def _handshake(self, websocket: Any) -> None:
        session = self._session
        if session.session_id is not None and session.sequence is not None:
            payload = build_resume_payload(
                bot_token=self._bot_token,
                session_id=session.session_id,
                sequence=session.sequence,
            )
            log_event(
                self._logger,
                logging.INFO,
                "discord.gateway.resuming",
                sequence=session.sequence,
            )
        else:
            payload = build_identify_payload(
                bot_token=self._bot_token, intents=self._intents
            )
        await websocket.send(json.dumps(payload))

    async def _run_connection(self, websocket: Any, on_dispatch: DispatchHandler) -> bool:
        raw = await websocket.recv()
        hello = parse_gateway_frame(raw)
        if hello.op != OP_HELLO:
            raise DiscordAPIError("Discord gateway expected HELLO frame before IDENTIFY")
        heartbeat_data = hello.d if isinstance(hello.d, dict) else {}
        heartbeat_ms = heartbeat_data.get("heartbeat_interval")
        if not isinstance(heartbeat_ms, (int, float)) or heartbeat_ms <= 0:
            raise DiscordAPIError("Discord gateway HELLO missing heartbeat_interval")

        self._heartbeat_acked = True
        self._heartbeat_task = asyncio.create_task(
            self._heartbeat_loop(websocket, float(heartbeat_ms) / 1000.0)
        )
        await self._handshake(websocket)
        established_session = False

        async for raw_message in websocket:
            frame = parse_gateway_frame(raw_message)
            if frame.s is not None:
                self._session.sequence = frame.s

            if frame.op == OP_DISPATCH:
                data = frame.d if isinstance(frame.d, dict) else {}
                if frame.t == "READY":
                    established_session = True
                    self._session.session_id = _as_str(data.get("session_id"))
                    self._session.resume_url = _as_str(data.get("resume_gateway_url"))
                    log_event(self._logger, logging.INFO, "discord.gateway.ready")
                elif frame.t == "RESUMED":
                    established_session = True
                    log_event(self._logger, logging.INFO, "discord.gateway.resumed")
                if frame.t and isinstance(frame.d, dict):
                    await on_dispatch(frame.t, frame.d)
                continue
            if frame.op == OP_HEARTBEAT:
                await websocket.send(
                    json.dumps({"op": OP_HEARTBEAT, "d": self._session.sequence})
                )
                continue
            if frame.op == OP_HEARTBEAT_ACK:
                self._heartbeat_acked = True
                continue
            if frame.op == OP_RECONNECT:
                log_event(self._logger, logging.INFO, "discord.gateway.reconnect_requested")
                return established_session
            if frame.op == OP_INVALID_SESSION:
                # d is true when the session may still be resumed.
                if frame.d is not True:
                    self._session.clear()
                log_event(
                    self._logger,
                    logging.WARNING,
                    "discord.gateway.invalid_session",
                    resumable=frame.d is True,
                )
                return established_session

        return established_session

    async def _heartbeat_loop(self, websocket: Any, interval_seconds: float) -> None:
        while not self._stop_event.is_set():
            await asyncio.sleep(interval_seconds)
            if not self._heartbeat_acked:
                log_event(
                    self._logger,
                    logging.WARNING,
                    "discord.gateway.heartbeat_missed",
                )
                await websocket.close(code=4000)
                return
            self._heartbeat_acked = False
            await websocket.send(
                json.dumps({"op": OP_HEARTBEAT, "d": self._session.sequence})
            )

    async def _cancel_heartbeat(self) -> None:
        if self._heartbeat_task is None:
            return
        task = self._heartbeat_task
        self._heartbeat_task = None
        if not task.done():
            task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception as exc:
            # Heartbeat sends fail once the socket is gone; reconnect handles it.
            self._logger.debug("Discord heartbeat task ended with error: %s", exc)


def _as_str(value: Any) -> Optional[str]:
    if isinstance(value, str) and value:
        return value
    return None
