"""Engine session: one websocket per document, replies correlated by id.

A session owns a single connection and a reader task. Callers ``await
session.call(...)``; the call registers a pending entry keyed by its id and
suspends on that entry's future only. The reader task decodes every inbound
frame and resolves the matching entry. Both run on one event loop, which is
the only owner of the pending table.

    session = await connect("app-id", config)
    reply = await session.call("GetLayout", handle, [])
    await session.disconnect()
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any
from urllib.parse import quote, urlparse

from loguru import logger
from websockets.asyncio.client import connect as ws_connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from qixclient.config.schema import Config
from qixclient.qix.protocol import (
    DecodeFailure,
    DecodeFailureKind,
    Method,
    Reply,
    decode_reply,
    encode_request,
    method_name,
)
from qixclient.utils.exceptions import (
    ConfigurationError,
    NetworkError,
    TimeoutError as CallTimeoutError,
    ValidationError,
    sanitize_error_message,
)

_SCHEME_MAP = {"http": "ws", "https": "wss", "ws": "ws", "wss": "wss"}
_DEFAULT_PORTS = {"ws": 80, "wss": 443}


class SessionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


@dataclass
class PendingCall:
    id: int
    method: str
    issued_at: float
    deadline: float
    future: asyncio.Future


@dataclass(frozen=True)
class ConnectionTarget:
    host: str
    port: int
    path: str


@dataclass(frozen=True)
class _Closed:
    reason: str


def build_connection_url(document_id: str, config: Config) -> str:
    """``https://tenant/`` + ``app-1`` -> ``wss://tenant/app/app-1``."""
    base = config.base_url()
    scheme, sep, rest = base.partition("://")
    if not sep or scheme.lower() not in _SCHEME_MAP:
        raise ConfigurationError(f"Invalid tenant URL: {config.tenant_url}", field="tenant_url")
    return f"{_SCHEME_MAP[scheme.lower()]}://{rest}/app/{quote(document_id, safe='')}"


def parse_connection_url(url: str) -> ConnectionTarget:
    """Split a websocket URL into host, port and path.

    ``wss`` defaults to 443 and ``ws`` to 80 when no port is given.
    """
    try:
        parsed = urlparse(url)
        port = parsed.port
    except ValueError as exc:
        raise ValidationError(f"Invalid websocket URL: {url}", field="url") from exc
    if parsed.scheme not in _DEFAULT_PORTS or not parsed.hostname:
        raise ValidationError(f"Invalid websocket URL: {url}", field="url")
    return ConnectionTarget(
        host=parsed.hostname,
        port=port or _DEFAULT_PORTS[parsed.scheme],
        path=parsed.path or "/",
    )


def _require_document_id(document_id: Any) -> str:
    if not isinstance(document_id, str) or not document_id.strip():
        raise ValidationError("document_id is required", field="document_id")
    return document_id.strip()


class Session:
    """One engine connection bound to one document."""

    def __init__(
        self,
        document_id: str,
        config: Config | None,
        *,
        call_timeout: float | None = None,
    ):
        self.document_id = _require_document_id(document_id)
        if config is None:
            raise ConfigurationError("Config is required for an engine session")
        self.config = config.validate_settings()
        self.url = build_connection_url(self.document_id, self.config)

        self._call_timeout = call_timeout if call_timeout is not None else self.config.engine.call_timeout
        self._state = SessionState.DISCONNECTED
        self._ws: Any = None
        self._reader: asyncio.Task[None] | None = None
        self._next_id = 1
        self._pending: dict[int, PendingCall] = {}

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_open(self) -> bool:
        """Open and the reader task is still alive."""
        return (
            self._state is SessionState.OPEN
            and self._reader is not None
            and not self._reader.done()
        )

    @property
    def next_id(self) -> int:
        return self._next_id

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def __aenter__(self) -> "Session":
        if self._state is SessionState.DISCONNECTED:
            await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.disconnect()

    async def open(self, timeout: float | None = None) -> None:
        """Perform the websocket handshake and start the reader task.

        Raises:
            NetworkError: the engine could not be reached or refused the upgrade.
        """
        if self._state is not SessionState.DISCONNECTED:
            raise NetworkError(f"Session is {self._state.value}, cannot connect")

        target = parse_connection_url(self.url)
        open_timeout = timeout if timeout is not None else self.config.engine.connect_timeout
        self._state = SessionState.CONNECTING
        logger.info(f"Connecting to engine: {target.host}:{target.port}{target.path}")
        try:
            self._ws = await ws_connect(
                self.url,
                additional_headers=self.config.headers(),
                origin=self.config.base_url(),
                open_timeout=open_timeout,
                ping_interval=self.config.engine.ping_interval,
                max_size=self.config.engine.max_frame_bytes,
            )
        except (OSError, WebSocketException, asyncio.TimeoutError) as exc:
            self._state = SessionState.CLOSED
            detail = sanitize_error_message(str(exc) or type(exc).__name__)
            logger.error(f"Engine connection failed for {self.document_id}: {detail}")
            raise NetworkError(
                f"Connection failed: {detail}",
                details={"document_id": self.document_id, "host": target.host},
            ) from exc

        self._state = SessionState.OPEN
        self._reader = asyncio.create_task(self._read_loop(), name=f"qix-reader-{self.document_id}")
        logger.info(f"Engine session open for {self.document_id}")

    async def call(
        self,
        method: str | Method,
        handle: int,
        params: Sequence[Any] = (),
        *,
        timeout: float | None = None,
    ) -> Reply:
        """Send one call and wait for its reply.

        Returns the decoded reply (``Success``, ``RpcError`` or a
        ``DecodeFailure`` addressed to this id). Transport problems raise.

        Raises:
            NetworkError: session not open, send failed, or closed while waiting.
            qixclient.utils.exceptions.TimeoutError: no reply before the deadline.
            EncodingError: params are not JSON-representable.
        """
        name = method_name(method)
        if not self.is_open:
            raise NetworkError(
                "Session not running",
                details={"document_id": self.document_id, "state": self._state.value},
            )

        request_id = self._next_id
        self._next_id += 1
        frame = encode_request(name, handle, params, request_id)

        loop = asyncio.get_running_loop()
        limit = self._call_timeout if timeout is None else timeout
        issued_at = loop.time()
        pending = PendingCall(
            id=request_id,
            method=name,
            issued_at=issued_at,
            deadline=issued_at + limit,
            future=loop.create_future(),
        )
        self._pending[request_id] = pending
        try:
            try:
                await self._ws.send(frame)
            except (ConnectionClosed, OSError) as exc:
                raise NetworkError(f"Failed to send request: {exc}", details={"method": name}) from exc

            try:
                outcome = await asyncio.wait_for(pending.future, timeout=limit)
            except asyncio.TimeoutError:
                logger.warning(f"Call {request_id} ({name}) timed out after {limit}s")
                raise CallTimeoutError(name, limit) from None
        finally:
            self._pending.pop(request_id, None)

        if isinstance(outcome, _Closed):
            raise NetworkError(outcome.reason, details={"method": name, "request_id": request_id})
        return outcome

    async def disconnect(self) -> None:
        """Close the connection; pending calls fail with NetworkError.

        Safe to call any number of times, in any state.
        """
        self._state = SessionState.CLOSED
        self._fail_pending("Session disconnected")

        reader, self._reader = self._reader, None
        if reader is not None and not reader.done():
            reader.cancel()
            try:
                await reader
            except asyncio.CancelledError:
                pass

        ws, self._ws = self._ws, None
        if ws is not None:
            try:
                await ws.close()
            except (OSError, WebSocketException) as exc:
                logger.debug(f"Ignoring error while closing websocket: {exc}")
            logger.info(f"Disconnected from engine: {self.document_id}")

    async def _read_loop(self) -> None:
        reason = "Connection closed by engine"
        try:
            while True:
                frame = await self._ws.recv()
                self._dispatch(frame)
        except ConnectionClosed as exc:
            reason = f"Connection closed by engine: {exc}"
            logger.warning(f"Engine connection for {self.document_id} closed: {exc}")
        except OSError as exc:
            reason = f"Connection lost: {exc}"
            logger.warning(f"Engine connection for {self.document_id} lost: {exc}")
        except Exception as exc:
            reason = f"Reader stopped: {exc}"
            logger.exception(f"Engine reader for {self.document_id} failed: {exc}")
        finally:
            self._state = SessionState.CLOSED
            self._fail_pending(reason)

    def _dispatch(self, frame: str | bytes) -> None:
        reply = decode_reply(frame)
        if isinstance(reply, DecodeFailure):
            if reply.id is not None and reply.id in self._pending:
                self._resolve(reply.id, reply)
            elif reply.kind is DecodeFailureKind.INVALID_JSON:
                logger.warning(f"Dropping malformed frame: {str(frame)[:200]}")
            else:
                logger.debug(f"Ignoring non-reply frame: {str(frame)[:200]}")
            return

        if not isinstance(reply.id, int) or isinstance(reply.id, bool) or reply.id not in self._pending:
            logger.debug(f"Dropping reply for unknown request id {reply.id!r}")
            return
        self._resolve(reply.id, reply)

    def _resolve(self, request_id: int, outcome: Reply | _Closed) -> None:
        pending = self._pending.pop(request_id, None)
        if pending is not None and not pending.future.done():
            pending.future.set_result(outcome)

    def _fail_pending(self, reason: str) -> None:
        for request_id in list(self._pending):
            self._resolve(request_id, _Closed(reason))


async def connect(
    document_id: str,
    config: Config | None,
    *,
    timeout: float | None = None,
    call_timeout: float | None = None,
) -> Session:
    """Validate inputs, open a session on ``document_id`` and return it.

    Raises:
        ValidationError: empty document id.
        ConfigurationError: missing config, empty API key or unusable tenant URL.
        NetworkError: handshake failed.
    """
    session = Session(document_id, config, call_timeout=call_timeout)
    await session.open(timeout=timeout)
    return session


async def call(
    session: Any,
    method: str | Method,
    handle: int,
    params: Sequence[Any] = (),
    *,
    timeout: float | None = None,
) -> Reply:
    """``session.call`` that degrades to NetworkError for anything not a Session."""
    if not isinstance(session, Session):
        raise NetworkError("Session not running")
    return await session.call(method, handle, params, timeout=timeout)


async def disconnect(session: Any) -> None:
    """Disconnect ``session`` if it is one; anything else is already gone."""
    if isinstance(session, Session):
        await session.disconnect()
