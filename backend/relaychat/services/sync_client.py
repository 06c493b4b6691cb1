"""Relay connection that forwards local messages and applies remote ones."""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Protocol

import websockets
from pydantic import ValidationError
from websockets.exceptions import WebSocketException

from relaychat.schemas.message import MessageRead

logger = logging.getLogger(__name__)

DEFAULT_RECONNECT_DELAY_SECONDS = 2.0


class RelayConnectionError(ConnectionError):
    """Raised when the relay is unreachable or the connection drops."""


class MalformedFrameError(ValueError):
    """Raised when an inbound frame does not decode to a message."""


class ConnectionState(str, enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class RelayConnection(Protocol):
    """Subset of a websocket client connection used by the sync client."""

    async def send(self, message: str) -> None:
        """Send one text frame."""

    async def close(self) -> None:
        """Close the connection."""

    def __aiter__(self) -> AsyncIterator[str | bytes]:
        """Yield inbound frames until the connection closes."""


Connector = Callable[[str], Awaitable[RelayConnection]]
InboundHandler = Callable[[MessageRead], None]


async def websocket_connector(url: str) -> RelayConnection:
    return await websockets.connect(url)


def decode_frame(frame: str | bytes) -> MessageRead:
    """Parse one relay frame into a message."""

    try:
        return MessageRead.model_validate_json(frame)
    except ValidationError as exc:
        raise MalformedFrameError(f"Frame is not a message: {exc.error_count()} error(s)") from exc
    except (ValueError, OverflowError) as exc:
        raise MalformedFrameError(f"Frame is not a message: {exc}") from exc


def encode_frame(message: MessageRead) -> str:
    return message.model_dump_json()


class SyncClient:
    """Keep a connection to the relay open and retry forever on a fixed delay."""

    def __init__(
        self,
        url: str,
        *,
        on_message: InboundHandler | None = None,
        connector: Connector | None = None,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY_SECONDS,
    ) -> None:
        self.url = url
        self.on_message = on_message
        self.reconnect_delay = reconnect_delay
        self.state = ConnectionState.DISCONNECTED
        self._connector = connector or websocket_connector
        self._connection: RelayConnection | None = None
        self._task: asyncio.Task[None] | None = None
        self._connected = asyncio.Event()
        self._stopping = False

    @property
    def connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED and self._connection is not None

    def start(self) -> asyncio.Task[None]:
        """Begin connecting immediately; safe to call more than once."""

        if self._task is None or self._task.done():
            self._stopping = False
            self.state = ConnectionState.CONNECTING
            self._task = asyncio.create_task(self._run(), name="relaychat-sync")
        return self._task

    async def stop(self) -> None:
        """Cancel the retry task, including a pending reconnect delay."""

        self._stopping = True
        task, self._task = self._task, None
        connection, self._connection = self._connection, None
        if connection is not None:
            try:
                await connection.close()
            except (OSError, WebSocketException) as exc:
                logger.debug("sync.close_failed error=%s", exc)
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._set_state(ConnectionState.DISCONNECTED)

    async def wait_connected(self, timeout: float | None = None) -> bool:
        try:
            await asyncio.wait_for(self._connected.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True

    async def send(self, message: MessageRead) -> bool:
        """Send a locally authored message; dropped when not connected."""

        connection = self._connection
        if not self.connected or connection is None:
            logger.info("sync.send_dropped id=%s state=%s", message.id, self.state.value)
            return False
        try:
            await connection.send(encode_frame(message))
        except (OSError, WebSocketException) as exc:
            logger.warning("sync.send_failed id=%s error=%s", message.id, exc)
            return False
        return True

    def handle_frame(self, frame: str | bytes) -> MessageRead | None:
        """Decode an inbound frame and hand it to the inbound handler."""

        try:
            message = decode_frame(frame)
        except MalformedFrameError as exc:
            logger.warning("sync.frame_dropped error=%s", exc)
            return None
        if self.on_message is not None:
            try:
                self.on_message(message)
            except Exception:
                logger.exception("sync.inbound_handler_failed id=%s", message.id)
                return None
        return message

    async def _run(self) -> None:
        while not self._stopping:
            self._set_state(ConnectionState.CONNECTING)
            try:
                await self._serve_connection()
            except RelayConnectionError as exc:
                logger.warning("sync.connection_lost url=%s error=%s", self.url, exc)
            except Exception:
                logger.exception("sync.connection_failed url=%s", self.url)
            finally:
                self._connection = None
                self._set_state(ConnectionState.DISCONNECTED)
            if self._stopping:
                break
            logger.info("sync.reconnect_scheduled delay_s=%.2f", self.reconnect_delay)
            await asyncio.sleep(self.reconnect_delay)

    async def _serve_connection(self) -> None:
        try:
            connection = await self._connector(self.url)
        except (OSError, asyncio.TimeoutError, WebSocketException) as exc:
            raise RelayConnectionError(f"connect failed: {exc}") from exc

        self._connection = connection
        self._set_state(ConnectionState.CONNECTED)
        logger.info("sync.connected url=%s", self.url)
        try:
            async for frame in connection:
                self.handle_frame(frame)
        except (OSError, WebSocketException) as exc:
            raise RelayConnectionError(f"connection dropped: {exc}") from exc
        logger.info("sync.connection_closed url=%s", self.url)

    def _set_state(self, state: ConnectionState) -> None:
        self.state = state
        if state is ConnectionState.CONNECTED:
            self._connected.set()
        else:
            self._connected.clear()
