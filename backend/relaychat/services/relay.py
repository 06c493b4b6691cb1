"""Fan-out hub for the single relay room."""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from starlette.websockets import WebSocketState

logger = logging.getLogger(__name__)


class RelayPeer(Protocol):
    """Subset of a server-side websocket used by the hub."""

    client_state: WebSocketState
    application_state: WebSocketState

    async def send_text(self, data: str) -> None:
        """Send a text frame."""

    async def send_bytes(self, data: bytes) -> None:
        """Send a binary frame."""


def is_writable(peer: RelayPeer) -> bool:
    return (
        peer.client_state == WebSocketState.CONNECTED
        and peer.application_state == WebSocketState.CONNECTED
    )


class RelayHub:
    """Forward every frame to all other connected peers; holds no chat state."""

    def __init__(self) -> None:
        self._peers: dict[int, RelayPeer] = {}

    @property
    def peer_count(self) -> int:
        return len(self._peers)

    def connect(self, peer: RelayPeer) -> None:
        self._peers[id(peer)] = peer
        logger.info("relay.peer_connected peers=%d", len(self._peers))

    def disconnect(self, peer: RelayPeer) -> None:
        if self._peers.pop(id(peer), None) is not None:
            logger.info("relay.peer_disconnected peers=%d", len(self._peers))

    async def broadcast(self, sender: RelayPeer, frame: str | bytes) -> int:
        """Send frame unmodified to every writable peer except sender."""

        targets = [peer for peer in self._peers.values() if peer is not sender and is_writable(peer)]
        if not targets:
            return 0
        results = await asyncio.gather(
            *(self._deliver(peer, frame) for peer in targets),
            return_exceptions=True,
        )
        delivered = 0
        for peer, result in zip(targets, results, strict=True):
            if isinstance(result, BaseException):
                logger.warning("relay.delivery_failed error=%r; dropping peer", result)
                self.disconnect(peer)
            else:
                delivered += 1
        return delivered

    async def _deliver(self, peer: RelayPeer, frame: str | bytes) -> None:
        if isinstance(frame, bytes):
            await peer.send_bytes(frame)
        else:
            await peer.send_text(frame)
