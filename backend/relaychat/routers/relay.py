"""Relay websocket route."""

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from relaychat.services.relay import RelayHub

logger = logging.getLogger(__name__)

router = APIRouter()


def _hub_for(websocket: WebSocket) -> RelayHub:
    return websocket.app.state.relay_hub


@router.websocket("/")
async def relay_endpoint(websocket: WebSocket) -> None:
    """Accept a peer and forward each of its frames to every other peer."""

    hub = _hub_for(websocket)
    await websocket.accept()
    hub.connect(websocket)
    try:
        while True:
            event = await websocket.receive()
            if event["type"] == "websocket.disconnect":
                break
            frame = event.get("text")
            if frame is None:
                frame = event.get("bytes")
            if frame is None:
                continue
            await hub.broadcast(websocket, frame)
    except WebSocketDisconnect:
        pass
    except RuntimeError as exc:
        logger.warning("relay.peer_errored error=%s", exc)
    finally:
        hub.disconnect(websocket)
