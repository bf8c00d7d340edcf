"""WebSocket endpoint for the chat relay."""

from __future__ import annotations

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from relaychat.connection import ConnectionLost, WebSocketConnection
from relaychat.identity import choose_username
from relaychat.protocol import IdentityEvent, ProtocolError, parse_inbound

logger = logging.getLogger(__name__)

router = APIRouter(tags=["websocket"])


@router.websocket("/")
async def ws_chat(ws: WebSocket) -> None:
    """Relay chat messages between all connected clients.

    Connect: ws://host:port/
    Receives JSON: {"sender", "content"}
    Sends JSON: {"type": "identity" | "message" | "suggestions", ...}
    """
    registry = ws.app.state.registry
    engine = ws.app.state.engine

    await ws.accept()
    connection = WebSocketConnection(ws, choose_username())
    registry.add(connection)
    logger.info("Client connected as %r (%d open)", connection.name, len(registry))

    try:
        await connection.send(IdentityEvent(sender=connection.name).to_json())
        while True:
            raw = await ws.receive_text()
            try:
                message = parse_inbound(raw, default_sender=connection.name)
            except ProtocolError as e:
                logger.warning("Ignoring frame from %r: %s", connection.name, e)
                continue
            await engine.handle(connection, message)
    except (WebSocketDisconnect, ConnectionLost):
        pass
    except Exception:
        logger.debug("WebSocket error", exc_info=True)
    finally:
        connection.mark_closing()
        registry.remove(connection)
        engine.discard(connection)
        connection.mark_closed()
        logger.info("Client %r disconnected (%d open)", connection.name, len(registry))
