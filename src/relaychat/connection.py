"""Client connection handles.

The relay only talks to clients through :class:`Connection`, so the engine
and registry stay independent of the WebSocket framework in use.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from abc import ABC, abstractmethod

from fastapi import WebSocket
from starlette.websockets import WebSocketDisconnect, WebSocketState

logger = logging.getLogger(__name__)


class ConnectionState(enum.Enum):
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


class ConnectionLost(Exception):
    """A send was attempted on a channel that is no longer open."""


class Connection(ABC):
    """One client's channel plus the display name assigned when it opened."""

    def __init__(self, name: str):
        self._name = name
        self._state = ConnectionState.OPEN
        self._send_lock = asyncio.Lock()

    @property
    def name(self) -> str:
        """Display name, fixed for the lifetime of the connection."""
        return self._name

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state is ConnectionState.OPEN

    def mark_closing(self) -> None:
        if self._state is ConnectionState.OPEN:
            self._state = ConnectionState.CLOSING

    def mark_closed(self) -> None:
        self._state = ConnectionState.CLOSED

    async def send(self, text: str) -> None:
        """Send one text frame.

        Sends on the same connection are serialised, so frames arrive in
        the order their ``send`` calls acquired the channel.

        Raises:
            ConnectionLost: If the channel is not open or the write fails.
                The connection is closed afterwards.
        """
        async with self._send_lock:
            if not self.is_open:
                raise ConnectionLost(f"connection {self.name!r} is {self.state.value}")
            try:
                await self._send_text(text)
            except ConnectionLost:
                self.mark_closed()
                raise
            except Exception as e:
                self.mark_closed()
                raise ConnectionLost(f"send to {self.name!r} failed: {e}") from e

    @abstractmethod
    async def _send_text(self, text: str) -> None:
        """Write one frame to the underlying transport."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name!r} {self.state.value}>"


class WebSocketConnection(Connection):
    """Connection backed by an accepted FastAPI/Starlette WebSocket."""

    def __init__(self, websocket: WebSocket, name: str):
        super().__init__(name)
        self.websocket = websocket

    async def _send_text(self, text: str) -> None:
        if self.websocket.application_state is not WebSocketState.CONNECTED:
            raise ConnectionLost(f"websocket for {self.name!r} is not connected")
        try:
            await self.websocket.send_text(text)
        except (WebSocketDisconnect, RuntimeError) as e:
            raise ConnectionLost(f"websocket for {self.name!r} closed: {e}") from e
