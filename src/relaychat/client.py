"""Terminal chat client for the relay."""

from __future__ import annotations

import asyncio
import logging
import sys

import websockets
from websockets.exceptions import ConnectionClosed

from relaychat.presentation import ChatLine, ChatView

logger = logging.getLogger(__name__)

HELP_TEXT = "Type a message and press Enter. /1, /2, /3 send a suggestion; /quit exits."


def _print_line(line: ChatLine) -> None:
    print(f"> {line.render()}" if line.mine else line.render(), flush=True)


def _print_suggestions(view: ChatView) -> None:
    if view.suggestions_visible:
        options = "  ".join(f"[{i}] {s}" for i, s in enumerate(view.suggestions, 1))
        print(f"  suggestions: {options}", flush=True)


class TerminalClient:
    """Connects a :class:`ChatView` to a relay over a WebSocket."""

    def __init__(self, url: str):
        self.url = url
        self.view = ChatView()
        self._outbox: asyncio.Queue[str] | None = None

    def _transport(self):
        """The outbox's ``put_nowait`` while connected, else None."""
        return self._outbox.put_nowait if self._outbox is not None else None

    async def _reader(self, ws) -> None:
        async for raw in ws:
            seen = len(self.view.lines)
            kind = self.view.on_update(raw)
            for line in self.view.lines[seen:]:
                _print_line(line)
            if kind == "identity":
                print(f"You are {self.view.username!r}.", flush=True)
            elif kind == "suggestions":
                _print_suggestions(self.view)

    async def _writer(self, ws, outbox: asyncio.Queue[str]) -> None:
        while True:
            frame = await outbox.get()
            await ws.send(frame)

    def submit(self, text: str) -> bool:
        """Handle one line of user input. Returns False when the user quits."""
        text = text.strip()
        if text == "/quit":
            return False
        if text in ("/1", "/2", "/3"):
            index = int(text[1:]) - 1
            if index >= len(self.view.suggestions):
                print("  (no suggestion)", flush=True)
                return True
            text = self.view.pick_suggestion(index)
        if not text:
            return True
        self.view.send(text, self._transport())
        _print_line(self.view.lines[-1])
        return True

    async def _read_input(self) -> None:
        loop = asyncio.get_running_loop()
        while True:
            text = await loop.run_in_executor(None, sys.stdin.readline)
            if not text or not self.submit(text):
                return

    async def run(self) -> None:
        """Connect, then relay terminal input until /quit or EOF."""
        print(HELP_TEXT, flush=True)
        input_task = asyncio.create_task(self._read_input())
        try:
            async with websockets.connect(self.url) as ws:
                logger.info("Connection opened to %s", self.url)
                self._outbox = asyncio.Queue()
                reader = asyncio.create_task(self._reader(ws))
                writer = asyncio.create_task(self._writer(ws, self._outbox))
                done, _ = await asyncio.wait(
                    {reader, writer, input_task},
                    return_when=asyncio.FIRST_COMPLETED,
                )
                reader.cancel()
                writer.cancel()
                for task in done:
                    if task is not input_task and not task.cancelled():
                        exc = task.exception()
                        if exc is not None and not isinstance(exc, ConnectionClosed):
                            raise exc
        except (OSError, ConnectionClosed) as e:
            logger.warning("Connection to %s failed: %s", self.url, e)
        finally:
            self._outbox = None

        if not input_task.done():
            # Keep accepting input so the user sees the lost-connection notice.
            await input_task
