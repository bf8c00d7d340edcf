"""Relay engine: fan messages out and follow them with reply suggestions."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from relaychat.connection import Connection, ConnectionLost
from relaychat.generator import GenerationError, build_prompt
from relaychat.protocol import InboundMessage, MessageEvent, SuggestionsEvent
from relaychat.registry import ConnectionRegistry
from relaychat.suggestions import accept_batch, parse_suggestions

logger = logging.getLogger(__name__)

GenerateFn = Callable[[str], Awaitable[str]]


class RelayEngine:
    """Broadcasts inbound messages and enriches them with suggestions.

    Every (message, recipient) pair runs as its own task: the ``message``
    event is sent first, then the generator is asked for suggestions and a
    ``suggestions`` event follows to the same recipient.
    Failures in one task never reach another task or the caller.

    Args:
        registry: Shared registry of open connections.
        generate: Async callable turning a prompt into raw completion text.
    """

    def __init__(self, registry: ConnectionRegistry, generate: GenerateFn):
        self.registry = registry
        self._generate = generate
        self._tasks: dict[Connection, set[asyncio.Task]] = {}

    async def handle(self, sender: Connection, message: InboundMessage) -> None:
        """Relay *message* from *sender* to every other open connection.

        Each recipient gets its own task that sends the ``message`` event
        and then the suggestions, so a slow or stalled recipient never
        delays the others or the sender's receive loop. Tasks for one
        recipient are started in receive order and its sends are
        serialised, so a sender's messages keep their order.
        """
        recipients = self.registry.others(excluding=sender)
        logger.debug(
            "Relaying message from %r to %d recipient(s)",
            message.sender,
            len(recipients),
        )
        frame = MessageEvent(sender=message.sender, content=message.content).to_json()
        for recipient in recipients:
            self._spawn(recipient, frame, message)

    def discard(self, connection: Connection) -> None:
        """Cancel relay work still pending for a closed *connection*."""
        current = asyncio.current_task()
        tasks = self._tasks.pop(connection, set())
        cancelled = [t for t in tasks if t is not current]
        for task in cancelled:
            task.cancel()
        if cancelled:
            logger.debug(
                "Cancelled %d pending relay task(s) for %r",
                len(cancelled),
                connection.name,
            )

    @property
    def pending(self) -> int:
        """Number of relay tasks still running."""
        return sum(len(t) for t in self._tasks.values())

    async def shutdown(self) -> None:
        """Cancel all pending relay tasks and wait for them to finish."""
        tasks = [t for ts in self._tasks.values() for t in ts]
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _deliver(self, recipient: Connection, frame: str) -> bool:
        """Send *frame*; a closed recipient is dropped silently."""
        try:
            await recipient.send(frame)
        except ConnectionLost as e:
            logger.debug("Skipping closed connection %r: %s", recipient.name, e)
            self.registry.remove(recipient)
            self.discard(recipient)
            return False
        return True

    def _spawn(self, recipient: Connection, frame: str, message: InboundMessage) -> None:
        task = asyncio.create_task(
            self._relay_to(recipient, frame, message),
            name=f"relay:{recipient.name}",
        )
        bucket = self._tasks.setdefault(recipient, set())
        bucket.add(task)
        task.add_done_callback(lambda t: self._forget(recipient, t))

    def _forget(self, recipient: Connection, task: asyncio.Task) -> None:
        bucket = self._tasks.get(recipient)
        if bucket is None:
            return
        bucket.discard(task)
        if not bucket:
            del self._tasks[recipient]

    async def _relay_to(
        self, recipient: Connection, frame: str, message: InboundMessage
    ) -> None:
        """Deliver one message to *recipient*, then its suggestions."""
        if not await self._deliver(recipient, frame):
            return
        # Closed while the message was in flight: no backend call.
        if not recipient.is_open:
            return
        await self._enrich(recipient, message)

    async def _enrich(self, recipient: Connection, message: InboundMessage) -> None:
        """Generate, parse and send suggestions for one recipient."""
        batch = None
        try:
            raw = await self._generate(build_prompt(message.sender, message.content))
        except GenerationError as e:
            logger.warning(
                "No suggestions for %r (message from %r): %s",
                recipient.name,
                message.sender,
                e,
            )
        except Exception:
            logger.error(
                "Suggestion generation failed for %r", recipient.name, exc_info=True
            )
        else:
            batch = accept_batch(parse_suggestions(raw))
            if batch is None:
                logger.debug(
                    "Discarding malformed suggestions for %r: %r",
                    recipient.name,
                    raw[:200],
                )

        event = SuggestionsEvent(sender=message.sender, content=tuple(batch or ()))
        try:
            await recipient.send(event.to_json())
        except ConnectionLost as e:
            logger.debug("Suggestions for %r dropped: %s", recipient.name, e)
            self.registry.remove(recipient)
