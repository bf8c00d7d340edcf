"""JSON frames exchanged between chat clients and the relay."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field


class ProtocolError(ValueError):
    """An inbound frame could not be decoded."""


@dataclass(frozen=True)
class InboundMessage:
    """A chat message received from one client."""

    sender: str
    content: str


@dataclass(frozen=True)
class MessageEvent:
    """A relayed chat message."""

    sender: str
    content: str
    type: str = field(default="message", init=False)

    def to_json(self) -> str:
        return json.dumps(asdict(self))


@dataclass(frozen=True)
class SuggestionsEvent:
    """Suggested replies for the last message from *sender*.

    An empty ``content`` tells the client to hide its suggestions.
    """

    sender: str
    content: tuple[str, ...] = ()
    type: str = field(default="suggestions", init=False)

    @property
    def is_hidden(self) -> bool:
        return not self.content

    def to_json(self) -> str:
        return json.dumps(
            {"type": self.type, "sender": self.sender, "content": list(self.content)}
        )


@dataclass(frozen=True)
class IdentityEvent:
    """Tells a newly connected client which display name it was given."""

    sender: str
    type: str = field(default="identity", init=False)

    def to_json(self) -> str:
        return json.dumps(asdict(self))


def parse_inbound(raw: str | bytes, default_sender: str) -> InboundMessage:
    """Decode a client frame ``{"sender": ..., "content": ...}``.

    A missing or blank ``sender`` falls back to *default_sender*.

    Raises:
        ProtocolError: If the frame is not a JSON object with string content.
    """
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise ProtocolError(f"frame is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ProtocolError("frame must be a JSON object")

    content = data.get("content")
    if not isinstance(content, str):
        raise ProtocolError("frame is missing string field 'content'")

    sender = data.get("sender")
    if not isinstance(sender, str) or not sender.strip():
        sender = default_sender
    return InboundMessage(sender=sender, content=content)
