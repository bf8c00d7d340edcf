"""Client-side view state driven by relay events.

:class:`ChatView` holds what a chat UI shows: the transcript, the current
suggestions and the user's display name. It knows nothing about rendering;
a front end reads its state after each update.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from relaychat.suggestions import accept_batch, parse_suggestions

logger = logging.getLogger(__name__)

LOST_CONNECTION_NOTICE = "Lost connection to server."


@dataclass
class ChatLine:
    sender: str
    content: str
    mine: bool = False

    def render(self) -> str:
        """Own messages show bare; others are prefixed with the sender."""
        return self.content if self.mine else f"{self.sender}: {self.content}"


@dataclass
class ChatView:
    """State of one chat client."""

    username: str = ""
    lines: list[ChatLine] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)
    draft: str = ""

    @property
    def suggestions_visible(self) -> bool:
        return bool(self.suggestions)

    def on_update(self, raw: str) -> str | None:
        """Apply one server frame and return its type.

        Unknown frame types are ignored.
        """
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Ignoring undecodable frame: %r", raw[:200])
            return None
        if not isinstance(data, dict):
            return None

        kind = data.get("type")
        if kind == "identity":
            self.username = str(data.get("sender", "")) or self.username
        elif kind == "message":
            self.add_line(str(data.get("sender", "")), str(data.get("content", "")))
        elif kind == "suggestions":
            self.set_suggestions(data.get("content", []))
        return kind if isinstance(kind, str) else None

    def add_line(self, sender: str, content: str) -> ChatLine:
        line = ChatLine(sender=sender, content=content, mine=sender == self.username)
        self.lines.append(line)
        self.draft = ""
        return line

    def set_suggestions(self, content: list[str] | str) -> None:
        """Show exactly three suggestions, or hide them.

        Accepts either a structured list or raw model text.
        """
        if isinstance(content, str):
            items = parse_suggestions(content)
        else:
            items = [str(s).strip() for s in content if str(s).strip()]
        self.suggestions = accept_batch(items) or []

    def pick_suggestion(self, index: int) -> str:
        """Copy suggestion *index* into the draft."""
        self.draft = self.suggestions[index]
        return self.draft

    def send(self, content: str, transport: Callable[[str], None] | None) -> bool:
        """Send *content* through *transport* and echo it locally.

        With no open transport the lost-connection notice is shown instead.
        Returns True if the message was handed to the transport.
        """
        if transport is None:
            self.add_line(self.username, LOST_CONNECTION_NOTICE)
            return False
        transport(json.dumps({"sender": self.username, "content": content}))
        self.add_line(self.username, content)
        self.set_suggestions([])
        return True
