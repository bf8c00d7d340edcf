"""Turn free-form model output into a list of reply suggestions."""

from __future__ import annotations

import re

# Number of suggestions a batch must contain to be shown.
SUGGESTION_COUNT = 3

# Leading list markers such as "1.", "2)", "3 -" or "4:".
_ORDINAL_RE = re.compile(r"^\s*\d+\s*[.):-]\s*")


def parse_suggestions(raw: str) -> list[str]:
    """Split raw model output into candidate replies.

    Each line loses its ordinal prefix and surrounding whitespace; blank
    lines are dropped. The model output is unstructured, so this is only a
    best-effort reading of its shape.
    """
    items = []
    for line in raw.splitlines():
        text = _ORDINAL_RE.sub("", line, count=1).strip()
        if text:
            items.append(text)
    return items


def accept_batch(items: list[str]) -> list[str] | None:
    """Return *items* if it has exactly SUGGESTION_COUNT entries, else None."""
    if len(items) != SUGGESTION_COUNT:
        return None
    return items
