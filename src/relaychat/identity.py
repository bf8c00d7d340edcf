"""Random display names for new chat sessions."""

from __future__ import annotations

import random

ADJECTIVES: tuple[str, ...] = (
    "happy",
    "funny",
    "serious",
    "delightful",
    "mysterious",
    "lovely",
    "charming",
    "friendly",
    "brave",
    "confident",
    "strong",
    "proud",
    "humble",
    "lucky",
    "rich",
)

NOUNS: tuple[str, ...] = (
    "dog",
    "cat",
    "mouse",
    "monkey",
    "giraffe",
    "rhinoceros",
    "ant",
    "bee",
    "train",
    "river",
    "mountain",
    "sun",
    "moon",
)


def choose_username(rng: random.Random | None = None) -> str:
    """Pick an "<adjective> <noun>" display name.

    Names are not reserved, so two sessions may end up with the same one.
    """
    rng = rng or random
    return f"{rng.choice(ADJECTIVES)} {rng.choice(NOUNS)}"
