"""Shared test fixtures."""

from __future__ import annotations

import asyncio
import json

import pytest

from relaychat.connection import Connection
from relaychat.registry import ConnectionRegistry


class FakeConnection(Connection):
    """In-memory connection that records every frame it is sent."""

    def __init__(self, name: str, fail: bool = False, gate: asyncio.Event | None = None):
        super().__init__(name)
        self.fail = fail
        self.gate = gate
        self.frames: list[str] = []

    async def _send_text(self, text: str) -> None:
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise OSError("socket closed")
        self.frames.append(text)

    @property
    def events(self) -> list[dict]:
        return [json.loads(f) for f in self.frames]


@pytest.fixture
def registry() -> ConnectionRegistry:
    """Provide an empty connection registry."""
    return ConnectionRegistry()


@pytest.fixture
def make_connection(registry: ConnectionRegistry):
    """Factory that creates and registers a FakeConnection."""

    def _make(
        name: str,
        fail: bool = False,
        register: bool = True,
        gate: asyncio.Event | None = None,
    ) -> FakeConnection:
        conn = FakeConnection(name, fail=fail, gate=gate)
        if register:
            registry.add(conn)
        return conn

    return _make
