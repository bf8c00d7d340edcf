"""Tests for the relay engine (generation backend faked)."""

from __future__ import annotations

import asyncio

import pytest

from relaychat.generator import GenerationTimeout, GenerationUnavailable
from relaychat.protocol import InboundMessage
from relaychat.relay import RelayEngine

SUGGESTIONS = "1. Hi\n2. Hey\n3. Yo"


async def _settle(engine: RelayEngine) -> None:
    """Wait for every pending suggestion task to finish."""
    for _ in range(10):
        tasks = [t for ts in engine._tasks.values() for t in ts]
        if not tasks:
            return
        await asyncio.gather(*tasks, return_exceptions=True)


def _types(conn) -> list[str]:
    return [e["type"] for e in conn.events]


async def _ok(prompt: str) -> str:
    return SUGGESTIONS


# ---------------------------------------------------------------
# Fan-out
# ---------------------------------------------------------------


async def test_three_clients_scenario(registry, make_connection):
    a = make_connection("happy dog")
    b = make_connection("brave cat")
    c = make_connection("lucky bee")
    engine = RelayEngine(registry, _ok)

    await engine.handle(a, InboundMessage(sender="happy dog", content="hello"))
    await _settle(engine)

    assert a.frames == []
    for conn in (b, c):
        assert conn.events == [
            {"type": "message", "sender": "happy dog", "content": "hello"},
            {"type": "suggestions", "sender": "happy dog", "content": ["Hi", "Hey", "Yo"]},
        ]


async def test_no_recipients(registry, make_connection):
    calls = []

    async def generate(prompt: str) -> str:
        calls.append(prompt)
        return SUGGESTIONS

    a = make_connection("a")
    engine = RelayEngine(registry, generate)
    await engine.handle(a, InboundMessage(sender="a", content="anyone?"))
    await _settle(engine)

    assert a.frames == []
    assert calls == []


async def test_one_generation_call_per_recipient(registry, make_connection):
    prompts = []

    async def generate(prompt: str) -> str:
        prompts.append(prompt)
        return SUGGESTIONS

    a = make_connection("a")
    make_connection("b")
    make_connection("c")
    engine = RelayEngine(registry, generate)
    await engine.handle(a, InboundMessage(sender="a", content="hi all"))
    await _settle(engine)

    assert len(prompts) == 2
    assert all('"a" said to me "hi all"' in p for p in prompts)


async def test_sender_messages_arrive_in_order(registry, make_connection):
    a = make_connection("a")
    b = make_connection("b")
    engine = RelayEngine(registry, _ok)

    for i in range(5):
        await engine.handle(a, InboundMessage(sender="a", content=f"msg-{i}"))
    await _settle(engine)

    messages = [e["content"] for e in b.events if e["type"] == "message"]
    assert messages == [f"msg-{i}" for i in range(5)]


# ---------------------------------------------------------------
# Ordering and non-blocking behaviour
# ---------------------------------------------------------------


async def test_handle_returns_before_suggestions(registry, make_connection):
    release = asyncio.Event()

    async def generate(prompt: str) -> str:
        await release.wait()
        return SUGGESTIONS

    a = make_connection("a")
    b = make_connection("b")
    engine = RelayEngine(registry, generate)

    await engine.handle(a, InboundMessage(sender="a", content="hello"))
    await asyncio.sleep(0)
    assert _types(b) == ["message"]
    assert engine.pending == 1

    release.set()
    await _settle(engine)
    assert _types(b) == ["message", "suggestions"]
    assert engine.pending == 0


async def test_message_precedes_suggestions_for_every_recipient(registry, make_connection):
    a = make_connection("a")
    others = [make_connection(f"r{i}") for i in range(5)]
    engine = RelayEngine(registry, _ok)

    await engine.handle(a, InboundMessage(sender="a", content="hello"))
    await _settle(engine)

    for conn in others:
        assert _types(conn) == ["message", "suggestions"]


async def test_slow_generation_does_not_block_other_messages(registry, make_connection):
    release = asyncio.Event()

    async def generate(prompt: str) -> str:
        if "slow" in prompt:
            await release.wait()
        return SUGGESTIONS

    a = make_connection("a")
    b = make_connection("b")
    c = make_connection("c")
    engine = RelayEngine(registry, generate)

    await engine.handle(a, InboundMessage(sender="a", content="slow one"))
    await engine.handle(b, InboundMessage(sender="b", content="fast one"))

    # Let the fast tasks run while the slow ones are parked
    for _ in range(5):
        await asyncio.sleep(0)

    assert [e.get("sender") for e in c.events if e["type"] == "suggestions"] == ["b"]
    assert engine.pending == 2  # the "slow one" tasks for b and c

    release.set()
    await _settle(engine)
    assert sorted(e["sender"] for e in c.events if e["type"] == "suggestions") == ["a", "b"]


# ---------------------------------------------------------------
# Suppression and failure isolation
# ---------------------------------------------------------------


@pytest.mark.parametrize(
    "raw",
    ["1. Sure\n2. Okay", "", "1. a\n2. b\n3. c\n4. d", "I'd rather not."],
)
async def test_malformed_count_sends_hide_event(registry, make_connection, raw):
    async def generate(prompt: str) -> str:
        return raw

    a = make_connection("a")
    b = make_connection("b")
    engine = RelayEngine(registry, generate)

    await engine.handle(a, InboundMessage(sender="a", content="hello"))
    await _settle(engine)

    assert b.events[1] == {"type": "suggestions", "sender": "a", "content": []}


@pytest.mark.parametrize("error", [GenerationUnavailable("down"), GenerationTimeout("slow")])
async def test_generation_failure_isolated_to_one_recipient(registry, make_connection, error):
    calls = 0

    async def generate(prompt: str) -> str:
        nonlocal calls
        calls += 1
        if calls == 1:
            raise error
        return SUGGESTIONS

    a = make_connection("a")
    recipients = [make_connection(n) for n in ("b", "c", "d")]
    engine = RelayEngine(registry, generate)

    await engine.handle(a, InboundMessage(sender="a", content="hello"))
    await _settle(engine)

    outcomes = sorted(len(r.events[1]["content"]) for r in recipients)
    assert outcomes == [0, 3, 3]
    assert all(r.events[0]["type"] == "message" for r in recipients)


async def test_unexpected_generation_error_is_contained(registry, make_connection):
    async def generate(prompt: str) -> str:
        raise RuntimeError("boom")

    a = make_connection("a")
    b = make_connection("b")
    engine = RelayEngine(registry, generate)

    await engine.handle(a, InboundMessage(sender="a", content="hello"))
    await _settle(engine)

    assert b.events[1]["content"] == []
    # Engine keeps working afterwards
    await engine.handle(b, InboundMessage(sender="b", content="still here"))
    await _settle(engine)
    assert a.events[0]["content"] == "still here"


# ---------------------------------------------------------------
# Closed connections and cancellation
# ---------------------------------------------------------------


async def test_failed_send_skips_and_removes_recipient(registry, make_connection):
    a = make_connection("a")
    dead = make_connection("dead", fail=True)
    b = make_connection("b")
    engine = RelayEngine(registry, _ok)

    await engine.handle(a, InboundMessage(sender="a", content="hello"))
    await _settle(engine)

    assert dead not in registry
    assert dead.frames == []
    assert _types(b) == ["message", "suggestions"]


async def test_closed_recipient_not_in_later_broadcasts(registry, make_connection):
    a = make_connection("a")
    b = make_connection("b")
    engine = RelayEngine(registry, _ok)

    b.mark_closed()
    registry.remove(b)
    assert registry.others(excluding=a) == ()

    await engine.handle(a, InboundMessage(sender="a", content="hello"))
    assert b.frames == []


async def test_recipient_closing_during_generation(registry, make_connection):
    release = asyncio.Event()

    async def generate(prompt: str) -> str:
        await release.wait()
        return SUGGESTIONS

    a = make_connection("a")
    b = make_connection("b")
    c = make_connection("c")
    engine = RelayEngine(registry, generate)

    await engine.handle(a, InboundMessage(sender="a", content="hello"))
    await asyncio.sleep(0)
    b.mark_closed()
    release.set()
    await _settle(engine)

    assert _types(b) == ["message"]
    assert b not in registry
    assert _types(c) == ["message", "suggestions"]


async def test_discard_cancels_pending_generation(registry, make_connection):
    cancelled = asyncio.Event()

    async def generate(prompt: str) -> str:
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            cancelled.set()
            raise
        return SUGGESTIONS

    a = make_connection("a")
    b = make_connection("b")
    engine = RelayEngine(registry, generate)

    await engine.handle(a, InboundMessage(sender="a", content="hello"))
    await asyncio.sleep(0)
    assert engine.pending == 1

    engine.discard(b)
    await asyncio.wait_for(cancelled.wait(), timeout=1)
    assert engine.pending == 0
    assert _types(b) == ["message"]


async def test_discard_unknown_connection_is_noop(registry, make_connection):
    engine = RelayEngine(registry, _ok)
    engine.discard(make_connection("nobody", register=False))
    assert engine.pending == 0


async def test_shutdown_cancels_everything(registry, make_connection):
    async def generate(prompt: str) -> str:
        await asyncio.Event().wait()
        return SUGGESTIONS

    a = make_connection("a")
    make_connection("b")
    make_connection("c")
    engine = RelayEngine(registry, generate)

    await engine.handle(a, InboundMessage(sender="a", content="hello"))
    assert engine.pending == 2

    await engine.shutdown()
    assert engine.pending == 0


async def test_stalled_recipient_does_not_block_others(registry, make_connection):
    gate = asyncio.Event()
    a = make_connection("a")
    stalled = make_connection("stalled", gate=gate)
    others = [make_connection(f"r{i}") for i in range(5)]
    engine = RelayEngine(registry, _ok)

    await asyncio.wait_for(
        engine.handle(a, InboundMessage(sender="a", content="hello")), timeout=1
    )
    for _ in range(5):
        await asyncio.sleep(0)

    for conn in others:
        assert _types(conn) == ["message", "suggestions"]
    assert stalled.frames == []
    assert engine.pending == 1

    gate.set()
    await _settle(engine)
    assert _types(stalled) == ["message", "suggestions"]


async def test_stalled_recipient_keeps_sender_order(registry, make_connection):
    gate = asyncio.Event()
    a = make_connection("a")
    slow = make_connection("slow", gate=gate)
    engine = RelayEngine(registry, _ok)

    for i in range(3):
        await engine.handle(a, InboundMessage(sender="a", content=f"msg-{i}"))
    gate.set()
    await _settle(engine)

    messages = [e["content"] for e in slow.events if e["type"] == "message"]
    assert messages == ["msg-0", "msg-1", "msg-2"]


async def test_recipient_closed_mid_send_gets_no_generation(registry, make_connection):
    gate = asyncio.Event()
    prompts = []

    async def generate(prompt: str) -> str:
        prompts.append(prompt)
        return SUGGESTIONS

    a = make_connection("a")
    r = make_connection("r", gate=gate)
    engine = RelayEngine(registry, generate)

    await engine.handle(a, InboundMessage(sender="a", content="hello"))
    await asyncio.sleep(0)

    # Endpoint teardown while the message send is still parked
    r.mark_closing()
    registry.remove(r)
    engine.discard(r)
    r.mark_closed()

    gate.set()
    await _settle(engine)
    for _ in range(5):
        await asyncio.sleep(0)

    assert engine.pending == 0
    assert prompts == []
