"""Tests for the polling trigger source."""

from __future__ import annotations

import asyncio

import pytest

from chain_archive.rpc import NodeTransportError
from chain_archive.triggers import PollingTrigger, Trigger, TriggerReason
from tests.chain_archive.helpers import FakeNode, make_hash

FAST = 0.01
"""Poll interval used by tests, in seconds."""


class ScriptedTipNode(FakeNode):
    """Node whose best block hash follows a script; exceptions in it are raised."""

    def __init__(self, tips: list[str | Exception]) -> None:
        """Answer tip queries from ``tips``; the last entry repeats."""
        super().__init__()
        self.tips = tips
        self.tip_calls = 0

    async def current_tip_hash(self) -> str:
        """Next scripted tip."""
        tip = self.tips[min(self.tip_calls, len(self.tips) - 1)]
        self.tip_calls += 1
        if isinstance(tip, Exception):
            raise tip
        return tip


async def next_trigger(trigger: PollingTrigger) -> list[Trigger]:
    """Collect the startup trigger and the first steady-state trigger."""
    events = trigger.events()
    try:
        first = await anext(events)
        second = await asyncio.wait_for(anext(events), timeout=2)
        return [first, second]
    finally:
        await events.aclose()


class TestPollingTrigger:
    """Tests for tip-change detection by polling."""

    def test_startup_trigger_comes_first(self) -> None:
        """The first trigger is unconditional and needs no node query."""
        node = ScriptedTipNode([make_hash(1)])
        trigger = PollingTrigger(node=node, interval=FAST)

        async def run_test() -> Trigger:
            events = trigger.events()
            try:
                return await anext(events)
            finally:
                await events.aclose()

        assert asyncio.run(run_test()) == Trigger(TriggerReason.STARTUP)
        assert node.tip_calls == 0

    def test_triggers_on_tip_change(self) -> None:
        """A changed best block hash produces a trigger carrying the new hash."""
        node = ScriptedTipNode([make_hash(1), make_hash(1), make_hash(1), make_hash(2)])
        trigger = PollingTrigger(node=node, interval=FAST)

        _, changed = asyncio.run(next_trigger(trigger))

        assert changed == Trigger(TriggerReason.TIP_CHANGED, tip_hash=make_hash(2))
        assert trigger.last_tip == make_hash(2)
        assert node.tip_calls == 4

    def test_failed_query_is_skipped(self, caplog: pytest.LogCaptureFixture) -> None:
        """A failed tip query is logged and retried at the next tick."""
        node = ScriptedTipNode(
            [make_hash(1), NodeTransportError("connection refused"), make_hash(2)]
        )
        trigger = PollingTrigger(node=node, interval=FAST)

        with caplog.at_level("WARNING"):
            _, changed = asyncio.run(next_trigger(trigger))

        assert changed.tip_hash == make_hash(2)
        assert "Cannot read best block hash" in caplog.text

    def test_failed_initial_query_triggers_on_first_answer(self) -> None:
        """Without a known tip, the first successful answer counts as a change."""
        node = ScriptedTipNode([NodeTransportError("down"), make_hash(1)])
        trigger = PollingTrigger(node=node, interval=FAST)

        _, changed = asyncio.run(next_trigger(trigger))

        assert changed.tip_hash == make_hash(1)

    def test_stop_interrupts_sleep(self) -> None:
        """stop() ends the stream without waiting for the interval."""
        node = ScriptedTipNode([make_hash(1)])
        trigger = PollingTrigger(node=node, interval=60)

        async def run_test() -> None:
            events = trigger.events()
            await anext(events)
            pending = asyncio.ensure_future(anext(events))
            await asyncio.sleep(FAST)
            trigger.stop()
            with pytest.raises(StopAsyncIteration):
                await asyncio.wait_for(pending, timeout=2)

        asyncio.run(run_test())

    def test_stopped_source_yields_nothing(self) -> None:
        """A source stopped before iteration produces no triggers."""
        trigger = PollingTrigger(node=ScriptedTipNode([make_hash(1)]), interval=FAST)
        trigger.stop()

        async def run_test() -> list[Trigger]:
            return [t async for t in trigger.events()]

        assert asyncio.run(run_test()) == []
