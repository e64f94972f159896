"""Tests for bounded-concurrency fan-out."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from unittest.mock import patch

from studio.core.fanout import run_batch


@dataclass
class _Item:
    id: str
    seq: int
    delay: float = 0.0
    fail: bool = False


async def _worker(item: _Item) -> str:
    await asyncio.sleep(item.delay)
    if item.fail:
        raise RuntimeError(f"{item.id} exploded")
    return f"url-{item.id}"


class TestRunBatch:

    async def test_empty_input(self) -> None:
        batch = await run_batch([], _worker, key=lambda i: i.id)
        assert batch.attempted == 0
        assert batch.results == []
        assert batch.summary() == {"attempted": 0, "succeeded": 0, "failed": 0}

    async def test_results_in_sequence_order_not_completion_order(self) -> None:
        items = [_Item("a", 2, delay=0.0), _Item("b", 0, delay=0.03), _Item("c", 1, delay=0.01)]
        batch = await run_batch(items, _worker, key=lambda i: i.id, sequence=lambda i: i.seq)
        assert [r.id for r in batch.results] == ["b", "c", "a"]
        assert [r.payload for r in batch.results] == ["url-b", "url-c", "url-a"]

    async def test_failure_does_not_cancel_siblings(self) -> None:
        items = [_Item("a", 0), _Item("b", 1, fail=True), _Item("c", 2, delay=0.02)]
        batch = await run_batch(items, _worker, key=lambda i: i.id, sequence=lambda i: i.seq)
        assert batch.attempted == 3
        assert batch.succeeded == 2
        assert batch.failed == 1
        assert [r.id for r in batch.successes] == ["a", "c"]
        failure = batch.failures[0]
        assert failure.id == "b"
        assert failure.error == "b exploded"
        assert failure.payload is None

    async def test_budget_caps_concurrency(self) -> None:
        running = 0
        peak = 0

        async def _tracked(item: _Item) -> str:
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.01)
            running -= 1
            return item.id

        items = [_Item(str(i), i) for i in range(6)]
        batch = await run_batch(items, _tracked, key=lambda i: i.id, max_concurrency=2)
        assert batch.succeeded == 6
        assert peak == 2

    async def test_zero_budget_is_unbounded(self) -> None:
        running = 0
        peak = 0

        async def _tracked(item: _Item) -> str:
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.01)
            running -= 1
            return item.id

        with patch("studio.core.fanout.settings") as mock_settings:
            mock_settings.fanout_max_concurrent = 0
            await run_batch([_Item(str(i), i) for i in range(5)], _tracked, key=lambda i: i.id)
        assert peak == 5

    async def test_default_sequence_is_position(self) -> None:
        items = [_Item("x", 99), _Item("y", 0)]
        batch = await run_batch(items, _worker, key=lambda i: i.id)
        assert [(r.id, r.sequence) for r in batch.results] == [("x", 0), ("y", 1)]
