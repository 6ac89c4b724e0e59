# Copyright 2026 Firefly Software Solutions Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Tests for SessionReaper."""

from __future__ import annotations

import asyncio

import pytest

from dynastore.session.reaper import SessionReaper


async def _wait_for(predicate, timeout: float = 1.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


class TestSessionReaper:
    @pytest.mark.asyncio
    async def test_runs_periodically(self):
        calls = 0

        async def reap() -> int:
            nonlocal calls
            calls += 1
            return 0

        reaper = SessionReaper(reap, 10)
        assert reaper.start() is True
        await _wait_for(lambda: calls >= 3)
        await reaper.shutdown()
        assert not reaper.running

    @pytest.mark.asyncio
    async def test_first_pass_waits_one_interval(self):
        calls = 0

        async def reap() -> None:
            nonlocal calls
            calls += 1

        reaper = SessionReaper(reap, 60_000)
        reaper.start()
        await asyncio.sleep(0.02)
        assert calls == 0
        await reaper.shutdown()

    @pytest.mark.asyncio
    async def test_failing_pass_does_not_stop_loop(self):
        calls = 0

        async def reap() -> None:
            nonlocal calls
            calls += 1
            raise RuntimeError("scan failed")

        reaper = SessionReaper(reap, 10)
        reaper.start()
        await _wait_for(lambda: calls >= 3)
        assert reaper.running
        await reaper.shutdown()

    @pytest.mark.asyncio
    async def test_shutdown_waits_for_pass_in_progress(self):
        entered = asyncio.Event()
        release = asyncio.Event()
        finished = False

        async def reap() -> None:
            nonlocal finished
            entered.set()
            await release.wait()
            finished = True

        reaper = SessionReaper(reap, 10)
        reaper.start()
        await asyncio.wait_for(entered.wait(), timeout=1.0)

        shutdown = asyncio.create_task(reaper.shutdown())
        await asyncio.sleep(0.02)
        assert not shutdown.done()

        release.set()
        await asyncio.wait_for(shutdown, timeout=1.0)
        assert finished
        assert not reaper.running

    @pytest.mark.asyncio
    @pytest.mark.parametrize("interval", [0, -5])
    async def test_non_positive_interval_disables(self, interval: int):
        async def reap() -> None:
            raise AssertionError("must not run")

        reaper = SessionReaper(reap, interval)
        assert reaper.enabled is False
        assert reaper.start() is False
        assert not reaper.running

    @pytest.mark.asyncio
    async def test_shutdown_is_idempotent(self):
        async def reap() -> None:
            return None

        reaper = SessionReaper(reap, 50)
        await reaper.shutdown()
        reaper_started = SessionReaper(reap, 50)
        reaper_started.start()
        await reaper_started.shutdown()
        await reaper_started.shutdown()
        assert not reaper_started.running

    @pytest.mark.asyncio
    async def test_start_twice_keeps_single_loop(self):
        async def reap() -> None:
            return None

        reaper = SessionReaper(reap, 50)
        assert reaper.start() is True
        assert reaper.start() is False
        await reaper.shutdown()

    @pytest.mark.asyncio
    async def test_cannot_restart_after_shutdown(self):
        async def reap() -> None:
            return None

        reaper = SessionReaper(reap, 50)
        reaper.start()
        await reaper.shutdown()
        assert reaper.start() is False
        assert not reaper.running

    @pytest.mark.asyncio
    async def test_overlapping_shutdowns_both_wait_for_pass(self):
        entered = asyncio.Event()
        release = asyncio.Event()
        finished = False

        async def reap() -> None:
            nonlocal finished
            entered.set()
            await release.wait()
            finished = True

        reaper = SessionReaper(reap, 10)
        reaper.start()
        await asyncio.wait_for(entered.wait(), timeout=1.0)

        first = asyncio.create_task(reaper.shutdown())
        await asyncio.sleep(0.01)
        second = asyncio.create_task(reaper.shutdown())
        await asyncio.sleep(0.02)
        assert not first.done()
        assert not second.done()

        release.set()
        await asyncio.wait_for(asyncio.gather(first, second), timeout=1.0)
        assert finished
        assert not reaper.running

    @pytest.mark.asyncio
    async def test_pass_starts_keep_fixed_rate(self):
        loop = asyncio.get_running_loop()
        starts: list[float] = []

        async def reap() -> None:
            starts.append(loop.time())
            await asyncio.sleep(0.08)

        reaper = SessionReaper(reap, 100)
        reaper.start()
        await _wait_for(lambda: len(starts) >= 2, timeout=2.0)
        await reaper.shutdown()
        assert starts[1] - starts[0] < 0.15
