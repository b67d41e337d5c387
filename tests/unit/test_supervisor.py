"""Tests for the background task supervisor."""

from __future__ import annotations

import threading

import pytest

from conftest import wait_until
from reporting_engine.scheduler.supervisor import PeriodicTask, TaskSupervisor


class _Counter:
    def __init__(self, fail: bool = False) -> None:
        self.count = 0
        self.fail = fail
        self._lock = threading.Lock()

    def __call__(self) -> None:
        with self._lock:
            self.count += 1
        if self.fail:
            raise RuntimeError("tick failed")


def _live_threads(name: str) -> int:
    return sum(1 for t in threading.enumerate() if t.name == name and t.is_alive())


# ---------------------------------------------------------------------------
# PeriodicTask
# ---------------------------------------------------------------------------


class TestPeriodicTask:
    def test_ticks_repeatedly(self) -> None:
        counter = _Counter()
        task = PeriodicTask("test-ticker", counter, interval_seconds=0.01)
        task.start()
        try:
            assert wait_until(lambda: counter.count >= 3)
        finally:
            task.stop()
        assert not task.alive

    def test_failing_tick_keeps_running(self) -> None:
        counter = _Counter(fail=True)
        task = PeriodicTask("test-failing", counter, interval_seconds=0.01)
        task.start()
        try:
            assert wait_until(lambda: counter.count >= 3)
            assert task.alive
        finally:
            task.stop()

    def test_start_is_idempotent(self) -> None:
        task = PeriodicTask("test-once", _Counter(), interval_seconds=60)
        assert task.start() is True
        try:
            assert task.start() is False
            assert _live_threads("test-once") == 1
        finally:
            task.stop()

    def test_slow_tick_blocks_second_thread(self) -> None:
        entered = threading.Event()
        release = threading.Event()
        tick_threads: set[threading.Thread] = set()

        def _slow_tick() -> None:
            tick_threads.add(threading.current_thread())
            entered.set()
            release.wait(timeout=5)

        task = PeriodicTask("test-slow", _slow_tick, interval_seconds=0.01)
        task.start()
        try:
            assert entered.wait(timeout=5)
            task.stop(timeout=0.01)
            assert task.alive
            assert task.start() is False
            assert _live_threads("test-slow") == 1

            release.set()
            assert wait_until(lambda: not task.alive)
            assert _live_threads("test-slow") == 0
            assert len(tick_threads) == 1

            assert task.start() is True
            assert wait_until(lambda: len(tick_threads) == 2)
            assert _live_threads("test-slow") == 1
        finally:
            release.set()
            task.stop()

    def test_invalid_interval(self) -> None:
        with pytest.raises(ValueError):
            PeriodicTask("bad", _Counter(), interval_seconds=0)


# ---------------------------------------------------------------------------
# TaskSupervisor
# ---------------------------------------------------------------------------


class TestTaskSupervisor:
    def test_ensure_running_is_idempotent(self) -> None:
        pump, sweep = _Counter(), _Counter()
        supervisor = TaskSupervisor(pump, sweep, pump_interval_seconds=60, sweep_interval_seconds=60)
        try:
            assert supervisor.ensure_running() == 2
            for _ in range(10):
                assert supervisor.ensure_running() == 0
            assert supervisor.running
            assert _live_threads("report-queue-pump") == 1
            assert _live_threads("report-retention-sweep") == 1
        finally:
            supervisor.stop()
        assert not supervisor.running

    def test_concurrent_calls_start_once(self) -> None:
        supervisor = TaskSupervisor(_Counter(), _Counter(), pump_interval_seconds=60, sweep_interval_seconds=60)
        barrier = threading.Barrier(8)
        started: list[int] = []
        lock = threading.Lock()

        def _call() -> None:
            barrier.wait()
            count = supervisor.ensure_running()
            with lock:
                started.append(count)

        threads = [threading.Thread(target=_call) for _ in range(8)]
        try:
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()
            assert sum(started) == 2
            assert _live_threads("report-queue-pump") == 1
        finally:
            supervisor.stop()

    def test_restarts_stopped_task(self) -> None:
        supervisor = TaskSupervisor(_Counter(), _Counter(), pump_interval_seconds=60, sweep_interval_seconds=60)
        try:
            supervisor.ensure_running()
            pump, _ = supervisor.tasks
            pump.stop()
            assert not supervisor.running
            assert supervisor.ensure_running() == 1
            assert supervisor.running
        finally:
            supervisor.stop()

    def test_startup_check_runs_once(self) -> None:
        check = _Counter()
        supervisor = TaskSupervisor(
            _Counter(), _Counter(), pump_interval_seconds=60, sweep_interval_seconds=60, startup_check=check
        )
        try:
            supervisor.ensure_running()
            supervisor.ensure_running()
            assert check.count == 1
        finally:
            supervisor.stop()

    def test_startup_failure_propagates(self) -> None:
        supervisor = TaskSupervisor(
            _Counter(),
            _Counter(),
            pump_interval_seconds=60,
            sweep_interval_seconds=60,
            startup_check=_Counter(fail=True),
        )
        with pytest.raises(RuntimeError, match="tick failed"):
            supervisor.ensure_running()
        assert not supervisor.running
