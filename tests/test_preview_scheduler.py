"""Unit tests for the background preview scheduler.

Tests:
    - Throttle drops cursor moves closer than the interval
    - Only the newest queued preview is stored
    - Commits made while a preview is queued discard it
    - Real worker thread round trip
"""

from concurrent.futures import Future

import pytest

from chromacut.models.point import Point
from chromacut.services.boundary_session import BoundarySession
from chromacut.services.preview_scheduler import PreviewScheduler


class ManualExecutor:
    """Queues work until run_all() so tests control the interleaving."""

    def __init__(self):
        self.tasks = []

    def submit(self, fn, *args):
        future = Future()
        self.tasks.append((future, fn, args))
        return future

    def run_all(self):
        for future, fn, args in self.tasks:
            future.set_result(fn(*args))
        self.tasks = []

    def shutdown(self, wait=True):
        pass


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.fixture
def session(uniform_cost):
    s = BoundarySession(uniform_cost)
    s.add_anchor((10, 10))
    return s


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def executor():
    return ManualExecutor()


def test_throttle(session, executor, clock):
    scheduler = PreviewScheduler(session, throttle_ms=16, executor=executor, clock=clock)
    assert scheduler.submit((20, 20)) is not None
    clock.now = 0.005
    assert scheduler.submit((21, 20)) is None
    clock.now = 0.020
    assert scheduler.submit((22, 20)) is not None
    assert len(executor.tasks) == 2


def test_only_newest_preview_is_stored(session, executor, clock):
    scheduler = PreviewScheduler(session, throttle_ms=16, executor=executor, clock=clock)
    first = scheduler.submit((40, 10))
    clock.now = 1.0
    second = scheduler.submit((10, 40))

    executor.run_all()
    assert first.result() is None
    assert second.result()[-1] == Point(10, 40)
    assert session.preview_path == second.result()


def test_commit_discards_queued_preview(session, executor, clock):
    scheduler = PreviewScheduler(session, executor=executor, clock=clock)
    future = scheduler.submit((40, 40))
    session.add_anchor((60, 10))

    executor.run_all()
    assert future.result() is None
    assert session.preview_path == []


def test_worker_thread_round_trip(session):
    with PreviewScheduler(session, throttle_ms=0) as scheduler:
        future = scheduler.submit((50, 30))
        path = future.result(timeout=10)
    assert path[0] == Point(10, 10)
    assert path[-1] == Point(50, 30)
    assert session.preview_path == path
