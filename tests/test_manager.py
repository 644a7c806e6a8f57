import threading
from unittest import mock

import pytest

from nocopyio.loadbalance import LoadBalance
from nocopyio.manager import PollManager, default_num_loops
from nocopyio.poll import Poll


class FakePoll(Poll):
    def __init__(self):
        self.started = threading.Event()
        self.stopped = threading.Event()
        self.closed = False

    def wait(self):
        self.started.set()
        self.stopped.wait()

    def close(self):
        self.closed = True
        self.stopped.set()

    def trigger(self):
        pass

    def control(self, operator, event):
        pass


@pytest.fixture
def manager():
    m = PollManager(FakePoll, LoadBalance.ROUND_ROBIN, 3)
    yield m
    m.close()


def test_run_starts_pollers(manager):
    assert len(manager.polls) == 3
    assert manager.num_loops == 3
    assert all(p.started.wait(timeout=2) for p in manager.polls)


def test_poll_manager_reset(manager):
    n = manager.num_loops
    old = manager.polls
    manager.reset()
    assert len(manager.polls) == n
    assert manager.num_loops == n
    assert all(p.closed for p in old)
    assert not any(p in old for p in manager.polls)


def test_invalid_num_loops(manager):
    with pytest.raises(ValueError):
        manager.set_num_loops(0)
    assert manager.num_loops == 3


def test_grow_keeps_existing(manager):
    old = manager.polls
    manager.set_num_loops(5)
    assert len(manager.polls) == 5
    assert manager.polls[:3] == old
    assert not any(p.closed for p in old)


def test_shrink_resets_all(manager):
    old = manager.polls
    manager.set_num_loops(2)
    assert len(manager.polls) == 2
    assert manager.num_loops == 2
    assert all(p.closed for p in old)


def test_round_robin_pick(manager):
    p0, p1, p2 = manager.polls
    assert [manager.pick() for _ in range(4)] == [p1, p2, p0, p1]


def test_random_pick(manager):
    manager.set_load_balance(LoadBalance.RANDOM)
    picks = {manager.pick() for _ in range(50)}
    assert picks <= set(manager.polls)
    assert len(picks) >= 1


def test_same_load_balance_keeps_state(manager):
    p0, p1, p2 = manager.polls
    assert manager.pick() is p1
    manager.set_load_balance(LoadBalance.ROUND_ROBIN)
    assert manager.pick() is p2


def test_close(manager):
    polls = manager.polls
    manager.close()
    assert all(p.closed for p in polls)
    assert manager.num_loops == 0
    assert manager.polls == ()
    with pytest.raises(RuntimeError):
        manager.pick()


@pytest.mark.parametrize("cpus, expected", [(8, 8), (5, 5), (4, 1), (2, 1), (None, 1)])
def test_default_num_loops(cpus, expected):
    with mock.patch("os.cpu_count", return_value=cpus):
        assert default_num_loops() == expected


def test_default_loops_used_when_unspecified():
    with mock.patch("os.cpu_count", return_value=6):
        m = PollManager(FakePoll)
    try:
        assert m.num_loops == 6
        assert len(m.polls) == 6
    finally:
        m.close()