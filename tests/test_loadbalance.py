import random
from collections import Counter

import pytest

from nocopyio.loadbalance import (
    LoadBalance,
    RandomLB,
    RoundRobinLB,
    new_loadbalance,
)


def _polls(count):
    return [object() for _ in range(count)]


def test_new_loadbalance_random():
    lb = new_loadbalance(LoadBalance.RANDOM, _polls(2))
    assert isinstance(lb, RandomLB)
    assert lb.load_balance() is LoadBalance.RANDOM


def test_new_loadbalance_round_robin():
    lb = new_loadbalance(LoadBalance.ROUND_ROBIN, _polls(2))
    assert isinstance(lb, RoundRobinLB)
    assert lb.load_balance() is LoadBalance.ROUND_ROBIN


def test_new_loadbalance_unknown_falls_back_to_round_robin():
    lb = new_loadbalance(7, _polls(2))
    assert lb.load_balance() is LoadBalance.ROUND_ROBIN


def test_round_robin_starts_after_first_and_cycles():
    polls = _polls(3)
    lb = RoundRobinLB(polls)
    picks = [lb.pick() for _ in range(6)]
    assert picks[0] is polls[1]
    assert picks[:3] == picks[3:]
    counts = Counter(id(p) for p in picks)
    assert all(counts[id(p)] == 2 for p in polls)


def test_round_robin_rebalance():
    lb = RoundRobinLB(_polls(2))
    replacement = _polls(1)
    lb.rebalance(replacement)
    assert {id(lb.pick()) for _ in range(5)} == {id(replacement[0])}


def test_random_picks_within_polls():
    random.seed(1234)
    polls = _polls(4)
    lb = RandomLB(polls)
    picks = [lb.pick() for _ in range(400)]
    assert {id(p) for p in picks} == {id(p) for p in polls}


def test_random_rebalance():
    lb = RandomLB(_polls(3))
    replacement = _polls(2)
    lb.rebalance(replacement)
    picked = {id(lb.pick()) for _ in range(50)}
    assert picked <= {id(p) for p in replacement}


@pytest.mark.parametrize("cls", [RandomLB, RoundRobinLB])
def test_pick_without_polls_raises(cls):
    with pytest.raises(IndexError):
        cls([]).pick()