"""Strategies for choosing one poller among several."""

from __future__ import annotations

import enum
import random
import threading
from typing import Iterable, List, Union

from .poll import Poll


class LoadBalance(enum.IntEnum):
    """Load balancing method."""

    RANDOM = 0
    ROUND_ROBIN = 1


class RandomLB:
    """Pick a poller uniformly at random."""

    def __init__(self, polls: Iterable[Poll]) -> None:
        self._polls: List[Poll] = list(polls)

    def load_balance(self) -> LoadBalance:
        return LoadBalance.RANDOM

    def pick(self) -> Poll:
        """Return a randomly chosen poller."""
        polls = self._polls
        if not polls:
            raise IndexError("no polls to pick from")
        return random.choice(polls)

    def rebalance(self, polls: Iterable[Poll]) -> None:
        """Replace the set of pollers to choose from."""
        self._polls = list(polls)


class RoundRobinLB:
    """Pick pollers in turn."""

    def __init__(self, polls: Iterable[Poll]) -> None:
        self._polls: List[Poll] = list(polls)
        self._accepted = 0
        self._lock = threading.Lock()

    def load_balance(self) -> LoadBalance:
        return LoadBalance.ROUND_ROBIN

    def pick(self) -> Poll:
        """Return the next poller in turn."""
        with self._lock:
            polls = self._polls
            if not polls:
                raise IndexError("no polls to pick from")
            self._accepted += 1
            accepted = self._accepted
        return polls[accepted % len(polls)]

    def rebalance(self, polls: Iterable[Poll]) -> None:
        """Replace the set of pollers to choose from."""
        with self._lock:
            self._polls = list(polls)


Balancer = Union[RandomLB, RoundRobinLB]


def new_loadbalance(lb: LoadBalance, polls: Iterable[Poll]) -> Balancer:
    """Create the balancer for ``lb``; unknown methods fall back to round robin."""
    if lb == LoadBalance.RANDOM:
        return RandomLB(polls)
    return RoundRobinLB(polls)