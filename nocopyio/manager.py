"""Ownership and load balancing of a set of pollers."""

from __future__ import annotations

import logging
import os
import threading
from typing import Callable, List, Optional, Tuple

from .loadbalance import Balancer, LoadBalance, new_loadbalance
from .poll import Poll

logger = logging.getLogger(__name__)


def default_num_loops() -> int:
    """One loop, or one per CPU when there are more than four."""
    procs = os.cpu_count() or 1
    return procs if procs > 4 else 1


def _serve(poll: Poll) -> None:
    try:
        poll.wait()
    except Exception:
        logger.exception("poll wait failed")


class PollManager:
    """Runs a number of pollers and picks one of them on request.

    ``poll_factory`` is called to create each poller; every poller's
    :meth:`Poll.wait` runs in a daemon thread.
    """

    def __init__(
        self,
        poll_factory: Callable[[], Poll],
        load_balance: LoadBalance = LoadBalance.ROUND_ROBIN,
        num_loops: Optional[int] = None,
    ) -> None:
        self._factory = poll_factory
        self.num_loops = 0
        self._balance: Optional[Balancer] = None
        self._polls: List[Poll] = []
        self.set_load_balance(load_balance)
        self.set_num_loops(default_num_loops() if num_loops is None else num_loops)

    @property
    def polls(self) -> Tuple[Poll, ...]:
        """The pollers currently managed."""
        return tuple(self._polls)

    def set_num_loops(self, num_loops: int) -> None:
        """Change the number of pollers; fewer than before resets them all."""
        if num_loops < 1:
            raise ValueError(f"set invalid numLoops[{num_loops}]")
        if num_loops < self.num_loops:
            self.num_loops = num_loops
            self.reset()
            return
        self.num_loops = num_loops
        self.run()

    def set_load_balance(self, lb: LoadBalance) -> None:
        """Switch to the load balancing method ``lb``."""
        if self._balance is not None and self._balance.load_balance() == lb:
            return
        self._balance = new_loadbalance(lb, self._polls)

    def close(self) -> None:
        """Close every poller and release them."""
        for poll in self._polls:
            poll.close()
        self.num_loops = 0
        self._balance = None
        self._polls = []

    def run(self) -> None:
        """Start pollers until there are ``num_loops`` of them."""
        if self._balance is None:
            raise RuntimeError("load balance must be set before running pollers")
        while len(self._polls) < self.num_loops:
            poll = self._factory()
            self._polls.append(poll)
            threading.Thread(target=_serve, args=(poll,), daemon=True).start()
        self._balance.rebalance(self._polls)

    def reset(self) -> None:
        """Close every poller and start fresh ones."""
        for poll in self._polls:
            poll.close()
        self._polls = []
        self.run()

    def pick(self) -> Poll:
        """Choose a poller according to the load balancing method."""
        if self._balance is None:
            raise RuntimeError("poll manager is closed")
        return self._balance.pick()