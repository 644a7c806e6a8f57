"""Interface of an event poller and the control operations it accepts."""

from __future__ import annotations

import abc
import enum
from typing import Any


class PollEvent(enum.IntEnum):
    """Operation requested through :meth:`Poll.control`."""

    READABLE = 0x1
    """Watch an operator for readability or close."""
    WRITABLE = 0x2
    """Watch a dialing operator for writability (edge triggered)."""
    DETACH = 0x3
    """Remove an operator from the poller."""
    MOD_READABLE = 0x4
    """Re-register readability for a dialed operator."""
    R2RW = 0x5
    """Add writability to an operator watched for reading."""
    RW2R = 0x6
    """Remove writability again, keeping readability."""


class Poll(abc.ABC):
    """Watches file descriptors and dispatches their events to operators."""

    @abc.abstractmethod
    def wait(self) -> None:
        """Block, polling registered descriptors and handling their events."""

    @abc.abstractmethod
    def close(self) -> None:
        """Close the poller and make :meth:`wait` return."""

    @abc.abstractmethod
    def trigger(self) -> None:
        """Wake the loop running :meth:`wait` even when no event occurred."""

    @abc.abstractmethod
    def control(self, operator: Any, event: PollEvent) -> None:
        """Apply ``event`` to the registration of ``operator``."""