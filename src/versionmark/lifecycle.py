"""Lifecycle Management: signal handling for the duration of a release run."""

from __future__ import annotations

import signal
import threading
from types import FrameType

from versionmark.core.exceptions import ReleaseInterrupted
from versionmark.core.structured_logger import get_logger

logger = get_logger("Lifecycle")

HANDLED_SIGNALS = (signal.SIGTERM, signal.SIGHUP, signal.SIGINT)


class InterruptScope:
    """
    Turn termination signals into ReleaseInterrupted while active.

    Python only unwinds ``finally`` blocks for exceptions; SIGTERM and SIGHUP
    would otherwise end the process on the spot, skipping the branch
    restoration. Previous handlers are reinstated on exit. Outside the main
    thread signal handlers cannot be installed, and the scope is a no-op.
    """

    def __init__(self, signals: tuple[signal.Signals, ...] = HANDLED_SIGNALS):
        self.signals = signals
        self._previous: dict[signal.Signals, object] = {}

    def _handler(self, signum: int, _frame: FrameType | None) -> None:
        signal_name = signal.Signals(signum).name
        logger.warning("Received signal, aborting release", signal=signal_name)
        raise ReleaseInterrupted(signal_name)

    def __enter__(self) -> InterruptScope:
        if threading.current_thread() is not threading.main_thread():
            return self
        for sig in self.signals:
            self._previous[sig] = signal.getsignal(sig)
            signal.signal(sig, self._handler)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        for sig, handler in self._previous.items():
            signal.signal(sig, handler)
        self._previous.clear()
