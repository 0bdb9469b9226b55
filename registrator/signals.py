"""
Turns SIGINT/SIGTERM into a single shutdown event.
"""

import logging
import signal
import threading
from typing import Optional

logger = logging.getLogger(__name__)

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class SignalBridge:
    """
    Sets ``event`` on the first termination signal.

    Later signals are logged and otherwise ignored, so a second Ctrl-C during
    deregistration does not interrupt it. Handlers can only be installed from
    the main thread.
    """

    def __init__(self, event: Optional[threading.Event] = None):
        self.event = event if event is not None else threading.Event()
        self.received = None
        self._previous = {}

    def install(self) -> None:
        for signum in SHUTDOWN_SIGNALS:
            self._previous[signum] = signal.signal(signum, self._handle)

    def restore(self) -> None:
        for signum, handler in self._previous.items():
            signal.signal(signum, handler)
        self._previous.clear()

    def _handle(self, signum, frame) -> None:
        name = signal.Signals(signum).name
        if self.event.is_set():
            logger.warning(f"Received {name} again, shutdown is already in progress")
            return
        logger.info(f"Received {name}")
        self.received = signum
        self.event.set()

    def trigger(self) -> None:
        """Request shutdown without a signal."""
        self.event.set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until shutdown is requested; returns False on timeout."""
        return self.event.wait(timeout)
