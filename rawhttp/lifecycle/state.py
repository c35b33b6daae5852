"""Stop flag and worker bookkeeping shared by the accept loop and workers."""

import logging
import threading
import time
from typing import Optional

from rawhttp.domain.correlation_id import CorrelationLoggerAdapter

LIFECYCLE_LOGGER = CorrelationLoggerAdapter(logging.getLogger("rawhttp.lifecycle"), {})

# Upper bound on one wait slice, so workers that died without untracking
# themselves are still noticed.
_POLL_SECONDS = 0.1


class ServiceLifecycle:
    """Owns the stop flag and the set of connection threads still running."""

    def __init__(self) -> None:
        self._stopping = threading.Event()
        self._changed = threading.Condition()
        self._threads: set[threading.Thread] = set()

    def should_stop(self) -> bool:
        return self._stopping.is_set()

    def begin_draining(self, signal_number: Optional[int] = None) -> None:
        """Refuse new connections from now on; in-flight ones keep running."""
        self._stopping.set()
        LIFECYCLE_LOGGER.info(
            "Beginning graceful shutdown",
            extra={"event": "shutdown_requested", "signal": signal_number},
        )

    def track_worker(self, thread: threading.Thread) -> None:
        with self._changed:
            self._threads.add(thread)

    def untrack_worker(self, thread: threading.Thread) -> None:
        with self._changed:
            self._threads.discard(thread)
            self._changed.notify_all()

    def tracked_count(self) -> int:
        with self._changed:
            return len(self._threads)

    def _prune(self) -> int:
        self._threads = {thread for thread in self._threads if thread.is_alive()}
        return len(self._threads)

    def wait_for_workers(self, timeout: float) -> bool:
        """Block until every tracked worker is gone or ``timeout`` elapses.

        Returns False, after logging how many workers are left, when the
        timeout wins.
        """
        deadline = time.monotonic() + timeout
        with self._changed:
            while self._prune():
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    LIFECYCLE_LOGGER.warning(
                        "Shutdown timeout exceeded",
                        extra={
                            "event": "shutdown_timeout",
                            "remaining_workers": len(self._threads),
                        },
                    )
                    return False
                self._changed.wait(min(_POLL_SECONDS, remaining))
        return True
