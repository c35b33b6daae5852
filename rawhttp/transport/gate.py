"""Concurrency gate bounding the number of active connection handlers."""

import threading
from typing import Optional


class Permit:
    """One slot in the gate; released once, on exit or explicit release."""

    def __init__(self, gate: "ConcurrencyGate") -> None:
        self._gate = gate
        self._lock = threading.Lock()
        self._released = False

    @property
    def released(self) -> bool:
        """Return True once the slot has been handed back."""
        return self._released

    def release(self) -> None:
        """Return the slot to the gate; later calls are no-ops."""
        with self._lock:
            if self._released:
                return
            self._released = True
        self._gate._release()  # pylint: disable=protected-access

    def __enter__(self) -> "Permit":
        return self

    def __exit__(self, *exc_info) -> None:
        self.release()


class ConcurrencyGate:
    """Bounded pool of ``max_clients`` permits shared by all handlers."""

    def __init__(self, max_clients: int) -> None:
        if max_clients <= 0:
            raise ValueError("max_clients must be positive")
        self._max_clients = max_clients
        self._semaphore = threading.BoundedSemaphore(max_clients)
        self._lock = threading.Lock()
        self._active = 0
        self._peak = 0

    @property
    def max_clients(self) -> int:
        return self._max_clients

    @property
    def active(self) -> int:
        """Number of permits currently held."""
        with self._lock:
            return self._active

    @property
    def peak(self) -> int:
        """Highest number of permits ever held at once."""
        with self._lock:
            return self._peak

    def acquire(self, timeout: Optional[float] = None) -> Optional[Permit]:
        """Block until a permit is free; return None if ``timeout`` elapses."""
        if not self._semaphore.acquire(timeout=timeout):
            return None
        with self._lock:
            self._active += 1
            self._peak = max(self._peak, self._active)
        return Permit(self)

    def _release(self) -> None:
        with self._lock:
            self._active -= 1
        self._semaphore.release()
