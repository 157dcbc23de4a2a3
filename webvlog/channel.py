from __future__ import annotations

import threading
import time
from collections import deque


class EventChannel:
    """Ordered hand-off from logging call sites to the writer session.

    Any number of threads may :meth:`send`; one writer thread calls
    :meth:`receive`. ``send`` never blocks and never raises. With
    ``max_pending`` set the channel keeps only the newest payloads and counts
    the dropped ones; by default it is unbounded.
    """

    def __init__(self, max_pending: int | None = None) -> None:
        if max_pending is not None and max_pending <= 0:
            raise ValueError("max_pending must be positive")
        self._items: deque[str] = deque(maxlen=max_pending)
        self._cond = threading.Condition()
        self._closed = False
        self._interrupted = False
        self.max_pending = max_pending
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        with self._cond:
            return len(self._items)

    def send(self, payload: str) -> None:
        with self._cond:
            if self._closed:
                return
            if self.max_pending is not None and len(self._items) == self.max_pending:
                self.dropped += 1
            self._items.append(payload)
            self._cond.notify()

    def requeue(self, payload: str) -> None:
        """Put a payload that was received but never delivered back in front."""

        with self._cond:
            if self._closed:
                return
            if self.max_pending is not None and len(self._items) == self.max_pending:
                self.dropped += 1
                return
            self._items.appendleft(payload)
            self._cond.notify()

    def receive(self, timeout: float | None = None) -> str | None:
        """Wait for the next payload.

        Returns ``None`` on timeout, after :meth:`interrupt`, or once the
        channel is closed and empty.
        """

        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            while not self._items:
                if self._closed:
                    return None
                if self._interrupted:
                    self._interrupted = False
                    return None
                if deadline is None:
                    self._cond.wait()
                    continue
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return None
                self._cond.wait(remaining)
            return self._items.popleft()

    def interrupt(self) -> None:
        """Wake the pending :meth:`receive` without a payload."""

        with self._cond:
            self._interrupted = True
            self._cond.notify_all()

    def clear_interrupt(self) -> None:
        with self._cond:
            self._interrupted = False

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._items.clear()
            self._cond.notify_all()
