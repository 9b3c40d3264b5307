"""Access tokens and tickets that are fetched lazily and refreshed in the background."""

from __future__ import annotations

import contextlib
import random
import threading
import time
from dataclasses import dataclass
from typing import Callable, Iterator

_REFRESH_TIME_WINDOW = 30 * 60.0
_MIN_REFRESH_DURATION = 5.0

_INITIAL_INTERVAL = 0.5
_MULTIPLIER = 1.5
_RANDOMIZATION_FACTOR = 0.5
_MAX_INTERVAL = 60.0
_MAX_ELAPSED_TIME = 15 * 60.0


@dataclass(frozen=True)
class TokenInfo:
    """A freshly fetched token and its lifetime in seconds."""

    token: str
    expires_in: float


def _backoff_delays() -> Iterator[float]:
    interval = _INITIAL_INTERVAL
    while True:
        delta = _RANDOMIZATION_FACTOR * interval
        yield random.uniform(interval - delta, interval + delta)
        interval = min(interval * _MULTIPLIER, _MAX_INTERVAL)


class Token:
    """A token kept current by calling ``fetch``."""

    def __init__(self, fetch: Callable[[], TokenInfo]) -> None:
        self._fetch = fetch
        self._lock = threading.Lock()
        self._token = ""
        self._expires_in = 0.0
        self._last_refresh = 0.0

    @property
    def expires_in(self) -> float:
        """Lifetime in seconds of the current token."""
        with self._lock:
            return self._expires_in

    @property
    def last_refresh(self) -> float:
        """Monotonic time of the last successful refresh."""
        with self._lock:
            return self._last_refresh

    def get_token(self) -> str:
        """Return the current token, fetching it first if there is none.

        A failed fetch is not reported; an empty string comes back instead.
        """
        with self._lock:
            current = self._token
        if current:
            return current
        with contextlib.suppress(Exception):
            self.sync_token()
        with self._lock:
            return self._token

    def sync_token(self) -> None:
        """Fetch a new token now; errors from the fetch propagate."""
        info = self._fetch()
        with self._lock:
            self._token = info.token
            self._expires_in = float(info.expires_in)
            self._last_refresh = time.monotonic()

    def _retry_sync(self, stop_event: threading.Event) -> bool:
        start = time.monotonic()
        delays = _backoff_delays()
        while True:
            try:
                self.sync_token()
                return True
            except Exception:
                pass
            if stop_event.is_set():
                return False
            delay = next(delays)
            if time.monotonic() - start + delay > _MAX_ELAPSED_TIME:
                return False
            if stop_event.wait(delay):
                return False

    def run_refresher(self, stop_event: threading.Event) -> None:
        """Refresh the token shortly before it expires until ``stop_event`` is set."""
        wait = 0.0
        while not stop_event.wait(wait):
            self._retry_sync(stop_event)
            with self._lock:
                deadline = self._last_refresh + self._expires_in - _REFRESH_TIME_WINDOW
            wait = max(deadline - time.monotonic(), _MIN_REFRESH_DURATION)

    def spawn_refresher(self, stop_event: threading.Event | None = None) -> threading.Thread:
        """Start :meth:`run_refresher` in a daemon thread and return the thread."""
        event = stop_event if stop_event is not None else threading.Event()
        thread = threading.Thread(target=self.run_refresher, args=(event,), daemon=True)
        thread.start()
        return thread