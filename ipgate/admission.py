"""
Admission control for lookup requests.

A fixed-window request counter keyed by caller address. The transport layer
consults it before invoking the resolver; the resolver never touches it.
"""

import logging
import threading
import time
from typing import Callable, Dict, List, Optional

from .config import config

logger = logging.getLogger(__name__)


class FixedWindowRateLimiter:
    """Per-caller fixed-window counter, safe for concurrent callers."""

    def __init__(self, window_seconds: Optional[float] = None,
                 max_requests: Optional[int] = None,
                 clock: Callable[[], float] = time.monotonic):
        """
        Initialize the limiter.

        Args:
            window_seconds: Window length (default: configured, 60s)
            max_requests: Requests allowed per caller and window (default:
                configured, 100)
            clock: Monotonic time source
        """
        self.window_seconds = window_seconds if window_seconds is not None else config.get_rate_limit_window()
        self.max_requests = max_requests if max_requests is not None else config.get_rate_limit_max()
        self._clock = clock
        # identifier -> [count, window start]
        self._windows: Dict[str, List[float]] = {}
        self._lock = threading.Lock()
        self._sweeper: Optional[threading.Thread] = None
        self._stop_sweeper = threading.Event()

    def allow(self, identifier: str) -> bool:
        """
        Count a request and decide whether it is admitted.

        Args:
            identifier: Caller address

        Returns:
            True if the request is within the caller's allowance
        """
        now = self._clock()
        with self._lock:
            window = self._windows.get(identifier)
            if window is None or now - window[1] > self.window_seconds:
                self._windows[identifier] = [1, now]
                return True
            window[0] += 1
            return window[0] <= self.max_requests

    def retry_after(self, identifier: str) -> float:
        """Seconds until the caller's current window ends (0 if none is open)."""
        now = self._clock()
        with self._lock:
            window = self._windows.get(identifier)
            if window is None:
                return 0.0
            return max(0.0, self.window_seconds - (now - window[1]))

    def sweep(self) -> int:
        """
        Drop counters whose window has elapsed.

        Returns:
            Number of counters removed
        """
        now = self._clock()
        with self._lock:
            stale = [key for key, (_, started) in self._windows.items()
                     if now - started > self.window_seconds]
            for key in stale:
                del self._windows[key]
        if stale:
            logger.debug(f"Swept {len(stale)} stale rate-limit entries")
        return len(stale)

    def start_sweeper(self, interval: Optional[float] = None):
        """Run sweep() every `interval` seconds (default: window length) on a daemon thread."""
        if self._sweeper is not None and self._sweeper.is_alive():
            return
        interval = interval if interval is not None else self.window_seconds
        self._stop_sweeper.clear()

        def run():
            while not self._stop_sweeper.wait(interval):
                self.sweep()

        self._sweeper = threading.Thread(target=run, name='ipgate-rate-limit-sweeper', daemon=True)
        self._sweeper.start()

    def stop_sweeper(self):
        """Stop the background sweeper, if running."""
        self._stop_sweeper.set()
        if self._sweeper is not None:
            self._sweeper.join()
            self._sweeper = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)
