"""Fixed-window rate limiting per client identity.

Each client identity gets a counter that resets at a fixed boundary. The
request that opens a window counts as usage #1, and the boundary itself
belongs to the old window (only ``now > reset_at`` starts a new one).

Expired entries are replaced lazily on the next request from that client.
RateLimitSweeper removes them periodically so the map stays bounded when
many distinct clients come and go.

Usage:
    limiter = RateLimiter(max_requests=10, window_seconds=60)

    if not limiter.check_limit(client_id):
        return ResponseEnvelope.failure(RATE_LIMIT_MESSAGE)

    # Background sweep, owned by the transport lifecycle
    sweeper = RateLimitSweeper(limiter)
    await sweeper.start()
    ...
    await sweeper.stop()
"""

from __future__ import annotations

__all__ = [
    "RateLimitEntry",
    "RateLimitSweeper",
    "RateLimitUsage",
    "RateLimiter",
]

import asyncio
import threading
import traceback
from collections.abc import Callable
from dataclasses import dataclass
from time import monotonic

from azure_logs_mcp.constants import (
    DEFAULT_RATE_LIMIT_MAX_REQUESTS,
    DEFAULT_RATE_LIMIT_WINDOW_SECONDS,
)
from azure_logs_mcp.telemetry.system_logger import get_system_logger


@dataclass(slots=True)
class RateLimitEntry:
    """Counter for one client's current window.

    Attributes:
        count: Requests admitted in this window.
        window_reset_at: Clock value at which the window ends.
    """

    count: int
    window_reset_at: float


@dataclass(frozen=True, slots=True)
class RateLimitUsage:
    """Read-only view of a client's standing.

    Attributes:
        count: Requests admitted in the current window.
        reset_at: Clock value at which the window ends (None if no window is open).
        remaining: Requests still admissible before the window ends.
    """

    count: int
    reset_at: float | None
    remaining: int


class RateLimiter:
    """Fixed-window request counter keyed by client identity.

    Check-and-increment is atomic per call: a threading.Lock guards the map,
    and no method suspends while holding it.

    Attributes:
        max_requests: Requests admitted per window.
        window_seconds: Window length.
    """

    def __init__(
        self,
        max_requests: int = DEFAULT_RATE_LIMIT_MAX_REQUESTS,
        window_seconds: float = DEFAULT_RATE_LIMIT_WINDOW_SECONDS,
        *,
        clock: Callable[[], float] = monotonic,
    ) -> None:
        """Initialize the limiter.

        Args:
            max_requests: Requests admitted per window (at least 1).
            window_seconds: Window length in seconds (positive).
            clock: Monotonic time source. Injected by tests.

        Raises:
            ValueError: If either bound is out of range.
        """
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")

        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._entries: dict[str, RateLimitEntry] = {}
        self._lock = threading.Lock()

    @property
    def tracked_clients(self) -> int:
        """Number of entries currently held (expired ones included until swept)."""
        with self._lock:
            return len(self._entries)

    def check_limit(self, client_id: str) -> bool:
        """Admit or reject one request from a client.

        Args:
            client_id: Bucketing key from the client identity.

        Returns:
            True if admitted (and counted), False if the window is full.
            A rejection leaves the entry unchanged.
        """
        now = self._clock()
        with self._lock:
            entry = self._entries.get(client_id)

            if entry is None or now > entry.window_reset_at:
                self._entries[client_id] = RateLimitEntry(
                    count=1,
                    window_reset_at=now + self.window_seconds,
                )
                return True

            if entry.count >= self.max_requests:
                return False

            entry.count += 1
            return True

    def get_usage(self, client_id: str) -> RateLimitUsage:
        """Report a client's standing without counting a request.

        Unseen and expired clients report an empty window.
        """
        now = self._clock()
        with self._lock:
            entry = self._entries.get(client_id)
            if entry is None or now > entry.window_reset_at:
                return RateLimitUsage(count=0, reset_at=None, remaining=self.max_requests)
            return RateLimitUsage(
                count=entry.count,
                reset_at=entry.window_reset_at,
                remaining=max(0, self.max_requests - entry.count),
            )

    def clear_limit(self, client_id: str) -> None:
        """Forget a client's window."""
        with self._lock:
            self._entries.pop(client_id, None)

    def cleanup(self) -> int:
        """Remove every entry whose window has expired.

        Returns:
            Number of entries removed. Zero when nothing had expired.
        """
        now = self._clock()
        with self._lock:
            expired = [client_id for client_id, entry in self._entries.items() if now > entry.window_reset_at]
            for client_id in expired:
                del self._entries[client_id]
        return len(expired)


class RateLimitSweeper:
    """Background task that calls RateLimiter.cleanup() on a fixed interval.

    The interval defaults to the limiter's window length.
    """

    def __init__(self, limiter: RateLimiter, interval_seconds: float | None = None) -> None:
        self.limiter = limiter
        self.interval_seconds = interval_seconds if interval_seconds is not None else limiter.window_seconds
        self._task: asyncio.Task[None] | None = None
        self._running = False

    @property
    def is_running(self) -> bool:
        """Whether the sweep loop is active."""
        return self._running and self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the sweep loop. No-op if already running."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._sweep_loop(), name="rate_limit_sweeper")

    async def stop(self) -> None:
        """Cancel the sweep loop and wait for it to finish."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def _sweep_loop(self) -> None:
        logger = get_system_logger()
        try:
            while self._running:
                await asyncio.sleep(self.interval_seconds)
                removed = self.limiter.cleanup()
                if removed:
                    logger.debug(
                        {
                            "event": "rate_limit_sweep",
                            "message": f"Removed {removed} expired rate limit entries",
                            "removed": removed,
                        }
                    )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._running = False
            logger.error(
                {
                    "event": "rate_limit_sweeper_crashed",
                    "message": "Rate limit sweeper stopped unexpectedly",
                    "error": str(e),
                    "error_type": type(e).__name__,
                    "traceback": traceback.format_exc(),
                }
            )
