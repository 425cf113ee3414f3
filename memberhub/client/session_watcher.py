"""Client-side session watcher.

Runs next to an authenticated client for the lifetime of its session. The host
reports user interaction through ``record_activity``; two periodic tasks then
either keep the server session alive or end it:

* the idle checker logs out with reason ``inactivity`` once nothing has
  happened for the inactivity limit;
* the refresh pulse calls ``POST /api/auth/refresh`` while the user is active,
  and logs out with reason ``conflict`` if that fails, which usually means the
  session was replaced by a login elsewhere.
"""

import asyncio
import inspect
import logging
import time
from collections.abc import Awaitable, Callable

import httpx

logger = logging.getLogger("memberhub.session_watcher")

INACTIVITY_LIMIT_SECONDS = 30 * 60
IDLE_CHECK_INTERVAL_SECONDS = 60
REFRESH_INTERVAL_SECONDS = 30
ACTIVITY_EVENTS = ("mousemove", "keydown", "scroll", "click")

REASON_INACTIVITY = "inactivity"
REASON_CONFLICT = "conflict"
REASON_USER = "user"

LogoutCallback = Callable[[str], Awaitable[None] | None]


class SessionWatcher:
    """Keeps a cookie session alive while the user is active and ends it otherwise."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        on_logout: LogoutCallback | None = None,
        inactivity_limit: float = INACTIVITY_LIMIT_SECONDS,
        idle_check_interval: float = IDLE_CHECK_INTERVAL_SECONDS,
        refresh_interval: float = REFRESH_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        refresh_path: str = "/api/auth/refresh",
        logout_path: str = "/api/auth/logout",
    ) -> None:
        self.client = client
        self.on_logout = on_logout
        self.inactivity_limit = inactivity_limit
        self.idle_check_interval = idle_check_interval
        self.refresh_interval = refresh_interval
        self.clock = clock
        self.refresh_path = refresh_path
        self.logout_path = logout_path
        self.last_activity = clock()
        self.logout_reason: str | None = None
        self._tasks: list[asyncio.Task] = []
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def record_activity(self, event: str | None = None) -> None:
        """Any observed interaction resets the inactivity timer."""
        if event is not None and event not in ACTIVITY_EVENTS:
            return
        self.last_activity = self.clock()

    def idle_for(self) -> float:
        return self.clock() - self.last_activity

    def start(self) -> None:
        """Arm both timers. Must be called from a running event loop."""
        if self._running:
            return
        self._running = True
        self.logout_reason = None
        self.last_activity = self.clock()
        self._tasks = [
            asyncio.create_task(self._every(self.idle_check_interval, self.check_idle), name="session-idle-check"),
            asyncio.create_task(self._every(self.refresh_interval, self.refresh_once), name="session-refresh"),
        ]
        logger.debug("Session watcher started")

    def stop(self) -> None:
        """Cancel both timers. Safe to call more than once."""
        self._running = False
        current = asyncio.current_task() if self._tasks else None
        for task in self._tasks:
            if task is not current and not task.done():
                task.cancel()
        self._tasks = []

    async def _every(self, interval: float, tick: Callable[[], Awaitable[bool]]) -> None:
        while self._running:
            await asyncio.sleep(interval)
            if not self._running:
                break
            await tick()

    async def check_idle(self) -> bool:
        """Log out if the user has been idle too long. Returns True if it logged out."""
        if not self._running:
            return False
        if self.idle_for() > self.inactivity_limit:
            await self.logout(REASON_INACTIVITY)
            return True
        return False

    async def refresh_once(self) -> bool:
        """Extend the server session while the user is active. Returns False if it logged out."""
        if not self._running:
            return True
        if self.idle_for() >= self.inactivity_limit:
            return True
        try:
            response = await self.client.post(self.refresh_path)
            ok = response.is_success
        except httpx.HTTPError as e:
            logger.warning("Session refresh failed: %s", e)
            ok = False
        if not self._running:
            # Stopped while the request was in flight
            return True
        if not ok:
            await self.logout(REASON_CONFLICT)
            return False
        return True

    async def logout(self, reason: str = REASON_USER) -> None:
        """Stop watching, clear the server session best-effort and notify the host once."""
        if self.logout_reason is not None:
            return
        self.logout_reason = reason
        self.stop()
        try:
            await self.client.post(self.logout_path)
        except httpx.HTTPError as e:
            logger.warning("Failed to clear server session: %s", e)
        logger.info("Session ended: %s", reason)
        if self.on_logout is not None:
            result = self.on_logout(reason)
            if inspect.isawaitable(result):
                await result
