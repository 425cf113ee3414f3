"""Tests for the client-side session watcher."""

import asyncio

import httpx

from memberhub.client.session_watcher import (
    REASON_CONFLICT,
    REASON_INACTIVITY,
    REASON_USER,
    SessionWatcher,
)


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class Server:
    """Records requests and answers refresh with a configurable status."""

    def __init__(self, refresh_status: int = 200) -> None:
        self.refresh_status = refresh_status
        self.paths: list[str] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.paths.append(request.url.path)
        if request.url.path == "/api/auth/refresh":
            return httpx.Response(self.refresh_status, json={})
        return httpx.Response(200, json={"message": "Logged out successfully."})

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler), base_url="http://testserver")


def _watcher(server: Server, clock: FakeClock, reasons: list[str], **kwargs) -> SessionWatcher:
    return SessionWatcher(
        server.client(),
        on_logout=reasons.append,
        clock=clock,
        idle_check_interval=kwargs.pop("idle_check_interval", 3600),
        refresh_interval=kwargs.pop("refresh_interval", 3600),
        **kwargs,
    )


class TestRefresh:
    """Tests for the refresh pulse."""

    def test_active_user_keeps_session_alive(self):
        server, clock, reasons = Server(), FakeClock(), []

        async def scenario():
            watcher = _watcher(server, clock, reasons)
            watcher.start()
            assert await watcher.refresh_once()
            watcher.stop()

        asyncio.run(scenario())
        assert server.paths == ["/api/auth/refresh"]
        assert reasons == []

    def test_failed_refresh_logs_out_as_conflict(self):
        server, clock, reasons = Server(refresh_status=401), FakeClock(), []

        async def scenario():
            watcher = _watcher(server, clock, reasons)
            watcher.start()
            assert not await watcher.refresh_once()
            assert not watcher.running
            return watcher

        watcher = asyncio.run(scenario())
        assert watcher.logout_reason == REASON_CONFLICT
        assert reasons == [REASON_CONFLICT]
        assert server.paths == ["/api/auth/refresh", "/api/auth/logout"]

    def test_idle_user_is_not_refreshed(self):
        server, clock, reasons = Server(), FakeClock(), []

        async def scenario():
            watcher = _watcher(server, clock, reasons, inactivity_limit=60)
            watcher.start()
            clock.now += 61
            assert await watcher.refresh_once()
            watcher.stop()

        asyncio.run(scenario())
        assert server.paths == []

    def test_refresh_after_stop_does_nothing(self):
        server, clock, reasons = Server(refresh_status=401), FakeClock(), []

        async def scenario():
            watcher = _watcher(server, clock, reasons)
            watcher.start()
            watcher.stop()
            assert await watcher.refresh_once()

        asyncio.run(scenario())
        assert server.paths == []
        assert reasons == []

    def test_periodic_task_runs(self):
        server, clock, reasons = Server(refresh_status=401), FakeClock(), []

        async def scenario():
            watcher = _watcher(server, clock, reasons, refresh_interval=0.01)
            watcher.start()
            for _ in range(100):
                if watcher.logout_reason:
                    break
                await asyncio.sleep(0.01)
            watcher.stop()
            return watcher

        watcher = asyncio.run(scenario())
        assert watcher.logout_reason == REASON_CONFLICT


class TestInactivity:
    """Tests for the idle checker."""

    def test_logout_after_inactivity_limit(self):
        server, clock, reasons = Server(), FakeClock(), []

        async def scenario():
            watcher = _watcher(server, clock, reasons, inactivity_limit=1800)
            watcher.start()
            clock.now += 1000
            assert not await watcher.check_idle()
            clock.now += 801
            assert await watcher.check_idle()

        asyncio.run(scenario())
        assert reasons == [REASON_INACTIVITY]
        assert server.paths == ["/api/auth/logout"]

    def test_activity_resets_timer(self):
        server, clock, reasons = Server(), FakeClock(), []

        async def scenario():
            watcher = _watcher(server, clock, reasons, inactivity_limit=1800)
            watcher.start()
            clock.now += 1700
            watcher.record_activity("keydown")
            clock.now += 1700
            assert not await watcher.check_idle()
            watcher.stop()

        asyncio.run(scenario())
        assert reasons == []

    def test_unknown_events_do_not_count(self):
        clock = FakeClock()
        watcher = SessionWatcher(httpx.AsyncClient(), clock=clock)
        clock.now += 50
        watcher.record_activity("resize")
        assert watcher.idle_for() == 50
        watcher.record_activity()
        assert watcher.idle_for() == 0


class TestLogout:
    """Tests for explicit logout."""

    def test_logout_happens_once(self):
        server, clock, reasons = Server(), FakeClock(), []

        async def scenario():
            watcher = _watcher(server, clock, reasons)
            watcher.start()
            await watcher.logout()
            await watcher.logout(REASON_INACTIVITY)

        asyncio.run(scenario())
        assert reasons == [REASON_USER]
        assert server.paths == ["/api/auth/logout"]

    def test_async_callback_is_awaited(self):
        server, clock = Server(), FakeClock()
        seen = []

        async def on_logout(reason: str) -> None:
            seen.append(reason)

        async def scenario():
            watcher = SessionWatcher(server.client(), on_logout=on_logout, clock=clock)
            watcher.start()
            await watcher.logout()

        asyncio.run(scenario())
        assert seen == [REASON_USER]

    def test_unreachable_server_still_notifies(self):
        clock, reasons = FakeClock(), []

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("down", request=request)

        async def scenario():
            client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://testserver")
            watcher = SessionWatcher(client, on_logout=reasons.append, clock=clock)
            watcher.start()
            await watcher.refresh_once()

        asyncio.run(scenario())
        assert reasons == [REASON_CONFLICT]
