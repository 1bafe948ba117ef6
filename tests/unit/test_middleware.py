"""Unit tests for the rate limiter and security header middleware."""

from __future__ import annotations

from collections import deque
from unittest.mock import patch

import pytest
from fastapi import FastAPI
from fastapi.responses import JSONResponse
from httpx import ASGITransport, AsyncClient

from todoapp.web.middleware import RateLimitMiddleware
from todoapp.web.security_headers import SecurityHeadersMiddleware


def _make_app(max_requests: int = 5, window_seconds: int = 60, prefix: str = "/api/") -> FastAPI:
    """Build a minimal FastAPI app with RateLimitMiddleware attached."""
    app = FastAPI()
    app.add_middleware(
        RateLimitMiddleware,
        max_requests=max_requests,
        window_seconds=window_seconds,
        prefix=prefix,
    )

    @app.post("/api/auth/login-options")
    async def login_options() -> dict[str, str]:
        return {"challenge": "abc"}

    @app.get("/static/app.js")
    async def asset() -> dict[str, str]:
        return {"ok": "yes"}

    return app


@pytest.mark.unit
class TestRateLimitMiddleware:
    async def test_under_limit_allowed(self) -> None:
        app = _make_app(max_requests=3)
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            for _ in range(3):
                resp = await client.post("/api/auth/login-options")
                assert resp.status_code == 200

    async def test_over_limit_blocked_with_retry_after(self) -> None:
        app = _make_app(max_requests=2, window_seconds=45)
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            for _ in range(2):
                await client.post("/api/auth/login-options")
            resp = await client.post("/api/auth/login-options")
        assert resp.status_code == 429
        assert resp.headers["retry-after"] == "45"
        assert "detail" in resp.json()

    async def test_paths_outside_prefix_not_limited(self) -> None:
        app = _make_app(max_requests=1)
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            for _ in range(5):
                assert (await client.get("/static/app.js")).status_code == 200

    async def test_window_expiry_resets_limit(self) -> None:
        app = _make_app(max_requests=2, window_seconds=1)

        # One monotonic() call per request: the first two hits age out before the third
        with patch("todoapp.web.middleware.time") as mock_time:
            mock_time.monotonic.side_effect = [0.0, 0.0, 2.0]
            async with AsyncClient(
                transport=ASGITransport(app=app), base_url="http://test"
            ) as client:
                for _ in range(2):
                    await client.post("/api/auth/login-options")
                resp = await client.post("/api/auth/login-options")

        assert resp.status_code == 200

    async def test_idle_clients_are_forgotten(self) -> None:
        inner = FastAPI()

        @inner.post("/api/auth/login-options")
        async def login_options() -> dict[str, str]:
            return {"challenge": "abc"}

        limiter = RateLimitMiddleware(inner, max_requests=5, window_seconds=0)
        for i in range(300):
            transport = ASGITransport(app=limiter, client=(f"10.0.{i // 250}.{i % 250}", 5000))
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                assert (await client.post("/api/auth/login-options")).status_code == 200

        assert len(limiter._clients) <= 1

    def test_client_dropped_once_window_passes(self) -> None:
        limiter = RateLimitMiddleware(FastAPI(), max_requests=5, window_seconds=10)
        limiter._clients["10.0.0.1"] = deque([0.0])
        limiter._clients["10.0.0.2"] = deque([5.0])

        limiter._sweep(now=12.0)

        assert set(limiter._clients) == {"10.0.0.2"}

    async def test_warning_logged(self) -> None:
        app = _make_app(max_requests=1)
        with patch("todoapp.web.middleware.logger") as mock_logger:
            async with AsyncClient(
                transport=ASGITransport(app=app), base_url="http://test"
            ) as client:
                await client.post("/api/auth/login-options")
                await client.post("/api/auth/login-options")

        mock_logger.warning.assert_called_once()
        assert mock_logger.warning.call_args.kwargs["path"] == "/api/auth/login-options"


@pytest.mark.unit
class TestSecurityHeadersMiddleware:
    @staticmethod
    def _make_app() -> FastAPI:
        app = FastAPI()
        app.add_middleware(SecurityHeadersMiddleware)

        @app.get("/plain")
        async def plain() -> dict[str, str]:
            return {"ok": "yes"}

        @app.get("/framed")
        async def framed() -> JSONResponse:
            return JSONResponse({"ok": "yes"}, headers={"X-Frame-Options": "SAMEORIGIN"})

        return app

    async def test_headers_added(self) -> None:
        transport = ASGITransport(app=self._make_app())
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            resp = await client.get("/plain")
        assert resp.headers["x-frame-options"] == "DENY"
        assert resp.headers["content-security-policy"] == "default-src 'self'"
        assert "strict-transport-security" not in resp.headers

    async def test_hsts_over_https(self) -> None:
        transport = ASGITransport(app=self._make_app())
        async with AsyncClient(transport=transport, base_url="https://test") as client:
            resp = await client.get("/plain")
        assert resp.headers["strict-transport-security"].startswith("max-age=")

    async def test_route_header_not_overridden(self) -> None:
        transport = ASGITransport(app=self._make_app())
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            resp = await client.get("/framed")
        assert resp.headers["x-frame-options"] == "SAMEORIGIN"
