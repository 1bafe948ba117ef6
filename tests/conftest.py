"""Shared test fixtures."""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any
from unittest.mock import patch

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel
from webauthn.helpers import base64url_to_bytes, bytes_to_base64url
from webauthn.helpers.exceptions import (
    InvalidAuthenticationResponse,
    InvalidRegistrationResponse,
)

import todoapp.models.database  # noqa: F401  (registers table metadata)
from todoapp.web.app import create_app
from todoapp.web.dependencies import challenge_store, provide_engine

BASE_URL = "https://test"


@pytest.fixture()
async def async_engine():
    """In-memory SQLite engine with all tables created."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
def app(async_engine):
    """A fresh app wired to the in-memory engine, with an empty challenge store."""
    application = create_app()
    application.dependency_overrides[provide_engine] = lambda: async_engine
    challenge_store._store.clear()
    yield application
    challenge_store._store.clear()


@pytest.fixture()
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url=BASE_URL) as ac:
        yield ac


@pytest.fixture()
async def authed_client(client):
    """A client holding a session cookie for a password-registered user."""
    resp = await client.post(
        "/api/auth/dev-register",
        json={"username": "testuser", "password": "testpass"},
    )
    assert resp.status_code == 200
    return client


# ---------------------------------------------------------------------------
# WebAuthn stand-ins
#
# The browser side of a ceremony is simulated with a small credential dict.
# The fake verifiers enforce the checks the server relies on: the echoed
# challenge must match the stored one, the key must match, and the signature
# counter must advance.
# ---------------------------------------------------------------------------


def _credential_id_bytes(credential: dict[str, Any]) -> bytes:
    return base64url_to_bytes(credential["rawId"])


def _fake_verify_registration(
    *,
    credential: dict[str, Any],
    expected_challenge: bytes,
    expected_rp_id: str,
    expected_origin: str,
    **_: Any,
) -> SimpleNamespace:
    response = credential["response"]
    if base64url_to_bytes(response["challenge"]) != expected_challenge:
        msg = "Client data challenge was not expected challenge"
        raise InvalidRegistrationResponse(msg)
    if response.get("origin", expected_origin) != expected_origin:
        msg = "Unexpected client data origin"
        raise InvalidRegistrationResponse(msg)
    return SimpleNamespace(
        credential_id=_credential_id_bytes(credential),
        credential_public_key=b"public-key-" + _credential_id_bytes(credential),
        sign_count=0,
    )


def _fake_verify_authentication(
    *,
    credential: dict[str, Any],
    expected_challenge: bytes,
    expected_rp_id: str,
    expected_origin: str,
    credential_public_key: bytes,
    credential_current_sign_count: int,
    **_: Any,
) -> SimpleNamespace:
    response = credential["response"]
    if base64url_to_bytes(response["challenge"]) != expected_challenge:
        msg = "Client data challenge was not expected challenge"
        raise InvalidAuthenticationResponse(msg)
    if credential_public_key != b"public-key-" + _credential_id_bytes(credential):
        msg = "Could not verify authentication signature"
        raise InvalidAuthenticationResponse(msg)
    sign_count = response["signCount"]
    if sign_count <= credential_current_sign_count:
        msg = "Response sign count was not greater than current count"
        raise InvalidAuthenticationResponse(msg)
    return SimpleNamespace(credential_id=_credential_id_bytes(credential), new_sign_count=sign_count)


@pytest.fixture()
def fake_webauthn():
    """Patch the WebAuthn verifiers used by PasskeyService."""
    with (
        patch(
            "todoapp.web.auth.passkey_service.verify_registration_response",
            side_effect=_fake_verify_registration,
        ) as reg,
        patch(
            "todoapp.web.auth.passkey_service.verify_authentication_response",
            side_effect=_fake_verify_authentication,
        ) as auth,
    ):
        yield SimpleNamespace(registration=reg, authentication=auth)


@pytest.fixture()
def make_credential():
    """Build a browser-style credential answering the given challenge."""

    def _make(
        challenge: str,
        credential_id: bytes = b"cred-1",
        sign_count: int = 0,
        transports: list[str] | None = None,
    ) -> dict[str, Any]:
        encoded_id = bytes_to_base64url(credential_id)
        return {
            "id": encoded_id,
            "rawId": encoded_id,
            "type": "public-key",
            "response": {
                "challenge": challenge,
                "signCount": sign_count,
                "transports": transports if transports is not None else ["internal"],
            },
        }

    return _make
