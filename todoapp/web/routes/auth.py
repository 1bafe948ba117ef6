"""Authentication routes: passkey WebAuthn, password fallback, logout."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, Field

from todoapp.config.settings import get_settings
from todoapp.exceptions import (
    ChallengeNotFoundError,
    CredentialNotFoundError,
    InvalidCredentialsError,
    UserExistsError,
    UserNotFoundError,
    VerificationError,
)
from todoapp.models.database import User, require_id
from todoapp.web.auth.passkey_service import PasskeyService
from todoapp.web.auth.passwords import MIN_PASSWORD_LENGTH, PasswordAuthService
from todoapp.web.auth.session import SessionData, get_session_auth, require_auth
from todoapp.web.dependencies import get_passkey_service, get_password_service

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _start_session(response: Response, user: User) -> None:
    """Issue a session token for the user and set it as a cookie."""
    auth = get_session_auth()
    token = auth.create_session(require_id(user), user.username)
    auth.set_cookie(response, token, secure=not get_settings().debug)


# ---------------------------------------------------------------------------
# Passkey WebAuthn endpoints
# ---------------------------------------------------------------------------


class UsernameRequest(BaseModel):
    username: str = Field(min_length=1, max_length=64)


class CeremonyResponseRequest(BaseModel):
    username: str = Field(min_length=1, max_length=64)
    response: dict[str, Any]  # PublicKeyCredential JSON from the browser


@router.post("/register-options")
async def register_options(
    body: UsernameRequest,
    passkeys: PasskeyService = Depends(get_passkey_service),
) -> dict[str, Any]:
    """Begin passkey registration, creating the user on first use."""
    try:
        return await passkeys.begin_registration(body.username)
    except Exception as exc:
        logger.exception("registration_options_failed", username=body.username)
        raise HTTPException(status_code=500, detail="Failed to generate options") from exc


@router.post("/register-verify")
async def register_verify(
    body: CeremonyResponseRequest,
    response: Response,
    passkeys: PasskeyService = Depends(get_passkey_service),
) -> dict[str, Any]:
    """Complete passkey registration and create a session."""
    try:
        user = await passkeys.complete_registration(body.username, body.response)
    except UserNotFoundError as exc:
        raise HTTPException(status_code=404, detail="User not found") from exc
    except ChallengeNotFoundError as exc:
        raise HTTPException(status_code=400, detail="Challenge not found") from exc
    except VerificationError as exc:
        logger.warning("passkey_registration_failed", username=body.username, error=str(exc))
        raise HTTPException(status_code=400, detail="Verification failed") from exc
    except Exception as exc:
        logger.exception("registration_verify_error", username=body.username)
        raise HTTPException(status_code=500, detail="Verification failed") from exc

    _start_session(response, user)
    return {"verified": True, "message": "Registration successful"}


@router.post("/login-options")
async def login_options(
    body: UsernameRequest,
    passkeys: PasskeyService = Depends(get_passkey_service),
) -> dict[str, Any]:
    """Begin passkey authentication for a user's registered authenticators."""
    try:
        return await passkeys.begin_authentication(body.username)
    except UserNotFoundError as exc:
        raise HTTPException(status_code=404, detail="User not found") from exc
    except CredentialNotFoundError as exc:
        raise HTTPException(status_code=404, detail="No authenticators found") from exc
    except Exception as exc:
        logger.exception("authentication_options_failed", username=body.username)
        raise HTTPException(status_code=500, detail="Failed to generate options") from exc


@router.post("/login-verify")
async def login_verify(
    body: CeremonyResponseRequest,
    response: Response,
    passkeys: PasskeyService = Depends(get_passkey_service),
) -> dict[str, Any]:
    """Complete passkey authentication and create a session."""
    try:
        user = await passkeys.complete_authentication(body.username, body.response)
    except UserNotFoundError as exc:
        raise HTTPException(status_code=404, detail="User not found") from exc
    except CredentialNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Authenticator not found") from exc
    except ChallengeNotFoundError as exc:
        raise HTTPException(status_code=400, detail="Challenge not found") from exc
    except VerificationError as exc:
        logger.warning("passkey_auth_failed", username=body.username, error=str(exc))
        raise HTTPException(status_code=400, detail="Verification failed") from exc
    except Exception as exc:
        logger.exception("authentication_verify_error", username=body.username)
        raise HTTPException(status_code=500, detail="Verification failed") from exc

    _start_session(response, user)
    return {"verified": True, "message": "Login successful"}


# ---------------------------------------------------------------------------
# Password fallback
# ---------------------------------------------------------------------------


class PasswordRequest(BaseModel):
    username: str = Field(min_length=1, max_length=64)
    password: str = Field(min_length=1)


@router.post("/dev-register")
async def dev_register(
    body: PasswordRequest,
    response: Response,
    passwords: PasswordAuthService = Depends(get_password_service),
) -> dict[str, Any]:
    """Create a password account and log it in."""
    if len(body.password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(
            status_code=400,
            detail=f"Password must be at least {MIN_PASSWORD_LENGTH} characters long",
        )
    try:
        user = await passwords.register(body.username, body.password)
    except UserExistsError as exc:
        raise HTTPException(
            status_code=409, detail="Username already taken. Please choose another or login."
        ) from exc

    _start_session(response, user)
    return {"message": "Registration successful", "user": {"id": user.id, "username": user.username}}


@router.post("/dev-login")
async def dev_login(
    body: PasswordRequest,
    response: Response,
    passwords: PasswordAuthService = Depends(get_password_service),
) -> dict[str, Any]:
    """Log in with a username and password."""
    try:
        user = await passwords.login(body.username, body.password)
    except UserNotFoundError as exc:
        raise HTTPException(
            status_code=404, detail="User not found. Please register first."
        ) from exc
    except InvalidCredentialsError as exc:
        raise HTTPException(status_code=401, detail="Invalid password") from exc

    _start_session(response, user)
    return {"message": "Login successful", "user": {"id": user.id, "username": user.username}}


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


@router.get("/me")
async def me(session: SessionData = Depends(require_auth)) -> dict[str, Any]:
    return {"user_id": session.user_id, "username": session.username}


@router.post("/logout")
async def logout(response: Response) -> dict[str, str]:
    """Clear the session cookie."""
    get_session_auth().clear_cookie(response)
    return {"message": "Logged out successfully"}
