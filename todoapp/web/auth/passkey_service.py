"""WebAuthn passkey service: registration and authentication ceremonies."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import structlog
from webauthn import (
    generate_authentication_options,
    generate_registration_options,
    options_to_json,
    verify_authentication_response,
    verify_registration_response,
)
from webauthn.helpers import base64url_to_bytes, bytes_to_base64url
from webauthn.helpers.structs import (
    AttestationConveyancePreference,
    AuthenticatorSelectionCriteria,
    AuthenticatorTransport,
    PublicKeyCredentialDescriptor,
    ResidentKeyRequirement,
    UserVerificationRequirement,
)

from todoapp.exceptions import (
    ChallengeNotFoundError,
    CredentialExistsError,
    CredentialNotFoundError,
    UserNotFoundError,
    VerificationError,
)
from todoapp.models.database import Authenticator, User, _utc_now, require_id
from todoapp.types import CeremonyFlow
from todoapp.web.auth.challenge_store import InMemoryChallengeStore, challenge_key

if TYPE_CHECKING:
    from todoapp.storage.repositories.authenticators import DatabaseAuthenticatorRepository
    from todoapp.storage.repositories.users import DatabaseUserRepository

logger = structlog.get_logger(__name__)


class PasskeyService:
    """Orchestrates WebAuthn registration and authentication ceremonies.

    Challenges are keyed by (flow, username). A challenge is consumed only
    when its ceremony succeeds; a failed verification leaves it in place so
    the client may retry until it expires or is replaced by a new request.
    """

    def __init__(
        self,
        authenticator_repo: DatabaseAuthenticatorRepository,
        user_repo: DatabaseUserRepository,
        challenges: InMemoryChallengeStore,
        rp_id: str,
        rp_name: str,
        origin: str,
        timeout_ms: int = 60000,
    ) -> None:
        self._authenticator_repo = authenticator_repo
        self._user_repo = user_repo
        self._challenges = challenges
        self._rp_id = rp_id
        self._rp_name = rp_name
        self._origin = origin
        self._timeout_ms = timeout_ms

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    async def begin_registration(self, username: str) -> dict[str, Any]:
        """Generate registration options, creating a password-less user if needed.

        Returns a JSON-serializable dict of PublicKeyCredentialCreationOptions.
        """
        user = await self._user_repo.get_or_create(username)
        existing = await self._authenticator_repo.list_for_user(require_id(user))

        options = generate_registration_options(
            rp_id=self._rp_id,
            rp_name=self._rp_name,
            user_id=str(user.id).encode(),
            user_name=username,
            attestation=AttestationConveyancePreference.NONE,
            authenticator_selection=AuthenticatorSelectionCriteria(
                resident_key=ResidentKeyRequirement.PREFERRED,
                user_verification=UserVerificationRequirement.PREFERRED,
            ),
            exclude_credentials=[
                PublicKeyCredentialDescriptor(
                    id=base64url_to_bytes(a.credential_id),
                    transports=_parse_transports(a.transports),
                )
                for a in existing
            ],
            timeout=self._timeout_ms,
        )

        self._challenges.set(challenge_key(CeremonyFlow.REGISTRATION, username), options.challenge)
        logger.info("registration_options_issued", username=username, user_id=user.id)
        return json.loads(options_to_json(options))

    async def complete_registration(self, username: str, credential: dict[str, Any]) -> User:
        """Verify attestation and persist the new authenticator."""
        user = await self._user_repo.get_by_username(username)
        if user is None:
            msg = f"User not found: {username}"
            raise UserNotFoundError(msg)

        key = challenge_key(CeremonyFlow.REGISTRATION, username)
        expected_challenge = self._challenges.get(key)
        if expected_challenge is None:
            msg = "Challenge not found"
            raise ChallengeNotFoundError(msg)

        try:
            verified = verify_registration_response(
                credential=credential,
                expected_challenge=expected_challenge,
                expected_rp_id=self._rp_id,
                expected_origin=self._origin,
            )
        except Exception as exc:
            msg = f"Registration verification failed: {exc}"
            raise VerificationError(msg) from exc

        response = credential.get("response") or {}
        authenticator = Authenticator(
            user_id=require_id(user),
            credential_id=bytes_to_base64url(verified.credential_id),
            public_key=verified.credential_public_key,
            counter=verified.sign_count,
            transports=json.dumps(response.get("transports") or []),
        )
        try:
            await self._authenticator_repo.create(authenticator)
        except CredentialExistsError as exc:
            msg = "Registration verification failed: credential already registered"
            raise VerificationError(msg) from exc
        self._challenges.delete(key)

        logger.info("passkey_registered", user_id=user.id, username=username)
        return user

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    async def begin_authentication(self, username: str) -> dict[str, Any]:
        """Generate authentication options scoped to the user's authenticators."""
        user = await self._user_repo.get_by_username(username)
        if user is None:
            msg = f"User not found: {username}"
            raise UserNotFoundError(msg)

        authenticators = await self._authenticator_repo.list_for_user(require_id(user))
        if not authenticators:
            msg = "No authenticators found"
            raise CredentialNotFoundError(msg)

        options = generate_authentication_options(
            rp_id=self._rp_id,
            allow_credentials=[
                PublicKeyCredentialDescriptor(
                    id=base64url_to_bytes(a.credential_id),
                    transports=_parse_transports(a.transports),
                )
                for a in authenticators
            ],
            user_verification=UserVerificationRequirement.PREFERRED,
            timeout=self._timeout_ms,
        )

        self._challenges.set(
            challenge_key(CeremonyFlow.AUTHENTICATION, username), options.challenge
        )
        logger.info("authentication_options_issued", username=username, user_id=user.id)
        return json.loads(options_to_json(options))

    async def complete_authentication(self, username: str, credential: dict[str, Any]) -> User:
        """Verify assertion, persist the new counter, return the authenticated user."""
        user = await self._user_repo.get_by_username(username)
        if user is None:
            msg = f"User not found: {username}"
            raise UserNotFoundError(msg)

        key = challenge_key(CeremonyFlow.AUTHENTICATION, username)
        expected_challenge = self._challenges.get(key)
        if expected_challenge is None:
            msg = "Challenge not found"
            raise ChallengeNotFoundError(msg)

        stored = await self._find_authenticator(credential)
        if stored is None or stored.user_id != user.id:
            msg = "Authenticator not found"
            raise CredentialNotFoundError(msg)

        try:
            verified = verify_authentication_response(
                credential=credential,
                expected_challenge=expected_challenge,
                expected_rp_id=self._rp_id,
                expected_origin=self._origin,
                credential_public_key=stored.public_key,
                credential_current_sign_count=stored.counter,
            )
        except Exception as exc:
            msg = f"Authentication verification failed: {exc}"
            raise VerificationError(msg) from exc

        await self._authenticator_repo.update_counter(
            credential_id=stored.credential_id,
            new_counter=verified.new_sign_count,
            last_used_at=_utc_now(),
        )
        self._challenges.delete(key)

        logger.info("passkey_authenticated", user_id=user.id, username=username)
        return user

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _find_authenticator(self, credential: dict[str, Any]) -> Authenticator | None:
        """Look up the stored authenticator named by the response's credential ID."""
        raw_id = credential.get("rawId") or credential.get("id")
        if not isinstance(raw_id, str) or not raw_id:
            return None
        try:
            credential_id = bytes_to_base64url(base64url_to_bytes(raw_id))
        except ValueError:
            return None
        return await self._authenticator_repo.get_by_credential_id(credential_id)


def _parse_transports(transports_json: str) -> list[AuthenticatorTransport]:
    """Parse JSON transport strings into AuthenticatorTransport enums."""
    if not transports_json or transports_json == "[]":
        return []
    raw = json.loads(transports_json)
    result: list[AuthenticatorTransport] = []
    for t in raw:
        try:
            result.append(AuthenticatorTransport(t))
        except ValueError:
            continue
    return result
