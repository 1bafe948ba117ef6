"""Short-lived challenge storage for WebAuthn ceremonies."""

from __future__ import annotations

import time

from todoapp.types import CeremonyFlow


def challenge_key(flow: CeremonyFlow, username: str) -> str:
    """Build the store key for a username's outstanding challenge in one flow."""
    return f"{flow.value}:{username}"


class InMemoryChallengeStore:
    """Stores WebAuthn challenges with TTL expiry.

    One entry per key; ``set`` overwrites. ``get`` reads without consuming,
    ``pop`` retrieves and deletes. Expired entries are lazily cleaned on
    every operation, so abandoned challenges cannot accumulate.

    The store lives in process memory: separate worker processes each keep
    their own challenges.
    """

    def __init__(self, default_ttl_seconds: int = 300) -> None:
        self._default_ttl = default_ttl_seconds
        self._store: dict[str, tuple[bytes, float]] = {}  # key -> (challenge, expires_at)

    def set(self, key: str, challenge: bytes, ttl_seconds: int | None = None) -> None:
        """Store a challenge with a TTL, replacing any previous one."""
        self._cleanup()
        ttl = self._default_ttl if ttl_seconds is None else ttl_seconds
        self._store[key] = (challenge, time.time() + ttl)

    def get(self, key: str) -> bytes | None:
        """Return the current challenge without consuming it."""
        self._cleanup()
        entry = self._store.get(key)
        if entry is None:
            return None
        return entry[0]

    def pop(self, key: str) -> bytes | None:
        """Retrieve and delete a challenge. Returns None if missing or expired."""
        self._cleanup()
        entry = self._store.pop(key, None)
        if entry is None:
            return None
        return entry[0]

    def delete(self, key: str) -> None:
        """Remove a challenge. Missing keys are ignored."""
        self._store.pop(key, None)

    def __len__(self) -> int:
        self._cleanup()
        return len(self._store)

    def _cleanup(self) -> None:
        """Remove expired entries."""
        now = time.time()
        expired = [k for k, (_, exp) in self._store.items() if now > exp]
        for k in expired:
            del self._store[k]
