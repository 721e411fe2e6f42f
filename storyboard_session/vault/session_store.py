"""
ApiKeySessionStore — short-lived, in-memory references to provider API keys.

Job records persisted by the queue carry only an opaque session token; the
API key itself stays in this process:
- ``create(api_key, provider, project_id)`` — store a key, return a token
- ``get(token)`` — return the session while unexpired, else ``None``
- ``delete(token)`` — idempotent removal after job completion or failure
- ``sweep()`` — drop every expired session, also run periodically by ``init()``

Security Note:
    Never log API keys or ciphertext. Only log the first 8 characters of a
    token. Keys are held encrypted with a token-derived key while stored and
    decrypted only for the duration of a ``get()`` caller's use.
"""
import enum
import time
import asyncio
import logging
import secrets
from dataclasses import dataclass
from typing import Callable, Optional

from pydantic import BaseModel, SecretStr

from .config import SessionStoreConfig
from .crypto import (
    encrypt_for_session,
    decrypt_for_session,
    serialize_value,
    deserialize_value,
)

logger = logging.getLogger("storyboard.vault")

TOKEN_BYTES = 32  # 256 bits of entropy


class Provider(str, enum.Enum):
    """Video generation providers whose keys can be held in a session."""

    SORA = "sora"
    VEO = "veo"


class ApiKeySession(BaseModel):
    """Decrypted view of a stored session, returned by ``get()``."""

    token: str
    api_key: SecretStr
    provider: Provider
    project_id: Optional[str] = None
    created_at: float
    expires_at: float

    model_config = {"frozen": True}

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at


@dataclass
class _SessionRecord:
    provider: Provider
    payload: bytes  # session-layer ciphertext of {"api_key", "project_id"}
    created_at: float
    expires_at: float


def token_prefix(token: Optional[str]) -> str:
    """Loggable form of a token."""
    if not token:
        return "<none>"
    return f"{token[:8]}..."


class ApiKeySessionStore:
    """In-memory API key sessions with TTL expiry and a periodic sweep.

    One instance owns its session map; callers hold tokens only. The sweep
    timer lives on the asyncio loop running when ``init()`` is called.

    Args:
        config: TTL and sweep interval; defaults to ``SessionStoreConfig()``.
        clock: Returns the current time in epoch seconds.
    """

    def __init__(
        self,
        config: Optional[SessionStoreConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._config = config or SessionStoreConfig()
        self._clock = clock
        self._sessions: dict[str, _SessionRecord] = {}
        self._sweep_handle: Optional[asyncio.TimerHandle] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def ttl(self) -> float:
        return self._config.ttl

    @property
    def sweep_interval(self) -> float:
        return self._config.sweep_interval

    @property
    def initialized(self) -> bool:
        return self._sweep_handle is not None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def create(
        self,
        api_key: str,
        provider: Provider | str,
        project_id: Optional[str] = None,
    ) -> str:
        """Store an API key and return the token that references it.

        Args:
            api_key: Provider API key.
            provider: ``Provider`` member or its value (``"sora"``, ``"veo"``).
            project_id: Google Cloud project id (Veo only).

        Returns:
            64-character hex token to be stored in job data instead of the key.

        Raises:
            ValueError: If provider is not a known provider.
        """
        provider = Provider(provider)
        token = secrets.token_hex(TOKEN_BYTES)
        now = self._clock()
        payload = serialize_value({"api_key": api_key, "project_id": project_id})
        self._sessions[token] = _SessionRecord(
            provider=provider,
            payload=encrypt_for_session(payload, token),
            created_at=now,
            expires_at=now + self._config.ttl,
        )
        logger.info(
            "Created API key session for %s: token=%s expires_in=%ss",
            provider.value, token_prefix(token), int(self._config.ttl),
        )
        return token

    def get(self, token: str) -> Optional[ApiKeySession]:
        """Return the session for ``token`` if present and unexpired.

        An expired session is removed on read.
        """
        record = self._sessions.get(token)
        if record is None:
            logger.warning("API key session not found: token=%s", token_prefix(token))
            return None

        if self._clock() > record.expires_at:
            logger.warning(
                "API key session expired: token=%s expired_at=%s",
                token_prefix(token), record.expires_at,
            )
            self._sessions.pop(token, None)
            return None

        data = deserialize_value(decrypt_for_session(record.payload, token))
        return ApiKeySession(
            token=token,
            api_key=data["api_key"],
            provider=record.provider,
            project_id=data.get("project_id"),
            created_at=record.created_at,
            expires_at=record.expires_at,
        )

    def delete(self, token: str) -> bool:
        """Remove a session; calling it for an unknown token is a no-op.

        Returns:
            True if a session was removed.
        """
        if self._sessions.pop(token, None) is None:
            return False
        logger.info("Deleted API key session: token=%s", token_prefix(token))
        return True

    def sweep(self) -> int:
        """Delete every session whose expiry time has been reached.

        Returns:
            Number of sessions removed.
        """
        now = self._clock()
        expired = [
            token for token, record in self._sessions.items()
            if record.expires_at <= now
        ]
        for token in expired:
            del self._sessions[token]
        if expired:
            logger.info(
                "Swept %d expired API key session(s), %d remaining",
                len(expired), len(self._sessions),
            )
        return len(expired)

    def active_count(self) -> int:
        """Number of stored sessions, expired-but-unswept ones included."""
        return len(self._sessions)

    def clear(self) -> None:
        self._sessions.clear()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, token: object) -> bool:
        return token in self._sessions

    def __repr__(self) -> str:
        return (
            f"<ApiKeySessionStore sessions={len(self._sessions)} "
            f"ttl={self._config.ttl}s sweeping={self.initialized}>"
        )

    # ------------------------------------------------------------------
    # Sweep timer lifecycle
    # ------------------------------------------------------------------

    def init(self) -> bool:
        """Start the periodic sweep on the running event loop.

        Safe to call repeatedly. Without a running loop (import time, build
        steps, synchronous scripts) nothing is scheduled.

        Returns:
            True if the timer was started by this call.
        """
        if self._sweep_handle is not None:
            logger.debug("API key session sweep already initialized")
            return False
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; session sweep not started")
            return False
        self._loop = loop
        self._schedule_sweep()
        logger.info(
            "API key session sweep initialized: interval=%ss",
            self._config.sweep_interval,
        )
        return True

    def shutdown(self) -> None:
        """Stop the sweep timer. Stored sessions are kept."""
        if self._sweep_handle is None:
            return
        self._sweep_handle.cancel()
        self._sweep_handle = None
        self._loop = None
        logger.info("API key session sweep stopped")

    def _schedule_sweep(self) -> None:
        self._sweep_handle = self._loop.call_later(
            self._config.sweep_interval, self._run_sweep,
        )

    def _run_sweep(self) -> None:
        try:
            self.sweep()
        finally:
            if self._sweep_handle is not None:
                self._schedule_sweep()


_default_store: Optional[ApiKeySessionStore] = None


def get_session_store() -> ApiKeySessionStore:
    """Return the process-wide store, creating it from the environment once."""
    global _default_store
    if _default_store is None:
        _default_store = ApiKeySessionStore(SessionStoreConfig.from_env())
    return _default_store
