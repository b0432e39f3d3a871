"""
Server-side sessions.

A session maps an opaque token held in the client's cookie to a user id.
Expiry is sliding: every successful resolve pushes it out by the full TTL.

InMemorySessionStore is process-local and only suitable for a single
worker; multi-process deployments use RedisSessionStore
(inkwell.clients.redis_client).
"""
import logging
import secrets
import time
from abc import ABC, abstractmethod
from typing import Callable, Optional

from inkwell.config import Settings

logger = logging.getLogger(__name__)


def new_token() -> str:
    return secrets.token_urlsafe(32)


class SessionStore(ABC):
    def __init__(self, ttl_seconds: int) -> None:
        self.ttl_seconds = ttl_seconds

    @abstractmethod
    async def create(self, user_id: int) -> str:
        """Start a session for user_id and return its token."""

    @abstractmethod
    async def resolve(self, token: str) -> Optional[int]:
        """Return the session's user id and renew its expiry, or None."""

    @abstractmethod
    async def revoke(self, token: str) -> None: ...

    async def close(self) -> None:
        pass


class InMemorySessionStore(SessionStore):
    def __init__(self, ttl_seconds: int, clock: Callable[[], float] = time.monotonic) -> None:
        super().__init__(ttl_seconds)
        self._clock = clock
        self._sessions: dict[str, tuple[int, float]] = {}

    def _sweep(self, now: float) -> None:
        expired = [t for t, (_, expires_at) in self._sessions.items() if expires_at <= now]
        for token in expired:
            del self._sessions[token]
        if expired:
            logger.debug("Swept %d expired sessions", len(expired))

    async def create(self, user_id: int) -> str:
        now = self._clock()
        self._sweep(now)
        token = new_token()
        self._sessions[token] = (user_id, now + self.ttl_seconds)
        return token

    async def resolve(self, token: str) -> Optional[int]:
        now = self._clock()
        entry = self._sessions.get(token)
        if entry is None:
            return None
        user_id, expires_at = entry
        if expires_at <= now:
            del self._sessions[token]
            return None
        self._sessions[token] = (user_id, now + self.ttl_seconds)
        return user_id

    async def revoke(self, token: str) -> None:
        self._sessions.pop(token, None)


async def init_session_store(settings: Settings) -> SessionStore:
    if settings.session_backend == "redis":
        from inkwell.clients.redis_client import init_redis, RedisSessionStore

        return RedisSessionStore(await init_redis(settings), settings.session_ttl_seconds)
    if settings.session_backend != "memory":
        raise ValueError(f"Unknown session backend '{settings.session_backend}'")
    logger.warning("Using in-memory sessions; they are not shared between worker processes")
    return InMemorySessionStore(settings.session_ttl_seconds)
