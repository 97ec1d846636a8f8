"""
In-Memory Session Store
=======================
Process-local session store for development, tests and single-process apps.
"""

import asyncio
import dataclasses
import weakref
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator, Callable, Dict, Optional, Tuple
import structlog

from ..exceptions import StoreTimeoutError
from ..masking import mask_recipient
from ..models import ChallengeSession
from .base import SessionStore

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemorySessionStore(SessionStore):
    """
    Dictionary-backed session store with per-recipient asyncio locks.

    Records are dropped ``ttl`` seconds after their last save, like the
    Redis store's key expiry. Locks live in a weak dictionary, so a
    recipient's lock disappears once nobody holds or waits on it.
    Use RedisSessionStore when several processes share sessions.
    """

    name = "memory"

    def __init__(
        self,
        lock_timeout: float = 2.0,
        ttl: float = 3600,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Args:
            lock_timeout: Seconds to wait for a recipient lock
            ttl: Record lifetime in seconds, refreshed on every save
            clock: Returns the current aware UTC datetime
        """
        self.lock_timeout = lock_timeout
        self.ttl = ttl
        self._clock = clock or _utcnow
        self._sessions: Dict[str, Tuple[ChallengeSession, datetime]] = {}
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    def purge_expired(self) -> int:
        """Drop every record past its TTL. Returns how many were dropped."""
        now = self._clock()
        stale = [r for r, (_, drop_at) in self._sessions.items() if drop_at <= now]
        for recipient in stale:
            del self._sessions[recipient]

        if stale:
            logger.debug("Expired session records dropped", count=len(stale))
        return len(stale)

    async def get(self, recipient: str) -> Optional[ChallengeSession]:
        entry = self._sessions.get(recipient)
        if entry is None:
            return None

        session, drop_at = entry
        if drop_at <= self._clock():
            del self._sessions[recipient]
            return None
        return dataclasses.replace(session)

    async def save(self, session: ChallengeSession) -> None:
        self.purge_expired()
        drop_at = self._clock() + timedelta(seconds=self.ttl)
        self._sessions[session.recipient_primary] = (dataclasses.replace(session), drop_at)

    async def delete(self, recipient: str) -> bool:
        return self._sessions.pop(recipient, None) is not None

    @asynccontextmanager
    async def lock(self, recipient: str) -> AsyncIterator[None]:
        lock = self._locks.get(recipient)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[recipient] = lock

        try:
            await asyncio.wait_for(lock.acquire(), timeout=self.lock_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Session lock timed out",
                recipient=mask_recipient(recipient),
                timeout=self.lock_timeout,
            )
            raise StoreTimeoutError(
                f"Timed out waiting {self.lock_timeout}s for session lock",
                recipient=recipient,
            )

        try:
            yield
        finally:
            lock.release()

    def __len__(self) -> int:
        return len(self._sessions)
