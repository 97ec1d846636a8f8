"""
Redis Session Store
===================
Redis-backed session store shared between processes, with distributed
per-recipient locks.
"""

import json
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional
import structlog
from redis.asyncio import Redis
from redis.exceptions import LockError, RedisError

from ..config import ChallengeConfig
from ..exceptions import StoreTimeoutError, StoreUnavailableError
from ..masking import mask_recipient
from ..models import ChallengeSession
from .base import SessionStore

logger = structlog.get_logger(__name__)


class RedisSessionStore(SessionStore):
    """
    Redis-backed session store.

    Each session is one JSON string written with a single SET, so updates
    are all-or-nothing. Records expire after ``ttl`` seconds of inactivity.
    """

    name = "redis"

    def __init__(
        self,
        redis_client: Redis,
        ttl: int = 3600,
        lock_timeout: float = 2.0,
        lock_ttl: float = 10.0,
        prefix: str = "otp",
    ):
        """
        Args:
            redis_client: Async Redis client
            ttl: Record lifetime in seconds, refreshed on every save
            lock_timeout: Seconds to wait for a recipient lock
            lock_ttl: Seconds after which a held lock is released by Redis
            prefix: Key namespace
        """
        self.redis = redis_client
        self.ttl = ttl
        self.lock_timeout = lock_timeout
        self.lock_ttl = lock_ttl
        self.prefix = prefix

    @classmethod
    def from_url(cls, url: str, **kwargs) -> "RedisSessionStore":
        """Create a store from a redis:// URL."""
        return cls(Redis.from_url(url), **kwargs)

    @classmethod
    def from_config(cls, redis_client: Redis, config: ChallengeConfig, **kwargs) -> "RedisSessionStore":
        """Create a store using the record TTL and lock timeout of a ChallengeConfig."""
        kwargs.setdefault("ttl", config.record_ttl_seconds)
        kwargs.setdefault("lock_timeout", config.lock_timeout_seconds)
        return cls(redis_client, **kwargs)

    def _key(self, recipient: str) -> str:
        return f"{self.prefix}:challenge:{recipient}"

    def _lock_key(self, recipient: str) -> str:
        return f"{self.prefix}:lock:{recipient}"

    async def get(self, recipient: str) -> Optional[ChallengeSession]:
        try:
            raw = await self.redis.get(self._key(recipient))
        except RedisError as e:
            logger.error("Session read failed", recipient=mask_recipient(recipient), error=str(e))
            raise StoreUnavailableError(f"Session read failed: {e}", recipient=recipient)

        if raw is None:
            return None

        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")

        try:
            return ChallengeSession.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError) as e:
            logger.error("Corrupt session record", recipient=mask_recipient(recipient), error=str(e))
            raise StoreUnavailableError(f"Corrupt session record: {e}", recipient=recipient)

    async def save(self, session: ChallengeSession) -> None:
        payload = json.dumps(session.to_dict(), separators=(",", ":"))
        try:
            await self.redis.set(self._key(session.recipient_primary), payload, ex=self.ttl)
        except RedisError as e:
            logger.error(
                "Session write failed",
                recipient=mask_recipient(session.recipient_primary),
                error=str(e),
            )
            raise StoreUnavailableError(
                f"Session write failed: {e}", recipient=session.recipient_primary
            )

    async def delete(self, recipient: str) -> bool:
        try:
            removed = await self.redis.delete(self._key(recipient))
        except RedisError as e:
            logger.error("Session delete failed", recipient=mask_recipient(recipient), error=str(e))
            raise StoreUnavailableError(f"Session delete failed: {e}", recipient=recipient)
        return bool(removed)

    @asynccontextmanager
    async def lock(self, recipient: str) -> AsyncIterator[None]:
        lock = self.redis.lock(
            self._lock_key(recipient),
            timeout=self.lock_ttl,
            blocking_timeout=self.lock_timeout,
        )

        try:
            acquired = await lock.acquire()
        except RedisError as e:
            raise StoreUnavailableError(f"Session lock failed: {e}", recipient=recipient)

        if not acquired:
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
            try:
                await lock.release()
            except LockError as e:
                # Lock TTL elapsed while held; Redis already dropped it
                logger.warning(
                    "Session lock expired before release",
                    recipient=mask_recipient(recipient),
                    error=str(e),
                )
            except RedisError as e:
                # The guarded work already committed; the lock expires by its TTL
                logger.error(
                    "Session lock release failed",
                    recipient=mask_recipient(recipient),
                    error=str(e),
                )

    async def close(self) -> None:
        await self.redis.aclose()
