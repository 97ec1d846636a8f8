"""
Tests for Session Stores
========================
In-memory and Redis-backed session storage.
"""

import json
import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import LockError

from otp_challenge.config import ChallengeConfig
from otp_challenge.exceptions import StoreTimeoutError, StoreUnavailableError
from otp_challenge.models import ChallengeSession
from otp_challenge.service import ChallengeService
from otp_challenge.store import InMemorySessionStore, RedisSessionStore

NOW = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_session(recipient="a@x.com", **overrides):
    values = dict(
        recipient_primary=recipient,
        code="482913",
        issued_at=NOW,
        expires_at=NOW + timedelta(minutes=5),
        session_created_at=NOW,
    )
    values.update(overrides)
    return ChallengeSession(**values)


class FakeRedisLock:
    def __init__(self, owner, name):
        self.owner = owner
        self.name = name

    async def acquire(self):
        if self.name in self.owner.held:
            return False
        self.owner.held.add(self.name)
        return True

    async def release(self):
        self.owner.held.discard(self.name)


class FakeRedis:
    """Just enough of redis.asyncio.Redis for the session store."""

    def __init__(self):
        self.data = {}
        self.expiry = {}
        self.held = set()

    async def get(self, key):
        value = self.data.get(key)
        return value.encode() if value is not None else None

    async def set(self, key, value, ex=None):
        self.data[key] = value
        self.expiry[key] = ex

    async def delete(self, key):
        return 1 if self.data.pop(key, None) is not None else 0

    def lock(self, name, timeout=None, blocking_timeout=None):
        return FakeRedisLock(self, name)

    async def aclose(self):
        pass


class TestInMemoryStore:
    """Tests for the in-memory store."""

    @pytest.mark.asyncio
    async def test_save_and_get(self):
        store = InMemorySessionStore()
        await store.save(make_session())

        session = await store.get("a@x.com")

        assert session.code == "482913"
        assert await store.get("b@x.com") is None

    @pytest.mark.asyncio
    async def test_returns_copies(self):
        """Changing a fetched session does nothing until saved."""
        store = InMemorySessionStore()
        original = make_session()
        await store.save(original)

        fetched = await store.get("a@x.com")
        fetched.verification_attempts = 4
        original.verification_attempts = 3

        assert (await store.get("a@x.com")).verification_attempts == 0

    @pytest.mark.asyncio
    async def test_delete(self):
        store = InMemorySessionStore()
        await store.save(make_session())

        assert await store.delete("a@x.com") is True
        assert await store.delete("a@x.com") is False
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_lock_is_exclusive(self):
        store = InMemorySessionStore(lock_timeout=0.05)

        async with store.lock("a@x.com"):
            with pytest.raises(StoreTimeoutError):
                async with store.lock("a@x.com"):
                    pass

        async with store.lock("a@x.com"):
            pass

    @pytest.mark.asyncio
    async def test_unused_locks_are_dropped(self):
        import gc

        store = InMemorySessionStore()
        async with store.lock("a@x.com"):
            assert "a@x.com" in store._locks

        gc.collect()
        assert "a@x.com" not in store._locks

    @pytest.mark.asyncio
    async def test_records_expire_after_ttl(self, clock):
        store = InMemorySessionStore(ttl=600, clock=clock)
        await store.save(make_session())

        clock.advance(599)
        assert await store.get("a@x.com") is not None

        clock.advance(1)
        assert await store.get("a@x.com") is None
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_save_refreshes_ttl(self, clock):
        store = InMemorySessionStore(ttl=600, clock=clock)
        await store.save(make_session())

        clock.advance(500)
        await store.save(make_session())
        clock.advance(500)

        assert await store.get("a@x.com") is not None

    @pytest.mark.asyncio
    async def test_abandoned_records_are_purged(self, clock):
        store = InMemorySessionStore(ttl=600, clock=clock)
        for i in range(50):
            await store.save(make_session(f"user{i}@x.com"))

        clock.advance(3600)
        await store.save(make_session("fresh@x.com"))

        assert len(store) == 1
        assert store.purge_expired() == 0


class TestRedisStore:
    """Tests for the Redis store against a mocked client."""

    @pytest.mark.asyncio
    async def test_get_decodes_record(self):
        client = MagicMock()
        client.get = AsyncMock(return_value=json.dumps(make_session().to_dict()).encode())
        store = RedisSessionStore(client)

        session = await store.get("a@x.com")

        assert session == make_session()
        client.get.assert_awaited_once_with("otp:challenge:a@x.com")

    @pytest.mark.asyncio
    async def test_get_missing(self):
        client = MagicMock()
        client.get = AsyncMock(return_value=None)

        assert await RedisSessionStore(client).get("a@x.com") is None

    @pytest.mark.asyncio
    async def test_save_sets_ttl(self):
        client = MagicMock()
        client.set = AsyncMock()
        store = RedisSessionStore(client, ttl=900, prefix="auth")

        await store.save(make_session())

        key, payload = client.set.await_args.args
        assert key == "auth:challenge:a@x.com"
        assert json.loads(payload)["code"] == "482913"
        assert client.set.await_args.kwargs["ex"] == 900

    @pytest.mark.asyncio
    async def test_redis_errors_become_store_errors(self):
        client = MagicMock()
        client.get = AsyncMock(side_effect=RedisConnectionError("connection refused"))
        client.set = AsyncMock(side_effect=RedisConnectionError("connection refused"))
        client.delete = AsyncMock(side_effect=RedisConnectionError("connection refused"))
        store = RedisSessionStore(client)

        with pytest.raises(StoreUnavailableError):
            await store.get("a@x.com")
        with pytest.raises(StoreUnavailableError):
            await store.save(make_session())
        with pytest.raises(StoreUnavailableError):
            await store.delete("a@x.com")

    @pytest.mark.asyncio
    async def test_corrupt_record(self):
        client = MagicMock()
        client.get = AsyncMock(return_value=b"{not json")

        with pytest.raises(StoreUnavailableError):
            await RedisSessionStore(client).get("a@x.com")

    @pytest.mark.asyncio
    async def test_lock_not_acquired(self):
        lock = MagicMock()
        lock.acquire = AsyncMock(return_value=False)
        client = MagicMock()
        client.lock.return_value = lock
        store = RedisSessionStore(client, lock_timeout=0.1, lock_ttl=5)

        with pytest.raises(StoreTimeoutError):
            async with store.lock("a@x.com"):
                pass

        client.lock.assert_called_once_with("otp:lock:a@x.com", timeout=5, blocking_timeout=0.1)

    @pytest.mark.asyncio
    async def test_lock_release_after_expiry_is_tolerated(self):
        lock = MagicMock()
        lock.acquire = AsyncMock(return_value=True)
        lock.release = AsyncMock(side_effect=LockError("Cannot release an unlocked lock"))
        client = MagicMock()
        client.lock.return_value = lock

        async with RedisSessionStore(client).lock("a@x.com"):
            pass

        lock.release.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_lock_release_failure_is_logged_not_raised(self):
        lock = MagicMock()
        lock.acquire = AsyncMock(return_value=True)
        lock.release = AsyncMock(side_effect=RedisConnectionError("connection reset"))
        client = MagicMock()
        client.lock.return_value = lock
        client.set = AsyncMock()
        store = RedisSessionStore(client)

        async with store.lock("a@x.com"):
            await store.save(make_session())

        client.set.assert_awaited_once()
        lock.release.assert_awaited_once()

    def test_from_config(self):
        client = MagicMock()
        config = ChallengeConfig(record_ttl_seconds=900, lock_timeout_seconds=0.5)

        store = RedisSessionStore.from_config(client, config, prefix="auth")

        assert store.redis is client
        assert store.ttl == 900
        assert store.lock_timeout == 0.5
        assert store.prefix == "auth"


class TestServiceOnRedis:
    """Full lifecycle through the Redis store."""

    @pytest.mark.asyncio
    async def test_lifecycle(self, channel, clock):
        redis_client = FakeRedis()
        store = RedisSessionStore(redis_client, ttl=3600)
        service = ChallengeService(store=store, channel=channel, clock=clock)

        await service.issue("a@x.com", "+923001234567")
        assert redis_client.expiry["otp:challenge:a@x.com"] == 3600

        wrong = await service.verify("a@x.com", "bad")
        assert wrong.attempts_remaining == 4

        resent = await service.resend("a@x.com")
        stored = json.loads(redis_client.data["otp:challenge:a@x.com"])
        assert stored["code"] == resent.new_code
        assert stored["verification_attempts"] == 0
        assert stored["resend_count"] == 1

        assert (await service.verify("a@x.com", resent.new_code)).valid is True
        assert "otp:challenge:a@x.com" not in redis_client.data
        assert redis_client.held == set()
