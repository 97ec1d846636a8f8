"""
Shared fixtures for otp-challenge tests.
"""

from datetime import datetime, timedelta, timezone

import pytest


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class SequenceCodes:
    """Code generator returning predetermined codes in order."""

    def __init__(self, *codes: str):
        self._codes = list(codes)
        self.calls = 0

    def __call__(self, length: int = 6, previous=None) -> str:
        code = self._codes[self.calls]
        self.calls += 1
        return code


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def channel():
    from otp_challenge.delivery import LogDeliveryChannel

    return LogDeliveryChannel(outbox_size=10)


@pytest.fixture
def store():
    from otp_challenge.store import InMemorySessionStore

    return InMemorySessionStore(lock_timeout=0.5)


@pytest.fixture
def service(store, channel, clock):
    from otp_challenge.service import ChallengeService

    return ChallengeService(store=store, channel=channel, clock=clock)
