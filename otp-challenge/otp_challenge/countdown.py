"""
Countdowns
==========
Resend cooldown and session validity countdowns.

Both are always recomputed from the stored absolute timestamps, never from
a decrementing counter, so a stalled ticker or a restarted process picks up
the correct remaining time.
"""

import asyncio
import math
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, AsyncIterator, Awaitable, Callable, Optional

from .config import ChallengeConfig
from .models import ChallengeSession, RemainingTime

if TYPE_CHECKING:
    from .service import ChallengeService


def seconds_left(target: datetime, now: datetime) -> int:
    """Whole seconds until ``target``, rounded up, never negative."""
    return max(0, math.ceil((target - now).total_seconds()))


def cooldown_ends_at(session: ChallengeSession, config: ChallengeConfig) -> datetime:
    """When the resend action becomes available for the current code."""
    return session.issued_at + timedelta(seconds=config.resend_cooldown_seconds)


def remaining_for(
    session: Optional[ChallengeSession],
    config: ChallengeConfig,
    now: datetime,
) -> RemainingTime:
    """Derive a countdown snapshot for a session (or for no session)."""
    if session is None:
        return RemainingTime(
            cooldown_seconds_left=0,
            validity_seconds_left=0,
            resend_attempts_left=config.max_resend_attempts,
            session_exists=False,
        )

    return RemainingTime(
        cooldown_seconds_left=seconds_left(cooldown_ends_at(session, config), now),
        validity_seconds_left=seconds_left(session.expires_at, now),
        resend_attempts_left=max(0, config.max_resend_attempts - session.resend_count),
        session_exists=True,
    )


def format_clock(seconds: int) -> str:
    """Format seconds as ``mm:ss`` for "resend in" displays."""
    seconds = max(0, int(seconds))
    return f"{seconds // 60:02d}:{seconds % 60:02d}"


async def countdown(
    service: "ChallengeService",
    recipient: str,
    interval: float = 1.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> AsyncIterator[RemainingTime]:
    """
    Yield a fresh countdown snapshot every ``interval`` seconds.

    Every tick re-reads the session and recomputes from its timestamps.
    Stops once the session is gone or both countdowns reached zero.

    Usage:
        async for snapshot in countdown(service, "a@x.com"):
            render(format_clock(snapshot.cooldown_seconds_left))
    """
    while True:
        snapshot = await service.get_remaining(recipient)
        yield snapshot

        if not snapshot.session_exists:
            return
        if snapshot.cooldown_seconds_left == 0 and snapshot.validity_seconds_left == 0:
            return

        await sleep(interval)
