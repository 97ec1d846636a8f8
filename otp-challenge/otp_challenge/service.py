"""
Challenge Service
=================
Issue, verify, resend and cancel OTP challenges.

All mutating operations for one recipient run under that recipient's store
lock. Delivery happens outside the lock and never rolls back a stored code.
"""

import asyncio
import hmac
import math
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional, TypeVar
import structlog

from .config import ChallengeConfig
from .countdown import cooldown_ends_at, remaining_for, seconds_left
from .delivery import CodeMessage, DeliveryChannel, LogDeliveryChannel
from .errors import FailureReason
from .exceptions import StoreTimeoutError
from .generator import generate_code
from .masking import mask_recipient
from .models import (
    ChallengeSession,
    DeliveryResult,
    IssueResult,
    RemainingTime,
    ResendResult,
    VerifyResult,
)
from .store import InMemorySessionStore, SessionStore

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def codes_match(submitted: str, expected: str) -> bool:
    """
    Constant-time code comparison.

    Compares UTF-8 bytes so input of any shape (wrong length, non-digits,
    non-ASCII) is simply a mismatch.
    """
    if not isinstance(submitted, str):
        submitted = "" if submitted is None else str(submitted)
    return hmac.compare_digest(submitted.encode("utf-8"), expected.encode("utf-8"))


class ChallengeService:
    """
    OTP challenge lifecycle.

    Example:
        service = ChallengeService(channel=EmailJSDeliveryChannel())

        await service.issue("a@x.com")
        result = await service.verify("a@x.com", "482913")
        if not result.valid:
            show(result.message)
    """

    def __init__(
        self,
        store: Optional[SessionStore] = None,
        channel: Optional[DeliveryChannel] = None,
        config: Optional[ChallengeConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
        code_generator: Optional[Callable[..., str]] = None,
    ):
        """
        Args:
            store: Session storage (defaults to an in-memory store)
            channel: Delivery channel (defaults to logging the masked code)
            config: Limits and timeouts
            clock: Returns the current aware UTC datetime
            code_generator: ``(length, previous=None) -> code``
        """
        self.config = (config if config is not None else ChallengeConfig()).validate()
        self._clock = clock or _utcnow
        self._generate = code_generator or generate_code
        if store is None:
            store = InMemorySessionStore(
                lock_timeout=self.config.lock_timeout_seconds,
                ttl=self.config.record_ttl_seconds,
                clock=self._clock,
            )
        self.store = store
        self.channel = channel if channel is not None else LogDeliveryChannel()

    def now(self) -> datetime:
        return self._clock()

    @property
    def _validity(self) -> timedelta:
        return timedelta(seconds=self.config.session_validity_seconds)

    async def _bounded(self, operation: Awaitable[T], recipient: str) -> T:
        """Run a store operation under the store timeout."""
        try:
            return await asyncio.wait_for(operation, timeout=self.config.store_timeout_seconds)
        except asyncio.TimeoutError:
            logger.error(
                "Session store timed out",
                store=self.store.name,
                recipient=mask_recipient(recipient),
                timeout=self.config.store_timeout_seconds,
            )
            raise StoreTimeoutError(
                f"Session store did not answer within {self.config.store_timeout_seconds}s",
                recipient=recipient,
            )

    async def _deliver(self, session: ChallengeSession) -> bool:
        """Hand the current code to the delivery channel. Returns success."""
        message = CodeMessage(
            recipient=session.recipient_primary,
            code=session.code,
            expiry_minutes=math.ceil(self.config.session_validity_seconds / 60),
            recipient_secondary=session.recipient_secondary,
        )
        log = logger.bind(
            channel=self.channel.name,
            recipient=mask_recipient(session.recipient_primary),
        )

        try:
            receipt = await asyncio.wait_for(
                self.channel.send(message),
                timeout=self.config.delivery_timeout_seconds,
            )
        except asyncio.TimeoutError:
            log.warning("OTP delivery timed out", timeout=self.config.delivery_timeout_seconds)
            return False
        except Exception as e:
            # Delivery problems never affect the stored session
            log.warning("OTP delivery failed", error=str(e), error_type=type(e).__name__)
            return False

        if not receipt.success:
            log.warning("OTP delivery rejected", error=receipt.error_message)
            return False

        log.info("OTP delivered", provider_message_id=receipt.provider_message_id)
        return True

    async def get(self, recipient: str) -> Optional[ChallengeSession]:
        """Return the active session for a recipient, if any."""
        return await self._bounded(self.store.get(recipient), recipient)

    async def issue(
        self,
        recipient: str,
        recipient_secondary: Optional[str] = None,
    ) -> IssueResult:
        """
        Start a fresh challenge, replacing any existing one for the recipient.

        Args:
            recipient: Primary identity (e.g. email)
            recipient_secondary: Informational secondary contact (e.g. phone)

        Returns:
            IssueResult; ``delivered`` is False when the channel failed
        """
        if not recipient:
            raise ValueError("recipient is required")

        async with self.store.lock(recipient):
            previous = await self._bounded(self.store.get(recipient), recipient)

            now = self.now()
            session = ChallengeSession(
                recipient_primary=recipient,
                recipient_secondary=recipient_secondary,
                code=self._generate(self.config.code_length),
                issued_at=now,
                expires_at=now + self._validity,
                session_created_at=now,
            )
            await self._bounded(self.store.save(session), recipient)

        logger.info(
            "OTP challenge issued",
            recipient=mask_recipient(recipient),
            superseded=previous is not None,
            expires_in=self.config.session_validity_seconds,
        )

        delivered = await self._deliver(session)
        return IssueResult(
            session_exists=True,
            delivered=delivered,
            reason=None if delivered else FailureReason.DELIVERY_FAILED,
        )

    async def verify(self, recipient: str, code: str) -> VerifyResult:
        """
        Check a submitted code against the recipient's active session.

        Expiry is checked before any attempt is counted. A correct code
        consumes the session; the attempt that reaches the limit clears it.
        """
        max_attempts = self.config.max_verify_attempts
        log = logger.bind(recipient=mask_recipient(recipient))

        async with self.store.lock(recipient):
            session = await self._bounded(self.store.get(recipient), recipient)

            if session is None:
                log.info("OTP verify without active session")
                return VerifyResult(valid=False, reason=FailureReason.NO_ACTIVE_SESSION)

            if session.is_expired(self.now()):
                log.info("OTP expired")
                return VerifyResult(valid=False, reason=FailureReason.EXPIRED)

            if session.verification_attempts >= max_attempts:
                await self._bounded(self.store.delete(recipient), recipient)
                log.warning("OTP attempts exhausted", attempts=session.verification_attempts)
                return VerifyResult(
                    valid=False,
                    reason=FailureReason.ATTEMPTS_EXHAUSTED,
                    attempts_remaining=0,
                )

            session.verification_attempts += 1

            if codes_match(code, session.code):
                await self._bounded(self.store.delete(recipient), recipient)
                log.info("OTP verified successfully", attempts=session.verification_attempts)
                return VerifyResult(valid=True)

            remaining = max_attempts - session.verification_attempts
            if remaining <= 0:
                await self._bounded(self.store.delete(recipient), recipient)
                log.warning("OTP attempts exhausted", attempts=session.verification_attempts)
                return VerifyResult(
                    valid=False,
                    reason=FailureReason.ATTEMPTS_EXHAUSTED,
                    attempts_remaining=0,
                )

            await self._bounded(self.store.save(session), recipient)

        log.warning("Invalid OTP attempt", remaining=remaining)
        return VerifyResult(
            valid=False,
            reason=FailureReason.MISMATCH,
            attempts_remaining=remaining,
        )

    async def resend(self, recipient: str) -> ResendResult:
        """
        Replace the code of an existing session under the resend quota.

        Resets verification attempts and expiry but never ``resend_count``.
        A failed delivery keeps the new code valid; use ``redeliver`` to retry.
        """
        max_resends = self.config.max_resend_attempts
        log = logger.bind(recipient=mask_recipient(recipient))

        async with self.store.lock(recipient):
            session = await self._bounded(self.store.get(recipient), recipient)

            if session is None:
                log.info("OTP resend without active session")
                return ResendResult(ok=False, reason=FailureReason.NO_ACTIVE_SESSION)

            if session.resend_count >= max_resends:
                log.warning("OTP resend limit reached", resend_count=session.resend_count)
                return ResendResult(
                    ok=False,
                    reason=FailureReason.RESEND_LIMIT_REACHED,
                    resend_attempts_left=0,
                    max_resend_attempts=max_resends,
                )

            now = self.now()
            if self.config.enforce_resend_cooldown:
                wait = seconds_left(cooldown_ends_at(session, self.config), now)
                if wait > 0:
                    log.info("OTP resend during cooldown", retry_after=wait)
                    return ResendResult(
                        ok=False,
                        reason=FailureReason.COOLDOWN_ACTIVE,
                        resend_attempts_left=max_resends - session.resend_count,
                        retry_after=wait,
                    )

            session.code = self._generate(self.config.code_length, previous=session.code)
            session.issued_at = now
            session.expires_at = now + self._validity
            session.verification_attempts = 0
            session.resend_count += 1
            await self._bounded(self.store.save(session), recipient)

        log.info("OTP regenerated", resend_count=session.resend_count)

        delivered = await self._deliver(session)
        return ResendResult(
            ok=True,
            new_code=session.code,
            reason=None if delivered else FailureReason.DELIVERY_FAILED,
            delivered=delivered,
            resend_attempts_left=max_resends - session.resend_count,
            max_resend_attempts=max_resends,
        )

    async def redeliver(self, recipient: str) -> DeliveryResult:
        """Send the current code again without using resend quota."""
        session = await self.get(recipient)

        if session is None:
            return DeliveryResult(delivered=False, reason=FailureReason.NO_ACTIVE_SESSION)

        if session.is_expired(self.now()):
            return DeliveryResult(delivered=False, reason=FailureReason.EXPIRED)

        delivered = await self._deliver(session)
        return DeliveryResult(
            delivered=delivered,
            reason=None if delivered else FailureReason.DELIVERY_FAILED,
        )

    async def get_remaining(self, recipient: str) -> RemainingTime:
        """Countdown snapshot for the recipient's session."""
        session = await self.get(recipient)
        return remaining_for(session, self.config, self.now())

    async def cancel(self, recipient: str) -> bool:
        """
        Drop the recipient's session, e.g. when the user navigates away.

        Returns:
            True if a session was removed
        """
        async with self.store.lock(recipient):
            removed = await self._bounded(self.store.delete(recipient), recipient)

        if removed:
            logger.info("OTP challenge cancelled", recipient=mask_recipient(recipient))
        return removed

    async def close(self) -> None:
        """Close the store and delivery channel."""
        await self.channel.close()
        await self.store.close()
