"""
User-Facing Failure Reasons
===========================
Every failure kind maps to its own message and a suggested next action,
so a UI can decide between a countdown, a resend button or "start over".
"""

from enum import Enum
from typing import Optional


class FailureReason(str, Enum):
    """Why a challenge operation did not succeed."""
    NO_ACTIVE_SESSION = "no_active_session"
    EXPIRED = "expired"
    ATTEMPTS_EXHAUSTED = "attempts_exhausted"
    MISMATCH = "mismatch"
    RESEND_LIMIT_REACHED = "resend_limit_reached"
    COOLDOWN_ACTIVE = "cooldown_active"
    DELIVERY_FAILED = "delivery_failed"


class NextAction(str, Enum):
    """What the caller should offer the user after a failure."""
    RETRY = "retry"
    RESEND = "resend"
    RESTART = "restart"
    WAIT = "wait"
    REDELIVER = "redeliver"


_MESSAGES = {
    FailureReason.NO_ACTIVE_SESSION: "No active OTP session found",
    FailureReason.EXPIRED: "OTP has expired. Please request a new one.",
    FailureReason.ATTEMPTS_EXHAUSTED: "Too many failed attempts. Please start over.",
    FailureReason.COOLDOWN_ACTIVE: "Please wait before requesting a new code.",
    FailureReason.DELIVERY_FAILED: "We could not deliver your code. Please try again.",
}

_NEXT_ACTIONS = {
    FailureReason.NO_ACTIVE_SESSION: NextAction.RESTART,
    FailureReason.EXPIRED: NextAction.RESEND,
    FailureReason.ATTEMPTS_EXHAUSTED: NextAction.RESTART,
    FailureReason.MISMATCH: NextAction.RETRY,
    FailureReason.RESEND_LIMIT_REACHED: NextAction.RESTART,
    FailureReason.COOLDOWN_ACTIVE: NextAction.WAIT,
    FailureReason.DELIVERY_FAILED: NextAction.REDELIVER,
}


def user_message(
    reason: FailureReason,
    attempts_remaining: Optional[int] = None,
    max_resend_attempts: Optional[int] = None,
) -> str:
    """
    Build the message shown to the user for a failure.

    Args:
        reason: Failure kind
        attempts_remaining: Verification attempts left (for MISMATCH)
        max_resend_attempts: Resend quota (for RESEND_LIMIT_REACHED)

    Returns:
        Human readable message, distinct per failure kind
    """
    reason = FailureReason(reason)

    if reason is FailureReason.MISMATCH:
        if attempts_remaining is None:
            return "Invalid OTP."
        plural = "" if attempts_remaining == 1 else "s"
        return f"Invalid OTP. {attempts_remaining} attempt{plural} remaining."

    if reason is FailureReason.RESEND_LIMIT_REACHED:
        if max_resend_attempts is None:
            return "Maximum resend limit reached. Please try again later."
        return (
            f"Maximum resend limit ({max_resend_attempts}) reached. "
            "Please try again later."
        )

    return _MESSAGES[reason]


def next_action(reason: FailureReason) -> NextAction:
    """Suggested follow-up for a failure kind."""
    return _NEXT_ACTIONS[FailureReason(reason)]
