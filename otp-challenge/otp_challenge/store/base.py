"""
Session Store Interface
=======================
Abstract storage for challenge sessions keyed by recipient identity.
"""

from abc import ABC, abstractmethod
from typing import AsyncContextManager, Optional

from ..models import ChallengeSession


class SessionStore(ABC):
    """
    Abstract base class for challenge session storage.

    Implementations must make ``save`` all-or-nothing and must hand out
    copies from ``get`` so a session is only changed through ``save``.
    """

    name: str = "base"

    @abstractmethod
    async def get(self, recipient: str) -> Optional[ChallengeSession]:
        """Return the session for a recipient, or None."""
        ...

    @abstractmethod
    async def save(self, session: ChallengeSession) -> None:
        """Replace the stored session for ``session.recipient_primary``."""
        ...

    @abstractmethod
    async def delete(self, recipient: str) -> bool:
        """
        Remove the session for a recipient.

        Returns:
            True if a session was removed
        """
        ...

    @abstractmethod
    def lock(self, recipient: str) -> AsyncContextManager[None]:
        """
        Exclusive access to one recipient's session.

        Raises:
            StoreTimeoutError: If the lock cannot be acquired in time
        """
        ...

    async def close(self) -> None:
        """Release backend resources."""
        return None
