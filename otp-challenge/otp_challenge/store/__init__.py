"""
Session Stores
==============
Storage backends for challenge sessions.
"""

from .base import SessionStore
from .in_memory import InMemorySessionStore
from .redis_store import RedisSessionStore

__all__ = [
    "SessionStore",
    "InMemorySessionStore",
    "RedisSessionStore",
]
