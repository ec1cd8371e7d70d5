"""Per-session locks serializing questionnaire read-then-append sequences."""

import asyncio
import threading

from cachetools import TTLCache

from cyclica_api.config import get_settings


class SessionLockRegistry:
    """Bounded registry of asyncio locks keyed by session id.

    Locks expire with the TTL so idle sessions do not accumulate. This only
    serializes requests within one process.
    """

    def __init__(self, ttl_seconds: int | None = None, max_sessions: int | None = None):
        """Initialize the registry.

        Args:
            ttl_seconds: Time-to-live for idle locks in seconds. Defaults to config value.
            max_sessions: Maximum number of locks to keep. Defaults to config value.
        """
        settings = get_settings()
        self._ttl = ttl_seconds or settings.session_lock_ttl
        self._max_sessions = max_sessions or settings.max_session_locks
        self._locks: TTLCache[str, asyncio.Lock] = TTLCache(
            maxsize=self._max_sessions,
            ttl=self._ttl,
        )
        self._guard = threading.Lock()

    def get(self, session_id: str) -> asyncio.Lock:
        """Return the lock for a session, creating it on first use."""
        with self._guard:
            lock = self._locks.get(session_id)
            if lock is None:
                lock = asyncio.Lock()
            # Re-set on every access to refresh the TTL
            self._locks[session_id] = lock
            return lock

    def count(self) -> int:
        """Number of tracked sessions."""
        with self._guard:
            return len(self._locks)

    def clear(self) -> None:
        """Drop all locks."""
        with self._guard:
            self._locks.clear()


# Global registry instance
_lock_registry: SessionLockRegistry | None = None


def get_lock_registry() -> SessionLockRegistry:
    """Get the global lock registry instance."""
    global _lock_registry
    if _lock_registry is None:
        _lock_registry = SessionLockRegistry()
    return _lock_registry


def reset_lock_registry() -> None:
    """Reset the global lock registry (useful for testing)."""
    global _lock_registry
    _lock_registry = None
