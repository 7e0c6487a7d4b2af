"""
httpsession - Session storage abstraction.

Defines SessionStore protocol and the default implementation:
- MemoryStore: In-memory storage (dev/testing, single process)

Stores are responsible ONLY for persistence - they do NOT decide when to
write. That happens in SessionEngine.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable, Optional, Protocol, runtime_checkable

from .core import parse_datetime

if TYPE_CHECKING:
    from .core import Session


logger = logging.getLogger("httpsession.store")


# ============================================================================
# SessionStore Protocol
# ============================================================================

@runtime_checkable
class SessionStore(Protocol):
    """
    Abstract session storage interface.

    All methods are async. ``touch`` is optional: stores without it get a
    full ``set`` when only the expiry changed.
    """

    async def get(self, session_id: str) -> dict[str, Any] | None:
        """
        Load a session record.

        Args:
            session_id: Session identifier

        Returns:
            ``{"data": ..., "cookie": ...}`` if found, None otherwise.
            ``cookie["expires"]`` may come back as an ISO-8601 string.

        Raises:
            Exception: Backend failure (propagated to the caller)
        """
        ...

    async def set(self, session_id: str, session: Session) -> None:
        """
        Upsert the full session record (``session.to_dict()``).

        Args:
            session_id: Session identifier
            session: Session to save
        """
        ...

    async def destroy(self, session_id: str) -> None:
        """
        Delete session; deleting a missing id is not an error.

        Args:
            session_id: Session identifier
        """
        ...


def supports_touch(store: Any) -> bool:
    """Check if store offers the optional touch(id, session) operation."""
    return callable(getattr(store, "touch", None))


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


# ============================================================================
# MemoryStore - In-Memory Storage
# ============================================================================

class MemoryStore:
    """
    In-memory session storage for development and testing.

    Features:
    - Records kept as JSON text (same round-trip as a networked store)
    - Expired records dropped on read, plus cleanup_expired() sweep
    - Max session limit (LRU eviction)

    NOT suitable for production (no persistence across restarts).

    Example:
        >>> store = MemoryStore(max_sessions=10000)
        >>> await store.set(session.id, session)
        >>> record = await store.get(session.id)
    """

    def __init__(
        self,
        max_sessions: int = 10000,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize memory store.

        Args:
            max_sessions: Maximum sessions to keep (LRU eviction)
            clock: Returns the current aware datetime (defaults to utcnow)
        """
        self.max_sessions = max_sessions
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._sessions: dict[str, str] = {}
        self._access_order: list[str] = []
        self._lock = asyncio.Lock()

    @staticmethod
    def _expires_of(record: dict[str, Any]) -> Optional[datetime]:
        cookie = record.get("cookie") or {}
        return parse_datetime(cookie.get("expires"))

    def _is_expired(self, record: dict[str, Any], now: datetime) -> bool:
        expires = self._expires_of(record)
        return expires is not None and expires <= now

    async def get(self, session_id: str) -> dict[str, Any] | None:
        """Load session record; expired records are removed and not returned."""
        async with self._lock:
            raw = self._sessions.get(session_id)
            if raw is None:
                return None

            record = json.loads(raw)
            if self._is_expired(record, self._clock()):
                self._remove(session_id)
                logger.debug("Dropped expired session on read")
                return None

            self._touch_access(session_id)
            return record

    async def set(self, session_id: str, session: Session) -> None:
        """Save session record."""
        raw = json.dumps(session.to_dict(), default=_json_default)

        async with self._lock:
            if session_id not in self._sessions and len(self._sessions) >= self.max_sessions:
                self._evict_lru()

            self._sessions[session_id] = raw
            self._touch_access(session_id)

    async def touch(self, session_id: str, session: Session) -> None:
        """Refresh the stored cookie (expiry) without rewriting data."""
        async with self._lock:
            raw = self._sessions.get(session_id)
            if raw is None:
                return

            record = json.loads(raw)
            record["cookie"] = session.cookie.to_dict()
            self._sessions[session_id] = json.dumps(record, default=_json_default)
            self._touch_access(session_id)

    async def destroy(self, session_id: str) -> None:
        """Delete session."""
        async with self._lock:
            self._remove(session_id)

    async def cleanup_expired(self) -> int:
        """
        Remove expired sessions.

        Returns:
            Number of sessions removed
        """
        now = self._clock()

        async with self._lock:
            expired_ids = [
                session_id
                for session_id, raw in self._sessions.items()
                if self._is_expired(json.loads(raw), now)
            ]
            for session_id in expired_ids:
                self._remove(session_id)

        if expired_ids:
            logger.info(f"Cleaned up {len(expired_ids)} expired sessions")
        return len(expired_ids)

    async def shutdown(self) -> None:
        """Shutdown store (clear memory)."""
        async with self._lock:
            self._sessions.clear()
            self._access_order.clear()

    def __len__(self) -> int:
        return len(self._sessions)

    def _remove(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)
        if session_id in self._access_order:
            self._access_order.remove(session_id)

    def _touch_access(self, session_id: str) -> None:
        """Update LRU access order."""
        if session_id in self._access_order:
            self._access_order.remove(session_id)
        self._access_order.append(session_id)

    def _evict_lru(self) -> None:
        """Evict least recently used session."""
        if not self._access_order:
            return

        oldest_id = self._access_order.pop(0)
        self._sessions.pop(oldest_id, None)
        logger.debug("Evicted least recently used session")

    def get_stats(self) -> dict[str, Any]:
        """Get store statistics."""
        return {
            "total_sessions": len(self._sessions),
            "max_sessions": self.max_sessions,
            "utilization": len(self._sessions) / self.max_sessions if self.max_sessions > 0 else 0,
        }


__all__ = [
    "SessionStore",
    "MemoryStore",
    "supports_touch",
]
