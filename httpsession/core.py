"""
httpsession - Core types.

Defines fundamental session data structures:
- SessionCookie: Cookie attributes owned by one session
- SessionFlag: Lifecycle markers (never persisted)
- Session: Request-scoped handle over the persisted record
- generate_session_id: Default opaque identifier generator
"""

from __future__ import annotations

import base64
import secrets
from dataclasses import asdict, dataclass, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Iterator, Literal, Mapping, Optional, Union

from .faults import SessionDestroyedFault, SessionUnboundFault
from .fingerprint import fingerprint

if TYPE_CHECKING:
    from .engine import SessionEngine
    from .http import Request, Response


EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def generate_session_id() -> str:
    """
    Generate an opaque session identifier.

    Rules:
    - Never encode meaning (no user ID, no timestamps)
    - Cryptographically random (32 bytes = 256 bits entropy)
    - URL-safe encoding, no padding
    """
    return base64.urlsafe_b64encode(secrets.token_bytes(32)).decode().rstrip("=")


def parse_datetime(value: Union[datetime, str, int, float, None]) -> Optional[datetime]:
    """
    Coerce a stored expiry into an aware UTC datetime.

    Stores may round-trip timestamps as ISO-8601 text or epoch seconds.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


# ============================================================================
# SessionCookie - Cookie Attributes
# ============================================================================

@dataclass
class SessionCookie:
    """
    Cookie attributes for the session id cookie.

    Also used as the configuration template new sessions copy from.

    Attributes:
        path: Cookie path
        domain: Cookie domain
        http_only: HttpOnly flag
        secure: Secure flag
        same_site: SameSite policy (True/"strict", "lax", "none")
        max_age: Lifetime in seconds; None for a browser-session cookie
        expires: Absolute expiry, derived from max_age at creation/touch
    """

    path: Optional[str] = "/"
    domain: Optional[str] = None
    http_only: bool = True
    secure: bool = False
    same_site: Union[bool, Literal["strict", "lax", "none"], None] = None
    max_age: Optional[int] = None
    expires: Optional[datetime] = None

    _ALIASES = {
        "httpOnly": "http_only",
        "httponly": "http_only",
        "sameSite": "same_site",
        "samesite": "same_site",
        "maxAge": "max_age",
    }

    def refresh(self, now: datetime) -> None:
        """Recompute expires from max_age; session cookies keep no expiry."""
        if self.max_age is None:
            self.expires = None
        else:
            self.expires = now + timedelta(seconds=self.max_age)

    def copy(self) -> SessionCookie:
        return replace(self)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SessionCookie:
        """
        Build cookie attributes from a mapping.

        Accepts snake_case or camelCase keys; unknown keys are ignored.
        """
        known = {
            "path", "domain", "http_only", "secure",
            "same_site", "max_age", "expires",
        }
        values: dict[str, Any] = {}
        for key, value in data.items():
            key = cls._ALIASES.get(key, key)
            if key in known:
                values[key] = value

        if "expires" in values:
            values["expires"] = parse_datetime(values["expires"])
        if values.get("max_age") is not None:
            values["max_age"] = int(values["max_age"])
        return cls(**values)


# ============================================================================
# SessionFlag - Lifecycle Markers
# ============================================================================

class SessionFlag(str, Enum):
    """
    Lifecycle markers held beside the session data.

    - NEW: Created during this request, not yet committed
    - TOUCHED: Expiry extended during this request
    - DESTROYED: Destroyed; terminal
    """

    NEW = "new"
    TOUCHED = "touched"
    DESTROYED = "destroyed"


# ============================================================================
# Session - Request-Scoped Handle
# ============================================================================

class Session:
    """
    Request-scoped session handle.

    Holds the persisted record (``data`` + ``cookie``) and, separately,
    the lifecycle flags and the binding to the engine/request/response
    that resolved it. Only ``to_dict()`` output is ever persisted.

    Example:
        >>> session = await engine.resolve(request, response)
        >>> session["cart_items"] = 3
        >>> session.is_dirty
        True
        >>> await session.destroy()
    """

    __slots__ = (
        "_id",
        "data",
        "cookie",
        "flags",
        "_baseline",
        "_engine",
        "_request",
        "_response",
    )

    def __init__(
        self,
        id: str,
        data: Optional[dict[str, Any]] = None,
        cookie: Optional[SessionCookie] = None,
        flags: Optional[set[SessionFlag]] = None,
    ):
        self._id = id
        self.data: dict[str, Any] = data if data is not None else {}
        self.cookie = cookie if cookie is not None else SessionCookie()
        self.flags: set[SessionFlag] = flags if flags is not None else set()
        self._baseline: Optional[str] = None
        self._engine: Optional[SessionEngine] = None
        self._request: Optional[Request] = None
        self._response: Optional[Response] = None

    @property
    def id(self) -> str:
        """Session identifier; changes only through regenerate()."""
        return self._id

    def __repr__(self) -> str:
        flags = ",".join(sorted(f.value for f in self.flags))
        return f"Session(id={self._id[:8]}..., keys={len(self.data)}, flags=[{flags}])"

    # ========================================================================
    # Data Access
    # ========================================================================

    def _ensure_alive(self, operation: str) -> None:
        if SessionFlag.DESTROYED in self.flags:
            raise SessionDestroyedFault(session_id=self._id, operation=operation)

    def __getitem__(self, key: str) -> Any:
        return self.data[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self._ensure_alive("modify")
        self.data[key] = value

    def __delitem__(self, key: str) -> None:
        self._ensure_alive("modify")
        del self.data[key]

    def __contains__(self, key: object) -> bool:
        return key in self.data

    def __iter__(self) -> Iterator[str]:
        return iter(self.data)

    def __len__(self) -> int:
        return len(self.data)

    def get(self, key: str, default: Any = None) -> Any:
        """Get data value with default."""
        return self.data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Set data value."""
        self[key] = value

    def delete(self, key: str) -> None:
        """Delete data key if present."""
        self._ensure_alive("modify")
        self.data.pop(key, None)

    def clear(self) -> None:
        """Clear all session data."""
        self._ensure_alive("modify")
        self.data.clear()

    def keys(self):
        return self.data.keys()

    def items(self):
        return self.data.items()

    # ========================================================================
    # State
    # ========================================================================

    @property
    def is_new(self) -> bool:
        return SessionFlag.NEW in self.flags

    @property
    def is_touched(self) -> bool:
        return SessionFlag.TOUCHED in self.flags

    @property
    def is_destroyed(self) -> bool:
        return SessionFlag.DESTROYED in self.flags

    def fingerprint(self) -> str:
        """Digest of the data payload (cookie and flags excluded)."""
        return fingerprint(self.data)

    def mark_clean(self) -> None:
        """Record the current data as the persisted baseline."""
        self._baseline = self.fingerprint()

    @property
    def is_dirty(self) -> bool:
        """Check if data changed since it was loaded or last committed."""
        return self._baseline is None or self.fingerprint() != self._baseline

    @property
    def last_touched_at(self) -> Optional[datetime]:
        """When expiry was last extended (expires - max_age)."""
        if self.cookie.expires is None or not self.cookie.max_age:
            return None
        return self.cookie.expires - timedelta(seconds=self.cookie.max_age)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """
        Check if session cookie has passed expiry.

        Args:
            now: Current time (defaults to utcnow)
        """
        if self.cookie.expires is None:
            return False
        if now is None:
            now = datetime.now(timezone.utc)
        return now >= self.cookie.expires

    # ========================================================================
    # Lifecycle Methods
    # ========================================================================

    def _bound_engine(self, operation: str) -> SessionEngine:
        if self._engine is None:
            raise SessionUnboundFault(
                message=f"Cannot {operation}: session is not bound to a request",
            )
        return self._engine

    def bind(self, engine: SessionEngine, request: Request, response: Response) -> None:
        """Attach the engine and request/response pair lifecycle methods act on."""
        self._engine = engine
        self._request = request
        self._response = response

    def touch(self, now: Optional[datetime] = None) -> None:
        """
        Extend expiry by max_age from now.

        In-memory only; the store is refreshed at the end of the response.

        Args:
            now: Current time (defaults to the engine clock or utcnow)
        """
        if now is None:
            now = self._engine.now() if self._engine is not None else datetime.now(timezone.utc)

        self.cookie.refresh(now)
        self.flags.add(SessionFlag.TOUCHED)

    async def destroy(self) -> None:
        """
        Destroy the session: expire the cookie and delete the stored record.

        Raises:
            SessionStoreUnavailableFault: Store delete failed
        """
        await self._bound_engine("destroy").destroy(self)

    async def commit(self) -> None:
        """
        Write the cookie header (if headers are not sent) and persist now.

        For handlers that finalize the response outside the automatic
        end-of-response path.
        """
        self._ensure_alive("commit")
        await self._bound_engine("commit").commit(self)

    async def regenerate(self) -> None:
        """
        Replace the session id, keeping the data.

        The old record is deleted; the new id is cookied and persisted at
        the end of the response.
        """
        self._ensure_alive("regenerate")
        await self._bound_engine("regenerate").regenerate(self)

    # ========================================================================
    # Serialization
    # ========================================================================

    def to_dict(self) -> dict[str, Any]:
        """
        Serialize session to dictionary (for storage).

        Returns:
            ``{"data": ..., "cookie": ...}``; flags and id are not included
        """
        return {
            "data": self.data,
            "cookie": self.cookie.to_dict(),
        }

    @classmethod
    def from_dict(cls, session_id: str, record: Mapping[str, Any]) -> Session:
        """
        Rehydrate a session from a stored record.

        Args:
            session_id: Identifier the record was stored under
            record: Stored record

        Returns:
            Session instance (not new, no flags)
        """
        cookie = SessionCookie.from_dict(record.get("cookie") or {})
        data = record.get("data")
        return cls(
            id=session_id,
            data=dict(data) if data else {},
            cookie=cookie,
        )


__all__ = [
    "EPOCH",
    "generate_session_id",
    "parse_datetime",
    "SessionCookie",
    "SessionFlag",
    "Session",
]
