"""
httpsession - Request-scoped cookie sessions for ASGI applications.

This package resolves one session per request from a pluggable store,
tracks whether the application changed it, and commits lazily:
- The Set-Cookie header is written only when needed (never for a new
  session that stays empty)
- The store is written only when data changed, or refreshed when the
  expiry was extended
- Both happen from the response's own header-flush and body-end events

Philosophy:
- Sessions are explicit (no hidden globals, one engine per app)
- Persisted state is data + cookie; lifecycle flags live beside it
- Stores only persist; the engine decides when
"""

from .core import (
    Session,
    SessionCookie,
    SessionFlag,
    generate_session_id,
)

from .config import (
    SessionConfig,
    parse_duration,
)

from .store import (
    SessionStore,
    MemoryStore,
)

from .cookies import (
    CookieSigner,
    parse_cookie_header,
    serialize_cookie,
)

from .transport import CookieTransport

from .fingerprint import fingerprint

from .http import Request, Response

from .engine import SessionEngine

from .middleware import SessionMiddleware, get_session

from .faults import (
    Fault,
    FaultDomain,
    Severity,
    SessionFault,
    SessionDestroyedFault,
    SessionUnboundFault,
    SessionStoreUnavailableFault,
    SessionConfigFault,
)

__all__ = [
    # Core types
    "Session",
    "SessionCookie",
    "SessionFlag",
    "generate_session_id",
    # Config
    "SessionConfig",
    "parse_duration",
    # Storage
    "SessionStore",
    "MemoryStore",
    # Cookies
    "CookieSigner",
    "CookieTransport",
    "parse_cookie_header",
    "serialize_cookie",
    "fingerprint",
    # HTTP boundary
    "Request",
    "Response",
    # Engine
    "SessionEngine",
    "SessionMiddleware",
    "get_session",
    # Faults
    "Fault",
    "FaultDomain",
    "Severity",
    "SessionFault",
    "SessionDestroyedFault",
    "SessionUnboundFault",
    "SessionStoreUnavailableFault",
    "SessionConfigFault",
]

__version__ = "0.1.0"
