"""
httpsession - Fault definitions.

Every error the package raises on purpose is a Fault: an exception that
also carries a stable ``code``, a ``domain``, a ``severity`` and whether
retrying can help, so callers can log or map it without string matching.
"""

from __future__ import annotations

import hashlib
from enum import Enum
from typing import Any, Optional


class Severity(str, Enum):
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    FATAL = "fatal"


class FaultDomain(str, Enum):
    """Where a fault originates; each domain implies default severity/retryability."""

    CONFIG = "config"
    IO = "io"
    SESSION = "session"

    @property
    def default_severity(self) -> Severity:
        return Severity.FATAL if self is FaultDomain.CONFIG else Severity.ERROR

    @property
    def default_retryable(self) -> bool:
        # Only I/O against the store can succeed on a second try
        return self is FaultDomain.IO


class Fault(Exception):
    """
    Structured fault.

    Subclasses declare ``code``, ``message`` and ``domain`` (and optionally
    ``severity``/``retryable``) as class attributes; constructor arguments
    override them per instance.

    Example:
        >>> raise Fault("SESSION_MISSING", "No session bound", domain=FaultDomain.SESSION)
    """

    code: Optional[str] = None
    message: Optional[str] = None
    domain: Optional[FaultDomain] = None
    severity: Optional[Severity] = None
    retryable: Optional[bool] = None
    public: bool = False

    def __init__(
        self,
        code: Optional[str] = None,
        message: Optional[str] = None,
        *,
        domain: Optional[FaultDomain] = None,
        severity: Optional[Severity] = None,
        retryable: Optional[bool] = None,
        public: Optional[bool] = None,
        metadata: Optional[dict[str, Any]] = None,
    ):
        if code is not None:
            self.code = code
        if message is not None:
            self.message = message
        if domain is not None:
            self.domain = domain

        if not (self.code and self.message and self.domain):
            raise TypeError(f"{type(self).__name__} needs a code, a message and a domain")

        self.domain = FaultDomain(self.domain)
        self.severity = severity or self.severity or self.domain.default_severity
        if retryable is not None:
            self.retryable = retryable
        elif self.retryable is None:
            self.retryable = self.domain.default_retryable
        if public is not None:
            self.public = public
        self.metadata = metadata or {}

        super().__init__(self.message)

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, domain={self.domain.value})"

    def to_dict(self) -> dict[str, Any]:
        """Plain-dict form for structured logs and event payloads."""
        return {
            "code": self.code,
            "message": self.message,
            "domain": self.domain.value,
            "severity": self.severity.value,
            "retryable": self.retryable,
            "public": self.public,
            "metadata": self.metadata,
        }


def hash_session_id(session_id: str) -> str:
    """Hash session ID for logging (privacy)."""
    return f"sha256:{hashlib.sha256(session_id.encode()).hexdigest()[:16]}"


# ============================================================================
# Session Faults
# ============================================================================

class SessionFault(Fault):
    """Base class for session-related faults."""

    domain = FaultDomain.SESSION


class SessionDestroyedFault(SessionFault):
    """
    Operation attempted on a destroyed session.

    Destruction is terminal: the session can no longer be mutated,
    committed or regenerated.
    """

    code = "SESSION_DESTROYED"
    message = "Session has been destroyed"
    severity = Severity.WARN
    retryable = False

    def __init__(self, session_id: str | None = None, operation: str | None = None, **kwargs):
        super().__init__(**kwargs)
        self.session_id_hash = hash_session_id(session_id) if session_id else None
        self.operation = operation
        if operation:
            self.message = f"Cannot {operation} a destroyed session"


class SessionUnboundFault(SessionFault):
    """
    Lifecycle operation on a session that no engine resolved.

    touch() works on any session; destroy(), commit() and regenerate()
    need the request/response/store the engine binds.
    """

    code = "SESSION_UNBOUND"
    message = "Session is not bound to a request"
    severity = Severity.ERROR


class SessionStoreUnavailableFault(SessionFault):
    """
    Session store call failed.

    This is a transient error - retry may succeed.
    """

    code = "SESSION_STORE_UNAVAILABLE"
    message = "Session storage unavailable"
    domain = FaultDomain.IO
    severity = Severity.ERROR
    retryable = True

    def __init__(
        self,
        store_name: str,
        operation: str | None = None,
        cause: str | None = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.store_name = store_name
        self.operation = operation
        self.cause = cause
        target = f"{store_name}.{operation}" if operation else store_name
        if cause:
            self.message = f"Session store '{target}' unavailable: {cause}"
        else:
            self.message = f"Session store '{target}' unavailable"


class SessionConfigFault(Fault):
    """Invalid session configuration value."""

    code = "SESSION_CONFIG_INVALID"
    message = "Invalid session configuration"
    domain = FaultDomain.CONFIG

    def __init__(self, option: str, reason: str, **kwargs):
        super().__init__(**kwargs)
        self.option = option
        self.reason = reason
        self.message = f"Invalid session option '{option}': {reason}"


__all__ = [
    "Severity",
    "FaultDomain",
    "Fault",
    "hash_session_id",
    "SessionFault",
    "SessionDestroyedFault",
    "SessionUnboundFault",
    "SessionStoreUnavailableFault",
    "SessionConfigFault",
]
