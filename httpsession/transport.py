"""
httpsession - Cookie transport.

Handles session ID extraction and injection over HTTP cookies:
- extract: Cookie header -> (decoded) session id
- inject: session -> appended Set-Cookie header
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Optional, Protocol

from .cookies import parse_cookie_header, serialize_cookie

if TYPE_CHECKING:
    from .core import Session


class CookieSource(Protocol):
    """Anything exposing the raw Cookie request header."""

    @property
    def cookie_header(self) -> str: ...


class HeaderSink(Protocol):
    """Anything accepting response headers until they are sent."""

    headers_sent: bool

    def get_header(self, name: str): ...

    def set_header(self, name: str, value) -> None: ...


class CookieTransport:
    """
    Cookie-based session transport.

    Transports do NOT handle:
    - Session creation or loading (that's SessionEngine)
    - Deciding when to write (that's SessionEngine)
    - Session persistence (that's SessionStore)

    Example:
        >>> transport = CookieTransport("sid")
        >>> session_id = transport.extract(request)
        >>> transport.inject(response, session)
    """

    def __init__(
        self,
        cookie_name: str = "sid",
        encode: Optional[Callable[[str], str]] = None,
        decode: Optional[Callable[[str], Optional[str]]] = None,
    ):
        """
        Initialize cookie transport.

        Args:
            cookie_name: Name of the session id cookie
            encode: Applied to the id before it is written
            decode: Applied to the raw cookie value when read
        """
        self.cookie_name = cookie_name
        self.encode = encode
        self.decode = decode

    def extract(self, request: CookieSource) -> Optional[str]:
        """
        Extract session ID from cookie.

        Returns:
            Session ID, or None when the cookie is missing, empty or
            rejected by ``decode``
        """
        raw = parse_cookie_header(request.cookie_header).get(self.cookie_name)
        if not raw:
            return None

        session_id = self.decode(raw) if self.decode else raw
        return session_id or None

    def build(self, session: Session) -> str:
        """Serialize the Set-Cookie value for session."""
        value = self.encode(session.id) if self.encode else session.id
        return serialize_cookie(self.cookie_name, value, session.cookie)

    def inject(self, response: HeaderSink, session: Session) -> bool:
        """
        Append the session cookie to the response's Set-Cookie headers.

        Existing Set-Cookie values (one or many) are kept, in order.
        A no-op once headers are sent.

        Returns:
            True if a header was written
        """
        if response.headers_sent:
            return False

        cookie_str = self.build(session)
        existing = response.get_header("set-cookie")

        if existing:
            if isinstance(existing, (list, tuple)):
                response.set_header("set-cookie", [*existing, cookie_str])
            else:
                response.set_header("set-cookie", [existing, cookie_str])
        else:
            response.set_header("set-cookie", cookie_str)

        return True


__all__ = [
    "CookieTransport",
]
