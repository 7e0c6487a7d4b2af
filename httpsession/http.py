"""
Request/response boundary for the session engine.

The engine needs very little from the HTTP layer:
- Request: the Cookie header and a per-request state dict
- Response: a header buffer, ``headers_sent``, and two lifecycle hooks
  (header flush, body end) that the server integration fires

Request and Response here are thin views over an ASGI scope and the
ASGI ``http.response.start`` message; SessionMiddleware fires the hooks.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Iterable, List, MutableMapping, Optional, Tuple, Union

logger = logging.getLogger("httpsession.http")

HeaderValue = Union[str, List[str]]
HeadersHook = Callable[["Response"], None]
EndHook = Callable[["Response"], Awaitable[None]]


class Request:
    """
    View over an ASGI HTTP scope.

    ``state`` lives in the scope itself (``scope["state"]``) so every view
    of the same scope shares it; that is where the resolved session is
    cached for the rest of the request.
    """

    __slots__ = ("scope",)

    def __init__(self, scope: MutableMapping[str, Any]):
        self.scope = scope

    @property
    def state(self) -> MutableMapping[str, Any]:
        state = self.scope.get("state")
        if state is None:
            state = self.scope["state"] = {}
        return state

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """
        Get header value; repeated headers are joined.

        Cookie headers are joined with "; ", others with ", ".
        """
        target = name.lower().encode("latin-1")
        values = [
            value.decode("latin-1")
            for key, value in self.scope.get("headers", ())
            if key.lower() == target
        ]
        if not values:
            return default
        separator = "; " if target == b"cookie" else ", "
        return separator.join(values)

    @property
    def cookie_header(self) -> str:
        return self.header("cookie", "") or ""

    @property
    def path(self) -> str:
        return self.scope.get("path", "/")

    @property
    def method(self) -> str:
        return self.scope.get("method", "GET")


class Response:
    """
    Header buffer plus header-flush / body-end hooks for one response.

    Headers set before the flush are merged into the ASGI start message.
    After the flush ``headers_sent`` is True and header writes must be
    skipped by callers.

    Example:
        >>> response = Response()
        >>> response.on_headers(lambda r: r.set_header("x-a", "1"))
        >>> raw = response.flush_headers([(b"content-type", b"text/plain")])
    """

    __slots__ = ("_headers", "headers_sent", "ended", "_headers_hooks", "_end_hooks")

    def __init__(self):
        self._headers: List[Tuple[str, str]] = []
        self.headers_sent = False
        self.ended = False
        self._headers_hooks: List[HeadersHook] = []
        self._end_hooks: List[EndHook] = []

    # ========================================================================
    # Header Helpers
    # ========================================================================

    def get_header(self, name: str) -> Optional[HeaderValue]:
        """
        Get header value.

        Returns:
            None if absent, a string for one value, a list for several
        """
        name = name.lower()
        values = [value for key, value in self._headers if key == name]
        if not values:
            return None
        if len(values) == 1:
            return values[0]
        return values

    def set_header(self, name: str, value: HeaderValue) -> None:
        """Set header (replaces existing); a list sets one line per value."""
        name = name.lower()
        self._headers = [(key, v) for key, v in self._headers if key != name]
        if isinstance(value, (list, tuple)):
            self._headers.extend((name, str(v)) for v in value)
        else:
            self._headers.append((name, str(value)))

    def add_header(self, name: str, value: str) -> None:
        """Add header line (supports multiple values)."""
        self._headers.append((name.lower(), value))

    @property
    def headers(self) -> List[Tuple[str, str]]:
        return list(self._headers)

    # ========================================================================
    # Lifecycle Hooks
    # ========================================================================

    def on_headers(self, hook: HeadersHook) -> None:
        """Register a callback run once, just before headers are sent."""
        self._headers_hooks.append(hook)

    def on_end(self, hook: EndHook) -> None:
        """Register an async callback awaited once, before the last body chunk."""
        self._end_hooks.append(hook)

    def flush_headers(self, raw_headers: Iterable[Tuple[bytes, bytes]] = ()) -> List[Tuple[bytes, bytes]]:
        """
        Merge start-message headers with buffered ones and run header hooks.

        The start message's headers come first, then anything buffered
        before the flush; hooks then see (and may extend) the merged set.
        Idempotent: after the first call it returns the headers unchanged.

        Args:
            raw_headers: Headers from ``http.response.start``

        Returns:
            Headers to send, as ASGI byte pairs
        """
        raw_headers = list(raw_headers)
        if self.headers_sent:
            return raw_headers

        buffered = self._headers
        self._headers = [
            (key.decode("latin-1").lower(), value.decode("latin-1"))
            for key, value in raw_headers
        ]
        self._headers.extend(buffered)

        hooks, self._headers_hooks = self._headers_hooks, []
        for hook in hooks:
            hook(self)

        self.headers_sent = True
        return [
            (key.encode("latin-1"), value.encode("latin-1"))
            for key, value in self._headers
        ]

    async def end(self) -> None:
        """
        Await end hooks, in registration order, exactly once.

        Every hook runs even if an earlier one fails; the first failure
        is re-raised afterwards.
        """
        if self.ended:
            return
        self.ended = True

        hooks, self._end_hooks = self._end_hooks, []
        first_error: Optional[BaseException] = None
        for hook in hooks:
            try:
                await hook(self)
            except Exception as e:
                logger.debug(f"Response end hook failed: {e}")
                if first_error is None:
                    first_error = e

        if first_error is not None:
            raise first_error


__all__ = [
    "Request",
    "Response",
]
