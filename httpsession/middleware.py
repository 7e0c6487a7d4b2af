"""
Session Middleware - Integrates SessionEngine with the ASGI request lifecycle.

This middleware orchestrates the complete session lifecycle:
1. Resolve session at request start
2. Store session in request state (and ``scope["session"]``)
3. On ``http.response.start``: flush headers (Set-Cookie if needed)
4. On the final ``http.response.body``: commit, then forward the chunk
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, MutableMapping, Optional

from .engine import SESSION_STATE_KEY, SessionEngine
from .http import Request, Response

if TYPE_CHECKING:
    from .core import Session

Scope = MutableMapping[str, Any]
Message = MutableMapping[str, Any]
Receive = Callable[[], Awaitable[Message]]
Send = Callable[[Message], Awaitable[None]]
ASGIApp = Callable[[Scope, Receive, Send], Awaitable[None]]


class SessionMiddleware:
    """
    ASGI middleware that resolves and commits one session per HTTP request.

    Architecture:
        Request → SessionMiddleware → [resolve] → App
            → http.response.start → [Set-Cookie]
            → last http.response.body → [store write] → client

    The final body chunk is held back until the store write settles, so
    the response never completes before the session is persisted. A
    failed write is logged and the response still completes.

    Example:
        >>> engine = SessionEngine(SessionConfig(cookie=SessionCookie(max_age=3600)))
        >>> app = SessionMiddleware(app, engine)
        >>> # inside the app:
        >>> session = get_session(scope)
        >>> session["visits"] = session.get("visits", 0) + 1
    """

    def __init__(
        self,
        app: ASGIApp,
        engine: Optional[SessionEngine] = None,
        **options: Any,
    ):
        """
        Initialize session middleware.

        Args:
            app: Wrapped ASGI application
            engine: SessionEngine instance (app-scoped); built from
                ``options`` when omitted
            **options: SessionConfig fields
        """
        self.app = app
        self.engine = engine if engine is not None else SessionEngine(**options)
        self.logger = logging.getLogger("httpsession.middleware")

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope)
        response = Response()

        try:
            session = await self.engine.resolve(request, response)
        except Exception as e:
            self.logger.error(f"Session resolution failed: {e}", exc_info=True)
            raise

        scope["session"] = session

        async def send_wrapper(message: Message) -> None:
            message_type = message["type"]

            if message_type == "http.response.start":
                message["headers"] = response.flush_headers(message.get("headers", ()))

            elif message_type == "http.response.body" and not message.get("more_body", False):
                try:
                    await response.end()
                except Exception as e:
                    self.logger.error(f"Session commit failed: {e}", exc_info=True)
                    # Continue - the response must still complete

            await send(message)

        await self.app(scope, receive, send_wrapper)


def get_session(scope: Scope) -> Optional["Session"]:
    """
    Get the session SessionMiddleware resolved for this scope.

    Returns None outside a session-enabled request or after destroy().
    """
    state = scope.get("state")
    if not state:
        return None
    return state.get(SESSION_STATE_KEY)


__all__ = [
    "SessionMiddleware",
    "get_session",
]
