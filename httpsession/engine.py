"""
httpsession - Session Engine.

The SessionEngine orchestrates the complete session lifecycle:
1. Detection - Extract session ID from the cookie
2. Resolution - Load from store or create new
3. Binding - Cache on the request, attach lifecycle operations
4. Mutation - Handler reads/writes session data
5. Emission - On header flush, write Set-Cookie if needed
6. Commit - On body end, persist or refresh expiry if needed

SessionEngine is app-scoped; Session instances are request-scoped.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional, TypeVar

from .config import SessionConfig
from .core import EPOCH, Session, SessionFlag, generate_session_id
from .faults import Fault, SessionStoreUnavailableFault, hash_session_id
from .store import MemoryStore, supports_touch
from .transport import CookieTransport

if TYPE_CHECKING:
    from .http import Request, Response
    from .store import SessionStore


T = TypeVar("T")

SESSION_STATE_KEY = "session"


# ============================================================================
# SessionEngine - Lifecycle Orchestrator
# ============================================================================

class SessionEngine:
    """
    Session lifecycle orchestrator.

    Configuration is captured at construction; nothing is process-global.

    Example:
        >>> engine = SessionEngine(SessionConfig(cookie=SessionCookie(max_age=3600)))
        >>> session = await engine.resolve(request, response)
        >>> session["user_id"] = 42
        >>> # header flush -> Set-Cookie, body end -> store.set
    """

    def __init__(
        self,
        config: Optional[SessionConfig] = None,
        *,
        logger: Optional[logging.Logger] = None,
        clock: Optional[Callable[[], datetime]] = None,
        **options: Any,
    ):
        """
        Initialize session engine.

        Args:
            config: Session configuration; keyword options build one if omitted
            logger: Optional logger
            clock: Returns the current aware datetime (defaults to utcnow)
            **options: SessionConfig fields, when config is not given
        """
        if config is None:
            config = SessionConfig.from_dict(options)
        elif options:
            raise TypeError("Pass either a SessionConfig or keyword options, not both")

        self.config = config
        self.name = config.name
        self.store: SessionStore = config.store if config.store is not None else MemoryStore(clock=clock)
        self.genid: Callable[[], str] = config.genid or generate_session_id
        self.touch_after: float = config.touch_after
        self.auto_commit = config.auto_commit
        self.transport = CookieTransport(config.name, config.encode, config.decode)
        self.logger = logger or logging.getLogger("httpsession.engine")
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        # Event callbacks (for observability)
        self._event_handlers: list[Callable[[dict[str, Any]], None]] = []

    def now(self) -> datetime:
        return self._clock()

    @property
    def store_name(self) -> str:
        return type(self.store).__name__

    async def _store_call(self, operation: str, call: Awaitable[T]) -> T:
        """Await a store call, re-raising backend errors as a store fault."""
        try:
            return await call
        except Fault:
            raise
        except Exception as e:
            raise SessionStoreUnavailableFault(
                store_name=self.store_name,
                operation=operation,
                cause=str(e),
            ) from e

    # ========================================================================
    # Phase 1-3: Detection, Resolution, Binding
    # ========================================================================

    async def resolve(self, request: Request, response: Response) -> Session:
        """
        Resolve the session for this request.

        Idempotent within a request: the first call caches the session on
        ``request.state`` and later calls return that same object.

        Args:
            request: Incoming request
            response: Outgoing response

        Returns:
            Existing or new session

        Raises:
            SessionStoreUnavailableFault: Store read failed
        """
        cached = request.state.get(SESSION_STATE_KEY)
        if cached is not None:
            return cached

        now = self.now()

        # Phase 1: Detection
        session_id = self.transport.extract(request)

        # Phase 2: Resolution
        record = None
        if session_id:
            record = await self._store_call("get", self.store.get(session_id))

        if record is not None:
            session = Session.from_dict(session_id, record)
            session.bind(self, request, response)
            self._maybe_touch(session, now)
            self._emit_event("session_loaded", session, request)
        else:
            session = self._create_new(now)
            session.bind(self, request, response)
            self._emit_event("session_created", session, request)

        # Phase 3: Binding
        session.mark_clean()
        request.state[SESSION_STATE_KEY] = session

        if self.auto_commit:
            self._install_hooks(session, response)

        return session

    def _maybe_touch(self, session: Session, now: datetime) -> None:
        """Touch a loaded session once touch_after seconds passed since the last touch."""
        if self.touch_after < 0:
            return

        last_touched_at = session.last_touched_at
        if last_touched_at is None:
            return

        if (now - last_touched_at).total_seconds() >= self.touch_after:
            session.touch(now)
            self._emit_event("session_touched", session, None)

    def _create_new(self, now: datetime) -> Session:
        """Create a new session from the configured cookie template."""
        cookie = self.config.cookie.copy()
        cookie.refresh(now)

        return Session(
            id=self.genid(),
            cookie=cookie,
            flags={SessionFlag.NEW},
        )

    def _install_hooks(self, session: Session, response: Response) -> None:
        def on_headers(resp: Response) -> None:
            self.emit_cookie(session, resp)

        async def on_end(resp: Response) -> None:
            try:
                await self.persist(session)
            except Exception as e:
                self.emit_commit_failure(session, e)
                raise

        response.on_headers(on_headers)
        response.on_end(on_end)

    # ========================================================================
    # Phase 5: Emission (header flush)
    # ========================================================================

    def should_set_cookie(self, session: Session, response: Response) -> bool:
        """
        Decide whether the Set-Cookie header is needed.

        New sessions are cookied only once they hold data, so a visitor
        whose session stays empty never receives a cookie.
        """
        if response.headers_sent or session.is_destroyed:
            return False
        return session.is_touched or (session.is_new and session.is_dirty)

    def emit_cookie(self, session: Session, response: Response) -> bool:
        """Write Set-Cookie if should_set_cookie(); returns True if written."""
        if not self.should_set_cookie(session, response):
            return False
        return self.transport.inject(response, session)

    # ========================================================================
    # Phase 6: Commit (body end)
    # ========================================================================

    async def persist(self, session: Session) -> Optional[str]:
        """
        Persist the session at the end of the response, if needed.

        Decision:
        1. Destroyed -> nothing (destroy() already wrote)
        2. Data changed -> store.set
        3. Touched -> store.touch (store.set if the store has no touch)
        4. Otherwise -> nothing

        Returns:
            The store operation performed ("set", "touch") or None
        """
        if session.is_destroyed:
            return None

        if session.is_dirty:
            operation = "set"
            await self._store_call("set", self.store.set(session.id, session))
        elif session.is_touched:
            if supports_touch(self.store):
                operation = "touch"
                await self._store_call("touch", self.store.touch(session.id, session))
            else:
                operation = "set"
                await self._store_call("set", self.store.set(session.id, session))
        else:
            return None

        session.flags.discard(SessionFlag.NEW)
        session.mark_clean()
        self._emit_event("session_committed", session, None, operation=operation)
        return operation

    # ========================================================================
    # Session Operations
    # ========================================================================

    async def commit(self, session: Session) -> None:
        """
        Explicit commit: cookie header (if headers not sent) + store.set.

        Args:
            session: Session to commit
        """
        if session._response is not None:
            self.transport.inject(session._response, session)

        await self._store_call("set", self.store.set(session.id, session))

        session.flags.discard(SessionFlag.NEW)
        session.flags.discard(SessionFlag.TOUCHED)
        session.mark_clean()
        self._emit_event("session_committed", session, None, operation="commit")

    async def destroy(self, session: Session) -> None:
        """
        Destroy session (logout).

        Expires the cookie on the client (if headers are not sent yet) and
        deletes the stored record. Destroying twice is a no-op.

        Args:
            session: Session to destroy

        Raises:
            SessionStoreUnavailableFault: Store delete failed
        """
        if session.is_destroyed:
            return

        session.flags.add(SessionFlag.DESTROYED)

        request = session._request
        if request is not None and request.state.get(SESSION_STATE_KEY) is session:
            del request.state[SESSION_STATE_KEY]

        session.cookie.max_age = -1
        session.cookie.expires = EPOCH
        if session._response is not None:
            self.transport.inject(session._response, session)

        await self._store_call("destroy", self.store.destroy(session.id))
        self._emit_event("session_destroyed", session, None)

    async def regenerate(self, session: Session) -> None:
        """
        Rotate session ID (new ID, same data).

        Args:
            session: Session to regenerate
        """
        old_id = session.id
        await self._store_call("destroy", self.store.destroy(old_id))

        session._id = self.genid()
        session.flags.add(SessionFlag.NEW)
        session._baseline = None

        response = session._response
        if response is not None and response.headers_sent:
            self.logger.warning(
                "Session regenerated after headers were sent; client keeps the old id"
            )

        self._emit_event(
            "session_regenerated", session, None,
            previous_id_hash=hash_session_id(old_id),
        )

    # ========================================================================
    # Observability
    # ========================================================================

    def _emit_event(
        self,
        event_name: str,
        session: Optional[Session],
        request: Optional[Request],
        **extra: Any,
    ) -> None:
        """
        Emit session event for observability.

        Args:
            event_name: Event name
            session: Session (if available)
            request: Request (if available)
        """
        event_data: dict[str, Any] = {
            "event": event_name,
            "timestamp": self.now().isoformat(),
        }

        if session is not None:
            event_data.update({
                "session_id_hash": hash_session_id(session.id),
                "new": session.is_new,
                "touched": session.is_touched,
            })

        if request is not None:
            event_data.update({
                "request_path": request.path,
                "request_method": request.method,
            })

        event_data.update(extra)

        for handler in self._event_handlers:
            try:
                handler(event_data)
            except Exception as e:
                self.logger.error(f"Event handler error: {e}")

        self.logger.debug(f"Session event: {event_name}", extra={"session_event": event_data})

    def on_event(self, handler: Callable[[dict[str, Any]], None]) -> None:
        """
        Register event handler for observability.

        Args:
            handler: Callable that receives event dict
        """
        self._event_handlers.append(handler)

    def emit_commit_failure(self, session: Optional[Session], error: BaseException) -> None:
        """Report a failed end-of-response commit."""
        self._emit_event("session_commit_failed", session, None, error=str(error))

    # ========================================================================
    # Cleanup
    # ========================================================================

    async def cleanup_expired(self) -> int:
        """
        Remove expired sessions from the store, if it supports sweeping.

        Returns:
            Number of sessions removed
        """
        cleanup = getattr(self.store, "cleanup_expired", None)
        if cleanup is None:
            return 0

        try:
            count = await cleanup()
        except Exception as e:
            self.logger.error(f"Cleanup failed: {e}", exc_info=True)
            return 0

        self.logger.info(f"Cleaned up {count} expired sessions")
        return count

    async def shutdown(self) -> None:
        """Gracefully shutdown engine."""
        shutdown = getattr(self.store, "shutdown", None)
        if shutdown is not None:
            await shutdown()


__all__ = [
    "SessionEngine",
    "SESSION_STATE_KEY",
]
