"""
Shared test fixtures and helpers for httpsession test suite.
"""

import pytest
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from httpsession.http import Request, Response


# ============================================================================
# Request Helpers
# ============================================================================


def make_scope(
    method: str = "GET",
    path: str = "/",
    headers: Optional[List[tuple]] = None,
    cookie: Optional[str] = None,
) -> dict:
    """Build a minimal ASGI HTTP scope."""
    raw_headers = []
    if headers:
        for name, value in headers:
            raw_headers.append(
                (name.encode("latin-1") if isinstance(name, str) else name,
                 value.encode("latin-1") if isinstance(value, str) else value)
            )
    if cookie is not None:
        raw_headers.append((b"cookie", cookie.encode("latin-1")))
    return {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": method,
        "path": path,
        "raw_path": path.encode("utf-8"),
        "query_string": b"",
        "headers": raw_headers,
        "scheme": "http",
        "server": ("127.0.0.1", 8000),
        "client": ("127.0.0.1", 12345),
        "root_path": "",
    }


def make_pair(cookie: Optional[str] = None, path: str = "/"):
    """Build a (Request, Response) pair for one simulated request."""
    return Request(make_scope(path=path, cookie=cookie)), Response()


def set_cookie_values(response: Response) -> List[str]:
    """All Set-Cookie header values, in order."""
    return [value for name, value in response.headers if name == "set-cookie"]


def cookie_pair(set_cookie: str) -> str:
    """The ``name=value`` part of a Set-Cookie value, usable as a Cookie header."""
    return set_cookie.split(";", 1)[0]


# ============================================================================
# Clock
# ============================================================================


class FakeClock:
    """Manually advanced aware clock."""

    def __init__(self, start: Optional[datetime] = None):
        self.current = start or datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current = self.current + timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock()
