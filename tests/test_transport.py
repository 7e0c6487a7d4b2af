"""
Cookie transport tests.

Tests session id extraction from requests and Set-Cookie injection.
"""

from unittest.mock import MagicMock

from httpsession.core import Session, SessionCookie
from httpsession.cookies import CookieSigner
from httpsession.http import Request, Response
from httpsession.transport import CookieTransport

from tests.conftest import make_scope


class TestExtract:

    def test_extract(self):
        transport = CookieTransport("sid")
        assert transport.extract(Request(make_scope(cookie="other=1; sid=abc"))) == "abc"

    def test_missing(self):
        transport = CookieTransport("sid")
        assert transport.extract(Request(make_scope())) is None
        assert transport.extract(Request(make_scope(cookie="other=1"))) is None

    def test_empty_value(self):
        assert CookieTransport("sid").extract(Request(make_scope(cookie="sid="))) is None

    def test_custom_name(self):
        transport = CookieTransport("app_session")
        request = Request(make_scope(cookie="sid=wrong; app_session=right"))
        assert transport.extract(request) == "right"

    def test_decode(self):
        signer = CookieSigner("s3cret")
        transport = CookieTransport("sid", encode=signer.sign, decode=signer.unsign)
        request = Request(make_scope(cookie=f"sid={signer.sign('abc')}"))
        assert transport.extract(request) == "abc"

    def test_decode_rejects(self):
        signer = CookieSigner("s3cret")
        transport = CookieTransport("sid", decode=signer.unsign)
        assert transport.extract(Request(make_scope(cookie="sid=forged"))) is None


class TestInject:

    def test_inject(self):
        transport = CookieTransport("sid")
        response = Response()
        assert transport.inject(response, Session(id="abc"))
        assert response.get_header("set-cookie") == "sid=abc; Path=/; HttpOnly"

    def test_encode(self):
        transport = CookieTransport("sid", encode=lambda v: v.upper())
        assert transport.build(Session(id="abc")).startswith("sid=ABC;")

    def test_appends_to_single(self):
        transport = CookieTransport("sid")
        response = Response()
        response.set_header("set-cookie", "a=b")
        transport.inject(response, Session(id="123"))
        assert response.get_header("set-cookie") == ["a=b", "sid=123; Path=/; HttpOnly"]

    def test_appends_to_list(self):
        transport = CookieTransport("sid")
        response = Response()
        response.set_header("set-cookie", ["a=1", "b=2"])
        transport.inject(response, Session(id="123", cookie=SessionCookie(path=None, http_only=False)))
        assert response.get_header("set-cookie") == ["a=1", "b=2", "sid=123"]

    def test_noop_after_headers_sent(self):
        transport = CookieTransport("sid")
        response = MagicMock()
        response.headers_sent = True

        assert transport.inject(response, Session(id="abc")) is False
        response.set_header.assert_not_called()
