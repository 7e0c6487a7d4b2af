"""
Cookie codec tests.

Tests parse_cookie_header, serialize_cookie, format_http_date and CookieSigner.
"""

import pytest
from datetime import datetime, timezone

from httpsession.core import EPOCH, SessionCookie
from httpsession.cookies import (
    CookieSigner,
    format_http_date,
    parse_cookie_header,
    serialize_cookie,
)


# ============================================================================
# parse_cookie_header
# ============================================================================

class TestParseCookieHeader:

    def test_empty(self):
        assert parse_cookie_header("") == {}
        assert parse_cookie_header(None) == {}

    def test_multiple(self):
        assert parse_cookie_header("a=1; sid=abc;b=2") == {"a": "1", "sid": "abc", "b": "2"}

    def test_first_occurrence_wins(self):
        assert parse_cookie_header("sid=first; sid=second")["sid"] == "first"

    def test_quoted_value(self):
        assert parse_cookie_header('sid="abc"')["sid"] == "abc"

    def test_percent_decoded(self):
        assert parse_cookie_header("sid=a%20b")["sid"] == "a b"

    def test_value_with_equals(self):
        assert parse_cookie_header("sid=a=b")["sid"] == "a=b"

    def test_malformed_parts_skipped(self):
        assert parse_cookie_header("junk; =x; sid=1") == {"sid": "1"}


# ============================================================================
# serialize_cookie
# ============================================================================

class TestSerializeCookie:

    def test_defaults(self):
        assert serialize_cookie("sid", "abc", SessionCookie()) == "sid=abc; Path=/; HttpOnly"

    def test_attribute_order(self):
        cookie = SessionCookie(
            path="/app",
            domain="example.com",
            http_only=True,
            secure=True,
            same_site="lax",
            max_age=3600,
            expires=datetime(2024, 1, 1, 13, 0, 0, tzinfo=timezone.utc),
        )
        assert serialize_cookie("sid", "abc", cookie) == (
            "sid=abc; Max-Age=3600; Domain=example.com; Path=/app; "
            "Expires=Mon, 01 Jan 2024 13:00:00 GMT; HttpOnly; Secure; SameSite=Lax"
        )

    def test_expired_cookie(self):
        cookie = SessionCookie(max_age=-1, expires=EPOCH)
        header = serialize_cookie("sid", "abc", cookie)
        assert "Max-Age=-1" in header
        assert "Expires=Thu, 01 Jan 1970 00:00:00 GMT" in header

    def test_same_site_variants(self):
        assert serialize_cookie("s", "v", SessionCookie(same_site=True)).endswith("SameSite=Strict")
        assert serialize_cookie("s", "v", SessionCookie(same_site="None")).endswith("SameSite=None")
        assert "SameSite" not in serialize_cookie("s", "v", SessionCookie(same_site=False))

    def test_invalid_same_site(self):
        with pytest.raises(ValueError):
            serialize_cookie("s", "v", SessionCookie(same_site="sometimes"))

    def test_value_encoded(self):
        assert serialize_cookie("s", "a b;c", SessionCookie(path=None, http_only=False)) == "s=a%20b%3Bc"

    def test_invalid_name(self):
        with pytest.raises(ValueError):
            serialize_cookie("bad name", "v", SessionCookie())

    def test_invalid_path(self):
        with pytest.raises(ValueError):
            serialize_cookie("s", "v", SessionCookie(path="/a;b"))


class TestFormatHttpDate:

    def test_epoch(self):
        assert format_http_date(EPOCH) == "Thu, 01 Jan 1970 00:00:00 GMT"


# ============================================================================
# CookieSigner
# ============================================================================

class TestCookieSigner:

    def test_sign_unsign(self):
        signer = CookieSigner("s3cret")
        signed = signer.sign("session-id")
        assert signed != "session-id"
        assert signer.unsign(signed) == "session-id"

    def test_tampered_rejected(self):
        signer = CookieSigner("s3cret")
        signed = signer.sign("session-id")
        sig, _ = signed.split(".", 1)
        forged = sig + "." + CookieSigner("s3cret").sign("other-id").split(".", 1)[1]
        assert signer.unsign(forged) is None

    def test_wrong_key_rejected(self):
        signed = CookieSigner("one").sign("session-id")
        assert CookieSigner("two").unsign(signed) is None

    def test_garbage_rejected(self):
        signer = CookieSigner("s3cret")
        assert signer.unsign("no-dot-here") is None
        assert signer.unsign("!!!.###") is None

    def test_empty_key_rejected(self):
        with pytest.raises(ValueError):
            CookieSigner("")

    def test_non_text_key_rejected(self):
        with pytest.raises(TypeError):
            CookieSigner(12345678901234567890)

    def test_bytes_key(self):
        assert CookieSigner(b"s3cret").sign("abc") == CookieSigner("s3cret").sign("abc")
