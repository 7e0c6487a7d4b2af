"""
httpsession - Cookie codec.

Parses ``Cookie`` request headers and serializes ``Set-Cookie`` values:
- parse_cookie_header: header string -> {name: value}
- serialize_cookie: name, value, attributes -> header value
- CookieSigner: HMAC signing, usable as an encode/decode pair
"""

from __future__ import annotations

import hashlib
import hmac
import math
import re
from base64 import urlsafe_b64decode, urlsafe_b64encode
from datetime import datetime
from email.utils import formatdate
from typing import TYPE_CHECKING, Optional, Union
from urllib.parse import quote, unquote

if TYPE_CHECKING:
    from .core import SessionCookie


# RFC 6265 token characters
_COOKIE_NAME_RE = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")
_ATTRIBUTE_VALUE_RE = re.compile(r"^[\x21-\x3a\x3c-\x7e]*$")

# Characters left unescaped in cookie values
_VALUE_SAFE = "!'()*~"

_SAMESITE_VALUES = {
    "strict": "Strict",
    "lax": "Lax",
    "none": "None",
}


def parse_cookie_header(cookie_header: str | None) -> dict[str, str]:
    """
    Parse cookie header into dict.

    The first occurrence of a name wins. Quoted values are unquoted and
    percent-encoded values decoded.

    Args:
        cookie_header: Cookie header value

    Returns:
        Dict of cookie name -> value
    """
    cookies: dict[str, str] = {}
    if not cookie_header:
        return cookies

    for part in cookie_header.split(";"):
        part = part.strip()
        if "=" not in part:
            continue

        name, value = part.split("=", 1)
        name = name.strip()
        if not name or name in cookies:
            continue

        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] == '"':
            value = value[1:-1]

        try:
            cookies[name] = unquote(value, errors="strict")
        except UnicodeDecodeError:
            cookies[name] = value

    return cookies


def _format_samesite(value: Union[bool, str]) -> Optional[str]:
    if value is True:
        return "Strict"
    if value is False or value is None:
        return None
    try:
        return _SAMESITE_VALUES[str(value).lower()]
    except KeyError:
        raise ValueError(f"Invalid SameSite value: {value!r}")


def serialize_cookie(name: str, value: str, cookie: SessionCookie) -> str:
    """
    Build a Set-Cookie header value.

    Attribute order: Max-Age, Domain, Path, Expires, HttpOnly, Secure,
    SameSite. Unset attributes are omitted.

    Args:
        name: Cookie name
        value: Cookie value (percent-encoded on output)
        cookie: Cookie attributes

    Returns:
        Header value, e.g. ``sid=abc; Max-Age=3600; Path=/; HttpOnly``

    Raises:
        ValueError: If name or an attribute value is invalid
    """
    if not _COOKIE_NAME_RE.match(name):
        raise ValueError(f"Invalid cookie name: {name!r}")

    cookie_parts = [f"{name}={quote(value, safe=_VALUE_SAFE)}"]

    if cookie.max_age is not None:
        cookie_parts.append(f"Max-Age={math.floor(cookie.max_age)}")

    if cookie.domain:
        if not _ATTRIBUTE_VALUE_RE.match(cookie.domain):
            raise ValueError(f"Invalid cookie domain: {cookie.domain!r}")
        cookie_parts.append(f"Domain={cookie.domain}")

    if cookie.path:
        if not _ATTRIBUTE_VALUE_RE.match(cookie.path):
            raise ValueError(f"Invalid cookie path: {cookie.path!r}")
        cookie_parts.append(f"Path={cookie.path}")

    if cookie.expires is not None:
        cookie_parts.append(f"Expires={format_http_date(cookie.expires)}")

    if cookie.http_only:
        cookie_parts.append("HttpOnly")

    if cookie.secure:
        cookie_parts.append("Secure")

    samesite = _format_samesite(cookie.same_site)
    if samesite:
        cookie_parts.append(f"SameSite={samesite}")

    return "; ".join(cookie_parts)


def format_http_date(dt: datetime) -> str:
    """Format a datetime as an HTTP date (``Thu, 01 Jan 1970 00:00:00 GMT``)."""
    return formatdate(dt.timestamp(), usegmt=True)


# ============================================================================
# CookieSigner - HMAC id signing
# ============================================================================

class CookieSigner:
    """
    Cookie signer with HMAC-based signing.

    Uses urlsafe base64 encoding for signed values. ``sign``/``unsign`` fit
    the ``encode``/``decode`` session options directly.

    Example:
        >>> signer = CookieSigner("s3cret")
        >>> signer.unsign(signer.sign("abc"))
        'abc'
    """

    def __init__(self, secret_key: Union[str, bytes], algorithm: str = "sha256"):
        """
        Initialize cookie signer.

        Args:
            secret_key: Secret key for signing
            algorithm: Hash algorithm (sha256, sha384, sha512)
        """
        if isinstance(secret_key, str):
            secret_key = secret_key.encode("utf-8")
        elif not isinstance(secret_key, bytes):
            raise TypeError(f"secret_key must be str or bytes, got {type(secret_key).__name__}")
        if not secret_key:
            raise ValueError("secret_key must not be empty")

        self.secret_key = secret_key
        self.algorithm = algorithm
        self._hash_func = getattr(hashlib, algorithm)

    def _signature(self, value_bytes: bytes) -> bytes:
        return hmac.new(self.secret_key, value_bytes, self._hash_func).digest()

    def sign(self, value: str) -> str:
        """
        Sign a cookie value.

        Returns: base64 ``signature.value``
        """
        value_bytes = value.encode("utf-8")
        sig_b64 = urlsafe_b64encode(self._signature(value_bytes)).decode("ascii").rstrip("=")
        val_b64 = urlsafe_b64encode(value_bytes).decode("ascii").rstrip("=")
        return f"{sig_b64}.{val_b64}"

    def unsign(self, signed_value: str) -> Optional[str]:
        """
        Verify and unsign a cookie value.

        Returns: Original value if signature valid, None otherwise
        """
        try:
            sig_b64, val_b64 = signed_value.split(".", 1)

            signature = urlsafe_b64decode(sig_b64 + "=" * (-len(sig_b64) % 4))
            value_bytes = urlsafe_b64decode(val_b64 + "=" * (-len(val_b64) % 4))

            if not hmac.compare_digest(signature, self._signature(value_bytes)):
                return None

            return value_bytes.decode("utf-8")

        except (ValueError, UnicodeDecodeError):
            return None


__all__ = [
    "parse_cookie_header",
    "serialize_cookie",
    "format_http_date",
    "CookieSigner",
]
