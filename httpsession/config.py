"""
Config system - Typed session configuration.

Options are captured once, when a SessionEngine is constructed. Sources:
- SessionConfig(...) keyword arguments
- SessionConfig.from_dict(mapping) (snake_case or camelCase keys)
- SessionConfig.from_env(prefix, env_file) (.env file < environment)
"""

from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, Mapping, Optional, Union

from dotenv import dotenv_values

from .core import SessionCookie
from .faults import SessionConfigFault

if TYPE_CHECKING:
    from .store import SessionStore


_DURATION_RE = re.compile(
    r"^(?P<amount>-?\d+(?:\.\d+)?|-?\.\d+)\s*"
    r"(?P<unit>milliseconds?|msecs?|ms|seconds?|secs?|s|minutes?|mins?|m|"
    r"hours?|hrs?|h|days?|d|weeks?|w|years?|yrs?|y)?$",
    re.IGNORECASE,
)

_UNIT_SECONDS = {
    "ms": 0.001,
    "s": 1,
    "m": 60,
    "h": 60 * 60,
    "d": 24 * 60 * 60,
    "w": 7 * 24 * 60 * 60,
    "y": 365.25 * 24 * 60 * 60,
}


def _unit_key(unit: str) -> str:
    unit = unit.lower()
    if unit.startswith(("ms", "msec", "milli")):
        return "ms"
    if unit.startswith("mi") or unit == "m":
        return "m"
    return unit[0]


def parse_duration(value: Union[int, float, str]) -> float:
    """
    Parse a duration into seconds.

    Numbers and bare numeric strings are seconds. Strings may carry a
    unit: ``"500ms"``, ``"30s"``, ``"15 minutes"``, ``"1h"``, ``"2d"``,
    ``"1w"``, ``"1y"``.

    Raises:
        SessionConfigFault: Unparseable value
    """
    if isinstance(value, bool):
        raise SessionConfigFault("touch_after", f"expected a duration, got {value!r}")
    if isinstance(value, (int, float)):
        return float(value)

    match = _DURATION_RE.match(str(value).strip())
    if not match:
        raise SessionConfigFault("touch_after", f"unrecognized duration {value!r}")

    amount = float(match.group("amount"))
    unit = match.group("unit")
    if unit is None:
        return amount
    return amount * _UNIT_SECONDS[_unit_key(unit)]


_SAMESITE_OPTIONS = {"strict", "lax", "none"}

# Accepted spellings -> field names
_OPTION_ALIASES = {
    "touchAfter": "touch_after",
    "autoCommit": "auto_commit",
    "cookie_name": "name",
}


@dataclass
class SessionConfig:
    """
    Session manager configuration.

    Attributes:
        name: Cookie name carrying the session id
        store: SessionStore implementation (MemoryStore when None)
        genid: Id generator (generate_session_id when None)
        encode: Applied to the id when writing the cookie
        decode: Applied to the cookie value when reading; None/"" = no id
        touch_after: Seconds (or duration string) since the last touch
            after which a loaded session is touched again; -1 disables
        cookie: Cookie attribute template for new sessions
        auto_commit: Register the header-flush/body-end hooks
        secret: Sign ids with CookieSigner when encode/decode are unset

    Example:
        >>> config = SessionConfig(
        ...     cookie=SessionCookie(max_age=3600),
        ...     touch_after="1h",
        ... )
    """

    name: str = "sid"
    store: Optional[SessionStore] = None
    genid: Optional[Callable[[], str]] = None
    encode: Optional[Callable[[str], str]] = None
    decode: Optional[Callable[[str], Optional[str]]] = None
    touch_after: Union[int, float, str] = -1
    cookie: SessionCookie = field(default_factory=SessionCookie)
    auto_commit: bool = True
    secret: Optional[str] = field(default=None, repr=False)

    def __post_init__(self):
        # Mappings (JSON, YAML) may carry numbers for text options
        if self.name is not None and not isinstance(self.name, str):
            self.name = str(self.name)
        if self.secret is not None and not isinstance(self.secret, (str, bytes)):
            self.secret = str(self.secret)

        if not self.name:
            raise SessionConfigFault("name", "cookie name must not be empty")

        if isinstance(self.cookie, Mapping):
            self.cookie = SessionCookie.from_dict(self.cookie)
        elif not isinstance(self.cookie, SessionCookie):
            raise SessionConfigFault("cookie", f"expected SessionCookie or mapping, got {type(self.cookie).__name__}")

        if self.cookie.max_age is not None and self.cookie.max_age < 0:
            raise SessionConfigFault("cookie.max_age", "must not be negative")

        same_site = self.cookie.same_site
        if not (
            same_site is None
            or isinstance(same_site, bool)
            or (isinstance(same_site, str) and same_site.lower() in _SAMESITE_OPTIONS)
        ):
            raise SessionConfigFault(
                "cookie.same_site",
                f"expected True, False, None, 'strict', 'lax' or 'none', got {same_site!r}",
            )

        self.touch_after = parse_duration(self.touch_after)

        if self.secret and self.encode is None and self.decode is None:
            from .cookies import CookieSigner

            signer = CookieSigner(self.secret)
            self.encode = signer.sign
            self.decode = signer.unsign

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SessionConfig:
        """
        Build config from a mapping.

        Unknown keys are ignored. ``cookie`` may be a nested mapping.
        """
        known = {f for f in cls.__dataclass_fields__}
        values: Dict[str, Any] = {}
        for key, value in data.items():
            key = _OPTION_ALIASES.get(key, key)
            if key in known:
                values[key] = value
        return cls(**values)

    @classmethod
    def from_env(
        cls,
        prefix: str = "HTTPSESSION_",
        env_file: Optional[str] = None,
        **overrides: Any,
    ) -> SessionConfig:
        """
        Load config from a .env file and environment variables.

        Merge order (later overrides earlier):
        1. .env file (if given)
        2. Environment variables with ``prefix``
        3. Keyword overrides (store, genid, encode, decode, ...)

        Nested cookie keys use a double underscore:
        ``HTTPSESSION_COOKIE__MAX_AGE=3600``.
        """
        loader = _EnvLoader(prefix)
        if env_file:
            loader.load_mapping(dotenv_values(env_file))
        loader.load_mapping(os.environ)

        data = loader.config_data
        data.update(overrides)
        return cls.from_dict(data)


class _EnvLoader:
    """Collects prefixed variables into a nested dict."""

    # Text options, kept verbatim (no bool/number/None coercion)
    RAW_KEYS = {
        ("name",),
        ("cookie_name",),
        ("secret",),
        ("cookie", "path"),
        ("cookie", "domain"),
        ("cookie", "same_site"),
    }

    def __init__(self, env_prefix: str):
        self.env_prefix = env_prefix
        self.config_data: Dict[str, Any] = {}

    def load_mapping(self, mapping: Mapping[str, Optional[str]]) -> None:
        for key, value in mapping.items():
            if key.startswith(self.env_prefix) and value is not None:
                self._set_nested(key, value)

    def _set_nested(self, key: str, value: str) -> None:
        """Convert HTTPSESSION_COOKIE__MAX_AGE to {"cookie": {"max_age": ...}}."""
        key = key[len(self.env_prefix):]
        parts = key.lower().split("__")

        current = self.config_data
        for part in parts[:-1]:
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]

        if tuple(parts) in self.RAW_KEYS:
            current[parts[-1]] = value
        else:
            current[parts[-1]] = self._parse_value(value)

    @staticmethod
    def _parse_value(value: str) -> Any:
        """Parse string value to appropriate type."""
        lowered = value.strip().lower()
        if lowered in ("true", "yes", "on"):
            return True
        if lowered in ("false", "no", "off"):
            return False
        if lowered in ("", "none", "null"):
            return None

        try:
            if "." in value:
                return float(value)
            return int(value)
        except ValueError:
            pass

        if value.startswith(("{", "[")):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                pass

        return value


__all__ = [
    "SessionConfig",
    "parse_duration",
]
