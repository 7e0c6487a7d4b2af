"""
Core session types tests.

Tests SessionCookie, Session data access, flags, fingerprinting and touch.
"""

import pytest
from datetime import datetime, timedelta, timezone

from httpsession.core import (
    Session,
    SessionCookie,
    SessionFlag,
    generate_session_id,
    parse_datetime,
)
from httpsession.faults import SessionDestroyedFault, SessionUnboundFault
from httpsession.fingerprint import canonical_json, fingerprint


NOW = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


# ============================================================================
# Session IDs
# ============================================================================

class TestGenerateSessionId:

    def test_unique(self):
        ids = {generate_session_id() for _ in range(50)}
        assert len(ids) == 50

    def test_url_safe(self):
        sid = generate_session_id()
        assert "=" not in sid
        assert "+" not in sid and "/" not in sid
        assert len(sid) == 43


# ============================================================================
# Fingerprint
# ============================================================================

class TestFingerprint:

    def test_key_order_irrelevant(self):
        assert fingerprint({"a": 1, "b": 2}) == fingerprint({"b": 2, "a": 1})

    def test_value_change_detected(self):
        assert fingerprint({"a": 1}) != fingerprint({"a": 2})

    def test_nested(self):
        assert fingerprint({"a": {"x": [1, 2]}}) != fingerprint({"a": {"x": [2, 1]}})

    def test_canonical_json_compact(self):
        assert canonical_json({"b": 1, "a": [1, 2]}) == '{"a":[1,2],"b":1}'

    def test_non_json_values(self):
        assert fingerprint({"when": NOW}) == fingerprint({"when": NOW})


# ============================================================================
# parse_datetime
# ============================================================================

class TestParseDatetime:

    def test_none(self):
        assert parse_datetime(None) is None
        assert parse_datetime("") is None

    def test_iso_with_z(self):
        assert parse_datetime("2024-01-01T12:00:00Z") == NOW

    def test_iso_with_offset(self):
        assert parse_datetime("2024-01-01T12:00:00+00:00") == NOW

    def test_naive_is_utc(self):
        assert parse_datetime(datetime(2024, 1, 1, 12, 0, 0)) == NOW

    def test_epoch_seconds(self):
        assert parse_datetime(NOW.timestamp()) == NOW


# ============================================================================
# SessionCookie
# ============================================================================

class TestSessionCookie:

    def test_defaults(self):
        cookie = SessionCookie()
        assert cookie.path == "/"
        assert cookie.http_only is True
        assert cookie.secure is False
        assert cookie.max_age is None
        assert cookie.expires is None

    def test_refresh_with_max_age(self):
        cookie = SessionCookie(max_age=3600)
        cookie.refresh(NOW)
        assert cookie.expires == NOW + timedelta(hours=1)

    def test_refresh_without_max_age(self):
        cookie = SessionCookie(expires=NOW)
        cookie.refresh(NOW)
        assert cookie.expires is None

    def test_copy_is_independent(self):
        template = SessionCookie(max_age=60)
        copy = template.copy()
        copy.refresh(NOW)
        assert template.expires is None

    def test_from_dict_camel_case(self):
        cookie = SessionCookie.from_dict({
            "httpOnly": False,
            "sameSite": "lax",
            "maxAge": "60",
            "expires": "2024-01-01T12:00:00Z",
            "unknown": "ignored",
        })
        assert cookie.http_only is False
        assert cookie.same_site == "lax"
        assert cookie.max_age == 60
        assert cookie.expires == NOW


# ============================================================================
# Session
# ============================================================================

class TestSession:

    def test_data_operations(self):
        session = Session(id="abc")
        session["key"] = "value"
        assert session["key"] == "value"
        assert "key" in session
        assert len(session) == 1
        assert list(session) == ["key"]

    def test_get_with_default(self):
        session = Session(id="abc")
        assert session.get("missing", "default") == "default"

    def test_delete_and_clear(self):
        session = Session(id="abc", data={"a": 1, "b": 2})
        session.delete("a")
        session.delete("missing")
        assert "a" not in session
        session.clear()
        assert len(session) == 0

    def test_id_read_only(self):
        session = Session(id="abc")
        with pytest.raises(AttributeError):
            session.id = "other"

    def test_new_flag(self):
        session = Session(id="abc", flags={SessionFlag.NEW})
        assert session.is_new
        assert not session.is_touched
        assert not session.is_destroyed


class TestDirtyTracking:

    def test_unbaselined_is_dirty(self):
        assert Session(id="abc").is_dirty

    def test_clean_after_mark(self):
        session = Session(id="abc", data={"a": 1})
        session.mark_clean()
        assert not session.is_dirty

    def test_data_change_is_dirty(self):
        session = Session(id="abc", data={"a": 1})
        session.mark_clean()
        session["a"] = 2
        assert session.is_dirty

    def test_revert_is_clean(self):
        session = Session(id="abc", data={"a": 1})
        session.mark_clean()
        session["a"] = 2
        session["a"] = 1
        assert not session.is_dirty

    def test_nested_mutation_detected(self):
        session = Session(id="abc", data={"cart": {"items": []}})
        session.mark_clean()
        session.data["cart"]["items"].append("apple")
        assert session.is_dirty

    def test_cookie_change_not_dirty(self):
        session = Session(id="abc", cookie=SessionCookie(max_age=60))
        session.mark_clean()
        session.touch(NOW)
        assert not session.is_dirty
        assert session.is_touched


class TestTouch:

    def test_touch_extends_expiry(self):
        session = Session(id="abc", cookie=SessionCookie(max_age=3600))
        session.touch(NOW)
        assert session.cookie.expires == NOW + timedelta(seconds=3600)
        assert SessionFlag.TOUCHED in session.flags

    def test_touch_without_max_age(self):
        session = Session(id="abc")
        session.touch(NOW)
        assert session.cookie.expires is None
        assert session.is_touched

    def test_last_touched_at(self):
        session = Session(id="abc", cookie=SessionCookie(max_age=600))
        assert session.last_touched_at is None
        session.touch(NOW)
        assert session.last_touched_at == NOW

    def test_is_expired(self):
        session = Session(id="abc", cookie=SessionCookie(max_age=60))
        session.touch(NOW)
        assert not session.is_expired(NOW + timedelta(seconds=59))
        assert session.is_expired(NOW + timedelta(seconds=60))
        assert not Session(id="x").is_expired(NOW)


class TestDestroyedSession:

    def _destroyed(self):
        return Session(id="abc", data={"a": 1}, flags={SessionFlag.DESTROYED})

    def test_mutation_rejected(self):
        session = self._destroyed()
        with pytest.raises(SessionDestroyedFault):
            session["a"] = 2
        with pytest.raises(SessionDestroyedFault):
            del session["a"]
        with pytest.raises(SessionDestroyedFault):
            session.clear()
        with pytest.raises(SessionDestroyedFault):
            session.set("b", 1)

    def test_reads_allowed(self):
        session = self._destroyed()
        assert session["a"] == 1

    @pytest.mark.asyncio
    async def test_commit_rejected(self):
        with pytest.raises(SessionDestroyedFault):
            await self._destroyed().commit()

    @pytest.mark.asyncio
    async def test_regenerate_rejected(self):
        with pytest.raises(SessionDestroyedFault):
            await self._destroyed().regenerate()


class TestUnboundSession:

    @pytest.mark.asyncio
    async def test_destroy_requires_engine(self):
        with pytest.raises(SessionUnboundFault):
            await Session(id="abc").destroy()

    @pytest.mark.asyncio
    async def test_commit_requires_engine(self):
        with pytest.raises(SessionUnboundFault):
            await Session(id="abc").commit()


class TestSerialization:

    def test_to_dict_shape(self):
        session = Session(
            id="abc",
            data={"userId": 42},
            cookie=SessionCookie(max_age=60),
            flags={SessionFlag.NEW},
        )
        record = session.to_dict()
        assert set(record) == {"data", "cookie"}
        assert record["data"] == {"userId": 42}
        assert record["cookie"]["max_age"] == 60

    def test_from_dict(self):
        session = Session.from_dict("abc", {
            "data": {"userId": 42},
            "cookie": {"maxAge": 60, "expires": "2024-01-01T12:00:00Z"},
        })
        assert session.id == "abc"
        assert session["userId"] == 42
        assert session.cookie.expires == NOW
        assert session.flags == set()

    def test_from_dict_missing_parts(self):
        session = Session.from_dict("abc", {})
        assert session.data == {}
        assert session.cookie == SessionCookie()
