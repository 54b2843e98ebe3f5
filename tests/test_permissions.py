from datetime import timedelta

from conftest import FakeClock
from memberauth.auth.session import SessionRecord
from memberauth.permissions import Access, access_level


def _session(role="user", authenticated=True, clock=None):
    clock = clock or FakeClock()
    return SessionRecord(
        authenticated=authenticated,
        email="a@x.com",
        name="Ann",
        role=role,
        expires_at=clock() + timedelta(hours=1),
    )


def test_access_levels():
    now = FakeClock()()
    assert access_level(None, now) is Access.NONE
    assert access_level(_session(), now) is Access.AUTHENTICATED
    assert access_level(_session(role="admin"), now) is Access.ADMIN
    assert access_level(_session(authenticated=False), now) is Access.NONE


def test_expired_session_has_no_access():
    clock = FakeClock()
    session = _session(role="admin", clock=clock)
    clock.advance(3600)
    assert access_level(session, clock()) is Access.NONE


def test_access_is_ordered():
    assert Access.NONE < Access.AUTHENTICATED < Access.ADMIN
