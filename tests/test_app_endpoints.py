import asyncio

import pytest
from fastapi.testclient import TestClient

from conftest import login, signup
from memberauth.app import NO_CACHE, create_app
from memberauth.errors import StoreUnavailable


def test_home_anonymous(client):
    r = client.get("/")
    assert r.status_code == 200
    assert "Welcome" in r.text
    assert r.headers["cache-control"] == NO_CACHE


def test_signup_scenario_logs_in(client, ctx):
    r = signup(client)
    assert r.status_code == 200
    assert "Welcome, Ann!" in r.text
    assert ctx.settings.cookie_name in r.cookies

    r = client.get("/members")
    assert r.status_code == 200
    assert "Hello, Ann." in r.text
    assert "/static/img/member-1.svg" in r.text
    assert r.headers["cache-control"] == NO_CACHE

    user = asyncio.run(ctx.users.find_by_email("a@x.com"))
    assert user.role == "user"
    assert user.password_hash != "pw123"


@pytest.mark.parametrize(
    "data",
    [
        {"email": "a@x.com", "name": "Ann", "password": ""},
        {"email": "a@x.com", "name": "", "password": "pw"},
        {"email": "bad", "name": "Ann", "password": "pw"},
        {"email": "a@x.com", "name": "A" * 51, "password": "pw"},
        {"email": "a@x.com", "name": "Ann", "password": "p" * 21},
    ],
)
def test_signup_invalid_redirects_with_generic_flag(client, data):
    r = client.post("/submitUser", data=data, follow_redirects=False)
    assert r.status_code == 303
    assert r.headers["location"] == "/signup?error=invalid"


def test_signup_form_shows_errors(client):
    assert "Invalid input. Please try again." in client.get("/signup?error=invalid").text
    assert "already exists" in client.get("/signup?error=exists").text
    assert "class=\"error\"" not in client.get("/signup").text


def test_duplicate_signup_is_rejected(client):
    signup(client)
    client.get("/logout")
    r = signup(client, name="Impostor")
    assert r.status_code == 303
    assert r.headers["location"] == "/signup?error=exists"


def test_login_flow(client):
    signup(client)
    client.get("/logout")

    r = login(client)
    assert r.status_code == 303
    assert r.headers["location"] == "/loggedin"

    r = client.get("/loggedin")
    assert r.status_code == 200
    assert "You are logged in, Ann!" in r.text


def test_wrong_password_and_unknown_email_look_the_same(client):
    signup(client)
    client.get("/logout")
    wrong = login(client, password="wrong")
    unknown = login(client, email="nobody@x.com")
    malformed = login(client, email="nobody")
    for r in (wrong, unknown, malformed):
        assert r.status_code == 303
        assert r.headers["location"] == "/login?error=invalid"
    assert "Invalid username/password combination" in client.get("/login?error=invalid").text


@pytest.mark.parametrize("path", ["/members", "/loggedin", "/admin", "/admin/promote/x"])
def test_protected_routes_redirect_anonymous(client, path):
    r = client.get(path, follow_redirects=False)
    assert r.status_code == 303
    assert r.headers["location"] == "/login"


def test_logout_destroys_session(client, ctx):
    signup(client)
    assert len(ctx.sessions) == 1
    r = client.get("/logout", follow_redirects=False)
    assert r.status_code == 303
    assert r.headers["location"] == "/"
    assert len(ctx.sessions) == 0
    assert client.get("/members", follow_redirects=False).status_code == 303


def test_logout_without_session(client):
    r = client.get("/logout", follow_redirects=False)
    assert r.status_code == 303


def test_expired_session_is_no_session(client, clock):
    signup(client)
    assert client.get("/members").status_code == 200
    clock.advance(3600)
    r = client.get("/members", follow_redirects=False)
    assert r.status_code == 303
    assert r.headers["location"] == "/login"
    assert "Welcome" in client.get("/").text


def test_tampered_cookie_is_ignored(client, ctx):
    signup(client)
    token = client.cookies.get(ctx.settings.cookie_name)
    client.cookies.clear()
    client.cookies.set(ctx.settings.cookie_name, token[:-2] + "xx")
    assert client.get("/members", follow_redirects=False).status_code == 303


def test_admin_forbidden_for_user_not_redirect(client):
    signup(client)
    r = client.get("/admin", follow_redirects=False)
    assert r.status_code == 403
    assert "Forbidden" in r.text
    assert client.get("/admin/promote/anything", follow_redirects=False).status_code == 403


def test_admin_lists_users(client, admin_user):
    login(client, email="root@x.com", password="rootpw")
    r = client.get("/admin")
    assert r.status_code == 200
    assert "root@x.com" in r.text
    assert f"/admin/demote/{admin_user.id}" in r.text


def test_promote_then_demote(client, ctx, admin_user):
    signup(client)
    ann = asyncio.run(ctx.users.find_by_email("a@x.com"))
    client.get("/logout")
    login(client, email="root@x.com", password="rootpw")

    r = client.get(f"/admin/promote/{ann.id}", follow_redirects=False)
    assert r.status_code == 303
    assert r.headers["location"] == "/admin"
    assert asyncio.run(ctx.users.find_by_id(ann.id)).role == "admin"
    # Promoting twice is harmless.
    client.get(f"/admin/promote/{ann.id}")
    assert asyncio.run(ctx.users.find_by_id(ann.id)).role == "admin"

    client.get(f"/admin/demote/{ann.id}")
    assert asyncio.run(ctx.users.find_by_id(ann.id)).role == "user"


def test_promoted_user_logs_in_as_admin(client, ctx, admin_user):
    signup(client)
    ann = asyncio.run(ctx.users.find_by_email("a@x.com"))
    client.get("/logout")
    login(client, email="root@x.com", password="rootpw")
    client.get(f"/admin/promote/{ann.id}")
    client.get("/logout")

    login(client)
    assert client.get("/admin").status_code == 200
    sid = ctx.cookie.unsign(client.cookies.get(ctx.settings.cookie_name))
    assert asyncio.run(ctx.sessions.read(sid)).role == "admin"


def test_demotion_applies_to_live_session(ctx, admin_user):
    admin_client = TestClient(create_app(ctx))
    ann_client = TestClient(create_app(ctx))
    signup(ann_client)
    ann = asyncio.run(ctx.users.find_by_email("a@x.com"))
    login(admin_client, email="root@x.com", password="rootpw")
    admin_client.get(f"/admin/promote/{ann.id}")

    # Ann's session was issued as "user"; the gate reads the current role.
    assert ann_client.get("/admin").status_code == 200
    admin_client.get(f"/admin/demote/{ann.id}")
    assert ann_client.get("/admin", follow_redirects=False).status_code == 403


def test_demote_unknown_id_is_not_found(client, admin_user):
    login(client, email="root@x.com", password="rootpw")
    r = client.get("/admin/demote/does-not-exist", follow_redirects=False)
    assert r.status_code == 404
    assert client.get("/admin/promote/does-not-exist", follow_redirects=False).status_code == 404


def test_last_admin_cannot_demote_self(client, ctx, admin_user):
    login(client, email="root@x.com", password="rootpw")
    r = client.get(f"/admin/demote/{admin_user.id}", follow_redirects=False)
    assert r.status_code == 303
    assert r.headers["location"] == "/admin?error=last_admin"
    assert asyncio.run(ctx.users.find_by_id(admin_user.id)).role == "admin"
    assert "cannot be demoted" in client.get("/admin?error=last_admin").text


def test_home_shows_name_and_admin_link(client, admin_user):
    login(client, email="root@x.com", password="rootpw")
    r = client.get("/")
    assert "Hello, Root!" in r.text
    assert 'href="/admin"' in r.text


def test_unknown_route_is_404_page(client):
    r = client.get("/nope")
    assert r.status_code == 404
    assert "Page not found" in r.text


def test_store_failure_is_generic_500(ctx):
    class DownStore:
        async def read(self, session_id):
            raise StoreUnavailable("connection refused to 10.0.0.5")

    app_client = TestClient(create_app(ctx))
    signup(app_client)
    ctx.sessions = DownStore()
    r = app_client.get("/members")
    assert r.status_code == 500
    assert r.text == "Internal Server Error"


def test_signup_store_failure_leaves_no_account(ctx):
    class CreateFails:
        async def create(self, session_id, record, ttl):
            raise StoreUnavailable("connection refused")

        async def destroy(self, session_id):
            pass

    app_client = TestClient(create_app(ctx))
    working = ctx.sessions
    ctx.sessions = CreateFails()
    r = signup(app_client)
    assert r.status_code == 500
    assert asyncio.run(ctx.users.find_by_email("a@x.com")) is None

    ctx.sessions = working
    r = signup(app_client)
    assert r.status_code == 200
    assert "Welcome, Ann!" in r.text
