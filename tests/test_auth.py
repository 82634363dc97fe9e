"""
Auth endpoint tests: sign-up, sign-in, token refresh and logout, plus the
access-token guard every protected route goes through.
"""
from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient

from blog_panel.security import create_access_token, create_refresh_token

SIGNUP = {
    "email": "new@example.com",
    "name": "Newcomer",
    "password": "password123",
    "confirm_password": "password123",
}


# ---------------------------------------------------------------------------
# Sign-up
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_signup_creates_user_with_default_role(async_client: AsyncClient, roles):
    resp = await async_client.post("/api/v1/auth/signup", json=SIGNUP)
    assert resp.status_code == 201
    body = resp.json()
    assert body["message"] == "user_created"
    assert body["success"] is True
    assert body["data"]["email"] == "new@example.com"
    assert body["data"]["role"] == "PUBLIC"
    assert "password" not in body["data"]


@pytest.mark.asyncio
async def test_signup_without_default_role_leaves_role_empty(async_client: AsyncClient):
    resp = await async_client.post("/api/v1/auth/signup", json=SIGNUP)
    assert resp.status_code == 201
    assert resp.json()["data"]["role"] is None


@pytest.mark.asyncio
async def test_signup_duplicate_email_returns_409(async_client: AsyncClient, roles):
    await async_client.post("/api/v1/auth/signup", json=SIGNUP)
    resp = await async_client.post("/api/v1/auth/signup", json=SIGNUP)
    assert resp.status_code == 409
    body = resp.json()
    assert body["error"] == "user_already_exist"
    assert body["status"] == 409
    assert body["message"] == (
        "User with new@example.com was not successfully fulfilled, user_already_exist"
    )


@pytest.mark.asyncio
async def test_signup_password_mismatch_returns_400(async_client: AsyncClient):
    resp = await async_client.post("/api/v1/auth/signup", json={
        **SIGNUP, "confirm_password": "different123",
    })
    assert resp.status_code == 400
    assert resp.json()["error"] == "validation_error"


@pytest.mark.asyncio
async def test_signup_validates_fields(async_client: AsyncClient):
    resp = await async_client.post("/api/v1/auth/signup", json={
        "email": "not-an-email", "name": "ab", "password": "short",
    })
    assert resp.status_code == 400
    fields = {d["field"] for d in resp.json()["details"]}
    assert {"body.email", "body.name", "body.password"} <= fields


# ---------------------------------------------------------------------------
# Sign-in
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_signin_issues_tokens(async_client: AsyncClient, make_user):
    await make_user("login@example.com", "PUBLIC")
    resp = await async_client.post("/api/v1/auth/signin", json={
        "email": "login@example.com", "password": "password123",
    })
    assert resp.status_code == 200
    body = resp.json()
    assert body["message"] == "user_logged"
    assert body["data"]["email"] == "login@example.com"
    assert resp.headers["auth_token"] == body["access_token"]

    set_cookie = resp.headers["set-cookie"].lower()
    assert "refresh_token=" in set_cookie
    assert "httponly" in set_cookie
    assert "samesite=strict" in set_cookie


@pytest.mark.asyncio
async def test_signin_unknown_user_returns_404(async_client: AsyncClient):
    resp = await async_client.post("/api/v1/auth/signin", json={
        "email": "ghost@example.com", "password": "password123",
    })
    assert resp.status_code == 404
    assert resp.json()["error"] == "user_not_found"


@pytest.mark.asyncio
async def test_signin_wrong_password_returns_401(async_client: AsyncClient, make_user):
    await make_user("login@example.com")
    resp = await async_client.post("/api/v1/auth/signin", json={
        "email": "login@example.com", "password": "wrong-password",
    })
    assert resp.status_code == 401
    assert resp.json()["error"] == "password_not_match"


# ---------------------------------------------------------------------------
# Access-token guard
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_me_requires_token(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/auth/me")
    assert resp.status_code == 401
    assert resp.json()["error"] == "token_not_found"


@pytest.mark.asyncio
async def test_me_with_bearer_token(async_client: AsyncClient, make_user, login):
    await make_user("me@example.com", "ADMIN", name="Myself")
    headers = await login("me@example.com")
    resp = await async_client.get("/api/v1/auth/me", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["name"] == "Myself"
    assert resp.json()["role"] == "ADMIN"


@pytest.mark.asyncio
async def test_me_with_auth_cookie(async_client: AsyncClient, make_user, login):
    await make_user("me@example.com")
    headers = await login("me@example.com")
    token = headers["Authorization"].split(" ", 1)[1]
    async_client.cookies.set("auth_token", token)
    resp = await async_client.get("/api/v1/auth/me")
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_garbage_token_returns_401(async_client: AsyncClient):
    resp = await async_client.get(
        "/api/v1/auth/me", headers={"Authorization": "Bearer not.a.jwt"}
    )
    assert resp.status_code == 401
    assert resp.json()["error"] == "token_invalid"


@pytest.mark.asyncio
async def test_expired_token_returns_401(async_client: AsyncClient, make_user):
    user_id = await make_user("old@example.com")
    long_ago = datetime.now(timezone.utc) - timedelta(days=1)
    token = create_access_token({"id": user_id, "email": "old@example.com"}, now_utc=long_ago)
    resp = await async_client.get(
        "/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"}
    )
    assert resp.status_code == 401
    assert resp.json()["error"] == "token_expired"


@pytest.mark.asyncio
async def test_refresh_token_is_not_an_access_token(async_client: AsyncClient, make_user):
    user_id = await make_user("mixed@example.com")
    token = create_refresh_token({"id": user_id, "email": "mixed@example.com"})
    resp = await async_client.get(
        "/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"}
    )
    assert resp.status_code == 401
    assert resp.json()["error"] == "token_invalid"


@pytest.mark.asyncio
async def test_token_for_deleted_user_returns_404(async_client: AsyncClient):
    token = create_access_token({"id": 999, "email": "gone@example.com"})
    resp = await async_client.get(
        "/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"}
    )
    assert resp.status_code == 404
    assert resp.json()["error"] == "user_not_found"


# ---------------------------------------------------------------------------
# Refresh
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_refresh_rotates_refresh_token(async_client: AsyncClient, make_user, login):
    await make_user("refresh@example.com")
    await login("refresh@example.com")
    first = async_client.cookies.get("refresh_token")
    assert first

    resp = await async_client.get("/api/v1/auth/refresh_token")
    assert resp.status_code == 200
    body = resp.json()
    assert body["message"] == "token_refreshed"
    assert resp.headers["auth_token"] == body["data"]

    second = async_client.cookies.get("refresh_token")
    assert second and second != first

    # The rotated-out token is no longer a session.
    async_client.cookies.clear()
    async_client.cookies.set("refresh_token", first)
    resp = await async_client.get("/api/v1/auth/refresh_token")
    assert resp.status_code == 404
    assert resp.json()["error"] == "session_not_found"


@pytest.mark.asyncio
async def test_refresh_without_cookie_returns_401(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/auth/refresh_token")
    assert resp.status_code == 401
    assert resp.json()["error"] == "token_not_found"


@pytest.mark.asyncio
async def test_refresh_rejects_access_token(async_client: AsyncClient, make_user, login):
    await make_user("refresh@example.com")
    headers = await login("refresh@example.com")
    async_client.cookies.clear()
    async_client.cookies.set("refresh_token", headers["Authorization"].split(" ", 1)[1])
    resp = await async_client.get("/api/v1/auth/refresh_token")
    assert resp.status_code == 401
    assert resp.json()["error"] == "token_invalid"


# ---------------------------------------------------------------------------
# Logout
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_logout_closes_current_session(async_client: AsyncClient, make_user, login):
    await make_user("bye@example.com")
    headers = await login("bye@example.com")
    await login("bye@example.com")  # second session, now in the cookie

    sessions = (await async_client.get("/api/v1/auth/sessions", headers=headers)).json()
    assert len(sessions) == 2

    resp = await async_client.post("/api/v1/auth/logout", headers=headers)
    assert resp.status_code == 200
    assert resp.json() == {"message": "user_logged_out", "success": True}
    assert async_client.cookies.get("refresh_token") is None

    sessions = (await async_client.get("/api/v1/auth/sessions", headers=headers)).json()
    assert len(sessions) == 1


@pytest.mark.asyncio
async def test_logout_without_cookie_closes_every_session(
    async_client: AsyncClient, make_user, login
):
    await make_user("bye@example.com")
    await login("bye@example.com")
    headers = await login("bye@example.com")
    async_client.cookies.clear()

    resp = await async_client.post("/api/v1/auth/logout", headers=headers)
    assert resp.status_code == 200

    sessions = (await async_client.get("/api/v1/auth/sessions", headers=headers)).json()
    assert sessions == []


@pytest.mark.asyncio
async def test_sessions_never_expose_tokens(async_client: AsyncClient, make_user, login):
    await make_user("list@example.com")
    headers = await login("list@example.com")
    resp = await async_client.get("/api/v1/auth/sessions", headers=headers)
    assert resp.status_code == 200
    (session,) = resp.json()
    assert set(session) == {"id", "created_at", "updated_at"}
