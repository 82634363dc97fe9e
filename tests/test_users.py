"""
User endpoint tests: permission-guarded listing, lookup, role assignment,
profile/password updates and deletion.
"""
import pytest
from httpx import AsyncClient

from blog_panel.models import Role, User
from blog_panel.security import hash_password


# ---------------------------------------------------------------------------
# Guards
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_list_users_requires_token(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/users")
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_list_users_requires_update_permission(
    async_client: AsyncClient, reader_headers: dict
):
    resp = await async_client.get("/api/v1/users", headers=reader_headers)
    assert resp.status_code == 403
    assert resp.json()["error"] == "user_without_enough_permission"


@pytest.mark.asyncio
async def test_user_without_role_has_no_permissions(
    async_client: AsyncClient, make_user, login
):
    await make_user("norole@example.com", role=None)
    headers = await login("norole@example.com")
    resp = await async_client.get("/api/v1/users", headers=headers)
    assert resp.status_code == 403


# ---------------------------------------------------------------------------
# List / detail
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_list_users_with_total(async_client: AsyncClient, admin_headers: dict, make_user):
    for i in range(3):
        await make_user(f"member{i}@example.com", name=f"Member {i}")

    resp = await async_client.get("/api/v1/users", headers=admin_headers)
    assert resp.status_code == 200
    data = resp.json()
    assert data["total"] == 4  # three members + the admin
    assert len(data["users"]) == 4
    assert all("password" not in u for u in data["users"])


@pytest.mark.asyncio
async def test_list_users_offset_limit(async_client: AsyncClient, admin_headers: dict, make_user):
    for i in range(5):
        await make_user(f"member{i}@example.com")

    resp = await async_client.get(
        "/api/v1/users", params={"offset": 2, "limit": 2}, headers=admin_headers
    )
    data = resp.json()
    assert data["total"] == 6
    assert len(data["users"]) == 2


@pytest.mark.asyncio
async def test_list_users_search(async_client: AsyncClient, admin_headers: dict, make_user):
    await make_user("alice@example.com", name="Alice")
    await make_user("bob@example.com", name="Bob")

    resp = await async_client.get("/api/v1/users", params={"q": "alic"}, headers=admin_headers)
    data = resp.json()
    assert data["total"] == 1
    assert data["users"][0]["email"] == "alice@example.com"


@pytest.mark.asyncio
async def test_list_users_rejects_negative_offset(async_client: AsyncClient, admin_headers: dict):
    resp = await async_client.get("/api/v1/users", params={"offset": -1}, headers=admin_headers)
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_get_user(async_client: AsyncClient, admin_headers: dict, make_user):
    user_id = await make_user("target@example.com", name="Target")
    resp = await async_client.get(f"/api/v1/users/{user_id}", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["name"] == "Target"
    assert resp.json()["role"] == "PUBLIC"


@pytest.mark.asyncio
async def test_get_user_not_found(async_client: AsyncClient, admin_headers: dict):
    resp = await async_client.get("/api/v1/users/99999", headers=admin_headers)
    assert resp.status_code == 404
    assert resp.json() == {
        "message": "User with 99999 was not successfully fulfilled, user_not_found",
        "status": 404,
        "error": "user_not_found",
    }


# ---------------------------------------------------------------------------
# Role assignment
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_assign_role(async_client: AsyncClient, admin_headers: dict, make_user):
    user_id = await make_user("promote@example.com")
    resp = await async_client.post(
        f"/api/v1/users/{user_id}/role", json={"role_name": "ADMIN"}, headers=admin_headers
    )
    assert resp.status_code == 200
    assert resp.json()["role"] == "ADMIN"

    detail = await async_client.get(f"/api/v1/users/{user_id}", headers=admin_headers)
    assert detail.json()["role"] == "ADMIN"


@pytest.mark.asyncio
async def test_assign_unknown_role(async_client: AsyncClient, admin_headers: dict, make_user):
    user_id = await make_user("promote@example.com")
    resp = await async_client.post(
        f"/api/v1/users/{user_id}/role", json={"role_name": "WIZARD"}, headers=admin_headers
    )
    assert resp.status_code == 404
    assert resp.json()["error"] == "role_not_found"


@pytest.mark.asyncio
async def test_assign_role_unknown_user(async_client: AsyncClient, admin_headers: dict):
    resp = await async_client.post(
        "/api/v1/users/99999/role", json={"role_name": "ADMIN"}, headers=admin_headers
    )
    assert resp.status_code == 404
    assert resp.json()["error"] == "user_not_found"


# ---------------------------------------------------------------------------
# Updates
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_update_user(async_client: AsyncClient, admin_headers: dict, make_user):
    user_id = await make_user("edit@example.com", name="Before")
    resp = await async_client.patch(
        f"/api/v1/users/{user_id}",
        json={"name": "After", "last_name": "Surname"},
        headers=admin_headers,
    )
    assert resp.status_code == 200
    assert resp.json()["name"] == "After"
    assert resp.json()["last_name"] == "Surname"
    assert resp.json()["updated_at"] is not None


@pytest.mark.asyncio
async def test_update_profile(async_client: AsyncClient, admin_headers: dict, make_user):
    user_id = await make_user("profile@example.com")
    bio = "Writes about databases, caching and the occasional fish recipe."
    resp = await async_client.patch(
        f"/api/v1/users/{user_id}/profile",
        json={"last_name": "Doe", "bio": bio, "birthday": "1990-04-12"},
        headers=admin_headers,
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["bio"] == bio
    assert data["birthday"] == "1990-04-12"
    assert data["last_name"] == "Doe"


@pytest.mark.asyncio
async def test_update_profile_bio_too_short(
    async_client: AsyncClient, admin_headers: dict, make_user
):
    user_id = await make_user("profile@example.com")
    resp = await async_client.patch(
        f"/api/v1/users/{user_id}/profile",
        json={"last_name": "Doe", "bio": "too short"},
        headers=admin_headers,
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_update_profile_requires_create_permission(
    async_client: AsyncClient, reader_headers: dict, make_user
):
    user_id = await make_user("profile@example.com")
    resp = await async_client.patch(
        f"/api/v1/users/{user_id}/profile",
        json={"last_name": "Doe"},
        headers=reader_headers,
    )
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_update_password_revokes_sessions(
    async_client: AsyncClient, admin_headers: dict, make_user, login
):
    user_id = await make_user("pw@example.com")
    user_headers = await login("pw@example.com")

    resp = await async_client.patch(
        f"/api/v1/users/{user_id}/password",
        json={"password": "brand-new-pass", "confirm_password": "brand-new-pass"},
        headers=admin_headers,
    )
    assert resp.status_code == 200
    assert "refresh_token=" in resp.headers["set-cookie"]

    sessions = await async_client.get("/api/v1/auth/sessions", headers=user_headers)
    assert sessions.json() == []

    old = await async_client.post(
        "/api/v1/auth/signin", json={"email": "pw@example.com", "password": "password123"}
    )
    assert old.status_code == 401
    await login("pw@example.com", "brand-new-pass")


# ---------------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_delete_user(async_client: AsyncClient, admin_headers: dict, make_user):
    user_id = await make_user("bye@example.com")
    resp = await async_client.delete(f"/api/v1/users/{user_id}", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["email"] == "bye@example.com"

    resp = await async_client.get(f"/api/v1/users/{user_id}", headers=admin_headers)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_delete_user_requires_delete_permission(
    async_client: AsyncClient, make_user, login, db_session
):
    admin_id = await make_user("admin@example.com", "ADMIN")
    editor_role = Role(name="EDITOR", permissions=["READ", "UPDATE"])
    db_session.add(editor_role)
    await db_session.flush()
    db_session.add(User(
        email="editor@example.com",
        name="Editor",
        password=hash_password("password123"),
        role_id=editor_role.id,
    ))
    await db_session.commit()
    editor = await login("editor@example.com")

    resp = await async_client.delete(f"/api/v1/users/{admin_id}", headers=editor)
    assert resp.status_code == 403

    # UPDATE alone is enough to read users.
    resp = await async_client.get(f"/api/v1/users/{admin_id}", headers=editor)
    assert resp.status_code == 200
