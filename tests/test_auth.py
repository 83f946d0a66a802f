"""
Authentication: mock-token login, center registration, passwords, role guards.
These go through the real token dependency instead of dependency_overrides.
"""
from datetime import timedelta

import pytest

from coachdesk.utils.dates import utcnow

TEST_PASSWORD = "secret123"


def bearer(email: str) -> dict:
    return {"Authorization": f"Bearer mock-{email}"}


@pytest.mark.asyncio
async def test_login_success(client, make_user):
    user = make_user("teacher", password=TEST_PASSWORD)
    response = await client.post("/api/auth/login", json={"email": user["email"], "password": TEST_PASSWORD})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["token"] == f"mock-{user['email']}"
    assert data["user"]["role"] == "teacher"
    assert data["user"]["user_id"] == user["id"]


@pytest.mark.asyncio
async def test_login_invalid_credentials(client, make_user):
    user = make_user("teacher", password=TEST_PASSWORD)
    wrong = await client.post("/api/auth/login", json={"email": user["email"], "password": "nope"})
    unknown = await client.post("/api/auth/login", json={"email": "ghost@example.com", "password": "x"})

    assert wrong.status_code == 401
    assert unknown.status_code == 401
    assert wrong.json()["success"] is False


@pytest.mark.asyncio
async def test_login_inactive_user(client, make_user):
    user = make_user("student", password=TEST_PASSWORD, is_active=False)
    response = await client.post("/api/auth/login", json={"email": user["email"], "password": TEST_PASSWORD})
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_register_center_then_me(client, db):
    response = await client.post("/api/auth/register-center", json={
        "center_name": "Bright Minds",
        "center_code": "bright",
        "admin_name": "Asha Rao",
        "admin_email": "Asha@Bright.test",
        "admin_password": "welcome1",
    })
    assert response.status_code == 200, response.text
    data = response.json()["data"]
    assert data["tenant"]["code"] == "BRIGHT"
    assert data["tenant"]["subscription_plan"] == "trial"
    assert data["admin_user"]["role"] == "admin"
    assert "password_hash" not in data["admin_user"]

    me = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {data['token']}"})
    assert me.status_code == 200
    profile = me.json()["data"]
    assert profile["email"] == "asha@bright.test"
    assert profile["tenant_name"] == "Bright Minds"

    duplicate = await client.post("/api/auth/register-center", json={
        "center_name": "Other", "center_code": "BRIGHT", "admin_name": "X",
        "admin_email": "x@other.test", "admin_password": "welcome1",
    })
    assert duplicate.status_code == 400


@pytest.mark.asyncio
async def test_register_center_short_password(client):
    response = await client.post("/api/auth/register-center", json={
        "center_name": "Tiny", "center_code": "TINY", "admin_name": "T",
        "admin_email": "t@tiny.test", "admin_password": "123",
    })
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_unknown_token_rejected(client):
    response = await client.get("/api/auth/me", headers=bearer("ghost@example.com"))
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_missing_token_rejected(client):
    response = await client.get("/api/auth/me")
    assert response.status_code in (401, 403)
    assert response.json()["success"] is False


@pytest.mark.asyncio
async def test_deactivated_tenant_blocks_requests(client, db, make_user):
    other_tenant = db.seed("tenants", name="Closed", code="CLOSED", is_active=False)
    user = make_user("admin", tenant_id=other_tenant["id"])

    response = await client.get("/api/auth/me", headers=bearer(user["email"]))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_role_guard(client, make_user):
    student = make_user("student")
    response = await client.get("/api/admin/dashboard", headers=bearer(student["email"]))
    assert response.status_code == 403
    assert "not authorized" in response.json()["message"]


@pytest.mark.asyncio
async def test_change_password(client, make_user):
    user = make_user("teacher", password=TEST_PASSWORD)
    headers = bearer(user["email"])

    wrong = await client.post("/api/auth/change-password", headers=headers,
                              json={"old_password": "bad", "new_password": "newpass1"})
    assert wrong.status_code == 401

    ok = await client.post("/api/auth/change-password", headers=headers,
                           json={"old_password": TEST_PASSWORD, "new_password": "newpass1"})
    assert ok.status_code == 200

    login = await client.post("/api/auth/login", json={"email": user["email"], "password": "newpass1"})
    assert login.status_code == 200


@pytest.mark.asyncio
async def test_reset_password_requires_flag(client, db, make_user):
    flagged = make_user("student", password="temp1234", requires_password_reset=True)
    normal = make_user("student", password=TEST_PASSWORD)

    refused = await client.post("/api/auth/reset-password", json={
        "email": normal["email"], "old_password": TEST_PASSWORD, "new_password": "another1",
    })
    assert refused.status_code == 400

    response = await client.post("/api/auth/reset-password", json={
        "email": flagged["email"], "old_password": "temp1234", "new_password": "another1",
    })
    assert response.status_code == 200
    row = next(u for u in db.rows("users") if u["id"] == flagged["id"])
    assert row["requires_password_reset"] is False


@pytest.mark.asyncio
async def test_expired_trial_blocks_user_creation(client, as_user, db, tenant, admin):
    db.tables["tenants"][0]["trial_ends_at"] = (utcnow() - timedelta(days=1)).isoformat()
    as_user(admin)
    response = await client.post("/api/admin/users", json={
        "email": "new@student.test", "name": "New Student", "role": "student",
    })
    assert response.status_code == 403
    assert "trial" in response.json()["message"]
