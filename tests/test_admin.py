"""
Center administration: tenants, user lifecycle, dashboard.
"""
import pytest

from coachdesk.core.security import verify_password
from coachdesk.utils.dates import today_iso


@pytest.fixture
def super_admin():
    return {"id": "sa-1", "email": "root@coachdesk.test", "role": "super_admin", "tenant_id": None, "name": "Root"}


@pytest.mark.asyncio
async def test_super_admin_manages_tenants(client, as_user, super_admin):
    as_user(super_admin)
    created = await client.post("/api/admin/tenants", json={"name": "Apex Classes", "code": "apex"})
    assert created.status_code == 200
    tenant = created.json()["data"]
    assert tenant["code"] == "APEX"
    assert tenant["trial_ends_at"]
    assert tenant["student_limit"] == 100

    listing = (await client.get("/api/admin/tenants")).json()["data"]
    assert [t["id"] for t in listing] == [tenant["id"]]

    updated = await client.patch(f"/api/admin/tenants/{tenant['id']}", json={"subscription_plan": "pro"})
    assert updated.json()["data"]["subscription_plan"] == "pro"

    duplicate = await client.post("/api/admin/tenants", json={"name": "Apex 2", "code": "APEX"})
    assert duplicate.status_code == 400


@pytest.mark.asyncio
async def test_center_admin_cannot_manage_tenants(client, as_user, admin):
    as_user(admin)
    assert (await client.get("/api/admin/tenants")).status_code == 403


@pytest.mark.asyncio
async def test_create_student_with_temp_password_and_batch(client, as_user, db, admin, batch):
    as_user(admin)
    response = await client.post("/api/admin/users", json={
        "email": "Riya@Students.test",
        "name": "Riya Sen",
        "role": "student",
        "batch_id": batch["id"],
        "roll_number": "R-17",
    })
    assert response.status_code == 200, response.text
    data = response.json()["data"]
    created = data["user"]
    assert created["email"] == "riya@students.test"
    assert created["requires_password_reset"] is True
    assert "password_hash" not in created
    assert data["batch_id"] == batch["id"]
    assert len(data["temp_password"]) == 8

    stored = next(u for u in db.rows("users") if u["id"] == created["id"])
    assert verify_password(data["temp_password"], stored["password_hash"])
    assert {"batch_id": batch["id"], "student_id": created["id"]}.items() <= next(
        m for m in db.rows("batch_students") if m["student_id"] == created["id"]
    ).items()


@pytest.mark.asyncio
async def test_create_user_with_unknown_batch_still_creates(client, as_user, db, admin):
    as_user(admin)
    response = await client.post("/api/admin/users", json={
        "email": "lone@students.test", "name": "Lone", "role": "student", "batch_id": "nope",
    })
    assert response.status_code == 200
    assert response.json()["data"]["batch_id"] is None
    assert db.rows("batch_students") == []


@pytest.mark.asyncio
async def test_create_user_validation(client, as_user, admin, teacher):
    as_user(admin)
    bad_role = await client.post("/api/admin/users", json={"email": "a@b.test", "name": "A", "role": "hod"})
    assert bad_role.status_code == 400

    duplicate = await client.post("/api/admin/users", json={
        "email": teacher["email"], "name": "Copy", "role": "teacher",
    })
    assert duplicate.status_code == 400


@pytest.mark.asyncio
async def test_student_limit_enforced(client, as_user, db, tenant, admin, student):
    db.tables["tenants"][0]["student_limit"] = 1
    as_user(admin)
    response = await client.post("/api/admin/users", json={
        "email": "extra@students.test", "name": "Extra", "role": "student",
    })
    assert response.status_code == 403
    assert "limit" in response.json()["message"].lower()

    teacher = await client.post("/api/admin/users", json={
        "email": "t@teachers.test", "name": "New Teacher", "role": "teacher",
    })
    assert teacher.status_code == 200


@pytest.mark.asyncio
async def test_status_toggle_and_soft_delete(client, as_user, db, admin, student):
    as_user(admin)
    off = await client.patch(f"/api/admin/users/{student['id']}/status", json={"is_active": False})
    assert off.json()["data"]["is_active"] is False

    on = await client.patch(f"/api/admin/users/{student['id']}/status", json={"is_active": True})
    assert on.json()["data"]["is_active"] is True

    deleted = await client.delete(f"/api/admin/users/{student['id']}")
    assert deleted.status_code == 200
    row = next(u for u in db.rows("users") if u["id"] == student["id"])
    assert row["is_active"] is False

    self_delete = await client.delete(f"/api/admin/users/{admin['id']}")
    assert self_delete.status_code == 400


@pytest.mark.asyncio
async def test_update_user(client, as_user, admin, teacher):
    as_user(admin)
    response = await client.patch(f"/api/admin/users/{teacher['id']}", json={"subject": "Chemistry"})
    assert response.status_code == 200
    assert response.json()["data"]["subject"] == "Chemistry"

    missing = await client.patch("/api/admin/users/unknown", json={"name": "X"})
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_users_are_tenant_scoped(client, as_user, db, make_user, admin, student):
    other_tenant = db.seed("tenants", name="Elsewhere", code="ELSE", is_active=True)
    outsider = make_user("student", tenant_id=other_tenant["id"])

    as_user(admin)
    students = (await client.get("/api/admin/students")).json()["data"]
    assert [s["id"] for s in students] == [student["id"]]

    response = await client.patch(f"/api/admin/users/{outsider['id']}/status", json={"is_active": False})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_students_and_teachers_lists_include_batches(client, as_user, admin, teacher, student, batch):
    as_user(admin)
    students = (await client.get("/api/admin/students")).json()["data"]
    teachers = (await client.get("/api/admin/teachers")).json()["data"]
    assert students[0]["batch_ids"] == [batch["id"]]
    assert teachers[0]["batch_ids"] == [batch["id"]]


@pytest.mark.asyncio
async def test_admin_dashboard(client, as_user, db, tenant, admin, teacher, student, batch):
    db.seed("fees", tenant_id=tenant["id"], student_id=student["id"], amount=1000, discount=0,
            paid_amount=0, due_date="2099-01-01",
            payments=[{"id": "p1", "amount": 400, "date": "2026-01-05", "method": "cash"}])
    db.seed("attendance", tenant_id=tenant["id"], batch_id=batch["id"], student_id=student["id"],
            date=today_iso(), status="present")
    db.seed("notices", tenant_id=tenant["id"], title="Holiday", description="Closed Friday",
            target_audience="all", posted_by=admin["id"], is_active=True, is_important=False)

    as_user(admin)
    data = (await client.get("/api/admin/dashboard")).json()["data"]
    assert data["total_students"] == 1
    assert data["total_teachers"] == 1
    assert data["total_courses"] == 1
    assert data["active_batches"] == 1
    assert data["fees"]["collected"] == 400
    assert data["fees"]["pending"] == 600
    assert data["attendance_today"]["average_attendance"] == 100.0
    assert [n["title"] for n in data["recent_notices"]] == ["Holiday"]


@pytest.mark.asyncio
async def test_unknown_subscription_plan_rejected(client, as_user, super_admin):
    as_user(super_admin)
    created = await client.post("/api/admin/tenants", json={
        "name": "Apex", "code": "APX", "subscription_plan": "platinum",
    })
    assert created.status_code == 422

    tenant = (await client.post("/api/admin/tenants", json={"name": "Apex", "code": "APX"})).json()["data"]
    updated = await client.patch(f"/api/admin/tenants/{tenant['id']}", json={"subscription_plan": "enterprise"})
    assert updated.status_code == 422
