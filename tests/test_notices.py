"""
Notices: audience targeting, scheduling, ordering and author-only edits.
"""
import pytest


def notice(db, tenant, author, **extra):
    values = {
        "tenant_id": tenant["id"],
        "title": "Notice",
        "description": "Details",
        "target_audience": "all",
        "target_batch_ids": [],
        "posted_by": author["id"],
        "is_active": True,
        "is_scheduled": False,
        "is_important": False,
    }
    values.update(extra)
    return db.seed("notices", **values)


@pytest.mark.asyncio
async def test_admin_posts_notice(client, as_user, admin):
    as_user(admin)
    response = await client.post("/api/notices", json={
        "title": "Exam week", "description": "Tests start Monday", "target_audience": "teachers",
    })
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["posted_by"] == admin["id"]
    assert data["target_batch_ids"] == []


@pytest.mark.asyncio
async def test_teacher_audience_is_restricted(client, as_user, teacher, batch):
    as_user(teacher)
    everyone = await client.post("/api/notices", json={"title": "Hi", "description": "All", "target_audience": "all"})
    assert everyone.status_code == 403

    own_batch = await client.post("/api/notices", json={
        "title": "Bring calculators", "description": "Tomorrow",
        "target_audience": "batch", "target_batch_ids": [batch["id"]],
    })
    assert own_batch.status_code == 200


@pytest.mark.asyncio
async def test_batch_notice_requires_batches(client, as_user, admin):
    as_user(admin)
    response = await client.post("/api/notices", json={"title": "X", "description": "Y", "target_audience": "batch"})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_scheduled_notice_requires_time(client, as_user, admin):
    as_user(admin)
    response = await client.post("/api/notices", json={"title": "X", "description": "Y", "is_scheduled": True})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_student_visibility(client, as_user, db, tenant, admin, student, batch):
    notice(db, tenant, admin, title="Everyone")
    notice(db, tenant, admin, title="Staff only", target_audience="teachers")
    notice(db, tenant, admin, title="My batch", target_audience="batch", target_batch_ids=[batch["id"]])
    notice(db, tenant, admin, title="Other batch", target_audience="batch", target_batch_ids=["elsewhere"])
    notice(db, tenant, admin, title="Retired", is_active=False)
    notice(db, tenant, admin, title="Later", is_scheduled=True, scheduled_at="2099-01-01T09:00:00Z")
    notice(db, tenant, admin, title="Released", is_scheduled=True, scheduled_at="2020-01-01T09:00:00Z")

    as_user(student)
    titles = {n["title"] for n in (await client.get("/api/notices")).json()["data"]}
    assert titles == {"Everyone", "My batch", "Released"}


@pytest.mark.asyncio
async def test_teacher_visibility_includes_own(client, as_user, db, tenant, admin, teacher):
    notice(db, tenant, admin, title="Staff only", target_audience="teachers")
    notice(db, tenant, admin, title="Students only", target_audience="students")
    notice(db, tenant, teacher, title="Mine", target_audience="students", is_active=False)

    as_user(teacher)
    titles = {n["title"] for n in (await client.get("/api/notices")).json()["data"]}
    assert titles == {"Staff only", "Mine"}


@pytest.mark.asyncio
async def test_important_notices_first(client, as_user, db, tenant, admin, student):
    notice(db, tenant, admin, title="Old important", is_important=True)
    notice(db, tenant, admin, title="Older")
    notice(db, tenant, admin, title="Newest")

    as_user(student)
    titles = [n["title"] for n in (await client.get("/api/notices")).json()["data"]]
    assert titles == ["Old important", "Newest", "Older"]


@pytest.mark.asyncio
async def test_hidden_notice_is_404(client, as_user, db, tenant, admin, student):
    staff = notice(db, tenant, admin, target_audience="teachers")
    as_user(student)
    assert (await client.get(f"/api/notices/{staff['id']}")).status_code == 404


@pytest.mark.asyncio
async def test_only_author_or_admin_edits(client, as_user, db, tenant, admin, teacher, make_user):
    posted = notice(db, tenant, teacher, target_audience="students")
    colleague = make_user("teacher")

    as_user(colleague)
    assert (await client.put(f"/api/notices/{posted['id']}", json={"title": "Mine now"})).status_code == 403
    assert (await client.delete(f"/api/notices/{posted['id']}")).status_code == 403

    as_user(teacher)
    widened = await client.put(f"/api/notices/{posted['id']}", json={"target_audience": "all"})
    assert widened.status_code == 403
    renamed = await client.put(f"/api/notices/{posted['id']}", json={"title": "Updated"})
    assert renamed.json()["data"]["title"] == "Updated"

    as_user(admin)
    assert (await client.delete(f"/api/notices/{posted['id']}")).status_code == 200
    assert db.rows("notices") == []
