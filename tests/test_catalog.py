"""
Courses and batches: catalogue CRUD, membership, capacity and teacher scoping.
"""
import pytest


@pytest.mark.asyncio
async def test_course_crud(client, as_user, admin):
    as_user(admin)
    created = await client.post("/api/courses", json={
        "name": "NEET Biology", "fee": 15000, "topics": [{"title": "Cell", "order": 1}],
    })
    assert created.status_code == 200
    course = created.json()["data"]
    assert course["topics"][0]["title"] == "Cell"

    updated = await client.patch(f"/api/courses/{course['id']}", json={"fee": 18000})
    assert updated.json()["data"]["fee"] == 18000

    empty = await client.patch(f"/api/courses/{course['id']}", json={})
    assert empty.status_code == 400

    negative = await client.post("/api/courses", json={"name": "Free", "fee": -1})
    assert negative.status_code == 422

    deleted = await client.delete(f"/api/courses/{course['id']}")
    assert deleted.status_code == 200
    assert (await client.get(f"/api/courses/{course['id']}")).status_code == 404


@pytest.mark.asyncio
async def test_course_lists_batches(client, as_user, admin, course, batch):
    as_user(admin)
    listing = (await client.get("/api/courses")).json()["data"]
    assert listing[0]["batch_count"] == 1

    detail = (await client.get(f"/api/courses/{course['id']}")).json()["data"]
    assert [b["id"] for b in detail["batches"]] == [batch["id"]]


@pytest.mark.asyncio
async def test_course_with_batches_cannot_be_deleted(client, as_user, admin, course, batch):
    as_user(admin)
    response = await client.delete(f"/api/courses/{course['id']}")
    assert response.status_code == 400
    assert "batch" in response.json()["message"]


@pytest.mark.asyncio
async def test_attach_batch_to_course(client, as_user, db, tenant, admin, batch):
    other = db.seed("courses", tenant_id=tenant["id"], name="Olympiad Maths", fee=0, topics=[])
    as_user(admin)
    response = await client.post(f"/api/courses/{other['id']}/batches", json={"batch_id": batch["id"]})
    assert response.status_code == 200
    assert response.json()["data"]["course_id"] == other["id"]


@pytest.mark.asyncio
async def test_student_cannot_create_course(client, as_user, student):
    as_user(student)
    response = await client.post("/api/courses", json={"name": "Hack"})
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_create_batch_with_students(client, as_user, db, admin, course, teacher, student):
    as_user(admin)
    response = await client.post("/api/batches", json={
        "name": "Evening B",
        "course_id": course["id"],
        "teacher_id": teacher["id"],
        "students": [student["id"], student["id"]],
        "schedule": {"days": ["Mon", "Wed"], "start_time": "17:00", "end_time": "19:00"},
        "capacity": 10,
    })
    assert response.status_code == 200, response.text
    data = response.json()["data"]
    assert data["students"] == [student["id"]]
    assert data["schedule"]["days"] == ["Mon", "Wed"]
    assert len(db.rows("batch_students")) == 1


@pytest.mark.asyncio
async def test_create_batch_validation(client, as_user, db, admin, course, teacher, student, make_user):
    as_user(admin)
    not_teacher = await client.post("/api/batches", json={
        "name": "X", "course_id": course["id"], "teacher_id": student["id"],
    })
    assert not_teacher.status_code == 400

    unknown_course = await client.post("/api/batches", json={"name": "X", "course_id": "missing"})
    assert unknown_course.status_code == 404

    unknown_student = await client.post("/api/batches", json={
        "name": "X", "course_id": course["id"], "students": ["ghost"],
    })
    assert unknown_student.status_code == 400

    second = make_user("student")
    over_capacity = await client.post("/api/batches", json={
        "name": "Tiny", "course_id": course["id"], "students": [student["id"], second["id"]], "capacity": 1,
    })
    assert over_capacity.status_code == 400
    assert db.rows("batches") == []


@pytest.mark.asyncio
async def test_teacher_sees_only_own_batches(client, as_user, db, tenant, course, make_user, teacher, batch):
    other_teacher = make_user("teacher")
    db.seed("batches", tenant_id=tenant["id"], name="Other", course_id=course["id"],
            teacher_id=other_teacher["id"], status="active", capacity=30)

    as_user(teacher)
    listing = (await client.get("/api/batches")).json()["data"]
    assert [b["id"] for b in listing] == [batch["id"]]
    assert listing[0]["student_count"] == 1

    as_user(other_teacher)
    response = await client.get(f"/api/batches/{batch['id']}")
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_batch_detail_lists_students(client, as_user, admin, student, batch):
    as_user(admin)
    data = (await client.get(f"/api/batches/{batch['id']}")).json()["data"]
    assert data["student_count"] == 1
    assert data["students"][0]["id"] == student["id"]


@pytest.mark.asyncio
async def test_add_students_skips_members_and_respects_capacity(client, as_user, db, admin, make_user,
                                                                 student, batch):
    newcomer = make_user("student")
    as_user(admin)
    response = await client.post(f"/api/batches/{batch['id']}/students",
                                 json={"student_ids": [student["id"], newcomer["id"]]})
    assert response.status_code == 200
    assert response.json()["data"]["added"] == [newcomer["id"]]

    shrink = await client.put(f"/api/batches/{batch['id']}", json={"capacity": 1})
    assert shrink.status_code == 400

    resized = await client.put(f"/api/batches/{batch['id']}", json={"capacity": 2})
    assert resized.json()["data"]["capacity"] == 2

    third = make_user("student")
    full = await client.post(f"/api/batches/{batch['id']}/students", json={"student_ids": [third["id"]]})
    assert full.status_code == 400
    assert "capacity" in full.json()["message"]


@pytest.mark.asyncio
async def test_remove_student_and_delete_batch(client, as_user, db, admin, student, batch):
    as_user(admin)
    removed = await client.delete(f"/api/batches/{batch['id']}/students/{student['id']}")
    assert removed.status_code == 200
    again = await client.delete(f"/api/batches/{batch['id']}/students/{student['id']}")
    assert again.status_code == 404

    await client.post(f"/api/batches/{batch['id']}/students", json={"student_ids": [student["id"]]})
    deleted = await client.delete(f"/api/batches/{batch['id']}")
    assert deleted.status_code == 200
    assert db.rows("batches") == []
    assert db.rows("batch_students") == []
