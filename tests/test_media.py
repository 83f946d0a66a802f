"""
Recordings and study materials: uploads, who sees what, and view/download counters.
"""
import pytest


async def upload_recording(client, course, **fields):
    data = {"title": "Kinematics L1", "course_id": course["id"], **fields}
    return await client.post(
        "/api/recordings",
        data=data,
        files={"video": ("lecture.mp4", b"\x00\x00\x00\x18ftypmp42", "video/mp4")},
    )


@pytest.mark.asyncio
async def test_upload_recording(client, as_user, upload_dir, teacher, course, batch):
    as_user(teacher)
    response = await upload_recording(client, course, batch_id=batch["id"], duration="45")
    assert response.status_code == 200, response.text
    recording = response.json()["data"]
    assert recording["teacher_id"] == teacher["id"]
    assert recording["status"] == "ready"
    assert recording["views"] == 0
    assert recording["video_url"].startswith("/uploads/videos/")
    assert (upload_dir / recording["video_url"].removeprefix("/uploads/")).exists()


@pytest.mark.asyncio
async def test_recording_upload_validation(client, as_user, teacher, course):
    as_user(teacher)
    no_title = await client.post("/api/recordings", data={"course_id": course["id"]},
                                 files={"video": ("a.mp4", b"v", "video/mp4")})
    assert no_title.status_code == 400

    no_file = await client.post("/api/recordings", data={"title": "T", "course_id": course["id"]})
    assert no_file.status_code == 400

    not_video = await client.post("/api/recordings", data={"title": "T", "course_id": course["id"]},
                                  files={"video": ("a.pdf", b"%PDF", "application/pdf")})
    assert not_video.status_code == 400

    bad_course = await upload_recording(client, {"id": "missing"})
    assert bad_course.status_code == 404


@pytest.mark.asyncio
async def test_student_sees_batch_and_course_recordings(client, as_user, db, tenant, teacher, student,
                                                       course, batch):
    other_course = db.seed("courses", tenant_id=tenant["id"], name="Chemistry", fee=0, topics=[])
    base = {"tenant_id": tenant["id"], "teacher_id": teacher["id"], "status": "ready", "views": 0}
    db.seed("recordings", title="Batch video", course_id=course["id"], batch_id=batch["id"], **base)
    db.seed("recordings", title="Course-wide", course_id=course["id"], batch_id=None, **base)
    db.seed("recordings", title="Other batch", course_id=course["id"], batch_id="elsewhere", **base)
    db.seed("recordings", title="Other course", course_id=other_course["id"], batch_id=None, **base)
    db.seed("recordings", title="Processing", course_id=course["id"], batch_id=batch["id"],
            **{**base, "status": "processing"})

    as_user(student)
    titles = {r["title"] for r in (await client.get("/api/recordings/student")).json()["data"]}
    assert titles == {"Batch video", "Course-wide"}


@pytest.mark.asyncio
async def test_recording_views_and_stats(client, as_user, teacher, student, course, batch):
    as_user(teacher)
    recording = (await upload_recording(client, course, batch_id=batch["id"])).json()["data"]

    as_user(student)
    await client.post(f"/api/recordings/{recording['id']}/view")
    second = await client.post(f"/api/recordings/{recording['id']}/view")
    assert second.json()["data"]["views"] == 2

    as_user(teacher)
    stats = (await client.get("/api/recordings/stats")).json()["data"]
    assert stats["total_recordings"] == 1
    assert stats["total_views"] == 2
    assert stats["average_views"] == 2
    assert stats["recent_recordings"][0]["id"] == recording["id"]


@pytest.mark.asyncio
async def test_recording_owner_only(client, as_user, upload_dir, make_user, admin, teacher, course):
    as_user(teacher)
    recording = (await upload_recording(client, course)).json()["data"]

    as_user(make_user("teacher"))
    assert (await client.put(f"/api/recordings/{recording['id']}", json={"title": "Stolen"})).status_code == 403
    assert (await client.get("/api/recordings/teacher")).json()["data"] == []

    as_user(teacher)
    updated = await client.put(f"/api/recordings/{recording['id']}", json={"title": "Kinematics L1 (rev)"})
    assert updated.json()["data"]["title"] == "Kinematics L1 (rev)"

    as_user(admin)
    listing = (await client.get("/api/recordings/teacher", params={"teacher_id": teacher["id"]})).json()["data"]
    assert [r["id"] for r in listing] == [recording["id"]]
    assert (await client.delete(f"/api/recordings/{recording['id']}")).status_code == 200
    assert [p for p in upload_dir.rglob("*") if p.is_file()] == []


@pytest.mark.asyncio
async def test_material_upload_and_student_listing(client, as_user, db, tenant, teacher, student, course, batch):
    as_user(teacher)
    shared = await client.post(
        "/api/materials",
        data={"title": "Formula sheet", "category": "reference", "course_id": course["id"],
              "batch_ids": f"{batch['id']}, "},
        files={"file": ("formulas.pdf", b"%PDF-1.4", "application/pdf")},
    )
    assert shared.status_code == 200, shared.text
    material = shared.json()["data"]
    assert material["batch_ids"] == [batch["id"]]
    assert material["file_name"] == "formulas.pdf"
    assert material["file_type"] == "application/pdf"

    db.seed("materials", tenant_id=tenant["id"], title="Elsewhere", batch_ids=["other"], category="lecture",
            uploaded_by=teacher["id"], views=0, downloads=0)

    as_user(student)
    listing = (await client.get("/api/materials/student")).json()["data"]
    assert [m["title"] for m in listing] == ["Formula sheet"]

    viewed = await client.post(f"/api/materials/view/{material['id']}")
    downloaded = await client.post(f"/api/materials/download/{material['id']}")
    assert viewed.json()["data"]["views"] == 1
    assert downloaded.json()["data"]["downloads"] == 1


@pytest.mark.asyncio
async def test_material_validation_and_ownership(client, as_user, make_user, teacher, batch):
    as_user(teacher)
    bad_category = await client.post("/api/materials", data={"title": "X", "category": "memes"},
                                      files={"file": ("x.txt", b"x", "text/plain")})
    assert bad_category.status_code == 400

    unknown_batch = await client.post("/api/materials", data={"title": "X", "batch_ids": "nope"},
                                      files={"file": ("x.txt", b"x", "text/plain")})
    assert unknown_batch.status_code == 404

    created = await client.post("/api/materials", data={"title": "Notes", "batch_ids": batch["id"]},
                                files={"file": ("notes.txt", b"notes", "text/plain")})
    material = created.json()["data"]

    as_user(make_user("teacher"))
    assert (await client.get("/api/materials")).json()["data"] == []
    assert (await client.delete(f"/api/materials/{material['id']}")).status_code == 403

    as_user(teacher)
    assert (await client.delete(f"/api/materials/{material['id']}")).status_code == 200
