"""
Upload limits: the request-size middleware and the streaming file store both answer 413.
"""
import pytest

from coachdesk.core.config import settings
from coachdesk.core.storage import category_for, delete_stored

MB = 1024 * 1024


def stored_files(upload_dir):
    return [p for p in upload_dir.rglob("*") if p.is_file()]


@pytest.mark.parametrize("content_type, expected", [
    ("image/png", "images"),
    ("video/mp4", "videos"),
    ("audio/mpeg", "audio"),
    ("application/pdf", "documents"),
    ("text/plain", "documents"),
    ("application/octet-stream", "others"),
    (None, "others"),
])
def test_category_for(content_type, expected):
    assert category_for(content_type) == expected


@pytest.mark.asyncio
async def test_body_over_limit_rejected_by_middleware(client, as_user, upload_dir, teacher):
    as_user(teacher)
    payload = b"x" * (settings.max_upload_bytes + 1)
    response = await client.post(
        "/api/materials",
        data={"title": "Huge"},
        files={"file": ("huge.pdf", payload, "application/pdf")},
    )
    assert response.status_code == 413
    body = response.json()
    assert body["success"] is False
    assert body["data"] is None
    assert stored_files(upload_dir) == []


@pytest.mark.asyncio
async def test_stream_over_limit_rejected_and_cleaned(client, as_user, monkeypatch, upload_dir, teacher):
    monkeypatch.setattr(settings, "MAX_UPLOAD_SIZE_MB", 1)
    as_user(teacher)
    response = await client.post(
        "/api/materials",
        data={"title": "Notes"},
        files={"file": ("notes.pdf", b"x" * (MB + MB // 2), "application/pdf")},
    )
    assert response.status_code == 413
    assert response.json()["success"] is False
    assert stored_files(upload_dir) == []


@pytest.mark.asyncio
async def test_one_oversize_file_discards_the_whole_request(client, as_user, monkeypatch, upload_dir, db,
                                                           teacher, student, course, batch):
    as_user(teacher)
    created = await client.post("/api/assignments", data={
        "title": "Essay", "course_id": course["id"], "batch_id": batch["id"], "due_date": "2099-01-01",
    })
    assignment_id = created.json()["data"]["id"]

    monkeypatch.setattr(settings, "MAX_UPLOAD_SIZE_MB", 1)
    as_user(student)
    response = await client.post(
        f"/api/assignments/{assignment_id}/submit",
        files=[
            ("attachments", ("small.txt", b"fine", "text/plain")),
            ("attachments", ("big.txt", b"x" * (2 * MB), "text/plain")),
        ],
    )
    assert response.status_code == 413
    assert stored_files(upload_dir) == []
    assert db.rows("assignment_submissions") == []


@pytest.mark.asyncio
async def test_upload_within_limit(client, as_user, upload_dir, db, teacher):
    as_user(teacher)
    response = await client.post(
        "/api/materials",
        data={"title": "Formula sheet", "category": "reference"},
        files={"file": ("formulas.png", b"\x89PNG small", "image/png")},
    )
    assert response.status_code == 200, response.text
    material = response.json()["data"]
    assert material["file_url"].startswith("/uploads/images/")
    assert len(stored_files(upload_dir)) == 1

    delete_stored(material["file_url"])
    assert stored_files(upload_dir) == []


def test_delete_stored_ignores_foreign_paths(upload_dir):
    outside = upload_dir.parent / "keep.txt"
    outside.write_text("keep")
    delete_stored("/uploads/../keep.txt")
    delete_stored("https://cdn.example.com/keep.txt")
    assert outside.exists()
