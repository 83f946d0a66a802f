"""
Recordings router — lecture videos uploaded by teachers, watched by students.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from coachdesk.core.database import get_supabase
from coachdesk.core.middleware import get_tenant_id, get_user_id
from coachdesk.core.security import require_role
from coachdesk.core.storage import delete_stored, save_upload
from coachdesk.schemas.recordings import RecordingUpdate
from coachdesk.utils.dates import now_iso, today_iso
from coachdesk.utils.queries import get_or_404, student_batch_ids
from coachdesk.utils.response import first_or_none, success_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/recordings", tags=["Recordings"])

RECORDING_SELECT = "*, courses(name), batches(name), users!recordings_teacher_id_fkey(name)"


def _check_owner(recording: dict, user: dict):
    if user["role"] != "admin" and recording.get("teacher_id") != get_user_id(user):
        raise HTTPException(status_code=403, detail="You can only manage your own recordings")


@router.post("")
async def upload_recording(
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    course_id: Optional[str] = Form(None),
    batch_id: Optional[str] = Form(None),
    recording_date: Optional[str] = Form(None),
    duration: Optional[int] = Form(None),
    video: Optional[UploadFile] = File(None),
    user: dict = Depends(require_role(["teacher", "admin"])),
):
    if not title or not title.strip():
        raise HTTPException(status_code=400, detail="title is required")
    if not course_id:
        raise HTTPException(status_code=400, detail="course_id is required")
    if not video or not video.filename:
        raise HTTPException(status_code=400, detail="A video file is required")
    if video.content_type and not video.content_type.startswith("video/"):
        raise HTTPException(status_code=400, detail="Only video files can be uploaded as recordings")

    db = get_supabase()
    tenant_id = get_tenant_id(user)
    get_or_404(db, "courses", tenant_id, course_id, "Course", "id")
    if batch_id:
        get_or_404(db, "batches", tenant_id, batch_id, "Batch", "id")

    stored = await save_upload(video)
    data = {
        "tenant_id": tenant_id,
        "teacher_id": get_user_id(user),
        "title": title.strip(),
        "description": description,
        "course_id": course_id,
        "batch_id": batch_id or None,
        "recording_date": recording_date or today_iso(),
        "duration": duration,
        "video_url": stored["file_url"],
        "file_size": stored["file_size"],
        "views": 0,
        "status": "ready",
    }
    result = db.table("recordings").insert(data).execute()
    created = first_or_none(result.data)
    logger.info("Recording %s uploaded by %s", created and created.get("id"), get_user_id(user))
    return success_response(data=created, message="Recording uploaded successfully")


@router.get("/teacher")
async def list_teacher_recordings(
    teacher_id: Optional[str] = None,
    course_id: Optional[str] = None,
    batch_id: Optional[str] = None,
    user: dict = Depends(require_role(["teacher", "admin"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    query = db.table("recordings").select(RECORDING_SELECT).eq("tenant_id", tenant_id)

    if user["role"] == "teacher":
        query = query.eq("teacher_id", get_user_id(user))
    elif teacher_id:
        query = query.eq("teacher_id", teacher_id)
    if course_id:
        query = query.eq("course_id", course_id)
    if batch_id:
        query = query.eq("batch_id", batch_id)

    result = query.order("created_at", desc=True).execute()
    return success_response(data=result.data)


@router.get("/student")
async def list_student_recordings(
    course_id: Optional[str] = None,
    user: dict = Depends(require_role(["student"])),
):
    """Recordings of the student's batches, plus course-wide recordings of those batches' courses."""
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    batch_ids = student_batch_ids(db, tenant_id, get_user_id(user))
    if not batch_ids:
        return success_response(data=[])

    batches = db.table("batches").select("id, course_id").eq("tenant_id", tenant_id).in_("id", batch_ids).execute()
    course_ids = {b.get("course_id") for b in batches.data or [] if b.get("course_id")}

    query = (
        db.table("recordings")
        .select(RECORDING_SELECT)
        .eq("tenant_id", tenant_id)
        .eq("status", "ready")
    )
    if course_id:
        query = query.eq("course_id", course_id)
    rows = query.order("created_at", desc=True).execute().data or []

    visible = [
        r for r in rows
        if r.get("batch_id") in batch_ids or (not r.get("batch_id") and r.get("course_id") in course_ids)
    ]
    return success_response(data=visible)


@router.get("/stats")
async def recording_stats(
    user: dict = Depends(require_role(["teacher", "admin"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    query = db.table("recordings").select("id, title, views, created_at").eq("tenant_id", tenant_id)
    if user["role"] == "teacher":
        query = query.eq("teacher_id", get_user_id(user))
    recordings = query.order("created_at", desc=True).execute().data or []

    total_views = sum(int(r.get("views") or 0) for r in recordings)
    return success_response(data={
        "total_recordings": len(recordings),
        "total_views": total_views,
        "average_views": round(total_views / len(recordings), 2) if recordings else 0,
        "recent_recordings": recordings[:5],
    })


@router.get("/{recording_id}")
async def get_recording(
    recording_id: str,
    user: dict = Depends(require_role(["teacher", "admin", "student"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    recording = get_or_404(db, "recordings", tenant_id, recording_id, "Recording", RECORDING_SELECT)

    if user["role"] == "student" and recording.get("batch_id"):
        if recording["batch_id"] not in student_batch_ids(db, tenant_id, get_user_id(user)):
            raise HTTPException(status_code=404, detail="Recording not found")

    return success_response(data=recording)


@router.put("/{recording_id}")
async def update_recording(
    recording_id: str,
    body: RecordingUpdate,
    user: dict = Depends(require_role(["teacher", "admin"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    recording = get_or_404(db, "recordings", tenant_id, recording_id, "Recording")
    _check_owner(recording, user)

    update_data = {k: v for k, v in body.model_dump().items() if v is not None}
    if not update_data:
        raise HTTPException(status_code=400, detail="No valid fields to update")
    if "batch_id" in update_data:
        get_or_404(db, "batches", tenant_id, update_data["batch_id"], "Batch", "id")
    update_data["updated_at"] = now_iso()

    result = (
        db.table("recordings")
        .update(update_data)
        .eq("id", recording_id)
        .eq("tenant_id", tenant_id)
        .execute()
    )
    return success_response(data=first_or_none(result.data), message="Recording updated successfully")


@router.delete("/{recording_id}")
async def delete_recording(
    recording_id: str,
    user: dict = Depends(require_role(["teacher", "admin"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    recording = get_or_404(db, "recordings", tenant_id, recording_id, "Recording")
    _check_owner(recording, user)

    db.table("recordings").delete().eq("id", recording_id).eq("tenant_id", tenant_id).execute()
    delete_stored(recording.get("video_url"))
    logger.info("Recording %s deleted by %s", recording_id, get_user_id(user))
    return success_response(message="Recording deleted successfully")


@router.post("/{recording_id}/view")
async def track_view(
    recording_id: str,
    user: dict = Depends(require_role(["teacher", "admin", "student"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    recording = get_or_404(db, "recordings", tenant_id, recording_id, "Recording", "id, views")
    views = int(recording.get("views") or 0) + 1
    db.table("recordings").update({"views": views}).eq("id", recording_id).eq("tenant_id", tenant_id).execute()
    return success_response(data={"views": views})
