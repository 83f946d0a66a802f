"""
Courses router — course catalogue of a coaching center.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from coachdesk.core.database import get_supabase
from coachdesk.core.middleware import get_tenant_id, get_user_id
from coachdesk.core.security import require_role
from coachdesk.schemas.academic import CourseBatchLink, CourseCreate, CourseUpdate
from coachdesk.utils.dates import now_iso
from coachdesk.utils.queries import get_or_404
from coachdesk.utils.response import first_or_none, success_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/courses", tags=["Courses"])


@router.post("")
async def create_course(
    body: CourseCreate,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    data = {**body.model_dump(), "tenant_id": tenant_id}
    result = db.table("courses").insert(data).execute()
    created = first_or_none(result.data)
    logger.info("Course %s created by %s", created and created.get("id"), get_user_id(user))
    return success_response(data=created, message="Course created")


@router.get("")
async def list_courses(user: dict = Depends(require_role(["admin", "teacher", "student"]))):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    courses = db.table("courses").select("*").eq("tenant_id", tenant_id).order("name").execute().data or []

    batches = db.table("batches").select("id, course_id").eq("tenant_id", tenant_id).execute().data or []
    counts: dict = {}
    for b in batches:
        counts[b.get("course_id")] = counts.get(b.get("course_id"), 0) + 1
    for c in courses:
        c["batch_count"] = counts.get(c["id"], 0)

    return success_response(data=courses)


@router.get("/{course_id}")
async def get_course(
    course_id: str,
    user: dict = Depends(require_role(["admin", "teacher", "student"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    course = get_or_404(db, "courses", tenant_id, course_id, "Course")
    batches = (
        db.table("batches")
        .select("*, users!batches_teacher_id_fkey(name)")
        .eq("tenant_id", tenant_id)
        .eq("course_id", course_id)
        .order("name")
        .execute()
    )
    return success_response(data={**course, "batches": batches.data or []})


@router.patch("/{course_id}")
async def update_course(
    course_id: str,
    body: CourseUpdate,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    get_or_404(db, "courses", tenant_id, course_id, "Course", "id")

    update_data = {k: v for k, v in body.model_dump().items() if v is not None}
    if not update_data:
        raise HTTPException(status_code=400, detail="No valid fields to update")
    update_data["updated_at"] = now_iso()

    result = (
        db.table("courses")
        .update(update_data)
        .eq("id", course_id)
        .eq("tenant_id", tenant_id)
        .execute()
    )
    return success_response(data=first_or_none(result.data), message="Course updated")


@router.delete("/{course_id}")
async def delete_course(
    course_id: str,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    get_or_404(db, "courses", tenant_id, course_id, "Course", "id")

    batches = db.table("batches").select("id").eq("tenant_id", tenant_id).eq("course_id", course_id).execute()
    if batches.data:
        raise HTTPException(
            status_code=400,
            detail=f"Course still has {len(batches.data)} batch(es). Move or delete them first.",
        )

    db.table("courses").delete().eq("id", course_id).eq("tenant_id", tenant_id).execute()
    logger.info("Course %s deleted by %s", course_id, get_user_id(user))
    return success_response(message="Course deleted")


@router.post("/{course_id}/batches")
async def attach_batch(
    course_id: str,
    body: CourseBatchLink,
    user: dict = Depends(require_role(["admin"])),
):
    """Move an existing batch under this course."""
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    get_or_404(db, "courses", tenant_id, course_id, "Course", "id")
    get_or_404(db, "batches", tenant_id, body.batch_id, "Batch", "id")

    result = (
        db.table("batches")
        .update({"course_id": course_id})
        .eq("id", body.batch_id)
        .eq("tenant_id", tenant_id)
        .execute()
    )
    return success_response(data=first_or_none(result.data), message="Batch added to course")
