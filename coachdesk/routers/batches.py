"""
Batches router — cohorts of students sharing a schedule and a teacher.
Membership lives in `batch_students` rows, like the rest of the tenant data.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from coachdesk.core.database import get_supabase
from coachdesk.core.middleware import get_tenant_id, get_user_id
from coachdesk.core.security import require_role
from coachdesk.schemas.academic import BatchCreate, BatchStudentsAdd, BatchUpdate
from coachdesk.utils.dates import now_iso
from coachdesk.utils.queries import batch_student_ids, get_or_404
from coachdesk.utils.response import first_or_none, success_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/batches", tags=["Batches"])


def _validate_refs(db, tenant_id: str, course_id: str | None, teacher_id: str | None):
    if course_id:
        get_or_404(db, "courses", tenant_id, course_id, "Course", "id")
    if teacher_id:
        teacher = get_or_404(db, "users", tenant_id, teacher_id, "Teacher", "id, role")
        if teacher.get("role") != "teacher":
            raise HTTPException(status_code=400, detail="teacher_id must reference a teacher")


def _validate_students(db, tenant_id: str, student_ids: list[str]):
    if not student_ids:
        return
    rows = (
        db.table("users")
        .select("id")
        .eq("tenant_id", tenant_id)
        .eq("role", "student")
        .in_("id", student_ids)
        .execute()
    )
    found = {r["id"] for r in rows.data or []}
    unknown = [sid for sid in student_ids if sid not in found]
    if unknown:
        raise HTTPException(status_code=400, detail=f"Unknown students: {', '.join(unknown)}")


def add_students(db, tenant_id: str, batch: dict, student_ids: list[str]) -> list[str]:
    """Enroll students, skipping existing members. Returns the ids actually added."""
    current = set(batch_student_ids(db, tenant_id, batch["id"]))
    new_ids = [sid for sid in dict.fromkeys(student_ids) if sid not in current]
    capacity = batch.get("capacity")
    if capacity and len(current) + len(new_ids) > capacity:
        raise HTTPException(
            status_code=400,
            detail=f"Batch capacity exceeded ({len(current) + len(new_ids)}/{capacity})",
        )
    if new_ids:
        db.table("batch_students").insert([
            {"tenant_id": tenant_id, "batch_id": batch["id"], "student_id": sid} for sid in new_ids
        ]).execute()
    return new_ids


@router.post("")
async def create_batch(
    body: BatchCreate,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    _validate_refs(db, tenant_id, body.course_id, body.teacher_id)
    _validate_students(db, tenant_id, body.students)
    if body.capacity and len(set(body.students)) > body.capacity:
        raise HTTPException(status_code=400, detail="More students than the batch capacity")

    data = {**body.model_dump(exclude={"students"}), "tenant_id": tenant_id}
    result = db.table("batches").insert(data).execute()
    batch = first_or_none(result.data)

    added = add_students(db, tenant_id, batch, body.students)
    logger.info("Batch %s created with %d students", batch["id"], len(added))
    return success_response(data={**batch, "students": added}, message="Batch created")


@router.get("")
async def list_batches(user: dict = Depends(require_role(["admin", "teacher"]))):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    query = (
        db.table("batches")
        .select("*, courses(name), users!batches_teacher_id_fkey(name)")
        .eq("tenant_id", tenant_id)
    )
    if user["role"] == "teacher":
        query = query.eq("teacher_id", get_user_id(user))
    batches = query.order("name").execute().data or []

    members = db.table("batch_students").select("batch_id").eq("tenant_id", tenant_id).execute().data or []
    counts: dict = {}
    for m in members:
        counts[m["batch_id"]] = counts.get(m["batch_id"], 0) + 1
    for b in batches:
        b["student_count"] = counts.get(b["id"], 0)

    return success_response(data=batches)


@router.get("/{batch_id}")
async def get_batch(
    batch_id: str,
    user: dict = Depends(require_role(["admin", "teacher"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    batch = get_or_404(db, "batches", tenant_id, batch_id, "Batch",
                       "*, courses(name), users!batches_teacher_id_fkey(name, email)")
    if user["role"] == "teacher" and batch.get("teacher_id") != get_user_id(user):
        raise HTTPException(status_code=403, detail="You are not the teacher of this batch")

    student_ids = batch_student_ids(db, tenant_id, batch_id)
    students = []
    if student_ids:
        students = (
            db.table("users")
            .select("id, name, email, phone, roll_number")
            .eq("tenant_id", tenant_id)
            .in_("id", student_ids)
            .order("name")
            .execute()
        ).data or []

    return success_response(data={**batch, "students": students, "student_count": len(students)})


@router.put("/{batch_id}")
async def update_batch(
    batch_id: str,
    body: BatchUpdate,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    get_or_404(db, "batches", tenant_id, batch_id, "Batch", "id")
    _validate_refs(db, tenant_id, body.course_id, body.teacher_id)

    update_data = {k: v for k, v in body.model_dump().items() if v is not None}
    if not update_data:
        raise HTTPException(status_code=400, detail="No valid fields to update")
    if "capacity" in update_data and len(batch_student_ids(db, tenant_id, batch_id)) > update_data["capacity"]:
        raise HTTPException(status_code=400, detail="Capacity is below the current number of students")
    update_data["updated_at"] = now_iso()

    result = (
        db.table("batches")
        .update(update_data)
        .eq("id", batch_id)
        .eq("tenant_id", tenant_id)
        .execute()
    )
    return success_response(data=first_or_none(result.data), message="Batch updated")


@router.delete("/{batch_id}")
async def delete_batch(
    batch_id: str,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    get_or_404(db, "batches", tenant_id, batch_id, "Batch", "id")

    db.table("batch_students").delete().eq("tenant_id", tenant_id).eq("batch_id", batch_id).execute()
    db.table("batches").delete().eq("id", batch_id).eq("tenant_id", tenant_id).execute()
    logger.info("Batch %s deleted by %s", batch_id, get_user_id(user))
    return success_response(message="Batch deleted")


@router.post("/{batch_id}/students")
async def add_batch_students(
    batch_id: str,
    body: BatchStudentsAdd,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    batch = get_or_404(db, "batches", tenant_id, batch_id, "Batch", "id, capacity")
    _validate_students(db, tenant_id, body.student_ids)

    added = add_students(db, tenant_id, batch, body.student_ids)
    logger.info("Batch %s: %d students added", batch_id, len(added))
    return success_response(data={"added": added}, message=f"{len(added)} students added to batch")


@router.delete("/{batch_id}/students/{student_id}")
async def remove_batch_student(
    batch_id: str,
    student_id: str,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    result = (
        db.table("batch_students")
        .delete()
        .eq("tenant_id", tenant_id)
        .eq("batch_id", batch_id)
        .eq("student_id", student_id)
        .execute()
    )
    if not result.data:
        raise HTTPException(status_code=404, detail="Student is not in this batch")
    return success_response(message="Student removed from batch")
