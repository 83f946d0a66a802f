"""
Schedules router — weekly class slots per batch and teacher.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from coachdesk.core.database import get_supabase
from coachdesk.core.middleware import get_tenant_id, get_user_id
from coachdesk.core.security import require_role
from coachdesk.schemas.support import WEEKDAYS, ScheduleCreate, ScheduleUpdate
from coachdesk.utils.dates import now_iso
from coachdesk.utils.queries import get_or_404, student_batch_ids
from coachdesk.utils.response import first_or_none, success_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/schedules", tags=["Schedules"])

SCHEDULE_SELECT = "*, batches(name), courses(name), users!schedules_teacher_id_fkey(name)"


def _week_order(slot: dict):
    day = slot.get("day")
    return (WEEKDAYS.index(day) if day in WEEKDAYS else len(WEEKDAYS), slot.get("start_time") or "")


def _check_slot(db, tenant_id: str, teacher_id: str, day: str, start: str, end: str,
                exclude_id: Optional[str] = None):
    if end <= start:
        raise HTTPException(status_code=400, detail="end_time must be after start_time")

    query = (
        db.table("schedules")
        .select("id, start_time, end_time")
        .eq("tenant_id", tenant_id)
        .eq("teacher_id", teacher_id)
        .eq("day", day)
    )
    if exclude_id:
        query = query.neq("id", exclude_id)
    for slot in query.execute().data or []:
        if start < slot["end_time"] and slot["start_time"] < end:
            raise HTTPException(
                status_code=400,
                detail=f"Teacher already has a class on {day} {slot['start_time']}-{slot['end_time']}",
            )


def _check_owner(slot: dict, user: dict):
    if user["role"] != "admin" and slot.get("teacher_id") != get_user_id(user):
        raise HTTPException(status_code=403, detail="You can only manage your own schedule")


@router.post("")
async def create_schedule(
    body: ScheduleCreate,
    user: dict = Depends(require_role(["teacher", "admin"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    batch = get_or_404(db, "batches", tenant_id, body.batch_id, "Batch", "id, course_id, teacher_id")

    if user["role"] == "teacher":
        teacher_id = get_user_id(user)
        if batch.get("teacher_id") != teacher_id:
            raise HTTPException(status_code=403, detail="You are not the teacher of this batch")
    else:
        teacher_id = body.teacher_id or batch.get("teacher_id")
        if not teacher_id:
            raise HTTPException(status_code=400, detail="teacher_id is required for a batch without a teacher")
        teacher = get_or_404(db, "users", tenant_id, teacher_id, "Teacher", "id, role")
        if teacher.get("role") != "teacher":
            raise HTTPException(status_code=400, detail="teacher_id must reference a teacher")

    _check_slot(db, tenant_id, teacher_id, body.day, body.start_time, body.end_time)

    data = {
        **body.model_dump(exclude={"teacher_id"}),
        "tenant_id": tenant_id,
        "teacher_id": teacher_id,
        "course_id": batch.get("course_id"),
    }
    result = db.table("schedules").insert(data).execute()
    created = first_or_none(result.data)
    logger.info("Schedule %s added for batch %s on %s", created and created.get("id"), body.batch_id, body.day)
    return success_response(data=created, message="Schedule created")


@router.get("")
async def list_schedules(
    teacher_id: Optional[str] = None,
    batch_id: Optional[str] = None,
    day: Optional[str] = None,
    user: dict = Depends(require_role(["teacher", "admin"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    query = db.table("schedules").select(SCHEDULE_SELECT).eq("tenant_id", tenant_id)
    if user["role"] == "teacher":
        query = query.eq("teacher_id", get_user_id(user))
    elif teacher_id:
        query = query.eq("teacher_id", teacher_id)
    if batch_id:
        query = query.eq("batch_id", batch_id)
    if day:
        query = query.eq("day", day)

    slots = query.execute().data or []
    return success_response(data=sorted(slots, key=_week_order))


@router.get("/student")
async def student_schedule(
    day: Optional[str] = None,
    user: dict = Depends(require_role(["student"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    batch_ids = student_batch_ids(db, tenant_id, get_user_id(user))
    if not batch_ids:
        return success_response(data=[])

    query = db.table("schedules").select(SCHEDULE_SELECT).eq("tenant_id", tenant_id).in_("batch_id", batch_ids)
    if day:
        query = query.eq("day", day)
    slots = query.execute().data or []
    return success_response(data=sorted(slots, key=_week_order))


@router.put("/{schedule_id}")
async def update_schedule(
    schedule_id: str,
    body: ScheduleUpdate,
    user: dict = Depends(require_role(["teacher", "admin"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    slot = get_or_404(db, "schedules", tenant_id, schedule_id, "Schedule")
    _check_owner(slot, user)

    update_data = {k: v for k, v in body.model_dump().items() if v is not None}
    if not update_data:
        raise HTTPException(status_code=400, detail="No valid fields to update")

    merged = {**slot, **update_data}
    _check_slot(db, tenant_id, slot["teacher_id"], merged["day"], merged["start_time"], merged["end_time"],
                exclude_id=schedule_id)
    update_data["updated_at"] = now_iso()

    result = (
        db.table("schedules")
        .update(update_data)
        .eq("id", schedule_id)
        .eq("tenant_id", tenant_id)
        .execute()
    )
    return success_response(data=first_or_none(result.data), message="Schedule updated")


@router.delete("/{schedule_id}")
async def delete_schedule(
    schedule_id: str,
    user: dict = Depends(require_role(["teacher", "admin"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    slot = get_or_404(db, "schedules", tenant_id, schedule_id, "Schedule", "id, teacher_id")
    _check_owner(slot, user)

    db.table("schedules").delete().eq("id", schedule_id).eq("tenant_id", tenant_id).execute()
    logger.info("Schedule %s deleted by %s", schedule_id, get_user_id(user))
    return success_response(message="Schedule deleted")
