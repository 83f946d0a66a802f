"""
Attendance router — mark a batch session, the marking sheet, filtered records,
per-student summary, daily stats, and explicit record edits.

A student's record for a (batch, date) is written once; marking the same
session again skips students who already have one.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from coachdesk.core.config import settings
from coachdesk.core.database import get_supabase
from coachdesk.core.middleware import get_tenant_id, get_user_id
from coachdesk.core.security import require_role
from coachdesk.schemas.attendance import AttendanceMark, AttendanceUpdate
from coachdesk.utils.dates import now_iso, today_iso
from coachdesk.utils.queries import batch_student_ids, get_or_404, user_names
from coachdesk.utils.response import first_or_none, paginate, success_response
from coachdesk.utils.stats import attendance_day_stats, attendance_summary

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/attendance", tags=["Attendance"])


def _check_batch_access(batch: dict, user: dict):
    if user["role"] == "teacher" and batch.get("teacher_id") != get_user_id(user):
        raise HTTPException(status_code=403, detail="You are not the teacher of this batch")


def _filtered(db, tenant_id: str, batch_id=None, student_id=None, start_date=None, end_date=None,
              status=None, count: Optional[str] = None):
    query = (
        db.table("attendance")
        .select("*, users!attendance_student_id_fkey(name, email), batches(name)", count=count)
        .eq("tenant_id", tenant_id)
    )
    if batch_id:
        query = query.eq("batch_id", batch_id)
    if student_id:
        query = query.eq("student_id", student_id)
    if start_date:
        query = query.gte("date", start_date)
    if end_date:
        query = query.lte("date", end_date)
    if status:
        query = query.eq("status", status)
    return query


@router.post("")
async def mark_attendance(
    body: AttendanceMark,
    user: dict = Depends(require_role(["teacher", "admin"])),
):
    """Mark attendance for a batch session. Bulk insert for all listed students."""
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    user_id = get_user_id(user)

    batch = get_or_404(db, "batches", tenant_id, body.batch_id, "Batch", "id, teacher_id")
    _check_batch_access(batch, user)

    members = set(batch_student_ids(db, tenant_id, body.batch_id))
    outsiders = [e.student_id for e in body.attendance if e.student_id not in members]
    if outsiders:
        raise HTTPException(status_code=400, detail=f"Students not in this batch: {', '.join(outsiders)}")

    day = body.date.isoformat()
    existing = (
        db.table("attendance")
        .select("student_id")
        .eq("tenant_id", tenant_id)
        .eq("batch_id", body.batch_id)
        .eq("date", day)
        .execute()
    )
    already_marked = {r["student_id"] for r in existing.data or []}

    now = now_iso()
    records, skipped, seen = [], [], set()
    for entry in body.attendance:
        if entry.student_id in already_marked or entry.student_id in seen:
            skipped.append(entry.student_id)
            continue
        seen.add(entry.student_id)
        records.append({
            "tenant_id": tenant_id,
            "batch_id": body.batch_id,
            "student_id": entry.student_id,
            "date": day,
            "status": entry.status,
            "notes": entry.notes,
            "marked_by": user_id,
            "marked_at": now,
        })

    created = []
    if records:
        created = db.table("attendance").insert(records).execute().data or []

    logger.info("Attendance for batch %s on %s: %d created, %d skipped",
                body.batch_id, day, len(created), len(skipped))
    return success_response(
        data={"created": len(created), "skipped": skipped, "records": created},
        message=f"Attendance marked for {len(created)} students",
    )


@router.get("")
async def get_batch_sheet(
    batch_id: str,
    date: Optional[str] = None,
    user: dict = Depends(require_role(["teacher", "admin"])),
):
    """Every student of the batch with their record for the date, if already marked."""
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    day = date or today_iso()

    batch = get_or_404(db, "batches", tenant_id, batch_id, "Batch", "id, name, teacher_id, course_id")
    _check_batch_access(batch, user)

    student_ids = batch_student_ids(db, tenant_id, batch_id)
    students = []
    if student_ids:
        students = (
            db.table("users")
            .select("id, name, email, roll_number")
            .eq("tenant_id", tenant_id)
            .in_("id", student_ids)
            .order("name")
            .execute()
        ).data or []

    records = (
        db.table("attendance")
        .select("*")
        .eq("tenant_id", tenant_id)
        .eq("batch_id", batch_id)
        .eq("date", day)
        .execute()
    ).data or []
    by_student = {r["student_id"]: r for r in records}

    return success_response(data={
        "batch_id": batch_id,
        "batch_name": batch.get("name"),
        "course_id": batch.get("course_id"),
        "date": day,
        "students": [
            {
                "student_id": s["id"],
                "student_name": s.get("name"),
                "email": s.get("email"),
                "roll_number": s.get("roll_number"),
                "attendance_status": by_student.get(s["id"], {}).get("status"),
                "notes": by_student.get(s["id"], {}).get("notes"),
                "today_attendance": by_student.get(s["id"]),
            }
            for s in students
        ],
    })


@router.get("/records")
async def get_records(
    batch_id: Optional[str] = None,
    student_id: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    user: dict = Depends(require_role(["teacher", "admin"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    offset = (page - 1) * limit

    result = (
        _filtered(db, tenant_id, batch_id, student_id, start_date, end_date, status, count="exact")
        .order("date", desc=True)
        .range(offset, offset + limit - 1)
        .execute()
    )
    total = result.count if result.count is not None else len(result.data or [])
    return success_response(data={
        "records": result.data,
        "pagination": paginate(total, page, limit),
    })


@router.get("/summary")
async def get_summary(
    batch_id: Optional[str] = None,
    student_id: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    user: dict = Depends(require_role(["teacher", "admin"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    records = _filtered(db, tenant_id, batch_id, student_id, start_date, end_date).execute().data or []
    names = user_names(db, tenant_id, (r["student_id"] for r in records))
    return success_response(data=attendance_summary(records, settings.ATTENDANCE_THRESHOLD, names))


@router.get("/stats")
async def get_stats(
    batch_id: Optional[str] = None,
    date: Optional[str] = None,
    user: dict = Depends(require_role(["teacher", "admin"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    day = date or today_iso()

    if batch_id:
        total_students = len(batch_student_ids(db, tenant_id, batch_id))
    else:
        students = (
            db.table("users")
            .select("id", count="exact")
            .eq("tenant_id", tenant_id)
            .eq("role", "student")
            .eq("is_active", True)
            .execute()
        )
        total_students = students.count if students.count is not None else len(students.data or [])

    records = _filtered(db, tenant_id, batch_id=batch_id, start_date=day, end_date=day).execute().data or []
    return success_response(data={"date": day, **attendance_day_stats(records, total_students)})


@router.get("/student")
async def get_my_attendance(
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    user: dict = Depends(require_role(["student"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    user_id = get_user_id(user)

    records = (
        _filtered(db, tenant_id, student_id=user_id, start_date=start_date, end_date=end_date)
        .order("date", desc=True)
        .execute()
    ).data or []
    summary = attendance_summary(records, settings.ATTENDANCE_THRESHOLD)

    return success_response(data={
        "summary": summary[0] if summary else None,
        "records": records,
    })


@router.put("/{record_id}")
async def update_attendance(
    record_id: str,
    body: AttendanceUpdate,
    user: dict = Depends(require_role(["teacher", "admin"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    record = get_or_404(db, "attendance", tenant_id, record_id, "Attendance record")
    if user["role"] == "teacher":
        batch = get_or_404(db, "batches", tenant_id, record["batch_id"], "Batch", "id, teacher_id")
        _check_batch_access(batch, user)

    update_data = {k: v for k, v in body.model_dump().items() if v is not None}
    if not update_data:
        raise HTTPException(status_code=400, detail="No valid fields to update")
    update_data["marked_by"] = get_user_id(user)
    update_data["marked_at"] = now_iso()

    result = (
        db.table("attendance")
        .update(update_data)
        .eq("id", record_id)
        .eq("tenant_id", tenant_id)
        .execute()
    )
    logger.info("Attendance %s updated: %s", record_id, update_data.get("status", "notes only"))
    return success_response(data=first_or_none(result.data), message="Attendance updated successfully")


@router.delete("/{record_id}")
async def delete_attendance(
    record_id: str,
    user: dict = Depends(require_role(["teacher", "admin"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    record = get_or_404(db, "attendance", tenant_id, record_id, "Attendance record")
    if user["role"] == "teacher":
        batch = get_or_404(db, "batches", tenant_id, record["batch_id"], "Batch", "id, teacher_id")
        _check_batch_access(batch, user)

    db.table("attendance").delete().eq("id", record_id).eq("tenant_id", tenant_id).execute()
    logger.info("Attendance %s deleted by %s", record_id, get_user_id(user))
    return success_response(message="Attendance record deleted successfully")
