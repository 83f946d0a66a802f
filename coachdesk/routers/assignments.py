"""
Assignments router — create/edit/delete (teacher, admin), submit (student),
per-assignment summary and the teacher/student assignment dashboards.

Deleting an assignment leaves its submissions in place; they stay reachable
through /api/submissions.
"""

import logging
from datetime import timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from coachdesk.core.database import fetch_one, get_supabase
from coachdesk.core.middleware import get_tenant_id, get_user_id
from coachdesk.core.security import require_role
from coachdesk.core.storage import delete_stored, save_uploads
from coachdesk.routers.submissions import apply_grade
from coachdesk.schemas.assignments import ASSIGNMENT_TYPES, SubmissionGrade
from coachdesk.utils.dates import is_past, now_iso, parse_datetime, utcnow
from coachdesk.utils.queries import batch_student_ids, get_or_404, student_batch_ids
from coachdesk.utils.response import first_or_none, success_response
from coachdesk.utils.stats import (
    assignment_summary,
    average,
    latest_by_assignment,
    teacher_assignment_stats,
    with_overdue,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/assignments", tags=["Assignments"])

UPCOMING_WINDOW = timedelta(days=7)


def _check_owner(assignment: dict, user: dict):
    if user["role"] == "teacher" and assignment.get("teacher_id") != get_user_id(user):
        raise HTTPException(status_code=403, detail="You can only manage your own assignments")


def _validate_fields(due_date: Optional[str], total_marks: Optional[float], assignment_type: Optional[str],
                     late_submission_penalty: Optional[float]):
    if due_date is not None and parse_datetime(due_date) is None:
        raise HTTPException(status_code=400, detail="due_date must be an ISO-8601 date or datetime")
    if total_marks is not None and total_marks <= 0:
        raise HTTPException(status_code=400, detail="total_marks must be greater than 0")
    if assignment_type is not None and assignment_type not in ASSIGNMENT_TYPES:
        raise HTTPException(status_code=400, detail=f"assignment_type must be one of {list(ASSIGNMENT_TYPES)}")
    if late_submission_penalty is not None and not 0 <= late_submission_penalty <= 100:
        raise HTTPException(status_code=400, detail="late_submission_penalty is a percentage between 0 and 100")


# ===== TEACHER / ADMIN =====

@router.post("")
async def create_assignment(
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    instructions: Optional[str] = Form(None),
    course_id: Optional[str] = Form(None),
    batch_id: Optional[str] = Form(None),
    due_date: Optional[str] = Form(None),
    total_marks: Optional[float] = Form(None),
    assignment_type: str = Form("homework"),
    is_published: bool = Form(True),
    allow_late_submission: bool = Form(True),
    late_submission_penalty: Optional[float] = Form(None),
    attachments: Optional[List[UploadFile]] = File(None),
    user: dict = Depends(require_role(["teacher", "admin"])),
):
    missing = [name for name, value in (("title", title), ("course_id", course_id), ("due_date", due_date))
               if not value or not str(value).strip()]
    if missing:
        raise HTTPException(status_code=400, detail=f"Missing required fields: {', '.join(missing)}")
    _validate_fields(due_date, total_marks, assignment_type, late_submission_penalty)

    db = get_supabase()
    tenant_id = get_tenant_id(user)
    user_id = get_user_id(user)

    get_or_404(db, "courses", tenant_id, course_id, "Course", "id")
    if batch_id:
        get_or_404(db, "batches", tenant_id, batch_id, "Batch", "id")

    stored = await save_uploads(attachments)

    data = {
        "tenant_id": tenant_id,
        "teacher_id": user_id,
        "title": title.strip(),
        "description": description,
        "instructions": instructions,
        "course_id": course_id,
        "batch_id": batch_id or None,
        "due_date": due_date,
        "total_marks": total_marks if total_marks is not None else 100,
        "assignment_type": assignment_type,
        "is_published": is_published,
        "allow_late_submission": allow_late_submission,
        "late_submission_penalty": late_submission_penalty,
        "attachments": stored,
    }
    result = db.table("assignments").insert(data).execute()
    created = first_or_none(result.data)
    logger.info("Assignment %s created by %s", created and created.get("id"), user_id)
    return success_response(data=with_overdue(created), message="Assignment created successfully")


@router.get("")
async def list_assignments(
    course_id: Optional[str] = None,
    batch_id: Optional[str] = None,
    assignment_type: Optional[str] = None,
    status: str = "all",
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
    user: dict = Depends(require_role(["teacher", "admin", "student"])),
):
    """Role-filtered listing. Students get published work for their batches plus their latest submission."""
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    user_id = get_user_id(user)

    query = (
        db.table("assignments")
        .select("*, courses(name), batches(name)")
        .eq("tenant_id", tenant_id)
    )

    if user["role"] == "teacher":
        query = query.eq("teacher_id", user_id)
    elif user["role"] == "student":
        batch_ids = student_batch_ids(db, tenant_id, user_id)
        if not batch_ids:
            return success_response(data=[])
        query = query.in_("batch_id", batch_ids).eq("is_published", True)

    if course_id:
        query = query.eq("course_id", course_id)
    if batch_id:
        query = query.eq("batch_id", batch_id)
    if assignment_type:
        query = query.eq("assignment_type", assignment_type)
    if status == "published":
        query = query.eq("is_published", True)
    elif status == "draft":
        query = query.eq("is_published", False)
    if date_from:
        query = query.gte("due_date", date_from)
    if date_to:
        query = query.lte("due_date", date_to)

    result = query.order("due_date", desc=False).execute()
    now = utcnow()
    assignments = [with_overdue(a, now) for a in result.data or []]
    if status == "overdue":
        assignments = [a for a in assignments if a["is_overdue"]]

    if user["role"] == "student" and assignments:
        submissions = (
            db.table("assignment_submissions")
            .select("*")
            .eq("tenant_id", tenant_id)
            .eq("student_id", user_id)
            .execute()
        )
        latest = latest_by_assignment(submissions.data or [])
        for a in assignments:
            a["submission"] = latest.get(a["id"])

    return success_response(data=assignments)


@router.get("/dashboard/teacher")
async def teacher_dashboard(
    user: dict = Depends(require_role(["teacher", "admin"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    user_id = get_user_id(user)

    query = db.table("assignments").select("*").eq("tenant_id", tenant_id)
    if user["role"] == "teacher":
        query = query.eq("teacher_id", user_id)
    assignments = query.order("created_at", desc=True).execute().data or []

    submissions = []
    if assignments:
        submissions = (
            db.table("assignment_submissions")
            .select("*, users!assignment_submissions_student_id_fkey(name, email)")
            .eq("tenant_id", tenant_id)
            .in_("assignment_id", [a["id"] for a in assignments])
            .order("submitted_at", desc=True)
            .execute()
        ).data or []

    now = utcnow()
    views = [with_overdue(a, now) for a in assignments]
    upcoming = [
        a for a in views
        if not a["is_overdue"] and (parse_datetime(a.get("due_date")) or now) <= now + UPCOMING_WINDOW
    ]
    upcoming.sort(key=lambda a: a.get("due_date") or "")

    return success_response(data={
        "stats": teacher_assignment_stats(assignments, submissions, now),
        "recent_assignments": views[:5],
        "pending_grading": [s for s in submissions if s.get("status") != "graded"],
        "overdue_assignments": [a for a in views if a["is_overdue"]],
        "upcoming_deadlines": upcoming,
    })


@router.get("/dashboard/student")
async def student_dashboard(
    user: dict = Depends(require_role(["student"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    user_id = get_user_id(user)

    batch_ids = student_batch_ids(db, tenant_id, user_id)
    assignments = []
    if batch_ids:
        assignments = (
            db.table("assignments")
            .select("*, courses(name)")
            .eq("tenant_id", tenant_id)
            .in_("batch_id", batch_ids)
            .eq("is_published", True)
            .order("due_date", desc=False)
            .execute()
        ).data or []

    submissions = (
        db.table("assignment_submissions")
        .select("*")
        .eq("tenant_id", tenant_id)
        .eq("student_id", user_id)
        .order("submitted_at", desc=True)
        .execute()
    ).data or []

    now = utcnow()
    assignment_ids = {a["id"] for a in assignments}
    latest = {k: v for k, v in latest_by_assignment(submissions).items() if k in assignment_ids}
    graded = [s for s in latest.values() if s.get("status") == "graded"]

    return success_response(data={
        "stats": {
            "total_assignments": len(assignments),
            "submitted_count": len(latest),
            "pending_count": len(assignments) - len(latest),
            "graded_count": len(graded),
            "average_grade": average(s.get("grade") for s in graded),
        },
        "upcoming_assignments": [
            with_overdue(a, now) for a in assignments
            if a["id"] not in latest and not is_past(a.get("due_date"), now)
        ],
        "recent_submissions": submissions[:5],
        "graded_assignments": graded,
    })


@router.get("/{assignment_id}")
async def get_assignment(
    assignment_id: str,
    user: dict = Depends(require_role(["teacher", "admin", "student"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    assignment = get_or_404(db, "assignments", tenant_id, assignment_id, "Assignment",
                            "*, courses(name), batches(name)")

    if user["role"] == "student":
        batch_ids = student_batch_ids(db, tenant_id, get_user_id(user))
        batch_id = assignment.get("batch_id")
        if not assignment.get("is_published") or (batch_id and batch_id not in batch_ids):
            raise HTTPException(status_code=404, detail="Assignment not found")

    return success_response(data=with_overdue(assignment))


@router.put("/{assignment_id}")
async def update_assignment(
    assignment_id: str,
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    instructions: Optional[str] = Form(None),
    course_id: Optional[str] = Form(None),
    batch_id: Optional[str] = Form(None),
    due_date: Optional[str] = Form(None),
    total_marks: Optional[float] = Form(None),
    assignment_type: Optional[str] = Form(None),
    is_published: Optional[bool] = Form(None),
    allow_late_submission: Optional[bool] = Form(None),
    late_submission_penalty: Optional[float] = Form(None),
    attachments: Optional[List[UploadFile]] = File(None),
    user: dict = Depends(require_role(["teacher", "admin"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    assignment = get_or_404(db, "assignments", tenant_id, assignment_id, "Assignment")
    _check_owner(assignment, user)
    _validate_fields(due_date, total_marks, assignment_type, late_submission_penalty)

    if title is not None and not title.strip():
        raise HTTPException(status_code=400, detail="title cannot be empty")
    if course_id:
        get_or_404(db, "courses", tenant_id, course_id, "Course", "id")
    if batch_id:
        get_or_404(db, "batches", tenant_id, batch_id, "Batch", "id")

    fields = {
        "title": title.strip() if title else None,
        "description": description,
        "instructions": instructions,
        "course_id": course_id,
        "batch_id": batch_id,
        "due_date": due_date,
        "total_marks": total_marks,
        "assignment_type": assignment_type,
        "is_published": is_published,
        "allow_late_submission": allow_late_submission,
        "late_submission_penalty": late_submission_penalty,
    }
    update_data = {k: v for k, v in fields.items() if v is not None}

    stored = await save_uploads(attachments)
    if stored:
        update_data["attachments"] = (assignment.get("attachments") or []) + stored

    if not update_data:
        raise HTTPException(status_code=400, detail="No valid fields to update")

    update_data["updated_at"] = now_iso()
    result = (
        db.table("assignments")
        .update(update_data)
        .eq("id", assignment_id)
        .eq("tenant_id", tenant_id)
        .execute()
    )
    logger.info("Assignment %s updated (%s)", assignment_id, ", ".join(sorted(update_data)))
    return success_response(data=with_overdue(first_or_none(result.data)), message="Assignment updated successfully")


@router.delete("/{assignment_id}")
async def delete_assignment(
    assignment_id: str,
    user: dict = Depends(require_role(["teacher", "admin"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    assignment = get_or_404(db, "assignments", tenant_id, assignment_id, "Assignment")
    _check_owner(assignment, user)

    db.table("assignments").delete().eq("id", assignment_id).eq("tenant_id", tenant_id).execute()
    for attachment in assignment.get("attachments") or []:
        delete_stored(attachment.get("file_url"))

    logger.info("Assignment %s deleted by %s", assignment_id, get_user_id(user))
    return success_response(message="Assignment deleted successfully")


@router.get("/{assignment_id}/summary")
async def get_assignment_summary(
    assignment_id: str,
    user: dict = Depends(require_role(["teacher", "admin"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    assignment = get_or_404(db, "assignments", tenant_id, assignment_id, "Assignment")
    _check_owner(assignment, user)

    if assignment.get("batch_id"):
        total_students = len(batch_student_ids(db, tenant_id, assignment["batch_id"]))
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

    submissions = (
        db.table("assignment_submissions")
        .select("*")
        .eq("tenant_id", tenant_id)
        .eq("assignment_id", assignment_id)
        .execute()
    ).data or []

    return success_response(data=assignment_summary(assignment, submissions, total_students))


@router.get("/{assignment_id}/submissions")
async def get_submissions(
    assignment_id: str,
    user: dict = Depends(require_role(["teacher", "admin", "student"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    user_id = get_user_id(user)

    assignment = get_or_404(db, "assignments", tenant_id, assignment_id, "Assignment", "id, teacher_id")
    if user["role"] == "teacher":
        _check_owner(assignment, user)

    query = (
        db.table("assignment_submissions")
        .select("*, users!assignment_submissions_student_id_fkey(name, email, roll_number)")
        .eq("tenant_id", tenant_id)
        .eq("assignment_id", assignment_id)
    )
    if user["role"] == "student":
        query = query.eq("student_id", user_id)

    result = query.order("submitted_at", desc=True).execute()
    return success_response(data=result.data)


@router.put("/{assignment_id}/grade/{submission_id}")
async def grade_submission_legacy(
    assignment_id: str,
    submission_id: str,
    body: SubmissionGrade,
    user: dict = Depends(require_role(["teacher", "admin"])),
):
    """Older client path; same behaviour as PUT /api/submissions/{id}/grade."""
    db = get_supabase()
    graded = apply_grade(db, user, submission_id, body.grade, body.feedback, assignment_id=assignment_id)
    return success_response(data=graded, message="Submission graded successfully")


# ===== STUDENT =====

@router.post("/{assignment_id}/submit")
async def submit_assignment(
    assignment_id: str,
    submission_text: Optional[str] = Form(None),
    attachments: Optional[List[UploadFile]] = File(None),
    user: dict = Depends(require_role(["student"])),
):
    """
    Every call creates a new submission row. Lateness is a label: a submission
    after the due date is stored with status 'late', never refused.
    """
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    user_id = get_user_id(user)

    assignment = fetch_one(
        db.table("assignments")
        .select("id, teacher_id, batch_id, due_date, is_published")
        .eq("tenant_id", tenant_id)
        .eq("id", assignment_id)
    )
    if not assignment:
        raise HTTPException(status_code=404, detail="Assignment not found")
    if assignment.get("batch_id") and assignment["batch_id"] not in student_batch_ids(db, tenant_id, user_id):
        raise HTTPException(status_code=403, detail="This assignment is not for your batch")
    if not assignment.get("is_published", True):
        raise HTTPException(status_code=400, detail="Assignment is not open for submissions")

    has_files = any(f and f.filename for f in attachments or [])
    if not (submission_text and submission_text.strip()) and not has_files:
        raise HTTPException(status_code=400, detail="Provide submission text or at least one file")

    stored = await save_uploads(attachments)
    is_late = is_past(assignment.get("due_date"))

    data = {
        "tenant_id": tenant_id,
        "assignment_id": assignment_id,
        "student_id": user_id,
        "teacher_id": assignment.get("teacher_id"),
        "submission_text": submission_text,
        "attachments": stored,
        "submitted_at": now_iso(),
        "is_late": is_late,
        "status": "late" if is_late else "submitted",
        "grade": None,
        "feedback": None,
    }
    result = db.table("assignment_submissions").insert(data).execute()
    logger.info("Student %s submitted assignment %s (late=%s)", user_id, assignment_id, is_late)
    return success_response(data=first_or_none(result.data), message="Assignment submitted")
