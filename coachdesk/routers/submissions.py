"""
Submissions router — filtered queries, single grading and bulk grading.

Bulk grading applies each item on its own: a bad item is reported back in
`failed` and does not undo the items already graded.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from coachdesk.core.database import fetch_one, get_supabase
from coachdesk.core.middleware import get_tenant_id, get_user_id
from coachdesk.core.security import require_role
from coachdesk.schemas.assignments import BulkGrade, SubmissionGrade
from coachdesk.utils.dates import now_iso
from coachdesk.utils.queries import get_or_404
from coachdesk.utils.response import first_or_none, success_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/submissions", tags=["Submissions"])


def apply_grade(db, user: dict, submission_id: str, grade: float, feedback: Optional[str],
                assignment_id: Optional[str] = None) -> dict:
    """Grade one submission and return the updated row. Raises HTTPException on any rule violation."""
    tenant_id = get_tenant_id(user)
    grader_id = get_user_id(user)

    submission = get_or_404(db, "assignment_submissions", tenant_id, submission_id, "Submission")
    if assignment_id and submission["assignment_id"] != assignment_id:
        raise HTTPException(status_code=404, detail="Submission not found for this assignment")

    # Parent may be gone: assignment deletes do not cascade
    assignment = fetch_one(
        db.table("assignments")
        .select("id, teacher_id, total_marks")
        .eq("tenant_id", tenant_id)
        .eq("id", submission["assignment_id"])
    )
    owner_id = assignment.get("teacher_id") if assignment else submission.get("teacher_id")
    if user["role"] == "teacher" and owner_id != grader_id:
        raise HTTPException(status_code=403, detail="You can only grade submissions for your own assignments")

    if grade < 0:
        raise HTTPException(status_code=400, detail="Grade cannot be negative")
    if assignment and assignment.get("total_marks") is not None and grade > float(assignment["total_marks"]):
        raise HTTPException(
            status_code=400,
            detail=f"Grade {grade:g} exceeds total marks {float(assignment['total_marks']):g}",
        )

    result = (
        db.table("assignment_submissions")
        .update({
            "grade": grade,
            "feedback": feedback,
            "status": "graded",
            "graded_at": now_iso(),
            "graded_by": grader_id,
        })
        .eq("id", submission_id)
        .eq("tenant_id", tenant_id)
        .execute()
    )
    logger.info("Submission %s graded %s by %s", submission_id, grade, grader_id)
    return first_or_none(result.data)


@router.get("")
async def list_submissions(
    assignment_id: Optional[str] = None,
    student_id: Optional[str] = None,
    status: str = "all",
    is_late: Optional[bool] = None,
    user: dict = Depends(require_role(["teacher", "admin", "student"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)

    query = (
        db.table("assignment_submissions")
        .select("*, assignments(title, due_date, total_marks)")
        .eq("tenant_id", tenant_id)
    )

    if user["role"] == "student":
        student_id = get_user_id(user)
    if assignment_id:
        query = query.eq("assignment_id", assignment_id)
    if student_id:
        query = query.eq("student_id", student_id)
    if status in ("submitted", "graded", "late"):
        query = query.eq("status", status)
    elif status == "pending":
        query = query.neq("status", "graded")
    elif status != "all":
        raise HTTPException(status_code=400, detail="status must be one of: all, submitted, graded, pending, late")
    if is_late is not None:
        query = query.eq("is_late", is_late)

    result = query.order("submitted_at", desc=True).execute()
    return success_response(data=result.data)


@router.get("/teacher")
async def list_teacher_submissions(
    user: dict = Depends(require_role(["teacher"])),
):
    """All submissions across the calling teacher's assignments."""
    db = get_supabase()
    tenant_id = get_tenant_id(user)

    assignments = (
        db.table("assignments")
        .select("id")
        .eq("tenant_id", tenant_id)
        .eq("teacher_id", get_user_id(user))
        .execute()
    )
    assignment_ids = [a["id"] for a in assignments.data or []]
    if not assignment_ids:
        return success_response(data=[])

    result = (
        db.table("assignment_submissions")
        .select("*, assignments(title, due_date, total_marks), users!assignment_submissions_student_id_fkey(name, email)")
        .eq("tenant_id", tenant_id)
        .in_("assignment_id", assignment_ids)
        .order("submitted_at", desc=True)
        .execute()
    )
    return success_response(data=result.data)


@router.put("/bulk-grade")
async def bulk_grade(
    body: BulkGrade,
    user: dict = Depends(require_role(["teacher", "admin"])),
):
    db = get_supabase()
    graded, failed = [], []

    for item in body.submissions:
        try:
            apply_grade(db, user, item.submission_id, item.grade, item.feedback)
            graded.append(item.submission_id)
        except HTTPException as e:
            failed.append({"submission_id": item.submission_id, "message": e.detail})

    if failed:
        logger.warning("Bulk grade: %d graded, %d failed", len(graded), len(failed))
    return success_response(
        data={"graded": graded, "failed": failed},
        message=f"Graded {len(graded)} of {len(body.submissions)} submissions",
    )


@router.put("/{submission_id}/grade")
async def grade_submission(
    submission_id: str,
    body: SubmissionGrade,
    user: dict = Depends(require_role(["teacher", "admin"])),
):
    db = get_supabase()
    graded = apply_grade(db, user, submission_id, body.grade, body.feedback)
    return success_response(data=graded, message="Submission graded successfully")
