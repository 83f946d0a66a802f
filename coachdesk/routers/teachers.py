"""
Teacher router — own profile and the teacher home dashboard.
"""

from fastapi import APIRouter, Depends, HTTPException

from coachdesk.core.database import get_supabase
from coachdesk.core.middleware import get_tenant_id, get_user_id
from coachdesk.core.security import require_role
from coachdesk.schemas.auth import ProfileUpdate
from coachdesk.utils.dates import now_iso
from coachdesk.utils.queries import get_or_404
from coachdesk.utils.response import first_or_none, success_response

router = APIRouter(prefix="/api/teacher", tags=["Teacher"])

PROFILE_COLUMNS = "id, email, name, phone, role, subject, qualification, address, created_at"
TEACHER_EDITABLE = ("name", "phone", "address", "subject", "qualification")


@router.get("/profile")
async def get_profile(user: dict = Depends(require_role(["teacher"]))):
    db = get_supabase()
    profile = get_or_404(db, "users", get_tenant_id(user), get_user_id(user), "Profile", PROFILE_COLUMNS)
    return success_response(data=profile)


@router.patch("/profile")
async def update_profile(
    body: ProfileUpdate,
    user: dict = Depends(require_role(["teacher"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    update_data = {k: v for k, v in body.model_dump().items() if v is not None and k in TEACHER_EDITABLE}
    if not update_data:
        raise HTTPException(status_code=400, detail="No valid fields to update")
    update_data["updated_at"] = now_iso()

    result = (
        db.table("users")
        .update(update_data)
        .eq("id", get_user_id(user))
        .eq("tenant_id", tenant_id)
        .execute()
    )
    return success_response(data=first_or_none(result.data), message="Profile updated successfully")


@router.get("/dashboard")
async def get_dashboard(user: dict = Depends(require_role(["teacher"]))):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    user_id = get_user_id(user)

    batches = (
        db.table("batches")
        .select("*, courses(name)")
        .eq("tenant_id", tenant_id)
        .eq("teacher_id", user_id)
        .order("name")
        .execute()
    ).data or []

    students = set()
    if batches:
        members = (
            db.table("batch_students")
            .select("batch_id, student_id")
            .eq("tenant_id", tenant_id)
            .in_("batch_id", [b["id"] for b in batches])
            .execute()
        ).data or []
        counts: dict = {}
        for m in members:
            counts[m["batch_id"]] = counts.get(m["batch_id"], 0) + 1
            students.add(m["student_id"])
        for b in batches:
            b["student_count"] = counts.get(b["id"], 0)

    recordings = (
        db.table("recordings").select("id", count="exact").eq("tenant_id", tenant_id).eq("teacher_id", user_id).execute()
    )
    assignments = (
        db.table("assignments").select("id").eq("tenant_id", tenant_id).eq("teacher_id", user_id).execute()
    ).data or []

    pending_grading = 0
    if assignments:
        pending = (
            db.table("assignment_submissions")
            .select("id", count="exact")
            .eq("tenant_id", tenant_id)
            .in_("assignment_id", [a["id"] for a in assignments])
            .neq("status", "graded")
            .execute()
        )
        pending_grading = pending.count if pending.count is not None else len(pending.data or [])

    return success_response(data={
        "batches": batches,
        "total_batches": len(batches),
        "total_students": len(students),
        "total_recordings": recordings.count if recordings.count is not None else len(recordings.data or []),
        "total_assignments": len(assignments),
        "pending_grading": pending_grading,
    })
