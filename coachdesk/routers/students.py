"""
Student router — own profile, batches and the student home dashboard.
All queries use user_id (Supabase UUID) not Firebase UID.
"""

from fastapi import APIRouter, Depends, HTTPException

from coachdesk.core.config import settings
from coachdesk.core.database import get_supabase
from coachdesk.core.middleware import get_tenant_id, get_user_id
from coachdesk.core.security import require_role
from coachdesk.routers.notices import visible_notices
from coachdesk.schemas.auth import ProfileUpdate
from coachdesk.utils.dates import is_past, now_iso, utcnow
from coachdesk.utils.queries import get_or_404, student_batch_ids
from coachdesk.utils.response import first_or_none, success_response
from coachdesk.utils.stats import attendance_summary, fee_totals, fee_view, latest_by_assignment, with_overdue

router = APIRouter(prefix="/api/student", tags=["Student"])

PROFILE_COLUMNS = "id, email, name, phone, role, roll_number, parent_name, parent_phone, address, created_at"
STUDENT_EDITABLE = ("name", "phone", "address", "parent_name", "parent_phone")


def _my_batches(db, tenant_id: str, user_id: str) -> list[dict]:
    batch_ids = student_batch_ids(db, tenant_id, user_id)
    if not batch_ids:
        return []
    return (
        db.table("batches")
        .select("*, courses(name), users!batches_teacher_id_fkey(name)")
        .eq("tenant_id", tenant_id)
        .in_("id", batch_ids)
        .order("name")
        .execute()
    ).data or []


@router.get("/profile")
async def get_profile(user: dict = Depends(require_role(["student"]))):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    profile = get_or_404(db, "users", tenant_id, get_user_id(user), "Profile", PROFILE_COLUMNS)
    return success_response(data=profile)


@router.patch("/profile")
async def update_profile(
    body: ProfileUpdate,
    user: dict = Depends(require_role(["student"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    update_data = {k: v for k, v in body.model_dump().items() if v is not None and k in STUDENT_EDITABLE}
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


@router.get("/batch")
async def get_my_batches(user: dict = Depends(require_role(["student"]))):
    db = get_supabase()
    return success_response(data=_my_batches(db, get_tenant_id(user), get_user_id(user)))


@router.get("/dashboard")
async def get_dashboard(user: dict = Depends(require_role(["student"]))):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    user_id = get_user_id(user)
    now = utcnow()

    batches = _my_batches(db, tenant_id, user_id)
    batch_ids = [b["id"] for b in batches]

    records = (
        db.table("attendance")
        .select("student_id, status")
        .eq("tenant_id", tenant_id)
        .eq("student_id", user_id)
        .execute()
    ).data or []
    summary = attendance_summary(records, settings.ATTENDANCE_THRESHOLD)

    fees = [
        fee_view(f, now) for f in (
            db.table("fees").select("*").eq("tenant_id", tenant_id).eq("student_id", user_id).execute()
        ).data or []
    ]

    upcoming = []
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
        submitted = latest_by_assignment(
            (db.table("assignment_submissions")
             .select("assignment_id, submitted_at")
             .eq("tenant_id", tenant_id)
             .eq("student_id", user_id)
             .execute()).data or []
        )
        upcoming = [
            with_overdue(a, now) for a in assignments
            if a["id"] not in submitted and not is_past(a.get("due_date"), now)
        ][:5]

    return success_response(data={
        "batches": batches,
        "attendance": summary[0] if summary else None,
        "fees": {
            **fee_totals(fees),
            "overdue": [f for f in fees if f["status"] == "overdue"],
        },
        "upcoming_assignments": upcoming,
        "recent_notices": visible_notices(db, user, limit=5),
    })
