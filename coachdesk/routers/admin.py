"""
Admin router — Tenant management (Super Admin) + User management & dashboard (Center Admin).

Center Admin can:
- Create students, teachers and other admins
- Activate/deactivate users
- See the center-wide dashboard
"""

import logging
import secrets
import string
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException

from coachdesk.core.config import settings
from coachdesk.core.database import fetch_one, get_supabase
from coachdesk.core.email import send_welcome_email
from coachdesk.core.middleware import get_tenant_id, get_user_id
from coachdesk.core.security import get_password_hash, require_role
from coachdesk.core.subscription import check_student_limit, check_subscription
from coachdesk.routers.batches import add_students
from coachdesk.routers.notices import visible_notices
from coachdesk.schemas.academic import TenantCreate, TenantUpdate
from coachdesk.schemas.auth import UserCreate, UserStatusUpdate, UserUpdate
from coachdesk.utils.dates import now_iso, today_iso, utcnow
from coachdesk.utils.queries import get_or_404
from coachdesk.utils.response import first_or_none, success_response
from coachdesk.utils.stats import attendance_day_stats, fee_totals, fee_view

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["Admin"])

CENTER_ROLES = ("admin", "teacher", "student")
USER_COLUMNS = (
    "id, email, name, phone, role, is_active, requires_password_reset, roll_number, "
    "parent_name, parent_phone, address, subject, qualification, created_at"
)


def _temp_password(length: int = 8) -> str:
    alphabet = string.ascii_letters + string.digits
    return "".join(secrets.choice(alphabet) for _ in range(length))


def _count(result) -> int:
    return result.count if result.count is not None else len(result.data or [])


# ═══════════════════════════════════════════════════════════
# TENANT MANAGEMENT (Super Admin only)
# ═══════════════════════════════════════════════════════════

@router.post("/tenants")
async def create_tenant(
    body: TenantCreate,
    user: dict = Depends(require_role(["super_admin"])),
):
    db = get_supabase()
    code = body.code.strip().upper()
    if fetch_one(db.table("tenants").select("id").eq("code", code)):
        raise HTTPException(status_code=400, detail=f"Center code '{code}' already exists")

    data = {
        **body.model_dump(),
        "code": code,
        "student_limit": body.student_limit or settings.DEFAULT_STUDENT_LIMIT,
        "is_active": True,
    }
    if body.subscription_plan == "trial":
        data["trial_ends_at"] = (utcnow() + timedelta(days=settings.TRIAL_DAYS)).isoformat()
    result = db.table("tenants").insert(data).execute()
    logger.info("Tenant %s created by super admin", code)
    return success_response(data=first_or_none(result.data), message="Tenant created")


@router.get("/tenants")
async def list_tenants(user: dict = Depends(require_role(["super_admin"]))):
    db = get_supabase()
    result = db.table("tenants").select("*").order("created_at", desc=True).execute()
    return success_response(data=result.data)


@router.patch("/tenants/{tenant_id}")
async def update_tenant(
    tenant_id: str,
    body: TenantUpdate,
    user: dict = Depends(require_role(["super_admin"])),
):
    db = get_supabase()
    update_data = {k: v for k, v in body.model_dump().items() if v is not None}
    if not update_data:
        raise HTTPException(status_code=400, detail="No valid fields to update")
    result = db.table("tenants").update(update_data).eq("id", tenant_id).execute()
    if not result.data:
        raise HTTPException(status_code=404, detail="Tenant not found")
    logger.info("Tenant %s updated (%s)", tenant_id, ", ".join(sorted(update_data)))
    return success_response(data=first_or_none(result.data), message="Tenant updated")


# ═══════════════════════════════════════════════════════════
# CENTER USER MANAGEMENT (Admin creates all users)
# ═══════════════════════════════════════════════════════════

@router.post("/users")
async def create_user(
    body: UserCreate,
    background_tasks: BackgroundTasks,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    email = body.email.strip().lower()

    if not email or not body.name.strip():
        raise HTTPException(status_code=400, detail="email and name are required")
    if body.role not in CENTER_ROLES:
        raise HTTPException(status_code=400, detail=f"Invalid role. Must be one of: {', '.join(CENTER_ROLES)}")

    check_subscription(tenant_id)
    if body.role == "student":
        check_student_limit(tenant_id)

    if fetch_one(db.table("users").select("id").eq("email", email)):
        raise HTTPException(status_code=400, detail=f"User with email '{email}' already exists")

    password = body.password or _temp_password()
    firebase_uid = f"mock-{email}"

    # In Firebase mode, create the Firebase user too
    if settings.AUTH_MODE == "firebase":
        from firebase_admin import auth as fb_auth

        try:
            fb_user = fb_auth.create_user(email=email, password=password, display_name=body.name)
        except Exception as e:
            logger.warning("Firebase user creation failed for %s: %s", email, e)
            raise HTTPException(status_code=400, detail=f"Firebase user creation failed: {str(e)}")
        firebase_uid = fb_user.uid

    user_data = {
        **body.model_dump(exclude={"password", "batch_id", "email"}),
        "tenant_id": tenant_id,
        "email": email,
        "firebase_uid": firebase_uid,
        "is_active": True,
        "password_hash": get_password_hash(password),
        "requires_password_reset": body.password is None,
    }
    result = db.table("users").insert(user_data).execute()
    created_user = first_or_none(result.data)
    created_user.pop("password_hash", None)

    # Auto-assign student to a batch if specified
    enrolled_batch = None
    if body.role == "student" and body.batch_id and body.batch_id.strip():
        try:
            batch = get_or_404(db, "batches", tenant_id, body.batch_id.strip(), "Batch", "id, capacity")
            add_students(db, tenant_id, batch, [created_user["id"]])
            enrolled_batch = batch["id"]
        except HTTPException as e:
            logger.warning("Failed to auto-assign student %s to batch %s: %s", created_user["id"], body.batch_id, e.detail)

    tenant = fetch_one(db.table("tenants").select("name").eq("id", tenant_id))
    center_name = tenant.get("name") if tenant else "Your Coaching Center"
    background_tasks.add_task(send_welcome_email, email, body.name, center_name, password, body.role)

    logger.info("User %s (%s) created by %s", created_user["id"], body.role, get_user_id(user))
    return success_response(
        data={
            "user": created_user,
            "temp_password": password,
            "center_name": center_name,
            "batch_id": enrolled_batch,
            "mock_token": f"mock-{email}" if settings.AUTH_MODE == "mock" else None,
        },
        message=f"User '{body.name}' ({body.role}) created successfully",
    )


@router.get("/users")
async def list_users(
    role: Optional[str] = None,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    query = db.table("users").select(USER_COLUMNS).eq("tenant_id", get_tenant_id(user))
    if role:
        query = query.eq("role", role)
    result = query.order("role").order("name").execute()
    return success_response(data=result.data)


@router.get("/students")
async def list_students(user: dict = Depends(require_role(["admin"]))):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    students = (
        db.table("users")
        .select(USER_COLUMNS)
        .eq("tenant_id", tenant_id)
        .eq("role", "student")
        .order("name")
        .execute()
    ).data or []

    memberships = db.table("batch_students").select("batch_id, student_id").eq("tenant_id", tenant_id).execute()
    by_student: dict = {}
    for m in memberships.data or []:
        by_student.setdefault(m["student_id"], []).append(m["batch_id"])
    for s in students:
        s["batch_ids"] = by_student.get(s["id"], [])

    return success_response(data=students)


@router.get("/teachers")
async def list_teachers(user: dict = Depends(require_role(["admin"]))):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    teachers = (
        db.table("users")
        .select(USER_COLUMNS)
        .eq("tenant_id", tenant_id)
        .eq("role", "teacher")
        .order("name")
        .execute()
    ).data or []

    batches = db.table("batches").select("id, teacher_id").eq("tenant_id", tenant_id).execute()
    by_teacher: dict = {}
    for b in batches.data or []:
        by_teacher.setdefault(b.get("teacher_id"), []).append(b["id"])
    for t in teachers:
        t["batch_ids"] = by_teacher.get(t["id"], [])

    return success_response(data=teachers)


@router.patch("/users/{user_id}")
async def update_user(
    user_id: str,
    body: UserUpdate,
    user: dict = Depends(require_role(["admin"])),
):
    """Update user details. Status changes go through /status."""
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    get_or_404(db, "users", tenant_id, user_id, "User", "id")

    update_data = {k: v for k, v in body.model_dump().items() if v is not None}
    if not update_data:
        raise HTTPException(status_code=400, detail="No valid fields to update")
    if "role" in update_data and update_data["role"] not in CENTER_ROLES:
        raise HTTPException(status_code=400, detail=f"Invalid role. Must be one of: {', '.join(CENTER_ROLES)}")
    update_data["updated_at"] = now_iso()

    result = (
        db.table("users")
        .update(update_data)
        .eq("id", user_id)
        .eq("tenant_id", tenant_id)
        .execute()
    )
    updated = first_or_none(result.data)
    if updated:
        updated.pop("password_hash", None)
    return success_response(data=updated, message="User updated")


@router.patch("/users/{user_id}/status")
async def set_user_status(
    user_id: str,
    body: UserStatusUpdate,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    target = get_or_404(db, "users", tenant_id, user_id, "User", "id, role, is_active")
    if user_id == get_user_id(user) and not body.is_active:
        raise HTTPException(status_code=400, detail="You cannot deactivate your own account")
    if body.is_active and not target.get("is_active") and target.get("role") == "student":
        check_student_limit(tenant_id)

    db.table("users").update({"is_active": body.is_active, "updated_at": now_iso()}) \
        .eq("id", user_id).eq("tenant_id", tenant_id).execute()
    logger.info("User %s %s by %s", user_id, "activated" if body.is_active else "deactivated", get_user_id(user))
    return success_response(
        data={"id": user_id, "is_active": body.is_active},
        message="User activated" if body.is_active else "User deactivated",
    )


@router.delete("/users/{user_id}")
async def deactivate_user(
    user_id: str,
    user: dict = Depends(require_role(["admin"])),
):
    """Deactivate a user (soft delete — set is_active=false)."""
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    get_or_404(db, "users", tenant_id, user_id, "User", "id")
    if user_id == get_user_id(user):
        raise HTTPException(status_code=400, detail="You cannot deactivate your own account")

    db.table("users").update({"is_active": False, "updated_at": now_iso()}) \
        .eq("id", user_id).eq("tenant_id", tenant_id).execute()
    logger.info("User %s deactivated by %s", user_id, get_user_id(user))
    return success_response(data={"id": user_id, "is_active": False}, message="User deactivated")


# ═══════════════════════════════════════════════════════════
# DASHBOARD
# ═══════════════════════════════════════════════════════════

@router.get("/dashboard")
async def get_dashboard(user: dict = Depends(require_role(["admin"]))):
    db = get_supabase()
    tenant_id = get_tenant_id(user)

    def role_count(role: str) -> int:
        return _count(
            db.table("users").select("id", count="exact")
            .eq("tenant_id", tenant_id).eq("role", role).eq("is_active", True).execute()
        )

    total_students = role_count("student")
    courses = db.table("courses").select("id", count="exact").eq("tenant_id", tenant_id).execute()
    batches = (
        db.table("batches").select("id", count="exact")
        .eq("tenant_id", tenant_id).eq("status", "active").execute()
    )

    now = utcnow()
    fees = [fee_view(f, now) for f in (db.table("fees").select("*").eq("tenant_id", tenant_id).execute()).data or []]
    today_records = (
        db.table("attendance").select("status").eq("tenant_id", tenant_id).eq("date", today_iso()).execute()
    ).data or []

    return success_response(data={
        "total_students": total_students,
        "total_teachers": role_count("teacher"),
        "total_courses": _count(courses),
        "active_batches": _count(batches),
        "fees": fee_totals(fees),
        "attendance_today": attendance_day_stats(today_records, total_students),
        "recent_notices": visible_notices(db, user, limit=5),
    })
