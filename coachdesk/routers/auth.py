"""
Auth router — Login, Register Coaching Center, Profile, Passwords.

Rules:
- Only users created by a center admin (or the registering admin) can login
- Firebase JWT verified, then profile fetched from Supabase
- Unknown emails are rejected
- Mock mode: uses mock-{email} tokens for testing
"""

import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, status

from coachdesk.core.config import settings
from coachdesk.core.database import fetch_one, get_supabase
from coachdesk.core.security import check_active, get_current_user, get_password_hash, verify_password
from coachdesk.schemas.auth import CenterRegister, ChangePassword, ResetPassword, UserLogin
from coachdesk.utils.dates import now_iso, utcnow
from coachdesk.utils.response import first_or_none, success_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Authentication"])

MIN_PASSWORD_LENGTH = 6


def _check_password_length(password: str):
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise HTTPException(
            status_code=400,
            detail=f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
        )


def _create_firebase_user(email: str, password: str, name: str) -> str:
    from firebase_admin import auth as fb_auth

    try:
        fb_user = fb_auth.create_user(email=email, password=password, display_name=name)
    except Exception as e:
        logger.warning("Firebase user creation failed for %s: %s", email, e)
        raise HTTPException(status_code=400, detail=f"Firebase user creation failed: {str(e)}")
    return fb_user.uid


@router.post("/login")
async def login(body: UserLogin):
    """
    Login endpoint.

    Mock mode: look the user up by email, verify the bcrypt hash, return a mock token.
    Firebase mode: client uses the Firebase SDK, then calls /api/auth/me with the JWT.
    """
    if settings.AUTH_MODE != "mock":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Use Firebase SDK for login, then call /api/auth/me with JWT.",
        )

    email = body.email.strip().lower()
    db = get_supabase()
    user_data = fetch_one(
        db.table("users")
        .select("*, tenants(name, is_active, subscription_plan)")
        .eq("email", email)
    )

    hashed_pw = user_data.get("password_hash") if user_data else None
    if not hashed_pw or not verify_password(body.password, hashed_pw):
        logger.info("Failed login for %s", email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password.",
        )
    check_active(user_data)

    tenant_info = user_data.get("tenants") or {}
    user_response = {
        "uid": user_data.get("firebase_uid") or user_data["id"],
        "email": user_data["email"],
        "name": user_data["name"],
        "role": user_data["role"],
        "tenant_id": user_data.get("tenant_id"),
        "user_id": user_data["id"],
        "tenant_name": tenant_info.get("name"),
        "requires_password_reset": user_data.get("requires_password_reset", False),
    }
    logger.info("User %s logged in (%s)", user_data["id"], user_data["role"])
    return success_response(
        data={"token": f"mock-{email}", "user": user_response},
        message="Login successful",
    )


@router.post("/register-center")
async def register_center(body: CenterRegister):
    """
    Register a new coaching center (tenant) and its first admin user.

    Creates:
    1. A new tenant on a trial plan
    2. An admin user for that tenant

    In Firebase mode, also creates the Firebase user.
    """
    _check_password_length(body.admin_password)
    code = body.center_code.strip().upper()
    email = body.admin_email.strip().lower()
    if not code or not body.center_name.strip():
        raise HTTPException(status_code=400, detail="center_name and center_code are required")

    db = get_supabase()
    if fetch_one(db.table("tenants").select("id").eq("code", code)):
        raise HTTPException(status_code=400, detail=f"Center code '{code}' already exists")
    if fetch_one(db.table("users").select("id").eq("email", email)):
        raise HTTPException(status_code=400, detail="An account with this email already exists")

    tenant_result = db.table("tenants").insert({
        "name": body.center_name.strip(),
        "code": code,
        "subscription_plan": "trial",
        "trial_ends_at": (utcnow() + timedelta(days=settings.TRIAL_DAYS)).isoformat(),
        "student_limit": settings.DEFAULT_STUDENT_LIMIT,
        "is_active": True,
    }).execute()
    tenant = first_or_none(tenant_result.data)

    firebase_uid = f"mock-admin-{code.lower()}"
    if settings.AUTH_MODE == "firebase":
        try:
            firebase_uid = _create_firebase_user(email, body.admin_password, body.admin_name)
        except HTTPException:
            # Rollback tenant
            db.table("tenants").delete().eq("id", tenant["id"]).execute()
            raise

    admin_result = db.table("users").insert({
        "tenant_id": tenant["id"],
        "email": email,
        "name": body.admin_name,
        "phone": body.phone,
        "role": "admin",
        "firebase_uid": firebase_uid,
        "is_active": True,
        "password_hash": get_password_hash(body.admin_password),
        "requires_password_reset": False,
    }).execute()
    admin = first_or_none(admin_result.data)
    admin.pop("password_hash", None)

    logger.info("Center %s registered (tenant %s)", code, tenant["id"])
    return success_response(
        data={
            "tenant": tenant,
            "admin_user": admin,
            "token": f"mock-{email}" if settings.AUTH_MODE == "mock" else None,
        },
        message=f"Center '{tenant['name']}' registered with {settings.TRIAL_DAYS}-day free trial!",
    )


@router.get("/me")
async def get_me(user: dict = Depends(get_current_user)):
    """Return current authenticated user profile."""
    profile = dict(user)
    if user.get("tenant_id"):
        db = get_supabase()
        tenant = fetch_one(
            db.table("tenants")
            .select("name, subscription_plan, trial_ends_at")
            .eq("id", user["tenant_id"])
        )
        if tenant:
            profile["tenant_name"] = tenant.get("name")
            profile["subscription_plan"] = tenant.get("subscription_plan")
            profile["trial_ends_at"] = tenant.get("trial_ends_at")
    return success_response(data=profile)


@router.post("/change-password")
async def change_password(
    body: ChangePassword,
    user: dict = Depends(get_current_user),
):
    _check_password_length(body.new_password)
    db = get_supabase()
    user_data = fetch_one(db.table("users").select("id, password_hash").eq("id", user["user_id"]))
    if not user_data:
        raise HTTPException(status_code=404, detail="User not found")

    hashed_pw = user_data.get("password_hash")
    if not hashed_pw or not verify_password(body.old_password, hashed_pw):
        raise HTTPException(status_code=401, detail="Current password is incorrect")

    db.table("users").update({
        "password_hash": get_password_hash(body.new_password),
        "requires_password_reset": False,
        "updated_at": now_iso(),
    }).eq("id", user_data["id"]).execute()
    logger.info("Password changed for user %s", user_data["id"])
    return success_response(message="Password changed successfully")


@router.post("/reset-password")
async def reset_password(body: ResetPassword):
    """
    Allows a user with a temporary password to set a new password.
    Only users flagged `requires_password_reset` can use it.
    """
    _check_password_length(body.new_password)
    email = body.email.strip().lower()

    db = get_supabase()
    user_data = fetch_one(
        db.table("users")
        .select("id, password_hash, requires_password_reset")
        .eq("email", email)
    )
    if not user_data:
        raise HTTPException(status_code=404, detail="User not found")
    if not user_data.get("requires_password_reset"):
        raise HTTPException(status_code=400, detail="Password reset not required for this user")

    hashed_pw = user_data.get("password_hash")
    if hashed_pw and not verify_password(body.old_password, hashed_pw):
        raise HTTPException(status_code=401, detail="Invalid old/temporary password")

    db.table("users").update({
        "password_hash": get_password_hash(body.new_password),
        "requires_password_reset": False,
        "updated_at": now_iso(),
    }).eq("id", user_data["id"]).execute()

    logger.info("Temporary password replaced for user %s", user_data["id"])
    return success_response(
        data={"token": f"mock-{email}" if settings.AUTH_MODE == "mock" else None},
        message="Password updated successfully. You are now logged in.",
    )
