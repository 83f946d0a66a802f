"""
Security module — Firebase JWT verification + Mock auth + Role guard + is_active enforcement.

Auth Flow:
1. User logs in (Firebase SDK, or /api/auth/login in mock mode) → gets a token
2. Frontend sends the token as a Bearer header
3. Backend verifies it (Firebase Admin SDK, or mock-{email} lookup)
4. Backend fetches the user profile from Supabase
5. Backend checks: is user.is_active? is the coaching center (tenant) active?
6. Backend injects: user_id, role, tenant_id

Only users registered by a center admin can log in.
"""

import logging
import os

import bcrypt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from coachdesk.core.config import settings
from coachdesk.core.database import get_supabase

logger = logging.getLogger(__name__)

security_scheme = HTTPBearer()


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(
            plain_password.encode("utf-8"),
            hashed_password.encode("utf-8"),
        )
    except ValueError:
        # Malformed hash in the DB
        return False


def get_password_hash(password: str) -> str:
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
    return hashed.decode("utf-8")


# ---------------------------------------------------------------------------
# Firebase initialization (lazy)
# ---------------------------------------------------------------------------
_firebase_app = None


def _init_firebase():
    global _firebase_app
    if _firebase_app is not None:
        return
    import firebase_admin
    from firebase_admin import credentials as fb_credentials

    cred_path = settings.FIREBASE_CREDENTIALS_PATH
    if os.path.exists(cred_path):
        cred = fb_credentials.Certificate(cred_path)
        _firebase_app = firebase_admin.initialize_app(cred)
    else:
        # Try default credentials
        _firebase_app = firebase_admin.initialize_app()
    logger.info("Firebase Admin initialized")


# ---------------------------------------------------------------------------
# Mock users (for local development without Firebase)
# ---------------------------------------------------------------------------
MOCK_USERS = {
    "super-admin-token": {
        "uid": "sa-firebase-uid",
        "email": "superadmin@coachdesk.in",
        "role": "super_admin",
        "tenant_id": None,
        "name": "Super Admin",
        "user_id": "a0000000-0000-0000-0000-000000000001",
    },
}


def user_context(user_data: dict, uid: str | None = None) -> dict:
    """Shape a `users` row into the dict every router receives."""
    return {
        "uid": uid or user_data.get("firebase_uid") or user_data["id"],
        "email": user_data.get("email", ""),
        "role": user_data["role"],
        "tenant_id": user_data.get("tenant_id"),
        "name": user_data.get("name", ""),
        "user_id": user_data["id"],
    }


def check_active(user_data: dict):
    if not user_data.get("is_active", True):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Your account has been deactivated. Contact your center admin.",
        )
    tenant_info = user_data.get("tenants")
    if user_data["role"] != "super_admin" and tenant_info:
        if not tenant_info.get("is_active", True):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Your coaching center's account has been deactivated.",
            )


# ---------------------------------------------------------------------------
# Token verification — the core auth function
# ---------------------------------------------------------------------------
async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security_scheme),
) -> dict:
    """
    Validate the Bearer token and return user dict.
    Enforces: is_active user, is_active tenant.
    """
    token = credentials.credentials

    if settings.AUTH_MODE == "mock":
        return await _mock_auth(token)

    return await _firebase_auth(token)


async def _mock_auth(token: str) -> dict:
    """Mock mode: look up token in MOCK_USERS or resolve mock-{email} against the DB."""
    user = MOCK_USERS.get(token)
    if user:
        return user

    if token.startswith("mock-"):
        email = token[5:]
        db = get_supabase()
        result = (
            db.table("users")
            .select("*, tenants(is_active, subscription_plan)")
            .eq("email", email)
            .maybe_single()
            .execute()
        )
        if result and result.data:
            check_active(result.data)
            return user_context(result.data)

    logger.info("Rejected mock token")
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid token. Only registered users can login.",
    )


async def _firebase_auth(token: str) -> dict:
    """Firebase mode: verify JWT, fetch profile from Supabase, enforce is_active."""
    _init_firebase()
    from firebase_admin import auth as fb_auth

    try:
        decoded = fb_auth.verify_id_token(token)
    except Exception as e:
        logger.info("Firebase token rejected: %s", e)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired Firebase token",
        )

    uid = decoded["uid"]

    # Profile MUST exist (admin-created users only)
    db = get_supabase()
    result = (
        db.table("users")
        .select("*, tenants(is_active, subscription_plan)")
        .eq("firebase_uid", uid)
        .maybe_single()
        .execute()
    )

    if not result or not result.data:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You are not registered in any coaching center. Contact your center admin.",
        )

    check_active(result.data)
    user = user_context(result.data, uid=uid)
    if not user["email"]:
        user["email"] = decoded.get("email", "")
    return user


# ---------------------------------------------------------------------------
# Role guard dependency
# ---------------------------------------------------------------------------
def require_role(allowed_roles: list[str]):
    """
    Usage:
        @router.get("/admin-only")
        async def endpoint(user=Depends(require_role(["admin", "super_admin"]))):
    """

    async def role_checker(
        user: dict = Depends(get_current_user),
    ) -> dict:
        if user["role"] not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Role '{user['role']}' not authorized. Required: {allowed_roles}",
            )
        return user

    return role_checker
