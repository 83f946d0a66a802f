"""
Subscription enforcement guards.

Usage:
    from coachdesk.core.subscription import check_subscription, check_student_limit

    @router.post("/users")
    async def create_user(...):
        check_subscription(tenant_id)
        check_student_limit(tenant_id, adding=1)
        ...
"""

import logging
from datetime import datetime, timezone

from fastapi import HTTPException, status

from coachdesk.core.config import settings
from coachdesk.core.database import get_supabase
from coachdesk.utils.dates import parse_datetime

logger = logging.getLogger(__name__)


def _get_tenant(tenant_id: str) -> dict:
    db = get_supabase()
    tenant = (
        db.table("tenants")
        .select("subscription_plan, trial_ends_at, is_active, student_limit")
        .eq("id", tenant_id)
        .execute()
    )
    if not tenant.data:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Coaching center not found",
        )
    return tenant.data[0]


def check_subscription(tenant_id: str):
    """
    Verify tenant has an active subscription or is within trial period.
    Raises 403 if trial expired and no paid plan.
    """
    if not tenant_id:
        return  # super_admin without tenant

    t = _get_tenant(tenant_id)
    if not t.get("is_active"):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Your coaching center account has been deactivated.",
        )

    if t.get("subscription_plan", "trial") == "trial":
        trial_ends = parse_datetime(t.get("trial_ends_at"))
        if trial_ends and datetime.now(timezone.utc) > trial_ends:
            logger.info("Trial expired for tenant %s", tenant_id)
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Your {settings.TRIAL_DAYS}-day free trial has expired. Please upgrade your plan to continue.",
            )


def check_student_limit(tenant_id: str, adding: int = 1):
    """
    Check the tenant can enroll `adding` more active students.
    Raises 403 if the limit would be exceeded.
    """
    if not tenant_id:
        return

    t = _get_tenant(tenant_id)
    limit = t.get("student_limit") or settings.DEFAULT_STUDENT_LIMIT

    db = get_supabase()
    count_result = (
        db.table("users")
        .select("id", count="exact")
        .eq("tenant_id", tenant_id)
        .eq("role", "student")
        .eq("is_active", True)
        .execute()
    )
    current_count = count_result.count if count_result.count is not None else len(count_result.data or [])

    if current_count + adding > limit:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Student limit reached ({current_count}/{limit}). Upgrade your plan to add more students.",
        )
