"""
Notices router — announcements for the whole center, a role, or specific batches.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from coachdesk.core.database import get_supabase
from coachdesk.core.middleware import get_tenant_id, get_user_id
from coachdesk.core.security import require_role
from coachdesk.schemas.notices import NoticeCreate, NoticeUpdate
from coachdesk.utils.dates import is_past, now_iso, parse_datetime, utcnow
from coachdesk.utils.queries import get_or_404, student_batch_ids
from coachdesk.utils.response import first_or_none, success_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notices", tags=["Notices"])

TEACHER_AUDIENCES = ("students", "batch")


def _validate_target(db, tenant_id: str, user: dict, audience: str, batch_ids: list[str]):
    if user["role"] == "teacher" and audience not in TEACHER_AUDIENCES:
        raise HTTPException(status_code=403, detail="Teachers can only post notices for students or batches")
    if audience == "batch":
        if not batch_ids:
            raise HTTPException(status_code=400, detail="target_batch_ids is required for batch notices")
        for batch_id in batch_ids:
            get_or_404(db, "batches", tenant_id, batch_id, "Batch", "id")


def _check_author(notice: dict, user: dict):
    if user["role"] != "admin" and notice.get("posted_by") != get_user_id(user):
        raise HTTPException(status_code=403, detail="You can only manage your own notices")


def _is_visible(notice: dict, user: dict, batch_ids: set, now) -> bool:
    user_id = get_user_id(user)
    if notice.get("posted_by") == user_id:
        return True
    if not notice.get("is_active", True):
        return False
    if notice.get("is_scheduled") and not is_past(notice.get("scheduled_at"), now):
        return False
    if user["role"] == "admin":
        return True

    audience = notice.get("target_audience", "all")
    if user["role"] == "teacher":
        return audience in ("all", "teachers")
    if audience in ("all", "students"):
        return True
    return audience == "batch" and bool(batch_ids.intersection(notice.get("target_batch_ids") or []))


def _sort_key(notice: dict):
    created = parse_datetime(notice.get("created_at"))
    return (not notice.get("is_important"), -(created.timestamp() if created else 0))


def visible_notices(db, user: dict, limit: int | None = None) -> list[dict]:
    """Notices the user may read, important first then newest first."""
    tenant_id = get_tenant_id(user)
    rows = (
        db.table("notices")
        .select("*, users!notices_posted_by_fkey(name, role)")
        .eq("tenant_id", tenant_id)
        .execute()
    ).data or []

    batch_ids = set()
    if user["role"] == "student":
        batch_ids = set(student_batch_ids(db, tenant_id, get_user_id(user)))

    now = utcnow()
    notices = sorted((n for n in rows if _is_visible(n, user, batch_ids, now)), key=_sort_key)
    return notices[:limit] if limit else notices


@router.post("")
async def create_notice(
    body: NoticeCreate,
    user: dict = Depends(require_role(["admin", "teacher"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    _validate_target(db, tenant_id, user, body.target_audience, body.target_batch_ids)
    if body.is_scheduled and parse_datetime(body.scheduled_at) is None:
        raise HTTPException(status_code=400, detail="scheduled_at is required for scheduled notices")

    data = {
        **body.model_dump(),
        "tenant_id": tenant_id,
        "posted_by": get_user_id(user),
    }
    if body.target_audience != "batch":
        data["target_batch_ids"] = []
    result = db.table("notices").insert(data).execute()
    created = first_or_none(result.data)
    logger.info("Notice %s posted by %s for %s", created and created.get("id"), get_user_id(user), body.target_audience)
    return success_response(data=created, message="Notice created successfully")


@router.get("")
async def list_notices(user: dict = Depends(require_role(["admin", "teacher", "student"]))):
    db = get_supabase()
    return success_response(data=visible_notices(db, user))


@router.get("/{notice_id}")
async def get_notice(
    notice_id: str,
    user: dict = Depends(require_role(["admin", "teacher", "student"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    notice = get_or_404(db, "notices", tenant_id, notice_id, "Notice", "*, users!notices_posted_by_fkey(name, role)")

    batch_ids = set()
    if user["role"] == "student":
        batch_ids = set(student_batch_ids(db, tenant_id, get_user_id(user)))
    if not _is_visible(notice, user, batch_ids, utcnow()):
        raise HTTPException(status_code=404, detail="Notice not found")
    return success_response(data=notice)


@router.put("/{notice_id}")
async def update_notice(
    notice_id: str,
    body: NoticeUpdate,
    user: dict = Depends(require_role(["admin", "teacher"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    notice = get_or_404(db, "notices", tenant_id, notice_id, "Notice")
    _check_author(notice, user)

    update_data = {k: v for k, v in body.model_dump().items() if v is not None}
    if not update_data:
        raise HTTPException(status_code=400, detail="No valid fields to update")

    audience = update_data.get("target_audience", notice.get("target_audience", "all"))
    batch_ids = update_data.get("target_batch_ids", notice.get("target_batch_ids") or [])
    _validate_target(db, tenant_id, user, audience, batch_ids)
    update_data["updated_at"] = now_iso()

    result = (
        db.table("notices")
        .update(update_data)
        .eq("id", notice_id)
        .eq("tenant_id", tenant_id)
        .execute()
    )
    return success_response(data=first_or_none(result.data), message="Notice updated successfully")


@router.delete("/{notice_id}")
async def delete_notice(
    notice_id: str,
    user: dict = Depends(require_role(["admin", "teacher"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    notice = get_or_404(db, "notices", tenant_id, notice_id, "Notice", "id, posted_by")
    _check_author(notice, user)

    db.table("notices").delete().eq("id", notice_id).eq("tenant_id", tenant_id).execute()
    logger.info("Notice %s deleted by %s", notice_id, get_user_id(user))
    return success_response(message="Notice deleted successfully")
