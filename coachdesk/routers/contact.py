"""
Contact router — public enquiries to a center, messages from students and teachers
to the admin, and the admin inbox.
"""

import logging
import re
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query

from coachdesk.core.database import fetch_one, get_supabase
from coachdesk.core.email import send_contact_notification
from coachdesk.core.middleware import get_tenant_id, get_user_id
from coachdesk.core.security import require_role
from coachdesk.schemas.support import ContactMessageCreate, MessageStatusUpdate, StaffMessageCreate
from coachdesk.utils.dates import now_iso
from coachdesk.utils.queries import get_or_404
from coachdesk.utils.response import first_or_none, paginate, success_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/contact", tags=["Contact"])

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
STAFF_ROLES = ("student", "teacher")


def _notify_admins(db, background_tasks: BackgroundTasks, tenant: dict, sender_name: str,
                   sender_email: str, subject: str, message: str):
    admins = (
        db.table("users")
        .select("email")
        .eq("tenant_id", tenant["id"])
        .eq("role", "admin")
        .eq("is_active", True)
        .execute()
    ).data or []
    for admin in admins:
        background_tasks.add_task(
            send_contact_notification, admin["email"], tenant.get("name", ""),
            sender_name, sender_email, subject, message,
        )


def _inbox(db, tenant_id: str, status: str, page: int, limit: int, roles: Optional[tuple] = None):
    query = db.table("contact_messages").select("*", count="exact").eq("tenant_id", tenant_id)
    if status != "all":
        query = query.eq("status", status)
    if roles:
        query = query.in_("user_role", list(roles))
    offset = (page - 1) * limit
    result = query.order("created_at", desc=True).range(offset, offset + limit - 1).execute()
    total = result.count if result.count is not None else len(result.data or [])
    return {"messages": result.data, "pagination": paginate(total, page, limit)}


@router.post("")
async def send_contact_message(body: ContactMessageCreate, background_tasks: BackgroundTasks):
    """Public contact form. The center is picked by its code."""
    email = body.email.strip().lower()
    if not EMAIL_RE.match(email):
        raise HTTPException(status_code=400, detail="Please provide a valid email address")

    db = get_supabase()
    tenant = fetch_one(
        db.table("tenants")
        .select("id, name, is_active")
        .eq("code", body.center_code.strip().upper())
    )
    if not tenant or not tenant.get("is_active", True):
        raise HTTPException(status_code=404, detail="Coaching center not found")

    data = {
        "tenant_id": tenant["id"],
        "name": body.name.strip(),
        "email": email,
        "message": body.message.strip(),
        "user_id": None,
        "user_role": "public",
        "category": "general",
        "priority": "medium",
        "status": "unread",
    }
    result = db.table("contact_messages").insert(data).execute()
    created = first_or_none(result.data)
    _notify_admins(db, background_tasks, tenant, data["name"], email, "Contact form", data["message"])
    logger.info("Contact message %s received for tenant %s", created and created.get("id"), tenant["id"])
    return success_response(data={"id": created and created.get("id")},
                            message="Message sent successfully! We'll get back to you soon.")


@router.post("/staff")
async def send_staff_message(
    body: StaffMessageCreate,
    background_tasks: BackgroundTasks,
    user: dict = Depends(require_role(list(STAFF_ROLES))),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    tenant = fetch_one(db.table("tenants").select("id, name").eq("id", tenant_id))
    if not tenant:
        raise HTTPException(status_code=404, detail="Coaching center not found")

    data = {
        "tenant_id": tenant_id,
        "name": user.get("name"),
        "email": user.get("email"),
        "subject": body.subject.strip(),
        "message": body.message.strip(),
        "user_id": get_user_id(user),
        "user_role": user["role"],
        "category": f"{user['role']}_inquiry",
        "priority": body.priority,
        "status": "unread",
    }
    result = db.table("contact_messages").insert(data).execute()
    created = first_or_none(result.data)
    _notify_admins(db, background_tasks, tenant, data["name"], data["email"], data["subject"], data["message"])
    logger.info("%s %s sent message %s to admin", user["role"], get_user_id(user), created and created.get("id"))
    return success_response(data=created, message="Message sent successfully! Admin will respond soon.")


@router.get("/messages")
async def list_messages(
    status: str = "all",
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    return success_response(data=_inbox(db, get_tenant_id(user), status, page, limit))


@router.get("/staff-messages")
async def list_staff_messages(
    status: str = "all",
    role: str = "all",
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user: dict = Depends(require_role(["admin"])),
):
    if role != "all" and role not in STAFF_ROLES:
        raise HTTPException(status_code=400, detail=f"role must be one of {['all', *STAFF_ROLES]}")
    db = get_supabase()
    roles = STAFF_ROLES if role == "all" else (role,)
    return success_response(data=_inbox(db, get_tenant_id(user), status, page, limit, roles))


@router.patch("/messages/{message_id}")
async def update_message_status(
    message_id: str,
    body: MessageStatusUpdate,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    get_or_404(db, "contact_messages", tenant_id, message_id, "Message", "id")
    if body.status == "replied" and not (body.admin_reply and body.admin_reply.strip()):
        raise HTTPException(status_code=400, detail="admin_reply is required when marking a message replied")

    update_data = {"status": body.status, "updated_at": now_iso()}
    if body.admin_reply is not None:
        update_data["admin_reply"] = body.admin_reply.strip()
    if body.status == "replied":
        update_data["replied_at"] = now_iso()
        update_data["replied_by"] = get_user_id(user)

    result = (
        db.table("contact_messages")
        .update(update_data)
        .eq("id", message_id)
        .eq("tenant_id", tenant_id)
        .execute()
    )
    logger.info("Contact message %s marked %s", message_id, body.status)
    return success_response(data=first_or_none(result.data), message="Message status updated successfully")
