"""
Support tickets router — help requests from any signed-in user, triaged by the center admin.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from coachdesk.core.database import get_supabase
from coachdesk.core.middleware import get_tenant_id, get_user_id
from coachdesk.core.security import require_role
from coachdesk.core.storage import delete_stored, save_upload
from coachdesk.schemas.support import TicketStatusUpdate
from coachdesk.utils.dates import now_iso
from coachdesk.utils.queries import get_or_404
from coachdesk.utils.response import first_or_none, success_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/support", tags=["Support"])


@router.post("")
async def create_ticket(
    subject: Optional[str] = Form(None),
    message: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    user: dict = Depends(require_role(["student", "teacher", "admin"])),
):
    if not subject or not subject.strip() or not message or not message.strip():
        raise HTTPException(status_code=400, detail="Subject and message are required")

    db = get_supabase()
    tenant_id = get_tenant_id(user)

    stored = None
    if file and file.filename:
        stored = await save_upload(file)

    data = {
        "tenant_id": tenant_id,
        "user_id": get_user_id(user),
        "name": user.get("name"),
        "email": user.get("email"),
        "role": user["role"],
        "subject": subject.strip(),
        "message": message.strip(),
        "file_url": stored["file_url"] if stored else None,
        "file_name": stored["file_name"] if stored else None,
        "status": "pending",
    }
    result = db.table("support_tickets").insert(data).execute()
    created = first_or_none(result.data)
    logger.info("Support ticket %s opened by %s", created and created.get("id"), get_user_id(user))
    return success_response(data=created, message="Support ticket created successfully")


@router.get("")
async def list_tickets(
    status: Optional[str] = None,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    query = db.table("support_tickets").select("*").eq("tenant_id", get_tenant_id(user))
    if status:
        query = query.eq("status", status)
    result = query.order("created_at", desc=True).execute()
    return success_response(data=result.data)


@router.get("/my")
async def my_tickets(user: dict = Depends(require_role(["student", "teacher", "admin"]))):
    db = get_supabase()
    result = (
        db.table("support_tickets")
        .select("*")
        .eq("tenant_id", get_tenant_id(user))
        .eq("user_id", get_user_id(user))
        .order("created_at", desc=True)
        .execute()
    )
    return success_response(data=result.data)


@router.get("/{ticket_id}")
async def get_ticket(
    ticket_id: str,
    user: dict = Depends(require_role(["student", "teacher", "admin"])),
):
    db = get_supabase()
    ticket = get_or_404(db, "support_tickets", get_tenant_id(user), ticket_id, "Ticket")
    if user["role"] != "admin" and ticket.get("user_id") != get_user_id(user):
        raise HTTPException(status_code=403, detail="You can only view your own tickets")
    return success_response(data=ticket)


@router.patch("/{ticket_id}/status")
async def update_ticket_status(
    ticket_id: str,
    body: TicketStatusUpdate,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    get_or_404(db, "support_tickets", tenant_id, ticket_id, "Ticket", "id")

    update_data = {"status": body.status, "updated_at": now_iso()}
    if body.status == "resolved":
        update_data["resolved_at"] = now_iso()
        update_data["resolved_by"] = get_user_id(user)

    result = (
        db.table("support_tickets")
        .update(update_data)
        .eq("id", ticket_id)
        .eq("tenant_id", tenant_id)
        .execute()
    )
    logger.info("Support ticket %s marked %s", ticket_id, body.status)
    return success_response(data=first_or_none(result.data), message="Ticket status updated")


@router.delete("/{ticket_id}")
async def delete_ticket(
    ticket_id: str,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    ticket = get_or_404(db, "support_tickets", tenant_id, ticket_id, "Ticket", "id, file_url")

    db.table("support_tickets").delete().eq("id", ticket_id).eq("tenant_id", tenant_id).execute()
    delete_stored(ticket.get("file_url"))
    logger.info("Support ticket %s deleted by %s", ticket_id, get_user_id(user))
    return success_response(message="Ticket deleted")
