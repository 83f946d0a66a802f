"""
Fees router — fee records, payments, discounts and collection reports.

A fee row stores `amount`, `discount` and the appended `payments`; the paid
total, `pending_amount` (amount - paid - discount) and `status` are derived on
every read and never written back.
"""

import logging
import uuid
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from coachdesk.core.database import get_supabase
from coachdesk.core.middleware import get_tenant_id, get_user_id
from coachdesk.core.security import require_role
from coachdesk.schemas.fees import BulkFeeCreate, DiscountApply, FeeCreate, FeeUpdate, PaymentCreate
from coachdesk.utils.dates import now_iso, today_iso, utcnow
from coachdesk.utils.queries import batch_student_ids, get_or_404
from coachdesk.utils.response import first_or_none, success_response
from coachdesk.utils.stats import fee_totals, fee_view, monthly_collections

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/fees", tags=["Fees"])

FEE_SELECT = "*, users!fees_student_id_fkey(name, email, roll_number), batches(name)"


def _views(rows) -> list[dict]:
    now = utcnow()
    return [fee_view(f, now) for f in rows or []]


@router.post("")
async def create_fee(
    body: FeeCreate,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)

    student = get_or_404(db, "users", tenant_id, body.student_id, "Student", "id, role")
    if student.get("role") != "student":
        raise HTTPException(status_code=400, detail="Fees can only be created for students")
    if body.batch_id:
        get_or_404(db, "batches", tenant_id, body.batch_id, "Batch", "id")

    data = {
        **body.model_dump(),
        "tenant_id": tenant_id,
        "due_date": body.due_date.isoformat(),
        "paid_amount": 0,
        "discount": 0,
        "payments": [],
        "created_by": get_user_id(user),
    }
    result = db.table("fees").insert(data).execute()
    created = first_or_none(result.data)
    logger.info("Fee %s created for student %s (%.2f)", created and created.get("id"), body.student_id, body.amount)
    return success_response(data=fee_view(created), message="Fee created")


@router.post("/bulk")
async def create_bulk_fees(
    body: BulkFeeCreate,
    user: dict = Depends(require_role(["admin"])),
):
    """One fee per student currently in the batch."""
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    batch = get_or_404(db, "batches", tenant_id, body.batch_id, "Batch", "id, course_id")

    student_ids = batch_student_ids(db, tenant_id, body.batch_id)
    if not student_ids:
        raise HTTPException(status_code=400, detail="Batch has no students")

    records = [
        {
            "tenant_id": tenant_id,
            "student_id": sid,
            "batch_id": body.batch_id,
            "course_id": batch.get("course_id"),
            "amount": body.amount,
            "due_date": body.due_date.isoformat(),
            "description": body.description,
            "paid_amount": 0,
            "discount": 0,
            "payments": [],
            "created_by": get_user_id(user),
        }
        for sid in student_ids
    ]
    result = db.table("fees").insert(records).execute()
    logger.info("Bulk fees: %d created for batch %s", len(result.data or []), body.batch_id)
    return success_response(
        data=_views(result.data),
        message=f"Fees created for {len(result.data or [])} students",
    )


@router.get("")
async def list_fees(
    status: Optional[str] = None,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    result = (
        db.table("fees")
        .select(FEE_SELECT)
        .eq("tenant_id", tenant_id)
        .order("due_date", desc=False)
        .execute()
    )
    fees = _views(result.data)
    if status:
        fees = [f for f in fees if f["status"] == status]
    return success_response(data={"fees": fees, "totals": fee_totals(fees)})


@router.get("/upcoming")
async def upcoming_fees(
    days: int = Query(7, ge=1, le=365),
    user: dict = Depends(require_role(["admin"])),
):
    """Unpaid fees falling due between today and today + days."""
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    today = today_iso()
    until = (utcnow() + timedelta(days=days)).date().isoformat()
    result = (
        db.table("fees")
        .select(FEE_SELECT)
        .eq("tenant_id", tenant_id)
        .gte("due_date", today)
        .lte("due_date", until)
        .order("due_date", desc=False)
        .execute()
    )
    fees = [f for f in _views(result.data) if f["pending_amount"] > 0]
    return success_response(data=fees)


@router.get("/monthly-report")
async def monthly_report(
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    result = db.table("fees").select("*").eq("tenant_id", tenant_id).execute()
    fees = _views(result.data)
    return success_response(data={
        "months": monthly_collections(fees),
        "totals": fee_totals(fees),
    })


@router.get("/student/{student_id}")
async def get_student_fees(
    student_id: str,
    user: dict = Depends(require_role(["admin", "student"])),
):
    if user["role"] == "student" and student_id != get_user_id(user):
        raise HTTPException(status_code=403, detail="You can only view your own fees")

    db = get_supabase()
    tenant_id = get_tenant_id(user)
    result = (
        db.table("fees")
        .select("*, batches(name)")
        .eq("tenant_id", tenant_id)
        .eq("student_id", student_id)
        .order("due_date", desc=False)
        .execute()
    )
    fees = _views(result.data)
    return success_response(data={"fees": fees, "totals": fee_totals(fees)})


@router.get("/batch/{batch_id}")
async def get_batch_fees(
    batch_id: str,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    result = (
        db.table("fees")
        .select(FEE_SELECT)
        .eq("tenant_id", tenant_id)
        .eq("batch_id", batch_id)
        .order("due_date", desc=False)
        .execute()
    )
    fees = _views(result.data)
    return success_response(data={"fees": fees, "totals": fee_totals(fees)})


@router.get("/{fee_id}")
async def get_fee(
    fee_id: str,
    user: dict = Depends(require_role(["admin", "student"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    fee = get_or_404(db, "fees", tenant_id, fee_id, "Fee", FEE_SELECT)
    if user["role"] == "student" and fee.get("student_id") != get_user_id(user):
        raise HTTPException(status_code=404, detail="Fee not found")
    return success_response(data=fee_view(fee))


@router.put("/{fee_id}")
async def update_fee(
    fee_id: str,
    body: FeeUpdate,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    fee = get_or_404(db, "fees", tenant_id, fee_id, "Fee")

    update_data = {k: v for k, v in body.model_dump().items() if v is not None}
    if not update_data:
        raise HTTPException(status_code=400, detail="No valid fields to update")
    if "due_date" in update_data:
        update_data["due_date"] = update_data["due_date"].isoformat()
    if "amount" in update_data:
        current = fee_view(fee)
        if update_data["amount"] < current["paid_amount"] + float(fee.get("discount") or 0):
            raise HTTPException(status_code=400, detail="Amount cannot be less than paid amount plus discount")

    result = db.table("fees").update(update_data).eq("id", fee_id).eq("tenant_id", tenant_id).execute()
    logger.info("Fee %s updated (%s)", fee_id, ", ".join(sorted(update_data)))
    return success_response(data=fee_view(first_or_none(result.data)), message="Fee updated")


@router.delete("/{fee_id}")
async def delete_fee(
    fee_id: str,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    get_or_404(db, "fees", tenant_id, fee_id, "Fee", "id")
    db.table("fees").delete().eq("id", fee_id).eq("tenant_id", tenant_id).execute()
    logger.info("Fee %s deleted by %s", fee_id, get_user_id(user))
    return success_response(message="Fee deleted")


@router.post("/{fee_id}/pay")
async def record_payment(
    fee_id: str,
    body: PaymentCreate,
    user: dict = Depends(require_role(["admin"])),
):
    """Append a payment. Cannot exceed what is still pending."""
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    fee = fee_view(get_or_404(db, "fees", tenant_id, fee_id, "Fee"))

    if body.amount > fee["pending_amount"]:
        raise HTTPException(
            status_code=400,
            detail=f"Payment {body.amount:.2f} exceeds pending amount {fee['pending_amount']:.2f}",
        )

    payment = {
        "id": str(uuid.uuid4()),
        "amount": body.amount,
        "method": body.method,
        "date": (body.date.isoformat() if body.date else now_iso()),
        "note": body.note,
        "recorded_by": get_user_id(user),
    }
    payments = (fee.get("payments") or []) + [payment]
    paid_amount = round(sum(float(p["amount"]) for p in payments), 2)

    result = (
        db.table("fees")
        .update({"payments": payments, "paid_amount": paid_amount})
        .eq("id", fee_id)
        .eq("tenant_id", tenant_id)
        .execute()
    )
    logger.info("Payment %.2f recorded on fee %s (%s)", body.amount, fee_id, body.method)
    return success_response(data=fee_view(first_or_none(result.data)), message="Payment recorded")


@router.post("/{fee_id}/discount")
async def apply_discount(
    fee_id: str,
    body: DiscountApply,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    fee = fee_view(get_or_404(db, "fees", tenant_id, fee_id, "Fee"))

    if float(fee.get("amount") or 0) - fee["paid_amount"] - body.discount < 0:
        raise HTTPException(status_code=400, detail="Discount would make the pending amount negative")

    result = (
        db.table("fees")
        .update({"discount": body.discount, "discount_reason": body.reason})
        .eq("id", fee_id)
        .eq("tenant_id", tenant_id)
        .execute()
    )
    logger.info("Discount %.2f applied on fee %s", body.discount, fee_id)
    return success_response(data=fee_view(first_or_none(result.data)), message="Discount applied")
