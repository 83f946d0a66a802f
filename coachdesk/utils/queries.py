"""
Lookups shared by several routers. All of them are tenant-scoped.
"""

from fastapi import HTTPException

from coachdesk.core.database import fetch_one


def get_or_404(db, table: str, tenant_id: str, record_id: str, label: str, columns: str = "*") -> dict:
    row = fetch_one(
        db.table(table)
        .select(columns)
        .eq("tenant_id", tenant_id)
        .eq("id", record_id)
    )
    if not row:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    return row


def student_batch_ids(db, tenant_id: str, student_id: str) -> list[str]:
    rows = (
        db.table("batch_students")
        .select("batch_id")
        .eq("tenant_id", tenant_id)
        .eq("student_id", student_id)
        .execute()
    )
    return [r["batch_id"] for r in rows.data or []]


def batch_student_ids(db, tenant_id: str, batch_id: str) -> list[str]:
    rows = (
        db.table("batch_students")
        .select("student_id")
        .eq("tenant_id", tenant_id)
        .eq("batch_id", batch_id)
        .execute()
    )
    return [r["student_id"] for r in rows.data or []]


def user_names(db, tenant_id: str, user_ids) -> dict:
    """Map user id -> name for display fields."""
    ids = list(set(user_ids))
    if not ids:
        return {}
    rows = (
        db.table("users")
        .select("id, name")
        .eq("tenant_id", tenant_id)
        .in_("id", ids)
        .execute()
    )
    return {r["id"]: r.get("name", "") for r in rows.data or []}
