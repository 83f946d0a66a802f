"""
Study materials router — documents shared with one or more batches.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from coachdesk.core.database import get_supabase
from coachdesk.core.middleware import get_tenant_id, get_user_id
from coachdesk.core.security import require_role
from coachdesk.core.storage import delete_stored, save_upload
from coachdesk.utils.queries import get_or_404, student_batch_ids
from coachdesk.utils.response import first_or_none, success_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/materials", tags=["Materials"])

MATERIAL_CATEGORIES = ("lecture", "assignment", "reference", "exam")


def _split_ids(raw: Optional[str]) -> list[str]:
    return [part.strip() for part in (raw or "").split(",") if part.strip()]


def _bump(db, tenant_id: str, material_id: str, counter: str) -> int:
    material = get_or_404(db, "materials", tenant_id, material_id, "Material", f"id, {counter}")
    value = int(material.get(counter) or 0) + 1
    db.table("materials").update({counter: value}).eq("id", material_id).eq("tenant_id", tenant_id).execute()
    return value


@router.post("")
async def upload_material(
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    course_id: Optional[str] = Form(None),
    batch_ids: Optional[str] = Form(None),
    category: str = Form("lecture"),
    file: Optional[UploadFile] = File(None),
    user: dict = Depends(require_role(["teacher", "admin"])),
):
    if not title or not title.strip():
        raise HTTPException(status_code=400, detail="title is required")
    if not file or not file.filename:
        raise HTTPException(status_code=400, detail="A file is required")
    if category not in MATERIAL_CATEGORIES:
        raise HTTPException(status_code=400, detail=f"category must be one of {list(MATERIAL_CATEGORIES)}")

    db = get_supabase()
    tenant_id = get_tenant_id(user)
    targets = _split_ids(batch_ids)
    if course_id:
        get_or_404(db, "courses", tenant_id, course_id, "Course", "id")
    for batch_id in targets:
        get_or_404(db, "batches", tenant_id, batch_id, "Batch", "id")

    stored = await save_upload(file)
    data = {
        "tenant_id": tenant_id,
        "title": title.strip(),
        "description": description,
        "course_id": course_id or None,
        "batch_ids": targets,
        "category": category,
        "file_url": stored["file_url"],
        "file_name": stored["file_name"],
        "file_type": stored["file_type"],
        "file_size": stored["file_size"],
        "uploaded_by": get_user_id(user),
        "views": 0,
        "downloads": 0,
    }
    result = db.table("materials").insert(data).execute()
    created = first_or_none(result.data)
    logger.info("Material %s uploaded for %d batches", created and created.get("id"), len(targets))
    return success_response(data=created, message="Material uploaded successfully")


@router.get("")
async def list_materials(
    course_id: Optional[str] = None,
    category: Optional[str] = None,
    user: dict = Depends(require_role(["teacher", "admin"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    query = db.table("materials").select("*, courses(name)").eq("tenant_id", tenant_id)
    if user["role"] == "teacher":
        query = query.eq("uploaded_by", get_user_id(user))
    if course_id:
        query = query.eq("course_id", course_id)
    if category:
        query = query.eq("category", category)
    result = query.order("created_at", desc=True).execute()
    return success_response(data=result.data)


@router.get("/student")
async def list_student_materials(
    category: Optional[str] = None,
    user: dict = Depends(require_role(["student"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    batch_ids = set(student_batch_ids(db, tenant_id, get_user_id(user)))
    if not batch_ids:
        return success_response(data=[])

    query = db.table("materials").select("*, courses(name)").eq("tenant_id", tenant_id)
    if category:
        query = query.eq("category", category)
    rows = query.order("created_at", desc=True).execute().data or []
    return success_response(data=[m for m in rows if batch_ids.intersection(m.get("batch_ids") or [])])


@router.delete("/{material_id}")
async def delete_material(
    material_id: str,
    user: dict = Depends(require_role(["teacher", "admin"])),
):
    db = get_supabase()
    tenant_id = get_tenant_id(user)
    material = get_or_404(db, "materials", tenant_id, material_id, "Material")
    if user["role"] != "admin" and material.get("uploaded_by") != get_user_id(user):
        raise HTTPException(status_code=403, detail="You can only delete your own materials")

    db.table("materials").delete().eq("id", material_id).eq("tenant_id", tenant_id).execute()
    delete_stored(material.get("file_url"))
    logger.info("Material %s deleted by %s", material_id, get_user_id(user))
    return success_response(message="Material deleted successfully")


@router.post("/view/{material_id}")
async def track_view(
    material_id: str,
    user: dict = Depends(require_role(["teacher", "admin", "student"])),
):
    db = get_supabase()
    views = _bump(db, get_tenant_id(user), material_id, "views")
    return success_response(data={"views": views})


@router.post("/download/{material_id}")
async def track_download(
    material_id: str,
    user: dict = Depends(require_role(["teacher", "admin", "student"])),
):
    db = get_supabase()
    downloads = _bump(db, get_tenant_id(user), material_id, "downloads")
    return success_response(data={"downloads": downloads})
