"""
Local file store for uploads (assignment attachments, submissions, recordings, materials).

Files land in UPLOAD_DIR/<category>/<uuid><ext>, where category is derived from the
MIME type, and are served back by the StaticFiles mount at UPLOAD_URL_PREFIX.
"""

import logging
import os
import uuid

import aiofiles
from fastapi import HTTPException, UploadFile, status

from coachdesk.core.config import settings
from coachdesk.utils.dates import now_iso

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024

CATEGORIES = ("images", "videos", "audio", "documents", "others")

DOCUMENT_TYPES = {
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-powerpoint",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "application/zip",
}


def category_for(content_type: str | None) -> str:
    content_type = (content_type or "").lower()
    if content_type.startswith("image/"):
        return "images"
    if content_type.startswith("video/"):
        return "videos"
    if content_type.startswith("audio/"):
        return "audio"
    if content_type in DOCUMENT_TYPES or content_type.startswith("text/"):
        return "documents"
    return "others"


async def save_upload(file: UploadFile, max_bytes: int | None = None) -> dict:
    """
    Stream an upload to disk and return its descriptor.
    Anything larger than the limit is rejected with 413 and the partial file removed.
    """
    limit = max_bytes if max_bytes is not None else settings.max_upload_bytes
    category = category_for(file.content_type)
    extension = os.path.splitext(file.filename or "")[1].lower()
    saved_name = f"{uuid.uuid4().hex}{extension}"

    directory = os.path.join(settings.UPLOAD_DIR, category)
    os.makedirs(directory, exist_ok=True)
    path = os.path.join(directory, saved_name)

    written = 0
    too_large = False
    async with aiofiles.open(path, "wb") as out_file:
        await file.seek(0)
        while content := await file.read(CHUNK_SIZE):
            written += len(content)
            if written > limit:
                too_large = True
                break
            await out_file.write(content)

    if too_large:
        os.remove(path)
        logger.warning("Upload %r rejected: exceeds %s bytes", file.filename, limit)
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File '{file.filename}' exceeds the {limit // 1024 // 1024}MB upload limit",
        )

    logger.info("Stored upload %r as %s/%s (%d bytes)", file.filename, category, saved_name, written)
    return {
        "file_name": file.filename,
        "file_url": f"{settings.UPLOAD_URL_PREFIX}/{category}/{saved_name}",
        "file_type": file.content_type or "application/octet-stream",
        "file_size": written,
        "uploaded_at": now_iso(),
    }


async def save_uploads(files: list[UploadFile] | None) -> list[dict]:
    stored = []
    for f in files or []:
        if not f or not f.filename:
            continue
        try:
            stored.append(await save_upload(f))
        except HTTPException:
            # All-or-nothing for one request's files
            for item in stored:
                delete_stored(item["file_url"])
            raise
    return stored


def delete_stored(file_url: str | None):
    """Remove a stored file given its public URL. Missing files are ignored."""
    if not file_url or not file_url.startswith(settings.UPLOAD_URL_PREFIX + "/"):
        return
    relative = file_url[len(settings.UPLOAD_URL_PREFIX) + 1:]
    if ".." in relative:
        return
    path = os.path.join(settings.UPLOAD_DIR, relative)
    try:
        os.remove(path)
        logger.info("Deleted stored file %s", relative)
    except FileNotFoundError:
        pass
