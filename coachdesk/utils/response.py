"""
Standard API response format and utility functions.
"""

from typing import Any, Optional


def success_response(data: Any = None, message: str = "Success") -> dict:
    return {"success": True, "data": data, "message": message}


def error_response(message: str = "Error", data: Any = None) -> dict:
    return {"success": False, "data": data, "message": message}


def first_or_none(rows: Optional[list]) -> Optional[dict]:
    """Inserts and updates come back as a list; most endpoints return the single row."""
    if not rows:
        return None
    return rows[0]


def paginate(total: int, page: int, limit: int) -> dict:
    pages = (total + limit - 1) // limit if limit > 0 else 0
    return {"total": total, "page": page, "pages": pages, "limit": limit}
