"""
Aggregations behind the summary and dashboard endpoints.

Everything here is recomputed from raw rows on each read; nothing is cached
or written back to the store.
"""

from collections import defaultdict
from datetime import datetime
from typing import Iterable, Optional

from coachdesk.utils.dates import is_past, month_key, utcnow

ATTENDED_STATUSES = ("present", "late")


def average(values: Iterable) -> Optional[float]:
    values = [float(v) for v in values if v is not None]
    if not values:
        return None
    return round(sum(values) / len(values), 2)


def percentage(part: float, whole: float) -> float:
    return round(part / whole * 100, 2) if whole else 0.0


# ---- Assignments ----

def with_overdue(assignment: dict, now: Optional[datetime] = None) -> dict:
    return {**assignment, "is_overdue": is_past(assignment.get("due_date"), now)}


def assignment_summary(
    assignment: dict,
    submissions: list[dict],
    total_students: int,
    now: Optional[datetime] = None,
) -> dict:
    submitted_students = {s["student_id"] for s in submissions}
    graded = [s for s in submissions if s.get("status") == "graded"]
    return {
        "assignment_id": assignment["id"],
        "assignment_title": assignment.get("title"),
        "total_students": total_students,
        "submitted_count": len(submitted_students),
        "pending_count": max(total_students - len(submitted_students), 0),
        "graded_count": len(graded),
        "late_submission_count": sum(1 for s in submissions if s.get("is_late")),
        "average_grade": average(s.get("grade") for s in graded),
        "due_date": assignment.get("due_date"),
        "is_overdue": is_past(assignment.get("due_date"), now),
    }


def teacher_assignment_stats(
    assignments: list[dict],
    submissions: list[dict],
    now: Optional[datetime] = None,
) -> dict:
    graded = [s for s in submissions if s.get("status") == "graded"]
    published = sum(1 for a in assignments if a.get("is_published", True))
    return {
        "total_assignments": len(assignments),
        "published_assignments": published,
        "draft_assignments": len(assignments) - published,
        "overdue_assignments": sum(1 for a in assignments if is_past(a.get("due_date"), now)),
        "total_submissions": len(submissions),
        "graded_submissions": len(graded),
        "pending_grading": len(submissions) - len(graded),
        "average_grade_overall": average(s.get("grade") for s in graded),
    }


def latest_by_assignment(submissions: list[dict]) -> dict:
    """Duplicate submissions are allowed; a student's view shows the newest one."""
    latest: dict = {}
    for s in submissions:
        current = latest.get(s["assignment_id"])
        if current is None or (s.get("submitted_at") or "") >= (current.get("submitted_at") or ""):
            latest[s["assignment_id"]] = s
    return latest


# ---- Attendance ----

def attendance_summary(records: list[dict], threshold: float, names: Optional[dict] = None) -> list[dict]:
    names = names or {}
    per_student: dict = defaultdict(lambda: {"present": 0, "absent": 0, "late": 0, "leave": 0, "total": 0})
    for rec in records:
        stats = per_student[rec["student_id"]]
        stats["total"] += 1
        if rec.get("status") in stats:
            stats[rec["status"]] += 1

    summary = []
    for student_id, stats in per_student.items():
        attended = sum(stats[s] for s in ATTENDED_STATUSES)
        pct = percentage(attended, stats["total"])
        summary.append({
            "student_id": student_id,
            "student_name": names.get(student_id, ""),
            "total_classes": stats["total"],
            "present_count": stats["present"],
            "absent_count": stats["absent"],
            "late_count": stats["late"],
            "leave_count": stats["leave"],
            "attendance_percentage": pct,
            "flagged": pct < threshold,
        })
    summary.sort(key=lambda s: s["student_name"] or s["student_id"])
    return summary


def attendance_day_stats(records: list[dict], total_students: int) -> dict:
    counts = defaultdict(int)
    for rec in records:
        counts[rec.get("status")] += 1
    attended = sum(counts[s] for s in ATTENDED_STATUSES)
    return {
        "total_students": total_students,
        "marked": len(records),
        "present_today": counts["present"],
        "absent_today": counts["absent"],
        "late_today": counts["late"],
        "leave_today": counts["leave"],
        "average_attendance": percentage(attended, len(records)),
    }


# ---- Fees ----

def _num(value) -> float:
    return float(value) if value not in (None, "") else 0.0


def fee_view(fee: dict, now: Optional[datetime] = None) -> dict:
    """Attach the derived pending_amount and status to a fee row."""
    payments = fee.get("payments") or []
    paid = round(sum(_num(p.get("amount")) for p in payments), 2) if payments else _num(fee.get("paid_amount"))
    amount = _num(fee.get("amount"))
    discount = _num(fee.get("discount"))
    pending = round(amount - paid - discount, 2)

    if pending <= 0:
        state = "paid"
    elif is_past(fee.get("due_date"), now or utcnow()):
        state = "overdue"
    elif paid > 0:
        state = "partial"
    else:
        state = "pending"

    return {**fee, "paid_amount": paid, "pending_amount": pending, "status": state}


def fee_totals(fees: list[dict]) -> dict:
    views = [f if "pending_amount" in f else fee_view(f) for f in fees]
    return {
        "total_amount": round(sum(_num(f.get("amount")) for f in views), 2),
        "collected": round(sum(f["paid_amount"] for f in views), 2),
        "discount": round(sum(_num(f.get("discount")) for f in views), 2),
        "pending": round(sum(max(f["pending_amount"], 0) for f in views), 2),
        "count": len(views),
    }


def monthly_collections(fees: list[dict]) -> list[dict]:
    months: dict = defaultdict(lambda: {"collected": 0.0, "payments": 0})
    for fee in fees:
        for p in fee.get("payments") or []:
            key = month_key(p.get("date"))
            if not key:
                continue
            months[key]["collected"] = round(months[key]["collected"] + _num(p.get("amount")), 2)
            months[key]["payments"] += 1
    return [{"month": k, **v} for k, v in sorted(months.items())]
