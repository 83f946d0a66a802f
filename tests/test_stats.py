"""
Unit tests for the aggregation and date helpers.
"""
from datetime import datetime, timezone

from coachdesk.utils.dates import is_past, month_key, parse_datetime
from coachdesk.utils.response import paginate
from coachdesk.utils.stats import (
    assignment_summary,
    attendance_day_stats,
    attendance_summary,
    average,
    fee_totals,
    fee_view,
    latest_by_assignment,
    with_overdue,
)

NOW = datetime(2026, 5, 10, 12, 0, tzinfo=timezone.utc)


def test_parse_datetime_variants():
    assert parse_datetime("2026-05-10") == datetime(2026, 5, 10, tzinfo=timezone.utc)
    assert parse_datetime("2026-05-10T08:30:00Z").hour == 8
    assert parse_datetime("2026-05-10T08:30:00").tzinfo is not None
    assert parse_datetime("not a date") is None
    assert parse_datetime(None) is None


def test_is_past_and_overdue():
    assert is_past("2026-05-09", NOW)
    assert not is_past("2026-05-11", NOW)
    assert not is_past(None, NOW)
    assert with_overdue({"due_date": "2026-05-01T00:00:00Z"}, NOW)["is_overdue"] is True
    assert with_overdue({"due_date": None}, NOW)["is_overdue"] is False


def test_month_key():
    assert month_key("2026-03-15T10:00:00+05:30") == "2026-03"
    assert month_key("") is None


def test_average_skips_missing():
    assert average([10, None, 20]) == 15
    assert average([]) is None


def test_latest_by_assignment_prefers_newest():
    subs = [
        {"id": "a", "assignment_id": "x", "submitted_at": "2026-05-01T10:00:00"},
        {"id": "b", "assignment_id": "x", "submitted_at": "2026-05-02T10:00:00"},
        {"id": "c", "assignment_id": "y", "submitted_at": "2026-05-01T09:00:00"},
    ]
    latest = latest_by_assignment(subs)
    assert latest["x"]["id"] == "b"
    assert latest["y"]["id"] == "c"


def test_assignment_summary_counts_unique_students():
    assignment = {"id": "x", "title": "Quiz", "due_date": "2026-05-20"}
    subs = [
        {"student_id": "s1", "status": "graded", "grade": 8, "is_late": False},
        {"student_id": "s1", "status": "submitted", "grade": None, "is_late": True},
        {"student_id": "s2", "status": "graded", "grade": 6, "is_late": False},
    ]
    summary = assignment_summary(assignment, subs, total_students=3, now=NOW)
    assert summary["submitted_count"] == 2
    assert summary["pending_count"] == 1
    assert summary["graded_count"] == 2
    assert summary["late_submission_count"] == 1
    assert summary["average_grade"] == 7
    assert summary["is_overdue"] is False


def test_attendance_summary_threshold():
    records = [
        {"student_id": "s1", "status": "present"},
        {"student_id": "s1", "status": "present"},
        {"student_id": "s1", "status": "late"},
        {"student_id": "s1", "status": "absent"},
        {"student_id": "s2", "status": "leave"},
        {"student_id": "s2", "status": "present"},
    ]
    summary = {s["student_id"]: s for s in attendance_summary(records, 75.0)}
    assert summary["s1"]["attendance_percentage"] == 75.0
    assert summary["s1"]["flagged"] is False
    assert summary["s2"]["attendance_percentage"] == 50.0
    assert summary["s2"]["flagged"] is True


def test_attendance_day_stats_without_records():
    stats = attendance_day_stats([], total_students=12)
    assert stats["total_students"] == 12
    assert stats["average_attendance"] == 0.0


def test_fee_view_prefers_payment_history():
    fee = {
        "amount": 1000,
        "paid_amount": 999,
        "discount": 100,
        "due_date": "2026-06-01",
        "payments": [{"amount": 200}, {"amount": 300}],
    }
    view = fee_view(fee, NOW)
    assert view["paid_amount"] == 500
    assert view["pending_amount"] == 400
    assert view["status"] == "partial"


def test_fee_status_transitions():
    base = {"amount": 100, "discount": 0, "payments": []}
    assert fee_view({**base, "due_date": "2026-06-01"}, NOW)["status"] == "pending"
    assert fee_view({**base, "due_date": "2026-05-01"}, NOW)["status"] == "overdue"
    assert fee_view({**base, "due_date": "2026-05-01", "discount": 100}, NOW)["status"] == "paid"


def test_fee_totals():
    fees = [
        {"amount": 100, "discount": 10, "payments": [{"amount": 50}], "due_date": "2026-06-01"},
        {"amount": 200, "discount": 0, "payments": [], "due_date": "2026-06-01"},
    ]
    totals = fee_totals(fees)
    assert totals == {"total_amount": 300, "collected": 50, "discount": 10, "pending": 240, "count": 2}


def test_paginate():
    assert paginate(0, 1, 20) == {"total": 0, "page": 1, "pages": 0, "limit": 20}
    assert paginate(41, 3, 20)["pages"] == 3
