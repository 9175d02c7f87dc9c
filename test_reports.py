from datetime import datetime, timezone

from app.services.analytics_service import filter_by_date_range, format_date, format_datetime
from app.services.report_service import format_cell, humanize, render_report, report_filename


def test_humanize_camel_case():
    assert humanize("avgResponseTime") == "Avg Response Time"
    assert humanize("total") == "Total"


def test_format_cell():
    assert format_cell(None) == "N/A"
    assert format_cell(True) == "Yes"
    assert format_cell(False) == "No"
    assert format_cell({"a": 1}) == '{"a": 1}'
    assert format_cell(3) == "3"


def test_report_filename():
    assert report_filename("Feedback & Concerns", datetime(2024, 6, 15)) == "Feedback_&_Concerns_2024-06-15.pdf"


def test_dates_render_in_local_time():
    late_evening_utc = datetime(2024, 1, 1, 20, 30, tzinfo=timezone.utc)
    assert format_date(late_evening_utc) == "2024-01-02"
    assert format_datetime("2024-01-01T20:30:00Z") == "2024-01-02 04:30"
    assert format_date(None) == "N/A"


def test_date_range_drops_undated_items_once_bounded():
    items = [
        {"id": "a", "createdAt": "2024-06-01T00:00:00+00:00"},
        {"id": "b", "createdAt": "2024-06-20T00:00:00+00:00"},
        {"id": "c"},
    ]
    start = datetime(2024, 6, 10, tzinfo=timezone.utc)

    assert [i["id"] for i in filter_by_date_range(items)] == ["a", "b", "c"]
    assert [i["id"] for i in filter_by_date_range(items, start=start)] == ["b"]
    assert [i["id"] for i in filter_by_date_range(items, end=start)] == ["a"]


def test_render_report_produces_pdf():
    rows = [
        {"id": "f1", "category": "Complaint", "userName": "Juan <Dela> Cruz", "status": "Pending", "responseCount": 0},
        {"id": "f2", "category": "Suggestion", "userName": None, "status": "Resolved", "responseCount": 2},
    ]
    kpis = {"total": 2, "pending": 1, "avgResponseTime": "4h"}

    pdf = render_report(rows, kpis, "Feedback & Concerns", generated_by="admin@example.com")

    assert pdf.startswith(b"%PDF")
    assert len(pdf) > 1000


def test_render_report_handles_many_rows_and_no_kpis():
    rows = [{"id": str(i), "title": f"Notice {i}", "views": i} for i in range(120)]

    assert render_report(rows, None, "Announcements").startswith(b"%PDF")
    assert render_report([], {"total": 0}, "Announcements").startswith(b"%PDF")
