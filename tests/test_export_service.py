# tests/test_export_service.py
"""Unit tests for the spreadsheet export."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from datetime import date, datetime, timedelta
from io import BytesIO
from openpyxl import load_workbook
from app.exceptions import ValidationError
from app.models.visitor import Visitor
from app.services.export_service import build_workbook, export_filename, period_start

WEDNESDAY = datetime(2026, 10, 21, 15, 30, 12)


class TestPeriodStart:
    def test_day_starts_at_midnight(self):
        assert period_start("day", WEDNESDAY) == datetime(2026, 10, 21)

    def test_week_starts_on_sunday(self):
        assert period_start("week", WEDNESDAY) == datetime(2026, 10, 18)
        assert period_start("week", datetime(2026, 10, 18, 9, 0)) == datetime(2026, 10, 18)
        assert period_start("week", datetime(2026, 10, 24, 23, 59)) == datetime(2026, 10, 18)

    def test_month_starts_on_the_first(self):
        assert period_start("month", WEDNESDAY) == datetime(2026, 10, 1)

    def test_no_period_means_everything(self):
        assert period_start(None, WEDNESDAY) is None

    def test_unknown_period_rejected(self):
        with pytest.raises(ValidationError):
            period_start("year", WEDNESDAY)


class TestWorkbook:
    def test_filename_includes_period_and_date(self):
        assert export_filename("day", date(2026, 10, 19)) == "visitors_day_2026-10-19.xlsx"
        assert export_filename(None, date(2026, 10, 19)) == "visitors_all_2026-10-19.xlsx"

    def test_rows_carry_derived_status(self):
        now = datetime(2026, 10, 19, 10, 0)
        visitors = [
            Visitor(id=1, full_name="A", contact_number="1", department_visiting="Ops",
                    person_to_visit="H", in_time=now, security_confirmed=False),
            Visitor(id=2, full_name="B", contact_number="2", department_visiting="Ops",
                    person_to_visit="H", in_time=now, out_time=now + timedelta(hours=1),
                    security_confirmed=False),
            Visitor(id=3, full_name="C", contact_number="3", department_visiting="Ops",
                    person_to_visit="H", in_time=now, out_time=now + timedelta(hours=2),
                    security_confirmed=True),
        ]
        ws = load_workbook(BytesIO(build_workbook(visitors))).active

        assert ws.title == "Visitors"
        assert [c.value for c in ws[1]] == ["ID", "Full Name", "Contact", "Department",
                                            "Host", "Check-in", "Check-out", "Status"]
        assert [ws.cell(row=r, column=8).value for r in (2, 3, 4)] == ["Active", "Security Pending", "Released"]
        assert ws.cell(row=2, column=6).value == now
        assert ws.cell(row=2, column=7).value is None


class TestExportScenario:
    def test_today_export_has_one_active_row(self, lifecycle):
        lifecycle.register({
            "full_name": "Jane Doe",
            "contact_number": "5551234567",
            "department_visiting": "Engineering",
            "person_to_visit": "John Smith",
        })
        ws = load_workbook(BytesIO(build_workbook(lifecycle.list(since=period_start("day"))))).active
        assert ws.max_row == 2
        assert ws.cell(row=2, column=2).value == "Jane Doe"
        assert ws.cell(row=2, column=8).value == "Active"
