# app/services/export_service.py
"""
Spreadsheet export of visitor records (openpyxl).
Periods: day (since midnight), week (since Sunday midnight), month (since the 1st).
No period exports everything.
"""

from datetime import date, datetime, timedelta
from io import BytesIO
from typing import Iterable, Optional

from openpyxl import Workbook
from openpyxl.styles import Font

from app.exceptions import ValidationError
from app.models.visitor import Visitor

PERIODS = ("day", "week", "month")
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
DATETIME_FORMAT = "yyyy-mm-dd hh:mm:ss"

COLUMNS = [
    # header, width
    ("ID", 10),
    ("Full Name", 25),
    ("Contact", 15),
    ("Department", 20),
    ("Host", 20),
    ("Check-in", 20),
    ("Check-out", 20),
    ("Status", 18),
]


def period_start(period: Optional[str], now: Optional[datetime] = None) -> Optional[datetime]:
    if period is None:
        return None
    if period not in PERIODS:
        raise ValidationError(f"Unknown export period '{period}'",
                              fields={"period": f"must be one of {', '.join(PERIODS)}"})
    now = now or datetime.now()
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "day":
        return midnight
    if period == "week":
        # Python weekday(): Monday=0 … Sunday=6
        return midnight - timedelta(days=(now.weekday() + 1) % 7)
    return midnight.replace(day=1)


def export_filename(period: Optional[str], today: Optional[date] = None) -> str:
    today = today or date.today()
    return f"visitors_{period or 'all'}_{today.isoformat()}.xlsx"


def build_workbook(visitors: Iterable[Visitor]) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Visitors"
    ws.append([header for header, _ in COLUMNS])
    for cell in ws[1]:
        cell.font = Font(bold=True)
    for idx, (_, width) in enumerate(COLUMNS, start=1):
        ws.column_dimensions[ws.cell(row=1, column=idx).column_letter].width = width

    for v in visitors:
        ws.append([
            v.id, v.full_name, v.contact_number, v.department_visiting,
            v.person_to_visit, v.in_time, v.out_time, v.status.label,
        ])
        row = ws.max_row
        ws.cell(row=row, column=6).number_format = DATETIME_FORMAT
        ws.cell(row=row, column=7).number_format = DATETIME_FORMAT

    out = BytesIO()
    wb.save(out)
    return out.getvalue()
