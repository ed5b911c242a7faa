"""
Spreadsheet exports for the admin panel (categories, employees).
"""
from __future__ import annotations

import io
import time
from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Any

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill
from openpyxl.worksheet.worksheet import Worksheet

from app.panel.models import Employee
from app.panel.modules.category.models import Category, SubCategory

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

# (header, width)
CATEGORY_COLUMNS = [
    ("_id", 25),
    ("Category ID", 20),
    ("Category Name", 30),
    ("Display Status", 15),
    ("Sub Categories Count", 20),
    ("Created By", 25),
    ("Updated By", 25),
    ("Created Date", 20),
    ("Updated Date", 20),
]

SUB_CATEGORY_COLUMNS = [
    ("_id", 25),
    ("Sub Category ID", 20),
    ("Sub Category Name", 30),
    ("Category ID", 20),
    ("Category Name", 30),
    ("Display Status", 15),
    ("Created By", 25),
    ("Updated By", 25),
]

EMPLOYEE_COLUMNS = [
    ("_id", 25),
    ("Employer ID", 20),
    ("Name", 25),
    ("Email", 30),
    ("Phone", 15),
    ("Secondary Phone", 15),
    ("Address", 30),
    ("Position", 20),
    ("Role", 15),
    ("Active Status", 15),
    ("Last Login", 20),
    ("Profile Picture URL", 40),
    ("Forgot Password Verified", 20),
    ("Created By", 25),
    ("Created At", 20),
    ("Updated At", 20),
]


def _fmt_dt(value: datetime | None, default: str = "N/A") -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S") if value else default


def _or_na(value: Any) -> Any:
    return value if value not in (None, "") else "N/A"


def _write_sheet(ws: Worksheet, columns: Sequence[tuple[str, int]], rows: Iterable[list[Any]], header_color: str) -> None:
    ws.append([h for h, _ in columns])
    for row in rows:
        ws.append(row)
        # user text such as "=HYPERLINK(...)" stays text, never a live formula
        for cell in ws[ws.max_row]:
            if cell.data_type == "f":
                cell.data_type = "s"
    fill = PatternFill(fill_type="solid", fgColor=header_color)
    for cell in ws[1]:
        cell.font = Font(bold=True)
        cell.fill = fill
    for idx, (_, width) in enumerate(columns, start=1):
        ws.column_dimensions[ws.cell(row=1, column=idx).column_letter].width = max(width, 12)


def _to_bytes(wb: Workbook) -> bytes:
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def categories_workbook(categories: Sequence[Category], sub_categories: Sequence[SubCategory]) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Categories"
    _write_sheet(
        ws,
        CATEGORY_COLUMNS,
        (
            [
                str(c.id),
                _or_na(c.category_id),
                _or_na(c.category_name),
                "Yes" if c.is_displayed else "No",
                len(c.sub_categories),
                _or_na(c.created_by_email),
                _or_na(c.updated_by_email),
                _fmt_dt(c.created_at),
                _fmt_dt(c.updated_at),
            ]
            for c in categories
        ),
        "FFE6F3FF",
    )

    ws_sub = wb.create_sheet("SubCategories")
    _write_sheet(
        ws_sub,
        SUB_CATEGORY_COLUMNS,
        (
            [
                str(sc.id),
                _or_na(sc.sub_category_id),
                _or_na(sc.sub_category_name),
                _or_na(sc.category.category_id if sc.category else None),
                _or_na(sc.category.category_name if sc.category else None),
                "Yes" if sc.is_displayed else "No",
                _or_na(sc.created_by_email),
                _or_na(sc.updated_by_email),
            ]
            for sc in sub_categories
        ),
        "FFF0E6F3",
    )
    return _to_bytes(wb)


def employees_workbook(employees: Sequence[Employee]) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Employees"
    _write_sheet(
        ws,
        EMPLOYEE_COLUMNS,
        (
            [
                str(e.id),
                _or_na(e.employer_id),
                _or_na(e.name),
                _or_na(e.email),
                _or_na(e.phone),
                _or_na(e.secondary_phone_number),
                _or_na(e.address),
                _or_na(e.position),
                _or_na(e.role),
                "Active" if e.is_active else "Inactive",
                _fmt_dt(e.last_login_at, "Never"),
                _or_na(e.profile_picture_path),
                "Yes" if e.is_forgot_password_verified else "No",
                _or_na(e.created_by_email),
                _fmt_dt(e.created_at),
                _fmt_dt(e.updated_at),
            ]
            for e in employees
        ),
        "FFE6F3FF",
    )
    return _to_bytes(wb)


def export_filename(prefix: str) -> str:
    return f"{prefix}_export_{int(time.time() * 1000)}.xlsx"
