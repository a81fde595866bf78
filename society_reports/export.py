"""
Spreadsheet export (openpyxl).

Builds the missing-data report, the budget report, a record's audit
trail and a record listing as workbooks, and turns a workbook into bytes
or a file.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import date, datetime
from enum import Enum
from io import BytesIO
from pathlib import Path
from typing import Any

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, Side
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from society_kernel.domain.budget import BudgetSummary
from society_kernel.domain.records import AuditTrail, FinancialRecord
from society_kernel.domain.reconciliation import MissingEntry

MISSING_DATA_SHEET = "Missing Data"
MISSING_DATA_HEADERS = ("Type", "Category", "Subcategory", "Month", "Status")

AUDIT_TRAIL_SHEET = "Audit Trail"
AUDIT_TRAIL_HEADERS = (
    "Seq", "When (UTC)", "Action", "Actor Role", "Actor",
    "Field", "Old Value", "New Value", "Reason",
)

RECORDS_SHEET = "Records"
RECORD_HEADERS = (
    "ID", "Kind", "Status", "Date", "Amount", "GST", "TDS", "Net Payable",
    "Description", "Correction", "Correction Reason",
)

BUDGET_SHEET = "Budget vs Actual"
BUDGET_HEADERS = (
    "SL.NO", "Item", "Category", "Committee", "Annual Budget", "Monthly Budget",
    "Actual", "Remaining", "Over By", "Utilisation %", "Status",
)

MONEY_FORMAT = "#,##0.00"

_THIN = Side(style="thin")
_BORDER = Border(left=_THIN, right=_THIN, top=_THIN, bottom=_THIN)
_CENTER = Alignment(horizontal="center", vertical="center")
_LEFT = Alignment(horizontal="left", vertical="center")
_RIGHT = Alignment(horizontal="right", vertical="center")


def default_report_filename(day: date) -> str:
    return f"Missing_Data_Report_{day.isoformat()}.xlsx"


def _autofit(ws: Worksheet, min_width: int = 10, max_width: int = 60) -> None:
    for col_idx in range(1, ws.max_column + 1):
        letter = get_column_letter(col_idx)
        longest = 0
        for cell in ws[letter]:
            text = "" if cell.value is None else str(cell.value)
            longest = max(longest, max((len(line) for line in text.splitlines()), default=0))
        ws.column_dimensions[letter].width = max(min_width, min(max_width, longest + 2))


def _new_sheet(title: str, headers: Sequence[str]) -> tuple[Workbook, Worksheet]:
    wb = Workbook()
    ws = wb.active
    ws.title = title
    ws.append(list(headers))
    for cell in ws[1]:
        cell.font = Font(bold=True)
        cell.alignment = _CENTER
        cell.border = _BORDER
    ws.freeze_panes = "A2"
    return wb, ws


def _style_body(ws: Worksheet, money_columns: Iterable[int] = ()) -> None:
    money = set(money_columns)
    for row in ws.iter_rows(min_row=2, max_row=ws.max_row, max_col=ws.max_column):
        for idx, cell in enumerate(row, start=1):
            cell.border = _BORDER
            if idx in money:
                cell.number_format = MONEY_FORMAT
                cell.alignment = _RIGHT
            else:
                cell.alignment = _LEFT


def _cell(value: Any) -> Any:
    """Plain cell value: enums by value, UUIDs and dicts as text."""
    if value is None:
        return None
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, (str, int, float, date)):
        return value
    return str(value)


def missing_data_workbook(entries: Iterable[MissingEntry]) -> Workbook:
    """One row per missing ``(type, category, subcategory, month)``."""
    wb, ws = _new_sheet(MISSING_DATA_SHEET, MISSING_DATA_HEADERS)
    for entry in entries:
        ws.append([
            entry.entry_type.value,
            entry.category,
            entry.subcategory or "-",
            entry.month,
            entry.status,
        ])
    _style_body(ws)
    _autofit(ws)
    return wb


def audit_trail_workbook(trail: AuditTrail) -> Workbook:
    """
    A record's audit trail, one row per changed field.

    Entries without field changes still get one row so every action
    appears.
    """
    wb, ws = _new_sheet(AUDIT_TRAIL_SHEET, AUDIT_TRAIL_HEADERS)
    for entry in trail.entries:
        head = [
            entry.seq,
            _cell(entry.occurred_at),
            entry.label,
            entry.actor_role,
            str(entry.actor_id),
        ]
        reason = entry.details.get("reason") or entry.details.get("note")
        changes = entry.changes
        if not changes:
            ws.append(head + [None, None, None, reason])
            continue
        for name, (old, new) in changes.items():
            ws.append(head + [name, _cell(old), _cell(new), reason])
    _style_body(ws)
    for cell in ws["B"][1:]:
        cell.number_format = "yyyy-mm-dd hh:mm:ss"
    _autofit(ws)
    return wb


def records_workbook(records: Iterable[FinancialRecord]) -> Workbook:
    """Listing of records with their money columns formatted."""
    wb, ws = _new_sheet(RECORDS_SHEET, RECORD_HEADERS)
    for record in records:
        ws.append([
            str(record.id),
            record.kind.value,
            record.status.value,
            record.record_date,
            record.amount,
            record.tax_amount,
            record.withholding_amount,
            record.net_payable,
            record.description,
            "Yes" if record.is_correction else "No",
            record.correction_reason,
        ])
    _style_body(ws, money_columns=(5, 6, 7, 8))
    _autofit(ws)
    return wb


def budget_workbook(summary: BudgetSummary) -> Workbook:
    """Budget versus actual per item, with a totals row."""
    wb, ws = _new_sheet(BUDGET_SHEET, BUDGET_HEADERS)
    for line in summary.lines:
        ws.append([
            line.serial_no,
            line.item_name,
            line.category,
            line.committee,
            line.annual_budget,
            line.monthly_budget,
            line.actual,
            line.remaining,
            line.over_amount,
            line.utilization,
            line.band.value,
        ])
    ws.append([
        None, "Total", None, None,
        summary.total_budget, None, summary.total_actual,
        summary.total_remaining, summary.total_over_amount,
        summary.utilization, None,
    ])
    _style_body(ws, money_columns=(5, 6, 7, 8, 9, 10))
    for cell in ws[ws.max_row]:
        cell.font = Font(bold=True)
    _autofit(ws)
    return wb


def workbook_bytes(wb: Workbook) -> bytes:
    bio = BytesIO()
    wb.save(bio)
    return bio.getvalue()


def save_workbook(wb: Workbook, path: Path | str) -> Path:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    wb.save(target)
    return target
