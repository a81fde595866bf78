"""Spreadsheet export tests: workbooks are read back with openpyxl."""

from datetime import date
from decimal import Decimal
from io import BytesIO

from openpyxl import load_workbook

from society_kernel.domain.budget import BudgetLine, summarize
from society_kernel.domain.reconciliation import EntryType, MissingEntry
from society_reports.export import (
    AUDIT_TRAIL_HEADERS,
    BUDGET_HEADERS,
    MISSING_DATA_HEADERS,
    RECORD_HEADERS,
    audit_trail_workbook,
    budget_workbook,
    default_report_filename,
    missing_data_workbook,
    records_workbook,
    save_workbook,
    workbook_bytes,
)


def _reload(wb):
    return load_workbook(BytesIO(workbook_bytes(wb))).active


def _rows(ws):
    return [list(row) for row in ws.iter_rows(values_only=True)]


class TestMissingDataExport:

    def test_headers_and_rows(self):
        entries = [
            MissingEntry(EntryType.EXPENSE, "Utilities", "Electricity", "Apr", 4),
            MissingEntry(EntryType.CAM, "Tower 1A", None, "May", 5),
        ]
        ws = _reload(missing_data_workbook(entries))

        assert ws.title == "Missing Data"
        rows = _rows(ws)
        assert tuple(rows[0]) == MISSING_DATA_HEADERS
        assert rows[1] == ["Expense", "Utilities", "Electricity", "Apr", "Missing"]
        assert rows[2] == ["CAM", "Tower 1A", "-", "May", "Missing"]
        assert ws["A1"].font.bold
        assert ws.freeze_panes == "A2"

    def test_empty_report_keeps_header(self):
        assert _rows(_reload(missing_data_workbook([]))) == [list(MISSING_DATA_HEADERS)]

    def test_default_filename(self):
        assert default_report_filename(date(2025, 6, 2)) == "Missing_Data_Report_2025-06-02.xlsx"

    def test_save_creates_parent_directories(self, tmp_path):
        target = tmp_path / "reports" / "nested" / default_report_filename(date(2025, 6, 2))
        path = save_workbook(missing_data_workbook([]), target)
        assert path.exists()
        assert load_workbook(path).active.title == "Missing Data"


class TestAuditTrailExport:

    def test_one_row_per_changed_field(
        self, workflow, auditor, approved_expense, accountant, treasurer
    ):
        workflow.request_correction(approved_expense.id, accountant, "Wrong vendor")
        workflow.approve_correction(approved_expense.id, treasurer)
        workflow.complete_correction(
            approved_expense.id, accountant,
            {"amount": "1200.00", "item_name": "Guard contract (revised)"},
        )

        rows = _rows(_reload(audit_trail_workbook(auditor.get_trail(approved_expense.id))))

        assert tuple(rows[0]) == AUDIT_TRAIL_HEADERS
        actions = list(dict.fromkeys(row[2] for row in rows[1:]))
        assert actions[:4] == [
            "Submitted", "Approved", "Correction Requested", "Correction Approved",
        ]
        completed = [row for row in rows[1:] if row[2] == "Correction Completed"]
        assert {row[5] for row in completed} >= {"amount", "item_name"}
        requested = [row for row in rows[1:] if row[2] == "Correction Requested"]
        assert requested[0][8] == "Wrong vendor"
        assert requested[0][3] == "accountant"


class TestRecordsExport:

    def test_money_columns(self, approved_expense):
        ws = _reload(records_workbook([approved_expense]))
        rows = _rows(ws)
        assert tuple(rows[0]) == RECORD_HEADERS
        assert rows[1][1] == "expense"
        assert rows[1][2] == "approved"
        assert ws["E2"].number_format == "#,##0.00"
        assert float(rows[1][4]) == 1000.00
        assert rows[1][9] == "No"


class TestBudgetExport:

    def test_lines_and_totals_row(self):
        summary = summarize("FY25-26", [
            BudgetLine(2, "Lift AMC", Decimal("2000.00"), Decimal("166.67"), Decimal("2460.00")),
            BudgetLine(1, "Security services", Decimal("12000.00"), Decimal("1000.00"),
                       Decimal("4540.00"), category="Security", committee="Facilities"),
        ])
        ws = _reload(budget_workbook(summary))

        assert ws.title == "Budget vs Actual"
        rows = _rows(ws)
        assert tuple(rows[0]) == BUDGET_HEADERS
        assert rows[1][:4] == [1, "Security services", "Security", "Facilities"]
        assert rows[1][-1] == "within"
        assert rows[2][1] == "Lift AMC"
        assert rows[2][8] == 460
        assert rows[2][-1] == "exceeded"
        assert rows[3][1] == "Total"
        assert rows[3][4] == 14000
        assert rows[3][6] == 7000
        assert ws.cell(row=4, column=2).font.bold
        assert ws["E2"].number_format == "#,##0.00"
