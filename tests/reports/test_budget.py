"""
Budget report tests.

Seeds FY25-26 budget items and expenses linked to them, then checks the
actual spend, the over-budget lines, and the budget sheet import.
"""

from datetime import date
from decimal import Decimal
from io import BytesIO

import pytest
from openpyxl import Workbook

from society_kernel.domain.budget import BudgetBand, BudgetLine
from society_kernel.domain.status import RecordKind, RecordStatus
from society_kernel.exceptions import BudgetImportError, UnauthorizedActorError
from society_kernel.models.budget import BudgetItemModel
from society_reports.budget import BudgetReportService, read_budget_workbook


@pytest.fixture
def service(session, policy) -> BudgetReportService:
    return BudgetReportService(session, policy)


@pytest.fixture
def budget_items(session) -> dict[str, BudgetItemModel]:
    rows = {
        "security": BudgetItemModel(
            fiscal_year="FY25-26", serial_no=1, item_name="Security services",
            category="Security", committee="Facilities",
            annual_budget=Decimal("12000.00"), monthly_budget=Decimal("1000.00"),
        ),
        "lifts": BudgetItemModel(
            fiscal_year="FY25-26", serial_no=2, item_name="Lift AMC",
            category="Maintenance", committee="Facilities",
            annual_budget=Decimal("2000.00"), monthly_budget=Decimal("166.67"),
        ),
        "last_year": BudgetItemModel(
            fiscal_year="FY24-25", serial_no=1, item_name="Security services",
            annual_budget=Decimal("9000.00"), monthly_budget=Decimal("750.00"),
        ),
    }
    session.add_all(rows.values())
    session.flush()
    return rows


@pytest.fixture
def spend(budget_items, seed_record, accountant):
    def expense(item, status, day, amount, tax="0"):
        seed_record(
            RecordKind.EXPENSE, status, accountant,
            amount=Decimal(amount), tax_amount=Decimal(tax),
            record_date=day, budget_item_id=budget_items[item].id,
        )

    expense("security", RecordStatus.APPROVED, date(2025, 4, 10), "3000.00", "540.00")
    expense("security", RecordStatus.CORRECTION_PENDING, date(2025, 6, 1), "1000.00")
    expense("security", RecordStatus.PENDING, date(2025, 6, 1), "5000.00")
    expense("security", RecordStatus.REJECTED, date(2025, 6, 1), "5000.00")
    expense("security", RecordStatus.APPROVED, date(2025, 3, 31), "7000.00")
    expense("lifts", RecordStatus.APPROVED, date(2025, 5, 2), "2000.00", "360.00")
    expense("lifts", RecordStatus.CORRECTION_APPROVED, date(2026, 2, 20), "100.00")
    seed_record(
        RecordKind.EXPENSE, RecordStatus.APPROVED, accountant,
        amount=Decimal("999.00"), record_date=date(2025, 5, 2),
    )
    return 2025


class TestActuals:

    def test_counts_posted_expenses_with_gst(self, service, budget_items, spend):
        actuals = service.actuals(spend)
        assert actuals[budget_items["security"].id] == Decimal("4540.00")
        assert actuals[budget_items["lifts"].id] == Decimal("2460.00")
        assert len(actuals) == 2

    def test_as_of_cuts_the_year_short(self, service, budget_items, spend):
        actuals = service.actuals(spend, as_of=date(2025, 5, 31))
        assert actuals[budget_items["security"].id] == Decimal("3540.00")
        assert actuals[budget_items["lifts"].id] == Decimal("2360.00")


class TestSummary:

    def test_lines_in_serial_order(self, service, spend):
        summary = service.summary(spend)
        assert summary.fiscal_year == "FY25-26"
        assert [line.item_name for line in summary.lines] == ["Security services", "Lift AMC"]

    def test_over_budget_detection(self, service, spend):
        summary = service.summary(spend)
        security, lifts = summary.lines

        assert security.utilization == Decimal("37.83")
        assert security.band == BudgetBand.WITHIN
        assert security.remaining == Decimal("7460.00")

        assert lifts.is_over_budget
        assert lifts.over_amount == Decimal("460.00")
        assert summary.over_budget == (lifts,)
        assert summary.total_over_amount == Decimal("460.00")

    def test_item_without_spend(self, service, budget_items):
        summary = service.summary(2024)
        assert len(summary.lines) == 1
        assert summary.lines[0].actual == 0
        assert summary.lines[0].remaining == Decimal("9000.00")

    def test_logs_totals(self, service, spend, captured_logs):
        service.summary(spend)
        built = [r for r in captured_logs() if r["message"] == "budget_report_built"]
        assert built[0]["over_budget_count"] == 1
        assert built[0]["fiscal_year"] == "FY25-26"


class TestWorkflowIntegration:

    def test_approved_submission_counts(
        self, service, workflow, submit_expense, treasurer, budget_items
    ):
        record = submit_expense(budget_item_id=str(budget_items["lifts"].id))
        assert record.budget_item_id == budget_items["lifts"].id
        assert service.actuals(2025) == {}

        workflow.approve(record.id, treasurer)
        assert service.actuals(2025) == {budget_items["lifts"].id: Decimal("1180.00")}


class TestImport:

    def _lines(self):
        return [
            BudgetLine(1, "Security services", Decimal("15000.00"), Decimal("1250.00"),
                       category="Security"),
            BudgetLine(3, "Pest control", Decimal("1200.00"), Decimal("100.00")),
        ]

    def test_upserts_by_serial(self, service, budget_items, treasurer):
        result = service.import_lines(2025, self._lines(), treasurer)

        assert (result.created, result.updated, result.total) == (1, 1, 2)
        assert budget_items["security"].annual_budget == Decimal("15000.00")
        assert budget_items["security"].committee is None
        assert budget_items["last_year"].annual_budget == Decimal("9000.00")
        assert [item.serial_no for item in service.items(2025)] == [1, 2, 3]

    def test_reimport_updates_in_place(self, service, treasurer):
        service.import_lines(2026, self._lines(), treasurer)
        again = service.import_lines(2026, self._lines(), treasurer)
        assert (again.created, again.updated) == (0, 2)
        assert len(service.items(2026)) == 2

    def test_treasurer_only(self, service, accountant):
        with pytest.raises(UnauthorizedActorError):
            service.import_lines(2025, self._lines(), accountant)
        assert service.items(2025) == []


def _sheet_bytes(rows, title="Sheet1") -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = title
    for row in rows:
        ws.append(list(row))
    bio = BytesIO()
    wb.save(bio)
    return bio.getvalue()


_BUDGET_ROWS = [
    ("Green Meadows Residents Welfare Association",),
    ("Outflow budget FY25-26",),
    (),
    ("SL.NO", "ITEM", "CATEGORY", "COMMITTEE", "AMOUNT WITH TAX", "AMOUNT WITH TAX"),
    (1, "Security services", "Security", "Facilities", "₹6,00,000", "50,000"),
    (2, "Pest control", "Housekeeping", "Facilities", 12000, None),
    (None, "Housekeeping", None, None, None, None),
    (3, "Total", None, None, 612000, 51000),
    (4, "Amount per annum", None, None, 612000, None),
]


class TestReadBudgetWorkbook:

    def test_rows_below_header(self):
        lines = read_budget_workbook(_sheet_bytes(_BUDGET_ROWS))
        assert [line.serial_no for line in lines] == [1, 2]
        assert lines[0].annual_budget == Decimal("600000.00")
        assert lines[0].monthly_budget == Decimal("50000.00")
        assert lines[1].monthly_budget == Decimal("1000.00")

    def test_prefers_whole_year_summary_sheet(self):
        wb = Workbook()
        wb.active.title = "Notes"
        wb.active.append(["No budget on this sheet"])
        summary = wb.create_sheet("Summary-FOR WHOLE YEAR")
        for row in _BUDGET_ROWS:
            summary.append(list(row))
        bio = BytesIO()
        wb.save(bio)

        assert len(read_budget_workbook(bio.getvalue())) == 2

    def test_missing_header(self):
        with pytest.raises(BudgetImportError) as exc_info:
            read_budget_workbook(_sheet_bytes([(1, "Security", None, None, 100, 10)]))
        assert exc_info.value.code == "BUDGET_IMPORT_ERROR"
        assert exc_info.value.sheet == "Sheet1"

    def test_reads_from_a_path(self, tmp_path):
        path = tmp_path / "outflow.xlsx"
        path.write_bytes(_sheet_bytes(_BUDGET_ROWS))
        assert len(read_budget_workbook(path)) == 2
