"""Reports over the society kernel: missing-data reconciliation, budget and exports."""

from society_reports.budget import (
    BudgetImportResult,
    BudgetReportService,
    read_budget_workbook,
)
from society_reports.export import (
    audit_trail_workbook,
    budget_workbook,
    default_report_filename,
    missing_data_workbook,
    records_workbook,
    save_workbook,
    workbook_bytes,
)
from society_reports.missing_data import PETTY_CASH_SERIES, MissingDataReportService

__all__ = [
    "BudgetImportResult",
    "BudgetReportService",
    "MissingDataReportService",
    "PETTY_CASH_SERIES",
    "audit_trail_workbook",
    "budget_workbook",
    "default_report_filename",
    "missing_data_workbook",
    "read_budget_workbook",
    "records_workbook",
    "save_workbook",
    "workbook_bytes",
]
