"""ORM models for the society kernel."""

from society_kernel.models.audit_log import AuditLogEntryModel
from society_kernel.models.budget import BudgetItemModel
from society_kernel.models.category import CategoryModel
from society_kernel.models.quota import DailyQuotaCounter
from society_kernel.models.records import (
    MODEL_BY_KIND,
    CAMEntryModel,
    ExpenseModel,
    FinancialRecordModel,
    IncomeActualModel,
    PettyCashEntryModel,
)
from society_kernel.models.sequence import SequenceCounter

__all__ = [
    "AuditLogEntryModel",
    "BudgetItemModel",
    "CAMEntryModel",
    "CategoryModel",
    "DailyQuotaCounter",
    "ExpenseModel",
    "FinancialRecordModel",
    "IncomeActualModel",
    "MODEL_BY_KIND",
    "PettyCashEntryModel",
    "SequenceCounter",
]
