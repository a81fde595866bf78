"""
Pure domain layer.

Status vocabulary, roles, the transition table, record field rules, the
quota decision, the reconciliation set difference and budget utilisation.
Nothing here touches the database, the clock or the network (except
SystemClock).
"""

from society_kernel.domain.budget import BudgetBand, BudgetLine, BudgetSummary
from society_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from society_kernel.domain.policy import WorkflowPolicy
from society_kernel.domain.quota import (
    QuotaDecision,
    QuotaScope,
    evaluate_quota,
    exempt_decision,
)
from society_kernel.domain.records import AuditLogEntry, AuditTrail, FinancialRecord
from society_kernel.domain.roles import Actor, Role
from society_kernel.domain.status import RecordKind, RecordStatus
from society_kernel.domain.workflow import (
    TRANSITIONS,
    AuditAction,
    NotifyTarget,
    Transition,
    WorkflowAction,
    resolve_transition,
)

__all__ = [
    # Time
    "Clock",
    "DeterministicClock",
    "SystemClock",
    # Vocabulary
    "RecordKind",
    "RecordStatus",
    "Role",
    "Actor",
    # Workflow
    "TRANSITIONS",
    "Transition",
    "WorkflowAction",
    "AuditAction",
    "NotifyTarget",
    "resolve_transition",
    "WorkflowPolicy",
    # Quota
    "QuotaScope",
    "QuotaDecision",
    "evaluate_quota",
    "exempt_decision",
    # Budget
    "BudgetBand",
    "BudgetLine",
    "BudgetSummary",
    # DTOs
    "FinancialRecord",
    "AuditLogEntry",
    "AuditTrail",
]
