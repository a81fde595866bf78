"""Services for the society kernel (write side)."""

from society_kernel.services.action_runner import ActionResult, ActionRunner
from society_kernel.services.auditor_service import AuditorService
from society_kernel.services.notification_service import (
    LoggingNotificationSink,
    NotificationOutbox,
    NotificationRequest,
    NotificationSink,
)
from society_kernel.services.quota_service import DailyQuotaGuard
from society_kernel.services.sequence_service import SequenceService
from society_kernel.services.workflow_service import WorkflowService

__all__ = [
    "ActionResult",
    "ActionRunner",
    "AuditorService",
    "DailyQuotaGuard",
    "LoggingNotificationSink",
    "NotificationOutbox",
    "NotificationRequest",
    "NotificationSink",
    "SequenceService",
    "WorkflowService",
]
