"""
Typed exception hierarchy for the society kernel.

Every error carries a class-level ``code`` (machine-readable, safe to show
in an API or a toast) and stores its context as attributes, so callers
catch by type and read structured data instead of parsing messages.

Hierarchy:

    SocietyKernelError (base)
    |
    +-- AuthenticationError
    |   +-- NotAuthenticatedError
    |
    +-- RecordError
    |   +-- RecordNotFoundError
    |   +-- InvalidRecordError
    |   +-- CAMFlatCountError
    |
    +-- WorkflowError
    |   +-- InvalidTransitionError
    |   +-- UnauthorizedActorError
    |   +-- CorrectionReasonRequiredError
    |
    +-- QuotaError
    |   +-- DailyQuotaExceededError
    |
    +-- BulkTransitionError
    |
    +-- BudgetError
    |   +-- BudgetImportError
    |
    +-- AuditError
    |   +-- AuditChainBrokenError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- ConfigurationError

Codes:

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Authentication  | NOT_AUTHENTICATED           | Action attempted without an actor
Record          | RECORD_NOT_FOUND            | Record ID doesn't exist
                | INVALID_RECORD              | Field values rejected at submit/edit
                | CAM_FLAT_COUNT              | paid + pending exceeds tower flats
Workflow        | INVALID_TRANSITION          | (kind, status, action) not in table
                | UNAUTHORIZED_ACTOR          | Role not allowed for the transition
                | CORRECTION_REASON_REQUIRED  | Blank correction reason
Quota           | DAILY_QUOTA_EXCEEDED        | Batch larger than remaining quota
Bulk            | BULK_TRANSITION_FAILED      | One record failed, batch rolled back
Budget          | BUDGET_IMPORT_ERROR         | Budget sheet has no recognisable header
Audit           | AUDIT_CHAIN_BROKEN          | Hash chain validation failed
Immutability    | IMMUTABILITY_VIOLATION      | UPDATE/DELETE of an audit entry
Configuration   | CONFIGURATION_ERROR         | Config file invalid
"""


class SocietyKernelError(Exception):
    """
    Base exception for all society kernel errors.

    All subclasses must have a `code` class attribute.
    """

    code: str = "SOCIETY_KERNEL_ERROR"


# Authentication


class AuthenticationError(SocietyKernelError):
    """Base exception for authentication errors."""

    code: str = "AUTHENTICATION_ERROR"


class NotAuthenticatedError(AuthenticationError):
    """An action was attempted without an authenticated actor."""

    code: str = "NOT_AUTHENTICATED"

    def __init__(self, action: str = ""):
        self.action = action
        super().__init__("Not authenticated")


# Records


class RecordError(SocietyKernelError):
    """Base exception for financial record errors."""

    code: str = "RECORD_ERROR"


class RecordNotFoundError(RecordError):
    """Financial record with the given ID was not found."""

    code: str = "RECORD_NOT_FOUND"

    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(f"Record not found: {record_id}")


class InvalidRecordError(RecordError):
    """Submitted or edited field values were rejected."""

    code: str = "INVALID_RECORD"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid value for {field}: {reason}")


class CAMFlatCountError(RecordError):
    """Paid and pending flat counts do not fit the tower."""

    code: str = "CAM_FLAT_COUNT"

    def __init__(self, tower: str, paid_flats: int, pending_flats: int, total_flats: int):
        self.tower = tower
        self.paid_flats = paid_flats
        self.pending_flats = pending_flats
        self.total_flats = total_flats
        super().__init__(
            f"Tower {tower}: paid ({paid_flats}) + pending ({pending_flats}) "
            f"cannot exceed {total_flats} flats"
        )


# Workflow


class WorkflowError(SocietyKernelError):
    """Base exception for workflow transition errors."""

    code: str = "WORKFLOW_ERROR"


class InvalidTransitionError(WorkflowError):
    """No transition exists for this (kind, status, action)."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, record_kind: str, from_status: str | None, action: str):
        self.record_kind = record_kind
        self.from_status = from_status
        self.action = action
        super().__init__(
            f"Cannot {action} a {record_kind} in status {from_status or '(new)'}"
        )


class UnauthorizedActorError(WorkflowError):
    """The actor's role may not perform this transition."""

    code: str = "UNAUTHORIZED_ACTOR"

    def __init__(self, actor_id: str, role: str, action: str, allowed_roles: tuple[str, ...]):
        self.actor_id = actor_id
        self.role = role
        self.action = action
        self.allowed_roles = allowed_roles
        super().__init__(
            f"Role {role} may not {action} (allowed: {', '.join(allowed_roles)})"
        )


class CorrectionReasonRequiredError(WorkflowError):
    """A correction request needs a non-blank reason."""

    code: str = "CORRECTION_REASON_REQUIRED"

    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(f"A correction reason is required for {record_id}")


# Quota


class QuotaError(SocietyKernelError):
    """Base exception for quota errors."""

    code: str = "QUOTA_ERROR"


class DailyQuotaExceededError(QuotaError):
    """The batch is larger than what is left of today's quota."""

    code: str = "DAILY_QUOTA_EXCEEDED"

    def __init__(self, requested: int, remaining: int, limit: int):
        self.requested = requested
        self.remaining = remaining
        self.limit = limit
        super().__init__(
            f"Daily correction limit reached: {remaining} of {limit} remaining, "
            f"{requested} requested"
        )


# Bulk


class BulkTransitionError(SocietyKernelError):
    """
    A record in a bulk transition failed; the whole batch was rolled back.

    ``cause`` is the underlying error for the failing record.
    """

    code: str = "BULK_TRANSITION_FAILED"

    def __init__(self, action: str, record_id: str, cause: Exception, batch_size: int):
        self.action = action
        self.record_id = record_id
        self.cause = cause
        self.batch_size = batch_size
        super().__init__(
            f"Bulk {action} of {batch_size} record(s) rolled back: "
            f"{record_id} failed ({cause})"
        )


# Budget


class BudgetError(SocietyKernelError):
    """Base exception for budget planning errors."""

    code: str = "BUDGET_ERROR"


class BudgetImportError(BudgetError):
    """A budget workbook could not be read."""

    code: str = "BUDGET_IMPORT_ERROR"

    def __init__(self, sheet: str, reason: str):
        self.sheet = sheet
        self.reason = reason
        super().__init__(f"Cannot import budget sheet {sheet!r}: {reason}")


# Audit


class AuditError(SocietyKernelError):
    """Base exception for audit-related errors."""

    code: str = "AUDIT_ERROR"


class AuditChainBrokenError(AuditError):
    """Audit hash chain validation failed."""

    code: str = "AUDIT_CHAIN_BROKEN"

    def __init__(self, audit_entry_id: str, expected_hash: str, actual_hash: str):
        self.audit_entry_id = audit_entry_id
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            f"Audit chain broken at {audit_entry_id}: "
            f"expected {expected_hash}, found {actual_hash}"
        )


# Immutability


class ImmutabilityError(SocietyKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an audit log entry."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Configuration


class ConfigurationError(SocietyKernelError):
    """Configuration file is missing a key or holds an invalid value."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Invalid configuration '{key}': {reason}")
