"""
Pytest fixtures for the society finance test suite.

Provides:
- One engine and schema per test session
- Per-test sessions rolled back at teardown (commits only release savepoints)
- Deterministic clock, policy, actors and services
- Captured JSON logs and a recording notification sink

Environment Variables:
- DATABASE_URL: database to test against.  Defaults to in-memory SQLite;
  set a ``postgresql://`` URL to run against PostgreSQL.
"""

import json
import logging
import os
from collections.abc import Generator
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest
from sqlalchemy.orm import Session, sessionmaker

from society_kernel.db.engine import (
    create_tables,
    drop_tables,
    init_engine_from_url,
    reset_engine,
)
from society_kernel.domain.clock import DeterministicClock
from society_kernel.domain.policy import WorkflowPolicy
from society_kernel.domain.roles import Actor, Role
from society_kernel.domain.status import RecordKind, RecordStatus
from society_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from society_kernel.models.category import CategoryModel
from society_kernel.models.records import MODEL_BY_KIND
from society_kernel.services.auditor_service import AuditorService
from society_kernel.services.notification_service import NotificationOutbox
from society_kernel.services.quota_service import DailyQuotaGuard
from society_kernel.services.workflow_service import WorkflowService

DEFAULT_DATABASE_URL = "sqlite://"


def get_database_url() -> str:
    return os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture society_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, workflow):
            workflow.approve(record_id, treasurer)
            assert any(r["message"] == "workflow_transition" for r in captured_logs())
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("society_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Session-scoped DB infrastructure
# =============================================================================


@pytest.fixture(scope="session")
def db_engine():
    eng = init_engine_from_url(get_database_url(), echo=False)
    yield eng
    reset_engine()


@pytest.fixture(scope="session")
def db_tables(db_engine):
    """Create all tables once per session, drop once at end."""
    drop_tables()
    create_tables()
    yield
    drop_tables()


@pytest.fixture
def db_connection(db_engine, db_tables):
    """A connection whose outer transaction is rolled back at teardown."""
    conn = db_engine.connect()
    trans = conn.begin()
    yield conn
    try:
        trans.rollback()
    finally:
        conn.close()


@pytest.fixture
def session(db_connection) -> Generator[Session, None, None]:
    """
    Session joined to the test connection.

    ``session.commit()`` inside a test releases a savepoint; nothing
    reaches the database past teardown.
    """
    sess = Session(
        bind=db_connection,
        join_transaction_mode="create_savepoint",
        expire_on_commit=False,
    )
    yield sess
    sess.close()


@pytest.fixture
def session_factory(db_connection) -> sessionmaker[Session]:
    """Factory for code that opens its own sessions (ActionRunner)."""
    return sessionmaker(
        bind=db_connection,
        join_transaction_mode="create_savepoint",
        expire_on_commit=False,
    )


# =============================================================================
# Domain fixtures
# =============================================================================


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    return DeterministicClock(datetime(2025, 6, 2, 10, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def policy() -> WorkflowPolicy:
    return WorkflowPolicy()


@pytest.fixture
def accountant() -> Actor:
    return Actor(actor_id=uuid4(), role=Role.ACCOUNTANT, display_name="Accountant")


@pytest.fixture
def second_accountant() -> Actor:
    return Actor(actor_id=uuid4(), role=Role.ACCOUNTANT, display_name="Accountant 2")


@pytest.fixture
def treasurer() -> Actor:
    return Actor(actor_id=uuid4(), role=Role.TREASURER, display_name="Treasurer")


@pytest.fixture
def second_treasurer() -> Actor:
    return Actor(actor_id=uuid4(), role=Role.TREASURER, display_name="Treasurer 2")


@pytest.fixture
def lead() -> Actor:
    return Actor(actor_id=uuid4(), role=Role.LEAD, display_name="Tower Lead")


@pytest.fixture
def office_assistant() -> Actor:
    return Actor(actor_id=uuid4(), role=Role.OFFICE_ASSISTANT, display_name="Office")


# =============================================================================
# Service fixtures
# =============================================================================


class RecordingSink:
    """Notification sink that keeps what it was sent."""

    def __init__(self):
        self.sent = []

    def send(self, request) -> None:
        self.sent.append(request)


class FailingSink:
    """Notification sink whose delivery channel is down."""

    def send(self, request) -> None:
        raise ConnectionError("mail relay unavailable")


@pytest.fixture
def recording_sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def failing_sink() -> FailingSink:
    return FailingSink()


@pytest.fixture
def outbox() -> NotificationOutbox:
    return NotificationOutbox()


@pytest.fixture
def auditor(session, deterministic_clock) -> AuditorService:
    return AuditorService(session, deterministic_clock)


@pytest.fixture
def quota_guard(session, policy, deterministic_clock) -> DailyQuotaGuard:
    return DailyQuotaGuard(session, policy, deterministic_clock)


@pytest.fixture
def workflow(session, auditor, quota_guard, policy, deterministic_clock, outbox) -> WorkflowService:
    return WorkflowService(
        session,
        auditor=auditor,
        quota_guard=quota_guard,
        policy=policy,
        clock=deterministic_clock,
        outbox=outbox,
    )


# =============================================================================
# Data fixtures
# =============================================================================


@pytest.fixture
def categories(session) -> dict[str, CategoryModel]:
    """Two income and two expense categories, all active."""
    rows = {
        "maintenance": CategoryModel(kind="income", name="Maintenance Charges"),
        "clubhouse": CategoryModel(kind="income", name="Clubhouse Rental"),
        "security": CategoryModel(kind="expense", name="Security"),
        "electricity": CategoryModel(
            kind="expense", name="Utilities", subcategory="Electricity"
        ),
    }
    session.add_all(rows.values())
    session.flush()
    return rows


def expense_values(category_id, **overrides) -> dict:
    values = {
        "amount": "1000.00",
        "tax_percentage": "18",
        "withholding_percentage": "2",
        "description": "Monthly security services",
        "record_date": date(2025, 5, 15),
        "category_id": category_id,
        "item_name": "Guard contract",
    }
    values.update(overrides)
    return values


@pytest.fixture
def submit_expense(workflow, accountant, categories):
    """Submit an expense as the accountant; returns the record DTO."""

    def _submit(**overrides):
        return workflow.submit(
            RecordKind.EXPENSE,
            accountant,
            expense_values(categories["security"].id, **overrides),
        )

    return _submit


@pytest.fixture
def approved_expense(submit_expense, workflow, treasurer):
    """An expense submitted and approved through the workflow."""
    record = submit_expense()
    return workflow.approve(record.id, treasurer)


@pytest.fixture
def seed_record(session):
    """Insert a record directly in a given status, bypassing the workflow."""

    def _seed(kind: RecordKind, status: RecordStatus, created_by, **values):
        defaults = {"amount": Decimal("500.00")}
        defaults.update(values)
        record = MODEL_BY_KIND[kind.value](
            status=status.value,
            created_by_id=created_by.actor_id,
            **defaults,
        )
        session.add(record)
        session.flush()
        return record

    return _seed
