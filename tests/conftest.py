"""
Pytest fixtures for the payroll kernel test suite.

Provides:
- A fresh in-memory SQLite database per test (tables + immutability listeners)
- Deterministic clock and OperationContext
- Captured structured logs
- In-memory employee directory and attendance source
- Module services wired to the test session
"""

import json
import logging
from collections.abc import Callable, Generator
from datetime import datetime, timezone
from decimal import Decimal
from io import StringIO
from typing import Any
from uuid import UUID, uuid4

import pytest
from sqlalchemy.orm import Session

from payroll_config import get_active_config
from payroll_kernel.db.engine import build_engine, create_tables
from payroll_kernel.domain.clock import DeterministicClock
from payroll_kernel.domain.context import OperationContext
from payroll_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from payroll_kernel.services.auditor_service import AuditorService
from payroll_modules.adjustments.service import RecurringAdjustmentService
from payroll_modules.attendance import InMemoryAttendanceSource
from payroll_modules.components.service import ComponentCatalogService
from payroll_modules.directory import EmployeeRecord, InMemoryEmployeeDirectory
from payroll_modules.loans.service import LoanLedgerService
from payroll_modules.payroll.service import PayrollEngineService
from payroll_modules.salary_profile.service import SalaryProfileService

# Test actor ID for all test operations
TEST_ACTOR_ID = UUID("00000000-0000-4000-a000-0000000000aa")

TEST_DEPARTMENT_ID = UUID("00000000-0000-4000-a000-000000000101")
OTHER_DEPARTMENT_ID = UUID("00000000-0000-4000-a000-000000000102")

TEST_START = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
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
    Capture payroll_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, loan_service):
            loan_service.create_loan(...)
            logs = captured_logs()
            assert any(r["message"] == "loan_created" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("payroll_kernel")
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
# Database
# =============================================================================


@pytest.fixture
def engine():
    """Fresh in-memory SQLite database with every payroll table."""
    eng = build_engine("sqlite://")
    create_tables(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session(engine) -> Generator[Session, None, None]:
    sess = Session(bind=engine)
    yield sess
    sess.close()


# =============================================================================
# Time and actor
# =============================================================================


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    return DeterministicClock(TEST_START)


@pytest.fixture
def ctx(deterministic_clock) -> OperationContext:
    return OperationContext(actor_id=TEST_ACTOR_ID, clock=deterministic_clock)


@pytest.fixture
def test_actor_id() -> UUID:
    return TEST_ACTOR_ID


# =============================================================================
# Configuration and collaborators
# =============================================================================


@pytest.fixture(scope="session")
def rules():
    return get_active_config()


@pytest.fixture
def directory() -> InMemoryEmployeeDirectory:
    return InMemoryEmployeeDirectory()


@pytest.fixture
def attendance() -> InMemoryAttendanceSource:
    return InMemoryAttendanceSource()


@pytest.fixture
def make_employee(directory) -> Callable[..., UUID]:
    """Register an employee in the directory and return its id."""
    counter = iter(range(1, 10_000))

    def _make(department_id: UUID | None = TEST_DEPARTMENT_ID, position_id: UUID | None = None) -> UUID:
        number = next(counter)
        record = directory.add(EmployeeRecord(
            id=uuid4(),
            employee_number=f"EMP-{number:04d}",
            full_name=f"Employee {number}",
            department_id=department_id,
            position_id=position_id,
        ))
        return record.id

    return _make


@pytest.fixture
def employee_id(make_employee) -> UUID:
    return make_employee()


@pytest.fixture
def monthly_profile_data() -> dict[str, Any]:
    """A monthly-salaried profile with every government number on file."""
    return {
        "salary_type": "monthly",
        "basic_salary": Decimal("22000"),
        "payment_method": "bank_transfer",
        "tax_status": "S",
        "sss_number": "34-1234567-8",
        "philhealth_number": "123456789012",
        "pagibig_number": "1234-5678-9012",
        "tin_number": "123-456-789-000",
    }


# =============================================================================
# Services
# =============================================================================


@pytest.fixture
def auditor(session) -> AuditorService:
    return AuditorService(session)


@pytest.fixture
def profile_service(session, rules, auditor, directory) -> SalaryProfileService:
    return SalaryProfileService(session, rules=rules, audit=auditor, directory=directory)


@pytest.fixture
def component_service(session, auditor) -> ComponentCatalogService:
    return ComponentCatalogService(session, audit=auditor)


@pytest.fixture
def adjustment_service(session, auditor, directory) -> RecurringAdjustmentService:
    return RecurringAdjustmentService(session, audit=auditor, directory=directory)


@pytest.fixture
def loan_service(session, rules, auditor) -> LoanLedgerService:
    return LoanLedgerService(session, rules=rules, audit=auditor)


@pytest.fixture
def payroll_service(session, attendance, rules, auditor) -> PayrollEngineService:
    return PayrollEngineService(session, attendance, rules=rules, audit=auditor)


@pytest.fixture
def monthly_employee(employee_id, profile_service, monthly_profile_data, ctx) -> UUID:
    """An employee with a current monthly salary profile (22000)."""
    profile_service.create_profile(employee_id, monthly_profile_data, ctx)
    return employee_id
