"""
Attendance collaborator (``payroll_modules.attendance``).

Attendance capture lives outside payroll.  The engine consumes one
``AttendanceSummary`` per employee per date and only trusts rows marked
``is_finalized``.
"""

from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Protocol, runtime_checkable
from uuid import UUID


@dataclass(frozen=True)
class AttendanceSummary:
    employee_id: UUID
    attendance_date: date
    is_present: bool
    total_hours_worked: Decimal = Decimal("0")
    regular_hours: Decimal = Decimal("0")
    overtime_hours: Decimal = Decimal("0")
    late_minutes: int = 0
    undertime_minutes: int = 0
    is_finalized: bool = True

    def __post_init__(self):
        for name in ("total_hours_worked", "regular_hours", "overtime_hours"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} cannot be negative")
        if self.late_minutes < 0 or self.undertime_minutes < 0:
            raise ValueError("late/undertime minutes cannot be negative")


@runtime_checkable
class AttendanceSource(Protocol):

    def get_finalized_summaries(
        self,
        employee_id: UUID,
        start_date: date,
        end_date: date,
    ) -> Sequence[AttendanceSummary]:
        ...


class InMemoryAttendanceSource:
    """Holds summaries in memory; filters like a timekeeping backend would."""

    def __init__(self):
        self._rows: dict[UUID, list[AttendanceSummary]] = defaultdict(list)

    def add(self, summary: AttendanceSummary) -> AttendanceSummary:
        self._rows[summary.employee_id].append(summary)
        return summary

    def get_finalized_summaries(
        self,
        employee_id: UUID,
        start_date: date,
        end_date: date,
    ) -> Sequence[AttendanceSummary]:
        return [
            s for s in self._rows.get(employee_id, [])
            if s.is_finalized and start_date <= s.attendance_date <= end_date
        ]
