"""
Employee directory collaborator (``payroll_modules.directory``).

Payroll reads employees (id, department, position, status) but never writes
them.  Any object satisfying ``EmployeeDirectory`` can be injected;
``InMemoryEmployeeDirectory`` serves embedded use and tests.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol, runtime_checkable
from uuid import UUID


@dataclass(frozen=True)
class EmployeeRecord:
    id: UUID
    employee_number: str
    full_name: str
    department_id: UUID | None = None
    position_id: UUID | None = None
    is_active: bool = True


@runtime_checkable
class EmployeeDirectory(Protocol):

    def get_employee(self, employee_id: UUID) -> EmployeeRecord | None:
        ...

    def find_employees(
        self,
        department_id: UUID | None = None,
        position_id: UUID | None = None,
    ) -> list[EmployeeRecord]:
        """Active employees matching every filter that is not None."""
        ...


class InMemoryEmployeeDirectory:
    """Dictionary-backed directory."""

    def __init__(self, employees: Iterable[EmployeeRecord] = ()):
        self._employees: dict[UUID, EmployeeRecord] = {e.id: e for e in employees}

    def add(self, employee: EmployeeRecord) -> EmployeeRecord:
        self._employees[employee.id] = employee
        return employee

    def get_employee(self, employee_id: UUID) -> EmployeeRecord | None:
        return self._employees.get(employee_id)

    def find_employees(
        self,
        department_id: UUID | None = None,
        position_id: UUID | None = None,
    ) -> list[EmployeeRecord]:
        return [
            e for e in self._employees.values()
            if e.is_active
            and (department_id is None or e.department_id == department_id)
            and (position_id is None or e.position_id == position_id)
        ]
