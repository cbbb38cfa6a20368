"""
Component Catalog Module (``payroll_modules.components``).

Defines salary components (earnings, deductions, contributions, ...) and
their effective-dated assignment to employees.  System components are
seeded once and are read-only.
"""

from payroll_modules.components.models import (
    AssignmentFrequency,
    CalculationMethod,
    ComponentAssignment,
    ComponentCategory,
    ComponentType,
    SalaryComponent,
)
from payroll_modules.components.service import ComponentCatalogService

__all__ = [
    "AssignmentFrequency",
    "CalculationMethod",
    "ComponentAssignment",
    "ComponentCatalogService",
    "ComponentCategory",
    "ComponentType",
    "SalaryComponent",
]
