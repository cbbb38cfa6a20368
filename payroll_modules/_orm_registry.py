"""
Module ORM Registry (``payroll_modules._orm_registry``).

Imports every ``payroll_modules.*.orm`` module so that ``Base.metadata``
contains all payroll tables before ``create_tables()`` runs.  MUST NOT be
imported by ``payroll_kernel`` at module level.
"""


def import_all_orm_models() -> None:
    """Register kernel and module ORM models (idempotent)."""
    import payroll_kernel.models  # noqa: F401
    # fmt: off
    import payroll_modules.salary_profile.orm  # noqa: F401
    import payroll_modules.components.orm  # noqa: F401
    import payroll_modules.adjustments.orm  # noqa: F401
    import payroll_modules.loans.orm  # noqa: F401
    import payroll_modules.payroll.orm  # noqa: F401
    # fmt: on
