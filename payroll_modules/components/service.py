"""
Component Catalog Service (``payroll_modules.components.service``).

Responsibility
--------------
The ComponentCatalog: CRUD over salary component definitions plus
effective-dated assignment of components to employees.

Invariants enforced
-------------------
* Component codes are unique.
* System components are created only by ``seed_system_components`` and are
  never edited or deleted (SystemComponentError; ORM listeners back this).
* A component with active assignments cannot be deleted
  (ComponentInUseError).  A component whose assignments are all closed is
  deactivated instead of deleted so assignment history stays intact.
* Deleting a component nulls weak references held by other components.
* Assignments are keyed by (employee, component, effective_date): the same
  date updates the open row in place, a new date supersedes it.
"""

from collections.abc import Mapping
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from payroll_kernel.db.types import round_money
from payroll_kernel.domain.context import OperationContext
from payroll_kernel.exceptions import (
    AssignmentNotFoundError,
    ClosedRecordError,
    ComponentInUseError,
    ComponentNotFoundError,
    SystemComponentError,
    ValidationError,
)
from payroll_kernel.logging_config import get_logger
from payroll_kernel.services.auditor_service import AuditSink
from payroll_kernel.services.temporal_service import TemporalRecordService
from payroll_modules._service_helpers import (
    commit_or_flush,
    default_audit_sink,
    rollback_if_owner,
)
from payroll_modules.components.helpers import (
    normalize_assignment_data,
    normalize_component_data,
)
from payroll_modules.components.models import (
    ComponentAssignment,
    ComponentCategory,
    ComponentType,
    SalaryComponent,
)
from payroll_modules.components.orm import ComponentAssignmentModel, SalaryComponentModel
from payroll_modules.components.seed import SYSTEM_COMPONENTS

logger = get_logger("modules.components.service")


class ComponentCatalogService:
    """
    Salary component definitions and employee assignments.

    Transaction boundary: commits on success, rolls back on failure, unless
    ``auto_commit=False``.
    """

    def __init__(
        self,
        session: Session,
        audit: AuditSink | None = None,
        auto_commit: bool = True,
    ):
        self._session = session
        self._audit = default_audit_sink(session, audit)
        self._auto_commit = auto_commit
        self._assignments = TemporalRecordService(session, ComponentAssignmentModel)

    # =========================================================================
    # Catalog
    # =========================================================================

    def seed_system_components(self, ctx: OperationContext) -> list[SalaryComponent]:
        """Install missing system components.  Returns the ones created."""
        try:
            existing = set(self._session.execute(select(SalaryComponentModel.code)).scalars())
            created = []
            for definition in SYSTEM_COMPONENTS:
                if definition["code"] in existing:
                    continue
                model = SalaryComponentModel(
                    is_system_component=True,
                    is_active=True,
                    created_by_id=ctx.actor_id,
                    **definition,
                )
                self._session.add(model)
                created.append(model)
            self._session.flush()
            commit_or_flush(self._session, self._auto_commit)
            logger.info(
                "system_components_seeded",
                extra={"created_count": len(created), "existing_count": len(existing)},
            )
            return [m.to_dto() for m in created]
        except Exception:
            rollback_if_owner(self._session, self._auto_commit)
            raise

    def create_component(
        self,
        data: Mapping[str, Any],
        ctx: OperationContext,
    ) -> SalaryComponent:
        """
        Create a custom component.

        Raises:
            ValidationError: Invalid data, duplicate code, or an attempt to
                create a system component.
            ComponentNotFoundError: Unknown reference component.
        """
        try:
            clean = normalize_component_data(data)
            self._require_unique_code(clean["code"])
            if clean.get("reference_component_id") is not None:
                self._get_model(clean["reference_component_id"])

            model = SalaryComponentModel(
                is_system_component=False,
                created_by_id=ctx.actor_id,
                **clean,
            )
            self._session.add(model)
            self._session.flush()

            self._audit.record(
                ctx, "component_created", "SalaryComponent", model.id,
                {"code": model.code, "component_type": model.component_type},
            )
            commit_or_flush(self._session, self._auto_commit)
            logger.info(
                "component_created",
                extra={
                    "component_id": str(model.id),
                    "code": model.code,
                    "component_type": model.component_type,
                    "category": model.category,
                },
            )
            return model.to_dto()
        except Exception:
            rollback_if_owner(self._session, self._auto_commit)
            logger.warning("component_create_failed", exc_info=True)
            raise

    def update_component(
        self,
        component_id: UUID,
        changes: Mapping[str, Any],
        ctx: OperationContext,
    ) -> SalaryComponent:
        """
        Raises:
            SystemComponentError: The component is a system component.
            ValidationError: Invalid changes or a code that is already used.
        """
        try:
            model = self._get_model(component_id)
            if model.is_system_component:
                raise SystemComponentError(model.code, "update")

            clean = normalize_component_data(changes, require_all=False)
            if "code" in clean and clean["code"] != model.code:
                self._require_unique_code(clean["code"])
            ref = clean.get("reference_component_id")
            if ref is not None:
                if ref == model.id:
                    raise ValidationError({"reference_component_id": "cannot reference itself"})
                self._get_model(ref)

            for name, value in clean.items():
                setattr(model, name, value)
            model.updated_by_id = ctx.actor_id
            self._session.flush()

            self._audit.record(
                ctx, "component_updated", "SalaryComponent", model.id,
                {"code": model.code, "fields": sorted(clean)},
            )
            commit_or_flush(self._session, self._auto_commit)
            logger.info(
                "component_updated",
                extra={"component_id": str(model.id), "fields": sorted(clean)},
            )
            return model.to_dto()
        except Exception:
            rollback_if_owner(self._session, self._auto_commit)
            logger.warning(
                "component_update_failed",
                exc_info=True,
                extra={"component_id": str(component_id)},
            )
            raise

    def delete_component(self, component_id: UUID, ctx: OperationContext) -> bool:
        """
        Delete a custom component.

        Returns True when the row was deleted, False when it was deactivated
        because closed assignment history still references it.

        Raises:
            SystemComponentError: The component is a system component.
            ComponentInUseError: Active assignments reference the component.
        """
        try:
            model = self._get_model(component_id)
            if model.is_system_component:
                raise SystemComponentError(model.code, "delete")

            active_count = len(
                self._assignments.active_on(ctx.today(), component_id=component_id)
            )
            if active_count:
                raise ComponentInUseError(model.code, active_count)

            self._session.execute(
                update(SalaryComponentModel)
                .where(SalaryComponentModel.reference_component_id == component_id)
                .values(reference_component_id=None, updated_by_id=ctx.actor_id)
                .execution_options(synchronize_session="fetch")
            )

            history_count = self._session.execute(
                select(func.count())
                .select_from(ComponentAssignmentModel)
                .where(ComponentAssignmentModel.component_id == component_id)
            ).scalar_one()

            code = model.code
            if history_count:
                model.is_active = False
                model.updated_by_id = ctx.actor_id
                deleted = False
            else:
                self._session.delete(model)
                deleted = True
            self._session.flush()

            self._audit.record(
                ctx, "component_deleted" if deleted else "component_deactivated",
                "SalaryComponent", component_id, {"code": code},
            )
            commit_or_flush(self._session, self._auto_commit)
            logger.info(
                "component_deleted" if deleted else "component_deactivated",
                extra={"component_id": str(component_id), "code": code},
            )
            return deleted
        except Exception:
            rollback_if_owner(self._session, self._auto_commit)
            logger.warning(
                "component_delete_failed",
                exc_info=True,
                extra={"component_id": str(component_id)},
            )
            raise

    # =========================================================================
    # Catalog queries
    # =========================================================================

    def get_component(self, component_id: UUID) -> SalaryComponent:
        return self._get_model(component_id).to_dto()

    def get_by_code(self, code: str) -> SalaryComponent:
        model = self._session.execute(
            select(SalaryComponentModel).where(SalaryComponentModel.code == code)
        ).scalar_one_or_none()
        if model is None:
            raise ComponentNotFoundError(code)
        return model.to_dto()

    def list_components(self, active_only: bool = True) -> list[SalaryComponent]:
        stmt = select(SalaryComponentModel).order_by(
            SalaryComponentModel.display_order, SalaryComponentModel.code
        )
        if active_only:
            stmt = stmt.where(SalaryComponentModel.is_active.is_(True))
        return [m.to_dto() for m in self._session.execute(stmt).scalars()]

    def list_by_type(self, component_type: ComponentType | str) -> list[SalaryComponent]:
        wanted = ComponentType(component_type)
        return [c for c in self.list_components() if c.component_type == wanted]

    def list_by_category(self, category: ComponentCategory | str) -> list[SalaryComponent]:
        wanted = ComponentCategory(category)
        return [c for c in self.list_components() if c.category == wanted]

    def list_system_components(self) -> list[SalaryComponent]:
        return [c for c in self.list_components(active_only=False) if c.is_system_component]

    # =========================================================================
    # Assignments
    # =========================================================================

    def assign_component_to_employee(
        self,
        employee_id: UUID,
        component_id: UUID,
        data: Mapping[str, Any],
        ctx: OperationContext,
    ) -> ComponentAssignment:
        """
        Assign (or re-assign) a component to an employee.

        Raises:
            ComponentNotFoundError: Unknown component.
            ValidationError: Invalid data, an inactive component, or a closed
                assignment already occupying the same effective date.
        """
        try:
            component = self._get_model(component_id)
            if not component.is_active:
                raise ValidationError({"component_id": f"component {component.code} is inactive"})

            clean = normalize_assignment_data(data)
            effective_date = clean.pop("effective_date", None) or ctx.today()

            same_date = self._session.execute(
                select(ComponentAssignmentModel).where(
                    ComponentAssignmentModel.employee_id == employee_id,
                    ComponentAssignmentModel.component_id == component_id,
                    ComponentAssignmentModel.effective_date == effective_date,
                )
            ).scalar_one_or_none()

            if same_date is not None:
                if not same_date.is_active:
                    raise ValidationError({
                        "effective_date": "a closed assignment already exists on this date",
                    })
                for name, value in clean.items():
                    setattr(same_date, name, value)
                same_date.updated_by_id = ctx.actor_id
                self._session.flush()
                model, event_type = same_date, "component_assignment_updated"
            else:
                model = ComponentAssignmentModel(
                    employee_id=employee_id,
                    component_id=component_id,
                    component=component,
                    effective_date=effective_date,
                    created_by_id=ctx.actor_id,
                    **clean,
                )
                self._assignments.supersede(
                    model, effective_date, ctx,
                    employee_id=employee_id, component_id=component_id,
                )
                event_type = "component_assigned"

            self._audit.record(
                ctx, event_type, "ComponentAssignment", model.id,
                {
                    "employee_id": employee_id,
                    "component_code": component.code,
                    "amount": model.amount,
                    "effective_date": model.effective_date,
                },
            )
            commit_or_flush(self._session, self._auto_commit)
            logger.info(
                event_type,
                extra={
                    "employee_id": str(employee_id),
                    "component_code": component.code,
                    "assignment_id": str(model.id),
                    "amount": str(model.amount),
                },
            )
            return model.to_dto()
        except Exception:
            rollback_if_owner(self._session, self._auto_commit)
            logger.warning(
                "component_assignment_failed",
                exc_info=True,
                extra={"employee_id": str(employee_id), "component_id": str(component_id)},
            )
            raise

    def remove_component_from_employee(
        self,
        assignment_id: UUID,
        ctx: OperationContext,
    ) -> ComponentAssignment:
        """Close an assignment with end_date = today."""
        try:
            model = self._session.get(ComponentAssignmentModel, assignment_id)
            if model is None:
                raise AssignmentNotFoundError(str(assignment_id))
            if not model.is_active:
                raise ClosedRecordError("ComponentAssignment", str(assignment_id))

            self._assignments.close(model, ctx.today(), ctx)
            self._audit.record(
                ctx, "component_unassigned", "ComponentAssignment", model.id,
                {"employee_id": model.employee_id, "component_id": model.component_id},
            )
            commit_or_flush(self._session, self._auto_commit)
            logger.info(
                "component_unassigned",
                extra={"assignment_id": str(model.id), "employee_id": str(model.employee_id)},
            )
            return model.to_dto()
        except Exception:
            rollback_if_owner(self._session, self._auto_commit)
            raise

    def get_employee_components(
        self,
        employee_id: UUID,
        as_of: date,
    ) -> list[ComponentAssignment]:
        """Assignments of active components in force on ``as_of``."""
        rows = self._assignments.active_as_of(as_of, employee_id=employee_id)
        return [r.to_dto() for r in rows if r.component.is_active]

    def total_employee_component_amount(self, employee_id: UUID, as_of: date) -> Decimal:
        return round_money(
            sum((a.amount for a in self.get_employee_components(employee_id, as_of)), Decimal("0"))
        )

    def get_assignment_history(self, employee_id: UUID, component_id: UUID) -> list[ComponentAssignment]:
        return [
            m.to_dto()
            for m in self._assignments.history(employee_id=employee_id, component_id=component_id)
        ]

    # =========================================================================
    # Internal
    # =========================================================================

    def _get_model(self, component_id: UUID) -> SalaryComponentModel:
        model = self._session.get(SalaryComponentModel, component_id)
        if model is None:
            raise ComponentNotFoundError(str(component_id))
        return model

    def _require_unique_code(self, code: str) -> None:
        exists = self._session.execute(
            select(SalaryComponentModel.id).where(SalaryComponentModel.code == code)
        ).first()
        if exists is not None:
            raise ValidationError({"code": f"component code {code!r} already exists"})
