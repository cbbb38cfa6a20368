"""
Tests for ComponentCatalogService.

Validates:
- System component seeding is idempotent and read-only
- Custom component CRUD and code uniqueness
- Deletion rules: in use, deactivation with history, reference nulling
- Effective-dated assignments
"""

from datetime import date
from decimal import Decimal

import pytest

from payroll_kernel.exceptions import (
    ComponentInUseError,
    ComponentNotFoundError,
    ImmutabilityViolationError,
    SystemComponentError,
    ValidationError,
)
from payroll_modules.components.models import ComponentCategory, ComponentType
from payroll_modules.components.orm import SalaryComponentModel
from payroll_modules.components.seed import SYSTEM_COMPONENT_CODES


def _component(code="HAZARD", **overrides):
    data = {
        "code": code,
        "name": f"{code.title()} Pay",
        "component_type": "earning",
        "category": "regular",
        "calculation_method": "fixed_amount",
    }
    data.update(overrides)
    return data


class TestSystemComponents:

    def test_seed_is_idempotent(self, component_service, ctx):
        created = component_service.seed_system_components(ctx)
        assert {c.code for c in created} == SYSTEM_COMPONENT_CODES
        assert all(c.is_system_component for c in created)

        assert component_service.seed_system_components(ctx) == []
        assert len(component_service.list_system_components()) == len(SYSTEM_COMPONENT_CODES)

    def test_system_component_cannot_be_updated(self, component_service, ctx):
        component_service.seed_system_components(ctx)
        sss = component_service.get_by_code("SSS")

        with pytest.raises(SystemComponentError) as exc_info:
            component_service.update_component(sss.id, {"name": "Renamed"}, ctx)
        assert exc_info.value.component_code == "SSS"

    def test_system_component_cannot_be_deleted(self, component_service, ctx):
        component_service.seed_system_components(ctx)
        basic = component_service.get_by_code("BASIC")

        with pytest.raises(SystemComponentError):
            component_service.delete_component(basic.id, ctx)
        assert component_service.get_component(basic.id).is_active

    def test_cannot_create_system_component(self, component_service, ctx):
        with pytest.raises(ValidationError) as exc_info:
            component_service.create_component(_component(is_system_component=True), ctx)
        assert "is_system_component" in exc_info.value.errors

    def test_orm_guard_on_system_rows(self, component_service, ctx, session):
        component_service.seed_system_components(ctx)
        tax = component_service.get_by_code("TAX")

        model = session.get(SalaryComponentModel, tax.id)
        model.name = "Changed"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

    def test_list_filters(self, component_service, ctx):
        component_service.seed_system_components(ctx)
        overtime = component_service.list_by_category(ComponentCategory.OVERTIME)
        assert {c.code for c in overtime} == {"OT_REG", "OT_HOLIDAY", "OT_DOUBLE", "OT_TRIPLE"}
        contributions = component_service.list_by_type("contribution")
        assert {c.code for c in contributions} == {"SSS", "PHILHEALTH", "PAGIBIG"}


class TestCustomComponents:

    def test_create_and_update(self, component_service, ctx):
        created = component_service.create_component(_component(default_amount="1500"), ctx)
        assert created.component_type == ComponentType.EARNING
        assert created.default_amount == Decimal("1500")
        assert not created.is_system_component

        updated = component_service.update_component(
            created.id, {"name": "Hazard Differential", "is_taxable": False}, ctx
        )
        assert updated.name == "Hazard Differential"
        assert updated.is_taxable is False

    def test_duplicate_code(self, component_service, ctx):
        component_service.create_component(_component(), ctx)
        with pytest.raises(ValidationError) as exc_info:
            component_service.create_component(_component(), ctx)
        assert "code" in exc_info.value.errors

    def test_invalid_enum_and_negative_amount(self, component_service, ctx):
        with pytest.raises(ValidationError) as exc_info:
            component_service.create_component(
                _component(component_type="bonus", default_amount="-1"), ctx
            )
        assert set(exc_info.value.errors) == {"component_type", "default_amount"}

    @pytest.mark.parametrize("value", ["NaN", "Infinity"])
    def test_non_finite_default_amount(self, component_service, ctx, value):
        with pytest.raises(ValidationError) as exc_info:
            component_service.create_component(_component(default_amount=value), ctx)
        assert set(exc_info.value.errors) == {"default_amount"}

    def test_self_reference_rejected(self, component_service, ctx):
        created = component_service.create_component(_component(), ctx)
        with pytest.raises(ValidationError):
            component_service.update_component(
                created.id, {"reference_component_id": created.id}, ctx
            )

    def test_unknown_component(self, component_service):
        with pytest.raises(ComponentNotFoundError):
            component_service.get_by_code("NOPE")


class TestDeleteComponent:

    def test_unused_component_is_deleted(self, component_service, ctx):
        created = component_service.create_component(_component(), ctx)
        assert component_service.delete_component(created.id, ctx) is True
        with pytest.raises(ComponentNotFoundError):
            component_service.get_component(created.id)

    def test_in_use_component_rejected(self, component_service, employee_id, ctx):
        created = component_service.create_component(_component(), ctx)
        component_service.assign_component_to_employee(employee_id, created.id, {"amount": "100"}, ctx)

        with pytest.raises(ComponentInUseError) as exc_info:
            component_service.delete_component(created.id, ctx)
        assert exc_info.value.assignment_count == 1

    def test_component_with_history_is_deactivated(self, component_service, employee_id, ctx):
        created = component_service.create_component(_component(), ctx)
        assignment = component_service.assign_component_to_employee(
            employee_id, created.id, {"amount": "100"}, ctx
        )
        component_service.remove_component_from_employee(assignment.id, ctx)

        assert component_service.delete_component(created.id, ctx) is False
        assert component_service.get_component(created.id).is_active is False
        assert created.id not in {c.id for c in component_service.list_components()}

    def test_references_are_nulled(self, component_service, ctx):
        base = component_service.create_component(_component("BASE_ALLOW"), ctx)
        derived = component_service.create_component(
            _component(
                "DERIVED", calculation_method="percentage_of_component",
                reference_component_id=base.id, default_percentage="10",
            ),
            ctx,
        )
        component_service.delete_component(base.id, ctx)
        assert component_service.get_component(derived.id).reference_component_id is None


class TestAssignments:

    @pytest.fixture
    def hazard(self, component_service, ctx):
        return component_service.create_component(_component(), ctx)

    def test_assignment_defaults(self, component_service, hazard, employee_id, ctx):
        assignment = component_service.assign_component_to_employee(
            employee_id, hazard.id, {"amount": "1500"}, ctx
        )
        assert assignment.component_code == "HAZARD"
        assert assignment.frequency == "per_payroll"
        assert assignment.effective_date == date(2024, 3, 1)
        assert component_service.total_employee_component_amount(
            employee_id, date(2024, 3, 1)
        ) == Decimal("1500.00")

    def test_same_date_updates_in_place(self, component_service, hazard, employee_id, ctx):
        first = component_service.assign_component_to_employee(
            employee_id, hazard.id, {"amount": "1500"}, ctx
        )
        second = component_service.assign_component_to_employee(
            employee_id, hazard.id, {"amount": "1800"}, ctx
        )
        assert second.id == first.id
        assert second.amount == Decimal("1800")
        assert len(component_service.get_assignment_history(employee_id, hazard.id)) == 1

    def test_new_date_supersedes(self, component_service, hazard, employee_id, ctx):
        component_service.assign_component_to_employee(
            employee_id, hazard.id, {"amount": "1500"}, ctx
        )
        component_service.assign_component_to_employee(
            employee_id, hazard.id, {"amount": "2000", "effective_date": date(2024, 4, 1)}, ctx
        )

        history = component_service.get_assignment_history(employee_id, hazard.id)
        assert [a.amount for a in history] == [Decimal("2000"), Decimal("1500")]
        assert history[1].is_active is False
        # Not started yet on March 1
        assert component_service.get_employee_components(employee_id, date(2024, 3, 1)) == []
        assert component_service.total_employee_component_amount(
            employee_id, date(2024, 4, 1)
        ) == Decimal("2000.00")

    def test_inactive_component_cannot_be_assigned(
        self, component_service, hazard, employee_id, ctx,
    ):
        component_service.update_component(hazard.id, {"is_active": False}, ctx)
        with pytest.raises(ValidationError):
            component_service.assign_component_to_employee(
                employee_id, hazard.id, {"amount": "10"}, ctx
            )

    @pytest.mark.parametrize("field", ["amount", "percentage"])
    def test_non_finite_assignment_values(
        self, component_service, hazard, employee_id, ctx, field,
    ):
        with pytest.raises(ValidationError) as exc_info:
            component_service.assign_component_to_employee(
                employee_id, hazard.id, {field: "Infinity"}, ctx
            )
        assert field in exc_info.value.errors

    def test_remove_assignment(self, component_service, hazard, employee_id, ctx):
        assignment = component_service.assign_component_to_employee(
            employee_id, hazard.id, {"amount": "1500"}, ctx
        )
        removed = component_service.remove_component_from_employee(assignment.id, ctx)
        assert removed.end_date == date(2024, 3, 1)
        assert component_service.total_employee_component_amount(
            employee_id, date(2024, 3, 2)
        ) == Decimal("0.00")
