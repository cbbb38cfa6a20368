"""
TemporalRecordService -- supersede-instead-of-mutate for effective-dated rows.

Responsibility:
    One implementation of the history rules shared by salary profiles,
    component assignments and recurring allowances/deductions.  Rows are
    addressed by a *key* (column=value pairs, e.g. ``employee_id=...`` or
    ``employee_id=..., kind="allowance", adjustment_type="rice"``).

Predicates:
    current      is_active AND end_date IS NULL
    active on D  is_active AND (end_date IS NULL OR end_date >= D)
    valid on D   effective_date <= D AND (end_date IS NULL OR end_date >= D)
                 (historical, ignores is_active)

Flush-only; the owning module service commits.
"""

from datetime import date
from typing import Generic

from sqlalchemy import func, or_, select

from payroll_kernel.domain.context import OperationContext
from payroll_kernel.logging_config import get_logger
from payroll_kernel.services.base import BaseService, ModelType

logger = get_logger("services.temporal")

_OPEN_END = date(9999, 12, 31)


class TemporalRecordService(BaseService[ModelType], Generic[ModelType]):

    def __init__(self, session, model: type[ModelType]):
        super().__init__(session)
        self.model = model

    def _key_clauses(self, key: dict) -> list:
        return [getattr(self.model, name) == value for name, value in key.items()]

    def _newest_first(self):
        # Open-ended rows sort before closed rows sharing an effective date
        return (
            self.model.effective_date.desc(),
            func.coalesce(self.model.end_date, _OPEN_END).desc(),
            self.model.created_at.desc(),
        )

    # Queries

    def current(self, **key) -> ModelType | None:
        """The open record for ``key`` (at most one by invariant)."""
        return self.session.execute(
            select(self.model)
            .where(
                *self._key_clauses(key),
                self.model.is_active.is_(True),
                self.model.end_date.is_(None),
            )
            .order_by(*self._newest_first())
            .limit(1)
        ).scalar_one_or_none()

    def active_on(self, as_of: date, **key) -> list[ModelType]:
        return list(
            self.session.execute(
                select(self.model)
                .where(
                    *self._key_clauses(key),
                    self.model.is_active.is_(True),
                    or_(self.model.end_date.is_(None), self.model.end_date >= as_of),
                )
                .order_by(*self._newest_first())
            ).scalars()
        )

    def active_as_of(self, as_of: date, **key) -> list[ModelType]:
        """Active records that have also started by ``as_of``."""
        return [r for r in self.active_on(as_of, **key) if r.effective_date <= as_of]

    def valid_on(self, as_of: date, **key) -> list[ModelType]:
        return list(
            self.session.execute(
                select(self.model)
                .where(
                    *self._key_clauses(key),
                    self.model.effective_date <= as_of,
                    or_(self.model.end_date.is_(None), self.model.end_date >= as_of),
                )
                .order_by(*self._newest_first())
            ).scalars()
        )

    def history(self, **key) -> list[ModelType]:
        """Every version for ``key``, newest first."""
        return list(
            self.session.execute(
                select(self.model)
                .where(*self._key_clauses(key))
                .order_by(*self._newest_first())
            ).scalars()
        )

    def open_records(self, **key) -> list[ModelType]:
        return list(
            self.session.execute(
                select(self.model).where(
                    *self._key_clauses(key), self.model.is_active.is_(True)
                )
            ).scalars()
        )

    # Mutations

    def close(self, record: ModelType, end_date: date, ctx: OperationContext) -> ModelType:
        """Deactivate ``record`` and stamp its end date."""
        record.end_date = end_date
        record.is_active = False
        record.updated_by_id = ctx.actor_id
        self.session.flush()
        logger.debug(
            "temporal_record_closed",
            extra={
                "entity_type": self.model.__name__,
                "entity_id": str(record.id),
                "end_date": end_date,
            },
        )
        return record

    def supersede(
        self,
        new_record: ModelType,
        end_date: date,
        ctx: OperationContext,
        **key,
    ) -> list[ModelType]:
        """
        Close every active record for ``key`` and insert ``new_record``.

        Returns the records that were closed.
        """
        closed = [self.close(r, end_date, ctx) for r in self.open_records(**key)]
        new_record.is_active = True
        new_record.created_by_id = ctx.actor_id
        self.session.add(new_record)
        self.session.flush()
        logger.debug(
            "temporal_record_superseded",
            extra={
                "entity_type": self.model.__name__,
                "entity_id": str(new_record.id),
                "closed_count": len(closed),
            },
        )
        return closed
