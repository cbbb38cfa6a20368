"""
Effective-dated record columns.

A temporal row is valid from ``effective_date`` through ``end_date``
(inclusive, open-ended when null).  ``is_active`` is cleared when the row is
superseded or removed, after which the row is frozen (db/immutability.py).
"""

from datetime import date

from sqlalchemy import Boolean, Date
from sqlalchemy.orm import Mapped, mapped_column


class EffectiveDatedMixin:
    """Adds effective_date / end_date / is_active to an ORM model."""

    effective_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    @property
    def is_current(self) -> bool:
        """Active and never end-dated."""
        return bool(self.is_active) and self.end_date is None

    def is_active_on(self, as_of: date) -> bool:
        """Active flag set and not yet past its end date on ``as_of``."""
        return bool(self.is_active) and (self.end_date is None or self.end_date >= as_of)

    def is_valid_on(self, as_of: date) -> bool:
        """Historical validity window covers ``as_of``, regardless of flag."""
        return self.effective_date <= as_of and (
            self.end_date is None or self.end_date >= as_of
        )
