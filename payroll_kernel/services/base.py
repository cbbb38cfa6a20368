"""
BaseService -- abstract base for kernel services.

Kernel services receive a SQLAlchemy ``Session`` and persist with
``session.flush()``; they never commit or roll back.  The module service
that owns the operation (or ``session_scope()``) owns the transaction.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from payroll_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """Flush-only service bound to a caller-owned session."""

    def __init__(self, session: Session):
        self.session = session
