"""Database layer - engine, base classes, types, temporal records."""

from payroll_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from payroll_kernel.db.engine import (
    build_engine,
    create_tables,
    get_engine,
    get_session,
    init_engine_from_url,
    session_scope,
)
from payroll_kernel.db.temporal import EffectiveDatedMixin
from payroll_kernel.db.types import Money, PayloadHash, Rate, round_money

__all__ = [
    "build_engine",
    "init_engine_from_url",
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "EffectiveDatedMixin",
    "Money",
    "Rate",
    "PayloadHash",
    "round_money",
]
