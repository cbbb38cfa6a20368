"""Kernel ORM models."""

from payroll_kernel.models.audit_event import AuditEvent, AuditSeverity
from payroll_kernel.models.sequence import SequenceCounter

__all__ = ["AuditEvent", "AuditSeverity", "SequenceCounter"]
