"""Kernel services: audit trail, sequences and effective-dated records."""

from payroll_kernel.services.auditor_service import AuditorService, AuditSink
from payroll_kernel.services.base import BaseService
from payroll_kernel.services.sequence_service import SequenceService
from payroll_kernel.services.temporal_service import TemporalRecordService

__all__ = [
    "AuditorService",
    "AuditSink",
    "BaseService",
    "SequenceService",
    "TemporalRecordService",
]
