"""
Shared transaction helpers for module services.

A module service constructed with ``auto_commit=True`` owns its transaction:
it commits on success and rolls back on failure.  With ``auto_commit=False``
it only flushes, and the caller (another module service or
``session_scope()``) owns commit and rollback.
"""

from sqlalchemy.orm import Session

from payroll_kernel.services.auditor_service import AuditorService, AuditSink


def commit_or_flush(session: Session, auto_commit: bool) -> None:
    if auto_commit:
        session.commit()
    else:
        session.flush()


def rollback_if_owner(session: Session, auto_commit: bool) -> None:
    if auto_commit:
        session.rollback()


def default_audit_sink(session: Session, audit: AuditSink | None) -> AuditSink:
    return audit if audit is not None else AuditorService(session)
