"""
AuditorService -- hash-chained audit trail for payroll mutations.

Responsibility:
    Implements the ``AuditSink`` protocol.  Each ``record()`` call appends
    one AuditEvent whose hash covers the previous event's hash, making any
    retroactive edit detectable by ``validate_chain()``.

Failure modes:
    Recording is non-blocking.  The event is written inside a SAVEPOINT; if
    writing it fails, the savepoint is rolled back, the failure is logged
    at ERROR with the exception attached, and the caller's operation
    continues.  Pending primary changes are flushed *before* the savepoint
    is opened so their errors still propagate to the caller.
"""

from typing import Any, Protocol, runtime_checkable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from payroll_kernel.domain.context import OperationContext
from payroll_kernel.exceptions import AuditChainBrokenError
from payroll_kernel.logging_config import get_logger
from payroll_kernel.models.audit_event import AuditEvent, AuditSeverity
from payroll_kernel.services.sequence_service import SequenceService
from payroll_kernel.utils.hashing import hash_audit_event, hash_payload, to_json_safe

logger = get_logger("services.auditor")


@runtime_checkable
class AuditSink(Protocol):
    """Destination for audit events emitted by payroll services."""

    def record(
        self,
        ctx: OperationContext,
        event_type: str,
        entity_type: str,
        entity_id: UUID,
        detail: dict[str, Any] | None = None,
        severity: AuditSeverity = AuditSeverity.INFO,
    ) -> Any:
        ...


class AuditorService:
    """
    Database-backed AuditSink.

    Shares the caller's session so an audit event commits or rolls back
    together with the change it describes.  Never commits.
    """

    def __init__(self, session: Session):
        self._session = session
        self._sequence_service = SequenceService(session)

    def _get_last_hash(self) -> str | None:
        return self._session.execute(
            select(AuditEvent.hash).order_by(AuditEvent.seq.desc()).limit(1)
        ).scalar_one_or_none()

    def _create_audit_event(
        self,
        ctx: OperationContext,
        event_type: str,
        entity_type: str,
        entity_id: UUID,
        detail: dict[str, Any],
        severity: AuditSeverity,
    ) -> AuditEvent:
        seq = self._sequence_service.next_value(SequenceService.AUDIT_EVENT)
        prev_hash = self._get_last_hash()

        payload = to_json_safe(detail)
        payload_hash = hash_payload(payload)
        event_hash = hash_audit_event(
            entity_type=entity_type,
            entity_id=str(entity_id),
            event_type=event_type,
            payload_hash=payload_hash,
            prev_hash=prev_hash,
        )

        audit_event = AuditEvent(
            seq=seq,
            entity_type=entity_type,
            entity_id=entity_id,
            event_type=event_type,
            severity=AuditSeverity(severity).value,
            actor_id=ctx.actor_id,
            occurred_at=ctx.now(),
            payload=payload,
            payload_hash=payload_hash,
            prev_hash=prev_hash,
            hash=event_hash,
        )
        self._session.add(audit_event)
        self._session.flush()

        logger.debug(
            "audit_event_created",
            extra={
                "entity_type": entity_type,
                "entity_id": str(entity_id),
                "event_type": event_type,
                "seq": seq,
            },
        )
        return audit_event

    def record(
        self,
        ctx: OperationContext,
        event_type: str,
        entity_type: str,
        entity_id: UUID,
        detail: dict[str, Any] | None = None,
        severity: AuditSeverity = AuditSeverity.INFO,
    ) -> AuditEvent | None:
        """
        Append an audit event; return it, or None if recording failed.

        Postconditions:
            - On success the event is flushed in the caller's transaction.
            - On failure nothing from this call remains in the session and
              ``audit_record_failed`` is logged.
        """
        self._session.flush()
        try:
            with self._session.begin_nested():
                return self._create_audit_event(
                    ctx, event_type, entity_type, entity_id, detail or {}, severity
                )
        except (SQLAlchemyError, TypeError, ValueError):
            logger.error(
                "audit_record_failed",
                exc_info=True,
                extra={
                    "event_type": event_type,
                    "entity_type": entity_type,
                    "entity_id": str(entity_id),
                },
            )
            return None

    # Chain validation and queries

    def validate_chain(self) -> bool:
        """
        Recompute every hash in seq order.

        Raises:
            AuditChainBrokenError: On the first hash or linkage mismatch.
        """
        events = self._session.execute(
            select(AuditEvent).order_by(AuditEvent.seq)
        ).scalars().all()

        prev_hash = None
        for event in events:
            if event.prev_hash != prev_hash:
                logger.critical("audit_chain_broken", extra={"seq": event.seq})
                raise AuditChainBrokenError(
                    str(event.id), prev_hash or "None", event.prev_hash or "None"
                )
            expected = hash_audit_event(
                entity_type=event.entity_type,
                entity_id=str(event.entity_id),
                event_type=event.event_type,
                payload_hash=event.payload_hash,
                prev_hash=event.prev_hash,
            )
            if event.hash != expected:
                logger.critical("audit_chain_broken", extra={"seq": event.seq})
                raise AuditChainBrokenError(str(event.id), expected, event.hash)
            prev_hash = event.hash

        logger.info("audit_chain_valid", extra={"event_count": len(events)})
        return True

    def get_trail(self, entity_type: str, entity_id: UUID) -> list[AuditEvent]:
        """All events for one entity, oldest first."""
        return list(
            self._session.execute(
                select(AuditEvent)
                .where(
                    AuditEvent.entity_type == entity_type,
                    AuditEvent.entity_id == entity_id,
                )
                .order_by(AuditEvent.seq)
            ).scalars()
        )

    def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return list(
            self._session.execute(
                select(AuditEvent).order_by(AuditEvent.seq.desc()).limit(limit)
            ).scalars()
        )
