"""
OperationContext -- explicit actor and time for every mutating call.

Every service operation that writes, or that depends on "today", receives an
OperationContext.  The context names who acts (stamped on created_by_id /
updated_by_id and audit events) and which clock defines "now".
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from uuid import UUID, uuid4

from payroll_kernel.domain.clock import Clock, SystemClock


@dataclass(frozen=True)
class OperationContext:
    actor_id: UUID
    clock: Clock = field(default_factory=SystemClock)
    correlation_id: str = field(default_factory=lambda: str(uuid4()))

    def now(self) -> datetime:
        return self.clock.now()

    def today(self) -> date:
        return self.clock.today()

    def log_fields(self) -> dict[str, str]:
        return {"actor_id": str(self.actor_id), "correlation_id": self.correlation_id}
