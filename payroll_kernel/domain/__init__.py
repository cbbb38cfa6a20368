"""Pure domain primitives: clock and operation context."""

from payroll_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from payroll_kernel.domain.context import OperationContext

__all__ = ["Clock", "DeterministicClock", "SystemClock", "OperationContext"]
