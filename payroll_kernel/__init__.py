"""
Payroll Kernel

Infrastructure shared by every payroll module:
- Typed exceptions with machine-readable codes
- Structured JSON logging
- SQLAlchemy base classes, engine management and money types
- Effective-dated (temporal) record handling
- Hash-chained audit trail
- Injected clock and operation context
"""

__version__ = "0.1.0"
