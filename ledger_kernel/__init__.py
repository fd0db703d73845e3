"""
Ledger Kernel

Shared infrastructure for the custody ledger and operating-fee engine:
- Declarative ORM base with UUID keys and audit columns
- Transactional session scope
- Typed exception hierarchy with machine-readable codes
- Structured JSON logging
- Injectable clock and per-entity serialization locks
"""

__version__ = "0.1.0"
