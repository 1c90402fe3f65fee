"""
Transferman Protocols.

Defines interfaces for external system integration.
"""

from transferman.protocols.audit import (
    AuditEntry,
    AuditSeverity,
    AuditWriter,
)
from transferman.protocols.membership import (
    MembershipBackend,
    UserSnapshot,
)

__all__ = [
    "AuditEntry",
    "AuditSeverity",
    "AuditWriter",
    "MembershipBackend",
    "UserSnapshot",
]
