"""
Transferman Adapters.

Implementations of protocols for external systems.
"""

from transferman.adapters.audit import LoggingAuditWriter
from transferman.adapters.loading import (
    get_audit_writer,
    get_membership_backend,
    reset_adapters,
)
from transferman.adapters.members import DjangoMembershipBackend
from transferman.adapters.noop import NoopAuditWriter

__all__ = [
    "DjangoMembershipBackend",
    "LoggingAuditWriter",
    "NoopAuditWriter",
    "get_audit_writer",
    "get_membership_backend",
    "reset_adapters",
]
