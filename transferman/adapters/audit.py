"""
Logging Audit Writer — default AUDIT_WRITER.

Emits every audit entry on the ``transferman.audit`` logger, one record
per entry with the entry fields in ``extra``. Route that logger to a
file/handler of your choice, or replace the writer with one that stores
entries in your audit table.
"""

from __future__ import annotations

import logging
from dataclasses import asdict

from transferman.protocols.audit import AuditEntry, AuditSeverity

audit_logger = logging.getLogger('transferman.audit')

_LEVELS = {
    AuditSeverity.INFO: logging.INFO,
    AuditSeverity.WARNING: logging.WARNING,
    AuditSeverity.CRITICAL: logging.CRITICAL,
}


class LoggingAuditWriter:
    """Write audit entries to the ``transferman.audit`` logger."""

    def write(self, entry: AuditEntry) -> None:
        audit_logger.log(
            _LEVELS.get(entry.severity, logging.INFO),
            entry.action,
            extra={"audit": asdict(entry)},
        )
