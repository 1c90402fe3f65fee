"""
Noop Audit Writer — Stub adapter for development and testing.

Usage in settings.py:
    TRANSFERMAN = {
        "AUDIT_WRITER": "transferman.adapters.noop.NoopAuditWriter",
    }

WARNING: Do NOT use in production. Every audit entry is discarded.
"""

from __future__ import annotations

from transferman.protocols.audit import AuditEntry


class NoopAuditWriter:
    """
    No-operation audit writer.

    Implements the ``AuditWriter`` protocol without storing anything,
    making it suitable for:

    - Local development without an audit store
    - Tests that don't assert on audit entries
    """

    def write(self, entry: AuditEntry) -> None:
        """Discard the entry."""
        return None
