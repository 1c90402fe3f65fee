"""
Audit Protocol — Interface for the organization audit log.

Transferman calls the writer once per successful workflow operation.
Where entries end up (database table, log stream, external service) is
the writer's business.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, runtime_checkable


class AuditSeverity(str, Enum):
    INFO = "INFO"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


@dataclass(frozen=True)
class AuditEntry:
    """One audit log record."""

    organization_id: int
    actor_id: int | None
    action: str  # "transfers.create", "transfers.approve_item", ...
    description: str
    category: str = "TRANSFER"
    resource_id: int | None = None
    resource_type: str | None = None  # "Transfer", "TransferItem"
    department_id: int | None = None
    severity: AuditSeverity = AuditSeverity.INFO
    actor_snapshot: dict[str, Any] | None = None
    payload: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class AuditWriter(Protocol):
    """
    Protocol for audit log writers.

    Failures raised by write() are logged by Transferman and never undo
    the workflow operation that produced the entry.
    """

    def write(self, entry: AuditEntry) -> None:
        """
        Persist an audit entry.

        Args:
            entry: AuditEntry to record
        """
        ...
