"""
Adapter loading — resolve configured backends from settings.

Usage:
    from transferman.adapters import get_audit_writer, get_membership_backend

    members = get_membership_backend()
    role = members.get_role(user, organization)

Settings:
    TRANSFERMAN = {
        "MEMBERSHIP_BACKEND": "transferman.adapters.members.DjangoMembershipBackend",
        "AUDIT_WRITER": "transferman.adapters.audit.LoggingAuditWriter",
    }

Both keys have working defaults (see transferman.conf).
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from django.core.exceptions import ImproperlyConfigured
from django.utils.module_loading import import_string

from transferman.conf import transferman_settings

if TYPE_CHECKING:
    from transferman.protocols.audit import AuditWriter
    from transferman.protocols.membership import MembershipBackend

logger = logging.getLogger(__name__)


# Cached instances
_lock = threading.Lock()
_membership_backend: MembershipBackend | None = None
_audit_writer: AuditWriter | None = None


def _load(setting_name: str):
    path = getattr(transferman_settings, setting_name)
    if not path:
        raise ImproperlyConfigured(
            f"TRANSFERMAN['{setting_name}'] must be configured."
        )
    try:
        backend_class = import_string(path)
    except ImportError as e:
        raise ImproperlyConfigured(
            f"Failed to import {setting_name} '{path}': {e}"
        ) from e
    logger.debug("Loaded %s: %s", setting_name, path)
    return backend_class()


def get_membership_backend() -> MembershipBackend:
    """
    Return the configured membership backend.

    Raises:
        ImproperlyConfigured: If the dotted path is empty or import fails
    """
    global _membership_backend

    if _membership_backend is None:
        with _lock:
            if _membership_backend is None:  # double-checked
                _membership_backend = _load("MEMBERSHIP_BACKEND")
    return _membership_backend


def get_audit_writer() -> AuditWriter:
    """
    Return the configured audit writer.

    Raises:
        ImproperlyConfigured: If the dotted path is empty or import fails
    """
    global _audit_writer

    if _audit_writer is None:
        with _lock:
            if _audit_writer is None:
                _audit_writer = _load("AUDIT_WRITER")
    return _audit_writer


def reset_adapters() -> None:
    """Reset the cached instances. Useful for testing."""
    global _membership_backend, _audit_writer
    _membership_backend = None
    _audit_writer = None
