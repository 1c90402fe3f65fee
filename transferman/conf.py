"""
Transferman configuration, read from the ``TRANSFERMAN`` dict in settings.

    TRANSFERMAN = {
        # Who belongs to an organization, and with which role
        "MEMBERSHIP_BACKEND": "transferman.adapters.members.DjangoMembershipBackend",
        # Where workflow audit entries go
        "AUDIT_WRITER": "myproject.audit.DatabaseAuditWriter",
        # Roles that may cancel items and whole transfers
        "ELEVATED_ROLES": ("ADMIN", "OWNER"),
        # Lots locked per chunk by expire_batches
        "EXPIRED_BATCH_SIZE": 200,
        # Window for list_batches_for_transfer()'s near_expiry count and
        # list_department_stocks(expiring_only=True)
        "NEAR_EXPIRY_DAYS": 90,
    }

Unknown keys are ignored. Values are re-read on every access, so
``override_settings`` and pytest-django's ``settings`` fixture apply
immediately.
"""

from dataclasses import dataclass
from typing import Any

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured


@dataclass
class TransfermanSettings:
    MEMBERSHIP_BACKEND: str = "transferman.adapters.members.DjangoMembershipBackend"
    AUDIT_WRITER: str = "transferman.adapters.audit.LoggingAuditWriter"
    ELEVATED_ROLES: tuple = ("ADMIN", "OWNER")
    EXPIRED_BATCH_SIZE: int = 200
    NEAR_EXPIRY_DAYS: int = 90

    def __post_init__(self):
        if isinstance(self.ELEVATED_ROLES, str):
            self.ELEVATED_ROLES = (self.ELEVATED_ROLES,)
        self.ELEVATED_ROLES = tuple(self.ELEVATED_ROLES)
        if not self.ELEVATED_ROLES:
            raise ImproperlyConfigured("TRANSFERMAN['ELEVATED_ROLES'] must name at least one role")
        if self.EXPIRED_BATCH_SIZE < 1:
            raise ImproperlyConfigured("TRANSFERMAN['EXPIRED_BATCH_SIZE'] must be positive")
        if self.NEAR_EXPIRY_DAYS < 0:
            raise ImproperlyConfigured("TRANSFERMAN['NEAR_EXPIRY_DAYS'] can't be negative")


def get_transferman_settings() -> TransfermanSettings:
    user_settings: dict[str, Any] = getattr(settings, "TRANSFERMAN", {})
    return TransfermanSettings(**{
        k: v for k, v in user_settings.items()
        if k in TransfermanSettings.__dataclass_fields__
    })


class _LazySettings:
    def __getattr__(self, name):
        return getattr(get_transferman_settings(), name)


transferman_settings = _LazySettings()
