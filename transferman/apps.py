"""Django app configuration for Transferman."""

from django.apps import AppConfig
from django.utils.translation import gettext_lazy as _


class TransfermanConfig(AppConfig):
    """Configuration for Transferman app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "transferman"
    verbose_name = _("Transferências entre Departamentos")
