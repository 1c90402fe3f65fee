"""
Enums for Transferman models.
"""

from django.db import models
from django.utils.translation import gettext_lazy as _


class OrganizationRole(models.TextChoices):
    """Member role inside an organization (higher = more power)."""
    MEMBER = 'MEMBER', _('Membro')
    ADMIN = 'ADMIN', _('Administrador')
    OWNER = 'OWNER', _('Proprietário')


class BatchStatus(models.TextChoices):
    """
    Lot status.

    AVAILABLE:  Has available quantity, can be picked/reserved.
    RESERVED:   Everything left is reserved (available == 0).
    QUARANTINE: Held back for inspection, never picked.
    DAMAGED:    Unusable, never picked.
    EXPIRED:    Past expiry, excluded from stock summaries.
    """
    AVAILABLE = 'AVAILABLE', _('Disponível')
    RESERVED = 'RESERVED', _('Reservado')
    QUARANTINE = 'QUARANTINE', _('Quarentena')
    DAMAGED = 'DAMAGED', _('Danificado')
    EXPIRED = 'EXPIRED', _('Vencido')


class TransferItemStatus(models.TextChoices):
    """Transfer item lifecycle status."""
    PENDING = 'PENDING', _('Pendente')       # Requested, awaiting approval
    APPROVED = 'APPROVED', _('Aprovado')     # Quantity approved by supplier
    PREPARED = 'PREPARED', _('Separado')     # Batches picked and reserved
    DELIVERED = 'DELIVERED', _('Entregue')   # Received by requester
    CANCELLED = 'CANCELLED', _('Cancelado')


class TransferStatus(models.TextChoices):
    """Transfer status — a rollup of its items' statuses."""
    PENDING = 'PENDING', _('Pendente')
    APPROVED = 'APPROVED', _('Aprovado')
    PREPARED = 'PREPARED', _('Separado')
    PARTIAL = 'PARTIAL', _('Parcial')        # Some items delivered, others in progress
    COMPLETED = 'COMPLETED', _('Concluído')  # Every non-cancelled item delivered
    CANCELLED = 'CANCELLED', _('Cancelado')


class TransferPriority(models.TextChoices):
    """Transfer urgency."""
    NORMAL = 'NORMAL', _('Normal')
    URGENT = 'URGENT', _('Urgente')
    CRITICAL = 'CRITICAL', _('Crítico')


class HistoryAction(models.TextChoices):
    """What happened in a TransferHistory row."""
    CREATED = 'CREATED', _('Criado')
    APPROVED = 'APPROVED', _('Aprovado')
    PREPARED = 'PREPARED', _('Separado')
    DELIVERED = 'DELIVERED', _('Entregue')
    CANCELLED = 'CANCELLED', _('Cancelado')
    STATUS_CHANGED = 'STATUS_CHANGED', _('Status alterado')
