"""
Transfer models — request header, line items, picked batches and history.
"""

from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from transferman.models.enums import (
    HistoryAction,
    TransferItemStatus,
    TransferPriority,
    TransferStatus,
)


class Transfer(models.Model):
    """
    Request from one department (requesting) to another (supplying).

    Status is a rollup of the items' statuses, recomputed after every
    item transition (see transitions.rollup_status). The only status
    written directly is CANCELLED, by cancel_transfer().
    """

    organization = models.ForeignKey(
        'transferman.Organization',
        on_delete=models.CASCADE,
        related_name='transfers',
        verbose_name=_('Organização'),
    )
    code = models.CharField(max_length=50, verbose_name=_('Código'))
    title = models.CharField(max_length=200, verbose_name=_('Título'))

    requesting_department = models.ForeignKey(
        'transferman.Department',
        on_delete=models.PROTECT,
        related_name='incoming_transfers',
        verbose_name=_('Departamento Solicitante'),
    )
    supplying_department = models.ForeignKey(
        'transferman.Department',
        on_delete=models.PROTECT,
        related_name='outgoing_transfers',
        verbose_name=_('Departamento Fornecedor'),
    )

    status = models.CharField(
        max_length=20,
        choices=TransferStatus.choices,
        default=TransferStatus.PENDING,
        db_index=True,
        verbose_name=_('Status'),
    )
    priority = models.CharField(
        max_length=10,
        choices=TransferPriority.choices,
        default=TransferPriority.NORMAL,
        verbose_name=_('Prioridade'),
    )
    request_reason = models.TextField(blank=True, default='', verbose_name=_('Motivo da Solicitação'))
    notes = models.TextField(blank=True, default='', verbose_name=_('Observações'))

    # Stage timestamps
    requested_at = models.DateTimeField(default=timezone.now, db_index=True, verbose_name=_('Solicitado em'))
    approved_at = models.DateTimeField(null=True, blank=True, verbose_name=_('Aprovado em'))
    prepared_at = models.DateTimeField(null=True, blank=True, verbose_name=_('Separado em'))
    delivered_at = models.DateTimeField(null=True, blank=True, verbose_name=_('Entregue em'))
    cancelled_at = models.DateTimeField(null=True, blank=True, verbose_name=_('Cancelado em'))
    cancel_reason = models.TextField(blank=True, default='', verbose_name=_('Motivo do Cancelamento'))

    requested_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('Solicitado por'),
    )
    requested_by_snapshot = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _('Transferência')
        verbose_name_plural = _('Transferências')
        ordering = ['-requested_at']
        constraints = [
            models.UniqueConstraint(
                fields=['organization', 'code'],
                name='unique_transfer_code_per_organization',
            )
        ]
        indexes = [
            models.Index(fields=['organization', 'status'], name='tm_transfer_org_status_idx'),
            models.Index(fields=['supplying_department', 'status'], name='tm_transfer_supplying_idx'),
            models.Index(fields=['requesting_department', 'status'], name='tm_transfer_requesting_idx'),
        ]

    @property
    def is_terminal(self) -> bool:
        return self.status in (TransferStatus.COMPLETED, TransferStatus.CANCELLED)

    def __str__(self) -> str:
        return f"{self.code}: {self.title} [{self.status}]"


class TransferItem(models.Model):
    """
    One product line of a Transfer.

    LIFECYCLE:

        PENDING ──approve──► APPROVED ──prepare──► PREPARED ──deliver──► DELIVERED
           │                    │                      │
           │ cancel             │ cancel               │ cancel_prepared (releases picks)
           ▼                    ▼                      ▼
        ┌────────────────────────────────────────────────┐
        │                   CANCELLED                    │
        └────────────────────────────────────────────────┘
    """

    transfer = models.ForeignKey(
        Transfer,
        on_delete=models.CASCADE,
        related_name='items',
        verbose_name=_('Transferência'),
    )
    product = models.ForeignKey(
        'transferman.Product',
        on_delete=models.PROTECT,
        related_name='+',
        verbose_name=_('Produto'),
    )

    requested_quantity = models.DecimalField(max_digits=12, decimal_places=3, verbose_name=_('Solicitado'))
    approved_quantity = models.DecimalField(
        max_digits=12, decimal_places=3, null=True, blank=True, verbose_name=_('Aprovado'),
    )
    prepared_quantity = models.DecimalField(
        max_digits=12, decimal_places=3, null=True, blank=True, verbose_name=_('Separado'),
    )
    received_quantity = models.DecimalField(
        max_digits=12, decimal_places=3, null=True, blank=True, verbose_name=_('Recebido'),
    )

    status = models.CharField(
        max_length=20,
        choices=TransferItemStatus.choices,
        default=TransferItemStatus.PENDING,
        db_index=True,
        verbose_name=_('Status'),
    )
    notes = models.TextField(blank=True, default='', verbose_name=_('Observações'))
    cancel_reason = models.TextField(blank=True, default='', verbose_name=_('Motivo do Cancelamento'))

    approved_at = models.DateTimeField(null=True, blank=True)
    prepared_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        verbose_name = _('Item da Transferência')
        verbose_name_plural = _('Itens da Transferência')
        ordering = ['pk']
        constraints = [
            models.UniqueConstraint(
                fields=['transfer', 'product'],
                name='unique_product_per_transfer',
            )
        ]

    @property
    def is_terminal(self) -> bool:
        return self.status in (TransferItemStatus.DELIVERED, TransferItemStatus.CANCELLED)

    @property
    def shortfall(self) -> Decimal:
        """Prepared but not received (lost/damaged in transit)."""
        if self.prepared_quantity is None or self.received_quantity is None:
            return Decimal('0')
        return self.prepared_quantity - self.received_quantity

    def __str__(self) -> str:
        return f"{self.requested_quantity}x {self.product} [{self.status}]"


class TransferBatch(models.Model):
    """
    Which supplying-department lot was picked for an item, and how much.

    received_quantity stays None until delivery; it may be lower than
    quantity (shortage/damage in transit).
    """

    item = models.ForeignKey(
        TransferItem,
        on_delete=models.CASCADE,
        related_name='batches',
        verbose_name=_('Item'),
    )
    batch = models.ForeignKey(
        'transferman.StockBatch',
        on_delete=models.PROTECT,
        related_name='transfer_picks',
        verbose_name=_('Lote'),
    )
    quantity = models.DecimalField(max_digits=12, decimal_places=3, verbose_name=_('Separado'))
    received_quantity = models.DecimalField(
        max_digits=12, decimal_places=3, null=True, blank=True, verbose_name=_('Recebido'),
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _('Lote da Transferência')
        verbose_name_plural = _('Lotes da Transferência')
        ordering = ['pk']
        constraints = [
            models.UniqueConstraint(
                fields=['item', 'batch'],
                name='unique_batch_per_transfer_item',
            )
        ]

    @property
    def shortfall(self) -> Decimal:
        if self.received_quantity is None:
            return Decimal('0')
        return self.quantity - self.received_quantity

    def __str__(self) -> str:
        return f"{self.quantity}x lote {self.batch.lot_number}"


class TransferHistory(models.Model):
    """
    Immutable record of a status transition.

    Rules:
    - NEVER update() or delete()
    - One row per transition (item-level rows carry item, transfer-level don't)
    - changed_by_snapshot is the actor as of the action, not resolved later
    """

    transfer = models.ForeignKey(
        Transfer,
        on_delete=models.CASCADE,
        related_name='history',
        verbose_name=_('Transferência'),
    )
    item = models.ForeignKey(
        TransferItem,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='history',
        verbose_name=_('Item'),
    )
    action = models.CharField(max_length=20, choices=HistoryAction.choices, verbose_name=_('Ação'))
    from_status = models.CharField(max_length=20, blank=True, default='', verbose_name=_('De'))
    to_status = models.CharField(max_length=20, verbose_name=_('Para'))
    changed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('Alterado por'),
    )
    changed_by_snapshot = models.JSONField(default=dict, blank=True)
    notes = models.TextField(blank=True, default='', verbose_name=_('Observações'))
    created_at = models.DateTimeField(default=timezone.now, db_index=True, verbose_name=_('Data/Hora'))

    class Meta:
        verbose_name = _('Histórico')
        verbose_name_plural = _('Históricos')
        ordering = ['created_at', 'pk']

    def save(self, *args, **kwargs):
        """Append only."""
        if self.pk:
            raise ValueError(
                "Histórico é imutável. "
                "Registre uma nova transição em vez de alterar esta."
            )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        """Prevent deletion — history is immutable."""
        raise ValueError("Histórico é imutável.")

    def __str__(self) -> str:
        arrow = f"{self.from_status} → " if self.from_status else ""
        return f"{self.action}: {arrow}{self.to_status}"
