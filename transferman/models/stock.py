"""
Stock models — department stock configuration and lot-level quantities.

DepartmentStock never stores quantities. They live on StockBatch and are
summed on read (see StockLedger.summarize).

Usage:
    stock = StockLedger.get_or_create_stock(pharmacy, paracetamol)
    StockLedger.add_batch(stock, "LOT-2026-0223-A", Decimal("50"),
                          expiry_date=date(2027, 2, 1), actor=user)
"""

from datetime import date
from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import F, Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from transferman.models.enums import BatchStatus


class DepartmentStock(models.Model):
    """
    Stock configuration for one product at one department.

    At most one row per (department, product).
    """

    department = models.ForeignKey(
        'transferman.Department',
        on_delete=models.CASCADE,
        related_name='stocks',
        verbose_name=_('Departamento'),
    )
    product = models.ForeignKey(
        'transferman.Product',
        on_delete=models.PROTECT,
        related_name='stocks',
        verbose_name=_('Produto'),
    )

    # Levels (None = not configured)
    min_stock_level = models.DecimalField(
        max_digits=12,
        decimal_places=3,
        null=True,
        blank=True,
        verbose_name=_('Estoque Mínimo'),
        help_text=_('Estoque baixo quando disponível < este valor'),
    )
    max_stock_level = models.DecimalField(
        max_digits=12,
        decimal_places=3,
        null=True,
        blank=True,
        verbose_name=_('Estoque Máximo'),
    )
    reorder_point = models.DecimalField(
        max_digits=12,
        decimal_places=3,
        null=True,
        blank=True,
        verbose_name=_('Ponto de Reposição'),
    )
    default_withdrawal_qty = models.DecimalField(
        max_digits=12,
        decimal_places=3,
        null=True,
        blank=True,
        verbose_name=_('Quantidade Padrão de Retirada'),
    )
    location = models.CharField(
        max_length=100,
        blank=True,
        default='',
        verbose_name=_('Localização'),
    )

    last_movement_at = models.DateTimeField(null=True, blank=True, verbose_name=_('Última movimentação'))
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('Criado por'),
    )
    created_by_snapshot = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _('Estoque do Departamento')
        verbose_name_plural = _('Estoques dos Departamentos')
        constraints = [
            models.UniqueConstraint(
                fields=['department', 'product'],
                name='unique_stock_per_department_product',
            )
        ]

    def __str__(self) -> str:
        return f"{self.product} @ {self.department}"


class StockBatchQuerySet(models.QuerySet):
    """Custom QuerySet for StockBatch with convenience filters."""

    def active(self):
        """Batches that count towards stock (active, not EXPIRED)."""
        return self.filter(is_active=True).exclude(status=BatchStatus.EXPIRED)

    def pickable(self):
        """Batches that can be reserved or picked right now."""
        return self.filter(
            is_active=True,
            status=BatchStatus.AVAILABLE,
            available_quantity__gt=0,
        )

    def expiring_before(self, day):
        """Batches expiring on or before the given date."""
        return self.filter(expiry_date__lte=day, expiry_date__isnull=False)

    def expired(self):
        """Active batches past their expiry date (not yet marked EXPIRED)."""
        return self.filter(
            is_active=True,
            expiry_date__lt=date.today(),
        ).exclude(status=BatchStatus.EXPIRED)


class StockBatch(models.Model):
    """
    A received lot of a product at a department.

    Quantities:
    - total = available + reserved, always (DB check constraint)
    - incoming is tracked apart (in transit, not usable yet)

    Quantities only change through StockLedger/Allocation, which use
    F() expressions. Never assign quantities and save().
    """

    stock = models.ForeignKey(
        DepartmentStock,
        on_delete=models.CASCADE,
        related_name='batches',
        verbose_name=_('Estoque'),
    )
    lot_number = models.CharField(max_length=50, verbose_name=_('Número do Lote'))

    # Dates
    expiry_date = models.DateField(
        null=True,
        blank=True,
        db_index=True,
        verbose_name=_('Data de Validade'),
    )
    manufacture_date = models.DateField(null=True, blank=True, verbose_name=_('Data de Fabricação'))

    # Origin / pricing
    supplier = models.CharField(max_length=200, blank=True, default='', verbose_name=_('Fornecedor'))
    cost_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        verbose_name=_('Preço de Custo'),
    )
    selling_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        verbose_name=_('Preço de Venda'),
    )

    # Quantities
    total_quantity = models.DecimalField(
        max_digits=12,
        decimal_places=3,
        default=Decimal('0'),
        verbose_name=_('Quantidade Total'),
    )
    available_quantity = models.DecimalField(
        max_digits=12,
        decimal_places=3,
        default=Decimal('0'),
        verbose_name=_('Disponível'),
    )
    reserved_quantity = models.DecimalField(
        max_digits=12,
        decimal_places=3,
        default=Decimal('0'),
        verbose_name=_('Reservado'),
    )
    incoming_quantity = models.DecimalField(
        max_digits=12,
        decimal_places=3,
        default=Decimal('0'),
        verbose_name=_('Em Trânsito'),
    )

    status = models.CharField(
        max_length=20,
        choices=BatchStatus.choices,
        default=BatchStatus.AVAILABLE,
        db_index=True,
        verbose_name=_('Status'),
    )
    is_active = models.BooleanField(default=True, verbose_name=_('Ativo'))
    location = models.CharField(max_length=100, blank=True, default='', verbose_name=_('Localização'))
    received_at = models.DateTimeField(default=timezone.now, db_index=True, verbose_name=_('Recebido em'))

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('Criado por'),
    )
    created_by_snapshot = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = StockBatchQuerySet.as_manager()

    class Meta:
        verbose_name = _('Lote')
        verbose_name_plural = _('Lotes')
        ordering = ['received_at', 'pk']
        constraints = [
            models.UniqueConstraint(
                fields=['stock', 'lot_number'],
                name='unique_lot_per_stock',
            ),
            models.CheckConstraint(
                condition=Q(available_quantity__gte=0),
                name='batch_available_non_negative',
            ),
            models.CheckConstraint(
                condition=Q(reserved_quantity__gte=0),
                name='batch_reserved_non_negative',
            ),
            models.CheckConstraint(
                condition=Q(total_quantity=F('available_quantity') + F('reserved_quantity')),
                name='batch_total_is_available_plus_reserved',
            ),
        ]
        indexes = [
            models.Index(fields=['stock', 'status', 'received_at'], name='tm_batch_fifo_idx'),
        ]

    @property
    def is_expired(self) -> bool:
        """Is this batch past its expiry date?"""
        if self.expiry_date is None:
            return False
        return date.today() > self.expiry_date

    @property
    def days_to_expiry(self) -> int | None:
        if self.expiry_date is None:
            return None
        return (self.expiry_date - date.today()).days

    def __str__(self) -> str:
        expiry = f" (val:{self.expiry_date})" if self.expiry_date else ""
        return f"Lote {self.lot_number}{expiry}: {self.available_quantity}/{self.total_quantity}"
