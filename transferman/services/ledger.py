"""
Batch ledger — lot-level quantity state of a department's stock.

Reads sum batch rows; writes are single-statement F() updates guarded by
a quantity filter, so the check and the write can't be split by a
concurrent caller. Callers never assign absolute quantities except when
a batch is created.
"""

import logging
from decimal import Decimal, InvalidOperation

from django.db import IntegrityError, transaction
from django.db.models import F, Sum
from django.db.models.functions import Coalesce
from django.utils import timezone

from transferman.conf import transferman_settings
from transferman.exceptions import (
    DuplicateLotError,
    InsufficientStockError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from transferman.models.enums import BatchStatus
from transferman.models.stock import DepartmentStock, StockBatch

logger = logging.getLogger('transferman')

ZERO = Decimal('0')

QUANTITY_FIELDS = (
    'total_quantity',
    'available_quantity',
    'reserved_quantity',
    'incoming_quantity',
)

# Lots a delivery may be merged into
RECEIVABLE_STATUSES = (BatchStatus.AVAILABLE, BatchStatus.RESERVED)

# Manual status changes: current status -> statuses it may be set to.
# RESERVED is derived from quantities, EXPIRED is set by expire_batches()
# and a lot holding reservations can't leave circulation.
MANUAL_BATCH_TRANSITIONS = {
    BatchStatus.AVAILABLE: {BatchStatus.QUARANTINE, BatchStatus.DAMAGED},
    BatchStatus.QUARANTINE: {BatchStatus.AVAILABLE, BatchStatus.DAMAGED},
    BatchStatus.DAMAGED: {BatchStatus.AVAILABLE, BatchStatus.QUARANTINE},
}


def _pk(obj):
    return getattr(obj, 'pk', obj)


def _snapshot_dict(snapshot) -> dict:
    if snapshot is None:
        return {}
    return snapshot.as_dict()


def to_quantity(value, field='quantity') -> Decimal:
    """Coerce int/str/Decimal to a finite Decimal, rejecting garbage."""
    if value is None or isinstance(value, bool):
        raise ValidationError('Quantidade inválida', field=field, value=value)
    if isinstance(value, Decimal):
        quantity = value
    else:
        try:
            quantity = Decimal(str(value))
        except (InvalidOperation, ValueError):
            raise ValidationError('Quantidade inválida', field=field, value=value) from None
    # NaN and Infinity compare badly and never fit a DecimalField
    if not quantity.is_finite():
        raise ValidationError('Quantidade inválida', field=field, value=str(value))
    return quantity


def sync_batch_status(*batch_ids) -> None:
    """
    Re-derive status/is_active after a quantity change.

    - AVAILABLE with nothing available  → RESERVED
    - RESERVED with something available → AVAILABLE
    - nothing left at all               → deactivated
    QUARANTINE/DAMAGED/EXPIRED are never touched.
    """
    batches = StockBatch.objects.filter(pk__in=batch_ids)
    now = timezone.now()
    batches.filter(
        status=BatchStatus.AVAILABLE, available_quantity=0,
    ).update(status=BatchStatus.RESERVED, updated_at=now)
    batches.filter(
        status=BatchStatus.RESERVED, available_quantity__gt=0,
    ).update(status=BatchStatus.AVAILABLE, updated_at=now)
    batches.filter(
        is_active=True, total_quantity=0,
    ).update(is_active=False, updated_at=now)


class StockLedger:
    """Batch ledger queries and mutations."""

    # ══════════════════════════════════════════════════════════════
    # QUERIES
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def summarize(cls, stock) -> dict[str, Decimal]:
        """
        Quantities of a stock, summed over active, non-expired batches.

        Args:
            stock: DepartmentStock or its pk

        Returns:
            Dict with total_quantity, available_quantity,
            reserved_quantity and incoming_quantity
        """
        return StockBatch.objects.filter(stock_id=_pk(stock)).active().aggregate(
            **{field: Coalesce(Sum(field), ZERO) for field in QUANTITY_FIELDS}
        )

    @classmethod
    def is_low(cls, stock) -> bool:
        """Available below the configured minimum? No minimum = never low."""
        if not isinstance(stock, DepartmentStock):
            stock = DepartmentStock.objects.filter(pk=stock).first()
            if stock is None:
                raise NotFoundError(resource='DepartmentStock')
        if stock.min_stock_level is None:
            return False
        return cls.summarize(stock)['available_quantity'] < stock.min_stock_level

    @classmethod
    def list_low_stocks(cls, department) -> list[tuple[DepartmentStock, Decimal]]:
        """
        Stocks of a department whose available quantity is below minimum.

        Returns:
            List of (stock, current_available) tuples
        """
        low = []
        stocks = DepartmentStock.objects.filter(
            department_id=_pk(department),
            min_stock_level__isnull=False,
        ).select_related('product')
        for stock in stocks:
            available = cls.summarize(stock)['available_quantity']
            if available < stock.min_stock_level:
                low.append((stock, available))
                logger.warning(
                    "stock.low",
                    extra={
                        "stock_id": stock.pk,
                        "product": str(stock.product),
                        "min": str(stock.min_stock_level),
                        "available": str(available),
                    },
                )
        return low

    # ══════════════════════════════════════════════════════════════
    # MUTATIONS
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def get_or_create_stock(cls, department, product, actor=None, snapshot=None) -> DepartmentStock:
        """The single stock row for (department, product), created on first use."""
        stock, created = DepartmentStock.objects.get_or_create(
            department_id=_pk(department),
            product_id=_pk(product),
            defaults={
                'created_by': actor,
                'created_by_snapshot': _snapshot_dict(snapshot),
            },
        )
        if created:
            logger.info(
                "stock.created",
                extra={"stock_id": stock.pk, "department_id": _pk(department), "product_id": _pk(product)},
            )
        return stock

    @classmethod
    def add_batch(cls, stock, lot_number, quantity, *, expiry_date=None,
                  manufacture_date=None, supplier='', cost_price=None,
                  selling_price=None, location='', received_at=None,
                  actor=None, snapshot=None) -> StockBatch:
        """
        Create a new lot with total = available = quantity.

        Raises:
            ValidationError: If quantity <= 0 or lot number is empty
            DuplicateLotError: If the lot number already exists in this stock
        """
        lot_number = (lot_number or '').strip()
        if not lot_number:
            raise ValidationError('Número do lote é obrigatório', field='lot_number')
        quantity = to_quantity(quantity)
        if quantity <= 0:
            raise ValidationError('Quantidade deve ser positiva', field='quantity', requested=quantity)

        stock_id = _pk(stock)
        if StockBatch.objects.filter(stock_id=stock_id, lot_number=lot_number).exists():
            raise DuplicateLotError(stock_id=stock_id, lot_number=lot_number)

        try:
            with transaction.atomic():
                batch = StockBatch.objects.create(
                    stock_id=stock_id,
                    lot_number=lot_number,
                    expiry_date=expiry_date,
                    manufacture_date=manufacture_date,
                    supplier=supplier or '',
                    cost_price=cost_price,
                    selling_price=selling_price,
                    total_quantity=quantity,
                    available_quantity=quantity,
                    location=location or '',
                    received_at=received_at or timezone.now(),
                    created_by=actor,
                    created_by_snapshot=_snapshot_dict(snapshot),
                )
        except IntegrityError:
            # Lost a race against another create of the same lot
            raise DuplicateLotError(stock_id=stock_id, lot_number=lot_number) from None

        cls.touch(stock_id)
        logger.info(
            "stock.batch.added",
            extra={"stock_id": stock_id, "lot": lot_number, "qty": str(quantity)},
        )
        return batch

    @classmethod
    def receive(cls, stock, lot_number, quantity, *, actor=None, snapshot=None, **lot) -> StockBatch:
        """
        Credit a lot: increment it if the lot number exists, else create it.

        ``lot`` carries the lot metadata used on creation (expiry_date,
        manufacture_date, supplier, cost_price, selling_price, location).

        Raises:
            ValidationError: If quantity <= 0
            InvalidTransitionError: If the existing lot is QUARANTINE, DAMAGED
                or EXPIRED; fresh units would become unusable there

        Concurrency:
            - Runs under transaction.atomic()
            - Existing lot is incremented with F(), never read-modify-write
        """
        quantity = to_quantity(quantity)
        if quantity <= 0:
            raise ValidationError('Quantidade deve ser positiva', field='quantity', requested=quantity)

        stock_id = _pk(stock)
        with transaction.atomic():
            existing = (
                StockBatch.objects.select_for_update()
                .filter(stock_id=stock_id, lot_number=lot_number)
                .first()
            )
            if existing is None:
                return cls.add_batch(
                    stock_id, lot_number, quantity,
                    actor=actor, snapshot=snapshot, **lot
                )

            if existing.status not in RECEIVABLE_STATUSES:
                logger.warning(
                    "stock.batch.receive_refused",
                    extra={"stock_id": stock_id, "lot": lot_number, "batch_id": existing.pk,
                           "status": existing.status},
                )
                raise InvalidTransitionError(
                    'Lote de destino indisponível para recebimento',
                    batch_id=existing.pk,
                    lot_number=lot_number,
                    current=existing.status,
                    attempted='RECEIVE',
                )

            StockBatch.objects.filter(pk=existing.pk).update(
                total_quantity=F('total_quantity') + quantity,
                available_quantity=F('available_quantity') + quantity,
                is_active=True,
                updated_at=timezone.now(),
            )
            sync_batch_status(existing.pk)
            cls.touch(stock_id)
            existing.refresh_from_db()

        logger.info(
            "stock.batch.received",
            extra={"stock_id": stock_id, "lot": lot_number, "qty": str(quantity), "batch_id": existing.pk},
        )
        return existing

    @classmethod
    def adjust(cls, batch, delta, reason, actor=None) -> StockBatch:
        """
        Inventory adjustment of a lot's available (and total) quantity.

        Raises:
            ValidationError: If reason is empty or delta is zero
            InsufficientStockError: If a negative delta exceeds what is available
        """
        if not reason:
            raise ValidationError('Motivo é obrigatório', field='reason')
        delta = to_quantity(delta, 'delta')
        if not delta:
            raise ValidationError('Ajuste deve ser diferente de zero', field='delta')

        batch_id = _pk(batch)
        with transaction.atomic():
            qs = StockBatch.objects.filter(pk=batch_id)
            if delta < 0:
                qs = qs.filter(available_quantity__gte=-delta)
            updated = qs.update(
                total_quantity=F('total_quantity') + delta,
                available_quantity=F('available_quantity') + delta,
                updated_at=timezone.now(),
            )
            if not updated:
                current = StockBatch.objects.filter(pk=batch_id).values_list(
                    'available_quantity', flat=True
                ).first()
                if current is None:
                    raise NotFoundError(resource='StockBatch', batch_id=batch_id)
                raise InsufficientStockError(
                    batch_id=batch_id,
                    available=current,
                    requested=-delta,
                    shortfall=-delta - current,
                )
            sync_batch_status(batch_id)
            adjusted = StockBatch.objects.get(pk=batch_id)
            cls.touch(adjusted.stock_id)

        logger.info(
            "stock.batch.adjusted",
            extra={
                "batch_id": batch_id,
                "delta": str(delta),
                "reason": reason,
                "user_id": getattr(actor, 'pk', None),
            },
        )
        return adjusted

    @classmethod
    def set_status(cls, batch, status, reason, actor=None) -> StockBatch:
        """
        Manually move a lot between AVAILABLE, QUARANTINE and DAMAGED.

        A lot with reserved quantity can't be quarantined or damaged:
        release the picks that hold it first.

        Raises:
            ValidationError: Empty reason or a status not set by hand
            NotFoundError: Lot absent or inactive
            InvalidTransitionError: Transition not allowed, reservations
                present, or the lot changed concurrently
        """
        reason = (reason or '').strip()
        if not reason:
            raise ValidationError('Motivo é obrigatório', field='reason')
        if status not in BatchStatus.values or status in (BatchStatus.RESERVED, BatchStatus.EXPIRED):
            raise ValidationError('Status de lote inválido', field='status', value=status)

        batch_id = _pk(batch)
        with transaction.atomic():
            current = StockBatch.objects.select_for_update().filter(pk=batch_id, is_active=True).first()
            if current is None:
                raise NotFoundError(resource='StockBatch', batch_id=batch_id)
            if status not in MANUAL_BATCH_TRANSITIONS.get(current.status, ()):
                raise InvalidTransitionError(
                    batch_id=batch_id, current=current.status, attempted=status,
                )

            qs = StockBatch.objects.filter(pk=batch_id, status=current.status, is_active=True)
            if status != BatchStatus.AVAILABLE:
                qs = qs.filter(reserved_quantity=0)
            if not qs.update(status=status, updated_at=timezone.now()):
                raise InvalidTransitionError(
                    batch_id=batch_id,
                    current=current.status,
                    attempted=status,
                    reserved=current.reserved_quantity,
                )
            sync_batch_status(batch_id)
            cls.touch(current.stock_id)
            current.refresh_from_db()

        logger.info(
            "stock.batch.status_changed",
            extra={
                "batch_id": batch_id,
                "status": status,
                "reason": reason,
                "user_id": getattr(actor, 'pk', None),
            },
        )
        return current

    @classmethod
    def deactivate(cls, batch, actor=None) -> StockBatch:
        """
        Take a lot out of the stock (soft delete).

        Refused while the lot has reserved or incoming quantity.
        Deactivating an inactive lot is a no-op.

        Raises:
            NotFoundError: Lot absent
            InvalidTransitionError: Reserved or incoming quantity present
        """
        batch_id = _pk(batch)
        with transaction.atomic():
            current = StockBatch.objects.select_for_update().filter(pk=batch_id).first()
            if current is None:
                raise NotFoundError(resource='StockBatch', batch_id=batch_id)
            if not current.is_active:
                return current

            updated = StockBatch.objects.filter(
                pk=batch_id, is_active=True, reserved_quantity=0, incoming_quantity=0,
            ).update(is_active=False, updated_at=timezone.now())
            if not updated:
                raise InvalidTransitionError(
                    'Lote com quantidade reservada ou em trânsito',
                    batch_id=batch_id,
                    reserved=current.reserved_quantity,
                    incoming=current.incoming_quantity,
                )
            cls.touch(current.stock_id)
            current.refresh_from_db()

        logger.warning(
            "stock.batch.deactivated",
            extra={
                "batch_id": batch_id,
                "lot": current.lot_number,
                "total": str(current.total_quantity),
                "user_id": getattr(actor, 'pk', None),
            },
        )
        return current

    @classmethod
    def touch(cls, stock) -> None:
        """Stamp last_movement_at on a stock."""
        DepartmentStock.objects.filter(pk=_pk(stock)).update(
            last_movement_at=timezone.now(),
            updated_at=timezone.now(),
        )

    @classmethod
    def expire_batches(cls) -> int:
        """
        Mark active batches past their expiry date as EXPIRED, in chunks.

        Batches with reserved quantity are skipped: a picked transfer
        must still be deliverable or cancellable.

        Returns:
            Number of batches expired

        Concurrency:
            - Each chunk runs under its own transaction.atomic()
            - Uses select_for_update() with SKIP LOCKED
            - Safe for multiple instances
        """
        total = 0
        chunk_size = transferman_settings.EXPIRED_BATCH_SIZE

        while True:
            with transaction.atomic():
                chunk = list(
                    StockBatch.objects.select_for_update(skip_locked=True)
                    .expired()
                    .filter(reserved_quantity=0)
                    .values_list('pk', flat=True)[:chunk_size]
                )

                if not chunk:
                    break

                StockBatch.objects.filter(pk__in=chunk).update(
                    status=BatchStatus.EXPIRED,
                    updated_at=timezone.now(),
                )
                total += len(chunk)

        if total:
            logger.info(
                "stock.batches.expired",
                extra={"expired": total},
            )
        return total
