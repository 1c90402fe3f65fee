"""
Allocation engine — which lots serve a demand, and how much of each.

Two strategies over the batch ledger:

- reserve_fifo / release: automatic, oldest receipt first
- pick_manual / release_picks / confirm_delivery: operator-chosen lots
  for a transfer item, recorded as TransferBatch rows

Every quantity move is a guarded F() update; a rowcount of 0 means a
concurrent caller got there first and surfaces as a typed error.
"""

import logging
from collections.abc import Iterable, Mapping
from decimal import Decimal

from django.db import transaction
from django.db.models import F, Sum
from django.utils import timezone

from transferman.exceptions import (
    BatchOverAllocationError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from transferman.models.enums import BatchStatus
from transferman.models.stock import StockBatch
from transferman.models.transfer import TransferBatch
from transferman.services.ledger import StockLedger, sync_batch_status, to_quantity

logger = logging.getLogger('transferman')

ZERO = Decimal('0')


def _pairs(entries: Iterable, quantity_key: str) -> list[tuple[int, Decimal]]:
    """
    Normalize [{'batch_id': 1, quantity_key: 5}, ...] or [(1, 5), ...].

    Raises:
        ValidationError: On empty input or a batch listed twice
    """
    pairs = []
    seen = set()
    for entry in entries or ():
        if isinstance(entry, Mapping):
            batch_id, quantity = entry.get('batch_id'), entry.get(quantity_key)
        else:
            batch_id, quantity = entry
        if batch_id is None:
            raise ValidationError('Lote é obrigatório', field='batch_id')
        if batch_id in seen:
            raise ValidationError('Lote informado mais de uma vez', field='batch_id', batch_id=batch_id)
        seen.add(batch_id)
        pairs.append((batch_id, to_quantity(quantity, quantity_key)))
    if not pairs:
        raise ValidationError('Informe ao menos um lote', field='batches')
    return pairs


class Allocation:
    """Reservation and picking of batch quantities."""

    @classmethod
    def _reserve(cls, batch_id, quantity: Decimal) -> bool:
        """Move quantity from available to reserved if still there."""
        updated = StockBatch.objects.filter(
            pk=batch_id,
            available_quantity__gte=quantity,
        ).update(
            available_quantity=F('available_quantity') - quantity,
            reserved_quantity=F('reserved_quantity') + quantity,
            updated_at=timezone.now(),
        )
        return updated == 1

    @classmethod
    def _unreserve(cls, batch_id, quantity: Decimal) -> bool:
        updated = StockBatch.objects.filter(
            pk=batch_id,
            reserved_quantity__gte=quantity,
        ).update(
            available_quantity=F('available_quantity') + quantity,
            reserved_quantity=F('reserved_quantity') - quantity,
            updated_at=timezone.now(),
        )
        return updated == 1

    # ══════════════════════════════════════════════════════════════
    # FIFO
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def reserve_fifo(cls, stock, quantity, actor=None, strict: bool = False) -> list[dict]:
        """
        Reserve quantity across the stock's batches, oldest receipt first.

        Only active, AVAILABLE batches with available > 0 are candidates.

        Args:
            stock: DepartmentStock or its pk
            quantity: Amount to reserve (> 0)
            actor: User performing the reservation (for logs)
            strict: Roll back every partial reservation on shortfall

        Returns:
            [{'batch_id', 'lot_number', 'quantity'}, ...] in reservation order

        Raises:
            ValidationError: If quantity <= 0
            InsufficientStockError: If candidates run out. Unless strict,
                the partial reservations stay committed and are listed in
                ``data['allocations']``.
        """
        quantity = to_quantity(quantity)
        if quantity <= 0:
            raise ValidationError('Quantidade deve ser positiva', field='quantity', requested=quantity)

        stock_id = getattr(stock, 'pk', stock)
        allocations = []
        remaining = quantity

        with transaction.atomic():
            candidates = (
                StockBatch.objects.select_for_update()
                .filter(stock_id=stock_id)
                .pickable()
                .order_by('received_at', 'pk')
            )
            for batch in candidates:
                if remaining <= 0:
                    break
                take = min(remaining, batch.available_quantity)
                if not cls._reserve(batch.pk, take):
                    continue
                allocations.append({
                    'batch_id': batch.pk,
                    'lot_number': batch.lot_number,
                    'quantity': take,
                })
                remaining -= take

            sync_batch_status(*[a['batch_id'] for a in allocations])

            if remaining > 0 and strict:
                raise InsufficientStockError(
                    stock_id=stock_id,
                    requested=quantity,
                    reserved=ZERO,
                    shortfall=remaining,
                )

        if remaining > 0:
            logger.warning(
                "stock.reserve.shortfall",
                extra={"stock_id": stock_id, "requested": str(quantity), "shortfall": str(remaining)},
            )
            raise InsufficientStockError(
                stock_id=stock_id,
                requested=quantity,
                reserved=quantity - remaining,
                shortfall=remaining,
                allocations=allocations,
            )

        logger.info(
            "stock.reserved",
            extra={
                "stock_id": stock_id,
                "qty": str(quantity),
                "batches": len(allocations),
                "user_id": getattr(actor, 'pk', None),
            },
        )
        return allocations

    @classmethod
    def release(cls, stock, quantity, actor=None) -> Decimal:
        """
        Return reserved quantity to available, oldest receipt first.

        Releasing more than is reserved releases what there is.

        Returns:
            Quantity actually released
        """
        quantity = to_quantity(quantity)
        if quantity <= 0:
            raise ValidationError('Quantidade deve ser positiva', field='quantity', requested=quantity)

        stock_id = getattr(stock, 'pk', stock)
        released = ZERO
        touched = []

        with transaction.atomic():
            candidates = (
                StockBatch.objects.select_for_update()
                .filter(stock_id=stock_id, is_active=True, reserved_quantity__gt=0)
                .order_by('received_at', 'pk')
            )
            for batch in candidates:
                remaining = quantity - released
                if remaining <= 0:
                    break
                take = min(remaining, batch.reserved_quantity)
                if cls._unreserve(batch.pk, take):
                    released += take
                    touched.append(batch.pk)

            sync_batch_status(*touched)

        logger.info(
            "stock.released",
            extra={
                "stock_id": stock_id,
                "requested": str(quantity),
                "released": str(released),
                "user_id": getattr(actor, 'pk', None),
            },
        )
        return released

    # ══════════════════════════════════════════════════════════════
    # MANUAL PICKING
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def pick_manual(cls, item, selections, actor=None) -> list[TransferBatch]:
        """
        Reserve operator-chosen lots for a transfer item.

        Each selected lot must belong to the supplying department's stock
        of the item's product and be active and AVAILABLE. The selection
        must sum exactly to the item's approved quantity.

        Args:
            item: TransferItem with approved_quantity set
            selections: [{'batch_id': ..., 'quantity': ...}, ...]

        Returns:
            Created TransferBatch rows

        Raises:
            ValidationError: Empty selection, duplicate lot, quantity <= 0
            NotFoundError: Lot absent or not eligible for this item
            BatchOverAllocationError: Sum != approved, or a lot can't cover its part
        """
        pairs = _pairs(selections, 'quantity')
        for batch_id, quantity in pairs:
            if quantity <= 0:
                raise ValidationError(
                    'Quantidade deve ser positiva', field='quantity', batch_id=batch_id, requested=quantity,
                )

        selected = sum((q for _, q in pairs), ZERO)
        if selected != item.approved_quantity:
            raise BatchOverAllocationError(
                'Soma dos lotes difere da quantidade aprovada',
                item_id=item.pk,
                approved=item.approved_quantity,
                selected=selected,
            )

        with transaction.atomic():
            batches = StockBatch.objects.select_for_update().filter(
                pk__in=[batch_id for batch_id, _ in pairs],
                stock__department_id=item.transfer.supplying_department_id,
                stock__product_id=item.product_id,
                is_active=True,
                status=BatchStatus.AVAILABLE,
            ).in_bulk()

            missing = [batch_id for batch_id, _ in pairs if batch_id not in batches]
            if missing:
                raise NotFoundError(
                    'Lote indisponível para este item',
                    resource='StockBatch',
                    batch_ids=missing,
                )

            for batch_id, quantity in pairs:
                batch = batches[batch_id]
                if quantity > batch.available_quantity:
                    raise BatchOverAllocationError(
                        'Quantidade excede o disponível no lote',
                        batch_id=batch_id,
                        lot_number=batch.lot_number,
                        available=batch.available_quantity,
                        requested=quantity,
                    )

            picks = []
            for batch_id, quantity in pairs:
                if not cls._reserve(batch_id, quantity):
                    # Drained between the check above and now
                    raise BatchOverAllocationError(
                        'Quantidade excede o disponível no lote',
                        batch_id=batch_id,
                        lot_number=batches[batch_id].lot_number,
                        requested=quantity,
                    )
                picks.append(TransferBatch.objects.create(
                    item=item,
                    batch=batches[batch_id],
                    quantity=quantity,
                ))

            sync_batch_status(*batches)

        logger.info(
            "transfer.item.picked",
            extra={
                "item_id": item.pk,
                "qty": str(selected),
                "batches": len(picks),
                "user_id": getattr(actor, 'pk', None),
            },
        )
        return picks

    @classmethod
    def release_picks(cls, item, actor=None) -> Decimal:
        """
        Return an item's picked quantities to their exact lots and forget the picks.

        Returns:
            Total quantity released
        """
        released = ZERO
        with transaction.atomic():
            picks = list(item.batches.select_related('batch'))
            for pick in picks:
                if not cls._unreserve(pick.batch_id, pick.quantity):
                    logger.error(
                        "transfer.item.release_failed",
                        extra={"item_id": item.pk, "batch_id": pick.batch_id, "qty": str(pick.quantity)},
                    )
                    raise InsufficientStockError(
                        'Reserva do lote menor que a separação',
                        batch_id=pick.batch_id,
                        lot_number=pick.batch.lot_number,
                        requested=pick.quantity,
                    )
                released += pick.quantity

            sync_batch_status(*[pick.batch_id for pick in picks])
            item.batches.all().delete()

        logger.info(
            "transfer.item.picks_released",
            extra={"item_id": item.pk, "qty": str(released), "user_id": getattr(actor, 'pk', None)},
        )
        return released

    # ══════════════════════════════════════════════════════════════
    # DELIVERY
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def confirm_delivery(cls, item, batch_deliveries, actor=None, snapshot=None) -> Decimal:
        """
        Move picked quantities from the supplying to the requesting department.

        For each picked lot: the prepared quantity leaves the supplying
        lot (reserved and total), the received quantity is credited to
        the requesting department's lot with the same number (created
        with the source's expiry and prices if absent). Any difference
        is shortfall, recorded on the TransferBatch row.

        Args:
            item: PREPARED TransferItem
            batch_deliveries: [{'batch_id': ..., 'received_quantity': ...}, ...],
                exactly one entry per picked lot

        Returns:
            Total received quantity

        Concurrency:
            - All ledger moves run under one transaction.atomic()
            - Any failure rolls back both departments' lots
        """
        entries = dict(_pairs(batch_deliveries, 'received_quantity'))
        picks = list(item.batches.select_related('batch'))
        if not picks:
            raise ValidationError('Item sem lotes separados', item_id=item.pk)

        picked_ids = {pick.batch_id for pick in picks}
        unknown = [batch_id for batch_id in entries if batch_id not in picked_ids]
        missing = [batch_id for batch_id in picked_ids if batch_id not in entries]
        if unknown or missing:
            raise ValidationError(
                'Informe o recebido de cada lote separado',
                field='batches',
                unknown=unknown,
                missing=missing,
            )

        for pick in picks:
            received = entries[pick.batch_id]
            if received < 0 or received > pick.quantity:
                raise ValidationError(
                    'Quantidade recebida fora do intervalo separado',
                    batch_id=pick.batch_id,
                    prepared=pick.quantity,
                    received=received,
                )

        total_received = sum(entries.values(), ZERO)
        if total_received <= 0:
            raise ValidationError('Quantidade recebida deve ser positiva', field='received_quantity')

        transfer = item.transfer
        try:
            with transaction.atomic():
                destination = StockLedger.get_or_create_stock(
                    transfer.requesting_department_id, item.product_id, actor, snapshot,
                )
                for pick in picks:
                    source = pick.batch
                    consumed = StockBatch.objects.filter(
                        pk=source.pk,
                        reserved_quantity__gte=pick.quantity,
                    ).update(
                        reserved_quantity=F('reserved_quantity') - pick.quantity,
                        total_quantity=F('total_quantity') - pick.quantity,
                        updated_at=timezone.now(),
                    )
                    if not consumed:
                        raise InsufficientStockError(
                            'Reserva do lote menor que a separação',
                            batch_id=source.pk,
                            lot_number=source.lot_number,
                            requested=pick.quantity,
                        )

                    received = entries[pick.batch_id]
                    pick.received_quantity = received
                    pick.save(update_fields=['received_quantity'])

                    if received > 0:
                        StockLedger.receive(
                            destination,
                            source.lot_number,
                            received,
                            actor=actor,
                            snapshot=snapshot,
                            expiry_date=source.expiry_date,
                            manufacture_date=source.manufacture_date,
                            supplier=source.supplier,
                            cost_price=source.cost_price,
                            selling_price=source.selling_price,
                            location=destination.location,
                        )

                sync_batch_status(*picked_ids)
                StockLedger.touch(picks[0].batch.stock_id)
        except Exception:
            logger.exception(
                "transfer.delivery.rolled_back",
                extra={"item_id": item.pk, "transfer_id": transfer.pk},
            )
            raise

        shortfall = sum((pick.quantity for pick in picks), ZERO) - total_received
        logger.info(
            "transfer.item.delivered_stock",
            extra={
                "item_id": item.pk,
                "received": str(total_received),
                "shortfall": str(shortfall),
                "user_id": getattr(actor, 'pk', None),
            },
        )
        return total_received

    @classmethod
    def picked_quantity(cls, item) -> Decimal:
        """Sum of an item's TransferBatch quantities."""
        return item.batches.aggregate(total=Sum('quantity'))['total'] or ZERO
