"""
Transfer queries — read-only operations.

All methods are classmethods on TransferQueries and use no locking.
Results are plain dicts ready for serialization.
"""

from datetime import date, timedelta
from decimal import Decimal

from django.db.models import Case, Count, DecimalField, F, Prefetch, Q, Sum, When

from transferman.conf import transferman_settings
from transferman.exceptions import NotFoundError
from transferman.models.enums import BatchStatus, TransferItemStatus
from transferman.models.stock import DepartmentStock, StockBatch
from transferman.models.transfer import Transfer, TransferHistory, TransferItem

ZERO = Decimal('0')


def _department(department) -> dict:
    return {'id': department.pk, 'name': department.name, 'slug': department.slug}


def _product(product) -> dict:
    return {
        'id': product.pk,
        'code': product.code,
        'name': product.name,
        'base_unit': product.base_unit,
    }


def _batch(batch: StockBatch) -> dict:
    return {
        'id': batch.pk,
        'lot_number': batch.lot_number,
        'expiry_date': batch.expiry_date,
        'days_to_expiry': batch.days_to_expiry,
        'available_quantity': batch.available_quantity,
        'reserved_quantity': batch.reserved_quantity,
        'total_quantity': batch.total_quantity,
        'status': batch.status,
        'location': batch.location,
        'received_at': batch.received_at,
    }


def _summary(transfer: Transfer) -> dict:
    return {
        'id': transfer.pk,
        'code': transfer.code,
        'title': transfer.title,
        'status': transfer.status,
        'priority': transfer.priority,
        'requesting_department': _department(transfer.requesting_department),
        'supplying_department': _department(transfer.supplying_department),
        'requested_at': transfer.requested_at,
        'approved_at': transfer.approved_at,
        'prepared_at': transfer.prepared_at,
        'delivered_at': transfer.delivered_at,
        'cancelled_at': transfer.cancelled_at,
        'requested_by': transfer.requested_by_snapshot,
        'total_items': getattr(transfer, 'total_items', None),
    }


class TransferQueries:
    """Read-only transfer query methods."""

    @classmethod
    def get_transfer_with_details(cls, transfer_id, organization=None) -> dict:
        """
        Transfer with items, picked batches and history.

        Args:
            transfer_id: Transfer pk
            organization: If given, the transfer must belong to it

        Raises:
            NotFoundError: Absent, or in another organization
        """
        qs = Transfer.objects.select_related(
            'requesting_department', 'supplying_department',
        ).prefetch_related(
            Prefetch(
                'items',
                queryset=TransferItem.objects.select_related('product').prefetch_related('batches__batch'),
            ),
            Prefetch('history', queryset=TransferHistory.objects.order_by('created_at', 'pk')),
        ).annotate(total_items=Count('items'))
        if organization is not None:
            qs = qs.filter(organization_id=getattr(organization, 'pk', organization))

        transfer = qs.filter(pk=transfer_id).first()
        if transfer is None:
            raise NotFoundError(resource='Transfer', transfer_id=transfer_id)

        data = _summary(transfer)
        data.update({
            'request_reason': transfer.request_reason,
            'notes': transfer.notes,
            'cancel_reason': transfer.cancel_reason,
            'items': [
                {
                    'id': item.pk,
                    'product': _product(item.product),
                    'status': item.status,
                    'requested_quantity': item.requested_quantity,
                    'approved_quantity': item.approved_quantity,
                    'prepared_quantity': item.prepared_quantity,
                    'received_quantity': item.received_quantity,
                    'shortfall': item.shortfall,
                    'notes': item.notes,
                    'cancel_reason': item.cancel_reason,
                    'batches': [
                        {
                            'batch_id': pick.batch_id,
                            'lot_number': pick.batch.lot_number,
                            'expiry_date': pick.batch.expiry_date,
                            'quantity': pick.quantity,
                            'received_quantity': pick.received_quantity,
                        }
                        for pick in item.batches.all()
                    ],
                }
                for item in transfer.items.all()
            ],
            'history': [
                {
                    'item_id': entry.item_id,
                    'action': entry.action,
                    'from_status': entry.from_status,
                    'to_status': entry.to_status,
                    'changed_by': entry.changed_by_snapshot,
                    'notes': entry.notes,
                    'created_at': entry.created_at,
                }
                for entry in transfer.history.all()
            ],
        })
        return data

    @classmethod
    def _list(cls, department_filter: Q, status=None, priority=None, search=None) -> list[dict]:
        qs = Transfer.objects.filter(department_filter).select_related(
            'requesting_department', 'supplying_department',
        ).annotate(total_items=Count('items'))

        # 'all' is what list UIs send for "no filter"
        if status and status != 'all':
            qs = qs.filter(status=status)
        if priority and priority != 'all':
            qs = qs.filter(priority=priority)
        if search:
            qs = qs.filter(Q(code__icontains=search) | Q(title__icontains=search))

        return [_summary(t) for t in qs.order_by('-requested_at', '-pk')]

    @classmethod
    def list_outgoing(cls, department, status=None, priority=None, search=None) -> list[dict]:
        """Transfers the department supplies, newest request first."""
        return cls._list(
            Q(supplying_department_id=getattr(department, 'pk', department)),
            status, priority, search,
        )

    @classmethod
    def list_incoming(cls, department, status=None, priority=None, search=None) -> list[dict]:
        """Transfers the department requested, newest request first."""
        return cls._list(
            Q(requesting_department_id=getattr(department, 'pk', department)),
            status, priority, search,
        )

    @classmethod
    def list_batches_for_transfer(cls, stock, today: date | None = None) -> dict:
        """
        Pickable lots of a stock, soonest expiry first, with a summary.

        Args:
            stock: DepartmentStock or its pk
            today: Reference date for near-expiry (None = today)

        Returns:
            {'batches': [...], 'summary': {'total_batches', 'total_available',
             'total_reserved', 'near_expiry'}}
        """
        today = today or date.today()
        horizon = today + timedelta(days=transferman_settings.NEAR_EXPIRY_DAYS)

        batches = list(
            StockBatch.objects.filter(stock_id=getattr(stock, 'pk', stock))
            .pickable()
            .order_by(F('expiry_date').asc(nulls_last=True), 'received_at', 'pk')
        )
        return {
            'batches': [_batch(b) for b in batches],
            'summary': {
                'total_batches': len(batches),
                'total_available': sum((b.available_quantity for b in batches), ZERO),
                'total_reserved': sum((b.reserved_quantity for b in batches), ZERO),
                'near_expiry': sum(
                    1 for b in batches
                    if b.expiry_date is not None and b.expiry_date <= horizon
                ),
            },
        }

    @classmethod
    def incoming_by_product(cls, department) -> dict[int, Decimal]:
        """
        Quantity on its way to a department, per product id.

        Counts items it requested that are APPROVED (approved quantity) or
        PREPARED (prepared quantity). Delivered items are already in its
        batches, cancelled ones never arrive.
        """
        rows = (
            TransferItem.objects.filter(
                transfer__requesting_department_id=getattr(department, 'pk', department),
                status__in=[TransferItemStatus.APPROVED, TransferItemStatus.PREPARED],
            )
            .order_by()
            .values('product_id')
            .annotate(incoming=Sum(Case(
                When(status=TransferItemStatus.PREPARED, then=F('prepared_quantity')),
                default=F('approved_quantity'),
                output_field=DecimalField(max_digits=12, decimal_places=3),
            )))
        )
        return {row['product_id']: row['incoming'] or ZERO for row in rows}

    @classmethod
    def list_department_stocks(cls, department, low_only: bool = False, expiring_only: bool = False,
                               search=None, today: date | None = None) -> list[dict]:
        """
        Stocks of a department with their active lots and summed quantities.

        incoming_quantity is derived from transfers in flight to the
        department (see incoming_by_product), not from the lots.

        Args:
            low_only: Only stocks whose available quantity is below min_stock_level
            expiring_only: Only stocks with an AVAILABLE lot expiring within
                TRANSFERMAN['NEAR_EXPIRY_DAYS']
            search: icontains on product code, name or generic name

        Returns:
            List of dicts ordered by product code
        """
        today = today or date.today()
        horizon = today + timedelta(days=transferman_settings.NEAR_EXPIRY_DAYS)
        department_id = getattr(department, 'pk', department)

        qs = DepartmentStock.objects.filter(
            department_id=department_id,
            product__is_active=True,
        ).select_related('product').prefetch_related(
            Prefetch(
                'batches',
                queryset=StockBatch.objects.active().order_by(
                    F('expiry_date').asc(nulls_last=True), 'received_at', 'pk',
                ),
                to_attr='active_batches',
            ),
        )
        if search:
            qs = qs.filter(
                Q(product__code__icontains=search)
                | Q(product__name__icontains=search)
                | Q(product__generic_name__icontains=search)
            )

        incoming = cls.incoming_by_product(department_id)
        rows = []
        for stock in qs.order_by('product__code'):
            batches = stock.active_batches
            available = sum((b.available_quantity for b in batches), ZERO)
            is_low = stock.min_stock_level is not None and available < stock.min_stock_level
            expiring = any(
                b.status == BatchStatus.AVAILABLE
                and b.expiry_date is not None
                and b.expiry_date <= horizon
                for b in batches
            )
            if low_only and not is_low:
                continue
            if expiring_only and not expiring:
                continue
            rows.append({
                'id': stock.pk,
                'product': _product(stock.product),
                'location': stock.location,
                'min_stock_level': stock.min_stock_level,
                'max_stock_level': stock.max_stock_level,
                'reorder_point': stock.reorder_point,
                'last_movement_at': stock.last_movement_at,
                'batches': [_batch(b) for b in batches],
                'total_quantity': sum((b.total_quantity for b in batches), ZERO),
                'available_quantity': available,
                'reserved_quantity': sum((b.reserved_quantity for b in batches), ZERO),
                'incoming_quantity': incoming.get(stock.product_id, ZERO),
                'is_low': is_low,
                'has_expiring': expiring,
            })
        return rows
