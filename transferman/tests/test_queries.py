"""
Tests for TransferQueries (read-only views of transfers and batches).
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from transferman.exceptions import NotFoundError
from transferman.models import BatchStatus, DepartmentStock, StockBatch, TransferPriority, TransferStatus
from transferman.services.ledger import StockLedger
from transferman.services.queries import TransferQueries


pytestmark = pytest.mark.django_db


class TestTransferDetails:
    """Tests for get_transfer_with_details()."""

    def test_details_include_items_picks_and_history(self, prepared_item, transfer, organization):
        data = TransferQueries.get_transfer_with_details(transfer.pk, organization)

        assert data['code'] == 'TR-0001'
        assert data['status'] == TransferStatus.PREPARED
        assert data['requesting_department']['name'] == 'Enfermaria'
        assert data['supplying_department']['name'] == 'Farmácia'
        assert data['total_items'] == 1

        item = data['items'][0]
        assert item['product']['code'] == 'PARA500'
        assert item['prepared_quantity'] == Decimal('8')
        assert [(b['lot_number'], b['quantity']) for b in item['batches']] == [
            ('L-001', Decimal('5')),
            ('L-002', Decimal('3')),
        ]

        actions = [h['action'] for h in data['history']]
        assert actions[0] == 'CREATED'
        assert 'PREPARED' in actions
        assert data['history'][0]['changed_by']['username'] == 'nurse'

    def test_missing_transfer(self):
        with pytest.raises(NotFoundError):
            TransferQueries.get_transfer_with_details(999999)

    def test_other_organization_scope(self, transfer, other_organization):
        with pytest.raises(NotFoundError):
            TransferQueries.get_transfer_with_details(transfer.pk, other_organization)


class TestTransferLists:
    """Tests for list_outgoing() and list_incoming()."""

    @pytest.fixture
    def transfers(self, service, organization, ward, pharmacy, paracetamol, dipyrone, nurse):
        created = []
        for code, title, priority in [
            ('TR-0010', 'Reposição semanal', TransferPriority.NORMAL),
            ('TR-0011', 'Urgência noturna', TransferPriority.URGENT),
            ('TR-0012', 'Reposição mensal', TransferPriority.NORMAL),
        ]:
            created.append(service.create_transfer(
                organization, ward, pharmacy, code, title,
                [{'product': paracetamol, 'requested_quantity': 1},
                 {'product': dipyrone, 'requested_quantity': 2}],
                actor=nurse, priority=priority,
            ))
        return created

    def test_outgoing_newest_first(self, transfers, pharmacy):
        rows = TransferQueries.list_outgoing(pharmacy)

        assert [r['code'] for r in rows] == ['TR-0012', 'TR-0011', 'TR-0010']
        assert rows[0]['total_items'] == 2

    def test_incoming_mirrors_outgoing(self, transfers, ward, pharmacy):
        assert len(TransferQueries.list_incoming(ward)) == 3
        assert TransferQueries.list_incoming(pharmacy) == []
        assert TransferQueries.list_outgoing(ward) == []

    def test_filter_by_priority(self, transfers, pharmacy):
        rows = TransferQueries.list_outgoing(pharmacy, priority=TransferPriority.URGENT)

        assert [r['code'] for r in rows] == ['TR-0011']

    def test_search_code_or_title(self, transfers, pharmacy):
        assert [r['code'] for r in TransferQueries.list_outgoing(pharmacy, search='mensal')] == ['TR-0012']
        assert [r['code'] for r in TransferQueries.list_outgoing(pharmacy, search='tr-0010')] == ['TR-0010']

    def test_filter_by_status(self, transfers, service, pharmacy, manager):
        service.approve_all(transfers[0], actor=manager)

        rows = TransferQueries.list_outgoing(pharmacy, status=TransferStatus.APPROVED)

        assert [r['code'] for r in rows] == ['TR-0010']
        assert len(TransferQueries.list_outgoing(pharmacy, status='all')) == 3


class TestBatchesForTransfer:
    """Tests for list_batches_for_transfer()."""

    def test_soonest_expiry_first_with_summary(self, pharmacy_stock, old_batch, new_batch, today):
        StockLedger.add_batch(pharmacy_stock, 'L-NOEXP', Decimal('1'))

        data = TransferQueries.list_batches_for_transfer(pharmacy_stock)

        assert [b['lot_number'] for b in data['batches']] == ['L-002', 'L-001', 'L-NOEXP']
        assert data['batches'][0]['days_to_expiry'] == 30
        assert data['summary'] == {
            'total_batches': 3,
            'total_available': Decimal('11'),
            'total_reserved': Decimal('0'),
            'near_expiry': 1,
        }

    def test_unpickable_batches_excluded(self, pharmacy_stock, old_batch, new_batch):
        StockBatch.objects.filter(pk=old_batch.pk).update(status=BatchStatus.DAMAGED)

        data = TransferQueries.list_batches_for_transfer(pharmacy_stock.pk)

        assert [b['lot_number'] for b in data['batches']] == ['L-002']

    def test_near_expiry_window_is_configurable(self, settings, pharmacy_stock, old_batch, new_batch):
        settings.TRANSFERMAN = {'NEAR_EXPIRY_DAYS': 365}

        data = TransferQueries.list_batches_for_transfer(pharmacy_stock)

        assert data['summary']['near_expiry'] == 2

    def test_expiring_before_filter(self, pharmacy_stock, old_batch, new_batch, today):
        soon = StockBatch.objects.filter(stock=pharmacy_stock).expiring_before(today + timedelta(days=60))

        assert list(soon) == [new_batch]


class TestDepartmentStocks:
    """Tests for list_department_stocks() and incoming_by_product()."""

    @pytest.fixture
    def ward_stock(self, ward, paracetamol):
        return StockLedger.get_or_create_stock(ward, paracetamol)

    def _row(self, department, product):
        rows = TransferQueries.list_department_stocks(department)
        return next(row for row in rows if row['product']['code'] == product.code)

    def test_nothing_incoming_while_pending(self, ward_stock, item, ward, paracetamol):
        assert TransferQueries.incoming_by_product(ward) == {}
        assert self._row(ward, paracetamol)['incoming_quantity'] == Decimal('0')

    def test_approved_quantity_is_incoming(self, ward_stock, approved_item, ward, paracetamol):
        row = self._row(ward, paracetamol)

        assert row['incoming_quantity'] == Decimal('8')
        assert row['total_quantity'] == Decimal('0')
        assert row['batches'] == []

    def test_partial_approval_counts_approved_quantity(self, service, ward_stock, item, manager, ward, paracetamol):
        service.approve_transfer_item(item, actor=manager, approved_quantity=Decimal('6'))

        assert TransferQueries.incoming_by_product(ward) == {paracetamol.pk: Decimal('6')}

    def test_prepared_quantity_is_incoming(self, ward_stock, prepared_item, ward, paracetamol):
        assert self._row(ward, paracetamol)['incoming_quantity'] == Decimal('8')

    def test_delivered_moves_into_available(self, service, prepared_item, nurse, ward, paracetamol):
        service.deliver_transfer_item(prepared_item, [
            {'batch_id': pick.batch_id, 'received_quantity': pick.quantity}
            for pick in prepared_item.batches.all()
        ], actor=nurse)

        row = self._row(ward, paracetamol)
        assert row['incoming_quantity'] == Decimal('0')
        assert row['available_quantity'] == Decimal('8')
        assert [b['lot_number'] for b in row['batches']] == ['L-002', 'L-001']

    def test_supplier_sees_reservations(self, prepared_item, pharmacy, paracetamol):
        row = self._row(pharmacy, paracetamol)

        assert row['total_quantity'] == Decimal('10')
        assert row['reserved_quantity'] == Decimal('8')
        assert row['available_quantity'] == Decimal('2')
        assert row['incoming_quantity'] == Decimal('0')

    def test_low_only(self, pharmacy_stock, old_batch, new_batch, dipyrone_batch, pharmacy):
        DepartmentStock.objects.filter(pk=pharmacy_stock.pk).update(min_stock_level=Decimal('50'))

        rows = TransferQueries.list_department_stocks(pharmacy, low_only=True)

        assert [row['product']['code'] for row in rows] == ['PARA500']
        assert rows[0]['is_low'] is True

    def test_expiring_only(self, old_batch, new_batch, dipyrone_batch, pharmacy, today):
        rows = TransferQueries.list_department_stocks(pharmacy, expiring_only=True, today=today)

        assert [row['product']['code'] for row in rows] == ['PARA500']
        assert rows[0]['has_expiring'] is True

    def test_quarantined_lot_not_counted_as_expiring(self, old_batch, new_batch, pharmacy, today):
        StockLedger.set_status(new_batch, BatchStatus.QUARANTINE, reason='Temperatura')

        rows = TransferQueries.list_department_stocks(pharmacy, expiring_only=True, today=today)

        assert rows == []

    def test_search_generic_name(self, old_batch, dipyrone_batch, pharmacy):
        rows = TransferQueries.list_department_stocks(pharmacy, search='paracet')

        assert [row['product']['code'] for row in rows] == ['PARA500']

    def test_ordered_by_product_code(self, old_batch, dipyrone_batch, pharmacy):
        rows = TransferQueries.list_department_stocks(pharmacy)

        assert [row['product']['code'] for row in rows] == ['DIPI1G', 'PARA500']
