"""
Tests for the batch ledger (StockLedger).
"""

from datetime import timedelta
from decimal import Decimal
from io import StringIO

import pytest
from django.core.management import call_command
from django.db import IntegrityError, transaction

from transferman.exceptions import (
    DuplicateLotError,
    InsufficientStockError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from transferman.models import BatchStatus, DepartmentStock, StockBatch
from transferman.services.allocation import Allocation
from transferman.services.ledger import StockLedger, to_quantity


pytestmark = pytest.mark.django_db


class TestAddBatch:
    """Tests for StockLedger.add_batch()."""

    def test_new_batch_is_fully_available(self, old_batch):
        old_batch.refresh_from_db()
        assert old_batch.total_quantity == Decimal('5')
        assert old_batch.available_quantity == Decimal('5')
        assert old_batch.reserved_quantity == Decimal('0')
        assert old_batch.status == BatchStatus.AVAILABLE
        assert old_batch.is_active

    def test_duplicate_lot_number_rejected(self, pharmacy_stock, old_batch):
        with pytest.raises(DuplicateLotError) as exc:
            StockLedger.add_batch(pharmacy_stock, 'L-001', Decimal('1'))

        assert exc.value.code == 'DUPLICATE_LOT'
        assert StockBatch.objects.filter(stock=pharmacy_stock).count() == 1

    def test_same_lot_number_allowed_in_another_stock(self, old_batch, ward, paracetamol):
        ward_stock = StockLedger.get_or_create_stock(ward, paracetamol)

        batch = StockLedger.add_batch(ward_stock, 'L-001', Decimal('2'))

        assert batch.pk != old_batch.pk

    @pytest.mark.parametrize('quantity', [
        Decimal('0'), Decimal('-1'), 'NaN', 'sNaN', 'Infinity', Decimal('-Infinity'), None,
    ])
    def test_bad_quantity_rejected(self, pharmacy_stock, quantity):
        with pytest.raises(ValidationError):
            StockLedger.add_batch(pharmacy_stock, 'L-900', quantity)

    def test_empty_lot_number_rejected(self, pharmacy_stock):
        with pytest.raises(ValidationError):
            StockLedger.add_batch(pharmacy_stock, '  ', Decimal('1'))

    def test_add_batch_stamps_last_movement(self, pharmacy_stock):
        assert pharmacy_stock.last_movement_at is None

        StockLedger.add_batch(pharmacy_stock, 'L-900', Decimal('1'))

        pharmacy_stock.refresh_from_db()
        assert pharmacy_stock.last_movement_at is not None


class TestStock:
    """Tests for stock rows and summaries."""

    def test_get_or_create_stock_is_unique(self, pharmacy, paracetamol, pharmacy_stock):
        again = StockLedger.get_or_create_stock(pharmacy, paracetamol)

        assert again.pk == pharmacy_stock.pk
        assert DepartmentStock.objects.filter(department=pharmacy, product=paracetamol).count() == 1

    def test_summarize_sums_batches(self, pharmacy_stock, old_batch, new_batch):
        summary = StockLedger.summarize(pharmacy_stock)

        assert summary['total_quantity'] == Decimal('10')
        assert summary['available_quantity'] == Decimal('10')
        assert summary['reserved_quantity'] == Decimal('0')

    def test_summarize_empty_stock_is_zero(self, pharmacy_stock):
        assert StockLedger.summarize(pharmacy_stock)['total_quantity'] == Decimal('0')

    def test_summarize_skips_expired_and_inactive(self, pharmacy_stock, old_batch, new_batch):
        StockBatch.objects.filter(pk=old_batch.pk).update(status=BatchStatus.EXPIRED)
        StockBatch.objects.filter(pk=new_batch.pk).update(is_active=False)

        assert StockLedger.summarize(pharmacy_stock.pk)['total_quantity'] == Decimal('0')

    def test_is_low_without_minimum(self, pharmacy_stock, old_batch):
        assert StockLedger.is_low(pharmacy_stock) is False

    def test_is_low_below_minimum(self, pharmacy_stock, old_batch, new_batch):
        pharmacy_stock.min_stock_level = Decimal('12')
        pharmacy_stock.save()

        assert StockLedger.is_low(pharmacy_stock) is True

    def test_reservation_counts_against_low_stock(self, pharmacy_stock, old_batch, new_batch):
        pharmacy_stock.min_stock_level = Decimal('4')
        pharmacy_stock.save()
        assert StockLedger.is_low(pharmacy_stock) is False

        Allocation.reserve_fifo(pharmacy_stock, Decimal('7'))

        assert StockLedger.is_low(pharmacy_stock) is True

    def test_list_low_stocks(self, pharmacy, pharmacy_stock, old_batch, dipyrone_batch):
        pharmacy_stock.min_stock_level = Decimal('10')
        pharmacy_stock.save()

        low = StockLedger.list_low_stocks(pharmacy)

        assert [(stock.pk, available) for stock, available in low] == [(pharmacy_stock.pk, Decimal('5'))]


class TestReceive:
    """Tests for StockLedger.receive()."""

    def test_receive_into_existing_lot_increments(self, pharmacy_stock, old_batch):
        batch = StockLedger.receive(pharmacy_stock, 'L-001', Decimal('3'))

        assert batch.pk == old_batch.pk
        assert batch.total_quantity == Decimal('8')
        assert batch.available_quantity == Decimal('8')

    def test_receive_new_lot_creates_batch(self, pharmacy_stock, old_batch, today):
        batch = StockLedger.receive(
            pharmacy_stock, 'L-777', Decimal('4'), expiry_date=today + timedelta(days=10),
        )

        assert batch.pk != old_batch.pk
        assert batch.expiry_date == today + timedelta(days=10)
        assert StockBatch.objects.filter(stock=pharmacy_stock).count() == 2

    def test_receive_reactivates_depleted_lot(self, pharmacy_stock, old_batch):
        StockLedger.adjust(old_batch, Decimal('-5'), reason='Inventário')
        old_batch.refresh_from_db()
        assert not old_batch.is_active

        batch = StockLedger.receive(pharmacy_stock, 'L-001', Decimal('2'))

        assert batch.is_active
        assert batch.status == BatchStatus.AVAILABLE
        assert batch.available_quantity == Decimal('2')

    @pytest.mark.parametrize('status', [BatchStatus.QUARANTINE, BatchStatus.DAMAGED, BatchStatus.EXPIRED])
    def test_receive_into_unusable_lot_refused(self, pharmacy_stock, old_batch, status):
        StockBatch.objects.filter(pk=old_batch.pk).update(status=status)

        with pytest.raises(InvalidTransitionError) as exc:
            StockLedger.receive(pharmacy_stock, 'L-001', Decimal('3'))

        assert exc.value.data['current'] == status
        old_batch.refresh_from_db()
        assert old_batch.total_quantity == Decimal('5')

    def test_receive_into_fully_reserved_lot(self, pharmacy_stock, old_batch):
        Allocation.reserve_fifo(pharmacy_stock, Decimal('5'))

        batch = StockLedger.receive(pharmacy_stock, 'L-001', Decimal('2'))

        assert batch.status == BatchStatus.AVAILABLE
        assert batch.available_quantity == Decimal('2')
        assert batch.reserved_quantity == Decimal('5')


class TestToQuantity:
    """Tests for to_quantity()."""

    @pytest.mark.parametrize('value,expected', [
        (3, Decimal('3')),
        ('2.5', Decimal('2.5')),
        (Decimal('0.125'), Decimal('0.125')),
    ])
    def test_accepts_finite_numbers(self, value, expected):
        assert to_quantity(value) == expected

    @pytest.mark.parametrize('value', [
        None, True, 'abc', '', 'NaN', 'sNaN', 'Infinity', '-inf', Decimal('NaN'), Decimal('Infinity'), float('nan'),
    ])
    def test_rejects_garbage_and_non_finite(self, value):
        with pytest.raises(ValidationError) as exc:
            to_quantity(value, 'requested_quantity')

        assert exc.value.data['field'] == 'requested_quantity'


class TestSetStatus:
    """Tests for StockLedger.set_status()."""

    def test_quarantine_takes_lot_out_of_picking(self, pharmacy_stock, old_batch, new_batch):
        batch = StockLedger.set_status(old_batch, BatchStatus.QUARANTINE, reason='Embalagem violada')

        assert batch.status == BatchStatus.QUARANTINE
        assert list(StockBatch.objects.filter(stock=pharmacy_stock).pickable()) == [new_batch]

    def test_release_back_to_available(self, old_batch):
        StockLedger.set_status(old_batch, BatchStatus.QUARANTINE, reason='Inspeção')

        batch = StockLedger.set_status(old_batch, BatchStatus.AVAILABLE, reason='Liberado')

        assert batch.status == BatchStatus.AVAILABLE
        assert batch.available_quantity == Decimal('5')

    def test_damaged_from_quarantine(self, old_batch):
        StockLedger.set_status(old_batch, BatchStatus.QUARANTINE, reason='Inspeção')

        batch = StockLedger.set_status(old_batch, BatchStatus.DAMAGED, reason='Reprovado')

        assert batch.status == BatchStatus.DAMAGED

    def test_reserved_lot_cannot_leave_circulation(self, pharmacy_stock, old_batch):
        Allocation.reserve_fifo(pharmacy_stock, Decimal('2'))

        with pytest.raises(InvalidTransitionError) as exc:
            StockLedger.set_status(old_batch, BatchStatus.DAMAGED, reason='Queda')

        assert exc.value.data['reserved'] == Decimal('2')
        old_batch.refresh_from_db()
        assert old_batch.status == BatchStatus.AVAILABLE

    def test_fully_reserved_lot_rejected(self, pharmacy_stock, old_batch):
        Allocation.reserve_fifo(pharmacy_stock, Decimal('5'))

        with pytest.raises(InvalidTransitionError) as exc:
            StockLedger.set_status(old_batch, BatchStatus.QUARANTINE, reason='Inspeção')

        assert exc.value.data['current'] == BatchStatus.RESERVED

    @pytest.mark.parametrize('status', [BatchStatus.RESERVED, BatchStatus.EXPIRED, 'LOST'])
    def test_derived_or_unknown_status_rejected(self, old_batch, status):
        with pytest.raises(ValidationError):
            StockLedger.set_status(old_batch, status, reason='x')

    def test_same_status_rejected(self, old_batch):
        with pytest.raises(InvalidTransitionError):
            StockLedger.set_status(old_batch, BatchStatus.AVAILABLE, reason='x')

    def test_expired_lot_stays_expired(self, old_batch):
        StockBatch.objects.filter(pk=old_batch.pk).update(status=BatchStatus.EXPIRED)

        with pytest.raises(InvalidTransitionError):
            StockLedger.set_status(old_batch, BatchStatus.AVAILABLE, reason='Engano')

    def test_reason_required(self, old_batch):
        with pytest.raises(ValidationError):
            StockLedger.set_status(old_batch, BatchStatus.QUARANTINE, reason='  ')

    def test_inactive_lot_not_found(self, old_batch):
        StockLedger.deactivate(old_batch)

        with pytest.raises(NotFoundError):
            StockLedger.set_status(old_batch, BatchStatus.QUARANTINE, reason='x')


class TestDeactivate:
    """Tests for StockLedger.deactivate()."""

    def test_deactivated_lot_leaves_the_summary(self, pharmacy_stock, old_batch, new_batch):
        batch = StockLedger.deactivate(old_batch)

        assert not batch.is_active
        assert batch.total_quantity == Decimal('5')
        assert StockLedger.summarize(pharmacy_stock)['total_quantity'] == Decimal('5')

    def test_reserved_lot_refused(self, pharmacy_stock, old_batch):
        Allocation.reserve_fifo(pharmacy_stock, Decimal('1'))

        with pytest.raises(InvalidTransitionError):
            StockLedger.deactivate(old_batch)

        old_batch.refresh_from_db()
        assert old_batch.is_active

    def test_incoming_lot_refused(self, old_batch):
        StockBatch.objects.filter(pk=old_batch.pk).update(incoming_quantity=Decimal('4'))

        with pytest.raises(InvalidTransitionError) as exc:
            StockLedger.deactivate(old_batch)

        assert exc.value.data['incoming'] == Decimal('4')

    def test_deactivating_twice_is_a_noop(self, old_batch):
        StockLedger.deactivate(old_batch)

        assert not StockLedger.deactivate(old_batch.pk).is_active

    def test_missing_lot(self):
        with pytest.raises(NotFoundError):
            StockLedger.deactivate(999999)


class TestAdjust:
    """Tests for StockLedger.adjust()."""

    def test_adjust_up_and_down(self, old_batch):
        StockLedger.adjust(old_batch, Decimal('2'), reason='Contagem')
        batch = StockLedger.adjust(old_batch, Decimal('-4'), reason='Avaria')

        assert batch.total_quantity == Decimal('3')
        assert batch.available_quantity == Decimal('3')

    def test_adjust_below_available_rejected(self, old_batch):
        with pytest.raises(InsufficientStockError) as exc:
            StockLedger.adjust(old_batch, Decimal('-6'), reason='Avaria')

        assert exc.value.shortfall == Decimal('1')
        old_batch.refresh_from_db()
        assert old_batch.available_quantity == Decimal('5')

    def test_adjust_cannot_touch_reserved(self, pharmacy_stock, old_batch):
        Allocation.reserve_fifo(pharmacy_stock, Decimal('4'))

        with pytest.raises(InsufficientStockError):
            StockLedger.adjust(old_batch, Decimal('-2'), reason='Avaria')

    def test_adjust_requires_reason(self, old_batch):
        with pytest.raises(ValidationError):
            StockLedger.adjust(old_batch, Decimal('1'), reason='')

    def test_adjust_to_zero_deactivates(self, old_batch):
        batch = StockLedger.adjust(old_batch, Decimal('-5'), reason='Descarte')

        assert batch.total_quantity == Decimal('0')
        assert not batch.is_active


class TestConstraints:
    """Database-level quantity invariants."""

    def test_total_must_equal_available_plus_reserved(self, old_batch):
        with pytest.raises(IntegrityError):
            with transaction.atomic():
                StockBatch.objects.filter(pk=old_batch.pk).update(total_quantity=Decimal('99'))

    def test_available_cannot_go_negative(self, old_batch):
        with pytest.raises(IntegrityError):
            with transaction.atomic():
                StockBatch.objects.filter(pk=old_batch.pk).update(
                    available_quantity=Decimal('-1'),
                    total_quantity=Decimal('-1'),
                )


class TestExpireBatches:
    """Tests for StockLedger.expire_batches() and the expire_batches command."""

    def test_expires_only_past_due(self, pharmacy_stock, old_batch, new_batch, today):
        StockBatch.objects.filter(pk=old_batch.pk).update(expiry_date=today - timedelta(days=1))

        assert StockLedger.expire_batches() == 1

        old_batch.refresh_from_db()
        new_batch.refresh_from_db()
        assert old_batch.status == BatchStatus.EXPIRED
        assert new_batch.status == BatchStatus.AVAILABLE

    def test_skips_batches_with_reservations(self, pharmacy_stock, old_batch, today):
        Allocation.reserve_fifo(pharmacy_stock, Decimal('1'))
        StockBatch.objects.filter(pk=old_batch.pk).update(expiry_date=today - timedelta(days=1))

        assert StockLedger.expire_batches() == 0

    def test_processes_in_chunks(self, settings, pharmacy_stock, today):
        settings.TRANSFERMAN = {'EXPIRED_BATCH_SIZE': 2}
        for n in range(5):
            StockLedger.add_batch(
                pharmacy_stock, f'OLD-{n}', Decimal('1'),
                expiry_date=today - timedelta(days=n + 1),
            )

        assert StockLedger.expire_batches() == 5
        assert StockBatch.objects.filter(status=BatchStatus.EXPIRED).count() == 5

    def test_command_dry_run_changes_nothing(self, old_batch, today):
        StockBatch.objects.filter(pk=old_batch.pk).update(expiry_date=today - timedelta(days=1))
        out = StringIO()

        call_command('expire_batches', '--dry-run', stdout=out)

        assert '1 lote(s) seria(m) marcado(s)' in out.getvalue()
        old_batch.refresh_from_db()
        assert old_batch.status == BatchStatus.AVAILABLE

    def test_command_expires(self, old_batch, today):
        StockBatch.objects.filter(pk=old_batch.pk).update(expiry_date=today - timedelta(days=1))
        out = StringIO()

        call_command('expire_batches', stdout=out)

        assert '1 lote(s) marcado(s)' in out.getvalue()
        old_batch.refresh_from_db()
        assert old_batch.status == BatchStatus.EXPIRED
