"""
Pytest fixtures for Transferman tests.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from django.utils import timezone

from transferman.adapters import reset_adapters
from transferman.models import (
    Department,
    Organization,
    OrganizationMember,
    OrganizationRole,
    Product,
)
from transferman.service import TransferService
from transferman.services.ledger import StockLedger


User = get_user_model()


class RecordingAuditWriter:
    """Audit writer that keeps entries in memory."""

    def __init__(self):
        self.entries = []

    def write(self, entry):
        self.entries.append(entry)

    @property
    def actions(self):
        return [entry.action for entry in self.entries]


class FailingAuditWriter:
    """Audit writer whose store is down."""

    def write(self, entry):
        raise ConnectionError('audit store unavailable')


@pytest.fixture(autouse=True)
def _reset_adapters():
    reset_adapters()
    yield
    reset_adapters()


# ══════════════════════════════════════════════════════════════
# ORGANIZATION
# ══════════════════════════════════════════════════════════════


@pytest.fixture
def organization(db):
    return Organization.objects.create(name='Hospital Central', slug='hospital-central')


@pytest.fixture
def other_organization(db):
    return Organization.objects.create(name='Clínica Norte', slug='clinica-norte')


def _member(organization, username, role):
    user = User.objects.create_user(
        username=username,
        password='testpass123',
        first_name=username.capitalize(),
        email=f'{username}@example.com',
    )
    OrganizationMember.objects.create(organization=organization, user=user, role=role)
    return user


@pytest.fixture
def nurse(organization):
    """Plain member: may request, approve, prepare and deliver."""
    return _member(organization, 'nurse', OrganizationRole.MEMBER)


@pytest.fixture
def manager(organization):
    """Admin: may also cancel."""
    return _member(organization, 'manager', OrganizationRole.ADMIN)


@pytest.fixture
def outsider(db):
    """Authenticated user with no membership."""
    return User.objects.create_user(username='outsider', password='testpass123')


@pytest.fixture
def pharmacy(organization):
    """Supplying department."""
    return Department.objects.create(organization=organization, name='Farmácia', slug='farmacia')


@pytest.fixture
def ward(organization):
    """Requesting department."""
    return Department.objects.create(organization=organization, name='Enfermaria', slug='enfermaria')


@pytest.fixture
def paracetamol(organization):
    return Product.objects.create(
        organization=organization,
        code='PARA500',
        name='Paracetamol 500mg',
        generic_name='Paracetamol',
        base_unit='comp',
    )


@pytest.fixture
def dipyrone(organization):
    return Product.objects.create(
        organization=organization,
        code='DIPI1G',
        name='Dipirona 1g',
        base_unit='amp',
    )


# ══════════════════════════════════════════════════════════════
# STOCK
# ══════════════════════════════════════════════════════════════


@pytest.fixture
def today():
    return date.today()


@pytest.fixture
def pharmacy_stock(pharmacy, paracetamol):
    return StockLedger.get_or_create_stock(pharmacy, paracetamol)


@pytest.fixture
def old_batch(pharmacy_stock, today):
    """Received two days ago, 5 units."""
    return StockLedger.add_batch(
        pharmacy_stock, 'L-001', Decimal('5'),
        expiry_date=today + timedelta(days=200),
        cost_price=Decimal('0.35'),
        received_at=timezone.now() - timedelta(days=2),
    )


@pytest.fixture
def new_batch(pharmacy_stock, today):
    """Received yesterday, 5 units, expires sooner."""
    return StockLedger.add_batch(
        pharmacy_stock, 'L-002', Decimal('5'),
        expiry_date=today + timedelta(days=30),
        received_at=timezone.now() - timedelta(days=1),
    )


@pytest.fixture
def dipyrone_batch(pharmacy, dipyrone, today):
    stock = StockLedger.get_or_create_stock(pharmacy, dipyrone)
    return StockLedger.add_batch(
        stock, 'D-100', Decimal('20'),
        expiry_date=today + timedelta(days=365),
    )


# ══════════════════════════════════════════════════════════════
# SERVICE
# ══════════════════════════════════════════════════════════════


@pytest.fixture
def audit():
    return RecordingAuditWriter()


@pytest.fixture
def service(audit):
    return TransferService(audit=audit)


@pytest.fixture
def transfer(service, organization, ward, pharmacy, paracetamol, nurse):
    """PENDING transfer: ward asks pharmacy for 8 paracetamol."""
    return service.create_transfer(
        organization,
        requesting_department=ward,
        supplying_department=pharmacy,
        code='TR-0001',
        title='Reposição semanal',
        items=[{'product': paracetamol, 'requested_quantity': Decimal('8')}],
        actor=nurse,
    )


@pytest.fixture
def item(transfer):
    return transfer.items.get()


@pytest.fixture
def approved_item(service, item, manager):
    return service.approve_transfer_item(item, actor=manager)


@pytest.fixture
def prepared_item(service, approved_item, old_batch, new_batch, manager):
    """8 picked: all 5 of L-001 and 3 of L-002."""
    return service.prepare_transfer_item(
        approved_item,
        [
            {'batch_id': old_batch.pk, 'quantity': Decimal('5')},
            {'batch_id': new_batch.pk, 'quantity': Decimal('3')},
        ],
        actor=manager,
    )
