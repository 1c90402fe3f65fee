"""
Transfer Service — The single public interface for transfer workflows.

Usage:
    from transferman import transfers, TransfermanError

    transfer = transfers.create_transfer(
        org, requesting_department=kitchen, supplying_department=pharmacy,
        code='TR-0001', title='Reposição semanal',
        items=[{'product': dipyrone, 'requested_quantity': 10}],
        actor=user,
    )
    item = transfer.items.get()
    transfers.approve_transfer_item(item, actor=manager)
    transfers.prepare_transfer_item(item, [{'batch_id': 7, 'quantity': 10}], actor=manager)
    transfers.deliver_transfer_item(item, [{'batch_id': 7, 'received_quantity': 10}], actor=user)

Every operation, in this order:
    1. validates its input (ValidationError), touching nothing
    2. resolves the targets (NotFoundError) and the actor's role (PermissionDeniedError)
    3. checks the transition and mutates under one transaction.atomic()
    4. writes the audit entry after commit; audit failures are logged, never raised
"""

import logging
from collections.abc import Iterable, Mapping
from decimal import Decimal

from django.db import IntegrityError, transaction
from django.utils import timezone

from transferman.adapters import get_audit_writer, get_membership_backend
from transferman.conf import transferman_settings
from transferman.exceptions import (
    DuplicateCodeError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from transferman.models.enums import (
    BatchStatus,
    HistoryAction,
    TransferItemStatus,
    TransferPriority,
    TransferStatus,
)
from transferman.models.organization import Department, Product
from transferman.models.stock import StockBatch
from transferman.models.transfer import Transfer, TransferItem
from transferman.protocols.audit import AuditEntry, AuditSeverity
from transferman.protocols.membership import UserSnapshot
from transferman.services import transitions
from transferman.services.allocation import Allocation
from transferman.services.ledger import StockLedger, to_quantity

logger = logging.getLogger('transferman')


def _pk(obj):
    return getattr(obj, 'pk', obj)


def _require_reason(reason) -> str:
    reason = (reason or '').strip()
    if not reason:
        raise ValidationError('Motivo do cancelamento é obrigatório', field='reason')
    return reason


class TransferService:
    """
    Workflow operations over transfers, items and the batch ledger.

    Args:
        members: MembershipBackend (None = TRANSFERMAN['MEMBERSHIP_BACKEND'])
        audit: AuditWriter (None = TRANSFERMAN['AUDIT_WRITER'])
    """

    def __init__(self, members=None, audit=None):
        self._members = members
        self._audit = audit

    @property
    def members(self):
        return self._members or get_membership_backend()

    @property
    def audit(self):
        return self._audit or get_audit_writer()

    # ══════════════════════════════════════════════════════════════
    # PERMISSIONS
    # ══════════════════════════════════════════════════════════════

    def require_member(self, actor, organization) -> UserSnapshot:
        """
        Snapshot of an active member of the organization.

        Raises:
            PermissionDeniedError: If the actor has no active membership
        """
        role = self.members.get_role(actor, organization)
        if role is None:
            logger.warning(
                "transfer.permission_denied",
                extra={"user_id": _pk(actor), "organization_id": _pk(organization), "required": "MEMBER"},
            )
            raise PermissionDeniedError(organization_id=_pk(organization), required='MEMBER')
        return self.members.snapshot(actor, organization)

    def require_elevated(self, actor, organization) -> UserSnapshot:
        """
        Snapshot of a member holding one of TRANSFERMAN['ELEVATED_ROLES'].

        Raises:
            PermissionDeniedError: If the actor's role is missing or too low
        """
        elevated = transferman_settings.ELEVATED_ROLES
        role = self.members.get_role(actor, organization)
        if role not in elevated:
            logger.warning(
                "transfer.permission_denied",
                extra={"user_id": _pk(actor), "organization_id": _pk(organization), "role": role},
            )
            raise PermissionDeniedError(
                organization_id=_pk(organization),
                role=role,
                required=list(elevated),
            )
        return self.members.snapshot(actor, organization)

    # ══════════════════════════════════════════════════════════════
    # INTERNALS
    # ══════════════════════════════════════════════════════════════

    def _emit(self, entry: AuditEntry) -> None:
        try:
            self.audit.write(entry)
        except Exception:
            logger.exception(
                "transfer.audit_failed",
                extra={"audit_action": entry.action, "resource_id": entry.resource_id},
            )

    def _entry(self, action, description, transfer, snapshot: UserSnapshot, item=None,
               severity=AuditSeverity.INFO, **payload) -> AuditEntry:
        payload.setdefault('transfer_code', transfer.code)
        return AuditEntry(
            organization_id=transfer.organization_id,
            actor_id=snapshot.user_id,
            action=action,
            description=description,
            resource_id=item.pk if item is not None else transfer.pk,
            resource_type='TransferItem' if item is not None else 'Transfer',
            department_id=transfer.supplying_department_id,
            severity=severity,
            actor_snapshot=snapshot.as_dict(),
            payload=payload,
        )

    def _batch_entry(self, action, description, batch: StockBatch, snapshot: UserSnapshot,
                     severity=AuditSeverity.INFO, **payload) -> AuditEntry:
        department = batch.stock.department
        payload.setdefault('lot_number', batch.lot_number)
        payload.setdefault('product_code', batch.stock.product.code)
        return AuditEntry(
            organization_id=department.organization_id,
            actor_id=snapshot.user_id,
            action=action,
            description=description,
            resource_id=batch.pk,
            resource_type='StockBatch',
            department_id=department.pk,
            severity=severity,
            actor_snapshot=snapshot.as_dict(),
            payload=payload,
        )

    def _get_batch(self, batch, organization=None) -> StockBatch:
        qs = StockBatch.objects.select_related('stock__department__organization', 'stock__product')
        if organization is not None:
            qs = qs.filter(stock__department__organization_id=_pk(organization))
        found = qs.filter(pk=_pk(batch)).first()
        if found is None:
            raise NotFoundError(resource='StockBatch', batch_id=_pk(batch))
        return found

    def _get_item(self, item, organization=None) -> TransferItem:
        qs = TransferItem.objects.select_related('transfer__organization', 'product')
        if organization is not None:
            qs = qs.filter(transfer__organization_id=_pk(organization))
        found = qs.filter(pk=_pk(item)).first()
        if found is None:
            raise NotFoundError(resource='TransferItem', item_id=_pk(item))
        return found

    def _get_transfer(self, transfer, organization=None) -> Transfer:
        qs = Transfer.objects.select_related('organization')
        if organization is not None:
            qs = qs.filter(organization_id=_pk(organization))
        found = qs.filter(pk=_pk(transfer)).first()
        if found is None:
            raise NotFoundError(resource='Transfer', transfer_id=_pk(transfer))
        return found

    def _lock_transfer(self, transfer_id) -> Transfer:
        return Transfer.objects.select_for_update().get(pk=transfer_id)

    def _lock_item(self, item: TransferItem) -> TransferItem:
        """
        Lock the item's transfer, then the item.

        Every write that ends in refresh_transfer() takes the transfer row
        first, so sibling items never roll up from a stale read.
        """
        self._lock_transfer(item.transfer_id)
        return (
            TransferItem.objects.select_for_update()
            .select_related('transfer', 'product')
            .get(pk=item.pk)
        )

    def _cancel_locked_item(self, item: TransferItem, reason: str, actor, snapshot) -> TransferItem:
        """Cancel an item already locked by the caller, returning its picks first."""
        compensating = item.status == TransferItemStatus.PREPARED
        transitions.check_transition(item, TransferItemStatus.CANCELLED, compensating=compensating)
        if item.batches.exists():
            Allocation.release_picks(item, actor)
        return transitions.transition_item(
            item,
            TransferItemStatus.CANCELLED,
            actor=actor,
            snapshot=snapshot,
            notes=reason,
            compensating=compensating,
            changes={'cancel_reason': reason, 'cancelled_at': timezone.now()},
        )

    # ══════════════════════════════════════════════════════════════
    # CREATE
    # ══════════════════════════════════════════════════════════════

    def create_transfer(self, organization, requesting_department, supplying_department,
                        code: str, title: str, items: Iterable[Mapping], actor,
                        priority: str = TransferPriority.NORMAL,
                        request_reason: str = '', notes: str = '') -> Transfer:
        """
        Create a PENDING transfer with PENDING items.

        Args:
            items: [{'product': Product or pk, 'requested_quantity': ..., 'notes': ''}, ...]

        Raises:
            ValidationError: Empty code/title/items, same department on both
                sides, unknown priority, quantity <= 0, product listed twice
            NotFoundError: Department or product absent/inactive/in another organization
            PermissionDeniedError: Actor isn't a member of the organization
            DuplicateCodeError: Code already used in the organization
        """
        code = (code or '').strip()
        title = (title or '').strip()
        if not code:
            raise ValidationError('Código é obrigatório', field='code')
        if not title:
            raise ValidationError('Título é obrigatório', field='title')
        if priority not in TransferPriority.values:
            raise ValidationError('Prioridade inválida', field='priority', value=priority)
        if _pk(requesting_department) == _pk(supplying_department):
            raise ValidationError(
                'Departamentos solicitante e fornecedor devem ser diferentes',
                field='supplying_department',
            )

        lines = []
        seen = set()
        for entry in items or ():
            product_id = _pk(entry.get('product', entry.get('product_id')))
            if product_id is None:
                raise ValidationError('Produto é obrigatório', field='product')
            if product_id in seen:
                raise ValidationError('Produto repetido na transferência', field='product', product_id=product_id)
            seen.add(product_id)
            quantity = to_quantity(entry.get('requested_quantity'), 'requested_quantity')
            if quantity <= 0:
                raise ValidationError(
                    'Quantidade deve ser positiva',
                    field='requested_quantity', product_id=product_id, requested=quantity,
                )
            lines.append((product_id, quantity, entry.get('notes') or ''))
        if not lines:
            raise ValidationError('Informe ao menos um item', field='items')

        departments = Department.objects.filter(
            organization_id=organization.pk,
            is_active=True,
            pk__in=[_pk(requesting_department), _pk(supplying_department)],
        ).in_bulk()
        for department in (requesting_department, supplying_department):
            if _pk(department) not in departments:
                raise NotFoundError(resource='Department', department_id=_pk(department))

        snapshot = self.require_member(actor, organization)

        products = Product.objects.filter(
            organization_id=organization.pk,
            is_active=True,
            pk__in=seen,
        ).in_bulk()
        missing = [product_id for product_id, _, _ in lines if product_id not in products]
        if missing:
            raise NotFoundError(resource='Product', product_ids=missing)

        if Transfer.objects.filter(organization_id=organization.pk, code=code).exists():
            raise DuplicateCodeError(organization_id=organization.pk, transfer_code=code)

        try:
            with transaction.atomic():
                transfer = Transfer.objects.create(
                    organization=organization,
                    code=code,
                    title=title,
                    requesting_department_id=_pk(requesting_department),
                    supplying_department_id=_pk(supplying_department),
                    priority=priority,
                    request_reason=request_reason or '',
                    notes=notes or '',
                    requested_by=actor,
                    requested_by_snapshot=snapshot.as_dict(),
                )
                TransferItem.objects.bulk_create([
                    TransferItem(
                        transfer=transfer,
                        product_id=product_id,
                        requested_quantity=quantity,
                        notes=item_notes,
                    )
                    for product_id, quantity, item_notes in lines
                ])
                transitions.record_history(
                    transfer,
                    HistoryAction.CREATED,
                    TransferStatus.PENDING,
                    actor=actor,
                    snapshot=snapshot,
                    notes='Solicitação de transferência criada',
                )
        except IntegrityError:
            # Same code created concurrently
            raise DuplicateCodeError(organization_id=organization.pk, transfer_code=code) from None

        logger.info(
            "transfer.created",
            extra={"transfer_id": transfer.pk, "code": code, "items": len(lines), "user_id": snapshot.user_id},
        )
        self._emit(self._entry(
            'transfers.create',
            f"Transferência {code} criada",
            transfer,
            snapshot,
            title=title,
            priority=priority,
            requesting_department_id=transfer.requesting_department_id,
            supplying_department_id=transfer.supplying_department_id,
            item_count=len(lines),
        ))
        return transfer

    # ══════════════════════════════════════════════════════════════
    # APPROVE
    # ══════════════════════════════════════════════════════════════

    def approve_transfer_item(self, item, actor, approved_quantity=None,
                              notes: str = '', organization=None) -> TransferItem:
        """
        PENDING → APPROVED, with 0 < approved_quantity <= requested_quantity.

        Args:
            approved_quantity: None = the requested quantity

        Raises:
            ValidationError: Quantity out of range
            NotFoundError, PermissionDeniedError
            InvalidTransitionError: Item not PENDING (including a lost race)
        """
        if approved_quantity is not None:
            approved_quantity = to_quantity(approved_quantity, 'approved_quantity')
            if approved_quantity <= 0:
                raise ValidationError(
                    'Quantidade aprovada deve ser positiva',
                    field='approved_quantity', requested=approved_quantity,
                )

        found = self._get_item(item, organization)
        snapshot = self.require_member(actor, found.transfer.organization)

        with transaction.atomic():
            locked = self._lock_item(found)
            transitions.check_transition(locked, TransferItemStatus.APPROVED)
            quantity = locked.requested_quantity if approved_quantity is None else approved_quantity
            if quantity > locked.requested_quantity:
                raise ValidationError(
                    'Quantidade aprovada excede a solicitada',
                    field='approved_quantity',
                    requested=locked.requested_quantity,
                    approved=quantity,
                )
            changes = {'approved_quantity': quantity, 'approved_at': timezone.now()}
            if notes:
                changes['notes'] = notes
            transitions.transition_item(
                locked, TransferItemStatus.APPROVED,
                actor=actor, snapshot=snapshot, notes=notes, changes=changes,
            )
            transitions.refresh_transfer(locked.transfer, actor, snapshot)

        self._emit(self._entry(
            'transfers.approve_item',
            f"Item {locked.product.code} da transferência {locked.transfer.code} aprovado",
            locked.transfer,
            snapshot,
            item=locked,
            product_code=locked.product.code,
            requested_quantity=str(locked.requested_quantity),
            approved_quantity=str(quantity),
        ))
        return locked

    def approve_all(self, transfer, actor, organization=None) -> list[TransferItem]:
        """
        Approve every PENDING item of a transfer at its requested quantity.

        Raises:
            ValidationError: No PENDING item
            NotFoundError, PermissionDeniedError
        """
        found = self._get_transfer(transfer, organization)
        snapshot = self.require_member(actor, found.organization)

        with transaction.atomic():
            locked_transfer = self._lock_transfer(found.pk)
            pending = list(
                TransferItem.objects.select_for_update()
                .select_related('transfer', 'product')
                .filter(transfer=locked_transfer, status=TransferItemStatus.PENDING)
            )
            if not pending:
                raise ValidationError('Nenhum item pendente para aprovar', transfer_id=found.pk)

            now = timezone.now()
            for item in pending:
                transitions.transition_item(
                    item, TransferItemStatus.APPROVED,
                    actor=actor, snapshot=snapshot,
                    changes={'approved_quantity': item.requested_quantity, 'approved_at': now},
                )
            transitions.refresh_transfer(locked_transfer, actor, snapshot)

        self._emit(self._entry(
            'transfers.approve_all',
            f"{len(pending)} itens da transferência {found.code} aprovados",
            found,
            snapshot,
            item_count=len(pending),
            product_codes=[item.product.code for item in pending],
        ))
        return pending

    # ══════════════════════════════════════════════════════════════
    # PREPARE / DELIVER
    # ══════════════════════════════════════════════════════════════

    def prepare_transfer_item(self, item, selections, actor, notes: str = '', organization=None) -> TransferItem:
        """
        APPROVED → PREPARED, reserving the selected supplying lots.

        Args:
            selections: [{'batch_id': ..., 'quantity': ...}, ...] summing to approved_quantity

        Raises:
            ValidationError, NotFoundError, PermissionDeniedError
            InvalidTransitionError: Item not APPROVED
            BatchOverAllocationError: Selection doesn't fit the lots or the approval
        """
        if not selections:
            raise ValidationError('Informe ao menos um lote', field='batches')

        found = self._get_item(item, organization)
        snapshot = self.require_member(actor, found.transfer.organization)

        with transaction.atomic():
            locked = self._lock_item(found)
            transitions.check_transition(locked, TransferItemStatus.PREPARED)
            picks = Allocation.pick_manual(locked, selections, actor)
            prepared = sum((pick.quantity for pick in picks), Decimal('0'))
            transitions.transition_item(
                locked, TransferItemStatus.PREPARED,
                actor=actor, snapshot=snapshot, notes=notes,
                changes={'prepared_quantity': prepared, 'prepared_at': timezone.now()},
            )
            transitions.refresh_transfer(locked.transfer, actor, snapshot)

        self._emit(self._entry(
            'transfers.prepare_item',
            f"Item {locked.product.code} da transferência {locked.transfer.code} separado",
            locked.transfer,
            snapshot,
            item=locked,
            product_code=locked.product.code,
            prepared_quantity=str(prepared),
            batch_count=len(picks),
            lot_numbers=[pick.batch.lot_number for pick in picks],
        ))
        return locked

    def deliver_transfer_item(self, item, batch_deliveries, actor, notes: str = '', organization=None) -> TransferItem:
        """
        PREPARED → DELIVERED, moving stock into the requesting department.

        Args:
            batch_deliveries: [{'batch_id': ..., 'received_quantity': ...}, ...],
                one per picked lot; received may be below prepared (shortfall)

        Raises:
            ValidationError, NotFoundError, PermissionDeniedError
            InvalidTransitionError: Item not PREPARED
        """
        if not batch_deliveries:
            raise ValidationError('Informe o recebido de cada lote', field='batches')

        found = self._get_item(item, organization)
        snapshot = self.require_member(actor, found.transfer.organization)

        with transaction.atomic():
            locked = self._lock_item(found)
            transitions.check_transition(locked, TransferItemStatus.DELIVERED)
            received = Allocation.confirm_delivery(locked, batch_deliveries, actor, snapshot)
            transitions.transition_item(
                locked, TransferItemStatus.DELIVERED,
                actor=actor, snapshot=snapshot, notes=notes,
                changes={'received_quantity': received, 'delivered_at': timezone.now()},
            )
            transitions.refresh_transfer(locked.transfer, actor, snapshot)

        shortfall = locked.prepared_quantity - received
        self._emit(self._entry(
            'transfers.deliver_item',
            f"Item {locked.product.code} da transferência {locked.transfer.code} entregue",
            locked.transfer,
            snapshot,
            item=locked,
            severity=AuditSeverity.WARNING if shortfall > 0 else AuditSeverity.INFO,
            product_code=locked.product.code,
            prepared_quantity=str(locked.prepared_quantity),
            received_quantity=str(received),
            shortfall=str(shortfall),
        ))
        return locked

    # ══════════════════════════════════════════════════════════════
    # CANCEL
    # ══════════════════════════════════════════════════════════════

    def cancel_transfer_item(self, item, reason: str, actor, organization=None) -> TransferItem:
        """
        PENDING/APPROVED → CANCELLED. Requires an elevated role.

        PREPARED items are refused here; use cancel_prepared_item().

        Raises:
            ValidationError: Empty reason
            NotFoundError, PermissionDeniedError
            InvalidTransitionError: Item PREPARED, DELIVERED or CANCELLED
        """
        reason = _require_reason(reason)
        found = self._get_item(item, organization)
        snapshot = self.require_elevated(actor, found.transfer.organization)

        with transaction.atomic():
            locked = self._lock_item(found)
            transitions.check_transition(locked, TransferItemStatus.CANCELLED)
            previous = locked.status
            self._cancel_locked_item(locked, reason, actor, snapshot)
            transitions.refresh_transfer(locked.transfer, actor, snapshot)

        self._emit(self._entry(
            'transfers.cancel_item',
            f"Item {locked.product.code} da transferência {locked.transfer.code} cancelado",
            locked.transfer,
            snapshot,
            item=locked,
            severity=AuditSeverity.WARNING,
            product_code=locked.product.code,
            previous_status=previous,
            reason=reason,
        ))
        return locked

    def cancel_prepared_item(self, item, reason: str, actor, organization=None) -> TransferItem:
        """
        PREPARED → CANCELLED, returning every picked quantity to its lot.

        Raises:
            ValidationError: Empty reason
            NotFoundError, PermissionDeniedError
            InvalidTransitionError: Item not PREPARED
        """
        reason = _require_reason(reason)
        found = self._get_item(item, organization)
        snapshot = self.require_elevated(actor, found.transfer.organization)

        with transaction.atomic():
            locked = self._lock_item(found)
            if locked.status != TransferItemStatus.PREPARED:
                raise InvalidTransitionError(
                    item_id=locked.pk,
                    current=locked.status,
                    attempted=TransferItemStatus.CANCELLED,
                )
            released = locked.prepared_quantity
            self._cancel_locked_item(locked, reason, actor, snapshot)
            transitions.refresh_transfer(locked.transfer, actor, snapshot)

        self._emit(self._entry(
            'transfers.cancel_prepared_item',
            f"Separação do item {locked.product.code} da transferência {locked.transfer.code} desfeita",
            locked.transfer,
            snapshot,
            item=locked,
            severity=AuditSeverity.WARNING,
            product_code=locked.product.code,
            released_quantity=str(released),
            reason=reason,
        ))
        return locked

    def cancel_transfer(self, transfer, reason: str, actor, organization=None) -> Transfer:
        """
        Cancel a whole transfer and every item not yet delivered.

        Prepared items have their picks returned. Delivered items stay
        delivered. Requires an elevated role.

        Raises:
            ValidationError: Empty reason
            NotFoundError, PermissionDeniedError
            InvalidTransitionError: Transfer already COMPLETED or CANCELLED
        """
        reason = _require_reason(reason)
        found = self._get_transfer(transfer, organization)
        snapshot = self.require_elevated(actor, found.organization)

        with transaction.atomic():
            locked = self._lock_transfer(found.pk)
            if locked.is_terminal:
                raise InvalidTransitionError(
                    transfer_id=locked.pk,
                    current=locked.status,
                    attempted=TransferStatus.CANCELLED,
                )

            open_items = list(
                TransferItem.objects.select_for_update()
                .select_related('transfer', 'product')
                .filter(transfer=locked)
                .exclude(status__in=[TransferItemStatus.DELIVERED, TransferItemStatus.CANCELLED])
            )
            for item in open_items:
                self._cancel_locked_item(item, reason, actor, snapshot)

            previous = locked.status
            now = timezone.now()
            Transfer.objects.filter(pk=locked.pk).update(
                status=TransferStatus.CANCELLED,
                cancelled_at=locked.cancelled_at or now,
                cancel_reason=reason,
                updated_at=now,
            )
            locked.refresh_from_db()
            transitions.record_history(
                locked,
                HistoryAction.CANCELLED,
                TransferStatus.CANCELLED,
                from_status=previous,
                actor=actor,
                snapshot=snapshot,
                notes=reason,
            )

        logger.info(
            "transfer.cancelled",
            extra={"transfer_id": locked.pk, "items": len(open_items), "user_id": snapshot.user_id},
        )
        self._emit(self._entry(
            'transfers.cancel',
            f"Transferência {locked.code} cancelada",
            locked,
            snapshot,
            severity=AuditSeverity.WARNING,
            previous_status=previous,
            cancelled_items=len(open_items),
            reason=reason,
        ))
        return locked

    # ══════════════════════════════════════════════════════════════
    # BATCHES
    # ══════════════════════════════════════════════════════════════

    def set_batch_status(self, batch, status: str, reason: str, actor, organization=None) -> StockBatch:
        """
        Quarantine, damage or release a lot by hand.

        Raises:
            ValidationError: Empty reason or a status not set by hand
            NotFoundError, PermissionDeniedError
            InvalidTransitionError: Transition not allowed, or the lot holds reservations
        """
        found = self._get_batch(batch, organization)
        snapshot = self.require_member(actor, found.stock.department.organization)
        previous = found.status

        updated = StockLedger.set_status(found, status, reason, actor)

        self._emit(self._batch_entry(
            'stocks.batch_update',
            f"Lote {found.lot_number} de {found.stock.product.code}: {previous} → {updated.status}",
            found,
            snapshot,
            severity=AuditSeverity.INFO if status == BatchStatus.AVAILABLE else AuditSeverity.WARNING,
            before={'status': previous},
            after={'status': updated.status},
            reason=(reason or '').strip(),
        ))
        return updated

    def deactivate_batch(self, batch, actor, organization=None) -> StockBatch:
        """
        Take a lot out of its stock. Requires an elevated role.

        Raises:
            NotFoundError, PermissionDeniedError
            InvalidTransitionError: Lot has reserved or incoming quantity
        """
        found = self._get_batch(batch, organization)
        snapshot = self.require_elevated(actor, found.stock.department.organization)
        was_active = found.is_active

        updated = StockLedger.deactivate(found, actor)

        if was_active:
            self._emit(self._batch_entry(
                'stocks.batch_delete',
                f"Lote {found.lot_number} de {found.stock.product.code} removido",
                found,
                snapshot,
                severity=AuditSeverity.WARNING,
                quantity=str(updated.total_quantity),
            ))
        return updated
