"""
Transfer state machine.

Item transitions are a closed table; anything not listed is rejected
before any write. Transfer status is never set by hand (except
cancel_transfer): it is rolled up from the item statuses after every
item transition.
"""

import logging
from collections.abc import Iterable

from django.utils import timezone

from transferman.exceptions import InvalidTransitionError
from transferman.models.enums import HistoryAction, TransferItemStatus, TransferStatus
from transferman.models.transfer import Transfer, TransferHistory, TransferItem

logger = logging.getLogger('transferman')

ItemStatus = TransferItemStatus

# (from, to) -> history action
ITEM_TRANSITIONS = {
    (ItemStatus.PENDING, ItemStatus.APPROVED): HistoryAction.APPROVED,
    (ItemStatus.APPROVED, ItemStatus.PREPARED): HistoryAction.PREPARED,
    (ItemStatus.PREPARED, ItemStatus.DELIVERED): HistoryAction.DELIVERED,
    (ItemStatus.PENDING, ItemStatus.CANCELLED): HistoryAction.CANCELLED,
    (ItemStatus.APPROVED, ItemStatus.CANCELLED): HistoryAction.CANCELLED,
    (ItemStatus.PREPARED, ItemStatus.CANCELLED): HistoryAction.CANCELLED,
}

# Allowed only through cancel_prepared_item, which returns the picks first
COMPENSATING_TRANSITIONS = frozenset({(ItemStatus.PREPARED, ItemStatus.CANCELLED)})

# Least advanced first
STAGES = (ItemStatus.PENDING, ItemStatus.APPROVED, ItemStatus.PREPARED)


def can_transition(from_status: str, to_status: str, compensating: bool = False) -> bool:
    key = (from_status, to_status)
    if key not in ITEM_TRANSITIONS:
        return False
    return compensating or key not in COMPENSATING_TRANSITIONS


def check_transition(item: TransferItem, to_status: str, compensating: bool = False) -> None:
    """
    Raises:
        InvalidTransitionError: If item.status -> to_status is not allowed
    """
    if not can_transition(item.status, to_status, compensating):
        raise InvalidTransitionError(
            item_id=item.pk,
            current=item.status,
            attempted=to_status,
        )


def record_history(transfer, action, to_status, from_status='', item=None,
                   actor=None, snapshot=None, notes='') -> TransferHistory:
    """Append one history row."""
    return TransferHistory.objects.create(
        transfer_id=getattr(transfer, 'pk', transfer),
        item=item,
        action=action,
        from_status=from_status or '',
        to_status=to_status,
        changed_by=actor if getattr(actor, 'pk', None) else None,
        changed_by_snapshot=snapshot.as_dict() if snapshot is not None else {},
        notes=notes or '',
    )


def transition_item(item: TransferItem, to_status: str, *, actor=None, snapshot=None,
                    notes: str = '', compensating: bool = False,
                    changes: dict | None = None) -> TransferItem:
    """
    Move an item to to_status and append its history row.

    The write is conditional on the status the caller saw, so of two
    callers racing on the same item exactly one wins.

    Args:
        item: Item as read by the caller
        to_status: Target TransferItemStatus
        changes: Extra fields written in the same UPDATE

    Raises:
        InvalidTransitionError: Transition not in the table, or the item
            moved since the caller read it
    """
    check_transition(item, to_status, compensating)

    from_status = item.status
    changes = dict(changes or {})
    updated = TransferItem.objects.filter(
        pk=item.pk,
        status=from_status,
    ).update(status=to_status, **changes)

    if not updated:
        current = TransferItem.objects.filter(pk=item.pk).values_list('status', flat=True).first()
        logger.warning(
            "transfer.item.stale_transition",
            extra={"item_id": item.pk, "expected": from_status, "current": current, "attempted": to_status},
        )
        raise InvalidTransitionError(
            item_id=item.pk,
            current=current,
            attempted=to_status,
        )

    item.status = to_status
    for field, value in changes.items():
        setattr(item, field, value)

    record_history(
        item.transfer_id,
        ITEM_TRANSITIONS[(from_status, to_status)],
        to_status,
        from_status=from_status,
        item=item,
        actor=actor,
        snapshot=snapshot,
        notes=notes,
    )

    logger.info(
        "transfer.item.transitioned",
        extra={
            "item_id": item.pk,
            "transfer_id": item.transfer_id,
            "from": from_status,
            "to": to_status,
            "user_id": getattr(actor, 'pk', None),
        },
    )
    return item


def rollup_status(statuses: Iterable[str]) -> TransferStatus:
    """
    Transfer status implied by its item statuses.

    Cancelled items don't count:
        - no active item left          → CANCELLED
        - every active item delivered  → COMPLETED
        - some delivered, some not     → PARTIAL
        - otherwise the least advanced of PENDING / APPROVED / PREPARED
    """
    active = [s for s in statuses if s != ItemStatus.CANCELLED]
    if not active:
        return TransferStatus.CANCELLED

    delivered = sum(1 for s in active if s == ItemStatus.DELIVERED)
    if delivered == len(active):
        return TransferStatus.COMPLETED
    if delivered:
        return TransferStatus.PARTIAL

    for stage in STAGES:
        if stage in active:
            return TransferStatus(stage.value)
    raise InvalidTransitionError('Status de item desconhecido', statuses=active)


def refresh_transfer(transfer: Transfer, actor=None, snapshot=None) -> str:
    """
    Recompute transfer status from its items, stamping stage timestamps.

    Each timestamp is set the first time its stage is reached and never
    moved afterwards. A change of status appends a transfer-level
    history row (item = None).

    Returns:
        The transfer's status after the refresh
    """
    statuses = list(transfer.items.values_list('status', flat=True))
    new_status = rollup_status(statuses)
    previous = transfer.status
    now = timezone.now()

    changes = {}
    if new_status != previous:
        changes['status'] = new_status
    if transfer.approved_at is None and any(s not in (ItemStatus.PENDING, ItemStatus.CANCELLED) for s in statuses):
        changes['approved_at'] = now
    if transfer.prepared_at is None and new_status == TransferStatus.PREPARED:
        changes['prepared_at'] = now
    if transfer.delivered_at is None and new_status == TransferStatus.COMPLETED:
        changes['delivered_at'] = now
    if transfer.cancelled_at is None and new_status == TransferStatus.CANCELLED:
        changes['cancelled_at'] = now

    if changes:
        Transfer.objects.filter(pk=transfer.pk).update(updated_at=now, **changes)
        for field, value in changes.items():
            setattr(transfer, field, value)

    if new_status != previous:
        record_history(
            transfer,
            HistoryAction.STATUS_CHANGED,
            new_status,
            from_status=previous,
            actor=actor,
            snapshot=snapshot,
        )
        logger.info(
            "transfer.status_changed",
            extra={"transfer_id": transfer.pk, "from": previous, "to": new_status},
        )

    return new_status
