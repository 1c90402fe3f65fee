"""
Transferman Admin.

Provides:
- Organization, Department, Product, OrganizationMember: list + edit
- DepartmentStock: edit thresholds, batches shown read-only
- StockBatch: read-only. Quantities only change via StockLedger/Allocation
- Transfer: read-only with items and history, "cancel" action
- TransferHistory: read-only audit trail
"""

import logging

from django.contrib import admin
from django.utils.translation import gettext_lazy as _

from transferman.exceptions import TransfermanError
from transferman.models import (
    Department,
    DepartmentStock,
    Organization,
    OrganizationMember,
    Product,
    StockBatch,
    Transfer,
    TransferHistory,
    TransferItem,
)
from transferman.services.ledger import StockLedger

logger = logging.getLogger(__name__)


class ReadOnlyMixin:
    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


# =========================================================================
# ORGANIZATION
# =========================================================================

class OrganizationMemberInline(admin.TabularInline):
    model = OrganizationMember
    extra = 0
    fields = ['user', 'role', 'is_active', 'joined_at']
    readonly_fields = ['joined_at']


@admin.register(Organization)
class OrganizationAdmin(admin.ModelAdmin):
    list_display = ['name', 'slug', 'is_active', 'created_at']
    list_filter = ['is_active']
    search_fields = ['name', 'slug']
    prepopulated_fields = {'slug': ('name',)}
    inlines = [OrganizationMemberInline]


@admin.register(Department)
class DepartmentAdmin(admin.ModelAdmin):
    list_display = ['name', 'organization', 'slug', 'is_active']
    list_filter = ['organization', 'is_active']
    search_fields = ['name', 'slug']


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['code', 'name', 'generic_name', 'base_unit', 'organization', 'is_active']
    list_filter = ['organization', 'is_active']
    search_fields = ['code', 'name', 'generic_name']


# =========================================================================
# STOCK
# =========================================================================

class StockBatchInline(ReadOnlyMixin, admin.TabularInline):
    model = StockBatch
    extra = 0
    fields = ['lot_number', 'expiry_date', 'total_quantity', 'available_quantity',
              'reserved_quantity', 'status', 'is_active', 'received_at']
    readonly_fields = fields
    show_change_link = True


@admin.register(DepartmentStock)
class DepartmentStockAdmin(admin.ModelAdmin):
    """Thresholds are editable; quantities live on the batches."""

    list_display = ['product', 'department', 'available_display', 'min_stock_level', 'low_display',
                    'last_movement_at']
    list_filter = ['department']
    search_fields = ['product__code', 'product__name']
    readonly_fields = ['department', 'product', 'last_movement_at', 'created_by',
                       'created_by_snapshot', 'created_at', 'updated_at']
    inlines = [StockBatchInline]

    def has_add_permission(self, request):
        return False

    @admin.display(description=_('Disponível'))
    def available_display(self, obj):
        return StockLedger.summarize(obj)['available_quantity']

    @admin.display(description=_('Abaixo do mínimo?'), boolean=True)
    def low_display(self, obj):
        return StockLedger.is_low(obj)


@admin.register(StockBatch)
class StockBatchAdmin(ReadOnlyMixin, admin.ModelAdmin):
    """Batch admin — read-only."""

    list_display = ['lot_number', 'stock', 'expiry_date', 'total_quantity',
                    'available_quantity', 'reserved_quantity', 'status', 'is_active']
    list_filter = ['status', 'is_active', 'stock__department']
    search_fields = ['lot_number', 'stock__product__code', 'stock__product__name']
    readonly_fields = [f.name for f in StockBatch._meta.fields]
    date_hierarchy = 'received_at'
    actions = ['expire_batches']

    @admin.action(description=_('Marcar lotes vencidos como VENCIDO'))
    def expire_batches(self, request, queryset):
        count = StockLedger.expire_batches()
        self.message_user(request, _('{count} lote(s) vencido(s).').format(count=count))


# =========================================================================
# TRANSFERS
# =========================================================================

class TransferItemInline(ReadOnlyMixin, admin.TabularInline):
    model = TransferItem
    extra = 0
    fields = ['product', 'status', 'requested_quantity', 'approved_quantity',
              'prepared_quantity', 'received_quantity', 'cancel_reason']
    readonly_fields = fields


class TransferHistoryInline(ReadOnlyMixin, admin.TabularInline):
    model = TransferHistory
    extra = 0
    fields = ['created_at', 'item', 'action', 'from_status', 'to_status', 'notes']
    readonly_fields = fields


@admin.register(Transfer)
class TransferAdmin(ReadOnlyMixin, admin.ModelAdmin):
    """Transfer admin — read-only with cancel action."""

    list_display = ['code', 'title', 'requesting_department', 'supplying_department',
                    'status', 'priority', 'requested_at']
    list_filter = ['status', 'priority', 'organization']
    search_fields = ['code', 'title']
    readonly_fields = [f.name for f in Transfer._meta.fields]
    date_hierarchy = 'requested_at'
    inlines = [TransferItemInline, TransferHistoryInline]
    actions = ['cancel_transfers']

    @admin.action(description=_('Cancelar transferências selecionadas'))
    def cancel_transfers(self, request, queryset):
        from transferman import transfers

        count = 0
        for transfer in queryset:
            try:
                transfers.cancel_transfer(transfer, reason='Cancelado via admin', actor=request.user)
                count += 1
            except TransfermanError as exc:
                logger.warning("cancel_transfers: failed to cancel %s: %s", transfer.code, exc)

        self.message_user(request, _('{count} transferência(s) cancelada(s).').format(count=count))


@admin.register(TransferHistory)
class TransferHistoryAdmin(ReadOnlyMixin, admin.ModelAdmin):
    """History admin — read-only. Immutable audit trail."""

    list_display = ['created_at', 'transfer', 'item', 'action', 'from_status', 'to_status']
    list_filter = ['action', 'created_at']
    search_fields = ['transfer__code', 'notes']
    readonly_fields = [f.name for f in TransferHistory._meta.fields]
    date_hierarchy = 'created_at'
