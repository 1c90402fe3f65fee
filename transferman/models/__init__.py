"""
Transferman Models.

Core models for inter-department transfers:
- Organization / OrganizationMember / Department / Product: reference entities
- DepartmentStock: per (department, product) stock configuration
- StockBatch: lot-level quantities (the ledger)
- Transfer / TransferItem / TransferBatch: the request aggregate
- TransferHistory: append-only transition trail
"""

from transferman.models.enums import (
    BatchStatus,
    HistoryAction,
    OrganizationRole,
    TransferItemStatus,
    TransferPriority,
    TransferStatus,
)
from transferman.models.organization import Department, Organization, OrganizationMember, Product
from transferman.models.stock import DepartmentStock, StockBatch
from transferman.models.transfer import Transfer, TransferBatch, TransferHistory, TransferItem

__all__ = [
    'BatchStatus',
    'HistoryAction',
    'OrganizationRole',
    'TransferItemStatus',
    'TransferPriority',
    'TransferStatus',
    'Organization',
    'OrganizationMember',
    'Department',
    'Product',
    'DepartmentStock',
    'StockBatch',
    'Transfer',
    'TransferItem',
    'TransferBatch',
    'TransferHistory',
]
