"""
Transfer services — modular organization of ledger, allocation and workflow reads.

    from transferman.services import StockLedger, Allocation, TransferQueries
"""

from transferman.services.allocation import Allocation
from transferman.services.ledger import StockLedger
from transferman.services.queries import TransferQueries

__all__ = [
    'StockLedger',
    'Allocation',
    'TransferQueries',
]
