"""
Django Transferman — Estoque por lote e transferências entre departamentos.

Uso:
    from transferman import transfers, TransfermanError

    transfer = transfers.create_transfer(org, cozinha, farmacia, 'TR-0001', 'Reposição', itens, actor=user)
    transfers.approve_transfer_item(item, actor=gerente)
    transfers.prepare_transfer_item(item, [{'batch_id': 7, 'quantity': 10}], actor=gerente)
"""


def __getattr__(name):
    """Lazy import to avoid circular imports during app loading."""
    if name == 'transfers':
        from transferman.service import TransferService
        return TransferService()
    elif name == 'TransferService':
        from transferman.service import TransferService
        return TransferService
    elif name == 'TransfermanError':
        from transferman.exceptions import TransfermanError
        return TransfermanError
    elif name == 'StockLedger':
        from transferman.services.ledger import StockLedger
        return StockLedger
    elif name == 'Allocation':
        from transferman.services.allocation import Allocation
        return Allocation
    elif name == 'TransferQueries':
        from transferman.services.queries import TransferQueries
        return TransferQueries
    elif name == 'Transfer':
        from transferman.models.transfer import Transfer
        return Transfer
    elif name == 'TransferItem':
        from transferman.models.transfer import TransferItem
        return TransferItem
    elif name == 'StockBatch':
        from transferman.models.stock import StockBatch
        return StockBatch
    elif name == 'DepartmentStock':
        from transferman.models.stock import DepartmentStock
        return DepartmentStock
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    'transfers',
    'TransferService',
    'TransfermanError',
    'StockLedger',
    'Allocation',
    'TransferQueries',
    'Transfer',
    'TransferItem',
    'StockBatch',
    'DepartmentStock',
]

__version__ = '0.1.0'
