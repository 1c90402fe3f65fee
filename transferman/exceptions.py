"""
Exceptions for Transferman.

All errors are TransfermanError subclasses with a structured code for
programmatic handling. Each error kind has its own class so callers can
catch precisely, and its own code so APIs can serialize uniformly.
"""

from decimal import Decimal
from typing import Any


class BaseError(Exception):
    """
    Exception with a code, a human-readable message and context data.

    The message defaults to the class' entry in ``_default_messages``.
    Keyword arguments become ``data`` and are also reachable as attributes.
    """

    _default_messages: dict[str, str] = {}

    def __init__(self, code: str, message: str | None = None, /, **data: Any):
        self.code = code
        self.message = message or self._default_messages.get(code, code)
        self.data = data
        super().__init__(self.message)

    def __getattr__(self, name: str) -> Any:
        data = self.__dict__.get('data', {})
        if name in data:
            return data[name]
        raise AttributeError(name)

    def __str__(self) -> str:
        if not self.data:
            return f"[{self.code}] {self.message}"
        details = ', '.join(f"{k}={v}" for k, v in self.data.items())
        return f"[{self.code}] {self.message} ({details})"


class TransfermanError(BaseError):
    """
    Structured exception for transfer and stock operations.

    Usage:
        try:
            transfers.prepare_transfer_item(item, selections, actor=user)
        except BatchOverAllocationError as e:
            print(e.code, e.as_dict())

    Attributes:
        code: Error code for programmatic handling
        message: Human-readable message
        data: Additional context data
    """

    code_name = 'ERROR'

    _default_messages = {
        'NOT_FOUND': 'Registro não encontrado',
        'INVALID_TRANSITION': 'Transição de status inválida',
        'INSUFFICIENT_STOCK': 'Estoque insuficiente para a reserva',
        'BATCH_OVER_ALLOCATION': 'Seleção de lotes inválida para a quantidade aprovada',
        'DUPLICATE_LOT': 'Número de lote já existe neste estoque',
        'DUPLICATE_CODE': 'Código de transferência já existe nesta organização',
        'PERMISSION_DENIED': 'Permissão insuficiente para esta operação',
        'VALIDATION_ERROR': 'Dados inválidos',
    }

    def __init__(self, message: str | None = None, /, **data: Any):
        super().__init__(self.code_name, message, **data)

    def as_dict(self) -> dict[str, Any]:
        """Serialize to dict (useful for APIs)."""
        return {
            'code': self.code,
            'message': self.message,
            'data': {
                k: str(v) if isinstance(v, Decimal) else v
                for k, v in self.data.items()
            }
        }


class NotFoundError(TransfermanError):
    """Transfer, item, batch, stock, department or product absent (or in another organization)."""

    code_name = 'NOT_FOUND'


class InvalidTransitionError(TransfermanError):
    """Illegal status transition. ``data`` carries ``current`` and ``attempted``."""

    code_name = 'INVALID_TRANSITION'


class InsufficientStockError(TransfermanError):
    """
    FIFO reservation could not cover the request.

    ``shortfall`` is the unmet quantity, ``reserved`` what was reserved
    before candidates ran out.
    """

    code_name = 'INSUFFICIENT_STOCK'

    @property
    def shortfall(self) -> Decimal:
        """Shortcut for data['shortfall']."""
        return self.data.get('shortfall', Decimal('0'))


class BatchOverAllocationError(TransfermanError):
    """Manual picks don't sum to the approved quantity or exceed a batch's availability."""

    code_name = 'BATCH_OVER_ALLOCATION'


class DuplicateLotError(TransfermanError):
    code_name = 'DUPLICATE_LOT'


class DuplicateCodeError(TransfermanError):
    code_name = 'DUPLICATE_CODE'


class PermissionDeniedError(TransfermanError):
    code_name = 'PERMISSION_DENIED'


class ValidationError(TransfermanError):
    """Missing field, non-positive quantity, empty reason and the like."""

    code_name = 'VALIDATION_ERROR'
