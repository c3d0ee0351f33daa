"""Custom exceptions for the RavenPOS checkout core."""
from dataclasses import dataclass
from typing import Optional


class RavenPosError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        return rv

class ValidationError(RavenPosError):
    """Raised for bad input rejected before any write happens."""
    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)

class NotFoundError(RavenPosError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)

class InsufficientStockError(ValidationError):
    """Raised when a cart asks for more units than are on hand."""
    def __init__(self, item_name, requested, available):
        message = f"Only {available} of {item_name} in stock (requested {requested})"
        super().__init__(message, status_code=409, payload={'available': available})

class FatalPersistenceError(RavenPosError):
    """Raised when the sale or its line items could not be recorded."""
    def __init__(self, message, sale_id=None):
        payload = {'sale_id': sale_id} if sale_id is not None else None
        super().__init__(message, 500, payload)
        self.sale_id = sale_id


@dataclass(frozen=True)
class NonFatalInventoryError:
    """A stock decrement that failed after the sale was recorded."""
    item_id: int
    sku: str
    quantity: int
    message: str


@dataclass(frozen=True)
class NonFatalSyncError:
    """An external inventory push that failed after the sale was recorded."""
    item_id: int
    sku: str
    adjustment: int
    message: str
    inventory_item_id: Optional[str] = None
