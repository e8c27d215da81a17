"""Custom exceptions for the auto-parts POS application."""

class PosError(Exception):
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
        rv['error'] = type(self).__name__
        return rv

class BusinessLogicError(PosError):
    """Exception raised for business logic violations."""
    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)

class ValidationError(BusinessLogicError):
    """Raised when a value is rejected at the boundary (unknown enum, bad number)."""
    def __init__(self, message, payload=None):
        super().__init__(message, 400, payload)

class NotFoundError(PosError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)

class UnauthorizedError(PosError):
    """Raised when a request is not authenticated (401) or not permitted (403)."""
    def __init__(self, message="Unauthorized access", status_code=403):
        super().__init__(message, status_code)


# Pre-submission validation (recoverable, nothing written)

class EmptyCart(BusinessLogicError):
    """Raised when a sale is submitted with no cart lines."""
    def __init__(self, message="Cart is empty"):
        super().__init__(message)

class MissingContext(BusinessLogicError):
    """Raised when the branch or cashier is unknown at submission time."""
    def __init__(self, missing):
        self.missing = list(missing)
        super().__init__(
            f"Missing sale context: {', '.join(self.missing)}",
            payload={'missing': self.missing}
        )

class OutOfStock(BusinessLogicError):
    """Raised when adding an item whose stock is exhausted."""
    def __init__(self, item_name):
        super().__init__(f"{item_name} is out of stock", status_code=409)

class InsufficientStock(BusinessLogicError):
    """Raised when an operation fails due to lack of stock."""
    def __init__(self, item_name, required, available):
        req_fmt = _fmt_qty(required)
        avail_fmt = _fmt_qty(available)
        message = f"Insufficient stock for {item_name}: requested {req_fmt}, available {avail_fmt}"
        super().__init__(
            message,
            status_code=409,
            payload={'requested': req_fmt, 'available': avail_fmt}
        )


# Data store failures

class StoreError(PosError):
    """Raised when a data store operation fails."""
    def __init__(self, message="Data store operation failed", payload=None):
        super().__init__(message, 500, payload)

class SaleCreationFailed(PosError):
    """Header insert failed; no state was committed."""
    def __init__(self, message="Sale could not be created"):
        super().__init__(message, 502)

class LineItemWriteFailed(StoreError):
    """Line items could not be written after the header was committed."""
    def __init__(self, sale_id, reason=""):
        self.sale_id = sale_id
        message = f"Line items for sale {sale_id} were not saved"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, payload={'sale_id': sale_id})

class StockDecrementFailed(StoreError):
    """Stock for a product could not be decremented."""
    def __init__(self, product_id, quantity, reason=""):
        self.product_id = product_id
        self.quantity = quantity
        message = f"Stock decrement of {quantity} failed for product {product_id}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, payload={'product_id': product_id, 'quantity': quantity})


def _fmt_qty(value):
    return f"{int(value)}" if value % 1 == 0 else f"{value:.2f}".rstrip('0').rstrip('.')
