# Overview: Domain error taxonomy shared by services, routes and CLI.

"""
Every failure in the core is a rejected operation returned to the caller.

- Services raise these errors; they never catch-and-continue.
- The unit of work rolls back on any exception, so a raised error means no
  partial mutation was persisted.
- Routes render them via the error handler registered in create_app().
- Stock errors always carry the shortfall (available vs. requested).
"""

from __future__ import annotations


class WmsError(Exception):
    """Base class for all recoverable-to-caller errors."""

    http_status = 400
    code = "WMS_ERROR"

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        body = {"error": self.message, "code": self.code}
        body.update(self.details)
        return body


class NotFound(WmsError):
    http_status = 404
    code = "NOT_FOUND"


class InvalidState(WmsError):
    """Operation attempted from a state that forbids it."""

    code = "INVALID_STATE"


class ValidationError(WmsError):
    """Malformed input (non-positive quantity, missing field, bad datetime)."""

    code = "VALIDATION_ERROR"


class PermissionDenied(WmsError):
    http_status = 403
    code = "PERMISSION_DENIED"


class AuthenticationRequired(WmsError):
    http_status = 401
    code = "AUTHENTICATION_REQUIRED"


class ConcurrencyConflict(WmsError):
    """Optimistic-lock failure; the caller must resubmit."""

    http_status = 409
    code = "CONCURRENCY_CONFLICT"


class StockError(WmsError):
    """Ledger invariant violation. Reports available vs. requested."""

    code = "STOCK_ERROR"

    def __init__(self, message: str, *, item_id=None, item_name=None, available=None, requested=None):
        super().__init__(
            message,
            item_id=item_id,
            item_name=item_name,
            available=available,
            requested=requested,
        )
        self.item_id = item_id
        self.item_name = item_name
        self.available = available
        self.requested = requested

    @property
    def shortfall(self):
        if self.available is None or self.requested is None:
            return None
        return self.requested - self.available


class InsufficientStock(StockError):
    code = "INSUFFICIENT_STOCK"


class InsufficientAvailableStock(StockError):
    code = "INSUFFICIENT_AVAILABLE_STOCK"


class InsufficientReservedStock(StockError):
    code = "INSUFFICIENT_RESERVED_STOCK"


class OverRelease(StockError):
    code = "OVER_RELEASE"


class ImmutableRecordError(WmsError):
    """Attempted UPDATE/DELETE of an append-only record (audit trail, movements, returns)."""

    http_status = 500
    code = "IMMUTABLE_RECORD"
