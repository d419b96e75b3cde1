"""
Market error taxonomy.

Settlement and the data-access layer raise these; the API layer maps each
``error_code`` to an HTTP status in one place.
"""

from typing import Any


class MarketError(Exception):
    """Base class for every error the market surfaces to a caller."""

    error_code = "MARKET_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class NotFound(MarketError):
    error_code = "NOT_FOUND"

    def __init__(self, kind: str, key: Any):
        super().__init__(f"{kind} not found", details={"kind": kind, "key": key})


class InsufficientFunds(MarketError):
    error_code = "INSUFFICIENT_FUNDS"

    def __init__(self, required, available):
        super().__init__(
            f"Insufficient balance. Need {float(required):.2f}, have {float(available):.2f}",
            details={"required": str(required), "available": str(available)},
        )


class InsufficientShares(MarketError):
    error_code = "INSUFFICIENT_SHARES"

    def __init__(self, requested: int, held: int):
        super().__init__(
            f"Insufficient shares. Trying to sell {requested} but only own {held}",
            details={"requested": requested, "held": held},
        )


class InvalidQuantity(MarketError):
    error_code = "INVALID_QUANTITY"

    def __init__(self, quantity, max_quantity: int):
        super().__init__(
            f"quantity must be a whole number between 1 and {max_quantity}",
            details={"quantity": quantity, "max_quantity": max_quantity},
        )


class StalePrice(MarketError):
    """The quoted price no longer matches the player's current price."""

    error_code = "STALE_PRICE"

    def __init__(self, quoted, current):
        super().__init__(
            f"Price has moved. Quoted {float(quoted):.2f}, current {float(current):.2f}",
            details={"quoted": str(quoted), "current": str(current)},
        )


class TransientStoreError(MarketError):
    """A database call failed; nothing was committed and no retry is attempted."""

    error_code = "STORE_UNAVAILABLE"

    def __init__(self, operation: str, cause: Exception | None = None):
        super().__init__(
            f"Store operation '{operation}' failed",
            details={"operation": operation, "cause": type(cause).__name__ if cause else None},
        )
