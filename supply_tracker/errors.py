"""
Supply Tracker Error Taxonomy

Typed failures raised by the ledger gateway, the history reconstructor and the
tracking services. Every error carries a category and a message that can be
shown to an operator as-is.
"""

from typing import Any, Dict, Optional


class TrackerError(Exception):
    """Base class for all supply tracker failures."""

    category = "tracker"
    default_message = "Supply tracker operation failed"
    integrity_fault = False

    def __init__(self, message: Optional[str] = None, product_id: Optional[int] = None):
        self.user_message = message or self.default_message
        self.product_id = product_id
        super().__init__(self.user_message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the error envelope used by the HTTP layer."""
        data = {
            "error": self.user_message,
            "category": self.category,
            "integrity_fault": self.integrity_fault,
        }
        if self.product_id is not None:
            data["product_id"] = self.product_id
        return data


class ConnectivityError(TrackerError):
    """Ledger endpoint unreachable or connection lost while waiting."""
    category = "connectivity"
    default_message = "Ledger endpoint is unreachable. Check the network and try again."


class NotFoundError(TrackerError):
    """Unknown product id."""
    category = "not_found"
    default_message = "Product not found on the ledger"


class ValidationError(TrackerError):
    """Empty or invalid input rejected before submission."""
    category = "validation"
    default_message = "Please fill in all fields"


class UnauthorizedError(TrackerError):
    """No signing identity is attached."""
    category = "unauthorized"
    default_message = "Wallet not connected"


class TransactionRejectedError(TrackerError):
    """Transaction declined by the signer or reverted by the ledger."""
    category = "rejected"
    default_message = "Transaction was rejected by the ledger"


class ConflictError(TrackerError):
    """A transition for the same product is already in flight."""
    category = "conflict"
    default_message = "A status update for this product is already pending"


class MalformedHistoryError(TrackerError):
    """
    Ledger returned a history that violates the core invariants.

    This is a data-integrity fault rather than a transient condition and is
    reported separately from the other categories.
    """
    category = "integrity"
    default_message = "Ledger returned an inconsistent product history"
    integrity_fault = True
