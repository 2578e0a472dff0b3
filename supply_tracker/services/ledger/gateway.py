"""
Ledger Gateway - typed access to the product tracking contract.

Thin abstraction over ledger reads and writes. Implementations never retry
and never swallow failures: transport problems surface as ConnectivityError,
unknown ids as NotFoundError, and so on, and the caller decides what to do.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Sequence
import time

from supply_tracker.errors import UnauthorizedError, ValidationError
from supply_tracker.models import ProductStatus, SigningIdentity


class TransactionAction(Enum):
    """State-changing contract calls."""
    CREATE_PRODUCT = "createProduct"
    UPDATE_STATUS = "updateStatus"


@dataclass(frozen=True)
class ProductRecord:
    """Raw product fields as stored on the ledger."""
    id: int
    name: str
    origin: str
    created_at: int
    status_code: int


@dataclass(frozen=True)
class RawHistory:
    """Parallel status/timestamp arrays returned by getHistory."""
    statuses: Sequence[int]
    timestamps: Sequence[int]


@dataclass(frozen=True)
class PendingTransaction:
    """Handle for a submitted, not yet confirmed transaction."""
    tx_hash: str
    action: TransactionAction
    product_id: Optional[int] = None
    submitted_at: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tx_hash": self.tx_hash,
            "action": self.action.value,
            "product_id": self.product_id,
            "submitted_at": self.submitted_at,
        }


@dataclass(frozen=True)
class TransactionReceipt:
    """Confirmation of a finalized transaction."""
    tx_hash: str
    block_number: int
    confirmed_at: int  # ledger timestamp of the finalizing block
    action: TransactionAction
    product_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tx_hash": self.tx_hash,
            "block_number": self.block_number,
            "confirmed_at": self.confirmed_at,
            "action": self.action.value,
            "product_id": self.product_id,
        }


def require_identity(identity: Optional[SigningIdentity]) -> SigningIdentity:
    """Reject writes when no signing identity is attached."""
    if identity is None:
        raise UnauthorizedError()
    return identity


def require_text(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value:
        raise ValidationError(f"{field_name} must not be empty")
    return value


def require_status(status: Any) -> ProductStatus:
    if not isinstance(status, ProductStatus):
        raise ValidationError(f"Unknown product status: {status!r}")
    return status


class LedgerGateway(ABC):
    """
    Contract surface consumed by the tracking core.

    Reads:
        count, fetch_record, fetch_history
    Writes (require a signing identity):
        submit_create, submit_status_update, await_confirmation
    """

    name = "ledger"

    @abstractmethod
    async def count(self) -> int:
        """Total number of registered products (nextId)."""

    @abstractmethod
    async def fetch_record(self, product_id: int) -> ProductRecord:
        """Raw product fields for one id."""

    @abstractmethod
    async def fetch_history(self, product_id: int) -> RawHistory:
        """Parallel status/timestamp arrays for one id."""

    @abstractmethod
    async def submit_create(
        self,
        identity: Optional[SigningIdentity],
        name: str,
        origin: str
    ) -> PendingTransaction:
        """Submit createProduct and return without waiting for confirmation."""

    @abstractmethod
    async def submit_status_update(
        self,
        identity: Optional[SigningIdentity],
        product_id: int,
        new_status: ProductStatus
    ) -> PendingTransaction:
        """Submit updateStatus and return without waiting for confirmation."""

    @abstractmethod
    async def await_confirmation(self, handle: PendingTransaction) -> TransactionReceipt:
        """Suspend until the transaction is finalized or rejected."""

    async def close(self) -> None:
        """Release transport resources."""
        return None
