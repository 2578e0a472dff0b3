"""
Product view model.

Local, immutable representation of products reconstructed from ledger data.
Updates never mutate a Product in place; they produce a new instance so that
snapshots handed to readers stay point-in-time.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Tuple

from supply_tracker.errors import MalformedHistoryError


class ProductStatus(Enum):
    """Product lifecycle status (ledger uint8 encoding)."""
    CREATED = 0
    IN_TRANSIT = 1
    DELIVERED = 2

    @property
    def label(self) -> str:
        return STATUS_LABELS[self]

    @classmethod
    def decode(cls, code: Any) -> "ProductStatus":
        """Decode a ledger status code, rejecting values outside the enumeration."""
        try:
            return cls(int(code))
        except (TypeError, ValueError):
            raise MalformedHistoryError(f"Unknown status code from ledger: {code!r}")


STATUS_LABELS = {
    ProductStatus.CREATED: "Created",
    ProductStatus.IN_TRANSIT: "In Transit",
    ProductStatus.DELIVERED: "Delivered",
}


@dataclass(frozen=True)
class StatusEvent:
    """One recorded status transition."""
    status: ProductStatus
    timestamp: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.name,
            "label": self.status.label,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class Product:
    """
    A tracked physical item.

    Attributes:
        id: Ledger-assigned identifier (dense, creation order)
        name: Product name, immutable after creation
        origin: Origin location, immutable after creation
        created_at: Unix timestamp of the creation transaction
        current_status: Status of the last history event
        history: Ordered status events, never empty
    """
    id: int
    name: str
    origin: str
    created_at: int
    current_status: ProductStatus
    history: Tuple[StatusEvent, ...] = field(default_factory=tuple)

    def with_transition(self, status: ProductStatus, timestamp: int) -> "Product":
        """Return a copy with one more history event appended."""
        return replace(
            self,
            current_status=status,
            history=self.history + (StatusEvent(status=status, timestamp=timestamp),),
        )

    @property
    def display_id(self) -> str:
        return f"#{self.id:04d}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "display_id": self.display_id,
            "name": self.name,
            "origin": self.origin,
            "created_at": self.created_at,
            "status": self.current_status.name,
            "status_label": self.current_status.label,
            "history": [event.to_dict() for event in self.history],
        }
