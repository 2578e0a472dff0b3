"""
History Reconstructor.

Turns the ledger's parallel (statuses, timestamps) arrays into an ordered
StatusEvent timeline. Ledger order is authoritative: nothing is re-sorted.
Timestamp regressions are reported as HistoryOrderingWarning records for the
caller to log, never silently repaired.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from supply_tracker.errors import MalformedHistoryError
from supply_tracker.models import ProductStatus, StatusEvent


@dataclass(frozen=True)
class HistoryOrderingWarning:
    """Timestamp at `index` is earlier than the one before it."""
    index: int
    previous_timestamp: int
    timestamp: int
    product_id: Optional[int] = None

    def __str__(self) -> str:
        return (
            f"History of product {self.product_id} goes back in time at event "
            f"{self.index}: {self.timestamp} < {self.previous_timestamp}"
        )


@dataclass(frozen=True)
class ReconstructedHistory:
    events: Tuple[StatusEvent, ...]
    warnings: List[HistoryOrderingWarning] = field(default_factory=list)


def reconstruct_history(
    statuses: Sequence[int],
    timestamps: Sequence[int],
    product_id: Optional[int] = None
) -> ReconstructedHistory:
    """
    Build the status timeline of one product.

    Args:
        statuses: Status codes in ledger order
        timestamps: Unix timestamps, parallel to statuses
        product_id: Used in error and warning messages

    Returns:
        ReconstructedHistory with the events and any ordering warnings

    Raises:
        MalformedHistoryError: length mismatch, empty history or unknown status
    """
    if len(statuses) != len(timestamps):
        raise MalformedHistoryError(
            f"History of product {product_id} has {len(statuses)} statuses "
            f"but {len(timestamps)} timestamps",
            product_id=product_id,
        )
    if not statuses:
        raise MalformedHistoryError(
            f"History of product {product_id} is empty", product_id=product_id
        )

    events = []
    for code, timestamp in zip(statuses, timestamps):
        try:
            status = ProductStatus.decode(code)
        except MalformedHistoryError as e:
            raise MalformedHistoryError(
                f"{e.user_message} (product {product_id})", product_id=product_id
            ) from e
        events.append(StatusEvent(status=status, timestamp=int(timestamp)))

    return ReconstructedHistory(events=tuple(events), warnings=check_ordering(events, product_id))


def check_ordering(
    events: Sequence[StatusEvent],
    product_id: Optional[int] = None
) -> List[HistoryOrderingWarning]:
    """Flag every event whose timestamp precedes its predecessor's."""
    warnings = []
    for i in range(1, len(events)):
        if events[i].timestamp < events[i - 1].timestamp:
            warnings.append(HistoryOrderingWarning(
                index=i,
                previous_timestamp=events[i - 1].timestamp,
                timestamp=events[i].timestamp,
                product_id=product_id,
            ))
    return warnings
