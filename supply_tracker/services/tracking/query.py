"""
Query Engine - search and status filters over a repository snapshot.
"""

from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Union

from supply_tracker.errors import ValidationError
from supply_tracker.models import STATUS_LABELS, Product, ProductStatus


class StatusFilter(Enum):
    """Status filter choices; ALL passes every product."""
    ALL = "All"
    CREATED = "Created"
    IN_TRANSIT = "InTransit"
    DELIVERED = "Delivered"

    @property
    def status(self) -> Optional[ProductStatus]:
        if self is StatusFilter.ALL:
            return None
        return ProductStatus[self.name]

    @classmethod
    def parse(cls, value: Union["StatusFilter", ProductStatus, str, None]) -> "StatusFilter":
        """
        Accept enum members, names ("IN_TRANSIT"), values ("InTransit") and
        display labels ("In Transit"), case-insensitively. Empty means ALL.
        """
        if isinstance(value, StatusFilter):
            return value
        if isinstance(value, ProductStatus):
            return cls[value.name]
        if value is None or not str(value).strip():
            return cls.ALL

        key = _normalize(value)
        for member in cls:
            candidates = {_normalize(member.name), _normalize(member.value)}
            if member.status is not None:
                candidates.add(_normalize(STATUS_LABELS[member.status]))
            if key in candidates:
                return member
        raise ValidationError(f"Unknown status filter: {value}")


def _normalize(text: str) -> str:
    return str(text).strip().lower().replace(" ", "").replace("_", "")


def matches_search(product: Product, search: str) -> bool:
    """Case-insensitive name substring, or exact decimal id."""
    if not search:
        return True
    return search.lower() in product.name.lower() or str(product.id) == search


def filter_products(
    products: Iterable[Product],
    search: str = "",
    status_filter: Union[StatusFilter, str, None] = StatusFilter.ALL
) -> List[Product]:
    """
    Apply the search and status predicates (ANDed) in snapshot order.

    Args:
        products: Snapshot (or any iterable of products) in id order
        search: Free text; empty matches everything
        status_filter: StatusFilter or anything StatusFilter.parse accepts
    """
    wanted = StatusFilter.parse(status_filter).status
    return [
        p for p in products
        if matches_search(p, search or "")
        and (wanted is None or p.current_status == wanted)
    ]


def summarize(products: Iterable[Product]) -> Dict[str, Any]:
    """Network statistics: product count, count per status, recorded events."""
    by_status = {status.name: 0 for status in ProductStatus}
    total = 0
    events = 0
    for product in products:
        total += 1
        by_status[product.current_status.name] += 1
        events += len(product.history)

    return {
        "products_tracked": total,
        "by_status": by_status,
        "recorded_events": events,
        "transitions": events - total,
    }
