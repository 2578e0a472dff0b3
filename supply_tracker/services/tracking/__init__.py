"""
Tracking Services - product lifecycle tracking and ledger synchronization.

- history: status timeline reconstruction and ordering checks
- repository: in-memory product cache with generations and snapshots
- transitions: per-product status changes with in-flight conflict detection
- registration: product creation
- query: search/status filtering and network statistics
- session: one view instance tying the above together
"""

from .history import HistoryOrderingWarning, ReconstructedHistory, reconstruct_history
from .repository import ProductRepository, ProductSnapshot
from .transitions import LifecycleTransitionService
from .registration import ProductRegistrationService
from .query import StatusFilter, filter_products, summarize
from .session import SessionClosedError, TrackerSession

__all__ = [
    "HistoryOrderingWarning",
    "ReconstructedHistory",
    "reconstruct_history",
    "ProductRepository",
    "ProductSnapshot",
    "LifecycleTransitionService",
    "ProductRegistrationService",
    "StatusFilter",
    "filter_products",
    "summarize",
    "SessionClosedError",
    "TrackerSession",
]
