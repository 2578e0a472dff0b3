"""
Tracker Session - one view instance over the ledger.

Owns the repository and the write services for a single presentation view,
routes identity changes to the write services, and tears everything down on
close() so results arriving afterwards are dropped.
"""

import logging
from typing import Any, Dict, List, Optional, Union

from supply_tracker.errors import TrackerError
from supply_tracker.models import Product, ProductStatus, SigningIdentity
from supply_tracker.services.ledger import LedgerGateway, TransactionReceipt
from supply_tracker.services.tracking.query import StatusFilter, filter_products, summarize
from supply_tracker.services.tracking.registration import ProductRegistrationService
from supply_tracker.services.tracking.repository import ProductRepository, ProductSnapshot
from supply_tracker.services.tracking.transitions import LifecycleTransitionService

logger = logging.getLogger(__name__)


class SessionClosedError(TrackerError):
    """Operation attempted on a torn-down session."""
    category = "closed"
    default_message = "This tracker view has been closed"


class TrackerSession:
    """
    Facade used by the presentation layer.

    Usage:
        >>> session = TrackerSession(gateway, identity)
        >>> await session.reload()
        >>> session.query(search="box", status_filter="Delivered")
        >>> await session.request_transition(3, ProductStatus.IN_TRANSIT)
        >>> session.close()
    """

    def __init__(
        self,
        gateway: LedgerGateway,
        identity: Optional[SigningIdentity] = None,
        reload_concurrency: int = 8
    ):
        self.gateway = gateway
        self.repository = ProductRepository(gateway, reload_concurrency=reload_concurrency)
        self.transitions = LifecycleTransitionService(gateway, self.repository, identity)
        self.registration = ProductRegistrationService(gateway, self.repository, identity)
        self._identity = identity

    @property
    def identity(self) -> Optional[SigningIdentity]:
        return self._identity

    @property
    def read_only(self) -> bool:
        return self._identity is None

    def _ensure_open(self) -> None:
        if self.repository.closed:
            raise SessionClosedError()

    # =========================================================================
    # Commands
    # =========================================================================

    async def reload(self) -> ProductSnapshot:
        self._ensure_open()
        return await self.repository.reload_all()

    async def request_transition(
        self,
        product_id: int,
        new_status: ProductStatus
    ) -> TransactionReceipt:
        self._ensure_open()
        return await self.transitions.request_transition(product_id, new_status)

    async def register_product(self, name: str, origin: str) -> TransactionReceipt:
        self._ensure_open()
        return await self.registration.register_product(name, origin)

    def on_identity_changed(self, identity: Optional[SigningIdentity]) -> None:
        """Re-inject the signing identity; None switches the view to read-only."""
        self._identity = identity
        self.transitions.set_identity(identity)
        self.registration.set_identity(identity)
        if identity is None:
            logger.info("Signing identity removed; session is read-only")
        else:
            logger.info(f"Signing identity changed to {identity.short_address}")

    # =========================================================================
    # Queries
    # =========================================================================

    def snapshot(self) -> ProductSnapshot:
        return self.repository.snapshot()

    def get(self, product_id: int) -> Optional[Product]:
        return self.repository.get(product_id)

    def query(
        self,
        search: str = "",
        status_filter: Union[StatusFilter, str, None] = StatusFilter.ALL
    ) -> List[Product]:
        return filter_products(self.snapshot(), search=search, status_filter=status_filter)

    def summary(self) -> Dict[str, Any]:
        stats = summarize(self.snapshot())
        stats["updating"] = sorted(self.transitions.in_flight())
        stats["generation"] = self.repository.generation
        return stats

    def close(self) -> None:
        self.repository.close()
        logger.info("Tracker session closed")
