"""
Lifecycle Transition Service.

Drives one product's status change end to end: submit, await confirmation,
then update the repository optimistically. At most one transition per product
id may be in flight; a second request for the same id fails with
ConflictError instead of queuing. Different ids proceed independently.

Any status may be requested from any current status. The contract does not
expose an ordering rule, so none is enforced here.
"""

import logging
import threading
from typing import FrozenSet, Optional, Set

from supply_tracker.errors import ConflictError, UnauthorizedError
from supply_tracker.models import ProductStatus, SigningIdentity
from supply_tracker.services.ledger import LedgerGateway, TransactionReceipt
from supply_tracker.services.tracking.repository import ProductRepository

logger = logging.getLogger(__name__)


class LifecycleTransitionService:
    """
    Status changes for tracked products.

    Args:
        gateway: Ledger gateway used to submit and confirm
        repository: Repository updated on confirmation
        identity: Signing identity; None means read-only
    """

    def __init__(
        self,
        gateway: LedgerGateway,
        repository: ProductRepository,
        identity: Optional[SigningIdentity] = None
    ):
        self._gateway = gateway
        self._repository = repository
        self._identity = identity
        self._in_flight: Set[int] = set()
        self._lock = threading.Lock()

    @property
    def identity(self) -> Optional[SigningIdentity]:
        return self._identity

    def set_identity(self, identity: Optional[SigningIdentity]) -> None:
        """Replace the signing identity (None makes the service read-only)."""
        self._identity = identity

    def in_flight(self) -> FrozenSet[int]:
        """Ids with a transition currently pending."""
        with self._lock:
            return frozenset(self._in_flight)

    def _acquire(self, product_id: int) -> None:
        with self._lock:
            if product_id in self._in_flight:
                raise ConflictError(
                    f"Product {product_id} already has a status update pending",
                    product_id=product_id,
                )
            self._in_flight.add(product_id)

    def _release(self, product_id: int) -> None:
        with self._lock:
            self._in_flight.discard(product_id)

    async def request_transition(
        self,
        product_id: int,
        new_status: ProductStatus
    ) -> TransactionReceipt:
        """
        Move a product to a new status.

        Args:
            product_id: Ledger id of the product
            new_status: Requested status

        Returns:
            Receipt of the confirmed transaction

        Raises:
            UnauthorizedError: no signing identity
            ConflictError: a transition for this id is already pending
            TrackerError: any gateway failure; the repository is left untouched
        """
        identity = self._identity
        if identity is None:
            raise UnauthorizedError(product_id=product_id)

        self._acquire(product_id)
        try:
            handle = await self._gateway.submit_status_update(identity, product_id, new_status)
            logger.info(f"Transition {product_id} -> {new_status.name} submitted: {handle.tx_hash}")

            receipt = await self._gateway.await_confirmation(handle)
            # reloads dispatched from here on see the transition on the ledger
            generation = self._repository.dispatched_generation
            logger.info(
                f"Transition {product_id} -> {new_status.name} confirmed in block "
                f"{receipt.block_number}"
            )

            self._repository.apply_confirmed_transition(
                product_id, new_status, receipt.confirmed_at, generation=generation
            )
            return receipt
        except Exception as e:
            logger.error(f"Transition {product_id} -> {new_status.name} failed: {e}")
            raise
        finally:
            self._release(product_id)
