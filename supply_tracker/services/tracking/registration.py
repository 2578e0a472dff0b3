"""
Product Registration Service.

Registers a new product on the ledger and refreshes the repository once the
creation is confirmed, so the product shows up with its first Created event.
"""

import logging
from typing import Optional

from supply_tracker.errors import UnauthorizedError, ValidationError
from supply_tracker.models import SigningIdentity
from supply_tracker.services.ledger import LedgerGateway, TransactionReceipt
from supply_tracker.services.tracking.repository import ProductRepository

logger = logging.getLogger(__name__)


class ProductRegistrationService:
    """Creates products; needs a signing identity."""

    def __init__(
        self,
        gateway: LedgerGateway,
        repository: ProductRepository,
        identity: Optional[SigningIdentity] = None
    ):
        self._gateway = gateway
        self._repository = repository
        self._identity = identity

    def set_identity(self, identity: Optional[SigningIdentity]) -> None:
        self._identity = identity

    async def register_product(self, name: str, origin: str) -> TransactionReceipt:
        """
        Create a product and reload the repository after confirmation.

        Args:
            name: Product name (surrounding whitespace is dropped)
            origin: Origin location (surrounding whitespace is dropped)

        Returns:
            Receipt of the createProduct transaction
        """
        identity = self._identity
        if identity is None:
            raise UnauthorizedError()

        name = (name or "").strip()
        origin = (origin or "").strip()
        if not name or not origin:
            raise ValidationError()

        handle = await self._gateway.submit_create(identity, name, origin)
        logger.info(f"Registration of '{name}' from {origin} submitted: {handle.tx_hash}")

        receipt = await self._gateway.await_confirmation(handle)
        logger.info(f"Registration of '{name}' confirmed in block {receipt.block_number}")

        await self._repository.reload_all()
        return receipt
