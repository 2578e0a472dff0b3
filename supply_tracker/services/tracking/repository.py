"""
Product Repository - in-memory view of every product on the ledger.

The cache is replaced wholesale by reload_all() and updated one key at a time
by apply_confirmed_transition(). Both swap in a new dictionary under a short
lock, so snapshot() readers never observe a half-applied write.

Generations:
    Each reload takes a generation number when dispatched. A reload that
    completes after a newer one already completed is discarded. An optimistic
    update is tagged with the latest dispatched generation at confirmation
    time and is discarded only if a reload dispatched after that has already
    been installed.
"""

import asyncio
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Optional, Tuple

from supply_tracker.errors import MalformedHistoryError
from supply_tracker.models import Product, ProductStatus
from supply_tracker.services.ledger import LedgerGateway, ProductRecord, RawHistory
from supply_tracker.services.tracking.history import check_ordering, reconstruct_history

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProductSnapshot:
    """Immutable, point-in-time view of the cached products (id order)."""
    products: Tuple[Product, ...]
    generation: int
    taken_at: float = field(default_factory=time.time)

    def __iter__(self) -> Iterator[Product]:
        return iter(self.products)

    def __len__(self) -> int:
        return len(self.products)

    def get(self, product_id: int) -> Optional[Product]:
        for product in self.products:
            if product.id == product_id:
                return product
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "generation": self.generation,
            "taken_at": self.taken_at,
            "count": len(self.products),
            "products": [p.to_dict() for p in self.products],
        }


class ProductRepository:
    """
    Cache of Product view models keyed by ledger id.

    Args:
        gateway: Ledger gateway to read from
        reload_concurrency: Maximum ids fetched at the same time during a reload
    """

    def __init__(self, gateway: LedgerGateway, reload_concurrency: int = 8):
        self._gateway = gateway
        self._reload_concurrency = max(1, reload_concurrency)
        self._products: Dict[int, Product] = {}
        self._lock = threading.Lock()
        self._dispatched_generation = 0
        self._completed_generation = 0
        self._closed = False

    @property
    def generation(self) -> int:
        """Generation of the most recently installed reload."""
        return self._completed_generation

    @property
    def dispatched_generation(self) -> int:
        """Generation of the most recently started reload."""
        return self._dispatched_generation

    @property
    def closed(self) -> bool:
        return self._closed

    # =========================================================================
    # Reload
    # =========================================================================

    async def reload_all(self) -> ProductSnapshot:
        """
        Re-read every product from the ledger and replace the cache.

        All-or-nothing: the first failing id fails the whole reload and the
        previous cache stays in place.

        Returns:
            Snapshot of the cache after the reload (unchanged when the result
            was discarded as stale or the repository was closed meanwhile)
        """
        with self._lock:
            self._dispatched_generation += 1
            generation = self._dispatched_generation

        total = await self._gateway.count()
        logger.info(f"Reload {generation}: fetching {total} products from {self._gateway.name} ledger")

        semaphore = asyncio.Semaphore(self._reload_concurrency)

        async def load(product_id: int) -> Product:
            async with semaphore:
                record = await self._gateway.fetch_record(product_id)
                raw = await self._gateway.fetch_history(product_id)
            return self._assemble(product_id, record, raw)

        tasks = [asyncio.ensure_future(load(i)) for i in range(total)]
        try:
            products = await asyncio.gather(*tasks)
        except BaseException as e:
            for task in tasks:
                task.cancel()
            logger.error(f"Reload {generation} failed, keeping generation {self.generation}: {e}")
            raise

        with self._lock:
            if self._closed:
                logger.info(f"Reload {generation} finished after close; result discarded")
            elif generation < self._completed_generation:
                logger.info(
                    f"Reload {generation} superseded by generation "
                    f"{self._completed_generation}; result discarded"
                )
            else:
                self._products = {p.id: p for p in products}
                self._completed_generation = generation
                logger.info(f"Reload {generation} installed {len(products)} products")

        return self.snapshot()

    def _assemble(self, product_id: int, record: ProductRecord, raw: RawHistory) -> Product:
        if record.id != product_id:
            raise MalformedHistoryError(
                f"Ledger returned record {record.id} for product {product_id}",
                product_id=product_id,
            )

        reconstructed = reconstruct_history(raw.statuses, raw.timestamps, product_id=product_id)
        for warning in reconstructed.warnings:
            logger.warning(str(warning))

        events = reconstructed.events
        first, last = events[0], events[-1]

        if first.status != ProductStatus.CREATED or first.timestamp != record.created_at:
            logger.warning(
                f"Product {product_id}: first event is {first.status.name}@{first.timestamp}, "
                f"expected CREATED@{record.created_at}"
            )
        if record.status_code != last.status.value:
            logger.warning(
                f"Product {product_id}: record status {record.status_code} disagrees with "
                f"last history event {last.status.name}; using history"
            )

        return Product(
            id=product_id,
            name=record.name,
            origin=record.origin,
            created_at=record.created_at,
            current_status=last.status,
            history=events,
        )

    # =========================================================================
    # Optimistic update
    # =========================================================================

    def apply_confirmed_transition(
        self,
        product_id: int,
        new_status: ProductStatus,
        observed_at: int,
        generation: Optional[int] = None
    ) -> bool:
        """
        Append a confirmed transition to the cached product without a reload.

        Args:
            product_id: Product that changed
            new_status: Status the ledger accepted
            observed_at: Confirmation timestamp
            generation: dispatched_generation read when the transaction confirmed

        Returns:
            True if the cache was updated
        """
        with self._lock:
            if self._closed:
                logger.info(f"Transition of product {product_id} confirmed after close; discarded")
                return False

            if generation is not None and generation < self._completed_generation:
                logger.info(
                    f"Transition of product {product_id} confirmed at generation {generation}, "
                    f"cache is at {self._completed_generation}; discarded"
                )
                return False

            product = self._products.get(product_id)
            if product is None:
                logger.warning(f"Product {product_id} not in cache (stale cache); transition not applied")
                return False

            updated = product.with_transition(new_status, observed_at)
            products = dict(self._products)
            products[product_id] = updated
            self._products = products

        for warning in check_ordering(updated.history, product_id):
            logger.warning(str(warning))

        logger.info(f"Product {product_id} -> {new_status.name} at {observed_at} (optimistic)")
        return True

    # =========================================================================
    # Reads
    # =========================================================================

    def snapshot(self) -> ProductSnapshot:
        with self._lock:
            products = self._products
            generation = self._completed_generation
        return ProductSnapshot(
            products=tuple(products[k] for k in sorted(products)),
            generation=generation,
        )

    def get(self, product_id: int) -> Optional[Product]:
        return self._products.get(product_id)

    def close(self) -> None:
        """Tear down the cache; later reload or transition results are discarded."""
        with self._lock:
            self._closed = True
            self._products = {}
        logger.info("Product repository closed")
