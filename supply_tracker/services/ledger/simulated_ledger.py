"""
Simulated Ledger - in-process stand-in for the SupplyChain contract.

Implements the same surface as the deployed contract on top of a small
hash-chained block list: products get dense ids, histories are append-only,
and submitted transactions only take effect when confirmed, each one sealed
into its own block (automine, like a local development node).

Used by the development configuration and by the test suite.
"""

import asyncio
import hashlib
import json
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from supply_tracker.errors import NotFoundError, TransactionRejectedError
from supply_tracker.models import ProductStatus, SigningIdentity
from supply_tracker.services.ledger.gateway import (
    LedgerGateway,
    PendingTransaction,
    ProductRecord,
    RawHistory,
    TransactionAction,
    TransactionReceipt,
    require_identity,
    require_status,
    require_text,
)

logger = logging.getLogger(__name__)


@dataclass
class SimulatedBlock:
    """Block sealing one confirmed transaction."""
    index: int
    timestamp: int
    tx_hashes: List[str]
    previous_hash: str
    hash: str = ""

    def __post_init__(self):
        if not self.hash:
            self.hash = self.calculate_hash()

    def calculate_hash(self) -> str:
        block_data = {
            "index": self.index,
            "timestamp": self.timestamp,
            "tx_hashes": self.tx_hashes,
            "previous_hash": self.previous_hash,
        }
        return hashlib.sha256(json.dumps(block_data, sort_keys=True).encode()).hexdigest()


@dataclass
class _StoredProduct:
    id: int
    name: str
    origin: str
    created_at: int
    status: ProductStatus
    statuses: List[int] = field(default_factory=list)
    timestamps: List[int] = field(default_factory=list)


@dataclass
class _QueuedCall:
    handle: PendingTransaction
    sender: str
    args: Tuple


class SimulatedLedgerGateway(LedgerGateway):
    """
    In-memory SupplyChain contract.

    Args:
        confirmation_delay: Seconds await_confirmation suspends before the
            transaction is sealed
        clock: Source of Unix timestamps for new blocks
    """

    name = "simulated"

    def __init__(
        self,
        confirmation_delay: float = 0.0,
        clock: Optional[Callable[[], int]] = None
    ):
        self.confirmation_delay = confirmation_delay
        self._clock = clock or (lambda: int(time.time()))
        self._products: List[_StoredProduct] = []
        self._queued: Dict[str, _QueuedCall] = {}
        self._receipts: Dict[str, TransactionReceipt] = {}
        self._nonce = 0
        self._lock = threading.Lock()
        self.chain: List[SimulatedBlock] = [
            SimulatedBlock(index=0, timestamp=self._clock(), tx_hashes=[], previous_hash="0" * 64)
        ]

    # =========================================================================
    # Reads
    # =========================================================================

    async def count(self) -> int:
        return len(self._products)

    async def fetch_record(self, product_id: int) -> ProductRecord:
        stored = self._lookup(product_id)
        return ProductRecord(
            id=stored.id,
            name=stored.name,
            origin=stored.origin,
            created_at=stored.created_at,
            status_code=stored.status.value,
        )

    async def fetch_history(self, product_id: int) -> RawHistory:
        stored = self._lookup(product_id)
        return RawHistory(statuses=list(stored.statuses), timestamps=list(stored.timestamps))

    # =========================================================================
    # Writes
    # =========================================================================

    async def submit_create(
        self,
        identity: Optional[SigningIdentity],
        name: str,
        origin: str
    ) -> PendingTransaction:
        identity = require_identity(identity)
        require_text(name, "name")
        require_text(origin, "origin")
        return self._queue(identity, TransactionAction.CREATE_PRODUCT, None, (name, origin))

    async def submit_status_update(
        self,
        identity: Optional[SigningIdentity],
        product_id: int,
        new_status: ProductStatus
    ) -> PendingTransaction:
        identity = require_identity(identity)
        require_status(new_status)
        self._lookup(product_id)
        return self._queue(
            identity, TransactionAction.UPDATE_STATUS, product_id, (product_id, new_status)
        )

    async def await_confirmation(self, handle: PendingTransaction) -> TransactionReceipt:
        if handle.tx_hash in self._receipts:
            return self._receipts[handle.tx_hash]

        if self.confirmation_delay > 0:
            await asyncio.sleep(self.confirmation_delay)

        with self._lock:
            queued = self._queued.pop(handle.tx_hash, None)
            if queued is None:
                if handle.tx_hash in self._receipts:
                    return self._receipts[handle.tx_hash]
                raise TransactionRejectedError(f"Unknown transaction {handle.tx_hash}")

            block = self._seal_block(handle.tx_hash)
            product_id = self._execute(queued, block.timestamp)

            receipt = TransactionReceipt(
                tx_hash=handle.tx_hash,
                block_number=block.index,
                confirmed_at=block.timestamp,
                action=handle.action,
                product_id=product_id,
            )
            self._receipts[handle.tx_hash] = receipt
        logger.info(f"Sealed {handle.action.value} in block {block.index} ({handle.tx_hash[:12]}...)")
        return receipt

    # =========================================================================
    # Internals
    # =========================================================================

    def _lookup(self, product_id: int) -> _StoredProduct:
        if not isinstance(product_id, int) or product_id < 0 or product_id >= len(self._products):
            raise NotFoundError(f"Product not found: {product_id}", product_id=product_id)
        return self._products[product_id]

    def _queue(
        self,
        identity: SigningIdentity,
        action: TransactionAction,
        product_id: Optional[int],
        args: Tuple
    ) -> PendingTransaction:
        with self._lock:
            self._nonce += 1
            payload = json.dumps(
                {
                    "from": identity.address,
                    "action": action.value,
                    "args": [a.value if isinstance(a, ProductStatus) else a for a in args],
                    "nonce": self._nonce,
                },
                sort_keys=True,
            )
            tx_hash = "0x" + hashlib.sha256(payload.encode()).hexdigest()
            handle = PendingTransaction(tx_hash=tx_hash, action=action, product_id=product_id)
            self._queued[tx_hash] = _QueuedCall(handle=handle, sender=identity.address, args=args)
        return handle

    def _seal_block(self, tx_hash: str) -> SimulatedBlock:
        previous = self.chain[-1]
        block = SimulatedBlock(
            index=len(self.chain),
            timestamp=max(self._clock(), previous.timestamp),
            tx_hashes=[tx_hash],
            previous_hash=previous.hash,
        )
        self.chain.append(block)
        return block

    def _execute(self, queued: _QueuedCall, timestamp: int) -> int:
        """Apply a confirmed call to contract state; returns the affected id."""
        if queued.handle.action == TransactionAction.CREATE_PRODUCT:
            name, origin = queued.args
            product = _StoredProduct(
                id=len(self._products),
                name=name,
                origin=origin,
                created_at=timestamp,
                status=ProductStatus.CREATED,
                statuses=[ProductStatus.CREATED.value],
                timestamps=[timestamp],
            )
            self._products.append(product)
            return product.id

        product_id, new_status = queued.args
        product = self._products[product_id]
        product.status = new_status
        product.statuses.append(new_status.value)
        product.timestamps.append(timestamp)
        return product_id

    def verify_chain_integrity(self) -> Tuple[bool, List[str]]:
        """Check block hashes and links; returns (is_valid, issues)."""
        issues = []
        for i in range(1, len(self.chain)):
            current = self.chain[i]
            if current.previous_hash != self.chain[i - 1].hash:
                issues.append(f"Block {i}: Previous hash mismatch")
            if current.hash != current.calculate_hash():
                issues.append(f"Block {i}: Hash verification failed")
        return len(issues) == 0, issues
