"""
Web3 Ledger Gateway - SupplyChain contract over JSON-RPC.

The contract is bound once through SupplyChainContract, a hand-written
binding with one typed method per ABI entry; nothing outside this module
refers to contract methods by name.

Error mapping:
- transport failures and provider errors -> ConnectivityError
- reverts on reads -> NotFoundError
- reverts or node refusals on writes, failed receipts -> TransactionRejectedError
- confirmation timeout -> ConnectivityError
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, List, Optional, Tuple

from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception

from supply_tracker.errors import (
    ConnectivityError,
    NotFoundError,
    TrackerError,
    TransactionRejectedError,
)
from supply_tracker.models import ProductStatus, SigningIdentity
from supply_tracker.services.ledger.contract_abi import SUPPLY_CHAIN_ABI
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


class SupplyChainContract:
    """Typed binding for the SupplyChain contract."""

    def __init__(self, w3: AsyncWeb3, address: str):
        self.address = AsyncWeb3.to_checksum_address(address)
        self._contract = w3.eth.contract(address=self.address, abi=SUPPLY_CHAIN_ABI)

    async def next_id(self) -> int:
        return int(await self._contract.functions.nextId().call())

    async def products(self, index: int) -> Tuple[Any, ...]:
        return tuple(await self._contract.functions.products(index).call())

    async def get_history(self, index: int) -> Tuple[List[int], List[int]]:
        statuses, timestamps = await self._contract.functions.getHistory(index).call()
        return list(statuses), list(timestamps)

    def create_product(self, name: str, origin: str):
        return self._contract.functions.createProduct(name, origin)

    def update_status(self, product_id: int, new_status: int):
        return self._contract.functions.updateStatus(product_id, new_status)


class Web3LedgerGateway(LedgerGateway):
    """
    Ledger gateway backed by an EVM JSON-RPC endpoint.

    Args:
        rpc_url: HTTP JSON-RPC endpoint
        contract_address: Deployed SupplyChain address
        chain_id: Chain id used when signing locally
        confirmation_timeout: Seconds to wait for a receipt
    """

    name = "web3"

    def __init__(
        self,
        rpc_url: str,
        contract_address: str,
        chain_id: Optional[int] = None,
        confirmation_timeout: float = 120.0,
        w3: Optional[AsyncWeb3] = None
    ):
        self.rpc_url = rpc_url
        self.chain_id = chain_id
        self.confirmation_timeout = confirmation_timeout
        self._w3 = w3 or AsyncWeb3(AsyncHTTPProvider(rpc_url))
        self.contract = SupplyChainContract(self._w3, contract_address)

    # =========================================================================
    # Error mapping
    # =========================================================================

    @asynccontextmanager
    async def _reading(self, product_id: Optional[int] = None):
        try:
            yield
        except TrackerError:
            raise
        except ContractLogicError as e:
            raise NotFoundError(f"Product not found: {product_id}", product_id=product_id) from e
        except (OSError, asyncio.TimeoutError, Web3Exception) as e:
            logger.error(f"Ledger read failed at {self.rpc_url}: {e}")
            raise ConnectivityError() from e

    @asynccontextmanager
    async def _writing(self, product_id: Optional[int] = None):
        try:
            yield
        except TrackerError:
            raise
        except (OSError, asyncio.TimeoutError) as e:
            logger.error(f"Ledger write failed at {self.rpc_url}: {e}")
            raise ConnectivityError() from e
        except (ContractLogicError, Web3Exception) as e:
            raise TransactionRejectedError(
                f"Transaction rejected: {e}", product_id=product_id
            ) from e

    # =========================================================================
    # Reads
    # =========================================================================

    async def count(self) -> int:
        async with self._reading():
            return await self.contract.next_id()

    async def fetch_record(self, product_id: int) -> ProductRecord:
        async with self._reading(product_id):
            raw_id, name, origin, created_at, status_code = await self.contract.products(product_id)

        # unset storage slots decode as zero values
        if not name and int(created_at) == 0:
            raise NotFoundError(f"Product not found: {product_id}", product_id=product_id)

        return ProductRecord(
            id=int(raw_id),
            name=name,
            origin=origin,
            created_at=int(created_at),
            status_code=int(status_code),
        )

    async def fetch_history(self, product_id: int) -> RawHistory:
        async with self._reading(product_id):
            statuses, timestamps = await self.contract.get_history(product_id)

        # every registered product has at least its Created event
        if not statuses and not timestamps:
            raise NotFoundError(f"Product not found: {product_id}", product_id=product_id)

        return RawHistory(
            statuses=[int(s) for s in statuses],
            timestamps=[int(t) for t in timestamps],
        )

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

        async with self._writing():
            tx_hash = await self._send(identity, self.contract.create_product(name, origin))

        logger.info(f"Submitted createProduct from {identity.short_address}: {tx_hash}")
        return PendingTransaction(tx_hash=tx_hash, action=TransactionAction.CREATE_PRODUCT)

    async def submit_status_update(
        self,
        identity: Optional[SigningIdentity],
        product_id: int,
        new_status: ProductStatus
    ) -> PendingTransaction:
        identity = require_identity(identity)
        require_status(new_status)

        if product_id < 0 or product_id >= await self.count():
            raise NotFoundError(f"Product not found: {product_id}", product_id=product_id)

        async with self._writing(product_id):
            tx_hash = await self._send(
                identity, self.contract.update_status(product_id, new_status.value)
            )

        logger.info(
            f"Submitted updateStatus({product_id}, {new_status.name}) "
            f"from {identity.short_address}: {tx_hash}"
        )
        return PendingTransaction(
            tx_hash=tx_hash,
            action=TransactionAction.UPDATE_STATUS,
            product_id=product_id,
        )

    async def _send(self, identity: SigningIdentity, function) -> str:
        sender = AsyncWeb3.to_checksum_address(identity.address)

        if identity.private_key is None:
            tx_hash = await function.transact({"from": sender})
            return AsyncWeb3.to_hex(tx_hash)

        params = {
            "from": sender,
            "nonce": await self._w3.eth.get_transaction_count(sender, "pending"),
        }
        if self.chain_id is not None:
            params["chainId"] = self.chain_id

        tx = await function.build_transaction(params)
        signed = self._w3.eth.account.sign_transaction(tx, identity.private_key)
        tx_hash = await self._w3.eth.send_raw_transaction(signed.raw_transaction)
        return AsyncWeb3.to_hex(tx_hash)

    async def await_confirmation(self, handle: PendingTransaction) -> TransactionReceipt:
        try:
            receipt = await self._w3.eth.wait_for_transaction_receipt(
                handle.tx_hash, timeout=self.confirmation_timeout
            )
            block = await self._w3.eth.get_block(receipt["blockNumber"])
        except TimeExhausted as e:
            raise ConnectivityError(
                f"Transaction {handle.tx_hash} not confirmed within "
                f"{self.confirmation_timeout:.0f}s",
                product_id=handle.product_id,
            ) from e
        except (OSError, asyncio.TimeoutError, Web3Exception) as e:
            logger.error(f"Lost connection while waiting for {handle.tx_hash}: {e}")
            raise ConnectivityError(product_id=handle.product_id) from e

        if receipt["status"] == 0:
            raise TransactionRejectedError(
                f"Transaction {handle.tx_hash} reverted", product_id=handle.product_id
            )

        return TransactionReceipt(
            tx_hash=handle.tx_hash,
            block_number=int(receipt["blockNumber"]),
            confirmed_at=int(block["timestamp"]),
            action=handle.action,
            product_id=handle.product_id,
        )

    async def close(self) -> None:
        """Close the provider's cached HTTP sessions."""
        await self._w3.provider.disconnect()
        logger.info(f"Disconnected from {self.rpc_url}")
