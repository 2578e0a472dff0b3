"""
Ledger Services - access to the SupplyChain contract.

- gateway: LedgerGateway interface and raw ledger shapes
- web3_gateway: JSON-RPC implementation over web3
- simulated_ledger: in-process contract for development and tests
"""

from .gateway import (
    LedgerGateway,
    PendingTransaction,
    ProductRecord,
    RawHistory,
    TransactionAction,
    TransactionReceipt,
)
from .simulated_ledger import SimulatedLedgerGateway


def create_gateway(config) -> LedgerGateway:
    """Build the ledger gateway selected by configuration."""
    backend = config.LEDGER_BACKEND

    if backend == "simulated":
        return SimulatedLedgerGateway(confirmation_delay=config.SIMULATED_CONFIRMATION_DELAY)

    if backend == "web3":
        from .web3_gateway import Web3LedgerGateway

        return Web3LedgerGateway(
            rpc_url=config.LEDGER_RPC_URL,
            contract_address=config.CONTRACT_ADDRESS,
            chain_id=config.LEDGER_CHAIN_ID,
            confirmation_timeout=config.CONFIRMATION_TIMEOUT,
        )

    raise ValueError(f"Unknown ledger backend: {backend}")


__all__ = [
    "LedgerGateway",
    "PendingTransaction",
    "ProductRecord",
    "RawHistory",
    "TransactionAction",
    "TransactionReceipt",
    "SimulatedLedgerGateway",
    "create_gateway",
]
