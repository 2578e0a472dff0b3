"""
SupplyChain contract ABI.

Fixed binding for the five contract methods the tracker uses. Status values
are the contract's uint8 enum (0 Created, 1 InTransit, 2 Delivered).
"""

SUPPLY_CHAIN_ABI = [
    {
        "name": "nextId",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "name": "products",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "", "type": "uint256"}],
        "outputs": [
            {"name": "id", "type": "uint256"},
            {"name": "name", "type": "string"},
            {"name": "origin", "type": "string"},
            {"name": "createdAt", "type": "uint256"},
            {"name": "currentStatus", "type": "uint8"},
        ],
    },
    {
        "name": "getHistory",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "id", "type": "uint256"}],
        "outputs": [
            {"name": "", "type": "uint8[]"},
            {"name": "", "type": "uint256[]"},
        ],
    },
    {
        "name": "createProduct",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "name", "type": "string"},
            {"name": "origin", "type": "string"},
        ],
        "outputs": [],
    },
    {
        "name": "updateStatus",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "id", "type": "uint256"},
            {"name": "newStatus", "type": "uint8"},
        ],
        "outputs": [],
    },
]
