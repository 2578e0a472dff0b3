"""
Signing identity supplied by the wallet collaborator.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class SigningIdentity:
    """
    Credential able to authorize state-changing ledger operations.

    Attributes:
        address: Account address (hex string)
        private_key: Optional key for local signing; when absent the ledger
            node is expected to manage the account
    """
    address: str
    private_key: Optional[str] = None

    @property
    def short_address(self) -> str:
        if len(self.address) <= 10:
            return self.address
        return f"{self.address[:6]}...{self.address[-4:]}"

    def to_dict(self) -> Dict[str, Any]:
        # never expose the key
        return {
            "address": self.address,
            "short_address": self.short_address,
            "signs_locally": self.private_key is not None,
        }

    def __repr__(self) -> str:
        return f"SigningIdentity(address={self.address!r})"
