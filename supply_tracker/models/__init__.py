"""
Supply Tracker View Models

- product: ProductStatus, StatusEvent, Product
- identity: SigningIdentity
"""

from .product import Product, ProductStatus, StatusEvent, STATUS_LABELS
from .identity import SigningIdentity

__all__ = [
    "Product",
    "ProductStatus",
    "StatusEvent",
    "STATUS_LABELS",
    "SigningIdentity",
]
