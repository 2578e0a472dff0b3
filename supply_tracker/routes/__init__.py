"""
Supply Tracker Routes

All Flask route blueprints.
"""

from .products import products_bp

__all__ = ["products_bp"]
