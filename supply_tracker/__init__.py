"""
Supply Tracker

Product provenance tracking on an immutable ledger: registration, status
transitions and a queryable local view reconstructed from ledger data.
"""

__version__ = "1.0.0"
