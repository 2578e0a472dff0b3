"""
Supply Tracker Services

Bridge between Flask routes and the product tracking contract.
"""

from .ledger import LedgerGateway, SimulatedLedgerGateway, create_gateway
from .tracking import TrackerSession

__all__ = ["LedgerGateway", "SimulatedLedgerGateway", "create_gateway", "TrackerSession"]
