"""
Pytest configuration and fixtures for the Supply Tracker test suite.
"""

import pytest

from supply_tracker.models import SigningIdentity
from supply_tracker.services.ledger import SimulatedLedgerGateway
from supply_tracker.services.tracking import ProductRepository, TrackerSession


class StepClock:
    """Deterministic ledger clock: every call advances by `step` seconds."""

    def __init__(self, start: int = 1_700_000_000, step: int = 10):
        self.now = start
        self.step = step

    def __call__(self) -> int:
        current = self.now
        self.now += self.step
        return current


# ============================================================================
# Ledger Fixtures
# ============================================================================

@pytest.fixture
def identity():
    """Signing identity managed by the ledger node."""
    return SigningIdentity(address="0x00000000000000000000000000000000000000aa")


@pytest.fixture
def clock():
    return StepClock()


@pytest.fixture
def ledger(clock):
    """Simulated SupplyChain contract with instant confirmations."""
    return SimulatedLedgerGateway(clock=clock)


@pytest.fixture
def seed_products(ledger, identity):
    """Register products directly on the ledger; returns their ids."""
    async def _seed(*products):
        ids = []
        for name, origin in products:
            handle = await ledger.submit_create(identity, name, origin)
            receipt = await ledger.await_confirmation(handle)
            ids.append(receipt.product_id)
        return ids
    return _seed


# ============================================================================
# Tracking Fixtures
# ============================================================================

@pytest.fixture
def repository(ledger):
    return ProductRepository(ledger)


@pytest.fixture
def session(ledger, identity):
    return TrackerSession(ledger, identity=identity)


@pytest.fixture
def read_only_session(ledger):
    return TrackerSession(ledger)


@pytest.fixture
def sample_products():
    """Five crates from two origins."""
    return [
        ("Box A", "Factory-A"),
        ("Box B", "Factory-B"),
        ("Pallet 7", "Factory-A"),
        ("Crate", "Port of Rotterdam"),
        ("Widget", "Factory-A"),
    ]


# ============================================================================
# Flask Fixtures
# ============================================================================

@pytest.fixture
def app(ledger):
    """Create test application on the simulated ledger."""
    from supply_tracker.app import create_app
    app = create_app('testing', gateway=ledger)
    app.config['TESTING'] = True
    yield app
    app.extensions['tracker_runner'].stop(cleanup=ledger.close)


@pytest.fixture
def client(app):
    """Create test client for each test."""
    with app.test_client() as client:
        yield client
