"""
Unit Tests for the Product Repository.

Covers full reloads, all-or-nothing failure handling, generation ordering,
teardown and optimistic updates.
"""

import asyncio
import logging

import pytest

from supply_tracker.errors import ConnectivityError, MalformedHistoryError
from supply_tracker.models import ProductStatus
from supply_tracker.services.ledger import RawHistory, SimulatedLedgerGateway
from supply_tracker.services.tracking import ProductRepository


class CorruptibleLedger(SimulatedLedgerGateway):
    """Returns a length-mismatched history for `corrupt_id` once enabled."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.corrupt_id = None

    async def fetch_history(self, product_id):
        if product_id == self.corrupt_id:
            return RawHistory(statuses=[0, 1, 2], timestamps=[100, 200])
        return await super().fetch_history(product_id)


class FlakyLedger(SimulatedLedgerGateway):
    """Loses the connection while reading `failing_id`."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.failing_id = None

    async def fetch_record(self, product_id):
        if product_id == self.failing_id:
            raise ConnectivityError(product_id=product_id)
        return await super().fetch_record(product_id)


class GatedLedger(SimulatedLedgerGateway):
    """count() waits on the next queued gate, if any."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.gates = []

    async def count(self):
        if self.gates:
            await self.gates.pop(0).wait()
        return await super().count()


async def _create(ledger, identity, *products):
    for name, origin in products:
        await ledger.await_confirmation(await ledger.submit_create(identity, name, origin))


class TestReloadAll:
    """Tests for reload_all."""

    @pytest.mark.asyncio
    async def test_reload_installs_every_product_in_id_order(
        self, repository, seed_products, sample_products
    ):
        await seed_products(*sample_products)

        snapshot = await repository.reload_all()

        assert [p.id for p in snapshot] == [0, 1, 2, 3, 4]
        assert [p.name for p in snapshot] == [name for name, _ in sample_products]
        assert snapshot.generation == 1
        for product in snapshot:
            assert product.history[0].status == ProductStatus.CREATED
            assert product.history[0].timestamp == product.created_at
            assert product.current_status == product.history[-1].status

    @pytest.mark.asyncio
    async def test_reload_of_empty_ledger(self, repository):
        snapshot = await repository.reload_all()

        assert len(snapshot) == 0
        assert repository.generation == 1

    @pytest.mark.asyncio
    async def test_reload_is_idempotent(self, repository, seed_products, sample_products):
        await seed_products(*sample_products)

        first = await repository.reload_all()
        second = await repository.reload_all()

        assert first.products == second.products
        assert second.generation == first.generation + 1

    @pytest.mark.asyncio
    async def test_reload_uses_bounded_concurrency(self, ledger, seed_products, sample_products):
        await seed_products(*sample_products)
        repository = ProductRepository(ledger, reload_concurrency=1)

        snapshot = await repository.reload_all()

        assert len(snapshot) == len(sample_products)

    @pytest.mark.asyncio
    async def test_malformed_history_leaves_cache_unchanged(self, identity, clock):
        ledger = CorruptibleLedger(clock=clock)
        await _create(ledger, identity, ("Box A", "Factory-A"), ("Box B", "Factory-B"))
        repository = ProductRepository(ledger)
        before = await repository.reload_all()

        ledger.corrupt_id = 1
        with pytest.raises(MalformedHistoryError) as exc_info:
            await repository.reload_all()

        assert exc_info.value.product_id == 1
        assert repository.generation == before.generation
        assert repository.snapshot().products == before.products

    @pytest.mark.asyncio
    async def test_partial_failure_is_all_or_nothing(self, identity, clock):
        ledger = FlakyLedger(clock=clock)
        await _create(ledger, identity, ("Box A", "Factory-A"), ("Box B", "Factory-B"))
        repository = ProductRepository(ledger)
        before = await repository.reload_all()

        await _create(ledger, identity, ("Crate", "Port of Rotterdam"))
        ledger.failing_id = 2
        with pytest.raises(ConnectivityError):
            await repository.reload_all()

        assert len(repository.snapshot()) == 2
        assert repository.snapshot().products == before.products

    @pytest.mark.asyncio
    async def test_status_disagreement_prefers_history(self, identity, clock, caplog):
        class DisagreeingLedger(SimulatedLedgerGateway):
            async def fetch_record(self, product_id):
                record = await super().fetch_record(product_id)
                return type(record)(
                    id=record.id,
                    name=record.name,
                    origin=record.origin,
                    created_at=record.created_at,
                    status_code=ProductStatus.DELIVERED.value,
                )

        ledger = DisagreeingLedger(clock=clock)
        await _create(ledger, identity, ("Box A", "Factory-A"))
        repository = ProductRepository(ledger)

        with caplog.at_level(logging.WARNING):
            snapshot = await repository.reload_all()

        assert snapshot.get(0).current_status == ProductStatus.CREATED
        assert "disagrees with last history event" in caplog.text


class TestGenerations:
    """Out-of-order and post-teardown completions."""

    @pytest.mark.asyncio
    async def test_superseded_reload_is_discarded(self, identity, clock):
        ledger = GatedLedger(clock=clock)
        await _create(ledger, identity, ("Box A", "Factory-A"), ("Box B", "Factory-B"))
        repository = ProductRepository(ledger)

        gate = asyncio.Event()
        ledger.gates.append(gate)
        older = asyncio.ensure_future(repository.reload_all())
        await asyncio.sleep(0)

        newer = await repository.reload_all()
        assert newer.generation == 2

        await _create(ledger, identity, ("Crate", "Port of Rotterdam"))
        gate.set()
        await older

        assert repository.generation == 2
        assert len(repository.snapshot()) == 2

    @pytest.mark.asyncio
    async def test_reload_after_close_is_discarded(self, identity, clock):
        ledger = GatedLedger(clock=clock)
        await _create(ledger, identity, ("Box A", "Factory-A"))
        repository = ProductRepository(ledger)

        gate = asyncio.Event()
        ledger.gates.append(gate)
        pending = asyncio.ensure_future(repository.reload_all())
        await asyncio.sleep(0)

        repository.close()
        gate.set()
        await pending

        assert repository.closed is True
        assert len(repository.snapshot()) == 0
        assert repository.generation == 0


class TestApplyConfirmedTransition:
    """Tests for apply_confirmed_transition."""

    @pytest.mark.asyncio
    async def test_appends_event_to_cached_product(self, repository, seed_products):
        await seed_products(("Box A", "Factory-A"), ("Box B", "Factory-B"))
        before = await repository.reload_all()

        applied = repository.apply_confirmed_transition(1, ProductStatus.IN_TRANSIT, 1_800_000_000)

        product = repository.get(1)
        assert applied is True
        assert product.current_status == ProductStatus.IN_TRANSIT
        assert product.history[-1].timestamp == 1_800_000_000
        assert len(product.history) == 2
        assert repository.get(0) == before.get(0)
        # snapshots already handed out do not change
        assert before.get(1).current_status == ProductStatus.CREATED

    def test_missing_product_is_not_applied(self, repository):
        assert repository.apply_confirmed_transition(7, ProductStatus.DELIVERED, 100) is False
        assert repository.get(7) is None

    @pytest.mark.asyncio
    async def test_stale_generation_is_discarded(self, repository, seed_products):
        await seed_products(("Box A", "Factory-A"))
        await repository.reload_all()
        await repository.reload_all()

        applied = repository.apply_confirmed_transition(
            0, ProductStatus.DELIVERED, 1_800_000_000, generation=1
        )

        assert applied is False
        assert repository.get(0).current_status == ProductStatus.CREATED

    @pytest.mark.asyncio
    async def test_transition_after_close_is_discarded(self, repository, seed_products):
        await seed_products(("Box A", "Factory-A"))
        await repository.reload_all()
        repository.close()

        assert repository.apply_confirmed_transition(0, ProductStatus.DELIVERED, 100) is False
