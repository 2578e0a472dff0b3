"""
Unit Tests for the Simulated Ledger.

Covers dense id assignment, append-only histories, confirmation semantics
and block chain integrity.
"""

import asyncio
from concurrent.futures import ThreadPoolExecutor

import pytest

from supply_tracker.errors import (
    NotFoundError,
    TransactionRejectedError,
    UnauthorizedError,
    ValidationError,
)
from supply_tracker.models import ProductStatus
from supply_tracker.services.ledger import PendingTransaction, TransactionAction


class TestProductCreation:
    """Tests for createProduct."""

    @pytest.mark.asyncio
    async def test_ids_are_dense_in_creation_order(self, ledger, seed_products, sample_products):
        ids = await seed_products(*sample_products)

        assert ids == [0, 1, 2, 3, 4]
        assert await ledger.count() == 5

    @pytest.mark.asyncio
    async def test_new_product_has_single_created_event(self, ledger, identity):
        handle = await ledger.submit_create(identity, "Widget", "Factory-A")
        receipt = await ledger.await_confirmation(handle)

        record = await ledger.fetch_record(receipt.product_id)
        history = await ledger.fetch_history(receipt.product_id)

        assert record.name == "Widget"
        assert record.origin == "Factory-A"
        assert record.created_at == receipt.confirmed_at
        assert record.status_code == ProductStatus.CREATED.value
        assert list(history.statuses) == [0]
        assert list(history.timestamps) == [receipt.confirmed_at]

    @pytest.mark.asyncio
    async def test_submission_has_no_effect_until_confirmed(self, ledger, identity):
        handle = await ledger.submit_create(identity, "Widget", "Factory-A")

        assert handle.action == TransactionAction.CREATE_PRODUCT
        assert handle.tx_hash.startswith("0x")
        assert await ledger.count() == 0

    @pytest.mark.asyncio
    async def test_create_requires_identity(self, ledger):
        with pytest.raises(UnauthorizedError):
            await ledger.submit_create(None, "Widget", "Factory-A")

    @pytest.mark.asyncio
    async def test_create_rejects_empty_fields(self, ledger, identity):
        with pytest.raises(ValidationError):
            await ledger.submit_create(identity, "", "Factory-A")


class TestStatusUpdates:
    """Tests for updateStatus."""

    @pytest.mark.asyncio
    async def test_update_appends_to_history(self, ledger, identity, seed_products):
        await seed_products(("Box A", "Factory-A"))

        handle = await ledger.submit_status_update(identity, 0, ProductStatus.IN_TRANSIT)
        receipt = await ledger.await_confirmation(handle)

        history = await ledger.fetch_history(0)
        record = await ledger.fetch_record(0)

        assert receipt.product_id == 0
        assert list(history.statuses) == [0, 1]
        assert history.timestamps[-1] == receipt.confirmed_at
        assert record.status_code == ProductStatus.IN_TRANSIT.value

    @pytest.mark.asyncio
    async def test_update_of_unknown_id_is_not_found(self, ledger, identity):
        with pytest.raises(NotFoundError) as exc_info:
            await ledger.submit_status_update(identity, 42, ProductStatus.DELIVERED)

        assert exc_info.value.product_id == 42

    @pytest.mark.asyncio
    async def test_update_rejects_raw_codes(self, ledger, identity, seed_products):
        await seed_products(("Box A", "Factory-A"))

        with pytest.raises(ValidationError):
            await ledger.submit_status_update(identity, 0, 2)

    @pytest.mark.asyncio
    async def test_block_timestamps_never_decrease(self, ledger, identity, seed_products, clock):
        await seed_products(("Box A", "Factory-A"))
        clock.now -= 1000

        handle = await ledger.submit_status_update(identity, 0, ProductStatus.DELIVERED)
        await ledger.await_confirmation(handle)

        timestamps = list((await ledger.fetch_history(0)).timestamps)
        assert timestamps == sorted(timestamps)


class TestConfirmation:
    """Tests for await_confirmation."""

    @pytest.mark.asyncio
    async def test_confirmation_is_idempotent(self, ledger, identity):
        handle = await ledger.submit_create(identity, "Widget", "Factory-A")

        first = await ledger.await_confirmation(handle)
        second = await ledger.await_confirmation(handle)

        assert first == second
        assert await ledger.count() == 1

    @pytest.mark.asyncio
    async def test_unknown_transaction_is_rejected(self, ledger):
        handle = PendingTransaction(tx_hash="0xdead", action=TransactionAction.UPDATE_STATUS)

        with pytest.raises(TransactionRejectedError):
            await ledger.await_confirmation(handle)


class TestChainIntegrity:
    """Tests for the hash-linked block list."""

    @pytest.mark.asyncio
    async def test_each_confirmation_seals_a_block(self, ledger, seed_products):
        await seed_products(("Box A", "Factory-A"), ("Box B", "Factory-B"))

        assert len(ledger.chain) == 3  # genesis + 2
        is_valid, issues = ledger.verify_chain_integrity()
        assert is_valid is True
        assert issues == []

    @pytest.mark.asyncio
    async def test_tampering_is_detected(self, ledger, seed_products):
        await seed_products(("Box A", "Factory-A"), ("Box B", "Factory-B"))

        ledger.chain[1].tx_hashes = ["0xforged"]

        is_valid, issues = ledger.verify_chain_integrity()
        assert is_valid is False
        assert "Block 1: Hash verification failed" in issues


class TestThreadedSubmissions:
    """Request threads submitting at the same time."""

    @pytest.mark.asyncio
    async def test_identical_submissions_get_distinct_hashes(self, ledger, identity):
        def submit(_):
            return asyncio.run(ledger.submit_create(identity, "Widget", "Factory-A"))

        with ThreadPoolExecutor(max_workers=8) as pool:
            handles = list(pool.map(submit, range(40)))

        assert len({h.tx_hash for h in handles}) == 40
        for handle in handles:
            await ledger.await_confirmation(handle)
        assert await ledger.count() == 40
        assert ledger.verify_chain_integrity() == (True, [])
