"""Application tests for write-behind persistence and recovery."""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock

from carts.config import CartSettings
from carts.sync.coordinator import SyncCoordinator

TENANT = "tenant-a"


class TestPersist:
    def test_persist_writes_ephemeral_and_replicates_durable(self, services, ephemeral, durable, make_cart, make_item):
        cart = make_cart(items=[make_item("item-1", quantity=2)])

        async def scenario():
            await services.coordinator.persist(cart)
            await services.coordinator.write_behind.drain()
            return await ephemeral.get("sess-1", TENANT), await durable.find_by_id("sess-1", TENANT)

        live, record = asyncio.run(scenario())

        assert live == cart
        assert record is not None
        assert record.snapshot() == cart
        assert record.item_count == 2
        assert services.coordinator.write_behind.stats.synced == 1

    def test_persist_updates_existing_record(self, services, durable, make_cart, make_item, clock):
        cart = make_cart(items=[make_item("item-1")])

        async def scenario():
            await services.coordinator.persist(cart)
            cart.add_item(make_item("item-2"), now=clock.advance(minutes=5))
            await services.coordinator.persist(cart)
            await services.coordinator.write_behind.drain()
            return await durable.find_by_id("sess-1", TENANT)

        record = asyncio.run(scenario())

        assert record.snapshot().item_ids == ["item-1", "item-2"]
        assert record.last_synced_at == clock.now

    def test_durable_failure_never_reaches_the_caller(self, services, ephemeral, durable, make_cart, make_item, monkeypatch):
        monkeypatch.setattr(durable, "save", AsyncMock(side_effect=RuntimeError("database unavailable")))
        cart = make_cart(items=[make_item()])

        async def scenario():
            returned = await services.coordinator.persist(cart)
            await services.coordinator.write_behind.drain()
            return returned, await ephemeral.get("sess-1", TENANT)

        returned, live = asyncio.run(scenario())

        assert returned is cart
        assert live == cart
        assert services.coordinator.write_behind.stats.failed == 1

    def test_ephemeral_failure_still_replicates(self, services, ephemeral, durable, make_cart, make_item):
        ephemeral.configure(should_fail=True)
        cart = make_cart(items=[make_item()])

        async def scenario():
            await services.coordinator.persist(cart)
            await services.coordinator.write_behind.drain()
            return await durable.find_by_id("sess-1", TENANT)

        assert asyncio.run(scenario()) is not None

    def test_full_queue_drops_snapshot(self, ephemeral, durable, make_cart, make_item, clock):
        coordinator = SyncCoordinator(ephemeral, durable, settings=CartSettings(write_behind_queue_size=1), clock=clock)

        async def scenario():
            first = coordinator.write_behind.submit(make_cart(session_id="s1", items=[make_item()]))
            second = coordinator.write_behind.submit(make_cart(session_id="s2", items=[make_item()]))
            await coordinator.write_behind.stop()
            return first, second

        first, second = asyncio.run(scenario())

        assert first is True
        assert second is False
        assert coordinator.write_behind.stats.dropped == 1
        assert coordinator.write_behind.stats.synced == 1


class TestRecover:
    def test_recover_reseeds_ephemeral_with_extended_expiry(self, services, ephemeral, make_cart, make_item, clock):
        cart = make_cart(items=[make_item("item-1")])

        async def scenario():
            await services.coordinator.persist(cart)
            await services.coordinator.write_behind.drain()
            ephemeral.expire("sess-1", TENANT)
            clock.advance(days=3)
            recovered = await services.coordinator.recover("sess-1", TENANT)
            return recovered, await ephemeral.get("sess-1", TENANT)

        recovered, live = asyncio.run(scenario())

        assert recovered.item_ids == ["item-1"]
        assert recovered.expires_at == clock.now + timedelta(days=7)
        assert recovered.updated_at == clock.now
        assert live == recovered

    def test_get_prefers_the_ephemeral_copy(self, services, durable, make_cart, make_item, monkeypatch):
        cart = make_cart(items=[make_item()])

        async def scenario():
            await services.coordinator.persist(cart)
            await services.coordinator.write_behind.drain()
            monkeypatch.setattr(durable, "find_by_session_and_tenant", AsyncMock(side_effect=AssertionError))
            return await services.coordinator.get("sess-1", TENANT)

        assert asyncio.run(scenario()) == cart

    def test_get_falls_back_to_recovery_on_miss(self, services, ephemeral, make_cart, make_item):
        cart = make_cart(items=[make_item()])

        async def scenario():
            await services.coordinator.persist(cart)
            await services.coordinator.write_behind.drain()
            ephemeral.clear()
            return await services.coordinator.get("sess-1", TENANT)

        assert asyncio.run(scenario()).item_ids == ["item-1"]

    def test_unknown_session_recovers_nothing(self, services):
        assert asyncio.run(services.coordinator.recover("nobody", TENANT)) is None

    def test_other_tenant_cannot_recover(self, services, make_cart, make_item):
        cart = make_cart(items=[make_item()])

        async def scenario():
            await services.coordinator.persist(cart)
            await services.coordinator.write_behind.drain()
            return await services.coordinator.recover("sess-1", "tenant-b")

        assert asyncio.run(scenario()) is None

    def test_ephemeral_outage_degrades_to_durable(self, services, ephemeral, make_cart, make_item):
        cart = make_cart(items=[make_item()])

        async def scenario():
            await services.coordinator.persist(cart)
            await services.coordinator.write_behind.drain()
            ephemeral.configure(should_fail=True)
            return await services.coordinator.get("sess-1", TENANT)

        assert asyncio.run(scenario()).item_ids == ["item-1"]

    def test_durable_outage_looks_like_missing_cart(self, services, durable, monkeypatch):
        monkeypatch.setattr(durable, "find_by_session_and_tenant", AsyncMock(side_effect=RuntimeError("timeout")))
        assert asyncio.run(services.coordinator.recover("sess-1", TENANT)) is None
