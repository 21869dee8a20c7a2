"""Application tests for the retention sweep of converted carts."""

import asyncio
from datetime import timedelta

TENANT = "tenant-a"


async def _converted_cart(services, cart, order_id="order-1"):
    await services.coordinator.persist(cart)
    await services.coordinator.write_behind.drain()
    await services.conversion.mark_converted(cart.id, order_id, cart.tenant_id)


class TestCleanup:
    def test_converted_cart_past_retention_is_deleted(self, services, durable, make_cart, make_item, clock):
        async def scenario():
            await _converted_cart(services, make_cart(items=[make_item()]))
            deleted = await services.retention.cleanup(TENANT, as_of=clock.now + timedelta(days=91))
            return deleted, await durable.find_by_id("sess-1", TENANT)

        deleted, record = asyncio.run(scenario())

        assert deleted == 1
        assert record is None

    def test_retention_boundary_is_exclusive(self, services, make_cart, make_item, clock):
        async def scenario():
            await _converted_cart(services, make_cart(items=[make_item()]))
            return await services.retention.cleanup(TENANT, as_of=clock.now + timedelta(days=90))

        assert asyncio.run(scenario()) == 0

    def test_unconverted_carts_are_kept(self, services, durable, make_cart, make_item, clock):
        async def scenario():
            await services.coordinator.persist(make_cart(items=[make_item()]))
            await services.coordinator.write_behind.drain()
            deleted = await services.retention.cleanup(TENANT, as_of=clock.now + timedelta(days=365))
            return deleted, await durable.find_by_id("sess-1", TENANT)

        deleted, record = asyncio.run(scenario())

        assert deleted == 0
        assert record is not None

    def test_sweep_is_scoped_to_tenant(self, services, durable, make_cart, make_item, clock):
        async def scenario():
            await _converted_cart(services, make_cart(tenant_id="tenant-b", items=[make_item()]))
            deleted = await services.retention.cleanup(TENANT, as_of=clock.now + timedelta(days=365))
            return deleted, await durable.find_by_id("sess-1", "tenant-b")

        deleted, record = asyncio.run(scenario())

        assert deleted == 0
        assert record is not None


class TestLargeSweep:
    def test_every_expired_converted_cart_is_deleted(self, services, durable, make_cart, make_item, clock):
        carts = [make_cart(session_id=f"sess-{n:03d}", items=[make_item()]) for n in range(150)]

        async def scenario():
            for cart in carts:
                await services.coordinator.persist(cart)
            await services.coordinator.write_behind.drain()
            for cart in carts:
                await services.conversion.mark_converted(cart.id, f"order-{cart.id}", TENANT)
            deleted = await services.retention.cleanup(TENANT, as_of=clock.now + timedelta(days=91))
            return deleted, await durable.find_by_id("sess-149", TENANT)

        deleted, record = asyncio.run(scenario())

        assert deleted == 150
        assert record is None
