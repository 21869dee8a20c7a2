"""Application tests for associating guest carts with customers on login."""

import asyncio
import time

from carts.persisted.persisted_cart import PersistedCart

TENANT = "tenant-a"


async def _persist(services, cart):
    await services.coordinator.persist(cart)
    await services.coordinator.write_behind.drain()


async def _customer_cart(services, make_cart, make_item, session_id="sess-u", user_id="user-1", items=None):
    """Give ``user_id`` an existing cart on another device."""
    cart = make_cart(session_id=session_id, items=items or [make_item("Y", product_id="prod-y")])
    await _persist(services, cart)
    await services.coordinator.associate_with_user(session_id, user_id, TENANT)
    return cart


class TestAssociateWithoutCustomerCart:
    def test_session_record_is_tagged_with_user(self, services, durable, make_cart, make_item):
        cart = make_cart(session_id="sess-g", items=[make_item("X")])

        async def scenario():
            await _persist(services, cart)
            result = await services.coordinator.associate_with_user("sess-g", "user-1", TENANT)
            return result, await durable.find_by_user_and_tenant("user-1", TENANT)

        result, record = asyncio.run(scenario())

        assert result.id == "sess-g"
        assert record.id == "sess-g"
        assert record.user_id == "user-1"

    def test_session_cart_not_yet_replicated_is_created(self, services, ephemeral, durable, make_cart, make_item, clock):
        cart = make_cart(session_id="sess-g", items=[make_item("X")])

        async def scenario():
            await ephemeral.set(cart, cart.ttl(clock()))
            await services.coordinator.associate_with_user("sess-g", "user-1", TENANT)
            return await durable.find_by_id("sess-g", TENANT)

        record = asyncio.run(scenario())

        assert record.user_id == "user-1"
        assert record.snapshot().item_ids == ["X"]

    def test_nothing_to_associate(self, services):
        assert asyncio.run(services.coordinator.associate_with_user("sess-g", "user-1", TENANT)) is None

    def test_associate_is_idempotent(self, services, durable, make_cart, make_item):
        cart = make_cart(session_id="sess-g", items=[make_item("X")])

        async def scenario():
            await _persist(services, cart)
            await services.coordinator.associate_with_user("sess-g", "user-1", TENANT)
            await services.coordinator.associate_with_user("sess-g", "user-1", TENANT)
            return await durable.find_unconverted(TENANT)

        records = asyncio.run(scenario())

        assert [r.id for r in records] == ["sess-g"]


class TestMergeIntoCustomerCart:
    def test_guest_items_merged_and_recoverable_by_session(self, services, ephemeral, durable, make_cart, make_item):
        guest = make_cart(session_id="S", items=[make_item("X", product_id="prod-x", quantity=2)])

        async def scenario():
            await _customer_cart(services, make_cart, make_item, session_id="sess-u", user_id="U")
            await _persist(services, guest)

            merged = await services.coordinator.associate_with_user("S", "U", TENANT)

            ephemeral.clear()
            recovered = await services.coordinator.recover("S", TENANT)
            return merged, recovered, await durable.find_by_user_and_tenant("U", TENANT)

        merged, recovered, record = asyncio.run(scenario())

        assert sorted(merged.item_ids) == ["X", "Y"]
        assert merged.find_item("X").quantity == 2
        assert record.user_id == "U"
        assert record.snapshot().item_ids == merged.item_ids
        assert recovered.id == merged.id
        assert recovered.item_ids == merged.item_ids

    def test_customer_copy_wins_on_shared_item(self, services, make_cart, make_item):
        guest = make_cart(session_id="S", items=[make_item("A"), make_item("B", quantity=1)])

        async def scenario():
            await _customer_cart(services, make_cart, make_item, items=[make_item("B", quantity=5), make_item("C")])
            await _persist(services, guest)
            return await services.coordinator.associate_with_user("S", "user-1", TENANT)

        merged = asyncio.run(scenario())

        assert merged.item_ids == ["B", "C", "A"]
        assert merged.find_item("B").quantity == 5

    def test_guest_record_is_superseded(self, services, durable, make_cart, make_item):
        guest = make_cart(session_id="S", items=[make_item("X")])

        async def scenario():
            await _customer_cart(services, make_cart, make_item)
            await _persist(services, guest)
            await services.coordinator.associate_with_user("S", "user-1", TENANT)
            return await durable.find_by_id("S", TENANT), await durable.find_unconverted(TENANT)

        guest_record, records = asyncio.run(scenario())

        assert guest_record is None
        assert len(records) == 1

    def test_repeating_the_merge_changes_nothing(self, services, make_cart, make_item):
        guest = make_cart(session_id="S", items=[make_item("X")])

        async def scenario():
            await _customer_cart(services, make_cart, make_item)
            await _persist(services, guest)
            first = await services.coordinator.associate_with_user("S", "user-1", TENANT)
            second = await services.coordinator.associate_with_user("S", "user-1", TENANT)
            return first, second

        first, second = asyncio.run(scenario())

        assert first.item_ids == second.item_ids
        assert first.id == second.id

    def test_session_without_cart_adopts_customer_cart(self, services, ephemeral, make_cart, make_item):
        async def scenario():
            await _customer_cart(services, make_cart, make_item)
            adopted = await services.coordinator.associate_with_user("fresh-session", "user-1", TENANT)
            return adopted, await ephemeral.get("fresh-session", TENANT)

        adopted, live = asyncio.run(scenario())

        assert adopted.item_ids == ["Y"]
        assert adopted.session_id == "fresh-session"
        assert live == adopted

    def test_customer_record_moves_to_new_session(self, services, durable, make_cart, make_item):
        guest = make_cart(session_id="S", items=[make_item("X")])

        async def scenario():
            await _customer_cart(services, make_cart, make_item, user_id="user-1")
            await _persist(services, guest)
            await services.coordinator.associate_with_user("S", "user-1", TENANT)
            return await durable.find_by_user_and_tenant("user-1", TENANT)

        record = asyncio.run(scenario())

        assert isinstance(record, PersistedCart)
        assert record.session_id == "S"


def _slow_for_tenant(durable, monkeypatch, tenant_id, delay):
    """Delay durable saves of ``tenant_id`` records; other tenants save normally."""
    save = durable.save

    async def slow_save(record):
        if record.tenant_id == tenant_id:
            await asyncio.sleep(delay)
        return await save(record)

    monkeypatch.setattr(durable, "save", slow_save)


async def _queue_backlog(services, make_cart, make_item, count=5):
    for n in range(count):
        await services.coordinator.persist(make_cart(session_id=f"other-{n}", tenant_id="tenant-b", items=[make_item()]))


class TestAssociationWithWriteBehindBacklog:
    def test_login_does_not_wait_for_unrelated_backlog(self, services, durable, make_cart, make_item, monkeypatch):
        _slow_for_tenant(durable, monkeypatch, "tenant-b", delay=0.2)
        guest = make_cart(session_id="S", items=[make_item("X")])

        async def scenario():
            await _persist(services, guest)
            await _queue_backlog(services, make_cart, make_item)

            started = time.monotonic()
            cart = await services.coordinator.associate_with_user("S", "U", TENANT)
            elapsed = time.monotonic() - started

            await services.coordinator.write_behind.stop()
            return cart, elapsed, await durable.find_by_user_and_tenant("U", TENANT)

        cart, elapsed, record = asyncio.run(scenario())

        assert cart.id == "S"
        assert record.id == "S"
        assert elapsed < 0.5

    def test_queued_guest_snapshot_does_not_resurrect_merged_cart(
        self, services, durable, make_cart, make_item, monkeypatch
    ):
        guest = make_cart(session_id="S", items=[make_item("X")])

        async def scenario():
            await _customer_cart(services, make_cart, make_item, user_id="U")
            _slow_for_tenant(durable, monkeypatch, "tenant-b", delay=0.05)
            await _queue_backlog(services, make_cart, make_item, count=3)
            # Guest snapshot waits behind the backlog
            await services.coordinator.persist(guest)

            merged = await services.coordinator.associate_with_user("S", "U", TENANT)
            await services.coordinator.write_behind.drain()
            return merged, await durable.find_by_id("S", TENANT), await durable.find_unconverted(TENANT)

        merged, guest_record, records = asyncio.run(scenario())

        assert sorted(merged.item_ids) == ["X", "Y"]
        assert guest_record is None
        assert [r.id for r in records] == [merged.id]
        assert services.coordinator.write_behind.stats.superseded == 1

    def test_queued_snapshot_used_when_live_copy_is_gone(
        self, services, ephemeral, durable, make_cart, make_item, monkeypatch
    ):
        _slow_for_tenant(durable, monkeypatch, "tenant-b", delay=0.05)
        guest = make_cart(session_id="S", items=[make_item("X"), make_item("Z")])

        async def scenario():
            await _queue_backlog(services, make_cart, make_item, count=3)
            await services.coordinator.persist(guest)
            ephemeral.clear()

            cart = await services.coordinator.associate_with_user("S", "U", TENANT)
            await services.coordinator.write_behind.drain()
            return cart, await durable.find_by_id("S", TENANT)

        cart, record = asyncio.run(scenario())

        assert cart.item_ids == ["X", "Z"]
        assert record.user_id == "U"
        assert record.snapshot().item_ids == ["X", "Z"]
