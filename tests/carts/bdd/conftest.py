"""Shared BDD fixtures and step definitions for the Carts domain."""

import asyncio

import pytest
from pytest_bdd import given, parsers, then

TENANT = "tenant-a"


async def persist(services, cart):
    await services.coordinator.persist(cart)
    await services.coordinator.write_behind.drain()


# ---------------------------------------------------------------------------
# Scalar fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def tenant_id():
    return TENANT


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('a guest adds item "{item_id}" with quantity {quantity:d} under session "{session_id}"'))
def guest_adds_item(services, make_cart, make_item, item_id, quantity, session_id, clock):
    cart = make_cart(session_id=session_id, now=clock.now, items=[make_item(item_id, quantity=quantity)])
    asyncio.run(persist(services, cart))


@given(parsers.cfparse('a guest saves an empty cart under session "{session_id}"'))
def guest_saves_empty_cart(services, make_cart, session_id, clock):
    asyncio.run(persist(services, make_cart(session_id=session_id, now=clock.now)))


@given(parsers.cfparse('customer "{user_id}" has a cart with item "{item_id}" on another device'))
def customer_has_cart(services, make_cart, make_item, user_id, item_id, clock):
    device_session = f"device-of-{user_id}"
    cart = make_cart(session_id=device_session, now=clock.now, items=[make_item(item_id)])

    async def scenario():
        await persist(services, cart)
        await services.coordinator.associate_with_user(device_session, user_id, TENANT)

    asyncio.run(scenario())


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse("{count:d} carts are abandoned"))
def carts_are_abandoned(services, count):
    assert len(asyncio.run(services.abandonment.find_abandoned(TENANT))) == count


@then(parsers.cfparse('recovering session "{session_id}" returns nothing'))
def recover_returns_nothing(services, session_id):
    assert asyncio.run(services.coordinator.recover(session_id, TENANT)) is None


@then(parsers.cfparse('recovering session "{session_id}" returns items "{item_ids}"'))
def recover_returns_items(services, session_id, item_ids):
    cart = asyncio.run(services.coordinator.recover(session_id, TENANT))
    assert cart is not None
    assert sorted(cart.item_ids) == sorted(item_ids.split(","))
