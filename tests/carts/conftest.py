from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
from protean.integrations.pytest import DomainFixture

from carts.cart.cart import Cart, CartItem
from carts.config import CartSettings
from carts.notifier.fake_adapter import FakeReminderNotifier
from carts.services import CartServices
from carts.stores.memory import MemoryEphemeralCartStore
from carts.stores.protean_adapter import ProteanDurableCartStore, ProteanSavedCartStore

TENANT = "tenant-a"
START = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


@pytest.fixture(scope="session")
def carts_bed():
    from carts.domain import carts

    bed = DomainFixture(carts)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(carts_bed):
    with carts_bed.domain_context():
        yield


class FrozenClock:
    """Clock that only moves when a test advances it."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now


def _make_item(item_id="item-1", product_id="prod-1", quantity=1, price="10.00", **extra) -> CartItem:
    price = Decimal(price)
    return CartItem(
        id=item_id,
        product_id=product_id,
        sku=extra.pop("sku", f"SKU-{product_id}"),
        name=extra.pop("name", f"Product {product_id}"),
        quantity=quantity,
        price=price,
        subtotal=price * quantity,
        **extra,
    )


def _make_cart(session_id="sess-1", tenant_id=TENANT, items=(), now=START, ttl=timedelta(days=7)) -> Cart:
    cart = Cart.create(tenant_id, session_id, ttl, now=now)
    cart.items = list(items)
    return cart



@pytest.fixture()
def clock():
    return FrozenClock(START)


@pytest.fixture()
def settings():
    return CartSettings()


@pytest.fixture()
def ephemeral(clock):
    return MemoryEphemeralCartStore(clock=clock)


@pytest.fixture()
def durable():
    from carts.domain import carts

    return ProteanDurableCartStore(carts)


@pytest.fixture()
def saved_store():
    from carts.domain import carts

    return ProteanSavedCartStore(carts)


@pytest.fixture()
def notifier():
    return FakeReminderNotifier()


@pytest.fixture()
def services(ephemeral, durable, saved_store, notifier, settings, clock):
    return CartServices.build(
        ephemeral=ephemeral,
        durable=durable,
        saved_store=saved_store,
        notifier=notifier,
        settings=settings,
        clock=clock,
    )


@pytest.fixture()
def make_item():
    return _make_item


@pytest.fixture()
def make_cart():
    return _make_cart
