import pytest
from storefront.domain import UserSession
from storefront.remote import MemoryRemoteStore
from storefront.store import Store, auth_set, cart_add, initial_state
from storefront.checkout import (
    OrderDetails,
    drawer_shipping_cents,
    format_eur,
    order_totals,
    place_order,
    shipping_cents,
    subscribe_newsletter,
    tax_cents,
)

DETAILS = OrderDetails(
    email=" aino@example.fi ",
    first="Aino",
    last="Virtanen",
    address="Esplanadi 1",
    city="Helsinki",
    postal="00100",
    shipping_method="express",
)


@pytest.fixture
def store(small_catalog):
    store = Store(initial_state(small_catalog))
    store.dispatch(cart_add("r1", 2))
    store.dispatch(cart_add("n1"))
    return store


# ============ Суммы ============


def test_shipping_and_tax():
    assert shipping_cents("standard") == 599
    assert shipping_cents("express") == 1299
    assert shipping_cents("anything else") == 599
    assert drawer_shipping_cents(0) == 0
    assert drawer_shipping_cents(1) == 590
    assert tax_cents(10000) == 2400
    assert tax_cents(3) == 1
    assert tax_cents(0) == 0


def test_order_totals(store):
    totals = order_totals(store.state, "standard")

    assert totals.subtotal_cents == 29700
    assert totals.shipping_cents == 599
    assert totals.tax_cents == 7128
    assert totals.total_cents == 29700 + 599 + 7128


def test_format_eur():
    assert format_eur(123456) == "1 234,56 €"
    assert format_eur(590) == "5,90 €"


# ============ Заказ ============


@pytest.mark.asyncio
async def test_place_order_saves_rows_and_clears_cart(store):
    remote = MemoryRemoteStore()
    store.dispatch(auth_set(UserSession(id="u1", email="aino@example.fi")))

    result = await place_order(store, remote, DETAILS)

    assert result.is_right
    [order] = remote.table("orders").rows
    assert order["id"] == result.value
    assert order["user_id"] == "u1"
    assert order["email"] == "aino@example.fi"
    assert order["status"] == "PLACED"
    assert order["shipping_cents"] == 1299
    assert order["total_cents"] == 29700 + 1299 + 7128

    items = remote.table("order_items").rows
    assert {(i["product_id"], i["qty"], i["unit_price_cents"]) for i in items} == {
        ("r1", 2, 8900),
        ("n1", 1, 11900),
    }
    assert store.state.cart == {}
    assert store.state.ui.toast.message.startswith("Order saved ✅ (id: ")


@pytest.mark.asyncio
async def test_place_order_requires_sign_in(store):
    remote = MemoryRemoteStore()

    result = await place_order(store, remote, DETAILS)

    assert result.is_left
    assert remote.table("orders").rows == []
    assert store.state.cart == {"r1": 2, "n1": 1}
    assert "sign in" in store.state.ui.toast.message


@pytest.mark.asyncio
async def test_place_order_remote_failure_keeps_cart(store):
    remote = MemoryRemoteStore()
    remote.fail("order_items.insert", "insert violates row-level security")
    store.dispatch(auth_set(UserSession(id="u1", email="aino@example.fi")))

    result = await place_order(store, remote, DETAILS)

    assert result.is_left
    assert store.state.cart == {"r1": 2, "n1": 1}
    assert store.state.ui.toast.message == "insert violates row-level security"


@pytest.mark.asyncio
async def test_place_order_with_empty_cart(small_catalog):
    store = Store(initial_state(small_catalog))
    result = await place_order(store, MemoryRemoteStore(), DETAILS)

    assert result.is_left
    assert store.state.ui.toast is None


# ============ Рассылка ============


@pytest.mark.asyncio
async def test_newsletter_subscription(store):
    remote = MemoryRemoteStore()

    assert (await subscribe_newsletter(store, remote, " aino@example.fi ")).is_right
    assert (await subscribe_newsletter(store, remote, "aino@example.fi")).is_right
    assert remote.table("newsletter_subscriptions").rows[0]["email"] == "aino@example.fi"
    assert len(remote.table("newsletter_subscriptions").rows) == 1
    assert store.state.ui.toast.message == "Subscribed. Welcome to Lumière."


@pytest.mark.asyncio
async def test_newsletter_rejects_bad_email_and_reports_failure(store):
    remote = MemoryRemoteStore()

    assert (await subscribe_newsletter(store, remote, "not-an-email")).is_left
    assert store.state.ui.toast.message == "Please enter a valid email."

    remote.fail("newsletter_subscriptions.upsert", "Network request failed")
    assert (await subscribe_newsletter(store, remote, "a@b.fi")).is_left
    assert store.state.ui.toast.message == "Network request failed"
