import pytest
from storefront.account import (
    ADDRESS_INCOMPLETE,
    SIGN_IN_REQUIRED,
    AddressDraft,
    address_payload,
    delete_address,
    favorite_products,
    load_addresses,
    load_profile,
    order_history,
    save_address,
    save_profile,
    squash,
)
from storefront.domain import UserSession
from storefront.remote import MemoryRemoteStore
from storefront.store import Store, auth_set, fav_toggle, initial_state

USER = UserSession(id="u1", email="aino@example.fi", name="Aino")

HOME = AddressDraft(
    full_name="  Aino   Virtanen ",
    line1=" Esplanadi  1 ",
    city="Helsinki",
    postal_code="00100",
    is_default_shipping=True,
)


@pytest.fixture
def store(small_catalog):
    store = Store(initial_state(small_catalog))
    store.dispatch(auth_set(USER))
    return store


@pytest.fixture
def remote():
    return MemoryRemoteStore()


def test_address_payload_requires_fields():
    assert squash("  a   b ") == "a b"
    assert address_payload(AddressDraft(line1="x", city="y")).value == ADDRESS_INCOMPLETE

    payload = address_payload(HOME).value
    assert payload["full_name"] == "Aino Virtanen"
    assert payload["line1"] == "Esplanadi 1"
    assert payload["line2"] is None
    assert payload["country"] == "Finland"
    assert payload["label"] == "Home"


# ============ Профиль ============


@pytest.mark.asyncio
async def test_load_profile_creates_missing_row(store, remote):
    profile = await load_profile(store, remote)

    assert profile.is_right
    assert (profile.value.id, profile.value.full_name) == ("u1", "Aino")
    assert len(remote.table("profiles").rows) == 1

    # повторная загрузка не создаёт дубликат
    await load_profile(store, remote)
    assert len(remote.table("profiles").rows) == 1


@pytest.mark.asyncio
async def test_save_profile_updates_session_name(store, remote):
    await load_profile(store, remote)

    result = await save_profile(store, remote, "  Aino   Virtanen ")

    assert result.is_right
    assert remote.table("profiles").rows[0]["full_name"] == "Aino Virtanen"
    assert store.state.user.name == "Aino Virtanen"
    assert store.state.ui.toast.message == "Profile saved ✅"


@pytest.mark.asyncio
async def test_save_profile_failure_keeps_name(store, remote):
    remote.fail("profiles.update", "permission denied")

    result = await save_profile(store, remote, "Someone Else")

    assert result.is_left
    assert store.state.user.name == "Aino"
    assert store.state.ui.toast.message == "permission denied"


@pytest.mark.asyncio
async def test_account_requires_sign_in(small_catalog, remote):
    guest = Store(initial_state(small_catalog))

    for result in (
        await load_profile(guest, remote),
        await load_addresses(guest, remote),
        await order_history(guest, remote),
        await save_address(guest, remote, HOME),
    ):
        assert result.is_left and result.value == SIGN_IN_REQUIRED
    assert remote.table("profiles").rows == []


# ============ Адреса ============


@pytest.mark.asyncio
async def test_address_crud(store, remote):
    saved = await save_address(store, remote, HOME)
    assert saved.is_right
    assert store.state.ui.toast.message == "Address saved ✅"
    (home,) = saved.value
    assert home.is_default_shipping and home.line1 == "Esplanadi 1"

    work = AddressDraft(label="Work", line1="Mannerheimintie 5", city="Helsinki", postal_code="00100")
    saved = await save_address(store, remote, work)
    assert len(saved.value) == 2

    moved = AddressDraft(line1="Esplanadi 1", city="Espoo", postal_code="02100", is_default_shipping=True)
    updated = await save_address(store, remote, moved, home.id)
    assert updated.is_right
    assert store.state.ui.toast.message == "Address updated ✅"
    assert {a.city for a in updated.value} == {"Espoo", "Helsinki"}

    deleted = await delete_address(store, remote, home.id)
    assert deleted.is_right and deleted.value == home.id
    assert store.state.ui.toast.message == "Address deleted."
    remaining = await load_addresses(store, remote)
    assert [a.label for a in remaining.value] == ["Work"]


@pytest.mark.asyncio
async def test_only_one_default_shipping_address(store, remote):
    await save_address(store, remote, HOME)
    second = AddressDraft(line1="Aleksanterinkatu 2", city="Helsinki", postal_code="00170", is_default_shipping=True)

    result = await save_address(store, remote, second)

    defaults = [a.line1 for a in result.value if a.is_default_shipping]
    assert defaults == ["Aleksanterinkatu 2"]


@pytest.mark.asyncio
async def test_invalid_or_failed_address_save(store, remote):
    result = await save_address(store, remote, AddressDraft(line1="Esplanadi 1"))
    assert result.is_left
    assert store.state.ui.toast.message == ADDRESS_INCOMPLETE
    assert remote.table("addresses").rows == []

    remote.fail("addresses.insert", "Network request failed")
    result = await save_address(store, remote, HOME)
    assert result.is_left
    assert store.state.ui.toast.message == "Network request failed"

    remote.heal()
    missing = await save_address(store, remote, HOME, address_id="nope")
    assert missing.is_left and missing.value == "Address not found"


# ============ Заказы и избранное ============


@pytest.mark.asyncio
async def test_order_history_newest_first(store, remote):
    orders = remote.table("orders")
    await orders.insert(
        [
            {"id": "aaaa1111-x", "user_id": "u1", "total_cents": 1000, "status": "PLACED", "created_at": "2025-01-01"},
            {"id": "bbbb2222-y", "user_id": "u1", "total_cents": 2500, "status": "PLACED", "created_at": "2025-03-01"},
            {"id": "cccc3333-z", "user_id": "u2", "total_cents": 99, "status": "PLACED", "created_at": "2025-02-01"},
        ]
    )

    history = await order_history(store, remote)

    assert [o.short_id for o in history.value] == ["BBBB2222", "AAAA1111"]
    assert history.value[0].total_cents == 2500


@pytest.mark.asyncio
async def test_order_history_failure_toasts(store, remote):
    remote.fail("orders.select", "permission denied")

    result = await order_history(store, remote)

    assert result.is_left
    assert store.state.ui.toast.message == "permission denied"


def test_favorite_products_skips_unknown(store):
    store.dispatch(fav_toggle("n1"))
    store.dispatch(fav_toggle("gone"))
    store.dispatch(fav_toggle("r1"))

    assert [p.id for p in favorite_products(store.state)] == ["n1", "r1"]
