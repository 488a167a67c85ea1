import asyncio
import pytest
from storefront.domain import UserSession
from storefront.remote import FavoritesGateway, MemoryRemoteStore
from storefront.store import (
    Store,
    auth_set,
    fav_toggle,
    initial_state,
    toast_show,
)
from storefront.sync import (
    FAVORITES_FAILED,
    FAVORITES_REMOVED,
    FAVORITES_SAVED,
    auto_dismiss_toast,
    connect_session,
    handle_session_change,
    optimistic,
    reconcile_favorites,
    toggle_favorite,
)

EMAIL = "aino@example.fi"
PASSWORD = "secret1"
USER = UserSession(id="u1", email=EMAIL, name="Aino")


@pytest.fixture
def store(small_catalog):
    return Store(initial_state(small_catalog))


@pytest.fixture
def remote():
    remote = MemoryRemoteStore()
    remote.auth.accounts[EMAIL] = {"id": USER.id, "password": PASSWORD, "name": USER.name}
    return remote


# ============ Оптимистичное избранное ============


@pytest.mark.asyncio
async def test_guest_toggle_is_local_only(store, remote):
    remote.fail("favorites.upsert")

    result = await toggle_favorite(store, remote, "r1")

    assert result.is_right
    assert store.state.favorites == {"r1": True}
    assert remote.table("favorites").rows == []


@pytest.mark.asyncio
async def test_authed_toggle_saves_remotely(store, remote):
    store.dispatch(auth_set(USER))

    await toggle_favorite(store, remote, "r1")
    assert store.state.favorites == {"r1": True}
    assert await FavoritesGateway(remote).list_for_user("u1") == ("r1",)
    assert store.state.ui.toast.message == FAVORITES_SAVED

    await toggle_favorite(store, remote, "r1")
    assert store.state.favorites == {}
    assert await FavoritesGateway(remote).list_for_user("u1") == ()
    assert store.state.ui.toast.message == FAVORITES_REMOVED


@pytest.mark.asyncio
async def test_authed_toggle_rolls_back_on_remote_failure(store, remote):
    store.dispatch(auth_set(USER))
    remote.fail("favorites.upsert")
    before = store.state.favorites

    result = await toggle_favorite(store, remote, "r1")

    assert result.is_left
    assert store.state.favorites == before
    assert store.state.ui.toast.message == FAVORITES_FAILED


@pytest.mark.asyncio
async def test_authed_unfavorite_rolls_back_on_remote_failure(store, remote):
    store.dispatch(auth_set(USER))
    store.dispatch(fav_toggle("n1"))
    remote.fail("favorites.delete")

    await toggle_favorite(store, remote, "n1")

    assert store.state.favorites == {"n1": True}
    assert store.state.ui.toast.message == FAVORITES_FAILED


@pytest.mark.asyncio
async def test_optimistic_state_visible_before_remote_completes(store):
    observed = []

    async def attempt():
        observed.append(dict(store.state.favorites))

    await optimistic(store, fav_toggle("e1"), attempt, fav_toggle("e1"), "failed")
    assert observed == [{"e1": True}]


# ============ Согласование ============


@pytest.mark.asyncio
async def test_sign_in_merges_local_and_remote_favorites(store, remote):
    """2 локальных + 1 удалённое -> 3 после входа"""
    await FavoritesGateway(remote).upsert("u1", "g1")
    store.dispatch(fav_toggle("r1"))
    store.dispatch(fav_toggle("n1"))

    await connect_session(store, remote)
    await remote.auth.sign_in(EMAIL, PASSWORD)

    assert store.state.user == USER
    assert set(store.state.favorites) == {"r1", "n1", "g1"}
    assert set(await FavoritesGateway(remote).list_for_user("u1")) == {"r1", "n1", "g1"}


@pytest.mark.asyncio
async def test_remote_list_is_authoritative_after_push(store, remote):
    store.dispatch(fav_toggle("r1"))

    result = await reconcile_favorites(store, remote, "u1")

    assert result.get_or_else(None) == ("r1",)
    assert store.state.favorites == {"r1": True}


@pytest.mark.asyncio
async def test_reconcile_failure_keeps_local_favorites(store, remote):
    store.dispatch(fav_toggle("r1"))
    remote.fail("favorites.select")

    result = await reconcile_favorites(store, remote, "u1")

    assert result.is_left
    assert store.state.favorites == {"r1": True}


@pytest.mark.asyncio
async def test_sign_out_clears_favorites(store, remote):
    await connect_session(store, remote)
    await remote.auth.sign_in(EMAIL, PASSWORD)
    store.dispatch(fav_toggle("r2"))

    await remote.auth.sign_out()

    assert store.state.user is None
    assert store.state.favorites == {}


@pytest.mark.asyncio
async def test_connect_session_restores_existing_session(store, remote):
    await FavoritesGateway(remote).upsert("u1", "h1")
    remote.auth.session = USER

    unsubscribe = await connect_session(store, remote)

    assert store.state.user == USER
    assert store.state.favorites == {"h1": True}
    unsubscribe()


@pytest.mark.asyncio
async def test_connect_session_without_session_keeps_guest_favorites(store, remote):
    store.dispatch(fav_toggle("r1"))

    await connect_session(store, remote)

    assert store.state.user is None
    assert store.state.favorites == {"r1": True}


@pytest.mark.asyncio
async def test_handle_session_change_direct(store, remote):
    await handle_session_change(store, remote, USER)
    assert store.state.user == USER

    await handle_session_change(store, remote, None)
    assert store.state.user is None


# ============ Уведомления ============


@pytest.mark.asyncio
async def test_auto_dismiss_clears_toast(store):
    store.dispatch(toast_show("Signed in."))

    assert await auto_dismiss_toast(store, ttl=0.01) is True
    assert store.state.ui.toast is None


@pytest.mark.asyncio
async def test_auto_dismiss_skips_replaced_toast(store):
    store.dispatch(toast_show("first"))
    task = asyncio.create_task(auto_dismiss_toast(store, ttl=0.05))
    await asyncio.sleep(0)

    store.dispatch(toast_show("second"))

    assert await task is False
    assert store.state.ui.toast.message == "second"


@pytest.mark.asyncio
async def test_auto_dismiss_without_toast(store):
    assert await auto_dismiss_toast(store, ttl=0) is False
