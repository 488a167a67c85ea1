import asyncio
from typing import Any, Awaitable, Callable, Optional, Tuple

from .config import TOAST_TTL_SECONDS
from .domain import Action, UserSession
from .ftypes import Either
from .logger import get_logger
from .remote import FavoritesGateway, RemoteError, RemoteStore
from .store import Store, auth_set, fav_replace, fav_toggle, toast_clear, toast_show

logger = get_logger("sync")

FAVORITES_SAVED = "Saved to favorites."
FAVORITES_REMOVED = "Removed from favorites."
FAVORITES_FAILED = "Could not update favorites. Try again."


# ============ Оптимистичное обновление ============


async def optimistic(
    store: Store,
    apply: Action,
    attempt: Callable[[], Awaitable[Any]],
    invert: Action,
    fail_message: str,
    ok_message: Optional[str] = None,
) -> Either[str, Any]:
    """
    Двухфазная операция:
      1. apply применяется к состоянию сразу;
      2. выполняется удалённый вызов;
      3. при RemoteError отправляется invert и показывается уведомление.
    """
    store.dispatch(apply)
    result = await Either.attempt(attempt, catch=(RemoteError,), default_message=fail_message)

    if result.is_left:
        logger.warning(f"{apply.type} откатан: {result.value}")
        store.dispatch(invert)
        store.dispatch(toast_show(fail_message))
    elif ok_message:
        store.dispatch(toast_show(ok_message))
    return result


async def toggle_favorite(
    store: Store, remote: RemoteStore, product_id: str
) -> Either[str, Any]:
    """Гость меняет только локальное избранное; вошедший — ещё и удалённое"""
    was_favorite = product_id in store.state.favorites
    user = store.state.user

    if user is None:
        store.dispatch(fav_toggle(product_id))
        return Either.right(None)

    gateway = FavoritesGateway(remote)
    if was_favorite:
        attempt = lambda: gateway.delete(user.id, product_id)
        ok_message = FAVORITES_REMOVED
    else:
        attempt = lambda: gateway.upsert(user.id, product_id)
        ok_message = FAVORITES_SAVED

    # toggle обратен сам себе
    return await optimistic(
        store,
        fav_toggle(product_id),
        attempt,
        fav_toggle(product_id),
        FAVORITES_FAILED,
        ok_message,
    )


# ============ Согласование избранного ============


async def reconcile_favorites(
    store: Store, remote: RemoteStore, user_id: str
) -> Either[str, Tuple[str, ...]]:
    """
    Сначала все локальные id отправляются на сервер (идемпотентный upsert),
    затем серверный список целиком заменяет локальный.
    """
    gateway = FavoritesGateway(remote)
    local_ids = tuple(store.state.favorites)

    async def push_then_pull() -> Tuple[str, ...]:
        await gateway.upsert_many(user_id, local_ids)
        return await gateway.list_for_user(user_id)

    result = await Either.attempt(push_then_pull, catch=(RemoteError,))
    if result.is_left:
        logger.warning(f"Избранное пользователя {user_id} не согласовано: {result.value}")
        return result

    store.dispatch(fav_replace(result.value))
    logger.info(
        f"Избранное пользователя {user_id}: отправлено {len(local_ids)}, "
        f"получено {len(result.value)}"
    )
    return result


async def handle_session_change(
    store: Store, remote: RemoteStore, session: Optional[UserSession]
) -> Either[str, Tuple[str, ...]]:
    """Вход — согласование избранного, выход — гость без избранного"""
    store.dispatch(auth_set(session))
    if session is not None:
        return await reconcile_favorites(store, remote, session.id)

    store.dispatch(fav_replace({}))
    return Either.right(())


async def connect_session(store: Store, remote: RemoteStore) -> Callable[[], None]:
    """
    Стартовая загрузка сессии и подписка на её изменения.
    Возвращает функцию отписки.
    """
    current = await Either.attempt(remote.auth.get_session, catch=(RemoteError,))
    if current.is_left:
        logger.warning(f"Сессия не получена: {current.value}")
    else:
        session = current.value
        store.dispatch(auth_set(session))
        if session is not None:
            await reconcile_favorites(store, remote, session.id)

    async def on_change(session: Optional[UserSession]) -> None:
        await handle_session_change(store, remote, session)

    return remote.auth.on_session_change(on_change)


# ============ Уведомления ============


async def auto_dismiss_toast(store: Store, ttl: float = TOAST_TTL_SECONDS) -> bool:
    """
    Убирает текущее уведомление через ttl секунд.
    Если за это время показано новое (другой id), ничего не делает.
    """
    toast = store.state.ui.toast
    if toast is None:
        return False

    await asyncio.sleep(ttl)

    current = store.state.ui.toast
    if current is None or current.id != toast.id:
        return False
    store.dispatch(toast_clear())
    return True
