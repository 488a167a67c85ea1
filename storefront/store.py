import uuid
from collections import deque
from dataclasses import replace
from functools import reduce
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .config import QTY_MAX, QTY_MIN
from .domain import Action, AppState, Product, Snapshot, Toast, UIState, UserSession
from .ftypes import Maybe
from .logger import get_logger

logger = get_logger("store")

Listener = Callable[[AppState, AppState], None]


# ============ Конструкторы действий ============


def cart_add(product_id: str, qty: int = 1) -> Action:
    return Action("cart/add", {"id": product_id, "qty": qty})


def cart_set_qty(product_id: str, qty: int) -> Action:
    return Action("cart/setQty", {"id": product_id, "qty": qty})


def cart_remove(product_id: str) -> Action:
    return Action("cart/remove", {"id": product_id})


def cart_clear() -> Action:
    return Action("cart/clear")


def fav_toggle(product_id: str) -> Action:
    return Action("fav/toggle", {"id": product_id})


def fav_replace(favorites) -> Action:
    return Action("fav/replace", {"favorites": favorites})


def auth_set(user: Optional[UserSession]) -> Action:
    return Action("auth/set", {"user": user})


def auth_sign_out() -> Action:
    return Action("auth/signOut")


def cart_open(open_: bool) -> Action:
    return Action("cart/open", {"open": open_})


def product_open(product_id: Optional[str]) -> Action:
    return Action("product/open", {"id": product_id})


def toast_show(message: str) -> Action:
    return Action("toast/show", {"message": message})


def toast_clear() -> Action:
    return Action("toast/clear")


# ============ Нормализация входа ============


def clamp(n: int, low: int, high: int) -> int:
    return max(low, min(high, n))


def _as_int(raw) -> Optional[int]:
    if isinstance(raw, bool):
        return None
    try:
        return int(raw)
    except (TypeError, ValueError, OverflowError):
        return None


def _as_id(raw) -> Optional[str]:
    return raw if isinstance(raw, str) and raw else None


def _as_user(raw) -> Maybe[UserSession]:
    """UserSession или словарь с id; всё остальное — Nothing"""
    if isinstance(raw, UserSession):
        return Maybe.some(raw)
    if isinstance(raw, dict) and _as_id(raw.get("id")):
        return Maybe.some(
            UserSession(
                id=raw["id"], email=str(raw.get("email") or ""), name=raw.get("name")
            )
        )
    return Maybe.nothing()


def as_favorites(raw) -> Dict[str, bool]:
    """{id: True} из словаря-маркера или из перечисления id"""
    if isinstance(raw, dict):
        raw = (k for k, v in raw.items() if v)
    if isinstance(raw, (str, bytes)) or raw is None:
        return {}
    try:
        return {pid: True for pid in raw if _as_id(pid)}
    except TypeError:
        return {}


# ============ Обработчики (State, payload) -> State ============


def _with_ui(state: AppState, **changes) -> AppState:
    return replace(state, ui=replace(state.ui, **changes))


def _cart_add(state: AppState, payload: dict) -> AppState:
    pid = _as_id(payload.get("id"))
    if pid is None:
        return state
    qty = _as_int(payload.get("qty", 1))
    add = clamp(qty if qty is not None else 1, QTY_MIN, QTY_MAX)
    current = state.cart.get(pid, 0)
    # насыщение: сумма снова зажимается в [1, 99]
    return replace(state, cart={**state.cart, pid: clamp(current + add, QTY_MIN, QTY_MAX)})


def _cart_set_qty(state: AppState, payload: dict) -> AppState:
    pid = _as_id(payload.get("id"))
    qty = _as_int(payload.get("qty"))
    if pid is None or qty is None:
        return state
    return replace(state, cart={**state.cart, pid: clamp(qty, QTY_MIN, QTY_MAX)})


def _cart_remove(state: AppState, payload: dict) -> AppState:
    pid = _as_id(payload.get("id"))
    if pid is None or pid not in state.cart:
        return state
    return replace(state, cart={k: q for k, q in state.cart.items() if k != pid})


def _cart_clear(state: AppState, payload: dict) -> AppState:
    return replace(state, cart={})


def _fav_toggle(state: AppState, payload: dict) -> AppState:
    pid = _as_id(payload.get("id"))
    if pid is None:
        return state
    if pid in state.favorites:
        favorites = {k: v for k, v in state.favorites.items() if k != pid}
    else:
        favorites = {**state.favorites, pid: True}
    return replace(state, favorites=favorites)


def _fav_replace(state: AppState, payload: dict) -> AppState:
    return replace(state, favorites=as_favorites(payload.get("favorites")))


def _auth_set(state: AppState, payload: dict) -> AppState:
    raw = payload.get("user")
    if raw is None:
        return replace(state, user=None)
    user = _as_user(raw)
    return replace(state, user=user.value) if user.is_some() else state


def _auth_sign_out(state: AppState, payload: dict) -> AppState:
    return replace(state, user=None)


def _cart_open(state: AppState, payload: dict) -> AppState:
    return _with_ui(state, cart_open=bool(payload.get("open")))


def _product_open(state: AppState, payload: dict) -> AppState:
    return _with_ui(state, active_product_id=_as_id(payload.get("id")))


def _toast_show(state: AppState, payload: dict) -> AppState:
    # новый id на каждый вызов, даже с тем же текстом
    toast = Toast(id=uuid.uuid4().hex, message=str(payload.get("message", "")))
    return _with_ui(state, toast=toast)


def _toast_clear(state: AppState, payload: dict) -> AppState:
    return _with_ui(state, toast=None)


REDUCERS: Dict[str, Callable[[AppState, dict], AppState]] = {
    "cart/add": _cart_add,
    "cart/setQty": _cart_set_qty,
    "cart/remove": _cart_remove,
    "cart/clear": _cart_clear,
    "fav/toggle": _fav_toggle,
    "fav/replace": _fav_replace,
    "auth/set": _auth_set,
    "auth/signOut": _auth_sign_out,
    "cart/open": _cart_open,
    "product/open": _product_open,
    "toast/show": _toast_show,
    "toast/clear": _toast_clear,
}


def reduce_state(state: AppState, action: Action) -> AppState:
    """
    Тотальная функция (State, Action) -> State.
    Неизвестное действие возвращает тот же объект состояния.
    """
    handler = REDUCERS.get(getattr(action, "type", None))
    if handler is None:
        return state
    payload = action.payload if isinstance(action.payload, dict) else {}
    return handler(state, payload)


def apply_actions(state: AppState, actions: Iterable[Action]) -> AppState:
    return reduce(reduce_state, actions, state)


# ============ Производные значения ============


def cart_count(state: AppState) -> int:
    return sum(state.cart.values())


def cart_subtotal_cents(state: AppState) -> int:
    """Позиции с неизвестным товаром дают 0"""
    prices = {p.id: p.price_cents for p in state.products}
    return reduce(
        lambda acc, item: acc + prices.get(item[0], 0) * item[1],
        state.cart.items(),
        0,
    )


def cart_lines(state: AppState) -> Tuple[Tuple[Product, int], ...]:
    """(товар, количество) для позиций, чей товар есть в каталоге"""
    by_id = {p.id: p for p in state.products}
    return tuple((by_id[pid], qty) for pid, qty in state.cart.items() if pid in by_id)


def fav_count(state: AppState) -> int:
    return len(state.favorites)


def is_authed(state: AppState) -> bool:
    return state.user is not None


# ============ Начальное состояние ============


def initial_state(
    products: Tuple[Product, ...], snapshot: Maybe[Snapshot] = Maybe.nothing()
) -> AppState:
    """Каталог + сохранённые корзина/избранное/пользователь + пустой UI"""
    persisted = snapshot.get_or_else(None)
    if persisted is None:
        return AppState(products=tuple(products))
    return AppState(
        products=tuple(products),
        cart=dict(persisted.cart),
        favorites=dict(persisted.favorites),
        user=persisted.user if persisted.user and persisted.user.id else None,
        ui=UIState(),
    )


# ============ Store ============


class Store:
    """
    Владелец AppState. Единственный путь изменения — dispatch.
    Действия, отправленные из подписчиков, ставятся в очередь и
    обрабатываются после текущего.
    """

    def __init__(self, state: AppState):
        self._state = state
        self._listeners: List[Listener] = []
        self._queue: deque = deque()
        self._dispatching = False

    @property
    def state(self) -> AppState:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def dispatch(self, action: Action) -> AppState:
        self._queue.append(action)
        if self._dispatching:
            return self._state

        self._dispatching = True
        try:
            while self._queue:
                self._apply(self._queue.popleft())
        finally:
            self._dispatching = False
        return self._state

    def _apply(self, action: Action) -> None:
        prev = self._state
        self._state = reduce_state(prev, action)
        logger.debug(f"dispatch {getattr(action, 'type', action)!r}")
        if self._state is prev:
            return
        for listener in tuple(self._listeners):
            try:
                listener(prev, self._state)
            except Exception:
                logger.exception(f"Подписчик упал на действии {action.type!r}")

    # производные значения текущего состояния
    @property
    def cart_count(self) -> int:
        return cart_count(self._state)

    @property
    def cart_subtotal_cents(self) -> int:
        return cart_subtotal_cents(self._state)

    @property
    def fav_count(self) -> int:
        return fav_count(self._state)

    @property
    def is_authed(self) -> bool:
        return is_authed(self._state)
