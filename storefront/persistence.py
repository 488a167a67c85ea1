"""
Сохранение корзины, избранного и пользователя между запусками.

Формат записи (один ключ STORAGE_KEY):

    {"cart": {"<id>": 1..99}, "favorites": {"<id>": true}, "user": {...} | null}

load никогда не бросает: повреждённые данные = "ничего не сохранено".
save никогда не бросает: ошибка записи только логируется.
"""

import json
import os
from typing import Callable, Dict, Optional

from .config import QTY_MAX, QTY_MIN, STORAGE_KEY
from .domain import AppState, Snapshot, UserSession
from .ftypes import Maybe
from .logger import get_logger
from .store import Store

logger = get_logger("persistence")


# ============ Хранилища ключ-значение ============


class MemoryStorage:
    """Хранилище в памяти процесса (тесты, демо)"""

    def __init__(self, items: Optional[Dict[str, str]] = None):
        self.items: Dict[str, str] = dict(items or {})

    def get_item(self, key: str) -> Optional[str]:
        return self.items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self.items[key] = value


class JsonFileStorage:
    """Все ключи в одном JSON-файле; запись через временный файл"""

    def __init__(self, path: str):
        self.path = path

    def _read_all(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return data if isinstance(data, dict) else {}

    def get_item(self, key: str) -> Optional[str]:
        value = self._read_all().get(key)
        return value if isinstance(value, str) else None

    def set_item(self, key: str, value: str) -> None:
        try:
            data = self._read_all()
        except ValueError:
            data = {}
        data[key] = value

        folder = os.path.dirname(self.path)
        if folder:
            os.makedirs(folder, exist_ok=True)
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False)
        os.replace(tmp_path, self.path)


# ============ Снимок <-> dict ============


def to_snapshot(state: AppState) -> Snapshot:
    return Snapshot(cart=state.cart, favorites=state.favorites, user=state.user)


def snapshot_to_dict(snapshot: Snapshot) -> dict:
    user = None
    if snapshot.user is not None:
        user = {"id": snapshot.user.id, "email": snapshot.user.email}
        if snapshot.user.name is not None:
            user["name"] = snapshot.user.name
    return {
        "cart": dict(snapshot.cart),
        "favorites": {pid: True for pid in snapshot.favorites},
        "user": user,
    }


def _valid_qty(qty) -> bool:
    return isinstance(qty, int) and not isinstance(qty, bool) and QTY_MIN <= qty <= QTY_MAX


def snapshot_from_dict(data) -> Maybe[Snapshot]:
    """Проверка формы: cart и favorites обязаны быть словарями"""
    if not isinstance(data, dict):
        return Maybe.nothing()
    cart, favorites = data.get("cart"), data.get("favorites")
    if not isinstance(cart, dict) or not isinstance(favorites, dict):
        return Maybe.nothing()

    raw_user = data.get("user")
    user = None
    if isinstance(raw_user, dict) and isinstance(raw_user.get("id"), str) and raw_user["id"]:
        name = raw_user.get("name")
        user = UserSession(
            id=raw_user["id"],
            email=str(raw_user.get("email") or ""),
            name=name if isinstance(name, str) else None,
        )

    return Maybe.some(
        Snapshot(
            cart={pid: qty for pid, qty in cart.items() if _valid_qty(qty)},
            favorites={pid: True for pid, marked in favorites.items() if marked is True},
            user=user,
        )
    )


# ============ load / save ============


def load(storage, key: str = STORAGE_KEY) -> Maybe[Snapshot]:
    try:
        return (
            Maybe.of(storage.get_item(key) or None)
            .map(json.loads)
            .bind(snapshot_from_dict)
        )
    except Exception as e:
        logger.warning(f"Снимок не прочитан, начинаем с пустого состояния: {e}")
        return Maybe.nothing()


def save(storage, snapshot: Snapshot, key: str = STORAGE_KEY) -> None:
    try:
        storage.set_item(key, json.dumps(snapshot_to_dict(snapshot), ensure_ascii=False))
    except Exception as e:
        logger.warning(f"Снимок не сохранён: {e}")


def attach_persistence(
    store: Store, storage, key: str = STORAGE_KEY
) -> Callable[[], None]:
    """
    Пишет снимок после каждого изменения cart/favorites/user.
    Изменения только UI-состояния запись не вызывают.
    """

    def on_change(prev: AppState, next_: AppState) -> None:
        if (
            prev.cart is next_.cart
            and prev.favorites is next_.favorites
            and prev.user is next_.user
        ):
            return
        save(storage, to_snapshot(next_), key)

    return store.subscribe(on_change)
