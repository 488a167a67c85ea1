"""
Личный кабинет: профиль, адреса, история заказов.

Все операции требуют вошедшего пользователя и возвращают Either;
об исходе каждой сообщает уведомление (toast).
"""

from dataclasses import dataclass, replace
from typing import List, Optional, Tuple

from .catalog import find_product
from .domain import AppState, Product, UserSession
from .ftypes import Either
from .logger import get_logger
from .remote import RemoteError, RemoteStore, Row
from .store import Store, auth_set, toast_show

logger = get_logger("account")

SIGN_IN_REQUIRED = "Please sign in to view your account."
LOAD_FAILED = "Failed to load account data."
ADDRESS_INCOMPLETE = "Please fill address line, city, postal code, country."
DEFAULT_FLAGS = ("is_default_shipping", "is_default_billing")


@dataclass(frozen=True)
class Profile:
    id: str
    full_name: Optional[str] = None


@dataclass(frozen=True)
class Address:
    id: str
    label: str
    line1: str
    city: str
    postal_code: str
    country: str
    full_name: Optional[str] = None
    line2: Optional[str] = None
    region: Optional[str] = None
    is_default_shipping: bool = False
    is_default_billing: bool = False


@dataclass(frozen=True)
class AddressDraft:
    """Содержимое формы адреса до проверки"""

    label: str = "Home"
    full_name: Optional[str] = None
    line1: str = ""
    line2: Optional[str] = None
    city: str = ""
    postal_code: str = ""
    region: Optional[str] = None
    country: str = "Finland"
    is_default_shipping: bool = False
    is_default_billing: bool = False


@dataclass(frozen=True)
class OrderSummary:
    id: str
    total_cents: int
    status: str
    created_at: str = ""

    @property
    def short_id(self) -> str:
        return self.id[:8].upper()


# ============ Строки таблиц -> объекты ============


def squash(value: Optional[str]) -> str:
    """Обрезка краёв и схлопывание пробелов"""
    return " ".join((value or "").split())


def _optional(value: Optional[str]) -> Optional[str]:
    return squash(value) or None


def _to_profile(row: Row) -> Profile:
    return Profile(id=str(row["id"]), full_name=row.get("full_name"))


def _to_address(row: Row) -> Address:
    return Address(
        id=str(row["id"]),
        label=row.get("label") or "Home",
        line1=row.get("line1") or "",
        city=row.get("city") or "",
        postal_code=row.get("postal_code") or "",
        country=row.get("country") or "",
        full_name=row.get("full_name"),
        line2=row.get("line2"),
        region=row.get("region"),
        is_default_shipping=bool(row.get("is_default_shipping")),
        is_default_billing=bool(row.get("is_default_billing")),
    )


def _to_order(row: Row) -> OrderSummary:
    return OrderSummary(
        id=str(row["id"]),
        total_cents=int(row.get("total_cents") or 0),
        status=str(row.get("status") or ""),
        created_at=str(row.get("created_at") or ""),
    )


def _newest_first(rows: List[Row]) -> List[Row]:
    return sorted(rows, key=lambda r: str(r.get("created_at") or ""), reverse=True)


def address_payload(draft: AddressDraft) -> Either[str, Row]:
    """Обязательны строка адреса, город, индекс и страна"""
    required = (draft.line1, draft.city, draft.postal_code, draft.country)
    if not all(squash(v) for v in required):
        return Either.left(ADDRESS_INCOMPLETE)
    return Either.right(
        {
            "label": squash(draft.label) or "Home",
            "full_name": _optional(draft.full_name),
            "line1": squash(draft.line1),
            "line2": _optional(draft.line2),
            "city": squash(draft.city),
            "postal_code": squash(draft.postal_code),
            "region": _optional(draft.region),
            "country": squash(draft.country),
            "is_default_shipping": bool(draft.is_default_shipping),
            "is_default_billing": bool(draft.is_default_billing),
        }
    )


def _require_user(store: Store) -> Either[str, UserSession]:
    user = store.state.user
    return Either.left(SIGN_IN_REQUIRED) if user is None else Either.right(user)


def _report(store: Store, result: Either, ok_message: Optional[str] = None) -> Either:
    if result.is_left:
        logger.warning(f"Операция кабинета не выполнена: {result.value}")
        store.dispatch(toast_show(result.value))
    elif ok_message:
        store.dispatch(toast_show(ok_message))
    return result


# ============ Профиль ============


async def load_profile(store: Store, remote: RemoteStore) -> Either[str, Profile]:
    """Читает профиль; если строки ещё нет, создаёт её с именем из сессии"""
    signed_in = _require_user(store)
    if signed_in.is_left:
        return signed_in
    user = signed_in.value
    table = remote.table("profiles")

    async def fetch_or_create() -> Row:
        rows = await table.select({"id": user.id})
        if rows:
            return rows[0]
        created = await table.insert([{"id": user.id, "full_name": user.name}])
        if not created:
            raise RemoteError("Profile was not created")
        logger.info(f"Создан профиль {user.id}")
        return created[0]

    result = await Either.attempt(
        fetch_or_create, catch=(RemoteError,), default_message=LOAD_FAILED
    )
    return _report(store, result.map(_to_profile))


async def save_profile(
    store: Store, remote: RemoteStore, full_name: str
) -> Either[str, Profile]:
    signed_in = _require_user(store)
    if signed_in.is_left:
        return signed_in
    user = signed_in.value
    next_name = _optional(full_name)

    result = await Either.attempt(
        lambda: remote.table("profiles").update({"id": user.id}, {"full_name": next_name}),
        catch=(RemoteError,),
        default_message="Failed to save profile.",
    )
    if result.is_right:
        # пустое имя в профиле не стирает имя сессии
        store.dispatch(auth_set(replace(user, name=next_name or user.name)))
    return _report(
        store, result.map(lambda _: Profile(user.id, next_name)), "Profile saved ✅"
    )


# ============ Адреса ============


async def _fetch_addresses(remote: RemoteStore, user_id: str) -> Tuple[Address, ...]:
    rows = await remote.table("addresses").select({"user_id": user_id})
    return tuple(_to_address(r) for r in _newest_first(rows))


async def load_addresses(store: Store, remote: RemoteStore) -> Either[str, Tuple[Address, ...]]:
    signed_in = _require_user(store)
    if signed_in.is_left:
        return signed_in
    result = await Either.attempt(
        lambda: _fetch_addresses(remote, signed_in.value.id),
        catch=(RemoteError,),
        default_message=LOAD_FAILED,
    )
    return _report(store, result)


async def save_address(
    store: Store,
    remote: RemoteStore,
    draft: AddressDraft,
    address_id: Optional[str] = None,
) -> Either[str, Tuple[Address, ...]]:
    """
    Создаёт (address_id=None) или обновляет адрес пользователя.
    Флаг «по умолчанию» у остальных адресов снимается, так что
    адрес доставки и адрес оплаты по умолчанию всегда не более чем один.
    Right — обновлённый список адресов.
    """
    signed_in = _require_user(store)
    if signed_in.is_left:
        return signed_in
    user = signed_in.value

    payload = address_payload(draft)
    if payload.is_left:
        return _report(store, payload)
    values = payload.value
    table = remote.table("addresses")

    async def write() -> Tuple[Address, ...]:
        for flag in DEFAULT_FLAGS:
            if values[flag]:
                await table.update({"user_id": user.id, flag: True}, {flag: False})
        if address_id is None:
            await table.insert([{**values, "user_id": user.id}])
        elif not await table.update({"id": address_id, "user_id": user.id}, values):
            raise RemoteError("Address not found")
        return await _fetch_addresses(remote, user.id)

    result = await Either.attempt(
        write, catch=(RemoteError,), default_message="Failed to save address."
    )
    return _report(
        store, result, "Address saved ✅" if address_id is None else "Address updated ✅"
    )


async def delete_address(
    store: Store, remote: RemoteStore, address_id: str
) -> Either[str, str]:
    signed_in = _require_user(store)
    if signed_in.is_left:
        return signed_in

    result = await Either.attempt(
        lambda: remote.table("addresses").delete(
            {"id": address_id, "user_id": signed_in.value.id}
        ),
        catch=(RemoteError,),
        default_message="Failed to delete address.",
    )
    return _report(store, result.map(lambda _: address_id), "Address deleted.")


# ============ Заказы и избранное ============


async def order_history(
    store: Store, remote: RemoteStore
) -> Either[str, Tuple[OrderSummary, ...]]:
    """Заказы пользователя, новые первыми"""
    signed_in = _require_user(store)
    if signed_in.is_left:
        return signed_in

    result = await Either.attempt(
        lambda: remote.table("orders").select({"user_id": signed_in.value.id}),
        catch=(RemoteError,),
        default_message=LOAD_FAILED,
    )
    return _report(
        store, result.map(lambda rows: tuple(_to_order(r) for r in _newest_first(rows)))
    )


def favorite_products(state: AppState) -> Tuple[Product, ...]:
    """Избранное в виде товаров каталога; неизвестные id пропускаются"""
    found = (find_product(state.products, pid).get_or_else(None) for pid in state.favorites)
    return tuple(p for p in found if p is not None)
