import re
from dataclasses import dataclass
from typing import Optional

from .config import (
    DRAWER_SHIPPING_CENTS,
    SHIPPING_EXPRESS_CENTS,
    SHIPPING_STANDARD_CENTS,
    TAX_RATE_PERCENT,
)
from .domain import AppState
from .ftypes import Either
from .logger import get_logger
from .remote import RemoteError, RemoteStore
from .store import Store, cart_clear, cart_lines, cart_subtotal_cents, toast_show

logger = get_logger("checkout")

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


# ============ Суммы (всё в центах) ============


@dataclass(frozen=True)
class OrderTotals:
    subtotal_cents: int
    shipping_cents: int
    tax_cents: int
    total_cents: int


def shipping_cents(method: str) -> int:
    return SHIPPING_EXPRESS_CENTS if method == "express" else SHIPPING_STANDARD_CENTS


def drawer_shipping_cents(subtotal: int) -> int:
    """Оценка доставки в мини-корзине: бесплатно только для пустой корзины"""
    return DRAWER_SHIPPING_CENTS if subtotal > 0 else 0


def tax_cents(subtotal: int) -> int:
    """Единая демо-ставка, округление half-up"""
    return (subtotal * TAX_RATE_PERCENT + 50) // 100


def order_totals(state: AppState, method: str = "standard") -> OrderTotals:
    subtotal = cart_subtotal_cents(state)
    shipping = shipping_cents(method)
    tax = tax_cents(subtotal)
    return OrderTotals(subtotal, shipping, tax, subtotal + shipping + tax)


def format_eur(cents: int) -> str:
    """1234567 -> '12 345,67 €'"""
    whole = f"{cents / 100:,.2f}"
    return whole.replace(",", " ").replace(".", ",") + " €"


# ============ Оформление заказа ============


@dataclass(frozen=True)
class OrderDetails:
    email: str
    first: str
    last: str
    address: str
    city: str
    postal: str
    country: str = "Finland"
    shipping_method: str = "standard"  # "standard" | "express"
    payment_method: str = "card"  # "card" | "klarna"


async def place_order(
    store: Store, remote: RemoteStore, details: OrderDetails
) -> Either[str, str]:
    """
    Сохраняет заказ: строка orders, затем строки order_items.
    Right(order_id) при успехе; корзина очищается.
    Защита от двойной отправки — забота вызывающего.
    """
    state = store.state
    lines = cart_lines(state)
    if not lines:
        return Either.left("Cart is empty")

    if state.user is None:
        message = "Please sign in to save your order to the backend."
        store.dispatch(toast_show(message))
        return Either.left(message)

    user = state.user
    totals = order_totals(state, details.shipping_method)

    async def insert_order() -> str:
        rows = await remote.table("orders").insert(
            [
                {
                    "user_id": user.id,
                    "email": details.email.strip(),
                    "shipping_address": {
                        "first": details.first,
                        "last": details.last,
                        "addr": details.address,
                        "city": details.city,
                        "postal": details.postal,
                        "country": details.country,
                    },
                    "shipping_method": details.shipping_method,
                    "payment_method": details.payment_method,
                    "subtotal_cents": totals.subtotal_cents,
                    "shipping_cents": totals.shipping_cents,
                    "tax_cents": totals.tax_cents,
                    "total_cents": totals.total_cents,
                    "status": "PLACED",
                }
            ]
        )
        if not rows or not rows[0].get("id"):
            raise RemoteError("Order was not created")
        order_id = str(rows[0]["id"])

        await remote.table("order_items").insert(
            [
                {
                    "order_id": order_id,
                    "product_id": product.id,
                    "product_name": product.name,
                    "unit_price_cents": product.price_cents,
                    "qty": qty,
                }
                for product, qty in lines
            ]
        )
        return order_id

    result = await Either.attempt(
        insert_order,
        catch=(RemoteError,),
        default_message="Could not place order. Try again.",
    )
    if result.is_left:
        logger.warning(f"Заказ не сохранён: {result.value}")
        store.dispatch(toast_show(result.value))
        return result

    logger.info(f"Заказ {result.value} на {totals.total_cents} центов сохранён")
    store.dispatch(cart_clear())
    store.dispatch(toast_show(f"Order saved ✅ (id: {result.value[:8]}…)"))
    return result


async def subscribe_newsletter(
    store: Store, remote: RemoteStore, email: str
) -> Either[str, Optional[str]]:
    value = email.strip()
    if not EMAIL_RE.match(value):
        store.dispatch(toast_show("Please enter a valid email."))
        return Either.left("invalid email")

    result = await Either.attempt(
        lambda: remote.table("newsletter_subscriptions").upsert(
            [{"email": value}], on_conflict="email"
        ),
        catch=(RemoteError,),
        default_message="Subscription failed. Try again.",
    )
    if result.is_left:
        store.dispatch(toast_show(result.value))
        return result

    store.dispatch(toast_show("Subscribed. Welcome to Lumière."))
    return Either.right(value)
