import json
from typing import Tuple

from .domain import FilterState, Product
from .ftypes import Maybe
from .logger import get_logger

logger = get_logger("catalog")


def euros(price_cents: int) -> int:
    """Цена в целых евро, округление half-up (как Math.round)"""
    return (int(price_cents) + 50) // 100


def _to_product(raw: dict) -> Product:
    badge = raw.get("badge") or None
    return Product(
        id=str(raw["id"]),
        name=str(raw.get("name", "")),
        category=str(raw.get("category", "")),
        price_cents=max(0, int(raw.get("priceCents", 0))),
        material=str(raw.get("material", "")),
        material_group=str(raw.get("materialGroup", "")),
        gemstones=str(raw.get("gemstones", "")),
        gem_shape=str(raw.get("gemShape", "None")),
        brand=str(raw.get("brand", "")),
        collection=str(raw.get("collection", "")),
        description=str(raw.get("description", "")),
        rating=min(5.0, max(0.0, float(raw.get("rating", 0)))),
        image=str(raw.get("image", "")),
        badge=badge,
    )


def load_catalog(path: str) -> Tuple[Product, ...]:
    """
    Загружает каталог из JSON ({"products": [...]}) один раз при старте.
    Ключи в формате файла — camelCase (priceCents, materialGroup, gemShape).
    """
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    products = tuple(map(_to_product, data.get("products", [])))
    logger.info(f"Загружено товаров: {len(products)} из {path}")
    return products


def find_product(products: Tuple[Product, ...], product_id: str) -> Maybe[Product]:
    """Безопасный поиск товара по id"""
    return Maybe.of(next((p for p in products if p.id == product_id), None))


def price_bounds(products: Tuple[Product, ...]) -> Tuple[int, int]:
    """Минимальная и максимальная цена каталога в евро"""
    prices = tuple(euros(p.price_cents) for p in products)
    if not prices:
        return (0, 0)
    return (min(prices), max(prices))


def default_filters(products: Tuple[Product, ...]) -> FilterState:
    """Фильтры без ограничений: весь ценовой диапазон, пустые фасеты"""
    low, high = price_bounds(products)
    return FilterState(price_min=low, price_max=high)
