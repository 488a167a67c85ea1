import math
from dataclasses import dataclass, replace
from typing import Callable, Optional, Tuple

from .catalog import euros
from .compose import all_of, keep, pipe
from .config import PAGE_SIZE
from .domain import (
    SORT_FEATURED,
    SORT_PRICE_ASC,
    SORT_PRICE_DESC,
    SORT_RATING,
    FilterState,
    Product,
)

# ============ Страницы витрины ============

PAGE_HOME = "HOME"
PAGE_JEWELLERY = "JEWELLERY"
PAGE_RINGS = "RINGS"
PAGE_NECKLACES = "NECKLACES"
PAGE_HIGH_JEWELLERY = "HIGH JEWELLERY"
PAGE_GIFTS = "GIFTS"
PAGE_ABOUT = "ABOUT"
PAGE_CHECKOUT = "CHECKOUT"
PAGE_ACCOUNT = "ACCOUNT"

_SINGLE_CATEGORY_PAGES = {
    PAGE_RINGS: "Rings",
    PAGE_NECKLACES: "Necklaces",
    PAGE_HIGH_JEWELLERY: "High Jewellery",
    PAGE_GIFTS: "Gifts",
}
_JEWELLERY_CATEGORIES = frozenset({"Rings", "Necklaces", "Earrings", "Bracelets"})
_GRIDLESS_PAGES = frozenset({PAGE_HOME, PAGE_ABOUT, PAGE_CHECKOUT, PAGE_ACCOUNT})

# на этих страницах поисковый запрос переключает на общий каталог
_SEARCH_REDIRECT_PAGES = frozenset({PAGE_HOME, PAGE_ABOUT})


# ============ Замыкания-предикаты ============


def by_category(category: str) -> Callable[[Product], bool]:
    return lambda p: p.category == category


def by_categories(categories: frozenset) -> Callable[[Product], bool]:
    return lambda p: p.category in categories


def by_price_range(min_eur: int, max_eur: int) -> Callable[[Product], bool]:
    """Цена в евро (округлённая) в [min_eur, max_eur] включительно"""
    return lambda p: min_eur <= euros(p.price_cents) <= max_eur


def by_facet(values: frozenset, attr: str) -> Callable[[Product], bool]:
    """ИЛИ внутри фасета; пустое множество пропускает всё"""
    if not values:
        return lambda p: True
    return lambda p: getattr(p, attr) in values


def by_text(text: str) -> Callable[[Product], bool]:
    needle = (text or "").strip().casefold()

    def matches(p: Product) -> bool:
        haystack = " ".join(
            (
                p.name,
                p.category,
                p.material,
                p.gemstones,
                p.description,
                p.brand,
                p.collection,
            )
        )
        return needle in haystack.casefold()

    return matches


# ============ Стадии пайплайна ============


def filter_by_page(items: Tuple[Product, ...], page_key: str) -> Tuple[Product, ...]:
    """Ограничение по странице навигации"""
    if page_key in _SINGLE_CATEGORY_PAGES:
        return keep(by_category(_SINGLE_CATEGORY_PAGES[page_key]))(items)
    if page_key == PAGE_JEWELLERY:
        return keep(by_categories(_JEWELLERY_CATEGORIES))(items)
    if page_key in _GRIDLESS_PAGES:
        return ()
    return tuple(items)


def apply_query(items: Tuple[Product, ...], text: str) -> Tuple[Product, ...]:
    """Подстрочный поиск без токенизации и ранжирования"""
    if not (text or "").strip():
        return tuple(items)
    return keep(by_text(text))(items)


def apply_filters(items: Tuple[Product, ...], f: FilterState) -> Tuple[Product, ...]:
    """Фасеты независимы (И), внутри фасета — ИЛИ"""
    predicate = all_of(
        by_price_range(f.price_min, f.price_max),
        by_facet(f.brands, "brand"),
        by_facet(f.collections, "collection"),
        by_facet(f.gem_shapes, "gem_shape"),
        by_facet(f.materials, "material_group"),
    )
    return keep(predicate)(items)


def _featured_key(p: Product):
    # только наличие бейджа, тип бейджа не ранжируется
    return (0 if p.badge else 1, -p.rating)


_SORT_KEYS = {
    SORT_PRICE_ASC: lambda p: p.price_cents,
    SORT_PRICE_DESC: lambda p: -p.price_cents,
    SORT_RATING: lambda p: -p.rating,
    SORT_FEATURED: _featured_key,
}


def apply_sort(items: Tuple[Product, ...], mode: str) -> Tuple[Product, ...]:
    """Стабильная сортировка; неизвестный режим = Featured"""
    key = _SORT_KEYS.get(mode, _featured_key)
    return tuple(sorted(items, key=key))


# ============ Пагинация ============


@dataclass(frozen=True)
class Page:
    items: Tuple[Product, ...]
    page: int
    total_pages: int
    total_items: int
    page_size: int

    @property
    def start_item(self) -> int:
        if self.total_items == 0:
            return 0
        return (self.page - 1) * self.page_size + 1

    @property
    def end_item(self) -> int:
        return min(self.total_items, self.page * self.page_size)

    @property
    def page_numbers(self) -> Tuple[Optional[int], ...]:
        """Номера для пейджера; None — пропуск (многоточие)"""
        n, p = self.total_pages, self.page
        if n <= 6:
            return tuple(range(1, n + 1))
        if p <= 3:
            return (1, 2, 3, None, n)
        if p >= n - 2:
            return (1, None, n - 2, n - 1, n)
        return (1, None, p - 1, p, p + 1, None, n)


def total_pages(count: int, page_size: int = PAGE_SIZE) -> int:
    return max(1, math.ceil(count / page_size))


def clamp_page(requested, count: int, page_size: int = PAGE_SIZE) -> int:
    try:
        requested = int(requested)
    except (TypeError, ValueError, OverflowError):
        requested = 1
    return max(1, min(total_pages(count, page_size), requested))


def paginate(
    items: Tuple[Product, ...], requested_page=1, page_size: int = PAGE_SIZE
) -> Page:
    """Срез страницы; запрошенный номер зажимается в [1, total_pages]"""
    items = tuple(items)
    page = clamp_page(requested_page, len(items), page_size)
    start = (page - 1) * page_size
    return Page(
        items=items[start : start + page_size],
        page=page,
        total_pages=total_pages(len(items), page_size),
        total_items=len(items),
        page_size=page_size,
    )


# ============ Ввод фильтров ============


def coerce_price(raw, fallback: int) -> int:
    """Число из пользовательского ввода; мусор заменяется границей каталога"""
    if isinstance(raw, bool) or raw is None:
        return fallback
    if isinstance(raw, int):
        return raw
    try:
        value = float(str(raw).strip())
    except ValueError:
        return fallback
    if not math.isfinite(value):
        return fallback
    return int(value)


def make_filters(
    bounds: Tuple[int, int],
    price_min=None,
    price_max=None,
    brands=(),
    collections=(),
    gem_shapes=(),
    materials=(),
) -> FilterState:
    low, high = bounds
    return FilterState(
        price_min=coerce_price(price_min, low),
        price_max=coerce_price(price_max, high),
        brands=frozenset(brands),
        collections=frozenset(collections),
        gem_shapes=frozenset(gem_shapes),
        materials=frozenset(materials),
    )


# ============ Композиция ============


def query(
    catalog: Tuple[Product, ...],
    page_key: str,
    text: str,
    filters: FilterState,
    sort_mode: str,
) -> Tuple[Product, ...]:
    """
    Страница -> поиск -> фасеты -> сортировка. Чистая функция входов.
    Сортировка всегда последняя.
    """
    pipeline = pipe(
        lambda items: filter_by_page(items, page_key),
        lambda items: apply_query(items, text),
        lambda items: apply_filters(items, filters),
        lambda items: apply_sort(items, sort_mode),
    )
    return pipeline(tuple(catalog))


def query_page(
    catalog: Tuple[Product, ...],
    page_key: str,
    text: str,
    filters: FilterState,
    sort_mode: str,
    requested_page=1,
    page_size: int = PAGE_SIZE,
) -> Page:
    return paginate(
        query(catalog, page_key, text, filters, sort_mode), requested_page, page_size
    )


# ============ Состояние просмотра ============


@dataclass(frozen=True)
class BrowseState:
    """
    Параметры витрины, которыми владеет UI.
    Любое изменение страницы/запроса/фильтров/сортировки сбрасывает номер страницы на 1.
    """

    filters: FilterState
    page_key: str = PAGE_HOME
    text: str = ""
    sort_mode: str = SORT_FEATURED
    page: int = 1

    def _reset(self, **changes) -> "BrowseState":
        if all(getattr(self, k) == v for k, v in changes.items()):
            return self
        return replace(self, page=1, **changes)

    def with_text(self, text: str) -> "BrowseState":
        if text.strip() and self.page_key in _SEARCH_REDIRECT_PAGES:
            return self._reset(text=text, page_key=PAGE_JEWELLERY)
        return self._reset(text=text)

    def with_sort(self, sort_mode: str) -> "BrowseState":
        return self._reset(sort_mode=sort_mode)

    def with_filters(self, filters: FilterState) -> "BrowseState":
        return self._reset(filters=filters)

    def with_page_key(self, page_key: str) -> "BrowseState":
        return self._reset(page_key=page_key)

    def with_page(self, page: int) -> "BrowseState":
        return replace(self, page=page)

    def view(self, catalog: Tuple[Product, ...], page_size: int = PAGE_SIZE) -> Page:
        return query_page(
            catalog,
            self.page_key,
            self.text,
            self.filters,
            self.sort_mode,
            self.page,
            page_size,
        )
