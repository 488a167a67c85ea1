from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Optional, Tuple

# ============ Допустимые значения ============

CATEGORIES = ("Rings", "Necklaces", "Earrings", "Bracelets", "High Jewellery", "Gifts")
BRANDS = ("Kalevala", "Lumoava", "Lapponia", "Lumière")
COLLECTIONS = (
    "Modern",
    "Originals",
    "Limited drops",
    "Heritage",
    "Signature",
    "Gift Sets",
)
GEM_SHAPES = ("Round", "Oval", "Pear", "Emerald", "Marquise", "None")
MATERIAL_GROUPS = ("Silver", "Gold", "Vermeil", "Mixed")
BADGES = ("New", "Bestseller", "Limited")

SORT_FEATURED = "Featured"
SORT_PRICE_ASC = "Price: Low → High"
SORT_PRICE_DESC = "Price: High → Low"
SORT_RATING = "Rating"
SORT_MODES = (SORT_FEATURED, SORT_PRICE_ASC, SORT_PRICE_DESC, SORT_RATING)


@dataclass(frozen=True)
class Product:
    id: str
    name: str
    category: str
    price_cents: int  # центы, EUR
    material: str
    material_group: str
    gemstones: str
    gem_shape: str
    brand: str
    collection: str
    description: str
    rating: float  # 0..5
    image: str = ""
    badge: Optional[str] = None


@dataclass(frozen=True)
class FilterState:
    """Фасетные фильтры. Пустое множество = ограничения нет"""

    price_min: int  # евро, включительно
    price_max: int
    brands: FrozenSet[str] = frozenset()
    collections: FrozenSet[str] = frozenset()
    gem_shapes: FrozenSet[str] = frozenset()
    materials: FrozenSet[str] = frozenset()


@dataclass(frozen=True)
class UserSession:
    id: str
    email: str
    name: Optional[str] = None


@dataclass(frozen=True)
class Toast:
    id: str
    message: str


@dataclass(frozen=True)
class UIState:
    cart_open: bool = False
    active_product_id: Optional[str] = None
    toast: Optional[Toast] = None


@dataclass(frozen=True)
class AppState:
    """
    Всё состояние приложения. Меняется только через reduce_state:
    каждый шаг возвращает новый объект, словари внутри не мутируются.
    """

    products: Tuple[Product, ...]
    cart: Dict[str, int] = field(default_factory=dict)  # product_id -> qty 1..99
    favorites: Dict[str, bool] = field(default_factory=dict)  # product_id -> True
    user: Optional[UserSession] = None
    ui: UIState = UIState()


@dataclass(frozen=True)
class Snapshot:
    """Сохраняемая часть состояния"""

    cart: Dict[str, int]
    favorites: Dict[str, bool]
    user: Optional[UserSession] = None


@dataclass(frozen=True)
class Action:
    type: str
    payload: Dict[str, Any] = field(default_factory=dict)
