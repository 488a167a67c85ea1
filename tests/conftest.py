import sys
import os

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import pytest
from storefront.domain import Product

CATALOG_PATH = os.path.join(os.path.dirname(__file__), "..", "data", "products.json")


def make_product(pid, price_eur=100, **overrides):
    fields = dict(
        id=pid,
        name=f"Item {pid}",
        category="Rings",
        price_cents=int(price_eur * 100),
        material="Sterling silver",
        material_group="Silver",
        gemstones="None",
        gem_shape="None",
        brand="Kalevala",
        collection="Modern",
        description="",
        rating=4.0,
        badge=None,
    )
    fields.update(overrides)
    return Product(**fields)


@pytest.fixture
def catalog_path():
    return CATALOG_PATH


@pytest.fixture
def small_catalog():
    return (
        make_product("r1", 89, name="Aurora Band", rating=4.6, badge="New"),
        make_product(
            "r2",
            1290,
            name="Frost Solitaire",
            brand="Lumière",
            collection="Signature",
            material="18k white gold",
            material_group="Gold",
            gemstones="Diamond",
            gem_shape="Round",
            rating=4.9,
        ),
        make_product(
            "n1",
            119,
            name="Polar Star Pendant",
            category="Necklaces",
            gemstones="Cubic zirconia",
            gem_shape="Round",
            rating=4.5,
            badge="Bestseller",
        ),
        make_product(
            "e1",
            69,
            name="Snowfall Studs",
            category="Earrings",
            brand="Lumoava",
            rating=4.8,
        ),
        make_product(
            "h1",
            12500,
            name="Northern Crown",
            category="High Jewellery",
            material_group="Mixed",
            gem_shape="Emerald",
            rating=5.0,
        ),
        make_product(
            "g1", 25, name="Care Kit", category="Gifts", collection="Gift Sets", rating=4.0
        ),
    )
