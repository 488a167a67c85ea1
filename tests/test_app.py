import json
import os

import pytest
import streamlit as st
from streamlit.testing.v1 import AppTest

import storefront.config as config
from storefront.domain import SORT_RATING

APP_PATH = os.path.join(os.path.dirname(__file__), "..", "app", "main.py")


@pytest.fixture
def app(tmp_path, monkeypatch):
    """Демо-оболочка на каталоге из 30 колец: две страницы по 24"""
    catalog = {
        "products": [
            {
                "id": f"r{i}",
                "name": f"Ring {i}",
                "category": "Rings",
                "priceCents": 5000 + i * 100,
                "materialGroup": "Silver",
                "brand": "Kalevala",
                "collection": "Modern",
                "rating": 4.0 + (i % 10) / 10,
            }
            for i in range(30)
        ]
    }
    catalog_path = tmp_path / "products.json"
    catalog_path.write_text(json.dumps(catalog), encoding="utf-8")
    monkeypatch.setattr(config, "CATALOG_PATH", str(catalog_path))
    monkeypatch.setattr(config, "STORE_PATH", str(tmp_path / "store.json"))
    monkeypatch.setattr(config, "SUPABASE_URL", "")
    st.cache_data.clear()
    st.cache_resource.clear()

    at = AppTest.from_file(APP_PATH, default_timeout=30)
    at.run()
    assert not at.exception
    return at


def test_pager_follows_page_reset(app):
    """Смена сортировки возвращает на первую страницу, и переключатель тоже"""
    assert app.radio(key="pager").value == 1

    app.radio(key="pager").set_value(2).run()
    assert app.session_state["browse"].page == 2
    assert app.radio(key="pager").value == 2

    app.selectbox(key="sort").set_value(SORT_RATING).run()
    assert app.session_state["browse"].page == 1
    assert app.radio(key="pager").value == 1

    # следующий прогон без действий страницу не возвращает
    app.run()
    assert app.session_state["browse"].page == 1


def test_toast_is_shown_then_dismissed(app):
    app.text_input(key="auth_email").input("toast-check@example.fi")
    app.text_input(key="auth_password").input("secret1")
    app.text_input(key="auth_name").input("Aino")
    next(b for b in app.button if b.label == "Sign up").click().run()

    assert not app.exception
    assert [t.value for t in app.toast] == ["Welcome to Lumière. Your account is ready."]
    assert app.session_state["store"].state.ui.toast is None
