import sys
import os
import asyncio
import streamlit as st

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from storefront.config import CATALOG_PATH, STORE_PATH, SUPABASE_KEY, SUPABASE_URL
from storefront.domain import BRANDS, COLLECTIONS, GEM_SHAPES, MATERIAL_GROUPS, SORT_MODES
from storefront.catalog import load_catalog, price_bounds, default_filters
from storefront.query import (
    BrowseState,
    make_filters,
    PAGE_JEWELLERY,
    PAGE_RINGS,
    PAGE_NECKLACES,
    PAGE_HIGH_JEWELLERY,
    PAGE_GIFTS,
)
from storefront.store import (
    Store,
    initial_state,
    cart_add,
    cart_set_qty,
    cart_remove,
    cart_lines,
)
from storefront.persistence import JsonFileStorage, load, attach_persistence
from storefront.remote import MemoryRemoteStore, SupabaseRemoteStore
from storefront.sync import auto_dismiss_toast, connect_session, toggle_favorite
from storefront.auth import sign_in, sign_up, sign_out
from storefront.account import (
    AddressDraft,
    delete_address,
    favorite_products,
    load_addresses,
    load_profile,
    order_history,
    save_address,
    save_profile,
)
from storefront.checkout import (
    OrderDetails,
    drawer_shipping_cents,
    format_eur,
    order_totals,
    place_order,
)


# ============ Ресурсы ============
@st.cache_data
def get_catalog():
    return load_catalog(CATALOG_PATH)


@st.cache_resource
def get_loop():
    return asyncio.new_event_loop()


@st.cache_resource
def get_remote():
    if SUPABASE_URL and SUPABASE_KEY:
        return SupabaseRemoteStore(SUPABASE_URL, SUPABASE_KEY)
    return MemoryRemoteStore()


def run(coro):
    """Синхронная обёртка для корутин ядра"""
    return get_loop().run_until_complete(coro)


st.set_page_config(page_title="Lumière", page_icon="💍", layout="wide")

products = get_catalog()
remote = get_remote()

# ============ Инициализация ============
if "store" not in st.session_state:
    storage = JsonFileStorage(STORE_PATH)
    store = Store(initial_state(products, load(storage)))
    attach_persistence(store, storage)
    run(connect_session(store, remote))
    st.session_state.store = store

if "browse" not in st.session_state:
    st.session_state.browse = BrowseState(
        filters=default_filters(products), page_key=PAGE_JEWELLERY
    )

store: Store = st.session_state.store

PAGES = {
    "💎 Jewellery": PAGE_JEWELLERY,
    "💍 Rings": PAGE_RINGS,
    "📿 Necklaces": PAGE_NECKLACES,
    "👑 High Jewellery": PAGE_HIGH_JEWELLERY,
    "🎁 Gifts": PAGE_GIFTS,
}


def show_toast():
    """Показ уведомления один раз; через TTL его снимает auto_dismiss_toast"""
    toast = store.state.ui.toast
    if toast is None or st.session_state.get("toast_shown") == toast.id:
        return
    st.toast(toast.message)
    st.session_state.toast_shown = toast.id
    run(auto_dismiss_toast(store))


def go_to_page():
    st.session_state.browse = st.session_state.browse.with_page(st.session_state.pager)


# ============ SIDEBAR ============
with st.sidebar:
    st.header("🔎 Фильтры")
    browse: BrowseState = st.session_state.browse
    low, high = price_bounds(products)

    price = st.slider("💰 Цена (€)", low, high, (low, high), key="price")
    brands = st.multiselect("Brand", BRANDS, key="brands")
    collections = st.multiselect("Collection", COLLECTIONS, key="collections")
    shapes = st.multiselect("Gemstone shape", GEM_SHAPES[:-1], key="shapes")
    materials = st.multiselect("Material", MATERIAL_GROUPS, key="materials")

    browse = browse.with_filters(
        make_filters((low, high), price[0], price[1], brands, collections, shapes, materials)
    )

    st.divider()
    st.header("👤 Аккаунт")
    user = store.state.user
    if user is None:
        email = st.text_input("Email", key="auth_email")
        password = st.text_input("Password", type="password", key="auth_password")
        name = st.text_input("Full name (для регистрации)", key="auth_name")
        col1, col2 = st.columns(2)
        if col1.button("Sign in"):
            run(sign_in(store, remote, email, password))
            st.rerun()
        if col2.button("Sign up"):
            run(sign_up(store, remote, email, password, name))
            st.rerun()
    else:
        st.write(f"**{user.name or user.email}**")
        if st.button("Sign out"):
            run(sign_out(store, remote))
            st.rerun()


# ============ HEADER ============
st.title("💍 Lumière — Finnish Jewelry")
col1, col2, col3 = st.columns([3, 2, 2])
with col1:
    section = st.radio("Раздел", list(PAGES), horizontal=True, label_visibility="collapsed")
with col2:
    text = st.text_input("Поиск", key="query", placeholder="Search…")
with col3:
    sort_mode = st.selectbox("Сортировка", SORT_MODES, key="sort")

browse = browse.with_page_key(PAGES[section]).with_text(text).with_sort(sort_mode)

m1, m2, m3 = st.columns(3)
m1.metric("🛒 В корзине", store.cart_count)
m2.metric("💶 Сумма", format_eur(store.cart_subtotal_cents))
m3.metric("❤️ Избранное", store.fav_count)

tab_shop, tab_cart, tab_account = st.tabs(["🏪 Каталог", "🛒 Корзина", "👤 Кабинет"])

# ============ КАТАЛОГ ============
with tab_shop:
    view = browse.view(products)
    st.caption(f"{view.total_items} products")

    for p in view.items:
        cols = st.columns([5, 2, 1, 1])
        with cols[0]:
            badge = f" · `{p.badge}`" if p.badge else ""
            st.markdown(f"**{p.name}**{badge}")
            st.caption(f"{p.brand} · {p.collection} · {p.material} · ⭐ {p.rating}")
        with cols[1]:
            st.write(format_eur(p.price_cents))
        with cols[2]:
            heart = "❤️" if p.id in store.state.favorites else "🤍"
            if st.button(heart, key=f"fav_{p.id}"):
                run(toggle_favorite(store, remote, p.id))
                st.rerun()
        with cols[3]:
            if st.button("➕", key=f"add_{p.id}"):
                store.dispatch(cart_add(p.id))
                st.rerun()

    if view.total_pages > 1:
        st.caption(
            f"You’re viewing {view.start_item}–{view.end_item} of {view.total_items} products"
        )
        numbers = [n for n in view.page_numbers if n is not None]
        # виджет показывает страницу из BrowseState, а не свой прошлый выбор
        st.session_state.pager = view.page
        st.radio("Страница", numbers, horizontal=True, key="pager", on_change=go_to_page)

    st.session_state.browse = browse

# ============ КОРЗИНА ============
with tab_cart:
    lines = cart_lines(store.state)
    if not lines:
        st.info("🛍️ Корзина пуста")
    else:
        for product, qty in lines:
            cols = st.columns([5, 2, 2, 1])
            cols[0].write(f"**{product.name}**")
            new_qty = cols[1].number_input(
                "Qty", 1, 99, qty, key=f"qty_{product.id}", label_visibility="collapsed"
            )
            if new_qty != qty:
                store.dispatch(cart_set_qty(product.id, new_qty))
                st.rerun()
            cols[2].write(format_eur(product.price_cents * qty))
            if cols[3].button("🗑️", key=f"rm_{product.id}"):
                store.dispatch(cart_remove(product.id))
                st.rerun()

        subtotal = store.cart_subtotal_cents
        st.write(f"Доставка (оценка): {format_eur(drawer_shipping_cents(subtotal))}")

        st.divider()
        with st.form("checkout"):
            st.subheader("📦 Оформление")
            email = st.text_input("Email")
            first, last = st.columns(2)
            first_name = first.text_input("First name")
            last_name = last.text_input("Last name")
            address = st.text_input("Address")
            city, postal = st.columns(2)
            city_name = city.text_input("City")
            postal_code = postal.text_input("Postal code")
            ship = st.radio("Shipping", ["standard", "express"], horizontal=True)

            totals = order_totals(store.state, ship)
            st.write(
                f"Subtotal {format_eur(totals.subtotal_cents)} · "
                f"Shipping {format_eur(totals.shipping_cents)} · "
                f"Tax {format_eur(totals.tax_cents)} · "
                f"**Total {format_eur(totals.total_cents)}**"
            )
            if st.form_submit_button("✅ Place order", type="primary"):
                details = OrderDetails(
                    email=email,
                    first=first_name,
                    last=last_name,
                    address=address,
                    city=city_name,
                    postal=postal_code,
                    shipping_method=ship,
                )
                run(place_order(store, remote, details))
                st.rerun()

# ============ КАБИНЕТ ============
with tab_account:
    if store.state.user is None:
        st.info("🔒 Please sign in to view your account.")
    else:
        profile = run(load_profile(store, remote))
        with st.form("profile"):
            st.subheader("🪪 Профиль")
            current = profile.map(lambda p: p.full_name or "").get_or_else("")
            full_name = st.text_input("Full name", value=current)
            st.text_input("Email", value=store.state.user.email, disabled=True)
            if st.form_submit_button("Save profile"):
                run(save_profile(store, remote, full_name))
                st.rerun()

        st.subheader("🏠 Адреса")
        for a in run(load_addresses(store, remote)).get_or_else(()):
            cols = st.columns([6, 1])
            flags = " · ".join(
                label
                for label, on in (
                    ("Default shipping", a.is_default_shipping),
                    ("Default billing", a.is_default_billing),
                )
                if on
            )
            cols[0].markdown(
                f"**{a.label}** {a.line1}, {a.postal_code} {a.city}, {a.country}  \n{flags}"
            )
            if cols[1].button("🗑️", key=f"addr_rm_{a.id}"):
                run(delete_address(store, remote, a.id))
                st.rerun()

        with st.form("address", clear_on_submit=True):
            label = st.text_input("Label", value="Home")
            line1 = st.text_input("Address line")
            city_col, postal_col = st.columns(2)
            addr_city = city_col.text_input("City", key="addr_city")
            addr_postal = postal_col.text_input("Postal code", key="addr_postal")
            country = st.text_input("Country", value="Finland")
            default_shipping = st.checkbox("Default shipping")
            default_billing = st.checkbox("Default billing")
            if st.form_submit_button("➕ Save address"):
                draft = AddressDraft(
                    label=label,
                    line1=line1,
                    city=addr_city,
                    postal_code=addr_postal,
                    country=country,
                    is_default_shipping=default_shipping,
                    is_default_billing=default_billing,
                )
                run(save_address(store, remote, draft))
                st.rerun()

        st.subheader("❤️ Избранное")
        for p in favorite_products(store.state):
            st.write(f"{p.name} · {format_eur(p.price_cents)}")

        st.subheader("📦 Заказы")
        orders = run(order_history(store, remote)).get_or_else(())
        if not orders:
            st.caption("No orders yet.")
        for o in orders:
            st.write(f"Order {o.short_id} · {o.status} · {format_eur(o.total_cents)}")

show_toast()
