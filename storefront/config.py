# storefront/config.py
import os
from dotenv import load_dotenv

load_dotenv()

# ============ Окружение (только для демо-оболочки и удалённого клиента) ============

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
STORE_PATH = os.getenv("STORE_PATH", ".storefront/store.json")
CATALOG_PATH = os.getenv("CATALOG_PATH", "data/products.json")
SUPABASE_URL = os.getenv("SUPABASE_URL", "")
SUPABASE_KEY = os.getenv("SUPABASE_KEY", "")

# ============ Константы домена ============

PAGE_SIZE = 24
QTY_MIN = 1
QTY_MAX = 99
TOAST_TTL_SECONDS = 1.8
STORAGE_KEY = "gleam_store_v1"

# центы
SHIPPING_STANDARD_CENTS = 599
SHIPPING_EXPRESS_CENTS = 1299
DRAWER_SHIPPING_CENTS = 590
TAX_RATE_PERCENT = 24
