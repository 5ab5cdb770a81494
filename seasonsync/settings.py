import os
from pathlib import Path
from dotenv import load_dotenv

# --- Base Directory ---
BASE_DIR = Path(__file__).resolve().parent.parent

# --- Load Environment Variables ---
load_dotenv(BASE_DIR / ".env")

# --- Path Configuration ---
INPUT_DIR = BASE_DIR / os.getenv("INPUT_DIR", "input")
OUTPUT_DIR = BASE_DIR / os.getenv("OUTPUT_DIR", "output")

# --- Logging ---
LOG_DIR = BASE_DIR / os.getenv("LOG_DIR", "logs")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_MAX_BYTES = 5 * 1024 * 1024
LOG_BACKUP_COUNT = 3

# --- Storage Collaborator ---
# Table API (PostgREST style) used for products, costs, pricing and sales.
STORE_URL = os.getenv("STORE_URL", "")
STORE_API_KEY = os.getenv("STORE_API_KEY", "")

# Direct-SQL endpoint used for the inventory movement log.
SQL_API_URL = os.getenv("SQL_API_URL", "")
SQL_API_TOKEN = os.getenv("SQL_API_TOKEN", "")

# Write endpoints are sized for the largest batch, so this is minutes, not seconds.
REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "300"))

# --- Webhook ---
WEBHOOK_URL = os.getenv("WEBHOOK_URL")

# --- Table Names ---
PRODUCT_TABLE = "Product"
COST_TABLE = "Cost"
PRICING_TABLE = "Pricing"
SALE_TABLE = "Sale"
INVENTORY_TABLE = "Inventory"
IMPORT_LOG_TABLE = "ImportLog"
SEASON_TABLE = "Season"

# Tables that hold season-partitioned data.
SEASON_TABLES = [PRODUCT_TABLE, PRICING_TABLE, COST_TABLE, SALE_TABLE]

# --- Reading ---
# The store never returns more than this many rows per request.
PAGE_SIZE = int(os.getenv("PAGE_SIZE", "1000"))
SALES_PAGE_SIZE = int(os.getenv("SALES_PAGE_SIZE", "5000"))

# --- Writing ---
CHUNK_SIZES = {
    PRODUCT_TABLE: int(os.getenv("PRODUCT_CHUNK_SIZE", "1000")),
    COST_TABLE: int(os.getenv("COST_CHUNK_SIZE", "1000")),
    PRICING_TABLE: int(os.getenv("PRICING_CHUNK_SIZE", "1000")),
    SALE_TABLE: int(os.getenv("SALE_CHUNK_SIZE", "2000")),
    INVENTORY_TABLE: int(os.getenv("INVENTORY_CHUNK_SIZE", "200")),
}

# Sales lines are not unique; a repeated line is a valid re-booking.
KEEP_DUPLICATE_TABLES = {SALE_TABLE}

# Direct-SQL retry policy: attempt * step, capped.
MAX_RETRIES = int(os.getenv("MAX_RETRIES", "5"))
BACKOFF_STEP_SECONDS = float(os.getenv("BACKOFF_STEP_SECONDS", "5"))
BACKOFF_CAP_SECONDS = float(os.getenv("BACKOFF_CAP_SECONDS", "30"))
INTER_CHUNK_DELAY_SECONDS = float(os.getenv("INTER_CHUNK_DELAY_SECONDS", "0.2"))

# --- Sheet Layouts ---
LINE_LIST_SHEET = "Line List"
LANDED_SHEET = "LDP Requests"
SALES_SHEET = "Sheet1"
# The landed request sheet carries a 10 row preamble above its header.
LANDED_HEADER_ROW = 10

# --- Import API ---
IMPORT_TYPES = ["products", "sales", "pricing", "costs", "inventory"]
IMPORT_TYPE_TABLES = {
    "products": PRODUCT_TABLE,
    "sales": SALE_TABLE,
    "pricing": PRICING_TABLE,
    "costs": COST_TABLE,
    "inventory": INVENTORY_TABLE,
}
RESET_CONFIRM_TOKEN = os.getenv("RESET_CONFIRM_TOKEN", "yes")
# Deleted in this order by a reset.
RESET_ORDER = [
    SALE_TABLE,
    PRICING_TABLE,
    COST_TABLE,
    PRODUCT_TABLE,
    INVENTORY_TABLE,
    IMPORT_LOG_TABLE,
]
