"""SQL definitions for the Cellarsync store."""

SCHEMA_MIGRATIONS_SQL = """
CREATE TABLE IF NOT EXISTS schema_migrations (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE,
    applied_at TEXT NOT NULL,
    notes TEXT
);
"""

SCHEMA_VERSION_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER NOT NULL,
    applied_at TEXT NOT NULL
);
"""

SCHEMA_INVENTORY_ITEMS_SQL = """
CREATE TABLE IF NOT EXISTS inventory_items (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    internal_id INTEGER NOT NULL UNIQUE,
    omtis_id TEXT,
    item_name TEXT,
    omtis_name_detail TEXT,
    producer TEXT,
    region TEXT,
    country TEXT,
    vintage TEXT,
    type TEXT,
    is_inactive INTEGER,
    price REAL NOT NULL DEFAULT 0,
    currency TEXT NOT NULL DEFAULT 'HKD',
    trade_price REAL NOT NULL DEFAULT 0,
    retail_price REAL NOT NULL DEFAULT 0,
    average_cost REAL NOT NULL DEFAULT 0,
    total_value REAL NOT NULL DEFAULT 0,
    total_quantity REAL NOT NULL DEFAULT 0,
    location_count INTEGER NOT NULL DEFAULT 0,
    created_date TEXT,
    last_modified_date TEXT,
    moved_last_12_months INTEGER NOT NULL DEFAULT 0,
    last_movement_date TEXT,
    movement_checked_at TEXT,
    document TEXT NOT NULL,
    raw_data TEXT,
    first_synced TEXT NOT NULL,
    last_synced TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_inventory_items_omtis_id ON inventory_items (omtis_id);
CREATE INDEX IF NOT EXISTS idx_inventory_items_vintage_type ON inventory_items (vintage, type);
CREATE INDEX IF NOT EXISTS idx_inventory_items_country_region ON inventory_items (country, region);
CREATE INDEX IF NOT EXISTS idx_inventory_items_total_quantity ON inventory_items (total_quantity);
CREATE INDEX IF NOT EXISTS idx_inventory_items_last_synced ON inventory_items (last_synced);
"""

SCHEMA_SALES_ORDERS_SQL = """
CREATE TABLE IF NOT EXISTS sales_orders (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    internal_id INTEGER NOT NULL UNIQUE,
    transaction_number TEXT,
    customer_id TEXT,
    customer_name TEXT,
    order_status TEXT,
    order_date TEXT,
    currency TEXT,
    subtotal REAL NOT NULL DEFAULT 0,
    total_amount REAL NOT NULL DEFAULT 0,
    item_count INTEGER NOT NULL DEFAULT 0,
    last_modified_date TEXT,
    document TEXT NOT NULL,
    raw_data TEXT,
    first_synced TEXT NOT NULL,
    last_synced TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_sales_orders_order_date ON sales_orders (order_date);
CREATE INDEX IF NOT EXISTS idx_sales_orders_customer_name ON sales_orders (customer_name);
CREATE INDEX IF NOT EXISTS idx_sales_orders_status ON sales_orders (order_status);
"""

SCHEMA_SYNC_RUNS_SQL = """
CREATE TABLE IF NOT EXISTS sync_runs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    mode TEXT NOT NULL,
    status TEXT NOT NULL,
    started_at TEXT NOT NULL,
    finished_at TEXT,
    processed INTEGER NOT NULL DEFAULT 0,
    saved INTEGER NOT NULL DEFAULT 0,
    skipped INTEGER NOT NULL DEFAULT 0,
    failed INTEGER NOT NULL DEFAULT 0,
    parameters TEXT,
    errors TEXT,
    summary TEXT,
    log_path TEXT
);

CREATE INDEX IF NOT EXISTS idx_sync_runs_started_at ON sync_runs (started_at);
"""
