SCHEMA_SQL = r"""
-- Potes (bulk containers of açaí)
CREATE TABLE IF NOT EXISTS containers (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  label TEXT NOT NULL,                    -- flavor
  total_ml REAL NOT NULL CHECK (total_ml > 0),
  remaining_ml REAL NOT NULL CHECK (remaining_ml >= 0),
  cost_basis REAL NOT NULL DEFAULT 0,     -- whole-container cost
  purchase_date TEXT NOT NULL,            -- ISO datetime (UTC)
  status TEXT NOT NULL DEFAULT 'ACTIVE',  -- ACTIVE / DEPLETED
  min_remaining_ml REAL NOT NULL DEFAULT 1000,
  created_at TEXT NOT NULL
);

-- Catalog (cup sizes / variants)
CREATE TABLE IF NOT EXISTS catalog_entries (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL UNIQUE,
  serving_ml REAL NOT NULL CHECK (serving_ml > 0),
  sale_price REAL NOT NULL,
  category TEXT NOT NULL DEFAULT 'Geral',
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL
);

-- Sales
CREATE TABLE IF NOT EXISTS sales (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  sale_ts TEXT NOT NULL,                  -- ISO datetime (UTC)
  catalog_entry_id INTEGER NOT NULL,
  quantity INTEGER NOT NULL,
  unit_price REAL NOT NULL,
  total_price REAL NOT NULL,
  total_cost REAL,                        -- NULL on legacy rows: derived from potes at read time
  ml_consumed REAL NOT NULL,
  notes TEXT,
  created_at TEXT NOT NULL,
  FOREIGN KEY (catalog_entry_id) REFERENCES catalog_entries(id)
);

-- Ordered (pote, ml) shares per sale.
-- container_id has no FK: deleting a pote orphans history instead of blocking.
CREATE TABLE IF NOT EXISTS sale_containers (
  sale_id INTEGER NOT NULL,
  position INTEGER NOT NULL,
  container_id INTEGER NOT NULL,
  volume_ml REAL NOT NULL,
  PRIMARY KEY (sale_id, position),
  FOREIGN KEY (sale_id) REFERENCES sales(id) ON DELETE CASCADE
);

-- Operating expenses
CREATE TABLE IF NOT EXISTS expenses (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  description TEXT NOT NULL,
  amount REAL NOT NULL,
  category TEXT NOT NULL DEFAULT 'Geral',
  expense_date TEXT NOT NULL,             -- ISO datetime (UTC)
  created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_sales_sale_ts ON sales(sale_ts);
CREATE INDEX IF NOT EXISTS idx_expenses_expense_date ON expenses(expense_date);
CREATE INDEX IF NOT EXISTS idx_sale_containers_container ON sale_containers(container_id);
"""
