SCHEMA_SQL = """
PRAGMA foreign_keys = ON;

CREATE TABLE IF NOT EXISTS users (
  id                TEXT PRIMARY KEY,               -- UUID string
  user_id           TEXT NOT NULL UNIQUE,           -- on-chain address
  farcaster_profile TEXT,                           -- JSON object or NULL
  purchase_history  TEXT NOT NULL DEFAULT '[]',     -- JSON array
  interaction_log   TEXT NOT NULL DEFAULT '[]',     -- JSON array, last 50
  preferences       TEXT NOT NULL DEFAULT '{}',     -- JSON object
  created_at        TEXT NOT NULL DEFAULT (datetime('now')),
  updated_at        TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS products (
  id          TEXT PRIMARY KEY,
  product_id  TEXT NOT NULL UNIQUE,
  name        TEXT NOT NULL,
  description TEXT NOT NULL,
  price       REAL NOT NULL,
  category    TEXT NOT NULL,
  image_url   TEXT,
  store_id    TEXT,
  metadata    TEXT NOT NULL DEFAULT '{}',           -- tags, brand, sku, inventory, featured
  created_at  TEXT NOT NULL DEFAULT (datetime('now')),
  updated_at  TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_products_category ON products(category);
CREATE INDEX IF NOT EXISTS idx_products_store ON products(store_id);

-- product_id is free text here ('store_scan' etc), so no foreign key
CREATE TABLE IF NOT EXISTS interactions (
  id             TEXT PRIMARY KEY,
  interaction_id TEXT NOT NULL UNIQUE,
  user_id        TEXT NOT NULL,
  product_id     TEXT NOT NULL,
  timestamp      TEXT NOT NULL,                     -- ISO-8601 UTC
  type           TEXT NOT NULL,                     -- view | like | scan | purchase | ...
  location       TEXT,
  metadata       TEXT NOT NULL DEFAULT '{}',
  created_at     TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_interactions_user_ts ON interactions(user_id, timestamp);
CREATE INDEX IF NOT EXISTS idx_interactions_product ON interactions(product_id);
CREATE INDEX IF NOT EXISTS idx_interactions_ts ON interactions(timestamp);

CREATE TABLE IF NOT EXISTS purchases (
  id             TEXT PRIMARY KEY,
  purchase_id    TEXT NOT NULL UNIQUE,
  user_id        TEXT NOT NULL,
  product_id     TEXT NOT NULL,
  quantity       INTEGER NOT NULL DEFAULT 1,
  total_amount   REAL NOT NULL,
  payment_method TEXT NOT NULL,                     -- cash | card | crypto
  location       TEXT,
  timestamp      TEXT NOT NULL,
  created_at     TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_purchases_user_ts ON purchases(user_id, timestamp);

CREATE TABLE IF NOT EXISTS offers (
  id          TEXT PRIMARY KEY,
  offer_id    TEXT NOT NULL UNIQUE,
  user_id     TEXT NOT NULL,
  product_id  TEXT,
  type        TEXT NOT NULL,                        -- discount | bogo | free_shipping | loyalty_points
  title       TEXT NOT NULL,
  description TEXT NOT NULL,
  discount    REAL NOT NULL DEFAULT 0,
  valid_until TEXT NOT NULL,
  status      TEXT NOT NULL DEFAULT 'sent',         -- sent | viewed | redeemed | expired
  metadata    TEXT NOT NULL DEFAULT '{}',
  redeemed_at TEXT,
  created_at  TEXT NOT NULL DEFAULT (datetime('now')),
  updated_at  TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_offers_user_status ON offers(user_id, status);

-- served recommendations (one row per recommended product)

CREATE TABLE IF NOT EXISTS recommendations (
  id                INTEGER PRIMARY KEY AUTOINCREMENT,
  recommendation_id TEXT NOT NULL UNIQUE,
  user_id           TEXT NOT NULL,
  product_id        TEXT NOT NULL,
  score             REAL NOT NULL,
  reason            TEXT NOT NULL,
  context           TEXT NOT NULL,                  -- in_store | follow_up | display
  engine            TEXT NOT NULL,                  -- llm | fallback
  interacted        INTEGER NOT NULL DEFAULT 0,
  created_at        TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_recommendations_user_product
ON recommendations(user_id, product_id);

CREATE INDEX IF NOT EXISTS idx_recommendations_created
ON recommendations(created_at);
"""

JSON_COLUMNS = {
    "farcaster_profile",
    "purchase_history",
    "interaction_log",
    "preferences",
    "metadata",
}
