"""
Backfill order numbers on a legacy database
- Adds 'order_number' column to orders if missing
- Fills NULL order numbers as 'AGF-<year of created_at>-<id zero-padded to 6>'
- Adds a unique index on order_number

Usage:
  python -m migration.backfill_order_numbers --db path/to/agrofix.db
"""
import argparse
import os
import sqlite3
from contextlib import closing
from datetime import datetime


def has_column(conn: sqlite3.Connection, table: str, column: str) -> bool:
    cur = conn.execute(f"PRAGMA table_info({table})")
    return any(row[1] == column for row in cur.fetchall())


def order_number_for(order_id: int, created_at) -> str:
    year = datetime.now().year
    if created_at:
        try:
            year = datetime.fromisoformat(str(created_at).replace("Z", "+00:00")).year
        except ValueError:
            pass
    return f"AGF-{year}-{order_id:06d}"


def migrate(db_path: str) -> int:
    """Returns the number of orders that received a number."""
    if db_path == ":memory:":
        raise ValueError("Use a file-backed DB for migration script")

    if not os.path.exists(db_path):
        raise FileNotFoundError(db_path)

    with closing(sqlite3.connect(db_path)) as conn:
        conn.execute("PRAGMA foreign_keys=ON")

        tables = {r[0] for r in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
        if "orders" not in tables:
            raise RuntimeError("orders table missing; cannot migrate")

        if not has_column(conn, "orders", "order_number"):
            conn.execute("ALTER TABLE orders ADD COLUMN order_number TEXT")

        rows = conn.execute("SELECT id, created_at FROM orders WHERE order_number IS NULL ORDER BY id").fetchall()
        for order_id, created_at in rows:
            conn.execute(
                "UPDATE orders SET order_number = ? WHERE id = ?",
                (order_number_for(order_id, created_at), order_id),
            )
        conn.execute("CREATE UNIQUE INDEX IF NOT EXISTS ix_orders_order_number_unique ON orders (order_number)")
        conn.commit()
        return len(rows)


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--db", required=True, help="Path to SQLite database file")
    args = parser.parse_args()
    count = migrate(args.db)
    print(f"backfilled {count} order number(s)")

if __name__ == "__main__":
    main()
