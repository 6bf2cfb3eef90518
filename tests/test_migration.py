import os
import sqlite3
import tempfile

import pytest

from migration.backfill_order_numbers import migrate


def create_legacy_db(path: str):
    conn = sqlite3.connect(path)
    try:
        conn.execute(
            "CREATE TABLE orders (id INTEGER PRIMARY KEY, buyer_name TEXT NOT NULL, total_amount INTEGER NOT NULL, created_at TEXT)"
        )
        # Seed data
        conn.execute(
            "INSERT INTO orders (buyer_name, total_amount, created_at) VALUES "
            "('John Doe', 390, '2024-03-01T10:00:00'), ('Jane Smith', 480, '2025-05-02T08:30:00+00:00')"
        )
        conn.commit()
    finally:
        conn.close()


def test_migration_adds_and_backfills_order_numbers():
    with tempfile.TemporaryDirectory() as tmp:
        db_path = os.path.join(tmp, "test.db")
        create_legacy_db(db_path)

        # Run migration
        assert migrate(db_path) == 2

        # Validate
        conn = sqlite3.connect(db_path)
        try:
            cur = conn.execute("PRAGMA table_info(orders)")
            cols = [r[1] for r in cur.fetchall()]
            assert "order_number" in cols

            cur = conn.execute("SELECT order_number FROM orders ORDER BY id")
            rows = cur.fetchall()
            assert rows[0][0] == "AGF-2024-000001"
            assert rows[1][0] == "AGF-2025-000002"

            with pytest.raises(sqlite3.IntegrityError):
                conn.execute("UPDATE orders SET order_number = 'AGF-2024-000001' WHERE id = 2")
        finally:
            conn.close()

        # second run has nothing left to do
        assert migrate(db_path) == 0


def test_migration_rejects_memory_and_missing_files():
    with pytest.raises(ValueError):
        migrate(":memory:")
    with pytest.raises(FileNotFoundError):
        migrate("/nonexistent/agrofix.db")
