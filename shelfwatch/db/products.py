"""Per-user product CRUD operations."""

from __future__ import annotations

import sqlite3
from datetime import date, datetime
from pathlib import Path

from ..models import ProductRecord
from .schema import ensure_schema


class ProductStore:
    """Manages the products table, keyed by (user_id, barcode)."""

    def __init__(self, db_path: str | Path = "~/.config/shelfwatch/products.db") -> None:
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = ensure_schema(self._db_path)
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def save_product(self, user_id: str, record: ProductRecord) -> None:
        """Insert or overwrite a product.

        Saving resets the notified flag, as a rescan starts a fresh record.

        Raises:
            ValueError: If the record has no expiry date.
        """
        if record.expiry_date is None:
            raise ValueError(
                f"期限日が未設定のため保存できません: {record.barcode}"
            )
        conn = self._get_conn()
        conn.execute(
            """INSERT OR REPLACE INTO products
               (user_id, barcode, product_name, expiry_date, expiry_type,
                added_at, notified)
               VALUES (?, ?, ?, ?, ?, ?, 0)""",
            (
                user_id,
                record.barcode,
                record.product_name or "",
                record.expiry_date.isoformat(),
                record.type,
                record.added_at.isoformat(),
            ),
        )
        conn.commit()

    def get_product(self, user_id: str, barcode: str) -> ProductRecord | None:
        conn = self._get_conn()
        row = conn.execute(
            "SELECT * FROM products WHERE user_id = ? AND barcode = ?",
            (user_id, barcode),
        ).fetchone()
        return _row_to_record(row) if row else None

    def list_products(self, user_id: str) -> list[ProductRecord]:
        """Return every product stored for the user, days_left unset."""
        conn = self._get_conn()
        rows = conn.execute(
            "SELECT * FROM products WHERE user_id = ? ORDER BY expiry_date",
            (user_id,),
        ).fetchall()
        return [_row_to_record(r) for r in rows]

    def rename_product(self, user_id: str, barcode: str, product_name: str) -> None:
        self._update(
            user_id,
            barcode,
            "product_name = ?",
            (product_name,),
        )

    def update_expiry(self, user_id: str, barcode: str, expiry_date: date) -> None:
        """Set a user-supplied expiry date; provenance becomes Manual."""
        self._update(
            user_id,
            barcode,
            "expiry_date = ?, expiry_type = 'Manual', notified = 0",
            (expiry_date.isoformat(),),
        )

    def mark_notified(self, user_id: str, barcode: str) -> None:
        self._update(user_id, barcode, "notified = 1", ())

    def delete_product(self, user_id: str, barcode: str) -> None:
        """Delete a product by barcode.

        Raises:
            KeyError: If the product does not exist.
        """
        conn = self._get_conn()
        cur = conn.execute(
            "DELETE FROM products WHERE user_id = ? AND barcode = ?",
            (user_id, barcode),
        )
        conn.commit()
        if cur.rowcount == 0:
            raise KeyError(barcode)

    def _update(
        self, user_id: str, barcode: str, assignments: str, params: tuple
    ) -> None:
        conn = self._get_conn()
        cur = conn.execute(
            f"""UPDATE products
                SET {assignments},
                    updated_at = datetime('now', 'localtime')
                WHERE user_id = ? AND barcode = ?""",
            (*params, user_id, barcode),
        )
        conn.commit()
        if cur.rowcount == 0:
            raise KeyError(barcode)


def _row_to_record(row: sqlite3.Row) -> ProductRecord:
    return ProductRecord(
        barcode=row["barcode"],
        expiry_date=date.fromisoformat(row["expiry_date"]),
        type=row["expiry_type"],
        product_name=row["product_name"],
        added_at=datetime.fromisoformat(row["added_at"]),
        notified=bool(row["notified"]),
    )
