"""Storefront content managed from the dashboard: products, testimonials, bot instructions.

Writes are single-row and last-write-wins. Every write commits before
returning.
"""

from __future__ import annotations

import logging

import psycopg
from psycopg.types.json import Jsonb

from sienna.core.utils import ConflictError, NotFoundError, to_int
from sienna.storage.database import Database

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10
MAIN_INSTRUCTION_ID = 1

PRODUCT_COLUMNS = (
    "image_url", "product_name", "description", "price", "url", "formula",
    "made_for", "performance", "how_to_use", "related_products", "image_urls",
)
PRODUCT_UPDATE_COLUMNS = ("image_url", "product_name", "description", "price", "url", "formula")


def _price(value) -> str | None:
    return None if value is None else str(value)


class ProductCatalog:
    """Product rows shown in the storefront and referenced by the bot."""

    def __init__(self, db: Database):
        self.db = db

    def list(self, search: str = "", page: int = 1, limit: int = DEFAULT_PAGE_SIZE) -> dict:
        pattern = f"%{search or ''}%"
        offset = (max(page, 1) - 1) * limit
        rows = self.db.execute(
            """
            SELECT product_id, image_url AS image, product_name AS name,
                   description AS "desc", price, url
            FROM products
            WHERE product_name ILIKE %s
            ORDER BY created_at DESC
            LIMIT %s OFFSET %s
            """,
            (pattern, limit, offset),
        )
        total = self.db.execute_one(
            "SELECT COUNT(*) AS count FROM products WHERE product_name ILIKE %s", (pattern,),
        )
        return {"products": rows, "total": to_int(total["count"] if total else 0)}

    def get(self, product_id: int) -> dict:
        row = self.db.execute_one("SELECT * FROM products WHERE product_id = %s", (product_id,))
        if not row:
            raise NotFoundError("Product not found")
        return row

    def _name_taken(self, name: str, exclude_id: int | None = None) -> bool:
        row = self.db.execute_one(
            """SELECT product_id FROM products
               WHERE LOWER(product_name) = LOWER(%s)
                 AND (%s::int IS NULL OR product_id != %s)""",
            (name, exclude_id, exclude_id),
        )
        return row is not None

    def create(self, fields: dict) -> dict:
        """Insert a product. Names are unique regardless of case."""
        name = fields["product_name"]
        if self._name_taken(name):
            self.db.rollback()
            raise ConflictError(f"A product named {name!r} already exists")

        values = dict(fields)
        values["price"] = _price(values.get("price"))
        if values.get("image_urls") is not None:
            values["image_urls"] = Jsonb(values["image_urls"])
        try:
            row = self.db.execute_one(
                f"""
                INSERT INTO products ({", ".join(PRODUCT_COLUMNS)})
                VALUES ({", ".join(["%s"] * len(PRODUCT_COLUMNS))})
                RETURNING *
                """,
                tuple(values.get(c) for c in PRODUCT_COLUMNS),
            )
            self.db.commit()
        except psycopg.errors.UniqueViolation as e:
            self.db.rollback()
            raise ConflictError(f"A product named {name!r} already exists") from e

        logger.info("Created product %s (id=%s)", name, row["product_id"])
        return row

    def update(self, product_id: int, fields: dict) -> dict:
        values = dict(fields)
        values["price"] = _price(values.get("price"))
        try:
            row = self.db.execute_one(
                f"""
                UPDATE products
                SET {", ".join(f"{c} = %s" for c in PRODUCT_UPDATE_COLUMNS)}
                WHERE product_id = %s
                RETURNING *
                """,
                (*(values.get(c) for c in PRODUCT_UPDATE_COLUMNS), product_id),
            )
            if not row:
                self.db.rollback()
                raise NotFoundError("Product not found for update")
            self.db.commit()
        except psycopg.errors.UniqueViolation as e:
            self.db.rollback()
            raise ConflictError(f"A product named {values['product_name']!r} already exists") from e
        return row

    def delete(self, product_id: int) -> dict:
        row = self.db.execute_one(
            "DELETE FROM products WHERE product_id = %s RETURNING *", (product_id,),
        )
        if not row:
            self.db.rollback()
            raise NotFoundError("Product not found for deletion")
        self.db.commit()
        logger.info("Deleted product %s", product_id)
        return row


class Testimonials:
    def __init__(self, db: Database):
        self.db = db

    def list(self) -> list[dict]:
        return self.db.execute("SELECT * FROM testimonials ORDER BY testimonial_id")

    def create(self, name: str, testimonial: str) -> dict:
        row = self.db.execute_one(
            "INSERT INTO testimonials (name, testimonial) VALUES (%s, %s) RETURNING *",
            (name, testimonial),
        )
        self.db.commit()
        return row

    def update(self, testimonial_id: int, name: str, testimonial: str) -> dict:
        row = self.db.execute_one(
            """UPDATE testimonials SET name = %s, testimonial = %s
               WHERE testimonial_id = %s RETURNING *""",
            (name, testimonial, testimonial_id),
        )
        if not row:
            self.db.rollback()
            raise NotFoundError("Testimonial not found")
        self.db.commit()
        return row

    def delete(self, testimonial_id: int) -> None:
        row = self.db.execute_one(
            "DELETE FROM testimonials WHERE testimonial_id = %s RETURNING testimonial_id",
            (testimonial_id,),
        )
        if not row:
            self.db.rollback()
            raise NotFoundError("Testimonial not found")
        self.db.commit()


class BotInstructions:
    """The system prompt the chatbot runs with. Row 1 is the live one."""

    def __init__(self, db: Database):
        self.db = db

    def get(self, instruction_id: int = MAIN_INSTRUCTION_ID) -> dict:
        row = self.db.execute_one(
            "SELECT * FROM bot_instructions WHERE instruction_id = %s", (instruction_id,),
        )
        if not row:
            raise NotFoundError("Bot instructions not found")
        return row

    def update(self, instruction_id: int, instruction_text: str, category: str | None) -> dict:
        row = self.db.execute_one(
            """UPDATE bot_instructions
               SET instruction_text = %s, category = %s, updated_at = NOW()
               WHERE instruction_id = %s
               RETURNING *""",
            (instruction_text, category, instruction_id),
        )
        if not row:
            self.db.rollback()
            raise NotFoundError("Bot instructions not found for update")
        self.db.commit()
        logger.info("Updated bot instructions %s", instruction_id)
        return row
