"""
catalog/store.py -- SQLAlchemy-backed persistence for products and search.

Uses SQLAlchemy Core (not ORM) so the Product dataclass in catalog/models.py
remains the authoritative domain representation.

Search is a case-insensitive substring match on the product name -- no
ranking, no relevance scoring. LIKE wildcards in the query are escaped so
"%" and "_" match themselves rather than everything.

Pattern: Repository + Data Mapper. ProductStore is the repository;
_row_to_product is the mapper. Route handlers never touch SQL directly.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = ProductStore("sqlite:///runshop.db")
    product_id = store.create_product(Product(name="Trail Runner 2", price=1_290_000))
    items, total = store.search("runner", page=1, limit=8)
    store.close()
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, func, select
from sqlalchemy.engine import Engine

from catalog.models import Product
from core.database import make_engine

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_products = Table(
    "products",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("description", Text, nullable=False, server_default=""),
    Column("price", Integer, nullable=False),
    Column("created_at", String(32), nullable=False),
)

_LIKE_ESCAPE = "\\"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _escape_like(value: str) -> str:
    """Escape LIKE wildcards so user input is matched literally."""
    return (
        value.replace(_LIKE_ESCAPE, _LIKE_ESCAPE * 2)
        .replace("%", _LIKE_ESCAPE + "%")
        .replace("_", _LIKE_ESCAPE + "_")
    )


class ProductStore:
    """Repository for Product records."""

    def __init__(self, db_url: str) -> None:
        self.engine: Engine = make_engine(db_url)
        metadata.create_all(self.engine)

    def create_product(self, product: Product) -> int:
        """Insert a product and return its assigned id."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _products.insert().values(
                    name=product.name,
                    description=product.description,
                    price=product.price,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_product(self, product_id: int) -> Optional[Product]:
        with self.engine.connect() as conn:
            row = conn.execute(_products.select().where(_products.c.id == product_id)).fetchone()
        return _row_to_product(row) if row is not None else None

    def search(self, query: str, page: int = 1, limit: int = 8) -> tuple[list[Product], int]:
        """Return (one page of matching products, total match count).

        Matching is a case-insensitive substring test on the name, ordered by
        id so pagination is stable.
        """
        pattern = f"%{_escape_like(query.lower())}%"
        condition = func.lower(_products.c.name).like(pattern, escape=_LIKE_ESCAPE)
        with self.engine.connect() as conn:
            total = conn.execute(select(func.count()).select_from(_products).where(condition)).scalar() or 0
            rows = conn.execute(
                _products.select().where(condition).order_by(_products.c.id).offset((page - 1) * limit).limit(limit)
            ).fetchall()
        return [_row_to_product(r) for r in rows], total

    def close(self) -> None:
        self.engine.dispose()


def _row_to_product(row) -> Product:
    return Product(
        id=row.id,
        name=row.name,
        description=row.description or "",
        price=row.price,
        created_at=row.created_at,
    )
