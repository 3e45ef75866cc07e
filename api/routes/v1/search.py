"""
api/routes/v1/search.py -- Product search and catalog endpoints.

Routes:
  GET  /api/v1/search?q=&page=&limit=  -- case-insensitive name search (public)
  POST /api/v1/products                -- create a product (admin only)
  GET  /api/v1/products/{product_id}   -- single product (public)

Search is a plain substring filter. A query must carry at least two
characters that are not LIKE wildcards; "%%" or "__" would otherwise match
the whole catalog.
"""

import logging
import math

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from api.models import ProductCreate, ProductOut, SearchResponse
from auth.dependencies import require_admin
from auth.models import Claims
from catalog.models import Product
from catalog.store import ProductStore

logger = logging.getLogger("runshop.api")

router = APIRouter()

_MIN_QUERY_LENGTH = 2
_WILDCARDS = frozenset("%_*")


def _catalog(request: Request) -> ProductStore:
    return request.app.state.catalog


def _check_query(q: str | None) -> str:
    query = (q or "").strip()
    if len(query) < _MIN_QUERY_LENGTH:
        raise HTTPException(status_code=400, detail=f"Search query must be at least {_MIN_QUERY_LENGTH} characters.")
    if all(ch in _WILDCARDS for ch in query):
        raise HTTPException(status_code=400, detail="Search query cannot consist of wildcards only.")
    return query


@router.get("/search", response_model=SearchResponse)
def search_products(
    request: Request,
    q: str | None = Query(default=None, max_length=100),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=8, ge=1, le=50),
) -> SearchResponse:
    query = _check_query(q)
    items, total = _catalog(request).search(query, page=page, limit=limit)
    return SearchResponse(
        items=[ProductOut.from_product(p) for p in items],
        total_items=total,
        total_pages=math.ceil(total / limit) if total else 0,
        current_page=page,
    )


@router.post("/products", response_model=ProductOut, status_code=201)
def create_product(
    request: Request,
    body: ProductCreate,
    claims: Claims = Depends(require_admin),
) -> ProductOut:
    """Add a product to the catalog. Admin only."""
    store = _catalog(request)
    product_id = store.create_product(Product(name=body.name, price=body.price, description=body.description))
    logger.info("Product %d created by %s", product_id, claims.username)
    return ProductOut.from_product(store.get_product(product_id))


@router.get("/products/{product_id}", response_model=ProductOut)
def get_product(request: Request, product_id: int) -> ProductOut:
    product = _catalog(request).get_product(product_id)
    if product is None:
        raise HTTPException(status_code=404, detail="Product not found.")
    return ProductOut.from_product(product)
