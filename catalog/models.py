"""
catalog/models.py -- Domain dataclass for the product catalog.

Pure data container. Persistence and the search filter live in
catalog/store.py.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class Product:
    """A product listed in the shop.

    price is stored in the smallest currency unit (VND has no minor unit, so
    this is simply dong). id is None before the record is written.
    """

    name: str
    price: int
    description: str = ""
    id: Optional[int] = None
    created_at: str = ""  # ISO 8601, set by store on insert
