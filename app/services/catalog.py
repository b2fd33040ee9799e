"""Read-side catalog snapshot used by the reporting services.

ORM ``Product``/``ProductOption`` rows satisfy the same attribute shape, so
the reports accept either these dataclasses or loaded models.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Hashable, Iterable, Optional

from app.services.results import ZERO

DELETED_ITEM_LABEL = "Deleted item"


@dataclass
class CatalogOption:
    id: Hashable
    name: str
    sku: str = ""
    stock: int = 0
    cost_of_goods: Decimal = ZERO
    recommended_price: Optional[Decimal] = None


@dataclass
class CatalogProduct:
    id: Hashable
    name: str
    options: list[CatalogOption] = field(default_factory=list)
    image_url: str = ""
    base_cost_cny: Decimal = ZERO


class CatalogIndex:
    """Lookup of products and options by id.

    Sales and purchases hold weak references; a miss means the product or
    option was deleted and the caller shows a placeholder.
    """

    def __init__(self, products: Iterable):
        self.products = list(products)
        self._products = {p.id: p for p in self.products}
        self._options = {
            (p.id, o.id): o for p in self.products for o in (p.options or [])
        }

    def product(self, product_id) -> Optional[object]:
        return self._products.get(product_id)

    def option(self, product_id, option_id) -> Optional[object]:
        return self._options.get((product_id, option_id))

    def product_name(self, product_id) -> str:
        p = self._products.get(product_id)
        return p.name if p is not None else DELETED_ITEM_LABEL

    def option_name(self, product_id, option_id) -> str:
        o = self._options.get((product_id, option_id))
        return o.name if o is not None else DELETED_ITEM_LABEL

    def iter_options(self):
        for p in self.products:
            for o in p.options or []:
                yield p, o
