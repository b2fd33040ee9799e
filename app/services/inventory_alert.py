"""Stock status classification, inventory report and low-stock alerts."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Iterable, Optional

from app.config import get_settings
from app.services.catalog import CatalogIndex
from app.services.results import ZERO, to_krw


class StockStatus(str, Enum):
    OUT = "out"
    CRITICAL = "critical"
    LOW = "low"
    GOOD = "good"


class AlertLevel(str, Enum):
    WARNING = "warning"
    CRITICAL = "critical"


class InventorySort(str, Enum):
    NAME = "name"
    STOCK = "stock"
    VALUE = "value"


@dataclass
class InventoryRow:
    product_id: object
    product_name: str
    option_id: object
    option_name: str
    sku: str
    stock: int
    cost_of_goods: Decimal
    total_value: Decimal
    status: StockStatus

    def to_dict(self) -> dict:
        return {
            "product_id": str(self.product_id),
            "product_name": self.product_name,
            "option_id": str(self.option_id),
            "option_name": self.option_name,
            "sku": self.sku,
            "stock": self.stock,
            "cost_of_goods": to_krw(self.cost_of_goods),
            "total_value": to_krw(self.total_value),
            "status": self.status.value,
        }


@dataclass
class InventorySummary:
    option_count: int
    total_units: int
    total_value: Decimal
    low_stock_count: int
    out_of_stock_count: int


@dataclass
class StockAlert:
    """Alert for an option that needs restocking."""
    sku: str
    product_name: str
    option_name: str
    stock: int
    status: StockStatus
    level: AlertLevel
    message: str

    def to_dict(self) -> dict:
        return {
            "sku": self.sku,
            "product_name": self.product_name,
            "option_name": self.option_name,
            "stock": self.stock,
            "status": self.status.value,
            "level": self.level.value,
            "message": self.message,
        }


class InventoryAlertService:
    """Maps signed stock levels to statuses and builds the inventory view.

    Negative stock (oversold) is a valid state and reported as ``out``.
    """

    def __init__(
        self,
        low_threshold: Optional[int] = None,
        critical_threshold: Optional[int] = None,
    ):
        settings = get_settings()
        self.low_threshold = settings.low_stock_threshold if low_threshold is None else low_threshold
        self.critical_threshold = (
            settings.critical_stock_threshold if critical_threshold is None else critical_threshold
        )

    def classify(self, stock: int) -> StockStatus:
        if stock <= 0:
            return StockStatus.OUT
        if stock <= self.critical_threshold:
            return StockStatus.CRITICAL
        if stock <= self.low_threshold:
            return StockStatus.LOW
        return StockStatus.GOOD

    def rows(self, products: Iterable) -> list[InventoryRow]:
        index = products if isinstance(products, CatalogIndex) else CatalogIndex(products)
        rows = []
        for p, o in index.iter_options():
            cost = o.cost_of_goods if o.cost_of_goods is not None else ZERO
            rows.append(InventoryRow(
                product_id=p.id,
                product_name=p.name,
                option_id=o.id,
                option_name=o.name,
                sku=o.sku or "",
                stock=o.stock,
                cost_of_goods=cost,
                total_value=cost * o.stock,
                status=self.classify(o.stock),
            ))
        return rows

    def report(
        self,
        products: Iterable,
        status: Optional[StockStatus] = None,
        search: str = "",
        sort: InventorySort = InventorySort.NAME,
    ) -> list[InventoryRow]:
        """Filtered and sorted inventory rows.

        Filtering on ``low`` also returns ``critical`` rows.
        """
        term = search.strip().lower()
        rows = []
        for row in self.rows(products):
            if term and not (
                term in row.product_name.lower()
                or term in row.option_name.lower()
                or term in row.sku.lower()
            ):
                continue
            if status == StockStatus.LOW:
                if row.status not in (StockStatus.LOW, StockStatus.CRITICAL):
                    continue
            elif status is not None and row.status != status:
                continue
            rows.append(row)

        if sort == InventorySort.STOCK:
            rows.sort(key=lambda r: r.stock)
        elif sort == InventorySort.VALUE:
            rows.sort(key=lambda r: r.total_value, reverse=True)
        else:
            rows.sort(key=lambda r: r.product_name.lower())
        return rows

    def summarize(self, rows: list[InventoryRow]) -> InventorySummary:
        return InventorySummary(
            option_count=len(rows),
            total_units=sum(r.stock for r in rows),
            total_value=sum((r.total_value for r in rows), ZERO),
            low_stock_count=sum(
                1 for r in rows if r.status in (StockStatus.LOW, StockStatus.CRITICAL)
            ),
            out_of_stock_count=sum(1 for r in rows if r.status == StockStatus.OUT),
        )

    def check_stock_levels(self, products: Iterable) -> list[StockAlert]:
        """Alerts for every option not in ``good`` status, most severe first."""
        alerts = []
        for row in self.rows(products):
            if row.status == StockStatus.OUT:
                label = "OVERSOLD" if row.stock < 0 else "OUT OF STOCK"
                alerts.append(self._alert(
                    row, AlertLevel.CRITICAL,
                    f"{label}: {row.sku or row.option_name} has {row.stock} units",
                ))
            elif row.status == StockStatus.CRITICAL:
                alerts.append(self._alert(
                    row, AlertLevel.CRITICAL,
                    f"CRITICAL LOW: {row.sku or row.option_name} has only {row.stock} units "
                    f"(threshold: {self.critical_threshold})",
                ))
            elif row.status == StockStatus.LOW:
                alerts.append(self._alert(
                    row, AlertLevel.WARNING,
                    f"LOW STOCK: {row.sku or row.option_name} has {row.stock} units "
                    f"(threshold: {self.low_threshold})",
                ))

        priority = {StockStatus.OUT: 0, StockStatus.CRITICAL: 1, StockStatus.LOW: 2}
        alerts.sort(key=lambda a: (priority[a.status], a.stock))
        return alerts

    @staticmethod
    def _alert(row: InventoryRow, level: AlertLevel, message: str) -> StockAlert:
        return StockAlert(
            sku=row.sku,
            product_name=row.product_name,
            option_name=row.option_name,
            stock=row.stock,
            status=row.status,
            level=level,
            message=message,
        )
