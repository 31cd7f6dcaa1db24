"""Low-stock alert decisions.

Delivery, permission handling and deduplication belong to whoever
receives the alert; this module only decides whether one should fire.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from .models import Product, StockStatus

ALERT_TITLE = "Low Stock Alert"


@dataclass
class LowStockAlert:
    identifier: str
    title: str
    body: str


def should_alert(product: Product) -> bool:
    """True when the product's stock is at or below its minimum."""
    return product.stock_status is StockStatus.LOW


def alert_identifier(product: Product, when: datetime) -> str:
    return f"low-stock-{product.id}-{int(when.timestamp())}"


def low_stock_message(product: Product, when: datetime) -> LowStockAlert:
    return LowStockAlert(
        identifier=alert_identifier(product, when),
        title=ALERT_TITLE,
        body=f"{product.name} is down to {product.current_stock} units.",
    )
