"""In-memory implementations of the storage interfaces."""

import logging
import threading
from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, List, Optional

from models.product import Product
from models.receipt import Receipt
from models.units import Unit
from storage.base import CatalogLookup, ReceiptStore, StockWriter
from utils.quantity_parser import QuantityUnitParser

logger = logging.getLogger(__name__)


class InMemoryReceiptStore(ReceiptStore):

    def __init__(self):
        self._receipts: Dict[str, Receipt] = {}
        self._lock = threading.Lock()

    def save(self, receipt: Receipt) -> None:
        with self._lock:
            self._receipts[receipt.id] = receipt.model_copy(deep=True)

    def find_by_user(self, user_id: str, limit: int = 50) -> List[Receipt]:
        with self._lock:
            receipts = [r.model_copy(deep=True) for r in self._receipts.values() if r.user_id == user_id]
        receipts.sort(key=lambda r: r.created_at, reverse=True)
        return receipts[:limit]

    def find_by_id(self, receipt_id: str, user_id: str) -> Optional[Receipt]:
        with self._lock:
            receipt = self._receipts.get(receipt_id)
            if receipt is None or receipt.user_id != user_id:
                return None
            return receipt.model_copy(deep=True)


class InMemoryCatalog(CatalogLookup):
    """Catalog held in a dict; packaging strings are parsed as products are added."""

    def __init__(self, products: Optional[Iterable[Product]] = None,
                 quantity_parser: Optional[QuantityUnitParser] = None):
        self._products: Dict[str, Product] = {}
        self.quantity_parser = quantity_parser or QuantityUnitParser()
        for product in products or ():
            self.add(product)

    def add(self, product: Product) -> None:
        if product.packaging is None and product.quantity:
            packaging = self.quantity_parser.analyze_quantity(product.quantity)
            if packaging is None:
                logger.debug(f"Unreadable packaging '{product.quantity}' for product {product.id}")
            else:
                product = product.model_copy(update={'packaging': packaging})
        self._products[product.id] = product

    def find_by_barcode(self, code: str) -> Optional[Product]:
        for product in self._products.values():
            if product.barcode and product.barcode == code:
                return product
        return None

    def search_by_name(self, name: str) -> List[Product]:
        needle = name.lower().strip()
        return [p for p in self._products.values() if needle in p.name.lower()]


@dataclass(frozen=True)
class StockEntry:
    product_id: str
    quantity: float
    unit: Unit
    expiration_date: Optional[date]
    source_receipt_id: str


class InMemoryStockWriter(StockWriter):
    """Records stock additions in a list."""

    def __init__(self):
        self.entries: List[StockEntry] = []
        self._lock = threading.Lock()

    def add(self, product_id: str, quantity: float, unit: Unit,
            expiration_date: Optional[date], source_receipt_id: str) -> None:
        entry = StockEntry(product_id, quantity, unit, expiration_date, source_receipt_id)
        with self._lock:
            self.entries.append(entry)
        logger.debug(f"Stock +{quantity:g} {unit.value} of {product_id} from receipt {source_receipt_id}")
