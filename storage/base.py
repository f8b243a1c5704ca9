from abc import ABC, abstractmethod
from datetime import date
from typing import List, Optional

from models.product import Product
from models.receipt import Receipt
from models.units import Unit


class ReceiptStore(ABC):
    """Persistence of receipts and their items."""

    @abstractmethod
    def save(self, receipt: Receipt) -> None:
        """Insert or replace a receipt."""
        pass

    @abstractmethod
    def find_by_user(self, user_id: str, limit: int = 50) -> List[Receipt]:
        """Receipts of a user, newest first."""
        pass

    @abstractmethod
    def find_by_id(self, receipt_id: str, user_id: str) -> Optional[Receipt]:
        """A receipt owned by the user, or None."""
        pass


class CatalogLookup(ABC):
    """Read access to the product catalog."""

    @abstractmethod
    def find_by_barcode(self, code: str) -> Optional[Product]:
        pass

    @abstractmethod
    def search_by_name(self, name: str) -> List[Product]:
        """Products whose name matches; an empty name returns the whole catalog."""
        pass


class StockWriter(ABC):
    """Append-only inventory updates."""

    @abstractmethod
    def add(self, product_id: str, quantity: float, unit: Unit,
            expiration_date: Optional[date], source_receipt_id: str) -> None:
        pass
