import json
import logging
import os
from datetime import date, datetime
from typing import List, Optional

from pydantic import ValidationError

from models.product import Product
from models.receipt import Receipt
from models.units import Unit
from storage.base import ReceiptStore, StockWriter
from storage.memory_storage import InMemoryCatalog

logger = logging.getLogger(__name__)


class JsonReceiptStore(ReceiptStore):
    """Receipt store keeping one JSON file per receipt."""

    def __init__(self, data_dir: str = "data"):
        self.data_dir = data_dir
        self.receipts_dir = os.path.join(data_dir, "receipts")
        self._ensure_data_dirs()

    def _ensure_data_dirs(self) -> None:
        """Ensure that all required directories exist."""
        os.makedirs(self.receipts_dir, exist_ok=True)

    def _get_receipt_path(self, receipt_id: str) -> str:
        """Get the file path for a specific receipt's data."""
        return os.path.join(self.receipts_dir, f"{receipt_id}.json")

    def _read(self, file_path: str) -> Optional[Receipt]:
        with open(file_path, "r", encoding="utf-8") as f:
            try:
                return Receipt.model_validate(json.load(f))
            except (json.JSONDecodeError, ValidationError) as e:
                logger.error(f"Skipping unreadable receipt file {file_path}: {e}")
                return None

    def save(self, receipt: Receipt) -> None:
        """Save a receipt to storage."""
        file_path = self._get_receipt_path(receipt.id)
        tmp_path = f"{file_path}.tmp"

        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(receipt.model_dump(mode="json"), f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, file_path)
        finally:
            # Only left behind when the write or the rename failed
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
        logger.debug(f"Saved receipt {receipt.id} to {file_path}")

    def find_by_id(self, receipt_id: str, user_id: str) -> Optional[Receipt]:
        """Retrieve a receipt by ID if it belongs to the user."""
        file_path = self._get_receipt_path(receipt_id)

        if not os.path.exists(file_path):
            return None

        receipt = self._read(file_path)
        if receipt is None or receipt.user_id != user_id:
            return None
        return receipt

    def find_by_user(self, user_id: str, limit: int = 50) -> List[Receipt]:
        """List a user's receipts, newest first."""
        receipts = []
        for filename in os.listdir(self.receipts_dir):
            if not filename.endswith(".json"):
                continue
            receipt = self._read(os.path.join(self.receipts_dir, filename))
            if receipt is not None and receipt.user_id == user_id:
                receipts.append(receipt)

        receipts.sort(key=lambda r: r.created_at, reverse=True)
        return receipts[:limit]

    def delete(self, receipt_id: str) -> None:
        """Delete a receipt by ID."""
        file_path = self._get_receipt_path(receipt_id)

        if os.path.exists(file_path):
            os.remove(file_path)


def load_catalog(path: str) -> InMemoryCatalog:
    """Load a product catalog from a JSON list of products; a missing file gives an empty catalog."""
    if not os.path.exists(path):
        logger.warning(f"Catalog file {path} not found, matching disabled")
        return InMemoryCatalog()

    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    return InMemoryCatalog(Product.model_validate(entry) for entry in data)


class JsonStockWriter(StockWriter):
    """Appends stock additions to a JSON-lines file."""

    def __init__(self, data_dir: str = "data"):
        os.makedirs(data_dir, exist_ok=True)
        self.path = os.path.join(data_dir, "stock.jsonl")

    def add(self, product_id: str, quantity: float, unit: Unit,
            expiration_date: Optional[date], source_receipt_id: str) -> None:
        entry = {
            "product_id": product_id,
            "quantity": quantity,
            "unit": unit.value,
            "expiration_date": expiration_date.isoformat() if expiration_date else None,
            "source_receipt_id": source_receipt_id,
            "added_at": datetime.now().isoformat(),
        }
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry, ensure_ascii=False) + "\n")
