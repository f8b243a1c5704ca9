"""Request and result models exposed to callers of the receipt service."""

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from models.product import ProductSuggestion
from models.receipt import ReceiptItem
from models.units import Unit


class UploadOptions(BaseModel):
    user_id: str = Field(..., min_length=1)
    household_id: Optional[str] = None


class ReceiptItemResult(BaseModel):
    """One parsed item with its best catalog suggestion."""

    id: str
    product_name: str
    quantity: float
    unit: Unit
    unit_price: Optional[float] = None
    total_price: float
    discount: Optional[float] = None
    confidence: float
    needs_review: bool = False
    suggested_product: Optional[ProductSuggestion] = None
    suggestions: List[ProductSuggestion] = Field(default_factory=list)

    @classmethod
    def from_item(cls, item: ReceiptItem, suggestions: List[ProductSuggestion]) -> 'ReceiptItemResult':
        return cls(
            id=item.id,
            product_name=item.product_name,
            quantity=item.quantity,
            unit=item.unit,
            unit_price=item.unit_price,
            total_price=item.total_price,
            discount=item.discount,
            confidence=item.confidence,
            needs_review=item.needs_review,
            suggested_product=suggestions[0] if suggestions else None,
            suggestions=suggestions,
        )


class ReceiptUploadResult(BaseModel):
    receipt_id: str
    store_name: str
    receipt_date: Optional[datetime] = None
    total_amount: Optional[float] = None
    confidence: float = Field(..., ge=0.0, le=1.0)
    status: str
    items: List[ReceiptItemResult] = Field(default_factory=list)
    suggested_products: List[ProductSuggestion] = Field(default_factory=list)


class ConfirmedReceiptItem(BaseModel):
    receipt_item_id: str
    product_id: Optional[str] = None
    quantity: float = Field(..., gt=0)
    unit_price: Optional[float] = None
    expiration_date: Optional[date] = None
    confirmed: bool = True


class ConfirmReceiptRequest(BaseModel):
    receipt_id: str
    user_id: str
    confirmed_items: List[ConfirmedReceiptItem] = Field(default_factory=list)


class ConfirmReceiptResult(BaseModel):
    receipt_id: str
    confirmed_count: int
