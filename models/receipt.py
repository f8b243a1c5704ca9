"""Receipt model implementation."""

from datetime import date, datetime
from enum import Enum
from typing import List, Optional
from uuid import uuid4
import logging
import re

from pydantic import BaseModel, Field, field_validator, model_validator

from models.parsed_receipt import MAX_NAME_LENGTH
from models.units import Unit

logger = logging.getLogger(__name__)

UNKNOWN_STORE = "Magasin inconnu"


class ReceiptStatus(str, Enum):
    PROCESSING = "processing"
    PENDING = "pending"
    REVIEW = "review"
    CONFIRMED = "confirmed"
    ERROR = "error"


# Statuses only move forward; confirmed and error are terminal
ALLOWED_TRANSITIONS = {
    ReceiptStatus.PROCESSING: {ReceiptStatus.PENDING, ReceiptStatus.REVIEW, ReceiptStatus.ERROR},
    ReceiptStatus.PENDING: {ReceiptStatus.REVIEW, ReceiptStatus.CONFIRMED, ReceiptStatus.ERROR},
    ReceiptStatus.REVIEW: {ReceiptStatus.CONFIRMED, ReceiptStatus.ERROR},
    ReceiptStatus.CONFIRMED: set(),
    ReceiptStatus.ERROR: set(),
}

CONFIRMABLE_STATUSES = {ReceiptStatus.PENDING, ReceiptStatus.REVIEW}


class InvalidStatusTransition(ValueError):
    """Raised when a receipt status would move backwards or leave a terminal state."""

    def __init__(self, current: ReceiptStatus, target: ReceiptStatus):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move receipt from '{current.value}' to '{target.value}'")


def _new_id() -> str:
    return str(uuid4())


class ReceiptItem(BaseModel):
    """Model for individual receipt items with validation."""

    id: str = Field(default_factory=_new_id)
    raw_text: str = ''
    product_name: str = Field(..., min_length=1, max_length=MAX_NAME_LENGTH)
    quantity: float = Field(default=1.0, gt=0)
    unit: Unit = Unit.PIECE
    unit_price: Optional[float] = None
    total_price: float
    product_code: Optional[str] = None
    discount: Optional[float] = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    line_number: int = Field(default=0, ge=0)
    needs_review: bool = False
    notes: List[str] = Field(default_factory=list)

    # Set once, at confirmation
    product_id: Optional[str] = None
    confirmed_quantity: Optional[float] = None
    expiration_date: Optional[date] = None

    @field_validator('product_name')
    @classmethod
    def clean_name(cls, v):
        """Collapse whitespace in the product name."""
        v = ' '.join(v.split())
        if not v:
            raise ValueError('Product name cannot be blank')
        return v

    @field_validator('unit_price', 'total_price', 'discount')
    @classmethod
    def round_amounts(cls, v):
        """Monetary amounts keep two decimals."""
        if v is None:
            return v
        return round(v, 2)

    @property
    def is_linked(self) -> bool:
        return self.product_id is not None

    def link(self, product_id: str, quantity: float, expiration_date: Optional[date] = None) -> None:
        """Attach the confirmed catalog product."""
        if self.is_linked:
            raise ValueError(f"Receipt item {self.id} is already linked to product {self.product_id}")
        self.product_id = product_id
        self.confirmed_quantity = quantity
        self.expiration_date = expiration_date


class Receipt(BaseModel):
    """Persisted receipt with parsing results and confirmation audit fields."""

    id: str = Field(default_factory=_new_id)
    user_id: str
    household_id: Optional[str] = None

    store_name: str = Field(default=UNKNOWN_STORE, min_length=1, max_length=100)
    store_address: Optional[str] = None
    receipt_date: Optional[datetime] = None
    total_amount: Optional[float] = None

    raw_text: str = ''
    ocr_confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    parsing_confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    image_quality: float = Field(default=0.0, ge=0.0, le=1.0)
    parser_used: Optional[str] = None
    status: ReceiptStatus = ReceiptStatus.PROCESSING
    items: List[ReceiptItem] = Field(default_factory=list)
    validation_notes: List[str] = Field(default_factory=list)

    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)
    confirmed_at: Optional[datetime] = None
    confirmed_items_count: int = 0

    @field_validator('store_name')
    @classmethod
    def clean_store_name(cls, v):
        """Clean and validate store name."""
        v = ' '.join(v.split())
        v = re.sub(r'[^\w\s\-\'\.&]', '', v).strip()
        return v or UNKNOWN_STORE

    @field_validator('total_amount')
    @classmethod
    def round_total(cls, v):
        if v is None:
            return v
        return round(v, 2)

    @model_validator(mode='after')
    def check_line_order(self):
        """Items keep the order of the lines they were read from."""
        numbers = [item.line_number for item in self.items]
        if any(b <= a for a, b in zip(numbers, numbers[1:])):
            raise ValueError(f"Item line numbers must increase: {numbers}")
        return self

    @property
    def is_confirmable(self) -> bool:
        return self.status in CONFIRMABLE_STATUSES

    def transition_to(self, status: ReceiptStatus) -> None:
        """Advance the status, refusing regressions."""
        if status == self.status:
            return
        if status not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidStatusTransition(self.status, status)
        logger.debug(f"Receipt {self.id}: {self.status.value} -> {status.value}")
        self.status = status
        self.updated_at = datetime.now()

    def mark_confirmed(self, confirmed_count: int) -> None:
        self.transition_to(ReceiptStatus.CONFIRMED)
        self.confirmed_at = self.updated_at
        self.confirmed_items_count = confirmed_count

    def get_item(self, item_id: str) -> Optional[ReceiptItem]:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def add_validation_note(self, note: str) -> None:
        if note not in self.validation_notes:
            self.validation_notes.append(note)
