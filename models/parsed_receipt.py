"""
Transient parser output: items and metadata read from OCR text before
normalization and consistency checks. Never persisted as is.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from models.units import Unit

DISCOUNT_TAG = '(Réduction)'
MAX_NAME_LENGTH = 200


@dataclass
class ParsedReceiptItem:
    """
    A single line item as read by a store parser.
    """
    raw_text: str
    product_name: str
    total_price: float
    quantity: float = 1.0
    unit: Unit = Unit.PIECE
    unit_price: Optional[float] = None
    product_code: Optional[str] = None
    discount: Optional[float] = None
    confidence: float = 0.0
    line_number: int = 0
    needs_review: bool = False
    notes: List[str] = field(default_factory=list)

    @property
    def is_discount(self) -> bool:
        """Discount lines carry a negative price and the discount tag."""
        return self.total_price < 0 and DISCOUNT_TAG in self.product_name

    @property
    def base_name(self) -> str:
        """Product name without the discount tag."""
        return self.product_name.replace(DISCOUNT_TAG, '').strip()

    def flag(self, note: str) -> None:
        self.needs_review = True
        if note not in self.notes:
            self.notes.append(note)

    def to_dict(self) -> Dict[str, Any]:
        """Convert the item to a dictionary."""
        return {
            'raw_text': self.raw_text,
            'product_name': self.product_name,
            'quantity': self.quantity,
            'unit': self.unit.value,
            'unit_price': self.unit_price,
            'total_price': self.total_price,
            'product_code': self.product_code,
            'discount': self.discount,
            'confidence': self.confidence,
            'line_number': self.line_number,
            'needs_review': self.needs_review,
            'notes': list(self.notes),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ParsedReceiptItem':
        """Create a ParsedReceiptItem from a dictionary."""
        return cls(
            raw_text=data.get('raw_text', ''),
            product_name=data['product_name'],
            total_price=float(data['total_price']),
            quantity=float(data.get('quantity', 1.0)),
            unit=Unit(data.get('unit', Unit.PIECE.value)),
            unit_price=data.get('unit_price'),
            product_code=data.get('product_code'),
            discount=data.get('discount'),
            confidence=data.get('confidence', 0.0),
            line_number=data.get('line_number', 0),
            needs_review=data.get('needs_review', False),
            notes=list(data.get('notes', [])),
        )


@dataclass
class ParsedReceipt:
    """Store metadata and items extracted by one parser."""
    parser_name: str
    store_name: str
    items: List[ParsedReceiptItem] = field(default_factory=list)
    store_address: Optional[str] = None
    receipt_date: Optional[datetime] = None
    total_amount: Optional[float] = None
    confidence: float = 0.0
    raw_text: str = ''

    @property
    def items_total(self) -> float:
        return round(sum(item.total_price for item in self.items), 2)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'parser_name': self.parser_name,
            'store_name': self.store_name,
            'store_address': self.store_address,
            'receipt_date': self.receipt_date.isoformat() if self.receipt_date else None,
            'total_amount': self.total_amount,
            'confidence': self.confidence,
            'items': [item.to_dict() for item in self.items],
        }
