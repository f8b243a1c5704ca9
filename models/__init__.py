"""Data models for receipt ingestion."""

from .units import Unit, ParsedQuantity, PackagingInfo
from .parsed_receipt import ParsedReceipt, ParsedReceiptItem, DISCOUNT_TAG, MAX_NAME_LENGTH
from .receipt import (
    Receipt,
    ReceiptItem,
    ReceiptStatus,
    InvalidStatusTransition,
    UNKNOWN_STORE,
)
from .product import Product, ProductSuggestion
from .upload import (
    UploadOptions,
    ReceiptItemResult,
    ReceiptUploadResult,
    ConfirmedReceiptItem,
    ConfirmReceiptRequest,
    ConfirmReceiptResult,
)

__all__ = [
    'Unit', 'ParsedQuantity', 'PackagingInfo',
    'ParsedReceipt', 'ParsedReceiptItem', 'DISCOUNT_TAG', 'MAX_NAME_LENGTH',
    'Receipt', 'ReceiptItem', 'ReceiptStatus', 'InvalidStatusTransition', 'UNKNOWN_STORE',
    'Product', 'ProductSuggestion',
    'UploadOptions', 'ReceiptItemResult', 'ReceiptUploadResult',
    'ConfirmedReceiptItem', 'ConfirmReceiptRequest', 'ConfirmReceiptResult',
]
