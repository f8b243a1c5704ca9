"""Receipt pipeline services."""

from .consistency_validator import ConsistencyValidator
from .errors import (
    ConfirmationError,
    ImageValidationError,
    ReceiptError,
    ReceiptNotFoundError,
    ReceiptProcessingCancelled,
    StockWriteError,
)
from .product_matcher import CatalogIndex, ProductMatcher, normalize_product_name
from .receipt_analyzer import ReceiptAnalyzer
from .receipt_service import ReceiptService
from .text_normalizer import TextNormalizer

__all__ = [
    'ConsistencyValidator',
    'ConfirmationError',
    'ImageValidationError',
    'ReceiptError',
    'ReceiptNotFoundError',
    'ReceiptProcessingCancelled',
    'StockWriteError',
    'CatalogIndex',
    'ProductMatcher',
    'normalize_product_name',
    'ReceiptAnalyzer',
    'ReceiptService',
    'TextNormalizer',
]
