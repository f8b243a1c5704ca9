"""Utility modules for receipt processing.

Image quality scoring, OCR preprocessing, quantity/unit parsing and logging
configuration.
"""

from .image_preprocessor import ImagePreprocessor
from .image_quality import ImageQualityAnalyzer
from .quantity_parser import QuantityUnitParser

__all__ = [
    'ImagePreprocessor',
    'ImageQualityAnalyzer',
    'QuantityUnitParser',
]
