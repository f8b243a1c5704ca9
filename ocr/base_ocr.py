"""Base OCR engine interface."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Dict, List, Optional, Union

from PIL import Image

logger = logging.getLogger(__name__)

ImageInput = Union[bytes, Image.Image]


class OCREngineType(Enum):
    """Supported OCR engine types."""
    TESSERACT = "tesseract"


class PageSegmentationMode(IntEnum):
    """Tesseract page segmentation hints used by the variant strategies."""
    AUTO = 3
    SINGLE_BLOCK = 6
    SPARSE_TEXT = 11


@dataclass
class BoundingBox:
    left: int
    top: int
    right: int
    bottom: int

    def union(self, other: 'BoundingBox') -> 'BoundingBox':
        return BoundingBox(
            left=min(self.left, other.left),
            top=min(self.top, other.top),
            right=max(self.right, other.right),
            bottom=max(self.bottom, other.bottom),
        )

    def to_dict(self) -> Dict[str, int]:
        return {'left': self.left, 'top': self.top, 'right': self.right, 'bottom': self.bottom}


@dataclass
class OCRWord:
    text: str
    confidence: float
    bounding_box: BoundingBox


@dataclass
class OCRLine:
    """A recognised text line with the mean confidence of its words."""
    text: str
    confidence: float
    bounding_box: BoundingBox
    words: List[OCRWord] = field(default_factory=list)


@dataclass
class OCRResult:
    """Container for the OCR output of one image variant."""
    text: str
    confidence: float
    lines: List[OCRLine] = field(default_factory=list)
    processing_time: float = 0.0
    engine: Optional[OCREngineType] = None
    variant: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def empty(cls, error: Optional[str] = None, engine: Optional[OCREngineType] = None,
              processing_time: float = 0.0) -> 'OCRResult':
        """Zero-confidence result standing in for a failed extraction."""
        return cls(text='', confidence=0.0, processing_time=processing_time,
                   engine=engine, error=error)

    @property
    def succeeded(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'text': self.text,
            'confidence': self.confidence,
            'lines': [
                {'text': line.text, 'confidence': line.confidence,
                 'bounding_box': line.bounding_box.to_dict()}
                for line in self.lines
            ],
            'processing_time': self.processing_time,
            'engine': self.engine.value if self.engine else None,
            'variant': self.variant,
            'error': self.error,
        }


class OCRError(Exception):
    """Base exception for OCR errors."""
    def __init__(self, message: str, engine: OCREngineType, details: Dict[str, Any] = None):
        super().__init__(message)
        self.engine = engine
        self.details = details or {}


class OCRCancelled(Exception):
    """The caller abandoned extraction before the variants settled."""


class BaseOCR(ABC):
    """Abstract base class for OCR engines."""

    engine_type: OCREngineType

    def __init__(self, fallback_engine: Optional['BaseOCR'] = None):
        """
        Initialize OCR engine.

        Args:
            fallback_engine: Optional fallback OCR engine to use if primary fails
        """
        self.fallback_engine = fallback_engine

    @abstractmethod
    def _extract_text(self, image: ImageInput, psm: PageSegmentationMode,
                      timeout: Optional[float]) -> OCRResult:
        """
        Run the backend on one image.

        Raises:
            OCRError: If text extraction fails or times out
        """

    def extract_text(self, image: ImageInput,
                     psm: PageSegmentationMode = PageSegmentationMode.AUTO,
                     timeout: Optional[float] = None) -> OCRResult:
        """
        Extract text from one image variant.

        Never raises for backend failures: an engine error, after the
        fallback engine (if any) has also failed, becomes an empty
        zero-confidence result carrying the error message.
        """
        try:
            return self.try_with_fallback(image, psm, timeout)
        except OCRError as e:
            logger.warning(f"OCR extraction failed ({e.engine.value}, psm {int(psm)}): {str(e)}")
            return OCRResult.empty(error=str(e), engine=e.engine)

    def try_with_fallback(self, image: ImageInput, psm: PageSegmentationMode,
                          timeout: Optional[float]) -> OCRResult:
        """
        Run the primary engine, then the fallback engine if the primary fails.

        Raises:
            OCRError: If both primary and fallback fail
        """
        try:
            return self._extract_text(image, psm, timeout)
        except OCRError as e:
            if not self.fallback_engine:
                raise
            try:
                return self.fallback_engine._extract_text(image, psm, timeout)
            except OCRError as fallback_error:
                raise OCRError(
                    f"Both primary and fallback engines failed. Primary: {str(e)}, Fallback: {str(fallback_error)}",
                    self.engine_type,
                    {'primary_error': str(e), 'fallback_error': str(fallback_error)}
                )
