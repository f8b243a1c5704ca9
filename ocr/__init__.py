"""OCR module for receipt processing.

Engines share the BaseOCR interface; the orchestrator runs one engine over
the preprocessed image variants.
"""

import logging
from typing import Optional

from .base_ocr import (
    BaseOCR,
    BoundingBox,
    OCRCancelled,
    OCREngineType,
    OCRError,
    OCRLine,
    OCRResult,
    OCRWord,
    PageSegmentationMode,
)
from .ocr_orchestrator import OCROrchestrator, VARIANT_MODES
from .tesseract_ocr import TesseractOCR

logger = logging.getLogger(__name__)


def create_ocr_engine(
    engine_type: OCREngineType = OCREngineType.TESSERACT,
    tesseract_cmd: Optional[str] = None,
    language: str = 'fra',
    timeout: Optional[float] = 30.0,
    fallback_engine: Optional[BaseOCR] = None
) -> BaseOCR:
    """
    Create an OCR engine.

    Args:
        engine_type: OCR engine to use
        tesseract_cmd: Path to Tesseract executable
        language: Recognition language
        timeout: Default per-call bound in seconds
        fallback_engine: Engine tried when the primary one fails

    Raises:
        OCRError: If the engine type is not supported
    """
    if engine_type == OCREngineType.TESSERACT:
        engine = TesseractOCR(
            tesseract_cmd=tesseract_cmd,
            language=language,
            default_timeout=timeout,
            fallback_engine=fallback_engine
        )
        logger.info(f"Created Tesseract engine (lang={language})")
        return engine

    raise OCRError(
        f"Unsupported OCR engine: {engine_type}",
        engine_type,
        {'error_type': 'engine_creation'}
    )


__all__ = [
    'BaseOCR', 'BoundingBox', 'OCRCancelled', 'OCREngineType', 'OCRError', 'OCRLine',
    'OCRResult', 'OCRWord', 'PageSegmentationMode', 'OCROrchestrator', 'VARIANT_MODES',
    'TesseractOCR', 'create_ocr_engine',
]
