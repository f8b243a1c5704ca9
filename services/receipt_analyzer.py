"""Text-to-items pipeline: clean, select parser, split, parse, normalize, validate."""

import logging
from typing import Optional

from models.parsed_receipt import ParsedReceipt
from parsers.base_parser import parse, split_lines
from parsers.parser_registry import ParserRegistry
from services.consistency_validator import ConsistencyValidator
from services.text_normalizer import TextNormalizer

logger = logging.getLogger(__name__)


class ReceiptAnalyzer:
    """Turns OCR text into a validated ParsedReceipt."""

    def __init__(self,
                 registry: Optional[ParserRegistry] = None,
                 normalizer: Optional[TextNormalizer] = None,
                 validator: Optional[ConsistencyValidator] = None):
        self.registry = registry or ParserRegistry()
        self.normalizer = normalizer or TextNormalizer()
        self.validator = validator or ConsistencyValidator()

    def analyze(self, receipt_text: str, ocr_confidence: float = 0.0) -> ParsedReceipt:
        """
        Analyze OCR text.

        Empty or unreadable text gives a receipt with no items and a
        confidence near 0; this method does not raise on bad input.

        Args:
            receipt_text: Raw OCR text
            ocr_confidence: Confidence of the OCR result in [0, 1]

        Returns:
            ParsedReceipt: Items and metadata with adjusted confidences
        """
        text = self.normalizer.clean_ocr_text(receipt_text or '')
        ocr_confidence = min(max(ocr_confidence, 0.0), 1.0)

        parser = self.registry.select(text)
        lines = self.normalizer.split_long_lines(split_lines(text))

        result = parse(parser, text, ocr_confidence, lines=lines)
        result.items = self.normalizer.normalize_items(result.items)
        self.validator.validate(result, ocr_confidence, parser.receipt_weights)

        logger.info(
            f"Analyzed receipt with parser '{parser.name}': {len(result.items)} items, "
            f"confidence {result.confidence:.2f}"
        )
        return result
