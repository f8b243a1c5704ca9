"""
Store parser grammar.

A store parser is plain data: store-detection regexes, an ordered table of
item patterns, ignore rules, metadata patterns and scoring weights. The
functions in this module read any such table; there is no per-store
subclass.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Pattern, Sequence, Tuple

from models.parsed_receipt import DISCOUNT_TAG, ParsedReceipt, ParsedReceiptItem
from models.units import Unit
from utils.quantity_parser import parse_decimal, receipt_unit, scale_centiliters

logger = logging.getLogger(__name__)

PRICE = r'(\d+[,.]\d{2})'
EURO = r'\s*€?\s*$'

# Quantity self-correction thresholds
MISREAD_PRICE_QUANTITY = 100
MAX_PLAUSIBLE_PRICE = 1000
HEURISTIC_CONFIDENCE_CAP = 0.5

Validator = Callable[[re.Match], bool]
Transformer = Callable[[re.Match], Dict[str, Any]]


@dataclass(frozen=True)
class ItemPattern:
    """
    One line grammar rule.

    ``fields`` maps item field names to regex group numbers. A pattern wins
    when its regex matches and its validator, if any, accepts the match.
    The transformer may then override derived fields.
    """
    name: str
    regex: Pattern
    fields: Mapping[str, int]
    validator: Optional[Validator] = None
    transformer: Optional[Transformer] = None

    def match(self, line: str) -> Optional[re.Match]:
        found = self.regex.match(line)
        if found is None:
            return None
        if self.validator is not None and not self.validator(found):
            return None
        return found


@dataclass(frozen=True)
class ScoreWeights:
    """Weights of the applicability score."""
    store_hit: float = 0.0
    line_ratio: float = 0.5
    total_bonus: float = 0.2
    date_bonus: float = 0.0
    base: float = 0.0
    cap: float = 1.0


@dataclass(frozen=True)
class ReceiptConfidenceWeights:
    """
    Receipt-level confidence: ``ocr * ocr_weight + mean_item * item_weight``
    plus a bonus picked from ``bonus_tiers`` by the relative difference
    between the sum of items and the declared total.
    """
    ocr_weight: float
    item_weight: float
    bonus_tiers: Tuple[Tuple[float, float], ...]
    cap: float = 1.0

    def total_bonus(self, items_total: float, declared_total: Optional[float]) -> float:
        if not declared_total or declared_total <= 0:
            return 0.0
        diff = abs(items_total - declared_total) / declared_total
        for limit, bonus in self.bonus_tiers:
            if diff < limit:
                return bonus
        return 0.0

    def compute(self, item_confidences: Sequence[float], items_total: float,
                declared_total: Optional[float], ocr_confidence: float) -> float:
        confidence = ocr_confidence * self.ocr_weight
        if item_confidences:
            confidence += (sum(item_confidences) / len(item_confidences)) * self.item_weight
            confidence += self.total_bonus(items_total, declared_total)
        return min(max(confidence, 0.0), self.cap)


@dataclass(frozen=True)
class StoreParser:
    """Grammar and heuristics for one retailer, or the generic fallback."""
    name: str
    store_name: str
    item_patterns: Tuple[ItemPattern, ...]
    ignore_patterns: Tuple[Pattern, ...]
    score_weights: ScoreWeights
    receipt_weights: ReceiptConfidenceWeights
    item_confidence: float
    store_patterns: Tuple[Pattern, ...] = ()
    total_pattern: Optional[Pattern] = None
    total_probe: Optional[Pattern] = None
    date_pattern: Optional[Pattern] = None
    default_hour: Optional[int] = None
    address_pattern: Optional[Pattern] = None
    address_separator: str = ', '
    name_cleaner: Optional[Callable[[str], str]] = None
    is_generic: bool = False
    min_line_ratio: float = 0.2

    def can_parse(self, text: str) -> bool:
        return can_parse(self, text)

    def confidence_score(self, text: str) -> float:
        return confidence_score(self, text)

    def parse(self, text: str, ocr_confidence: float) -> ParsedReceipt:
        return parse(self, text, ocr_confidence)


def title_case(text: str) -> str:
    """Lower-case, then capitalise the first letter of every word."""
    return re.sub(r'\b\w', lambda m: m.group().upper(), text.lower())


def clean_product_name(name: str) -> str:
    name = re.sub(r'[*]+', '', name)
    return title_case(' '.join(name.split()))


def parse_price(value: str) -> float:
    """
    Parse an OCR price, fixing letter/digit confusions.

    ``s`` reads as 5, ``o`` as 0 and ``l`` as 1; anything else that is not
    a digit or dot is dropped. Unreadable input gives 0.0.
    """
    cleaned = value.replace(',', '.', 1)
    cleaned = re.sub(r'[sS]', '5', cleaned)
    cleaned = re.sub(r'[oO]', '0', cleaned)
    cleaned = re.sub(r'[lL]', '1', cleaned)
    cleaned = re.sub(r'[^0-9.]', '', cleaned)
    try:
        return float(cleaned)
    except ValueError:
        return 0.0


def discount_transformer(match: re.Match) -> Dict[str, Any]:
    """Negate the amount and tag the name of a discount line."""
    return {
        'total_price': -parse_price(match.group(2)),
        'product_name': f"{match.group(1).strip()} {DISCOUNT_TAG}",
    }


def split_lines(text: str) -> List[str]:
    return [line.strip() for line in text.split('\n') if line.strip()]


def should_ignore(parser: StoreParser, line: str) -> bool:
    return any(pattern.search(line) for pattern in parser.ignore_patterns)


def matches_any_pattern(parser: StoreParser, line: str) -> bool:
    """Regex-only test used for scoring; validators are not consulted."""
    return any(p.regex.match(line.strip()) for p in parser.item_patterns)


def can_parse(parser: StoreParser, text: str) -> bool:
    """Cheap applicability test: a store-name hit, or enough pattern lines for the generic parser."""
    if not text or not text.strip():
        return False
    if parser.is_generic:
        lines = split_lines(text)
        matching = sum(1 for line in lines if matches_any_pattern(parser, line))
        return bool(lines) and matching / len(lines) >= parser.min_line_ratio
    return any(pattern.search(text) for pattern in parser.store_patterns)


def confidence_score(parser: StoreParser, text: str) -> float:
    """Applicability score in [0, cap]."""
    if not text or not text.strip():
        return 0.0

    weights = parser.score_weights
    score = weights.base

    store_hits = sum(1 for pattern in parser.store_patterns if pattern.search(text))
    score += store_hits * weights.store_hit

    # Store parsers count every raw line, the generic parser only non-empty ones
    lines = split_lines(text) if parser.is_generic else text.split('\n')
    if lines:
        matching = sum(1 for line in lines if matches_any_pattern(parser, line))
        score += (matching / len(lines)) * weights.line_ratio

    total_probe = parser.total_probe or parser.total_pattern
    if total_probe is not None and total_probe.search(text):
        score += weights.total_bonus

    if weights.date_bonus and parser.date_pattern is not None and parser.date_pattern.search(text):
        score += weights.date_bonus

    return min(max(score, 0.0), weights.cap)


def extract_total(parser: StoreParser, text: str) -> Optional[float]:
    if parser.total_pattern is None:
        return None
    match = parser.total_pattern.search(text)
    return parse_price(match.group(1)) if match else None


def extract_date(parser: StoreParser, text: str) -> Optional[datetime]:
    """Day-first date with optional time; two-digit years are 20xx."""
    if parser.date_pattern is None:
        return None
    match = parser.date_pattern.search(text)
    if not match:
        return None

    day, month, year = (int(g) for g in match.groups()[:3])
    hour_str, minute_str = (match.groups()[3:5] + (None, None))[:2]
    if year < 100:
        year += 2000

    hour = int(hour_str) if hour_str else (parser.default_hour or 0)
    minute = int(minute_str) if minute_str else 0
    try:
        return datetime(year, month, day, hour, minute)
    except ValueError:
        logger.debug(f"Ignoring impossible date {match.group(0)!r}")
        return None


def extract_address(parser: StoreParser, text: str) -> Optional[str]:
    if parser.address_pattern is None:
        return None
    match = parser.address_pattern.search(text)
    if not match:
        return None
    parts = [part.strip() for part in match.groups() if part and part.strip()]
    return parser.address_separator.join(parts) or None


def parse_line(parser: StoreParser, line: str, line_number: int) -> Optional[ParsedReceiptItem]:
    """First matching pattern wins; ignored lines give None."""
    if should_ignore(parser, line):
        return None

    for pattern in parser.item_patterns:
        match = pattern.match(line)
        if match is None:
            continue
        item = create_item(parser, pattern, match, line, line_number)
        logger.debug(
            f"[{parser.name}] line {line_number} '{line}' -> {pattern.name}: "
            f"{item.product_name} x{item.quantity} = {item.total_price}"
        )
        return item

    return None


def create_item(parser: StoreParser, pattern: ItemPattern, match: re.Match,
                raw_text: str, line_number: int) -> ParsedReceiptItem:
    groups = pattern.fields
    cleaner = parser.name_cleaner or clean_product_name

    def group(name: str) -> Optional[str]:
        index = groups.get(name)
        return match.group(index) if index else None

    quantity = parse_decimal(group('quantity')) if group('quantity') else None
    if quantity is not None and group('unit'):
        quantity = scale_centiliters(quantity, group('unit'))
    unit_price = group('unit_price')

    item = ParsedReceiptItem(
        raw_text=raw_text,
        product_name=cleaner((group('product_name') or '').strip()),
        quantity=quantity if quantity is not None else 1.0,
        unit=receipt_unit(group('unit')),
        unit_price=parse_price(unit_price) if unit_price else None,
        total_price=parse_price(group('total_price')) if group('total_price') else 0.0,
        product_code=group('product_code'),
        confidence=parser.item_confidence,
        line_number=line_number,
    )

    if pattern.transformer is not None:
        for key, value in pattern.transformer(match).items():
            setattr(item, key, value)

    apply_quantity_heuristics(item)

    if item.unit_price is None and item.total_price > 0 and item.quantity > 0:
        item.unit_price = round(item.total_price / item.quantity, 2)

    return item


def apply_quantity_heuristics(item: ParsedReceiptItem) -> None:
    """
    Best-effort fixes for misread quantities. Affected items are flagged for
    review and their confidence is capped.
    """
    if item.quantity <= 0:
        item.flag(f"Quantity {item.quantity:g} replaced by 1")
        item.quantity = 1.0
        item.confidence = min(item.confidence, HEURISTIC_CONFIDENCE_CAP)

    if item.unit == Unit.PIECE and item.quantity > MISREAD_PRICE_QUANTITY:
        possible_price = item.quantity
        item.quantity = 1.0
        if item.unit_price is None and possible_price < MAX_PLAUSIBLE_PRICE:
            item.unit_price = possible_price
            if item.total_price <= 0:
                item.total_price = possible_price
        item.confidence = min(item.confidence, HEURISTIC_CONFIDENCE_CAP)
        item.flag(f"Quantity {possible_price:g} looked like a misread price")

    if item.unit == Unit.PIECE and 0 < item.quantity < 1:
        item.unit = Unit.KG
        item.confidence = min(item.confidence, HEURISTIC_CONFIDENCE_CAP)
        item.flag(f"Fractional piece count {item.quantity:g} read as kilograms")


def parse(parser: StoreParser, text: str, ocr_confidence: float,
          lines: Optional[List[str]] = None) -> ParsedReceipt:
    """
    Extract metadata and items.

    Args:
        parser: Grammar to apply
        text: Cleaned OCR text, used for metadata
        ocr_confidence: OCR confidence in [0, 1]
        lines: Item lines to parse; defaults to the non-empty lines of text
    """
    if lines is None:
        lines = split_lines(text or '')

    items = []
    for line_number, line in enumerate(lines):
        item = parse_line(parser, line, line_number)
        if item is not None:
            items.append(item)

    total_amount = extract_total(parser, text or '')
    result = ParsedReceipt(
        parser_name=parser.name,
        store_name=parser.store_name,
        items=items,
        store_address=extract_address(parser, text or ''),
        receipt_date=extract_date(parser, text or ''),
        total_amount=total_amount,
        raw_text=text or '',
    )
    result.confidence = parser.receipt_weights.compute(
        [item.confidence for item in items], result.items_total, total_amount, ocr_confidence
    )
    logger.debug(f"[{parser.name}] parsed {len(items)} items, confidence {result.confidence:.2f}")
    return result
