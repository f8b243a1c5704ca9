"""
Quantity and unit parsing for short, noisy strings.

The same parser reads catalog packaging strings ("6 x 1 l", "Pack de 6
bouteilles 1L") and receipt line quantities ("1,5 kg", "330ml").
"""

import logging
import re
from typing import Any, Dict, Optional, Tuple

from models.units import (
    BASE_FACTORS,
    PIECE_UNITS,
    PackagingInfo,
    ParsedQuantity,
    Unit,
)

logger = logging.getLogger(__name__)

NUMBER = r'(\d+(?:[.,]\d+)?)'
UNIT_TOKEN = r'([a-zà-ÿ]+)'

# French, English and abbreviated spellings to canonical units.
# Centiliter spellings map to ML and are scaled by CENTILITER_FACTOR.
UNIT_SYNONYMS: Dict[str, Unit] = {
    # volume
    'l': Unit.L,
    'lt': Unit.L,
    'ltr': Unit.L,
    'litre': Unit.L,
    'litres': Unit.L,
    'liter': Unit.L,
    'liters': Unit.L,
    'ml': Unit.ML,
    'millilitre': Unit.ML,
    'millilitres': Unit.ML,
    'milliliter': Unit.ML,
    'milliliters': Unit.ML,
    'cl': Unit.ML,
    'centilitre': Unit.ML,
    'centilitres': Unit.ML,
    'centiliter': Unit.ML,
    'centiliters': Unit.ML,
    # mass
    'g': Unit.G,
    'gr': Unit.G,
    'grs': Unit.G,
    'gramme': Unit.G,
    'grammes': Unit.G,
    'gram': Unit.G,
    'grams': Unit.G,
    'kg': Unit.KG,
    'kgs': Unit.KG,
    'kilo': Unit.KG,
    'kilos': Unit.KG,
    'kilogramme': Unit.KG,
    'kilogrammes': Unit.KG,
    'kilogram': Unit.KG,
    'kilograms': Unit.KG,
    'mg': Unit.MG,
    'milligramme': Unit.MG,
    'milligrammes': Unit.MG,
    # pieces
    'piece': Unit.PIECE,
    'pieces': Unit.PIECE,
    'pièce': Unit.PIECE,
    'pièces': Unit.PIECE,
    'pc': Unit.PIECE,
    'pcs': Unit.PIECE,
    'u': Unit.PIECE,
    'unit': Unit.UNIT,
    'units': Unit.UNIT,
    'unite': Unit.UNIT,
    'unites': Unit.UNIT,
    'unité': Unit.UNIT,
    'unités': Unit.UNIT,
}

# Packaging words seen on receipt lines; they count pieces
RECEIPT_PIECE_WORDS = frozenset({
    'boite', 'boites', 'boîte', 'boîtes', 'paquet', 'paquets', 'sachet', 'sachets',
})

CENTILITER_TOKENS = frozenset({'cl', 'centilitre', 'centilitres', 'centiliter', 'centiliters'})
CENTILITER_FACTOR = 10.0

MULTIPACK_PATTERN = re.compile(rf'^{NUMBER}\s*[x×*]\s*{NUMBER}\s*{UNIT_TOKEN}\.?$', re.IGNORECASE)
SIMPLE_PATTERN = re.compile(rf'^{NUMBER}\s*{UNIT_TOKEN}\.?$', re.IGNORECASE)
BARE_QUANTITY_PATTERN = re.compile(r'^([\d.,]+)\s*([a-zA-Zà-ÿ]+)')

SPECIAL_PATTERNS = [
    # "pack de 6 bouteilles 1l"
    re.compile(rf'pack\s+de\s+(\d+).*?{NUMBER}\s*{UNIT_TOKEN}', re.IGNORECASE),
    # "6 bouteilles de 1l"
    re.compile(rf'(\d+)\s+bouteilles?\s+de\s+{NUMBER}\s*{UNIT_TOKEN}', re.IGNORECASE),
    # "6 briques 1l"
    re.compile(rf'(\d+)\s+briques?\s+{NUMBER}\s*{UNIT_TOKEN}', re.IGNORECASE),
    # "lot de 4 x 250ml"
    re.compile(rf'lot\s+de\s+(\d+)\s*[x×]\s*{NUMBER}\s*{UNIT_TOKEN}', re.IGNORECASE),
]

# OpenFoodFacts fields tried after 'quantity'
OFF_FALLBACK_FIELDS = ('product_quantity', 'net_weight', 'serving_size', 'packaging')


def parse_decimal(value: str) -> Optional[float]:
    """Parse a number accepting either ',' or '.' as decimal separator."""
    try:
        return float(value.replace(',', '.'))
    except (AttributeError, ValueError):
        return None


def map_unit(token: Optional[str]) -> Optional[Unit]:
    """Map a unit token to a canonical unit, or None when unknown."""
    if not token:
        return None
    return UNIT_SYNONYMS.get(token.lower().strip().rstrip('.'))


def receipt_unit(token: Optional[str]) -> Unit:
    """Unit for a receipt line; packaging words and unknown tokens count as pieces."""
    if token and token.lower().strip() in RECEIPT_PIECE_WORDS:
        return Unit.PIECE
    return map_unit(token) or Unit.PIECE


def scale_centiliters(value: float, token: str) -> float:
    """Centiliter quantities become milliliters."""
    if token.lower().strip() in CENTILITER_TOKENS:
        return value * CENTILITER_FACTOR
    return value


class QuantityUnitParser:
    """Parses quantity strings into ``PackagingInfo`` or ``ParsedQuantity``."""

    def analyze_quantity(self, text: Optional[str]) -> Optional[PackagingInfo]:
        """
        Analyze a packaging string.

        Tries, in order, the multipack form ``N x M UNIT``, the simple form
        ``N UNIT`` and a few French natural-language forms.

        Args:
            text: Packaging string such as "6 x 1 l", "330ml" or "Lot de 4 x 250ml"

        Returns:
            PackagingInfo, or None when the string cannot be read
        """
        if not text or not isinstance(text, str):
            return None

        clean = ' '.join(text.lower().split())

        match = MULTIPACK_PATTERN.match(clean)
        if match:
            info = self._multipack(*match.groups())
            if info:
                return info

        match = SIMPLE_PATTERN.match(clean)
        if match:
            value_str, unit_str = match.groups()
            value = parse_decimal(value_str)
            if value is not None:
                return PackagingInfo(
                    total_quantity=scale_centiliters(value, unit_str),
                    total_unit=map_unit(unit_str),
                    is_multipack=False,
                )

        return self._analyze_special_patterns(clean)

    def _multipack(self, pack_str: str, size_str: str, unit_str: str) -> Optional[PackagingInfo]:
        pack_size = parse_decimal(pack_str)
        unit_size = parse_decimal(size_str)
        if pack_size is None or unit_size is None:
            return None

        unit = map_unit(unit_str)
        unit_size = scale_centiliters(unit_size, unit_str)
        return PackagingInfo(
            total_quantity=pack_size * unit_size,
            total_unit=unit,
            packaging_size=pack_size,
            unit_size=unit_size,
            unit_size_unit=unit,
            is_multipack=True,
        )

    def _analyze_special_patterns(self, text: str) -> Optional[PackagingInfo]:
        for pattern in SPECIAL_PATTERNS:
            match = pattern.search(text)
            if match:
                info = self._multipack(*match.groups())
                if info:
                    logger.debug(f"Special packaging pattern matched '{text}'")
                    return info
        return None

    def parse_quantity(self, text: Optional[str]) -> ParsedQuantity:
        """
        Read the first number and the unit right after it, ignoring the rest.

        An unknown unit keeps the numeric value with ``unit=None``.
        """
        if not text:
            return ParsedQuantity(value=None, unit=None)

        match = BARE_QUANTITY_PATTERN.match(text.strip())
        if not match:
            return ParsedQuantity(value=None, unit=None)

        value_str, unit_str = match.groups()
        value = parse_decimal(value_str)
        if value is None:
            return ParsedQuantity(value=None, unit=None)

        return ParsedQuantity(value=scale_centiliters(value, unit_str), unit=map_unit(unit_str))

    def analyze_product(self, product: Dict[str, Any]) -> Optional[PackagingInfo]:
        """Packaging info for an OpenFoodFacts product record."""
        for field in ('quantity',) + OFF_FALLBACK_FIELDS:
            value = product.get(field)
            if value is None:
                continue
            info = self.analyze_quantity(str(value))
            if info:
                return info
        return None

    def normalize(self, value: float, unit: Optional[Unit]) -> Tuple[float, Unit]:
        """Express a value in its dimension's base unit (g, ml or piece)."""
        if unit is None or unit in PIECE_UNITS:
            return value, Unit.PIECE
        base = Unit.G if unit.dimension == 'mass' else Unit.ML
        return value * BASE_FACTORS[unit], base

    def convert(self, value: float, from_unit: Unit, to_unit: Unit) -> float:
        """Convert between two units of the same dimension."""
        if from_unit == to_unit:
            return value
        if from_unit.dimension != to_unit.dimension:
            raise ValueError(f"Incompatible unit conversion from {from_unit.value} to {to_unit.value}")
        return value * BASE_FACTORS[from_unit] / BASE_FACTORS[to_unit]
