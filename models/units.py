"""Unit vocabulary shared by receipt items and catalog packaging."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Unit(str, Enum):
    """Canonical units. Centiliters are never stored, they become milliliters."""
    MG = "mg"
    G = "g"
    KG = "kg"
    ML = "ml"
    L = "l"
    PIECE = "piece"
    UNIT = "unit"

    @property
    def dimension(self) -> str:
        if self in MASS_UNITS:
            return "mass"
        if self in VOLUME_UNITS:
            return "volume"
        return "piece"


MASS_UNITS = frozenset({Unit.MG, Unit.G, Unit.KG})
VOLUME_UNITS = frozenset({Unit.ML, Unit.L})
PIECE_UNITS = frozenset({Unit.PIECE, Unit.UNIT})

# Factor to the base unit of each dimension (g, ml, piece)
BASE_FACTORS = {
    Unit.MG: 0.001,
    Unit.G: 1.0,
    Unit.KG: 1000.0,
    Unit.ML: 1.0,
    Unit.L: 1000.0,
    Unit.PIECE: 1.0,
    Unit.UNIT: 1.0,
}


@dataclass
class ParsedQuantity:
    """A bare (value, unit) pair. ``unit`` is None when the token was not recognised."""
    value: Optional[float]
    unit: Optional[Unit]


@dataclass
class PackagingInfo:
    """
    Packaging description of a product or receipt line.

    For a multipack, ``total_quantity == packaging_size * unit_size``.
    """
    total_quantity: float
    total_unit: Optional[Unit]
    packaging_size: Optional[float] = None
    unit_size: Optional[float] = None
    unit_size_unit: Optional[Unit] = None
    is_multipack: bool = False

    def to_dict(self) -> dict:
        return {
            'total_quantity': self.total_quantity,
            'total_unit': self.total_unit.value if self.total_unit else None,
            'packaging_size': self.packaging_size,
            'unit_size': self.unit_size,
            'unit_size_unit': self.unit_size_unit.value if self.unit_size_unit else None,
            'is_multipack': self.is_multipack,
        }
