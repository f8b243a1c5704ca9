"""Tests for the store parsers and parser selection."""
import re
from datetime import datetime

import pytest

from models.units import Unit
from parsers import (
    CARREFOUR_PARSER,
    GENERIC_PARSER,
    LECLERC_PARSER,
    ParserRegistry,
    parse,
    parse_line,
    parse_price,
    select_parser,
)
from parsers.base_parser import ItemPattern, extract_address, extract_date, extract_total
from tests.conftest import CARREFOUR_TEXT, GENERIC_TEXT, LECLERC_TEXT


@pytest.mark.parametrize("raw, expected", [
    ("5,13", 5.13),
    ("5.13", 5.13),
    ("1o.99", 10.99),
    ("s,20", 5.20),
    ("l2.50", 12.50),
    ("???", 0.0),
])
def test_parse_price(raw, expected):
    assert parse_price(raw) == pytest.approx(expected)


def test_carrefour_end_to_end():
    registry = ParserRegistry()

    parser = registry.select(CARREFOUR_TEXT)
    receipt = parse(parser, CARREFOUR_TEXT, ocr_confidence=0.9)

    assert parser is CARREFOUR_PARSER
    assert len(receipt.items) == 1
    item = receipt.items[0]
    assert item.product_name == "Poulet"
    assert item.quantity == 1
    assert item.total_price == pytest.approx(5.99)
    assert receipt.total_amount == pytest.approx(5.99)
    # ocr 0.9 * 0.4 + item 0.8 * 0.3 + full total bonus 0.3
    assert receipt.confidence == pytest.approx(0.36 + 0.24 + 0.3)


def test_carrefour_scores_above_generic():
    assert CARREFOUR_PARSER.confidence_score(CARREFOUR_TEXT) > GENERIC_PARSER.confidence_score(CARREFOUR_TEXT)
    assert GENERIC_PARSER.confidence_score(CARREFOUR_TEXT) <= 0.8


def test_carrefour_patterns():
    item = parse_line(CARREFOUR_PARSER, "COCA COLA 2 x 1,99 = 3,98", 0)
    assert item.quantity == 2
    assert item.unit_price == pytest.approx(1.99)
    assert item.total_price == pytest.approx(3.98)

    weighed = parse_line(CARREFOUR_PARSER, "POMMES 1.250 kg x 2.99 €/kg = 3.74 €", 1)
    assert weighed.unit == Unit.KG
    assert weighed.quantity == pytest.approx(1.25)
    assert weighed.total_price == pytest.approx(3.74)

    coded = parse_line(CARREFOUR_PARSER, "3256220000000 CHIPS NATURE 1.99", 2)
    assert coded.product_code == "3256220000000"
    assert coded.product_name == "Chips Nature"


def test_carrefour_ignores_totals_and_headers():
    assert parse_line(CARREFOUR_PARSER, "TOTAL 12.50", 0) is None
    assert parse_line(CARREFOUR_PARSER, "CARREFOUR MARKET", 0) is None
    assert parse_line(CARREFOUR_PARSER, "SOUS-TOTAL 4.20", 0) is None


def test_leclerc_selected_and_parsed():
    parser = ParserRegistry().select(LECLERC_TEXT)
    receipt = parse(parser, LECLERC_TEXT, ocr_confidence=0.8)

    assert parser is LECLERC_PARSER
    names = [item.product_name for item in receipt.items]
    assert names[:2] == ["Lait Demi Ecreme", "Yaourt Nature"]
    assert receipt.items[2].is_discount
    assert receipt.items[2].total_price == pytest.approx(-0.50)
    clementines = receipt.items[3]
    assert clementines.quantity == pytest.approx(1.25)
    assert clementines.unit_price == pytest.approx(2.99)
    assert clementines.total_price == pytest.approx(3.74)
    assert receipt.total_amount == pytest.approx(6.03)
    assert receipt.receipt_date == datetime(2024, 3, 12, 18, 42)
    assert receipt.store_address == "CENTRE COMMERCIAL, 35000 RENNES"


def test_generic_metadata():
    assert extract_total(GENERIC_PARSER, GENERIC_TEXT) == pytest.approx(8.75)
    # Two-digit year, no time: default hour
    assert extract_date(GENERIC_PARSER, GENERIC_TEXT) == datetime(2024, 2, 3, 12, 0)
    assert extract_address(GENERIC_PARSER, GENERIC_TEXT) == "75011 PARIS"


def test_impossible_date_is_dropped():
    assert extract_date(GENERIC_PARSER, "31/02/2024") is None


def test_generic_items():
    receipt = parse(GENERIC_PARSER, GENERIC_TEXT, ocr_confidence=0.7)

    names = [item.product_name for item in receipt.items]
    assert "Pain De Mie" in names
    assert "Beurre Doux" in names
    pommes = next(item for item in receipt.items if item.product_name == "Pommes")
    assert pommes.unit == Unit.KG
    assert pommes.quantity == pytest.approx(1.5)
    assert pommes.unit_price == pytest.approx(3.0)
    assert receipt.confidence <= 0.85


def test_generic_fixes_digit_letter_confusion():
    item = parse_line(GENERIC_PARSER, "2 FR0MAGE RAPE 4.20", 0)

    assert item.product_name == "Fromage Rape"
    assert item.quantity == 2


def test_missing_unit_price_is_derived():
    item = parse_line(GENERIC_PARSER, "3 YAOURTS FRAISE 2.70", 0)

    assert item.quantity == 3
    assert item.unit_price == pytest.approx(0.90)


def test_large_piece_count_is_treated_as_misread_price():
    item = parse_line(GENERIC_PARSER, "250 CAFE MOULU 2.50", 0)

    assert item.quantity == 1
    assert item.needs_review
    assert item.confidence <= 0.5
    assert item.notes


def test_fractional_piece_count_becomes_kilograms():
    item = parse_line(GENERIC_PARSER, "0,5 JAMBON BLANC 3.20", 0)

    assert item.unit == Unit.KG
    assert item.quantity == pytest.approx(0.5)
    assert item.needs_review


def test_centiliters_are_scaled():
    item = parse_line(GENERIC_PARSER, "JUS ORANGE 1.50 cl 2.10", 0)

    assert item.unit == Unit.ML
    assert item.quantity == pytest.approx(15)


def test_validator_rejects_match():
    pattern = ItemPattern(
        name='only_long',
        regex=re.compile(r'^(\w+)$'),
        fields={'product_name': 1},
        validator=lambda m: len(m.group(1)) > 3,
    )

    assert pattern.match("abc") is None
    assert pattern.match("abcd") is not None


def test_selector_never_picks_parser_that_cannot_parse():
    text = "1 POULET 5.99\nTOTAL 5.99"

    chosen = select_parser([CARREFOUR_PARSER, LECLERC_PARSER, GENERIC_PARSER], text, GENERIC_PARSER)

    assert not CARREFOUR_PARSER.can_parse(text)
    assert chosen is GENERIC_PARSER


def test_selector_falls_back_to_generic_for_empty_text():
    registry = ParserRegistry()

    assert registry.select("") is GENERIC_PARSER
    assert registry.select("   \n  ") is GENERIC_PARSER


def test_empty_text_yields_no_items():
    receipt = parse(GENERIC_PARSER, "", ocr_confidence=0.0)

    assert receipt.items == []
    assert receipt.confidence == 0.0


def test_registry_statistics_and_stores():
    registry = ParserRegistry()

    stats = {entry['parser']: entry for entry in registry.statistics(CARREFOUR_TEXT)}

    assert set(stats) == {'leclerc', 'carrefour', 'generic'}
    assert stats['carrefour']['can_parse'] is True
    assert stats['leclerc']['can_parse'] is False
    assert registry.supported_stores() == ['Leclerc', 'Carrefour']


def test_register_inserts_before_fallback():
    registry = ParserRegistry(parsers=[GENERIC_PARSER])

    registry.register(CARREFOUR_PARSER)

    assert [p.name for p in registry.parsers] == ['carrefour', 'generic']
    with pytest.raises(ValueError):
        registry.register(CARREFOUR_PARSER)
