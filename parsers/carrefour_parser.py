"""Carrefour receipt grammar (Carrefour, Market, City, Express)."""

import re

from .base_parser import (
    EURO,
    PRICE,
    ItemPattern,
    ReceiptConfidenceWeights,
    ScoreWeights,
    StoreParser,
)


def _not_a_total(match: re.Match) -> bool:
    product = match.group(1).upper()
    return (
        'TOTAL' not in product
        and 'SOUS-TOTAL' not in product
        and 'TVA' not in product
        and len(product) > 3
    )


ITEM_PATTERNS = (
    # "PRODUIT 2 x 1,99 = 3,98"
    ItemPattern(
        name='quantity_times_price',
        regex=re.compile(r'^(.+?)\s+(\d+(?:[,.]\d+)?)\s*[xX×]\s*' + PRICE + r'\s*€?\s*=\s*' + PRICE + EURO),
        fields={'product_name': 1, 'quantity': 2, 'unit_price': 3, 'total_price': 4},
    ),
    # "POMMES 1.250 kg x 2.99 €/kg = 3.74 €"
    ItemPattern(
        name='weighed',
        regex=re.compile(
            r'^(.+?)\s+(\d+[,.]\d+)\s*(kg|g|l|ml|cl|pcs?)\s*[xX×]\s*' + PRICE
            + r'\s*€?/?\w*\s*=\s*' + PRICE + EURO,
            re.IGNORECASE,
        ),
        fields={'product_name': 1, 'quantity': 2, 'unit': 3, 'unit_price': 4, 'total_price': 5},
    ),
    # "3256220000000 PRODUIT 3.99"
    ItemPattern(
        name='product_code',
        regex=re.compile(r'^(\d{6,13})\s+(.+?)\s+' + PRICE + EURO),
        fields={'product_code': 1, 'product_name': 2, 'total_price': 3},
    ),
    # "2 POULET 11.98"
    ItemPattern(
        name='leading_quantity',
        regex=re.compile(r'^(\d{1,3}(?:[,.]\d{1,3})?)\s+([A-Za-zÀ-ÿ].*?)\s+' + PRICE + EURO),
        fields={'quantity': 1, 'product_name': 2, 'total_price': 3},
    ),
    # "PRODUIT 3.99"
    ItemPattern(
        name='simple',
        regex=re.compile(r'^(.+?)\s+' + PRICE + EURO),
        fields={'product_name': 1, 'total_price': 2},
        validator=_not_a_total,
    ),
)

IGNORE_PATTERNS = tuple(re.compile(p, re.IGNORECASE) for p in (
    r'^CARREFOUR',
    r'^MERCI',
    r'^BONNE\s+JOURNEE',
    r'^TVA',
    r'^TOTAL',
    r'^SOUS[-\s]?TOTAL',
    r'^RENDU',
    r'^CARTE',
    r'^\d{2}/\d{2}/\d{4}',
    r'^CAISSIER',
    r'^N°\s*TICKET',
    r'^={3,}',
    r'^-{3,}',
))

CARREFOUR_PARSER = StoreParser(
    name='carrefour',
    store_name='Carrefour',
    store_patterns=(
        re.compile(r'CARREFOUR', re.IGNORECASE),
        re.compile(r'CARREFOUR\s+MARKET', re.IGNORECASE),
        re.compile(r'CARREFOUR\s+CITY', re.IGNORECASE),
        re.compile(r'CARREFOUR\s+EXPRESS', re.IGNORECASE),
    ),
    item_patterns=ITEM_PATTERNS,
    ignore_patterns=IGNORE_PATTERNS,
    total_pattern=re.compile(r'(?:TOTAL|SOMME)\s*:?\s*' + PRICE + r'\s*€?', re.IGNORECASE),
    date_pattern=re.compile(r'(\d{1,2})[/-](\d{1,2})[/-](\d{2,4})\s+(\d{1,2})[:.](\d{2})'),
    address_pattern=re.compile(r'CARREFOUR.*?\n(.*?)\n(\d{5}\s+[A-Z ]+)', re.IGNORECASE),
    item_confidence=0.8,
    score_weights=ScoreWeights(store_hit=0.3, line_ratio=0.5, total_bonus=0.2),
    receipt_weights=ReceiptConfidenceWeights(
        ocr_weight=0.4,
        item_weight=0.3,
        bonus_tiers=((0.01, 0.3), (0.05, 0.15)),
    ),
)
