"""
Generic French receipt grammar.

Used when no store parser recognises the receipt. Its applicability score
and receipt confidence are capped below the store parsers.
"""

import re

from .base_parser import (
    EURO,
    PRICE,
    ItemPattern,
    ReceiptConfidenceWeights,
    ScoreWeights,
    StoreParser,
    discount_transformer,
    title_case,
)

IGNORED_PRODUCTS = (
    'TOTAL', 'SOUS-TOTAL', 'TVA', 'RENDU', 'MONNAIE', 'ESPECES', 'CARTE', 'CB',
    'CHEQUE', 'TICKET', 'CAISSE', 'MERCI', 'BONNE JOURNEE', 'AU REVOIR', 'A BIENTOT',
)


def is_ignored_product(name: str) -> bool:
    upper = name.upper()
    return any(ignored in upper for ignored in IGNORED_PRODUCTS)


def _valid_leading_quantity(match: re.Match) -> bool:
    name = match.group(2).strip()
    return len(name) >= 3 and not name.isdigit()


def _valid_simple(match: re.Match) -> bool:
    product = match.group(1).upper().strip()
    return not is_ignored_product(product) and len(product) > 2 and not product[:1].isdigit()


def clean_generic_name(name: str) -> str:
    """Fix digit/letter confusions inside words, drop markup and barcodes."""
    name = re.sub(r'(?<=[A-Za-z])0|0(?=[A-Za-z])', 'o', name)
    name = re.sub(r'1(?=[a-z])', 'i', name)
    name = re.sub(r'5(?=[A-Z])', 'S', name)
    name = name.replace('ï', 'i').replace('À', 'A').replace('Â', 'A')
    name = re.sub(r'[*+#@]+', '', name)
    name = re.sub(r'\b\d{13}\b', '', name)
    return title_case(' '.join(name.split()))


ITEM_PATTERNS = (
    # "3256220000000 PRODUIT 3.99"
    ItemPattern(
        name='product_code',
        regex=re.compile(r'^(\d{6,13})\s+(.+?)\s+' + PRICE + EURO),
        fields={'product_code': 1, 'product_name': 2, 'total_price': 3},
    ),
    # "1 PAQUET DE SURIMI 5.96"
    ItemPattern(
        name='leading_quantity',
        regex=re.compile(r'^(\d+(?:[,.]\d+)?)\s+(.+?)\s+' + PRICE + EURO),
        fields={'quantity': 1, 'product_name': 2, 'total_price': 3},
        validator=_valid_leading_quantity,
    ),
    # "PRODUIT 2 x 3,99 7,98"
    ItemPattern(
        name='quantity_times_price',
        regex=re.compile(r'^(.+?)\s+(\d+(?:[,.]\d+)?)\s*[xX×]\s*' + PRICE + r'\s+' + PRICE + EURO),
        fields={'product_name': 1, 'quantity': 2, 'unit_price': 3, 'total_price': 4},
    ),
    # "POMMES 1.5 kg 4.50"
    ItemPattern(
        name='weighed',
        regex=re.compile(r'^(.+?)\s+(\d+[,.]\d+)\s*(kg|g|l|ml|cl|pcs?)\s+' + PRICE + EURO, re.IGNORECASE),
        fields={'product_name': 1, 'quantity': 2, 'unit': 3, 'total_price': 4},
    ),
    # "PRODUIT 3.99"
    ItemPattern(
        name='simple',
        regex=re.compile(r"^([A-Za-zÀ-ÿ][A-Za-zÀ-ÿ\s\-'.]+)\s+" + PRICE + EURO),
        fields={'product_name': 1, 'total_price': 2},
        validator=_valid_simple,
    ),
    # "REMISE -2.50"
    ItemPattern(
        name='discount',
        regex=re.compile(r'^(.+?)\s+-' + PRICE + EURO),
        fields={'product_name': 1, 'total_price': 2},
        transformer=discount_transformer,
    ),
)

IGNORE_PATTERNS = tuple(re.compile(p, re.IGNORECASE) for p in (
    r'^MERCI',
    r'^BONNE\s+JOURNEE',
    r'^AU\s+REVOIR',
    r'^A\s+BIENTOT',
    r'^TVA',
    r'^TOTAL',
    r'^SOUS[-\s]?TOTAL',
    r'^RENDU',
    r'^MONNAIE',
    r'^ESPECES',
    r'^CARTE',
    r'^CB\b',
    r'^CHEQUE',
    r'^\d{2}[/_-]\d{2}[/_-]\d{2,4}',
    r'^CAISSE',
    r'^TICKET',
    r'^N°',
    r'^REF',
    r'^SIRET',
    r'^RCS',
    r'^TEL',
    r'^FAX',
    r'^WWW\.',
    r'^HTTP',
    r'^={3,}',
    r'^-{3,}',
    r'^\*{3,}',
    r'^_{3,}',
))

GENERIC_PARSER = StoreParser(
    name='generic',
    store_name='Générique',
    item_patterns=ITEM_PATTERNS,
    ignore_patterns=IGNORE_PATTERNS,
    total_pattern=re.compile(r'(?:TOTAL|SOMME|MONTANT)[\s:]*' + PRICE + r'\s*€?', re.IGNORECASE),
    date_pattern=re.compile(r'(\d{1,2})[/_\-.](\d{1,2})[/_\-.](\d{2,4})(?:\s+(\d{1,2})[:.]?(\d{2}))?'),
    default_hour=12,
    address_pattern=re.compile(r"(\d{5})\s+([A-ZÀ-Ÿ][A-Za-zÀ-ÿ '-]+)"),
    address_separator=' ',
    name_cleaner=clean_generic_name,
    item_confidence=0.7,
    is_generic=True,
    min_line_ratio=0.2,
    score_weights=ScoreWeights(base=0.1, line_ratio=0.6, total_bonus=0.2, date_bonus=0.1, cap=0.8),
    receipt_weights=ReceiptConfidenceWeights(
        ocr_weight=0.3,
        item_weight=0.4,
        bonus_tiers=((0.05, 0.3), (0.1, 0.2), (0.2, 0.1)),
        cap=0.85,
    ),
)
