"""E.Leclerc receipt grammar."""

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

EXCLUDED_WORDS = ('TOTAL', 'RENDU', 'CARTE', 'TVA')


def _is_product(match: re.Match) -> bool:
    product = match.group(1).upper().strip()
    return (
        not any(word in product for word in EXCLUDED_WORDS)
        and len(product) > 2
        and not product[:1].isdigit()
    )


def clean_leclerc_name(name: str) -> str:
    name = re.sub(r'[*+]+', '', name)
    return title_case(' '.join(name.split()))


ITEM_PATTERNS = (
    # "CLEMENTINES 1,250 x 2,99 3,74"
    ItemPattern(
        name='quantity_times_price',
        regex=re.compile(r'^(.+?)\s+(\d+[,.]\d+)\s*[xX×]\s*' + PRICE + r'\s+' + PRICE + EURO),
        fields={'product_name': 1, 'quantity': 2, 'unit_price': 3, 'total_price': 4},
    ),
    # "POMMES BIO 1,5 kg 4,50"
    ItemPattern(
        name='weighed',
        regex=re.compile(r'^(.+?)\s+(\d+[,.]\d+)\s*(kg|g|l|ml|cl|pcs?)\s+' + PRICE + EURO, re.IGNORECASE),
        fields={'product_name': 1, 'quantity': 2, 'unit': 3, 'total_price': 4},
    ),
    # "LAIT DEMI ECREME 1L 0,99"
    ItemPattern(
        name='simple',
        regex=re.compile(r"^([A-Za-zÀ-ÿ'-][A-Za-zÀ-ÿ0-9%\s'-]*?)\s+" + PRICE + EURO),
        fields={'product_name': 1, 'total_price': 2},
        validator=_is_product,
    ),
    # "123456 PRODUIT 3,99"
    ItemPattern(
        name='product_code',
        regex=re.compile(r'^(\d{6,})\s+(.+?)\s+' + PRICE + EURO),
        fields={'product_code': 1, 'product_name': 2, 'total_price': 3},
    ),
    # "YAOURT -0,50"
    ItemPattern(
        name='discount',
        regex=re.compile(r'^(.+?)\s+-' + PRICE + EURO),
        fields={'product_name': 1, 'total_price': 2},
        transformer=discount_transformer,
    ),
)

IGNORE_PATTERNS = tuple(re.compile(p, re.IGNORECASE) for p in (
    r'^E\.LECLERC',
    r'^LECLERC',
    r'^CENTRE',
    r'^MERCI',
    r'^A\s+BIENTOT',
    r'^TVA',
    r'^TOTAL',
    r'^RENDU',
    r'^ESPECES',
    r'^CARTE',
    r'^\d{2}/\d{2}/\d{4}',
    r'^CAISSE',
    r'^TICKET',
    r'^SIRET',
    r'^={3,}',
    r'^-{3,}',
    r'^\*{3,}',
    r'^TEL\s*:',
))

LECLERC_PARSER = StoreParser(
    name='leclerc',
    store_name='Leclerc',
    store_patterns=(
        re.compile(r'E\.LECLERC', re.IGNORECASE),
        re.compile(r'LECLERC', re.IGNORECASE),
        re.compile(r'CENTRE\s+LECLERC', re.IGNORECASE),
    ),
    item_patterns=ITEM_PATTERNS,
    ignore_patterns=IGNORE_PATTERNS,
    total_pattern=re.compile(r'(?:TOTAL\s+TTC|TOTAL)\s*:?\s*' + PRICE + r'\s*€?', re.IGNORECASE),
    # Only a TTC total is characteristic of Leclerc
    total_probe=re.compile(r'TOTAL\s+TTC', re.IGNORECASE),
    date_pattern=re.compile(r'(\d{1,2})[/-](\d{1,2})[/-](\d{2,4})\s*(\d{1,2})[h:.](\d{2})', re.IGNORECASE),
    address_pattern=re.compile(r'E\.LECLERC.*?\n(.*?)\n(.*?\d{5}.*)', re.IGNORECASE),
    name_cleaner=clean_leclerc_name,
    item_confidence=0.85,
    score_weights=ScoreWeights(store_hit=0.35, line_ratio=0.45, total_bonus=0.2),
    receipt_weights=ReceiptConfidenceWeights(
        ocr_weight=0.4,
        item_weight=0.3,
        bonus_tiers=((0.01, 0.3), (0.05, 0.2), (0.1, 0.1)),
    ),
)
