"""
French OCR text normalization.

Cleans raw OCR text before parser selection, corrects common OCR slips in
product names, and recovers items when the OCR collapsed a whole receipt
into one long line.
"""

import logging
import re
from typing import List, Sequence

from models.parsed_receipt import DISCOUNT_TAG, MAX_NAME_LENGTH, ParsedReceiptItem
from parsers.base_parser import title_case

logger = logging.getLogger(__name__)

# Applied in order on the upper-cased name
NAME_CORRECTIONS = (
    ('BIOLOGIQUE', 'BIO'),
    ('BIOLOGI0UE', 'BIO'),
    ('FRANCAIS', 'FRANÇAIS'),
    ('FRANCAI5', 'FRANÇAIS'),
    ('FROMAQE', 'FROMAGE'),
    ('LEGUME', 'LÉGUME'),
    ('Y40URT', 'YAOURT'),
    ('BOEUF', 'BŒUF'),
    ('0RANGE', 'ORANGE'),
)

ACCENT_SLIPS = (
    ('Ï', 'I'),
    ('À', 'A'),
    ('Â', 'A'),
)

BARCODE_RUN = re.compile(r'\d{13,}')
MARKUP = re.compile(r'[*+#@]')
SPACED_PRICE = re.compile(r'(\d)\s*([,.])\s*(\d{2})\s*€')

# Line-splitting recovery
LONG_LINE_LENGTH = 50
ITEM_START = re.compile(r'\d+\s+[A-ZÀ-Ÿ]')
PRICE_THEN_DIGIT = re.compile(r'(\d+[,.]\d{2})\s+(\d)')
TRAILING_PRICE = re.compile(r'\d+[,.]\d{2}$')
ANY_PRICE = re.compile(r'\d+[,.]\d{2}')
MIN_FRAGMENT_LENGTH = 5
MIN_KEPT_LENGTH = 3
SHORT_FRAGMENT_LENGTH = 15
DANGLING_WORDS = (' DE', ' DU', ' DES')


class TextNormalizer:
    """OCR text cleanup, product name correction and long-line splitting."""

    def clean_ocr_text(self, text: str) -> str:
        """
        Collapse whitespace per line, standardise spaced prices
        ("5 , 13 €" -> "5,13") and drop blank lines. Newlines are kept.
        """
        if not text:
            return ''
        lines = []
        for line in text.split('\n'):
            line = ' '.join(line.split())
            line = SPACED_PRICE.sub(r'\1\2\3', line)
            if line:
                lines.append(line)
        return '\n'.join(lines)

    def normalize_name(self, name: str) -> str:
        """Correct OCR slips in a product name; the discount tag is preserved."""
        is_discount = DISCOUNT_TAG in name
        base = name.replace(DISCOUNT_TAG, '') if is_discount else name

        upper = base.upper()
        for wrong, right in NAME_CORRECTIONS:
            upper = upper.replace(wrong, right)
        for wrong, right in ACCENT_SLIPS:
            upper = upper.replace(wrong, right)

        upper = BARCODE_RUN.sub('', upper)
        upper = MARKUP.sub('', upper)
        normalized = title_case(' '.join(upper.split()))

        if is_discount:
            return f"{normalized} {DISCOUNT_TAG}".strip()
        return normalized

    def normalize_items(self, items: Sequence[ParsedReceiptItem]) -> List[ParsedReceiptItem]:
        """
        Normalize item names in place and return the items worth keeping.

        Items whose name is empty after cleanup are dropped. Names longer
        than MAX_NAME_LENGTH are cut and the item is flagged for review.
        """
        kept = []
        for item in items:
            normalized = self.normalize_name(item.product_name)
            if normalized != item.product_name:
                logger.debug(f"Normalized '{item.product_name}' -> '{normalized}'")
                item.product_name = normalized

            if not item.product_name:
                logger.debug(f"Dropping nameless item from line {item.line_number}: '{item.raw_text}'")
                continue
            if len(item.product_name) > MAX_NAME_LENGTH:
                item.product_name = self.truncate_name(item)
                item.flag("Product name truncated")
            kept.append(item)
        return kept

    def truncate_name(self, item: ParsedReceiptItem) -> str:
        if not item.is_discount:
            return item.product_name[:MAX_NAME_LENGTH].rstrip()
        base = item.base_name[:MAX_NAME_LENGTH - len(DISCOUNT_TAG) - 1].rstrip()
        return f"{base} {DISCOUNT_TAG}"

    def split_long_lines(self, lines: Sequence[str]) -> List[str]:
        """
        Recover items from a receipt the OCR collapsed into a single line.

        Only a lone line longer than 50 characters is split: first at
        "digit then capital letter" boundaries (with incomplete fragments
        merged back), otherwise after each price followed by a digit.
        Lines are returned unchanged when no split is found.
        """
        lines = list(lines)
        if len(lines) != 1 or len(lines[0]) <= LONG_LINE_LENGTH:
            return lines

        line = lines[0]
        fragments = self.split_items(line)
        if len(fragments) > 1:
            fragments = self.merge_incomplete(fragments)
        else:
            fragments = self.split_by_price(line)

        if len(fragments) > 1:
            logger.info(f"Split a {len(line)}-character line into {len(fragments)} items")
            return fragments
        return lines

    def split_items(self, line: str) -> List[str]:
        """Cut before every quantity followed by a capitalised word."""
        fragments = []
        start = None
        for match in ITEM_START.finditer(line):
            if start is None:
                start = 0
                continue
            fragment = line[start:match.start()].strip()
            if len(fragment) > MIN_FRAGMENT_LENGTH:
                fragments.append(fragment)
            start = match.start()

        if start is not None:
            tail = line[start:].strip()
            if len(tail) > MIN_FRAGMENT_LENGTH:
                fragments.append(tail)
        return fragments

    def split_by_price(self, line: str) -> List[str]:
        """Cut after every price directly followed by a digit."""
        fragments = []
        start = 0
        for match in PRICE_THEN_DIGIT.finditer(line):
            end = match.end(1)
            fragment = line[start:end].strip()
            if len(fragment) > MIN_FRAGMENT_LENGTH:
                fragments.append(fragment)
            start = end + 1

        tail = line[start:].strip()
        if len(tail) > MIN_FRAGMENT_LENGTH:
            fragments.append(tail)
        return fragments

    def merge_incomplete(self, fragments: Sequence[str]) -> List[str]:
        """
        Join fragments that cannot stand alone with the next one.

        A fragment ending with DE/DU/DES, or shorter than 15 characters, is
        merged forward when the next fragment ends with a price. A fragment
        without any price is merged with a next fragment that has one.
        """
        merged = []
        i = 0
        while i < len(fragments):
            current = fragments[i]
            following = fragments[i + 1] if i + 1 < len(fragments) else None

            incomplete = current.endswith(DANGLING_WORDS) or len(current) < SHORT_FRAGMENT_LENGTH
            if following is not None and incomplete and TRAILING_PRICE.search(following):
                merged.append(f"{current} {following}")
                i += 2
                continue

            if (following is not None and not ANY_PRICE.search(current)
                    and ANY_PRICE.search(following) and len(current) > MIN_KEPT_LENGTH):
                merged.append(f"{current} {following}")
                i += 2
                continue

            if len(current) > MIN_KEPT_LENGTH:
                merged.append(current)
            i += 1
        return merged
