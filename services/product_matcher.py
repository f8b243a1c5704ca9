"""
Catalog matching for receipt items.

Barcode lookup first, then fuzzy name search with rapidfuzz over an
in-memory snapshot of the catalog.
"""

import logging
import re
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from rapidfuzz import fuzz, process

from models.product import Product, ProductSuggestion
from models.receipt import ReceiptItem
from storage.base import CatalogLookup

logger = logging.getLogger(__name__)

STOP_WORDS = frozenset({'de', 'du', 'des', 'le', 'la', 'les', 'un', 'une'})
PACKAGING_WORDS = frozenset({'paquet', 'boite', 'sachet', 'bouteille', 'pack'})
DIGIT_HOMOGLYPHS = str.maketrans({'0': 'o', '1': 'l', '5': 's'})

MIN_QUERY_LENGTH = 3
SUGGESTIONS_PER_ITEM = 3
SUGGESTIONS_PER_RECEIPT = 10


def normalize_product_name(name: str) -> str:
    """Lower-case, fix digit homoglyphs inside words, drop stop and packaging words."""
    words = []
    for word in re.findall(r'[\w%]+', name.lower()):
        if any(c.isalpha() for c in word):
            word = word.translate(DIGIT_HOMOGLYPHS)
        if word in STOP_WORDS or word in PACKAGING_WORDS:
            continue
        words.append(word)
    return ' '.join(words)


@dataclass(frozen=True)
class CatalogSnapshot:
    products: Tuple[Product, ...]
    names: Tuple[str, ...]


class CatalogIndex:
    """
    Read-mostly fuzzy index over the catalog.

    build() and refresh() compute a new snapshot and swap it in once
    complete; readers always see a whole snapshot.
    """

    def __init__(self, catalog: CatalogLookup):
        self.catalog = catalog
        self._snapshot: Optional[CatalogSnapshot] = None
        self._lock = threading.Lock()

    @property
    def is_built(self) -> bool:
        return self._snapshot is not None

    def build(self) -> CatalogSnapshot:
        with self._lock:
            if self._snapshot is None:
                self._snapshot = self._load()
            return self._snapshot

    def refresh(self) -> CatalogSnapshot:
        snapshot = self._load()
        with self._lock:
            self._snapshot = snapshot
        return snapshot

    def snapshot(self) -> CatalogSnapshot:
        current = self._snapshot
        return current if current is not None else self.build()

    def _load(self) -> CatalogSnapshot:
        products = tuple(self.catalog.search_by_name(''))
        names = tuple(normalize_product_name(p.name) for p in products)
        logger.info(f"Catalog index built with {len(products)} products")
        return CatalogSnapshot(products=products, names=names)


class ProductMatcher:
    """Ranks catalog products for receipt items."""

    def __init__(self, catalog: CatalogLookup, index: Optional[CatalogIndex] = None,
                 min_score: float = 0.6, max_results: int = 5):
        self.catalog = catalog
        self.index = index or CatalogIndex(catalog)
        self.min_score = min_score
        self.max_results = max_results

    def search(self, name: str) -> List[ProductSuggestion]:
        """Fuzzy name search; scores are rapidfuzz ratios scaled to [0, 1]."""
        query = normalize_product_name(name)
        if len(query) < MIN_QUERY_LENGTH:
            return []

        snapshot = self.index.snapshot()
        if not snapshot.products:
            return []

        matches = process.extract(
            query,
            snapshot.names,
            scorer=fuzz.token_set_ratio,
            limit=self.max_results,
            score_cutoff=self.min_score * 100,
        )
        return [
            ProductSuggestion.from_product(snapshot.products[index], score / 100.0)
            for _, score, index in matches
        ]

    def suggest(self, item: ReceiptItem) -> List[ProductSuggestion]:
        """
        Suggestions for one item, best first.

        Barcode lookup and name search fail independently: a catalog error
        in one is logged and the other still contributes.
        """
        candidates: List[ProductSuggestion] = []
        if item.product_code:
            try:
                product = self.catalog.find_by_barcode(item.product_code)
            except Exception as e:
                logger.warning(f"Barcode lookup failed for '{item.product_code}': {e}")
                product = None
            if product is not None:
                candidates.append(ProductSuggestion.from_product(product, 1.0, source='barcode'))

        try:
            candidates.extend(self.search(item.product_name))
        except Exception as e:
            logger.warning(f"Catalog search failed for '{item.product_name}': {e}")

        return dedupe(candidates)[:SUGGESTIONS_PER_ITEM]

    def match_items(self, items: Sequence[ReceiptItem]) -> Tuple[Dict[str, List[ProductSuggestion]], List[ProductSuggestion]]:
        """Per-item suggestions and the flattened top list for the receipt."""
        per_item = {item.id: self.suggest(item) for item in items}
        flattened = dedupe([s for suggestions in per_item.values() for s in suggestions])
        return per_item, flattened[:SUGGESTIONS_PER_RECEIPT]


def dedupe(suggestions: Sequence[ProductSuggestion]) -> List[ProductSuggestion]:
    """Keep the best suggestion per product, sorted by score descending."""
    best: Dict[str, ProductSuggestion] = {}
    for suggestion in suggestions:
        current = best.get(suggestion.product_id)
        if current is None or suggestion.score > current.score:
            best[suggestion.product_id] = suggestion
    return sorted(best.values(), key=lambda s: s.score, reverse=True)
