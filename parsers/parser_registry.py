"""Registry of store parsers and applicability-based selection."""

import logging
from typing import Any, Dict, List, Optional, Sequence

from .base_parser import StoreParser
from .carrefour_parser import CARREFOUR_PARSER
from .generic_parser import GENERIC_PARSER
from .leclerc_parser import LECLERC_PARSER

logger = logging.getLogger(__name__)

# Most specific first; generic last
DEFAULT_PARSERS = (LECLERC_PARSER, CARREFOUR_PARSER, GENERIC_PARSER)


def select_parser(parsers: Sequence[StoreParser], text: str,
                  fallback: StoreParser) -> StoreParser:
    """
    Pick the parser with the highest applicability score among those whose
    can_parse accepts the text. Ties keep the earlier registration; with no
    candidate the fallback is returned.
    """
    best = fallback
    best_score = 0.0

    for parser in parsers:
        if not parser.can_parse(text):
            continue
        score = parser.confidence_score(text)
        logger.debug(f"Parser {parser.name}: score {score:.3f}")
        if score > best_score:
            best_score = score
            best = parser

    logger.debug(f"Selected parser {best.name} (score {best_score:.3f})")
    return best


class ParserRegistry:
    """Ordered set of store parsers with a generic fallback."""

    def __init__(self, parsers: Optional[Sequence[StoreParser]] = None,
                 fallback: StoreParser = GENERIC_PARSER):
        self._parsers: List[StoreParser] = list(parsers if parsers is not None else DEFAULT_PARSERS)
        self.fallback = fallback
        if fallback not in self._parsers:
            self._parsers.append(fallback)
        logger.debug(f"Parser registry initialized with {len(self._parsers)} parsers")

    @property
    def parsers(self) -> List[StoreParser]:
        return list(self._parsers)

    def register(self, parser: StoreParser) -> None:
        """Add a store parser ahead of the generic fallback."""
        if any(p.name == parser.name for p in self._parsers):
            raise ValueError(f"Parser '{parser.name}' is already registered")
        index = self._parsers.index(self.fallback)
        self._parsers.insert(index, parser)
        logger.info(f"Registered parser: {parser.name}")

    def get(self, name: str) -> Optional[StoreParser]:
        for parser in self._parsers:
            if parser.name == name:
                return parser
        return None

    def select(self, text: str) -> StoreParser:
        return select_parser(self._parsers, text, self.fallback)

    def statistics(self, text: str) -> List[Dict[str, Any]]:
        """Applicability of every registered parser for the text."""
        return [
            {
                'parser': parser.name,
                'store_name': parser.store_name,
                'can_parse': parser.can_parse(text),
                'confidence_score': parser.confidence_score(text),
            }
            for parser in self._parsers
        ]

    def supported_stores(self) -> List[str]:
        return [parser.store_name for parser in self._parsers if not parser.is_generic]
