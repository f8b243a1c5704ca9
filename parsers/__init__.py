"""Receipt parser package.

Each store parser is a grammar table (store-detection regexes, ordered
item patterns, ignore rules, metadata patterns and scoring weights) read
by the functions in base_parser.
"""

from .base_parser import (
    ItemPattern,
    ReceiptConfidenceWeights,
    ScoreWeights,
    StoreParser,
    can_parse,
    confidence_score,
    parse,
    parse_line,
    parse_price,
    title_case,
)
from .carrefour_parser import CARREFOUR_PARSER
from .generic_parser import GENERIC_PARSER
from .leclerc_parser import LECLERC_PARSER
from .parser_registry import DEFAULT_PARSERS, ParserRegistry, select_parser

__all__ = [
    'ItemPattern',
    'ReceiptConfidenceWeights',
    'ScoreWeights',
    'StoreParser',
    'can_parse',
    'confidence_score',
    'parse',
    'parse_line',
    'parse_price',
    'title_case',
    'CARREFOUR_PARSER',
    'GENERIC_PARSER',
    'LECLERC_PARSER',
    'DEFAULT_PARSERS',
    'ParserRegistry',
    'select_parser',
]
