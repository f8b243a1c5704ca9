from .base import CatalogLookup, ReceiptStore, StockWriter
from .json_storage import JsonReceiptStore, JsonStockWriter, load_catalog
from .memory_storage import InMemoryCatalog, InMemoryReceiptStore, InMemoryStockWriter, StockEntry

__all__ = [
    'CatalogLookup',
    'ReceiptStore',
    'StockWriter',
    'JsonReceiptStore',
    'JsonStockWriter',
    'load_catalog',
    'InMemoryCatalog',
    'InMemoryReceiptStore',
    'InMemoryStockWriter',
    'StockEntry',
]
