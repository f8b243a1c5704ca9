"""Test configuration and fixtures."""
import io
import os
from typing import Dict, Optional
from unittest.mock import patch

import pytest
from PIL import Image, ImageDraw

from config.receipt_config import ReceiptConfig
from models.product import Product
from ocr.base_ocr import BaseOCR, OCREngineType, OCRError, OCRResult, PageSegmentationMode
from storage.memory_storage import InMemoryCatalog, InMemoryReceiptStore, InMemoryStockWriter

CARREFOUR_TEXT = "CARREFOUR\n1 POULET 5.99\nTOTAL 5.99"

LECLERC_TEXT = """E.LECLERC
CENTRE COMMERCIAL
35000 RENNES
LAIT DEMI ECREME 0,99
YAOURT NATURE 1,80
YAOURT -0,50
CLEMENTINES 1,250 x 2,99 3,74
TOTAL TTC 6,03
12/03/2024 18h42"""

GENERIC_TEXT = """EPICERIE DU COIN
12 RUE DES LILAS
75011 PARIS
PAIN DE MIE 1.85
BEURRE DOUX 2.40
POMMES 1.5 kg 4.50
TOTAL 8.75
03/02/24"""


class FakeOCR(BaseOCR):
    """Engine answering from a table keyed by page segmentation mode."""

    engine_type = OCREngineType.TESSERACT

    def __init__(self, results: Optional[Dict[PageSegmentationMode, OCRResult]] = None,
                 default: Optional[OCRResult] = None, fail: bool = False):
        super().__init__()
        self.results = results or {}
        self.default = default
        self.fail = fail
        self.calls = []

    def _extract_text(self, image, psm, timeout):
        self.calls.append(psm)
        if self.fail:
            raise OCRError("engine down", self.engine_type, {'error_type': 'processing'})
        result = self.results.get(psm, self.default)
        if result is None:
            return OCRResult.empty(engine=self.engine_type)
        return OCRResult(text=result.text, confidence=result.confidence, engine=self.engine_type)


def make_image_bytes(size=(600, 900), mode='L', fmt='PNG', color=255, text_lines=8) -> bytes:
    """Synthetic receipt-like image: dark bars on a light background."""
    image = Image.new(mode, size, color)
    draw = ImageDraw.Draw(image)
    for i in range(text_lines):
        top = 40 + i * 60
        draw.rectangle([40, top, size[0] - 40, top + 20], fill=0)
    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def receipt_png():
    return make_image_bytes()


@pytest.fixture
def config():
    """Configuration isolated from the developer's environment."""
    with patch.dict(os.environ, {}, clear=True):
        cfg = ReceiptConfig()
    cfg.ocr_timeout = 2.0
    return cfg


@pytest.fixture
def catalog():
    return InMemoryCatalog([
        Product(id='p-poulet', name='Poulet fermier', brand='Loué', category='viande'),
        Product(id='p-lait', name='Lait demi-écrémé', barcode='3256220000017', quantity='6 x 1 l'),
        Product(id='p-yaourt', name='Yaourt nature', quantity='4 x 125 g'),
        Product(id='p-pain', name='Pain de mie', quantity='500 g'),
        Product(id='p-beurre', name='Beurre doux', quantity='250 g'),
    ])


@pytest.fixture
def receipt_store():
    return InMemoryReceiptStore()


@pytest.fixture
def stock_writer():
    return InMemoryStockWriter()
