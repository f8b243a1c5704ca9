"""
Tesseract OCR engine implementation.
"""

import io
import logging
import os
import tempfile
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Tuple

import pytesseract
from PIL import Image

from .base_ocr import (
    BaseOCR,
    BoundingBox,
    ImageInput,
    OCREngineType,
    OCRError,
    OCRLine,
    OCRResult,
    OCRWord,
    PageSegmentationMode,
)

logger = logging.getLogger(__name__)


class TesseractOCR(BaseOCR):
    """
    OCR engine using Tesseract.

    Each call works in its own temporary directory, removed on every exit
    path, so concurrent calls never share files.
    """

    engine_type = OCREngineType.TESSERACT

    def __init__(self,
                 tesseract_cmd: Optional[str] = None,
                 language: str = 'fra',
                 oem: int = 3,
                 default_timeout: Optional[float] = 30.0,
                 fallback_engine: Optional[BaseOCR] = None):
        """
        Initialize Tesseract OCR.

        Args:
            tesseract_cmd: Path to Tesseract executable (optional)
            language: Tesseract language pack
            oem: OCR engine mode
            default_timeout: Bound in seconds used when a call passes none
            fallback_engine: Optional fallback OCR engine
        """
        super().__init__(fallback_engine)

        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd

        self.language = language
        self.oem = oem
        self.default_timeout = default_timeout

    def validate(self) -> bool:
        """
        Check that the Tesseract binary can be executed.

        Returns:
            bool: True if the binary answered a version query
        """
        try:
            version = pytesseract.get_tesseract_version()
            logger.info(f"Tesseract version: {version}")
            return True
        except (pytesseract.TesseractNotFoundError, OSError) as e:
            logger.error(f"Tesseract validation failed: {str(e)}")
            return False

    def build_config(self, psm: PageSegmentationMode) -> str:
        return f'--oem {self.oem} --psm {int(psm)}'

    @contextmanager
    def _workspace(self) -> Iterator[str]:
        """Scratch directory for one extraction call."""
        with tempfile.TemporaryDirectory(prefix='receipt-ocr-') as workdir:
            yield workdir

    def _extract_text(self, image: ImageInput, psm: PageSegmentationMode,
                      timeout: Optional[float]) -> OCRResult:
        bound = timeout if timeout is not None else self.default_timeout
        start = time.monotonic()

        with self._workspace() as workdir:
            path = os.path.join(workdir, 'variant.png')
            self._write_image(image, path)

            try:
                data = pytesseract.image_to_data(
                    path,
                    lang=self.language,
                    config=self.build_config(psm),
                    output_type=pytesseract.Output.DICT,
                    timeout=bound or 0
                )
            except RuntimeError as e:
                # pytesseract kills the process and raises RuntimeError on timeout
                raise OCRError(
                    f"Tesseract did not finish within {bound}s",
                    self.engine_type,
                    {'error_type': 'timeout', 'detail': str(e)}
                )
            except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError, OSError) as e:
                raise OCRError(
                    f"Error extracting text with Tesseract: {str(e)}",
                    self.engine_type,
                    {'error_type': 'processing'}
                )

        result = self.build_result(data)
        result.processing_time = time.monotonic() - start
        logger.debug(
            f"Tesseract psm {int(psm)}: {len(result.lines)} lines, "
            f"confidence {result.confidence:.2f} in {result.processing_time:.2f}s"
        )
        return result

    def _write_image(self, image: ImageInput, path: str) -> None:
        try:
            if isinstance(image, Image.Image):
                image.save(path, format='PNG')
                return
            with Image.open(io.BytesIO(image)) as pil_image:
                pil_image.save(path, format='PNG')
        except (OSError, ValueError, TypeError) as e:
            raise OCRError(
                f"Unreadable image variant: {str(e)}",
                self.engine_type,
                {'error_type': 'input_validation'}
            )

    def build_result(self, data: Dict[str, List[Any]]) -> OCRResult:
        """Group the word-level output of image_to_data into lines."""
        lines: Dict[Tuple[int, int, int], List[OCRWord]] = {}

        for i in range(len(data.get('text', []))):
            word = str(data['text'][i]).strip()
            conf = float(data['conf'][i])

            if not word or conf < 0:
                continue

            box = BoundingBox(
                left=int(data['left'][i]),
                top=int(data['top'][i]),
                right=int(data['left'][i]) + int(data['width'][i]),
                bottom=int(data['top'][i]) + int(data['height'][i]),
            )
            key = (int(data['block_num'][i]), int(data['par_num'][i]), int(data['line_num'][i]))
            lines.setdefault(key, []).append(OCRWord(text=word, confidence=conf / 100.0, bounding_box=box))

        ocr_lines = []
        for key in sorted(lines):
            words = lines[key]
            box = words[0].bounding_box
            for word in words[1:]:
                box = box.union(word.bounding_box)
            ocr_lines.append(OCRLine(
                text=' '.join(w.text for w in words),
                confidence=sum(w.confidence for w in words) / len(words),
                bounding_box=box,
                words=words,
            ))

        all_words = [w for line in ocr_lines for w in line.words]
        confidence = sum(w.confidence for w in all_words) / len(all_words) if all_words else 0.0

        return OCRResult(
            text='\n'.join(line.text for line in ocr_lines),
            confidence=min(max(confidence, 0.0), 1.0),
            lines=ocr_lines,
            engine=self.engine_type,
        )
