"""
Concurrent OCR over the preprocessed image variants.

Every variant runs with its own page segmentation hint. All variants are
awaited, failures are tolerated, and the most confident result wins.
"""

import logging
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Dict, List, Optional

from .base_ocr import BaseOCR, OCRCancelled, OCRResult, PageSegmentationMode

logger = logging.getLogger(__name__)

VARIANT_MODES: Dict[str, PageSegmentationMode] = {
    'standard': PageSegmentationMode.AUTO,
    'high_contrast': PageSegmentationMode.SINGLE_BLOCK,
    'denoised': PageSegmentationMode.SPARSE_TEXT,
}

# Extra wait on top of the engine timeout before a variant is abandoned
GRACE_PERIOD = 5.0
POLL_INTERVAL = 0.1


class OCROrchestrator:
    """Runs an OCR engine over several image variants concurrently."""

    def __init__(self, engine: BaseOCR, max_workers: int = 3, timeout: float = 30.0):
        """
        Args:
            engine: Engine used for every variant
            max_workers: Concurrent extraction threads
            timeout: Per-variant bound in seconds
        """
        self.engine = engine
        self.max_workers = max_workers
        self.timeout = timeout

    def extract_best(self, variants: Dict[str, bytes],
                     cancel_event: Optional[threading.Event] = None) -> OCRResult:
        """
        Extract text from every variant and keep the most confident result.

        Args:
            variants: Variant name to encoded image
            cancel_event: Set by the caller to abandon extraction

        Returns:
            The best result, or an empty zero-confidence result if every variant failed

        Raises:
            OCRCancelled: If cancel_event was set before all variants settled
        """
        if not variants:
            return OCRResult.empty(error='No image variants to process')

        executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix='ocr-variant')
        try:
            futures = {
                executor.submit(self._run_variant, name, data): name
                for name, data in variants.items()
            }
            results = self._wait_all(futures, cancel_event)
        finally:
            # Never block on abandoned or timed-out tesseract calls
            executor.shutdown(wait=False, cancel_futures=True)

        return self.select_best(results, order=list(variants))

    def _run_variant(self, name: str, data: bytes) -> OCRResult:
        psm = VARIANT_MODES.get(name, PageSegmentationMode.AUTO)
        result = self.engine.extract_text(data, psm=psm, timeout=self.timeout)
        result.variant = name
        return result

    def _wait_all(self, futures: Dict[Future, str],
                  cancel_event: Optional[threading.Event]) -> Dict[str, OCRResult]:
        results: Dict[str, OCRResult] = {}
        pending = set(futures)
        deadline = time.monotonic() + self.timeout + GRACE_PERIOD

        while pending:
            if cancel_event is not None and cancel_event.is_set():
                logger.info(f"OCR cancelled with {len(pending)} variant(s) in flight")
                raise OCRCancelled('OCR extraction cancelled by caller')

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                for future in pending:
                    name = futures[future]
                    logger.warning(f"OCR variant '{name}' abandoned after {self.timeout}s")
                    results[name] = OCRResult.empty(error='timeout')
                break

            done, pending = wait(pending, timeout=min(POLL_INTERVAL, remaining),
                                 return_when=FIRST_COMPLETED)
            for future in done:
                name = futures[future]
                try:
                    results[name] = future.result()
                except Exception as e:
                    logger.error(f"OCR variant '{name}' raised: {str(e)}")
                    results[name] = OCRResult.empty(error=str(e))

        return results

    def select_best(self, results: Dict[str, OCRResult], order: List[str]) -> OCRResult:
        """Highest-confidence successful result; earlier variants win ties."""
        candidates = [
            results[name] for name in order
            if name in results and results[name].succeeded and results[name].confidence > 0
        ]

        for name in order:
            result = results.get(name)
            if result is not None:
                logger.debug(
                    f"Variant '{name}': confidence {result.confidence:.2f}"
                    + (f" error={result.error}" if result.error else '')
                )

        if not candidates:
            logger.warning("All OCR variants failed or returned no text")
            return OCRResult.empty(error='All OCR variants failed')

        best = max(candidates, key=lambda r: r.confidence)
        logger.info(f"Selected OCR variant '{best.variant}' with confidence {best.confidence:.2f}")
        return best
