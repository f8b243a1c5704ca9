"""OCR-suitability scoring for receipt photos."""

import io
import logging
from typing import Any, Dict

import numpy as np
from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

REFERENCE_PIXELS = 800 * 1200
MIN_DENSITY = 150


class ImageQualityAnalyzer:
    """
    Scores an image in [0, 1] from its resolution, pixel density, contrast
    and channel count. Receipts are near-monochrome, so fewer channels score
    higher.
    """

    def analyze(self, image_data: bytes) -> Dict[str, Any]:
        """
        Compute the quality score and the statistics it was built from.

        Never raises; an unreadable image scores 0.0.
        """
        stats: Dict[str, Any] = {'score': 0.0}
        try:
            with Image.open(io.BytesIO(image_data)) as image:
                width, height = image.size
                density = image.info.get('dpi')
                channels = len(image.getbands())
                gray = np.asarray(image.convert('L'), dtype=np.float64)
        except (UnidentifiedImageError, OSError, ValueError, TypeError) as e:
            logger.warning(f"Could not read image for quality analysis: {str(e)}")
            return stats

        score = min((width * height) / REFERENCE_PIXELS, 1.0) * 0.3

        dpi = _density_value(density)
        if dpi is not None and dpi >= MIN_DENSITY:
            score += 0.2

        contrast = float(gray.std()) if gray.size else 0.0
        score += min(contrast / 128.0, 1.0) * 0.3

        if channels in (1, 2):
            score += 0.2
        elif channels == 3:
            score += 0.1

        stats.update({
            'score': min(score, 1.0),
            'width': width,
            'height': height,
            'density': dpi,
            'contrast': contrast,
            'channels': channels,
        })
        logger.debug(f"Image quality {stats['score']:.2f} ({width}x{height}, {channels} channels)")
        return stats

    def score(self, image_data: bytes) -> float:
        return self.analyze(image_data)['score']


def _density_value(density: Any):
    """PIL reports dpi as a (x, y) tuple; keep the horizontal value."""
    if density is None:
        return None
    try:
        value = density[0] if isinstance(density, (tuple, list)) else density
        return float(value)
    except (TypeError, ValueError, IndexError):
        return None
