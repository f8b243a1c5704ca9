"""Image preprocessing module for OCR optimization."""

import io
import logging
from dataclasses import dataclass
from typing import Dict, Union

import cv2
import numpy as np
from PIL import Image, ImageEnhance, ImageFilter, ImageOps

logger = logging.getLogger(__name__)

DEFAULT_TARGET_WIDTH = 1200


@dataclass(frozen=True)
class VariantSettings:
    """Tuning for one preprocessed variant."""
    name: str
    contrast: float
    threshold: int
    brightness: float
    sharpen: bool = True
    denoise: bool = False


STANDARD = VariantSettings('standard', contrast=1.3, threshold=130, brightness=1.1)
HIGH_CONTRAST = VariantSettings('high_contrast', contrast=1.5, threshold=120, brightness=1.2)
DENOISED = VariantSettings('denoised', contrast=1.1, threshold=140, brightness=1.0,
                           sharpen=False, denoise=True)

VARIANTS = (STANDARD, HIGH_CONTRAST, DENOISED)


class ImagePreprocessor:
    """Derives binarized grayscale variants of a receipt photo for OCR."""

    def __init__(self, target_width: int = DEFAULT_TARGET_WIDTH):
        """
        Initialize the image preprocessor.

        Args:
            target_width: Width images are reduced to; smaller images are kept as is
        """
        self.target_width = target_width

    def create_variants(self, image_data: Union[bytes, io.BytesIO]) -> Dict[str, bytes]:
        """
        Build the standard, high-contrast and denoised variants.

        Args:
            image_data: Encoded image (JPEG, PNG, WEBP)

        Returns:
            Dict of variant name to PNG bytes, in standard, high_contrast, denoised order
        """
        base = self.prepare(image_data)
        variants = {}
        for settings in VARIANTS:
            variants[settings.name] = self.apply(base, settings)
            logger.debug(f"Created {settings.name} variant ({base.width}x{base.height})")
        return variants

    def prepare(self, image_data: Union[bytes, io.BytesIO]) -> Image.Image:
        """Decode, auto-rotate, resize and convert to grayscale."""
        raw = image_data.getvalue() if isinstance(image_data, io.BytesIO) else image_data
        with Image.open(io.BytesIO(raw)) as opened:
            image = ImageOps.exif_transpose(opened)
            image = self.resize(image)
            return image.convert('L')

    def resize(self, image: Image.Image) -> Image.Image:
        """Reduce to the target width keeping the aspect ratio. Never upscales."""
        width, height = image.size
        if width <= self.target_width:
            return image.copy()
        new_height = max(1, round(height * self.target_width / width))
        return image.resize((self.target_width, new_height), Image.Resampling.LANCZOS)

    def apply(self, gray: Image.Image, settings: VariantSettings) -> bytes:
        """Run one variant pipeline on a grayscale image and encode it as PNG."""
        if settings.denoise:
            image = Image.fromarray(cv2.fastNlMeansDenoising(np.array(gray), None, 10, 7, 21))
        else:
            image = gray.filter(ImageFilter.GaussianBlur(radius=0.5))

        if settings.sharpen:
            image = image.filter(ImageFilter.SHARPEN)

        image = ImageOps.autocontrast(image)

        if settings.brightness != 1.0:
            image = ImageEnhance.Brightness(image).enhance(settings.brightness)

        pixels = np.asarray(image, dtype=np.float32)
        pixels = linear_contrast(pixels, settings.contrast)
        binary = np.where(pixels > settings.threshold, 255, 0).astype(np.uint8)

        buffer = io.BytesIO()
        Image.fromarray(binary).save(buffer, format='PNG')
        return buffer.getvalue()


def linear_contrast(pixels: np.ndarray, factor: float) -> np.ndarray:
    """Stretch values around mid-gray: x * factor - 128 * factor + 128."""
    return np.clip(pixels * factor - 128.0 * factor + 128.0, 0, 255)

