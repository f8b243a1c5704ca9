"""Configuration settings for receipt ingestion."""
import os
from typing import Optional


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


class ReceiptConfig:
    """Configuration class for OCR, parsing and matching settings."""

    def __init__(self):
        """Initialize configuration from environment variables."""
        self.tesseract_cmd: Optional[str] = os.getenv('TESSERACT_CMD') or None
        self.ocr_language: str = os.getenv('OCR_LANGUAGE', 'fra')
        self.ocr_timeout: float = _env_float('OCR_TIMEOUT', 30)
        self.ocr_max_workers: int = _env_int('OCR_MAX_WORKERS', 3)
        self.max_image_bytes: int = _env_int('RECEIPT_MAX_IMAGE_BYTES', 10 * 1024 * 1024)
        self.review_threshold: float = _env_float('RECEIPT_REVIEW_THRESHOLD', 0.5)
        self.target_width: int = _env_int('RECEIPT_TARGET_WIDTH', 1200)
        self.matcher_min_score: float = _env_float('MATCHER_MIN_SCORE', 0.6)
        self.matcher_max_results: int = _env_int('MATCHER_MAX_RESULTS', 5)
        self.data_dir: str = os.getenv('RECEIPT_DATA_DIR', 'data')

    def validate(self) -> None:
        """Validate the configuration settings."""
        if self.ocr_timeout <= 0:
            raise ValueError("OCR timeout must be positive")

        if self.ocr_max_workers < 1:
            raise ValueError("OCR max workers must be at least 1")

        if self.max_image_bytes < 1:
            raise ValueError("Maximum image size must be at least 1 byte")

        if self.target_width < 1:
            raise ValueError("Target width must be at least 1 pixel")

        if self.matcher_max_results < 1:
            raise ValueError("Matcher max results must be at least 1")

        for name in ('review_threshold', 'matcher_min_score'):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be between 0 and 1, got {value}")

    def to_dict(self) -> dict:
        """Convert configuration to dictionary."""
        return {
            'tesseract_cmd': self.tesseract_cmd,
            'ocr_language': self.ocr_language,
            'ocr_timeout': self.ocr_timeout,
            'ocr_max_workers': self.ocr_max_workers,
            'max_image_bytes': self.max_image_bytes,
            'review_threshold': self.review_threshold,
            'target_width': self.target_width,
            'matcher_min_score': self.matcher_min_score,
            'matcher_max_results': self.matcher_max_results,
            'data_dir': self.data_dir,
        }

    @classmethod
    def from_dict(cls, config_dict: dict) -> 'ReceiptConfig':
        """Create configuration from dictionary; missing keys keep their environment value."""
        instance = cls()
        for key, value in config_dict.items():
            if value is not None and hasattr(instance, key):
                setattr(instance, key, value)
        return instance
