"""Configuration package."""

from .receipt_config import ReceiptConfig

__all__ = ['ReceiptConfig']
