"""Exceptions raised by the receipt services."""

from typing import List, Optional


class ReceiptError(Exception):
    """Base class for receipt pipeline errors surfaced to callers."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ImageValidationError(ReceiptError):
    """Missing, oversized, corrupt or unsupported image."""


class ReceiptProcessingCancelled(ReceiptError):
    """The caller cancelled the upload; nothing was persisted."""


class ConfirmationError(ReceiptError):
    """A confirmation request was rejected."""


class ReceiptNotFoundError(ConfirmationError):
    def __init__(self, receipt_id: str, user_id: Optional[str] = None):
        super().__init__(f"Receipt {receipt_id} not found", {'receipt_id': receipt_id, 'user_id': user_id})
        self.receipt_id = receipt_id


class StockWriteError(ConfirmationError):
    """
    One or more stock writes failed during confirmation.

    Items written before the failure stay linked; ``failed_item_ids`` lists
    the receipt items that were not committed.
    """

    def __init__(self, receipt_id: str, failed_item_ids: List[str]):
        super().__init__(
            f"Stock update failed for {len(failed_item_ids)} item(s) of receipt {receipt_id}",
            {'receipt_id': receipt_id, 'failed_item_ids': list(failed_item_ids)},
        )
        self.receipt_id = receipt_id
        self.failed_item_ids = list(failed_item_ids)
