"""Price/quantity consistency checks, discount merging and receipt confidence."""

import logging
from typing import List, Optional, Sequence

from models.parsed_receipt import ParsedReceipt, ParsedReceiptItem
from parsers.base_parser import ReceiptConfidenceWeights

logger = logging.getLogger(__name__)

PRICE_TOLERANCE = 0.10
MISMATCH_CONFIDENCE_CAP = 0.6
HIGH_PRICE = 1000.0
HIGH_PRICE_CONFIDENCE_CAP = 0.3
LOW_PRICE = 0.01
LOW_PRICE_CONFIDENCE_CAP = 0.4
EMPTY_RECEIPT_CONFIDENCE_CAP = 0.05


class ConsistencyValidator:
    """
    Adjusts item and receipt confidence from internal consistency.

    Inconsistent items are penalised, never rejected.
    """

    def check_item(self, item: ParsedReceiptItem) -> ParsedReceiptItem:
        """Cap the confidence of an item whose prices do not add up."""
        if item.is_discount:
            return item

        # A merged discount was already subtracted from the total
        expected_total = item.total_price + (item.discount or 0.0)
        if item.unit_price is not None and item.quantity > 0 and expected_total > 0:
            computed = item.unit_price * item.quantity
            if abs(computed - expected_total) / expected_total > PRICE_TOLERANCE:
                item.confidence = min(item.confidence, MISMATCH_CONFIDENCE_CAP)
                logger.debug(
                    f"'{item.product_name}': {item.unit_price} x {item.quantity:g} "
                    f"!= {expected_total:.2f}"
                )

        if item.total_price > HIGH_PRICE:
            item.confidence = min(item.confidence, HIGH_PRICE_CONFIDENCE_CAP)
        elif item.total_price < LOW_PRICE:
            item.confidence = min(item.confidence, LOW_PRICE_CONFIDENCE_CAP)

        item.confidence = min(max(item.confidence, 0.0), 1.0)
        return item

    def merge_discounts(self, items: Sequence[ParsedReceiptItem]) -> List[ParsedReceiptItem]:
        """
        Fold discount lines into the item they apply to.

        Discounts are taken from the end of the list. Each one goes to the
        first non-discount item, searching from the end backwards, whose
        lower-cased name contains the discount's base name. Unmatched
        discounts are kept as negative items.
        """
        result = list(items)
        index = len(result) - 1
        while index >= 0:
            discount = result[index]
            if discount.is_discount:
                target = self._discount_target(result, discount)
                if target is not None:
                    amount = abs(discount.total_price)
                    target.discount = round((target.discount or 0.0) + amount, 2)
                    target.total_price = round(target.total_price - amount, 2)
                    logger.debug(f"Merged discount {amount:.2f} into '{target.product_name}'")
                    del result[index]
            index -= 1
        return result

    def _discount_target(self, items: Sequence[ParsedReceiptItem],
                         discount: ParsedReceiptItem) -> Optional[ParsedReceiptItem]:
        base = discount.base_name.lower()
        if not base:
            return None
        for candidate in reversed(items):
            if candidate is discount or candidate.is_discount:
                continue
            if base in candidate.product_name.lower():
                return candidate
        return None

    def validate(self, receipt: ParsedReceipt, ocr_confidence: float,
                 weights: ReceiptConfidenceWeights) -> ParsedReceipt:
        """Merge discounts, check every item, then recompute receipt confidence."""
        receipt.items = self.merge_discounts(receipt.items)
        for item in receipt.items:
            self.check_item(item)

        receipt.confidence = weights.compute(
            [item.confidence for item in receipt.items],
            receipt.items_total,
            receipt.total_amount,
            ocr_confidence,
        )
        if not receipt.items:
            receipt.confidence = min(receipt.confidence, EMPTY_RECEIPT_CONFIDENCE_CAP)

        logger.debug(
            f"Validated {len(receipt.items)} items, receipt confidence {receipt.confidence:.2f}"
        )
        return receipt
