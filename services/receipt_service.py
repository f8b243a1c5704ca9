import io
import logging
import threading
import time
from typing import List, Optional

from PIL import Image, UnidentifiedImageError

from config.receipt_config import ReceiptConfig
from models.parsed_receipt import ParsedReceipt
from models.receipt import Receipt, ReceiptItem, ReceiptStatus
from models.upload import (
    ConfirmReceiptRequest,
    ConfirmReceiptResult,
    ReceiptItemResult,
    ReceiptUploadResult,
    UploadOptions,
)
from ocr import BaseOCR, OCRCancelled, OCROrchestrator, OCRResult, create_ocr_engine
from services.errors import (
    ConfirmationError,
    ImageValidationError,
    ReceiptNotFoundError,
    ReceiptProcessingCancelled,
    StockWriteError,
)
from services.product_matcher import ProductMatcher
from services.receipt_analyzer import ReceiptAnalyzer
from storage.base import CatalogLookup, ReceiptStore, StockWriter
from utils.image_preprocessor import ImagePreprocessor
from utils.image_quality import ImageQualityAnalyzer
from utils.logging_config import log_with_context

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = {'JPEG', 'PNG', 'WEBP'}


class ReceiptService:
    """
    Service for processing receipts: upload, OCR, parsing, matching and
    confirmation into stock.
    """

    def __init__(self,
                 receipt_store: ReceiptStore,
                 catalog: CatalogLookup,
                 stock_writer: StockWriter,
                 config: Optional[ReceiptConfig] = None,
                 ocr_engine: Optional[BaseOCR] = None,
                 analyzer: Optional[ReceiptAnalyzer] = None,
                 matcher: Optional[ProductMatcher] = None):
        """
        Initialize the receipt service.

        Args:
            receipt_store: Persistence for receipts
            catalog: Product catalog used for suggestions
            stock_writer: Inventory receiving confirmed items
            config: Settings; read from the environment when omitted
            ocr_engine: OCR engine; a Tesseract engine is created when omitted
            analyzer: Text-to-items pipeline
            matcher: Catalog matcher
        """
        self.config = config or ReceiptConfig()
        self.receipt_store = receipt_store
        self.catalog = catalog
        self.stock_writer = stock_writer

        self.ocr = ocr_engine or create_ocr_engine(
            tesseract_cmd=self.config.tesseract_cmd,
            language=self.config.ocr_language,
            timeout=self.config.ocr_timeout,
        )
        self.orchestrator = OCROrchestrator(
            self.ocr,
            max_workers=self.config.ocr_max_workers,
            timeout=self.config.ocr_timeout,
        )
        self.preprocessor = ImagePreprocessor(target_width=self.config.target_width)
        self.quality_analyzer = ImageQualityAnalyzer()
        self.analyzer = analyzer or ReceiptAnalyzer()
        self.matcher = matcher or ProductMatcher(
            catalog,
            min_score=self.config.matcher_min_score,
            max_results=self.config.matcher_max_results,
        )

    def validate_image(self, image_data: Optional[bytes]) -> str:
        """
        Check size and format before any OCR work.

        Returns:
            The detected image format

        Raises:
            ImageValidationError: For missing, oversized, corrupt or unsupported images
        """
        if not image_data:
            raise ImageValidationError("No image provided")
        if len(image_data) > self.config.max_image_bytes:
            raise ImageValidationError(
                f"Image is {len(image_data)} bytes, limit is {self.config.max_image_bytes}",
                {'size': len(image_data), 'limit': self.config.max_image_bytes}
            )

        try:
            with Image.open(io.BytesIO(image_data)) as img:
                image_format = img.format
                img.verify()
        except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
            raise ImageValidationError(f"Corrupt or unreadable image: {e}") from e

        if image_format not in SUPPORTED_FORMATS:
            raise ImageValidationError(
                f"Unsupported image format: {image_format}",
                {'format': image_format, 'supported': sorted(SUPPORTED_FORMATS)}
            )
        return image_format

    def upload_receipt(self, image_data: bytes, options: UploadOptions,
                       cancel_event: Optional[threading.Event] = None) -> ReceiptUploadResult:
        """
        Run the whole pipeline on an uploaded image and persist the receipt.

        Args:
            image_data: Encoded JPEG, PNG or WEBP image
            options: Owner of the receipt
            cancel_event: Set by the caller to abort; nothing is persisted then

        Raises:
            ImageValidationError: If the image is rejected
            ReceiptProcessingCancelled: If cancel_event was set before the receipt was saved
        """
        start = time.monotonic()
        self.validate_image(image_data)
        self._check_cancelled(cancel_event)

        quality = self.quality_analyzer.score(image_data)
        variants = self.preprocessor.create_variants(image_data)
        self._check_cancelled(cancel_event)

        try:
            ocr_result = self.orchestrator.extract_best(variants, cancel_event)
        except OCRCancelled as e:
            raise ReceiptProcessingCancelled("Receipt processing cancelled during OCR") from e
        self._check_cancelled(cancel_event)

        parsed = self.analyzer.analyze(ocr_result.text, ocr_result.confidence)
        receipt = self.build_receipt(parsed, ocr_result, quality, options)
        self._check_cancelled(cancel_event)

        self.receipt_store.save(receipt)

        per_item, suggested = self.matcher.match_items(receipt.items)
        result = ReceiptUploadResult(
            receipt_id=receipt.id,
            store_name=receipt.store_name,
            receipt_date=receipt.receipt_date,
            total_amount=receipt.total_amount,
            confidence=receipt.parsing_confidence,
            status=receipt.status.value,
            items=[ReceiptItemResult.from_item(item, per_item.get(item.id, [])) for item in receipt.items],
            suggested_products=suggested,
        )

        log_with_context(logger, logging.INFO, f"Processed receipt {receipt.id}", {
            'receipt_id': receipt.id,
            'store': receipt.store_name,
            'parser': receipt.parser_used,
            'items': len(receipt.items),
            'confidence': receipt.parsing_confidence,
            'status': receipt.status.value,
            'duration': round(time.monotonic() - start, 3),
        })
        return result

    def build_receipt(self, parsed: ParsedReceipt, ocr_result: OCRResult,
                      quality: float, options: UploadOptions) -> Receipt:
        """Derive the persisted receipt from parser output and pick its status."""
        items = []
        for parsed_item in parsed.items:
            items.append(ReceiptItem(
                raw_text=parsed_item.raw_text,
                product_name=parsed_item.product_name,
                quantity=parsed_item.quantity,
                unit=parsed_item.unit,
                unit_price=parsed_item.unit_price,
                total_price=parsed_item.total_price,
                product_code=parsed_item.product_code,
                discount=parsed_item.discount,
                confidence=min(max(parsed_item.confidence, 0.0), 1.0),
                line_number=parsed_item.line_number,
                needs_review=parsed_item.needs_review,
                notes=list(parsed_item.notes),
            ))

        receipt = Receipt(
            user_id=options.user_id,
            household_id=options.household_id,
            store_name=parsed.store_name,
            store_address=parsed.store_address,
            receipt_date=parsed.receipt_date,
            total_amount=parsed.total_amount,
            raw_text=ocr_result.text,
            ocr_confidence=min(max(ocr_result.confidence, 0.0), 1.0),
            parsing_confidence=min(max(parsed.confidence, 0.0), 1.0),
            image_quality=min(max(quality, 0.0), 1.0),
            parser_used=parsed.parser_name,
            items=items,
        )

        if not ocr_result.succeeded:
            receipt.add_validation_note(f"OCR failed: {ocr_result.error}")
        if receipt.parsing_confidence < self.config.review_threshold:
            receipt.add_validation_note(f"Low parsing confidence ({receipt.parsing_confidence:.2f})")
        if any(item.needs_review for item in items):
            receipt.add_validation_note("Some items need review")

        receipt.transition_to(ReceiptStatus.REVIEW if receipt.validation_notes else ReceiptStatus.PENDING)
        return receipt

    def confirm_receipt(self, request: ConfirmReceiptRequest) -> ConfirmReceiptResult:
        """
        Link confirmed items to catalog products and add them to stock.

        Every confirmed item is checked before any stock write. Items linked
        by an earlier attempt are skipped, so a retry never writes twice.

        Raises:
            ReceiptNotFoundError: If the receipt does not exist for the user
            ConfirmationError: If the receipt or an item cannot be confirmed
            StockWriteError: If some stock writes failed; the others stay committed
        """
        receipt = self.receipt_store.find_by_id(request.receipt_id, request.user_id)
        if receipt is None:
            raise ReceiptNotFoundError(request.receipt_id, request.user_id)
        if not receipt.is_confirmable:
            raise ConfirmationError(
                f"Receipt {receipt.id} cannot be confirmed from status '{receipt.status.value}'",
                {'receipt_id': receipt.id, 'status': receipt.status.value}
            )

        to_confirm = []
        for confirmed in request.confirmed_items:
            item = receipt.get_item(confirmed.receipt_item_id)
            if item is None:
                raise ConfirmationError(
                    f"Unknown receipt item {confirmed.receipt_item_id}",
                    {'receipt_id': receipt.id, 'receipt_item_id': confirmed.receipt_item_id}
                )
            if not confirmed.confirmed:
                continue
            if not confirmed.product_id:
                raise ConfirmationError(
                    f"Confirmed item {item.id} has no product",
                    {'receipt_id': receipt.id, 'receipt_item_id': item.id}
                )
            to_confirm.append((item, confirmed))

        failed = []
        for item, confirmed in to_confirm:
            if item.is_linked:
                logger.debug(f"Item {item.id} already linked to {item.product_id}, skipping")
                continue
            try:
                self.stock_writer.add(
                    confirmed.product_id,
                    confirmed.quantity,
                    item.unit,
                    confirmed.expiration_date,
                    receipt.id,
                )
            except Exception as e:
                logger.error(f"Stock write failed for item {item.id} of receipt {receipt.id}: {e}")
                failed.append(item.id)
                continue

            item.link(confirmed.product_id, confirmed.quantity, confirmed.expiration_date)
            if confirmed.unit_price is not None:
                item.unit_price = round(confirmed.unit_price, 2)

        linked_count = sum(1 for item in receipt.items if item.is_linked)

        if failed:
            receipt.add_validation_note(f"Stock update failed for {len(failed)} item(s)")
            self.receipt_store.save(receipt)
            raise StockWriteError(receipt.id, failed)

        receipt.mark_confirmed(linked_count)
        self.receipt_store.save(receipt)
        log_with_context(logger, logging.INFO, f"Confirmed receipt {receipt.id}", {
            'receipt_id': receipt.id,
            'confirmed_items': linked_count,
        })
        return ConfirmReceiptResult(receipt_id=receipt.id, confirmed_count=linked_count)

    def get_user_receipts(self, user_id: str, limit: int = 50) -> List[Receipt]:
        """Receipt history of a user, newest first."""
        return self.receipt_store.find_by_user(user_id, limit=limit)

    def get_receipt_details(self, receipt_id: str, user_id: str) -> Receipt:
        receipt = self.receipt_store.find_by_id(receipt_id, user_id)
        if receipt is None:
            raise ReceiptNotFoundError(receipt_id, user_id)
        return receipt

    def _check_cancelled(self, cancel_event: Optional[threading.Event]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            logger.info("Receipt processing cancelled by caller")
            raise ReceiptProcessingCancelled("Receipt processing cancelled")
