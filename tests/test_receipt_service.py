"""Tests for the receipt service: upload pipeline and confirmation."""
import threading
from datetime import date, datetime, timedelta

import pytest

from models.parsed_receipt import MAX_NAME_LENGTH
from models.receipt import Receipt, ReceiptStatus
from models.upload import ConfirmedReceiptItem, ConfirmReceiptRequest, UploadOptions
from ocr.base_ocr import OCRResult
from services.errors import (
    ConfirmationError,
    ImageValidationError,
    ReceiptNotFoundError,
    ReceiptProcessingCancelled,
    StockWriteError,
)
from services.receipt_service import ReceiptService
from storage.memory_storage import InMemoryStockWriter
from tests.conftest import CARREFOUR_TEXT, LECLERC_TEXT, FakeOCR, make_image_bytes


class FlakyStockWriter(InMemoryStockWriter):
    """Fails for the listed products until they are removed from `failing`."""

    def __init__(self, failing=()):
        super().__init__()
        self.failing = set(failing)

    def add(self, product_id, quantity, unit, expiration_date, source_receipt_id):
        if product_id in self.failing:
            raise IOError(f"stock backend refused {product_id}")
        super().add(product_id, quantity, unit, expiration_date, source_receipt_id)


def make_service(config, receipt_store, catalog, stock_writer, text=CARREFOUR_TEXT, confidence=0.9, **ocr_kwargs):
    engine = FakeOCR(default=OCRResult(text=text, confidence=confidence), **ocr_kwargs)
    return ReceiptService(receipt_store, catalog, stock_writer, config=config, ocr_engine=engine)


@pytest.fixture
def service(config, receipt_store, catalog, stock_writer):
    return make_service(config, receipt_store, catalog, stock_writer)


@pytest.fixture
def options():
    return UploadOptions(user_id='user-1', household_id='house-1')


class TestUpload:

    def test_upload_parses_and_persists(self, service, receipt_store, receipt_png, options):
        result = service.upload_receipt(receipt_png, options)

        assert result.store_name == 'Carrefour'
        assert result.total_amount == 5.99
        assert result.status == ReceiptStatus.PENDING.value
        assert len(result.items) == 1
        item = result.items[0]
        assert item.product_name == 'Poulet'
        assert item.total_price == 5.99
        assert item.suggested_product.product_id == 'p-poulet'
        assert [s.product_id for s in result.suggested_products] == ['p-poulet']

        stored = receipt_store.find_by_id(result.receipt_id, 'user-1')
        assert stored is not None
        assert stored.household_id == 'house-1'
        assert stored.parser_used == 'carrefour'
        assert stored.raw_text == CARREFOUR_TEXT
        assert 0.0 <= stored.image_quality <= 1.0

    def test_failed_ocr_goes_to_review(self, config, receipt_store, catalog, stock_writer, receipt_png, options):
        service = make_service(config, receipt_store, catalog, stock_writer, fail=True)

        result = service.upload_receipt(receipt_png, options)

        assert result.status == ReceiptStatus.REVIEW.value
        assert result.items == []
        assert result.confidence <= 0.05
        stored = receipt_store.find_by_id(result.receipt_id, 'user-1')
        assert any(note.startswith('OCR failed') for note in stored.validation_notes)

    def test_low_confidence_goes_to_review(self, config, receipt_store, catalog, stock_writer, receipt_png, options):
        config.review_threshold = 0.95
        service = make_service(config, receipt_store, catalog, stock_writer)

        result = service.upload_receipt(receipt_png, options)

        assert result.status == ReceiptStatus.REVIEW.value

    def test_overlong_item_name_is_truncated_for_review(self, config, receipt_store, catalog, stock_writer,
                                                        receipt_png, options):
        service = make_service(config, receipt_store, catalog, stock_writer, text=("PRODUIT " * 30) + " 3.99")

        result = service.upload_receipt(receipt_png, options)

        assert len(result.items) == 1
        item = result.items[0]
        assert 0 < len(item.product_name) <= MAX_NAME_LENGTH
        assert item.total_price == 3.99
        assert item.needs_review
        assert result.status == ReceiptStatus.REVIEW.value

    def test_nameless_items_leave_an_empty_low_confidence_receipt(self, config, receipt_store, catalog,
                                                                 stock_writer, receipt_png, options):
        service = make_service(config, receipt_store, catalog, stock_writer,
                               text="CARREFOUR\n**** 5.99\nTOTAL 5.99")

        result = service.upload_receipt(receipt_png, options)

        assert result.items == []
        assert result.confidence <= 0.05
        assert result.status == ReceiptStatus.REVIEW.value

    def test_jpeg_and_webp_accepted(self, service):
        assert service.validate_image(make_image_bytes(mode='RGB', fmt='JPEG')) == 'JPEG'
        assert service.validate_image(make_image_bytes(mode='RGB', fmt='WEBP')) == 'WEBP'

    @pytest.mark.parametrize('data', [b'', None])
    def test_missing_image_rejected(self, service, data, options):
        with pytest.raises(ImageValidationError):
            service.upload_receipt(data, options)

    def test_oversized_image_rejected(self, config, receipt_store, catalog, stock_writer, receipt_png, options):
        config.max_image_bytes = 100
        service = make_service(config, receipt_store, catalog, stock_writer)

        with pytest.raises(ImageValidationError) as exc_info:
            service.upload_receipt(receipt_png, options)
        assert exc_info.value.details['limit'] == 100
        assert service.ocr.calls == []

    def test_unsupported_format_rejected(self, service, options):
        with pytest.raises(ImageValidationError, match='Unsupported image format'):
            service.upload_receipt(make_image_bytes(fmt='GIF'), options)

    def test_corrupt_image_rejected(self, service, receipt_store, options):
        with pytest.raises(ImageValidationError):
            service.upload_receipt(b'\x89PNG\r\n\x1a\nnot really a png', options)
        assert receipt_store.find_by_user('user-1') == []

    def test_cancelled_before_ocr_persists_nothing(self, service, receipt_store, receipt_png, options):
        cancel = threading.Event()
        cancel.set()

        with pytest.raises(ReceiptProcessingCancelled):
            service.upload_receipt(receipt_png, options, cancel_event=cancel)

        assert service.ocr.calls == []
        assert receipt_store.find_by_user('user-1') == []

    def test_cancelled_during_ocr_persists_nothing(self, config, receipt_store, catalog, stock_writer,
                                                   receipt_png, options):
        cancel = threading.Event()

        class CancellingOCR(FakeOCR):
            def _extract_text(self, image, psm, timeout):
                cancel.set()
                return super()._extract_text(image, psm, timeout)

        engine = CancellingOCR(default=OCRResult(text=CARREFOUR_TEXT, confidence=0.9))
        service = ReceiptService(receipt_store, catalog, stock_writer, config=config, ocr_engine=engine)

        with pytest.raises(ReceiptProcessingCancelled):
            service.upload_receipt(receipt_png, options, cancel_event=cancel)
        assert receipt_store.find_by_user('user-1') == []


class TestConfirm:

    def upload(self, service, options):
        return service.upload_receipt(make_image_bytes(), options)

    def test_confirm_adds_stock(self, service, stock_writer, options):
        uploaded = self.upload(service, options)
        item_id = uploaded.items[0].id

        result = service.confirm_receipt(ConfirmReceiptRequest(
            receipt_id=uploaded.receipt_id,
            user_id='user-1',
            confirmed_items=[ConfirmedReceiptItem(
                receipt_item_id=item_id, product_id='p-poulet', quantity=2,
                unit_price=3.0, expiration_date=date(2024, 3, 20),
            )],
        ))

        assert result.confirmed_count == 1
        assert len(stock_writer.entries) == 1
        entry = stock_writer.entries[0]
        assert entry.product_id == 'p-poulet'
        assert entry.quantity == 2
        assert entry.expiration_date == date(2024, 3, 20)
        assert entry.source_receipt_id == uploaded.receipt_id

        receipt = service.get_receipt_details(uploaded.receipt_id, 'user-1')
        assert receipt.status == ReceiptStatus.CONFIRMED
        assert receipt.confirmed_at is not None
        assert receipt.confirmed_items_count == 1
        item = receipt.get_item(item_id)
        assert item.product_id == 'p-poulet'
        assert item.confirmed_quantity == 2
        assert item.unit_price == 3.0

    def test_confirmed_receipt_cannot_be_confirmed_again(self, service, stock_writer, options):
        uploaded = self.upload(service, options)
        request = ConfirmReceiptRequest(
            receipt_id=uploaded.receipt_id,
            user_id='user-1',
            confirmed_items=[ConfirmedReceiptItem(
                receipt_item_id=uploaded.items[0].id, product_id='p-poulet', quantity=1)],
        )
        service.confirm_receipt(request)

        with pytest.raises(ConfirmationError):
            service.confirm_receipt(request)
        assert len(stock_writer.entries) == 1

    def test_unknown_receipt(self, service):
        with pytest.raises(ReceiptNotFoundError):
            service.confirm_receipt(ConfirmReceiptRequest(receipt_id='missing', user_id='user-1'))

    def test_other_users_receipt_is_not_found(self, service, options):
        uploaded = self.upload(service, options)

        with pytest.raises(ReceiptNotFoundError):
            service.confirm_receipt(ConfirmReceiptRequest(receipt_id=uploaded.receipt_id, user_id='user-2'))

    def test_unknown_item_writes_nothing(self, service, stock_writer, options):
        uploaded = self.upload(service, options)

        with pytest.raises(ConfirmationError, match='Unknown receipt item'):
            service.confirm_receipt(ConfirmReceiptRequest(
                receipt_id=uploaded.receipt_id,
                user_id='user-1',
                confirmed_items=[
                    ConfirmedReceiptItem(receipt_item_id=uploaded.items[0].id, product_id='p-poulet', quantity=1),
                    ConfirmedReceiptItem(receipt_item_id='nope', product_id='p-pain', quantity=1),
                ],
            ))
        assert stock_writer.entries == []

    def test_confirmed_item_needs_product(self, service, stock_writer, options):
        uploaded = self.upload(service, options)

        with pytest.raises(ConfirmationError, match='has no product'):
            service.confirm_receipt(ConfirmReceiptRequest(
                receipt_id=uploaded.receipt_id,
                user_id='user-1',
                confirmed_items=[ConfirmedReceiptItem(receipt_item_id=uploaded.items[0].id, quantity=1)],
            ))
        assert stock_writer.entries == []

    def test_rejected_items_are_skipped(self, service, stock_writer, options):
        uploaded = self.upload(service, options)

        result = service.confirm_receipt(ConfirmReceiptRequest(
            receipt_id=uploaded.receipt_id,
            user_id='user-1',
            confirmed_items=[ConfirmedReceiptItem(
                receipt_item_id=uploaded.items[0].id, quantity=1, confirmed=False)],
        ))

        assert result.confirmed_count == 0
        assert stock_writer.entries == []

    def test_partial_stock_failure_then_retry(self, config, receipt_store, catalog, options):
        writer = FlakyStockWriter(failing={'p-lait'})
        service = make_service(config, receipt_store, catalog, writer, text=LECLERC_TEXT)
        uploaded = self.upload(service, options)
        assert len(uploaded.items) >= 2
        lait, yaourt = uploaded.items[0], uploaded.items[1]
        request = ConfirmReceiptRequest(
            receipt_id=uploaded.receipt_id,
            user_id='user-1',
            confirmed_items=[
                ConfirmedReceiptItem(receipt_item_id=lait.id, product_id='p-lait', quantity=1),
                ConfirmedReceiptItem(receipt_item_id=yaourt.id, product_id='p-yaourt', quantity=1),
            ],
        )

        with pytest.raises(StockWriteError) as exc_info:
            service.confirm_receipt(request)

        assert exc_info.value.failed_item_ids == [lait.id]
        assert [e.product_id for e in writer.entries] == ['p-yaourt']
        receipt = service.get_receipt_details(uploaded.receipt_id, 'user-1')
        assert receipt.is_confirmable
        assert receipt.get_item(yaourt.id).product_id == 'p-yaourt'
        assert receipt.get_item(lait.id).product_id is None

        writer.failing.clear()
        result = service.confirm_receipt(request)

        assert result.confirmed_count == 2
        assert [e.product_id for e in writer.entries] == ['p-yaourt', 'p-lait']
        assert service.get_receipt_details(uploaded.receipt_id, 'user-1').status == ReceiptStatus.CONFIRMED


class TestHistory:

    def test_user_receipts_newest_first(self, service, receipt_store):
        now = datetime(2024, 3, 12, 18, 0)
        for offset, receipt_id in enumerate(['old', 'mid', 'new']):
            receipt_store.save(Receipt(id=receipt_id, user_id='user-1', created_at=now + timedelta(hours=offset)))
        receipt_store.save(Receipt(id='other', user_id='user-2', created_at=now))

        assert [r.id for r in service.get_user_receipts('user-1')] == ['new', 'mid', 'old']
        assert [r.id for r in service.get_user_receipts('user-1', limit=2)] == ['new', 'mid']

    def test_receipt_details_not_found(self, service):
        with pytest.raises(ReceiptNotFoundError):
            service.get_receipt_details('missing', 'user-1')
