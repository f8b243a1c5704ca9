"""Tests for receipt and product models."""
import pytest
from pydantic import ValidationError

from models.product import Product, ProductSuggestion
from models.receipt import (
    UNKNOWN_STORE,
    InvalidStatusTransition,
    Receipt,
    ReceiptItem,
    ReceiptStatus,
)


def make_receipt(**kwargs):
    return Receipt(user_id='user-1', **kwargs)


class TestReceiptItem:

    def test_name_whitespace_collapsed(self):
        item = ReceiptItem(product_name='  Pain   de  mie ', total_price=1.85)
        assert item.product_name == 'Pain de mie'

    def test_blank_name_rejected(self):
        with pytest.raises(ValidationError):
            ReceiptItem(product_name='   ', total_price=1.0)

    def test_quantity_must_be_positive(self):
        with pytest.raises(ValidationError):
            ReceiptItem(product_name='Pain', total_price=1.0, quantity=0)

    def test_amounts_rounded(self):
        item = ReceiptItem(product_name='Pommes', total_price=4.499, unit_price=2.9949)
        assert item.total_price == 4.5
        assert item.unit_price == 2.99

    def test_link_only_once(self):
        item = ReceiptItem(product_name='Pain', total_price=1.0)
        item.link('p-pain', 2)

        assert item.is_linked
        assert item.confirmed_quantity == 2
        with pytest.raises(ValueError):
            item.link('p-autre', 1)
        assert item.product_id == 'p-pain'

    def test_ids_are_unique(self):
        first = ReceiptItem(product_name='A', total_price=1.0)
        second = ReceiptItem(product_name='A', total_price=1.0)
        assert first.id != second.id


class TestReceipt:

    def test_defaults(self):
        receipt = make_receipt()
        assert receipt.status == ReceiptStatus.PROCESSING
        assert receipt.store_name == UNKNOWN_STORE
        assert receipt.items == []

    def test_store_name_cleaned(self):
        assert make_receipt(store_name='  E.Leclerc  *** ').store_name == 'E.Leclerc'
        assert make_receipt(store_name='***').store_name == UNKNOWN_STORE

    def test_items_keep_line_order(self):
        items = [
            ReceiptItem(product_name='A', total_price=1.0, line_number=2),
            ReceiptItem(product_name='B', total_price=1.0, line_number=1),
        ]
        with pytest.raises(ValidationError):
            make_receipt(items=items)

    def test_forward_transitions(self):
        receipt = make_receipt()
        receipt.transition_to(ReceiptStatus.PENDING)
        receipt.transition_to(ReceiptStatus.REVIEW)
        receipt.mark_confirmed(3)

        assert receipt.status == ReceiptStatus.CONFIRMED
        assert receipt.confirmed_items_count == 3
        assert receipt.confirmed_at == receipt.updated_at

    @pytest.mark.parametrize('path', [
        [ReceiptStatus.REVIEW, ReceiptStatus.PENDING],
        [ReceiptStatus.PENDING, ReceiptStatus.PROCESSING],
        [ReceiptStatus.ERROR, ReceiptStatus.PENDING],
        [ReceiptStatus.PENDING, ReceiptStatus.CONFIRMED, ReceiptStatus.REVIEW],
    ])
    def test_backward_transitions_rejected(self, path):
        receipt = make_receipt()
        for status in path[:-1]:
            receipt.transition_to(status)

        with pytest.raises(InvalidStatusTransition):
            receipt.transition_to(path[-1])
        assert receipt.status == path[-2]

    def test_same_status_is_a_no_op(self):
        receipt = make_receipt()
        receipt.transition_to(ReceiptStatus.REVIEW)
        receipt.transition_to(ReceiptStatus.REVIEW)
        assert receipt.status == ReceiptStatus.REVIEW

    def test_confirmable(self):
        receipt = make_receipt()
        assert not receipt.is_confirmable
        receipt.transition_to(ReceiptStatus.PENDING)
        assert receipt.is_confirmable

    def test_validation_notes_not_duplicated(self):
        receipt = make_receipt()
        receipt.add_validation_note('Some items need review')
        receipt.add_validation_note('Some items need review')
        assert receipt.validation_notes == ['Some items need review']

    def test_json_round_trip_keeps_status(self):
        receipt = make_receipt(items=[ReceiptItem(product_name='Pain', total_price=1.0)])
        receipt.transition_to(ReceiptStatus.REVIEW)

        restored = Receipt.model_validate(receipt.model_dump(mode='json'))

        assert restored.status == ReceiptStatus.REVIEW
        assert restored.items[0].id == receipt.items[0].id


def test_suggestion_score_clamped():
    product = Product(id='p-1', name='Pain', brand='Harrys')

    suggestion = ProductSuggestion.from_product(product, 1.7)

    assert suggestion.score == 1.0
    assert suggestion.brand == 'Harrys'
    assert ProductSuggestion.from_product(product, -0.2).score == 0.0
