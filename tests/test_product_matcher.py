"""Tests for catalog matching."""
from unittest.mock import Mock

import pytest

from models.product import Product
from models.receipt import ReceiptItem
from models.units import Unit
from services.product_matcher import CatalogIndex, ProductMatcher, normalize_product_name
from storage.memory_storage import InMemoryCatalog


def make_item(name, code=None):
    return ReceiptItem(product_name=name, total_price=1.0, product_code=code)


@pytest.fixture
def matcher(catalog):
    return ProductMatcher(catalog, min_score=0.6)


def test_normalize_product_name():
    assert normalize_product_name("Paquet de Surimi") == "surimi"
    assert normalize_product_name("B0UTEILLE de P0ULET") == "poulet"
    assert normalize_product_name("Lait 1 l") == "lait 1 l"


def test_fuzzy_match(matcher):
    suggestions = matcher.suggest(make_item("Poulet Fermier"))

    assert suggestions[0].product_id == 'p-poulet'
    assert suggestions[0].score == pytest.approx(1.0)
    assert suggestions[0].source == 'fuzzy'


def test_barcode_match_comes_first(matcher):
    suggestions = matcher.suggest(make_item("Lt Demi Ecr", code='3256220000017'))

    assert suggestions[0].product_id == 'p-lait'
    assert suggestions[0].source == 'barcode'
    assert suggestions[0].score == 1.0
    assert len({s.product_id for s in suggestions}) == len(suggestions)


def test_no_suggestion_below_threshold(matcher):
    assert matcher.suggest(make_item("Tournevis cruciforme")) == []


def test_short_names_are_not_searched(matcher):
    assert matcher.search("de") == []


def test_at_most_three_per_item(catalog):
    for i in range(6):
        catalog.add(Product(id=f'y{i}', name=f'Yaourt nature {i}'))
    matcher = ProductMatcher(catalog, max_results=10)

    suggestions = matcher.suggest(make_item("Yaourt Nature"))

    assert len(suggestions) == 3
    assert [s.score for s in suggestions] == sorted((s.score for s in suggestions), reverse=True)


def test_match_items_flattens_and_dedupes(matcher):
    items = [make_item("Poulet Fermier"), make_item("Poulet"), make_item("Pain de mie")]

    per_item, flattened = matcher.match_items(items)

    assert set(per_item) == {item.id for item in items}
    ids = [s.product_id for s in flattened]
    assert len(ids) == len(set(ids))
    assert 'p-poulet' in ids and 'p-pain' in ids
    assert len(flattened) <= 10


def test_catalog_failure_gives_no_suggestions():
    catalog = Mock()
    catalog.find_by_barcode.side_effect = ConnectionError("catalog down")
    catalog.search_by_name.side_effect = ConnectionError("catalog down")
    matcher = ProductMatcher(catalog)

    assert matcher.suggest(make_item("Poulet", code='123456')) == []


def test_index_refresh_swaps_snapshot():
    catalog = InMemoryCatalog([Product(id='a', name='Pain')])
    index = CatalogIndex(catalog)

    first = index.build()
    catalog.add(Product(id='b', name='Beurre'))
    assert index.build() is first

    second = index.refresh()
    assert second is not first
    assert [p.id for p in second.products] == ['a', 'b']
    assert [p.id for p in first.products] == ['a']


def test_barcode_failure_still_searches_by_name(catalog):
    flaky = Mock(wraps=catalog)
    flaky.find_by_barcode.side_effect = ConnectionError("barcode index down")
    matcher = ProductMatcher(flaky)

    suggestions = matcher.suggest(make_item("Poulet Fermier", code='123456'))

    assert [s.product_id for s in suggestions][:1] == ['p-poulet']
    assert suggestions[0].source == 'fuzzy'


def test_catalog_packaging_is_parsed_on_add(catalog):
    lait = catalog.find_by_barcode('3256220000017')

    assert lait.packaging.is_multipack
    assert lait.packaging.total_quantity == 6
    assert lait.packaging.total_unit == Unit.L
    assert catalog.search_by_name('poulet')[0].packaging is None

    catalog.add(Product(id='p-x', name='Format familial', quantity='format familial'))
    assert catalog.search_by_name('familial')[0].packaging is None
