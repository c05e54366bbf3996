from decimal import Decimal

import pytest

from booking_schemas import CatalogItem
from errors import ItemNotFound, ItemUnavailable, ValidationError
from payments.paystack import to_minor_units
from pricing import PriceResolver


def test_catalog_price_times_travelers(repository):
    assert PriceResolver(repository).resolve(2, item_ref="PKG-1") == 500000


def test_custom_price_is_used_as_given(repository):
    assert PriceResolver(repository).resolve(3, custom_price=120000) == 360000


def test_free_custom_price_is_allowed(repository):
    assert PriceResolver(repository).resolve(1, custom_price=0) == 0


def test_unknown_package(repository):
    with pytest.raises(ItemNotFound):
        PriceResolver(repository).resolve(1, item_ref="PKG-404")


def test_inactive_package(repository):
    with pytest.raises(ItemUnavailable):
        PriceResolver(repository).resolve(1, item_ref="PKG-OFF")


@pytest.mark.parametrize("item_ref, custom_price", [(None, None), ("PKG-1", 1000)])
def test_exactly_one_price_source(repository, item_ref, custom_price):
    with pytest.raises(ValidationError):
        PriceResolver(repository).resolve(1, item_ref=item_ref, custom_price=custom_price)


def test_negative_custom_price(repository):
    with pytest.raises(ValidationError):
        PriceResolver(repository).resolve(1, custom_price=-1)


def test_zero_travelers(repository):
    with pytest.raises(ValidationError):
        PriceResolver(repository).resolve(0, item_ref="PKG-1")


def test_later_catalog_change_does_not_touch_the_computed_total(repository):
    resolver = PriceResolver(repository)
    total = resolver.resolve(2, item_ref="PKG-1")
    repository.add_catalog_item(CatalogItem(id="PKG-1", title="Zanzibar getaway", price=999999))
    assert total == 500000


@pytest.mark.parametrize("major, minor", [
    (Decimal("2500"), 250000),
    (Decimal("2500.50"), 250050),
    (Decimal("0.005"), 1),
    (Decimal("0.004"), 0),
    (Decimal("19.995"), 2000),
    (12.34, 1234),
    ("7", 700),
])
def test_to_minor_units_rounds_half_up(major, minor):
    assert to_minor_units(major) == minor
