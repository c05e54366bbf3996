from typing import Optional, Protocol

from booking_schemas import CatalogItem
from errors import ItemNotFound, ItemUnavailable, ValidationError


class Catalog(Protocol):
    def get_catalog_item(self, item_ref: str) -> Optional[CatalogItem]:
        ...


class PriceResolver:
    """
    Total = unit price x traveler count, in minor units.
    Catalog bookings always use the catalog's current price; a custom unit
    price is taken as supplied.
    """

    def __init__(self, catalog: Catalog):
        self.catalog = catalog

    def unit_price(self, item_ref: Optional[str] = None, custom_price: Optional[int] = None) -> int:
        if (item_ref is None) == (custom_price is None):
            raise ValidationError("Exactly one of item_ref or custom_price is required")
        if item_ref is not None:
            item = self.catalog.get_catalog_item(item_ref)
            if item is None:
                raise ItemNotFound(f"Package {item_ref} not found")
            if not item.available:
                raise ItemUnavailable(f"Package {item_ref} is not available")
            return item.price
        if custom_price < 0:
            raise ValidationError("custom_price must be >= 0")
        return custom_price

    def resolve(
        self,
        traveler_count: int,
        item_ref: Optional[str] = None,
        custom_price: Optional[int] = None,
    ) -> int:
        if traveler_count < 1:
            raise ValidationError("traveler_count must be >= 1")
        return self.unit_price(item_ref, custom_price) * traveler_count
