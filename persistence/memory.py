import threading
import uuid
from typing import Dict, List, Optional

from booking_schemas import Booking, CatalogItem, Payment, Requester
from errors import ReferenceCollision

from .models import utcnow


class InMemoryBookingRepository:
    """
    Dict-backed repository with the same contract as SqlBookingRepository.
    A single lock stands in for the store's row-level atomicity, so
    compare-and-set updates and the reference uniqueness check are safe
    across threads.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.profiles: Dict[str, Requester] = {}
        self.catalog: Dict[str, CatalogItem] = {}
        self.bookings: Dict[str, Booking] = {}
        self.payments: Dict[str, Payment] = {}

    # --- seeding helpers ---

    def add_profile(self, requester: Requester) -> Requester:
        self.profiles[requester.user_id] = requester
        return requester

    def add_catalog_item(self, item: CatalogItem) -> CatalogItem:
        self.catalog[item.id] = item
        return item

    # --- reads ---

    def get_requester(self, user_id: str) -> Optional[Requester]:
        return self.profiles.get(user_id)

    def get_catalog_item(self, item_ref: str) -> Optional[CatalogItem]:
        return self.catalog.get(item_ref)

    def get_booking(self, booking_id: str) -> Optional[Booking]:
        return self.bookings.get(booking_id)

    def list_bookings(self, owner_id: Optional[str] = None) -> List[Booking]:
        rows = [b for b in self.bookings.values() if owner_id is None or b.owner_id == owner_id]
        return sorted(rows, key=lambda b: (b.created_at, b.reference), reverse=True)

    def get_payment(self, payment_id: str) -> Optional[Payment]:
        return self.payments.get(payment_id)

    def get_payment_by_internal_reference(self, reference: str) -> Optional[Payment]:
        return next((p for p in self.payments.values() if p.internal_reference == reference), None)

    def get_payment_by_gateway_reference(self, reference: str) -> Optional[Payment]:
        for p in self.payments.values():
            if p.gateway_reference == reference or p.internal_reference == reference:
                return p
        return None

    def list_payments(self, owner_id: Optional[str] = None) -> List[Payment]:
        rows = [p for p in self.payments.values() if owner_id is None or p.owner_id == owner_id]
        return sorted(rows, key=lambda p: p.created_at, reverse=True)

    # --- writes ---

    def insert_booking(self, values: dict) -> Booking:
        with self._lock:
            if any(b.reference == values["reference"] for b in self.bookings.values()):
                raise ReferenceCollision(values["reference"])
            now = utcnow()
            booking = Booking(id=str(uuid.uuid4()), created_at=now, updated_at=now, **values)
            self.bookings[booking.id] = booking
            return booking

    def update_booking_status(self, booking_id: str, expected: str, new: str) -> bool:
        with self._lock:
            booking = self.bookings.get(booking_id)
            if booking is None or booking.status != expected:
                return False
            self.bookings[booking_id] = booking.model_copy(update={"status": new, "updated_at": utcnow()})
            return True

    def update_booking_fields(self, booking_id: str, fields: dict) -> Booking:
        with self._lock:
            booking = self.bookings[booking_id].model_copy(update={**fields, "updated_at": utcnow()})
            self.bookings[booking_id] = booking
            return booking

    def insert_payment(self, values: dict) -> Payment:
        with self._lock:
            now = utcnow()
            payment = Payment(id=str(uuid.uuid4()), created_at=now, updated_at=now, **values)
            self.payments[payment.id] = payment
            return payment

    def attach_gateway_reference(self, payment_id: str, gateway_reference: str, metadata: dict) -> Payment:
        with self._lock:
            payment = self.payments[payment_id]
            if payment.status != "PENDING":
                return payment
            payment = payment.model_copy(
                update={"gateway_reference": gateway_reference, "raw_metadata": metadata, "updated_at": utcnow()}
            )
            self.payments[payment_id] = payment
            return payment

    def settle_payment(self, payment_id: str, status: str, raw_metadata: dict) -> bool:
        with self._lock:
            payment = self.payments.get(payment_id)
            if payment is None or payment.status != "PENDING":
                return False
            self.payments[payment_id] = payment.model_copy(
                update={"status": status, "raw_metadata": raw_metadata, "updated_at": utcnow()}
            )
            return True
