import logging
from typing import List

from booking_schemas import Booking, BookingCreate, BookingUpdate, Requester
from errors import BookingNotFound, Forbidden, InvalidTransition, ValidationError
from payments.paystack import to_minor_units
from persistence.repository import BookingRepository
from pricing import PriceResolver
from references import ReferenceGenerator
from state_machine import CANCELLABLE, FROZEN, authorize_transition

logger = logging.getLogger(__name__)


class BookingStore:
    """
    The only way the application reads or writes bookings.
    Every public method takes the requester and enforces ownership:
    only the owner or an administrator may see or change a booking.
    """

    def __init__(
        self,
        repository: BookingRepository,
        references: ReferenceGenerator,
        pricing: PriceResolver,
        currency: str,
    ):
        self.repository = repository
        self.references = references
        self.pricing = pricing
        self.currency = currency

    def create(self, owner: Requester, data: BookingCreate) -> Booking:
        """
        Validate, price once, then insert as PENDING under a freshly allocated reference.
        Nothing is written unless all three steps succeed.
        """
        if len(data.traveler_details) != data.traveler_count:
            raise ValidationError(
                f"traveler_details has {len(data.traveler_details)} entries, "
                f"expected traveler_count={data.traveler_count}"
            )

        custom_price = None
        if data.custom_price is not None:
            custom_price = to_minor_units(data.custom_price)
        elif data.item_ref is None and data.booking_type == "consultation":
            custom_price = 0    # free consultation
        total_amount = self.pricing.resolve(data.traveler_count, data.item_ref, custom_price)

        values = {
            "owner_id": owner.user_id,
            "item_ref": data.item_ref,
            "booking_type": data.booking_type,
            "traveler_count": data.traveler_count,
            "travel_date": data.travel_date,
            "total_amount": total_amount,
            "currency": self.currency,
            "status": "PENDING",
            "traveler_details": [t.model_dump() for t in data.traveler_details],
            "contact_email": data.contact_email,
            "contact_phone": data.contact_phone,
            "notes": data.notes,
        }
        booking = self.references.allocate(
            lambda reference: self.repository.insert_booking({**values, "reference": reference})
        )
        logger.info(
            "Created booking %s (%s) for %s: %d %s",
            booking.reference, booking.id, owner.user_id, booking.total_amount, booking.currency,
        )
        return booking

    def get(self, booking_id: str, requester: Requester) -> Booking:
        booking = self.repository.get_booking(booking_id)
        if booking is None:
            raise BookingNotFound(f"Booking {booking_id} not found")
        if not requester.is_admin and booking.owner_id != requester.user_id:
            raise Forbidden("Access denied")
        return booking

    def list(self, requester: Requester) -> List[Booking]:
        owner_id = None if requester.is_admin else requester.user_id
        return self.repository.list_bookings(owner_id)

    def transition(self, booking_id: str, requester: Requester, new_status: str) -> Booking:
        booking = self.get(booking_id, requester)
        authorize_transition(booking.status, new_status, requester)
        if not self.repository.update_booking_status(booking.id, booking.status, new_status):
            # someone else moved it between our read and the conditional update
            current = self.repository.get_booking(booking.id)
            raise InvalidTransition(current.status, new_status)
        logger.info("Booking %s: %s -> %s by %s", booking.reference, booking.status, new_status, requester.user_id)
        return self.repository.get_booking(booking.id)

    def cancel(self, booking_id: str, requester: Requester) -> Booking:
        booking = self.get(booking_id, requester)
        if booking.status not in CANCELLABLE:
            raise InvalidTransition(booking.status, "CANCELLED")
        return self.transition(booking_id, requester, "CANCELLED")

    def update(self, booking_id: str, requester: Requester, changes: BookingUpdate) -> Booking:
        booking = self.get(booking_id, requester)
        fields = changes.field_changes()
        moving = changes.status is not None and changes.status != booking.status
        if moving:
            authorize_transition(booking.status, changes.status, requester)
        if fields:
            if booking.status in FROZEN:
                raise ValidationError(f"Booking {booking.reference} is {booking.status} and can no longer be edited")
            booking = self.repository.update_booking_fields(booking.id, fields)
        if moving:
            booking = self.transition(booking.id, requester, changes.status)
        return booking

    def mark_paid(self, booking_id: str) -> bool:
        """
        Reconciliation-only edge PENDING -> PAID. Returns False, without
        raising, when the booking is no longer PENDING.
        """
        return self.repository.update_booking_status(booking_id, "PENDING", "PAID")
