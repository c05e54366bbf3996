from datetime import date
from decimal import Decimal

import pytest

from booking_schemas import BookingCreate, BookingUpdate
from errors import BookingNotFound, Forbidden, InvalidTransition, ValidationError
from references import reference_pattern

from conftest import package_booking, travelers


def test_create_catalog_booking(lifecycle, alice):
    booking = lifecycle.create_booking(alice, package_booking(count=2))

    assert booking.total_amount == 500000
    assert booking.status == "PENDING"
    assert booking.currency == "NGN"
    assert booking.owner_id == "alice"
    assert reference_pattern().match(booking.reference)
    assert [t.name for t in booking.traveler_details] == ["Traveler 0", "Traveler 1"]


def test_create_custom_booking_converts_major_units(lifecycle, alice):
    booking = lifecycle.create_booking(alice, BookingCreate(
        custom_price=Decimal("1450.75"),
        booking_type="flight",
        traveler_count=2,
        travel_date=date(2027, 1, 5),
        traveler_details=travelers(2),
    ))
    assert booking.item_ref is None
    assert booking.booking_type == "flight"
    assert booking.total_amount == 290150


def test_consultation_without_price_is_free(lifecycle, alice):
    booking = lifecycle.create_booking(alice, BookingCreate(
        booking_type="consultation", traveler_count=1, travel_date=date(2027, 1, 5), traveler_details=travelers(1),
    ))
    assert booking.total_amount == 0


def test_create_requires_a_price_source(lifecycle, alice):
    with pytest.raises(ValidationError):
        lifecycle.create_booking(alice, BookingCreate(
            booking_type="hotel", traveler_count=1, travel_date=date(2027, 1, 5), traveler_details=travelers(1),
        ))


def test_traveler_details_must_match_count(lifecycle, alice, repository):
    data = package_booking(count=2).model_copy(update={"traveler_details": travelers(1)})
    with pytest.raises(ValidationError):
        lifecycle.create_booking(alice, data)
    assert repository.bookings == {}


def test_owner_and_admin_can_read_others_cannot(lifecycle, alice, bob, admin):
    booking = lifecycle.create_booking(alice, package_booking())
    assert lifecycle.get_booking(booking.id, alice).id == booking.id
    assert lifecycle.get_booking(booking.id, admin).id == booking.id
    with pytest.raises(Forbidden):
        lifecycle.get_booking(booking.id, bob)


def test_unknown_booking(lifecycle, alice):
    with pytest.raises(BookingNotFound):
        lifecycle.get_booking("missing", alice)


def test_list_is_scoped_to_owner_unless_admin(lifecycle, alice, bob, admin):
    first = lifecycle.create_booking(alice, package_booking())
    second = lifecycle.create_booking(alice, package_booking(count=1))
    other = lifecycle.create_booking(bob, package_booking())

    assert [b.id for b in lifecycle.list_bookings(alice)] == [second.id, first.id]
    assert [b.id for b in lifecycle.list_bookings(bob)] == [other.id]
    assert {b.id for b in lifecycle.list_bookings(admin)} == {first.id, second.id, other.id}


def test_cancel_pending_booking(lifecycle, alice, repository):
    booking = lifecycle.create_booking(alice, package_booking())
    cancelled = lifecycle.cancel_booking(booking.id, alice)
    assert cancelled.status == "CANCELLED"
    # soft delete
    assert booking.id in repository.bookings


def test_cancel_is_terminal(lifecycle, alice):
    booking = lifecycle.create_booking(alice, package_booking())
    lifecycle.cancel_booking(booking.id, alice)
    with pytest.raises(InvalidTransition):
        lifecycle.cancel_booking(booking.id, alice)


def test_cancel_paid_booking_is_rejected(lifecycle, alice, repository):
    booking = lifecycle.create_booking(alice, package_booking())
    repository.update_booking_status(booking.id, "PENDING", "PAID")
    with pytest.raises(InvalidTransition):
        lifecycle.cancel_booking(booking.id, alice)


def test_non_owner_cannot_cancel(lifecycle, alice, bob):
    booking = lifecycle.create_booking(alice, package_booking())
    with pytest.raises(Forbidden):
        lifecycle.cancel_booking(booking.id, bob)


def test_owner_cannot_mark_paid_through_the_api(lifecycle, alice, admin):
    booking = lifecycle.create_booking(alice, package_booking())
    for requester in (alice, admin):
        with pytest.raises(InvalidTransition):
            lifecycle.update_booking(booking.id, requester, BookingUpdate(status="PAID"))


def test_admin_walks_paid_booking_to_completed(lifecycle, alice, admin, repository):
    booking = lifecycle.create_booking(alice, package_booking())
    repository.update_booking_status(booking.id, "PENDING", "PAID")

    with pytest.raises(Forbidden):
        lifecycle.update_booking(booking.id, alice, BookingUpdate(status="CONFIRMED"))

    confirmed = lifecycle.update_booking(booking.id, admin, BookingUpdate(status="CONFIRMED"))
    assert confirmed.status == "CONFIRMED"
    completed = lifecycle.update_booking(booking.id, admin, BookingUpdate(status="COMPLETED"))
    assert completed.status == "COMPLETED"

    with pytest.raises(InvalidTransition):
        lifecycle.cancel_booking(booking.id, admin)


def test_confirmed_booking_can_be_cancelled(lifecycle, alice, admin, repository):
    booking = lifecycle.create_booking(alice, package_booking())
    repository.update_booking_status(booking.id, "PENDING", "PAID")
    lifecycle.update_booking(booking.id, admin, BookingUpdate(status="CONFIRMED"))
    assert lifecycle.cancel_booking(booking.id, alice).status == "CANCELLED"


def test_pending_cannot_skip_to_confirmed(lifecycle, alice, admin):
    booking = lifecycle.create_booking(alice, package_booking())
    with pytest.raises(InvalidTransition):
        lifecycle.update_booking(booking.id, admin, BookingUpdate(status="CONFIRMED"))


def test_contact_fields_update(lifecycle, alice):
    booking = lifecycle.create_booking(alice, package_booking())
    updated = lifecycle.update_booking(booking.id, alice, BookingUpdate(contact_phone="+234 800 000 0000", notes="Window seat"))
    assert updated.contact_phone == "+234 800 000 0000"
    assert updated.notes == "Window seat"
    assert updated.status == "PENDING"


def test_cancelled_booking_cannot_be_edited(lifecycle, alice):
    booking = lifecycle.create_booking(alice, package_booking())
    lifecycle.cancel_booking(booking.id, alice)
    with pytest.raises(ValidationError):
        lifecycle.update_booking(booking.id, alice, BookingUpdate(notes="too late"))


def test_lost_race_on_transition_is_reported(lifecycle, alice, repository):
    booking = lifecycle.create_booking(alice, package_booking())
    original_get = repository.get_booking

    def stale_read(booking_id):
        # the row is paid right after our read, before the conditional update
        current = original_get(booking_id)
        repository.update_booking_status(booking_id, "PENDING", "PAID")
        return current

    repository.get_booking = stale_read
    try:
        with pytest.raises(InvalidTransition):
            lifecycle.store.transition(booking.id, alice, "CANCELLED")
    finally:
        repository.get_booking = original_get
    assert repository.get_booking(booking.id).status == "PAID"


def test_rejected_status_change_leaves_fields_untouched(lifecycle, alice, repository):
    booking = lifecycle.create_booking(alice, package_booking())

    with pytest.raises(InvalidTransition):
        lifecycle.update_booking(booking.id, alice, BookingUpdate(notes="changed", status="COMPLETED"))
    repository.update_booking_status(booking.id, "PENDING", "PAID")
    with pytest.raises(Forbidden):
        lifecycle.update_booking(booking.id, alice, BookingUpdate(contact_phone="+1 555 0100", status="CONFIRMED"))

    stored = repository.get_booking(booking.id)
    assert stored.notes == booking.notes
    assert stored.contact_phone == booking.contact_phone
    assert stored.status == "PAID"
