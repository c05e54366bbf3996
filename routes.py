from typing import List

from fastapi import APIRouter, Depends, status

from booking_schemas import Booking, BookingCreate, BookingUpdate, Payment, PaymentInit, Reconciliation, Requester
from dependencies import get_lifecycle, get_requester
from lifecycle import BookingLifecycle

bookings = APIRouter(prefix="/bookings", tags=["bookings"])
payments = APIRouter(prefix="/payments", tags=["payments"])


@bookings.post("", response_model=Booking, status_code=status.HTTP_201_CREATED)
def create_booking(
    body: BookingCreate,
    requester: Requester = Depends(get_requester),
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
):
    return lifecycle.create_booking(requester, body)


@bookings.get("", response_model=List[Booking])
def list_bookings(requester: Requester = Depends(get_requester), lifecycle: BookingLifecycle = Depends(get_lifecycle)):
    return lifecycle.list_bookings(requester)


@bookings.get("/{booking_id}", response_model=Booking)
def get_booking(
    booking_id: str,
    requester: Requester = Depends(get_requester),
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
):
    return lifecycle.get_booking(booking_id, requester)


@bookings.put("/{booking_id}", response_model=Booking)
def update_booking(
    booking_id: str,
    body: BookingUpdate,
    requester: Requester = Depends(get_requester),
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
):
    return lifecycle.update_booking(booking_id, requester, body)


@bookings.delete("/{booking_id}", response_model=Booking)
def cancel_booking(
    booking_id: str,
    requester: Requester = Depends(get_requester),
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
):
    # soft delete: the row stays, status becomes CANCELLED
    return lifecycle.cancel_booking(booking_id, requester)


@bookings.post("/{booking_id}/payment", response_model=PaymentInit)
def initialize_payment(
    booking_id: str,
    requester: Requester = Depends(get_requester),
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
):
    return lifecycle.initialize_payment(booking_id, requester)


@payments.get("", response_model=List[Payment])
def list_payments(requester: Requester = Depends(get_requester), lifecycle: BookingLifecycle = Depends(get_lifecycle)):
    return lifecycle.list_payments(requester)


@payments.get("/verify/{reference}", response_model=Reconciliation)
def verify_payment(
    reference: str,
    requester: Requester = Depends(get_requester),
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
):
    return lifecycle.verify_payment(reference, requester)
