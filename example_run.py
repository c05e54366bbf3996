"""
Run this script to see a full booking flow without a database or a real provider:
 - create a booking for a catalog package (price computed server-side)
 - initialize a payment with the sandbox gateway
 - deliver the provider's charge.success webhook (twice, the second is a replay)
 - poll verify, which finds the payment already settled
 - try to cancel the paid booking (rejected)
"""

from datetime import date, timedelta

from booking_schemas import BookingCreate, CatalogItem, Requester, Role, TravelerDetail
from config import Settings, configure_logging
from errors import InvalidTransition
from lifecycle import build_lifecycle
from payments.sandbox import SandboxGateway
from persistence.memory import InMemoryBookingRepository
from webhooks.signature import SIGNATURE_HEADER, authenticate


def main():
    settings = Settings(payment_gateway="sandbox", paystack_secret_key="sk_demo")
    configure_logging("WARNING")

    repository = InMemoryBookingRepository()
    customer = repository.add_profile(Requester(user_id="user_123", role=Role.CUSTOMER, email="ada@example.com"))
    repository.add_catalog_item(CatalogItem(id="PKG-1", title="Zanzibar, 5 nights", price=250000))
    gateway = SandboxGateway(secret_key=settings.paystack_secret_key)
    lifecycle = build_lifecycle(repository, gateway, settings)

    print("=== Create booking ===")
    booking = lifecycle.create_booking(customer, BookingCreate(
        item_ref="PKG-1",
        traveler_count=2,
        travel_date=date.today() + timedelta(days=30),
        traveler_details=[TravelerDetail(name="Ada", age=34), TravelerDetail(name="Tunde", age=36)],
        contact_email="ada@example.com",
    ))
    print(f"- {booking.reference}: status={booking.status}, total={booking.total_amount} {booking.currency}")

    print("\n=== Initialize payment ===")
    init = lifecycle.initialize_payment(booking.id, customer)
    print(f"- redirect customer to {init.authorization_url} (reference {init.reference})")

    print("\n=== Provider webhook (delivered twice) ===")
    body, signature = gateway.charge_success_webhook(init.reference)
    for attempt in (1, 2):
        event = authenticate(body, signature, gateway.secret_key)
        result = lifecycle.handle_webhook(event)
        print(f"- delivery {attempt} ({SIGNATURE_HEADER} ok): applied={result.applied}, "
              f"payment={result.payment.status}, booking={result.booking_status}")

    print("\n=== Verify after redirect ===")
    result = lifecycle.verify_payment(init.reference, customer)
    print(f"- applied={result.applied}, payment={result.payment.status}, booking={result.booking_status}")

    print("\n=== Cancel paid booking ===")
    try:
        lifecycle.cancel_booking(booking.id, customer)
    except InvalidTransition as exc:
        print(f"- rejected: {exc.message}")


if __name__ == "__main__":
    main()
