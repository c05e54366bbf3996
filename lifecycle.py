import logging
import uuid
from typing import List, Optional, Protocol

from booking_schemas import (
    Booking,
    BookingCreate,
    BookingUpdate,
    GatewayCharge,
    GatewayVerification,
    Payment,
    PaymentInit,
    Reconciliation,
    Requester,
    WebhookEvent,
)
from config import Settings
from errors import BookingError, Forbidden, InvalidTransition, PaymentNotFound, ValidationError
from persistence.repository import BookingRepository
from pricing import PriceResolver
from references import ReferenceGenerator
from store import BookingStore
from webhooks.signature import CHARGE_SUCCESS

logger = logging.getLogger(__name__)

TERMINAL_PAYMENT_STATUSES = ("SUCCESS", "FAILED")

# provider status -> payment status; anything unlisted is still in flight
GATEWAY_OUTCOMES = {
    "success": "SUCCESS",
    "failed": "FAILED",
    "reversed": "FAILED",
}


def payment_outcome(gateway_status: str) -> Optional[str]:
    return GATEWAY_OUTCOMES.get((gateway_status or "").lower())


def new_payment_reference() -> str:
    return f"DV-PAY-{uuid.uuid4().hex}"


class PaymentGateway(Protocol):
    secret_key: str

    def initialize(
        self,
        payer_email: str,
        amount_minor_units: int,
        internal_reference: str,
        callback_url: str,
        metadata: Optional[dict] = None,
    ) -> GatewayCharge:
        ...

    def verify(self, internal_reference: str) -> GatewayVerification:
        ...


class BookingLifecycle:
    """
    Booking state machine: create -> pay -> reconcile -> cancel.

    Payment outcomes arrive twice, from the verify poll and from the provider's
    webhook, in any order and possibly repeated. Both go through reconcile(),
    which only acts on a payment that is still PENDING.
    """

    def __init__(self, store: BookingStore, repository: BookingRepository, gateway: PaymentGateway, settings: Settings):
        self.store = store
        self.repository = repository
        self.gateway = gateway
        self.settings = settings

    # --- bookings ---

    def create_booking(self, requester: Requester, data: BookingCreate) -> Booking:
        return self.store.create(requester, data)

    def get_booking(self, booking_id: str, requester: Requester) -> Booking:
        return self.store.get(booking_id, requester)

    def list_bookings(self, requester: Requester) -> List[Booking]:
        return self.store.list(requester)

    def update_booking(self, booking_id: str, requester: Requester, changes: BookingUpdate) -> Booking:
        return self.store.update(booking_id, requester, changes)

    def cancel_booking(self, booking_id: str, requester: Requester) -> Booking:
        return self.store.cancel(booking_id, requester)

    # --- payments ---

    def initialize_payment(self, booking_id: str, requester: Requester) -> PaymentInit:
        """
        Start a payment attempt for a PENDING booking owned by the requester.
        The PENDING payment row is written before the provider is called, so a
        webhook can never arrive for a payment we do not know about.
        """
        booking = self.store.get(booking_id, requester)
        if booking.owner_id != requester.user_id:
            raise Forbidden("Only the booking owner can pay for it")
        if booking.status != "PENDING":
            raise InvalidTransition(booking.status, "PAID", f"Booking {booking.reference} is {booking.status}")
        if booking.total_amount <= 0:
            raise ValidationError(f"Booking {booking.reference} has nothing to pay")
        payer_email = requester.email or booking.contact_email
        if not payer_email:
            raise ValidationError("A payer email is required to start a payment")

        payment = self.repository.insert_payment({
            "booking_id": booking.id,
            "owner_id": requester.user_id,
            "amount": booking.total_amount,
            "currency": booking.currency,
            "internal_reference": new_payment_reference(),
            "status": "PENDING",
            "raw_metadata": {},
        })
        try:
            charge = self.gateway.initialize(
                payer_email=payer_email,
                amount_minor_units=booking.total_amount,
                internal_reference=payment.internal_reference,
                callback_url=self.settings.callback_url(booking.id),
                metadata={
                    "booking_id": booking.id,
                    "booking_reference": booking.reference,
                    "user_id": requester.user_id,
                },
            )
        except BookingError as exc:
            self.repository.settle_payment(payment.id, "FAILED", {"error": exc.code, "message": exc.message})
            raise

        payment = self.repository.attach_gateway_reference(
            payment.id,
            charge.gateway_reference,
            {"authorization_url": charge.authorization_url, "access_code": charge.access_code},
        )
        logger.info(
            "Initialized payment %s for booking %s (%d %s)",
            payment.internal_reference, booking.reference, payment.amount, payment.currency,
        )
        return PaymentInit(
            reference=payment.internal_reference,
            authorization_url=charge.authorization_url,
            access_code=charge.access_code,
            payment=payment,
        )

    def list_payments(self, requester: Requester) -> List[Payment]:
        owner_id = None if requester.is_admin else requester.user_id
        return self.repository.list_payments(owner_id)

    def verify_payment(self, internal_reference: str, requester: Requester) -> Reconciliation:
        """Poll path, used after the provider redirects the customer back."""
        payment = self.repository.get_payment_by_internal_reference(internal_reference)
        if payment is None:
            raise PaymentNotFound(f"Payment {internal_reference} not found")
        if not requester.is_admin and payment.owner_id != requester.user_id:
            raise Forbidden("Access denied")
        if payment.status in TERMINAL_PAYMENT_STATUSES:
            return self._replay(payment)
        verification = self.gateway.verify(payment.internal_reference)
        return self.reconcile(payment, verification.gateway_status, verification.raw_payload, verification.amount)

    def handle_webhook(self, event: WebhookEvent) -> Optional[Reconciliation]:
        """
        Push path. The event must already be authenticated.
        Returns None for event types that carry no payment outcome.
        """
        if event.event_type != CHARGE_SUCCESS:
            logger.info("Ignoring webhook event %s", event.event_type)
            return None
        payment = self.repository.get_payment_by_gateway_reference(event.gateway_reference)
        if payment is None:
            raise PaymentNotFound(f"No payment for gateway reference {event.gateway_reference}")
        return self.reconcile(payment, event.status or "success", event.raw_payload, event.amount)

    def reconcile(
        self,
        payment: Payment,
        gateway_status: str,
        raw_payload: dict,
        reported_amount: Optional[int] = None,
    ) -> Reconciliation:
        if payment.status in TERMINAL_PAYMENT_STATUSES:
            return self._replay(payment)

        outcome = payment_outcome(gateway_status)
        if outcome is None:
            booking = self.repository.get_booking(payment.booking_id)
            return Reconciliation(payment=payment, booking_status=booking.status, applied=False)

        if outcome == "SUCCESS" and reported_amount is not None and reported_amount != payment.amount:
            logger.error(
                "Payment %s: provider reported %d, expected %d; recording as FAILED",
                payment.internal_reference, reported_amount, payment.amount,
            )
            outcome = "FAILED"

        if not self.repository.settle_payment(payment.id, outcome, raw_payload):
            # the other path settled it between our read and this update
            return self._replay(self.repository.get_payment(payment.id))

        if outcome == "SUCCESS" and not self.store.mark_paid(payment.booking_id):
            current = self.repository.get_booking(payment.booking_id)
            logger.warning(
                "Payment %s succeeded but booking %s is %s; status left unchanged",
                payment.internal_reference, current.reference, current.status,
            )

        payment = self.repository.get_payment(payment.id)
        booking = self.repository.get_booking(payment.booking_id)
        logger.info(
            "Reconciled payment %s -> %s (booking %s is %s)",
            payment.internal_reference, payment.status, booking.reference, booking.status,
        )
        return Reconciliation(payment=payment, booking_status=booking.status, applied=True)

    def _replay(self, payment: Payment) -> Reconciliation:
        logger.info("Payment %s already %s; nothing to apply", payment.internal_reference, payment.status)
        booking = self.repository.get_booking(payment.booking_id)
        return Reconciliation(payment=payment, booking_status=booking.status, applied=False)


def build_gateway(settings: Settings) -> PaymentGateway:
    if settings.payment_gateway == "sandbox":
        from payments.sandbox import SandboxGateway
        return SandboxGateway(secret_key=settings.paystack_secret_key or "sk_sandbox")
    from payments.paystack import PaystackGateway
    return PaystackGateway(
        secret_key=settings.paystack_secret_key,
        base_url=settings.paystack_base_url,
        timeout=settings.gateway_timeout,
        retries=settings.gateway_retries,
    )


def build_lifecycle(repository: BookingRepository, gateway: PaymentGateway, settings: Settings) -> BookingLifecycle:
    references = ReferenceGenerator(prefix=settings.reference_prefix, max_attempts=settings.reference_attempts)
    store = BookingStore(repository, references, PriceResolver(repository), settings.currency)
    return BookingLifecycle(store, repository, gateway, settings)
