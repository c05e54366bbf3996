import logging
from contextlib import contextmanager
from typing import List, Optional, Protocol

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from booking_schemas import Booking, CatalogItem, Payment, Requester, Role
from errors import ReferenceCollision, StoreError

from .models import BookingModel, CatalogItemModel, PaymentModel, ProfileModel, utcnow

logger = logging.getLogger(__name__)


class BookingRepository(Protocol):
    """
    Everything the booking core needs from persistent storage.
    Status changes are compare-and-set: they only apply when the row is
    still in the expected status, and report whether they did.
    """

    def get_requester(self, user_id: str) -> Optional[Requester]: ...

    def get_catalog_item(self, item_ref: str) -> Optional[CatalogItem]: ...

    def insert_booking(self, values: dict) -> Booking:
        """Raises ReferenceCollision when values["reference"] is already taken."""

    def get_booking(self, booking_id: str) -> Optional[Booking]: ...

    def list_bookings(self, owner_id: Optional[str] = None) -> List[Booking]: ...

    def update_booking_status(self, booking_id: str, expected: str, new: str) -> bool: ...

    def update_booking_fields(self, booking_id: str, fields: dict) -> Booking: ...

    def insert_payment(self, values: dict) -> Payment: ...

    def get_payment(self, payment_id: str) -> Optional[Payment]: ...

    def get_payment_by_internal_reference(self, reference: str) -> Optional[Payment]: ...

    def get_payment_by_gateway_reference(self, reference: str) -> Optional[Payment]: ...

    def attach_gateway_reference(self, payment_id: str, gateway_reference: str, metadata: dict) -> Payment: ...

    def settle_payment(self, payment_id: str, status: str, raw_metadata: dict) -> bool: ...

    def list_payments(self, owner_id: Optional[str] = None) -> List[Payment]: ...


class SqlBookingRepository:
    """SQLAlchemy-backed repository. One instance per request/session."""

    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def _guard(self, action: str):
        try:
            yield
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Store failure while trying to %s", action)
            raise StoreError(f"Failed to {action}") from exc

    # --- reads ---

    def get_requester(self, user_id: str) -> Optional[Requester]:
        with self._guard("load profile"):
            profile = self.db.get(ProfileModel, user_id)
        if profile is None:
            return None
        role = Role.ADMIN if profile.role == Role.ADMIN.value else Role.CUSTOMER
        return Requester(user_id=profile.id, role=role, email=profile.email)

    def get_catalog_item(self, item_ref: str) -> Optional[CatalogItem]:
        with self._guard("load package"):
            item = self.db.get(CatalogItemModel, item_ref)
        return CatalogItem.model_validate(item) if item else None

    def get_booking(self, booking_id: str) -> Optional[Booking]:
        with self._guard("load booking"):
            row = self.db.get(BookingModel, booking_id, populate_existing=True)
        return Booking.model_validate(row) if row else None

    def list_bookings(self, owner_id: Optional[str] = None) -> List[Booking]:
        # references are time-ordered, so they break created_at ties newest-first too
        stmt = select(BookingModel).order_by(BookingModel.created_at.desc(), BookingModel.reference.desc())
        if owner_id is not None:
            stmt = stmt.where(BookingModel.owner_id == owner_id)
        with self._guard("list bookings"):
            rows = self.db.scalars(stmt).all()
        return [Booking.model_validate(r) for r in rows]

    def get_payment(self, payment_id: str) -> Optional[Payment]:
        with self._guard("load payment"):
            row = self.db.get(PaymentModel, payment_id, populate_existing=True)
        return Payment.model_validate(row) if row else None

    def get_payment_by_internal_reference(self, reference: str) -> Optional[Payment]:
        stmt = select(PaymentModel).where(PaymentModel.internal_reference == reference)
        with self._guard("load payment"):
            row = self.db.scalars(stmt.execution_options(populate_existing=True)).first()
        return Payment.model_validate(row) if row else None

    def get_payment_by_gateway_reference(self, reference: str) -> Optional[Payment]:
        # before attach_gateway_reference runs, the provider only knows our internal reference
        stmt = select(PaymentModel).where(
            or_(PaymentModel.gateway_reference == reference, PaymentModel.internal_reference == reference)
        )
        with self._guard("load payment"):
            row = self.db.scalars(stmt.execution_options(populate_existing=True)).first()
        return Payment.model_validate(row) if row else None

    def list_payments(self, owner_id: Optional[str] = None) -> List[Payment]:
        stmt = select(PaymentModel).order_by(PaymentModel.created_at.desc())
        if owner_id is not None:
            stmt = stmt.where(PaymentModel.owner_id == owner_id)
        with self._guard("list payments"):
            rows = self.db.scalars(stmt).all()
        return [Payment.model_validate(r) for r in rows]

    # --- writes ---

    def insert_booking(self, values: dict) -> Booking:
        row = BookingModel(**values)
        self.db.add(row)
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            if self._reference_taken(values["reference"]):
                raise ReferenceCollision(values["reference"]) from exc
            logger.exception("Booking insert rejected by the store")
            raise StoreError("Failed to insert booking") from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Store failure while inserting booking")
            raise StoreError("Failed to insert booking") from exc
        return Booking.model_validate(row)

    def _reference_taken(self, reference: str) -> bool:
        stmt = select(BookingModel.id).where(BookingModel.reference == reference)
        with self._guard("check booking reference"):
            return self.db.scalars(stmt).first() is not None

    def update_booking_status(self, booking_id: str, expected: str, new: str) -> bool:
        stmt = (
            update(BookingModel)
            .where(BookingModel.id == booking_id, BookingModel.status == expected)
            .values(status=new, updated_at=utcnow())
        )
        with self._guard("update booking status"):
            result = self.db.execute(stmt)
            self.db.commit()
        return result.rowcount == 1

    def update_booking_fields(self, booking_id: str, fields: dict) -> Booking:
        stmt = update(BookingModel).where(BookingModel.id == booking_id).values(updated_at=utcnow(), **fields)
        with self._guard("update booking"):
            self.db.execute(stmt)
            self.db.commit()
        return self.get_booking(booking_id)

    def insert_payment(self, values: dict) -> Payment:
        row = PaymentModel(**values)
        with self._guard("insert payment"):
            self.db.add(row)
            self.db.commit()
        return Payment.model_validate(row)

    def attach_gateway_reference(self, payment_id: str, gateway_reference: str, metadata: dict) -> Payment:
        stmt = (
            update(PaymentModel)
            .where(PaymentModel.id == payment_id, PaymentModel.status == "PENDING")
            .values(gateway_reference=gateway_reference, raw_metadata=metadata, updated_at=utcnow())
        )
        with self._guard("attach gateway reference"):
            self.db.execute(stmt)
            self.db.commit()
        return self.get_payment(payment_id)

    def settle_payment(self, payment_id: str, status: str, raw_metadata: dict) -> bool:
        stmt = (
            update(PaymentModel)
            .where(PaymentModel.id == payment_id, PaymentModel.status == "PENDING")
            .values(status=status, raw_metadata=raw_metadata, updated_at=utcnow())
        )
        with self._guard("settle payment"):
            result = self.db.execute(stmt)
            self.db.commit()
        return result.rowcount == 1
