from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

BookingStatus = Literal["PENDING", "PAID", "CONFIRMED", "CANCELLED", "COMPLETED"]
PaymentStatus = Literal["PENDING", "SUCCESS", "FAILED"]
BookingType = Literal["package", "flight", "hotel", "visa", "custom", "consultation"]


class Role(str, Enum):
    CUSTOMER = "customer"
    ADMIN = "admin"


class Requester(BaseModel):
    """Who is calling. Built from the store's profile row, never from request claims."""

    user_id: str
    role: Role = Role.CUSTOMER
    email: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


class CatalogItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    price: int                   # minor units
    available: bool = True


class TravelerDetail(BaseModel):
    name: str = Field(min_length=1)
    age: int = Field(ge=0, le=130)
    document_number: Optional[str] = None


class BookingCreate(BaseModel):
    item_ref: Optional[str] = None                      # catalog package id
    custom_price: Optional[Decimal] = Field(default=None, ge=0)   # major units, per traveler
    booking_type: BookingType = "package"
    traveler_count: int = Field(default=1, ge=1)
    travel_date: date
    traveler_details: List[TravelerDetail] = Field(default_factory=list)
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    notes: Optional[str] = None


class BookingUpdate(BaseModel):
    status: Optional[BookingStatus] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    notes: Optional[str] = None

    def field_changes(self) -> dict:
        return self.model_dump(exclude={"status"}, exclude_none=True)


class Booking(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    reference: str
    owner_id: str
    item_ref: Optional[str] = None
    booking_type: BookingType = "package"
    traveler_count: int
    travel_date: date
    total_amount: int             # minor units
    currency: str
    status: BookingStatus = "PENDING"
    traveler_details: List[TravelerDetail] = Field(default_factory=list)
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Payment(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    booking_id: str
    owner_id: str
    amount: int                   # minor units
    currency: str
    internal_reference: str
    gateway_reference: Optional[str] = None
    status: PaymentStatus = "PENDING"
    raw_metadata: dict = Field(default_factory=dict, exclude=True)   # audit only, not served
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class GatewayCharge(BaseModel):
    authorization_url: str
    gateway_reference: str
    access_code: Optional[str] = None


class GatewayVerification(BaseModel):
    gateway_status: str           # provider's own vocabulary: success, failed, abandoned, ...
    amount: Optional[int] = None
    raw_payload: dict = Field(default_factory=dict)


class WebhookEvent(BaseModel):
    event_type: str
    gateway_reference: str
    status: str
    amount: Optional[int] = None
    raw_payload: dict = Field(default_factory=dict)


class PaymentInit(BaseModel):
    reference: str                # internal reference, used for /payments/verify
    authorization_url: str
    access_code: Optional[str] = None
    payment: Payment


class Reconciliation(BaseModel):
    payment: Payment
    booking_status: BookingStatus
    applied: bool                 # False for replays and still-pending outcomes
