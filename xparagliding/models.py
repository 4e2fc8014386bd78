"""
SQLAlchemy tables and pydantic request/response models for bookings.
Reference tables (countries, locations, pilots, companies) are owned by the CMS;
this service only reads them.
"""

from sqlalchemy import Column, Integer, String, Date, DateTime, Float, Boolean, Text, ForeignKey, Index, JSON, Enum as SQLEnum
from pydantic import BaseModel, ConfigDict, Field, AliasChoices
from datetime import datetime, date, timezone
from typing import List, Optional, Dict, Any
import uuid
import enum

from .database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


# Enums
class Currency(str, enum.Enum):
    GEL = "GEL"
    USD = "USD"
    EUR = "EUR"

class BookingSource(str, enum.Enum):
    PILOT_DIRECT = "pilot_direct"
    COMPANY_DIRECT = "company_direct"
    PLATFORM_GENERAL = "platform_general"

class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    ON_HOLD = "on_hold"
    NO_SHOW = "no_show"
    RESCHEDULED = "rescheduled"

class PaymentStatus(str, enum.Enum):
    PENDING_DEPOSIT = "pending_deposit"
    DEPOSIT_PAID = "deposit_paid"
    FULLY_PAID = "fully_paid"
    REFUNDED = "refunded"
    FAILED = "failed"

class ContactMethod(str, enum.Enum):
    WHATSAPP = "whatsapp"
    TELEGRAM = "telegram"
    VIBER = "viber"


# Reference data
class Country(Base):
    __tablename__ = "countries"

    id = Column(String(36), primary_key=True, default=_uuid)
    name_ka = Column(String(200), nullable=True)
    name_en = Column(String(200), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_now)

class Location(Base):
    __tablename__ = "locations"

    id = Column(String(36), primary_key=True, default=_uuid)
    country_id = Column(String(36), ForeignKey("countries.id"), nullable=False)
    name_ka = Column(String(200), nullable=True)
    name_en = Column(String(200), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_now)

    __table_args__ = (
        Index("idx_locations_country", "country_id"),
    )

class LocationPage(Base):
    __tablename__ = "location_pages"

    id = Column(String(36), primary_key=True, default=_uuid)
    location_id = Column(String(36), ForeignKey("locations.id"), nullable=False, unique=True)
    # CMS content blob; "shared_flight_types" holds the priced flight types
    content = Column(JSON, nullable=False, default=dict)
    updated_at = Column(DateTime(timezone=True), default=_now, onupdate=_now)

class Company(Base):
    __tablename__ = "companies"

    id = Column(String(36), primary_key=True, default=_uuid)
    name_ka = Column(String(200), nullable=True)
    name_en = Column(String(200), nullable=True)
    phone = Column(String(50), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_now)

class Pilot(Base):
    __tablename__ = "pilots"

    id = Column(String(36), primary_key=True, default=_uuid)
    first_name_en = Column(String(100), nullable=True)
    last_name_en = Column(String(100), nullable=True)
    first_name_ka = Column(String(100), nullable=True)
    last_name_ka = Column(String(100), nullable=True)
    phone = Column(String(50), nullable=True)
    company_id = Column(String(36), ForeignKey("companies.id"), nullable=True)
    location_ids = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), default=_now)


# Promo codes
class PromoCode(Base):
    __tablename__ = "promo_codes"

    id = Column(String(36), primary_key=True, default=_uuid)
    code = Column(String(50), unique=True, nullable=False, index=True)  # stored uppercase
    discount_percentage = Column(Float, nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    usage_limit = Column(Integer, nullable=True)  # null = unlimited
    usage_count = Column(Integer, default=0, nullable=False)
    valid_from = Column(DateTime(timezone=True), nullable=True)
    valid_until = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_now)

class PromoCodeUsage(Base):
    __tablename__ = "promo_code_usage"

    id = Column(String(36), primary_key=True, default=_uuid)
    promo_code_id = Column(String(36), ForeignKey("promo_codes.id"), nullable=False)
    booking_id = Column(String(36), ForeignKey("bookings.id"), nullable=False)
    user_id = Column(String(36), nullable=True)
    people_count = Column(Integer, nullable=False)
    discount_amount = Column(Float, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_now)

    __table_args__ = (
        Index("idx_promo_usage_promo", "promo_code_id"),
    )


# Bookings
class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), nullable=True)

    # Customer
    full_name = Column(String(100), nullable=False)
    phone = Column(String(50), nullable=False)
    contact_method = Column(String(20), nullable=True)
    special_requests = Column(Text, nullable=True)

    # Location snapshot (names as they were at booking time)
    country_id = Column(String(36), nullable=True)
    country_name = Column(String(200), nullable=True)
    location_id = Column(String(36), ForeignKey("locations.id"), nullable=False)
    location_name = Column(String(200), nullable=True)

    # Flight
    flight_type_id = Column(String(100), nullable=False)
    flight_type_name = Column(String(200), nullable=True)
    selected_date = Column(Date, nullable=False)
    number_of_people = Column(Integer, nullable=False)
    additional_services = Column(JSON, nullable=True)

    # Pricing (server-authoritative)
    currency = Column(SQLEnum(Currency, name="currency", values_callable=_enum_values), nullable=False)
    base_price = Column(Float, nullable=False)
    services_total = Column(Float, default=0.0, nullable=False)
    total_price = Column(Float, nullable=False)
    promo_code = Column(String(50), nullable=True)
    promo_discount = Column(Float, default=0.0, nullable=False)

    # Assignment
    pilot_id = Column(String(36), nullable=True)
    company_id = Column(String(36), nullable=True)
    booking_source = Column(
        SQLEnum(BookingSource, name="booking_source", values_callable=_enum_values),
        default=BookingSource.PLATFORM_GENERAL,
        nullable=False
    )

    # Status & payment
    status = Column(
        SQLEnum(BookingStatus, name="booking_status", values_callable=_enum_values),
        default=BookingStatus.PENDING,
        nullable=False
    )
    payment_status = Column(
        SQLEnum(PaymentStatus, name="payment_status", values_callable=_enum_values),
        default=PaymentStatus.PENDING_DEPOSIT,
        nullable=False
    )
    deposit_amount = Column(Float, nullable=True)
    amount_due = Column(Float, nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=_now)
    updated_at = Column(DateTime(timezone=True), default=_now, onupdate=_now)

    __table_args__ = (
        Index("idx_bookings_location_date", "location_id", "selected_date"),
        Index("idx_bookings_pilot", "pilot_id"),
        Index("idx_bookings_company", "company_id"),
    )


# Pydantic models
class AdditionalService(BaseModel):
    """One upsell line item (e.g. video, transfer) attached to a booking."""
    service_id: Optional[str] = None
    name: Optional[str] = None
    price: float = Field(0.0, ge=0, validation_alias=AliasChoices("price", "price_gel"))
    quantity: int = Field(1, ge=0)

    @property
    def line_total(self) -> float:
        return self.price * self.quantity


class BookingRequest(BaseModel):
    """
    Raw booking payload from the checkout.

    Required fields are declared optional on purpose: the booking validator
    reports every missing field in a single rejection.
    """
    # Customer
    user_id: Optional[str] = None
    full_name: Optional[str] = None
    phone: Optional[str] = None
    contact_method: Optional[ContactMethod] = None
    special_requests: Optional[str] = Field(None, max_length=500)

    # Location & flight
    country_id: Optional[str] = None
    country_name: Optional[str] = None
    location_id: Optional[str] = None
    location_name: Optional[str] = None
    flight_type_id: Optional[str] = None
    flight_type_name: Optional[str] = None
    selected_date: Optional[str] = None
    number_of_people: Optional[int] = None

    # Pricing as computed by the client
    currency: Optional[str] = None
    base_price: Optional[float] = None
    services_total: Optional[float] = None
    total_price: Optional[float] = None
    promo_code: Optional[str] = None
    additional_services: Optional[List[AdditionalService]] = None

    # Assignment
    pilot_id: Optional[str] = None
    company_id: Optional[str] = None
    booking_source: Optional[str] = None  # ignored, recomputed server side


class BookingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: Optional[str] = None
    full_name: str
    phone: str
    contact_method: Optional[str] = None
    special_requests: Optional[str] = None
    country_id: Optional[str] = None
    country_name: Optional[str] = None
    location_id: str
    location_name: Optional[str] = None
    flight_type_id: str
    flight_type_name: Optional[str] = None
    selected_date: date
    number_of_people: int
    additional_services: Optional[List[Dict[str, Any]]] = None
    currency: Currency
    base_price: float
    services_total: float
    total_price: float
    promo_code: Optional[str] = None
    promo_discount: float
    pilot_id: Optional[str] = None
    company_id: Optional[str] = None
    booking_source: BookingSource
    status: BookingStatus
    payment_status: PaymentStatus
    deposit_amount: Optional[float] = None
    amount_due: Optional[float] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BookingCreatedResponse(BaseModel):
    success: bool = True
    data: BookingResponse
