"""
Booking Validator
Re-derives booking prices from reference data, applies promo codes and
persists the booking only when the client-submitted totals agree.
"""
from datetime import datetime, date, timezone
from typing import Dict, Any, Optional, List, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import select
import logging
import re

from ..config import PLATFORM_FEE_PER_PERSON
from ..errors import BookingRejected, RejectionReason
from ..models import (
    Booking, BookingRequest, BookingResponse, BookingSource, Company, Country,
    Currency, Location, LocationPage, Pilot
)
from .pricing import (
    PRICE_TOLERANCE, PriceBreakdown, calculate_booking_price, convert_platform_fee,
    calculate_deposit, calculate_services_total, get_price_per_person, within_tolerance
)
from .promo import PromoCodeService, PromoEvaluation

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = (
    "full_name",
    "phone",
    "location_id",
    "flight_type_id",
    "selected_date",
    "number_of_people",
    "currency",
    "base_price",
    "total_price",
)

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def parse_selected_date(value: str) -> date:
    """Parse a YYYY-MM-DD calendar date, rejecting anything else."""
    if not DATE_PATTERN.match(value.strip()):
        raise BookingRejected(
            RejectionReason.INVALID_DATE_FORMAT,
            "Selected date must be in YYYY-MM-DD format",
            {"selected_date": value}
        )
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except ValueError:
        raise BookingRejected(
            RejectionReason.INVALID_DATE_FORMAT,
            "Selected date is not a valid calendar date",
            {"selected_date": value}
        )


def parse_currency(value: str) -> Currency:
    try:
        return Currency(value.strip().upper())
    except ValueError:
        raise BookingRejected(
            RejectionReason.INVALID_CURRENCY,
            f"Invalid currency: {value}",
            {"currency": value, "supported": [c.value for c in Currency]}
        )


class BookingValidator:
    """Server-side validation and creation of bookings."""

    def __init__(self, session: AsyncSession, fee_per_person: Optional[float] = None):
        self.session = session
        self.promo_service = PromoCodeService(session)
        self.fee_per_person = PLATFORM_FEE_PER_PERSON if fee_per_person is None else fee_per_person

    async def validate_and_create(
        self,
        request: BookingRequest,
        now: Optional[datetime] = None
    ) -> BookingResponse:
        """
        Validate a booking request and persist it.

        Raises BookingRejected for every refusal. `now` is the instant used
        for promo validity; it defaults to the current UTC time.
        """
        now = now or datetime.now(timezone.utc)

        # 1. Input shape
        self._check_required_fields(request)
        number_of_people = request.number_of_people
        if number_of_people < 1:
            raise BookingRejected(
                RejectionReason.INVALID_PEOPLE_COUNT,
                "Number of people must be at least 1",
                {"number_of_people": number_of_people}
            )
        currency = parse_currency(request.currency)
        selected_date = parse_selected_date(request.selected_date)

        # 2. Reference data
        location, country, flight_types = await self._resolve_location(request.location_id)
        flight_type = self._resolve_flight_type(flight_types, request)

        # 3. Ownership and booking source
        pilot_id, company_id, booking_source = await self._resolve_ownership(request)
        if request.booking_source and request.booking_source != booking_source.value:
            logger.info(
                f"Ignoring client booking_source '{request.booking_source}', using '{booking_source.value}'"
            )

        # 4. Promo code
        promo: Optional[PromoEvaluation] = None
        if not _is_missing(request.promo_code):
            promo = await self.promo_service.validate(request.promo_code, number_of_people, now)
        discount_percentage = promo.discount_percentage if promo and promo.is_valid else 0.0

        # 5. Authoritative price
        price_per_person = get_price_per_person(flight_type, currency)
        if price_per_person is None:
            raise BookingRejected(
                RejectionReason.INVALID_FLIGHT_TYPE,
                f"Flight type has no {currency.value} price",
                {"flight_type_id": request.flight_type_id, "currency": currency.value}
            )
        services_total = calculate_services_total(request.additional_services, request.services_total)
        breakdown = calculate_booking_price(
            price_per_person=price_per_person,
            number_of_people=number_of_people,
            services_total=services_total,
            discount_percentage=discount_percentage
        )

        # 6. Compare with what the client showed the customer
        self._verify_client_prices(request, breakdown, promo)

        # 7. Persist
        fee_per_person = convert_platform_fee(self.fee_per_person, flight_type, currency)
        if fee_per_person is None:
            logger.warning(
                f"Cannot convert platform fee to {currency.value} for flight type "
                f"{request.flight_type_id}; deposit left unset"
            )
            deposit = None
        else:
            deposit = calculate_deposit(
                breakdown.base_price, number_of_people, breakdown.services_total, fee_per_person
            )
        booking = Booking(
            user_id=request.user_id,
            full_name=request.full_name.strip(),
            phone=request.phone.strip(),
            contact_method=request.contact_method.value if request.contact_method else None,
            special_requests=request.special_requests,
            country_id=country.id if country else (location.country_id or request.country_id),
            country_name=self._display_name(country) or request.country_name,
            location_id=location.id,
            location_name=self._display_name(location) or request.location_name,
            flight_type_id=request.flight_type_id,
            flight_type_name=request.flight_type_name or flight_type.get("name"),
            selected_date=selected_date,
            number_of_people=number_of_people,
            additional_services=(
                [service.model_dump() for service in request.additional_services]
                if request.additional_services else None
            ),
            currency=currency,
            base_price=breakdown.base_price,
            services_total=breakdown.services_total,
            total_price=breakdown.total_price,
            promo_code=promo.code if promo else None,
            promo_discount=discount_percentage,
            pilot_id=pilot_id,
            company_id=company_id,
            booking_source=booking_source,
            deposit_amount=deposit.deposit_amount if deposit else None,
            amount_due=deposit.amount_due if deposit else None
        )

        try:
            self.session.add(booking)
            await self.session.commit()
            await self.session.refresh(booking)
        except SQLAlchemyError as e:
            logger.error(f"Failed to insert booking: {e}")
            await self.session.rollback()
            raise BookingRejected(
                RejectionReason.PERSISTENCE_FAILURE,
                "Failed to save booking",
                {"error": str(e)},
                status_code=500
            )

        created = BookingResponse.model_validate(booking)
        logger.info(
            f"Created booking {created.id} for location {created.location_id}: "
            f"{created.total_price} {currency.value} ({booking_source.value})"
        )

        # 8. Promo usage accounting, after commit and outside its transaction
        if promo and promo.is_valid and discount_percentage > 0 and promo.promo_code_id:
            await self.promo_service.record_usage(
                promo_code_id=promo.promo_code_id,
                booking_id=created.id,
                people_count=number_of_people,
                discount_amount=breakdown.discount_amount,
                user_id=request.user_id
            )

        return created

    def _check_required_fields(self, request: BookingRequest) -> None:
        missing = [name for name in REQUIRED_FIELDS if _is_missing(getattr(request, name))]
        if missing:
            raise BookingRejected(
                RejectionReason.MISSING_FIELDS,
                f"Missing required fields: {', '.join(missing)}",
                {"fields": missing}
            )

    async def _resolve_location(
        self,
        location_id: str
    ) -> Tuple[Location, Optional[Country], List[Dict[str, Any]]]:
        location = await self.session.get(Location, location_id)
        if not location:
            raise BookingRejected(
                RejectionReason.INVALID_LOCATION,
                "Invalid location: Not found",
                {"location_id": location_id}
            )

        page_result = await self.session.execute(
            select(LocationPage).where(LocationPage.location_id == location_id)
        )
        page = page_result.scalar_one_or_none()
        if not page:
            raise BookingRejected(
                RejectionReason.INVALID_LOCATION,
                "Invalid location: No page content",
                {"location_id": location_id}
            )

        country = await self.session.get(Country, location.country_id) if location.country_id else None
        flight_types = (page.content or {}).get("shared_flight_types") or []
        return location, country, flight_types

    def _resolve_flight_type(
        self,
        flight_types: List[Dict[str, Any]],
        request: BookingRequest
    ) -> Dict[str, Any]:
        # Flight type ids are only meaningful inside their own location
        for flight_type in flight_types:
            if str(flight_type.get("id")) == str(request.flight_type_id):
                return flight_type

        raise BookingRejected(
            RejectionReason.INVALID_FLIGHT_TYPE,
            "Invalid flight type: Not found in location",
            {"flight_type_id": request.flight_type_id, "location_id": request.location_id}
        )

    async def _resolve_ownership(
        self,
        request: BookingRequest
    ) -> Tuple[Optional[str], Optional[str], BookingSource]:
        """Return (pilot_id, company_id, booking_source)."""
        if not _is_missing(request.pilot_id):
            pilot = await self.session.get(Pilot, request.pilot_id)
            if not pilot:
                raise BookingRejected(
                    RejectionReason.INVALID_PILOT,
                    "Invalid pilot: Not found",
                    {"pilot_id": request.pilot_id}
                )
            if request.location_id not in (pilot.location_ids or []):
                raise BookingRejected(
                    RejectionReason.PILOT_LOCATION_MISMATCH,
                    "Pilot does not fly at this location",
                    {"pilot_id": pilot.id, "location_id": request.location_id}
                )
            company_id = request.company_id if not _is_missing(request.company_id) else pilot.company_id
            return pilot.id, company_id, BookingSource.PILOT_DIRECT

        if not _is_missing(request.company_id):
            company = await self.session.get(Company, request.company_id)
            if company:
                return None, company.id, BookingSource.COMPANY_DIRECT
            logger.warning(
                f"Company {request.company_id} not found, booking falls back to platform_general"
            )

        return None, None, BookingSource.PLATFORM_GENERAL

    def _verify_client_prices(
        self,
        request: BookingRequest,
        breakdown: PriceBreakdown,
        promo: Optional[PromoEvaluation]
    ) -> None:
        base_ok = within_tolerance(request.base_price, breakdown.base_price)
        total_ok = within_tolerance(request.total_price, breakdown.total_price)

        logger.info(
            f"Price verification: client base={request.base_price} total={request.total_price}, "
            f"server base={breakdown.base_price} total={breakdown.total_price}, "
            f"discount={breakdown.discount_percentage}%"
        )

        if base_ok and total_ok:
            if promo and not promo.is_valid:
                logger.info(
                    f"Promo code {promo.code} not applied ({promo.reason.value}), client already charged full price"
                )
            return

        # The client priced with a discount the server refuses to grant
        if base_ok and promo and not promo.is_valid:
            raise BookingRejected(
                RejectionReason.INVALID_PROMO_CODE,
                promo.error_message,
                {
                    "reason": promo.reason.value,
                    "promo_code": promo.code,
                    "submitted_total": request.total_price,
                    "computed_total": breakdown.total_price
                }
            )

        raise BookingRejected(
            RejectionReason.PRICE_MISMATCH,
            f"Price mismatch detected. Frontend: {request.total_price}, "
            f"Backend: {breakdown.total_price}. Please refresh the page.",
            {
                "submitted_base": request.base_price,
                "computed_base": breakdown.base_price,
                "submitted_total": request.total_price,
                "computed_total": breakdown.total_price,
                "tolerance": PRICE_TOLERANCE
            }
        )

    @staticmethod
    def _display_name(record: Any) -> Optional[str]:
        if record is None:
            return None
        return record.name_en or record.name_ka


async def validate_and_create(
    session: AsyncSession,
    request: BookingRequest,
    now: Optional[datetime] = None
) -> BookingResponse:
    """
    Convenience function for booking creation.

    This is the main entry point used by the API layer.
    """
    validator = BookingValidator(session)
    return await validator.validate_and_create(request, now=now)
