"""
Booking validation against seeded reference data.
"""
import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from xparagliding.errors import BookingRejected, RejectionReason
from xparagliding.models import Booking, BookingRequest, BookingSource, PromoCode, PromoCodeUsage
from xparagliding.services import promo as promo_module
from xparagliding.services.booking import BookingValidator

from .conftest import (
    COMPANY_ID, COUNTRY_ID, GUDAURI_ID, KAZBEGI_ID, NOW, PILOT_ID, PILOT_WITH_COMPANY_ID
)


def make_request(payload, **overrides):
    data = dict(payload)
    data.update(overrides)
    return BookingRequest(**data)


async def create(session, payload, **overrides):
    return await BookingValidator(session).validate_and_create(make_request(payload, **overrides), now=NOW)


async def rejection(session, payload, **overrides) -> BookingRejected:
    with pytest.raises(BookingRejected) as exc_info:
        await create(session, payload, **overrides)
    return exc_info.value


class TestSuccessfulBookings:

    @pytest.mark.asyncio
    async def test_three_people_without_promo(self, session, booking_payload):
        booking = await create(session, booking_payload)

        assert booking.id
        assert booking.base_price == 900
        assert booking.total_price == 900
        assert booking.promo_discount == 0
        assert booking.promo_code is None
        assert booking.booking_source is BookingSource.PLATFORM_GENERAL
        assert booking.status.value == "pending"
        assert booking.payment_status.value == "pending_deposit"
        assert booking.deposit_amount == pytest.approx(177)
        assert booking.amount_due == 750

    @pytest.mark.asyncio
    async def test_names_come_from_reference_data(self, session, booking_payload):
        booking = await create(
            session,
            booking_payload,
            country_id="bogus",
            country_name="Client Country",
            location_name="Client Location"
        )
        assert booking.country_id == COUNTRY_ID
        assert booking.country_name == "Georgia"
        assert booking.location_name == "Gudauri"

    @pytest.mark.asyncio
    async def test_booking_is_persisted(self, session, booking_payload):
        booking = await create(session, booking_payload)

        stored = (await session.execute(select(Booking).where(Booking.id == booking.id))).scalar_one()
        assert stored.total_price == 900
        assert stored.selected_date.isoformat() == "2025-12-15"
        assert stored.contact_method == "whatsapp"

    @pytest.mark.asyncio
    async def test_other_currency(self, session, booking_payload):
        booking = await create(session, booking_payload, currency="usd", base_price=330, total_price=330)
        assert booking.currency.value == "USD"
        assert booking.total_price == 330

    @pytest.mark.asyncio
    async def test_deposit_is_in_booking_currency(self, session, booking_payload):
        booking = await create(session, booking_payload, currency="USD", base_price=330, total_price=330)

        # 50 GEL per person at the flight type's 300 GEL / 110 USD ratio
        assert booking.deposit_amount == pytest.approx(54.99 + 9.90)
        assert booking.amount_due == pytest.approx(330 - 54.99)

        stored = await session.get(Booking, booking.id)
        assert stored.deposit_amount == pytest.approx(64.89)

    @pytest.mark.asyncio
    async def test_additional_services_added_to_total(self, session, booking_payload):
        booking = await create(
            session,
            booking_payload,
            additional_services=[
                {"service_id": "video", "name": "GoPro video", "price_gel": 50, "quantity": 2},
            ],
            services_total=100,
            total_price=1000
        )
        assert booking.services_total == 100
        assert booking.total_price == 1000
        assert booking.additional_services[0]["service_id"] == "video"
        assert booking.deposit_amount == pytest.approx(277)
        assert booking.amount_due == 750

    @pytest.mark.asyncio
    async def test_client_total_within_one_cent_is_accepted(self, session, booking_payload):
        booking = await create(session, booking_payload, base_price=900.01, total_price=899.99)
        assert booking.total_price == 900

    @pytest.mark.asyncio
    async def test_client_booking_source_is_discarded(self, session, booking_payload):
        booking = await create(session, booking_payload, booking_source="platform")
        assert booking.booking_source is BookingSource.PLATFORM_GENERAL


class TestPromoCodes:

    @pytest.mark.asyncio
    async def test_valid_promo_applies_ten_percent(self, session, booking_payload):
        booking = await create(session, booking_payload, promo_code="autumn10", total_price=810)

        assert booking.promo_code == "AUTUMN10"
        assert booking.promo_discount == 10
        assert booking.base_price == 900
        assert booking.total_price == pytest.approx(810)

    @pytest.mark.asyncio
    async def test_promo_usage_is_recorded(self, session, booking_payload):
        booking = await create(session, booking_payload, promo_code="AUTUMN10", total_price=810)

        promo = await session.get(PromoCode, "promo-autumn")
        await session.refresh(promo)
        assert promo.usage_count == 8

        usage = (await session.execute(select(PromoCodeUsage))).scalar_one()
        assert usage.booking_id == booking.id
        assert usage.people_count == 3
        assert usage.discount_amount == pytest.approx(90)

    @pytest.mark.asyncio
    async def test_discount_applies_to_services(self, session, booking_payload):
        booking = await create(
            session,
            booking_payload,
            promo_code="AUTUMN10",
            services_total=100,
            total_price=900
        )
        assert booking.total_price == pytest.approx(900)

    @pytest.mark.asyncio
    async def test_not_yet_valid_promo_at_full_price_still_books(self, session, booking_payload):
        booking = await create(session, booking_payload, promo_code="WINTER15", total_price=900)

        assert booking.promo_discount == 0
        assert booking.total_price == 900
        usage = (await session.execute(select(PromoCodeUsage))).scalars().all()
        assert usage == []

    @pytest.mark.asyncio
    async def test_not_yet_valid_promo_with_discounted_total_is_rejected(self, session, booking_payload):
        error = await rejection(session, booking_payload, promo_code="WINTER15", total_price=765)
        assert error.code is RejectionReason.INVALID_PROMO_CODE
        assert error.details["reason"] == "not_yet_valid"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("code,reason", [
        ("SPRING20", "expired"),
        ("OLDCODE", "inactive"),
        ("NOSUCHCODE", "not_found"),
    ])
    async def test_unusable_promo_reasons(self, session, booking_payload, code, reason):
        error = await rejection(session, booking_payload, promo_code=code, total_price=800)
        assert error.code is RejectionReason.INVALID_PROMO_CODE
        assert error.details["reason"] == reason

    @pytest.mark.asyncio
    async def test_usage_limit_counts_people(self, session, booking_payload):
        # 8 used of 10, booking 3 people would make 11
        error = await rejection(session, booking_payload, promo_code="LASTSEATS", total_price=810)
        assert error.code is RejectionReason.INVALID_PROMO_CODE
        assert error.details["reason"] == "usage_exhausted"

        booking = await create(
            session,
            booking_payload,
            number_of_people=2,
            promo_code="LASTSEATS",
            base_price=600,
            total_price=540
        )
        assert booking.promo_discount == 10

    @pytest.mark.asyncio
    async def test_unlimited_promo_ignores_usage_count(self, session, booking_payload):
        booking = await create(session, booking_payload, promo_code="FRIENDS5", total_price=855)
        assert booking.promo_discount == 5

    @pytest.mark.asyncio
    async def test_promo_accounting_failure_keeps_booking(self, session, booking_payload, monkeypatch):
        def broken_usage(**kwargs):
            raise RuntimeError("promo_code_usage table unavailable")

        monkeypatch.setattr(promo_module, "PromoCodeUsage", broken_usage)

        booking = await create(session, booking_payload, promo_code="AUTUMN10", total_price=810)
        assert booking.promo_discount == 10

        stored = await session.get(Booking, booking.id)
        assert stored is not None
        promo = await session.get(PromoCode, "promo-autumn")
        await session.refresh(promo)
        assert promo.usage_count == 8
        assert (await session.execute(select(PromoCodeUsage))).scalars().all() == []


class TestOwnership:

    @pytest.mark.asyncio
    async def test_pilot_booking_adopts_pilot_company(self, session, booking_payload):
        booking = await create(session, booking_payload, pilot_id=PILOT_WITH_COMPANY_ID)
        assert booking.booking_source is BookingSource.PILOT_DIRECT
        assert booking.pilot_id == PILOT_WITH_COMPANY_ID
        assert booking.company_id == COMPANY_ID

    @pytest.mark.asyncio
    async def test_pilot_without_company(self, session, booking_payload):
        booking = await create(session, booking_payload, pilot_id=PILOT_ID, booking_source="company_direct")
        assert booking.booking_source is BookingSource.PILOT_DIRECT
        assert booking.company_id is None

    @pytest.mark.asyncio
    async def test_unknown_pilot_is_rejected(self, session, booking_payload):
        error = await rejection(session, booking_payload, pilot_id="pilot-ghost")
        assert error.code is RejectionReason.INVALID_PILOT

    @pytest.mark.asyncio
    async def test_pilot_must_serve_location(self, session, booking_payload):
        error = await rejection(
            session,
            booking_payload,
            location_id=KAZBEGI_ID,
            flight_type_id="ft-kazbegi",
            base_price=1050,
            total_price=1050,
            pilot_id=PILOT_ID
        )
        assert error.code is RejectionReason.PILOT_LOCATION_MISMATCH

    @pytest.mark.asyncio
    async def test_company_booking(self, session, booking_payload):
        booking = await create(session, booking_payload, company_id=COMPANY_ID)
        assert booking.booking_source is BookingSource.COMPANY_DIRECT
        assert booking.company_id == COMPANY_ID

    @pytest.mark.asyncio
    async def test_unknown_company_falls_back_to_platform(self, session, booking_payload):
        booking = await create(session, booking_payload, company_id="company-deleted")
        assert booking.booking_source is BookingSource.PLATFORM_GENERAL
        assert booking.company_id is None


class TestRejections:

    @pytest.mark.asyncio
    async def test_all_missing_fields_are_reported(self, session, booking_payload):
        error = await rejection(session, booking_payload, full_name="  ", phone=None, total_price=None)
        assert error.code is RejectionReason.MISSING_FIELDS
        assert error.details["fields"] == ["full_name", "phone", "total_price"]

    @pytest.mark.asyncio
    async def test_empty_request_lists_every_required_field(self, session):
        with pytest.raises(BookingRejected) as exc_info:
            await BookingValidator(session).validate_and_create(BookingRequest(), now=NOW)
        assert exc_info.value.details["fields"] == [
            "full_name", "phone", "location_id", "flight_type_id", "selected_date",
            "number_of_people", "currency", "base_price", "total_price",
        ]

    @pytest.mark.asyncio
    async def test_zero_people(self, session, booking_payload):
        error = await rejection(session, booking_payload, number_of_people=0)
        assert error.code is RejectionReason.INVALID_PEOPLE_COUNT

    @pytest.mark.asyncio
    async def test_unsupported_currency(self, session, booking_payload):
        error = await rejection(session, booking_payload, currency="JPY")
        assert error.code is RejectionReason.INVALID_CURRENCY

    @pytest.mark.asyncio
    @pytest.mark.parametrize("selected_date", ["15/12/2025", "2025-02-30", "2025-1-5", "tomorrow"])
    async def test_bad_dates(self, session, booking_payload, selected_date):
        error = await rejection(session, booking_payload, selected_date=selected_date)
        assert error.code is RejectionReason.INVALID_DATE_FORMAT

    @pytest.mark.asyncio
    async def test_unknown_location(self, session, booking_payload):
        error = await rejection(session, booking_payload, location_id="loc-atlantis")
        assert error.code is RejectionReason.INVALID_LOCATION

    @pytest.mark.asyncio
    async def test_flight_type_from_other_location(self, session, booking_payload):
        error = await rejection(session, booking_payload, flight_type_id="ft-kazbegi")
        assert error.code is RejectionReason.INVALID_FLIGHT_TYPE

    @pytest.mark.asyncio
    async def test_flight_type_without_price_in_currency(self, session, booking_payload):
        error = await rejection(
            session,
            booking_payload,
            flight_type_id="ft-gel-only",
            currency="EUR",
            base_price=450,
            total_price=450
        )
        assert error.code is RejectionReason.INVALID_FLIGHT_TYPE

    @pytest.mark.asyncio
    async def test_total_off_by_more_than_one_cent(self, session, booking_payload):
        error = await rejection(session, booking_payload, total_price=900.02)
        assert error.code is RejectionReason.PRICE_MISMATCH
        assert error.details["submitted_total"] == 900.02
        assert error.details["computed_total"] == 900
        assert "refresh" in error.message

    @pytest.mark.asyncio
    async def test_base_price_mismatch(self, session, booking_payload):
        # Per-person price submitted as base price
        error = await rejection(session, booking_payload, base_price=300)
        assert error.code is RejectionReason.PRICE_MISMATCH
        assert error.details["computed_base"] == 900

    @pytest.mark.asyncio
    async def test_rejected_booking_is_not_stored(self, session, booking_payload):
        await rejection(session, booking_payload, total_price=1)
        stored = (await session.execute(select(Booking))).scalars().all()
        assert stored == []

    @pytest.mark.asyncio
    async def test_insert_failure_is_reported(self, session, booking_payload, monkeypatch):
        async def failing_commit():
            raise OperationalError("INSERT INTO bookings", {}, Exception("disk I/O error"))

        monkeypatch.setattr(session, "commit", failing_commit)

        error = await rejection(session, booking_payload)
        assert error.code is RejectionReason.PERSISTENCE_FAILURE
        assert error.status_code == 500
