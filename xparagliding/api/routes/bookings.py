"""
Bookings API: server-validated booking creation.
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from ... import config
from ...database import get_session
from ...errors import BookingRejected
from ...models import Booking, BookingRequest, BookingResponse, BookingCreatedResponse
from ...ratelimit import RateLimit
from ...services.booking import validate_and_create

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Bookings"])


@router.post(
    "/bookings",
    response_model=BookingCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(RateLimit(config.BOOKING_RATE_LIMIT, config.BOOKING_RATE_WINDOW))]
)
async def create_booking(
    booking_request: BookingRequest,
    session: AsyncSession = Depends(get_session)
):
    """
    Create a booking after re-deriving its price on the server.

    The flight price comes from the location's flight types, the promo
    discount from the promo code table. The request is rejected when the
    submitted base or total price drifts more than 0.01 from the server value.

    - **location_id** / **flight_type_id**: flight being booked
    - **number_of_people**: passengers, at least 1
    - **currency**: GEL, USD or EUR
    - **base_price** / **total_price**: amounts shown to the customer
    - **promo_code**: optional discount code
    - **pilot_id** / **company_id**: optional direct assignment
    """
    logger.info(
        f"Received booking for location {booking_request.location_id}, "
        f"flight type {booking_request.flight_type_id}"
    )
    try:
        booking = await validate_and_create(session, booking_request)
        return BookingCreatedResponse(data=booking)

    except (BookingRejected, HTTPException):
        raise
    except Exception as e:
        logger.error(f"Error creating booking: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create booking"
        )


@router.get("/bookings/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: str,
    session: AsyncSession = Depends(get_session)
):
    """Return a stored booking."""
    booking = await session.get(Booking, booking_id)
    if not booking:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Booking {booking_id} not found"
        )
    return BookingResponse.model_validate(booking)
