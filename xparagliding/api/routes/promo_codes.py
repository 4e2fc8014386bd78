"""
Promo code validation for the checkout form.
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from pydantic import BaseModel, Field
from typing import Optional
import logging

from ... import config
from ...database import get_session
from ...ratelimit import RateLimit
from ...services.promo import PromoCodeService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Promo Codes"])


class PromoValidationRequest(BaseModel):
    """Request model for promo code checks."""
    code: str = Field(..., min_length=1, max_length=50)
    people_count: int = Field(1, ge=1, le=20)
    location_id: Optional[str] = None


class PromoValidationResponse(BaseModel):
    """Response model mirroring what the booking form needs to show a discount."""
    is_valid: bool
    promo_code_id: Optional[str] = None
    discount_percentage: float = 0
    error_message: Optional[str] = None
    reason: Optional[str] = None


@router.post(
    "/promo-codes/validate",
    response_model=PromoValidationResponse,
    dependencies=[Depends(RateLimit(config.PROMO_RATE_LIMIT, config.PROMO_RATE_WINDOW))]
)
async def validate_promo_code(
    promo_request: PromoValidationRequest,
    session: AsyncSession = Depends(get_session)
):
    """
    Check whether a promo code can be applied right now.

    An unusable code is not an error: the response carries is_valid=false
    and the reason, so the form can show it next to the input.

    - **code**: promo code, case-insensitive
    - **people_count**: passengers the discount would cover
    - **location_id**: location of the booking (informational)
    """
    try:
        evaluation = await PromoCodeService(session).validate(
            promo_request.code,
            promo_request.people_count
        )
        return PromoValidationResponse(
            is_valid=evaluation.is_valid,
            promo_code_id=evaluation.promo_code_id if evaluation.is_valid else None,
            discount_percentage=evaluation.discount_percentage,
            error_message=evaluation.error_message,
            reason=evaluation.reason.value if evaluation.reason else None
        )

    except Exception as e:
        logger.error(f"Error validating promo code: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to validate promo code"
        )
