"""
Promo code validation and usage accounting.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
import logging

from ..models import PromoCode, PromoCodeUsage

logger = logging.getLogger(__name__)


class PromoRejection(str, Enum):
    NOT_FOUND = "not_found"
    INACTIVE = "inactive"
    NOT_YET_VALID = "not_yet_valid"
    EXPIRED = "expired"
    USAGE_EXHAUSTED = "usage_exhausted"


PROMO_REJECTION_MESSAGES = {
    PromoRejection.NOT_FOUND: "Promo code not found",
    PromoRejection.INACTIVE: "Promo code is not active",
    PromoRejection.NOT_YET_VALID: "Promo code is not valid yet",
    PromoRejection.EXPIRED: "Promo code has expired",
    PromoRejection.USAGE_EXHAUSTED: "Promo code usage limit reached",
}


@dataclass
class PromoEvaluation:
    code: str
    is_valid: bool
    promo_code_id: Optional[str] = None
    discount_percentage: float = 0.0
    reason: Optional[PromoRejection] = None

    @property
    def error_message(self) -> Optional[str]:
        if self.reason is None:
            return None
        return PROMO_REJECTION_MESSAGES[self.reason]


def normalize_code(code: str) -> str:
    return code.strip().upper()


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; stored values are UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def evaluate_promo_code(
    promo: Optional[PromoCode],
    code: str,
    number_of_people: int,
    now: datetime
) -> PromoEvaluation:
    """
    Decide whether a promo code applies to a booking of number_of_people at `now`.

    Checks run in a fixed order so the first failing rule names the reason:
    existence, active flag, validity window (both bounds inclusive, a missing
    bound is open), then usage limit counted in people.
    """
    code = normalize_code(code)
    now = _as_utc(now)

    if promo is None:
        return PromoEvaluation(code=code, is_valid=False, reason=PromoRejection.NOT_FOUND)

    def rejected(reason: PromoRejection) -> PromoEvaluation:
        return PromoEvaluation(code=code, is_valid=False, promo_code_id=promo.id, reason=reason)

    if not promo.is_active:
        return rejected(PromoRejection.INACTIVE)

    if promo.valid_from is not None and _as_utc(promo.valid_from) > now:
        return rejected(PromoRejection.NOT_YET_VALID)

    if promo.valid_until is not None and _as_utc(promo.valid_until) < now:
        return rejected(PromoRejection.EXPIRED)

    if promo.usage_limit is not None:
        projected_usage = (promo.usage_count or 0) + number_of_people
        if projected_usage > promo.usage_limit:
            return rejected(PromoRejection.USAGE_EXHAUSTED)

    return PromoEvaluation(
        code=code,
        is_valid=True,
        promo_code_id=promo.id,
        discount_percentage=float(promo.discount_percentage)
    )


class PromoCodeService:
    """Lookups and counters for promo codes."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_code(self, code: str) -> Optional[PromoCode]:
        result = await self.session.execute(
            select(PromoCode).where(PromoCode.code == normalize_code(code))
        )
        return result.scalar_one_or_none()

    async def validate(
        self,
        code: str,
        number_of_people: int,
        now: Optional[datetime] = None
    ) -> PromoEvaluation:
        promo = await self.get_by_code(code)
        evaluation = evaluate_promo_code(
            promo,
            code,
            number_of_people,
            now or datetime.now(timezone.utc)
        )
        if not evaluation.is_valid:
            logger.info(f"Promo code {evaluation.code} rejected: {evaluation.reason.value}")
        return evaluation

    async def record_usage(
        self,
        promo_code_id: str,
        booking_id: str,
        people_count: int,
        discount_amount: float,
        user_id: Optional[str] = None
    ) -> bool:
        """
        Increment the usage counter, then log the redemption.

        Best effort: runs after the booking is committed, never raises. Each
        write commits on its own, so a failed log row leaves the counter
        incremented. The limit check happened earlier without a lock, so
        concurrent bookings may push usage_count past usage_limit.
        """
        try:
            await self.session.execute(
                update(PromoCode)
                .where(PromoCode.id == promo_code_id)
                .values(usage_count=PromoCode.usage_count + people_count)
            )
            await self.session.commit()
            logger.info(f"Incremented promo usage for booking {booking_id}: +{people_count}")
            counted = True
        except Exception as e:
            logger.error(f"Failed to increment promo usage for booking {booking_id}: {e}")
            await self._rollback()
            counted = False

        try:
            self.session.add(PromoCodeUsage(
                promo_code_id=promo_code_id,
                booking_id=booking_id,
                user_id=user_id,
                people_count=people_count,
                discount_amount=discount_amount
            ))
            await self.session.commit()
            logged = True
        except Exception as e:
            logger.error(f"Failed to log promo usage for booking {booking_id}: {e}")
            await self._rollback()
            logged = False

        return counted and logged

    async def _rollback(self):
        try:
            await self.session.rollback()
        except Exception as e:
            logger.error(f"Rollback after promo usage failure failed: {e}")
