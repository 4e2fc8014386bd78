"""
Booking rejection errors returned to API clients.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class RejectionReason(str, Enum):
    MISSING_FIELDS = "missing_fields"
    INVALID_PEOPLE_COUNT = "invalid_people_count"
    INVALID_CURRENCY = "invalid_currency"
    INVALID_DATE_FORMAT = "invalid_date_format"
    INVALID_LOCATION = "invalid_location"
    INVALID_FLIGHT_TYPE = "invalid_flight_type"
    INVALID_PILOT = "invalid_pilot"
    PILOT_LOCATION_MISMATCH = "pilot_location_mismatch"
    INVALID_PROMO_CODE = "invalid_promo_code"
    PRICE_MISMATCH = "price_mismatch"
    PERSISTENCE_FAILURE = "persistence_failure"


@dataclass(eq=False)
class BookingRejected(Exception):
    """A booking request refused by the server, with a machine-readable reason."""
    code: RejectionReason
    message: str
    details: Optional[Dict[str, Any]] = None
    status_code: int = 400

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "details": self.details or {},
            }
        }
