"""
Pricing Engine
Server-side price derivation for paragliding bookings.
"""
from dataclasses import dataclass, asdict
from typing import Dict, Any, Optional, List

from ..models import Currency, AdditionalService

# Max allowed drift between client-submitted and server-computed amounts
PRICE_TOLERANCE = 0.01
# Absorbs binary float noise so a difference of exactly PRICE_TOLERANCE passes
_FLOAT_EPSILON = 1e-9
# Georgian VAT charged on the platform commission
VAT_RATE = 0.18


@dataclass
class PriceBreakdown:
    price_per_person: float
    number_of_people: int
    base_price: float
    services_total: float
    discount_percentage: float
    discount_amount: float
    total_price: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class DepositSplit:
    commission: float
    vat: float
    deposit_amount: float
    amount_due: float


def get_price_per_person(flight_type: Dict[str, Any], currency: Currency) -> Optional[float]:
    """Return the flight type's price in the given currency, or None if it has none."""
    if currency is Currency.GEL:
        value = flight_type.get("price_gel")
    elif currency is Currency.USD:
        value = flight_type.get("price_usd")
    elif currency is Currency.EUR:
        value = flight_type.get("price_eur")
    else:
        raise ValueError(f"Unsupported currency: {currency}")

    if value is None or value == "":
        return None
    return float(value)


def calculate_services_total(
    additional_services: Optional[List[AdditionalService]],
    submitted_total: Optional[float] = None
) -> float:
    """
    Sum the additional service lines. Service prices are taken as submitted;
    they are not re-priced against a catalog.
    """
    if additional_services:
        return sum(service.line_total for service in additional_services)
    return float(submitted_total or 0.0)


def calculate_booking_price(
    price_per_person: float,
    number_of_people: int,
    services_total: float = 0.0,
    discount_percentage: float = 0.0
) -> PriceBreakdown:
    """
    Compute the authoritative booking price.

    The promo discount applies to flight and services together.
    """
    base_price = price_per_person * number_of_people
    discount_amount = (base_price + services_total) * discount_percentage / 100
    total_price = base_price + services_total - discount_amount

    return PriceBreakdown(
        price_per_person=price_per_person,
        number_of_people=number_of_people,
        base_price=base_price,
        services_total=services_total,
        discount_percentage=discount_percentage,
        discount_amount=discount_amount,
        total_price=total_price
    )


def within_tolerance(submitted: float, computed: float, tolerance: float = PRICE_TOLERANCE) -> bool:
    return abs(submitted - computed) <= tolerance + _FLOAT_EPSILON


def convert_platform_fee(
    fee_per_person_gel: float,
    flight_type: Dict[str, Any],
    currency: Currency
) -> Optional[float]:
    """
    Express the GEL platform fee in the booking currency.

    Uses the flight type's own GEL/target price ratio as the exchange rate.
    Returns None when the flight type has no GEL price to convert from.
    """
    if currency is Currency.GEL:
        return fee_per_person_gel

    price_gel = get_price_per_person(flight_type, Currency.GEL)
    price = get_price_per_person(flight_type, currency)
    if not price_gel or price is None:
        return None
    return round(fee_per_person_gel * price / price_gel, 2)


def calculate_deposit(
    flight_subtotal: float,
    number_of_people: int,
    services_total: float,
    fee_per_person: float
) -> DepositSplit:
    """
    Split the booking into the online deposit and the on-site balance.

    The deposit is the platform commission plus VAT on it plus all services.
    The balance is the undiscounted flight price minus the commission.
    """
    commission = round(fee_per_person * number_of_people, 2)
    vat = round(commission * VAT_RATE, 2)
    return DepositSplit(
        commission=commission,
        vat=vat,
        deposit_amount=commission + vat + services_total,
        amount_due=max(0.0, flight_subtotal - commission)
    )
