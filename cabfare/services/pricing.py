import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_CEILING, ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Dict, Optional

from cabfare.core.errors import ValidationError
from cabfare.services.tariff_loader import get_tariff_table
from cabfare.services.tariffs import TariffTable, TariffWindow

logger = logging.getLogger(__name__)

PENNY = Decimal("0.01")
SECONDS_PER_HOUR = Decimal(3600)
SECONDS_PER_MINUTE = Decimal(60)


class VehicleClass(str, Enum):
    standard = "standard"
    multiseater = "multiseater"
    luxury = "luxury"


class PaymentMethod(str, Enum):
    cash = "cash"
    card = "card"
    account = "account"


# Seats per vehicle class
CAPACITY = {
    VehicleClass.standard: 4,
    VehicleClass.multiseater: 8,
    VehicleClass.luxury: 7,
}


def to_pence(amount: Decimal) -> int:
    """Round half-up to the penny and return integer minor units."""
    return int((amount / PENNY).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def from_pence(pence: int) -> Decimal:
    return (Decimal(pence) * PENNY).quantize(PENNY)


@dataclass(frozen=True)
class FareBreakdown:
    """Itemized charges; every item is already rounded to the penny."""
    base_fare: Decimal = Decimal("0.00")
    distance_charge: Decimal = Decimal("0.00")
    duration_charge: Decimal = Decimal("0.00")
    multiseater_adjustment: Decimal = Decimal("0.00")
    passenger_surcharge: Decimal = Decimal("0.00")
    card_fee: Decimal = Decimal("0.00")
    hourly_charge: Decimal = Decimal("0.00")
    distance_units: Decimal = Decimal("0")
    duration_minutes: Decimal = Decimal("0")
    hours: Optional[int] = None
    hourly_rate: Optional[Decimal] = None

    CHARGE_FIELDS = (
        "base_fare",
        "distance_charge",
        "duration_charge",
        "multiseater_adjustment",
        "passenger_surcharge",
        "card_fee",
        "hourly_charge",
    )

    def items(self) -> Dict[str, Decimal]:
        return {name: getattr(self, name) for name in self.CHARGE_FIELDS}

    @property
    def total(self) -> Decimal:
        return sum(self.items().values(), Decimal("0.00"))


@dataclass(frozen=True)
class FareResult:
    fare: Decimal
    tariff: Optional[TariffWindow]
    vehicle_type: VehicleClass
    is_luxury: bool
    is_multiseater: bool
    is_return_leg: bool
    hailed: bool
    payment_method: PaymentMethod
    currency: str
    breakdown: FareBreakdown


def _non_negative(value, name: str) -> Decimal:
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        raise ValidationError(name, f"must be a number, got {value!r}")
    amount = Decimal(str(value))
    if not amount.is_finite():
        raise ValidationError(name, "must be finite")
    if amount < 0:
        raise ValidationError(name, f"must not be negative, got {value}")
    return amount


def _enum(enum_cls, value, name: str):
    try:
        return enum_cls(value)
    except ValueError:
        choices = ", ".join(member.value for member in enum_cls)
        raise ValidationError(name, f"must be one of {choices}, got {value!r}")


class FareCalculator:
    """
    Prices a trip against an injected, immutable tariff table.

    Luxury vehicles are billed per started hour with a one hour minimum.
    Everything else is metered: base fare plus distance and duration charges
    from the window live at the ride time, then the multi-seater adjustment,
    the extra passenger surcharge and the card fee. Each charge is rounded
    half-up to the penny and the fare is the exact sum of the charges.
    """

    def __init__(self, table: TariffTable):
        self.table = table

    def calculate(
        self,
        distance: float,
        duration: float,
        passenger_count: int,
        is_return_leg: bool,
        ride_datetime: datetime,
        vehicle_type=VehicleClass.standard,
        hailed: bool = False,
        payment_method=PaymentMethod.cash,
    ) -> FareResult:
        distance_m = _non_negative(distance, "distance")
        duration_s = _non_negative(duration, "duration")
        if isinstance(passenger_count, bool) or not isinstance(passenger_count, int):
            raise ValidationError("passenger_count", f"must be an integer, got {passenger_count!r}")
        if passenger_count <= 0:
            raise ValidationError("passenger_count", f"must be positive, got {passenger_count}")
        vehicle = _enum(VehicleClass, vehicle_type, "vehicle_type")
        payment = _enum(PaymentMethod, payment_method, "payment_method")
        if passenger_count > CAPACITY[vehicle]:
            raise ValidationError(
                "passenger_count",
                f"{passenger_count} passengers exceed {vehicle.value} capacity of {CAPACITY[vehicle]}",
            )
        if not isinstance(ride_datetime, datetime):
            raise ValidationError("ride_datetime", f"must be a datetime, got {ride_datetime!r}")

        if vehicle is VehicleClass.luxury:
            breakdown = self._luxury(duration_s)
            tariff = None
        else:
            tariff = self.table.find_tariff(ride_datetime)
            logger.debug(f"Tariff '{tariff.name}' selected for {ride_datetime.isoformat()}")
            breakdown = self._metered(tariff, distance_m, duration_s, passenger_count,
                                      vehicle, hailed, payment)

        return FareResult(
            fare=breakdown.total,
            tariff=tariff,
            vehicle_type=vehicle,
            is_luxury=vehicle is VehicleClass.luxury,
            is_multiseater=vehicle is VehicleClass.multiseater,
            is_return_leg=bool(is_return_leg),
            hailed=bool(hailed),
            payment_method=payment,
            currency=self.table.currency,
            breakdown=breakdown,
        )

    def _luxury(self, duration_s: Decimal) -> FareBreakdown:
        hours = max(1, int((duration_s / SECONDS_PER_HOUR).to_integral_value(rounding=ROUND_CEILING)))
        rate = self.table.luxury_hourly_rate
        return FareBreakdown(
            hourly_charge=from_pence(hours * to_pence(rate)),
            duration_minutes=duration_s / SECONDS_PER_MINUTE,
            hours=hours,
            hourly_rate=rate,
        )

    def _metered(self, tariff: TariffWindow, distance_m: Decimal, duration_s: Decimal,
                 passenger_count: int, vehicle: VehicleClass, hailed: bool,
                 payment: PaymentMethod) -> FareBreakdown:
        rates = tariff.rates(hailed)
        units = distance_m / self.table.meters_per_unit
        minutes = duration_s / SECONDS_PER_MINUTE

        base = to_pence(rates.base_fare)
        distance_charge = to_pence(units * rates.per_distance_unit)
        duration_charge = to_pence(minutes * rates.per_duration_unit)
        if self.table.metering == "greater_of":
            if distance_charge >= duration_charge:
                duration_charge = 0
            else:
                distance_charge = 0

        adjustment = 0
        if vehicle is VehicleClass.multiseater:
            # applied to the tariff subtotal, never to the raw rates
            policy = self.table.multiseater
            subtotal = base + distance_charge + duration_charge
            adjustment = to_pence(from_pence(subtotal) * (policy.multiplier - 1)) + to_pence(policy.surcharge)

        passengers = self.table.passengers
        extra = max(0, passenger_count - passengers.included_passengers)
        surcharge = extra * to_pence(passengers.extra_passenger_fee)

        card_fee = to_pence(self.table.card_fee) if payment is PaymentMethod.card else 0

        return FareBreakdown(
            base_fare=from_pence(base),
            distance_charge=from_pence(distance_charge),
            duration_charge=from_pence(duration_charge),
            multiseater_adjustment=from_pence(adjustment),
            passenger_surcharge=from_pence(surcharge),
            card_fee=from_pence(card_fee),
            distance_units=units,
            duration_minutes=minutes,
        )


def calculate_fare(distance, duration, passenger_count, is_return_leg, ride_datetime,
                   vehicle_type=VehicleClass.standard, **options) -> FareResult:
    """Price a trip against the process-wide tariff table."""
    return FareCalculator(get_tariff_table()).calculate(
        distance, duration, passenger_count, is_return_leg, ride_datetime,
        vehicle_type, **options
    )

