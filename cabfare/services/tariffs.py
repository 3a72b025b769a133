"""
Tariff table: when each set of metered rates applies.

Weekly windows are matched against the weekday and time of the ride in the
operational timezone. A window whose start is later than its end wraps past
midnight; equal bounds mean the whole day. Start is inclusive, end exclusive.
Windows may also carry a recurring annual period (Christmas, New Year) and
are then only live inside it. The first matching window in table order wins.
"""
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta
from decimal import Decimal
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

from cabfare.core.errors import ConfigurationError

DAY_NAMES = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")

# Meters per billable distance unit
DISTANCE_UNITS = {"mile": Decimal("1609.344"), "km": Decimal("1000")}

METERING_MODES = ("combined", "greater_of")

# 2024-01-01 is a Monday
_REFERENCE_WEEK = datetime(2024, 1, 1)


def time_in_range(moment: time, start: time, end: time) -> bool:
    """Half-open [start, end) test that understands wraparound past midnight."""
    if start == end:
        return True
    if start < end:
        return start <= moment < end
    return moment >= start or moment < end


@dataclass(frozen=True)
class TariffRates:
    base_fare: Decimal
    per_distance_unit: Decimal
    per_duration_unit: Decimal


@dataclass(frozen=True)
class SeasonalPeriod:
    """Recurring annual span, e.g. 24 Dec 23:00 to 26 Dec 07:00. Both ends inclusive."""
    start_month: int
    start_day: int
    start_time: time
    end_month: int
    end_day: int
    end_time: time

    def contains(self, moment: datetime) -> bool:
        key = (moment.month, moment.day, moment.time())
        start = (self.start_month, self.start_day, self.start_time)
        end = (self.end_month, self.end_day, self.end_time)
        if start <= end:
            return start <= key <= end
        # crosses new year
        return key >= start or key <= end

    def describe(self) -> str:
        return (
            f"{self.start_day:02d}/{self.start_month:02d} {self.start_time:%H:%M}"
            f" - {self.end_day:02d}/{self.end_month:02d} {self.end_time:%H:%M}"
        )


@dataclass(frozen=True)
class TariffWindow:
    name: str
    days_of_week: frozenset
    start_time: time
    end_time: time
    base_fare: Decimal
    per_distance_unit: Decimal
    per_duration_unit: Decimal
    flag_rates: Optional[TariffRates] = None
    period: Optional[SeasonalPeriod] = None

    @property
    def wraps_midnight(self) -> bool:
        return self.start_time > self.end_time

    @property
    def prebook_rates(self) -> TariffRates:
        return TariffRates(self.base_fare, self.per_distance_unit, self.per_duration_unit)

    def rates(self, hailed: bool = False) -> TariffRates:
        if hailed and self.flag_rates is not None:
            return self.flag_rates
        return self.prebook_rates

    def covers(self, moment: datetime) -> bool:
        """Match against an already-localized moment."""
        if self.period is not None and not self.period.contains(moment):
            return False
        if moment.weekday() not in self.days_of_week:
            return False
        return time_in_range(moment.time(), self.start_time, self.end_time)


@dataclass(frozen=True)
class MultiseaterPolicy:
    multiplier: Decimal = Decimal("1")
    surcharge: Decimal = Decimal("0")


@dataclass(frozen=True)
class PassengerPolicy:
    included_passengers: int = 4
    extra_passenger_fee: Decimal = Decimal("0")


@dataclass(frozen=True)
class TariffTable:
    windows: Tuple[TariffWindow, ...]
    timezone: ZoneInfo
    distance_unit: str = "mile"
    metering: str = "combined"
    currency: str = "GBP"
    currency_symbol: str = "£"
    luxury_hourly_rate: Decimal = Decimal("80.00")
    multiseater: MultiseaterPolicy = field(default_factory=MultiseaterPolicy)
    passengers: PassengerPolicy = field(default_factory=PassengerPolicy)
    card_fee: Decimal = Decimal("0")
    tariff_config_id: str = "inline"
    tariff_config_version: str = "0"
    config_hash: str = ""

    def __post_init__(self):
        if self.distance_unit not in DISTANCE_UNITS:
            raise ConfigurationError(f"Unknown distance unit '{self.distance_unit}'")
        if self.metering not in METERING_MODES:
            raise ConfigurationError(f"Unknown metering mode '{self.metering}'")
        if not self.windows:
            raise ConfigurationError("Tariff table has no windows")

    @property
    def meters_per_unit(self) -> Decimal:
        return DISTANCE_UNITS[self.distance_unit]

    def localize(self, moment: datetime) -> datetime:
        """Naive datetimes are operational local time; aware ones are converted."""
        if moment.tzinfo is None:
            return moment.replace(tzinfo=self.timezone)
        return moment.astimezone(self.timezone)

    def matching(self, moment: datetime) -> list:
        local = self.localize(moment)
        return [window for window in self.windows if window.covers(local)]

    def find_tariff(self, moment: datetime) -> TariffWindow:
        local = self.localize(moment)
        for window in self.windows:
            if window.covers(local):
                return window
        raise ConfigurationError(
            f"No tariff window covers {DAY_NAMES[local.weekday()]} {local:%Y-%m-%d %H:%M}"
        )

    def check_coverage(self) -> None:
        """
        Every minute of the week must be matched by exactly one weekly window.
        Seasonal windows sit on top of the weekly grid and are not counted.
        """
        weekly = [window for window in self.windows if window.period is None]
        if not weekly:
            raise ConfigurationError("Tariff table has no weekly windows")
        for window in self.windows:
            for bound in (window.start_time, window.end_time):
                if bound.second or bound.microsecond:
                    raise ConfigurationError(
                        f"Window '{window.name}' bound {bound} is not minute aligned"
                    )

        for minute in range(7 * 24 * 60):
            moment = _REFERENCE_WEEK + timedelta(minutes=minute)
            hits = [window.name for window in weekly if window.covers(moment)]
            if len(hits) == 1:
                continue
            slot = f"{DAY_NAMES[moment.weekday()]} {moment:%H:%M}"
            if not hits:
                raise ConfigurationError(f"No weekly tariff window covers {slot}")
            raise ConfigurationError(f"Tariff windows overlap at {slot}: {', '.join(hits)}")


def format_money(amount: Decimal, symbol: str = "£") -> str:
    return f"{symbol}{amount:.2f}"


def format_tariff_info(window: TariffWindow, hailed: bool = False,
                       distance_unit: str = "mile", symbol: str = "£") -> str:
    """Human readable summary for display next to an estimate."""
    rates = window.rates(hailed)
    return (
        f"{window.name} - {format_money(rates.base_fare, symbol)} initial"
        f" + {format_money(rates.per_distance_unit, symbol)} per {distance_unit}"
        f" + {format_money(rates.per_duration_unit, symbol)} per minute"
    )
