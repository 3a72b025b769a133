import hashlib
import json
import logging
from datetime import time
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from pathlib import Path
from typing import Any, List, Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import pydantic
from pydantic import BaseModel, Field

from cabfare.core.config import get_settings
from cabfare.core.errors import ConfigurationError
from cabfare.services.tariffs import (
    DAY_NAMES,
    MultiseaterPolicy,
    PassengerPolicy,
    SeasonalPeriod,
    TariffRates,
    TariffTable,
    TariffWindow,
)

logger = logging.getLogger(__name__)

DAY_ALIASES = {name.lower(): index for index, name in enumerate(DAY_NAMES)}
DAY_GROUPS = {
    "all": frozenset(range(7)),
    "weekdays": frozenset(range(5)),
    "mon-sat": frozenset(range(6)),
    "weekend": frozenset({5, 6}),
}


# ─── Raw document shape ───────────────────────────────────────────────────────
# Containers are checked here; amounts, times and weekdays are parsed below so
# their errors name the offending key.

class RatesDocument(BaseModel):
    base_fare: Any = None
    per_distance_unit: Any = None
    per_duration_unit: Any = None


class PeriodDocument(BaseModel):
    start: Any = None
    end: Any = None


class WindowDocument(BaseModel):
    name: str
    days: Union[str, List[Any]] = "all"
    start: Any = "00:00"
    end: Any = "00:00"
    prebook: RatesDocument
    flag: Optional[RatesDocument] = None
    period: Optional[PeriodDocument] = None


class LuxuryDocument(BaseModel):
    hourly_rate: Any = None


class MultiseaterDocument(BaseModel):
    multiplier: Any = "1"
    surcharge: Any = "0"


class PassengersDocument(BaseModel):
    included: Any = 4
    extra_passenger_fee: Any = "0"


class TariffDocument(BaseModel):
    tariff_config_id: Union[str, int] = "inline"
    tariff_config_version: Union[str, int] = "0"
    timezone: str = "Europe/Jersey"
    currency: str = "GBP"
    currency_symbol: str = "£"
    distance_unit: str = "mile"
    metering: str = "combined"
    card_fee: Any = "0"
    luxury: LuxuryDocument = Field(default_factory=LuxuryDocument)
    multiseater: MultiseaterDocument = Field(default_factory=MultiseaterDocument)
    passengers: PassengersDocument = Field(default_factory=PassengersDocument)
    windows: List[WindowDocument] = Field(default_factory=list)


def _canonical_json(data: Any) -> str:
    return json.dumps(data, sort_keys=True, separators=(",", ":"))


def _document(data: Any) -> TariffDocument:
    try:
        return TariffDocument.model_validate(data)
    except pydantic.ValidationError as exc:
        first = exc.errors()[0]
        where = ".".join(str(part) for part in first["loc"]) or "tariff config"
        raise ConfigurationError(f"{where}: {first['msg']}")


def _decimal(value: Any, where: str) -> Decimal:
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise ConfigurationError(f"{where} must be a decimal string, got {value!r}")
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise ConfigurationError(f"{where} is not a valid amount: {value!r}")
    if not amount.is_finite() or amount < 0:
        raise ConfigurationError(f"{where} must be a non-negative amount, got {value!r}")
    return amount


def _time(value: Any, where: str) -> time:
    try:
        parsed = time.fromisoformat(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{where} must be HH:MM, got {value!r}")
    # windows are wall-clock times in the table's timezone
    if parsed.tzinfo is not None:
        raise ConfigurationError(f"{where} must be HH:MM without a UTC offset, got {value!r}")
    return parsed


def _days(value: Union[str, List[Any]], where: str) -> frozenset:
    if isinstance(value, str):
        if value.lower() in DAY_GROUPS:
            return DAY_GROUPS[value.lower()]
        raise ConfigurationError(f"{where} has unknown day group {value!r}")
    days = set()
    for item in value:
        if isinstance(item, int) and not isinstance(item, bool) and 0 <= item <= 6:
            days.add(item)
        elif isinstance(item, str) and item.lower() in DAY_ALIASES:
            days.add(DAY_ALIASES[item.lower()])
        else:
            raise ConfigurationError(f"{where} has unknown weekday {item!r}")
    if not days:
        raise ConfigurationError(f"{where} lists no weekdays")
    return frozenset(days)


def _period_bound(value: Any, where: str):
    # "MM-DD HH:MM"
    try:
        date_part, time_part = value.split(" ")
        month, day = (int(piece) for piece in date_part.split("-"))
    except (AttributeError, ValueError):
        raise ConfigurationError(f"{where} must be 'MM-DD HH:MM', got {value!r}")
    if not (1 <= month <= 12 and 1 <= day <= 31):
        raise ConfigurationError(f"{where} has an impossible date {value!r}")
    return month, day, _time(time_part, where)


def _period(raw: Optional[PeriodDocument], where: str) -> Optional[SeasonalPeriod]:
    if raw is None:
        return None
    start_month, start_day, start_time = _period_bound(raw.start, f"{where}.start")
    end_month, end_day, end_time = _period_bound(raw.end, f"{where}.end")
    return SeasonalPeriod(start_month, start_day, start_time, end_month, end_day, end_time)


def _rates(raw: RatesDocument, where: str) -> TariffRates:
    return TariffRates(
        base_fare=_decimal(raw.base_fare, f"{where}.base_fare"),
        per_distance_unit=_decimal(raw.per_distance_unit, f"{where}.per_distance_unit"),
        per_duration_unit=_decimal(raw.per_duration_unit, f"{where}.per_duration_unit"),
    )


def _window(raw: WindowDocument, index: int) -> TariffWindow:
    where = f"windows[{index}]"
    prebook = _rates(raw.prebook, f"{where}.prebook")
    flag = _rates(raw.flag, f"{where}.flag") if raw.flag is not None else None
    return TariffWindow(
        name=raw.name,
        days_of_week=_days(raw.days, f"{where}.days"),
        start_time=_time(raw.start, f"{where}.start"),
        end_time=_time(raw.end, f"{where}.end"),
        base_fare=prebook.base_fare,
        per_distance_unit=prebook.per_distance_unit,
        per_duration_unit=prebook.per_duration_unit,
        flag_rates=flag,
        period=_period(raw.period, f"{where}.period"),
    )


def build_tariff_table(data: Any, config_hash: str = "") -> TariffTable:
    """Build a table from a parsed JSON document. Any malformed shape is a ConfigurationError."""
    doc = _document(data)
    try:
        zone = ZoneInfo(doc.timezone)
    except (ZoneInfoNotFoundError, ValueError):
        raise ConfigurationError(f"Unknown timezone {doc.timezone!r}")

    included = doc.passengers.included
    if isinstance(included, bool) or not isinstance(included, int) or included < 1:
        raise ConfigurationError("passengers.included must be a positive integer")

    return TariffTable(
        windows=tuple(_window(raw, index) for index, raw in enumerate(doc.windows)),
        timezone=zone,
        distance_unit=doc.distance_unit,
        metering=doc.metering,
        currency=doc.currency,
        currency_symbol=doc.currency_symbol,
        luxury_hourly_rate=_decimal(doc.luxury.hourly_rate, "luxury.hourly_rate"),
        multiseater=MultiseaterPolicy(
            multiplier=_decimal(doc.multiseater.multiplier, "multiseater.multiplier"),
            surcharge=_decimal(doc.multiseater.surcharge, "multiseater.surcharge"),
        ),
        passengers=PassengerPolicy(
            included_passengers=included,
            extra_passenger_fee=_decimal(doc.passengers.extra_passenger_fee,
                                         "passengers.extra_passenger_fee"),
        ),
        card_fee=_decimal(doc.card_fee, "card_fee"),
        tariff_config_id=str(doc.tariff_config_id),
        tariff_config_version=str(doc.tariff_config_version),
        config_hash=config_hash,
    )


def load_tariff_config(path: str) -> TariffTable:
    resolved = Path(path)
    if not resolved.exists():
        raise ConfigurationError(f"Tariff config not found at {path}")
    try:
        data = json.loads(resolved.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Tariff config {path} is not valid JSON: {exc}")

    digest = hashlib.sha256(_canonical_json(data).encode("utf-8")).hexdigest()
    table = build_tariff_table(data, config_hash=f"sha256:{digest}")
    table.check_coverage()
    logger.info(
        f"Loaded tariff config {table.tariff_config_id} v{table.tariff_config_version} "
        f"({len(table.windows)} windows, {table.config_hash[:15]})"
    )
    return table


@lru_cache()
def get_tariff_table() -> TariffTable:
    return load_tariff_config(get_settings().tariff_config_path)
