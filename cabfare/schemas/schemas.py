from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from decimal import Decimal
from datetime import datetime

from cabfare.services.pricing import FareResult, PaymentMethod, VehicleClass
from cabfare.services.tariffs import TariffTable, TariffWindow, format_tariff_info


# ─── Estimate Schemas ─────────────────────────────────────────────────────────

class FareEstimateRequest(BaseModel):
    distance_meters: float = Field(..., ge=0)
    duration_seconds: float = Field(..., ge=0)
    passenger_count: int = Field(default=1, ge=1)
    ride_datetime: Optional[datetime] = None
    vehicle_type: VehicleClass = VehicleClass.standard
    is_return_leg: bool = False
    hailed: bool = False
    payment_method: PaymentMethod = PaymentMethod.cash


class FareBreakdownResponse(BaseModel):
    base_fare: Decimal
    distance_charge: Decimal
    duration_charge: Decimal
    multiseater_adjustment: Decimal
    passenger_surcharge: Decimal
    card_fee: Decimal
    hourly_charge: Decimal
    distance_units: float
    duration_minutes: float
    hours: Optional[int] = None
    hourly_rate: Optional[Decimal] = None


class FareEstimateResponse(BaseModel):
    fare: Decimal
    currency: str
    tariff: Optional[str]
    tariff_info: Optional[str]
    vehicle_type: VehicleClass
    is_luxury: bool
    is_multiseater: bool
    is_return_leg: bool
    hailed: bool
    payment_method: PaymentMethod
    breakdown: FareBreakdownResponse
    tariff_config_id: str
    tariff_config_version: str
    config_hash: str

    @classmethod
    def from_result(cls, result: FareResult, table: TariffTable) -> "FareEstimateResponse":
        b = result.breakdown
        return cls(
            fare=result.fare,
            currency=result.currency,
            tariff=result.tariff.name if result.tariff else None,
            tariff_info=(
                format_tariff_info(result.tariff, result.hailed, table.distance_unit, table.currency_symbol)
                if result.tariff else None
            ),
            vehicle_type=result.vehicle_type,
            is_luxury=result.is_luxury,
            is_multiseater=result.is_multiseater,
            is_return_leg=result.is_return_leg,
            hailed=result.hailed,
            payment_method=result.payment_method,
            breakdown=FareBreakdownResponse(
                **b.items(),
                distance_units=round(float(b.distance_units), 2),
                duration_minutes=round(float(b.duration_minutes), 2),
                hours=b.hours,
                hourly_rate=b.hourly_rate,
            ),
            tariff_config_id=table.tariff_config_id,
            tariff_config_version=table.tariff_config_version,
            config_hash=table.config_hash,
        )


# ─── Tariff Schemas ───────────────────────────────────────────────────────────

class TariffRatesResponse(BaseModel):
    base_fare: Decimal
    per_distance_unit: Decimal
    per_duration_unit: Decimal


class TariffWindowResponse(BaseModel):
    name: str
    days_of_week: List[int]
    start_time: str
    end_time: str
    wraps_midnight: bool
    period: Optional[str] = None
    prebook: TariffRatesResponse
    flag: TariffRatesResponse
    info: Dict[str, str]

    @classmethod
    def from_window(cls, window: TariffWindow, table: TariffTable) -> "TariffWindowResponse":
        def rates(hailed):
            r = window.rates(hailed)
            return TariffRatesResponse(
                base_fare=r.base_fare,
                per_distance_unit=r.per_distance_unit,
                per_duration_unit=r.per_duration_unit,
            )

        return cls(
            name=window.name,
            days_of_week=sorted(window.days_of_week),
            start_time=window.start_time.strftime("%H:%M"),
            end_time=window.end_time.strftime("%H:%M"),
            wraps_midnight=window.wraps_midnight,
            period=window.period.describe() if window.period else None,
            prebook=rates(False),
            flag=rates(True),
            info={
                "prebook": format_tariff_info(window, False, table.distance_unit, table.currency_symbol),
                "flag": format_tariff_info(window, True, table.distance_unit, table.currency_symbol),
            },
        )


class TariffTableResponse(BaseModel):
    tariff_config_id: str
    tariff_config_version: str
    config_hash: str
    timezone: str
    distance_unit: str
    metering: str
    currency: str
    luxury_hourly_rate: Decimal
    windows: List[TariffWindowResponse]


class ActiveTariffResponse(BaseModel):
    at: datetime
    tariff: TariffWindowResponse
