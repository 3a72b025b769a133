import logging
from datetime import datetime
from typing import Optional

import newrelic.agent
from fastapi import APIRouter, Depends

from cabfare.schemas.schemas import (
    ActiveTariffResponse,
    FareEstimateRequest,
    FareEstimateResponse,
    TariffTableResponse,
    TariffWindowResponse,
)
from cabfare.services.pricing import FareCalculator
from cabfare.services.tariff_loader import get_tariff_table
from cabfare.services.tariffs import TariffTable

router = APIRouter(prefix="/v1/fares", tags=["Fares"])
logger = logging.getLogger(__name__)


def get_fare_calculator(table: TariffTable = Depends(get_tariff_table)) -> FareCalculator:
    return FareCalculator(table)


@router.post("/estimate", response_model=FareEstimateResponse)
async def estimate_fare(
    payload: FareEstimateRequest,
    calculator: FareCalculator = Depends(get_fare_calculator),
):
    """
    Price a routed trip. Distance and duration come from the caller's
    routing provider; an omitted ride time means "now" in operational time.
    """
    table = calculator.table
    ride_at = payload.ride_datetime or datetime.now(table.timezone)

    result = calculator.calculate(
        payload.distance_meters,
        payload.duration_seconds,
        payload.passenger_count,
        payload.is_return_leg,
        ride_at,
        payload.vehicle_type,
        hailed=payload.hailed,
        payment_method=payload.payment_method,
    )

    newrelic.agent.add_custom_attribute("vehicle_type", result.vehicle_type.value)
    newrelic.agent.add_custom_attribute("tariff", result.tariff.name if result.tariff else "hourly")
    newrelic.agent.add_custom_attribute("fare", float(result.fare))
    logger.info(
        f"Estimate {result.vehicle_type.value} {payload.distance_meters:.0f}m/"
        f"{payload.duration_seconds:.0f}s -> {result.currency} {result.fare}"
    )
    return FareEstimateResponse.from_result(result, table)


@router.get("/tariffs", response_model=TariffTableResponse)
async def list_tariffs(table: TariffTable = Depends(get_tariff_table)):
    return TariffTableResponse(
        tariff_config_id=table.tariff_config_id,
        tariff_config_version=table.tariff_config_version,
        config_hash=table.config_hash,
        timezone=str(table.timezone),
        distance_unit=table.distance_unit,
        metering=table.metering,
        currency=table.currency,
        luxury_hourly_rate=table.luxury_hourly_rate,
        windows=[TariffWindowResponse.from_window(window, table) for window in table.windows],
    )


@router.get("/tariffs/active", response_model=ActiveTariffResponse)
async def active_tariff(at: Optional[datetime] = None, table: TariffTable = Depends(get_tariff_table)):
    """Tariff window live at `at` (defaults to now)."""
    moment = table.localize(at) if at else datetime.now(table.timezone)
    window = table.find_tariff(moment)
    return ActiveTariffResponse(at=moment, tariff=TariffWindowResponse.from_window(window, table))
