import pytest
from datetime import time
from decimal import Decimal
from zoneinfo import ZoneInfo

from cabfare.core.config import get_settings
from cabfare.services.tariff_loader import load_tariff_config
from cabfare.services.tariffs import (
    MultiseaterPolicy,
    PassengerPolicy,
    TariffRates,
    TariffTable,
    TariffWindow,
)

JERSEY = ZoneInfo("Europe/Jersey")


def window(name, days, start, end, base="4.00", per_unit="2.00", per_minute="1.00",
           flag=None, period=None):
    return TariffWindow(
        name=name,
        days_of_week=frozenset(days),
        start_time=time.fromisoformat(start),
        end_time=time.fromisoformat(end),
        base_fare=Decimal(base),
        per_distance_unit=Decimal(per_unit),
        per_duration_unit=Decimal(per_minute),
        flag_rates=TariffRates(*(Decimal(v) for v in flag)) if flag else None,
        period=period,
    )


def _flat_table(**overrides):
    options = dict(
        windows=(window("Flat", range(7), "00:00", "00:00"),),
        timezone=JERSEY,
        distance_unit="km",
        luxury_hourly_rate=Decimal("80.00"),
    )
    options.update(overrides)
    return TariffTable(**options)


def _day_night_table(**overrides):
    options = dict(
        windows=(
            window("Day", range(7), "06:00", "22:00", base="3.00"),
            window("Night", range(7), "22:00", "06:00", base="5.00"),
        ),
        timezone=JERSEY,
        distance_unit="km",
        multiseater=MultiseaterPolicy(),
        passengers=PassengerPolicy(),
    )
    options.update(overrides)
    return TariffTable(**options)


@pytest.fixture
def make_window():
    return window


@pytest.fixture
def flat_table():
    """Factory for a single all-week window: 4.00 + 2.00/km + 1.00/min."""
    return _flat_table


@pytest.fixture
def day_night_table():
    """Factory for a 06:00-22:00 day / 22:00-06:00 night table."""
    return _day_night_table


@pytest.fixture(scope="session")
def jersey_table():
    return load_tariff_config(get_settings().tariff_config_path)
