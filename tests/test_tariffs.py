import pytest
from datetime import datetime, time, timedelta, timezone
from decimal import Decimal

from cabfare.core.errors import ConfigurationError
from cabfare.services.tariffs import SeasonalPeriod, format_tariff_info, time_in_range

DAYTIME = "Tariff 1 - Daytime"
EVENINGS = "Tariff 2 - Evenings"
SUNDAYS = "Tariff 2 - Sundays"
CHRISTMAS = "Tariff 3 - Christmas"
NEW_YEAR = "Tariff 3 - New Year"


class TestTimeInRange:
    def test_plain_window(self):
        assert time_in_range(time(12, 0), time(7, 0), time(23, 0))
        assert not time_in_range(time(23, 0), time(7, 0), time(23, 0))

    def test_start_inclusive_end_exclusive(self):
        assert time_in_range(time(7, 0), time(7, 0), time(23, 0))
        assert not time_in_range(time(6, 59, 59), time(7, 0), time(23, 0))

    def test_wraparound(self):
        start, end = time(23, 0), time(6, 0)
        assert time_in_range(time(23, 0), start, end)
        assert time_in_range(time(23, 59), start, end)
        assert time_in_range(time(0, 0), start, end)
        assert time_in_range(time(0, 1), start, end)
        assert time_in_range(time(5, 59), start, end)
        assert not time_in_range(time(6, 0), start, end)
        assert not time_in_range(time(22, 59), start, end)

    def test_equal_bounds_mean_all_day(self):
        assert time_in_range(time(0, 0), time(0, 0), time(0, 0))
        assert time_in_range(time(13, 37), time(0, 0), time(0, 0))


class TestSeasonalPeriod:
    def test_within_year(self):
        period = SeasonalPeriod(12, 24, time(23, 0), 12, 26, time(7, 0))
        assert not period.contains(datetime(2025, 12, 24, 22, 59))
        assert period.contains(datetime(2025, 12, 24, 23, 0))
        assert period.contains(datetime(2025, 12, 25, 12, 0))
        assert period.contains(datetime(2025, 12, 26, 6, 59))
        assert period.contains(datetime(2025, 12, 26, 7, 0))
        assert not period.contains(datetime(2025, 12, 26, 7, 0, 1))

    def test_crosses_new_year(self):
        period = SeasonalPeriod(12, 31, time(19, 0), 1, 2, time(7, 0))
        assert not period.contains(datetime(2025, 12, 31, 18, 59))
        assert period.contains(datetime(2025, 12, 31, 23, 59))
        assert period.contains(datetime(2026, 1, 1, 0, 0))
        assert period.contains(datetime(2026, 1, 2, 6, 59))
        assert period.contains(datetime(2026, 1, 2, 7, 0))
        assert not period.contains(datetime(2026, 1, 2, 7, 1))
        assert not period.contains(datetime(2026, 6, 1, 12, 0))


class TestFindTariff:
    @pytest.mark.parametrize("moment, expected", [
        (datetime(2025, 3, 3, 14, 0), DAYTIME),       # Monday afternoon
        (datetime(2025, 3, 4, 6, 59), EVENINGS),
        (datetime(2025, 3, 4, 7, 0), DAYTIME),
        (datetime(2025, 3, 4, 22, 59), DAYTIME),
        (datetime(2025, 3, 4, 23, 0), EVENINGS),
        (datetime(2025, 3, 4, 23, 59), EVENINGS),
        (datetime(2025, 3, 5, 0, 0), EVENINGS),
        (datetime(2025, 3, 5, 0, 1), EVENINGS),
        (datetime(2025, 3, 8, 23, 30), EVENINGS),     # Saturday night
        (datetime(2025, 3, 8, 23, 59), EVENINGS),
        (datetime(2025, 3, 9, 0, 0), SUNDAYS),
        (datetime(2025, 3, 9, 14, 0), SUNDAYS),
        (datetime(2025, 3, 9, 23, 59), SUNDAYS),
        (datetime(2025, 3, 10, 0, 0), EVENINGS),      # Monday small hours
        (datetime(2025, 3, 10, 7, 0), DAYTIME),
    ])
    def test_weekly_windows(self, jersey_table, moment, expected):
        assert jersey_table.find_tariff(moment).name == expected

    @pytest.mark.parametrize("moment, expected", [
        (datetime(2025, 12, 24, 22, 59), DAYTIME),
        (datetime(2025, 12, 24, 23, 0), CHRISTMAS),
        (datetime(2025, 12, 25, 12, 0), CHRISTMAS),
        (datetime(2025, 12, 26, 6, 59), CHRISTMAS),
        (datetime(2025, 12, 26, 7, 0), CHRISTMAS),      # end instant still holiday
        (datetime(2025, 12, 26, 7, 1), DAYTIME),
        (datetime(2025, 12, 31, 18, 59), DAYTIME),
        (datetime(2025, 12, 31, 19, 0), NEW_YEAR),
        (datetime(2026, 1, 1, 12, 0), NEW_YEAR),
        (datetime(2026, 1, 2, 6, 59), NEW_YEAR),
        (datetime(2026, 1, 2, 7, 0), NEW_YEAR),
        (datetime(2026, 1, 2, 7, 1), DAYTIME),
    ])
    def test_holiday_windows_take_priority(self, jersey_table, moment, expected):
        assert jersey_table.find_tariff(moment).name == expected

    def test_holiday_overlap_is_resolved_by_order(self, jersey_table):
        names = [w.name for w in jersey_table.matching(datetime(2025, 12, 25, 12, 0))]
        assert names == [CHRISTMAS, DAYTIME]

    def test_aware_datetimes_use_operational_time(self, jersey_table):
        # Jersey is on BST (UTC+1) in July
        assert jersey_table.find_tariff(datetime(2025, 7, 7, 21, 30, tzinfo=timezone.utc)).name == DAYTIME
        assert jersey_table.find_tariff(datetime(2025, 7, 7, 22, 30, tzinfo=timezone.utc)).name == EVENINGS

    def test_winter_utc_matches_local(self, jersey_table):
        assert jersey_table.find_tariff(datetime(2025, 1, 13, 22, 59, tzinfo=timezone.utc)).name == DAYTIME
        assert jersey_table.find_tariff(datetime(2025, 1, 13, 23, 0, tzinfo=timezone.utc)).name == EVENINGS

    def test_every_minute_of_a_week_has_exactly_one_window(self, jersey_table):
        start = datetime(2025, 3, 3)
        for minute in range(7 * 24 * 60):
            moment = start + timedelta(minutes=minute)
            assert len(jersey_table.matching(moment)) == 1, moment

    def test_lookup_miss_raises(self, make_window, day_night_table):
        table = day_night_table(windows=(make_window("Weekdays", range(5), "00:00", "00:00"),))
        assert table.find_tariff(datetime(2025, 3, 7, 12, 0)).name == "Weekdays"
        with pytest.raises(ConfigurationError, match="Sun"):
            table.find_tariff(datetime(2025, 3, 9, 12, 0))


class TestCoverage:
    def test_default_table_is_a_partition(self, jersey_table):
        jersey_table.check_coverage()

    def test_gap_is_reported(self, make_window, day_night_table):
        table = day_night_table(windows=(
            make_window("Day", range(7), "06:00", "22:00"),
            make_window("Late", range(7), "22:00", "05:00"),
        ))
        with pytest.raises(ConfigurationError, match="No weekly tariff window covers Mon 05:00"):
            table.check_coverage()

    def test_overlap_is_reported(self, make_window, day_night_table):
        table = day_night_table(windows=(
            make_window("Day", range(7), "06:00", "22:00"),
            make_window("Night", range(7), "21:00", "06:00"),
        ))
        with pytest.raises(ConfigurationError, match="overlap at Mon 21:00: Day, Night"):
            table.check_coverage()

    def test_seconds_in_bounds_rejected(self, make_window, day_night_table):
        table = day_night_table(windows=(
            make_window("Day", range(7), "06:00:30", "22:00"),
            make_window("Night", range(7), "22:00", "06:00:30"),
        ))
        with pytest.raises(ConfigurationError, match="minute aligned"):
            table.check_coverage()

    def test_seasonal_windows_not_counted(self, make_window, day_night_table):
        period = SeasonalPeriod(12, 24, time(0, 0), 12, 27, time(0, 0))
        table = day_night_table(windows=(
            make_window("Holiday", range(7), "00:00", "00:00", period=period),
            make_window("Day", range(7), "06:00", "22:00"),
            make_window("Night", range(7), "22:00", "06:00"),
        ))
        table.check_coverage()

    def test_unknown_metering_rejected(self, day_night_table):
        with pytest.raises(ConfigurationError, match="metering"):
            day_night_table(metering="surge")

    def test_empty_table_rejected(self, day_night_table):
        with pytest.raises(ConfigurationError):
            day_night_table(windows=())


class TestWindowRates:
    def test_flag_rates_used_when_hailed(self, jersey_table):
        daytime = jersey_table.find_tariff(datetime(2025, 3, 3, 14, 0))
        assert daytime.rates().base_fare == Decimal("4.94")
        assert daytime.rates(hailed=True).base_fare == Decimal("3.95")

    def test_falls_back_to_prebook_without_flag_rates(self, make_window):
        w = make_window("Only prebook", range(7), "00:00", "00:00")
        assert w.rates(hailed=True) == w.prebook_rates

    def test_wraps_midnight_flag(self, jersey_table):
        names = {w.name: w.wraps_midnight for w in jersey_table.windows}
        assert names[EVENINGS] is True
        assert names[DAYTIME] is False


class TestFormatTariffInfo:
    def test_prebook(self, jersey_table):
        daytime = jersey_table.find_tariff(datetime(2025, 3, 3, 14, 0))
        assert format_tariff_info(daytime) == (
            "Tariff 1 - Daytime - £4.94 initial + £3.80 per mile + £0.45 per minute"
        )

    def test_flag(self, jersey_table):
        evenings = jersey_table.find_tariff(datetime(2025, 3, 8, 23, 30))
        assert format_tariff_info(evenings, hailed=True) == (
            "Tariff 2 - Evenings - £4.05 initial + £4.20 per mile + £0.56 per minute"
        )
