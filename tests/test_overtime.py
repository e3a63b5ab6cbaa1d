"""Tests for three-tier weekly overtime."""

from datetime import timedelta
from decimal import Decimal

import pytest

from timeclock_payroll.calculators.overtime import calculate_week, split_week_hours, week_pay
from timeclock_payroll.calculators.types import OvertimeConfig, TimeRange, WeekHours

from tests.conftest import utc

DEFAULT = OvertimeConfig()
WITH_DOUBLE_TIME = OvertimeConfig(double_time_threshold_hours=60)


class TestSplitWeekHours:
    """Tier boundaries."""

    def test_under_threshold_is_all_regular(self):
        assert split_week_hours(Decimal("32"), DEFAULT) == WeekHours(regular=Decimal("32"))

    def test_exactly_at_threshold(self):
        hours = split_week_hours(Decimal("40"), DEFAULT)
        assert hours == WeekHours(regular=Decimal("40"))

    def test_overtime(self):
        hours = split_week_hours(Decimal("45"), DEFAULT)

        assert hours.regular == Decimal("40")
        assert hours.overtime == Decimal("5")
        assert hours.double_time == Decimal("0")

    def test_double_time(self):
        hours = split_week_hours(Decimal("65"), WITH_DOUBLE_TIME)

        assert hours.regular == Decimal("40")
        assert hours.overtime == Decimal("20")
        assert hours.double_time == Decimal("5")

    def test_double_time_threshold_not_reached(self):
        hours = split_week_hours(Decimal("55"), WITH_DOUBLE_TIME)

        assert hours.overtime == Decimal("15")
        assert hours.double_time == Decimal("0")

    def test_without_threshold_everything_above_regular_is_overtime(self):
        hours = split_week_hours(Decimal("65"), DEFAULT)

        assert hours.overtime == Decimal("25")
        assert hours.double_time == Decimal("0")

    def test_zero_hours(self):
        assert split_week_hours(Decimal("0"), DEFAULT) == WeekHours()

    @pytest.mark.parametrize("total", ["0", "12.25", "39.99", "40", "40.01", "59.5", "60", "60.5", "100", "168"])
    def test_tiers_sum_to_total_and_stay_in_bounds(self, total):
        total_hours = Decimal(total)
        for config in (DEFAULT, WITH_DOUBLE_TIME):
            hours = split_week_hours(total_hours, config)

            assert abs(hours.total - total_hours) <= Decimal("1e-9")
            assert hours.regular <= config.regular_hours_per_week
            assert hours.overtime >= 0
            assert hours.double_time >= 0


class TestCalculateWeek:
    """Totals come from clamped entry durations."""

    def test_sums_entries(self):
        start = utc(2024, 3, 11, 8)
        ranges = [
            TimeRange(start=start + timedelta(days=d), end=start + timedelta(days=d, hours=9))
            for d in range(5)
        ]

        hours = calculate_week(ranges, DEFAULT)

        assert hours.regular == Decimal("40")
        assert hours.overtime == Decimal("5")

    def test_clamped_entry_counts_24_hours(self):
        start = utc(2024, 3, 11, 8)
        ranges = [TimeRange(start=start, end=start + timedelta(hours=30))]

        assert calculate_week(ranges, DEFAULT).total == Decimal("24")

    def test_open_entry_counts_zero(self):
        ranges = [TimeRange(start=utc(2024, 3, 11, 8))]
        assert calculate_week(ranges, DEFAULT) == WeekHours()


class TestWeekPay:
    """Pay stays unrounded until aggregation."""

    def test_overtime_pay(self):
        hours = WeekHours(regular=Decimal("40"), overtime=Decimal("5"))
        assert week_pay(hours, 2000, DEFAULT) == Decimal("95000")

    def test_double_time_pay(self):
        hours = WeekHours(regular=Decimal("40"), overtime=Decimal("20"), double_time=Decimal("5"))
        # 40*10 + 20*15 + 5*20 dollars
        assert week_pay(hours, 1000, WITH_DOUBLE_TIME) == Decimal("80000")

    def test_fractional_cents_are_kept(self):
        hours = WeekHours(regular=Decimal("1") / Decimal("3"))
        assert week_pay(hours, 1000, DEFAULT) != Decimal("333")


class TestOvertimeConfig:
    """Configuration validation and coercion."""

    def test_defaults(self):
        config = OvertimeConfig()

        assert config.regular_hours_per_week == Decimal("40")
        assert config.overtime_multiplier == Decimal("1.5")
        assert config.double_time_multiplier == Decimal("2.0")
        assert config.double_time_threshold_hours is None

    def test_coerces_numbers_to_decimal(self):
        config = OvertimeConfig(regular_hours_per_week=38, overtime_multiplier=1.5)

        assert config.regular_hours_per_week == Decimal("38")
        assert config.overtime_multiplier == Decimal("1.5")

    def test_threshold_below_regular_rejected(self):
        with pytest.raises(ValueError):
            OvertimeConfig(double_time_threshold_hours=30)

    def test_multiplier_below_one_rejected(self):
        with pytest.raises(ValueError):
            OvertimeConfig(overtime_multiplier=Decimal("0.5"))

    def test_negative_regular_hours_rejected(self):
        with pytest.raises(ValueError):
            OvertimeConfig(regular_hours_per_week=-1)
