"""Tests for answers built from the practice configuration."""

from __future__ import annotations

from datetime import date

import pytest

from src.services.business_config import GeneralInfo
from src.tools.practice_info import describe_opening_hours, describe_practice, weekday_name


class TestWeekdayName:
    def test_sunday_and_saturday(self):
        assert weekday_name(date(2026, 3, 1)) == "sunday"
        assert weekday_name(date(2026, 3, 7)) == "saturday"


class TestDescribeOpeningHours:
    HOURS = {"monday": "9:00 AM - 5:00 PM", "tuesday": "Closed", "sunday": None}

    def test_open_day(self):
        result = describe_opening_hours(self.HOURS, date(2026, 3, 2))
        assert result == (
            "We are open on 2026-03-02 (monday) from 9:00 AM - 5:00 PM. "
            "You can request any time within these hours."
        )

    @pytest.mark.parametrize(
        "day",
        [
            date(2026, 3, 3),  # tuesday: "Closed"
            date(2026, 3, 1),  # sunday: None
            date(2026, 3, 4),  # wednesday: absent
        ],
    )
    def test_closed_days(self, day):
        result = describe_opening_hours(self.HOURS, day)
        assert result.startswith(f"We are closed on {day.isoformat()}")
        assert result.endswith("Please check another day.")

    def test_blank_hours_count_as_closed(self):
        assert "closed" in describe_opening_hours({"monday": ""}, date(2026, 3, 2))


class TestDescribePractice:
    @pytest.fixture
    def info(self):
        return GeneralInfo(
            practice_name="Bright Smile Dental",
            phone="555-0100",
            no_show_fee=37.5,
            address="12 Main St",
            hours="Monday: 9-5",
            services="Cleanings",
        )

    @pytest.mark.parametrize(
        ("info_type", "expected"),
        [
            ("hours", "Monday: 9-5"),
            ("location", "12 Main St"),
            ("Address", "12 Main St"),
            ("services", "Cleanings"),
            ("contact", "555-0100"),
            ("phone", "555-0100"),
            ("noShowFee", "$37.50"),
            ("no_show_fee", "$37.50"),
        ],
    )
    def test_known_topics(self, info, info_type, expected):
        assert describe_practice(info, info_type) == expected

    def test_unknown_topic_returns_summary(self, info):
        summary = describe_practice(info, "insurance")
        assert summary.startswith("Practice: Bright Smile Dental.")
        assert "No-show fee: $37.50." in summary
