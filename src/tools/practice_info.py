"""Answers built purely from the business configuration (no PMS calls)."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date

from src.prompts import format_fee
from src.services.business_config import GeneralInfo

# Index with ``date.isoweekday() % 7`` (0 = Sunday).
WEEKDAYS = ("sunday", "monday", "tuesday", "wednesday", "thursday", "friday", "saturday")


def weekday_name(day: date) -> str:
    return WEEKDAYS[day.isoweekday() % 7]


def describe_opening_hours(raw_hours: Mapping[str, str | None], day: date) -> str:
    """Tell the caller whether the practice is open on *day* and when.

    A weekday missing from the mapping counts as closed, as does any
    spelling of "Closed".
    """
    day_name = weekday_name(day)
    hours = raw_hours.get(day_name)
    if not hours or hours.strip().lower() == "closed":
        return f"We are closed on {day.isoformat()} ({day_name}). Please check another day."
    return (
        f"We are open on {day.isoformat()} ({day_name}) from {hours}. "
        "You can request any time within these hours."
    )


def describe_practice(info: GeneralInfo, info_type: str) -> str:
    """Look up one practice fact; unknown topics get the full summary."""
    facts = {
        "hours": info.hours,
        "location": info.address,
        "address": info.address,
        "services": info.services,
        "contact": info.phone,
        "phone": info.phone,
        "noshowfee": format_fee(info.no_show_fee),
    }
    key = info_type.strip().lower().replace("-", "").replace("_", "").replace(" ", "")
    if key in facts:
        return facts[key]
    return (
        f"Practice: {info.practice_name}. Address: {info.address}. Phone: {info.phone}. "
        f"Hours: {info.hours}. Services: {info.services}. "
        f"No-show fee: {format_fee(info.no_show_fee)}."
    )
