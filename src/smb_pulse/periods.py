# SMB Pulse - Finance tracking dashboard insights for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Period helpers for SMB Pulse.

This module defines a Period value object and helpers to derive the
windows used by the insight rules (trailing windows, calendar year) and
the time buckets used to build stable insight identifiers.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional


@dataclass(frozen=True)
class Period:
    """Represents a reporting period with a human-readable label."""

    start: date
    end: date
    label: str

    def contains(self, day: Optional[date]) -> bool:
        """True if `day` falls within [start, end]. Non-dates never match."""
        if not isinstance(day, date):
            return False
        return self.start <= day <= self.end


def _today() -> date:
    """Return today's date as a date object (isolated for easier testing)."""
    return datetime.today().date()


def resolve_today(today: Optional[date] = None) -> date:
    """Return `today` if provided, otherwise the current date."""
    return today if today is not None else _today()


def trailing_window(today: date, days: int, offset_days: int = 0) -> Period:
    """
    Window of `days` days ending `offset_days` before `today`.

    The window is (end - days, end], expressed with inclusive bounds:
    start = end - days + 1. With offset_days=0 it ends today; with
    offset_days=days it is the window immediately preceding that one.
    """
    end = today - timedelta(days=offset_days)
    start = end - timedelta(days=days - 1)
    if offset_days:
        label = f"Previous {days} days"
    else:
        label = f"Last {days} days"
    return Period(start=start, end=end, label=label)


def calendar_year(today: date) -> Period:
    """
    Whole calendar year containing `today`.

    Tax rules match records on their calendar year only, so entries dated
    later in the current year are included as well.
    """
    return Period(
        start=date(today.year, 1, 1),
        end=date(today.year, 12, 31),
        label=f"Calendar year {today.year}",
    )


def month_bucket(today: date) -> str:
    """Month bucket used in insight ids, e.g. '2025-03'."""
    return f"{today.year:04d}-{today.month:02d}"
