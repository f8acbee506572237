"""
Calendar Arithmetic for Intervals

DESIGN DECISION: Month and year steps clamp to the last valid day of the
target month instead of overflowing. Callers that step repeatedly must
always step from the original anchor (anchor + k * interval), never from
the previous clamped result, otherwise Jan 31 -> Feb 28 -> Mar 28 drifts.
"""

import calendar
from datetime import date, timedelta

from budget_engine.models.recurrence import IntervalUnit, TimeInterval


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def shift_months(value: date, months: int) -> date:
    """Move by whole months, clamping the day to the target month's length."""
    index = value.year * 12 + (value.month - 1) + months
    year, month_index = divmod(index, 12)
    month = month_index + 1
    day = min(value.day, days_in_month(year, month))
    return date(year, month, day)


def add_interval(anchor: date, interval: TimeInterval, times: int = 1) -> date:
    """
    Return anchor advanced by `times` intervals.
    
    Raises OverflowError or ValueError past the supported date range.
    """
    steps = interval.every * times
    if interval.unit == IntervalUnit.DAY:
        return anchor + timedelta(days=steps)
    if interval.unit == IntervalUnit.WEEK:
        return anchor + timedelta(weeks=steps)
    if interval.unit == IntervalUnit.MONTH:
        return shift_months(anchor, steps)
    return shift_months(anchor, steps * 12)


def normalize_anchor(value: date, interval: TimeInterval) -> date:
    """
    Align a budget anchor to the natural start of its unit.
    
    Weeks start on Monday, months on the 1st, years on January 1st.
    """
    if interval.unit == IntervalUnit.WEEK:
        return value - timedelta(days=value.weekday())
    if interval.unit == IntervalUnit.MONTH:
        return value.replace(day=1)
    if interval.unit == IntervalUnit.YEAR:
        return value.replace(month=1, day=1)
    return value


def cycle_index(anchor: date, reference: date, interval: TimeInterval) -> int:
    """Index k of the cycle [anchor + k, anchor + k + 1) holding reference."""
    if interval.unit in (IntervalUnit.DAY, IntervalUnit.WEEK):
        span = interval.every * (7 if interval.unit == IntervalUnit.WEEK else 1)
        return (reference - anchor).days // span
    
    if interval.unit == IntervalUnit.MONTH:
        months = (reference.year - anchor.year) * 12 + (reference.month - anchor.month)
        index = months // interval.every
    else:
        index = (reference.year - anchor.year) // interval.every
    
    # Clamped anchors can land a cycle late or early by one step
    while add_interval(anchor, interval, index) > reference:
        index -= 1
    while add_interval(anchor, interval, index + 1) <= reference:
        index += 1
    return index


def cycle_bounds(anchor: date, interval: TimeInterval, index: int) -> tuple[date, date]:
    """Half-open [start, end) of cycle number `index`."""
    return add_interval(anchor, interval, index), add_interval(anchor, interval, index + 1)
