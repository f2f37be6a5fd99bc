"""Occurrence scheduling for recurring obligations"""

from datetime import date, timedelta
from typing import Iterator, Optional

from dateutil.relativedelta import relativedelta

from treasury_gateway.domain.exceptions import InvalidFrequencyError
from treasury_gateway.domain.models import Frequency
from treasury_gateway.utils.date_utils import clamp_to_month

WEEKLY_DAYS = 7
BIWEEKLY_DAYS = 14

MONTH_STEPS = {
    Frequency.MONTHLY: 1,
    Frequency.QUARTERLY: 3,
    Frequency.YEARLY: 12,
}
WEEKDAY_FREQUENCIES = {Frequency.WEEKLY, Frequency.BIWEEKLY}
DAY_OF_MONTH_REQUIRED = {Frequency.MONTHLY, Frequency.QUARTERLY}


def sunday_based_weekday(d: date) -> int:
    """Day of week with 0 = Sunday ... 6 = Saturday"""
    return (d.weekday() + 1) % 7


def validate_rule(
    frequency: Frequency | str,
    day_of_month: Optional[int] = None,
    day_of_week: Optional[int] = None,
) -> Frequency:
    """
    Check a frequency rule and return it as a Frequency.

    Raises:
        InvalidFrequencyError: unknown or NONE frequency, or a missing /
            out-of-range day selector for the frequency
    """
    try:
        freq = Frequency(frequency)
    except ValueError as e:
        raise InvalidFrequencyError(f"Unknown frequency: {frequency!r}") from e

    if freq == Frequency.NONE:
        raise InvalidFrequencyError("Frequency NONE does not recur")

    if freq in DAY_OF_MONTH_REQUIRED and day_of_month is None:
        raise InvalidFrequencyError(f"{freq.value} frequency requires day_of_month")
    if day_of_month is not None and not 1 <= day_of_month <= 31:
        raise InvalidFrequencyError(f"day_of_month must be 1-31, got {day_of_month}")

    if freq in WEEKDAY_FREQUENCIES and day_of_week is None:
        raise InvalidFrequencyError(f"{freq.value} frequency requires day_of_week")
    if day_of_week is not None and not 0 <= day_of_week <= 6:
        raise InvalidFrequencyError(f"day_of_week must be 0-6, got {day_of_week}")

    return freq


def next_occurrence(
    previous: date,
    frequency: Frequency | str,
    day_of_month: Optional[int] = None,
    day_of_week: Optional[int] = None,
) -> date:
    """Occurrence that follows ``previous`` under the rule"""
    freq = validate_rule(frequency, day_of_month, day_of_week)

    if freq == Frequency.DAILY:
        return previous + timedelta(days=1)

    if freq in WEEKDAY_FREQUENCIES:
        # Already on the weekday: a full period later
        diff = (day_of_week - sunday_based_weekday(previous)) % 7
        if diff == 0:
            diff = WEEKLY_DAYS if freq == Frequency.WEEKLY else BIWEEKLY_DAYS
        return previous + timedelta(days=diff)

    return previous + relativedelta(months=MONTH_STEPS[freq], day=day_of_month)


def first_occurrence(
    start_date: date,
    frequency: Frequency | str,
    day_of_month: Optional[int] = None,
    day_of_week: Optional[int] = None,
) -> date:
    """First occurrence on or after ``start_date``"""
    freq = validate_rule(frequency, day_of_month, day_of_week)

    if freq == Frequency.DAILY:
        return start_date

    if freq in WEEKDAY_FREQUENCIES:
        diff = (day_of_week - sunday_based_weekday(start_date)) % 7
        return start_date + timedelta(days=diff)

    day = day_of_month if day_of_month is not None else start_date.day
    candidate = clamp_to_month(start_date.year, start_date.month, day)
    if candidate < start_date:
        # Day already passed in the start month
        candidate = next_occurrence(candidate, freq, day_of_month, day_of_week)
    return candidate


def occurrence_dates(
    first: date,
    until: date,
    frequency: Frequency | str,
    day_of_month: Optional[int] = None,
    day_of_week: Optional[int] = None,
    end_date: Optional[date] = None,
    limit: int = 100,
) -> Iterator[date]:
    """
    Enumerate occurrences starting at ``first`` (itself an occurrence).

    Stops before ``until`` (exclusive), after ``end_date`` (inclusive) or once
    ``limit`` dates were produced.
    """
    current = first
    produced = 0
    while current < until and (end_date is None or current <= end_date) and produced < limit:
        yield current
        produced += 1
        current = next_occurrence(current, frequency, day_of_month, day_of_week)
