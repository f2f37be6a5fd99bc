"""Date manipulation utilities

Month arithmetic goes through ``relativedelta``: the month shift is applied
first and the day second, so a day that does not exist in the target month
(31 in April, 29 in a non-leap February) is clamped to the month's last day
instead of rolling into the following month.
"""

from datetime import date

from dateutil.relativedelta import relativedelta


def last_day_of_month(year: int, month: int) -> int:
    """Number of days in the given month"""
    return (date(year, month, 1) + relativedelta(day=31)).day


def add_months(from_date: date, months: int, day: int | None = None) -> date:
    """
    Move ``months`` calendar months from ``from_date``.

    The result keeps ``day`` (or the original day of month when ``day`` is
    None), clamped to the length of the target month.
    """
    return from_date + relativedelta(months=months, day=day)


def clamp_to_month(year: int, month: int, day: int) -> date:
    """Build a date in the given month, clamping ``day`` to its last day"""
    return date(year, month, 1) + relativedelta(day=day)


def installment_date(first_pending_date: date, installment_number: int, payment_day: int) -> date:
    """
    Due date of installment N of a monthly schedule.

    Installment 1 falls in the month of ``first_pending_date``, installment 2
    in the following month, and so on. The day is ``payment_day`` clamped to
    the target month's length.

    Example:
        installment_date(date(2025, 1, 31), 2, 31) -> 2025-02-28
    """
    return first_pending_date + relativedelta(months=installment_number - 1, day=payment_day)
