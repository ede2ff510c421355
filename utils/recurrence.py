"""Calendar math for recurring schedules.

Pure functions only: no I/O and no shared state. Dates are plain calendar
dates in whatever single reference timezone the caller uses.

Day-of-week values follow the 0=Sunday..6=Saturday convention, day-of-month
is 1..31 and month-of-year is 1..12.
"""
from datetime import date, timedelta

from utils.constants import FREQUENCIES, MAX_OCCURRENCE_STEPS
from utils.date_helpers import add_months, add_years, clamp_day_to_month, sunday_weekday
from utils.errors import InvalidRecurrenceRule


def validate_rule(
    frequency: str,
    interval: int,
    day_of_week: int | None = None,
    day_of_month: int | None = None,
    month_of_year: int | None = None,
) -> None:
    """Raise InvalidRecurrenceRule unless every field is in range."""
    if frequency not in FREQUENCIES:
        raise InvalidRecurrenceRule(
            f"Invalid frequency '{frequency}'. Must be one of: {', '.join(FREQUENCIES)}."
        )
    if isinstance(interval, bool) or not isinstance(interval, int) or interval < 1:
        raise InvalidRecurrenceRule(f"Interval must be a positive integer, got {interval!r}.")
    _check_range("day_of_week", day_of_week, 0, 6)
    _check_range("day_of_month", day_of_month, 1, 31)
    _check_range("month_of_year", month_of_year, 1, 12)


def _check_range(name: str, value, low: int, high: int) -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, int) or not low <= value <= high:
        raise InvalidRecurrenceRule(f"{name} must be between {low} and {high}, got {value!r}.")


def next_occurrence(
    current: date,
    frequency: str,
    interval: int = 1,
    day_of_week: int | None = None,
    day_of_month: int | None = None,
    month_of_year: int | None = None,
) -> date:
    """Return the occurrence that follows ``current``.

    daily    advance by ``interval`` days.
    weekly   advance by ``interval`` weeks, then move forward 0-6 days onto
             ``day_of_week`` when given.
    monthly  advance by ``interval`` months, then pin to ``day_of_month``
             clamped to the target month's length.
    yearly   advance by ``interval`` years, then pin to ``month_of_year`` /
             ``day_of_month`` (only when both are given), clamping the day.

    The result is always strictly after ``current``.
    """
    validate_rule(frequency, interval, day_of_week, day_of_month, month_of_year)

    if frequency == "daily":
        return current + timedelta(days=interval)

    if frequency == "weekly":
        nxt = current + timedelta(weeks=interval)
        if day_of_week is not None:
            nxt += timedelta(days=(day_of_week - sunday_weekday(nxt)) % 7)
        return nxt

    if frequency == "monthly":
        nxt = add_months(current, interval)
        if day_of_month is not None:
            nxt = nxt.replace(day=clamp_day_to_month(nxt.year, nxt.month, day_of_month))
        return nxt

    # yearly
    nxt = add_years(current, interval)
    if month_of_year is not None and day_of_month is not None:
        nxt = date(
            nxt.year,
            month_of_year,
            clamp_day_to_month(nxt.year, month_of_year, day_of_month),
        )
    return nxt


def first_on_or_after(
    start: date,
    target: date,
    frequency: str,
    interval: int = 1,
    day_of_week: int | None = None,
    day_of_month: int | None = None,
    month_of_year: int | None = None,
) -> date:
    """Walk the series anchored at ``start`` to its first date >= ``target``."""
    validate_rule(frequency, interval, day_of_week, day_of_month, month_of_year)
    current = start
    steps = 0
    while current < target:
        current = next_occurrence(
            current, frequency, interval, day_of_week, day_of_month, month_of_year
        )
        steps += 1
        if steps > MAX_OCCURRENCE_STEPS:
            raise InvalidRecurrenceRule(
                f"Rule does not reach {target.isoformat()} within {MAX_OCCURRENCE_STEPS} steps."
            )
    return current


def occurrences_between(
    first: date,
    until: date,
    frequency: str,
    interval: int = 1,
    day_of_week: int | None = None,
    day_of_month: int | None = None,
    month_of_year: int | None = None,
    end_date: date | None = None,
) -> list[date]:
    """Occurrences starting at ``first`` up to ``until`` (and ``end_date``), inclusive."""
    validate_rule(frequency, interval, day_of_week, day_of_month, month_of_year)
    limit = min(until, end_date) if end_date else until
    result = []
    current = first
    while current <= limit:
        result.append(current)
        if len(result) > MAX_OCCURRENCE_STEPS:
            break
        current = next_occurrence(
            current, frequency, interval, day_of_week, day_of_month, month_of_year
        )
    return result
