"""Calendar helpers shared by the budget engine and the recurring scheduler."""

from datetime import date, timedelta

from dateutil.relativedelta import relativedelta

from ..core.errors import ValidationError


FREQUENCIES = ("daily", "weekly", "biweekly", "monthly", "yearly")

_DAY_STEPS = {
    "daily": relativedelta(days=+1),
    "weekly": relativedelta(weeks=+1),
    "biweekly": relativedelta(weeks=+2),
}

_CALENDAR_STEPS = {
    "monthly": relativedelta(months=+1),
    "yearly": relativedelta(years=+1),
}

# Multipliers used to normalise a recurring amount to a monthly estimate
_MONTHLY_FACTOR = {
    "daily": 30,
    "weekly": 4,
    "biweekly": 2,
    "monthly": 1,
    "yearly": 1 / 12,
}


def advance(current: date, frequency: str) -> date:
    """Return the occurrence after ``current`` for ``frequency``.

    Monthly and yearly steps keep the day of month and let it overflow into
    the following month when the target month is shorter, so 2025-01-31
    becomes 2025-03-03 and 2024-02-29 becomes 2025-03-01.
    """
    if frequency in _DAY_STEPS:
        return current + _DAY_STEPS[frequency]
    if frequency in _CALENDAR_STEPS:
        first_of_target = current.replace(day=1) + _CALENDAR_STEPS[frequency]
        return first_of_target + timedelta(days=current.day - 1)
    raise ValidationError(
        f"Invalid frequency: {frequency!r}",
        details=[f"Frequency must be one of: {', '.join(FREQUENCIES)}"],
    )


def period_contains(start: date, end: date, day: date) -> bool:
    return start <= day <= end


def monthly_cost(amount: float, frequency: str) -> float:
    return amount * _MONTHLY_FACTOR.get(frequency, 0)


def round2(value: float) -> float:
    return round(float(value), 2)
