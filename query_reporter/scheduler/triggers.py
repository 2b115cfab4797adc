"""Schedule expression parsing.

Expressions follow standard cron: five fields (minute hour day month
weekday) with weekdays counted from 0=Sunday (7 is also Sunday), plus the
descriptors ``@yearly``, ``@annually``, ``@monthly``, ``@weekly``,
``@daily``, ``@midnight``, ``@hourly`` and ``@every <duration>``.
"""

import re
from typing import Set

from apscheduler.triggers.base import BaseTrigger
from apscheduler.triggers.combining import OrTrigger
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

CRON_DESCRIPTORS = {
    "@yearly": "0 0 1 1 *",
    "@annually": "0 0 1 1 *",
    "@monthly": "0 0 1 * *",
    "@weekly": "0 0 * * 0",
    "@daily": "0 0 * * *",
    "@midnight": "0 0 * * *",
    "@hourly": "0 * * * *",
}

WEEKDAYS = ("sun", "mon", "tue", "wed", "thu", "fri", "sat")

DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1,
    "m": 60,
    "h": 3600,
}
_DURATION_PART = r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)"


def parse_duration(text: str) -> int:
    """Parse a duration such as ``90s`` or ``1h30m`` into whole seconds.

    Sub-second remainders are dropped and the result is at least 1.
    """
    if not text or not re.fullmatch(f"(?:{_DURATION_PART})+", text):
        raise ValueError(f"Invalid duration: {text!r}")

    total = sum(
        float(amount) * DURATION_UNITS[unit]
        for amount, unit in re.findall(_DURATION_PART, text)
    )
    return max(1, int(total))


def _weekday_number(token: str) -> int:
    name = token.lower()
    if name in WEEKDAYS:
        return WEEKDAYS.index(name)
    if not token.isdigit() or int(token) > 7:
        raise ValueError(f"Invalid day of week: {token!r}")
    return int(token)


def _cron_weekdays(field: str) -> Set[int]:
    """Expand a cron day-of-week field into day numbers, 0=Sunday."""
    days: Set[int] = set()
    for item in field.split(","):
        span, has_step, step_text = item.partition("/")
        if has_step and not step_text.isdigit():
            raise ValueError(f"Invalid step in day of week: {item!r}")
        step = int(step_text) if has_step else 1

        if span in ("*", "?"):
            low, high = 0, 6
        elif "-" in span:
            first, last = span.split("-", 1)
            low, high = _weekday_number(first), _weekday_number(last)
        else:
            low = _weekday_number(span)
            high = 6 if has_step else low

        if step < 1 or low > high:
            raise ValueError(f"Invalid day of week range: {item!r}")
        days.update(day % 7 for day in range(low, high + 1, step))
    return days


def build_trigger(expression: str, timezone: str = "UTC") -> BaseTrigger:
    """Build an APScheduler trigger from a cron expression or descriptor.

    Weekday numbers are rewritten to names because APScheduler counts them
    from 0=Monday. When both day of month and day of week are restricted the
    job fires on days matching either one, as cron does.

    Raises:
        ValueError: If the expression cannot be parsed
    """
    if not isinstance(expression, str):
        raise ValueError(f"Schedule must be a string, got {type(expression).__name__}")

    spec = expression.strip()
    if spec.startswith("@"):
        descriptor, _, argument = spec.partition(" ")
        descriptor = descriptor.lower()
        if descriptor == "@every":
            return IntervalTrigger(seconds=parse_duration(argument.strip()), timezone=timezone)
        if descriptor not in CRON_DESCRIPTORS:
            raise ValueError(f"Unrecognized descriptor: {descriptor}")
        spec = CRON_DESCRIPTORS[descriptor]

    values = spec.split()
    if len(values) != 5:
        raise ValueError(f"Wrong number of fields; got {len(values)}, expected 5")

    minute, hour, day, month, day_of_week = values
    weekdays = _cron_weekdays(day_of_week)
    weekday_names = ",".join(WEEKDAYS[d] for d in sorted(weekdays)) if len(weekdays) < 7 else "*"

    if day in ("*", "?") or day_of_week in ("*", "?"):
        return CronTrigger(
            minute=minute,
            hour=hour,
            day="*" if day == "?" else day,
            month=month,
            day_of_week=weekday_names,
            timezone=timezone,
        )

    return OrTrigger([
        CronTrigger(minute=minute, hour=hour, day=day, month=month, timezone=timezone),
        CronTrigger(minute=minute, hour=hour, month=month, day_of_week=weekday_names, timezone=timezone),
    ])
