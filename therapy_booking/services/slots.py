"""
Slot derivation - turns availability ranges into bookable time labels.

A therapist's availability for a day is stored as free text such as
"9:00 - 17:00" (24-hour clock). Each whole hour in the half-open range
becomes one slot, labelled on the 12-hour clock ("9:00 AM" ... "4:00 PM").
"""

import re
from typing import List

from therapy_booking.exceptions import MalformedAvailability

RANGE_SEPARATOR = "-"

_TIME_PATTERN = re.compile(r"^(?P<hour>[0-9]{1,2}):(?P<minute>[0-9]{2})$")


def format_slot(hour: int, minute: int = 0) -> str:
    """
    Format a 24-hour time as a 12-hour slot label.

    Hours 0 and 12 both render as 12 (midnight is AM, noon is PM).

    Args:
        hour: Hour of day, 0-23
        minute: Minute of hour

    Returns:
        Label such as "9:00 AM" or "12:00 PM"
    """
    period = "PM" if hour % 24 >= 12 else "AM"
    display_hour = hour % 12 or 12
    return f"{display_hour}:{minute:02d} {period}"


def _parse_time(part: str, range_str: str) -> int:
    """Parse "H:MM" and return the hour."""
    match = _TIME_PATTERN.match(part.strip())
    if not match:
        raise MalformedAvailability(range_str, f"invalid time {part.strip()!r}")

    hour = int(match.group("hour"))
    minute = int(match.group("minute"))
    if hour > 24:
        raise MalformedAvailability(range_str, f"hour {hour} out of range")
    if minute > 59:
        raise MalformedAvailability(range_str, f"minute {minute} out of range")
    return hour


def derive_slots(range_str: str) -> List[str]:
    """
    Derive hourly slot labels from an availability range.

    Args:
        range_str: Range of the form "H:MM - H:MM"

    Returns:
        Labels for every whole hour h with start <= h < end, in order.
        Empty when the range is empty or inverted.

    Raises:
        MalformedAvailability: If the range cannot be parsed
    """
    if not isinstance(range_str, str):
        raise MalformedAvailability(range_str, "not a string")

    parts = range_str.split(RANGE_SEPARATOR)
    if len(parts) != 2:
        raise MalformedAvailability(range_str, "missing ' - ' separator")

    start_hour = _parse_time(parts[0], range_str)
    end_hour = _parse_time(parts[1], range_str)

    return [format_slot(hour) for hour in range(start_hour, end_hour)]
