"""
Small grammar for the durations and serving counts found in recipe text.

A duration is one or more ``<number> <unit>`` terms, summed::

    duration := term (term)*
    term     := number unit?
    number   := INT | DECIMAL | INT "-" INT
    unit     := one of UNIT_MINUTES keys

"1 hour 30 minutes" reads as 90 minutes, "10-15 min" as a 10..15 range, and a
bare "45" as 45 minutes. Anything the grammar does not cover is reported as
an ``UNPARSEABLE`` failure instead of being guessed.
"""

import re
from typing import Optional, Union

from recipe_capture.domain.errors import ErrorKind
from recipe_capture.domain.recipe import ServingSize, TimeRange
from recipe_capture.domain.result import Result

UNIT_MINUTES = {
    "minute": 1,
    "minutes": 1,
    "min": 1,
    "mins": 1,
    "m": 1,
    "hour": 60,
    "hours": 60,
    "hr": 60,
    "hrs": 60,
    "h": 60,
}

_NUMBER = r"\d+(?:\.\d+)?"
_TERM_PATTERN = re.compile(
    rf"(?P<low>{_NUMBER})(?:\s*(?:-|–|to)\s*(?P<high>{_NUMBER}))?\s*(?P<unit>[A-Za-z]+)?\.?"
)
_SERVINGS_PATTERN = re.compile(r"(\d+)(?:\s*(?:-|–|to)\s*\d+)?\s*([A-Za-z][A-Za-z ]*)?")


def _unparseable(value: object, what: str) -> Result:
    return Result.failure(f"Cannot parse {what} from {value!r}", ErrorKind.UNPARSEABLE)


def parse_duration(value: Union[str, int, float, None]) -> Result[TimeRange]:
    """Reads a duration in minutes from a number or a free-text expression."""
    if value is None or isinstance(value, bool):
        return _unparseable(value, "duration")
    if isinstance(value, (int, float)):
        if value < 0:
            return _unparseable(value, "duration")
        return TimeRange.create(round(value))

    text = str(value).strip().lower()
    if not text:
        return _unparseable(value, "duration")

    low_total = 0.0
    high_total = 0.0
    is_range = False
    position = 0
    matched_any = False
    for match in _TERM_PATTERN.finditer(text):
        # Only whitespace, commas and "and" may sit between terms.
        gap = text[position:match.start()]
        if re.sub(r"[\s,]|and", "", gap):
            return _unparseable(value, "duration")
        unit = match.group("unit")
        multiplier = 1 if unit is None else UNIT_MINUTES.get(unit)
        if multiplier is None:
            return _unparseable(value, "duration")

        low = float(match.group("low"))
        high = float(match.group("high")) if match.group("high") else low
        if match.group("high"):
            is_range = True
        low_total += low * multiplier
        high_total += high * multiplier
        position = match.end()
        matched_any = True

    if not matched_any or text[position:].strip():
        return _unparseable(value, "duration")

    if is_range:
        return TimeRange.create_range(round(low_total), round(high_total))
    return TimeRange.create(round(low_total))


def parse_servings(value: Union[str, int, None]) -> Result[ServingSize]:
    """Reads a serving count from a number or text such as "serves 4-6"."""
    if value is None or isinstance(value, bool):
        return _unparseable(value, "servings")
    if isinstance(value, (int, float)):
        return ServingSize.create(int(value))

    match = _SERVINGS_PATTERN.search(str(value))
    if not match:
        return _unparseable(value, "servings")

    description: Optional[str] = None
    trailing = (match.group(2) or "").strip().lower()
    if trailing and trailing not in ("serving", "servings", "serves"):
        description = trailing
    return ServingSize.create(int(match.group(1)), description)
