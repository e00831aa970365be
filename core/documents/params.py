"""Helpers for flat, loosely-typed request parameters.

Query parameters arrive as strings, and several logical fields are accepted
under more than one name. Aliases are ordered tuples; the first non-empty
value wins.
"""

import math
from typing import Any, Mapping, Optional, Sequence


OWNER_TYPE_ALIASES = ("ownerType", "ownerTypeShort")
SUB_TYPE_ID_ALIASES = ("spaTypeId", "entityTypeId", "smartTypeId")


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    return isinstance(value, str) and value.strip() == ""


def first_present(params: Mapping[str, Any], names: Sequence[str]) -> Optional[Any]:
    """Return the value of the first name that is present and non-empty."""
    for name in names:
        value = params.get(name)
        if not is_blank(value):
            return value
    return None


def parse_flag(value: Any, default: bool) -> bool:
    """Only a real True or the string "true" (any case) count as true."""
    if is_blank(value):
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() == "true"


def to_number(value: Any) -> Optional[float]:
    """Parse a finite number; None for blanks and anything unparsable."""
    if is_blank(value) or isinstance(value, bool):
        return None
    try:
        number = float(str(value).strip())
    except ValueError:
        return None
    if not math.isfinite(number):
        return None
    return number


def to_positive_int(value: Any) -> Optional[int]:
    """Parse a positive integral number ("7", 7, "7.0"); None otherwise."""
    number = to_number(value)
    if number is None or number <= 0 or not number.is_integer():
        return None
    return int(number)
