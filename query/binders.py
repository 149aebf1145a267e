"""
Range Binder

Turns raw query-string values into typed optional values.

Each bind_* function returns the parsed value when the raw string parses,
and otherwise returns `current` unchanged:
- empty or missing input never overwrites a default
- unparseable input is ignored here; callers that want to report it compare
  the result against the raw value (see query.filters.BaseFilter.from_query_params)

The binders never raise.
"""

import logging
import math
import re
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Tried in order, first match wins. Naive results are read as UTC.
TIME_LAYOUTS = (
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d",
)

_INT_RE = re.compile(r"[+-]?[0-9]+")

_TRUE_VALUES = {"1", "t", "true"}
_FALSE_VALUES = {"0", "f", "false"}


def parse_time(raw: str) -> datetime:
    """Parse a timestamp using TIME_LAYOUTS. Raises ValueError when none match."""
    value = raw.strip()
    for layout in TIME_LAYOUTS:
        try:
            parsed = datetime.strptime(value, layout)
        except ValueError:
            continue
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    raise ValueError(f"unsupported time format: {raw!r}")


def parse_bool(raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"invalid boolean: {raw!r}")


def parse_int(raw: str) -> int:
    """Plain base-10 digits with an optional sign; no underscores or spaces inside."""
    value = raw.strip()
    if not _INT_RE.fullmatch(value):
        raise ValueError(f"invalid integer: {raw!r}")
    return int(value, 10)


def parse_float(raw: str) -> float:
    value = float(raw.strip())
    if not math.isfinite(value):
        raise ValueError(f"non-finite number: {raw!r}")
    return value


def parse_decimal(raw: str) -> Decimal:
    try:
        value = Decimal(raw.strip())
    except InvalidOperation:
        raise ValueError(f"invalid decimal: {raw!r}")
    if not value.is_finite():
        raise ValueError(f"non-finite number: {raw!r}")
    return value


def parse_str(raw: str) -> str:
    value = raw.strip()
    if not value:
        raise ValueError("empty string")
    return value


def bind_optional(raw: Optional[str], parser: Callable[[str], T], current: Optional[T] = None) -> Optional[T]:
    """Return parser(raw) when it succeeds, otherwise `current`."""
    if raw is None or not str(raw).strip():
        return current
    try:
        return parser(str(raw))
    except (ValueError, TypeError, OverflowError):
        logger.debug(f"Ignoring unparseable value {raw!r} for {parser.__name__}")
        return current


def bind_optional_int(raw: Optional[str], current: Optional[int] = None) -> Optional[int]:
    return bind_optional(raw, parse_int, current)


def bind_optional_float(raw: Optional[str], current: Optional[float] = None) -> Optional[float]:
    return bind_optional(raw, parse_float, current)


def bind_optional_decimal(raw: Optional[str], current: Optional[Decimal] = None) -> Optional[Decimal]:
    return bind_optional(raw, parse_decimal, current)


def bind_optional_str(raw: Optional[str], current: Optional[str] = None) -> Optional[str]:
    return bind_optional(raw, parse_str, current)


def bind_optional_bool(raw: Optional[str], current: Optional[bool] = None) -> Optional[bool]:
    return bind_optional(raw, parse_bool, current)


def bind_optional_time(raw: Optional[str], current: Optional[datetime] = None) -> Optional[datetime]:
    return bind_optional(raw, parse_time, current)


BINDERS: dict[str, Callable[..., Any]] = {
    "int": bind_optional_int,
    "float": bind_optional_float,
    "decimal": bind_optional_decimal,
    "str": bind_optional_str,
    "bool": bind_optional_bool,
    "time": bind_optional_time,
}


def bind(kind: str, raw: Optional[str], current: Any = None) -> Any:
    """Dispatch on a declared field kind. Unknown kinds leave `current` as is."""
    binder = BINDERS.get(kind)
    if binder is None:
        return current
    return binder(raw, current)
