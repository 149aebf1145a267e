"""
Input Validators

Small checks shared by every FilterSpec. Each one appends structured errors
to a list instead of raising, so a single response can report every bad
field at once.
"""

from datetime import datetime, timezone
from typing import Any, Iterable, Optional


def _error(code: str, path: str, message: str, **extra) -> dict:
    """Build a structured validation error."""
    err = {"code": code, "path": path, "message": message}
    err.update(extra)
    return err


def check_bounds(errors: list, path: str, value: Optional[int], low: int, high: int):
    if value is None:
        return
    if value < low or value > high:
        errors.append(_error(
            "OUT_OF_RANGE", path,
            f"'{path}' must be between {low} and {high}",
            min=low, max=high,
        ))


def check_min_length(errors: list, path: str, value: Optional[str], length: int):
    if value is not None and len(value) < length:
        errors.append(_error(
            "TOO_SHORT", path,
            f"'{path}' must be at least {length} characters",
            minLength=length,
        ))


def check_exact_length(errors: list, path: str, value: Optional[str], length: int):
    if value is not None and len(value) != length:
        errors.append(_error(
            "INVALID_LENGTH", path,
            f"'{path}' must be exactly {length} characters",
            length=length,
        ))


def check_positive(errors: list, path: str, value: Optional[int]):
    if value is not None and value <= 0:
        errors.append(_error("NOT_POSITIVE", path, f"'{path}' must be greater than zero"))


def check_non_negative(errors: list, path: str, value: Optional[float]):
    if value is not None and value < 0:
        errors.append(_error("NEGATIVE", path, f"'{path}' must not be negative"))


def check_choice(errors: list, path: str, value: Optional[str], choices: Iterable[str]):
    choices = list(choices)
    if value is not None and value not in choices:
        errors.append(_error(
            "INVALID_CHOICE", path,
            f"Invalid value '{value}' for '{path}'",
            validValues=choices,
        ))


def check_range(errors: list, low_path: str, low: Any, high_path: str, high: Any):
    """Both ends set and low > high is an error naming the pair."""
    if low is not None and high is not None and low > high:
        errors.append(_error(
            "INVALID_RANGE", f"{low_path},{high_path}",
            f"'{low_path}' must not be greater than '{high_path}'",
        ))


def check_not_future(errors: list, path: str, value: Optional[datetime], now: Optional[datetime] = None):
    if value is None:
        return
    now = now or datetime.now(timezone.utc)
    if value > now:
        errors.append(_error("IN_FUTURE", path, f"'{path}' must not be in the future"))
