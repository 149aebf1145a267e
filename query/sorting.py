"""
Sort field allowlists

ORDER BY identifiers cannot be bound as $n parameters, so every user-supplied
sort key goes through an allowlist that maps it to a trusted column name.
"""

from typing import Mapping, Optional

DEFAULT_SORT_COLUMN = "created_at"
SORT_ORDERS = ("asc", "desc")


def normalize_sort_order(order: Optional[str]) -> str:
    """Lower-cased 'asc' or 'desc'; anything else becomes 'asc'."""
    value = (order or "").strip().lower()
    return value if value in SORT_ORDERS else "asc"


class SortFieldAllowlist:
    """Case-insensitive map from sort keys to trusted column names."""

    def __init__(self, fields: Mapping[str, str], default: str = DEFAULT_SORT_COLUMN):
        self._fields = {key.lower(): column for key, column in fields.items()}
        self.default = default

    def normalize(self, user_field: Optional[str]) -> str:
        """Trusted column for `user_field`, or the default column when it is not allowed."""
        return self._fields.get((user_field or "").strip().lower(), self.default)

    def __contains__(self, user_field: object) -> bool:
        return isinstance(user_field, str) and user_field.strip().lower() in self._fields

    def keys(self) -> list[str]:
        return list(self._fields)

    def columns(self) -> set[str]:
        return set(self._fields.values()) | {self.default}
