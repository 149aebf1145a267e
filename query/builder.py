"""
Query Compiler

Renders a FilterSpec into parameterized SQL.
All values, LIMIT and OFFSET included, are passed as asyncpg positional
parameters ($1, $2, ...). The only identifiers written into the statement are
trusted column names from the filter declarations and the sort allowlist.
"""

import logging
from typing import Any, Optional

from config import PaginationConfig

from .filters import OP_ILIKE, BaseFilter
from .sorting import normalize_sort_order

logger = logging.getLogger(__name__)


class QueryCompiler:
    """Builds parameterized SQL from a FilterSpec."""

    def __init__(self, pagination: Optional[PaginationConfig] = None):
        self.pagination = pagination or PaginationConfig()

    def _build_predicates(self, spec: BaseFilter, params: list) -> list[str]:
        """
        AND-fragments for every populated field, in declaration order.
        search_term comes last and binds a single placeholder.
        """
        conditions = []

        for predicate, value in spec.active_predicates():
            params.append(value)
            if predicate.op == OP_ILIKE:
                conditions.append(f"AND {predicate.column} ILIKE '%' || ${len(params)} || '%'")
            else:
                conditions.append(f"AND {predicate.column} {predicate.op} ${len(params)}")

        searchable = spec.entity_config().searchable
        if spec.search_term and searchable:
            params.append(spec.search_term)
            n = len(params)
            matches = " OR ".join(f"{col} ILIKE '%' || ${n} || '%'" for col in searchable)
            conditions.append(f"AND ({matches})")

        return conditions

    def _build_order(self, spec: BaseFilter) -> str:
        column = spec.entity_config().sort.normalize(spec.sort_by)
        direction = normalize_sort_order(spec.sort_order).upper()
        return f"ORDER BY {column} {direction}"

    def compile(self, base_query: str, spec: BaseFilter) -> tuple[str, list[Any]]:
        """
        Append predicates, ORDER BY and LIMIT/OFFSET to `base_query`.

        `base_query` must end in a WHERE clause (normally "WHERE 1=1") so each
        predicate can be prefixed with AND. Returns (sql, params) with params
        in placeholder order.
        """
        params: list[Any] = []
        conditions = self._build_predicates(spec, params)
        order_clause = self._build_order(spec)

        params.append(min(spec.effective_limit(self.pagination), self.pagination.max_limit))
        limit_clause = f"LIMIT ${len(params)}"
        params.append(max(spec.offset, 0))
        offset_clause = f"OFFSET ${len(params)}"

        sql = f"{base_query} {' '.join(conditions)} {order_clause} {limit_clause} {offset_clause}"
        sql = " ".join(sql.split())  # Normalize whitespace

        logger.debug(f"Compiled {type(spec).__name__}: {sql}")
        return sql, params

    def compile_count(self, base_query: str, spec: BaseFilter) -> tuple[str, list[Any]]:
        """Same predicates as compile(), no ordering or pagination."""
        params: list[Any] = []
        conditions = self._build_predicates(spec, params)
        sql = f"{base_query} {' '.join(conditions)}"
        return " ".join(sql.split()), params

    def compile_select(self, spec: BaseFilter) -> tuple[str, list[Any]]:
        return self.compile(spec.entity_config().select_query(), spec)

    def compile_total(self, spec: BaseFilter) -> tuple[str, list[Any]]:
        return self.compile_count(spec.entity_config().count_query(), spec)
