"""
Filtered queries for the store entities

Raw query parameters are bound into a FilterSpec, validated, and compiled
into parameterized SQL with an allowlisted ORDER BY.
"""

from .binders import (
    bind,
    bind_optional_bool,
    bind_optional_decimal,
    bind_optional_float,
    bind_optional_int,
    bind_optional_str,
    bind_optional_time,
)
from .sorting import SortFieldAllowlist, normalize_sort_order
from .entities import ENTITIES, get_entity_config
from .filters import BaseFilter, ClientFilter, SupplierFilter, SaleFilter, CategoryFilter
from .builder import QueryCompiler

__all__ = [
    'bind',
    'bind_optional_int',
    'bind_optional_float',
    'bind_optional_decimal',
    'bind_optional_str',
    'bind_optional_bool',
    'bind_optional_time',
    'SortFieldAllowlist',
    'normalize_sort_order',
    'ENTITIES',
    'get_entity_config',
    'BaseFilter',
    'ClientFilter',
    'SupplierFilter',
    'SaleFilter',
    'CategoryFilter',
    'QueryCompiler',
]
