"""
Filter specifications

A FilterSpec is a request-scoped description of which rows to fetch, how many
and in what order. Each entity filter declares its predicates in PREDICATES;
that tuple order is the order QueryCompiler assigns $n placeholders in.
"""

import logging
from dataclasses import dataclass, fields
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, ClassVar, Iterator, Mapping, Optional

from config import ABSOLUTE_MAX_LIMIT, PaginationConfig
from errors import InvalidFilterError
from models import PaymentType, SaleStatus

from .binders import bind
from .entities import ENTITIES, EntityConfig
from .sorting import SORT_ORDERS
from .validators import (
    _error,
    check_bounds,
    check_choice,
    check_exact_length,
    check_min_length,
    check_non_negative,
    check_not_future,
    check_positive,
    check_range,
)

logger = logging.getLogger(__name__)

# Operators a predicate may use
OP_EQ = "="
OP_GTE = ">="
OP_LTE = "<="
OP_ILIKE = "ilike"


@dataclass(frozen=True)
class Predicate:
    """One optional filter field: attribute name, trusted column, operator, binder kind."""
    field: str
    column: str
    op: str
    kind: str = "str"


def _created_updated() -> tuple[Predicate, ...]:
    return (
        Predicate("created_from", "created_at", OP_GTE, "time"),
        Predicate("created_to", "created_at", OP_LTE, "time"),
        Predicate("updated_from", "updated_at", OP_GTE, "time"),
        Predicate("updated_to", "updated_at", OP_LTE, "time"),
    )


@dataclass
class BaseFilter:
    """
    Pagination, sort and free-text search shared by every FilterSpec.

    limit 0 means "use the configured default". sort_order is normalized to
    lowercase; anything outside asc/desc is reported by validate().
    """

    limit: int = 0
    offset: int = 0
    sort_by: str = ""
    sort_order: str = ""
    search_term: str = ""

    ENTITY: ClassVar[str] = ""
    PREDICATES: ClassVar[tuple[Predicate, ...]] = ()
    BASE_PARAMS: ClassVar[tuple[str, ...]] = ("limit", "offset", "sort_by", "sort_order", "search_term")

    def __post_init__(self):
        self.sort_by = (self.sort_by or "").strip()
        self.sort_order = (self.sort_order or "").strip().lower()
        self.search_term = (self.search_term or "").strip()
        # Naive datetimes are read as UTC, the same rule the time binder applies
        for predicate in self.PREDICATES:
            value = getattr(self, predicate.field)
            if isinstance(value, datetime) and value.tzinfo is None:
                setattr(self, predicate.field, value.replace(tzinfo=timezone.utc))

    @classmethod
    def entity_config(cls) -> EntityConfig:
        return ENTITIES[cls.ENTITY]

    @classmethod
    def allowed_params(cls) -> list[str]:
        return list(cls.BASE_PARAMS) + [p.field for p in cls.PREDICATES]

    # ------------------------------------------------------------------
    # Populated predicates
    # ------------------------------------------------------------------

    def active_predicates(self) -> Iterator[tuple[Predicate, Any]]:
        """Populated predicates with their values, in declaration order."""
        for predicate in self.PREDICATES:
            value = getattr(self, predicate.field)
            if value is None or value == "":
                continue
            yield predicate, value

    def has_content_filter(self) -> bool:
        return bool(self.search_term) or any(True for _ in self.active_predicates())

    def filters_applied(self) -> dict[str, Any]:
        applied = {p.field: v for p, v in self.active_predicates()}
        if self.search_term:
            applied["search_term"] = self.search_term
        return applied

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def effective_limit(self, pagination: Optional[PaginationConfig] = None) -> int:
        pagination = pagination or PaginationConfig()
        return self.limit or pagination.default_limit

    def validate(self, pagination: Optional[PaginationConfig] = None):
        """Raise InvalidFilterError listing every offending field. Issues no query."""
        pagination = pagination or PaginationConfig()
        errors: list[dict] = []

        if not self.has_content_filter():
            errors.append(_error(
                "MISSING_FILTER", "filter",
                "At least one filter is required",
                validFilters=[p.field for p in self.PREDICATES] + ["search_term"],
            ))

        check_bounds(errors, "limit", self.limit, 0, min(pagination.max_limit, ABSOLUTE_MAX_LIMIT))
        check_bounds(errors, "offset", self.offset, 0, pagination.max_offset)

        if self.sort_by and self.sort_by not in self.entity_config().sort:
            errors.append(_error(
                "INVALID_SORT_FIELD", "sort_by",
                f"Invalid sort field '{self.sort_by}'",
                validFields=self.entity_config().sort.keys(),
            ))
        if self.sort_order and self.sort_order not in SORT_ORDERS:
            errors.append(_error(
                "INVALID_SORT_ORDER", "sort_order",
                f"Invalid sort order '{self.sort_order}', use 'asc' or 'desc'",
                validValues=list(SORT_ORDERS),
            ))

        self._validate_fields(errors)

        if errors:
            logger.info(f"Rejected {type(self).__name__}: {len(errors)} error(s)")
            raise InvalidFilterError(errors=errors)

    def _validate_fields(self, errors: list):
        """Entity-specific checks. Subclasses extend and call super()."""
        for low, high in (("created_from", "created_to"), ("updated_from", "updated_to")):
            if hasattr(self, low) and hasattr(self, high):
                check_range(errors, low, getattr(self, low), high, getattr(self, high))

    # ------------------------------------------------------------------
    # Construction from raw query parameters
    # ------------------------------------------------------------------

    @classmethod
    def from_query_params(cls, params: Mapping[str, str]):
        """
        Build a filter from raw query-string values.

        Every typed field goes through the range binder. A non-empty value
        that fails to bind, or a parameter this filter does not know, is
        reported as a per-field error rather than dropped.
        """
        errors: list[dict] = []
        allowed = cls.allowed_params()

        for key in params:
            if key not in allowed:
                errors.append(_error(
                    "UNKNOWN_PARAMETER", key,
                    f"Unknown query parameter '{key}'",
                    validParameters=allowed,
                ))

        kinds = {"limit": "int", "offset": "int", "sort_by": "str", "sort_order": "str", "search_term": "str"}
        kinds.update({p.field: p.kind for p in cls.PREDICATES})

        values: dict[str, Any] = {}
        for name, kind in kinds.items():
            raw = params.get(name)
            value = bind(kind, raw)
            if value is None:
                if raw is not None and str(raw).strip():
                    errors.append(_error(
                        "INVALID_VALUE", name,
                        f"Invalid value '{raw}' for '{name}' (expected {kind})",
                    ))
                continue
            values[name] = value

        if errors:
            raise InvalidFilterError(errors=errors)

        init_fields = {f.name for f in fields(cls) if f.init}
        return cls(**{k: v for k, v in values.items() if k in init_fields})


# =============================================================================
# Entity filters
# =============================================================================

@dataclass
class ClientFilter(BaseFilter):
    name: Optional[str] = None
    email: Optional[str] = None
    cpf: Optional[str] = None
    cnpj: Optional[str] = None
    status: Optional[bool] = None
    version: Optional[int] = None
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None
    updated_from: Optional[datetime] = None
    updated_to: Optional[datetime] = None

    ENTITY: ClassVar[str] = "clients"
    PREDICATES: ClassVar[tuple[Predicate, ...]] = (
        Predicate("name", "name", OP_ILIKE),
        Predicate("email", "email", OP_ILIKE),
        Predicate("cpf", "cpf", OP_EQ),
        Predicate("cnpj", "cnpj", OP_EQ),
        Predicate("status", "status", OP_EQ, "bool"),
        Predicate("version", "version", OP_EQ, "int"),
    ) + _created_updated()

    def _validate_fields(self, errors: list):
        super()._validate_fields(errors)
        check_min_length(errors, "name", self.name, 3)
        check_min_length(errors, "email", self.email, 5)
        check_exact_length(errors, "cpf", self.cpf, 11)
        check_exact_length(errors, "cnpj", self.cnpj, 14)
        check_positive(errors, "version", self.version)


@dataclass
class SupplierFilter(BaseFilter):
    name: Optional[str] = None
    cnpj: Optional[str] = None
    cpf: Optional[str] = None
    status: Optional[bool] = None
    version: Optional[int] = None
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None
    updated_from: Optional[datetime] = None
    updated_to: Optional[datetime] = None

    ENTITY: ClassVar[str] = "suppliers"
    PREDICATES: ClassVar[tuple[Predicate, ...]] = (
        Predicate("name", "name", OP_ILIKE),
        Predicate("cnpj", "cnpj", OP_EQ),
        Predicate("cpf", "cpf", OP_EQ),
        Predicate("status", "status", OP_EQ, "bool"),
        Predicate("version", "version", OP_EQ, "int"),
    ) + _created_updated()

    def _validate_fields(self, errors: list):
        super()._validate_fields(errors)
        check_min_length(errors, "name", self.name, 3)
        check_exact_length(errors, "cpf", self.cpf, 11)
        check_exact_length(errors, "cnpj", self.cnpj, 14)
        check_positive(errors, "version", self.version)


@dataclass
class SaleFilter(BaseFilter):
    client_id: Optional[int] = None
    user_id: Optional[int] = None
    payment_type: Optional[str] = None
    status: Optional[str] = None
    notes: Optional[str] = None
    min_total_amount: Optional[Decimal] = None
    max_total_amount: Optional[Decimal] = None
    min_total_discount: Optional[Decimal] = None
    max_total_discount: Optional[Decimal] = None
    min_items_amount: Optional[Decimal] = None
    max_items_amount: Optional[Decimal] = None
    min_items_discount: Optional[Decimal] = None
    max_items_discount: Optional[Decimal] = None
    min_sale_discount: Optional[Decimal] = None
    max_sale_discount: Optional[Decimal] = None
    sale_date_from: Optional[datetime] = None
    sale_date_to: Optional[datetime] = None
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None
    updated_from: Optional[datetime] = None
    updated_to: Optional[datetime] = None

    ENTITY: ClassVar[str] = "sales"
    PREDICATES: ClassVar[tuple[Predicate, ...]] = (
        Predicate("client_id", "client_id", OP_EQ, "int"),
        Predicate("user_id", "user_id", OP_EQ, "int"),
        Predicate("payment_type", "payment_type", OP_EQ),
        Predicate("status", "status", OP_EQ),
        Predicate("notes", "notes", OP_ILIKE),
        Predicate("min_total_amount", "total_amount", OP_GTE, "decimal"),
        Predicate("max_total_amount", "total_amount", OP_LTE, "decimal"),
        Predicate("min_total_discount", "total_discount", OP_GTE, "decimal"),
        Predicate("max_total_discount", "total_discount", OP_LTE, "decimal"),
        Predicate("min_items_amount", "total_items_amount", OP_GTE, "decimal"),
        Predicate("max_items_amount", "total_items_amount", OP_LTE, "decimal"),
        Predicate("min_items_discount", "total_items_discount", OP_GTE, "decimal"),
        Predicate("max_items_discount", "total_items_discount", OP_LTE, "decimal"),
        Predicate("min_sale_discount", "total_sale_discount", OP_GTE, "decimal"),
        Predicate("max_sale_discount", "total_sale_discount", OP_LTE, "decimal"),
        Predicate("sale_date_from", "sale_date", OP_GTE, "time"),
        Predicate("sale_date_to", "sale_date", OP_LTE, "time"),
    ) + _created_updated()
    MONEY_RANGES: ClassVar[tuple[tuple[str, str], ...]] = (
        ("min_total_amount", "max_total_amount"),
        ("min_total_discount", "max_total_discount"),
        ("min_items_amount", "max_items_amount"),
        ("min_items_discount", "max_items_discount"),
        ("min_sale_discount", "max_sale_discount"),
    )

    def __post_init__(self):
        super().__post_init__()
        if self.payment_type:
            self.payment_type = self.payment_type.strip().lower()
        if self.status:
            self.status = self.status.strip().lower()

    def _validate_fields(self, errors: list):
        super()._validate_fields(errors)
        check_positive(errors, "client_id", self.client_id)
        check_positive(errors, "user_id", self.user_id)
        check_choice(errors, "payment_type", self.payment_type, [p.value for p in PaymentType])
        check_choice(errors, "status", self.status, [s.value for s in SaleStatus])
        for low, high in self.MONEY_RANGES:
            check_non_negative(errors, low, getattr(self, low))
            check_non_negative(errors, high, getattr(self, high))
            check_range(errors, low, getattr(self, low), high, getattr(self, high))
        check_not_future(errors, "sale_date_from", self.sale_date_from)
        check_not_future(errors, "sale_date_to", self.sale_date_to)
        check_range(errors, "sale_date_from", self.sale_date_from, "sale_date_to", self.sale_date_to)


@dataclass
class CategoryFilter(BaseFilter):
    name: Optional[str] = None
    description: Optional[str] = None
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None

    ENTITY: ClassVar[str] = "categories"
    PREDICATES: ClassVar[tuple[Predicate, ...]] = (
        Predicate("name", "name", OP_ILIKE),
        Predicate("description", "description", OP_ILIKE),
        Predicate("created_from", "created_at", OP_GTE, "time"),
        Predicate("created_to", "created_at", OP_LTE, "time"),
    )
