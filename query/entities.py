"""
Entity Configuration Registry

Table name, selected columns, sort allowlist and searchable columns for
every filterable entity.
"""

from dataclasses import dataclass, field

from .sorting import SortFieldAllowlist


@dataclass
class EntityConfig:
    """Complete configuration for a filterable entity."""
    table: str
    columns: list[str]
    sort: SortFieldAllowlist
    searchable: list[str] = field(default_factory=list)  # columns matched by search_term
    versioned: bool = True

    @property
    def select_clause(self) -> str:
        return ", ".join(self.columns)

    def select_query(self) -> str:
        """Base SELECT that every compiled predicate is appended to."""
        return f"SELECT {self.select_clause} FROM {self.table} WHERE 1=1"

    def count_query(self) -> str:
        return f"SELECT COUNT(*) FROM {self.table} WHERE 1=1"


# =============================================================================
# Entity Registry
# =============================================================================

ENTITIES: dict[str, EntityConfig] = {
    "clients": EntityConfig(
        table="clients",
        columns=[
            "id", "name", "email", "cpf", "cnpj", "description",
            "status", "version", "created_at", "updated_at",
        ],
        sort=SortFieldAllowlist({
            "id": "id",
            "name": "name",
            "email": "email",
            "status": "status",
            "version": "version",
            "created_at": "created_at",
            "updated_at": "updated_at",
        }),
        searchable=["name", "email", "description"],
    ),
    "suppliers": EntityConfig(
        table="suppliers",
        columns=[
            "id", "name", "cnpj", "cpf", "description",
            "status", "version", "created_at", "updated_at",
        ],
        sort=SortFieldAllowlist({
            "id": "id",
            "name": "name",
            "status": "status",
            "version": "version",
            "created_at": "created_at",
            "updated_at": "updated_at",
        }),
        searchable=["name", "description"],
    ),
    "sales": EntityConfig(
        table="sales",
        columns=[
            "id", "client_id", "user_id", "sale_date", "total_items_amount",
            "total_items_discount", "total_sale_discount", "total_amount",
            "total_discount", "payment_type", "status", "notes",
            "version", "created_at", "updated_at",
        ],
        sort=SortFieldAllowlist({
            "id": "id",
            "sale_date": "sale_date",
            "date": "sale_date",
            "total_amount": "total_amount",
            "total": "total_amount",
            "total_discount": "total_discount",
            "total_items_amount": "total_items_amount",
            "items_amount": "total_items_amount",
            "total_items_discount": "total_items_discount",
            "items_discount": "total_items_discount",
            "total_sale_discount": "total_sale_discount",
            "sale_discount": "total_sale_discount",
            "status": "status",
            "created_at": "created_at",
            "updated_at": "updated_at",
        }, default="sale_date"),
        searchable=["notes"],
    ),
    "categories": EntityConfig(
        table="product_categories",
        columns=["id", "name", "description", "created_at", "updated_at"],
        sort=SortFieldAllowlist({
            "id": "id",
            "name": "name",
            "created_at": "created_at",
            "updated_at": "updated_at",
        }),
        searchable=["name", "description"],
        versioned=False,
    ),
}


def get_entity_config(entity: str) -> EntityConfig:
    """Get config for an entity. Raises KeyError if not found."""
    return ENTITIES[entity]
