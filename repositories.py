"""
Repository layer for database operations
Provides CRUD and filtered search for all store entities
"""

import logging
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel

from config import PaginationConfig
from database import DatabaseConnection, rows_affected
from errors import (
    IterationError,
    NotFoundError,
    QueryError,
    ScanError,
    StoreDomainError,
)
from models import (
    Category, CategoryCreate, CategoryUpdate,
    Client, ClientCreate, ClientUpdate,
    FilterPage,
    Sale, SaleCreate, SaleUpdate,
    Supplier, SupplierCreate, SupplierUpdate,
)
from query import (
    BaseFilter,
    CategoryFilter,
    ClientFilter,
    QueryCompiler,
    SaleFilter,
    SupplierFilter,
    get_entity_config,
)
from utils.error_messages import STORE_EXCEPTIONS, translate_store_error
from versioning import VersionedUpdateProtocol

logger = logging.getLogger(__name__)

# Rows pulled from the server-side cursor per round trip
FETCH_BATCH_SIZE = 50


class BaseRepository:
    """
    Base repository with common operations

    Subclasses name their entity, row model and writable columns. Column
    names only ever come from these class attributes.
    """

    ENTITY: str = ""
    MODEL: Type[BaseModel]
    WRITABLE: tuple[str, ...] = ()
    DB_DEFAULTS: tuple[str, ...] = ()  # omitted from writes when None

    def __init__(
        self,
        db: DatabaseConnection,
        compiler: Optional[QueryCompiler] = None,
        timeout: Optional[float] = None,
    ):
        self.db = db
        self.compiler = compiler or QueryCompiler()
        self.timeout = timeout
        self.config = get_entity_config(self.ENTITY)
        self.table = self.config.table

    @property
    def pagination(self) -> PaginationConfig:
        return self.compiler.pagination

    async def _dict_to_model(self, data: Any):
        """Convert database record to Pydantic model"""
        if data is None:
            return None
        return self.MODEL(**dict(data))

    async def _list_to_models(self, rows) -> List[Any]:
        return [await self._dict_to_model(row) for row in rows]

    def _changes(self, payload: BaseModel) -> Dict[str, Any]:
        data = payload.model_dump(include=set(self.WRITABLE))
        return {
            column: data[column]
            for column in self.WRITABLE
            if column in data and not (column in self.DB_DEFAULTS and data[column] is None)
        }

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_by_id(self, record_id: int):
        """Fetch one row. Raises NotFoundError when absent."""
        try:
            row = await self.db.fetchrow(
                f"SELECT {self.config.select_clause} FROM {self.table} WHERE id = $1",
                record_id,
                timeout=self.timeout,
            )
        except STORE_EXCEPTIONS as e:
            raise translate_store_error(e, "get") from e

        if row is None:
            raise NotFoundError(f"Record {record_id} not found in {self.table}")
        return await self._dict_to_model(row)

    async def filter(self, spec: BaseFilter) -> List[Any]:
        """
        Validate, compile and run a FilterSpec.

        Raises:
            InvalidFilterError: before any query when the filter is invalid
            QueryError: the statement could not be executed
            IterationError: fetching a further batch of rows failed
            ScanError: a row could not be turned into a model
        """
        spec.validate(self.pagination)
        sql, params = self.compiler.compile_select(spec)

        items: List[Any] = []
        try:
            async with self.db.cursor(sql, *params, timeout=self.timeout) as cur:
                while True:
                    try:
                        batch = await cur.fetch(FETCH_BATCH_SIZE, timeout=self.timeout)
                    except STORE_EXCEPTIONS as e:
                        logger.error(f"Row iteration failed on {self.table}: {e}", exc_info=True)
                        raise IterationError("filter") from e
                    if not batch:
                        break
                    for record in batch:
                        try:
                            items.append(await self._dict_to_model(record))
                        except (ValueError, TypeError, KeyError) as e:
                            logger.error(f"Could not decode {self.table} row: {e}", exc_info=True)
                            raise ScanError("filter") from e
        except StoreDomainError:
            raise
        except STORE_EXCEPTIONS as e:
            logger.error(f"Filter query failed on {self.table}: {e}", exc_info=True)
            raise QueryError("filter") from e

        return items

    async def count(self, spec: BaseFilter) -> int:
        """Rows matching the filter's predicates, ignoring pagination."""
        spec.validate(self.pagination)
        sql, params = self.compiler.compile_total(spec)
        try:
            total = await self.db.fetchval(sql, *params, timeout=self.timeout)
        except STORE_EXCEPTIONS as e:
            logger.error(f"Count query failed on {self.table}: {e}", exc_info=True)
            raise QueryError("filter") from e
        return int(total or 0)

    async def filter_page(self, spec: BaseFilter) -> FilterPage:
        items = await self.filter(spec)
        total = await self.count(spec)
        return FilterPage(
            total=total,
            items=items,
            filters_applied=spec.filters_applied(),
            has_more=spec.offset + len(items) < total,
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create(self, payload: BaseModel):
        """Insert a row. Versioned tables start at version 1 via the column default."""
        data = self._changes(payload)
        columns = list(data.keys())
        placeholders = ", ".join(f"${i}" for i in range(1, len(columns) + 1))
        sql = (
            f"INSERT INTO {self.table} ({', '.join(columns)}) "
            f"VALUES ({placeholders}) "
            f"RETURNING {self.config.select_clause}"
        )

        logger.info(f"Creating {self.table} record")
        try:
            row = await self.db.fetchrow(sql, *data.values(), timeout=self.timeout)
        except STORE_EXCEPTIONS as e:
            raise translate_store_error(e, "create") from e

        created = await self._dict_to_model(row)
        logger.info(f"Created {self.table}#{created.id}")
        return created

    async def delete(self, record_id: int) -> None:
        """Remove a row. Raises NotFoundError when nothing was deleted."""
        try:
            status = await self.db.execute(
                f"DELETE FROM {self.table} WHERE id = $1", record_id, timeout=self.timeout
            )
        except STORE_EXCEPTIONS as e:
            raise translate_store_error(e, "delete") from e

        if rows_affected(status) == 0:
            logger.warning(f"Delete target {self.table}#{record_id} not found")
            raise NotFoundError(f"Record {record_id} not found in {self.table}")
        logger.info(f"Deleted {self.table}#{record_id}")


class VersionedRepository(BaseRepository):
    """Repository whose updates go through the optimistic version check"""

    def __init__(
        self,
        db: DatabaseConnection,
        compiler: Optional[QueryCompiler] = None,
        timeout: Optional[float] = None,
    ):
        super().__init__(db, compiler, timeout)
        self.protocol = VersionedUpdateProtocol(db, self.table, timeout=timeout)

    async def get_version(self, record_id: int) -> int:
        try:
            version = await self.db.fetchval(
                f"SELECT version FROM {self.table} WHERE id = $1", record_id, timeout=self.timeout
            )
        except STORE_EXCEPTIONS as e:
            raise translate_store_error(e, "get") from e
        if version is None:
            raise NotFoundError(f"Record {record_id} not found in {self.table}")
        return version

    async def _apply(self, record_id: int, expected_version: Optional[int], changes: Dict[str, Any]):
        logger.info(f"Updating {self.table}#{record_id} from version {expected_version}")
        return await self.protocol.apply(record_id, expected_version, changes)

    async def update(self, record_id: int, payload: BaseModel):
        """
        Update a row if `payload.version` still matches the stored version.

        Returns the entity with its new version and updated_at.
        """
        changes = self._changes(payload)
        attempt = await self._apply(record_id, getattr(payload, "version", None), changes)
        return self.MODEL(
            id=record_id,
            **changes,
            version=attempt.version,
            updated_at=attempt.updated_at,
        )


class _PartyRepository(VersionedRepository):
    """Clients and suppliers can be enabled and disabled"""

    async def set_status(self, record_id: int, expected_version: Optional[int], status: bool) -> int:
        """Flip `status` through the version check. Returns the new version."""
        attempt = await self._apply(record_id, expected_version, {"status": status})
        return attempt.version

    async def enable(self, record_id: int, expected_version: Optional[int]) -> int:
        return await self.set_status(record_id, expected_version, True)

    async def disable(self, record_id: int, expected_version: Optional[int]) -> int:
        return await self.set_status(record_id, expected_version, False)


class ClientsRepository(_PartyRepository):
    ENTITY = "clients"
    MODEL = Client
    FILTER = ClientFilter
    WRITABLE = ("name", "email", "cpf", "cnpj", "description", "status")

    async def create(self, payload: ClientCreate) -> Client:
        return await super().create(payload)

    async def update(self, record_id: int, payload: ClientUpdate) -> Client:
        return await super().update(record_id, payload)


class SuppliersRepository(_PartyRepository):
    ENTITY = "suppliers"
    MODEL = Supplier
    FILTER = SupplierFilter
    WRITABLE = ("name", "cnpj", "cpf", "description", "status")

    async def create(self, payload: SupplierCreate) -> Supplier:
        return await super().create(payload)

    async def update(self, record_id: int, payload: SupplierUpdate) -> Supplier:
        return await super().update(record_id, payload)


class SalesRepository(VersionedRepository):
    ENTITY = "sales"
    MODEL = Sale
    FILTER = SaleFilter
    WRITABLE = (
        "client_id", "user_id", "sale_date", "total_items_amount",
        "total_items_discount", "total_sale_discount", "total_amount",
        "total_discount", "payment_type", "status", "notes",
    )
    DB_DEFAULTS = ("sale_date",)

    async def create(self, payload: SaleCreate) -> Sale:
        return await super().create(payload)

    async def update(self, record_id: int, payload: SaleUpdate) -> Sale:
        """
        Versioned update. When sale_date is omitted the stored one is kept,
        so the returned model is re-read to carry it.
        """
        changes = self._changes(payload)
        await self._apply(record_id, payload.version, changes)
        return await self.get_by_id(record_id)


class CategoriesRepository(BaseRepository):
    """Product categories are not versioned; last write wins"""

    ENTITY = "categories"
    MODEL = Category
    FILTER = CategoryFilter
    WRITABLE = ("name", "description")

    async def create(self, payload: CategoryCreate) -> Category:
        return await super().create(payload)

    async def update(self, record_id: int, payload: CategoryUpdate) -> Category:
        """Raises NotFoundError when no row was updated."""
        changes = self._changes(payload)
        params: list = []
        assignments = []
        for column, value in changes.items():
            params.append(value)
            assignments.append(f"{column} = ${len(params)}")
        assignments.append("updated_at = NOW()")
        params.append(record_id)

        sql = (
            f"UPDATE {self.table} SET {', '.join(assignments)} "
            f"WHERE id = ${len(params)} "
            f"RETURNING {self.config.select_clause}"
        )
        try:
            row = await self.db.fetchrow(sql, *params, timeout=self.timeout)
        except STORE_EXCEPTIONS as e:
            raise translate_store_error(e, "update") from e

        if row is None:
            logger.warning(f"Update target {self.table}#{record_id} not found")
            raise NotFoundError(f"Record {record_id} not found in {self.table}")
        logger.info(f"Updated {self.table}#{record_id}")
        return await self._dict_to_model(row)
