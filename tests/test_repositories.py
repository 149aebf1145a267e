"""
Tests for the repository layer against the in-memory FakeDatabase
"""

import asyncio
from decimal import Decimal

import asyncpg
import pytest
from pydantic import ValidationError

from container import RepositoryContainer
from errors import (
    DuplicateError,
    InvalidFilterError,
    InvalidForeignKeyError,
    IterationError,
    NotFoundError,
    QueryError,
    ScanError,
    StoreError,
    VersionConflictError,
)
from models import CategoryUpdate, Client, ClientCreate, ClientUpdate, SaleCreate
from query import ClientFilter
from tests.conftest import NOW


@pytest.fixture
def repos(fake_db):
    return RepositoryContainer(fake_db)


class TestReads:
    @pytest.mark.asyncio
    async def test_get_by_id(self, repos, fake_db, client_row):
        fake_db.row = client_row
        client = await repos.clients.get_by_id(1)

        assert isinstance(client, Client)
        assert client.name == "Maria Silva"
        assert fake_db.calls[0][2] == (1,)

    @pytest.mark.asyncio
    async def test_get_missing(self, repos):
        with pytest.raises(NotFoundError):
            await repos.clients.get_by_id(42)

    @pytest.mark.asyncio
    async def test_get_failure_names_operation(self, repos, fake_db):
        fake_db.fail["fetchrow"] = OSError("network unreachable")
        with pytest.raises(StoreError) as exc_info:
            await repos.clients.get_by_id(1)
        assert exc_info.value.operation == "get"

    @pytest.mark.asyncio
    async def test_get_version(self, repos, fake_db):
        fake_db.versions[3] = 4
        assert await repos.clients.get_version(3) == 4
        with pytest.raises(NotFoundError):
            await repos.clients.get_version(4)


class TestFilter:
    @pytest.mark.asyncio
    async def test_invalid_filter_issues_no_query(self, repos, fake_db):
        with pytest.raises(InvalidFilterError):
            await repos.clients.filter(ClientFilter(limit=10))
        assert fake_db.calls == []

    @pytest.mark.asyncio
    async def test_rows_become_models(self, repos, fake_db, client_row):
        fake_db.rows = [client_row, {**client_row, "id": 2, "name": "Mario"}]
        items = await repos.clients.filter(ClientFilter(name="Mar"))

        assert [c.id for c in items] == [1, 2]
        method, sql, args = fake_db.calls[0]
        assert method == "cursor"
        assert "AND name ILIKE '%' || $1 || '%'" in sql
        assert args == ("Mar", 10, 0)

    @pytest.mark.asyncio
    async def test_rows_span_several_batches(self, repos, fake_db, client_row):
        fake_db.rows = [{**client_row, "id": n} for n in range(1, 121)]
        items = await repos.clients.filter(ClientFilter(name="Mar", limit=100))
        assert len(items) == 120

    @pytest.mark.asyncio
    async def test_query_failure(self, repos, fake_db):
        fake_db.fail["cursor"] = asyncpg.UndefinedColumnError('column "nme" does not exist')
        with pytest.raises(QueryError) as exc_info:
            await repos.clients.filter(ClientFilter(name="Mar"))
        assert exc_info.value.operation == "filter"

    @pytest.mark.asyncio
    async def test_iteration_failure(self, repos, fake_db, client_row):
        fake_db.rows = [client_row]
        fake_db.fail["fetch"] = ConnectionResetError("reset by peer")
        with pytest.raises(IterationError):
            await repos.clients.filter(ClientFilter(name="Mar"))

    @pytest.mark.asyncio
    async def test_scan_failure(self, repos, fake_db, client_row):
        fake_db.rows = [{**client_row, "created_at": "not a timestamp"}]
        with pytest.raises(ScanError):
            await repos.clients.filter(ClientFilter(name="Mar"))

    @pytest.mark.asyncio
    async def test_filter_page(self, repos, fake_db, client_row):
        fake_db.rows = [client_row]
        page = await repos.clients.filter_page(ClientFilter(name="Mar", status=True))

        assert page.total == 1
        assert page.has_more is False
        assert page.filters_applied == {"name": "Mar", "status": True}
        assert fake_db.statements("SELECT COUNT(*)")[0].endswith("AND status = $2")

    @pytest.mark.asyncio
    async def test_count_failure_is_query_error(self, repos, fake_db):
        fake_db.fail["fetchval"] = asyncio.TimeoutError()
        with pytest.raises(QueryError):
            await repos.clients.count(ClientFilter(name="Mar"))


class TestWrites:
    @pytest.mark.asyncio
    async def test_create_never_sends_version(self, repos, fake_db, client_row):
        fake_db.row = client_row
        created = await repos.clients.create(ClientCreate(name="Maria Silva", email="Maria@Example.com"))

        method, sql, args = fake_db.calls[0]
        assert sql.startswith("INSERT INTO clients (name, email, cpf, cnpj, description, status)")
        assert "version" not in sql.split("RETURNING")[0]
        assert args[:2] == ("Maria Silva", "maria@example.com")
        assert created.version == 1

    @pytest.mark.asyncio
    async def test_create_duplicate(self, repos, fake_db):
        fake_db.fail["fetchrow"] = asyncpg.UniqueViolationError(
            'duplicate key value violates unique constraint "clients_cpf_key"'
        )
        with pytest.raises(DuplicateError) as exc_info:
            await repos.clients.create(ClientCreate(name="Maria", cpf="12345678901"))
        assert "CPF" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_create_sale_with_unknown_client(self, repos, fake_db):
        fake_db.fail["fetchrow"] = asyncpg.ForeignKeyViolationError(
            'insert or update on table "sales" violates foreign key constraint "sales_client_id_fkey"'
        )
        with pytest.raises(InvalidForeignKeyError):
            await repos.sales.create(SaleCreate(client_id=9, payment_type="pix", total_amount=Decimal("10")))

    @pytest.mark.asyncio
    async def test_sale_create_omits_missing_sale_date(self, repos, fake_db):
        fake_db.row = {
            "id": 1, "client_id": None, "user_id": None, "sale_date": NOW,
            "total_amount": Decimal("10.00"), "total_discount": Decimal("0.00"),
            "payment_type": "cash", "status": "active", "notes": None,
            "version": 1, "created_at": NOW, "updated_at": NOW,
        }
        await repos.sales.create(SaleCreate(payment_type="cash", total_amount=Decimal("10")))
        assert "sale_date" not in fake_db.calls[0][1].split("VALUES")[0]

    @pytest.mark.asyncio
    async def test_sale_create_writes_item_and_sale_discounts(self, repos, fake_db):
        fake_db.row = {
            "id": 2, "client_id": None, "user_id": None, "sale_date": NOW,
            "total_items_amount": Decimal("50.00"), "total_items_discount": Decimal("5.00"),
            "total_sale_discount": Decimal("2.50"),
            "total_amount": Decimal("42.50"), "total_discount": Decimal("7.50"),
            "payment_type": "card", "status": "active", "notes": None,
            "version": 1, "created_at": NOW, "updated_at": NOW,
        }
        sale = await repos.sales.create(SaleCreate(
            payment_type="card",
            total_items_amount=Decimal("50"),
            total_items_discount=Decimal("5"),
            total_sale_discount=Decimal("2.50"),
            total_amount=Decimal("42.50"),
            total_discount=Decimal("7.50"),
        ))

        _, sql, args = fake_db.calls[0]
        columns = sql.split("(")[1].split(")")[0]
        assert "total_items_amount, total_items_discount, total_sale_discount" in columns
        assert args[2:5] == (Decimal("50"), Decimal("5"), Decimal("2.50"))
        assert sale.total_sale_discount == Decimal("2.50")

    def test_items_discount_cannot_exceed_items_amount(self):
        with pytest.raises(ValidationError):
            SaleCreate(payment_type="cash", total_items_amount=Decimal("1"), total_items_discount=Decimal("2"))

    @pytest.mark.asyncio
    async def test_update_returns_new_version(self, repos, fake_db):
        fake_db.versions[1] = 1
        updated = await repos.clients.update(1, ClientUpdate(name="Maria Souza", version=1))

        assert updated.version == 2
        assert updated.name == "Maria Souza"
        assert updated.updated_at == NOW

    @pytest.mark.asyncio
    async def test_update_stale(self, repos, fake_db):
        fake_db.versions[1] = 2
        with pytest.raises(VersionConflictError):
            await repos.clients.update(1, ClientUpdate(name="Maria Souza", version=1))
        assert fake_db.statements("UPDATE") == []

    @pytest.mark.asyncio
    async def test_disable_goes_through_version_check(self, repos, fake_db):
        fake_db.versions[5] = 3
        assert await repos.suppliers.disable(5, 3) == 4
        assert "SET status = $1, version = version + 1" in fake_db.statements("UPDATE")[0]

        with pytest.raises(VersionConflictError):
            await repos.suppliers.enable(5, 3)

    @pytest.mark.asyncio
    async def test_delete(self, repos, fake_db):
        fake_db.status = "DELETE 1"
        await repos.clients.delete(1)
        assert fake_db.statements("DELETE") == ["DELETE FROM clients WHERE id = $1"]

    @pytest.mark.asyncio
    async def test_delete_missing(self, repos, fake_db):
        fake_db.status = "DELETE 0"
        with pytest.raises(NotFoundError):
            await repos.clients.delete(1)

    @pytest.mark.asyncio
    async def test_category_update_missing(self, repos, fake_db):
        fake_db.row = None
        with pytest.raises(NotFoundError):
            await repos.categories.update(1, CategoryUpdate(name="Drinks"))
        sql = fake_db.statements("UPDATE")[0]
        assert "version" not in sql
        assert sql.endswith("WHERE id = $3 RETURNING id, name, description, created_at, updated_at")
