"""
Repository Container - Centralized dependency injection container

Single place where repositories are built, so the HTTP app and the tests
wire them the same way.
"""

from typing import Optional

from config import PaginationConfig
from query import QueryCompiler
from repositories import (
    CategoriesRepository,
    ClientsRepository,
    SalesRepository,
    SuppliersRepository,
)


class RepositoryContainer:
    """
    Container for repository instances with attribute access.

    All repositories share one QueryCompiler, so pagination bounds are the
    same on every endpoint.
    """
    def __init__(self, db, pagination: Optional[PaginationConfig] = None):
        self.db = db
        self.pagination = pagination or PaginationConfig()
        compiler = QueryCompiler(self.pagination)
        timeout = getattr(getattr(db, "config", None), "command_timeout", None)

        self.clients = ClientsRepository(db, compiler, timeout)
        self.suppliers = SuppliersRepository(db, compiler, timeout)
        self.sales = SalesRepository(db, compiler, timeout)
        self.categories = CategoriesRepository(db, compiler, timeout)

    def get(self, entity: str):
        """Repository for a route segment such as 'clients'. Raises KeyError."""
        repo = getattr(self, entity, None)
        if repo is None or not hasattr(repo, "ENTITY"):
            raise KeyError(entity)
        return repo
