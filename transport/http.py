"""
HTTP transport for the store API.

- /{entity} CRUD and /{entity}/filter for clients, suppliers, sales, categories
- PATCH /{entity}/{id}/enable|disable for clients and suppliers
- /healthz: health check endpoint

Every domain error becomes {"status": <code>, "message": <text>}; successes
are {"status", "message", "data"}.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Optional, Type

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.status import (
    HTTP_200_OK,
    HTTP_201_CREATED,
    HTTP_400_BAD_REQUEST,
    HTTP_429_TOO_MANY_REQUESTS,
    HTTP_500_INTERNAL_SERVER_ERROR,
)

from config import DatabaseConfig, PaginationConfig, RateLimitConfig
from container import RepositoryContainer
from database import DatabaseConnection
from errors import StoreDomainError
from models import (
    CategoryCreate, CategoryUpdate,
    ClientCreate, ClientUpdate,
    SaleCreate, SaleUpdate,
    SupplierCreate, SupplierUpdate,
    VersionedUpdate,
)
from utils.rate_limit import TokenBucketLimiter

logger = logging.getLogger(__name__)

# Routes exempt from rate limiting
UNLIMITED_PATHS = {"/healthz"}


def _body(status: int, message: str, data: Any = None) -> dict:
    body: dict = {"status": status, "message": message}
    if data is not None:
        body["data"] = data
    return body


def _label(entity: str) -> str:
    return {"categories": "Category"}.get(entity, entity[:-1].capitalize())


def _register_entity_routes(
    app: FastAPI,
    entity: str,
    create_model: Type[BaseModel],
    update_model: Type[BaseModel],
    toggles_status: bool = False,
):
    """CRUD + filter routes for one entity. /filter is registered before /{record_id}."""
    label = _label(entity)

    def repo(request: Request):
        return request.app.state.repos.get(entity)

    async def create(request: Request, payload: create_model):  # type: ignore[valid-type]
        created = await repo(request).create(payload)
        return JSONResponse(
            status_code=HTTP_201_CREATED,
            content=jsonable_encoder(_body(HTTP_201_CREATED, f"{label} created", created)),
        )

    async def filter_records(request: Request):
        repository = repo(request)
        spec = repository.FILTER.from_query_params(dict(request.query_params))
        page = await repository.filter_page(spec)
        return _body(HTTP_200_OK, f"{label} filter results", page)

    async def get_record(request: Request, record_id: int):
        found = await repo(request).get_by_id(record_id)
        return _body(HTTP_200_OK, f"{label} found", found)

    async def update_record(request: Request, record_id: int, payload: update_model):  # type: ignore[valid-type]
        updated = await repo(request).update(record_id, payload)
        return _body(HTTP_200_OK, f"{label} updated", updated)

    async def delete_record(request: Request, record_id: int):
        await repo(request).delete(record_id)
        return _body(HTTP_200_OK, f"{label} deleted")

    app.add_api_route(f"/{entity}", create, methods=["POST"])
    app.add_api_route(f"/{entity}/filter", filter_records, methods=["GET"])
    app.add_api_route(f"/{entity}/{{record_id}}", get_record, methods=["GET"])
    app.add_api_route(f"/{entity}/{{record_id}}", update_record, methods=["PUT"])
    app.add_api_route(f"/{entity}/{{record_id}}", delete_record, methods=["DELETE"])

    if toggles_status:
        async def enable(request: Request, record_id: int, payload: Optional[VersionedUpdate] = None):
            version = await repo(request).enable(record_id, payload.version if payload else None)
            return _body(HTTP_200_OK, f"{label} enabled", {"id": record_id, "version": version})

        async def disable(request: Request, record_id: int, payload: Optional[VersionedUpdate] = None):
            version = await repo(request).disable(record_id, payload.version if payload else None)
            return _body(HTTP_200_OK, f"{label} disabled", {"id": record_id, "version": version})

        app.add_api_route(f"/{entity}/{{record_id}}/enable", enable, methods=["PATCH"])
        app.add_api_route(f"/{entity}/{{record_id}}/disable", disable, methods=["PATCH"])


def create_app(
    container: Optional[RepositoryContainer] = None,
    limiter: Optional[TokenBucketLimiter] = None,
    db_config: Optional[DatabaseConfig] = None,
    pagination: Optional[PaginationConfig] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    With `container` given the app uses it as is (tests); otherwise the pool
    is opened on startup from `db_config` or the environment and closed on
    shutdown. `limiter` None disables rate limiting.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        db: Optional[DatabaseConnection] = None
        if app.state.repos is None:
            config = db_config or DatabaseConfig.from_environment()
            db = DatabaseConnection(config)
            await db.connect()
            app.state.repos = RepositoryContainer(db, pagination or PaginationConfig.from_environment())
            logger.info(f"Connected to database: {config.database} at {config.host}")
        try:
            yield
        finally:
            if db is not None:
                await db.disconnect()
                logger.info("Database connection closed")

    app = FastAPI(title="Store API", lifespan=lifespan)
    app.state.repos = container
    app.state.limiter = limiter

    @app.exception_handler(StoreDomainError)
    async def domain_error_handler(request: Request, exc: StoreDomainError):
        if exc.status_code >= HTTP_500_INTERNAL_SERVER_ERROR:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = [
            {
                "code": "INVALID_DATA",
                "path": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
                "message": err.get("msg", "invalid value"),
            }
            for err in exc.errors()
        ]
        message = "; ".join(f"{e['path']}: {e['message']}" for e in errors) or "Invalid data"
        return JSONResponse(
            status_code=HTTP_400_BAD_REQUEST,
            content={"status": HTTP_400_BAD_REQUEST, "message": message, "errors": errors},
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
        return JSONResponse(
            status_code=HTTP_500_INTERNAL_SERVER_ERROR,
            content={"status": HTTP_500_INTERNAL_SERVER_ERROR, "message": "Internal server error"},
        )

    @app.middleware("http")
    async def rate_limit(request: Request, call_next):
        active = request.app.state.limiter
        if active is None or request.url.path in UNLIMITED_PATHS:
            return await call_next(request)

        key = request.client.host if request.client else "unknown"
        result = active.hit(key)
        if not result.allowed:
            return JSONResponse(
                status_code=HTTP_429_TOO_MANY_REQUESTS,
                content={"status": HTTP_429_TOO_MANY_REQUESTS, "message": "Too many requests"},
                headers={"Retry-After": str(result.retry_after_seconds)},
            )
        return await call_next(request)

    @app.get("/healthz")
    async def health_check(request: Request):
        """Health check endpoint"""
        repos = request.app.state.repos
        db = getattr(repos, "db", None)
        if db is not None and await db.check_connection():
            stats = await db.get_pool_stats()
            return {"status": "healthy", "database": "connected", "pool": stats}
        return JSONResponse(
            status_code=HTTP_500_INTERNAL_SERVER_ERROR,
            content={"status": "unhealthy", "error": "Database not available"},
        )

    _register_entity_routes(app, "clients", ClientCreate, ClientUpdate, toggles_status=True)
    _register_entity_routes(app, "suppliers", SupplierCreate, SupplierUpdate, toggles_status=True)
    _register_entity_routes(app, "sales", SaleCreate, SaleUpdate)
    _register_entity_routes(app, "categories", CategoryCreate, CategoryUpdate)

    return app


def create_limiter(config: Optional[RateLimitConfig] = None) -> Optional[TokenBucketLimiter]:
    config = config or RateLimitConfig.from_environment()
    if not config.enabled:
        return None
    return TokenBucketLimiter.from_config(config)
