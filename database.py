"""
Database connection management and utilities
Async PostgreSQL operations using asyncpg
"""

import asyncpg
import logging
import re
from typing import Optional, List, Dict, Any
from contextlib import asynccontextmanager

from config import DatabaseConfig

logger = logging.getLogger(__name__)

_ROWS_AFFECTED_RE = re.compile(r"(\d+)\s*$")


def rows_affected(status: str) -> int:
    """
    Extract the row count from an asyncpg command tag.

    "DELETE 3" -> 3, "UPDATE 0" -> 0, "INSERT 0 1" -> 1
    """
    match = _ROWS_AFFECTED_RE.search(status or "")
    return int(match.group(1)) if match else 0


class DatabaseConnection:
    """
    Manages PostgreSQL connection pool and provides database operations.

    Holds no per-request state; safe to share across concurrent requests.
    The pool is the only shared resource.
    """

    def __init__(self, config: DatabaseConfig):
        self.config = config
        self.pool: Optional[asyncpg.Pool] = None

    async def connect(self):
        """Initialize connection pool"""
        if self.pool is not None:
            logger.warning("Connection pool already initialized")
            return

        if self.config.ssl_mode == 'require':
            ssl_setting = True
        elif self.config.ssl_mode == 'disable':
            ssl_setting = False
        else:
            ssl_setting = 'prefer'

        try:
            self.pool = await asyncpg.create_pool(
                host=self.config.host,
                port=self.config.port,
                database=self.config.database,
                user=self.config.user,
                password=self.config.password,
                min_size=self.config.min_pool_size,
                max_size=self.config.max_pool_size,
                command_timeout=self.config.command_timeout,
                ssl=ssl_setting,
            )
            logger.info(f"Connected to PostgreSQL at {self.config.host}:{self.config.port}")
        except Exception as e:
            logger.error(f"Failed to connect to database: {e}")
            raise

    async def disconnect(self):
        """Close connection pool"""
        if self.pool is not None:
            await self.pool.close()
            self.pool = None
            logger.info("Database connection pool closed")

    @asynccontextmanager
    async def acquire(self):
        """
        Acquire a connection from the pool.

        Usage:
            async with db.acquire() as conn:
                rows = await conn.fetch("SELECT * FROM clients")

        The connection is reset before it goes back to the pool if the
        block raised.
        """
        if self.pool is None:
            raise RuntimeError("Database not connected. Call connect() first.")

        async with self.pool.acquire() as connection:
            try:
                yield connection
            except Exception as e:
                logger.debug(f"Error during database operation: {e}")
                try:
                    await connection.reset()
                except Exception as reset_error:
                    logger.error(f"Failed to reset connection: {reset_error}")
                raise

    async def execute(
        self,
        query: str,
        *args,
        timeout: Optional[float] = None
    ) -> str:
        """
        Execute a query without returning results

        Returns:
            Status string (e.g., "DELETE 1"); see rows_affected()
        """
        async with self.acquire() as conn:
            return await conn.execute(query, *args, timeout=timeout)

    async def fetch(
        self,
        query: str,
        *args,
        timeout: Optional[float] = None
    ) -> List[asyncpg.Record]:
        """Fetch multiple rows"""
        async with self.acquire() as conn:
            return await conn.fetch(query, *args, timeout=timeout)

    async def fetchrow(
        self,
        query: str,
        *args,
        timeout: Optional[float] = None
    ) -> Optional[asyncpg.Record]:
        """Fetch a single row, or None"""
        async with self.acquire() as conn:
            return await conn.fetchrow(query, *args, timeout=timeout)

    async def fetchval(
        self,
        query: str,
        *args,
        column: int = 0,
        timeout: Optional[float] = None
    ) -> Any:
        """Fetch a single value"""
        async with self.acquire() as conn:
            return await conn.fetchval(query, *args, column=column, timeout=timeout)

    @asynccontextmanager
    async def cursor(
        self,
        query: str,
        *args,
        timeout: Optional[float] = None
    ):
        """
        Open a server-side cursor for batched reads.

        Usage:
            async with db.cursor(sql, *args) as cur:
                while batch := await cur.fetch(100):
                    ...

        Entering the block executes the statement; each cur.fetch() pulls the
        next batch. Cursors only live inside a transaction, so one is opened
        for the duration of the block.
        """
        async with self.acquire() as conn:
            async with conn.transaction():
                cur = await conn.cursor(query, *args, timeout=timeout)
                yield cur

    async def check_connection(self) -> bool:
        """Check if database connection is healthy"""
        try:
            result = await self.fetchval("SELECT 1")
            return result == 1
        except Exception as e:
            logger.error(f"Connection check failed: {e}")
            return False

    async def get_pool_stats(self) -> Dict[str, Any]:
        """Get connection pool statistics for monitoring."""
        if self.pool is None:
            return {
                'status': 'disconnected',
                'size': 0,
                'freesize': 0
            }

        return {
            'status': 'connected',
            'size': self.pool.get_size(),
            'freesize': self.pool.get_idle_size(),
            'min_size': self.config.min_pool_size,
            'max_size': self.config.max_pool_size
        }


class DatabaseMigration:
    """Apply schema.sql to an empty database"""

    def __init__(self, db: DatabaseConnection):
        self.db = db

    async def apply_schema(self, schema_file: str):
        """Execute the entire schema file in a single transaction"""
        logger.info(f"Applying schema from {schema_file}...")

        with open(schema_file, 'r', encoding='utf-8') as f:
            schema_sql = f.read()

        async with self.db.acquire() as conn:
            async with conn.transaction():
                await conn.execute(schema_sql)
        logger.info("Schema applied successfully")

    async def check_schema_exists(self) -> bool:
        """Check whether any table exists in the public schema"""
        count = await self.db.fetchval("""
            SELECT COUNT(*)
            FROM information_schema.tables
            WHERE table_schema = 'public'
            AND table_type = 'BASE TABLE'
        """)
        return bool(count)

    async def initialize_database(self, schema_file: str):
        if await self.check_schema_exists():
            logger.warning("Database schema already exists. Skipping initialization.")
            return
        await self.apply_schema(schema_file)
