#!/usr/bin/env python3
"""
Store API server entry point

Runs the FastAPI app under uvicorn, or applies schema.sql with --init-db.
Configuration comes from the environment (see config.py).
"""

import asyncio
import logging
import sys
from pathlib import Path

import uvicorn

from config import DatabaseConfig, PaginationConfig, RateLimitConfig, ServerConfig
from database import DatabaseConnection, DatabaseMigration
from transport.http import create_app, create_limiter

__version__ = "1.0.0"

SCHEMA_FILE = Path(__file__).parent / "schema.sql"

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def init_database(config: DatabaseConfig):
    """Apply schema.sql unless tables already exist"""
    db = DatabaseConnection(config)
    await db.connect()
    try:
        await DatabaseMigration(db).initialize_database(str(SCHEMA_FILE))
    finally:
        await db.disconnect()


def run_http_server(server_config: ServerConfig):
    logging.getLogger().setLevel(server_config.log_level)
    app = create_app(
        limiter=create_limiter(RateLimitConfig.from_environment()),
        pagination=PaginationConfig.from_environment(),
    )
    logger.info(f"Store API starting on http://{server_config.host}:{server_config.port}")
    uvicorn.run(app, host=server_config.host, port=server_config.port, log_level=server_config.log_level.lower())


def cli_entry():
    """Entry point for console script"""
    import argparse

    server_config = ServerConfig.from_environment()

    parser = argparse.ArgumentParser(description="Store API server")
    parser.add_argument('--version', '-v', action='store_true', help='Show version')
    parser.add_argument('--init-db', action='store_true', help='Apply schema.sql and exit')
    parser.add_argument('--port', type=int, default=server_config.port, help=f'Port (default: {server_config.port})')
    parser.add_argument('--host', type=str, default=server_config.host, help=f'Host (default: {server_config.host})')

    args = parser.parse_args()

    if args.version:
        print(f"store-api version {__version__}")
        sys.exit(0)

    if args.init_db:
        asyncio.run(init_database(DatabaseConfig.from_environment()))
        return

    server_config.host = args.host
    server_config.port = args.port
    run_http_server(server_config)


if __name__ == "__main__":
    cli_entry()
