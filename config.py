"""
Configuration for the store backend
Supports local development, testing, and production deployment
Environment-aware configuration based on APP_ENV
"""

import os
from dataclasses import dataclass
from typing import Optional, Literal
from urllib.parse import quote_plus
from pathlib import Path
from dotenv import load_dotenv

# Environment modes
EnvironmentMode = Literal["development", "test", "production"]

# Hard ceiling for any page size, regardless of PAGINATION_MAX_LIMIT
ABSOLUTE_MAX_LIMIT = 1000


def load_app_environment(mode: Optional[str] = None) -> str:
    """
    Load environment variables from the appropriate .env file.

    Priority:
    1. Explicit 'mode' argument
    2. APP_ENV environment variable
    3. Default to 'development'

    Loads .env.{mode} if it exists. Host variables win over file values.
    """
    if not mode:
        mode = os.getenv('APP_ENV', 'development')

    env_file = Path(__file__).parent / f'.env.{mode}'
    if env_file.exists():
        load_dotenv(env_file, override=False)

    return mode


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _env_bool(name: str, default: bool) -> bool:
    return os.getenv(name, "true" if default else "false").lower() in ("true", "1", "yes")


@dataclass
class DatabaseConfig:
    """PostgreSQL database configuration"""

    host: str
    port: int
    database: str
    user: str
    password: str

    # Connection pool settings
    min_pool_size: int = 2
    max_pool_size: int = 10
    command_timeout: int = 30  # seconds

    ssl_mode: str = "require"

    @property
    def asyncpg_dsn(self) -> str:
        """Get asyncpg DSN format"""
        return (
            f"postgresql://{self.user}:{quote_plus(self.password)}"
            f"@{self.host}:{self.port}/{self.database}"
        )

    @classmethod
    def from_environment(cls, mode: Optional[EnvironmentMode] = None) -> 'DatabaseConfig':
        """
        Load configuration from environment variables

        Environment variables:
        - APP_ENV: Environment mode (development, test, production)
        - DB_HOST: Database host (default: localhost)
        - DB_PORT: Database port (default: 5432)
        - DB_NAME: Database name (default: store_db)
        - DB_USER: Database user
        - DB_PASSWORD: Database password
        - DB_SSL_MODE: SSL mode (default: prefer in development, require otherwise)
        - DB_COMMAND_TIMEOUT: Per-statement deadline in seconds
        """
        mode = load_app_environment(mode)

        config = cls(
            host=os.getenv('DB_HOST', 'localhost'),
            port=_env_int('DB_PORT', 5432),
            database=os.getenv('DB_NAME', 'store_db'),
            user=os.getenv('DB_USER', 'postgres'),
            password=os.getenv('DB_PASSWORD', ''),
            ssl_mode=os.getenv('DB_SSL_MODE', 'prefer' if mode in ('development', 'test') else 'require'),
            min_pool_size=_env_int('DB_MIN_POOL_SIZE', 2),
            max_pool_size=_env_int('DB_MAX_POOL_SIZE', 10),
            command_timeout=_env_int('DB_COMMAND_TIMEOUT', 30),
        )

        config.validate_safety(mode)
        return config

    def validate_safety(self, mode: str):
        """Ensure configuration is safe for the requested mode"""
        if mode == 'test':
            if 'test' not in self.database:
                raise ValueError(f"SAFETY ERROR: Test mode requested but database is '{self.database}'. Test database must contain 'test'.")
            if 'prod' in self.database:
                raise ValueError(f"SAFETY ERROR: Test mode requested but database '{self.database}' appears to be production.")

    @classmethod
    def for_local_development(cls) -> 'DatabaseConfig':
        """Configuration for local PostgreSQL instance"""
        return cls(
            host='localhost',
            port=5432,
            database='store_db',
            user='postgres',
            password='postgres',
            ssl_mode='prefer',
            min_pool_size=2,
            max_pool_size=5,
        )

    @classmethod
    def for_testing(cls) -> 'DatabaseConfig':
        """Configuration for test PostgreSQL database"""
        return cls(
            host='localhost',
            port=5432,
            database='store_test',
            user='postgres',
            password='postgres',
            ssl_mode='prefer',
            min_pool_size=1,
            max_pool_size=5,
        )


@dataclass
class PaginationConfig:
    """
    Page-size bounds applied to every filter endpoint.

    Environment Variables:
    - PAGINATION_DEFAULT_LIMIT: limit used when the caller sends none (default: 10)
    - PAGINATION_MAX_LIMIT: largest accepted limit (default: 100, capped at 1000)
    - PAGINATION_MAX_OFFSET: largest accepted offset (default: 10000)
    """
    default_limit: int = 10
    max_limit: int = 100
    max_offset: int = 10_000

    def __post_init__(self):
        self.max_limit = min(self.max_limit, ABSOLUTE_MAX_LIMIT)
        self.default_limit = min(self.default_limit, self.max_limit)

    @classmethod
    def from_environment(cls) -> "PaginationConfig":
        return cls(
            default_limit=_env_int("PAGINATION_DEFAULT_LIMIT", 10),
            max_limit=_env_int("PAGINATION_MAX_LIMIT", 100),
            max_offset=_env_int("PAGINATION_MAX_OFFSET", 10_000),
        )


@dataclass
class RateLimitConfig:
    """
    Per-client token bucket settings.

    Environment Variables:
    - RATE_LIMIT_ENABLED: toggle the limiter (default: true)
    - RATE_LIMIT_RATE: tokens refilled per second (default: 5)
    - RATE_LIMIT_BURST: bucket capacity (default: 10)
    - RATE_LIMIT_MAX_KEYS: most client keys tracked at once (default: 10000)
    - RATE_LIMIT_IDLE_SECONDS: idle keys older than this are evicted (default: 180)
    """
    enabled: bool = True
    rate: float = 5.0
    burst: int = 10
    max_keys: int = 10_000
    idle_seconds: float = 180.0

    @classmethod
    def from_environment(cls) -> "RateLimitConfig":
        return cls(
            enabled=_env_bool("RATE_LIMIT_ENABLED", True),
            rate=float(os.getenv("RATE_LIMIT_RATE", "5")),
            burst=_env_int("RATE_LIMIT_BURST", 10),
            max_keys=_env_int("RATE_LIMIT_MAX_KEYS", 10_000),
            idle_seconds=float(os.getenv("RATE_LIMIT_IDLE_SECONDS", "180")),
        )


@dataclass
class ServerConfig:
    """HTTP entry point settings (SERVER_HOST, SERVER_PORT, LOG_LEVEL)."""
    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "INFO"

    @classmethod
    def from_environment(cls) -> "ServerConfig":
        return cls(
            host=os.getenv("SERVER_HOST", "0.0.0.0"),
            port=_env_int("SERVER_PORT", 8080),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )


# Utility functions
def get_environment_mode() -> EnvironmentMode:
    """Get current environment mode from APP_ENV variable"""
    mode = os.getenv('APP_ENV', 'development').lower()
    if mode not in ('development', 'test', 'production'):
        mode = 'development'
    return mode  # type: ignore
