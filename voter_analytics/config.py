"""
Centralized configuration management.

Configuration is loaded from:
1. Environment variables
2. .env file (if present)
3. Default values

Usage:
    from voter_analytics.config import get_config
    config = get_config()
    print(config.db.voter_table)
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .exceptions import ConfigurationError

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _load_dotenv(dotenv_path: Optional[Path] = None) -> None:
    """
    Minimal .env loader.

    Supports KEY=VALUE, ignores blank lines and comments (#).
    Does not override existing environment variables.
    """
    if dotenv_path is None:
        dotenv_path = Path.cwd() / ".env"

    if not dotenv_path.exists() or not dotenv_path.is_file():
        return

    for raw_line in dotenv_path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if not key:
            continue
        if os.getenv(key) in (None, ""):
            os.environ[key] = value


_load_dotenv()


def _get_bool_env(key: str, default: bool = False) -> bool:
    """Get boolean from environment variable."""
    value = os.getenv(key, "").strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    return default


def _get_int_env(key: str, default: int) -> int:
    """Get integer from environment variable."""
    value = os.getenv(key, "").strip()
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_float_env(key: str, default: float) -> float:
    """Get float from environment variable."""
    value = os.getenv(key, "").strip()
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def is_identifier(name: str) -> bool:
    """True if name is a plain, unquoted SQL identifier."""
    return bool(name) and bool(_IDENTIFIER_RE.match(name))


@dataclass
class DBConfig:
    """Database configuration (PostgreSQL + PostGIS)."""
    host: str = field(default_factory=lambda: os.getenv("DB_HOST", ""))
    port: int = field(default_factory=lambda: _get_int_env("DB_PORT", 5432))
    name: str = field(default_factory=lambda: os.getenv("DB_NAME", ""))
    user: str = field(default_factory=lambda: os.getenv("DB_USER", ""))
    password: str = field(default_factory=lambda: os.getenv("DB_PASSWORD", ""))
    schema: str = field(default_factory=lambda: os.getenv("DB_SCHEMA", "public"))
    ssl_mode: str = field(default_factory=lambda: os.getenv("DB_SSL_MODE", "prefer"))

    # Connection pool bounds
    pool_min: int = field(default_factory=lambda: _get_int_env("DB_POOL_MIN", 1))
    pool_max: int = field(default_factory=lambda: _get_int_env("DB_POOL_MAX", 10))

    # Source tables
    voter_table: str = field(
        default_factory=lambda: os.getenv("VOTER_TABLE", "ga_voter_registration_list")
    )
    census_table: str = field(
        default_factory=lambda: os.getenv("CENSUS_TABLE", "stg_processed_census_tract_data")
    )

    @property
    def is_configured(self) -> bool:
        """Check if minimal DB config is present."""
        return bool(self.host and self.name and self.user)

    def qualified_table(self, table: str) -> str:
        """
        Return ``schema.table`` for use in generated SQL.

        Both parts are checked against the plain identifier pattern, so the
        result can be placed in a statement without quoting.

        Raises:
            ConfigurationError: if the schema or table name is missing or invalid
        """
        if not is_identifier(self.schema):
            raise ConfigurationError(
                f"Invalid or missing database schema name: {self.schema!r}",
                config_key="DB_SCHEMA",
            )
        if not is_identifier(table):
            raise ConfigurationError(
                f"Invalid or missing table name: {table!r}",
                config_key="VOTER_TABLE/CENSUS_TABLE",
            )
        return f"{self.schema}.{table}"

    @property
    def qualified_voter_table(self) -> str:
        return self.qualified_table(self.voter_table)

    @property
    def qualified_census_table(self) -> str:
        return self.qualified_table(self.census_table)


@dataclass
class CacheConfig:
    """Query-result cache configuration."""
    enabled: bool = field(default_factory=lambda: _get_bool_env("QUERY_CACHE_ENABLED", True))
    max_entries: int = field(default_factory=lambda: _get_int_env("QUERY_CACHE_MAX_ENTRIES", 512))
    ttl_sec: float = field(default_factory=lambda: _get_float_env("QUERY_CACHE_TTL_SEC", 3600.0))


@dataclass
class LookupConfig:
    """Field-value lookup configuration."""
    max_workers: int = field(default_factory=lambda: _get_int_env("LOOKUP_MAX_WORKERS", 4))


@dataclass
class Config:
    """
    Main application configuration.

    All settings are loaded from environment variables with sensible defaults.
    Set DEBUG=1 in environment to enable debug logging.
    """

    debug: bool = field(default_factory=lambda: _get_bool_env("DEBUG", False))
    log_to_file: bool = field(default_factory=lambda: _get_bool_env("LOG_TO_FILE", False))
    logs_dir: Path = field(default_factory=lambda: Path(os.getenv("LOG_DIR", "logs")))

    db: DBConfig = field(default_factory=DBConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    lookup: LookupConfig = field(default_factory=LookupConfig)


# Global config instance (lazily initialized)
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def reset_config() -> None:
    """Reset the global configuration (useful for testing)."""
    global _config
    _config = None
