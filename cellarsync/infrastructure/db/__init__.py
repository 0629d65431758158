from .config import (
    DEFAULT_DB_TIMEOUT,
    ConfigError,
    get_default_timeout,
    get_path_config,
    load_config,
    load_section,
)
from .connection import DatabaseError, apply_pragmas, get_connection, iso_utcnow
from .schema import SchemaMigrator, ensure_schema

__all__ = [
    "ConfigError",
    "DEFAULT_DB_TIMEOUT",
    "DatabaseError",
    "SchemaMigrator",
    "apply_pragmas",
    "ensure_schema",
    "get_connection",
    "get_default_timeout",
    "get_path_config",
    "iso_utcnow",
    "load_config",
    "load_section",
]
