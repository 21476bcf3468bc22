"""
influxschema: declarative schema management for InfluxDB 1.x.

Databases, retention policies and continuous queries are declared in InfluxQL
files and reconciled against a running instance with a minimal, ordered set of
CREATE, ALTER and DROP statements.
"""

__version__ = "0.1.0"

from .config import UpdaterConfig
from .exceptions import InfluxSchemaError, ConfigurationError, DatabaseError, SchemaParseError

__all__ = [
    "__version__",
    "UpdaterConfig",
    "InfluxSchemaError",
    "ConfigurationError",
    "DatabaseError",
    "SchemaParseError",
]
