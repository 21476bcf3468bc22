"""
InfluxDB integration package for influxschema.

This package provides:
- Async HTTP client for the InfluxDB 1.x query API
- Live schema introspection
"""

from .client import InfluxDBClient, QueryResult, StatementResult, Series
from .introspection import SchemaIntrospector

__all__ = [
    "InfluxDBClient",
    "QueryResult",
    "StatementResult",
    "Series",
    "SchemaIntrospector",
]
