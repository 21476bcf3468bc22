"""
Exception classes for influxschema.
"""

from typing import Any, Dict, Optional


class InfluxSchemaError(Exception):
    """Base exception for all influxschema errors."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

    def __str__(self) -> str:
        result = self.message
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            result += f" [{details_str}]"
        if self.cause:
            result += f" (caused by: {self.cause})"
        return result


class ConfigurationError(InfluxSchemaError):
    """Raised when there's an error in configuration."""

    pass


class SchemaParseError(ConfigurationError):
    """Raised when a schema file contains a statement that cannot be parsed."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        line_number: Optional[int] = None,
        line: Optional[str] = None,
    ) -> None:
        details = {}
        if path:
            details["file"] = path
        if line_number:
            details["line"] = line_number
        super().__init__(message, details)
        self.path = path
        self.line_number = line_number
        self.line = line


class DuplicateDefinitionError(SchemaParseError):
    """Raised when a database or retention policy is declared twice."""

    def __init__(self, kind: str, name: str, path: Optional[str] = None) -> None:
        super().__init__(f"Duplicate {kind} definition: {name}", path=path)
        self.kind = kind
        self.name = name


class MultipleDefaultPoliciesError(SchemaParseError):
    """Raised when a database declares more than one default retention policy."""

    def __init__(self, database: str, first: str, second: str, path: Optional[str] = None) -> None:
        super().__init__(
            f"Database '{database}' declares both '{first}' and '{second}' as default "
            f"retention policy",
            path=path,
        )
        self.database = database
        self.policies = (first, second)


class UnknownDatabaseError(SchemaParseError):
    """Raised when a retention policy or continuous query names an undeclared database."""

    def __init__(self, kind: str, name: str, database: str, path: Optional[str] = None) -> None:
        super().__init__(
            f"{kind} '{name}' references unknown database '{database}'", path=path
        )
        self.kind = kind
        self.name = name
        self.database = database


class SnapshotError(InfluxSchemaError):
    """Raised when a schema snapshot violates its uniqueness or ownership invariants."""

    pass


class DatabaseError(InfluxSchemaError):
    """Raised when there's an error talking to InfluxDB."""

    pass


class DatabaseConnectionError(DatabaseError):
    """Raised when InfluxDB is unreachable or the transport fails."""

    pass


class QueryError(DatabaseError):
    """Raised when InfluxDB reports an error for a submitted statement."""

    def __init__(
        self,
        message: str,
        statement: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        details = {}
        if status_code:
            details["status_code"] = status_code
        super().__init__(message, details)
        self.statement = statement
        self.status_code = status_code
