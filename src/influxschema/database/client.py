"""
InfluxDB 1.x HTTP client for influxschema.

Submits InfluxQL statements to ``/query`` and parses the JSON response into
typed results. A transport failure raises ``DatabaseConnectionError``; an
error reported by InfluxDB for any statement raises ``QueryError``.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

import aiohttp

from ..config import UpdaterConfig
from ..exceptions import DatabaseConnectionError, QueryError


logger = logging.getLogger(__name__)


@dataclass
class Series:
    """One series of a statement result."""

    name: Optional[str]
    columns: List[str]
    values: List[List[Any]]
    tags: Dict[str, str] = field(default_factory=dict)

    def rows(self) -> List[Dict[str, Any]]:
        return [dict(zip(self.columns, row)) for row in self.values]


@dataclass
class StatementResult:
    """Result of one statement in a ``/query`` submission."""

    statement_id: int
    series: List[Series] = field(default_factory=list)
    error: Optional[str] = None

    def rows(self) -> List[Dict[str, Any]]:
        return [row for series in self.series for row in series.rows()]


@dataclass
class QueryResult:
    """Parsed ``/query`` response."""

    results: List[StatementResult] = field(default_factory=list)
    error: Optional[str] = None

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "QueryResult":
        results = []
        for index, raw in enumerate(data.get("results", [])):
            series = [
                Series(
                    name=s.get("name"),
                    columns=list(s.get("columns", [])),
                    values=[list(v) for v in s.get("values", []) or []],
                    tags=dict(s.get("tags", {}) or {}),
                )
                for s in raw.get("series", []) or []
            ]
            results.append(
                StatementResult(
                    statement_id=raw.get("statement_id", index),
                    series=series,
                    error=raw.get("error"),
                )
            )
        return cls(results=results, error=data.get("error"))

    @property
    def errors(self) -> List[str]:
        errors = [self.error] if self.error else []
        errors.extend(r.error for r in self.results if r.error)
        return errors

    def first(self) -> StatementResult:
        return self.results[0] if self.results else StatementResult(statement_id=0)


class QueryClient(Protocol):
    """Anything that can submit an InfluxQL statement."""

    async def query(self, statement: str) -> QueryResult:
        ...


class InfluxDBClient:
    """
    Async InfluxDB HTTP client.

    Requests are issued one at a time by callers; no retries are attempted.
    """

    def __init__(
        self,
        url: str = "http://localhost:8086",
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout: int = 30,
        verify_ssl: bool = True,
    ):
        self.url = url.rstrip("/")
        self.username = username
        self.password = password
        self.timeout = timeout
        self.verify_ssl = verify_ssl
        self._session: Optional[aiohttp.ClientSession] = None

    @classmethod
    def from_config(cls, config: UpdaterConfig) -> "InfluxDBClient":
        return cls(
            url=config.url,
            username=config.username,
            password=config.password,
            timeout=config.timeout,
            verify_ssl=config.verify_ssl,
        )

    async def __aenter__(self) -> "InfluxDBClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            auth = None
            if self.username:
                auth = aiohttp.BasicAuth(self.username, self.password or "")
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                auth=auth,
                headers={"User-Agent": "influxdb-schema-updater"},
                connector=aiohttp.TCPConnector(ssl=self.verify_ssl),
            )
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def ping(self) -> str:
        """
        Check that InfluxDB answers.

        Returns:
            The server version reported in the ``X-Influxdb-Version`` header

        Raises:
            DatabaseConnectionError: If the instance is unreachable or unhealthy
        """
        session = await self._get_session()
        url = f"{self.url}/ping"
        try:
            async with session.get(url) as response:
                if response.status not in (200, 204):
                    raise DatabaseConnectionError(
                        f"InfluxDB ping failed with HTTP {response.status}",
                        details={"url": url},
                    )
                return response.headers.get("X-Influxdb-Version", "unknown")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise DatabaseConnectionError(
                f"Cannot connect to InfluxDB at {self.url}", cause=e
            ) from e

    async def query(self, statement: str) -> QueryResult:
        """
        Submit ``statement`` and return its parsed result.

        Raises:
            DatabaseConnectionError: On transport failure
            QueryError: If InfluxDB reports an error for any statement
        """
        session = await self._get_session()
        url = f"{self.url}/query"
        logger.debug(f"Query: {statement}")

        try:
            async with session.post(url, data={"q": statement}) as response:
                status = response.status
                try:
                    payload = await response.json(content_type=None)
                except ValueError:
                    payload = None
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise DatabaseConnectionError(
                f"Request to InfluxDB at {self.url} failed", cause=e
            ) from e

        if not isinstance(payload, dict):
            raise QueryError(
                f"Unexpected response from InfluxDB (HTTP {status})",
                statement=statement,
                status_code=status,
            )

        result = QueryResult.from_json(payload)
        if result.errors or status >= 400:
            message = "; ".join(result.errors) or f"HTTP {status}"
            logger.error(f"Statement failed: {statement}: {message}")
            raise QueryError(
                f"InfluxDB error: {message}", statement=statement, status_code=status
            )
        return result
