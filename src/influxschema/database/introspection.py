"""
Live schema introspection for influxschema.

Reads databases, retention policies and continuous queries from a running
InfluxDB instance and reshapes them into a live ``Snapshot``.
"""

import logging
from typing import Any, Dict, List

from ..exceptions import DatabaseError
from ..schema.models import ContinuousQuery, RetentionPolicy, Snapshot, SnapshotSource
from ..schema.operations import quote_identifier
from .client import QueryClient


logger = logging.getLogger(__name__)

# Monitoring database maintained by InfluxDB itself; never managed.
SYSTEM_DATABASE = "_internal"


class SchemaIntrospector:
    """Loads the live schema through a query client."""

    def __init__(self, client: QueryClient):
        self.client = client

    async def list_databases(self) -> List[str]:
        result = await self.client.query("SHOW DATABASES")
        names = [row["name"] for row in result.first().rows()]
        return [name for name in names if name != SYSTEM_DATABASE]

    async def list_retention_policies(self, database: str) -> List[RetentionPolicy]:
        result = await self.client.query(
            f"SHOW RETENTION POLICIES ON {quote_identifier(database)}"
        )
        return [self._policy_from_row(database, row) for row in result.first().rows()]

    async def list_continuous_queries(self) -> List[ContinuousQuery]:
        result = await self.client.query("SHOW CONTINUOUS QUERIES")
        queries = []
        for series in result.first().series:
            if series.name == SYSTEM_DATABASE:
                continue
            for row in series.rows():
                queries.append(
                    ContinuousQuery(
                        name=row["name"], database=series.name, definition=row["query"]
                    )
                )
        return queries

    async def load_snapshot(self) -> Snapshot:
        """
        Read the complete live schema.

        Raises:
            DatabaseConnectionError: If InfluxDB cannot be reached
            QueryError: If any SHOW statement fails
        """
        databases = await self.list_databases()
        policies: List[RetentionPolicy] = []
        for database in databases:
            policies.extend(await self.list_retention_policies(database))
        queries = [
            q for q in await self.list_continuous_queries() if q.database in databases
        ]

        snapshot = Snapshot.build(SnapshotSource.LIVE, databases, policies, queries)
        logger.info(
            f"Loaded live schema: {len(snapshot.databases)} databases, "
            f"{snapshot.policy_count} retention policies, {snapshot.query_count} continuous queries"
        )
        return snapshot

    @staticmethod
    def _policy_from_row(database: str, row: Dict[str, Any]) -> RetentionPolicy:
        try:
            return RetentionPolicy(
                name=row["name"],
                database=database,
                duration=row["duration"],
                shard_duration=row["shardGroupDuration"],
                replication=row.get("replicaN"),
                is_default=bool(row.get("default", False)),
            )
        except KeyError as e:
            raise DatabaseError(
                f"Unexpected SHOW RETENTION POLICIES row on {database}: missing {e}",
                details={"row": row},
            )
