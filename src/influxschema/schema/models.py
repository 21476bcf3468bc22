"""
Schema data model for influxschema.

Databases own retention policies; continuous queries are owned by a database
by name. A ``Snapshot`` groups every entity coming from one source: the live
InfluxDB instance or the desired schema files.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional

from ..exceptions import SnapshotError


class SnapshotSource(str, Enum):
    """Origin of a snapshot."""

    LIVE = "live"
    DESIRED = "desired"


@dataclass(frozen=True)
class RetentionPolicy:
    """A retention policy scoped to one database."""

    name: str
    database: str
    duration: str
    shard_duration: str
    replication: Optional[int] = None
    is_default: bool = False

    @property
    def key(self) -> str:
        return f"{self.database}.{self.name}"


@dataclass(frozen=True)
class Database:
    """A database and the retention policies it owns."""

    name: str
    policies: Mapping[str, RetentionPolicy] = field(default_factory=dict)
    # Name of the policy declared inline in CREATE DATABASE ... WITH ... NAME
    inline_policy: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "policies", MappingProxyType(dict(self.policies)))

    @property
    def default_policy(self) -> Optional[RetentionPolicy]:
        for policy in self.policies.values():
            if policy.is_default:
                return policy
        return None


@dataclass(frozen=True)
class ContinuousQuery:
    """A continuous query and its full definition text."""

    name: str
    database: str
    definition: str


@dataclass(frozen=True)
class Snapshot:
    """
    A complete point-in-time view of databases, policies and continuous queries.

    Use ``Snapshot.build`` to construct one; it enforces the uniqueness and
    ownership invariants and raises ``SnapshotError`` on violation.
    """

    source: SnapshotSource
    databases: Mapping[str, Database]
    queries: Mapping[str, Mapping[str, ContinuousQuery]]

    @classmethod
    def build(
        cls,
        source: SnapshotSource,
        databases: Iterable[str],
        policies: Iterable[RetentionPolicy] = (),
        queries: Iterable[ContinuousQuery] = (),
        inline_policies: Optional[Mapping[str, str]] = None,
    ) -> "Snapshot":
        """
        Assemble a snapshot from flat sequences.

        Args:
            source: Where the entities came from
            databases: Database names
            policies: Retention policies, each naming its database
            queries: Continuous queries, each naming its database
            inline_policies: Database name to the policy declared inline with it

        Raises:
            SnapshotError: On duplicates or entities without an owning database
        """
        inline_policies = inline_policies or {}

        policy_map: Dict[str, Dict[str, RetentionPolicy]] = {}
        for name in databases:
            if name in policy_map:
                raise SnapshotError(
                    f"Duplicate database '{name}' in {source.value} snapshot"
                )
            policy_map[name] = {}

        for policy in policies:
            owned = policy_map.get(policy.database)
            if owned is None:
                raise SnapshotError(
                    f"Retention policy '{policy.name}' has no database "
                    f"'{policy.database}' in {source.value} snapshot"
                )
            if policy.name in owned:
                raise SnapshotError(
                    f"Duplicate retention policy '{policy.name}' on database "
                    f"'{policy.database}' in {source.value} snapshot"
                )
            owned[policy.name] = policy

        query_map: Dict[str, Dict[str, ContinuousQuery]] = {}
        for query in queries:
            if query.database not in policy_map:
                raise SnapshotError(
                    f"Continuous query '{query.name}' has no database "
                    f"'{query.database}' in {source.value} snapshot"
                )
            owned_queries = query_map.setdefault(query.database, {})
            if query.name in owned_queries:
                raise SnapshotError(
                    f"Duplicate continuous query '{query.name}' on database "
                    f"'{query.database}' in {source.value} snapshot"
                )
            owned_queries[query.name] = query

        db_objects = {
            name: Database(
                name=name,
                policies=owned,
                inline_policy=inline_policies.get(name),
            )
            for name, owned in policy_map.items()
        }
        return cls(
            source=source,
            databases=MappingProxyType(db_objects),
            queries=MappingProxyType(
                {db: MappingProxyType(qs) for db, qs in query_map.items()}
            ),
        )

    @classmethod
    def empty(cls, source: SnapshotSource) -> "Snapshot":
        return cls.build(source, [])

    def database_names(self) -> List[str]:
        return list(self.databases)

    def policies_of(self, database: str) -> Mapping[str, RetentionPolicy]:
        db = self.databases.get(database)
        return db.policies if db else {}

    def queries_of(self, database: str) -> Mapping[str, ContinuousQuery]:
        return self.queries.get(database, {})

    @property
    def policy_count(self) -> int:
        return sum(len(db.policies) for db in self.databases.values())

    @property
    def query_count(self) -> int:
        return sum(len(qs) for qs in self.queries.values())
