"""
Change records and the InfluxQL statements they carry.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .models import ContinuousQuery, Database, RetentionPolicy


class Action(str, Enum):
    """What a change record does to its object."""

    DELETE = "delete"
    UPDATE = "update"
    CREATE = "create"


class ObjectKind(str, Enum):
    """Kinds of schema objects managed by the updater."""

    DATABASE = "database"
    RETENTION_POLICY = "retention_policy"
    CONTINUOUS_QUERY = "continuous_query"


# Replication factor asserted by every ALTER RETENTION POLICY.
ALTER_REPLICATION = 1


@dataclass(frozen=True)
class ChangeRecord:
    """A single schema operation and whether policy withholds it."""

    action: Action
    object_kind: ObjectKind
    database: str
    name: str
    statement: str
    skipped: bool = False

    @property
    def is_destructive(self) -> bool:
        return self.action == Action.DELETE

    @property
    def description(self) -> str:
        kind = self.object_kind.value.replace("_", " ")
        if self.object_kind == ObjectKind.DATABASE:
            return f"{self.action.value} {kind} {self.name}"
        return f"{self.action.value} {kind} {self.name} on {self.database}"


def quote_identifier(name: str) -> str:
    """Double-quote an InfluxQL identifier."""
    escaped = name.replace("\\", "\\\\").replace("\"", "\\\"")
    return f"\"{escaped}\""


def _policy_clause(policy: RetentionPolicy, replication: Optional[int]) -> str:
    return (
        f"DURATION {policy.duration} REPLICATION {replication} "
        f"SHARD DURATION {policy.shard_duration}"
    )


def create_database_statement(database: Database) -> str:
    statement = f"CREATE DATABASE {quote_identifier(database.name)}"
    if database.inline_policy is not None:
        policy = database.policies[database.inline_policy]
        statement += (
            f" WITH {_policy_clause(policy, policy.replication)} "
            f"NAME {quote_identifier(policy.name)}"
        )
    return statement


def drop_database_statement(name: str) -> str:
    return f"DROP DATABASE {quote_identifier(name)}"


def create_policy_statement(policy: RetentionPolicy) -> str:
    statement = (
        f"CREATE RETENTION POLICY {quote_identifier(policy.name)} "
        f"ON {quote_identifier(policy.database)} "
        f"{_policy_clause(policy, policy.replication)}"
    )
    return statement + " DEFAULT" if policy.is_default else statement


def alter_policy_statement(policy: RetentionPolicy) -> str:
    statement = (
        f"ALTER RETENTION POLICY {quote_identifier(policy.name)} "
        f"ON {quote_identifier(policy.database)} "
        f"{_policy_clause(policy, ALTER_REPLICATION)}"
    )
    return statement + " DEFAULT" if policy.is_default else statement


def drop_policy_statement(database: str, name: str) -> str:
    return f"DROP RETENTION POLICY {quote_identifier(name)} ON {quote_identifier(database)}"


def drop_query_statement(database: str, name: str) -> str:
    return f"DROP CONTINUOUS QUERY {quote_identifier(name)} ON {quote_identifier(database)}"


def replace_query_statement(query: ContinuousQuery) -> str:
    """Drop and re-create a continuous query in one submission."""
    return f"{drop_query_statement(query.database, query.name)}; {query.definition}"


def delete_database(name: str) -> ChangeRecord:
    return ChangeRecord(
        Action.DELETE, ObjectKind.DATABASE, name, name, drop_database_statement(name)
    )


def create_database(database: Database) -> ChangeRecord:
    return ChangeRecord(
        Action.CREATE,
        ObjectKind.DATABASE,
        database.name,
        database.name,
        create_database_statement(database),
    )


def delete_policy(database: str, name: str) -> ChangeRecord:
    return ChangeRecord(
        Action.DELETE,
        ObjectKind.RETENTION_POLICY,
        database,
        name,
        drop_policy_statement(database, name),
    )


def create_policy(policy: RetentionPolicy) -> ChangeRecord:
    return ChangeRecord(
        Action.CREATE,
        ObjectKind.RETENTION_POLICY,
        policy.database,
        policy.name,
        create_policy_statement(policy),
    )


def update_policy(policy: RetentionPolicy) -> ChangeRecord:
    return ChangeRecord(
        Action.UPDATE,
        ObjectKind.RETENTION_POLICY,
        policy.database,
        policy.name,
        alter_policy_statement(policy),
    )


def delete_query(database: str, name: str) -> ChangeRecord:
    return ChangeRecord(
        Action.DELETE,
        ObjectKind.CONTINUOUS_QUERY,
        database,
        name,
        drop_query_statement(database, name),
    )


def create_query(query: ContinuousQuery) -> ChangeRecord:
    return ChangeRecord(
        Action.CREATE,
        ObjectKind.CONTINUOUS_QUERY,
        query.database,
        query.name,
        query.definition,
    )


def update_query(query: ContinuousQuery) -> ChangeRecord:
    return ChangeRecord(
        Action.UPDATE,
        ObjectKind.CONTINUOUS_QUERY,
        query.database,
        query.name,
        replace_query_statement(query),
    )
