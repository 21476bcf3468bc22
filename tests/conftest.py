"""
Pytest configuration and shared fixtures for influxschema tests.

This module provides an in-memory stand-in for an InfluxDB instance plus
helpers for building schema directories and snapshots.
"""

import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from influxschema.database.client import QueryResult
from influxschema.exceptions import QueryError
from influxschema.logging_config import PACKAGE_LOGGER
from influxschema.schema.models import ContinuousQuery, RetentionPolicy, Snapshot, SnapshotSource
from influxschema.schema.normalize import duration_to_seconds
from influxschema.schema.parser import DatabaseStatement, extract_continuous_queries, parse_statement


# ============================================================================
# Fake InfluxDB
# ============================================================================

_NAME = r'(?:"((?:[^"\\]|\\.)*)"|(\S+?))'
_SHOW_POLICIES = re.compile(rf"^SHOW RETENTION POLICIES ON {_NAME}$", re.IGNORECASE)
_DROP_DATABASE = re.compile(rf"^DROP DATABASE {_NAME}$", re.IGNORECASE)
_DROP_POLICY = re.compile(rf"^DROP RETENTION POLICY {_NAME} ON {_NAME}$", re.IGNORECASE)
_DROP_QUERY = re.compile(rf"^DROP CONTINUOUS QUERY {_NAME} ON {_NAME}$", re.IGNORECASE)


def _unquote(quoted: Optional[str], bare: Optional[str]) -> str:
    if quoted is None:
        return bare
    return re.sub(r"\\(.)", r"\1", quoted)


def influx_duration(literal: str) -> str:
    """Render a duration the way InfluxDB reports it, e.g. ``168h0m0s``."""
    seconds = duration_to_seconds(literal)
    if seconds == 0:
        return "0s"
    hours, rest = divmod(seconds, 3600)
    minutes, seconds = divmod(rest, 60)
    return f"{hours}h{minutes}m{seconds}s"


class FakeInfluxClient:
    """
    In-memory InfluxDB 1.x that understands the statements the updater emits.

    A plain ``CREATE DATABASE`` also creates the ``autogen`` policy, as
    InfluxDB does.
    """

    def __init__(self, create_autogen: bool = True):
        self.create_autogen = create_autogen
        self.databases: Dict[str, Dict[str, Dict[str, Any]]] = {"_internal": {}}
        self.queries: Dict[str, Dict[str, str]] = {"_internal": {}}
        self.statements: List[str] = []
        self.fail_on: Optional[str] = None

    @property
    def writes(self) -> List[str]:
        return [s for s in self.statements if not s.upper().startswith("SHOW")]

    async def __aenter__(self) -> "FakeInfluxClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        return None

    async def ping(self) -> str:
        return "1.8.10"

    async def query(self, statement: str) -> QueryResult:
        self.statements.append(statement)
        if self.fail_on is not None and self.fail_on in statement:
            raise QueryError("injected failure", statement=statement, status_code=400)

        if statement.upper().startswith("DROP CONTINUOUS QUERY") and "; " in statement:
            drop, create = statement.split("; ", 1)
            self._execute(drop)
            return self._execute(create)
        return self._execute(statement)

    # Seeding helpers

    def add_database(self, name: str) -> None:
        self.databases.setdefault(name, {})
        self.queries.setdefault(name, {})

    def add_policy(
        self,
        database: str,
        name: str,
        duration: str,
        shard_duration: str,
        replication: int = 1,
        default: bool = False,
    ) -> None:
        self.add_database(database)
        if default:
            for policy in self.databases[database].values():
                policy["default"] = False
        self.databases[database][name] = {
            "name": name,
            "duration": influx_duration(duration),
            "shardGroupDuration": influx_duration(shard_duration),
            "replicaN": replication,
            "default": default,
        }

    def add_query(self, database: str, name: str, definition: str) -> None:
        self.add_database(database)
        self.queries[database][name] = definition

    # Statement interpretation

    def _execute(self, statement: str) -> QueryResult:
        upper = statement.upper()

        if upper == "SHOW DATABASES":
            return self._result([{
                "name": "databases",
                "columns": ["name"],
                "values": [[name] for name in self.databases],
            }])

        match = _SHOW_POLICIES.match(statement)
        if match:
            database = self._require_database(_unquote(*match.groups()), statement)
            columns = ["name", "duration", "shardGroupDuration", "replicaN", "default"]
            return self._result([{
                "columns": columns,
                "values": [[p[c] for c in columns] for p in database.values()],
            }])

        if upper == "SHOW CONTINUOUS QUERIES":
            return self._result([
                {
                    "name": database,
                    "columns": ["name", "query"],
                    "values": [[name, text] for name, text in queries.items()],
                }
                for database, queries in self.queries.items()
            ])

        match = _DROP_DATABASE.match(statement)
        if match:
            name = _unquote(*match.groups())
            self.databases.pop(name, None)
            self.queries.pop(name, None)
            return self._result()

        match = _DROP_POLICY.match(statement)
        if match:
            name, database = _unquote(*match.groups()[:2]), _unquote(*match.groups()[2:])
            self._require_database(database, statement).pop(name, None)
            return self._result()

        match = _DROP_QUERY.match(statement)
        if match:
            name, database = _unquote(*match.groups()[:2]), _unquote(*match.groups()[2:])
            self._require_database(database, statement)
            self.queries[database].pop(name, None)
            return self._result()

        if upper.startswith("CREATE CONTINUOUS QUERY"):
            for database, per_name in extract_continuous_queries(statement).items():
                self._require_database(database, statement)
                for name, definition in per_name.items():
                    if name in self.queries[database]:
                        raise QueryError("continuous query already exists", statement=statement)
                    self.queries[database][name] = definition
            return self._result()

        if upper.startswith("ALTER RETENTION POLICY"):
            policy = parse_statement("CREATE" + statement[len("ALTER"):])
            existing = self._require_database(policy.database, statement).get(policy.name)
            if existing is None:
                raise QueryError("retention policy not found", statement=statement)
            self.add_policy(
                policy.database,
                policy.name,
                policy.duration,
                policy.shard_duration,
                policy.replication,
                policy.is_default or existing["default"],
            )
            return self._result()

        if upper.startswith("CREATE"):
            parsed = parse_statement(statement)
            if isinstance(parsed, DatabaseStatement):
                self.add_database(parsed.name)
                inline = parsed.inline_policy
                if inline is not None:
                    self.add_policy(
                        parsed.name, inline.name, inline.duration,
                        inline.shard_duration, inline.replication, True,
                    )
                elif self.create_autogen and not self.databases[parsed.name]:
                    self.add_policy(parsed.name, "autogen", "INF", "7d", 1, True)
                return self._result()

            database = self._require_database(parsed.database, statement)
            if parsed.name in database:
                raise QueryError("retention policy already exists", statement=statement)
            self.add_policy(
                parsed.database,
                parsed.name,
                parsed.duration,
                parsed.shard_duration,
                parsed.replication,
                parsed.is_default,
            )
            return self._result()

        raise QueryError(f"unsupported statement: {statement}", statement=statement)

    def _require_database(self, name: str, statement: str) -> Dict[str, Dict[str, Any]]:
        if name not in self.databases:
            raise QueryError(f"database not found: {name}", statement=statement)
        return self.databases[name]

    @staticmethod
    def _result(series: Optional[List[Dict[str, Any]]] = None) -> QueryResult:
        raw: Dict[str, Any] = {"statement_id": 0}
        if series:
            raw["series"] = series
        return QueryResult.from_json({"results": [raw]})


@pytest.fixture
def fake_influx() -> FakeInfluxClient:
    """Empty fake InfluxDB instance (only ``_internal`` exists)."""
    return FakeInfluxClient()


# ============================================================================
# Schema directory fixtures
# ============================================================================

SAMPLE_DB_FILE = """\
# Databases
CREATE DATABASE "telegraf" WITH DURATION 260w REPLICATION 1 SHARD DURATION 12w NAME "primary"
CREATE DATABASE metrics WITH DURATION 30d REPLICATION 1 SHARD DURATION 1d NAME raw;

create retention policy "one_year" on "telegraf" duration 52w replication 1 shard duration 4w
CREATE RETENTION POLICY downsampled ON metrics DURATION INF REPLICATION 1 SHARD DURATION 2w
"""

SAMPLE_CQ_FILE = """\
# Downsampling
CREATE CONTINUOUS QUERY "cpu_hourly" ON "telegraf"
BEGIN
  SELECT mean("usage_idle") AS "usage_idle"
  INTO "telegraf"."one_year"."cpu"
  FROM "telegraf"."primary"."cpu"
  GROUP BY time(1h), *
END

CREATE CONTINUOUS QUERY "requests.daily" ON "metrics" BEGIN SELECT sum("count") INTO "metrics"."downsampled"."requests" FROM "metrics"."raw"."requests" GROUP BY time(1d) fill(null) END;
"""


def write_schema(root: Path, db: Optional[Dict[str, str]] = None, cq: Optional[Dict[str, str]] = None) -> Path:
    """Create ``root/db`` and ``root/cq`` files from name-to-content mappings."""
    for subdir, files in (("db", db), ("cq", cq)):
        if files is None:
            continue
        directory = root / subdir
        directory.mkdir(parents=True, exist_ok=True)
        for name, content in files.items():
            (directory / name).write_text(content, encoding="utf-8")
    return root


@pytest.fixture
def schema_dir(tmp_path) -> Path:
    """Schema directory holding the sample database and continuous query files."""
    return write_schema(
        tmp_path / "schema",
        db={"main.influxql": SAMPLE_DB_FILE},
        cq={"downsample.influxql": SAMPLE_CQ_FILE},
    )


# ============================================================================
# Snapshot helpers
# ============================================================================

def make_policy(
    database: str,
    name: str,
    duration: str = "INF",
    shard_duration: str = "1w",
    replication: Optional[int] = 1,
    default: bool = False,
) -> RetentionPolicy:
    return RetentionPolicy(
        name=name,
        database=database,
        duration=duration,
        shard_duration=shard_duration,
        replication=replication,
        is_default=default,
    )


def make_query(database: str, name: str, body: str = "SELECT mean(value) INTO m2 FROM m GROUP BY time(1h)") -> ContinuousQuery:
    return ContinuousQuery(
        name=name,
        database=database,
        definition=f'CREATE CONTINUOUS QUERY "{name}" ON "{database}" BEGIN {body} END',
    )


def make_snapshot(source: SnapshotSource, databases=(), policies=(), queries=(), inline_policies=None) -> Snapshot:
    return Snapshot.build(source, databases, policies, queries, inline_policies)


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Drop handlers installed by configure_logging during a test."""
    yield
    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
