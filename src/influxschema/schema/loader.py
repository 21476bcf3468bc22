"""
Desired-state loader: reads a schema directory into a ``Snapshot``.

Layout::

    <schema_dir>/db/*   CREATE DATABASE / CREATE RETENTION POLICY lines
    <schema_dir>/cq/*   CREATE CONTINUOUS QUERY ... END blocks
"""

import logging
from pathlib import Path
from typing import List, Union

from ..exceptions import ConfigurationError, SnapshotError, UnknownDatabaseError
from .models import Snapshot, SnapshotSource
from .parser import (
    ParsedFile,
    combine_declarations,
    extract_continuous_queries,
    merge_continuous_queries,
    parse_declarations,
)


logger = logging.getLogger(__name__)

DB_SUBDIR = "db"
CQ_SUBDIR = "cq"


def list_schema_files(directory: Path) -> List[Path]:
    """Regular files directly under ``directory``, sorted; hidden and backup files skipped."""
    if not directory.is_dir():
        logger.debug(f"Schema directory {directory} not present, treating as empty")
        return []
    return sorted(
        path
        for path in directory.iterdir()
        if path.is_file()
        and not path.name.startswith(".")
        and not path.name.endswith("~")
    )


def _read(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"Cannot read schema file {path}", cause=e)


def load_desired_snapshot(schema_dir: Union[str, Path]) -> Snapshot:
    """
    Parse every schema file under ``schema_dir`` into the desired snapshot.

    Raises:
        ConfigurationError: The directory is missing or a file is unreadable
        SchemaParseError: A statement is malformed, duplicated, or references
            an undeclared database
    """
    schema_dir = Path(schema_dir)
    if not schema_dir.is_dir():
        raise ConfigurationError(f"Schema directory not found: {schema_dir}")

    parsed_files: List[ParsedFile] = []
    for path in list_schema_files(schema_dir / DB_SUBDIR):
        parsed = parse_declarations(_read(path), str(path))
        logger.debug(
            f"Parsed {path}: {len(parsed.databases)} databases, "
            f"{len(parsed.policies)} retention policies"
        )
        parsed_files.append(parsed)
    declared = combine_declarations(parsed_files)

    extracted = []
    for path in list_schema_files(schema_dir / CQ_SUBDIR):
        per_database = extract_continuous_queries(_read(path), str(path))
        logger.debug(
            f"Parsed {path}: {sum(len(q) for q in per_database.values())} continuous queries"
        )
        for database, per_name in per_database.items():
            if database not in declared.databases:
                name = next(iter(per_name))
                raise UnknownDatabaseError("Continuous query", name, database, str(path))
        extracted.append((str(path), per_database))
    queries = merge_continuous_queries(extracted)

    try:
        snapshot = Snapshot.build(
            SnapshotSource.DESIRED,
            declared.databases,
            declared.policies,
            queries,
            inline_policies=declared.inline_policies,
        )
    except SnapshotError as e:
        raise ConfigurationError(f"Inconsistent schema in {schema_dir}", cause=e)

    logger.info(
        f"Loaded desired schema from {schema_dir}: {len(snapshot.databases)} databases, "
        f"{snapshot.policy_count} retention policies, {snapshot.query_count} continuous queries"
    )
    return snapshot
