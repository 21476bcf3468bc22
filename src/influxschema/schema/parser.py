"""
Parsers for the declarative schema files.

Database files (``db/``) hold one statement per line, either
``CREATE DATABASE`` (optionally with an inline default retention policy) or
``CREATE RETENTION POLICY``. Continuous-query files (``cq/``) hold
``CREATE CONTINUOUS QUERY <name> ON <db> ... END`` blocks whose bodies are
kept verbatim and never parsed further.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from ..exceptions import (
    DuplicateDefinitionError,
    MultipleDefaultPoliciesError,
    SchemaParseError,
    UnknownDatabaseError,
)
from .lexer import COMMENT_CHAR, Token, TokenKind, tokenize
from .models import ContinuousQuery, RetentionPolicy


logger = logging.getLogger(__name__)

_DURATION_LITERAL = re.compile(r"^(?:(?:\d+[smhdw])+|INF)$", re.IGNORECASE)
_INTEGER_LITERAL = re.compile(r"^\d+$")


@dataclass(frozen=True)
class DatabaseStatement:
    """A parsed ``CREATE DATABASE`` line."""

    name: str
    inline_policy: Optional[RetentionPolicy] = None
    line_number: int = 0


@dataclass(frozen=True)
class ParsedFile:
    """Statements parsed from one database file, in file order."""

    path: str
    databases: Tuple[DatabaseStatement, ...] = ()
    policies: Tuple[RetentionPolicy, ...] = ()


@dataclass(frozen=True)
class DeclaredSchema:
    """Databases and retention policies declared across all database files."""

    databases: Tuple[str, ...] = ()
    policies: Tuple[RetentionPolicy, ...] = ()
    inline_policies: Mapping[str, str] = field(default_factory=dict)


class _Cursor:
    """Sequential reader over the tokens of one statement."""

    def __init__(self, tokens: Sequence[Token], path: str, line_number: int, line: str):
        self.tokens = tokens
        self.pos = 0
        self.path = path
        self.line_number = line_number
        self.line = line

    def error(self, message: str) -> SchemaParseError:
        return SchemaParseError(
            f"{message}: {self.line.strip()}",
            path=self.path,
            line_number=self.line_number,
            line=self.line,
        )

    def peek(self) -> Optional[Token]:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def next(self, expected: str) -> Token:
        token = self.peek()
        if token is None:
            raise self.error(f"Unexpected end of statement, expected {expected}")
        self.pos += 1
        return token

    def accept_keyword(self, keyword: str) -> bool:
        token = self.peek()
        if token is not None and token.is_keyword(keyword):
            self.pos += 1
            return True
        return False

    def keywords(self, *keywords: str) -> None:
        for keyword in keywords:
            token = self.next(keyword)
            if not token.is_keyword(keyword):
                raise self.error(f"Expected {keyword}, found '{token.value}'")

    def name(self, what: str) -> str:
        token = self.next(what)
        if not token.is_name or not token.value:
            raise self.error(f"Expected {what}, found '{token.value}'")
        return token.value

    def duration(self) -> str:
        token = self.next("duration")
        if token.kind != TokenKind.WORD or not _DURATION_LITERAL.match(token.value):
            raise self.error(f"Invalid duration '{token.value}'")
        return token.value

    def integer(self) -> int:
        token = self.next("replication factor")
        if token.kind != TokenKind.WORD or not _INTEGER_LITERAL.match(token.value):
            raise self.error(f"Invalid replication factor '{token.value}'")
        value = int(token.value)
        if value < 1:
            raise self.error(f"Replication factor must be positive, got {value}")
        return value

    def finish(self) -> None:
        token = self.peek()
        if token is not None and token.kind == TokenKind.PUNCT and token.value == ";":
            self.pos += 1
        token = self.peek()
        if token is not None:
            raise self.error(f"Unexpected '{token.value}'")


def is_comment_or_blank(line: str) -> bool:
    stripped = line.strip()
    return not stripped or stripped.startswith(COMMENT_CHAR)


def parse_statement(
    line: str, path: str = "<string>", line_number: int = 1
) -> Union[DatabaseStatement, RetentionPolicy]:
    """Parse a single database-file statement."""
    cursor = _Cursor(tokenize(line, path, line_number), path, line_number, line)
    cursor.keywords("CREATE")

    if cursor.accept_keyword("DATABASE"):
        database = cursor.name("database name")
        inline_policy = None
        if cursor.accept_keyword("WITH"):
            cursor.keywords("DURATION")
            duration = cursor.duration()
            cursor.keywords("REPLICATION")
            replication = cursor.integer()
            cursor.keywords("SHARD", "DURATION")
            shard_duration = cursor.duration()
            cursor.keywords("NAME")
            inline_policy = RetentionPolicy(
                name=cursor.name("retention policy name"),
                database=database,
                duration=duration,
                shard_duration=shard_duration,
                replication=replication,
                is_default=True,
            )
        cursor.finish()
        return DatabaseStatement(database, inline_policy, line_number)

    if cursor.accept_keyword("RETENTION"):
        cursor.keywords("POLICY")
        name = cursor.name("retention policy name")
        cursor.keywords("ON")
        database = cursor.name("database name")
        cursor.keywords("DURATION")
        duration = cursor.duration()
        cursor.keywords("REPLICATION")
        replication = cursor.integer()
        cursor.keywords("SHARD", "DURATION")
        shard_duration = cursor.duration()
        is_default = cursor.accept_keyword("DEFAULT")
        cursor.finish()
        return RetentionPolicy(
            name=name,
            database=database,
            duration=duration,
            shard_duration=shard_duration,
            replication=replication,
            is_default=is_default,
        )

    raise cursor.error("Expected CREATE DATABASE or CREATE RETENTION POLICY")


def parse_declarations(text: str, path: str = "<string>") -> ParsedFile:
    """Parse every statement line of one database file."""
    databases: List[DatabaseStatement] = []
    policies: List[RetentionPolicy] = []

    for line_number, line in enumerate(text.splitlines(), 1):
        if is_comment_or_blank(line):
            continue
        statement = parse_statement(line, path, line_number)
        if isinstance(statement, DatabaseStatement):
            databases.append(statement)
        else:
            policies.append(statement)

    return ParsedFile(path=path, databases=tuple(databases), policies=tuple(policies))


def combine_declarations(files: Iterable[ParsedFile]) -> DeclaredSchema:
    """
    Merge parsed database files into one declaration set.

    Raises:
        DuplicateDefinitionError: A database, or a policy within one database,
            is declared more than once
        UnknownDatabaseError: A policy names a database declared nowhere
        MultipleDefaultPoliciesError: A database has two default policies
    """
    files = list(files)
    databases: List[str] = []
    policies: List[RetentionPolicy] = []
    inline_policies: Dict[str, str] = {}
    seen_databases: Dict[str, str] = {}
    seen_policies: Dict[Tuple[str, str], str] = {}
    defaults: Dict[str, str] = {}

    def add_policy(policy: RetentionPolicy, path: str) -> None:
        key = (policy.database, policy.name)
        if key in seen_policies:
            raise DuplicateDefinitionError("retention policy", policy.key, path)
        if policy.is_default:
            if policy.database in defaults:
                raise MultipleDefaultPoliciesError(
                    policy.database, defaults[policy.database], policy.name, path
                )
            defaults[policy.database] = policy.name
        seen_policies[key] = path
        policies.append(policy)

    for parsed in files:
        for statement in parsed.databases:
            if statement.name in seen_databases:
                raise DuplicateDefinitionError("database", statement.name, parsed.path)
            seen_databases[statement.name] = parsed.path
            databases.append(statement.name)
            if statement.inline_policy is not None:
                inline_policies[statement.name] = statement.inline_policy.name
                add_policy(statement.inline_policy, parsed.path)

    for parsed in files:
        for policy in parsed.policies:
            if policy.database not in seen_databases:
                raise UnknownDatabaseError(
                    "Retention policy", policy.name, policy.database, parsed.path
                )
            add_policy(policy, parsed.path)

    return DeclaredSchema(
        databases=tuple(databases),
        policies=tuple(policies),
        inline_policies=inline_policies,
    )


def extract_continuous_queries(
    text: str, path: str = "<string>"
) -> Dict[str, Dict[str, str]]:
    """
    Extract ``CREATE CONTINUOUS QUERY`` blocks from one file.

    Returns:
        Mapping of database name to query name to the statement text, from
        ``CREATE`` through the closing ``END`` exactly as written
    """
    tokens = tokenize(text, path)
    queries: Dict[str, Dict[str, str]] = {}
    pos = 0

    while pos < len(tokens):
        token = tokens[pos]
        if token.kind == TokenKind.PUNCT and token.value == ";":
            pos += 1
            continue

        header = tokens[pos:pos + 6]
        if not (
            len(header) == 6
            and header[0].is_keyword("CREATE")
            and header[1].is_keyword("CONTINUOUS")
            and header[2].is_keyword("QUERY")
            and header[3].is_name
            and header[4].is_keyword("ON")
            and header[5].is_name
        ):
            raise SchemaParseError(
                f"Expected CREATE CONTINUOUS QUERY <name> ON <database>, found '{token.value}'",
                path=path,
                line_number=token.line,
                line=_line_at(text, token.start),
            )

        name, database = header[3].value, header[5].value
        end = _find_block_end(tokens, pos + 6)
        if end is None:
            raise SchemaParseError(
                f"Continuous query '{name}' on '{database}' has no closing END",
                path=path,
                line_number=token.line,
                line=_line_at(text, token.start),
            )

        definition = text[token.start:tokens[end].end]
        owned = queries.setdefault(database, {})
        if name in owned:
            logger.warning(
                f"Continuous query '{name}' on '{database}' defined twice in {path}; "
                f"keeping the later definition"
            )
        owned[name] = definition
        pos = end + 1

    return queries


def _find_block_end(tokens: Sequence[Token], start: int) -> Optional[int]:
    """Index of the END closing the first BEGIN at or after ``start``."""
    depth = 0
    for index in range(start, len(tokens)):
        token = tokens[index]
        if token.is_keyword("BEGIN"):
            depth += 1
        elif token.is_keyword("END"):
            if depth <= 1:
                return index if depth == 1 else None
            depth -= 1
    return None


def _line_at(text: str, offset: int) -> str:
    line_start = text.rfind("\n", 0, offset) + 1
    line_end = text.find("\n", offset)
    return text[line_start:] if line_end < 0 else text[line_start:line_end]


def merge_continuous_queries(
    extracted: Iterable[Tuple[str, Mapping[str, Mapping[str, str]]]]
) -> List[ContinuousQuery]:
    """
    Union per-file extraction results.

    A query name repeated for the same database in a later file overwrites
    the earlier one.
    """
    merged: Dict[Tuple[str, str], ContinuousQuery] = {}
    origin: Dict[Tuple[str, str], str] = {}

    for path, per_database in extracted:
        for database, per_name in per_database.items():
            for name, definition in per_name.items():
                key = (database, name)
                if key in merged:
                    logger.warning(
                        f"Continuous query '{name}' on '{database}' from {path} "
                        f"overrides the definition in {origin[key]}"
                    )
                merged[key] = ContinuousQuery(name=name, database=database, definition=definition)
                origin[key] = path

    return list(merged.values())
