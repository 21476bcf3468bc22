"""
Update planner: orders change records into dependency-safe stages and applies
the skip policy for destructive operations.
"""

import dataclasses
import logging
from dataclasses import dataclass
from typing import Callable, Iterable, List, Sequence, Tuple

from .operations import Action, ChangeRecord, ObjectKind


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Stage:
    """One step of the plan: which records it takes and how it orders them."""

    name: str
    matches: Callable[[ChangeRecord], bool]
    reverse: bool = False


def _is(action: Action, kind: ObjectKind) -> Callable[[ChangeRecord], bool]:
    return lambda record: record.action == action and record.object_kind == kind


# Deletions run dependents-first in reverse name order; creations run
# owners-first in name order.
STAGES: Tuple[Stage, ...] = (
    Stage("drop continuous queries", _is(Action.DELETE, ObjectKind.CONTINUOUS_QUERY), reverse=True),
    Stage("drop retention policies", _is(Action.DELETE, ObjectKind.RETENTION_POLICY), reverse=True),
    Stage("drop databases", _is(Action.DELETE, ObjectKind.DATABASE), reverse=True),
    Stage("create databases", _is(Action.CREATE, ObjectKind.DATABASE)),
    Stage("create retention policies", _is(Action.CREATE, ObjectKind.RETENTION_POLICY)),
    Stage("alter retention policies", _is(Action.UPDATE, ObjectKind.RETENTION_POLICY)),
    Stage(
        "create continuous queries",
        lambda record: record.object_kind == ObjectKind.CONTINUOUS_QUERY
        and record.action in (Action.CREATE, Action.UPDATE),
    ),
)


def _sort_key(record: ChangeRecord) -> Tuple[str, str]:
    return (record.database, record.name)


@dataclass(frozen=True)
class Plan:
    """The ordered, skip-annotated operations of one reconciliation run."""

    records: Tuple[ChangeRecord, ...] = ()
    dry_run: bool = False
    force: bool = False

    def __iter__(self):
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)

    @property
    def is_empty(self) -> bool:
        return not self.records

    @property
    def skipped(self) -> List[ChangeRecord]:
        return [r for r in self.records if r.skipped]

    def summary(self) -> dict:
        """Counts of records per action, plus skipped."""
        counts = {action.value: 0 for action in Action}
        for record in self.records:
            counts[record.action.value] += 1
        counts["skipped"] = len(self.skipped)
        return counts


class UpdatePlanner:
    """
    Orders change records and decides which of them are skipped.

    Args:
        dry_run: Compute the plan without applying anything
        force: Allow destructive (delete) operations outside dry-run
    """

    def __init__(self, dry_run: bool = False, force: bool = False):
        self.dry_run = dry_run
        self.force = force

    def should_skip(self, record: ChangeRecord) -> bool:
        if record.is_destructive:
            return self.dry_run or not self.force
        return self.dry_run

    def order(self, changes: Iterable[ChangeRecord]) -> List[ChangeRecord]:
        """Arrange records by stage; records matching no stage are rejected."""
        remaining = list(changes)
        ordered: List[ChangeRecord] = []

        for stage in STAGES:
            selected = [r for r in remaining if stage.matches(r)]
            remaining = [r for r in remaining if not stage.matches(r)]
            ordered.extend(sorted(selected, key=_sort_key, reverse=stage.reverse))

        if remaining:
            raise ValueError(f"Change records outside any plan stage: {remaining}")
        return ordered

    def plan(self, changes: Sequence[ChangeRecord]) -> Plan:
        records = tuple(
            dataclasses.replace(record, skipped=self.should_skip(record))
            for record in self.order(changes)
        )
        plan = Plan(records=records, dry_run=self.dry_run, force=self.force)
        logger.info(
            f"Planned {len(plan)} operations ({len(plan.skipped)} skipped, "
            f"dry_run={self.dry_run}, force={self.force})"
        )
        return plan
