"""
Schema management package for influxschema.

This package provides:
- Schema file parsing and the desired snapshot loader
- Duration and continuous query normalization
- Snapshot diffing and dependency-ordered update planning
- Plan execution and diff rendering

The reconciliation entry point lives in ``influxschema.schema.reconciler``.
"""

from .models import Snapshot, SnapshotSource, Database, RetentionPolicy, ContinuousQuery
from .operations import ChangeRecord, Action, ObjectKind
from .differ import SchemaDiffer, diff_snapshots
from .planner import Plan, UpdatePlanner
from .executor import PlanExecutor, ExecutionReport, render_diff
from .loader import load_desired_snapshot

__all__ = [
    "Snapshot",
    "SnapshotSource",
    "Database",
    "RetentionPolicy",
    "ContinuousQuery",
    "ChangeRecord",
    "Action",
    "ObjectKind",
    "SchemaDiffer",
    "diff_snapshots",
    "Plan",
    "UpdatePlanner",
    "PlanExecutor",
    "ExecutionReport",
    "render_diff",
    "load_desired_snapshot",
]
