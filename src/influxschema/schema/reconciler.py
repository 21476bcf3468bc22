"""
Schema reconciliation core logic for influxschema.

Loads the desired schema from files and the live schema from InfluxDB,
diffs them, plans the operations and either renders or applies the plan.
The whole run is one linear pass; statements are submitted one at a time.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from pathlib import Path
from typing import List, Optional, Union

from ..database.client import QueryClient
from ..database.introspection import SchemaIntrospector
from .differ import SchemaDiffer
from .executor import ExecutionReport, Notifier, PlanExecutor, render_diff
from .loader import load_desired_snapshot
from .models import Snapshot
from .planner import Plan, UpdatePlanner


logger = logging.getLogger(__name__)


class ExitCode(IntEnum):
    """Process exit status of a run."""

    SUCCESS = 0
    SKIPPED = 1
    QUERY_FAILED = 2
    CONFIG_ERROR = 3


class ReconciliationStatus(str, Enum):
    """Status of reconciliation operations."""

    SUCCESS = "success"
    SKIPPED = "skipped"
    PARTIAL = "partial"
    FAILED = "failed"


class ReconciliationMode(str, Enum):
    """Output mode of a run."""

    APPLY = "apply"
    DIFF = "diff"


@dataclass
class ReconciliationResult:
    """Result of a schema reconciliation run."""

    status: ReconciliationStatus
    mode: ReconciliationMode
    plan: Plan
    report: Optional[ExecutionReport] = None
    diff_text: Optional[str] = None
    errors: List[str] = field(default_factory=list)
    execution_time_ms: float = 0.0

    @property
    def skip_count(self) -> int:
        return self.report.skip_count if self.report else 0

    @property
    def applied_count(self) -> int:
        return len(self.report.applied) if self.report else 0

    @property
    def exit_code(self) -> ExitCode:
        if self.status in (ReconciliationStatus.FAILED, ReconciliationStatus.PARTIAL):
            return ExitCode.QUERY_FAILED
        if self.status == ReconciliationStatus.SKIPPED:
            return ExitCode.SKIPPED
        return ExitCode.SUCCESS


class SchemaReconciler:
    """
    Core schema reconciliation engine.

    Args:
        client: Query client connected to the InfluxDB instance
        schema_dir: Directory holding the ``db/`` and ``cq/`` schema files
        dry_run: Plan everything, apply nothing
        force: Allow destructive operations
        notify: Callback receiving progress lines in apply mode
    """

    def __init__(
        self,
        client: QueryClient,
        schema_dir: Union[str, Path],
        dry_run: bool = False,
        force: bool = False,
        notify: Optional[Notifier] = None,
    ):
        self.client = client
        self.schema_dir = Path(schema_dir)
        self.introspector = SchemaIntrospector(client)
        self.differ = SchemaDiffer()
        self.planner = UpdatePlanner(dry_run=dry_run, force=force)
        self.executor = PlanExecutor(client, notify)

    def load_desired(self) -> Snapshot:
        return load_desired_snapshot(self.schema_dir)

    async def load_live(self) -> Snapshot:
        return await self.introspector.load_snapshot()

    async def build_plan(self) -> Plan:
        """
        Compute the ordered plan.

        The schema files are parsed before InfluxDB is contacted, so a
        configuration error never reaches the network.
        """
        desired = self.load_desired()
        live = await self.load_live()
        return self.planner.plan(self.differ.diff(live, desired))

    async def diff(self) -> ReconciliationResult:
        """Render the plan as text without submitting anything."""
        start_time = time.time()
        plan = await self.build_plan()
        return ReconciliationResult(
            status=ReconciliationStatus.SUCCESS,
            mode=ReconciliationMode.DIFF,
            plan=plan,
            diff_text=render_diff(plan),
            execution_time_ms=(time.time() - start_time) * 1000,
        )

    async def apply(self) -> ReconciliationResult:
        """Apply the plan, stopping at the first failed statement."""
        start_time = time.time()
        plan = await self.build_plan()
        report = await self.executor.execute(plan)

        result = ReconciliationResult(
            status=self._status_for(report),
            mode=ReconciliationMode.APPLY,
            plan=plan,
            report=report,
        )
        if report.error is not None:
            result.errors.append(str(report.error))
        result.execution_time_ms = (time.time() - start_time) * 1000

        logger.info(
            f"Reconciliation {result.status.value}: {result.applied_count} applied, "
            f"{result.skip_count} skipped ({result.execution_time_ms:.1f}ms)"
        )
        return result

    @staticmethod
    def _status_for(report: ExecutionReport) -> ReconciliationStatus:
        if report.failed is not None:
            return ReconciliationStatus.PARTIAL if report.applied else ReconciliationStatus.FAILED
        if report.skipped:
            return ReconciliationStatus.SKIPPED
        return ReconciliationStatus.SUCCESS
