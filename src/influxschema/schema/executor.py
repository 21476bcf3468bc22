"""
Plan executor and diff renderer.

``render_diff`` turns a plan into text without touching the database.
``PlanExecutor`` submits each unskipped record in plan order and stops at the
first failure, leaving the rest of the plan unattempted. Statements already
applied are not rolled back.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from ..database.client import QueryClient
from ..exceptions import DatabaseError
from .operations import ChangeRecord
from .planner import Plan


logger = logging.getLogger(__name__)

SKIP_MARKER = "# "

Notifier = Callable[[str], None]


def render_diff(plan: Plan) -> str:
    """Statements in plan order; every line of a skipped statement is commented out."""
    lines: List[str] = []
    for record in plan:
        if record.skipped:
            lines.extend(f"{SKIP_MARKER}{line}" for line in record.statement.splitlines())
        else:
            lines.append(record.statement)
    return "".join(f"{line}\n" for line in lines)


@dataclass
class ExecutionReport:
    """What happened while applying a plan."""

    applied: List[ChangeRecord] = field(default_factory=list)
    skipped: List[ChangeRecord] = field(default_factory=list)
    failed: Optional[ChangeRecord] = None
    error: Optional[DatabaseError] = None
    execution_time_ms: float = 0.0

    @property
    def skip_count(self) -> int:
        return len(self.skipped)

    @property
    def succeeded(self) -> bool:
        return self.failed is None and not self.skipped


class PlanExecutor:
    """
    Applies a plan through a query client.

    Args:
        client: Query client receiving each statement
        notify: Callback receiving human-readable progress lines
    """

    def __init__(self, client: QueryClient, notify: Optional[Notifier] = None):
        self.client = client
        self.notify = notify or (lambda message: None)

    async def execute(self, plan: Plan) -> ExecutionReport:
        report = ExecutionReport()
        start_time = time.time()

        try:
            for record in plan:
                if record.skipped:
                    report.skipped.append(record)
                    logger.warning(f"Skipped: {record.description}")
                    self.notify(f"[skip] {record.statement}")
                    continue

                self.notify(f"[{record.action.value}] {record.statement}")
                try:
                    await self.client.query(record.statement)
                except DatabaseError as e:
                    report.failed = record
                    report.error = e
                    logger.error(f"Stopping plan, failed to {record.description}: {e}")
                    break
                report.applied.append(record)
                logger.info(f"Applied: {record.description}")
        finally:
            report.execution_time_ms = (time.time() - start_time) * 1000

        return report
