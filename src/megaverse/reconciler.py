import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from megaverse.differ import diff
from megaverse.errors import FetchFailure
from megaverse.grid import empty_grid, grid_dimensions, parse_grid, rows_from_payload
from megaverse.scheduler import ActionScheduler
from megaverse.schemas import Action, ActionType, CallOutcome, ReconciliationReport
from megaverse.types import Grid
from megaverse.utils.retry import RetryPolicy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReconciliationPlan:
    observed: Grid
    desired: Grid
    actions: List[Action]

    @property
    def creates(self) -> int:
        return sum(1 for a in self.actions if a.type is ActionType.CREATE)

    @property
    def deletes(self) -> int:
        return sum(1 for a in self.actions if a.type is ActionType.DELETE)


class Reconciler:
    """Drives one fetch, diff, apply, report cycle"""

    def __init__(
        self,
        client,
        policy: Optional[RetryPolicy] = None,
        scheduler: Optional[ActionScheduler] = None,
        concurrency: int = ActionScheduler.DEFAULT_CONCURRENCY,
    ):
        """
        Initialize the reconciler.

        Args:
            client: MegaverseClient shared by every worker
            policy: Retry policy for fetches and actions
            scheduler: Action scheduler (built from client and policy if None)
            concurrency: Worker pool width when building the scheduler
        """
        self.client = client
        self.policy = policy or RetryPolicy()
        self.scheduler = scheduler or ActionScheduler(client, self.policy, concurrency)

    def _fetch(self, snapshot: str, key: str, call: Callable[[], CallOutcome]) -> Grid:
        result = self.policy.execute(call, description=f"Fetch {snapshot} grid")
        if not result.ok:
            raise FetchFailure(snapshot, result.reason.value, result.detail)
        try:
            rows = rows_from_payload(result.outcome.payload, key)
        except ValueError as e:
            raise FetchFailure(snapshot, "MalformedResponse", str(e)) from e
        return parse_grid(rows)

    def fetch_grids(self) -> Tuple[Grid, Grid]:
        """
        Fetch the observed and desired grids.

        Raises:
            FetchFailure: If either snapshot cannot be retrieved.
            DimensionMismatch: If either snapshot is not rectangular.
        """
        observed = self._fetch("observed", "map", self.client.get_map)
        desired = self._fetch("desired", "goal", self.client.get_goal)
        return observed, desired

    def plan(self, clear: bool = False) -> ReconciliationPlan:
        """
        Fetch both grids and compute the actions needed.

        Args:
            clear: Target an all-empty grid instead of the goal

        Raises:
            FetchFailure, DimensionMismatch
        """
        observed, desired = self.fetch_grids()
        if clear:
            rows, columns = grid_dimensions(observed)
            desired = empty_grid(rows, columns)

        actions = diff(observed, desired)
        rows, columns = grid_dimensions(observed)
        plan = ReconciliationPlan(observed, desired, actions)
        logger.info(
            f"Planned {len(actions)} actions on a {rows}x{columns} grid "
            f"({plan.deletes} deletes, {plan.creates} creates)"
        )
        return plan

    def reconcile(
        self,
        clear: bool = False,
        dry_run: bool = False,
        plan: Optional[ReconciliationPlan] = None,
    ) -> ReconciliationReport:
        """
        Converge the observed grid toward the desired grid.

        Args:
            clear: Target an all-empty grid instead of the goal
            dry_run: Compute the plan but send no create/delete calls
            plan: Previously computed plan to apply instead of fetching again

        Returns:
            ReconciliationReport; per-action failures are listed there

        Raises:
            FetchFailure: If either grid cannot be fetched after retries.
            DimensionMismatch: If the grids differ in shape.
        """
        start_time = time.perf_counter()
        logger.info("Starting reconciliation" + (" (dry run)" if dry_run else ""))

        if plan is None:
            plan = self.plan(clear=clear)

        if dry_run:
            report = ReconciliationReport(planned=len(plan.actions), dry_run=True)
            for action in plan.actions:
                logger.info(f"[dry run] {action}")
                report.record_skip(action)
        else:
            report = self.scheduler.run(plan.actions)

        report.finalize(time.perf_counter() - start_time)
        logger.info(
            f"Reconciliation finished in {report.duration_seconds:.2f}s: "
            f"{report.creates} created, {report.deletes} deleted, "
            f"{report.skips} skipped, {report.failures} failed"
        )
        return report
