import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import List, Optional, Sequence

from megaverse.differ import group_by_position
from megaverse.schemas import (Action, ActionType, FailureReason, Position,
                               ReconciliationReport)
from megaverse.utils.retry import RetryPolicy, RetryResult

logger = logging.getLogger(__name__)


class ActionScheduler:
    """
    Applies actions under a bounded worker pool.

    Actions for one cell run sequentially on one worker (Delete before Create);
    distinct cells run concurrently, at most `concurrency` at a time. A cell
    that fails is recorded in the report and never stops the other cells.
    """

    DEFAULT_CONCURRENCY = 5

    def __init__(self, client, policy: Optional[RetryPolicy] = None, concurrency: int = DEFAULT_CONCURRENCY):
        """
        Args:
            client: MegaverseClient (or anything with create_entity/delete_entity)
            policy: Retry policy wrapped around every call
            concurrency: Default number of cells in flight
        """
        if concurrency < 1:
            raise ValueError("concurrency must be a positive integer")
        self.client = client
        self.policy = policy or RetryPolicy()
        self.concurrency = concurrency

    def _apply(self, action: Action) -> RetryResult:
        if action.type is ActionType.DELETE:
            return self.policy.execute(
                lambda: self.client.delete_entity(action.kind, action.position),
                idempotent_not_found=True,
                description=str(action),
            )
        return self.policy.execute(
            lambda: self.client.create_entity(action.kind, action.position),
            description=str(action),
        )

    def _run_cell(
        self,
        position: Position,
        actions: List[Action],
        report: ReconciliationReport,
        lock: threading.Lock,
    ) -> None:
        for index, action in enumerate(actions):
            try:
                result = self._apply(action)
            except Exception as e:
                logger.error(f"✗ {action} raised {type(e).__name__}: {e}", exc_info=True)
                with lock:
                    report.record_failure(action, FailureReason.REMOTE_ERROR, f"{type(e).__name__}: {e}")
                failed = True
            else:
                failed = not result.ok
                with lock:
                    if failed:
                        report.record_failure(action, result.reason, result.detail, result.state.attempts)
                    else:
                        report.record_success(action, result.state.retries)
                if failed:
                    logger.error(f"✗ {action}: {result.reason.value} {result.detail}")
                else:
                    logger.info(f"✓ {action}")

            if failed:
                # A Create on top of an entity we could not delete would be rejected.
                remaining = actions[index + 1:]
                if remaining:
                    logger.warning(f"Skipping {len(remaining)} remaining action(s) at {position}")
                with lock:
                    for skipped in remaining:
                        report.record_skip(skipped)
                return

    def run(self, actions: Sequence[Action], concurrency: Optional[int] = None) -> ReconciliationReport:
        """
        Apply actions and return once every cell is terminal.

        Args:
            actions: Ordered actions, as produced by differ.diff
            concurrency: Cells in flight; defaults to the scheduler's setting

        Returns:
            ReconciliationReport with per-action counts and failures
        """
        width = self.concurrency if concurrency is None else concurrency
        if width < 1:
            raise ValueError("concurrency must be a positive integer")

        report = ReconciliationReport(planned=len(actions))
        groups = group_by_position(actions)
        if not groups:
            return report

        logger.info(f"Applying {len(actions)} actions across {len(groups)} cells with {width} workers")
        lock = threading.Lock()

        with ThreadPoolExecutor(max_workers=min(width, len(groups)), thread_name_prefix="megaverse") as executor:
            future_to_position = {
                executor.submit(self._run_cell, position, cell_actions, report, lock): position
                for position, cell_actions in groups.items()
            }
            for future in as_completed(future_to_position):
                # _run_cell records its own failures; anything here is a bug in bookkeeping
                position = future_to_position[future]
                exception = future.exception()
                if exception is not None:
                    logger.error(f"Worker for {position} crashed: {exception}", exc_info=exception)

        return report
