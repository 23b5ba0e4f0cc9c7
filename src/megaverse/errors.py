"""Custom exceptions for megaverse reconciliation"""
from typing import Optional, Tuple


class ReconciliationError(Exception):
    """Base class for errors that abort a whole reconciliation run."""

    pass


class DimensionMismatch(ReconciliationError):
    """Raised when grids are not rectangular or do not share dimensions."""

    def __init__(self, message: str, observed: Optional[Tuple[int, int]] = None,
                 desired: Optional[Tuple[int, int]] = None):
        super().__init__(message)
        self.observed = observed
        self.desired = desired


class FetchFailure(ReconciliationError):
    """Raised when the map or goal snapshot cannot be retrieved."""

    def __init__(self, snapshot: str, reason: str, detail: str = ""):
        message = f"Failed to fetch {snapshot} grid: {reason}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
        self.snapshot = snapshot
        self.reason = reason
        self.detail = detail
