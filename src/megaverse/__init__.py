"""Megaverse map reconciliation"""

from .differ import diff, group_by_position
from .errors import DimensionMismatch, FetchFailure, ReconciliationError
from .megaverse_client import MegaverseClient
from .reconciler import Reconciler, ReconciliationPlan
from .scheduler import ActionScheduler
from .schemas import (Action, ActionType, Color, Direction, EntityKind,
                      EntityType, FailedAction, FailureReason, Position,
                      ReconciliationReport)

__version__ = "0.1.0"

__all__ = [
    # Components
    "MegaverseClient",
    "Reconciler",
    "ReconciliationPlan",
    "ActionScheduler",
    "diff",
    "group_by_position",
    # Schemas
    "Action",
    "ActionType",
    "Color",
    "Direction",
    "EntityKind",
    "EntityType",
    "FailedAction",
    "FailureReason",
    "Position",
    "ReconciliationReport",
    # Errors
    "ReconciliationError",
    "DimensionMismatch",
    "FetchFailure",
]
