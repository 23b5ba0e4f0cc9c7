from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, model_validator

# ============================================================================
# Entity Schemas
# ============================================================================

class EntityType(Enum):
    """Kinds of astral objects that can occupy a cell"""
    EMPTY = "SPACE"
    POLYANET = "POLYANET"
    SOLOON = "SOLOON"
    COMETH = "COMETH"


class Color(Enum):
    BLUE = "BLUE"
    RED = "RED"
    PURPLE = "PURPLE"
    WHITE = "WHITE"


class Direction(Enum):
    UP = "UP"
    DOWN = "DOWN"
    LEFT = "LEFT"
    RIGHT = "RIGHT"


@dataclass(frozen=True, order=True)
class Position:
    """A cell coordinate. Orders row-major."""
    row: int
    column: int

    def __str__(self) -> str:
        return f"({self.row}, {self.column})"


@dataclass(frozen=True)
class EntityKind:
    """
    Normalized content of one cell.

    Soloons always carry a color and comeths a direction; every other kind
    carries neither. Use the constructors below rather than building one by hand.
    """
    type: EntityType
    color: Optional[Color] = None
    direction: Optional[Direction] = None

    @classmethod
    def empty(cls) -> "EntityKind":
        return cls(EntityType.EMPTY)

    @classmethod
    def polyanet(cls) -> "EntityKind":
        return cls(EntityType.POLYANET)

    @classmethod
    def soloon(cls, color: Color) -> "EntityKind":
        return cls(EntityType.SOLOON, color=color)

    @classmethod
    def cometh(cls, direction: Direction) -> "EntityKind":
        return cls(EntityType.COMETH, direction=direction)

    @property
    def is_empty(self) -> bool:
        return self.type is EntityType.EMPTY

    def __str__(self) -> str:
        if self.type is EntityType.SOLOON:
            return f"{self.color.value}_SOLOON"
        if self.type is EntityType.COMETH:
            return f"{self.direction.value}_COMETH"
        return self.type.value


class ActionType(Enum):
    DELETE = "DELETE"
    CREATE = "CREATE"


@dataclass(frozen=True)
class Action:
    """One create or delete of one entity at one position"""
    type: ActionType
    position: Position
    kind: EntityKind

    def __str__(self) -> str:
        return f"{self.type.value} {self.kind} at {self.position}"


# ============================================================================
# Remote Call Outcomes
# ============================================================================

@dataclass(frozen=True)
class Success:
    payload: Any = None


@dataclass(frozen=True)
class NotFound:
    detail: str = ""


@dataclass(frozen=True)
class RateLimited:
    retry_after: Optional[float] = None


@dataclass(frozen=True)
class OtherError:
    status: Optional[int] = None
    detail: str = ""


CallOutcome = Union[Success, NotFound, RateLimited, OtherError]


class FailureReason(Enum):
    """Classification of an action that could not be applied"""
    RATE_LIMIT_EXHAUSTED = "RateLimitExhausted"
    REMOTE_ERROR = "RemoteError"


# ============================================================================
# Report Schemas
# ============================================================================

class FailedAction(BaseModel):
    """An action that reached a terminal failure, with why"""
    operation: ActionType
    row: int
    column: int
    entity: str
    reason: FailureReason
    detail: str = ""
    attempts: int = 0

    @classmethod
    def from_action(
        cls, action: Action, reason: FailureReason, detail: str = "", attempts: int = 0
    ) -> "FailedAction":
        return cls(
            operation=action.type,
            row=action.position.row,
            column=action.position.column,
            entity=str(action.kind),
            reason=reason,
            detail=detail,
            attempts=attempts,
        )


class ReconciliationReport(BaseModel):
    """Outcome of one reconciliation run"""
    planned: int = 0
    creates: int = 0
    deletes: int = 0
    skips: int = 0
    failures: int = 0
    retries: int = 0
    failed_actions: List[FailedAction] = []
    dry_run: bool = False
    duration_seconds: float = 0.0
    timestamp: Optional[datetime] = None

    @model_validator(mode='before')
    @classmethod
    def set_timestamp(cls, values: Dict[str, Any]) -> Dict[str, Any]:
        if isinstance(values, dict) and 'timestamp' not in values:
            values['timestamp'] = datetime.now(timezone.utc)
        return values

    @property
    def converged(self) -> bool:
        return self.failures == 0 and not self.dry_run

    def record_success(self, action: Action, retries: int = 0) -> None:
        if action.type is ActionType.CREATE:
            self.creates += 1
        else:
            self.deletes += 1
        self.retries += retries

    def record_failure(
        self, action: Action, reason: FailureReason, detail: str = "", attempts: int = 0
    ) -> None:
        self.failures += 1
        self.retries += max(attempts - 1, 0)
        self.failed_actions.append(FailedAction.from_action(action, reason, detail, attempts))

    def record_skip(self, action: Action) -> None:
        self.skips += 1

    def finalize(self, duration_seconds: float) -> "ReconciliationReport":
        # Workers finish in arbitrary order; list failures row-major.
        self.failed_actions.sort(key=lambda f: (f.row, f.column, f.operation is ActionType.CREATE))
        self.duration_seconds = duration_seconds
        return self


class ReconcileSettings(BaseModel):
    """
    Tunables for a run. Populated from megaverse.yml, then overridden by
    environment variables and CLI flags.
    """
    base_url: Optional[str] = None
    concurrency: int = 5
    max_attempts: int = 3
    base_delay: float = 1.0
    backoff_factor: float = 2.0
    max_delay: float = 60.0
    min_delay: float = 0.0
    min_interval: float = 0.0
    shared_cooldown: bool = False
    timeout: float = 10.0

    model_config = {
        'extra': 'forbid'
    }

    @model_validator(mode='after')
    def check_bounds(self) -> "ReconcileSettings":
        if self.concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        for name in ("base_delay", "max_delay", "min_delay", "min_interval"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative")
        if self.backoff_factor < 1:
            raise ValueError("backoff_factor must be at least 1")
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")
        return self
