import threading
from typing import Any, Dict, List, Optional

import pytest

from megaverse.grid import parse_cell
from megaverse.schemas import (EntityKind, EntityType, NotFound, OtherError,
                               Position, Success)

_TYPE_CODES = {EntityType.POLYANET: 0, EntityType.SOLOON: 1, EntityType.COMETH: 2}


def _map_cell(kind: EntityKind) -> Optional[Dict[str, Any]]:
    """Encode a cell the way the live map endpoint does."""
    if kind.is_empty:
        return None
    cell: Dict[str, Any] = {"type": _TYPE_CODES[kind.type]}
    if kind.color is not None:
        cell["color"] = kind.color.value.lower()
    if kind.direction is not None:
        cell["direction"] = kind.direction.value.lower()
    return cell


class FakeMegaverseClient:
    """
    In-memory stand-in for MegaverseClient.

    Creates and deletes mutate the held map, so a second reconciliation sees
    the result of the first one.
    """

    def __init__(self, current: List[List[str]], goal: List[List[str]]):
        self.state = [[parse_cell(cell) for cell in row] for row in current]
        self.goal = goal
        self.map_outcome = None
        self.goal_outcome = None
        self.fail_creates_at: set = set()
        self.calls: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    def get_map(self):
        self.calls.append({"method": "get_map"})
        if self.map_outcome is not None:
            return self.map_outcome
        return Success({"map": {"content": [[_map_cell(k) for k in row] for row in self.state]}})

    def get_goal(self):
        self.calls.append({"method": "get_goal"})
        if self.goal_outcome is not None:
            return self.goal_outcome
        return Success({"goal": self.goal})

    def create_entity(self, kind: EntityKind, position: Position):
        with self._lock:
            self.calls.append({"method": "create", "kind": kind, "position": position})
            if position in self.fail_creates_at:
                return OtherError(500, "boom")
            self.state[position.row][position.column] = kind
        return Success({})

    def delete_entity(self, kind: EntityKind, position: Position):
        with self._lock:
            self.calls.append({"method": "delete", "kind": kind, "position": position})
            if self.state[position.row][position.column].is_empty:
                return NotFound("nothing here")
            self.state[position.row][position.column] = EntityKind.empty()
        return Success({})

    def close(self):
        pass

    def mutations(self) -> List[Dict[str, Any]]:
        return [c for c in self.calls if c["method"] in ("create", "delete")]

    def rendered_state(self) -> List[List[str]]:
        return [[str(kind) for kind in row] for row in self.state]


@pytest.fixture
def fake_client_factory():
    return FakeMegaverseClient


@pytest.fixture
def no_sleep():
    """A sleep replacement that records requested waits instead of waiting."""
    waits: List[float] = []

    def _sleep(seconds: float) -> None:
        waits.append(seconds)

    _sleep.waits = waits
    return _sleep
