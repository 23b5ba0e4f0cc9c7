from typing import List

import pytest

from megaverse.differ import diff, group_by_position
from megaverse.errors import DimensionMismatch
from megaverse.grid import parse_grid
from megaverse.schemas import (Action, ActionType, Color, EntityKind, Position)

MIXED_OBSERVED = [
    ["POLYANET", "SPACE", "RED_SOLOON"],
    ["UP_COMETH", None, "SPACE"],
    ["SPACE", "BLUE_SOLOON", "POLYANET"],
]
MIXED_DESIRED = [
    ["POLYANET", "POLYANET", "WHITE_SOLOON"],
    ["SPACE", "LEFT_COMETH", "SPACE"],
    ["SPACE", "blue_soloon", "DOWN_COMETH"],
]


def apply_actions(rows, actions: List[Action]):
    """Apply actions to a grid the way the API would, checking each step is legal."""
    grid = [list(row) for row in parse_grid(rows)]
    for action in actions:
        row, column = action.position.row, action.position.column
        if action.type is ActionType.DELETE:
            assert grid[row][column] == action.kind
            grid[row][column] = EntityKind.empty()
        else:
            assert grid[row][column].is_empty
            grid[row][column] = action.kind
    return grid


def test_single_create_on_empty_grid():
    observed = [["SPACE", "SPACE"], ["SPACE", "SPACE"]]
    desired = [["POLYANET", "SPACE"], ["SPACE", "SPACE"]]

    actions = diff(parse_grid(observed), parse_grid(desired))

    assert actions == [Action(ActionType.CREATE, Position(0, 0), EntityKind.polyanet())]


def test_changed_cell_deletes_then_creates():
    actions = diff(parse_grid([["RED_SOLOON"]]), parse_grid([["BLUE_SOLOON"]]))

    assert actions == [
        Action(ActionType.DELETE, Position(0, 0), EntityKind.soloon(Color.RED)),
        Action(ActionType.CREATE, Position(0, 0), EntityKind.soloon(Color.BLUE)),
    ]


def test_identical_grids_need_no_actions():
    grid = parse_grid([["UP_COMETH", "POLYANET"]])
    assert diff(grid, grid) == []
    assert diff(parse_grid(MIXED_OBSERVED), parse_grid(MIXED_OBSERVED)) == []


def test_cell_becoming_empty_only_deletes():
    actions = diff(parse_grid([["POLYANET"]]), parse_grid([["SPACE"]]))
    assert [a.type for a in actions] == [ActionType.DELETE]


def test_diff_accepts_raw_cells():
    assert diff([["red_soloon", None]], [["RED_SOLOON", "SPACE"]]) == []


def test_actions_are_row_major():
    actions = diff(parse_grid(MIXED_OBSERVED), parse_grid(MIXED_DESIRED))
    positions = [(a.position.row, a.position.column) for a in actions]
    assert positions == sorted(positions)


def test_applying_diff_converges_to_desired():
    observed = parse_grid(MIXED_OBSERVED)
    desired = parse_grid(MIXED_DESIRED)

    result = apply_actions(MIXED_OBSERVED, diff(observed, desired))

    assert result == desired
    assert diff(result, desired) == []


def test_each_differing_cell_has_one_group_with_delete_before_create():
    observed = parse_grid(MIXED_OBSERVED)
    desired = parse_grid(MIXED_DESIRED)

    groups = group_by_position(diff(observed, desired))

    differing = {
        Position(r, c)
        for r in range(3)
        for c in range(3)
        if observed[r][c] != desired[r][c]
    }
    assert set(groups) == differing
    for cell_actions in groups.values():
        types = [a.type for a in cell_actions]
        assert types in (
            [ActionType.DELETE],
            [ActionType.CREATE],
            [ActionType.DELETE, ActionType.CREATE],
        )


def test_group_by_position_keeps_first_seen_order():
    actions = diff(parse_grid(MIXED_OBSERVED), parse_grid(MIXED_DESIRED))
    groups = group_by_position(actions)
    assert list(groups) == sorted(groups)


@pytest.mark.parametrize(
    "observed, desired",
    [
        ([["SPACE"]], [["SPACE", "SPACE"]]),
        ([["SPACE"], ["SPACE"]], [["SPACE"]]),
        ([["SPACE", "SPACE"], ["SPACE"]], [["SPACE", "SPACE"], ["SPACE", "SPACE"]]),
    ],
)
def test_dimension_mismatch_is_fatal(observed, desired):
    with pytest.raises(DimensionMismatch):
        diff(observed, desired)
