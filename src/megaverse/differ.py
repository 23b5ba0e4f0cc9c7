"""
Cell-by-cell diff between an observed grid and a desired grid.
"""
from collections import OrderedDict
from typing import Dict, Iterable, List

from megaverse.errors import DimensionMismatch
from megaverse.grid import grid_dimensions, parse_cell
from megaverse.schemas import Action, ActionType, Position
from megaverse.types import Grid


def _check_dimensions(observed: Grid, desired: Grid) -> None:
    observed_dims = grid_dimensions(observed)
    desired_dims = grid_dimensions(desired)
    ragged = any(len(row) != observed_dims[1] for row in observed) or any(
        len(row) != desired_dims[1] for row in desired
    )
    if ragged or observed_dims != desired_dims:
        raise DimensionMismatch(
            f"Observed grid is {observed_dims[0]}x{observed_dims[1]} but desired grid is "
            f"{desired_dims[0]}x{desired_dims[1]}",
            observed=observed_dims,
            desired=desired_dims,
        )


def diff(observed: Grid, desired: Grid) -> List[Action]:
    """
    Compute the actions that turn observed into desired.

    Actions are emitted row-major. A cell whose kind changes yields a Delete of
    the old kind followed by a Create of the new one; Empty cells are never
    deleted or created.

    Args:
        observed: Current grid
        desired: Target grid, same dimensions as observed

    Returns:
        Ordered list of actions (empty when the grids already match)

    Raises:
        DimensionMismatch: If the grids differ in shape.
    """
    _check_dimensions(observed, desired)

    actions: List[Action] = []
    for row, (observed_row, desired_row) in enumerate(zip(observed, desired)):
        for column, (current, target) in enumerate(zip(observed_row, desired_row)):
            current = parse_cell(current)
            target = parse_cell(target)
            if current == target:
                continue
            position = Position(row, column)
            if not current.is_empty:
                actions.append(Action(ActionType.DELETE, position, current))
            if not target.is_empty:
                actions.append(Action(ActionType.CREATE, position, target))
    return actions


def group_by_position(actions: Iterable[Action]) -> Dict[Position, List[Action]]:
    """Group actions per cell, keeping first-seen cell order and in-cell order."""
    groups: Dict[Position, List[Action]] = OrderedDict()
    for action in actions:
        groups.setdefault(action.position, []).append(action)
    return groups
