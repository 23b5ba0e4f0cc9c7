"""
Parsing and normalization of megaverse grids.

The API describes cells in two shapes. The goal endpoint returns descriptor
strings ("POLYANET", "SPACE", "RED_SOLOON", "UP_COMETH"); the map endpoint
returns null for empty cells and objects like {"type": 1, "color": "red"}
for occupied ones. Both normalize to EntityKind here.
"""
import logging
from typing import Any, Dict, Optional, Tuple

from megaverse.errors import DimensionMismatch
from megaverse.schemas import Color, Direction, EntityKind, EntityType
from megaverse.types import Grid, RawGrid

logger = logging.getLogger(__name__)

# Numeric "type" field used by the map endpoint's cell objects.
MAP_TYPE_CODES: Dict[int, EntityType] = {
    0: EntityType.POLYANET,
    1: EntityType.SOLOON,
    2: EntityType.COMETH,
}


def _lookup(enum_cls, value: Any):
    if not isinstance(value, str):
        return None
    try:
        return enum_cls(value.strip().upper())
    except ValueError:
        return None


def _parse_descriptor(text: str) -> Optional[EntityKind]:
    normalized = text.strip().upper()
    if normalized in ("", EntityType.EMPTY.value):
        return EntityKind.empty()
    if normalized == EntityType.POLYANET.value:
        return EntityKind.polyanet()

    prefix, _, suffix = normalized.rpartition("_")
    if suffix == EntityType.SOLOON.value:
        color = _lookup(Color, prefix)
        return EntityKind.soloon(color) if color else None
    if suffix == EntityType.COMETH.value:
        direction = _lookup(Direction, prefix)
        return EntityKind.cometh(direction) if direction else None
    return None


def _parse_object(cell: Dict[str, Any]) -> Optional[EntityKind]:
    entity_type = MAP_TYPE_CODES.get(cell.get("type"))
    if entity_type is EntityType.POLYANET:
        return EntityKind.polyanet()
    if entity_type is EntityType.SOLOON:
        color = _lookup(Color, cell.get("color"))
        return EntityKind.soloon(color) if color else None
    if entity_type is EntityType.COMETH:
        direction = _lookup(Direction, cell.get("direction"))
        return EntityKind.cometh(direction) if direction else None
    return None


def parse_cell(cell: Any) -> EntityKind:
    """
    Normalize one raw cell into an EntityKind.

    Absent, null, blank and unrecognized content all normalize to Empty.

    Examples:
        >>> str(parse_cell("red_soloon"))
        'RED_SOLOON'
        >>> parse_cell(None).is_empty
        True
    """
    if cell is None:
        return EntityKind.empty()
    if isinstance(cell, EntityKind):
        return cell

    kind = None
    if isinstance(cell, str):
        kind = _parse_descriptor(cell)
    elif isinstance(cell, dict):
        kind = _parse_object(cell)

    if kind is None:
        logger.warning(f"Unrecognized cell content {cell!r}, treating as empty")
        return EntityKind.empty()
    return kind


def parse_grid(rows: RawGrid) -> Grid:
    """
    Normalize a raw grid, cell by cell.

    Raises:
        DimensionMismatch: If the rows are not all the same length.
    """
    grid = [[parse_cell(cell) for cell in row] for row in rows]
    widths = {len(row) for row in grid}
    if len(widths) > 1:
        raise DimensionMismatch(f"Grid is not rectangular: row lengths {sorted(widths)}")
    return grid


def grid_dimensions(grid: Grid) -> Tuple[int, int]:
    """(rows, columns) of a rectangular grid"""
    if not grid:
        return (0, 0)
    return (len(grid), len(grid[0]))


def empty_grid(rows: int, columns: int) -> Grid:
    return [[EntityKind.empty() for _ in range(columns)] for _ in range(rows)]


def rows_from_payload(payload: Any, key: str) -> RawGrid:
    """
    Pull the rows of a grid out of an API response body.

    Accepts both {"map": [[...]]} and the nested {"map": {"content": [[...]]}}
    form the map endpoint uses.

    Raises:
        ValueError: If the payload does not contain a list of rows under key.
    """
    if not isinstance(payload, dict) or key not in payload:
        raise ValueError(f"Response has no '{key}' field")
    body = payload[key]
    if isinstance(body, dict):
        body = body.get("content")
    if not isinstance(body, list) or not all(isinstance(row, list) for row in body):
        raise ValueError(f"'{key}' field is not a list of rows")
    return body
