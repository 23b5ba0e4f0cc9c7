"""
Utility functions for formatting grids and reports.
"""
from typing import Dict, List

from megaverse.schemas import Color, Direction, EntityKind, EntityType, ReconciliationReport
from megaverse.types import Grid

EMPTY_SYMBOL = "🌌"
POLYANET_SYMBOL = "🪐"
SOLOON_SYMBOLS: Dict[Color, str] = {
    Color.BLUE: "🔵",
    Color.RED: "🔴",
    Color.PURPLE: "🟣",
    Color.WHITE: "⚪",
}
COMETH_SYMBOLS: Dict[Direction, str] = {
    Direction.UP: "⬆️",
    Direction.DOWN: "⬇️",
    Direction.LEFT: "⬅️",
    Direction.RIGHT: "➡️",
}


def cell_symbol(kind: EntityKind) -> str:
    if kind.type is EntityType.POLYANET:
        return POLYANET_SYMBOL
    if kind.type is EntityType.SOLOON:
        return SOLOON_SYMBOLS[kind.color]
    if kind.type is EntityType.COMETH:
        return COMETH_SYMBOLS[kind.direction]
    return EMPTY_SYMBOL


def grid_to_text(grid: Grid) -> str:
    """
    Convert a grid to a readable text matrix, one line per row.

    Args:
        grid: Normalized grid

    Returns:
        Text rendering of the grid
    """
    return "\n".join("".join(cell_symbol(kind) for kind in row) for row in grid)


def format_report(report: ReconciliationReport) -> List[str]:
    """Summary lines for a reconciliation report."""
    lines = [
        "=" * 60,
        "Reconciliation Summary" + (" (dry run)" if report.dry_run else ""),
        "=" * 60,
        f"Planned Actions: {report.planned}",
        f"Creates: {report.creates}",
        f"Deletes: {report.deletes}",
        f"Skipped: {report.skips}",
        f"Failures: {report.failures}",
        f"Retries: {report.retries}",
        f"Duration: {report.duration_seconds:.2f}s",
    ]
    if report.failed_actions:
        lines.append("")
        lines.append("Failed Actions:")
        for failed in report.failed_actions:
            line = (
                f"  {failed.operation.value} {failed.entity} at ({failed.row}, {failed.column}): "
                f"{failed.reason.value}"
            )
            if failed.detail:
                line += f" - {failed.detail}"
            lines.append(line)
        lines.append("")
        lines.append("Re-run to retry; only cells that still differ will be touched.")
    lines.append("=" * 60)
    return lines
