"""
Shared type aliases used across the megaverse modules.

Keep these in one place so we don't redefine them in multiple files.
"""

from typing import Any, List

from megaverse.schemas import EntityKind

# A rectangular grid of normalized cells, indexed [row][column].
Grid = List[List[EntityKind]]

# Cells as returned by the API: strings, objects, or null.
RawGrid = List[List[Any]]
