"""
PlacementTracker - Build Progress Bookkeeping
=============================================

Remembers which cells of a schematic have been marked as placed, layer by
layer, so a builder can tick off flood-fill regions as they go.
"""

from typing import Dict, FrozenSet, Iterable, Optional, Set, Tuple

Cell = Tuple[int, int]


class PlacementTracker:
    """Placed (x, z) cells per layer."""

    def __init__(self):
        self._placed: Dict[int, Set[Cell]] = {}

    def toggle(self, layer: int, cells: Iterable[Cell]) -> bool:
        """
        Toggle a group of cells on a layer.

        If every cell is already placed the whole group is unplaced,
        otherwise the whole group is placed.

        Returns:
            True if the group is now placed, False if it was cleared
        """
        cells = set(cells)
        layer_set = self._placed.setdefault(layer, set())

        if cells <= layer_set:
            layer_set -= cells
            if not layer_set:
                del self._placed[layer]
            return False

        layer_set |= cells
        return True

    def is_placed(self, layer: int, x: int, z: int) -> bool:
        """Check whether a single cell is marked placed."""
        return (x, z) in self._placed.get(layer, ())

    def placed_on(self, layer: int) -> FrozenSet[Cell]:
        """All placed cells on a layer."""
        return frozenset(self._placed.get(layer, ()))

    def placed_count(self) -> int:
        """Total placed cells across every layer."""
        return sum(len(cells) for cells in self._placed.values())

    def clear(self, layer: Optional[int] = None):
        """Forget placed cells on one layer, or on all layers."""
        if layer is None:
            self._placed.clear()
        else:
            self._placed.pop(layer, None)
