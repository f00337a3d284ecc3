"""
Grid Operations - Region and Material Analysis
==============================================

Read-only analysis passes over a VoxelGrid:

- RegionAnalyzer: flood fill of same-block regions on one horizontal layer,
  whole-layer labelling and vertical stack counting
- MaterialAggregator: per-block material counts for a full bill of materials
"""

import functools
import numpy as np
from collections import deque
from dataclasses import dataclass
from typing import Callable, FrozenSet, List, Optional, Sequence, Tuple, TYPE_CHECKING

from scipy import ndimage

if TYPE_CHECKING:
    from schemscope.core.voxel_grid import VoxelGrid

STACK_SIZE = 64

# Layers of base id codes kept per analyzer
LAYER_CACHE_SIZE = 8

# 4-directional neighbours on the X/Z plane
NEIGHBORS = ((-1, 0), (1, 0), (0, -1), (0, 1))


@dataclass(frozen=True)
class ConnectedRegion:
    """
    A group of 4-connected cells on one layer sharing a base block id.

    Attributes:
        base_id: Base block id shared by every cell
        layer: Y coordinate of the layer
        cells: (x, z) coordinates of every cell in the region
        min_x, min_z, max_x, max_z: Inclusive bounding box
    """
    base_id: str
    layer: int
    cells: FrozenSet[Tuple[int, int]]
    min_x: int
    min_z: int
    max_x: int
    max_z: int

    @property
    def width(self) -> int:
        """Bounding box extent along X."""
        return self.max_x - self.min_x + 1

    @property
    def height(self) -> int:
        """Bounding box extent along Z."""
        return self.max_z - self.min_z + 1

    @property
    def count(self) -> int:
        """Number of cells in the region."""
        return len(self.cells)

    def __contains__(self, cell: Tuple[int, int]) -> bool:
        return cell in self.cells


class RegionAnalyzer:
    """
    Connected-region queries on the horizontal layers of a grid.

    Cells are grouped by base block id, so ``oak_stairs[facing=north]`` and
    ``oak_stairs[facing=south]`` belong to the same region.
    """

    def __init__(self, grid: 'VoxelGrid'):
        """
        Initialize the analyzer for a grid.

        Args:
            grid: VoxelGrid to analyse
        """
        self.grid = grid
        self._codes, self._names = grid.palette.base_id_codes()
        self.layer_codes = functools.lru_cache(maxsize=LAYER_CACHE_SIZE)(self._layer_codes)

    def _layer_codes(self, layer: int) -> np.ndarray:
        """
        Base id codes for one layer, indexed [z, x]; 0 marks air.

        Exposed as ``layer_codes``, which keeps the most recent
        LAYER_CACHE_SIZE layers.
        """
        codes = self._codes[self.grid.layer(layer)]
        codes.flags.writeable = False
        return codes

    def base_id_at(self, x: int, z: int, layer: int) -> Optional[str]:
        """Base block id at a cell, or None for air and positions outside the grid."""
        if not self.grid.is_valid_position(x, layer, z):
            return None
        code = int(self.layer_codes(layer)[z, x])
        return self._names[code - 1] if code else None

    def flood_fill(self, start_x: int, start_z: int, layer: int) -> Optional[ConnectedRegion]:
        """
        Find every cell connected to a start cell through same-block neighbours.

        Breadth-first search over 4-connected neighbours within the layer.

        Args:
            start_x, start_z: Start cell on the layer
            layer: Y coordinate of the layer

        Returns:
            ConnectedRegion, or None if the start cell is air or outside the grid
        """
        if not self.grid.is_valid_position(start_x, layer, start_z):
            return None

        width, length = self.grid.width, self.grid.length
        codes = self.layer_codes(layer)
        target = int(codes[start_z, start_x])
        if not target:
            return None

        visited = {start_x + start_z * width}
        queue = deque([(start_x, start_z)])
        min_x = max_x = start_x
        min_z = max_z = start_z

        while queue:
            cx, cz = queue.popleft()
            for dx, dz in NEIGHBORS:
                nx, nz = cx + dx, cz + dz
                if not (0 <= nx < width and 0 <= nz < length):
                    continue
                key = nx + nz * width
                if key in visited or codes[nz, nx] != target:
                    continue

                visited.add(key)
                queue.append((nx, nz))
                if nx < min_x:
                    min_x = nx
                elif nx > max_x:
                    max_x = nx
                if nz < min_z:
                    min_z = nz
                elif nz > max_z:
                    max_z = nz

        cells = frozenset((key % width, key // width) for key in visited)
        return ConnectedRegion(
            base_id=self._names[target - 1],
            layer=layer,
            cells=cells,
            min_x=min_x,
            min_z=min_z,
            max_x=max_x,
            max_z=max_z,
        )

    def label_layer(self, layer: int) -> Tuple[np.ndarray, int]:
        """
        Label every connected region of a layer at once.

        Returns:
            Tuple of ((length, width) int32 label array with 0 for air,
            number of regions)
        """
        codes = self.layer_codes(layer)
        labels = np.zeros(codes.shape, dtype=np.int32)
        total = 0

        # Default structuring element in 2D is the 4-connected cross
        for code in np.unique(codes):
            if code == 0:
                continue
            region_labels, count = ndimage.label(codes == code)
            mask = region_labels > 0
            labels[mask] = region_labels[mask] + total
            total += count

        return labels, total

    def stacked_above(self, x: int, y: int, z: int) -> int:
        """
        Count identical blocks stacked directly on top of a cell.

        Scans upwards until air or a different base block id.
        """
        if not self.grid.is_valid_position(x, y, z):
            return 0
        column = self._codes[self.grid.to_array()[:, z, x]]
        target = column[y]
        if not target:
            return 0

        count = 0
        for code in column[y + 1:]:
            if code != target:
                break
            count += 1
        return count


# ─── Materials ───

def split_stacks(count: int, stack_size: int = STACK_SIZE) -> Tuple[int, int]:
    """Split a count into (full stacks, remainder)."""
    return divmod(int(count), stack_size)


def format_stacks(count: int, stack_size: int = STACK_SIZE) -> str:
    """
    Format a block count as stacks plus remainder.

    e.g. 10 -> "10", 128 -> "2×64", 70 -> "1×64 + 6"
    """
    stacks, remainder = split_stacks(count, stack_size)
    if stacks == 0:
        return f"{remainder}"
    if remainder == 0:
        return f"{stacks}×{stack_size}"
    return f"{stacks}×{stack_size} + {remainder}"


@dataclass(frozen=True)
class MaterialCount:
    """Number of blocks of one base block id."""
    base_id: str
    count: int

    @property
    def stacks(self) -> str:
        """Count formatted as stacks of 64."""
        return format_stacks(self.count)


class MaterialAggregator:
    """Bill of materials for a grid."""

    def __init__(self, grid: 'VoxelGrid'):
        self.grid = grid

    def compute_materials(self,
                          progress: Optional[Callable[[int, int], None]] = None
                          ) -> List[MaterialCount]:
        """
        Count non-air blocks per base block id.

        Args:
            progress: Optional callback, called as progress(done, total)
                after each layer

        Returns:
            MaterialCount list sorted by count (highest first); equal counts
            keep the order in which the blocks were first found scanning
            Y, then Z, then X
        """
        grid = self.grid
        codes, names = grid.palette.base_id_codes()
        slots = len(names) + 1
        area = grid.width * grid.length

        counts = np.zeros(slots, dtype=np.int64)
        first_seen = np.full(slots, -1, dtype=np.int64)

        for y in range(grid.height):
            layer_codes = codes[grid.layer(y)].ravel()
            counts += np.bincount(layer_codes, minlength=slots)

            found, first = np.unique(layer_codes, return_index=True)
            new = first_seen[found] < 0
            first_seen[found[new]] = y * area + first[new]

            if progress is not None:
                progress(y + 1, grid.height)

        present = [code for code in range(1, slots) if counts[code] > 0]
        present.sort(key=lambda code: (-counts[code], first_seen[code]))
        return [MaterialCount(names[code - 1], int(counts[code])) for code in present]


def filter_materials(materials: Sequence[MaterialCount], query: str) -> List[MaterialCount]:
    """
    Filter a material list by a case-insensitive search string.

    Matches the base id either as written (``oak_planks``) or with
    underscores read as spaces (``oak planks``).
    """
    needle = query.strip().lower()
    if not needle:
        return list(materials)
    return [
        material for material in materials
        if needle in material.base_id or needle in material.base_id.replace('_', ' ')
    ]
