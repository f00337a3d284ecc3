"""
VoxelGrid - Decoded Schematic Data
==================================

The uniform, read-only voxel model every format adapter produces.
Uses numpy for the flat palette index array.
"""

import numpy as np
from typing import Iterator, Optional, Tuple
from dataclasses import dataclass, field

from schemscope.core.palette import BlockPalette
from schemscope.errors import MalformedDimensionsError, PaletteIndexError

MAX_CELLS = 2**31 - 1

# Cells passed to bincount at a time
COUNT_CHUNK = 1 << 20


def check_dimensions(width: int, height: int, length: int) -> Tuple[int, int, int]:
    """
    Validate schematic dimensions.

    Raises:
        MalformedDimensionsError: If any dimension is non-positive or the
            cell count does not fit a signed 32-bit index
    """
    dims = (int(width), int(height), int(length))
    if min(dims) <= 0:
        raise MalformedDimensionsError(f"Dimensions must be positive, got {dims[0]}x{dims[1]}x{dims[2]}")
    if dims[0] * dims[1] * dims[2] > MAX_CELLS:
        raise MalformedDimensionsError(
            f"Dimensions {dims[0]}x{dims[1]}x{dims[2]} exceed {MAX_CELLS} cells"
        )
    return dims


@dataclass(frozen=True, eq=False)
class VoxelGrid:
    """
    Immutable voxel grid of palette indices.

    Attributes:
        width: X dimension
        height: Y dimension (vertical)
        length: Z dimension
        palette: Block-state palette the indices resolve through
        indices: Flat int32 array in Y-Z-X order
            (index = y * length * width + z * width + x)
        name: Schematic name
        total_non_air: Number of cells whose block is not air
    """

    width: int
    height: int
    length: int
    palette: BlockPalette
    indices: np.ndarray = field(repr=False)
    name: str = "Unnamed"
    total_non_air: int = field(init=False)

    def __post_init__(self):
        """Validate the index array and cache the non-air count."""
        width, height, length = check_dimensions(self.width, self.height, self.length)
        # int32 input is adopted without a copy; the grid keeps a read-only view
        indices = np.asarray(self.indices, dtype=np.int32).ravel()
        if indices.size != width * height * length:
            raise MalformedDimensionsError(
                f"Expected {width * height * length} indices for "
                f"{width}x{height}x{length}, got {indices.size}"
            )
        if indices.size:
            low, high = int(indices.min()), int(indices.max())
            if low < 0 or high >= len(self.palette):
                bad = low if low < 0 else high
                raise PaletteIndexError(
                    f"Block index {bad} is outside the palette of {len(self.palette)} entries"
                )

        indices.flags.writeable = False
        object.__setattr__(self, 'width', width)
        object.__setattr__(self, 'height', height)
        object.__setattr__(self, 'length', length)
        object.__setattr__(self, 'indices', indices)
        object.__setattr__(self, 'total_non_air', self._count_non_air())

    def _count_non_air(self) -> int:
        counts = self.block_counts()
        return int(counts[~self.palette.air_mask()].sum())

    @property
    def size(self) -> Tuple[int, int, int]:
        """Dimensions as (width, height, length)."""
        return (self.width, self.height, self.length)

    @property
    def volume(self) -> int:
        """Total number of cells."""
        return self.width * self.height * self.length

    def is_valid_position(self, x: int, y: int, z: int) -> bool:
        """Check if coordinates are within the grid bounds."""
        return (0 <= x < self.width and
                0 <= y < self.height and
                0 <= z < self.length)

    def linear_index(self, x: int, y: int, z: int) -> int:
        """Flat array position of a cell (no bounds check)."""
        return (y * self.length + z) * self.width + x

    def get_index(self, x: int, y: int, z: int) -> Optional[int]:
        """
        Get the palette index at a position.

        Returns:
            Palette index, or None outside the grid
        """
        if not self.is_valid_position(x, y, z):
            return None
        return int(self.indices[self.linear_index(x, y, z)])

    def get_block(self, x: int, y: int, z: int) -> Optional[str]:
        """
        Get the block-state descriptor at a position.

        Returns:
            Descriptor string, or None outside the grid or for an
            unassigned palette slot
        """
        index = self.get_index(x, y, z)
        if index is None:
            return None
        return self.palette[index]

    def layer(self, y: int) -> np.ndarray:
        """
        Read-only view of one horizontal layer.

        Returns:
            (length, width) array of palette indices, indexed [z, x]
        """
        if not 0 <= y < self.height:
            raise IndexError(f"Layer {y} outside 0..{self.height - 1}")
        area = self.width * self.length
        return self.indices[y * area:(y + 1) * area].reshape(self.length, self.width)

    def to_array(self) -> np.ndarray:
        """Read-only (height, length, width) view of the whole grid."""
        return self.indices.reshape(self.height, self.length, self.width)

    def block_counts(self) -> np.ndarray:
        """Number of cells per palette index."""
        counts = np.zeros(len(self.palette), dtype=np.int64)
        for start in range(0, self.indices.size, COUNT_CHUNK):
            counts += np.bincount(self.indices[start:start + COUNT_CHUNK], minlength=len(self.palette))
        return counts

    def iter_solid_blocks(self) -> Iterator[Tuple[int, int, int, str]]:
        """
        Iterate over every non-air cell in Y-Z-X order.

        Yields:
            (x, y, z, descriptor) tuples
        """
        air = self.palette.air_mask()
        for y in range(self.height):
            layer = self.layer(y)
            for z, x in np.argwhere(~air[layer]):
                yield int(x), y, int(z), self.palette[int(layer[z, x])]
