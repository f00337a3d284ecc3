"""
Minecraft Schematic Adapters
============================

Turn already-parsed NBT trees into VoxelGrid instances:
- .schem (Sponge Schematic v2, varint-encoded BlockData)
- .litematic (Litematica, bit-packed BlockStates long array)

Uses nbtlib for reading files from disk; the adapters themselves accept
any mapping-shaped tree (nbtlib compounds or plain dicts).
"""

import logging
from pathlib import Path
from typing import Any, Mapping, Optional

import nbtlib

from schemscope.core.blockstate import as_text
from schemscope.core.palette import BlockPalette
from schemscope.core.voxel_grid import VoxelGrid, check_dimensions
from schemscope.errors import MissingFieldError
from schemscope.formats.decoding import (
    PackingLayout,
    bits_per_entry,
    decode_packed_array,
    decode_varint_array,
)

logger = logging.getLogger(__name__)

DEFAULT_NAME = 'Unnamed'


def _require(tag: Mapping, key: str, fmt: str) -> Any:
    """Fetch a required child tag."""
    value = tag.get(key)
    if value is None:
        raise MissingFieldError(key, fmt)
    return value


def _metadata_name(tag: Mapping) -> Optional[str]:
    """Read Metadata.Name (or Metadata.name) if present and non-empty."""
    metadata = tag.get('Metadata')
    if not metadata:
        return None
    name = metadata.get('Name') or metadata.get('name')
    return as_text(name) if name else None


class SpongeSchematic:
    """
    Adapter for Sponge .schem files.

    The Palette compound maps block-state strings to indices; BlockData is a
    byte array of LEB128 varints, one per cell, with
    index = x + z * Width + y * Width * Length.
    """

    FORMAT_NAME = 'Sponge schematic'

    @classmethod
    def load(cls, filepath: str) -> VoxelGrid:
        """
        Load a .schem file.

        Args:
            filepath: Path to the schematic file

        Returns:
            Decoded VoxelGrid, named after the file when it has no metadata name
        """
        nbt_file = nbtlib.load(filepath)
        return cls.from_nbt(nbt_file, default_name=Path(filepath).stem)

    @classmethod
    def from_nbt(cls, tree: Mapping, default_name: str = DEFAULT_NAME) -> VoxelGrid:
        """
        Decode a parsed Sponge schematic tree.

        The root may be wrapped in a ``Schematic`` compound or be the root itself.

        Raises:
            MissingFieldError: If a dimension, Palette or BlockData is absent
            TruncatedDataError: If BlockData holds fewer varints than cells
            MalformedDimensionsError: If the dimensions are unusable
        """
        schematic = tree['Schematic'] if 'Schematic' in tree else tree

        width = int(_require(schematic, 'Width', cls.FORMAT_NAME))
        height = int(_require(schematic, 'Height', cls.FORMAT_NAME))
        length = int(_require(schematic, 'Length', cls.FORMAT_NAME))
        palette_tag = _require(schematic, 'Palette', cls.FORMAT_NAME)
        block_data = _require(schematic, 'BlockData', cls.FORMAT_NAME)

        width, height, length = check_dimensions(width, height, length)
        palette = BlockPalette.from_mapping(palette_tag)
        indices = decode_varint_array(block_data, width * height * length)

        name = _metadata_name(schematic) or default_name
        logger.debug("Decoded %s %r: %dx%dx%d, %d palette entries",
                     cls.FORMAT_NAME, name, width, height, length, len(palette))

        # Sponge order (X fastest, then Z, then Y) is already the grid order
        return VoxelGrid(width, height, length, palette, indices, name=name)


class LitematicSchematic:
    """
    Adapter for Litematica .litematic files.

    Only the first region is decoded. Its BlockStates long array packs one
    palette index per cell at max(2, ceil(log2(palette size))) bits, with
    index = y * Length * Width + z * Width + x.
    """

    FORMAT_NAME = 'Litematica'

    @classmethod
    def load(cls, filepath: str, layout: Optional[PackingLayout] = None) -> VoxelGrid:
        """Load a .litematic file."""
        nbt_file = nbtlib.load(filepath)
        return cls.from_nbt(nbt_file, default_name=Path(filepath).stem, layout=layout)

    @classmethod
    def _region_size(cls, size) -> tuple:
        """Absolute (x, y, z) extents of a region; negative sizes grow backwards."""
        if isinstance(size, Mapping):
            extents = []
            for axis in 'xyz':
                value = size.get(axis, size.get(axis.upper()))
                if value is None:
                    raise MissingFieldError(f"Size.{axis}", cls.FORMAT_NAME)
                extents.append(abs(int(value)))
            return tuple(extents)
        return tuple(abs(int(value)) for value in size[:3])

    @classmethod
    def from_nbt(cls, tree: Mapping, default_name: str = DEFAULT_NAME,
                 layout: Optional[PackingLayout] = None) -> VoxelGrid:
        """
        Decode a parsed Litematica tree.

        Args:
            tree: Root compound with Regions and optional Metadata
            default_name: Name used when neither metadata nor region key has one
            layout: Force the packing layout instead of detecting it

        Raises:
            MissingFieldError: If Regions is absent or empty, or the region
                lacks Size, BlockStatePalette or BlockStates
            MalformedDimensionsError: If the region size is unusable
        """
        regions = _require(tree, 'Regions', cls.FORMAT_NAME)
        if not regions:
            raise MissingFieldError('region entry in Regions', cls.FORMAT_NAME)

        region_name, region = next(iter(regions.items()))
        if len(regions) > 1:
            logger.debug("Using region %r, ignoring %d others", region_name, len(regions) - 1)

        width, height, length = cls._region_size(_require(region, 'Size', cls.FORMAT_NAME))
        palette_tag = region.get('BlockStatePalette')
        if not palette_tag:
            raise MissingFieldError('BlockStatePalette', cls.FORMAT_NAME)
        block_states = _require(region, 'BlockStates', cls.FORMAT_NAME)

        width, height, length = check_dimensions(width, height, length)
        palette = BlockPalette.from_entries(palette_tag)
        indices = decode_packed_array(block_states, len(palette),
                                      width * height * length, layout=layout)

        name = _metadata_name(tree) or as_text(region_name) or default_name
        logger.debug("Decoded %s %r: %dx%dx%d, %d palette entries at %d bits",
                     cls.FORMAT_NAME, name, width, height, length,
                     len(palette), bits_per_entry(len(palette)))

        return VoxelGrid(width, height, length, palette, indices, name=name)
